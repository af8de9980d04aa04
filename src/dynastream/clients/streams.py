"""DynamoDB Streams client wrapping boto3.

This module provides:
- `make_boto3_client`: builds a `dynamodbstreams` client from `ConsumerConfig`
- `DynamoDBStreamsClient`: async facade over the three calls the consumer
  needs (DescribeStream, GetShardIterator, GetRecords)

boto3 is synchronous; each call runs on a worker thread via
`asyncio.to_thread`. Every successful call beats the heartbeat.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from dynastream.constants import ITERATOR_AFTER_SEQUENCE_NUMBER, ITERATOR_TRIM_HORIZON
from dynastream.core.config import ConsumerConfig
from dynastream.core.errors import MalformedResponseError, StreamApiError
from dynastream.core.heartbeat import HeartbeatWatchdog
from dynastream.core.models import RecordBatch, ShardDescriptor, StreamRecord

logger = logging.getLogger(__name__)


def make_boto3_client(config: ConsumerConfig) -> Any:
    """Create a low-level `dynamodbstreams` client (credentials from the boto3 chain)."""
    session = boto3.session.Session(profile_name=config.profile, region_name=config.region)
    return session.client("dynamodbstreams", endpoint_url=config.endpoint_url)


class DynamoDBStreamsClient:
    """Async DynamoDB Streams client for a single stream.

    Parameters
    ----------
    stream_arn : str
        ARN of the stream to read.
    config : ConsumerConfig | None
        Connection settings; also supplies the GetRecords limit.
    heartbeat : HeartbeatWatchdog | None
        Watchdog refreshed after every successful call.
    client : Any
        Pre-built boto3 client (tests, custom sessions). Built from
        `config` when omitted.
    """

    def __init__(
        self,
        stream_arn: str,
        *,
        config: ConsumerConfig | None = None,
        heartbeat: HeartbeatWatchdog | None = None,
        client: Any = None,
    ) -> None:
        self.stream_arn = stream_arn
        self.config = config or ConsumerConfig()
        self.heartbeat = heartbeat
        self._client = client if client is not None else make_boto3_client(self.config)

    async def _call(self, operation: str, method: str, **params: Any) -> dict[str, Any]:
        try:
            data = await asyncio.to_thread(getattr(self._client, method), **params)
        except (BotoCoreError, ClientError) as e:
            logger.error("%s failed on %s: %s", operation, self.stream_arn, e)
            raise StreamApiError(operation, str(e)) from e
        if self.heartbeat is not None:
            self.heartbeat.beat()
        return data

    async def list_shards(self) -> list[ShardDescriptor]:
        """Return every shard of the stream, following DescribeStream pagination."""
        shards: list[ShardDescriptor] = []
        start_after: str | None = None
        while True:
            params: dict[str, Any] = {"StreamArn": self.stream_arn}
            if start_after:
                params["ExclusiveStartShardId"] = start_after
            data = await self._call("DescribeStream", "describe_stream", **params)

            description = data.get("StreamDescription")
            if not isinstance(description, dict) or "Shards" not in description:
                raise MalformedResponseError("DescribeStream", "StreamDescription.Shards")
            try:
                shards.extend(ShardDescriptor.from_wire(raw) for raw in description["Shards"])
            except KeyError as e:
                raise MalformedResponseError("DescribeStream", f"Shards[].{e.args[0]}") from e

            start_after = description.get("LastEvaluatedShardId")
            if not start_after:
                break
        return shards

    async def get_iterator(self, shard_id: str, after_sequence_number: str | None = None) -> str:
        """Return a trim-horizon iterator, or one positioned after `after_sequence_number`."""
        params: dict[str, Any] = {"StreamArn": self.stream_arn, "ShardId": shard_id}
        if after_sequence_number is None:
            params["ShardIteratorType"] = ITERATOR_TRIM_HORIZON
        else:
            params["ShardIteratorType"] = ITERATOR_AFTER_SEQUENCE_NUMBER
            params["SequenceNumber"] = after_sequence_number

        data = await self._call("GetShardIterator", "get_shard_iterator", **params)
        iterator = data.get("ShardIterator")
        if not iterator:
            raise MalformedResponseError("GetShardIterator", "ShardIterator")
        return iterator

    async def get_records(self, iterator: str) -> RecordBatch:
        """Fetch one page of records. A missing NextShardIterator means the shard is closed."""
        params: dict[str, Any] = {"ShardIterator": iterator}
        if self.config.records_limit is not None:
            params["Limit"] = self.config.records_limit

        data = await self._call("GetRecords", "get_records", **params)
        if "Records" not in data:
            raise MalformedResponseError("GetRecords", "Records")
        try:
            records = tuple(StreamRecord.from_wire(raw) for raw in data["Records"])
        except (KeyError, TypeError) as e:
            raise MalformedResponseError("GetRecords", "Records[].dynamodb.SequenceNumber") from e
        return RecordBatch(records=records, next_iterator=data.get("NextShardIterator"))

    async def aclose(self) -> None:
        """Close the underlying boto3 client."""
        close = getattr(self._client, "close", None)
        if close is not None:
            await asyncio.to_thread(close)
