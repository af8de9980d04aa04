"""Stream consumer: public entry point wiring handlers, state and the walker.

Typical use::

    consumer = StreamConsumer(stream_arn, ConsumerConfig(region="eu-west-1"), store.load())
    consumer.set_record_handler(handle_record)
    consumer.set_status_handler(store.save)
    stats = await consumer.run(deadline=time.time() + 300)

A consumer runs once. To continue after `run` returns (deadline, error, or
a heartbeat-triggered restart), build a new consumer from the last persisted
snapshot.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Mapping
from datetime import datetime
from typing import Any

from dynastream.clients.streams import DynamoDBStreamsClient
from dynastream.core.config import ConsumerConfig
from dynastream.core.errors import ConsumerAlreadyRunError
from dynastream.core.heartbeat import HeartbeatWatchdog
from dynastream.core.interfaces import IShardStreamClient, RecordHandler, StatusHandler
from dynastream.core.models import ConsumerStats, ShardDescriptor, StreamRecord
from dynastream.core.progress import ShardProgressTable
from dynastream.core.use_cases.poll_shard import PollContext
from dynastream.core.use_cases.walk_shards import ShardTreeWalker

logger = logging.getLogger(__name__)


async def _ignore_record(stream_id: str, shard: ShardDescriptor, record: StreamRecord) -> None:
    return None


async def _ignore_status(stream_id: str, shard: ShardDescriptor, status: str) -> None:
    return None


def _to_epoch(deadline: float | datetime | None) -> float | None:
    if deadline is None:
        return None
    if isinstance(deadline, datetime):
        return deadline.timestamp()
    return float(deadline)


class StreamConsumer:
    """Consumes every shard of one stream, in lineage order, with checkpoints.

    Parameters
    ----------
    stream_id : str
        Stream ARN. Also passed to handlers as their first argument.
    config : ConsumerConfig | None
        Connection and pacing settings.
    progress : Mapping[str, str] | None
        Snapshot from a previous run: shard id -> sequence number, "new" or
        "closed".
    client : IShardStreamClient | None
        Streams client. Defaults to a boto3-backed `DynamoDBStreamsClient`
        beating this consumer's watchdog; an injected client is responsible
        for calling `consumer.watchdog.beat()` itself.
    watchdog : HeartbeatWatchdog | None
        Liveness watchdog; built from `config` when omitted.
    """

    def __init__(
        self,
        stream_id: str,
        config: ConsumerConfig | None = None,
        progress: Mapping[str, str] | None = None,
        *,
        client: IShardStreamClient | None = None,
        watchdog: HeartbeatWatchdog | None = None,
    ) -> None:
        self.stream_id = stream_id
        self.config = config or ConsumerConfig()
        self.progress = ShardProgressTable(progress)
        self.stats = ConsumerStats()

        self.watchdog = watchdog or HeartbeatWatchdog(
            self.config.heartbeat_timeout,
            interval=self.config.heartbeat_interval,
        )
        self.watchdog.start()

        self._owns_client = client is None
        self.client: IShardStreamClient = client or DynamoDBStreamsClient(
            stream_id, config=self.config, heartbeat=self.watchdog
        )

        self._on_record: RecordHandler | None = None
        self._on_status: StatusHandler | None = None
        self._started = False

    # ---------- handlers ----------

    def set_record_handler(self, handler: RecordHandler) -> RecordHandler:
        """Register the record handler. Returns it, so it also works as a decorator."""
        self._on_record = handler
        return handler

    def set_status_handler(self, handler: StatusHandler) -> StatusHandler:
        """Register the checkpoint/status handler. Returns it, so it also works as a decorator."""
        self._on_status = handler
        return handler

    # ---------- run ----------

    async def run(self, deadline: float | datetime | None = None) -> ConsumerStats:
        """Consume until every shard closes or `deadline` (epoch seconds or datetime) passes.

        Raises the first error hit by any shard. Progress checkpointed before
        the error stays valid for the next run.
        """
        if self._started:
            raise ConsumerAlreadyRunError(f"consumer for {self.stream_id} has already run")
        self._started = True

        ctx = PollContext(
            stream_id=self.stream_id,
            client=self.client,
            progress=self.progress,
            on_record=self._on_record or _ignore_record,
            on_status=self._on_status or _ignore_status,
            config=self.config,
            stats=self.stats,
            deadline=_to_epoch(deadline),
        )
        walker = ShardTreeWalker(ctx)

        started = time.monotonic()
        logger.info("consuming %s (%d shard(s) in snapshot)", self.stream_id, len(self.progress))
        try:
            await walker.run()
        finally:
            await asyncio.to_thread(self.watchdog.stop)
            logger.info(
                "finished %s in %.1fs: records=%d activated=%d closed=%d walks=%d",
                self.stream_id,
                time.monotonic() - started,
                self.stats.records_delivered,
                self.stats.shards_activated,
                self.stats.shards_closed,
                self.stats.walks,
            )
        return self.stats

    def snapshot(self) -> dict[str, str]:
        """Current progress in its persisted layout."""
        return self.progress.snapshot()

    async def aclose(self) -> None:
        """Stop the watchdog and close the client if this consumer built it."""
        await asyncio.to_thread(self.watchdog.stop)
        if self._owns_client:
            close: Any = getattr(self.client, "aclose", None)
            if close is not None:
                await close()
