from __future__ import annotations

from collections.abc import Awaitable
from typing import Any, Protocol, runtime_checkable

from dynastream.core.models import RecordBatch, ShardDescriptor, StreamRecord


# ---------------------------------------------------------------------------
# IShardStreamClient
# ---------------------------------------------------------------------------

@runtime_checkable
class IShardStreamClient(Protocol):
    """
    Abstract client for a shard-based change stream.

    Domain expectations:
    - Every successful call counts as proof of liveness (the implementation
      refreshes the heartbeat).
    - Failures surface as `StreamApiError`; a response missing a required
      field surfaces as `MalformedResponseError`.
    - No retries happen at this layer.
    """

    async def list_shards(self) -> list[ShardDescriptor]:
        """Return every shard currently visible on the stream."""
        ...

    async def get_iterator(self, shard_id: str, after_sequence_number: str | None = None) -> str:
        """
        Return an iterator for `shard_id`.

        Without `after_sequence_number` the iterator starts at the shard's
        trim horizon; with it, strictly after that position.
        """
        ...

    async def get_records(self, iterator: str) -> RecordBatch:
        """Fetch the next page of records for `iterator`."""
        ...


# ---------------------------------------------------------------------------
# Application handlers
# ---------------------------------------------------------------------------

class RecordHandler(Protocol):
    """
    Application callback receiving each record, in shard order.

    Returning means the record is safe to checkpoint; raising aborts the
    shard. May be a coroutine function or a plain function.
    """

    def __call__(
        self, stream_id: str, shard: ShardDescriptor, record: StreamRecord
    ) -> Awaitable[Any] | Any: ...


class StatusHandler(Protocol):
    """
    Application callback persisting shard progress.

    `status` is "new", "closed" or the last delivered sequence number.
    Returning means the status is durably stored.
    """

    def __call__(
        self, stream_id: str, shard: ShardDescriptor, status: str
    ) -> Awaitable[Any] | Any: ...
