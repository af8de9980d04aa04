from __future__ import annotations

from collections import Counter
from collections.abc import Iterator
from typing import Any

import pytest

from dynastream.core.config import ConsumerConfig
from dynastream.core.heartbeat import HeartbeatWatchdog
from dynastream.core.models import RecordBatch, ShardDescriptor, StreamRecord

STREAM_ARN = "arn:aws:dynamodb:us-east-1:123456789012:table/Orders/stream/2024-01-01T00:00:00.000"


def make_record(seq: int | str, event_name: str = "INSERT") -> StreamRecord:
    return StreamRecord.from_wire(
        {
            "eventID": f"ev-{seq}",
            "eventName": event_name,
            "dynamodb": {
                "Keys": {"pk": {"S": f"item-{seq}"}},
                "NewImage": {"pk": {"S": f"item-{seq}"}},
                "SequenceNumber": str(seq),
            },
        }
    )


def page(*seqs: int) -> list[StreamRecord]:
    return [make_record(s) for s in seqs]


class FakeStreamsClient:
    """In-memory streams client.

    Each shard is a list of pages; one GetRecords call returns one page. The
    last page closes the shard unless the shard is in `open_shards`, in which
    case further calls return empty pages forever. A shard without pages
    returns one empty page and closes.

    Every call is appended to `events` as a tuple, so tests can interleave it
    with handler events.
    """

    def __init__(
        self,
        shards: list[ShardDescriptor],
        pages: dict[str, list[list[StreamRecord]]] | None = None,
        *,
        open_shards: tuple[str, ...] = (),
        events: list[tuple[Any, ...]] | None = None,
        heartbeat: HeartbeatWatchdog | None = None,
    ) -> None:
        self.shards = list(shards)
        self.pages = pages or {}
        self.open_shards = set(open_shards)
        self.events = events if events is not None else []
        self.heartbeat = heartbeat
        self.closed = False
        self._failures: dict[tuple[str, str | None], tuple[Exception, int]] = {}
        self._counts: Counter[tuple[str, str | None]] = Counter()

    def fail(self, op: str, shard_id: str | None, exc: Exception, *, after: int = 0) -> None:
        """Raise `exc` on `op` for `shard_id` once `after` calls have succeeded."""
        self._failures[(op, shard_id)] = (exc, after)

    def _call(self, op: str, shard_id: str | None, *extra: Any) -> None:
        key = (op, shard_id)
        self.events.append((op, shard_id, *extra))
        self._counts[key] += 1
        if key in self._failures:
            exc, after = self._failures[key]
            if self._counts[key] > after:
                raise exc
        if self.heartbeat is not None:
            self.heartbeat.beat()

    def calls(self, op: str, shard_id: str | None = None) -> list[tuple[Any, ...]]:
        return [e for e in self.events if e[0] == op and (shard_id is None or e[1] == shard_id)]

    async def list_shards(self) -> list[ShardDescriptor]:
        self._call("list_shards", None)
        return list(self.shards)

    async def get_iterator(self, shard_id: str, after_sequence_number: str | None = None) -> str:
        self._call("get_iterator", shard_id, after_sequence_number)
        return f"{shard_id}|0|{after_sequence_number or ''}"

    async def get_records(self, iterator: str) -> RecordBatch:
        shard_id, idx_s, after = iterator.split("|")
        idx = int(idx_s)
        self._call("get_records", shard_id)

        shard_pages = self.pages.get(shard_id, [[]])
        records = shard_pages[idx] if idx < len(shard_pages) else []
        if after:
            records = [r for r in records if int(r.sequence_number) > int(after)]

        nxt = idx + 1
        if nxt >= len(shard_pages) and shard_id not in self.open_shards:
            next_iterator = None
        else:
            next_iterator = f"{shard_id}|{min(nxt, len(shard_pages))}|{after}"
        return RecordBatch(records=tuple(records), next_iterator=next_iterator)

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def fast_config() -> ConsumerConfig:
    return ConsumerConfig(poll_delay_quick=0, poll_delay_slow=0, shard_settle_delay=0)


@pytest.fixture
def quiet_watchdog() -> Iterator[HeartbeatWatchdog]:
    watchdog = HeartbeatWatchdog(timeout=60, interval=0.05, on_expired=lambda exc: None)
    yield watchdog
    watchdog.stop()
