"""Core data models for the stream consumer.

This module defines:
- `ShardDescriptor`: one shard as listed by DescribeStream.
- `StreamRecord`: one change record as returned by GetRecords.
- `RecordBatch`: the result of a single GetRecords call.
- `ConsumerStats`: counters accumulated over a run.

Design notes
------------
- Sequence numbers stay strings end to end; they are opaque on the wire and
  can exceed 64 bits.
- Records keep the raw wire payload so handlers can reach any attribute the
  typed accessors do not cover.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


# === Shard listing ===


@dataclass(slots=True, frozen=True)
class ShardDescriptor:
    """A shard as listed by the stream, with its optional parent."""

    shard_id: str
    parent_shard_id: str | None = None
    starting_sequence_number: str | None = None
    ending_sequence_number: str | None = None  # set once the shard is sealed

    @classmethod
    def from_wire(cls, raw: dict[str, Any]) -> ShardDescriptor:
        seq_range = raw.get("SequenceNumberRange") or {}
        return cls(
            shard_id=raw["ShardId"],
            parent_shard_id=raw.get("ParentShardId"),
            starting_sequence_number=seq_range.get("StartingSequenceNumber"),
            ending_sequence_number=seq_range.get("EndingSequenceNumber"),
        )


def order_parents_first(shards: Iterable[ShardDescriptor]) -> list[ShardDescriptor]:
    """Return shards so that every listed parent precedes its children.

    The relative order of unrelated shards is preserved. Parents missing from
    the listing (pruned by retention) do not hold their children back.
    """
    shards = list(shards)
    by_id = {s.shard_id: s for s in shards}
    placed: set[str] = set()
    out: list[ShardDescriptor] = []

    for s in shards:
        # Climb to the oldest unplaced ancestor, then place the chain top-down
        chain: list[ShardDescriptor] = []
        cur: ShardDescriptor | None = s
        while cur is not None and cur.shard_id not in placed and cur not in chain:
            chain.append(cur)
            cur = by_id.get(cur.parent_shard_id or "")
        for c in reversed(chain):
            placed.add(c.shard_id)
            out.append(c)
    return out


# === Records ===


@dataclass(slots=True, frozen=True)
class StreamRecord:
    """A single change record, minimally normalized from the wire shape."""

    sequence_number: str
    payload: dict[str, Any] = field(repr=False)

    @classmethod
    def from_wire(cls, raw: dict[str, Any]) -> StreamRecord:
        return cls(sequence_number=raw["dynamodb"]["SequenceNumber"], payload=raw)

    @property
    def event_id(self) -> str | None:
        return self.payload.get("eventID")

    @property
    def event_name(self) -> str | None:
        """INSERT, MODIFY or REMOVE."""
        return self.payload.get("eventName")

    @property
    def keys(self) -> dict[str, Any]:
        return self.payload["dynamodb"].get("Keys", {})

    @property
    def new_image(self) -> dict[str, Any] | None:
        return self.payload["dynamodb"].get("NewImage")

    @property
    def old_image(self) -> dict[str, Any] | None:
        return self.payload["dynamodb"].get("OldImage")

    @property
    def approximate_creation_time(self) -> datetime | None:
        return self.payload["dynamodb"].get("ApproximateCreationDateTime")


@dataclass(slots=True, frozen=True)
class RecordBatch:
    """One GetRecords page. `next_iterator` is None once the shard is exhausted."""

    records: tuple[StreamRecord, ...]
    next_iterator: str | None


# === Stats ===


@dataclass(kw_only=True)
class ConsumerStats:
    """
    Aggregated counters for one run.

    Mutated by pollers and discovery jobs as they progress:
    - how many records were delivered (and checkpointed)
    - how many shards were activated, resumed, closed
    - how many shard listings were walked
    """

    records_delivered: int = 0
    shards_activated: int = 0
    shards_resumed: int = 0
    shards_closed: int = 0
    walks: int = 0
