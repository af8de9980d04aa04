"""Per-shard progress table (the consumer's checkpoint state).

Each shard id maps to one of:

- absent     : never seen this run
- "new"      : activated, nothing delivered yet (read from trim horizon)
- "<seq>"    : last checkpointed sequence number (read after it)
- "closed"   : fully drained, never polled again

Transitions only flow absent -> new -> seq* -> closed. Entries are written by
the owning shard's poller only and read by others for parent gating; every
operation touches a single key and completes without suspending, so no lock
is needed inside one event loop.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping

from dynastream.constants import STATUS_CLOSED, STATUS_NEW
from dynastream.core.errors import InvalidTransitionError


def _is_position(value: str | None) -> bool:
    return value is not None and value not in (STATUS_NEW, STATUS_CLOSED)


def sequence_advances(current: str, candidate: str) -> bool:
    """Return True if `candidate` is strictly after `current`.

    Numeric strings compare as integers; anything else compares lexically.
    """
    if current.isdigit() and candidate.isdigit():
        return int(candidate) > int(current)
    return candidate > current


class ShardProgressTable:
    """Mutable shard id -> progress mapping, optionally seeded from a snapshot."""

    def __init__(self, snapshot: Mapping[str, str] | None = None) -> None:
        self._entries: dict[str, str] = {}
        for shard_id, value in (snapshot or {}).items():
            if value is None or str(value) == "":
                raise ValueError(f"empty progress value for shard {shard_id!r}")
            self._entries[str(shard_id)] = str(value)

    # ---------- reads ----------

    def get(self, shard_id: str) -> str | None:
        return self._entries.get(shard_id)

    def __contains__(self, shard_id: object) -> bool:
        return shard_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def is_closed(self, shard_id: str) -> bool:
        return self._entries.get(shard_id) == STATUS_CLOSED

    def is_fresh(self, shard_id: str) -> bool:
        """True while nothing has been delivered for the shard (absent or new)."""
        return self._entries.get(shard_id) in (None, STATUS_NEW)

    def blocks_child(self, parent_shard_id: str | None) -> bool:
        """True if a child of `parent_shard_id` must wait.

        A parent holds its children back only while it has an entry that is
        not closed. A parent with no entry (never seen, or pruned by stream
        retention) does not.
        """
        if parent_shard_id is None or parent_shard_id not in self._entries:
            return False
        return self._entries[parent_shard_id] != STATUS_CLOSED

    def resume_position(self, shard_id: str) -> str | None:
        """Sequence number to resume after, or None to start at the trim horizon."""
        value = self._entries.get(shard_id)
        return value if _is_position(value) else None

    def snapshot(self) -> dict[str, str]:
        """Copy of the table in its persisted layout."""
        return dict(self._entries)

    # ---------- transitions ----------

    def mark_new(self, shard_id: str) -> None:
        current = self._entries.get(shard_id)
        if current not in (None, STATUS_NEW):
            raise InvalidTransitionError(f"shard {shard_id}: cannot mark new from {current!r}")
        self._entries[shard_id] = STATUS_NEW

    def advance(self, shard_id: str, sequence_number: str) -> None:
        current = self._entries.get(shard_id)
        if current is None or current == STATUS_CLOSED:
            raise InvalidTransitionError(f"shard {shard_id}: cannot advance from {current!r}")
        if not _is_position(sequence_number):
            raise InvalidTransitionError(f"shard {shard_id}: {sequence_number!r} is not a sequence number")
        if _is_position(current) and not sequence_advances(current, sequence_number):
            raise InvalidTransitionError(
                f"shard {shard_id}: sequence {sequence_number} does not advance past {current}"
            )
        self._entries[shard_id] = sequence_number

    def mark_closed(self, shard_id: str) -> None:
        current = self._entries.get(shard_id)
        if current is None or current == STATUS_CLOSED:
            raise InvalidTransitionError(f"shard {shard_id}: cannot close from {current!r}")
        self._entries[shard_id] = STATUS_CLOSED
