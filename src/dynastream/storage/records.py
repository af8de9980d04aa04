from __future__ import annotations

import asyncio
import json
import os
from pathlib import Path
from typing import Any

from dynastream.core.models import ShardDescriptor, StreamRecord


def record_to_json_line(stream_id: str, shard: ShardDescriptor, record: StreamRecord) -> str:
    """Serialize a record as a compact JSON line."""
    row: dict[str, Any] = {
        "stream": stream_id,
        "shard_id": shard.shard_id,
        "sequence_number": record.sequence_number,
        "event_id": record.event_id,
        "event_name": record.event_name,
        "keys": record.keys,
        "new_image": record.new_image,
        "old_image": record.old_image,
    }
    return json.dumps(row, separators=(",", ":"), default=str) + "\n"


class JsonlRecordSink:
    """Record handler appending each record to a JSONL file.

    Each line is flushed and fsynced before the handler returns, so a
    checkpoint never runs ahead of the records written.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.touch()
        self.written = 0
        self._lock = asyncio.Lock()

    async def write(self, stream_id: str, shard: ShardDescriptor, record: StreamRecord) -> None:
        line = record_to_json_line(stream_id, shard, record)
        async with self._lock:
            await asyncio.to_thread(self._write_line, self.path, line)
            self.written += 1

    __call__ = write

    @staticmethod
    def _write_line(path: Path, line: str) -> None:
        """Write a line to file with immediate flush and sync."""
        with open(path, "a", buffering=1) as f:
            f.write(line)
            f.flush()
            os.fsync(f.fileno())
