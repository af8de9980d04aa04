from __future__ import annotations

import asyncio
import json
import os
from pathlib import Path

from dynastream.core.models import ShardDescriptor


class JsonCheckpointStore:
    """JSON-file checkpoint store in the snapshot layout (shard id -> status).

    `save` matches the status handler signature, so a store can be registered
    directly with `StreamConsumer.set_status_handler`. Every save rewrites the
    file atomically before returning.
    """

    def __init__(self, path: str | Path) -> None:
        """Initialize the store at the given path.

        Args:
            path: File path of the JSON checkpoint file
        """
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._shards: dict[str, str] = {}
        self._loaded = False
        self._lock = asyncio.Lock()

    def load(self) -> dict[str, str]:
        """Read the snapshot from disk (empty if the file does not exist yet)."""
        if not self.path.exists():
            self._shards = {}
            self._loaded = True
            return {}
        with open(self.path) as f:
            raw = json.load(f)
        if not isinstance(raw, dict):
            raise ValueError(f"{self.path}: expected a JSON object of shard checkpoints")
        self._shards = {str(k): str(v) for k, v in raw.items()}
        self._loaded = True
        return dict(self._shards)

    @property
    def shards(self) -> dict[str, str]:
        return dict(self._shards)

    async def save(self, stream_id: str, shard: ShardDescriptor, status: str) -> None:
        """Persist `status` for `shard` and return once it is on disk.

        Args:
            stream_id: Stream the shard belongs to (unused, one file per stream)
            shard: Shard whose progress changed
            status: "new", "closed" or the last delivered sequence number
        """
        async with self._lock:
            if not self._loaded:
                await asyncio.to_thread(self.load)
            self._shards[shard.shard_id] = status
            payload = json.dumps(self._shards, separators=(",", ":"), sort_keys=True)
            await asyncio.to_thread(self._atomic_write, self.path, payload)

    __call__ = save

    @staticmethod
    def _atomic_write(path: Path, payload: str) -> None:
        """Write via tmp file + fsync + replace."""
        tmp = path.with_suffix(path.suffix + ".tmp")
        with open(tmp, "w") as f:
            f.write(payload)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp, path)
