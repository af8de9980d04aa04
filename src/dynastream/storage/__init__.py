"""Storage adapters for checkpoints and delivered records.

This package provides:
- JsonCheckpointStore: atomic JSON checkpoint file, usable as status handler
- JsonlRecordSink: fsynced JSONL writer, usable as record handler
"""

from dynastream.storage.checkpoints import JsonCheckpointStore
from dynastream.storage.records import JsonlRecordSink

__all__ = [
    "JsonCheckpointStore",
    "JsonlRecordSink",
]
