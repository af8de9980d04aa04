from __future__ import annotations

from .constants import STATUS_CLOSED, STATUS_NEW
from .core.config import ConsumerConfig
from .core.errors import StreamApiError, StreamConsumerError
from .core.models import ConsumerStats, ShardDescriptor, StreamRecord
from .orchestration.consumer import StreamConsumer
from .storage.checkpoints import JsonCheckpointStore
from .storage.records import JsonlRecordSink

__all__ = [
    "StreamConsumer",
    "ConsumerConfig",
    "ConsumerStats",
    "ShardDescriptor",
    "StreamRecord",
    "StreamConsumerError",
    "StreamApiError",
    "JsonCheckpointStore",
    "JsonlRecordSink",
    "STATUS_NEW",
    "STATUS_CLOSED",
]
