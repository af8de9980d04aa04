"""Core models, configuration, state and the shard polling engine.

This package provides:
- Data models (ShardDescriptor, StreamRecord, RecordBatch, ConsumerStats)
- Configuration (ConsumerConfig)
- Shard progress table and heartbeat watchdog
- Error types
"""

from dynastream.core.config import ConsumerConfig
from dynastream.core.errors import (
    ConsumerAlreadyRunError,
    HeartbeatExpired,
    InvalidTransitionError,
    MalformedResponseError,
    RecordHandlerError,
    StatusHandlerError,
    StreamApiError,
    StreamConsumerError,
)
from dynastream.core.heartbeat import HeartbeatWatchdog
from dynastream.core.models import ConsumerStats, RecordBatch, ShardDescriptor, StreamRecord
from dynastream.core.progress import ShardProgressTable

__all__ = [
    "ConsumerConfig",
    "ConsumerStats",
    "RecordBatch",
    "ShardDescriptor",
    "StreamRecord",
    "ShardProgressTable",
    "HeartbeatWatchdog",
    "StreamConsumerError",
    "StreamApiError",
    "MalformedResponseError",
    "RecordHandlerError",
    "StatusHandlerError",
    "InvalidTransitionError",
    "ConsumerAlreadyRunError",
    "HeartbeatExpired",
]
