from dynastream.core.use_cases.poll_shard import (
    PollContext,
    PollerEntry,
    PollOutcome,
    enter_shard,
    poll_shard,
)
from dynastream.core.use_cases.walk_shards import ShardTreeWalker

__all__ = [
    "PollContext",
    "PollerEntry",
    "PollOutcome",
    "ShardTreeWalker",
    "enter_shard",
    "poll_shard",
]
