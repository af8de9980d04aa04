from __future__ import annotations

from dataclasses import dataclass

from dynastream.constants import (
    HEARTBEAT_INTERVAL,
    HEARTBEAT_TIMEOUT,
    POLL_DELAY_QUICK,
    POLL_DELAY_SLOW,
    SHARD_SETTLE_DELAY,
)


@dataclass(frozen=True)
class ConsumerConfig:
    """Connection and pacing configuration for a stream consumer."""

    region: str | None = None
    endpoint_url: str | None = None
    profile: str | None = None
    records_limit: int | None = None  # GetRecords Limit; None lets the service decide
    poll_delay_quick: float = POLL_DELAY_QUICK
    poll_delay_slow: float = POLL_DELAY_SLOW
    shard_settle_delay: float = SHARD_SETTLE_DELAY
    heartbeat_timeout: float = HEARTBEAT_TIMEOUT
    heartbeat_interval: float = HEARTBEAT_INTERVAL

    def __post_init__(self) -> None:
        if self.records_limit is not None and not 1 <= self.records_limit <= 1000:
            raise ValueError("records_limit must be within [1, 1000]")
        if self.heartbeat_timeout <= 0 or self.heartbeat_interval <= 0:
            raise ValueError("heartbeat_timeout and heartbeat_interval must be positive")
        for name in ("poll_delay_quick", "poll_delay_slow", "shard_settle_delay"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be >= 0")
