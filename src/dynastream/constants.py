from __future__ import annotations

# Progress markers persisted alongside sequence numbers
STATUS_NEW    = "new"
STATUS_CLOSED = "closed"

# Poll pacing (seconds)
POLL_DELAY_QUICK   = 0.2   # after a batch that carried records
POLL_DELAY_SLOW    = 0.5   # after an empty batch
SHARD_SETTLE_DELAY = 10.0  # after a shard closes, before listing its children

# Liveness
HEARTBEAT_TIMEOUT  = 60.0
HEARTBEAT_INTERVAL = 1.0
HEARTBEAT_EXIT_CODE = 70

# Wire iterator modes
ITERATOR_TRIM_HORIZON = "TRIM_HORIZON"
ITERATOR_AFTER_SEQUENCE_NUMBER = "AFTER_SEQUENCE_NUMBER"
