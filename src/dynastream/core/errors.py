from __future__ import annotations


class StreamConsumerError(Exception):
    """Base class for every error raised by the consumer."""


class StreamApiError(StreamConsumerError):
    """A streams API call failed."""

    def __init__(self, operation: str, message: str) -> None:
        super().__init__(f"{operation}: {message}")
        self.operation = operation


class MalformedResponseError(StreamApiError):
    """A streams API response lacked a field the consumer needs."""

    def __init__(self, operation: str, missing: str) -> None:
        super().__init__(operation, f"response missing {missing!r}")
        self.missing = missing


class RecordHandlerError(StreamConsumerError):
    """The application record handler failed for a record."""

    def __init__(self, shard_id: str, sequence_number: str) -> None:
        super().__init__(f"record handler failed on shard {shard_id} at {sequence_number}")
        self.shard_id = shard_id
        self.sequence_number = sequence_number


class StatusHandlerError(StreamConsumerError):
    """The application status (checkpoint) handler failed."""

    def __init__(self, shard_id: str, status: str) -> None:
        super().__init__(f"status handler failed on shard {shard_id} for {status!r}")
        self.shard_id = shard_id
        self.status = status


class InvalidTransitionError(StreamConsumerError):
    """A shard progress update would break the New -> At -> Closed lifecycle."""


class ConsumerAlreadyRunError(StreamConsumerError):
    """`run` was called more than once on the same consumer."""


class HeartbeatExpired(StreamConsumerError):
    """No streams API call has succeeded within the heartbeat timeout."""

    def __init__(self, overdue_s: float) -> None:
        super().__init__(f"no successful streams call for {overdue_s:.1f}s past the heartbeat deadline")
        self.overdue_s = overdue_s
