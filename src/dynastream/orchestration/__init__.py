"""Orchestration for consuming a stream with resumable checkpoints.

This package provides:
- StreamConsumer: the public entry point (handlers, deadline, run)
"""

from dynastream.orchestration.consumer import StreamConsumer

__all__ = [
    "StreamConsumer",
]
