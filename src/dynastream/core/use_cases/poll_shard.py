from __future__ import annotations

import asyncio
import enum
import inspect
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from dynastream.constants import STATUS_CLOSED, STATUS_NEW
from dynastream.core.config import ConsumerConfig
from dynastream.core.errors import RecordHandlerError, StatusHandlerError
from dynastream.core.interfaces import IShardStreamClient, RecordHandler, StatusHandler
from dynastream.core.models import ConsumerStats, ShardDescriptor, StreamRecord
from dynastream.core.progress import ShardProgressTable

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Poll context
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class PollContext:
    """
    Shared state for every poller and discovery job of one run.

    - `progress` is the only state shared across shards; each poller writes
      its own shard's entry and reads the parent's entry for gating.
    - `deadline` is an absolute epoch timestamp (None: run until every
      shard closes). Pollers only read it.
    - `aborted` is set once any job fails; pollers treat it like an elapsed
      deadline so they stop at their next batch boundary.
    """

    stream_id: str
    client: IShardStreamClient
    progress: ShardProgressTable
    on_record: RecordHandler
    on_status: StatusHandler
    config: ConsumerConfig
    stats: ConsumerStats = field(default_factory=ConsumerStats)
    deadline: float | None = None
    aborted: asyncio.Event = field(default_factory=asyncio.Event)
    clock: Callable[[], float] = time.time

    def deadline_passed(self) -> bool:
        return self.deadline is not None and self.clock() >= self.deadline

    def should_continue(self) -> bool:
        return not self.aborted.is_set() and not self.deadline_passed()


class PollerEntry(enum.Enum):
    """How a poller starts, decided once from the progress table."""

    SKIP_CLOSED = "skip-closed"
    SKIP_ACTIVE_PARENT = "skip-active-parent"
    ACTIVATE_NEW = "activate-new"
    RESUME = "resume"

    @property
    def skips(self) -> bool:
        return self in (PollerEntry.SKIP_CLOSED, PollerEntry.SKIP_ACTIVE_PARENT)


class PollOutcome(enum.Enum):
    SKIPPED = "skipped"
    DRAINED_CLOSED = "closed"  # iterator ran dry; children may now start
    DRAINED_DEADLINE = "deadline"  # run deadline reached, shard stays resumable
    STOPPED = "stopped"  # run aborted by another job's failure


# ---------------------------------------------------------------------------
# Handler invocation
# ---------------------------------------------------------------------------


async def _invoke(handler: Callable[..., Any], *args: Any) -> None:
    """Call a handler that may be a coroutine function or a plain function."""
    result = handler(*args)
    if inspect.isawaitable(result):
        await result


async def _notify_status(ctx: PollContext, shard: ShardDescriptor, status: str) -> None:
    try:
        await _invoke(ctx.on_status, ctx.stream_id, shard, status)
    except Exception as e:
        raise StatusHandlerError(shard.shard_id, status) from e


async def _deliver(ctx: PollContext, shard: ShardDescriptor, record: StreamRecord) -> None:
    """Hand one record to the application, then checkpoint it before returning."""
    try:
        await _invoke(ctx.on_record, ctx.stream_id, shard, record)
    except Exception as e:
        raise RecordHandlerError(shard.shard_id, record.sequence_number) from e

    ctx.progress.advance(shard.shard_id, record.sequence_number)
    await _notify_status(ctx, shard, record.sequence_number)
    ctx.stats.records_delivered += 1


# ---------------------------------------------------------------------------
# Entry decision
# ---------------------------------------------------------------------------


def enter_shard(ctx: PollContext, shard: ShardDescriptor) -> PollerEntry:
    """
    Decide how to start polling `shard` and record activation.

    Runs synchronously, so decisions taken for a listing in parent-first
    order see each parent's activation before its children are examined.
    """
    shard_id = shard.shard_id
    progress = ctx.progress

    if progress.is_closed(shard_id):
        logger.debug("closed shard %s (parent %s), skipping", shard_id, shard.parent_shard_id)
        return PollerEntry.SKIP_CLOSED

    if progress.blocks_child(shard.parent_shard_id):
        logger.debug("shard %s waits for active parent %s", shard_id, shard.parent_shard_id)
        return PollerEntry.SKIP_ACTIVE_PARENT

    if progress.is_fresh(shard_id):
        progress.mark_new(shard_id)
        ctx.stats.shards_activated += 1
        logger.info("new shard %s (parent %s)", shard_id, shard.parent_shard_id)
        return PollerEntry.ACTIVATE_NEW

    ctx.stats.shards_resumed += 1
    logger.info("restart shard %s after %s", shard_id, progress.get(shard_id))
    return PollerEntry.RESUME


# ---------------------------------------------------------------------------
# Poll loop
# ---------------------------------------------------------------------------


async def poll_shard(ctx: PollContext, shard: ShardDescriptor, entry: PollerEntry) -> PollOutcome:
    """
    Drive one shard from its entry decision until it closes or the run stops.

    Records are delivered strictly in order; each record's checkpoint is
    persisted before the next record is handed out. Errors from the client
    or the handlers propagate unchanged.
    """
    if entry.skips:
        return PollOutcome.SKIPPED

    shard_id = shard.shard_id
    if entry is PollerEntry.ACTIVATE_NEW:
        await _notify_status(ctx, shard, STATUS_NEW)

    position = ctx.progress.resume_position(shard_id)
    iterator: str | None = await ctx.client.get_iterator(shard_id, position)

    while iterator is not None and ctx.should_continue():
        batch = await ctx.client.get_records(iterator)
        logger.debug("shard %s: %d record(s)", shard_id, len(batch.records))

        for record in batch.records:
            await _deliver(ctx, shard, record)

        iterator = batch.next_iterator
        delay = ctx.config.poll_delay_quick if batch.records else ctx.config.poll_delay_slow
        await asyncio.sleep(delay)

    if iterator is None:
        ctx.progress.mark_closed(shard_id)
        await _notify_status(ctx, shard, STATUS_CLOSED)
        ctx.stats.shards_closed += 1
        logger.info("shard %s closed", shard_id)
        return PollOutcome.DRAINED_CLOSED

    if ctx.aborted.is_set():
        logger.info("shard %s stopped at %s (run aborted)", shard_id, ctx.progress.get(shard_id))
        return PollOutcome.STOPPED

    logger.info("shard %s paused at %s (deadline reached)", shard_id, ctx.progress.get(shard_id))
    return PollOutcome.DRAINED_DEADLINE
