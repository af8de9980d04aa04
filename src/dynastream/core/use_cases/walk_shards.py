from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Coroutine
from typing import Any

from dynastream.core.models import ShardDescriptor, order_parents_first
from dynastream.core.use_cases.poll_shard import (
    PollContext,
    PollerEntry,
    PollOutcome,
    enter_shard,
    poll_shard,
)

logger = logging.getLogger(__name__)


class ShardTreeWalker:
    """
    Discovers shards and fans polling out over them.

    Work is a flat set of jobs:
    - a *walk* job lists the stream and, parents first, starts a poller for
      each eligible shard (all shards, or only the children of one parent);
    - a *poll* job drives one shard; when its shard closes it schedules a
      walk for that shard's children after the settle delay.

    `run` returns once no job is left. The first failing job aborts the run:
    the others wind down at their next batch boundary and `run` re-raises
    that first error.
    """

    def __init__(self, ctx: PollContext) -> None:
        self._ctx = ctx
        self._jobs: set[asyncio.Task[Any]] = set()
        self._active: set[str] = set()
        self._errors: list[BaseException] = []

    @property
    def active_shards(self) -> frozenset[str]:
        return frozenset(self._active)

    def _spawn(self, coro: Coroutine[Any, Any, Any], name: str) -> None:
        self._jobs.add(asyncio.create_task(coro, name=name))

    def schedule_walk(self, parent_shard_id: str | None = None, *, delay: float = 0.0) -> None:
        """Queue a discovery job, optionally scoped to one parent's children."""
        self._spawn(self._walk(parent_shard_id, delay), name=f"walk:{parent_shard_id or '*'}")

    async def run(self, parent_shard_id: str | None = None) -> None:
        self.schedule_walk(parent_shard_id)
        try:
            while self._jobs:
                done, _ = await asyncio.wait(self._jobs, return_when=asyncio.FIRST_COMPLETED)
                for task in done:
                    self._jobs.discard(task)
                    self._collect(task)
        finally:
            await self._cancel_pending()

        if self._errors:
            raise self._errors[0]

    def _collect(self, task: asyncio.Task[Any]) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is None:
            return
        if not self._errors:
            logger.error("%s failed, aborting run: %r", task.get_name(), exc)
        self._errors.append(exc)
        self._ctx.aborted.set()

    async def _cancel_pending(self) -> None:
        pending = [t for t in self._jobs if not t.done()]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        self._jobs.clear()

    # ---------- jobs ----------

    async def _walk(self, parent_shard_id: str | None, delay: float) -> None:
        ctx = self._ctx
        if delay:
            with contextlib.suppress(asyncio.TimeoutError):
                await asyncio.wait_for(ctx.aborted.wait(), delay)
        if ctx.aborted.is_set():
            return

        shards = await ctx.client.list_shards()
        ctx.stats.walks += 1
        if ctx.aborted.is_set():
            return
        logger.debug("walk %s: %d shard(s) listed", parent_shard_id or "*", len(shards))

        for shard in order_parents_first(shards):
            if parent_shard_id is not None and shard.parent_shard_id != parent_shard_id:
                continue
            if shard.shard_id in self._active:
                continue
            entry = enter_shard(ctx, shard)
            if entry.skips:
                continue
            self._active.add(shard.shard_id)
            self._spawn(self._poll(shard, entry), name=f"poll:{shard.shard_id}")

    async def _poll(self, shard: ShardDescriptor, entry: PollerEntry) -> None:
        try:
            outcome = await poll_shard(self._ctx, shard, entry)
        finally:
            self._active.discard(shard.shard_id)

        if outcome is PollOutcome.DRAINED_CLOSED and not self._ctx.aborted.is_set():
            self.schedule_walk(shard.shard_id, delay=self._ctx.config.shard_settle_delay)
