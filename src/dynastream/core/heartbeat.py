"""Liveness watchdog for the streams client.

Every successful streams call pushes the heartbeat deadline forward. A daemon
thread compares the clock against that deadline at a fixed interval; once it
has passed, the expiry hook runs exactly once. The default hook terminates
the process without unwinding: the caller is expected to be restarted by its
supervisor and resume from the last persisted checkpoint.

The watchdog lives on its own thread so that it still fires if the event
loop itself is wedged.
"""

from __future__ import annotations

import logging
import os
import threading
import time
from collections.abc import Callable

from dynastream.constants import HEARTBEAT_EXIT_CODE, HEARTBEAT_INTERVAL, HEARTBEAT_TIMEOUT
from dynastream.core.errors import HeartbeatExpired

logger = logging.getLogger(__name__)


def abort_process(exc: HeartbeatExpired) -> None:
    """Default expiry hook: log and exit immediately, skipping cleanup."""
    logger.critical("heartbeat expired, aborting process: %s", exc)
    os._exit(HEARTBEAT_EXIT_CODE)


class HeartbeatWatchdog:
    """Fires `on_expired` when no `beat()` happened within `timeout` seconds.

    Dormant until the first `beat()`.
    """

    def __init__(
        self,
        timeout: float = HEARTBEAT_TIMEOUT,
        *,
        interval: float = HEARTBEAT_INTERVAL,
        on_expired: Callable[[HeartbeatExpired], None] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.timeout = timeout
        self.interval = interval
        self._on_expired = on_expired or abort_process
        self._clock = clock
        self._deadline: float | None = None
        self._fired = False
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def deadline(self) -> float | None:
        return self._deadline

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def beat(self) -> None:
        """Record a successful call. Last writer wins; any writer extends."""
        self._deadline = self._clock() + self.timeout

    def check(self) -> bool:
        """Run one watchdog tick. Returns True if the heartbeat has expired."""
        deadline = self._deadline
        if deadline is None:
            return False
        now = self._clock()
        if now <= deadline:
            return False
        if not self._fired:
            self._fired = True
            self._on_expired(HeartbeatExpired(now - deadline))
        return True

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name="dynastream-heartbeat", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=max(1.0, self.interval * 2))
        self._thread = None

    def _loop(self) -> None:
        while not self._stop.wait(self.interval):
            if self.check():
                return
