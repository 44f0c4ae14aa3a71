"""
engine/refresh_scheduler.py -- Single-flight, trailing-edge debounce.

Text-change events arrive in bursts.  :class:`RefreshScheduler` turns a
burst into one refresh: each :meth:`request` pushes the deadline back by
the debounce window, and the action runs once the window passes without a
new request.

Only one run is ever in flight.  A request that arrives *during* a run is
handled in one of two ways:

    - coalesce (default): the run finishes, then exactly one follow-up run
      is scheduled a full window later, so no edit is missed;
    - drop (``drop_while_running=True``): the request is discarded and
      counted in :attr:`dropped_count`.  An edit landing mid-refresh then
      stays invisible until the next trigger.

The scheduler owns no timer.  A host loop (``QTimer`` in the app,
direct calls in tests) asks :meth:`time_until_due` and calls
:meth:`run_due`.  The clock is injectable for deterministic tests.

Usage::

    scheduler = RefreshScheduler(engine.refresh_all, delay=1.0)
    scheduler.request()
    ...
    scheduler.run_due()
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable

logger = logging.getLogger(__name__)


class RefreshScheduler:
    """Debounced, single-flight runner for one action.

    Parameters
    ----------
    action : callable
        Zero-argument callable run on each refresh.
    delay : float
        Debounce window in seconds.
    drop_while_running : bool
        Discard requests that arrive while the action runs instead of
        queuing one follow-up run.
    clock : callable, optional
        Returns the current time in seconds (default ``time.monotonic``).
    """

    def __init__(
        self,
        action: Callable[[], object],
        delay: float = 1.0,
        *,
        drop_while_running: bool = False,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._action = action
        self.delay = max(0.0, float(delay))
        self.drop_while_running = drop_while_running
        self._clock = clock
        self._lock = threading.Lock()
        self._deadline: float | None = None
        self._running = False
        self._rerun = False
        self._dropped = 0
        self._runs = 0

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def pending(self) -> bool:
        with self._lock:
            return self._deadline is not None or self._rerun

    @property
    def running(self) -> bool:
        return self._running

    @property
    def dropped_count(self) -> int:
        return self._dropped

    @property
    def run_count(self) -> int:
        return self._runs

    def time_until_due(self) -> float | None:
        """Seconds until the pending run is due, or ``None`` if idle."""
        with self._lock:
            if self._deadline is None:
                return None
            return max(0.0, self._deadline - self._clock())

    # ------------------------------------------------------------------
    # Triggers
    # ------------------------------------------------------------------

    def request(self) -> bool:
        """Ask for a refresh.  Returns ``False`` when the request was dropped."""
        with self._lock:
            if self._running:
                if self.drop_while_running:
                    self._dropped += 1
                    logger.debug("Refresh request dropped while a refresh is running")
                    return False
                self._rerun = True
                return True
            self._deadline = self._clock() + self.delay
            return True

    def cancel(self) -> None:
        with self._lock:
            self._deadline = None
            self._rerun = False

    def run_due(self) -> bool:
        """Run the action if its deadline has passed.  Returns ``True`` if it ran."""
        with self._lock:
            if self._running or self._deadline is None or self._clock() < self._deadline:
                return False
        return self._run()

    def flush(self) -> bool:
        """Run a pending refresh now, ignoring the debounce window."""
        with self._lock:
            if self._running or self._deadline is None:
                return False
        return self._run()

    def _run(self) -> bool:
        with self._lock:
            if self._running:
                return False
            self._running = True
            self._deadline = None
        try:
            self._action()
        except Exception:
            logger.exception("Refresh failed")
        finally:
            with self._lock:
                self._running = False
                self._runs += 1
                if self._rerun:
                    self._rerun = False
                    self._deadline = self._clock() + self.delay
        return True
