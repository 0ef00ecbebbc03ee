"""
core/scheduler.py — Countdown tick scheduler.

One :class:`CountdownScheduler` drives exactly one countdown: it is started on
the IDLE → COUNTING_DOWN transition and cancelled once, on liftoff or reset.
A cancelled scheduler is never restarted; the state machine builds a new one
for the next launch.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Optional, Protocol

from core.constants import LaunchConstants as C

logger = logging.getLogger(__name__)


class Scheduler(Protocol):
    """Interface the state machine needs from a tick source."""

    def start(self) -> None: ...

    def cancel(self) -> None: ...

    @property
    def is_running(self) -> bool: ...


#: ``factory(on_tick, interval_s) -> Scheduler`` — injected into the FSM.
SchedulerFactory = Callable[[Callable[[], None], float], Scheduler]


class CountdownScheduler:
    """
    Daemon-thread ticker calling *on_tick* once per *interval_s*.

    Ticks are paced against a monotonic deadline (``start + n * interval``)
    so slow callbacks do not accumulate drift.

    Args:
        on_tick: Callback invoked on the scheduler thread for every tick.
        interval_s: Seconds between ticks. Must be positive.
    """

    def __init__(
        self,
        on_tick: Callable[[], None],
        interval_s: float = C.TICK_INTERVAL_S,
    ) -> None:
        if interval_s <= 0.0:
            raise ValueError(f"interval_s must be positive, got {interval_s}")
        self._on_tick = on_tick
        self._interval_s = interval_s
        self._cancelled = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._ticks = 0

    # ──────────────────────────────────────────
    # Public API
    # ──────────────────────────────────────────

    def start(self) -> None:
        """
        Start ticking.

        Raises:
            RuntimeError: If this scheduler was already started or cancelled.
        """
        if self._thread is not None or self._cancelled.is_set():
            raise RuntimeError("CountdownScheduler can only be started once")

        self._thread = threading.Thread(
            target=self._run, name="countdown-scheduler", daemon=True
        )
        self._thread.start()
        logger.debug("Countdown scheduler started (interval=%.3fs)", self._interval_s)

    def cancel(self) -> None:
        """
        Stop ticking permanently. Idempotent and non-blocking.

        Never joins the worker: cancel is routinely called from the worker
        itself (liftoff is applied on the scheduler thread) and from code
        holding the state machine lock that an in-flight tick may be waiting
        on. Use :meth:`join` from outside for a clean shutdown.
        """
        if self._cancelled.is_set():
            return
        self._cancelled.set()
        logger.debug("Countdown scheduler cancelled after %d tick(s)", self._ticks)

    def join(self, timeout: float | None = None) -> None:
        """Wait for the worker thread to exit (no-op from the worker itself)."""
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=timeout)

    @property
    def is_running(self) -> bool:
        """True between :meth:`start` and :meth:`cancel`."""
        return self._thread is not None and not self._cancelled.is_set()

    @property
    def tick_count(self) -> int:
        """Number of ticks delivered so far."""
        return self._ticks

    # ──────────────────────────────────────────
    # Worker
    # ──────────────────────────────────────────

    def _run(self) -> None:
        started = time.monotonic()
        while True:
            deadline = started + (self._ticks + 1) * self._interval_s
            if self._cancelled.wait(max(0.0, deadline - time.monotonic())):
                break
            self._ticks += 1
            try:
                self._on_tick()
            except Exception:  # noqa: BLE001
                logger.exception("Countdown tick callback raised")
