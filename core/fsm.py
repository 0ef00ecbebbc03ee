"""
core/fsm.py — Mission state machine for Voice Launch Control.

Thread-safe holder of the single authoritative :class:`~core.mission.MissionState`.
Applies intents, clicks and ticks atomically through :func:`~core.mission.apply`,
owns the countdown scheduler lifecycle, fires per-status enter/exit hooks,
keeps a transition history (last 50), and logs every transition.
"""

from __future__ import annotations

import functools
import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Optional

from core.constants import LaunchConstants as C, MissionStatus
from core.mission import MissionEvent, MissionState, Tick, apply, event_label
from core.scheduler import CountdownScheduler, Scheduler, SchedulerFactory

logger = logging.getLogger(__name__)


# ──────────────────────────────────────────────────────────────
# Transition record
# ──────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class TransitionRecord:
    """
    One applied event.

    Attributes:
        event: Event name (``LAUNCH``, ``TICK``, ``CLICK`` ...).
        previous: State before the event.
        state: State after the event (may equal *previous*).
        announcements: Phrases to speak, in order.
        timestamp: Unix epoch float.
    """

    event: str
    previous: MissionState
    state: MissionState
    announcements: tuple[str, ...] = ()
    timestamp: float = field(default_factory=time.time)

    @property
    def changed(self) -> bool:
        return self.previous != self.state

    def to_dict(self) -> dict:
        """JSON-safe form used by the history API and the event stream."""
        return {
            "event": self.event,
            "from": str(self.previous),
            "to": str(self.state),
            "announcements": list(self.announcements),
            "timestamp": self.timestamp,
        }


# ──────────────────────────────────────────────────────────────
# FSM class
# ──────────────────────────────────────────────────────────────

class MissionFSM:
    """
    Thread-safe mission state machine.

    Every event is applied inside one re-entrant lock: the pure transition,
    the state swap, the scheduler start/cancel and the ``on_transition``
    callback all happen as a single step relative to other events. The
    callback therefore sees transitions in order and must not block.

    A scheduler is created when the mission enters ``COUNTING_DOWN`` and
    cancelled as soon as it leaves it. Each scheduler run has its own token;
    ticks carrying any other token are dropped without touching the state,
    so a tick already in flight when a reset lands can never resurrect the
    cancelled countdown.

    Args:
        on_transition: Optional callback invoked with every
            :class:`TransitionRecord` (including no-change rejections).
        scheduler_factory: Builds a scheduler from ``(on_tick, interval_s)``.
            Defaults to :class:`~core.scheduler.CountdownScheduler`.
        tick_interval_s: Seconds between countdown ticks.
    """

    def __init__(
        self,
        on_transition: Callable[[TransitionRecord], None] | None = None,
        scheduler_factory: SchedulerFactory | None = None,
        tick_interval_s: float = C.TICK_INTERVAL_S,
    ) -> None:
        """Initialise FSM in IDLE state."""
        self._state = MissionState.idle()
        self._lock = threading.RLock()
        self._history: list[TransitionRecord] = []
        self._external_callback = on_transition
        self._scheduler_factory: SchedulerFactory = (
            scheduler_factory or CountdownScheduler
        )
        self._tick_interval_s = tick_interval_s
        self._scheduler: Optional[Scheduler] = None
        self._token = 0

        logger.info("MissionFSM initialised in state: %s", self._state)

    # ──────────────────────────────────────────
    # Public API
    # ──────────────────────────────────────────

    @property
    def state(self) -> MissionState:
        """Return the current mission state (thread-safe read)."""
        with self._lock:
            return self._state

    @property
    def active_token(self) -> Optional[int]:
        """Token of the running countdown scheduler, or ``None``."""
        with self._lock:
            return self._token if self._scheduler is not None else None

    def dispatch(self, event: MissionEvent) -> TransitionRecord:
        """
        Apply an intent or click to the current state.

        Ticks normally arrive from the scheduler; a :class:`~core.mission.Tick`
        passed here is subject to the same token check.

        Args:
            event: :class:`~core.constants.Intent`, :class:`~core.mission.Click`
                or :class:`~core.mission.Tick`.

        Returns:
            The applied :class:`TransitionRecord`, or for a dropped tick a
            no-change record with no announcements.

        Raises:
            Exception: Whatever the scheduler factory or its ``start()`` raises
                when a countdown cannot begin. The state, history and token
                are left as they were before the event.
        """
        if isinstance(event, Tick):
            return self._deliver_tick(event.token)
        with self._lock:
            return self._apply(event)

    def get_history(self) -> list[TransitionRecord]:
        """Return a copy of the last (up to 50) transition records, oldest first."""
        with self._lock:
            return list(self._history)

    def shutdown(self) -> None:
        """Cancel any running countdown. The state itself is left as is."""
        with self._lock:
            self._stop_scheduler()
        logger.info("MissionFSM shut down in state: %s", self.state)

    # ──────────────────────────────────────────
    # Tick delivery
    # ──────────────────────────────────────────

    def _deliver_tick(self, token: int) -> TransitionRecord:
        with self._lock:
            current = self._state
            if (
                self._scheduler is None
                or token != self._token
                or not current.is_counting_down
            ):
                logger.debug(
                    "Dropped stale tick (token=%d, active=%s, state=%s)",
                    token, self.active_token, current,
                )
                return TransitionRecord("TICK", current, current)
            return self._apply(Tick(token))

    # ──────────────────────────────────────────
    # Core step — caller holds self._lock
    # ──────────────────────────────────────────

    def _apply(self, event: MissionEvent) -> TransitionRecord:
        from_state = self._state
        new_state, announcements = apply(event, from_state)

        if new_state.status is not from_state.status:
            self._fire_on_exit(from_state.status)
            try:
                self._fire_on_enter(new_state.status)
            except Exception as exc:
                logger.error(
                    "FSM: entering %s failed, staying in %s: %s", new_state, from_state, exc
                )
                raise
        self._state = new_state

        record = TransitionRecord(
            event=event_label(event),
            previous=from_state,
            state=new_state,
            announcements=tuple(announcements),
        )
        self._history.append(record)
        if len(self._history) > C.MAX_HISTORY:
            self._history.pop(0)

        if record.changed:
            logger.info("FSM: %s → %s [%s]", from_state, new_state, record.event)
        else:
            logger.debug("FSM: %s unchanged [%s]", from_state, record.event)

        if self._external_callback is not None:
            try:
                self._external_callback(record)
            except Exception as exc:  # noqa: BLE001
                logger.warning("FSM external callback raised: %s", exc)
        return record

    # ──────────────────────────────────────────
    # on_enter / on_exit hooks — override in subclass
    # ──────────────────────────────────────────

    def _on_enter_idle(self) -> None:
        """Called when the mission returns to the pad."""
        logger.debug("FSM enter: IDLE — rocket on pad")

    def _on_enter_counting_down(self) -> None:
        """Start a fresh scheduler run for this countdown."""
        self._start_scheduler()

    def _on_exit_counting_down(self) -> None:
        """Cancel the countdown scheduler before the new state is visible."""
        self._stop_scheduler()

    def _on_enter_launched(self) -> None:
        """Called on liftoff."""
        logger.debug("FSM enter: LAUNCHED — rocket in flight")

    # ──────────────────────────────────────────
    # Scheduler lifecycle — caller holds self._lock
    # ──────────────────────────────────────────

    def _start_scheduler(self) -> None:
        if self._scheduler is not None:
            # Unreachable through apply(); keep at most one ticker alive.
            logger.warning("Countdown scheduler already running — replacing")
            self._stop_scheduler()
        self._token += 1
        scheduler = self._scheduler_factory(
            functools.partial(self._deliver_tick, self._token),
            self._tick_interval_s,
        )
        scheduler.start()
        self._scheduler = scheduler
        logger.debug("Countdown scheduler %d started", self._token)

    def _stop_scheduler(self) -> None:
        if self._scheduler is None:
            return
        self._scheduler.cancel()
        self._scheduler = None
        logger.debug("Countdown scheduler %d cancelled", self._token)

    # ──────────────────────────────────────────
    # Internal dispatch helpers
    # ──────────────────────────────────────────

    def _fire_on_enter(self, status: MissionStatus) -> None:
        """Dispatch to ``_on_enter_<status>`` if defined."""
        method = getattr(self, f"_on_enter_{status.value.lower()}", None)
        if callable(method):
            method()

    def _fire_on_exit(self, status: MissionStatus) -> None:
        """
        Dispatch to ``_on_exit_<status>`` if defined.

        NOTE: Called while ``self._lock`` is held. Scheduler hooks rely on
        this; exceptions propagate because a failed cancel must not be hidden.
        """
        method = getattr(self, f"_on_exit_{status.value.lower()}", None)
        if callable(method):
            method()

    # ──────────────────────────────────────────
    # Dunder methods
    # ──────────────────────────────────────────

    def __repr__(self) -> str:
        """Return e.g. ``MissionFSM(state=COUNTING_DOWN(7), last=TICK)``."""
        with self._lock:
            last = self._history[-1].event if self._history else "none"
            return f"MissionFSM(state={self._state}, last={last})"
