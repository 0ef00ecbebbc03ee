"""
core/mission.py — Mission state values and the pure transition function.

:class:`MissionState` is an immutable value; :func:`apply` maps an event and a
state to the next state plus the announcements to speak. Nothing in this
module holds mutable state or touches a clock — :class:`~core.fsm.MissionFSM`
owns the single live state cell and the countdown scheduler.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from core.constants import Intent, LaunchConstants as C, MissionStatus


# ──────────────────────────────────────────────────────────────
# Non-intent events
# ──────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Tick:
    """
    One countdown step produced by the scheduler.

    Attributes:
        token: Identifies the scheduler run that produced the tick. The state
            machine drops ticks whose token is not the active countdown's.
            :func:`apply` ignores it.
    """

    token: int = 0


@dataclass(frozen=True)
class Click:
    """A pointer click on the rocket. Only starts a launch from IDLE."""


MissionEvent = Union[Intent, Tick, Click]


def event_label(event: MissionEvent) -> str:
    """Return a short, log-friendly name for *event*."""
    if isinstance(event, Intent):
        return event.value
    if isinstance(event, Tick):
        return "TICK"
    return "CLICK"


# ──────────────────────────────────────────────────────────────
# State value
# ──────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class MissionState:
    """
    Immutable snapshot of launch progress.

    Attributes:
        status: Current :class:`~core.constants.MissionStatus`.
        remaining: Seconds left on the countdown; always 0 outside
            ``COUNTING_DOWN``.
    """

    status: MissionStatus = MissionStatus.IDLE
    remaining: int = 0

    @classmethod
    def idle(cls) -> "MissionState":
        return cls(MissionStatus.IDLE, 0)

    @classmethod
    def counting_down(cls, remaining: int) -> "MissionState":
        """
        Build a ``COUNTING_DOWN`` state.

        Raises:
            ValueError: If *remaining* is outside ``[0, COUNTDOWN_FROM]``.
        """
        if not 0 <= remaining <= C.COUNTDOWN_FROM:
            raise ValueError(
                f"remaining must be in [0, {C.COUNTDOWN_FROM}], got {remaining}"
            )
        return cls(MissionStatus.COUNTING_DOWN, remaining)

    @classmethod
    def launched(cls) -> "MissionState":
        return cls(MissionStatus.LAUNCHED, 0)

    @property
    def is_idle(self) -> bool:
        return self.status is MissionStatus.IDLE

    @property
    def is_counting_down(self) -> bool:
        return self.status is MissionStatus.COUNTING_DOWN

    @property
    def is_launched(self) -> bool:
        return self.status is MissionStatus.LAUNCHED

    @property
    def label(self) -> str:
        """Human-readable status line for mission control displays."""
        if self.is_launched:
            return "In Orbit"
        if self.is_counting_down:
            return f"T-{self.remaining}"
        return "Ready for Launch"

    def __str__(self) -> str:
        if self.is_counting_down:
            return f"{self.status.value}({self.remaining})"
        return self.status.value


# ──────────────────────────────────────────────────────────────
# Transition function
# ──────────────────────────────────────────────────────────────

def apply(
    event: MissionEvent,
    state: MissionState,
) -> tuple[MissionState, list[str]]:
    """
    Apply one event to *state*.

    Deterministic and total: every (state, event) pair yields a state and a
    (possibly empty) list of announcements. Rejected requests such as a
    launch while already counting down are ordinary rows that leave the state
    unchanged and explain why.

    Args:
        event: An :class:`~core.constants.Intent`, :class:`Tick` or
            :class:`Click`.
        state: The current mission state.

    Returns:
        ``(new_state, announcements)``.
    """
    if isinstance(event, Tick):
        return _apply_tick(state)
    if isinstance(event, Click):
        return _apply_click(state)
    if event is Intent.LAUNCH:
        return _apply_launch(state)
    if event is Intent.RESET:
        return MissionState.idle(), [C.SAY_RESET]
    if event is Intent.STATUS:
        return state, [_status_report(state)]
    return state, [C.SAY_UNRECOGNIZED]


def _start_countdown(opener: str) -> tuple[MissionState, list[str]]:
    return (
        MissionState.counting_down(C.COUNTDOWN_FROM),
        [opener, C.SAY_T_MINUS.format(remaining=C.COUNTDOWN_FROM)],
    )


def _apply_launch(state: MissionState) -> tuple[MissionState, list[str]]:
    if state.is_idle:
        return _start_countdown(C.SAY_INITIATING)
    if state.is_launched:
        return state, [C.SAY_ALREADY_LAUNCHED]
    return state, [C.SAY_IN_PROGRESS]


def _apply_click(state: MissionState) -> tuple[MissionState, list[str]]:
    if state.is_idle:
        return _start_countdown(C.SAY_CLICK_INITIATED)
    return state, []


def _apply_tick(state: MissionState) -> tuple[MissionState, list[str]]:
    # Ticks outside a countdown never come from a live scheduler.
    if not state.is_counting_down:
        return state, []

    if state.remaining <= 1:
        return MissionState.launched(), [C.SAY_LIFTOFF]

    remaining = state.remaining - 1
    announcements = [str(remaining)] if remaining <= C.SPOKEN_FROM else []
    return MissionState.counting_down(remaining), announcements


def _status_report(state: MissionState) -> str:
    if state.is_launched:
        return C.SAY_STATUS_LAUNCHED
    if state.is_counting_down:
        return C.SAY_STATUS_COUNTING.format(remaining=state.remaining)
    return C.SAY_STATUS_IDLE
