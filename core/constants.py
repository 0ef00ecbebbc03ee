"""
core/constants.py — All system constants for Voice Launch Control.

Mission status and intent enums, countdown timing, the spoken announcement
phrases, and the keyword families recognised by the command interpreter.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import ClassVar


# ──────────────────────────────────────────────────────────────
# Mission status
# ──────────────────────────────────────────────────────────────

class MissionStatus(Enum):
    """All valid statuses of the mission state machine."""

    IDLE = "IDLE"
    COUNTING_DOWN = "COUNTING_DOWN"
    LAUNCHED = "LAUNCHED"


# ──────────────────────────────────────────────────────────────
# Intents
# ──────────────────────────────────────────────────────────────

class Intent(Enum):
    """Closed vocabulary of spoken commands."""

    LAUNCH = "LAUNCH"
    RESET = "RESET"
    STATUS = "STATUS"
    UNKNOWN = "UNKNOWN"


# ──────────────────────────────────────────────────────────────
# Frozen constants dataclass
# ──────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class LaunchConstants:
    """
    Frozen dataclass holding all Voice Launch Control constants.

    Use the class attributes directly — do not instantiate this class.

    Example::

        from core.constants import LaunchConstants as C, MissionStatus

        print(C.COUNTDOWN_FROM)           # 10
        print(MissionStatus.LAUNCHED)     # MissionStatus.LAUNCHED
    """

    # ── Countdown ─────────────────────────────────────────────
    COUNTDOWN_FROM: ClassVar[int] = 10
    """Seconds on the clock when the launch sequence starts."""

    SPOKEN_FROM: ClassVar[int] = 4
    """Remaining values at or below this are announced on each tick."""

    TICK_INTERVAL_S: ClassVar[float] = 1.0
    """Default seconds between countdown ticks."""

    MAX_HISTORY: ClassVar[int] = 50
    """Number of transition records retained by the state machine."""

    # ── Announcements ─────────────────────────────────────────
    SAY_INITIATING: ClassVar[str] = "Initiating launch sequence"
    SAY_CLICK_INITIATED: ClassVar[str] = "Launch sequence initiated"
    SAY_T_MINUS: ClassVar[str] = "T minus {remaining}"
    SAY_IN_PROGRESS: ClassVar[str] = "Launch sequence already in progress"
    SAY_ALREADY_LAUNCHED: ClassVar[str] = "Rocket has already been launched"
    SAY_LIFTOFF: ClassVar[str] = "Liftoff! We have liftoff!"
    SAY_RESET: ClassVar[str] = "Mission reset. Ready for launch"
    SAY_STATUS_IDLE: ClassVar[str] = (
        "Rocket is ready for launch. Say launch to begin countdown"
    )
    SAY_STATUS_COUNTING: ClassVar[str] = (
        "Launch sequence in progress. T minus {remaining} seconds"
    )
    SAY_STATUS_LAUNCHED: ClassVar[str] = "Mission successful. Rocket is in orbit"
    SAY_UNRECOGNIZED: ClassVar[str] = (
        "Command not recognized. Try saying launch, reset, or status"
    )

    # ── Presentation notices ──────────────────────────────────
    NOTICE_VOICE_UNSUPPORTED: ClassVar[str] = "Voice recognition not supported"

    # ── Status states reference ───────────────────────────────
    Status: ClassVar[type[MissionStatus]] = MissionStatus
    """Convenience reference to :class:`MissionStatus` — use ``C.Status.IDLE``."""


#: Convenience alias — ``from core.constants import C``
C = LaunchConstants

# ── Interpreter keyword families, in priority order ───────────────────────────

INTENT_KEYWORDS: tuple[tuple[Intent, tuple[str, ...]], ...] = (
    (Intent.LAUNCH, ("launch", "blast off", "take off")),
    (Intent.RESET, ("reset", "restart")),
    (Intent.STATUS, ("status", "report")),
)
"""First family with a keyword contained in the utterance wins."""
