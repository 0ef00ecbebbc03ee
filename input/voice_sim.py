"""
input/voice_sim.py — Simulated speech input for demos and testing without a microphone.

Provides :class:`ScriptedRecognizer`, a drop-in replacement for
:class:`~input.recognizer.VoskRecognizer`. Two modes are supported through the
:class:`SimulationMode` enum:

SCRIPTED
    Plays back a list of ``(text, is_final, delay_ms)`` steps in real time
    once listening starts: each step waits *delay_ms* and then emits its
    result. Interim steps let demos show the "hearing ..." transcript build
    up word by word before the final result lands.

INTERACTIVE
    Emits nothing on its own; results are pushed with :meth:`inject`, e.g.
    by the console runner for every line typed on stdin.

Pre-built demo scripts
----------------------
``DEMO_LAUNCH_SCRIPT``
    Asks for a status report, then says "let's launch now" and waits out the
    full countdown.

``DEMO_ABORT_SCRIPT``
    Starts a launch and restarts the mission mid-countdown.

``DEMO_STATUS_SCRIPT``
    Status reports in every phase, a repeated launch and an unknown phrase.

All logging goes through :func:`core.logger.get_logger`.
"""

from __future__ import annotations

import enum
import threading
from typing import Dict, List, Optional, Tuple

from core.logger import get_logger
from input.recognizer import Recognizer

_log = get_logger()

# ── Type alias for a single script step ──────────────────────────────────────

#: ``(text, is_final, delay_ms)``
ScriptStep = Tuple[str, bool, float]


# ── Simulation mode enum ──────────────────────────────────────────────────────

class SimulationMode(enum.Enum):
    """Operating mode for :class:`ScriptedRecognizer`."""

    SCRIPTED = "SCRIPTED"
    INTERACTIVE = "INTERACTIVE"


# ── Pre-built demo scripts ────────────────────────────────────────────────────

DEMO_LAUNCH_SCRIPT: List[ScriptStep] = [
    ("give me a", False, 800.0),
    ("give me a status report", True, 400.0),
    ("let's", False, 2500.0),
    ("let's launch", False, 300.0),
    ("let's launch now", True, 300.0),
    ("status", True, 4000.0),         # T minus ~6
    ("blast off", True, 2000.0),      # already in progress
    ("status report", True, 6000.0),  # after liftoff
]

DEMO_ABORT_SCRIPT: List[ScriptStep] = [
    ("take off", True, 800.0),
    ("please restart", True, 4000.0),  # mid-countdown: scheduler cancelled
    ("status", True, 2000.0),
]

DEMO_STATUS_SCRIPT: List[ScriptStep] = [
    ("what is the status", True, 800.0),
    ("banana", True, 2500.0),
    ("launch", True, 2500.0),
    ("launch", True, 1500.0),
    ("mission report", True, 1500.0),
    ("reset the mission", True, 12000.0),
]

DEMO_SCRIPTS: Dict[str, List[ScriptStep]] = {
    "launch": DEMO_LAUNCH_SCRIPT,
    "abort": DEMO_ABORT_SCRIPT,
    "status": DEMO_STATUS_SCRIPT,
    "full": DEMO_LAUNCH_SCRIPT + [("reset", True, 1500.0)] + DEMO_ABORT_SCRIPT,
}


# ── Simulator ─────────────────────────────────────────────────────────────────

class ScriptedRecognizer(Recognizer):
    """
    Simulated recognizer for demos and tests.

    Args:
        mode: ``SCRIPTED`` or ``INTERACTIVE``.
        script: Steps for ``SCRIPTED`` mode. Defaults to
            :data:`DEMO_LAUNCH_SCRIPT` when ``None``.
        speed: Playback speed multiplier for script delays (2.0 = twice as
            fast). Must be positive.
    """

    def __init__(
        self,
        mode: SimulationMode = SimulationMode.SCRIPTED,
        script: Optional[List[ScriptStep]] = None,
        speed: float = 1.0,
    ) -> None:
        super().__init__()
        if speed <= 0.0:
            raise ValueError(f"speed must be positive, got {speed}")
        self._mode = mode
        self._script: List[ScriptStep] = (
            list(script) if script is not None else list(DEMO_LAUNCH_SCRIPT)
        )
        self._speed = speed
        self._halt = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._done = threading.Event()

        _log.info("voice", "sim_init", {
            "mode": mode.value, "steps": len(self._script), "speed": speed,
        })

    @property
    def mode(self) -> SimulationMode:
        return self._mode

    # ── Lifecycle hooks ────────────────────────────────────────────────────

    def _begin(self) -> None:
        self._halt.clear()
        self._done.clear()
        if self._mode is SimulationMode.SCRIPTED:
            self._thread = threading.Thread(
                target=self._run_scripted, name="voice-sim", daemon=True
            )
            self._thread.start()

    def _end(self) -> None:
        self._halt.set()
        thread, self._thread = self._thread, None
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=3.0)

    # ── Injection (INTERACTIVE mode) ───────────────────────────────────────

    def inject(self, text: str, is_final: bool = True) -> bool:
        """
        Emit one result as if it had just been recognised.

        Works in either mode; ignored while not listening.

        Returns:
            True if the result was delivered.
        """
        if not self.is_listening:
            _log.info("voice", "sim_inject_ignored", {"text": text})
            return False
        self._emit(text, is_final)
        return True

    def wait_until_done(self, timeout: Optional[float] = None) -> bool:
        """Block until the script has played out. Returns False on timeout."""
        return self._done.wait(timeout)

    # ── Private: SCRIPTED loop ─────────────────────────────────────────────

    def _run_scripted(self) -> None:
        """
        Play back the script, then stop listening.

        Mirrors a browser recognizer that ends its session on its own: once
        the last step is out, ``on_end`` fires.
        """
        for step_idx, (text, is_final, delay_ms) in enumerate(self._script):
            if self._halt.wait(max(0.0, delay_ms / 1000.0 / self._speed)):
                break
            _log.info("voice", "sim_scripted_step", {
                "step": step_idx, "text": text, "final": is_final,
            })
            self._emit(text, is_final)
        else:
            _log.info("voice", "sim_scripted_complete", {"steps": len(self._script)})
            self._done.set()
            self._finish()
            return
        self._done.set()
