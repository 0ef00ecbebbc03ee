"""
pipeline/controller.py — MissionController: session orchestrator for Voice Launch Control.

Wires the input channels to the mission state machine and the state machine
to speech output::

    Recognizer ─► interpret() ─► MissionFSM ◄─ CountdownScheduler
    Rocket click ─────────────────┘   │
                                      ▼
                            Synthesizer + EventBus

The controller also keeps the per-session presentation memory (latest
transcript, last recognised command, listening flag) and publishes every
change on an internal EventBus so presentation layers observe the session
without holding references to internal modules.
"""

from __future__ import annotations

import threading
from collections import defaultdict
from typing import Any, Callable, Dict, List, Optional

from core.config import LaunchConfig
from core.constants import Intent, LaunchConstants as C
from core.fsm import MissionFSM, TransitionRecord
from core.logger import get_logger
from core.mission import Click, MissionState
from core.scheduler import SchedulerFactory
from input.recognizer import Recognizer
from intent.interpreter import interpret
from output.tts_engine import Synthesizer

_log = get_logger()

# ── EventBus event-name constants ─────────────────────────────────────────────

ON_STATE_CHANGED     = "ON_STATE_CHANGED"
"""Fired after every applied event, including no-change rejections."""

ON_ANNOUNCEMENT      = "ON_ANNOUNCEMENT"
"""Fired for each phrase handed to the synthesizer."""

ON_TRANSCRIPT        = "ON_TRANSCRIPT"
"""Fired for every recognizer result, interim or final."""

ON_LISTENING_CHANGED = "ON_LISTENING_CHANGED"
"""Fired when the recognizer starts or stops listening."""

ON_NOTICE            = "ON_NOTICE"
"""Fired for user-facing notices such as missing voice support."""


class MissionController:
    """
    One launch-simulator session.

    Owns the :class:`~core.fsm.MissionFSM` and routes both input channels
    into it: rocket clicks become :class:`~core.mission.Click` events and final
    transcripts are interpreted into intents. Every applied transition is
    spoken and published from inside the state machine's atomic step, so
    announcements reach the synthesizer in transition order.

    Args:
        synthesizer: Receives every announcement (see
            :class:`~output.tts_engine.Synthesizer`).
        recognizer: Optional speech source. ``None`` or an unsupported
            recognizer means voice control is unavailable.
        config: Runtime configuration; only the countdown pacing is read here.
        scheduler_factory: Overrides the countdown scheduler (tests).

    Example::

        ctrl = MissionController(SilentSynthesizer())
        ctrl.subscribe(ON_ANNOUNCEMENT, lambda d: print(d["text"]))
        ctrl.handle_transcript("let's launch now", is_final=True)
        ...
        ctrl.shutdown()
    """

    def __init__(
        self,
        synthesizer: Synthesizer,
        recognizer: Optional[Recognizer] = None,
        config: Optional[LaunchConfig] = None,
        scheduler_factory: Optional[SchedulerFactory] = None,
    ) -> None:
        self._config = config or LaunchConfig()
        self._synth = synthesizer
        self._recognizer = recognizer

        # ── EventBus ──────────────────────────────────────────────────────
        self._subscribers: Dict[str, List[Callable[[Dict[str, Any]], None]]] = (
            defaultdict(list)
        )

        # ── Session memory ────────────────────────────────────────────────
        self._memory_lock = threading.Lock()
        self._transcript: str = ""
        self._last_command: str = ""

        # ── State machine ─────────────────────────────────────────────────
        self._fsm = MissionFSM(
            on_transition=self._on_fsm_transition,
            scheduler_factory=scheduler_factory,
            tick_interval_s=self._config.countdown.tick_interval_s,
        )

        _log.info("pipeline", "controller_ready", {
            "voice_supported": self.voice_supported,
            "recognizer": type(recognizer).__name__ if recognizer else None,
            "synthesizer": type(synthesizer).__name__,
            "tick_interval_s": self._config.countdown.tick_interval_s,
        })

    # ── EventBus ──────────────────────────────────────────────────────────────

    def subscribe(self, event: str, callback: Callable[[Dict[str, Any]], None]) -> None:
        """
        Register *callback* to receive payloads whenever *event* is published.

        Callbacks run synchronously in registration order; exceptions are
        caught and logged so a failing callback never disrupts the others.
        State and announcement callbacks run inside the state machine's
        atomic step and must not block.

        Args:
            event:    One of the ``ON_*`` module-level constants.
            callback: Callable ``(data: dict) → None``.
        """
        self._subscribers[event].append(callback)
        _log.info("pipeline", "event_subscribed", {"event": event})

    def publish(self, event: str, data: Dict[str, Any]) -> None:
        """
        Dispatch *event* to all registered callbacks with payload *data*.

        Args:
            event: Event name string (one of the ``ON_*`` constants).
            data:  JSON-safe dict payload passed verbatim to each callback.
        """
        for cb in list(self._subscribers.get(event, [])):
            try:
                cb(data)
            except Exception as exc:  # noqa: BLE001
                _log.error("pipeline", "event_callback_error", {
                    "event": event,
                    "error": str(exc),
                })

    # ── Read-only session view ────────────────────────────────────────────────

    @property
    def state(self) -> MissionState:
        return self._fsm.state

    @property
    def fsm(self) -> MissionFSM:
        return self._fsm

    @property
    def transcript(self) -> str:
        with self._memory_lock:
            return self._transcript

    @property
    def last_command(self) -> str:
        with self._memory_lock:
            return self._last_command

    @property
    def voice_supported(self) -> bool:
        return self._recognizer is not None and self._recognizer.is_supported

    @property
    def is_listening(self) -> bool:
        return self._recognizer is not None and self._recognizer.is_listening

    def snapshot(self) -> Dict[str, Any]:
        """Return everything a presentation layer renders, as a JSON-safe dict."""
        state = self.state
        with self._memory_lock:
            transcript, last_command = self._transcript, self._last_command
        return {
            "status": state.status.value,
            "remaining": state.remaining,
            "label": state.label,
            "transcript": transcript,
            "last_command": last_command,
            "voice_supported": self.voice_supported,
            "listening": self.is_listening,
        }

    # ── Input channels ────────────────────────────────────────────────────────

    def handle_click(self) -> bool:
        """
        Rocket clicked: start the launch sequence if the rocket is on the pad.

        Returns:
            True if the click started a countdown; clicks while counting down
            or after liftoff are ignored.
        """
        record = self._fsm.dispatch(Click())
        _log.info("pipeline", "click", {"accepted": record.changed})
        return record.changed

    def handle_reset(self) -> MissionState:
        """Reset the mission from any state. Returns the resulting state."""
        _log.info("pipeline", "reset_requested", {"state": str(self.state)})
        return self._fsm.dispatch(Intent.RESET).state

    def handle_transcript(self, text: str, is_final: bool) -> Optional[Intent]:
        """
        Consume one recognizer result.

        Every result updates the displayed transcript. A non-blank final
        result also becomes the last command and is interpreted and applied.

        Args:
            text: Recognised text, any case.
            is_final: Whether the recognizer closed the utterance.

        Returns:
            The applied intent, or ``None`` for interim / blank results.
        """
        text = text.strip()
        with self._memory_lock:
            self._transcript = text.lower()
            if is_final and text:
                self._last_command = text.lower()
        self.publish(ON_TRANSCRIPT, {"text": text, "final": is_final})

        if not is_final or not text:
            return None

        intent = interpret(text)
        _log.info("pipeline", "command", {"text": text, "intent": intent.value})
        self._fsm.dispatch(intent)
        return intent

    # ── Voice control ─────────────────────────────────────────────────────────

    def toggle_listening(self) -> bool:
        """
        Start listening if idle, stop if listening.

        Without voice support this is a no-op that publishes an
        :data:`ON_NOTICE` for the user.

        Returns:
            True if the recognizer is listening afterwards.
        """
        recognizer = self._recognizer
        if recognizer is None or not recognizer.is_supported:
            _log.warn("pipeline", "voice_unsupported", {})
            self.publish(ON_NOTICE, {"message": C.NOTICE_VOICE_UNSUPPORTED})
            return False

        if recognizer.is_listening:
            recognizer.stop()
        elif recognizer.start(self.handle_transcript, on_end=self._on_recognizer_end):
            self.publish(ON_LISTENING_CHANGED, {"listening": True})
        return recognizer.is_listening

    def _on_recognizer_end(self) -> None:
        self.publish(ON_LISTENING_CHANGED, {"listening": False})

    # ── Lifecycle ─────────────────────────────────────────────────────────────

    def shutdown(self) -> None:
        """
        Stop listening, cancel any countdown, stop speech and flush the log.

        Safe to call from any thread.
        """
        _log.info("pipeline", "shutdown_requested", {"state": str(self.state)})
        if self._recognizer is not None:
            self._recognizer.stop()
        self._fsm.shutdown()
        self._synth.shutdown()
        _log.info("pipeline", "controller_shutdown", {})
        _log.flush()

    # ── State machine hook ────────────────────────────────────────────────────

    def _on_fsm_transition(self, record: TransitionRecord) -> None:
        """
        Wired to :class:`~core.fsm.MissionFSM` as ``on_transition`` callback.

        Runs inside the state machine's atomic step: clears session memory on
        reset, speaks the announcements and publishes the new state.
        """
        _log.info("pipeline", "fsm_transition", record.to_dict())

        if record.event == Intent.RESET.value:
            with self._memory_lock:
                self._transcript = ""
                self._last_command = ""

        for text in record.announcements:
            self._synth.announce(text)
            self.publish(ON_ANNOUNCEMENT, {"text": text})

        self.publish(ON_STATE_CHANGED, {**self.snapshot(), "event": record.event})
