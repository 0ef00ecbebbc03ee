"""
output/tts_engine.py — Non-blocking offline text-to-speech for mission announcements.

Primary: pyttsx3 driven from a daemon worker thread fed by a FIFO job queue,
so countdown numbers are spoken in the order they were announced.
:class:`SilentSynthesizer` stands in when audio is muted or unavailable and
only records what would have been said.

The public ``announce()`` API never blocks and never raises.
"""

from __future__ import annotations

import queue
import threading
import time
import uuid
from dataclasses import dataclass
from typing import Optional, Protocol

import pyttsx3  # type: ignore[import]

from core.config import TTSConfig
from core.logger import get_logger

_log = get_logger()

# Sentinel value to signal the worker to exit
_STOP_SENTINEL = object()

# Pending announcements beyond this are dropped oldest-first
_QUEUE_SIZE = 16


class Synthesizer(Protocol):
    """Anything that can speak an announcement without blocking."""

    def announce(self, text: str) -> None: ...

    def shutdown(self) -> None: ...


# ──────────────────────────────────────────────────────────────
# Internal queue item
# ──────────────────────────────────────────────────────────────

@dataclass
class _SpeechJob:
    """A single announcement enqueued for the worker thread."""

    job_id: str
    text: str
    enqueued_at: float


# ──────────────────────────────────────────────────────────────
# SpeechSynthesizer
# ──────────────────────────────────────────────────────────────

class SpeechSynthesizer:
    """
    Offline TTS engine wrapping pyttsx3.

    The pyttsx3 engine is created on the worker thread and only ever used
    there, since its drivers are bound to the thread that initialised them.
    If initialisation fails the worker keeps draining the queue and logs
    each announcement instead of speaking it.

    Usage::

        tts = SpeechSynthesizer(TTSConfig(rate=160))
        tts.announce("T minus 10")
        tts.shutdown()

    Args:
        config: TTS configuration (rate, volume, voice selection).
    """

    def __init__(self, config: TTSConfig) -> None:
        """Start the worker thread; the engine is built there."""
        self._cfg = config
        self._queue: queue.Queue[object] = queue.Queue(maxsize=_QUEUE_SIZE)
        self._engine: Optional[pyttsx3.Engine] = None
        self._ready = threading.Event()
        self._running = False
        self._start_worker()

    # ──────────────────────────────────────────
    # Public API
    # ──────────────────────────────────────────

    def announce(self, text: str) -> None:
        """
        Enqueue *text* for speech and return immediately.

        Empty text is ignored. When the queue is full the oldest pending
        announcement is dropped to make room.
        """
        text = text.strip()
        if not text:
            return

        job = _SpeechJob(
            job_id=str(uuid.uuid4())[:8],
            text=text,
            enqueued_at=time.monotonic(),
        )
        try:
            self._queue.put_nowait(job)
        except queue.Full:
            try:
                dropped = self._queue.get_nowait()
                if isinstance(dropped, _SpeechJob):
                    _log.warn("tts", "dropped", {"job_id": dropped.job_id})
            except queue.Empty:
                pass
            self._queue.put_nowait(job)

        _log.info("tts", "enqueued", {"job_id": job.job_id, "text": text})

    @property
    def is_available(self) -> bool:
        """True once the pyttsx3 engine initialised successfully."""
        return self._ready.is_set() and self._engine is not None

    def shutdown(self) -> None:
        """
        Stop the worker thread and release the engine.

        Pending announcements may be discarded to make room for the stop
        signal. Waits for the worker to exit (up to 3 seconds). Safe to call
        twice.
        """
        if not self._running:
            return
        self._running = False
        while True:
            try:
                self._queue.put_nowait(_STOP_SENTINEL)
                break
            except queue.Full:
                try:
                    self._queue.get_nowait()
                except queue.Empty:
                    pass
        if self._worker.is_alive():
            self._worker.join(timeout=3.0)
        _log.info("tts", "shutdown", {})

    # ──────────────────────────────────────────
    # Worker thread
    # ──────────────────────────────────────────

    def _start_worker(self) -> None:
        self._running = True
        self._worker = threading.Thread(
            target=self._worker_loop, name="tts-worker", daemon=True
        )
        self._worker.start()

    def _init_engine(self) -> None:
        """Create the pyttsx3 engine and apply rate, volume and voice."""
        try:
            engine = pyttsx3.init()
            engine.setProperty("rate", self._cfg.rate)
            engine.setProperty("volume", self._cfg.volume)
            if self._cfg.voice_id:
                engine.setProperty("voice", self._cfg.voice_id)
            self._engine = engine
            _log.info("tts", "engine_ready", {
                "rate": self._cfg.rate, "volume": self._cfg.volume,
            })
        except Exception as exc:  # noqa: BLE001
            _log.error("tts", "engine_init_failed", {"error": str(exc)})
            self._engine = None
        finally:
            self._ready.set()

    def _worker_loop(self) -> None:
        """
        Speak queued announcements in order until :meth:`shutdown`.

        Exceptions are caught and logged — the loop never crashes.
        """
        self._init_engine()
        while self._running:
            item = self._queue.get()
            if item is _STOP_SENTINEL:
                break
            job: _SpeechJob = item  # type: ignore[assignment]
            self._speak(job)

        if self._engine is not None:
            try:
                self._engine.stop()
            except Exception:  # noqa: BLE001
                pass

    def _speak(self, job: _SpeechJob) -> None:
        if self._engine is None:
            _log.info("tts", "unspoken", {"job_id": job.job_id, "text": job.text})
            return

        t0 = time.monotonic()
        try:
            self._engine.say(job.text)
            self._engine.runAndWait()
        except Exception as exc:  # noqa: BLE001
            _log.error("tts", "speak_error", {"job_id": job.job_id, "error": str(exc)})
            return
        _log.perf("tts", "spoken", (time.monotonic() - t0) * 1000.0, {
            "job_id": job.job_id,
            "queued_ms": round((t0 - job.enqueued_at) * 1000.0, 1),
        })


# ──────────────────────────────────────────────────────────────
# SilentSynthesizer
# ──────────────────────────────────────────────────────────────

class SilentSynthesizer:
    """
    Synthesizer that speaks nothing.

    Keeps the announcements it received (``spoken``) and logs them, so muted
    runs still leave a trace of what mission control said.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._spoken: list[str] = []

    def announce(self, text: str) -> None:
        text = text.strip()
        if not text:
            return
        with self._lock:
            self._spoken.append(text)
        _log.info("tts", "silent", {"text": text})

    @property
    def spoken(self) -> list[str]:
        with self._lock:
            return list(self._spoken)

    def shutdown(self) -> None:
        _log.info("tts", "shutdown", {"silent": True})
