"""
input/recognizer.py — Speech recognizer interface and offline Vosk recognizer.

A recognizer produces ``(text, is_final)`` results while it is listening and
hands each one to the ``on_result`` callback given to :meth:`Recognizer.start`.
Interim results carry the words heard so far; a final result closes the
utterance. Only finals are interpreted as commands.

:class:`VoskRecognizer` captures 16-bit mono audio with sounddevice, feeds it
to a Vosk ``KaldiRecognizer`` on a daemon worker thread, and maps Vosk
partial / final results onto that contract. Both libraries are optional:
when either is missing, or the model directory does not exist, the recognizer
reports ``is_supported = False`` and :meth:`start` is a no-op.

All logging goes through :func:`core.logger.get_logger`.
"""

from __future__ import annotations

import json
import queue
import threading
from pathlib import Path
from typing import Any, Callable, Iterator, Optional, Tuple

from core.config import VoiceConfig
from core.logger import get_logger

_log = get_logger()

#: ``on_result(text, is_final)``
ResultCallback = Callable[[str, bool], None]

#: ``on_end()`` — the recognizer stopped listening (requested or not).
EndCallback = Callable[[], None]

# Sentinel value to signal the worker to exit
_STOP_SENTINEL = object()


# ──────────────────────────────────────────────────────────────
# Recognizer base
# ──────────────────────────────────────────────────────────────

class Recognizer:
    """
    Base class for transcript producers.

    Subclasses implement :meth:`_begin` and :meth:`_end`; this class keeps the
    listening flag and the callbacks, and makes :meth:`start` / :meth:`stop`
    idempotent.
    """

    def __init__(self) -> None:
        self._listen_lock = threading.Lock()
        self._listening = False
        self._on_result: Optional[ResultCallback] = None
        self._on_end: Optional[EndCallback] = None

    # ──────────────────────────────────────────
    # Public API
    # ──────────────────────────────────────────

    @property
    def is_supported(self) -> bool:
        """True if this recognizer can actually listen on this machine."""
        return True

    @property
    def is_listening(self) -> bool:
        with self._listen_lock:
            return self._listening

    def start(
        self,
        on_result: ResultCallback,
        on_end: Optional[EndCallback] = None,
    ) -> bool:
        """
        Begin listening.

        Args:
            on_result: Receives every ``(text, is_final)`` result.
            on_end: Called once when listening stops for any reason.

        Returns:
            True if the recognizer is now listening.
        """
        if not self.is_supported:
            _log.warn("voice", "start_unsupported", {"recognizer": type(self).__name__})
            return False
        with self._listen_lock:
            if self._listening:
                return True
            self._on_result = on_result
            self._on_end = on_end
            self._listening = True
        try:
            self._begin()
        except Exception as exc:  # noqa: BLE001
            _log.error("voice", "start_failed", {
                "recognizer": type(self).__name__, "error": str(exc),
            })
            self._release()
            self._finish()
            return False
        _log.info("voice", "listening_started", {"recognizer": type(self).__name__})
        return True

    def stop(self) -> None:
        """Stop listening. Safe to call when not listening."""
        if not self.is_listening:
            return
        self._end()
        self._finish()

    # ──────────────────────────────────────────
    # Subclass hooks
    # ──────────────────────────────────────────

    def _begin(self) -> None:
        """Start producing results. Called with the listening flag set."""

    def _end(self) -> None:
        """
        Stop producing results and release what :meth:`_begin` acquired.

        Must tolerate a partially completed :meth:`_begin`.
        """

    # ──────────────────────────────────────────
    # Helpers for subclasses
    # ──────────────────────────────────────────

    def _release(self) -> None:
        """Undo a failed :meth:`_begin`; cleanup errors are logged, not raised."""
        try:
            self._end()
        except Exception as exc:  # noqa: BLE001
            _log.error("voice", "cleanup_failed", {
                "recognizer": type(self).__name__, "error": str(exc),
            })

    # ──────────────────────────────────────────
    # Result / end delivery
    # ──────────────────────────────────────────

    def _emit(self, text: str, is_final: bool) -> None:
        """Forward one result to the consumer, isolating its failures."""
        callback = self._on_result
        if callback is None or not self.is_listening:
            return
        try:
            callback(text, is_final)
        except Exception as exc:  # noqa: BLE001
            _log.error("voice", "result_callback_error", {"error": str(exc)})

    def _finish(self) -> None:
        """Clear the listening flag and fire ``on_end`` exactly once."""
        with self._listen_lock:
            if not self._listening:
                return
            self._listening = False
            on_end = self._on_end
            self._on_result = None
            self._on_end = None
        _log.info("voice", "listening_stopped", {"recognizer": type(self).__name__})
        if on_end is not None:
            try:
                on_end()
            except Exception as exc:  # noqa: BLE001
                _log.error("voice", "end_callback_error", {"error": str(exc)})


# ──────────────────────────────────────────────────────────────
# Vosk + sounddevice
# ──────────────────────────────────────────────────────────────

class VoskRecognizer(Recognizer):
    """
    Continuous offline recognizer backed by Vosk.

    Audio blocks arrive on the sounddevice callback thread and are queued;
    the worker thread drains the queue through :meth:`results`, a lazy,
    unbounded generator of ``(text, is_final)`` pairs that ends when
    listening stops.

    Args:
        config: :class:`~core.config.VoiceConfig` (model path, sample rate,
            block size, input device).
    """

    def __init__(self, config: VoiceConfig) -> None:
        super().__init__()
        self._cfg = config
        self._model: Optional[Any] = None
        self._audio: queue.Queue[object] = queue.Queue(maxsize=64)
        self._stream: Optional[Any] = None
        self._worker: Optional[threading.Thread] = None
        self._supported = self._check_backends()

    @property
    def is_supported(self) -> bool:
        return self._supported

    # ──────────────────────────────────────────
    # Capability check
    # ──────────────────────────────────────────

    def _check_backends(self) -> bool:
        """Return True when vosk, sounddevice and the model are all present."""
        if not self._cfg.enabled:
            _log.info("voice", "disabled_by_config", {})
            return False
        try:
            import sounddevice  # type: ignore  # noqa: F401
            import vosk  # type: ignore  # noqa: F401
        except ImportError as exc:
            _log.warn("voice", "backend_unavailable", {"error": str(exc)})
            return False
        except OSError as exc:
            # sounddevice raises OSError when PortAudio itself is missing
            _log.warn("voice", "portaudio_unavailable", {"error": str(exc)})
            return False

        model_path: Path = self._cfg.resolved_model_path
        if not model_path.is_dir():
            _log.warn("voice", "model_missing", {"path": str(model_path)})
            return False
        return True

    # ──────────────────────────────────────────
    # Lifecycle
    # ──────────────────────────────────────────

    def _begin(self) -> None:
        import sounddevice as sd  # type: ignore
        import vosk  # type: ignore

        if self._model is None:
            vosk.SetLogLevel(-1)
            self._model = vosk.Model(str(self._cfg.resolved_model_path))
            _log.info("voice", "model_loaded", {"path": self._cfg.model_path})

        self._drain()
        self._stream = sd.RawInputStream(
            samplerate=self._cfg.sample_rate,
            blocksize=self._cfg.block_size,
            device=self._cfg.device,
            dtype="int16",
            channels=1,
            callback=self._on_audio,
        )
        # No worker until the device is open.
        self._stream.start()
        self._worker = threading.Thread(
            target=self._worker_loop, name="vosk-worker", daemon=True
        )
        self._worker.start()

    def _end(self) -> None:
        stream, self._stream = self._stream, None
        if stream is not None:
            try:
                stream.stop()
            except Exception as exc:  # noqa: BLE001
                _log.warn("voice", "stream_stop_error", {"error": str(exc)})
            try:
                stream.close()
            except Exception as exc:  # noqa: BLE001
                _log.warn("voice", "stream_close_error", {"error": str(exc)})

        worker, self._worker = self._worker, None
        if worker is None:
            return
        self._signal_stop()
        if worker.is_alive() and worker is not threading.current_thread():
            worker.join(timeout=3.0)

    def _signal_stop(self) -> None:
        """Queue the stop sentinel without blocking, discarding audio if full."""
        while True:
            try:
                self._audio.put_nowait(_STOP_SENTINEL)
                return
            except queue.Full:
                try:
                    self._audio.get_nowait()
                except queue.Empty:
                    pass

    # ──────────────────────────────────────────
    # Audio path
    # ──────────────────────────────────────────

    def _on_audio(self, indata: Any, frames: int, time_info: Any, status: Any) -> None:
        """sounddevice callback — runs on the PortAudio thread; never blocks."""
        if status:
            _log.warn("voice", "audio_status", {"status": str(status)})
        try:
            self._audio.put_nowait(bytes(indata))
        except queue.Full:
            _log.warn("voice", "audio_overflow", {})

    def results(self) -> Iterator[Tuple[str, bool]]:
        """
        Yield ``(text, is_final)`` pairs until listening stops.

        Interim results are yielded only when the partial text changes;
        empty finals (silence) are skipped.
        """
        import vosk  # type: ignore

        kaldi = vosk.KaldiRecognizer(self._model, self._cfg.sample_rate)
        last_partial = ""
        while True:
            block = self._audio.get()
            if block is _STOP_SENTINEL:
                return
            if kaldi.AcceptWaveform(block):
                text = json.loads(kaldi.Result()).get("text", "").strip()
                last_partial = ""
                if text:
                    yield text, True
            else:
                partial = json.loads(kaldi.PartialResult()).get("partial", "").strip()
                if partial and partial != last_partial:
                    last_partial = partial
                    yield partial, False

    def _worker_loop(self) -> None:
        try:
            for text, is_final in self.results():
                _log.info("voice", "final" if is_final else "partial", {"text": text})
                self._emit(text, is_final)
        except Exception as exc:  # noqa: BLE001
            _log.error("voice", "worker_error", {"error": str(exc)})
            self._end()
            self._finish()

    def _drain(self) -> None:
        while True:
            try:
                self._audio.get_nowait()
            except queue.Empty:
                break
