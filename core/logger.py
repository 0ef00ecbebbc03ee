"""
core/logger.py — Mission event log for Voice Launch Control.

Every subsystem reports through one :class:`LaunchLogger`, which appends JSON
lines to ``<log_dir>/launch_<YYYY-MM-DD>.jsonl``. Each line carries the run's
``session`` id, so several runs on the same day can be told apart in one file.
Entries below the configured level are not written; WARN and above are also
echoed to stderr through the ``launch`` stdlib logger.

Usage::

    from core.logger import configure_logging, get_logger
    configure_logging(config.logging)          # once, from main()
    log = get_logger()
    log.info("fsm", "transition", {"from": "IDLE", "to": "COUNTING_DOWN(10)"})
    log.perf("tts", "spoken", 412.0, {"job_id": "3f2a9c1e"})
"""

from __future__ import annotations

import json
import logging
import os
import platform
import sys
import threading
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional, TextIO

#: Environment variable overriding the log directory.
LOG_DIR_ENV_VAR = "LAUNCH_LOG_DIR"

#: JSONL level name → stdlib level used for filtering and the stderr echo.
LEVELS: dict[str, int] = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "PERF": logging.INFO,
    "WARN": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}

_echo = logging.getLogger("launch")
if not _echo.handlers:
    _handler = logging.StreamHandler(sys.stderr)
    _handler.setFormatter(logging.Formatter("[%(levelname)s] %(name)s — %(message)s"))
    _echo.addHandler(_handler)
_echo.setLevel(logging.WARNING)
_echo.propagate = False

_log_dir: Path = Path(os.environ.get(LOG_DIR_ENV_VAR, "logs"))
_instance: Optional["LaunchLogger"] = None
_instance_lock = threading.Lock()


def _level_number(name: str) -> int:
    key = name.upper()
    if key == "WARNING":
        key = "WARN"
    if key not in LEVELS:
        raise ValueError(f"Unknown log level '{name}'")
    return LEVELS[key]


class LaunchLogger:
    """
    JSONL writer shared by the whole process. Obtain it with :func:`get_logger`.

    A line looks like::

        {"timestamp_iso": "...", "session": "5c1d0a7e", "level": "INFO",
         "phase": "fsm", "event": "transition", "data": {...}}

    ``latency_ms`` is added for :meth:`perf` entries.
    """

    def __init__(self, log_dir: Path, level: str = "DEBUG") -> None:
        self._lock = threading.Lock()
        self._log_dir = log_dir
        self._min_level = _level_number(level)
        self._file: Optional[TextIO] = None
        self._day = ""
        self.session = uuid.uuid4().hex[:8]
        self.info("system", "startup", {
            "python_version": sys.version.split()[0],
            "platform": platform.platform(),
            "pid": os.getpid(),
        })

    # ── Level helpers ─────────────────────────────────────────

    def debug(self, phase: str, event: str, data: Optional[dict] = None) -> None:
        self.log("DEBUG", phase, event, data)

    def info(self, phase: str, event: str, data: Optional[dict] = None) -> None:
        self.log("INFO", phase, event, data)

    def warn(self, phase: str, event: str, data: Optional[dict] = None) -> None:
        self.log("WARN", phase, event, data)

    def error(self, phase: str, event: str, data: Optional[dict] = None) -> None:
        self.log("ERROR", phase, event, data)

    def critical(self, phase: str, event: str, data: Optional[dict] = None) -> None:
        self.log("CRITICAL", phase, event, data)

    def perf(
        self,
        phase: str,
        event: str,
        latency_ms: float,
        data: Optional[dict] = None,
    ) -> None:
        """Record how long *event* took, e.g. one spoken announcement."""
        self.log("PERF", phase, event, data, latency_ms=latency_ms)

    # ── Core ──────────────────────────────────────────────────

    def log(
        self,
        level: str,
        phase: str,
        event: str,
        data: Optional[dict] = None,
        latency_ms: Optional[float] = None,
    ) -> None:
        """
        Append one entry at *level* (a key of :data:`LEVELS`).

        Values that are not JSON types (paths, enums, states) are written
        with ``str()``.
        """
        number = LEVELS[level]
        if number >= logging.WARNING:
            _echo.log(number, "[%s] %s | %s", phase, event, data or {})
        if number < self._min_level:
            return

        now = datetime.now(tz=timezone.utc)
        entry: dict[str, Any] = {
            "timestamp_iso": now.isoformat(),
            "session": self.session,
            "level": level,
            "phase": phase,
            "event": event,
            "data": data or {},
        }
        if latency_ms is not None:
            entry["latency_ms"] = round(latency_ms, 3)
        line = json.dumps(entry, ensure_ascii=False, separators=(",", ":"), default=str)

        with self._lock:
            fh = self._file_for(now.strftime("%Y-%m-%d"))
            fh.write(line + "\n")

    def flush(self) -> None:
        with self._lock:
            if self._file is not None and not self._file.closed:
                self._file.flush()

    @property
    def path(self) -> Path:
        """File the next entry goes to (today's file under the current directory)."""
        day = self._day or datetime.now(tz=timezone.utc).strftime("%Y-%m-%d")
        return self._log_dir / f"launch_{day}.jsonl"

    @property
    def level(self) -> str:
        return next(name for name, n in LEVELS.items() if n == self._min_level)

    # ── Reconfiguration (called via configure_logging / set_log_dir) ──

    def _reconfigure(self, log_dir: Optional[Path], level: Optional[str]) -> None:
        with self._lock:
            if level is not None:
                self._min_level = _level_number(level)
            if log_dir is not None and log_dir != self._log_dir:
                self._close()
                self._log_dir = log_dir

    def _file_for(self, day: str) -> TextIO:
        """Return the open file for *day*, rolling over at midnight. Holds the lock."""
        if self._file is None or self._file.closed or day != self._day:
            self._close()
            self._log_dir.mkdir(parents=True, exist_ok=True)
            self._day = day
            self._file = open(self.path, "a", encoding="utf-8", buffering=1)
        return self._file

    def _close(self) -> None:
        if self._file is not None and not self._file.closed:
            self._file.close()
        self._file = None
        self._day = ""


# ──────────────────────────────────────────────────────────────
# Module-level access
# ──────────────────────────────────────────────────────────────

def get_logger() -> LaunchLogger:
    """Return the process-wide :class:`LaunchLogger`, creating it on first use."""
    global _instance
    if _instance is None:
        with _instance_lock:
            if _instance is None:
                _instance = LaunchLogger(_log_dir)
    return _instance


def set_log_dir(log_dir: Path | str) -> None:
    """Send subsequent entries to *log_dir* (also affects a logger created later)."""
    global _log_dir
    with _instance_lock:
        _log_dir = Path(log_dir)
        if _instance is not None:
            _instance._reconfigure(_log_dir, None)


def configure_logging(config: Any) -> LaunchLogger:
    """
    Apply a :class:`~core.config.LoggingConfig`: log directory and minimum
    level for the JSONL file. Returns the configured logger.

    Raises:
        ValueError: If ``config.level`` is not a known level.
    """
    _level_number(config.level)
    set_log_dir(config.log_dir)
    log = get_logger()
    log._reconfigure(None, config.level)
    log.info("system", "logging_configured", {
        "log_dir": str(config.log_dir), "level": config.level.upper(),
    })
    return log
