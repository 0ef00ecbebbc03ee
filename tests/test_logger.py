"""
tests/test_logger.py — Tests for the JSONL mission event log.
"""

from __future__ import annotations

import json
import os
from pathlib import Path

import pytest

from core.config import LoggingConfig
from core.logger import (
    LOG_DIR_ENV_VAR,
    configure_logging,
    get_logger,
    set_log_dir,
)


@pytest.fixture()
def log_in_tmp(tmp_path: Path):
    """Point the singleton at *tmp_path* for one test, then restore it."""
    set_log_dir(tmp_path)
    log = get_logger()
    yield log
    log._reconfigure(None, "DEBUG")
    set_log_dir(os.environ.get(LOG_DIR_ENV_VAR, "logs"))


def _entries(path: Path) -> list[dict]:
    return [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]


def test_singleton() -> None:
    assert get_logger() is get_logger()


def test_lines_are_json_with_documented_keys(log_in_tmp, tmp_path: Path) -> None:
    log_in_tmp.info("fsm", "transition", {"from": "IDLE", "to": "COUNTING_DOWN(10)"})
    log_in_tmp.flush()

    path = log_in_tmp.path
    assert path.parent == tmp_path
    assert path.name.startswith("launch_") and path.suffix == ".jsonl"

    entry = _entries(path)[-1]
    assert set(entry) == {"timestamp_iso", "session", "level", "phase", "event", "data"}
    assert entry["session"] == log_in_tmp.session
    assert entry["level"] == "INFO"
    assert entry["phase"] == "fsm"
    assert entry["event"] == "transition"
    assert entry["data"] == {"from": "IDLE", "to": "COUNTING_DOWN(10)"}


def test_perf_entries_carry_latency(log_in_tmp) -> None:
    log_in_tmp.perf("tts", "spoken", 12.34567, {"job_id": "abc"})
    log_in_tmp.flush()
    entry = _entries(log_in_tmp.path)[-1]
    assert entry["level"] == "PERF"
    assert entry["latency_ms"] == 12.346


def test_levels_and_non_json_values(log_in_tmp) -> None:
    log_in_tmp.warn("voice", "model_missing", {"path": Path("models/x")})
    log_in_tmp.error("tts", "speak_error")
    log_in_tmp.flush()
    warn, error = _entries(log_in_tmp.path)[-2:]
    assert warn["level"] == "WARN"
    assert warn["data"]["path"] == str(Path("models/x"))
    assert error["level"] == "ERROR"
    assert error["data"] == {}


def test_configured_level_filters_file(log_in_tmp, tmp_path: Path) -> None:
    log = configure_logging(LoggingConfig(level="WARNING", log_dir=str(tmp_path)))
    assert log is log_in_tmp
    assert log.level == "WARN"

    log.info("fsm", "transition")
    log.debug("fsm", "tick_dropped")
    log.warn("voice", "audio_overflow")
    log.flush()

    events = [e["event"] for e in _entries(log.path)]
    assert "audio_overflow" in events
    assert "transition" not in events
    assert "tick_dropped" not in events


def test_unknown_level_is_rejected(log_in_tmp, tmp_path: Path) -> None:
    with pytest.raises(ValueError):
        configure_logging(LoggingConfig(level="LOUD", log_dir=str(tmp_path)))
