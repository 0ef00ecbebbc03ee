"""
tests/conftest.py — Shared fixtures and fakes for the Voice Launch Control suite.

The structured log is redirected to a throwaway directory before any project
module creates the logger singleton.
"""

from __future__ import annotations

import os
import tempfile
import threading
import time
from typing import Callable, List

os.environ.setdefault("LAUNCH_LOG_DIR", tempfile.mkdtemp(prefix="launch-logs-"))

import pytest  # noqa: E402

from input.recognizer import Recognizer  # noqa: E402


# ──────────────────────────────────────────────────────────────
# Fakes
# ──────────────────────────────────────────────────────────────

class ManualScheduler:
    """Scheduler that only ticks when the test calls :meth:`fire`."""

    def __init__(self, on_tick: Callable[[], None], interval_s: float) -> None:
        self.on_tick = on_tick
        self.interval_s = interval_s
        self.started = False
        self.cancelled = False

    def start(self) -> None:
        self.started = True

    def cancel(self) -> None:
        self.cancelled = True

    @property
    def is_running(self) -> bool:
        return self.started and not self.cancelled

    def fire(self, times: int = 1) -> None:
        """Deliver *times* ticks, even after cancel (stale ticks)."""
        for _ in range(times):
            self.on_tick()


class ManualSchedulerFactory:
    """Scheduler factory that remembers every scheduler it built."""

    def __init__(self) -> None:
        self.instances: List[ManualScheduler] = []

    def __call__(self, on_tick: Callable[[], None], interval_s: float) -> ManualScheduler:
        scheduler = ManualScheduler(on_tick, interval_s)
        self.instances.append(scheduler)
        return scheduler

    @property
    def latest(self) -> ManualScheduler:
        return self.instances[-1]


class RecordingSynthesizer:
    """Synthesizer that keeps announcements in arrival order."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.spoken: List[str] = []
        self.shut_down = False

    def announce(self, text: str) -> None:
        with self._lock:
            self.spoken.append(text)

    def shutdown(self) -> None:
        self.shut_down = True


class FakeRecognizer(Recognizer):
    """Recognizer whose support flag is set by the test; emits via :meth:`say`."""

    def __init__(self, supported: bool = True) -> None:
        super().__init__()
        self._supported = supported
        self.begin_calls = 0
        self.end_calls = 0

    @property
    def is_supported(self) -> bool:
        return self._supported

    def _begin(self) -> None:
        self.begin_calls += 1

    def _end(self) -> None:
        self.end_calls += 1

    def say(self, text: str, is_final: bool = True) -> None:
        self._emit(text, is_final)

    def hang_up(self) -> None:
        """Stop on the recognizer's own initiative (e.g. silence timeout)."""
        self._finish()


# ──────────────────────────────────────────────────────────────
# Fixtures
# ──────────────────────────────────────────────────────────────

@pytest.fixture()
def scheduler_factory() -> ManualSchedulerFactory:
    return ManualSchedulerFactory()


@pytest.fixture()
def synthesizer() -> RecordingSynthesizer:
    return RecordingSynthesizer()


@pytest.fixture()
def recognizer() -> FakeRecognizer:
    return FakeRecognizer()


@pytest.fixture()
def controller(synthesizer, recognizer, scheduler_factory):
    """MissionController wired to fakes; shut down after the test."""
    from pipeline.controller import MissionController

    ctrl = MissionController(
        synthesizer,
        recognizer=recognizer,
        scheduler_factory=scheduler_factory,
    )
    yield ctrl
    ctrl.shutdown()


def wait_for(predicate: Callable[[], bool], timeout: float = 2.0) -> bool:
    """Poll *predicate* until it is true or *timeout* elapses."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.005)
    return predicate()
