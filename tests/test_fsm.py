"""
tests/test_fsm.py — pytest unit tests for core.fsm.MissionFSM.

Uses the ManualScheduler fake from conftest so every tick is delivered
explicitly; no sleeping, no real threads.
"""

from __future__ import annotations

import threading

import pytest

from core.constants import Intent, LaunchConstants as C, MissionStatus
from core.fsm import MissionFSM, TransitionRecord
from core.mission import Click, MissionState, Tick


# ──────────────────────────────────────────────────────────────
# Fixtures
# ──────────────────────────────────────────────────────────────

@pytest.fixture()
def fsm(scheduler_factory) -> MissionFSM:
    """Fresh FSM in IDLE with manually driven schedulers."""
    return MissionFSM(scheduler_factory=scheduler_factory, tick_interval_s=0.25)


@pytest.fixture()
def fsm_with_callbacks(scheduler_factory) -> tuple[MissionFSM, list[TransitionRecord]]:
    """FSM that records every external callback invocation."""
    log: list[TransitionRecord] = []
    return MissionFSM(on_transition=log.append, scheduler_factory=scheduler_factory), log


# ──────────────────────────────────────────────────────────────
# Scheduler lifecycle
# ──────────────────────────────────────────────────────────────

class TestSchedulerLifecycle:

    def test_idle_has_no_scheduler(self, fsm: MissionFSM, scheduler_factory) -> None:
        assert fsm.state == MissionState.idle()
        assert fsm.active_token is None
        assert scheduler_factory.instances == []

    def test_launch_starts_one_scheduler(self, fsm: MissionFSM, scheduler_factory) -> None:
        fsm.dispatch(Intent.LAUNCH)
        assert len(scheduler_factory.instances) == 1
        assert scheduler_factory.latest.started
        assert scheduler_factory.latest.interval_s == 0.25
        assert fsm.active_token is not None

    def test_rejected_launch_does_not_start_another(self, fsm, scheduler_factory) -> None:
        fsm.dispatch(Intent.LAUNCH)
        fsm.dispatch(Intent.LAUNCH)
        fsm.dispatch(Click())
        assert len(scheduler_factory.instances) == 1

    def test_liftoff_cancels_scheduler(self, fsm: MissionFSM, scheduler_factory) -> None:
        fsm.dispatch(Intent.LAUNCH)
        scheduler_factory.latest.fire(C.COUNTDOWN_FROM)
        assert fsm.state.status is MissionStatus.LAUNCHED
        assert scheduler_factory.latest.cancelled
        assert fsm.active_token is None

    def test_reset_cancels_scheduler(self, fsm: MissionFSM, scheduler_factory) -> None:
        fsm.dispatch(Intent.LAUNCH)
        scheduler_factory.latest.fire(3)
        fsm.dispatch(Intent.RESET)
        assert fsm.state == MissionState.idle()
        assert scheduler_factory.latest.cancelled

    def test_shutdown_cancels_but_keeps_state(self, fsm, scheduler_factory) -> None:
        fsm.dispatch(Intent.LAUNCH)
        fsm.shutdown()
        assert scheduler_factory.latest.cancelled
        assert fsm.state == MissionState.counting_down(10)

    def test_failed_scheduler_start_leaves_mission_idle(self, scheduler_factory) -> None:
        attempts: list[int] = []

        def _flaky_factory(on_tick, interval_s):
            scheduler = scheduler_factory(on_tick, interval_s)
            if not attempts:
                attempts.append(1)

                def _refuse() -> None:
                    raise RuntimeError("no timer thread")

                scheduler.start = _refuse
            return scheduler

        records: list[TransitionRecord] = []
        fsm = MissionFSM(on_transition=records.append, scheduler_factory=_flaky_factory)

        with pytest.raises(RuntimeError):
            fsm.dispatch(Intent.LAUNCH)
        assert fsm.state == MissionState.idle()
        assert fsm.active_token is None
        assert fsm.get_history() == []
        assert records == []

        fsm.dispatch(Intent.LAUNCH)
        assert fsm.state == MissionState.counting_down(10)
        scheduler_factory.latest.fire(C.COUNTDOWN_FROM)
        assert fsm.state.status is MissionStatus.LAUNCHED


# ──────────────────────────────────────────────────────────────
# Stale ticks
# ──────────────────────────────────────────────────────────────

class TestStaleTicks:

    def test_tick_after_reset_does_not_mutate(self, fsm, scheduler_factory) -> None:
        fsm.dispatch(Intent.LAUNCH)
        old = scheduler_factory.latest
        fsm.dispatch(Intent.RESET)
        history_len = len(fsm.get_history())

        old.fire(2)

        assert fsm.state == MissionState.idle()
        assert len(fsm.get_history()) == history_len

    def test_old_scheduler_cannot_drive_new_countdown(self, fsm, scheduler_factory) -> None:
        fsm.dispatch(Intent.LAUNCH)
        old = scheduler_factory.latest
        old.fire(2)
        fsm.dispatch(Intent.RESET)
        fsm.dispatch(Intent.LAUNCH)
        new = scheduler_factory.latest

        assert new is not old
        old.fire(5)
        assert fsm.state == MissionState.counting_down(10)

        new.fire()
        assert fsm.state == MissionState.counting_down(9)

    def test_dispatched_tick_needs_active_token(self, fsm: MissionFSM) -> None:
        record = fsm.dispatch(Tick(token=999))
        assert not record.changed
        assert record.announcements == ()

        fsm.dispatch(Intent.LAUNCH)
        fsm.dispatch(Tick(token=999))
        assert fsm.state == MissionState.counting_down(10)

        fsm.dispatch(Tick(token=fsm.active_token))
        assert fsm.state == MissionState.counting_down(9)

    def test_tokens_increase_per_countdown(self, fsm: MissionFSM) -> None:
        fsm.dispatch(Intent.LAUNCH)
        first = fsm.active_token
        fsm.dispatch(Intent.RESET)
        fsm.dispatch(Intent.LAUNCH)
        assert fsm.active_token == first + 1


# ──────────────────────────────────────────────────────────────
# Callback, history, repr
# ──────────────────────────────────────────────────────────────

class TestRecords:

    def test_callback_sees_transitions_in_order(self, fsm_with_callbacks, scheduler_factory) -> None:
        fsm, log = fsm_with_callbacks
        fsm.dispatch(Intent.LAUNCH)
        scheduler_factory.latest.fire(C.COUNTDOWN_FROM)

        assert [r.event for r in log] == ["LAUNCH"] + ["TICK"] * C.COUNTDOWN_FROM
        spoken = [text for r in log for text in r.announcements]
        assert spoken == [
            "Initiating launch sequence", "T minus 10",
            "4", "3", "2", "1", "Liftoff! We have liftoff!",
        ]

    def test_callback_receives_rejections(self, fsm_with_callbacks) -> None:
        fsm, log = fsm_with_callbacks
        fsm.dispatch(Intent.UNKNOWN)
        assert len(log) == 1
        assert not log[0].changed
        assert log[0].announcements == (C.SAY_UNRECOGNIZED,)

    def test_failing_callback_does_not_break_fsm(self, scheduler_factory) -> None:
        def _boom(record: TransitionRecord) -> None:
            raise RuntimeError("observer failed")

        fsm = MissionFSM(on_transition=_boom, scheduler_factory=scheduler_factory)
        fsm.dispatch(Intent.LAUNCH)
        assert fsm.state == MissionState.counting_down(10)

    def test_history_is_capped(self, fsm: MissionFSM) -> None:
        for _ in range(C.MAX_HISTORY + 15):
            fsm.dispatch(Intent.STATUS)
        history = fsm.get_history()
        assert len(history) == C.MAX_HISTORY
        assert all(r.event == "STATUS" for r in history)

    def test_history_is_a_copy(self, fsm: MissionFSM) -> None:
        fsm.dispatch(Intent.STATUS)
        fsm.get_history().clear()
        assert len(fsm.get_history()) == 1

    def test_record_to_dict(self, fsm: MissionFSM) -> None:
        record = fsm.dispatch(Intent.LAUNCH)
        data = record.to_dict()
        assert data["event"] == "LAUNCH"
        assert data["from"] == "IDLE"
        assert data["to"] == "COUNTING_DOWN(10)"
        assert data["announcements"] == ["Initiating launch sequence", "T minus 10"]
        assert isinstance(data["timestamp"], float)

    def test_repr(self, fsm: MissionFSM) -> None:
        assert repr(fsm) == "MissionFSM(state=IDLE, last=none)"
        fsm.dispatch(Intent.LAUNCH)
        assert repr(fsm) == "MissionFSM(state=COUNTING_DOWN(10), last=LAUNCH)"


# ──────────────────────────────────────────────────────────────
# Thread safety
# ──────────────────────────────────────────────────────────────

def test_concurrent_launches_start_one_countdown(scheduler_factory) -> None:
    """Racing launch requests from many threads yield exactly one countdown."""
    fsm = MissionFSM(scheduler_factory=scheduler_factory)
    barrier = threading.Barrier(8)

    def _launch() -> None:
        barrier.wait()
        fsm.dispatch(Intent.LAUNCH)

    threads = [threading.Thread(target=_launch) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=2.0)

    assert len(scheduler_factory.instances) == 1
    events = [r.to_dict() for r in fsm.get_history()]
    assert sum(1 for e in events if e["from"] == "IDLE") == 1
