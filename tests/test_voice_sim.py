"""
tests/test_voice_sim.py — Tests for the scripted / interactive speech simulator.

Scripts are played at high speed so no test waits longer than a few
milliseconds per step.
"""

from __future__ import annotations

import threading
import unittest

from core.constants import Intent
from input.voice_sim import (
    DEMO_ABORT_SCRIPT,
    DEMO_LAUNCH_SCRIPT,
    DEMO_SCRIPTS,
    ScriptedRecognizer,
    SimulationMode,
)
from intent.interpreter import interpret


class TestScriptedPlayback(unittest.TestCase):

    def setUp(self) -> None:
        self.results: list[tuple[str, bool]] = []
        self.ended = threading.Event()

    def _on_result(self, text: str, is_final: bool) -> None:
        self.results.append((text, is_final))

    def test_plays_script_in_order_then_ends(self) -> None:
        script = [("let's", False, 5.0), ("let's launch", True, 5.0), ("status", True, 5.0)]
        sim = ScriptedRecognizer(SimulationMode.SCRIPTED, script, speed=10.0)

        self.assertTrue(sim.start(self._on_result, on_end=self.ended.set))
        self.assertTrue(sim.wait_until_done(timeout=2.0))
        self.assertTrue(self.ended.wait(timeout=2.0))

        self.assertEqual(self.results, [(t, f) for t, f, _ in script])
        self.assertFalse(sim.is_listening)

    def test_stop_halts_playback(self) -> None:
        script = [("launch", True, 0.0), ("reset", True, 60_000.0)]
        sim = ScriptedRecognizer(SimulationMode.SCRIPTED, script)
        sim.start(self._on_result, on_end=self.ended.set)
        threading.Event().wait(0.05)
        sim.stop()

        self.assertTrue(self.ended.is_set())
        self.assertEqual(self.results, [("launch", True)])

    def test_start_is_idempotent(self) -> None:
        sim = ScriptedRecognizer(SimulationMode.INTERACTIVE)
        self.assertTrue(sim.start(self._on_result))
        self.assertTrue(sim.start(self._on_result))
        sim.stop()
        self.assertFalse(sim.is_listening)

    def test_non_positive_speed_raises(self) -> None:
        with self.assertRaises(ValueError):
            ScriptedRecognizer(speed=0.0)

    def test_default_script_is_launch_demo(self) -> None:
        sim = ScriptedRecognizer(SimulationMode.SCRIPTED, speed=1000.0)
        sim.start(self._on_result)
        self.assertTrue(sim.wait_until_done(timeout=2.0))
        self.assertEqual(len(self.results), len(DEMO_LAUNCH_SCRIPT))


class TestInteractive(unittest.TestCase):

    def test_inject_requires_listening(self) -> None:
        heard: list[str] = []
        sim = ScriptedRecognizer(SimulationMode.INTERACTIVE)
        self.assertEqual(sim.mode, SimulationMode.INTERACTIVE)
        self.assertFalse(sim.inject("launch"))

        sim.start(lambda text, final: heard.append(text))
        self.assertTrue(sim.inject("launch"))
        sim.stop()
        self.assertFalse(sim.inject("reset"))
        self.assertEqual(heard, ["launch"])


class TestDemoScripts(unittest.TestCase):

    def test_every_demo_is_registered(self) -> None:
        self.assertEqual(set(DEMO_SCRIPTS), {"launch", "abort", "status", "full"})

    def test_launch_demo_contains_a_launch_command(self) -> None:
        finals = [interpret(t) for t, final, _ in DEMO_LAUNCH_SCRIPT if final]
        self.assertIn(Intent.LAUNCH, finals)

    def test_abort_demo_resets_after_launching(self) -> None:
        finals = [interpret(t) for t, final, _ in DEMO_ABORT_SCRIPT if final]
        self.assertEqual(finals[:2], [Intent.LAUNCH, Intent.RESET])

    def test_steps_are_well_formed(self) -> None:
        for name, script in DEMO_SCRIPTS.items():
            for text, is_final, delay_ms in script:
                with self.subTest(demo=name, text=text):
                    self.assertTrue(text.strip())
                    self.assertIsInstance(is_final, bool)
                    self.assertGreaterEqual(delay_ms, 0.0)


if __name__ == "__main__":
    unittest.main()
