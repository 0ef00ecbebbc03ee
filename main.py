"""
main.py — Voice Launch Control application entry point.

Parses CLI args, loads configuration, builds the recognizer and synthesizer,
and runs the mission controller either in the console or behind the web
mission control page.
"""

from __future__ import annotations

import argparse
import sys
import traceback

# ──────────────────────────────────────────────────────────────
# ASCII banner
# ──────────────────────────────────────────────────────────────

_BANNER = r"""
        /\
       /  \       Voice Launch Control  v1.0
      |    |      Say "launch", "status" or "reset"
      |    |
     /|/\/\|\
    /_||  ||_\
       ****
        **
"""

_CONSOLE_HELP = """\
Type an utterance and press Enter (e.g. "let's launch now").
Console commands:  :click  :reset  :listen  :state  :quit
"""


# ──────────────────────────────────────────────────────────────
# Argument parsing
# ──────────────────────────────────────────────────────────────

def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="launch-control",
        description="Voice Launch Control — voice-driven rocket launch simulator",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    p.add_argument(
        "--mode",
        choices=["voice", "sim"],
        default="sim",
        help="Speech input: 'voice' for the offline microphone recognizer, "
             "'sim' for typed / scripted utterances",
    )
    p.add_argument(
        "--demo",
        choices=["launch", "abort", "status", "full"],
        default=None,
        help="Pre-scripted utterance sequence (sim mode only)",
    )
    p.add_argument(
        "--config",
        default=None,
        help="Path to a launch.yaml config file",
    )
    p.add_argument(
        "--mute",
        action="store_true",
        help="Do not speak announcements (log them only)",
    )
    p.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARN"],
        default=None,
        help="Minimum level for the JSONL event log and stdlib logging (overrides config)",
    )
    p.add_argument(
        "--web",
        action="store_true",
        help="Serve the web mission control page instead of the console",
    )
    p.add_argument(
        "--port",
        type=int,
        default=None,
        help="Port for the web server (overrides config)",
    )
    return p


# ──────────────────────────────────────────────────────────────
# Wiring
# ──────────────────────────────────────────────────────────────

def _build_recognizer(args: argparse.Namespace, config):
    """Return the recognizer selected by --mode / --demo."""
    if args.mode == "voice":
        from input.recognizer import VoskRecognizer
        return VoskRecognizer(config.voice)

    from input.voice_sim import DEMO_SCRIPTS, ScriptedRecognizer, SimulationMode
    if args.demo:
        return ScriptedRecognizer(SimulationMode.SCRIPTED, DEMO_SCRIPTS[args.demo])
    return ScriptedRecognizer(SimulationMode.INTERACTIVE)


def _build_synthesizer(args: argparse.Namespace, config):
    """Return the pyttsx3 synthesizer, or the silent one when muted."""
    from output.tts_engine import SilentSynthesizer, SpeechSynthesizer
    if args.mute or not config.tts.enabled:
        return SilentSynthesizer()
    return SpeechSynthesizer(config.tts)


def _print_events(controller) -> None:
    """Echo announcements and state changes to stdout."""
    from pipeline.controller import ON_ANNOUNCEMENT, ON_NOTICE, ON_STATE_CHANGED

    controller.subscribe(ON_ANNOUNCEMENT, lambda d: print(f"  [mission] {d['text']}"))
    controller.subscribe(ON_NOTICE, lambda d: print(f"  [notice] {d['message']}"))
    controller.subscribe(
        ON_STATE_CHANGED,
        lambda d: print(f"  [status] {d['label']}") if d["event"] != "STATUS" else None,
    )


# ──────────────────────────────────────────────────────────────
# Console entry point
# ──────────────────────────────────────────────────────────────

def _run_console(controller, recognizer) -> int:
    """
    Read utterances from stdin until EOF or ``:quit``. Returns exit code.

    In demo mode the script plays in the background; typed lines still work,
    and end of input waits for the script instead of cutting it short.
    """
    from input.voice_sim import ScriptedRecognizer, SimulationMode

    _print_events(controller)
    print(_CONSOLE_HELP)

    if controller.voice_supported:
        controller.toggle_listening()

    for line in sys.stdin:
        line = line.strip()
        if not line:
            continue
        if line == ":quit":
            return 0
        if line == ":click":
            if not controller.handle_click():
                print("  [console] click ignored — rocket is not on the pad")
        elif line == ":reset":
            controller.handle_reset()
        elif line == ":listen":
            listening = controller.toggle_listening()
            print(f"  [console] listening={listening}")
        elif line == ":state":
            print(f"  [console] {controller.snapshot()}")
        elif isinstance(recognizer, ScriptedRecognizer) and recognizer.is_listening:
            recognizer.inject(line, is_final=True)
        else:
            controller.handle_transcript(line, is_final=True)

    # stdin closed (e.g. piped input): let a running demo play out
    if (
        isinstance(recognizer, ScriptedRecognizer)
        and recognizer.mode is SimulationMode.SCRIPTED
        and recognizer.is_listening
    ):
        print("  [console] stdin closed — waiting for the demo to finish")
        recognizer.wait_until_done()
    return 0


# ──────────────────────────────────────────────────────────────
# Web UI entry point
# ──────────────────────────────────────────────────────────────

def _run_web(controller, host: str, port: int) -> int:
    """Serve the mission control page until Ctrl-C. Returns exit code."""
    from ui.web_app import start_web_server

    _print_events(controller)
    print(f"[INFO] Mission control → http://{host}:{port}/")
    print("       Press Ctrl-C to stop.")
    start_web_server(controller, host=host, port=port)
    return 0


# ──────────────────────────────────────────────────────────────
# Main
# ──────────────────────────────────────────────────────────────

def main() -> int:
    """Application entry point. Returns process exit code."""
    print(_BANNER)

    parser = _build_parser()
    args = parser.parse_args()

    # 1. Configuration
    from core.config import load_config
    try:
        config = load_config(args.config)
    except (FileNotFoundError, ValueError) as exc:
        print(f"[ERROR] {exc}", file=sys.stderr)
        return 2

    # 2. stdlib logging level + structured log location and level
    import dataclasses
    import logging

    from core.logger import LEVELS, configure_logging
    log_config = config.logging
    if args.log_level:
        log_config = dataclasses.replace(log_config, level=args.log_level)
    level_name = "WARN" if log_config.level.upper() == "WARNING" else log_config.level.upper()
    logging.basicConfig(level=LEVELS[level_name])
    log = configure_logging(log_config)
    log.info("main", "args_parsed", {
        "mode": args.mode,
        "demo": args.demo,
        "web": args.web,
        "mute": args.mute,
        "config": args.config,
    })

    # 3. Controller
    from pipeline.controller import MissionController
    recognizer = _build_recognizer(args, config)
    synthesizer = _build_synthesizer(args, config)
    controller = MissionController(synthesizer, recognizer=recognizer, config=config)
    log.info("main", "controller_ready", {"voice_supported": controller.voice_supported})
    if args.mode == "voice" and not controller.voice_supported:
        print("[WARN] Voice recognition unavailable — type commands instead.",
              file=sys.stderr)

    # 4. Run
    exit_code = 0
    try:
        if args.web:
            exit_code = _run_web(controller, config.web.host, args.port or config.web.port)
        else:
            exit_code = _run_console(controller, recognizer)
    except KeyboardInterrupt:
        print("\n[INFO] Interrupted — shutting down…")
    except Exception:                              # noqa: BLE001
        tb = traceback.format_exc()
        print(tb, file=sys.stderr)
        log.critical("main", "unhandled_exception", {"traceback": tb})
        exit_code = 1
    finally:
        controller.shutdown()

    print(f"[INFO] Launch control exited with code {exit_code}")
    return exit_code


if __name__ == "__main__":
    sys.exit(main())
