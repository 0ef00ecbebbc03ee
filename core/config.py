"""
core/config.py — Typed configuration loader for Voice Launch Control.

Loads config/launch.yaml and validates all values into typed dataclasses.
All downstream modules import from this module; never read YAML directly.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml

from core.constants import LaunchConstants as C

logger = logging.getLogger(__name__)

#: Environment variable naming an explicit config file.
CONFIG_ENV_VAR = "LAUNCH_CONFIG"


# ──────────────────────────────────────────────
# Dataclass hierarchy — mirrors launch.yaml
# ──────────────────────────────────────────────


@dataclass(frozen=True)
class CountdownConfig:
    """Countdown pacing."""

    tick_interval_s: float = C.TICK_INTERVAL_S


@dataclass(frozen=True)
class TTSConfig:
    """Text-to-speech engine configuration."""

    enabled: bool = True
    rate: int = 160
    volume: float = 1.0
    voice_id: Optional[str] = None


@dataclass(frozen=True)
class VoiceConfig:
    """Offline speech recognition (Vosk) configuration."""

    enabled: bool = True
    model_path: str = "models/vosk-model-small-en-us-0.15"
    sample_rate: int = 16000
    block_size: int = 8000
    device: Optional[int] = None

    @property
    def resolved_model_path(self) -> Path:
        """Return the model directory as a Path, expanding ~ if needed."""
        return Path(os.path.expanduser(self.model_path))


@dataclass(frozen=True)
class WebConfig:
    """Web dashboard server configuration."""

    host: str = "127.0.0.1"
    port: int = 7860


@dataclass(frozen=True)
class LoggingConfig:
    """Logging configuration."""

    level: str = "INFO"
    log_dir: str = "logs"


@dataclass(frozen=True)
class LaunchConfig:
    """Root configuration object — single source of truth for all settings."""

    countdown: CountdownConfig = field(default_factory=CountdownConfig)
    tts: TTSConfig = field(default_factory=TTSConfig)
    voice: VoiceConfig = field(default_factory=VoiceConfig)
    web: WebConfig = field(default_factory=WebConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


# ──────────────────────────────────────────────
# Loader
# ──────────────────────────────────────────────


def _resolve_path(config_path: Path | str | None) -> Path | None:
    """
    Locate the config file to load, or ``None`` for built-in defaults.

    Raises:
        FileNotFoundError: If an explicit path or the env var points nowhere.
    """
    if config_path is not None:
        resolved = Path(config_path)
        if not resolved.exists():
            raise FileNotFoundError(f"Config file not found: {resolved}")
        return resolved

    if CONFIG_ENV_VAR in os.environ:
        resolved = Path(os.environ[CONFIG_ENV_VAR])
        if not resolved.exists():
            raise FileNotFoundError(
                f"{CONFIG_ENV_VAR} points to missing file: {resolved}"
            )
        return resolved

    # Auto-discover: config/launch.yaml at the project root or the cwd
    here = Path(__file__).resolve()
    for parent in (here.parent.parent, Path.cwd()):
        candidate = parent / "config" / "launch.yaml"
        if candidate.exists():
            return candidate
    return None


def _section(raw: dict, name: str) -> dict:
    value = raw.get(name) or {}
    if not isinstance(value, dict):
        raise ValueError(f"Config section '{name}' must be a mapping, got: {type(value)}")
    return value


def load_config(config_path: Path | str | None = None) -> LaunchConfig:
    """
    Load, validate, and return a LaunchConfig from a YAML file.

    The search order for the config file is:
    1. *config_path* argument (if provided)
    2. LAUNCH_CONFIG environment variable
    3. ``config/launch.yaml`` under the project root, then the cwd
    4. Built-in defaults (no file required)

    Args:
        config_path: Optional path to a ``launch.yaml`` file.

    Returns:
        A fully populated and frozen :class:`LaunchConfig` instance.

    Raises:
        ValueError: If a YAML field is unknown or has an invalid value.
        FileNotFoundError: If *config_path* is explicitly given but does not exist.
    """
    resolved_path = _resolve_path(config_path)

    raw: dict = {}
    if resolved_path is not None:
        logger.info("Loading config from: %s", resolved_path)
        with resolved_path.open("r", encoding="utf-8") as fh:
            loaded = yaml.safe_load(fh) or {}
        if not isinstance(loaded, dict):
            raise ValueError(f"Config file must be a YAML mapping, got: {type(loaded)}")
        raw = loaded
    else:
        logger.info("No config file found — using built-in defaults")

    try:
        config = LaunchConfig(
            countdown=CountdownConfig(**_section(raw, "countdown")),
            tts=TTSConfig(**_section(raw, "tts")),
            voice=VoiceConfig(**_section(raw, "voice")),
            web=WebConfig(**_section(raw, "web")),
            logging=LoggingConfig(**_section(raw, "logging")),
        )
    except TypeError as exc:
        raise ValueError(f"Invalid config value: {exc}") from exc

    _validate_config(config)
    logger.debug("Config loaded: %s", config)
    return config


def _validate_config(config: LaunchConfig) -> None:
    """
    Validate value ranges on the loaded configuration.

    Raises:
        ValueError: If any configured value violates a hard constraint.
    """
    if config.countdown.tick_interval_s <= 0:
        raise ValueError(
            f"countdown.tick_interval_s must be positive, got {config.countdown.tick_interval_s}"
        )
    if not (0.0 <= config.tts.volume <= 1.0):
        raise ValueError(f"tts.volume must be in [0, 1], got {config.tts.volume}")
    if config.tts.rate <= 0:
        raise ValueError(f"tts.rate must be positive, got {config.tts.rate}")
    if config.voice.sample_rate <= 0:
        raise ValueError(f"voice.sample_rate must be positive, got {config.voice.sample_rate}")
    if config.voice.block_size <= 0:
        raise ValueError(f"voice.block_size must be positive, got {config.voice.block_size}")
    if not (0 < config.web.port < 65536):
        raise ValueError(f"web.port must be in 1..65535, got {config.web.port}")
    if config.logging.level.upper() not in {"DEBUG", "INFO", "WARN", "WARNING", "ERROR"}:
        raise ValueError(
            f"logging.level must be DEBUG, INFO, WARN or ERROR, got '{config.logging.level}'"
        )
