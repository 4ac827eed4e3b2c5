"""Player settings: constants, then an optional JSON file, then environment."""

import json
import logging
import os
from dataclasses import dataclass, fields

from meeting_playback.constants import (
    CACHE_DIR,
    PLAYBACK_CHUNK_MS,
    READING_DELAY_SECONDS,
    TIME_SCALE,
    TTS_RATE,
)

logger = logging.getLogger(__name__)

ENV_TTS_ENABLED = "MEETING_PLAYBACK_TTS_ENABLED"
ENV_CACHE_DIR = "MEETING_PLAYBACK_CACHE_DIR"
ENV_READING_DELAY = "MEETING_PLAYBACK_READING_DELAY"


@dataclass
class PlaybackConfig:
    cache_dir: str = CACHE_DIR
    commercial_enabled: bool = False
    tts_rate: str = TTS_RATE
    reading_delay_seconds: float = READING_DELAY_SECONDS
    chunk_ms: int = PLAYBACK_CHUNK_MS
    time_scale: float = TIME_SCALE
    audio_device: str | None = None


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def load_config(path: str | None = None, environ: dict | None = None) -> PlaybackConfig:
    """Build a PlaybackConfig.

    Unknown keys in the file are ignored with a warning; a malformed file
    falls back to defaults.
    """
    config = PlaybackConfig()
    known = {f.name for f in fields(PlaybackConfig)}

    if path and os.path.exists(path):
        try:
            with open(path) as f:
                data = json.load(f)
        except json.JSONDecodeError:
            logger.warning("Malformed config file: %s — using defaults", path)
            data = {}
        for key, value in data.items():
            if key not in known:
                logger.warning("Unknown config key %r in %s", key, path)
                continue
            setattr(config, key, value)

    env = os.environ if environ is None else environ
    if ENV_TTS_ENABLED in env:
        config.commercial_enabled = _parse_bool(env[ENV_TTS_ENABLED])
    if env.get(ENV_CACHE_DIR):
        config.cache_dir = env[ENV_CACHE_DIR]
    if env.get(ENV_READING_DELAY):
        try:
            config.reading_delay_seconds = float(env[ENV_READING_DELAY])
        except ValueError:
            logger.warning("Invalid %s=%r — keeping %.1fs", ENV_READING_DELAY,
                           env[ENV_READING_DELAY], config.reading_delay_seconds)

    return config
