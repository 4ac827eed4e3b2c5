"""Speech synthesis: edge-tts with retry logic, and on-device pyttsx3."""

import asyncio
import logging
import os

import edge_tts
import pyttsx3

from meeting_playback.constants import (
    LOCAL_TTS_RATE,
    TTS_RATE,
    TTS_RETRY_BASE_DELAY,
    TTS_RETRY_COUNT,
)

logger = logging.getLogger(__name__)


class TTSError(RuntimeError):
    """Synthesis produced no usable audio."""


async def synthesize_edge(text: str, voice: str, output_path: str, rate: str = TTS_RATE) -> None:
    """Synthesize one clip with edge-tts, retrying with exponential backoff.

    Retries on network errors, HTTP errors, or 0-byte output files. Raises the
    last error once retries are exhausted.
    """
    last_error = None
    for attempt in range(TTS_RETRY_COUNT):
        try:
            communicate = edge_tts.Communicate(text, voice, rate=rate)
            await communicate.save(output_path)

            # Validate output: 0-byte file counts as failure
            if os.path.exists(output_path) and os.path.getsize(output_path) > 0:
                return

            last_error = TTSError(f"TTS produced 0-byte file for: {text[:50]}...")
        except Exception as e:
            last_error = e

        logger.debug("edge-tts attempt %d/%d failed: %s", attempt + 1, TTS_RETRY_COUNT, last_error)
        if attempt < TTS_RETRY_COUNT - 1:
            await asyncio.sleep(TTS_RETRY_BASE_DELAY * (2 ** attempt))

    raise last_error


def synthesize_local(text: str, output_path: str, voice: str | None = None, rate: int = LOCAL_TTS_RATE) -> None:
    """Synthesize one clip with the platform speech engine (blocking).

    `voice` is matched against the engine's installed voice ids and names;
    no match keeps the engine default.
    """
    engine = pyttsx3.init()
    try:
        engine.setProperty("rate", rate)
        if voice:
            for installed in engine.getProperty("voices"):
                if voice.lower() in (installed.id.lower(), (installed.name or "").lower()):
                    engine.setProperty("voice", installed.id)
                    break
        engine.save_to_file(text, output_path)
        engine.runAndWait()
    finally:
        engine.stop()

    if not os.path.exists(output_path) or os.path.getsize(output_path) == 0:
        raise TTSError(f"Local TTS produced no audio for: {text[:50]}...")
