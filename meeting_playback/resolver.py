"""Audio resolver: an ordered chain of audio providers.

Each provider either returns decoded audio for a line or None. The resolver
tries them in order, bounds every call by the provider's own timeout, and
logs and skips any provider that fails. Adding, removing or reordering
providers is a change to the list passed in, not to the resolver.
"""

import asyncio
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from typing import Callable

from pydub import AudioSegment

from meeting_playback.cache import AudioCache
from meeting_playback.constants import (
    CACHE_TIMEOUT_SECONDS,
    COMMERCIAL_TIMEOUT_SECONDS,
    LOCAL_TIMEOUT_SECONDS,
    TTS_RATE,
)
from meeting_playback.models import Participant
from meeting_playback.playback import AudioHandle, AudioProvenance
from meeting_playback.tts import synthesize_edge, synthesize_local
from meeting_playback.voices import ParticipantRegistry

logger = logging.getLogger(__name__)

HandleFactory = Callable[..., AudioHandle]


class AudioProvider(ABC):
    name: AudioProvenance
    timeout: float

    def available(self) -> bool:
        return True

    @abstractmethod
    async def attempt(self, participant: Participant, text: str) -> AudioSegment | None:
        """Return audio for this line, None for a miss. May raise on failure."""
        ...


class CachedAudioProvider(AudioProvider):
    """Pre-generated clips; a hit avoids any network call."""

    name = AudioProvenance.CACHED

    def __init__(self, cache: AudioCache, timeout: float = CACHE_TIMEOUT_SECONDS):
        self.cache = cache
        self.timeout = timeout

    async def attempt(self, participant, text):
        path = self.cache.lookup(participant.display_name, text)
        if path is None:
            return None
        return await asyncio.to_thread(AudioSegment.from_file, path)


class EdgeTTSProvider(AudioProvider):
    """Microsoft neural voices through edge-tts. Used only when enabled."""

    name = AudioProvenance.COMMERCIAL

    def __init__(self, participants: ParticipantRegistry, enabled: bool = False,
                 rate: str = TTS_RATE, timeout: float = COMMERCIAL_TIMEOUT_SECONDS):
        self.participants = participants
        self.enabled = enabled
        self.rate = rate
        self.timeout = timeout

    def available(self):
        return self.enabled

    async def attempt(self, participant, text):
        voice = self.participants.voice_for(participant)
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "clip.mp3")
            await synthesize_edge(text, voice, path, rate=self.rate)
            return await asyncio.to_thread(AudioSegment.from_mp3, path)


class LocalSpeechProvider(AudioProvider):
    """On-device synthesis; the last resort before a silent turn."""

    name = AudioProvenance.LOCAL

    def __init__(self, timeout: float = LOCAL_TIMEOUT_SECONDS):
        self.timeout = timeout

    def _synthesize(self, participant: Participant, text: str) -> AudioSegment:
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "clip.wav")
            synthesize_local(text, path, voice=participant.voice_ref or None)
            return AudioSegment.from_file(path)

    async def attempt(self, participant, text):
        return await asyncio.to_thread(self._synthesize, participant, text)


class AudioResolver:
    """Turns (speaker_id, text) into an AudioHandle, or None for "no audio"."""

    def __init__(self, participants: ParticipantRegistry, providers: list[AudioProvider],
                 handle_factory: HandleFactory):
        self.participants = participants
        self.providers = list(providers)
        self.handle_factory = handle_factory

    async def resolve(self, speaker_id: str, text: str) -> AudioHandle | None:
        """Try each provider in order.

        Never raises for provider failures. Raises ValueError for malformed
        input and UnknownSpeakerError for a speaker missing from the registry.
        Every call yields a fresh handle.
        """
        if not isinstance(text, str) or not text.strip():
            raise ValueError("text must be a non-empty string")
        if not isinstance(speaker_id, str) or not speaker_id:
            raise ValueError("speaker_id must be a non-empty string")
        participant = self.participants.require(speaker_id)

        for provider in self.providers:
            label = provider.name.value
            if not provider.available():
                logger.debug("Provider %s unavailable — skipping", label)
                continue
            try:
                audio = await asyncio.wait_for(provider.attempt(participant, text), provider.timeout)
            except asyncio.TimeoutError:
                logger.warning("Provider %s timed out after %.1fs for %s", label, provider.timeout, speaker_id)
                continue
            except Exception as e:
                logger.warning("Provider %s failed for %s: %s", label, speaker_id, e)
                continue

            if audio is None:
                logger.debug("Provider %s has no audio for %s: %.50s", label, speaker_id, text)
                continue
            if len(audio) == 0:
                logger.warning("Provider %s returned an empty clip for %s", label, speaker_id)
                continue

            logger.info("Resolved audio for %s via %s (%dms)", speaker_id, label, len(audio))
            return self.handle_factory(audio, provider.name, speaker_id=speaker_id, text=text)

        logger.warning("No audio available for %s — text-only turn", speaker_id)
        return None


def default_providers(participants: ParticipantRegistry, cache_dir: str, commercial_enabled: bool,
                      rate: str = TTS_RATE) -> list[AudioProvider]:
    """Cached clips → edge-tts (if enabled) → on-device speech."""
    return [
        CachedAudioProvider(AudioCache(cache_dir)),
        EdgeTTSProvider(participants, enabled=commercial_enabled, rate=rate),
        LocalSpeechProvider(),
    ]
