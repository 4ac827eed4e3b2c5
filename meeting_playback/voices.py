"""Participant registry and voice assignment."""

import hashlib
import json
import logging
import os

from meeting_playback.models import Participant

logger = logging.getLogger(__name__)

# Hardcoded English voice pool (avoids network call at startup)
VOICE_POOL = [
    "en-US-AriaNeural",
    "en-US-DavisNeural",
    "en-US-TonyNeural",
    "en-US-JennyNeural",
    "en-US-SaraNeural",
    "en-GB-SoniaNeural",
    "en-GB-ThomasNeural",
    "en-AU-NatashaNeural",
    "en-AU-WilliamNeural",
    "en-CA-ClaraNeural",
    "en-CA-LiamNeural",
    "en-IN-NeerjaNeural",
    "en-IN-PrabhatNeural",
    "en-IE-EmilyNeural",
]


class UnknownSpeakerError(KeyError):
    """A segment references a speaker id that is not in the registry."""

    def __init__(self, speaker_id: str):
        super().__init__(speaker_id)
        self.speaker_id = speaker_id

    def __str__(self) -> str:
        return f"Unknown speaker: {self.speaker_id!r}"


def _hash_voice(speaker: str, pool: list[str]) -> str:
    """Deterministic voice assignment via sha256 hash."""
    h = hashlib.sha256(speaker.encode()).hexdigest()
    idx = int(h, 16) % len(pool)
    return pool[idx]


class ParticipantRegistry:
    """Lookup of participants by speaker id."""

    def __init__(self, participants: list[Participant] | None = None):
        self._by_id: dict[str, Participant] = {}
        for participant in participants or []:
            self.add(participant)

    def add(self, participant: Participant) -> None:
        if participant.id in self._by_id:
            logger.warning("Participant %s registered twice — keeping the latest", participant.id)
        self._by_id[participant.id] = participant

    def get(self, speaker_id: str) -> Participant | None:
        return self._by_id.get(speaker_id)

    def require(self, speaker_id: str) -> Participant:
        participant = self._by_id.get(speaker_id)
        if participant is None:
            raise UnknownSpeakerError(speaker_id)
        return participant

    def __contains__(self, speaker_id: str) -> bool:
        return speaker_id in self._by_id

    def __iter__(self):
        return iter(self._by_id.values())

    def __len__(self) -> int:
        return len(self._by_id)

    def voice_for(self, participant: Participant) -> str:
        """Resolve the synthesis voice for a participant.

        Priority: explicit voice_ref → hash fallback over the pool minus voices
        already claimed by other participants.
        """
        if participant.voice_ref:
            return participant.voice_ref
        used = {p.voice_ref for p in self._by_id.values() if p.voice_ref}
        available_pool = [v for v in VOICE_POOL if v not in used]
        if not available_pool:
            available_pool = list(VOICE_POOL)  # fallback to full pool if all taken
        return _hash_voice(participant.id.lower(), available_pool)


def load_participants(data: dict) -> ParticipantRegistry:
    """Build a registry from a participants mapping.

    Accepts {"sarah": {"name": "Sarah", "voice": "...", "role": "..."}, ...}.
    A bare string value is taken as the display name.
    """
    registry = ParticipantRegistry()
    for speaker_id, info in data.items():
        if isinstance(info, str):
            info = {"name": info}
        registry.add(Participant(
            id=speaker_id,
            display_name=info.get("name", speaker_id.title()),
            voice_ref=info.get("voice", ""),
            role=info.get("role", ""),
        ))
    return registry


def load_cast(script_path: str) -> dict:
    """Load a .cast.json sidecar next to a script file if it exists.

    Lets a user override voices without editing the script. Returns the
    participants mapping or an empty dict if not found or malformed.
    """
    base = os.path.splitext(script_path)[0]
    cast_path = base + ".cast.json"
    if not os.path.exists(cast_path):
        return {}
    try:
        with open(cast_path) as f:
            return json.load(f).get("participants", {})
    except (json.JSONDecodeError, AttributeError):
        logger.warning("Malformed cast file: %s — ignoring", cast_path)
        return {}
