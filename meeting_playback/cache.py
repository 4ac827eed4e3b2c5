"""Pre-generated audio cache: manifest lookup and cache generation."""

import json
import logging
import os
import re

from meeting_playback.constants import CACHE_MANIFEST, CACHE_PREFIX_CHARS, TTS_RATE
from meeting_playback.models import Script
from meeting_playback.tts import synthesize_edge
from meeting_playback.voices import ParticipantRegistry

logger = logging.getLogger(__name__)


def _clip_filename(segment_id: str, speaker: str) -> str:
    """Filename for a cached clip: sarah_sarah-opening.mp3"""
    slug = re.sub(r"[^a-zA-Z0-9-]+", "_", f"{speaker}_{segment_id}").strip("_").lower()
    return f"{slug}.mp3"


class AudioCache:
    """Directory of pre-generated clips indexed by manifest.json.

    Entries are keyed by speaker display name and text, because authored
    scripts are static and the same line always maps to the same clip.
    """

    def __init__(self, cache_dir: str):
        self.cache_dir = cache_dir
        self._entries: list[dict] | None = None

    @property
    def manifest_path(self) -> str:
        return os.path.join(self.cache_dir, CACHE_MANIFEST)

    def entries(self) -> list[dict]:
        if self._entries is None:
            self._entries = self._read_manifest()
        return self._entries

    def _read_manifest(self) -> list[dict]:
        if not os.path.exists(self.manifest_path):
            return []
        try:
            with open(self.manifest_path) as f:
                return list(json.load(f).get("entries", []))
        except (json.JSONDecodeError, AttributeError):
            logger.warning("Malformed cache manifest: %s — treating cache as empty", self.manifest_path)
            return []

    def write_manifest(self) -> str:
        os.makedirs(self.cache_dir, exist_ok=True)
        with open(self.manifest_path, "w") as f:
            json.dump({"entries": self.entries()}, f, indent=2)
        return self.manifest_path

    def add(self, entry: dict) -> None:
        entries = self.entries()
        entries[:] = [e for e in entries if e.get("id") != entry["id"] or e.get("speaker") != entry["speaker"]]
        entries.append(entry)

    def lookup(self, speaker: str, text: str) -> str | None:
        """Return the clip path for (speaker, text), or None.

        Exact text match first, then a partial match: the requested text
        contains the first CACHE_PREFIX_CHARS characters of a cached line.
        """
        candidates = [e for e in self.entries() if e.get("speaker") == speaker]

        match = next((e for e in candidates if e.get("text") == text), None)
        if match is None:
            match = next(
                (e for e in candidates if e.get("text") and e["text"][:CACHE_PREFIX_CHARS] in text),
                None,
            )
        if match is None:
            return None

        path = os.path.join(self.cache_dir, match["file"])
        if not os.path.exists(path) or os.path.getsize(path) == 0:
            logger.warning("Cache entry %s points at missing clip %s", match.get("id"), path)
            return None
        return path


async def generate_cache(
    script: Script,
    participants: ParticipantRegistry,
    cache_dir: str,
    rate: str = TTS_RATE,
    force: bool = False,
) -> list[str]:
    """Synthesize every segment of a script into the cache.

    Returns list of clip paths. Existing clips are kept unless force=True, so
    an interrupted run can be resumed. Prints progress counter.
    """
    cache = AudioCache(cache_dir)
    os.makedirs(cache_dir, exist_ok=True)
    total = len(script)
    paths = []

    for i, seg in enumerate(script):
        participant = participants.require(seg.speaker_id)
        filename = _clip_filename(seg.id, participant.display_name)
        output_path = os.path.join(cache_dir, filename)
        voice = participants.voice_for(participant)

        # Skip if already exists (resumability)
        if not force and os.path.exists(output_path) and os.path.getsize(output_path) > 0:
            print(f"  [skip] Segment {i + 1}/{total}: {filename}")
        else:
            print(f"  Generating segment {i + 1}/{total}: {filename}")
            await synthesize_edge(seg.text, voice, output_path, rate=rate)

        cache.add({
            "id": seg.id,
            "speaker": participant.display_name,
            "text": seg.text,
            "voice": voice,
            "file": filename,
        })
        paths.append(output_path)

    cache.write_manifest()
    return paths


def cache_status(script: Script, participants: ParticipantRegistry, cache_dir: str) -> dict[str, bool]:
    """Map segment id → whether a cached clip would serve it."""
    cache = AudioCache(cache_dir)
    status = {}
    for seg in script:
        participant = participants.get(seg.speaker_id)
        name = participant.display_name if participant else seg.speaker_id
        status[seg.id] = cache.lookup(name, seg.text) is not None
    return status
