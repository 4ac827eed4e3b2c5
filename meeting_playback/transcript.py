"""Append-only transcript and the end-of-meeting report."""

import json
import os
from datetime import datetime, timezone

from meeting_playback.constants import VERSION
from meeting_playback.models import MeetingReport, Participant, Segment, TranscriptEntry


class TranscriptRecorder:
    """Ordered log of spoken turns.

    Entries can only be appended. clear() is allowed between sessions, never
    while one is recording.
    """

    def __init__(self):
        self._entries: list[TranscriptEntry] = []
        self._recording = False

    @property
    def recording(self) -> bool:
        return self._recording

    def begin(self) -> None:
        self._recording = True

    def end(self) -> None:
        self._recording = False

    def append(self, entry: TranscriptEntry) -> None:
        self._entries.append(entry)

    def record(self, segment: Segment, participant: Participant) -> TranscriptEntry:
        """Append an entry for a segment, stamped now (UTC)."""
        entry = TranscriptEntry(
            id=segment.id,
            speaker_id=participant.id,
            speaker_name=participant.display_name,
            text=segment.text,
            timestamp_iso=datetime.now(timezone.utc).isoformat(),
        )
        self.append(entry)
        return entry

    def all(self) -> tuple[TranscriptEntry, ...]:
        return tuple(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def clear(self) -> None:
        if self._recording:
            raise RuntimeError("Cannot clear the transcript while a session is recording")
        self._entries = []


def format_transcript(entries) -> str:
    """Plain-text transcript, one "[HH:MM:SS] Name: text" line per turn."""
    lines = []
    for entry in entries:
        stamp = datetime.fromisoformat(entry.timestamp_iso).strftime("%H:%M:%S")
        lines.append(f"[{stamp}] {entry.speaker_name}: {entry.text}")
    return "\n".join(lines)


def write_report(report: MeetingReport, path: str, title: str = "") -> str:
    """Write the meeting report as JSON. Returns the path written."""
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)

    data = {
        "title": title,
        "generated_at": datetime.now(timezone.utc).isoformat(),
        "player_version": VERSION,
        **report.to_dict(),
    }
    with open(path, "w") as f:
        json.dump(data, f, indent=2)
    return path
