"""Data models for scripted meeting playback."""

from dataclasses import dataclass, field
from enum import Enum


class ScriptError(ValueError):
    """A script is malformed (missing fields, duplicate segment ids)."""


@dataclass(frozen=True)
class Segment:
    id: str
    speaker_id: str
    text: str
    side_effect_id: str | None = None


@dataclass(frozen=True)
class Script:
    """Immutable ordered sequence of segments. Order is the only sequencing authority."""

    segments: tuple[Segment, ...]
    title: str = ""

    def __post_init__(self):
        # Accept any iterable but store a tuple
        object.__setattr__(self, "segments", tuple(self.segments))
        seen = set()
        for seg in self.segments:
            if seg.id in seen:
                raise ScriptError(f"Duplicate segment id: {seg.id}")
            seen.add(seg.id)

    def __len__(self) -> int:
        return len(self.segments)

    def __iter__(self):
        return iter(self.segments)

    def __getitem__(self, index: int) -> Segment:
        return self.segments[index]


@dataclass(frozen=True)
class Participant:
    id: str
    display_name: str
    voice_ref: str = ""   # opaque provider key, e.g. an edge-tts voice name
    role: str = ""


@dataclass(frozen=True)
class TranscriptEntry:
    id: str               # the segment id
    speaker_id: str
    speaker_name: str
    text: str
    timestamp_iso: str

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "speaker_id": self.speaker_id,
            "speaker_name": self.speaker_name,
            "text": self.text,
            "timestamp": self.timestamp_iso,
        }


class SessionStatus(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"         # aborted by an error escaping the turn loop

    @property
    def terminal(self) -> bool:
        return self in (SessionStatus.COMPLETED, SessionStatus.CANCELLED, SessionStatus.FAILED)


@dataclass
class PlaybackSession:
    """Mutable run-time state of one meeting run. Never shared between meetings."""

    status: SessionStatus = SessionStatus.IDLE
    current_segment_index: int = 0
    active_audio_handle: object | None = None   # AudioHandle while a clip plays
    cancelled: bool = False
    started_at: float = 0.0


@dataclass(frozen=True)
class SideEffectResult:
    segment_id: str
    side_effect_id: str
    result: object = None


@dataclass
class MeetingReport:
    transcript: list[TranscriptEntry]
    duration_seconds: float
    cancelled: bool
    side_effects: list[SideEffectResult] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "transcript": [e.to_dict() for e in self.transcript],
            "duration_seconds": self.duration_seconds,
            "cancelled": self.cancelled,
            "side_effects": [
                {"segment_id": r.segment_id, "side_effect_id": r.side_effect_id}
                for r in self.side_effects
            ],
        }
