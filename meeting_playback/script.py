"""Load meeting scripts from JSON and resolve bundled meetings."""

import json
import logging
import os
from dataclasses import dataclass, field

from meeting_playback.models import Script, ScriptError, Segment
from meeting_playback.voices import ParticipantRegistry, load_cast, load_participants

logger = logging.getLogger(__name__)

BUNDLED_DIR = os.path.join(os.path.dirname(__file__), "meetings")


@dataclass
class MeetingDefinition:
    """Everything authored for one meeting type."""

    name: str
    script: Script
    participants: ParticipantRegistry
    board: dict = field(default_factory=dict)           # column -> list of item keys
    board_actions: dict = field(default_factory=dict)   # side_effect_id -> action spec


def parse_script(data: dict) -> Script:
    """Build a Script from its JSON form.

    Each segment needs "id", "speaker" and "text"; "side_effect" is optional.
    Blank (whitespace-only) values count as missing.
    """
    raw_segments = data.get("segments")
    if not isinstance(raw_segments, list):
        raise ScriptError("Script has no 'segments' list")

    segments = []
    for position, raw in enumerate(raw_segments):
        missing = [k for k in ("id", "speaker", "text") if not str(raw.get(k) or "").strip()]
        if missing:
            raise ScriptError(f"Segment {position} is missing {', '.join(missing)}")
        segments.append(Segment(
            id=str(raw["id"]),
            speaker_id=str(raw["speaker"]),
            text=raw["text"],
            side_effect_id=raw.get("side_effect") or None,
        ))
    return Script(segments=segments, title=data.get("title", ""))


def _validate_actions(script: Script, board_actions: dict) -> None:
    # Unknown side effects are tolerated at run time, but worth a warning at load
    for seg in script:
        if seg.side_effect_id and seg.side_effect_id not in board_actions:
            logger.warning("Segment %s uses side effect %r with no board action", seg.id, seg.side_effect_id)


def load_meeting(path: str) -> MeetingDefinition:
    """Load a meeting definition from a JSON file.

    A sibling <name>.cast.json may override participant voices.
    """
    with open(path) as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise ScriptError(f"Malformed script file {path}: {e}") from e

    script = parse_script(data)
    participants_data = dict(data.get("participants", {}))
    for speaker_id, override in load_cast(path).items():
        merged = dict(participants_data.get(speaker_id, {}))
        merged.update(override if isinstance(override, dict) else {"name": override})
        participants_data[speaker_id] = merged

    board_actions = data.get("board_actions", {})
    _validate_actions(script, board_actions)

    return MeetingDefinition(
        name=os.path.splitext(os.path.basename(path))[0],
        script=script,
        participants=load_participants(participants_data),
        board=data.get("board", {}),
        board_actions=board_actions,
    )


def list_bundled() -> list[str]:
    """Names of the meetings shipped with the package."""
    if not os.path.isdir(BUNDLED_DIR):
        return []
    return sorted(
        os.path.splitext(name)[0]
        for name in os.listdir(BUNDLED_DIR)
        if name.endswith(".json") and not name.endswith(".cast.json")
    )


def resolve_meeting_path(name_or_path: str) -> str:
    """Map a bundled meeting name to its file; pass real paths through."""
    if os.path.exists(name_or_path):
        return name_or_path
    bundled = os.path.join(BUNDLED_DIR, f"{name_or_path}.json")
    if os.path.exists(bundled):
        return bundled
    raise FileNotFoundError(f"No meeting script named {name_or_path!r}")
