"""Tests for the participant registry and voice assignment."""

import json

import pytest

from meeting_playback.models import Participant
from meeting_playback.voices import (
    VOICE_POOL,
    ParticipantRegistry,
    UnknownSpeakerError,
    load_cast,
    load_participants,
)


def test_require_unknown_speaker(participants):
    """require() raises UnknownSpeakerError naming the speaker."""
    with pytest.raises(UnknownSpeakerError) as exc:
        participants.require("ghost")
    assert exc.value.speaker_id == "ghost"
    assert "ghost" in str(exc.value)
    assert isinstance(exc.value, KeyError)


def test_registry_lookup(participants):
    """get/contains/len/iter work by speaker id."""
    assert participants.get("sarah").display_name == "Sarah"
    assert participants.get("ghost") is None
    assert "victor" in participants
    assert len(participants) == 3
    assert [p.id for p in participants] == ["sarah", "victor", "tom"]


def test_duplicate_participant_keeps_latest(caplog):
    """Registering the same id twice warns and keeps the latest."""
    registry = ParticipantRegistry([Participant(id="sarah", display_name="Sarah")])
    registry.add(Participant(id="sarah", display_name="Sarah J."))
    assert registry.require("sarah").display_name == "Sarah J."
    assert "registered twice" in caplog.text


def test_voice_ref_wins(participants):
    """An explicit voice_ref is used as-is."""
    assert participants.voice_for(participants.require("sarah")) == "en-GB-SoniaNeural"


def test_hash_voice_deterministic(participants):
    """Participants without a voice get a stable pick from the pool."""
    victor = participants.require("victor")
    first = participants.voice_for(victor)
    assert first in VOICE_POOL
    assert participants.voice_for(victor) == first


def test_hash_voice_avoids_claimed_voices():
    """Hash assignment skips voices other participants already use."""
    claimed = [Participant(id=f"p{i}", display_name=f"P{i}", voice_ref=v) for i, v in enumerate(VOICE_POOL[:-1])]
    registry = ParticipantRegistry(claimed + [Participant(id="newcomer", display_name="New")])
    assert registry.voice_for(registry.require("newcomer")) == VOICE_POOL[-1]


def test_load_participants_forms():
    """Dict entries and bare display-name strings are both accepted."""
    registry = load_participants({
        "sarah": {"name": "Sarah", "voice": "en-GB-SoniaNeural", "role": "Scrum Master"},
        "tom": "Tom",
        "lisa": {},
    })
    assert registry.require("sarah").role == "Scrum Master"
    assert registry.require("tom").display_name == "Tom"
    assert registry.require("lisa").display_name == "Lisa"


def test_load_cast_file(tmp_path):
    """Loads the .cast.json sidecar next to a script."""
    script = tmp_path / "standup.json"
    script.write_text("{}")
    (tmp_path / "standup.cast.json").write_text(json.dumps({"participants": {"tom": {"voice": "en-IE-EmilyNeural"}}}))
    assert load_cast(str(script)) == {"tom": {"voice": "en-IE-EmilyNeural"}}


def test_load_cast_missing(tmp_path):
    """No sidecar means no overrides."""
    assert load_cast(str(tmp_path / "standup.json")) == {}


def test_load_cast_malformed(tmp_path, caplog):
    """Malformed sidecar is ignored with a warning."""
    (tmp_path / "standup.cast.json").write_text("not json")
    assert load_cast(str(tmp_path / "standup.json")) == {}
    assert "Malformed cast file" in caplog.text
