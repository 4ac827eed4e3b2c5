"""Shared fixtures for meeting playback tests."""

import asyncio

import pytest
from pydub import AudioSegment

from meeting_playback.models import Participant, Script, Segment
from meeting_playback.playback import AudioProvenance, NullOutput, PlaybackController
from meeting_playback.resolver import AudioProvider, AudioResolver
from meeting_playback.dispatcher import SideEffectDispatcher
from meeting_playback.sequencer import TurnSequencer
from meeting_playback.signals import RecordingSignalSink
from meeting_playback.voices import ParticipantRegistry


class FakeProvider(AudioProvider):
    """Provider with scripted behaviour; records every attempt."""

    def __init__(self, name="local", audio=None, error=None, delay=0.0, available=True, timeout=1.0):
        self.name = AudioProvenance(name)
        self.audio = audio
        self.error = error
        self.delay = delay
        self.timeout = timeout
        self._available = available
        self.calls = []

    def available(self):
        return self._available

    async def attempt(self, participant, text):
        self.calls.append((participant.id, text))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.audio


class HookOutput(NullOutput):
    """NullOutput that calls on_write(self) after every chunk."""

    def __init__(self, on_write=None):
        super().__init__(time_scale=0)
        self.on_write = on_write

    async def write(self, chunk):
        await super().write(chunk)
        if self.on_write:
            self.on_write(self)


@pytest.fixture
def clip():
    """Half a second of silence: five playback chunks."""
    return AudioSegment.silent(duration=500)


@pytest.fixture
def participants():
    return ParticipantRegistry([
        Participant(id="sarah", display_name="Sarah", voice_ref="en-GB-SoniaNeural", role="Scrum Master"),
        Participant(id="victor", display_name="Victor", role="Product Owner"),
        Participant(id="tom", display_name="Tom", voice_ref="en-US-GuyNeural"),
    ])


@pytest.fixture
def sample_script():
    """Three turns, speakers Sarah, Victor, Sarah."""
    return Script(segments=[
        Segment(id="s1", speaker_id="sarah", text="Good morning everyone."),
        Segment(id="s2", speaker_id="victor", text="Let's look at the sprint goal."),
        Segment(id="s3", speaker_id="sarah", text="Thanks Victor."),
    ])


@pytest.fixture
def make_sequencer(participants):
    """Factory: wire a sequencer around fake providers and a silent output."""
    def factory(providers=None, handlers=None, output=None, reading_delay=0.0):
        signals = RecordingSignalSink()
        controller = PlaybackController(output=output or NullOutput(time_scale=0), signals=signals)
        resolver = AudioResolver(participants, providers or [], handle_factory=controller.create_handle)
        sequencer = TurnSequencer(
            resolver,
            controller,
            dispatcher=SideEffectDispatcher(handlers),
            signals=signals,
            reading_delay=reading_delay,
        )
        return sequencer, signals
    return factory
