"""Playback controller: one active utterance, in-place pause, stop-all.

Audio is fed to an AudioOutput in PLAYBACK_CHUNK_MS slices. Pausing stops
feeding and keeps the position, so resume continues the same clip; stopping
abandons it. Every handle is issued by the controller, which keeps a registry
of the handles it has not yet released so stop_all() can sweep them.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from enum import Enum

from pydub import AudioSegment

from meeting_playback.constants import PLAYBACK_CHUNK_MS, TIME_SCALE
from meeting_playback.signals import SignalSink

logger = logging.getLogger(__name__)


class PlaybackError(RuntimeError):
    """The output device could not play a clip."""


class AudioProvenance(str, Enum):
    CACHED = "cached"
    COMMERCIAL = "commercial"
    LOCAL = "local"


class HandleState(str, Enum):
    READY = "ready"
    PLAYING = "playing"
    PAUSED = "paused"
    STOPPED = "stopped"
    FINISHED = "finished"


class AudioHandle:
    """A playable clip plus its provenance and playback position."""

    def __init__(self, audio: AudioSegment, provenance: AudioProvenance | str, speaker_id: str = "", text: str = ""):
        self.audio = audio
        self.provenance = AudioProvenance(provenance)
        self.speaker_id = speaker_id
        self.text = text
        self.position_ms = 0
        self.state = HandleState.READY
        self._unpaused = asyncio.Event()
        self._unpaused.set()
        self._done = asyncio.Event()

    def __repr__(self) -> str:
        return (
            f"AudioHandle({self.provenance.value}, speaker={self.speaker_id!r}, "
            f"{self.position_ms}/{self.duration_ms}ms, {self.state.value})"
        )

    @property
    def duration_ms(self) -> int:
        return len(self.audio)

    @property
    def released(self) -> bool:
        return self.state in (HandleState.STOPPED, HandleState.FINISHED)

    def pause(self) -> bool:
        if self.state is not HandleState.PLAYING:
            return False
        self.state = HandleState.PAUSED
        self._unpaused.clear()
        return True

    def resume(self) -> bool:
        if self.state is not HandleState.PAUSED:
            return False
        self.state = HandleState.PLAYING
        self._unpaused.set()
        return True

    def stop(self) -> None:
        if self.released:
            return
        self.state = HandleState.STOPPED
        self._unpaused.set()
        self._done.set()

    def finish(self) -> None:
        if self.released:
            return
        self.state = HandleState.FINISHED
        self._done.set()

    async def wait_unpaused(self) -> None:
        await self._unpaused.wait()

    async def wait(self) -> None:
        """Wait until the clip finishes or is stopped."""
        await self._done.wait()


class AudioOutput(ABC):
    """Where PCM goes. One clip is open at a time."""

    @abstractmethod
    def open(self, audio: AudioSegment) -> None:
        """Prepare the device for a clip's format. Raises on device errors."""
        ...

    @abstractmethod
    async def write(self, chunk: AudioSegment) -> None:
        """Play one slice; returns once the device has accepted it."""
        ...

    @abstractmethod
    def close(self) -> None:
        """Release the device after a clip ends."""
        ...

    def abort(self) -> None:
        """Drop buffered audio immediately."""
        self.close()


class NullOutput(AudioOutput):
    """Discards audio but paces it in (scaled) real time.

    time_scale=0 plays instantly; used for --no-audio and tests.
    """

    def __init__(self, time_scale: float = TIME_SCALE):
        self.time_scale = time_scale
        self.written_ms = 0
        self.opened = 0

    def open(self, audio):
        self.opened += 1

    async def write(self, chunk):
        self.written_ms += len(chunk)
        await asyncio.sleep(len(chunk) / 1000 * self.time_scale)

    def close(self):
        return


class PlaybackController:
    """Owns the single active clip and every handle it has issued."""

    def __init__(self, output: AudioOutput | None = None, signals: SignalSink | None = None,
                 chunk_ms: int = PLAYBACK_CHUNK_MS):
        self.output = output if output is not None else NullOutput()
        self.signals = signals if signals is not None else SignalSink()
        self.chunk_ms = chunk_ms
        self._issued: list[AudioHandle] = []
        self._active: AudioHandle | None = None

    @property
    def active_handle(self) -> AudioHandle | None:
        return self._active

    @property
    def issued_handles(self) -> tuple[AudioHandle, ...]:
        return tuple(self._issued)

    def create_handle(self, audio: AudioSegment, provenance: AudioProvenance | str,
                      speaker_id: str = "", text: str = "") -> AudioHandle:
        """The only way to make a playable handle."""
        handle = AudioHandle(audio, provenance, speaker_id=speaker_id, text=text)
        self._issued.append(handle)
        return handle

    def _discard(self, handle: AudioHandle) -> None:
        if handle in self._issued:
            self._issued.remove(handle)

    async def play(self, handle: AudioHandle) -> bool:
        """Play a clip to the end.

        Returns True when it ended naturally, False when it was stopped.
        Raises PlaybackError if the device fails; the handle is released.
        """
        if handle not in self._issued or handle.released:
            raise ValueError(f"{handle!r} was not issued by this controller or is already released")

        self.stop()
        self._active = handle
        try:
            self.output.open(handle.audio)
        except Exception as e:
            self._active = None
            handle.stop()
            self._discard(handle)
            raise PlaybackError(f"Could not start playback: {e}") from e

        handle.state = HandleState.PLAYING
        self.signals.speaker_changed(handle.speaker_id)
        logger.debug("Playing %r", handle)

        natural = False
        try:
            while not handle.released:
                if handle.state is HandleState.PAUSED:
                    await handle.wait_unpaused()
                    continue
                if handle.position_ms >= handle.duration_ms:
                    natural = True
                    break
                chunk = handle.audio[handle.position_ms:handle.position_ms + self.chunk_ms]
                try:
                    await self.output.write(chunk)
                except Exception as e:
                    if handle.released:
                        break
                    raise PlaybackError(f"Playback failed at {handle.position_ms}ms: {e}") from e
                handle.position_ms += len(chunk)
        finally:
            if self._active is handle:
                self._active = None
                if natural:
                    handle.finish()
                else:
                    handle.stop()
                self.output.close()
                self.signals.speaker_changed(None)
            self._discard(handle)

        return natural

    def pause(self) -> None:
        """Pause the active clip in place. No-op when nothing is playing."""
        if self._active is not None and self._active.pause():
            self.signals.speaker_changed(None)

    def resume(self) -> None:
        """Continue the paused clip from where it stopped. No-op otherwise."""
        if self._active is not None and self._active.resume():
            self.signals.speaker_changed(self._active.speaker_id)

    @property
    def paused(self) -> bool:
        return self._active is not None and self._active.state is HandleState.PAUSED

    def stop(self) -> None:
        """Stop the active clip, if any."""
        handle, self._active = self._active, None
        if handle is None:
            return
        handle.stop()
        self._discard(handle)
        try:
            self.output.abort()
        except Exception:
            logger.exception("Output abort failed")
        self.signals.speaker_changed(None)

    def release(self, handle: AudioHandle) -> None:
        """Drop a handle that will never be played."""
        if handle is self._active:
            self.stop()
            return
        handle.stop()
        self._discard(handle)

    def stop_all(self) -> None:
        """Stop the active clip and every other handle this controller issued.

        Safe to call at any time, including when idle.
        """
        self.stop()
        swept = 0
        for handle in list(self._issued):
            if not handle.released:
                handle.stop()
                swept += 1
        self._issued.clear()
        if swept:
            logger.debug("stop_all released %d idle handle(s)", swept)
