"""Turn sequencer: plays a script turn by turn.

For each segment, in order: wait while paused, append the transcript entry,
resolve and play audio (or wait a reading delay when there is none), then
fire the segment's side effect. Cancellation is checked after every
suspension point and wins over any in-flight work.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Callable

from meeting_playback.config import PlaybackConfig
from meeting_playback.constants import READING_DELAY_SECONDS
from meeting_playback.dispatcher import SideEffectDispatcher
from meeting_playback.models import MeetingReport, PlaybackSession, Script, SessionStatus
from meeting_playback.playback import AudioOutput, NullOutput, PlaybackController, PlaybackError
from meeting_playback.resolver import AudioResolver, default_providers
from meeting_playback.signals import SignalSink
from meeting_playback.transcript import TranscriptRecorder
from meeting_playback.voices import ParticipantRegistry, UnknownSpeakerError

logger = logging.getLogger(__name__)


class AlreadyRunningError(RuntimeError):
    """start() was called while this sequencer's session is still live."""


class InvalidStateError(RuntimeError):
    """pause()/resume() called in a state that does not allow it."""


@dataclass
class MeetingCallbacks:
    on_complete: Callable[[MeetingReport], None] | None = None   # completed runs only
    on_close: Callable[[MeetingReport], None] | None = None      # cancelled runs only


class _Run:
    """State owned by one start() call. A cancelled run keeps it while it unwinds."""

    def __init__(self, session: PlaybackSession):
        self.session = session
        self.resumed = asyncio.Event()
        self.resumed.set()
        self.cancelled = asyncio.Event()
        self.report: MeetingReport | None = None


class TurnSequencer:
    """Drives one meeting at a time. Create one per meeting view."""

    def __init__(
        self,
        resolver: AudioResolver,
        controller: PlaybackController,
        dispatcher: SideEffectDispatcher | None = None,
        recorder: TranscriptRecorder | None = None,
        signals: SignalSink | None = None,
        reading_delay: float = READING_DELAY_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.resolver = resolver
        self.controller = controller
        self.dispatcher = dispatcher if dispatcher is not None else SideEffectDispatcher()
        self.recorder = recorder if recorder is not None else TranscriptRecorder()
        self.signals = signals if signals is not None else SignalSink()
        self.reading_delay = reading_delay
        self.clock = clock
        self._run: _Run | None = None
        self._task: asyncio.Task | None = None

    @property
    def session(self) -> PlaybackSession | None:
        return self._run.session if self._run else None

    @property
    def status(self) -> SessionStatus:
        return self.session.status if self.session else SessionStatus.IDLE

    def _set_status(self, session: PlaybackSession, status: SessionStatus) -> None:
        session.status = status
        self.signals.status_changed(status)

    # --- control surface ---

    def start(self, script: Script, participants: ParticipantRegistry,
              callbacks: MeetingCallbacks | None = None) -> asyncio.Task:
        """Begin at segment 0. Must be called from a running event loop.

        Returns the task driving the meeting; its result is the MeetingReport.
        A cancelled meeting can be restarted at once, even while its task is
        still unwinding.
        """
        if self.session is not None and not self.session.status.terminal:
            raise AlreadyRunningError("A meeting is already running on this sequencer")

        self.recorder.clear()
        self.dispatcher.reset()
        run = _Run(PlaybackSession(started_at=self.clock()))
        self._run = run
        self.recorder.begin()
        self._set_status(run.session, SessionStatus.RUNNING)
        logger.info("Meeting started: %d segments", len(script))

        loop = asyncio.get_running_loop()
        self._task = loop.create_task(self._drive(run, script, participants, callbacks or MeetingCallbacks()))
        return self._task

    async def run(self, script: Script, participants: ParticipantRegistry,
                  callbacks: MeetingCallbacks | None = None) -> MeetingReport:
        return await self.start(script, participants, callbacks)

    def pause(self) -> None:
        if self.status is not SessionStatus.RUNNING:
            raise InvalidStateError(f"Cannot pause while {self.status.value}")
        self._run.resumed.clear()
        self.controller.pause()
        self._set_status(self.session, SessionStatus.PAUSED)
        logger.info("Meeting paused at segment %d", self.session.current_segment_index)

    def resume(self) -> None:
        if self.status is not SessionStatus.PAUSED:
            raise InvalidStateError(f"Cannot resume while {self.status.value}")
        self._set_status(self.session, SessionStatus.RUNNING)
        self._run.resumed.set()
        self.controller.resume()
        logger.info("Meeting resumed at segment %d", self.session.current_segment_index)

    def cancel(self) -> None:
        """Stop everything now. No-op if there is no live session.

        The partial report is taken here, so a restart cannot leak into it.
        """
        run = self._run
        if run is None or run.session.status.terminal:
            return
        session = run.session
        session.cancelled = True
        self.controller.stop_all()
        self.recorder.end()
        run.cancelled.set()
        run.resumed.set()
        self._set_status(session, SessionStatus.CANCELLED)
        run.report = self._report(session, cancelled=True)
        logger.info("Meeting cancelled at segment %d", session.current_segment_index)

    # --- the loop ---

    async def _drive(self, run: _Run, script: Script, participants: ParticipantRegistry,
                     callbacks: MeetingCallbacks) -> MeetingReport:
        session = run.session
        try:
            while session.current_segment_index < len(script):
                segment = script[session.current_segment_index]
                await self._wait_while_paused(run)
                if session.cancelled:
                    break

                participant = participants.require(segment.speaker_id)
                entry = self.recorder.record(segment, participant)
                self.signals.transcript_appended(entry)
                logger.debug("Turn %s: %s", segment.id, participant.display_name)
                if session.cancelled:
                    break

                await self._speak(run, segment)
                # A silent turn's reading delay runs through a pause; its side effect does not
                await self._wait_while_paused(run)
                if session.cancelled:
                    break

                if segment.side_effect_id:
                    self.dispatcher.dispatch(segment.side_effect_id, segment.id)
                session.current_segment_index += 1
        except UnknownSpeakerError:
            logger.error("Meeting aborted at segment %d: unknown speaker", session.current_segment_index)
            self._fail(session)
            raise
        except asyncio.CancelledError:
            # The task itself was cancelled, e.g. at event loop shutdown
            if run is self._run:
                self.cancel()
            raise
        except Exception as e:
            logger.error("Meeting aborted at segment %d: %s", session.current_segment_index, e)
            self._fail(session)
            raise
        finally:
            # A cancelled run that was restarted no longer owns the shared parts
            if run is self._run:
                self.recorder.end()
                self.controller.stop_all()

        if session.cancelled:
            if callbacks.on_close:
                callbacks.on_close(run.report)
            return run.report

        self._set_status(session, SessionStatus.COMPLETED)
        report = self._report(session, cancelled=False)
        logger.info("Meeting completed in %.1fs", report.duration_seconds)
        if callbacks.on_complete:
            callbacks.on_complete(report)
        return report

    def _fail(self, session: PlaybackSession) -> None:
        if not session.status.terminal:
            self._set_status(session, SessionStatus.FAILED)

    async def _speak(self, run: _Run, segment) -> None:
        session = run.session
        finished, handle = await self._unless_cancelled(
            run, self.resolver.resolve(segment.speaker_id, segment.text)
        )
        if not finished:
            return
        if session.cancelled:
            if handle is not None:
                self.controller.release(handle)
            return
        if handle is None:
            await self._reading_pause(run)
            return

        # A pause requested during synthesis holds the clip unplayed until resume
        await self._wait_while_paused(run)
        if session.cancelled:
            return

        session.active_audio_handle = handle
        try:
            await self.controller.play(handle)
        except PlaybackError as e:
            # No retry down the chain: the clip may already have been partly heard
            logger.warning("Playback failed for %s: %s, text-only turn", segment.id, e)
            await self._reading_pause(run)
        finally:
            session.active_audio_handle = None

    async def _wait_while_paused(self, run: _Run) -> None:
        while run.session.status is SessionStatus.PAUSED and not run.session.cancelled:
            await run.resumed.wait()

    async def _reading_pause(self, run: _Run) -> None:
        try:
            await asyncio.wait_for(run.cancelled.wait(), timeout=self.reading_delay)
        except asyncio.TimeoutError:
            pass

    async def _unless_cancelled(self, run: _Run, coro):
        """Run coro unless cancel() fires first. Returns (finished, result)."""
        work = asyncio.ensure_future(coro)
        cancelled = asyncio.ensure_future(run.cancelled.wait())
        try:
            done, _ = await asyncio.wait({work, cancelled}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            work.cancel()
            raise
        finally:
            cancelled.cancel()

        if work in done:
            return True, work.result()
        work.cancel()
        return False, None

    def _report(self, session: PlaybackSession, cancelled: bool) -> MeetingReport:
        return MeetingReport(
            transcript=list(self.recorder.all()),
            duration_seconds=round(self.clock() - session.started_at, 1),
            cancelled=cancelled,
            side_effects=list(self.dispatcher.results),
        )


def build_sequencer(
    participants: ParticipantRegistry,
    config: PlaybackConfig | None = None,
    output: AudioOutput | None = None,
    signals: SignalSink | None = None,
    handlers: dict | None = None,
    text_only: bool = False,
) -> TurnSequencer:
    """Wire the default provider chain, controller and dispatcher for one meeting.

    text_only leaves the provider chain empty, so every turn takes the
    reading delay instead of audio.
    """
    config = config or PlaybackConfig()
    signals = signals or SignalSink()
    if output is None:
        output = NullOutput(time_scale=config.time_scale)
    controller = PlaybackController(output=output, signals=signals, chunk_ms=config.chunk_ms)
    if text_only:
        providers = []
    else:
        providers = default_providers(participants, config.cache_dir, config.commercial_enabled,
                                      rate=config.tts_rate)
    resolver = AudioResolver(participants, providers, handle_factory=controller.create_handle)
    return TurnSequencer(
        resolver,
        controller,
        dispatcher=SideEffectDispatcher(handlers),
        signals=signals,
        reading_delay=config.reading_delay_seconds,
    )
