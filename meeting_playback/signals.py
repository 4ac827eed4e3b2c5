"""UI signal sinks: current speaker, transcript growth, session status."""

import logging

from meeting_playback.models import SessionStatus, TranscriptEntry

logger = logging.getLogger(__name__)


class SignalSink:
    """Receives UI-facing notifications. Default methods do nothing.

    Callbacks run synchronously on the event loop; keep them short.
    """

    def speaker_changed(self, speaker_id: str | None) -> None:
        pass

    def transcript_appended(self, entry: TranscriptEntry) -> None:
        pass

    def status_changed(self, status: SessionStatus) -> None:
        pass


class RecordingSignalSink(SignalSink):
    """Keeps every signal in order. Handy for hosts that poll, and for tests."""

    def __init__(self):
        self.events: list[tuple[str, object]] = []

    @property
    def current_speaker(self) -> str | None:
        for kind, value in reversed(self.events):
            if kind == "speaker":
                return value
        return None

    def speaker_changed(self, speaker_id):
        self.events.append(("speaker", speaker_id))

    def transcript_appended(self, entry):
        self.events.append(("transcript", entry.id))

    def status_changed(self, status):
        self.events.append(("status", status))


class FanOutSignalSink(SignalSink):
    """Forward every signal to several sinks; one failing sink never blocks the rest."""

    def __init__(self, *sinks: SignalSink):
        self.sinks = list(sinks)

    def _each(self, method: str, value) -> None:
        for sink in self.sinks:
            try:
                getattr(sink, method)(value)
            except Exception:
                logger.exception("Signal sink %r failed on %s", sink, method)

    def speaker_changed(self, speaker_id):
        self._each("speaker_changed", speaker_id)

    def transcript_appended(self, entry):
        self._each("transcript_appended", entry)

    def status_changed(self, status):
        self._each("status_changed", status)
