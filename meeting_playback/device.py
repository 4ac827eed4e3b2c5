"""Speaker output through sounddevice (PortAudio).

Imported only when a real device is wanted; text-only runs and tests never
need PortAudio installed.
"""

import asyncio
import logging

import numpy as np
import sounddevice as sd

from meeting_playback.playback import AudioOutput, PlaybackError

logger = logging.getLogger(__name__)


class SoundDeviceOutput(AudioOutput):
    """Plays 16-bit PCM on the default (or given) output device."""

    def __init__(self, device: int | str | None = None):
        self.device = device
        self._stream: sd.OutputStream | None = None
        self._channels = 1

    def open(self, audio):
        self.close()
        self._channels = audio.channels
        self._stream = sd.OutputStream(
            samplerate=audio.frame_rate,
            channels=audio.channels,
            dtype="int16",
            device=self.device,
        )
        self._stream.start()

    async def write(self, chunk):
        stream = self._stream
        if stream is None:
            raise PlaybackError("Output stream is not open")
        chunk = chunk.set_sample_width(2)
        samples = np.array(chunk.get_array_of_samples(), dtype=np.int16)
        samples = samples.reshape((-1, self._channels))
        await asyncio.to_thread(stream.write, samples)

    def close(self):
        stream, self._stream = self._stream, None
        if stream is None:
            return
        try:
            stream.stop()
            stream.close()
        except sd.PortAudioError as e:
            logger.warning("Error closing output stream: %s", e)

    def abort(self):
        stream, self._stream = self._stream, None
        if stream is None:
            return
        try:
            stream.abort()
            stream.close()
        except sd.PortAudioError as e:
            logger.warning("Error aborting output stream: %s", e)
