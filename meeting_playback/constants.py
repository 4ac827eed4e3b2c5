"""All magic numbers and configuration constants."""

CACHE_PREFIX_CHARS = 50             # chars: partial cache match on the first N chars of cached text
CACHE_MANIFEST = "manifest.json"    # index file inside an audio cache directory
CACHE_DIR = "audio_cache"           # default audio cache directory
READING_DELAY_SECONDS = 2.0         # silent-turn pause when every provider fails
PLAYBACK_CHUNK_MS = 100             # ms of audio fed to the output per step (bounds pause/cancel latency)
CACHE_TIMEOUT_SECONDS = 5.0         # per-call timeout: cached clip decode
COMMERCIAL_TIMEOUT_SECONDS = 20.0   # per-call timeout: edge-tts synthesis (all retries)
LOCAL_TIMEOUT_SECONDS = 15.0        # per-call timeout: on-device synthesis
TTS_RETRY_COUNT = 3                 # max retries per TTS clip
TTS_RETRY_BASE_DELAY = 1.0          # seconds, base delay for exponential backoff
TTS_RATE = "+0%"                    # edge-tts speech rate, relative string like "-10%"
LOCAL_TTS_RATE = 180                # words per minute for on-device synthesis
TIME_SCALE = 1.0                    # NullOutput pacing: 1.0 real time, 0 instant
VERSION = "0.1.0"
