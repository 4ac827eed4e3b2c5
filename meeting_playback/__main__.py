"""python -m meeting_playback"""

from meeting_playback.cli import main

main()
