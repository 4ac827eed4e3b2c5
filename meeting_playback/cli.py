"""CLI interface: play scripted meetings, pre-generate their audio cache."""

import argparse
import asyncio
import logging
import signal
import sys

from meeting_playback.board import MeetingBoard, board_handlers
from meeting_playback.cache import cache_status, generate_cache
from meeting_playback.config import load_config
from meeting_playback.constants import VERSION
from meeting_playback.models import ScriptError
from meeting_playback.playback import NullOutput
from meeting_playback.script import MeetingDefinition, list_bundled, load_meeting, resolve_meeting_path
from meeting_playback.sequencer import InvalidStateError, build_sequencer
from meeting_playback.signals import SignalSink
from meeting_playback.transcript import write_report
from meeting_playback.voices import VOICE_POOL, UnknownSpeakerError


class ConsoleSignalSink(SignalSink):
    """Prints each turn as it starts."""

    def transcript_appended(self, entry):
        print(f"{entry.speaker_name}: {entry.text}")

    def status_changed(self, status):
        if status.value in ("paused", "cancelled"):
            print(f"  [{status.value}]")


def _load(name_or_path: str) -> MeetingDefinition:
    """Load a bundled meeting or script file, exit on error."""
    try:
        return load_meeting(resolve_meeting_path(name_or_path))
    except FileNotFoundError:
        print(f"Error: Meeting not found: {name_or_path}", file=sys.stderr)
        print(f"Bundled meetings: {', '.join(list_bundled()) or 'none'}", file=sys.stderr)
        raise SystemExit(1)
    except ScriptError as e:
        print(f"Error: {e}", file=sys.stderr)
        raise SystemExit(1)


def _printing_handlers(handlers: dict) -> dict:
    """Wrap board handlers so each change is echoed."""
    def wrap(handler):
        def run():
            change = handler()
            target = change.get("to")
            if change["action"] == "slice":
                print(f"  [board] {change['item']} sliced into {change['as']}")
            else:
                print(f"  [board] {change['item']} → {target}")
            return change
        return run
    return {key: wrap(handler) for key, handler in handlers.items()}


def _on_control(sequencer) -> None:
    """Handle one line from stdin: p(ause), r(esume), q(uit)."""
    line = sys.stdin.readline().strip().lower()
    try:
        if line == "p":
            sequencer.pause()
        elif line == "r":
            sequencer.resume()
        elif line == "q":
            sequencer.cancel()
    except InvalidStateError as e:
        print(f"  [{e}]")


async def _play_meeting(sequencer, definition: MeetingDefinition, interactive: bool):
    loop = asyncio.get_running_loop()
    task = sequencer.start(definition.script, definition.participants)

    try:
        loop.add_signal_handler(signal.SIGINT, sequencer.cancel)
    except NotImplementedError:
        pass  # Windows: Ctrl-C raises KeyboardInterrupt instead
    if interactive:
        loop.add_reader(sys.stdin, _on_control, sequencer)

    try:
        return await task
    finally:
        if interactive:
            loop.remove_reader(sys.stdin)
        try:
            loop.remove_signal_handler(signal.SIGINT)
        except NotImplementedError:
            pass


def cmd_play(args):
    """Play a meeting in the terminal."""
    definition = _load(args.meeting)
    config = load_config(args.config)

    if args.speed <= 0:
        print(f"Error: --speed must be positive: {args.speed}", file=sys.stderr)
        raise SystemExit(1)
    config.reading_delay_seconds /= args.speed

    if args.no_audio:
        output = NullOutput(time_scale=1.0 / args.speed)
    else:
        from meeting_playback.device import SoundDeviceOutput
        output = SoundDeviceOutput(device=config.audio_device)

    board = MeetingBoard(definition.board)
    sequencer = build_sequencer(
        definition.participants,
        config=config,
        output=output,
        signals=ConsoleSignalSink(),
        handlers=_printing_handlers(board_handlers(board, definition.board_actions)),
        text_only=args.no_audio,
    )

    interactive = sys.stdin.isatty()
    title = definition.script.title or definition.name
    print(f"{title} ({len(definition.script)} turns)")
    if interactive:
        print("Controls: p + Enter to pause, r to resume, q to quit.\n")

    try:
        report = asyncio.run(_play_meeting(sequencer, definition, interactive))
    except UnknownSpeakerError as e:
        print(f"Error: {e}", file=sys.stderr)
        raise SystemExit(1)

    state = "Cancelled" if report.cancelled else "Done"
    print(f"\n{state}: {len(report.transcript)}/{len(definition.script)} turns in {report.duration_seconds}s")
    if board.history:
        print("Board:")
        for column, items in board.columns.items():
            print(f"  {column:<16} {', '.join(items) or '-'}")

    if args.transcript:
        path = write_report(report, args.transcript, title=title)
        print(f"Transcript written to {path}")


def cmd_cache(args):
    """Pre-generate the audio cache for a meeting."""
    definition = _load(args.meeting)
    config = load_config(args.config)
    cache_dir = args.cache_dir or config.cache_dir

    print(f"Generating audio for {len(definition.script)} segments into {cache_dir}/")
    try:
        paths = asyncio.run(generate_cache(
            definition.script, definition.participants, cache_dir,
            rate=config.tts_rate, force=args.force,
        ))
    except UnknownSpeakerError as e:
        print(f"Error: {e}", file=sys.stderr)
        raise SystemExit(1)
    except Exception as e:
        print(f"Error: Audio generation failed: {e}", file=sys.stderr)
        print("Re-run the same command to resume; finished clips are kept.", file=sys.stderr)
        raise SystemExit(1)
    print(f"Done: {len(paths)} clips cached")


def cmd_status(args):
    """Show which segments the audio cache covers."""
    definition = _load(args.meeting)
    config = load_config(args.config)
    cache_dir = args.cache_dir or config.cache_dir

    status = cache_status(definition.script, definition.participants, cache_dir)
    cached = sum(1 for hit in status.values() if hit)
    print(f"Meeting: {definition.name}")
    print(f"Cache:   {cache_dir} ({cached}/{len(status)} segments)")
    print(f"Edge TTS: {'enabled' if config.commercial_enabled else 'disabled'}")
    print("Segments:")
    for seg in definition.script:
        marker = "[done]" if status[seg.id] else "[----]"
        effect = f"  → {seg.side_effect_id}" if seg.side_effect_id else ""
        print(f"  {marker} {seg.id:<22} {seg.speaker_id:<10}{effect}")


def cmd_list(args):
    """List bundled meetings."""
    names = list_bundled()
    if not names:
        print("No meetings found.")
        return
    print("Meetings:")
    for name in names:
        definition = load_meeting(resolve_meeting_path(name))
        print(f"  {name:<18} {len(definition.script):>3} turns  {definition.script.title}")


def cmd_voices(args):
    """List available voices."""
    filter_str = args.filter.lower() if args.filter else None
    voices = VOICE_POOL
    if filter_str:
        voices = [v for v in voices if filter_str in v.lower()]
    if not voices:
        print("No matching voices found.")
        return
    print("Available voices:")
    for v in voices:
        print(f"  {v}")


def main():
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="meeting-playback",
        description="Meeting Playback — play scripted Agile meetings with synthetic team voices",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {VERSION}")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    parser.add_argument("--config", help="Path to a JSON settings file")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # play
    play_parser = subparsers.add_parser("play", help="Play a meeting")
    play_parser.add_argument("meeting", help="Bundled meeting name or script path")
    play_parser.add_argument("--no-audio", action="store_true", help="Text only, no audio providers or device")
    play_parser.add_argument("--speed", type=float, default=1.0, help="Pacing multiplier for text-only turns")
    play_parser.add_argument("--transcript", help="Write the meeting report (JSON) to this path")
    play_parser.set_defaults(func=cmd_play)

    # cache
    cache_parser = subparsers.add_parser("cache", help="Pre-generate audio for a meeting")
    cache_parser.add_argument("meeting", help="Bundled meeting name or script path")
    cache_parser.add_argument("--cache-dir", help="Cache directory (default from config)")
    cache_parser.add_argument("--force", action="store_true", help="Regenerate existing clips")
    cache_parser.set_defaults(func=cmd_cache)

    # status
    status_parser = subparsers.add_parser("status", help="Show audio cache coverage")
    status_parser.add_argument("meeting", help="Bundled meeting name or script path")
    status_parser.add_argument("--cache-dir", help="Cache directory (default from config)")
    status_parser.set_defaults(func=cmd_status)

    # list
    list_parser = subparsers.add_parser("list", help="List bundled meetings")
    list_parser.set_defaults(func=cmd_list)

    # voices
    voices_parser = subparsers.add_parser("voices", help="List available voices")
    voices_parser.add_argument("--filter", help="Filter voices by substring")
    voices_parser.set_defaults(func=cmd_voices)

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="[%(asctime)s] [%(name)s] %(message)s",
        datefmt="%H:%M:%S",
    )

    if not args.command:
        parser.print_help()
        return

    args.func(args)
