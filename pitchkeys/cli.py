"""Command line entry point: play a note, get a keystroke."""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Optional, Sequence

from .actions import ActionDispatcher, KeysAction, build_actions
from .capture import AudioCapture, list_input_devices, read_wav
from .config import Config, load_config
from .errors import InputUnavailableError
from .key_sender import KeySender
from .pipeline import FrameResult, PitchKeysPipeline
from .utils import setup_logging

logger = logging.getLogger(__name__)


def format_status(result: FrameResult) -> str:
    """Render the live tuner line for one frame."""
    if result.judgment is None:
        return "(no pitch)".ljust(32)
    j = result.judgment
    mark = "*" if j.in_tune else " "
    return f"{j.frequency:7.1f} Hz  {j.cents:+4.0f} cents  {j.note:>4} {mark}".ljust(32)


def print_status(result: FrameResult) -> None:
    print("\r" + format_status(result), end="", flush=True)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pitchkeys",
        description="Trigger key sequences by playing in-tune notes.",
    )
    parser.add_argument("-c", "--config", help="path to config.toml (default: ./config.toml)")
    parser.add_argument("-d", "--device", help="input device index or name")
    parser.add_argument("-i", "--input", help="analyse a WAV file instead of live input")
    parser.add_argument("--list-devices", action="store_true", help="list input devices and exit")
    parser.add_argument(
        "-n", "--dry-run", action="store_true", help="log triggers without sending keys"
    )
    parser.add_argument("-q", "--quiet", action="store_true", help="hide the live tuner line")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    parser.add_argument("--log-file", help="also write the log to this file")
    return parser


def _device_arg(value: Optional[str]):
    if value is None:
        return None
    return int(value) if value.isdigit() else value


def build_dispatcher(config: Config, dry_run: bool) -> ActionDispatcher:
    actions = build_actions(config.note_map, dry_run=dry_run)
    sequences = [a.sequence for a in actions.values() if isinstance(a, KeysAction)]
    if sequences:
        sender = KeySender(
            sequences, send_enabled=not dry_run, backend="none" if dry_run else None
        )
        logger.info("Key backend: %s", sender.backend)
        for action in actions.values():
            if isinstance(action, KeysAction):
                action.sender = sender
    for note, action in sorted(actions.items()):
        logger.info("Mapping %s => %s", note, action.describe())
    return ActionDispatcher(actions)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging("DEBUG" if args.verbose else "INFO", args.log_file)

    if args.list_devices:
        try:
            devices = list_input_devices()
        except Exception as exc:
            logger.error("Cannot query audio devices: %s", exc)
            return 1
        for idx, name in devices:
            print(f"{idx:3d}  {name}")
        return 0

    config = load_config(args.config)
    dispatcher = build_dispatcher(config, args.dry_run)
    on_frame = None if args.quiet else print_status

    capture: Optional[AudioCapture] = None
    try:
        if args.input:
            sample_rate, source = read_wav(args.input)
        else:
            device = _device_arg(args.device) if args.device is not None else config.device
            capture = AudioCapture(
                device,
                hp_cutoff=config.hp_cutoff,
                channel_seconds=config.channel_seconds,
            )
            sample_rate = capture.sample_rate
            source = capture.start()

        pipeline = PitchKeysPipeline(config, sample_rate, dispatcher, on_frame=on_frame)
        logger.info("Starting pitchkeys (Ctrl+C to quit)")
        pipeline.run(source)
        if capture is not None and not capture.stopping:
            raise InputUnavailableError("audio stream ended")
        if not args.quiet:
            print()
        logger.info(
            "Analysed %d frames, %d triggers", pipeline.frame_count, pipeline.trigger_count
        )
    except KeyboardInterrupt:
        print("\nExiting.", flush=True)
    except InputUnavailableError as exc:
        if not args.quiet:
            print()
        logger.error("%s", exc)
        return 1
    finally:
        if capture is not None:
            capture.stop()
    return 0


if __name__ == "__main__":
    sys.exit(main())
