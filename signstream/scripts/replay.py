#!/usr/bin/env python3
"""
replay.py - run recorded hand landmarks through a SignStream game session

Usage:
    python -m signstream.scripts.replay recording.jsonl
    python -m signstream.scripts.replay recording.jsonl --mode actions
    python -m signstream.scripts.replay recording.jsonl --mode letters --targets HI --fps 30
    python -m signstream.scripts.replay - --config /path/to/config.json < recording.jsonl

Input is JSON lines, one frame per line: a list of hands, each hand a list
of 21 [x, y, z] points. Blank lines are skipped. One output line is printed
per frame with the labels recognized for it.
"""

import argparse
import json
import logging
import sys
from typing import Iterator, List, Optional, TextIO

from signstream.app.game_session import GameSession, MODES, MODE_ACTIONS, MODE_LETTERS
from signstream.config.config_manager import Config

logger = logging.getLogger(__name__)


class RecordingError(ValueError):
    """A line of the recording could not be parsed."""


def read_frames(stream: TextIO) -> Iterator[list]:
    """Yield one list of hands per non-blank line."""
    for line_no, line in enumerate(stream, start=1):
        line = line.strip()
        if not line:
            continue
        try:
            frame = json.loads(line)
        except json.JSONDecodeError as e:
            raise RecordingError(f"line {line_no}: {e}") from e
        if not isinstance(frame, list):
            raise RecordingError(f"line {line_no}: expected a list of hands")
        yield frame


def parse_targets(text: str, mode: str) -> List[str]:
    """Letters mode splits into letters; actions and animals take comma separated words."""
    text = text.upper().strip()
    if not text:
        return []
    if mode == MODE_LETTERS:
        return [ch for ch in text if ch.isalpha()]
    return [word.strip() for word in text.split(',') if word.strip()]


def format_result(index: int, result, mode: str) -> str:
    if mode == MODE_ACTIONS:
        detail = f"action={result.action}"
    else:
        detail = "labels=" + (",".join(result.static_labels) or "-")
    line = f"{index:5d} hands={len(result.hands)} {detail}"
    if result.dropped_hands:
        line += f" dropped={result.dropped_hands}"
    if result.hit:
        line += " HIT"
    return line


def replay(stream: TextIO, session: GameSession, fps: float = 30.0, out: Optional[TextIO] = None) -> int:
    """Feed every frame through the session. Returns the number of frames."""
    out = out or sys.stdout
    dt = 1.0 / fps
    count = 0
    for i, frame in enumerate(read_frames(stream)):
        result = session.process_frame(frame, now=i * dt)
        print(format_result(i, result, session.mode), file=out)
        count += 1
    return count


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='Replay recorded hand landmarks through the SignStream recognizers',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__.split('Usage:')[1] if 'Usage:' in __doc__ else ''
    )
    parser.add_argument('recording', help='JSON-lines recording, or - for stdin')
    parser.add_argument('--mode', choices=MODES, default=MODE_LETTERS,
                        help='Game mode (default: letters)')
    parser.add_argument('--targets', type=str, default='',
                        help='Targets: a phrase in letters mode, comma separated words otherwise')
    parser.add_argument('--fps', type=float, default=30.0,
                        help='Frame rate used to timestamp frames (default: 30)')
    parser.add_argument('--config', type=str, default=None,
                        help='Path to config.json (default: bundled config)')
    parser.add_argument('--verbose', '-v', action='store_true',
                        help='Enable debug logging')
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.fps <= 0:
        print("Error: --fps must be positive", file=sys.stderr)
        return 1

    cfg = Config(args.config) if args.config else Config()

    targets = parse_targets(args.targets, args.mode)

    session = GameSession(mode=args.mode, targets=targets, cfg=cfg)
    try:
        if args.recording == '-':
            count = replay(sys.stdin, session, fps=args.fps)
        else:
            with open(args.recording, 'r') as f:
                count = replay(f, session, fps=args.fps)
    except OSError as e:
        print(f"Error: cannot read {args.recording}: {e}", file=sys.stderr)
        return 1
    except RecordingError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        session.end()

    if targets:
        print(f"score={session.score.score} hits={session.score.hits} streak={session.score.streak}")
    logger.info("replayed %d frames", count)
    return 0


if __name__ == '__main__':
    sys.exit(main())
