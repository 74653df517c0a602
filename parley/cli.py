"""parley: run a demo conversation between two random characters."""

from __future__ import annotations

import argparse
import logging
import random
import sys
from pathlib import Path

from parley.config import Settings, load_settings
from parley.conversation import Conversation
from parley.demo import MAKE_SMALL_TALK, demo_manager, random_character
from parley.models import Speaker
from parley.storage import TranscriptStorage

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="parley", description="Simulate a two-person conversation")
    parser.add_argument("--steps", type=int, default=None,
                        help="Maximum number of steps (default: PARLEY_MAX_STEPS)")
    parser.add_argument("--lull-chance", type=float, default=None,
                        help="Chance a lull is continued (default: PARLEY_LULL_CONTINUE_CHANCE)")
    parser.add_argument("--seed", type=int, default=None,
                        help="Seed for a reproducible run (default: PARLEY_SEED)")
    parser.add_argument("--names", nargs=2, metavar=("INITIATOR", "RECIPIENT"), default=None,
                        help="Names of the two participants (default: random)")
    parser.add_argument("--save", metavar="SLUG", default=None,
                        help="Save the transcript under this slug")
    parser.add_argument("--data-dir", type=Path, default=None,
                        help="Transcript storage directory (default: PARLEY_DATA_DIR)")
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="Log every step")
    return parser


def format_transcript(conversation: Conversation) -> list[str]:
    names = {
        Speaker.PERSON0: conversation.person0.character.name,
        Speaker.PERSON1: conversation.person1.character.name,
    }
    return [f"{names[hmove.speaker]}: {hmove.utterance}" for hmove in conversation.history]


def main(argv: list[str] | None = None, settings: Settings | None = None) -> int:
    args = build_parser().parse_args(argv)
    if settings is None:
        try:
            settings = load_settings()
        except ValueError as e:
            print(f"Invalid settings: {e}", file=sys.stderr)
            return 2

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else settings.log_level,
        format="%(levelname)s %(name)s: %(message)s",
    )

    seed = args.seed if args.seed is not None else settings.seed
    max_steps = args.steps if args.steps is not None else settings.max_steps
    lull_chance = args.lull_chance if args.lull_chance is not None else settings.lull_continue_chance
    if max_steps <= 0:
        print("--steps must be positive", file=sys.stderr)
        return 2

    rng = random.Random(seed)
    names = args.names or (None, None)
    initiator = random_character(rng, names[0])
    recipient = random_character(rng, names[1])

    manager = demo_manager()
    try:
        conversation = manager.new_conversation(Speaker.PERSON0, lull_chance, initiator, recipient)
    except ValueError as e:
        print(str(e), file=sys.stderr)
        return 2
    steps = manager.run_conversation(conversation, MAKE_SMALL_TALK, max_steps=max_steps, rng=rng)
    logger.info("run finished steps=%d done=%s", steps, conversation.done)

    for line in format_transcript(conversation):
        print(line)

    if args.save:
        storage = TranscriptStorage(args.data_dir or settings.data_dir)
        storage.save_transcript(args.save, conversation)

    return 0


if __name__ == "__main__":
    sys.exit(main())
