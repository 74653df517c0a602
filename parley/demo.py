"""Demo content: greetings, small talk and a favourite-music exchange.

Used by the CLI and as an end-to-end fixture in tests. Dialog moves, topics
and node ids are plain strings so demo transcripts round-trip through JSON.
"""

from __future__ import annotations

import random
from typing import Literal

from pydantic import BaseModel

from parley import formatters
from parley.conversation import Conversation
from parley.expander import MoveNode
from parley.goals import Frame, GoalMove, RepeatGoalMove
from parley.manager import DialogManager
from parley.models import HistoricalMove

FavMusicGenre = Literal["jazz", "rock", "metal", "calypso"]

FAV_MUSIC_GENRES: tuple[str, ...] = ("jazz", "rock", "metal", "calypso")
FIRST_NAMES: tuple[str, ...] = (
    "Gareth", "Elena", "Thrak", "Mira", "Osric", "Wren", "Tobin", "Isolde",
)

# ── Dialog moves ─────────────────────────────────────────

GREET = "greet"
MAKE_SMALL_TALK = "make_small_talk"
STATE_FEELINGS = "state_feelings"
ASK_FEELINGS = "ask_feelings"
RAW_FAV_MUSIC_GENRE = "raw_fav_music_genre"
STATE_FAV_MUSIC_GENRE = "state_fav_music_genre"
ASK_FAV_MUSIC_GENRE = "ask_fav_music_genre"

# ── Topics ───────────────────────────────────────────────

FAV_MUSIC_GENRE_TOPIC = "fav_music_genre"

# ── Node ids ─────────────────────────────────────────────

GREET_NODE = "greet"
HELLO_NODE = "hello"
HI_NODE = "hi"
BORED_NODE = "bored"
STATE_FEELINGS_NODE = "state_feelings"
ASK_FEELINGS_NODE = "ask_feelings"
RAW_FAV_MUSIC_GENRE_NODE = "raw_fav_music_genre"
STATE_FAV_MUSIC_GENRE_NODE = "state_fav_music_genre"
ASK_FAV_MUSIC_GENRE_NODE = "ask_fav_music_genre"

GREET_URGENCY = 1_000_000
GREET_TTL = 5
SMALL_TALK_REPS = 2
DEFAULT_LULL_CONTINUE_CHANCE = 0.2


class DemoCharacter(BaseModel):
    """A demo participant. Attached to a conversation as the character payload."""

    name: str
    fav_music: FavMusicGenre


def random_character(rng: random.Random, name: str | None = None) -> DemoCharacter:
    return DemoCharacter(
        name=name or rng.choice(FIRST_NAMES),
        fav_music=rng.choice(FAV_MUSIC_GENRES),
    )


# ── Node callbacks ───────────────────────────────────────


def _address_state_feelings(conversation: Conversation, rng: random.Random, hmove: HistoricalMove) -> None:
    hmove.my_obligations.address(STATE_FEELINGS)


def _ask_feelings(conversation: Conversation, rng: random.Random, hmove: HistoricalMove) -> None:
    hmove.others_obligations.push(STATE_FEELINGS, 0, 3)


def _can_state_fav_music(conversation: Conversation) -> bool:
    return (
        STATE_FAV_MUSIC_GENRE in conversation.my_state.pushed_obligations
        or conversation.topic_state.can_be_addressed(FAV_MUSIC_GENRE_TOPIC)
    )


def _can_ask_fav_music(conversation: Conversation) -> bool:
    return conversation.topic_state.can_be_introduced(FAV_MUSIC_GENRE_TOPIC)


def _ask_fav_music(conversation: Conversation, rng: random.Random, hmove: HistoricalMove) -> None:
    hmove.others_obligations.push(STATE_FAV_MUSIC_GENRE, 0, 3)
    hmove.topic_state.introduce(FAV_MUSIC_GENRE_TOPIC)


def _raw_fav_music(conversation: Conversation, rng: random.Random, parts: list[str]) -> str:
    return conversation.my_state.character.fav_music


def demo_nodes() -> dict[str, MoveNode]:
    return {
        GREET_NODE: MoveNode(
            dialog_moves={GREET},
            formatter=formatters.join_parts(suffix="."),
            parts=[[HELLO_NODE, HI_NODE]],
        ),
        HELLO_NODE: MoveNode(formatter=formatters.static("Hello")),
        HI_NODE: MoveNode(formatter=formatters.static("Hi")),
        BORED_NODE: MoveNode(
            dialog_moves={MAKE_SMALL_TALK},
            formatter=formatters.static("This conversation bores me."),
        ),
        STATE_FEELINGS_NODE: MoveNode(
            dialog_moves={STATE_FEELINGS, MAKE_SMALL_TALK},
            edit_historical_move=_address_state_feelings,
            formatter=formatters.choice([
                f"I feel {feeling}."
                for feeling in ("happy", "sad", "angry", "upset", "ecstatic", "excited")
            ]),
        ),
        ASK_FEELINGS_NODE: MoveNode(
            dialog_moves={ASK_FEELINGS, MAKE_SMALL_TALK},
            edit_historical_move=_ask_feelings,
            formatter=formatters.static("How are you feeling?"),
        ),
        RAW_FAV_MUSIC_GENRE_NODE: MoveNode(
            dialog_moves={RAW_FAV_MUSIC_GENRE},
            formatter=_raw_fav_music,
        ),
        STATE_FAV_MUSIC_GENRE_NODE: MoveNode(
            dialog_moves={STATE_FAV_MUSIC_GENRE, MAKE_SMALL_TALK},
            addressed_topics={FAV_MUSIC_GENRE_TOPIC},
            precondition=_can_state_fav_music,
            formatter=formatters.handlebars("My favorite genre of music is {{{joined}}}."),
            parts=[[RAW_FAV_MUSIC_GENRE_NODE]],
        ),
        ASK_FAV_MUSIC_GENRE_NODE: MoveNode(
            dialog_moves={ASK_FAV_MUSIC_GENRE, MAKE_SMALL_TALK},
            precondition=_can_ask_fav_music,
            edit_historical_move=_ask_fav_music,
            formatter=formatters.static("What's your favorite genre of music?"),
        ),
    }


def greeting_frame(conversation: Conversation) -> None:
    """Both participants owe a greeting; either may make small talk twice."""
    conversation.person0.push_obligation(GREET, GREET_URGENCY, GREET_TTL)
    conversation.person1.push_obligation(GREET, GREET_URGENCY, GREET_TTL)
    conversation.insert_goal(RepeatGoalMove(GoalMove(dialog_move=MAKE_SMALL_TALK), SMALL_TALK_REPS))


def demo_frames() -> list[Frame]:
    return [greeting_frame]


def demo_manager() -> DialogManager:
    return DialogManager(demo_nodes(), demo_frames())
