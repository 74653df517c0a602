"""Core value types for conversation bookkeeping.

The conversation state, the expander and the goal engine all exchange these
types. Pydantic validates them at construction and lets history be dumped to
and reloaded from JSON.

Dialog moves and topics are opaque: any hashable value works. Transcripts only
round-trip through JSON when they are JSON-friendly (strings, ints).
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

DialogMove = Any  # any hashable value
Topic = Any  # any hashable value


class Speaker(str, Enum):
    """One of the two conversation participants.

    Which character is person 0 and which is person 1 is left to the caller.
    """

    PERSON0 = "person0"
    PERSON1 = "person1"

    @property
    def other(self) -> Speaker:
        return Speaker.PERSON1 if self == Speaker.PERSON0 else Speaker.PERSON0

    def __invert__(self) -> Speaker:
        return self.other


class TopicMetadata(BaseModel):
    """How often one participant introduced or addressed a topic."""

    times_introduced: int = Field(default=0, ge=0)
    times_addressed: int = Field(default=0, ge=0)

    def introduce(self) -> None:
        self.times_introduced += 1

    def address(self) -> None:
        self.times_addressed += 1


class PushedObligationMetadata(BaseModel):
    """A dialog move one participant still owes.

    ``time_to_live`` is measured in conversation steps: an obligation with a
    TTL of 3 survives three more steps and expires on the fourth.
    """

    urgency: int
    time_to_live: int = Field(ge=0)
    times_pushed: int = Field(default=0, ge=0)

    def push(self) -> None:
        self.times_pushed += 1

    def merge(self, other: PushedObligationMetadata) -> None:
        """Fold a later push of the same obligation into this one."""
        self.urgency = max(self.urgency, other.urgency)
        self.time_to_live = max(self.time_to_live, other.time_to_live)
        self.times_pushed += other.times_pushed

    def timestep(self) -> bool:
        """Age the obligation by one step. Returns True once it has expired."""
        if self.time_to_live == 0:
            return True
        self.time_to_live -= 1
        return False


class HistoricalObligations(BaseModel):
    """Obligations pushed onto and addressed by one participant during a move."""

    pushed: dict[DialogMove, PushedObligationMetadata] = Field(default_factory=dict)
    addressed: set[DialogMove] = Field(default_factory=set)

    def push(self, dialog_move: DialogMove, urgency: int, time_to_live: int) -> None:
        """Push an obligation, merging with any earlier push in the same move."""
        pushed = PushedObligationMetadata(
            urgency=urgency, time_to_live=time_to_live, times_pushed=1,
        )
        existing = self.pushed.get(dialog_move)
        if existing is None:
            self.pushed[dialog_move] = pushed
        else:
            existing.merge(pushed)

    def remove_pushed(self, dialog_move: DialogMove) -> None:
        self.pushed.pop(dialog_move, None)

    def address(self, dialog_move: DialogMove) -> None:
        self.addressed.add(dialog_move)

    def remove_addressed(self, dialog_move: DialogMove) -> None:
        self.addressed.discard(dialog_move)


class TopicState(BaseModel):
    """Which topics have been introduced and which have been addressed.

    Kept globally on the conversation and locally on each historical move,
    where it only records what that move changed.
    """

    introduced: set[Topic] = Field(default_factory=set)
    addressed: set[Topic] = Field(default_factory=set)

    def can_be_addressed(self, topic: Topic) -> bool:
        return topic not in self.addressed

    def needs_addressing(self, topic: Topic) -> bool:
        return topic in self.introduced and self.can_be_addressed(topic)

    def can_be_introduced(self, topic: Topic) -> bool:
        return topic not in self.introduced and self.can_be_addressed(topic)

    def is_introduced(self, topic: Topic) -> bool:
        return topic in self.introduced

    def is_addressed(self, topic: Topic) -> bool:
        return topic in self.addressed

    def introduce(self, topic: Topic) -> None:
        self.introduced.add(topic)

    def address(self, topic: Topic) -> None:
        self.addressed.add(topic)

    def remove_introduced(self, topic: Topic) -> None:
        self.introduced.discard(topic)

    def remove_addressed(self, topic: Topic) -> None:
        self.addressed.discard(topic)


class HistoricalMove(BaseModel):
    """One realized move: what was said, by whom, and what it changed."""

    utterance: str
    speaker: Speaker
    person0_obligations: HistoricalObligations = Field(default_factory=HistoricalObligations)
    person1_obligations: HistoricalObligations = Field(default_factory=HistoricalObligations)
    topic_state: TopicState = Field(default_factory=TopicState)

    def __str__(self) -> str:
        return self.utterance

    def obligations_for(self, speaker: Speaker) -> HistoricalObligations:
        if speaker == Speaker.PERSON0:
            return self.person0_obligations
        return self.person1_obligations

    @property
    def my_obligations(self) -> HistoricalObligations:
        """Obligations of the participant who made this move."""
        return self.obligations_for(self.speaker)

    @property
    def others_obligations(self) -> HistoricalObligations:
        """Obligations of the participant who listened to this move."""
        return self.obligations_for(self.speaker.other)

    def all_addressed_obligations(self) -> set[DialogMove]:
        return self.person0_obligations.addressed | self.person1_obligations.addressed

    def was_move_satisfied(self, dialog_move: DialogMove) -> bool:
        return (
            dialog_move in self.person0_obligations.addressed
            or dialog_move in self.person1_obligations.addressed
        )


class Transcript(BaseModel):
    """Serialisable snapshot of a conversation's history."""

    initiator: Speaker
    history: list[HistoricalMove] = Field(default_factory=list)
