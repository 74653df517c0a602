"""Conversation state: participant ledgers, topics, history and goals.

A Conversation is created once per simulated exchange (normally through
DialogManager.new_conversation) and is owned by whoever drives the
simulation. Nothing here is shared between conversations.

Per-move flow:
  1. The expander builds a HistoricalMove against the current state.
  2. update_for_move() lets every goal observe it, folds its topic and
     obligation deltas into the long-lived ledgers, and appends it to history.
  3. timestep() at the start of the next step ages every pushed obligation
     and drops the expired ones.
"""

from __future__ import annotations

import logging
import random
from collections.abc import Iterable
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, Field

from parley.models import (
    DialogMove,
    HistoricalMove,
    HistoricalObligations,
    PushedObligationMetadata,
    Speaker,
    Topic,
    TopicMetadata,
    TopicState,
    Transcript,
)

if TYPE_CHECKING:
    from parley.goals import Frame, GoalState

logger = logging.getLogger(__name__)


def stable_order(items: Iterable[Any]) -> list[Any]:
    """Return items in an order that does not depend on hash seeding.

    Sets of strings iterate differently between interpreter runs, which would
    make a seeded shuffle unrepeatable.
    """
    return sorted(items, key=repr)


class ParticipantState(BaseModel):
    """One participant's ledger plus their opaque character payload."""

    topics: dict[Topic, TopicMetadata] = Field(default_factory=dict)
    pushed_obligations: dict[DialogMove, PushedObligationMetadata] = Field(default_factory=dict)
    character: Any = None

    # ------------------------------------------------------------------
    # Topics
    # ------------------------------------------------------------------

    def topic(self, topic: Topic) -> TopicMetadata:
        """Return the metadata for a topic, creating it on first use."""
        metadata = self.topics.get(topic)
        if metadata is None:
            metadata = self.topics[topic] = TopicMetadata()
        return metadata

    def remove_topic(self, topic: Topic) -> None:
        self.topics.pop(topic, None)

    # ------------------------------------------------------------------
    # Obligations
    # ------------------------------------------------------------------

    def push_obligation(self, dialog_move: DialogMove, urgency: int, time_to_live: int) -> None:
        """Push an obligation directly onto this participant (used by frames)."""
        pushed = PushedObligationMetadata(
            urgency=urgency, time_to_live=time_to_live, times_pushed=1,
        )
        existing = self.pushed_obligations.get(dialog_move)
        if existing is None:
            self.pushed_obligations[dialog_move] = pushed
        else:
            existing.merge(pushed)

    def insert_obligation(
        self, dialog_move: DialogMove, metadata: PushedObligationMetadata
    ) -> None:
        """Insert an obligation unless one is already pending for that move."""
        self.pushed_obligations.setdefault(dialog_move, metadata)

    def remove_obligation(self, dialog_move: DialogMove) -> None:
        self.pushed_obligations.pop(dialog_move, None)

    def timestep(self) -> list[DialogMove]:
        """Age every pushed obligation. Returns the moves that expired."""
        expired = [
            dialog_move
            for dialog_move, obligation in self.pushed_obligations.items()
            if obligation.timestep()
        ]
        for dialog_move in expired:
            del self.pushed_obligations[dialog_move]
        return expired

    def merge_historical_obligations(self, obligations: HistoricalObligations) -> None:
        for dialog_move in obligations.addressed:
            self.pushed_obligations.pop(dialog_move, None)

        for dialog_move, pushed in obligations.pushed.items():
            existing = self.pushed_obligations.get(dialog_move)
            if existing is None:
                self.pushed_obligations[dialog_move] = pushed.model_copy()
            else:
                existing.merge(pushed)


class Conversation:
    """Aggregate root for one simulated two-person conversation."""

    def __init__(
        self,
        initiator: Speaker,
        lull_continue_chance: float,
        person0: Any = None,
        person1: Any = None,
        frames: Iterable[Frame] = (),
    ) -> None:
        if not 0.0 <= lull_continue_chance <= 1.0:
            raise ValueError(
                f"lull_continue_chance must be within [0, 1], got {lull_continue_chance}"
            )
        self.initiator = Speaker(initiator)
        self.speaker = self.initiator
        self.person0 = ParticipantState(character=person0)
        self.person1 = ParticipantState(character=person1)
        self.topic_state = TopicState()
        self.history: list[HistoricalMove] = []
        self.goals: list[GoalState] = []
        self.done = False
        self.lull_continue_chance = lull_continue_chance

        for frame in frames:
            frame(self)

    def __repr__(self) -> str:
        return (
            f"Conversation(initiator={self.initiator.value}, speaker={self.speaker.value}, "
            f"moves={len(self.history)}, goals={len(self.goals)}, done={self.done})"
        )

    # ------------------------------------------------------------------
    # Participant access
    # ------------------------------------------------------------------

    def speaker_state(self, speaker: Speaker) -> ParticipantState:
        if speaker == Speaker.PERSON0:
            return self.person0
        return self.person1

    @property
    def my_state(self) -> ParticipantState:
        """State of the participant who will speak next."""
        return self.speaker_state(self.speaker)

    @property
    def others_state(self) -> ParticipantState:
        """State of the participant who will listen next."""
        return self.speaker_state(self.speaker.other)

    # ------------------------------------------------------------------
    # Goals and history
    # ------------------------------------------------------------------

    def insert_goal(self, goal: GoalState) -> None:
        self.goals.append(goal)

    def remove_historical_move(self, index: int | None = None) -> HistoricalMove | None:
        """Remove a move from history (the last one by default).

        Only the record is removed; ledgers and goals are left as they are.
        """
        if index is None:
            index = len(self.history) - 1
        if not 0 <= index < len(self.history):
            return None
        return self.history.pop(index)

    def transcript(self) -> Transcript:
        return Transcript(
            initiator=self.initiator,
            history=[hmove.model_copy(deep=True) for hmove in self.history],
        )

    # ------------------------------------------------------------------
    # Step bookkeeping
    # ------------------------------------------------------------------

    def timestep(self) -> None:
        for speaker in (Speaker.PERSON0, Speaker.PERSON1):
            expired = self.speaker_state(speaker).timestep()
            if expired:
                logger.debug("obligations expired speaker=%s moves=%r", speaker.value, expired)

    def update_for_move(self, hmove: HistoricalMove) -> None:
        """Record a realized move in goals, ledgers and history."""
        # Goals observe the state without themselves attached.
        goals, self.goals = self.goals, []
        try:
            for goal in goals:
                goal.made_move(self, hmove)
        finally:
            self.goals = goals + self.goals

        speaker_state = self.speaker_state(hmove.speaker)
        for topic in hmove.topic_state.introduced:
            self.topic_state.introduce(topic)
            speaker_state.topic(topic).introduce()
        for topic in hmove.topic_state.addressed:
            self.topic_state.address(topic)
            speaker_state.topic(topic).address()

        self.person0.merge_historical_obligations(hmove.person0_obligations)
        self.person1.merge_historical_obligations(hmove.person1_obligations)
        self.history.append(hmove)

    # ------------------------------------------------------------------
    # What the next speaker could say
    # ------------------------------------------------------------------

    def next_speaker_topics(self, rng: random.Random) -> list[Topic]:
        """Topics introduced but not yet addressed, in random order."""
        topics = stable_order(self.topic_state.introduced - self.topic_state.addressed)
        if len(topics) > 1:
            rng.shuffle(topics)
        return topics

    def next_speaker_moves(self, rng: random.Random) -> list[DialogMove]:
        """Goal proposals (shuffled) followed by pending obligations.

        Obligations are sorted by ascending urgency, ties broken by descending
        time to live. Callers try the list from the end, so the most urgent
        obligation goes first and goal proposals go last.
        """
        obligations = sorted(
            self.my_state.pushed_obligations.items(),
            key=lambda item: (item[1].urgency, -item[1].time_to_live),
        )

        dialog_moves: list[DialogMove] = []
        for goal in self.goals:
            goal_move = goal.next_step(self)
            if goal_move is not None and goal_move.agrees_with(self.speaker):
                dialog_moves.append(goal_move.dialog_move)
        if len(dialog_moves) > 1:
            rng.shuffle(dialog_moves)

        dialog_moves.extend(dialog_move for dialog_move, _ in obligations)
        return dialog_moves
