"""Goal behaviours that propose dialog moves and track their own completion.

Every goal implements the GoalState contract:

    next_step(state)         -> GoalMove | None   what to try next
    made_move(state, hmove)  -> None              observe a realized move
    is_satisfied()           -> bool              finished?

made_move() receives the conversation with its goal list detached, so a goal
never observes itself. Goals are never removed from a conversation; a
satisfied goal simply stops proposing moves.

Frames are one-shot initialisers run against each new conversation to seed
starting obligations and goals.
"""

from __future__ import annotations

import copy
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict

from parley.models import DialogMove, HistoricalMove, Speaker

if TYPE_CHECKING:
    from parley.conversation import Conversation

Frame = Callable[["Conversation"], None]


class GoalMove(BaseModel):
    """A proposed dialog move and who may perform it (None means either)."""

    model_config = ConfigDict(frozen=True)

    dialog_move: DialogMove
    pursuer: Speaker | None = None

    def agrees_with(self, speaker: Speaker) -> bool:
        return self.pursuer is None or self.pursuer == speaker

    def performed_in(self, hmove: HistoricalMove) -> bool:
        """True if hmove was made by an allowed pursuer and satisfied this move."""
        return self.agrees_with(hmove.speaker) and hmove.was_move_satisfied(self.dialog_move)


class GoalState(ABC):
    @abstractmethod
    def next_step(self, state: Conversation) -> GoalMove | None:
        """Propose the next move for this goal, if any."""

    @abstractmethod
    def made_move(self, state: Conversation, hmove: HistoricalMove) -> None:
        """Update the goal with a move made in the conversation."""

    @abstractmethod
    def is_satisfied(self) -> bool:
        """True once the goal is finished."""

    def clone(self) -> GoalState:
        return copy.deepcopy(self)


class PerformGoalMove(GoalState):
    """Perform a single goal move once."""

    def __init__(self, goal_move: GoalMove) -> None:
        self.goal_move = goal_move
        self.satisfied = False

    def __repr__(self) -> str:
        return f"PerformGoalMove({self.goal_move!r}, satisfied={self.satisfied})"

    def next_step(self, state: Conversation) -> GoalMove | None:
        return None if self.satisfied else self.goal_move

    def made_move(self, state: Conversation, hmove: HistoricalMove) -> None:
        if self.goal_move.performed_in(hmove):
            self.satisfied = True

    def is_satisfied(self) -> bool:
        return self.satisfied


class RepeatGoalMove(GoalState):
    """Perform a goal move until it has been satisfied max_reps times."""

    def __init__(self, goal_move: GoalMove, max_reps: int) -> None:
        if max_reps < 0:
            raise ValueError(f"max_reps must not be negative, got {max_reps}")
        self.goal_move = goal_move
        self.reps = 0
        self.max_reps = max_reps

    def __repr__(self) -> str:
        return f"RepeatGoalMove({self.goal_move!r}, reps={self.reps}/{self.max_reps})"

    def next_step(self, state: Conversation) -> GoalMove | None:
        return None if self.is_satisfied() else self.goal_move

    def made_move(self, state: Conversation, hmove: HistoricalMove) -> None:
        if self.goal_move.performed_in(hmove):
            self.reps += 1

    def is_satisfied(self) -> bool:
        return self.reps >= self.max_reps


class GoalSequence(GoalState):
    """Perform a list of moves, proposing them front to back.

    Every remaining entry satisfied by an observed move is dropped, not just
    the first one.
    """

    def __init__(self, sequence: Iterable[GoalMove]) -> None:
        self.sequence = list(sequence)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.sequence!r})"

    def next_step(self, state: Conversation) -> GoalMove | None:
        return self.sequence[0] if self.sequence else None

    def made_move(self, state: Conversation, hmove: HistoricalMove) -> None:
        for i in reversed(range(len(self.sequence))):
            if self.sequence[i].performed_in(hmove):
                del self.sequence[i]

    def is_satisfied(self) -> bool:
        return not self.sequence


class GoalEagerSequence(GoalSequence):
    """A GoalSequence that completes as soon as its last move is made.

    Performing the final entry clears whatever is still pending.
    """

    def made_move(self, state: Conversation, hmove: HistoricalMove) -> None:
        if self.sequence and self.sequence[-1].performed_in(hmove):
            self.sequence.clear()
            return
        super().made_move(state, hmove)


class ConcatGoals(GoalState):
    """Pursue g1, falling back to g2 whenever g1 has nothing to propose."""

    def __init__(self, g1: GoalState, g2: GoalState) -> None:
        self.g1 = g1
        self.g2 = g2

    def __repr__(self) -> str:
        return f"ConcatGoals({self.g1!r}, {self.g2!r})"

    def next_step(self, state: Conversation) -> GoalMove | None:
        goal_move = self.g1.next_step(state)
        if goal_move is None:
            goal_move = self.g2.next_step(state)
        return goal_move

    def made_move(self, state: Conversation, hmove: HistoricalMove) -> None:
        self.g1.made_move(state, hmove)
        self.g2.made_move(state, hmove)

    def is_satisfied(self) -> bool:
        return self.g1.is_satisfied() and self.g2.is_satisfied()

    def clone(self) -> ConcatGoals:
        return ConcatGoals(self.g1.clone(), self.g2.clone())
