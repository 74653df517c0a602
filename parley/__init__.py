"""parley: rule-based dialog move expansion for two-person conversations."""

from parley.conversation import Conversation, ParticipantState
from parley.expander import (
    Expander,
    ExpanderError,
    MoveNode,
    NoExpanderForMove,
    NoExpanderForTopic,
    NoNodesSatisfyPreconditions,
    UnknownExpanderNode,
)
from parley.goals import (
    ConcatGoals,
    GoalEagerSequence,
    GoalMove,
    GoalSequence,
    GoalState,
    PerformGoalMove,
    RepeatGoalMove,
)
from parley.manager import DialogManager
from parley.models import (
    HistoricalMove,
    HistoricalObligations,
    PushedObligationMetadata,
    Speaker,
    TopicMetadata,
    TopicState,
    Transcript,
)

__version__ = "0.1.0"

__all__ = [
    "ConcatGoals",
    "Conversation",
    "DialogManager",
    "Expander",
    "ExpanderError",
    "GoalEagerSequence",
    "GoalMove",
    "GoalSequence",
    "GoalState",
    "HistoricalMove",
    "HistoricalObligations",
    "MoveNode",
    "NoExpanderForMove",
    "NoExpanderForTopic",
    "NoNodesSatisfyPreconditions",
    "ParticipantState",
    "PerformGoalMove",
    "PushedObligationMetadata",
    "RepeatGoalMove",
    "Speaker",
    "TopicMetadata",
    "TopicState",
    "Transcript",
    "UnknownExpanderNode",
]
