"""Template registry and the forward/backward chaining expander.

A MoveNode is a template for realizing dialog moves and topics as text. Its
``parts`` are an AND of ORs: every part must be filled by exactly one of the
node ids listed in it. The Expander keeps every MoveNode under an opaque node
id and maintains three reverse indices, rebuilt from scratch on every
registry change:

    move  -> nodes declaring that dialog move
    topic -> nodes addressing that topic
    node  -> parent nodes listing it as an alternative in some part

Realizing a move or topic:
  1. Gather every node declaring it (none at all is a configuration error).
  2. Shuffle them and take the first one whose precondition holds and whose
     parts can all be filled (forward chaining). Parts are filled greedily
     in declared order; a part that cannot be filled fails the whole node,
     earlier parts are not revisited.
  3. If the chosen node is itself a part of other nodes, wrap it in the first
     parent (registry order) whose precondition holds and whose remaining
     parts can be filled (backward chaining, one level only).
  4. Build the utterance through the formatters, then walk the tree children
     first, applying each node's declared effects and edit callback to a new
     HistoricalMove.

The registry is read-only while conversations are being stepped. Mutating it
is a configuration change and must not race with readers.
"""

from __future__ import annotations

import logging
import random
from collections.abc import Callable, Hashable, Iterable, Mapping
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, Field

from parley.formatters import join_parts
from parley.models import DialogMove, HistoricalMove, Topic

if TYPE_CHECKING:
    from parley.conversation import Conversation

logger = logging.getLogger(__name__)

NodeId = Hashable

Precondition = Callable[["Conversation"], bool]
Formatter = Callable[["Conversation", random.Random, list[str]], str]
EditHistoricalMove = Callable[["Conversation", random.Random, HistoricalMove], None]


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class ExpanderError(Exception):
    """Base class for failures to realize a dialog move or topic."""


class NoExpanderForMove(ExpanderError):
    """No registered node declares the dialog move. A content error."""

    def __init__(self, dialog_move: DialogMove) -> None:
        self.dialog_move = dialog_move
        super().__init__(f"There is no expander node satisfying dialog move {dialog_move!r}")


class NoExpanderForTopic(ExpanderError):
    """No registered node addresses the topic. A content error."""

    def __init__(self, topic: Topic) -> None:
        self.topic = topic
        super().__init__(f"There is no expander node satisfying topic {topic!r}")


class UnknownExpanderNode(ExpanderError):
    """A node lists a part alternative that is not registered."""

    def __init__(self, node_id: NodeId) -> None:
        self.node_id = node_id
        super().__init__(f"Expander node {node_id!r} is referenced but not registered")


class NoNodesSatisfyPreconditions(ExpanderError):
    """The current state does not allow the move or topic right now."""

    def __init__(self) -> None:
        super().__init__("No candidate expander nodes satisfy their preconditions")


# ---------------------------------------------------------------------------
# Templates
# ---------------------------------------------------------------------------

class MoveNode(BaseModel):
    """A template describing how to realize some dialog moves and topics.

    precondition:          (conversation) -> bool; None means always true.
    formatter:             (conversation, rng, child utterances) -> utterance.
    edit_historical_move:  (conversation, rng, hmove) -> None; runs after the
                           node's children, so it can see and override their
                           effects.
    """

    dialog_moves: set[DialogMove] = Field(default_factory=set)
    addressed_topics: set[Topic] = Field(default_factory=set)
    precondition: Callable[..., bool] | None = None
    edit_historical_move: Callable[..., None] | None = None
    formatter: Callable[..., str] = Field(default_factory=join_parts)
    parts: list[list[Any]] = Field(default_factory=list)

    def check(self, conversation: Conversation) -> bool:
        if self.precondition is None:
            return True
        return bool(self.precondition(conversation))


class ExpansionTree:
    """A node chosen for a realization together with its chosen parts."""

    __slots__ = ("node_id", "move_node", "parts")

    def __init__(self, node_id: NodeId, move_node: MoveNode) -> None:
        self.node_id = node_id
        self.move_node = move_node
        self.parts: list[ExpansionTree] = []

    def __repr__(self) -> str:
        return f"ExpansionTree({self.node_id!r}, parts={self.parts!r})"

    def create_utterance(self, conversation: Conversation, rng: random.Random) -> str:
        parts = [part.create_utterance(conversation, rng) for part in self.parts]
        return self.move_node.formatter(conversation, rng, parts)

    def apply(
        self, conversation: Conversation, rng: random.Random, hmove: HistoricalMove
    ) -> None:
        """Apply this subtree's effects to hmove, children first."""
        for part in self.parts:
            part.apply(conversation, rng, hmove)

        hmove.obligations_for(conversation.speaker).addressed.update(self.move_node.dialog_moves)
        hmove.topic_state.addressed.update(self.move_node.addressed_topics)

        if self.move_node.edit_historical_move is not None:
            self.move_node.edit_historical_move(conversation, rng, hmove)


# ---------------------------------------------------------------------------
# Expander
# ---------------------------------------------------------------------------

def _index(index: dict[Any, list[NodeId]], key: Any, node_id: NodeId) -> None:
    node_ids = index.setdefault(key, [])
    if node_id not in node_ids:
        node_ids.append(node_id)


class Expander:
    def __init__(
        self, nodes: Mapping[NodeId, MoveNode] | Iterable[tuple[NodeId, MoveNode]] = ()
    ) -> None:
        self._nodes: dict[NodeId, MoveNode] = dict(nodes)
        self._addressing_move: dict[DialogMove, list[NodeId]] = {}
        self._addressing_topic: dict[Topic, list[NodeId]] = {}
        self._apart_of: dict[NodeId, list[NodeId]] = {}
        self.build()

    def __repr__(self) -> str:
        return f"Expander(nodes={len(self._nodes)})"

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._nodes

    # ------------------------------------------------------------------
    # Registry
    # ------------------------------------------------------------------

    def build(self) -> None:
        """Rebuild every reverse index from the registered nodes."""
        addressing_move: dict[DialogMove, list[NodeId]] = {}
        addressing_topic: dict[Topic, list[NodeId]] = {}
        apart_of: dict[NodeId, list[NodeId]] = {}
        for node_id, node in self._nodes.items():
            for dialog_move in node.dialog_moves:
                _index(addressing_move, dialog_move, node_id)
            for topic in node.addressed_topics:
                _index(addressing_topic, topic, node_id)
            for part in node.parts:
                for choice in part:
                    _index(apart_of, choice, node_id)
        self._addressing_move = addressing_move
        self._addressing_topic = addressing_topic
        self._apart_of = apart_of
        logger.debug(
            "expander rebuilt nodes=%d moves=%d topics=%d",
            len(self._nodes), len(addressing_move), len(addressing_topic),
        )

    def get(self, node_id: NodeId) -> MoveNode | None:
        return self._nodes.get(node_id)

    def insert(self, node_id: NodeId, move_node: MoveNode) -> MoveNode | None:
        """Register a node, returning the one it replaced (if any)."""
        previous = self._nodes.get(node_id)
        self._nodes[node_id] = move_node
        self.build()
        return previous

    def remove(self, node_id: NodeId) -> MoveNode | None:
        """Unregister a node, returning it (None if it was not registered)."""
        removed = self._nodes.pop(node_id, None)
        self.build()
        return removed

    def extend(
        self, nodes: Mapping[NodeId, MoveNode] | Iterable[tuple[NodeId, MoveNode]]
    ) -> None:
        self._nodes.update(nodes)
        self.build()

    def nodes_for_move(self, dialog_move: DialogMove) -> list[NodeId]:
        return list(self._addressing_move.get(dialog_move, ()))

    def nodes_for_topic(self, topic: Topic) -> list[NodeId]:
        return list(self._addressing_topic.get(topic, ()))

    def parents_of(self, node_id: NodeId) -> list[NodeId]:
        return list(self._apart_of.get(node_id, ()))

    def is_top_level(self, node_id: NodeId) -> bool:
        return not self._apart_of.get(node_id)

    def _move_node(self, node_id: NodeId) -> MoveNode:
        try:
            return self._nodes[node_id]
        except KeyError:
            raise UnknownExpanderNode(node_id) from None

    # ------------------------------------------------------------------
    # Forward chaining
    # ------------------------------------------------------------------

    def expand_dialog_move(
        self, conversation: Conversation, rng: random.Random, dialog_move: DialogMove
    ) -> ExpansionTree:
        candidates = self._addressing_move.get(dialog_move)
        if not candidates:
            raise NoExpanderForMove(dialog_move)
        return self._expand_candidates(conversation, rng, candidates)

    def expand_topic(
        self, conversation: Conversation, rng: random.Random, topic: Topic
    ) -> ExpansionTree:
        candidates = self._addressing_topic.get(topic)
        if not candidates:
            raise NoExpanderForTopic(topic)
        return self._expand_candidates(conversation, rng, candidates)

    def _expand_candidates(
        self, conversation: Conversation, rng: random.Random, candidates: list[NodeId]
    ) -> ExpansionTree:
        node_ids = list(candidates)
        rng.shuffle(node_ids)
        for node_id in node_ids:
            move_node = self._move_node(node_id)
            if not move_node.check(conversation):
                continue
            tree = ExpansionTree(node_id, move_node)
            if self._forward_chain(conversation, rng, tree):
                return tree
            logger.debug("forward chain failed node=%r", node_id)
        raise NoNodesSatisfyPreconditions()

    def _forward_chain(
        self,
        conversation: Conversation,
        rng: random.Random,
        tree: ExpansionTree,
        skip_part: int | None = None,
    ) -> bool:
        """Fill every part of tree in order. Returns False if any part cannot be filled."""
        for part_id, part in enumerate(tree.move_node.parts):
            if part_id == skip_part:
                continue
            choices = list(part)
            rng.shuffle(choices)
            for choice in choices:
                move_node = self._move_node(choice)
                if not move_node.check(conversation):
                    continue
                subtree = ExpansionTree(choice, move_node)
                if self._forward_chain(conversation, rng, subtree):
                    tree.parts.append(subtree)
                    break
            else:
                return False
        return True

    # ------------------------------------------------------------------
    # Backward chaining
    # ------------------------------------------------------------------

    def _backward_chain(
        self, conversation: Conversation, rng: random.Random, tree: ExpansionTree
    ) -> ExpansionTree:
        """Embed tree in a parent node when it is not top-level."""
        if self.is_top_level(tree.node_id):
            return tree

        for parent_id in self._apart_of[tree.node_id]:
            parent = self._move_node(parent_id)
            if not parent.check(conversation):
                continue
            slot = next(
                (i for i, part in enumerate(parent.parts) if tree.node_id in part), None
            )
            if slot is None:
                continue
            wrapper = ExpansionTree(parent_id, parent)
            if self._forward_chain(conversation, rng, wrapper, skip_part=slot):
                wrapper.parts.insert(slot, tree)
                return wrapper

        logger.debug("no parent can embed node=%r", tree.node_id)
        raise NoNodesSatisfyPreconditions()

    # ------------------------------------------------------------------
    # Realization
    # ------------------------------------------------------------------

    def _address_tree(
        self, conversation: Conversation, rng: random.Random, tree: ExpansionTree
    ) -> HistoricalMove:
        tree = self._backward_chain(conversation, rng, tree)
        hmove = HistoricalMove(
            utterance=tree.create_utterance(conversation, rng),
            speaker=conversation.speaker,
        )
        tree.apply(conversation, rng, hmove)
        logger.debug(
            "realized node=%r speaker=%s utterance=%r",
            tree.node_id, hmove.speaker.value, hmove.utterance,
        )
        return hmove

    def address_dialog_move(
        self, conversation: Conversation, rng: random.Random, dialog_move: DialogMove
    ) -> HistoricalMove:
        """Realize a dialog move for the current speaker."""
        tree = self.expand_dialog_move(conversation, rng, dialog_move)
        return self._address_tree(conversation, rng, tree)

    def address_topic(
        self, conversation: Conversation, rng: random.Random, topic: Topic
    ) -> HistoricalMove:
        """Realize a topic for the current speaker."""
        tree = self.expand_topic(conversation, rng, topic)
        return self._address_tree(conversation, rng, tree)
