"""Dialog manager: owns the template registry and frames, steps conversations.

Step flow:
  1. Skip finished conversations.
  2. Age every pending obligation.
  3. The current speaker tries to speak: open topics first, then the most
     urgent obligations, then goal proposals. On failure the other
     participant gets the same chance.
  4. If either spoke, the turn passes on.
  5. Otherwise there is a lull. With probability lull_continue_chance both
     participants get a chance to make the lull move, with the same turn
     rule. Failing that (or if the lull draw fails) the conversation ends.

Only NoNodesSatisfyPreconditions means "cannot say that right now". Every
other expander error is a content bug and propagates to the caller.
"""

from __future__ import annotations

import logging
import random
from collections.abc import Callable, Iterable, Mapping
from typing import Any

from parley.conversation import Conversation
from parley.expander import Expander, MoveNode, NodeId, NoNodesSatisfyPreconditions
from parley.goals import Frame
from parley.models import DialogMove, HistoricalMove, Speaker, Topic

logger = logging.getLogger(__name__)


class DialogManager:
    def __init__(
        self,
        nodes: Mapping[NodeId, MoveNode] | Iterable[tuple[NodeId, MoveNode]] = (),
        frames: Iterable[Frame] = (),
    ) -> None:
        self._expander = Expander(nodes)
        # Changing frames only affects conversations created afterwards.
        self.frames: list[Frame] = list(frames)

    def __repr__(self) -> str:
        return f"DialogManager(nodes={len(self._expander)}, frames={len(self.frames)})"

    # ------------------------------------------------------------------
    # Registry
    # ------------------------------------------------------------------

    @property
    def expander(self) -> Expander:
        return self._expander

    def rebuild_expander(self) -> None:
        """Rebuild the reverse indices after a registered node was mutated in place."""
        self._expander.build()

    def get_move_node(self, node_id: NodeId) -> MoveNode | None:
        return self._expander.get(node_id)

    def insert_move_node(self, node_id: NodeId, move_node: MoveNode) -> MoveNode | None:
        return self._expander.insert(node_id, move_node)

    def remove_move_node(self, node_id: NodeId) -> MoveNode | None:
        return self._expander.remove(node_id)

    def extend_move_nodes(
        self, nodes: Mapping[NodeId, MoveNode] | Iterable[tuple[NodeId, MoveNode]]
    ) -> None:
        self._expander.extend(nodes)

    def add_frames(self, frames: Iterable[Frame]) -> None:
        self.frames.extend(frames)

    # ------------------------------------------------------------------
    # Conversations
    # ------------------------------------------------------------------

    def new_conversation(
        self,
        initiator: Speaker,
        lull_continue_chance: float,
        person0: Any = None,
        person1: Any = None,
    ) -> Conversation:
        conversation = Conversation(
            initiator, lull_continue_chance, person0, person1, frames=self.frames,
        )
        logger.info(
            "conversation created initiator=%s frames=%d goals=%d",
            conversation.initiator.value, len(self.frames), len(conversation.goals),
        )
        return conversation

    def _attempt_to_make_move(
        self, conversation: Conversation, rng: random.Random, dialog_move: DialogMove
    ) -> bool:
        try:
            hmove = self._expander.address_dialog_move(conversation, rng, dialog_move)
        except NoNodesSatisfyPreconditions:
            return False
        self._record(conversation, hmove)
        return True

    def _attempt_to_address_topic(
        self, conversation: Conversation, rng: random.Random, topic: Topic
    ) -> bool:
        try:
            hmove = self._expander.address_topic(conversation, rng, topic)
        except NoNodesSatisfyPreconditions:
            return False
        self._record(conversation, hmove)
        return True

    def _record(self, conversation: Conversation, hmove: HistoricalMove) -> None:
        conversation.update_for_move(hmove)
        logger.debug(
            "move recorded index=%d speaker=%s utterance=%r",
            len(conversation.history) - 1, hmove.speaker.value, hmove.utterance,
        )

    def _attempt_to_speak(self, conversation: Conversation, rng: random.Random) -> bool:
        for topic in conversation.next_speaker_topics(rng):
            if self._attempt_to_address_topic(conversation, rng, topic):
                return True

        for dialog_move in reversed(conversation.next_speaker_moves(rng)):
            if self._attempt_to_make_move(conversation, rng, dialog_move):
                return True

        return False

    def _either_participant(self, conversation: Conversation, attempt: Callable[[], bool]) -> bool:
        """Let the current speaker, then the other one, try attempt().

        Whoever succeeds hands the turn to their partner.
        """
        if attempt():
            conversation.speaker = conversation.speaker.other
            return True
        conversation.speaker = conversation.speaker.other
        if attempt():
            conversation.speaker = conversation.speaker.other
            return True
        return False

    def step_conversation(
        self,
        conversation: Conversation,
        lull_move: DialogMove,
        rng: random.Random | None = None,
    ) -> None:
        """Advance the conversation by one move, or mark it done.

        Pass a seeded ``random.Random`` for reproducible steps.
        """
        if conversation.done:
            return
        if rng is None:
            rng = random.Random()

        conversation.timestep()

        if self._either_participant(
            conversation, lambda: self._attempt_to_speak(conversation, rng)
        ):
            return

        if rng.random() < conversation.lull_continue_chance:
            logger.debug("lull continued move=%r", lull_move)
            if self._either_participant(
                conversation,
                lambda: self._attempt_to_make_move(conversation, rng, lull_move),
            ):
                return

        conversation.done = True
        logger.info("conversation finished moves=%d", len(conversation.history))

    def run_conversation(
        self,
        conversation: Conversation,
        lull_move: DialogMove,
        max_steps: int | None = None,
        rng: random.Random | None = None,
    ) -> int:
        """Step until the conversation is done or max_steps steps were taken.

        Returns the number of steps taken.
        """
        if rng is None:
            rng = random.Random()
        steps = 0
        while not conversation.done and (max_steps is None or steps < max_steps):
            self.step_conversation(conversation, lull_move, rng)
            steps += 1
        return steps
