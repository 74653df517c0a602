"""Tests for DialogManager: stepping, turn taking, lulls and registry passthroughs."""

import random

import pytest

from parley import formatters
from parley.expander import MoveNode, NoExpanderForMove, NoExpanderForTopic
from parley.goals import GoalMove, PerformGoalMove, RepeatGoalMove
from parley.manager import DialogManager
from parley.models import Speaker


def _greet_goal_frame(conversation):
    conversation.insert_goal(PerformGoalMove(GoalMove(dialog_move="greet", pursuer=Speaker.PERSON0)))


def _chat_nodes() -> dict[str, MoveNode]:
    return {"chat": MoveNode(dialog_moves={"chat"}, formatter=formatters.static("Nice weather."))}


# ── Greeting scenario ────────────────────────────────────


def test_single_step_greets_and_satisfies_goal(greeting_nodes, rng):
    manager = DialogManager(greeting_nodes, [_greet_goal_frame])
    conversation = manager.new_conversation(Speaker.PERSON0, 0.0)
    manager.step_conversation(conversation, "chat", rng)

    assert len(conversation.history) == 1
    hmove = conversation.history[0]
    assert hmove.speaker is Speaker.PERSON0
    assert hmove.was_move_satisfied("greet")
    assert hmove.utterance in ("Hello.", "Hi.")
    assert conversation.goals[0].is_satisfied()
    assert conversation.speaker is Speaker.PERSON1
    assert not conversation.done


def test_other_participant_speaks_when_speaker_cannot(greeting_nodes, rng):
    def frame(conversation):
        conversation.person1.push_obligation("greet", 1, 5)

    manager = DialogManager(greeting_nodes, [frame])
    conversation = manager.new_conversation(Speaker.PERSON0, 0.0)
    manager.step_conversation(conversation, "chat", rng)

    assert [h.speaker for h in conversation.history] == [Speaker.PERSON1]
    # person1 spoke, so the turn passes back to person0
    assert conversation.speaker is Speaker.PERSON0


def test_most_urgent_obligation_first(rng):
    nodes = {
        "low": MoveNode(dialog_moves={"low"}, formatter=formatters.static("low")),
        "high": MoveNode(dialog_moves={"high"}, formatter=formatters.static("high")),
    }

    def frame(conversation):
        conversation.person0.push_obligation("low", 1, 5)
        conversation.person0.push_obligation("high", 10, 5)

    manager = DialogManager(nodes, [frame])
    conversation = manager.new_conversation(Speaker.PERSON0, 0.0)
    manager.step_conversation(conversation, "chat", rng)
    assert conversation.history[0].utterance == "high"


def test_open_topic_before_obligations(rng):
    nodes = {
        "answer": MoveNode(addressed_topics={"music"}, formatter=formatters.static("Jazz.")),
        "greet": MoveNode(dialog_moves={"greet"}, formatter=formatters.static("Hi.")),
    }

    def frame(conversation):
        conversation.topic_state.introduce("music")
        conversation.person0.push_obligation("greet", 100, 5)

    manager = DialogManager(nodes, [frame])
    conversation = manager.new_conversation(Speaker.PERSON0, 0.0)
    manager.step_conversation(conversation, "chat", rng)
    assert conversation.history[0].utterance == "Jazz."
    assert conversation.topic_state.is_addressed("music")


# ── Lulls ────────────────────────────────────────────────


def test_lull_with_zero_chance_ends_conversation(rng):
    manager = DialogManager(_chat_nodes())
    conversation = manager.new_conversation(Speaker.PERSON0, 0.0)
    manager.step_conversation(conversation, "chat", rng)
    assert conversation.done
    assert conversation.history == []


def test_lull_with_certain_chance_makes_lull_move(rng):
    manager = DialogManager(_chat_nodes())
    conversation = manager.new_conversation(Speaker.PERSON0, 1.0)
    manager.step_conversation(conversation, "chat", rng)
    assert not conversation.done
    assert [h.utterance for h in conversation.history] == ["Nice weather."]
    # both failed to speak, so the listener gets the first try at the lull move
    assert conversation.history[0].speaker is Speaker.PERSON1
    assert conversation.speaker is Speaker.PERSON0


def test_lull_move_falls_back_to_initiator(rng):
    nodes = {
        "chat": MoveNode(
            dialog_moves={"chat"},
            precondition=lambda c: c.speaker is Speaker.PERSON0,
            formatter=formatters.static("Nice weather."),
        ),
    }
    manager = DialogManager(nodes)
    conversation = manager.new_conversation(Speaker.PERSON0, 1.0)
    manager.step_conversation(conversation, "chat", rng)
    assert not conversation.done
    assert [h.speaker for h in conversation.history] == [Speaker.PERSON0]
    assert conversation.speaker is Speaker.PERSON1


def test_lull_nobody_can_make_move_ends_conversation(rng):
    nodes = {"chat": MoveNode(dialog_moves={"chat"}, precondition=lambda c: False)}
    manager = DialogManager(nodes)
    conversation = manager.new_conversation(Speaker.PERSON0, 1.0)
    manager.step_conversation(conversation, "chat", rng)
    assert conversation.done


def test_done_conversation_is_not_stepped(greeting_nodes, rng):
    manager = DialogManager(greeting_nodes, [_greet_goal_frame])
    conversation = manager.new_conversation(Speaker.PERSON0, 0.0)
    conversation.done = True
    manager.step_conversation(conversation, "chat", rng)
    assert conversation.history == []


def test_step_without_rng(greeting_nodes):
    manager = DialogManager(greeting_nodes, [_greet_goal_frame])
    conversation = manager.new_conversation(Speaker.PERSON0, 0.0)
    manager.step_conversation(conversation, "chat")
    assert len(conversation.history) == 1


# ── Errors ───────────────────────────────────────────────


def test_missing_lull_move_template_propagates(rng):
    manager = DialogManager({})
    conversation = manager.new_conversation(Speaker.PERSON0, 1.0)
    with pytest.raises(NoExpanderForMove):
        manager.step_conversation(conversation, "chat", rng)


def test_missing_topic_template_propagates(rng):
    def frame(conversation):
        conversation.topic_state.introduce("music")

    manager = DialogManager({}, [frame])
    conversation = manager.new_conversation(Speaker.PERSON0, 0.0)
    with pytest.raises(NoExpanderForTopic):
        manager.step_conversation(conversation, "chat", rng)


# ── run_conversation ─────────────────────────────────────


def test_run_until_done(rng):
    def frame(conversation):
        conversation.insert_goal(RepeatGoalMove(GoalMove(dialog_move="chat"), 3))

    manager = DialogManager(_chat_nodes(), [frame])
    conversation = manager.new_conversation(Speaker.PERSON0, 0.0)
    steps = manager.run_conversation(conversation, "chat", rng=rng)

    assert conversation.done
    assert steps == 4
    assert [h.speaker for h in conversation.history] == [
        Speaker.PERSON0, Speaker.PERSON1, Speaker.PERSON0,
    ]


def test_run_respects_max_steps(rng):
    manager = DialogManager(_chat_nodes())
    conversation = manager.new_conversation(Speaker.PERSON0, 1.0)
    assert manager.run_conversation(conversation, "chat", max_steps=5, rng=rng) == 5
    assert len(conversation.history) == 5
    assert not conversation.done


def test_same_seed_same_conversation(greeting_nodes):
    nodes = dict(greeting_nodes)
    nodes.update(_chat_nodes())
    nodes["bye"] = MoveNode(dialog_moves={"chat"}, formatter=formatters.choice(["Bye.", "Later."]))
    manager = DialogManager(nodes, [_greet_goal_frame])

    def run(seed):
        conversation = manager.new_conversation(Speaker.PERSON0, 0.5)
        manager.run_conversation(conversation, "chat", max_steps=20, rng=random.Random(seed))
        return [h.utterance for h in conversation.history]

    assert run(42) == run(42)


# ── Registry ─────────────────────────────────────────────


def test_registry_passthroughs(greeting_nodes):
    manager = DialogManager()
    manager.extend_move_nodes(greeting_nodes)
    assert manager.get_move_node("hello") is greeting_nodes["hello"]
    assert manager.expander.nodes_for_move("greet") == ["greet"]

    manager.insert_move_node("chat", _chat_nodes()["chat"])
    assert manager.expander.nodes_for_move("chat") == ["chat"]
    manager.remove_move_node("chat")
    assert manager.get_move_node("chat") is None


def test_rebuild_after_in_place_edit(greeting_nodes):
    manager = DialogManager(greeting_nodes)
    manager.get_move_node("hello").dialog_moves.add("wave")
    assert manager.expander.nodes_for_move("wave") == []
    manager.rebuild_expander()
    assert manager.expander.nodes_for_move("wave") == ["hello"]


def test_add_frames_affects_new_conversations_only(rng):
    manager = DialogManager(_chat_nodes())
    before = manager.new_conversation(Speaker.PERSON0, 0.0)
    manager.add_frames([lambda c: c.person0.push_obligation("chat", 1, 1)])
    after = manager.new_conversation(Speaker.PERSON0, 0.0)
    assert "chat" not in before.person0.pushed_obligations
    assert "chat" in after.person0.pushed_obligations
