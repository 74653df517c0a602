"""Tests for parley.models."""

import pytest
from pydantic import ValidationError

from parley.models import (
    HistoricalMove,
    HistoricalObligations,
    PushedObligationMetadata,
    Speaker,
    TopicMetadata,
    TopicState,
    Transcript,
)


class TestSpeaker:
    def test_other(self) -> None:
        assert Speaker.PERSON0.other is Speaker.PERSON1
        assert Speaker.PERSON1.other is Speaker.PERSON0

    def test_invert(self) -> None:
        assert ~Speaker.PERSON0 is Speaker.PERSON1
        assert ~~Speaker.PERSON1 is Speaker.PERSON1

    def test_from_value(self) -> None:
        assert Speaker("person1") is Speaker.PERSON1


class TestPushedObligationMetadata:
    def test_merge_takes_max_and_sums_pushes(self) -> None:
        first = PushedObligationMetadata(urgency=3, time_to_live=2, times_pushed=1)
        first.merge(PushedObligationMetadata(urgency=5, time_to_live=1, times_pushed=2))
        assert first.urgency == 5
        assert first.time_to_live == 2
        assert first.times_pushed == 3

    def test_timestep_counts_down_then_expires(self) -> None:
        o = PushedObligationMetadata(urgency=0, time_to_live=1)
        assert o.timestep() is False
        assert o.time_to_live == 0
        assert o.timestep() is True

    def test_negative_ttl_rejected(self) -> None:
        with pytest.raises(ValidationError):
            PushedObligationMetadata(urgency=0, time_to_live=-1)

    def test_times_pushed_defaults_to_zero(self) -> None:
        o = PushedObligationMetadata(urgency=1, time_to_live=1)
        assert o.times_pushed == 0
        o.push()
        assert o.times_pushed == 1


class TestHistoricalObligations:
    def test_single_push(self) -> None:
        h = HistoricalObligations()
        h.push("greet", 3, 2)
        pushed = h.pushed["greet"]
        assert (pushed.urgency, pushed.time_to_live, pushed.times_pushed) == (3, 2, 1)

    def test_push_twice_merges(self) -> None:
        h = HistoricalObligations()
        h.push("greet", 3, 2)
        h.push("greet", 1, 7)
        pushed = h.pushed["greet"]
        assert pushed.urgency == 3
        assert pushed.time_to_live == 7
        assert pushed.times_pushed == 2

    def test_address_and_remove(self) -> None:
        h = HistoricalObligations()
        h.address("greet")
        assert h.addressed == {"greet"}
        h.remove_addressed("greet")
        assert h.addressed == set()

    def test_remove_pushed_missing_is_noop(self) -> None:
        h = HistoricalObligations()
        h.remove_pushed("nothing")
        assert h.pushed == {}


class TestTopicState:
    def test_fresh_topic(self) -> None:
        t = TopicState()
        assert t.can_be_introduced("music")
        assert t.can_be_addressed("music")
        assert not t.needs_addressing("music")

    def test_introduced_topic_needs_addressing(self) -> None:
        t = TopicState()
        t.introduce("music")
        assert t.is_introduced("music")
        assert t.needs_addressing("music")
        assert not t.can_be_introduced("music")

    def test_addressed_topic_is_closed(self) -> None:
        t = TopicState()
        t.introduce("music")
        t.address("music")
        assert not t.can_be_addressed("music")
        assert not t.needs_addressing("music")
        assert not t.can_be_introduced("music")

    def test_addressed_without_introduction_is_closed(self) -> None:
        t = TopicState()
        t.address("music")
        assert not t.can_be_introduced("music")
        assert not t.can_be_addressed("music")

    def test_remove(self) -> None:
        t = TopicState(introduced={"music"}, addressed={"music"})
        t.remove_addressed("music")
        t.remove_introduced("music")
        assert t.can_be_introduced("music")


class TestTopicMetadata:
    def test_counters(self) -> None:
        m = TopicMetadata()
        m.introduce()
        m.address()
        m.address()
        assert m.times_introduced == 1
        assert m.times_addressed == 2


class TestHistoricalMove:
    def test_my_and_others_obligations(self) -> None:
        h = HistoricalMove(utterance="Hi.", speaker=Speaker.PERSON1)
        assert h.my_obligations is h.person1_obligations
        assert h.others_obligations is h.person0_obligations

    def test_was_move_satisfied_checks_both_participants(self) -> None:
        h = HistoricalMove(utterance="Hi.", speaker=Speaker.PERSON0)
        h.person1_obligations.address("greet")
        assert h.was_move_satisfied("greet")
        assert not h.was_move_satisfied("farewell")
        assert h.all_addressed_obligations() == {"greet"}

    def test_str_is_utterance(self) -> None:
        assert str(HistoricalMove(utterance="Hello.", speaker=Speaker.PERSON0)) == "Hello."


class TestTranscript:
    def test_json_roundtrip(self) -> None:
        h = HistoricalMove(utterance="How are you feeling?", speaker=Speaker.PERSON0)
        h.others_obligations.push("state_feelings", 0, 3)
        h.my_obligations.address("ask_feelings")
        h.topic_state.introduce("feelings")
        t = Transcript(initiator=Speaker.PERSON0, history=[h])

        restored = Transcript.model_validate_json(t.model_dump_json())
        assert restored == t
        assert restored.history[0].speaker is Speaker.PERSON0
        assert restored.history[0].person1_obligations.pushed["state_feelings"].time_to_live == 3
