"""Tests for result recording and winner propagation."""

import copy

import pytest

from rtm.bracket import build_bracket
from rtm.models import BracketStatus, Entry, Match, MatchStatus, Pending, Resolved, RoundType, Set
from rtm.progression import (
    BracketStateError,
    cancel_bracket,
    champion_of,
    record_group_result,
    record_result,
    reopen_node,
)
from rtm.validation import ErrorCode, ValidationError


def make_seeds(n):
    return [Entry(id=f"e{i}", name=f"Seed {i}") for i in range(1, n + 1)]


def win_a():
    return [Set(1, 6, 3)]


def win_b():
    return [Set(1, 4, 6)]


@pytest.fixture
def four():
    """4-seed bracket: SF-1 e1 vs e4, SF-2 e2 vs e3."""
    return build_bracket(make_seeds(4))


def test_winner_advances_to_parent_slot(four):
    updated = record_result(four, "SF-1", win_a())

    assert isinstance(updated, type(four))
    node = updated.get_node("SF-1")
    assert node.match.status == MatchStatus.FINISHED
    assert node.match.winner_id == "e1"
    assert node.match.sets == win_a()

    final = updated.final
    assert isinstance(final.slot_a, Resolved)
    assert final.slot_a.entry.id == "e1"
    assert final.match.entry_a_id == "e1"
    assert isinstance(final.slot_b, Pending)


def test_input_bracket_not_mutated(four):
    before = copy.deepcopy(four)
    record_result(four, "SF-1", win_b())
    assert four == before


def test_side_b_winner(four):
    updated = record_result(four, "SF-2", win_b())
    assert updated.get_node("SF-2").winner.id == "e3"
    assert updated.final.slot_b.entry.id == "e3"


def test_final_completes_bracket(four):
    bracket = record_result(four, "SF-1", win_a())
    bracket = record_result(bracket, "SF-2", win_a())
    assert bracket.final.is_ready

    bracket = record_result(bracket, "F-1", win_b())

    assert bracket.status == BracketStatus.COMPLETE
    assert bracket.champion.id == "e2"
    assert champion_of(bracket) == "e2"


def test_identical_resubmission_is_idempotent(four):
    once = record_result(four, "SF-1", win_a())
    twice = record_result(once, "SF-1", win_a())
    assert twice == once


def test_score_correction_same_winner_keeps_downstream(four):
    bracket = record_result(four, "SF-1", win_a())
    bracket = record_result(bracket, "SF-2", win_a())
    bracket = record_result(bracket, "F-1", win_a())

    corrected = record_result(bracket, "SF-1", [Set(1, 7, 5)])

    assert corrected.get_node("SF-1").match.sets == [Set(1, 7, 5)]
    assert corrected.final.match.status == MatchStatus.FINISHED
    assert corrected.status == BracketStatus.COMPLETE


def test_changed_semifinal_winner_resets_final(four):
    """Changing a semifinal after the final was played sends the final back to TBD."""
    bracket = record_result(four, "SF-1", win_a())
    bracket = record_result(bracket, "SF-2", win_a())
    bracket = record_result(bracket, "F-1", win_a())
    assert bracket.status == BracketStatus.COMPLETE

    corrected = record_result(bracket, "SF-1", win_b())

    final = corrected.final
    assert final.match.status == MatchStatus.SCHEDULED
    assert final.match.sets == []
    assert final.match.winner_id is None
    assert final.slot_a.entry.id == "e4"
    assert corrected.status == BracketStatus.IN_PROGRESS
    assert corrected.champion is None


def test_cascade_goes_through_every_played_round():
    bracket = build_bracket(make_seeds(8))
    for node_id in ("QF-1", "QF-2", "QF-3", "QF-4", "SF-1", "SF-2", "F-1"):
        bracket = record_result(bracket, node_id, win_a())

    corrected = record_result(bracket, "QF-1", win_b())

    sf1 = corrected.get_node("SF-1")
    assert sf1.slot_a.entry.id == "e8"
    assert sf1.match.status == MatchStatus.SCHEDULED
    final = corrected.final
    assert isinstance(final.slot_a, Pending)
    assert final.slot_a.from_node_id == "SF-1"
    assert final.match.entry_a_id is None
    assert final.match.status == MatchStatus.SCHEDULED
    # The other half is untouched
    assert corrected.get_node("SF-2").match.status == MatchStatus.FINISHED
    assert final.slot_b.entry.id == corrected.get_node("SF-2").winner.id


class TestRecordResultErrors:
    """Rejected submissions return errors and change nothing."""

    def test_unknown_node(self, four):
        result = record_result(four, "QF-9", win_a())
        assert isinstance(result, ValidationError)
        assert result.code == ErrorCode.NODE_NOT_FOUND

    def test_bye_node_locked(self):
        bracket = build_bracket(make_seeds(3))
        result = record_result(bracket, "SF-1", win_a())
        assert result.code == ErrorCode.ALREADY_FINAL_LOCKED

    def test_pending_entries(self, four):
        result = record_result(four, "F-1", win_a())
        assert result.code == ErrorCode.PRECONDITION_NOT_MET

    def test_invalid_score(self, four):
        result = record_result(four, "SF-1", [Set(1, 6, 5)])
        assert result.code == ErrorCode.SET_SCORE_NOT_ALLOWED
        assert four.get_node("SF-1").match.status == MatchStatus.SCHEDULED

    def test_short_ruleset(self, four):
        updated = record_result(four, "SF-1", [Set(1, 4, 2)], ruleset="short")
        assert updated.get_node("SF-1").winner.id == "e1"

        assert record_result(four, "SF-1", [Set(1, 4, 2)]).code == ErrorCode.SET_MIN_GAMES_FOR_WINNER


def test_reopen_node_clears_result_and_downstream(four):
    bracket = record_result(four, "SF-1", win_a())

    reopened = reopen_node(bracket, "SF-1")

    node = reopened.get_node("SF-1")
    assert node.match.status == MatchStatus.SCHEDULED
    assert node.match.sets == []
    assert isinstance(reopened.final.slot_a, Pending)


class TestCancelBracket:
    """Cancellation discards the whole tree."""

    def test_cancel_clears_nodes(self, four):
        bracket = record_result(four, "SF-1", win_a())
        cancel_bracket(bracket)

        assert bracket.nodes == []
        assert bracket.status == BracketStatus.CANCELLED

    def test_cancel_complete_bracket_allowed(self, four):
        bracket = record_result(four, "SF-1", win_a())
        bracket = record_result(bracket, "SF-2", win_a())
        bracket = record_result(bracket, "F-1", win_a())

        cancel_bracket(bracket)
        assert bracket.status == BracketStatus.CANCELLED

    def test_progression_on_cancelled_raises(self, four):
        cancel_bracket(four)
        with pytest.raises(BracketStateError):
            record_result(four, "SF-1", win_a())
        with pytest.raises(BracketStateError):
            cancel_bracket(four)


class TestRecordGroupResult:
    """Group match scoring."""

    def test_scores_match(self):
        match = Match(id="g-m1", entry_a_id="x", entry_b_id="y", group_id="g")
        scored = record_group_result(match, [Set(1, 5, 7)])

        assert scored.status == MatchStatus.FINISHED
        assert scored.winner_id == "y"
        assert match.status == MatchStatus.SCHEDULED

    def test_invalid_score_rejected(self):
        match = Match(id="g-m1", entry_a_id="x", entry_b_id="y")
        assert record_group_result(match, [Set(1, 6, 6)]).code == ErrorCode.NO_WINNER

    def test_cancelled_match_locked(self):
        match = Match(id="g-m1", entry_a_id="x", entry_b_id="y", status=MatchStatus.CANCELLED)
        assert record_group_result(match, win_a()).code == ErrorCode.ALREADY_FINAL_LOCKED


def test_phase_names_follow_size():
    bracket = build_bracket(make_seeds(16))
    assert bracket.phases == [
        RoundType.ROUND_OF_16,
        RoundType.QUARTERFINAL,
        RoundType.SEMIFINAL,
        RoundType.FINAL,
    ]
