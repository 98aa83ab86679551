"""Tests for standings calculation and ordering."""

import itertools

from rtm.models import Entry, Match, MatchStatus, Set
from rtm.standings import (
    POINTS_PER_WIN,
    compute_individual_standings,
    compute_standings,
)


def make_entries(*ids):
    return [Entry(id=i, name=f"Pair {i}") for i in ids]


def finished(match_id, a, b, games_a, games_b, group_id="g1"):
    """A finished single-set match, winner derived from the score."""
    return Match(
        id=match_id,
        entry_a_id=a,
        entry_b_id=b,
        status=MatchStatus.FINISHED,
        sets=[Set(1, games_a, games_b)],
        winner_id=a if games_a > games_b else b,
        group_id=group_id,
    )


def test_ordered_by_wins():
    """A beats everyone, B beats C and D, C beats D -> [A, B, C, D]."""
    entries = make_entries("A", "B", "C", "D")
    matches = [
        finished("m1", "A", "B", 6, 2),
        finished("m2", "A", "C", 6, 3),
        finished("m3", "A", "D", 6, 1),
        finished("m4", "B", "C", 6, 4),
        finished("m5", "B", "D", 7, 5),
        finished("m6", "C", "D", 6, 4),
    ]

    rows = compute_standings(matches, entries, group_id="g1")

    assert [r.entry_id for r in rows] == ["A", "B", "C", "D"]
    assert [r.position for r in rows] == [1, 2, 3, 4]
    assert rows[0].points == 3 * POINTS_PER_WIN
    assert rows[0].wins == 3 and rows[0].losses == 0
    assert all(r.group_id == "g1" for r in rows)


def test_stats_folded_from_sets():
    entries = make_entries("A", "B")
    rows = compute_standings([finished("m1", "A", "B", 7, 6)], entries)
    a, b = rows

    assert (a.games_won, a.games_lost, a.game_diff) == (7, 6, 1)
    assert (a.sets_won, a.sets_lost) == (1, 0)
    assert (b.games_won, b.games_lost, b.game_diff) == (6, 7, -1)
    assert b.points == 0 and b.played == 1


def test_order_independent():
    """Any permutation of the match list yields the same standings."""
    entries = make_entries("A", "B", "C")
    matches = [
        finished("m1", "A", "B", 6, 4),
        finished("m2", "B", "C", 6, 1),
        finished("m3", "C", "A", 7, 5),
    ]
    expected = [r.to_dict() for r in compute_standings(matches, entries)]

    for permutation in itertools.permutations(matches):
        assert [r.to_dict() for r in compute_standings(list(permutation), entries)] == expected


def test_game_differential_breaks_point_tie():
    """Three-way tie on points and wins resolved by game differential."""
    entries = make_entries("A", "B", "C")
    matches = [
        finished("m1", "A", "B", 6, 0),  # A +6
        finished("m2", "B", "C", 6, 4),  # B +2
        finished("m3", "C", "A", 7, 6),  # C +1
    ]

    rows = compute_standings(matches, entries)

    # A: +6 -1 = +5, B: -6 +2 = -4, C: -2 +1 = -1
    assert [r.entry_id for r in rows] == ["A", "C", "B"]


def test_full_tie_keeps_input_order():
    entries = make_entries("B", "A")
    rows = compute_standings([], entries)
    assert [r.entry_id for r in rows] == ["B", "A"]


def test_unfinished_matches_ignored():
    entries = make_entries("A", "B")
    scheduled = Match(id="m1", entry_a_id="A", entry_b_id="B")
    in_progress = Match(
        id="m2", entry_a_id="A", entry_b_id="B",
        status=MatchStatus.IN_PROGRESS, sets=[Set(1, 6, 2)],
    )

    rows = compute_standings([scheduled, in_progress], entries)

    assert all(r.played == 0 and r.points == 0 for r in rows)


def test_zero_played_entry_ranked_last():
    """An entry that has not played sits below entries that lost."""
    entries = make_entries("Z", "A", "B")
    rows = compute_standings([finished("m1", "A", "B", 6, 3)], entries)

    assert [r.entry_id for r in rows] == ["A", "B", "Z"]
    assert rows[-1].played == 0
    assert rows[-1].points == 0


def test_single_entry_group_auto_qualified():
    rows = compute_standings([], make_entries("solo"))
    assert len(rows) == 1
    assert rows[0].position == 1
    assert rows[0].played == 0


class TestPositionOverride:
    """Administrator overrides beat every computed key."""

    def test_override_pins_position(self):
        entries = make_entries("A", "B", "C")
        matches = [
            finished("m1", "A", "B", 6, 0),
            finished("m2", "A", "C", 6, 0),
            finished("m3", "B", "C", 6, 0),
        ]

        rows = compute_standings(matches, entries, position_overrides={"C": 1})

        assert [r.entry_id for r in rows] == ["C", "A", "B"]
        assert rows[0].position_override == 1

    def test_override_to_last(self):
        entries = make_entries("A", "B", "C")
        matches = [finished("m1", "A", "B", 6, 0), finished("m2", "A", "C", 6, 0)]

        rows = compute_standings(matches, entries, position_overrides={"A": 3})

        assert rows[2].entry_id == "A"
        assert [r.position for r in rows] == [1, 2, 3]

    def test_two_pins_on_last_position(self):
        """The second row pinned to last lands just above it, not on top."""
        entries = make_entries("A", "B", "C")
        matches = [
            finished("m1", "A", "B", 6, 0),
            finished("m2", "A", "C", 6, 0),
            finished("m3", "B", "C", 6, 0),
        ]

        rows = compute_standings(matches, entries, position_overrides={"A": 3, "B": 3})

        assert [r.entry_id for r in rows] == ["C", "B", "A"]


def test_individual_standings_credit_both_players():
    """Rotating pairs: each player gets the result of their pair."""
    players = [Entry(id=p, name=p.upper(), player_ids=(p,)) for p in "abcd"]
    pairs = {
        "ab": Entry(id="ab", name="a/b", player_ids=("a", "b")),
        "cd": Entry(id="cd", name="c/d", player_ids=("c", "d")),
        "ac": Entry(id="ac", name="a/c", player_ids=("a", "c")),
        "bd": Entry(id="bd", name="b/d", player_ids=("b", "d")),
        "ad": Entry(id="ad", name="a/d", player_ids=("a", "d")),
        "bc": Entry(id="bc", name="b/c", player_ids=("b", "c")),
    }
    matches = [
        finished("m1", "ab", "cd", 6, 2),
        finished("m2", "ac", "bd", 6, 3),
        finished("m3", "ad", "bc", 4, 6),
    ]

    rows = compute_individual_standings(matches, players, pairs, group_id="g1")
    by_id = {r.entry_id: r for r in rows}

    assert by_id["a"].wins == 2 and by_id["a"].played == 3
    assert by_id["d"].wins == 0
    assert by_id["b"].wins == 2 and by_id["c"].wins == 2
    assert rows[0].entry_id == "a"  # best game differential among 2-win players
    assert rows[-1].entry_id == "d"
