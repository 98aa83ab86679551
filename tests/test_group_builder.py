"""Tests for group building."""

import pytest

from rtm.group_builder import (
    calculate_group_distribution,
    create_groups,
    create_rotating_groups,
    distribute_snake,
    form_qualifier_pairs,
    generate_round_robin_fixtures,
    group_name,
    rotating_pair_matches,
)
from rtm.models import Entry, MatchStatus, StandingRow
from rtm.seeding import Qualifier
from rtm.validation import ErrorCode, ValidationError


def make_entries(n):
    return [Entry(id=f"e{i}", name=f"Pair {i}") for i in range(1, n + 1)]


def test_distribution_prefers_groups_of_three():
    """Groups of 3 first, 4 when needed, 5 entries in a single group."""
    assert calculate_group_distribution(3) == [3]
    assert calculate_group_distribution(4) == [4]
    assert calculate_group_distribution(5) == [5]
    assert calculate_group_distribution(6) == [3, 3]
    assert calculate_group_distribution(7) == [3, 4]
    assert calculate_group_distribution(8) == [4, 4]
    assert calculate_group_distribution(9) == [3, 3, 3]
    assert calculate_group_distribution(10) == [3, 3, 4]
    assert calculate_group_distribution(11) == [3, 4, 4]


def test_distribution_other_preferences():
    assert calculate_group_distribution(11, 4) == [4, 4, 3]
    assert calculate_group_distribution(10, 4) == [4, 3, 3]
    assert calculate_group_distribution(9, 4) == [3, 3, 3]
    assert calculate_group_distribution(12, 5) == [5, 4, 3]
    assert calculate_group_distribution(11, 5) == [5, 3, 3]


@pytest.mark.parametrize("preferred", [3, 4, 5])
def test_distribution_always_sums(preferred):
    for n in range(3, 40):
        sizes = calculate_group_distribution(n, preferred)
        assert sum(sizes) == n
        assert min(sizes) >= 3


def test_distribution_rejects_bad_input():
    with pytest.raises(ValueError):
        calculate_group_distribution(2)
    with pytest.raises(ValueError):
        calculate_group_distribution(9, 6)


def test_snake_seeding():
    """Seeds flow left to right, then right to left."""
    groups = distribute_snake(make_entries(9), 3)

    assert [[e.id for e in g] for g in groups] == [
        ["e1", "e6", "e7"],
        ["e2", "e5", "e8"],
        ["e3", "e4", "e9"],
    ]


def test_snake_respects_sizes():
    groups = distribute_snake(make_entries(7), 2, sizes=[3, 4])
    assert [len(g) for g in groups] == [3, 4]

    with pytest.raises(ValueError):
        distribute_snake(make_entries(7), 2, sizes=[3, 3])


def test_round_robin_fixtures_cover_every_pair():
    for size in (2, 3, 4, 5, 6):
        fixtures = generate_round_robin_fixtures(size)
        pairs = {frozenset(f) for f in fixtures}
        assert len(fixtures) == size * (size - 1) // 2
        assert len(pairs) == len(fixtures)


def test_deciding_match_last():
    assert generate_round_robin_fixtures(3)[-1] == (2, 3)
    assert generate_round_robin_fixtures(4)[-1] == (2, 3)


def test_group_names():
    assert group_name(0) == "Group A"
    assert group_name(2) == "Group C"
    assert group_name(26) == "Group AA"


class TestCreateGroups:
    """Test cases for create_groups."""

    def test_groups_and_matches(self):
        groups, matches = create_groups(make_entries(7), stage_id="s1")

        assert [g.name for g in groups] == ["Group A", "Group B"]
        assert [g.size for g in groups] == [3, 4]
        assert len(matches) == 3 + 6
        assert all(m.status == MatchStatus.SCHEDULED for m in matches)
        assert groups[0].id == "s1-a"
        assert all(m.id.startswith(m.group_id) for m in matches)

    def test_matches_stay_inside_group(self):
        groups, matches = create_groups(make_entries(10))
        members = {g.id: set(g.entry_ids) for g in groups}

        for match in matches:
            assert {match.entry_a_id, match.entry_b_id} <= members[match.group_id]

        listed = [mid for g in groups for mid in g.match_ids]
        assert listed == [m.id for m in matches]

    def test_rejects_duplicates(self):
        entries = make_entries(3)
        with pytest.raises(ValueError):
            create_groups(entries + [entries[0]])


class TestRotatingPairs:
    """King of the Beach partner rotation."""

    def test_rotation(self):
        players = [Entry(id=p, name=p.upper()) for p in "abcd"]
        pairs, matches = rotating_pair_matches(players, "g1")

        sides = [(m.entry_a_id, m.entry_b_id) for m in matches]
        assert sides == [("a+b", "c+d"), ("a+c", "b+d"), ("a+d", "b+c")]
        assert pairs["a+b"].player_ids == ("a", "b")
        assert pairs["b+c"].name == "B / C"
        assert all(m.group_id == "g1" for m in matches)

    def test_every_player_partners_everyone_once(self):
        players = [Entry(id=p, name=p) for p in "wxyz"]
        pairs, _ = rotating_pair_matches(players, "g")

        partnerships = {frozenset(p.player_ids) for p in pairs.values()}
        assert len(partnerships) == 6

    def test_needs_four_players(self):
        with pytest.raises(ValueError):
            rotating_pair_matches([Entry(id="a", name="a")] * 3, "g")

    def test_rotating_groups(self):
        players = [Entry(id=f"p{i}", name=f"P{i}") for i in range(1, 9)]
        groups, matches, pairs = create_rotating_groups(players, stage_id="kb")

        assert len(groups) == 2
        assert all(g.size == 4 for g in groups)
        assert len(matches) == 6
        assert len(pairs) == 12

        with pytest.raises(ValueError):
            create_rotating_groups(players[:6])


def qualified_players(groups="abc"):
    """Winner and runner-up of each group; group a strongest."""
    qualifiers = []
    for index, g in enumerate(groups):
        for position, points in ((1, 9 - index), (2, 6 - index)):
            player = f"{g}{position}"
            qualifiers.append(
                Qualifier(
                    entry=Entry(id=player, name=player.upper(), origin=f"{position} {g}", player_ids=(player,)),
                    group_id=g,
                    group_index=index,
                    row=StandingRow(entry_id=player, group_id=g, points=points, position=position),
                )
            )
    return qualifiers


class TestFormQualifierPairs:
    """Pairing qualified individuals for the elimination phase."""

    def test_best_with_best_odd_number_of_groups(self):
        """Three groups: two winners together, leftover winner with the best runner-up."""
        pairs = form_qualifier_pairs(qualified_players(), "best-with-best")

        assert [p.id for p in pairs] == ["a1+b1", "c1+a2", "b2+c2"]
        assert pairs[0].player_ids == ("a1", "b1")
        assert pairs[0].origin == "1 a / 1 b"

    def test_cross_ranking(self):
        """i-th best winner with the i-th best runner-up."""
        pairs = form_qualifier_pairs(qualified_players(), "cross-ranking")

        assert [p.id for p in pairs] == ["a1+a2", "b1+b2", "c1+c2"]

    def test_random_draw_reproducible_and_mixed(self):
        qualifiers = qualified_players("ab")

        first = form_qualifier_pairs(qualifiers, "random-draw", rng=11)
        second = form_qualifier_pairs(qualifiers, "random-draw", rng=11)

        assert [p.id for p in first] == [p.id for p in second]
        for pair in first:
            assert pair.player_ids[0][0] != pair.player_ids[1][0]
        assert sorted(pid for p in first for pid in p.player_ids) == ["a1", "a2", "b1", "b2"]

    def test_odd_number_of_qualifiers(self):
        result = form_qualifier_pairs(qualified_players()[:5])

        assert isinstance(result, ValidationError)
        assert result.code == ErrorCode.PRECONDITION_NOT_MET

    def test_unknown_mode(self):
        with pytest.raises(ValueError):
            form_qualifier_pairs(qualified_players(), "coin-toss")
