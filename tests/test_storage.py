"""Tests for the SQLite storage layer."""

import pytest

from rtm.bracket import build_bracket
from rtm.group_builder import create_groups
from rtm.models import BracketStatus, Entry, MatchStatus, Set, StandingRow
from rtm.progression import cancel_bracket, record_result
from rtm.storage import (
    BracketRepository,
    DatabaseManager,
    EntryRepository,
    GroupRepository,
    MatchRepository,
    StageRepository,
    StaleBracketError,
    StandingRepository,
    bracket_from_dict,
    bracket_to_dict,
)


@pytest.fixture
def session(tmp_path):
    db = DatabaseManager(str(tmp_path / "test.sqlite"))
    db.create_tables()
    session = db.get_session()
    yield session
    session.close()


def make_entries(n):
    return [Entry(id=f"e{i}", name=f"Pair {i}", player_ids=(f"p{i}a", f"p{i}b")) for i in range(1, n + 1)]


def test_default_path_uses_data_dir(tmp_path, monkeypatch):
    monkeypatch.setenv("RTM_DATA_DIR", str(tmp_path / "data"))
    db = DatabaseManager()
    assert db.db_path == tmp_path / "data" / "rtm.sqlite"


def test_bracket_snapshot_round_trip():
    """Serialized bracket with byes, pending slots and a result rebuilds equal."""
    bracket = build_bracket(
        [Entry(id=f"e{i}", name=f"E{i}", origin=f"{i}st") for i in range(1, 6)], stage_id="s"
    )
    bracket = record_result(bracket, "QF-2", [Set(1, 6, 4)])

    assert bracket_from_dict(bracket_to_dict(bracket)) == bracket


def test_stage_and_entries(session):
    StageRepository(session).create("s1", {"ruleset": "short"})
    EntryRepository(session).create_many(make_entries(3), "s1")

    assert StageRepository(session).get_by_id("s1").config == {"ruleset": "short"}
    assert StageRepository(session).get_by_id("other") is None

    entries = EntryRepository(session).get_by_stage("s1")
    assert [e.id for e in entries] == ["e1", "e2", "e3"]
    assert entries[0].player_ids == ("p1a", "p1b")


def test_groups_and_matches(session):
    groups, matches = create_groups(make_entries(6), stage_id="s1")
    group_repo = GroupRepository(session)
    match_repo = MatchRepository(session)
    for group in groups:
        group_repo.create(group, "s1")
    for match in matches:
        match_repo.create(match, "s1")

    stored = group_repo.get_by_stage("s1")
    assert [g.name for g in stored] == ["Group A", "Group B"]
    assert stored[0].entry_ids == groups[0].entry_ids

    group_matches = [m.to_match() for m in match_repo.get_by_group("s1-a")]
    assert [m.id for m in group_matches] == groups[0].match_ids

    scored = group_matches[0]
    scored.sets = [Set(1, 6, 1)]
    scored.status = MatchStatus.FINISHED
    scored.winner_id = scored.entry_a_id
    match_repo.update_result(scored)

    reloaded = match_repo.get_by_id(scored.id).to_match()
    assert reloaded.status == MatchStatus.FINISHED
    assert reloaded.sets == [Set(1, 6, 1)]
    assert reloaded.winner_id == scored.entry_a_id


def test_position_override(session):
    groups, _ = create_groups(make_entries(3), stage_id="s1")
    repo = GroupRepository(session)
    repo.create(groups[0], "s1")

    assert repo.set_position_override("s1-a", "e3", 1)
    assert repo.get_by_id("s1-a").position_overrides == {"e3": 1}

    assert repo.set_position_override("s1-a", "e3", None)
    assert repo.get_by_id("s1-a").position_overrides == {}

    assert not repo.set_position_override("s1-a", "nobody", 1)
    assert not repo.set_position_override("s1-z", "e1", 1)


def test_standings_replaced_wholesale(session):
    repo = StandingRepository(session)
    repo.replace_group("s1", "g", [StandingRow(entry_id="a", position=2), StandingRow(entry_id="b", position=1)])
    repo.replace_group("s1", "g", [StandingRow(entry_id="a", position=1, points=3)])

    rows = repo.get_by_group("g")
    assert len(rows) == 1
    assert rows[0].entry_id == "a"
    assert rows[0].points == 3


class TestBracketRepository:
    """Versioned bracket snapshots."""

    def test_save_and_load(self, session):
        repo = BracketRepository(session)
        bracket = build_bracket(make_entries(4), stage_id="s1")

        assert repo.load("s1") is None
        assert repo.save(bracket, "s1", None) == 1

        loaded, version = repo.load("s1")
        assert loaded == bracket
        assert version == 1

    def test_version_increments(self, session):
        repo = BracketRepository(session)
        bracket = build_bracket(make_entries(4), stage_id="s1")
        repo.save(bracket, "s1", None)

        updated = record_result(bracket, "SF-1", [Set(1, 6, 2)])
        assert repo.save(updated, "s1", 1) == 2

        loaded, version = repo.load("s1")
        assert version == 2
        assert loaded.get_node("SF-1").match.status == MatchStatus.FINISHED

    def test_stale_write_rejected(self, session):
        """Two writers from the same version: the second one loses."""
        repo = BracketRepository(session)
        bracket = build_bracket(make_entries(4), stage_id="s1")
        repo.save(bracket, "s1", None)

        first = record_result(bracket, "SF-1", [Set(1, 6, 2)])
        second = record_result(bracket, "SF-2", [Set(1, 6, 2)])
        repo.save(first, "s1", 1)

        with pytest.raises(StaleBracketError):
            repo.save(second, "s1", 1)

        loaded, _ = repo.load("s1")
        assert loaded.get_node("SF-2").match.status == MatchStatus.SCHEDULED

    def test_second_bracket_for_stage_rejected(self, session):
        repo = BracketRepository(session)
        repo.save(build_bracket(make_entries(2)), "s1", None)
        with pytest.raises(StaleBracketError):
            repo.save(build_bracket(make_entries(2)), "s1", None)

    def test_cancelled_snapshot(self, session):
        repo = BracketRepository(session)
        bracket = build_bracket(make_entries(4))
        repo.save(bracket, "s1", None)

        cancel_bracket(bracket)
        repo.save(bracket, "s1", 1)

        loaded, _ = repo.load("s1")
        assert loaded.status == BracketStatus.CANCELLED
        assert loaded.nodes == []

    def test_delete(self, session):
        repo = BracketRepository(session)
        repo.save(build_bracket(make_entries(2)), "s1", None)
        assert repo.delete("s1")
        assert not repo.delete("s1")
