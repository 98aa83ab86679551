"""SQLite storage layer for rtm.

Provides ORM models and repository pattern for data persistence. The engine
modules never touch the database; the CLI loads domain objects through the
repositories, runs the engine, and writes the result back.
"""

import json
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from sqlalchemy import Column, DateTime, Integer, String, Text, create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import NullPool

from rtm.models import (
    Bracket,
    BracketNode,
    BracketStatus,
    Entry,
    Group,
    Match,
    MatchStatus,
    Pending,
    Resolved,
    RoundType,
    Set,
    StandingRow,
)
from rtm.paths import get_data_dir

Base = declarative_base()


class StaleBracketError(Exception):
    """The stored bracket changed since it was loaded."""

    pass


# ============================================================================
# ORM Models
# ============================================================================


class StageORM(Base):
    """Stage table, holding the validated configuration of the stage."""

    __tablename__ = "stages"

    id = Column(String(50), primary_key=True)
    config_json = Column(Text, nullable=False, default="{}")
    created_at = Column(DateTime, default=datetime.utcnow)

    @property
    def config(self) -> dict[str, Any]:
        return json.loads(self.config_json)

    @config.setter
    def config(self, value: dict[str, Any]):
        self.config_json = json.dumps(value)


class EntryORM(Base):
    """Entry table.

    - id: Database primary key (auto-generated)
    - entry_id: Identifier from the import source, unique per stage
    - seed: Registration order (1 = best)
    """

    __tablename__ = "entries"

    id = Column(Integer, primary_key=True, autoincrement=True)
    entry_id = Column(String(50), nullable=False)
    stage_id = Column(String(50), nullable=False)
    name = Column(String(200), nullable=False)
    seed = Column(Integer, nullable=True)
    # Store player_ids as JSON array
    player_ids_json = Column(Text, nullable=False, default="[]")

    def to_entry(self) -> Entry:
        return Entry(id=self.entry_id, name=self.name, player_ids=tuple(json.loads(self.player_ids_json)))


class GroupORM(Base):
    """Group table."""

    __tablename__ = "groups"

    id = Column(String(60), primary_key=True)
    stage_id = Column(String(50), nullable=False)
    name = Column(String(20), nullable=False)  # Group A, Group B, ...
    entry_ids_json = Column(Text, nullable=False, default="[]")
    # entry_id -> position assigned by an administrator
    position_overrides_json = Column(Text, nullable=False, default="{}")
    created_at = Column(DateTime, default=datetime.utcnow)

    @property
    def entry_ids(self) -> list[str]:
        return json.loads(self.entry_ids_json)

    @entry_ids.setter
    def entry_ids(self, value: list[str]):
        self.entry_ids_json = json.dumps(value)

    @property
    def position_overrides(self) -> dict[str, int]:
        return json.loads(self.position_overrides_json)

    @position_overrides.setter
    def position_overrides(self, value: dict[str, int]):
        self.position_overrides_json = json.dumps(value)


class MatchORM(Base):
    """Group match table."""

    __tablename__ = "matches"

    id = Column(String(80), primary_key=True)
    stage_id = Column(String(50), nullable=False)
    group_id = Column(String(60), nullable=True)
    entry_a_id = Column(String(50), nullable=True)
    entry_b_id = Column(String(50), nullable=True)
    seq = Column(Integer, nullable=False, default=0)  # Fixture order within the stage
    status = Column(String(20), nullable=False, default=MatchStatus.SCHEDULED.value)
    winner_id = Column(String(50), nullable=True)
    # Store sets as JSON: [{"number": 1, "games_a": 6, "games_b": 4}, ...]
    sets_json = Column(Text, nullable=False, default="[]")
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def to_match(self) -> Match:
        return Match(
            id=self.id,
            entry_a_id=self.entry_a_id,
            entry_b_id=self.entry_b_id,
            status=MatchStatus(self.status),
            sets=[Set.from_dict(s) for s in json.loads(self.sets_json)],
            winner_id=self.winner_id,
            group_id=self.group_id,
        )


class GroupStandingORM(Base):
    """Cached group standing table, rebuilt from matches after every result."""

    __tablename__ = "group_standings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    stage_id = Column(String(50), nullable=False)
    group_id = Column(String(60), nullable=False)
    entry_id = Column(String(50), nullable=False)
    points = Column(Integer, nullable=False, default=0)
    played = Column(Integer, nullable=False, default=0)
    wins = Column(Integer, nullable=False, default=0)
    losses = Column(Integer, nullable=False, default=0)
    games_won = Column(Integer, nullable=False, default=0)
    games_lost = Column(Integer, nullable=False, default=0)
    sets_won = Column(Integer, nullable=False, default=0)
    sets_lost = Column(Integer, nullable=False, default=0)
    position = Column(Integer, nullable=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class BracketORM(Base):
    """Bracket snapshot table, one row per stage.

    `version` grows on every save and is checked by the next writer.
    """

    __tablename__ = "brackets"

    stage_id = Column(String(50), primary_key=True)
    status = Column(String(20), nullable=False, default=BracketStatus.IN_PROGRESS.value)
    version = Column(Integer, nullable=False, default=1)
    snapshot_json = Column(Text, nullable=False, default="{}")
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


# ============================================================================
# Bracket serialization
# ============================================================================


def _entry_to_dict(entry: Entry) -> dict:
    return {"id": entry.id, "name": entry.name, "origin": entry.origin, "player_ids": list(entry.player_ids)}


def _entry_from_dict(data: dict) -> Entry:
    return Entry(
        id=data["id"],
        name=data["name"],
        origin=data.get("origin", ""),
        player_ids=tuple(data.get("player_ids") or ()),
    )


def _slot_to_dict(slot) -> Optional[dict]:
    if slot is None:
        return None
    if isinstance(slot, Resolved):
        return {"entry": _entry_to_dict(slot.entry)}
    return {"from_node_id": slot.from_node_id, "slot": slot.slot}


def _slot_from_dict(data: Optional[dict]):
    if data is None:
        return None
    if "entry" in data:
        return Resolved(_entry_from_dict(data["entry"]))
    return Pending(from_node_id=data["from_node_id"], slot=data["slot"])


def bracket_to_dict(bracket: Bracket) -> dict:
    """Full JSON-ready snapshot of a bracket."""
    nodes = []
    for node in bracket.nodes:
        data = node.to_dict()
        data["match"] = node.match.to_dict()
        data["slot_a"] = _slot_to_dict(node.slot_a)
        data["slot_b"] = _slot_to_dict(node.slot_b)
        nodes.append(data)
    return {"stage_id": bracket.stage_id, "status": bracket.status.value, "nodes": nodes}


def bracket_from_dict(data: dict) -> Bracket:
    """Rebuild a bracket from bracket_to_dict output."""
    nodes = [
        BracketNode(
            id=n["id"],
            phase=RoundType(n["phase"]),
            order=n["order"],
            match=Match.from_dict(n["match"]),
            slot_a=_slot_from_dict(n["slot_a"]),
            slot_b=_slot_from_dict(n.get("slot_b")),
            feeds_into_node_id=n.get("feeds_into_node_id"),
            feeds_slot=n.get("slot"),
        )
        for n in data.get("nodes", [])
    ]
    return Bracket(
        nodes=nodes,
        status=BracketStatus(data.get("status", BracketStatus.IN_PROGRESS.value)),
        stage_id=data.get("stage_id"),
    )


# ============================================================================
# Database Manager
# ============================================================================


class DatabaseManager:
    """Manages SQLite database connection and session."""

    def __init__(self, db_path: Optional[str] = None):
        """Initialize database manager.

        Args:
            db_path: Path to SQLite database file (defaults to the data dir)
        """
        self.db_path = Path(db_path) if db_path else get_data_dir() / "rtm.sqlite"
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        # Use NullPool for SQLite to avoid connection pool issues
        self.engine = create_engine(
            f"sqlite:///{self.db_path}",
            echo=False,
            poolclass=NullPool,
            connect_args={"check_same_thread": False},
        )
        self.SessionLocal = sessionmaker(bind=self.engine)

    def create_tables(self):
        """Create all tables in the database."""
        Base.metadata.create_all(self.engine)

    def drop_tables(self):
        """Drop all tables (use with caution!)."""
        Base.metadata.drop_all(self.engine)

    def get_session(self):
        """Get a new database session."""
        return self.SessionLocal()


# ============================================================================
# Repository Pattern
# ============================================================================


class StageRepository:
    """Repository for Stage operations."""

    def __init__(self, session):
        self.session = session

    def create(self, stage_id: str, config: dict[str, Any]) -> StageORM:
        """Create a stage with its validated configuration."""
        stage = StageORM(id=stage_id)
        stage.config = config
        self.session.add(stage)
        self.session.commit()
        return stage

    def get_by_id(self, stage_id: str) -> Optional[StageORM]:
        return self.session.query(StageORM).filter(StageORM.id == stage_id).first()


class EntryRepository:
    """Repository for Entry operations."""

    def __init__(self, session):
        self.session = session

    def create_many(self, entries: list[Entry], stage_id: str) -> int:
        """Store entries in seed order.

        Returns:
            Number of entries stored
        """
        for seed, entry in enumerate(entries, start=1):
            self.session.add(
                EntryORM(
                    entry_id=entry.id,
                    stage_id=stage_id,
                    name=entry.name,
                    seed=seed,
                    player_ids_json=json.dumps(list(entry.player_ids)),
                )
            )
        self.session.commit()
        return len(entries)

    def get_by_stage(self, stage_id: str) -> list[Entry]:
        """Entries of a stage in seed order."""
        rows = (
            self.session.query(EntryORM)
            .filter(EntryORM.stage_id == stage_id)
            .order_by(EntryORM.seed)
            .all()
        )
        return [row.to_entry() for row in rows]


class GroupRepository:
    """Repository for Group operations."""

    def __init__(self, session):
        self.session = session

    def create(self, group: Group, stage_id: str) -> GroupORM:
        group_orm = GroupORM(id=group.id, stage_id=stage_id, name=group.name)
        group_orm.entry_ids = group.entry_ids
        self.session.add(group_orm)
        self.session.commit()
        return group_orm

    def get_by_id(self, group_id: str) -> Optional[GroupORM]:
        return self.session.query(GroupORM).filter(GroupORM.id == group_id).first()

    def get_by_stage(self, stage_id: str) -> list[GroupORM]:
        """Groups of a stage ordered by name."""
        return (
            self.session.query(GroupORM)
            .filter(GroupORM.stage_id == stage_id)
            .order_by(GroupORM.name)
            .all()
        )

    def set_position_override(self, group_id: str, entry_id: str, position: Optional[int]) -> bool:
        """Pin (or unpin with None) an entry's position in its group.

        Returns:
            True if updated, False if group or entry not found
        """
        group = self.get_by_id(group_id)
        if group is None or entry_id not in group.entry_ids:
            return False
        overrides = group.position_overrides
        if position is None:
            overrides.pop(entry_id, None)
        else:
            overrides[entry_id] = position
        group.position_overrides = overrides
        self.session.commit()
        return True


class MatchRepository:
    """Repository for group Match operations."""

    def __init__(self, session):
        self.session = session

    def create(self, match: Match, stage_id: str) -> MatchORM:
        seq = self.session.query(MatchORM).filter(MatchORM.stage_id == stage_id).count() + 1
        match_orm = MatchORM(
            id=match.id,
            stage_id=stage_id,
            group_id=match.group_id,
            entry_a_id=match.entry_a_id,
            entry_b_id=match.entry_b_id,
            seq=seq,
            status=match.status.value,
            winner_id=match.winner_id,
            sets_json=json.dumps([s.to_dict() for s in match.sets]),
        )
        self.session.add(match_orm)
        self.session.commit()
        return match_orm

    def get_by_id(self, match_id: str) -> Optional[MatchORM]:
        return self.session.query(MatchORM).filter(MatchORM.id == match_id).first()

    def get_by_group(self, group_id: str) -> list[MatchORM]:
        """Get all matches in a group, in fixture order."""
        return (
            self.session.query(MatchORM)
            .filter(MatchORM.group_id == group_id)
            .order_by(MatchORM.seq)
            .all()
        )

    def update_result(self, match: Match) -> Optional[MatchORM]:
        """Write the sets, winner and status of a scored match.

        Returns:
            Updated MatchORM instance, None if not found
        """
        match_orm = self.get_by_id(match.id)
        if match_orm:
            match_orm.sets_json = json.dumps([s.to_dict() for s in match.sets])
            match_orm.winner_id = match.winner_id
            match_orm.status = match.status.value
            self.session.commit()
            self.session.refresh(match_orm)
        return match_orm


class StandingRepository:
    """Repository for cached GroupStanding rows."""

    def __init__(self, session):
        self.session = session

    def replace_group(self, stage_id: str, group_id: str, rows: list[StandingRow]) -> int:
        """Drop the cached rows of a group and store fresh ones.

        Returns:
            Number of rows stored
        """
        self.session.query(GroupStandingORM).filter(GroupStandingORM.group_id == group_id).delete()
        for row in rows:
            self.session.add(
                GroupStandingORM(
                    stage_id=stage_id,
                    group_id=group_id,
                    entry_id=row.entry_id,
                    points=row.points,
                    played=row.played,
                    wins=row.wins,
                    losses=row.losses,
                    games_won=row.games_won,
                    games_lost=row.games_lost,
                    sets_won=row.sets_won,
                    sets_lost=row.sets_lost,
                    position=row.position,
                )
            )
        self.session.commit()
        return len(rows)

    def get_by_group(self, group_id: str) -> list[GroupStandingORM]:
        """Cached rows of a group ordered by position."""
        return (
            self.session.query(GroupStandingORM)
            .filter(GroupStandingORM.group_id == group_id)
            .order_by(GroupStandingORM.position)
            .all()
        )


class BracketRepository:
    """Repository for bracket snapshots with optimistic versioning."""

    def __init__(self, session):
        self.session = session

    def _get_row(self, stage_id: str) -> Optional[BracketORM]:
        return self.session.query(BracketORM).filter(BracketORM.stage_id == stage_id).first()

    def load(self, stage_id: str) -> Optional[tuple[Bracket, int]]:
        """Load the bracket of a stage.

        Returns:
            (bracket, version), or None if the stage has no bracket
        """
        row = self._get_row(stage_id)
        if row is None:
            return None
        return bracket_from_dict(json.loads(row.snapshot_json)), row.version

    def save(self, bracket: Bracket, stage_id: str, expected_version: Optional[int]) -> int:
        """Store a bracket snapshot.

        Args:
            bracket: Bracket to store
            stage_id: Owning stage
            expected_version: Version read before computing `bracket`, None
                when creating the first bracket of the stage

        Returns:
            The new version

        Raises:
            StaleBracketError: If another writer saved in between
        """
        snapshot = json.dumps(bracket_to_dict(bracket))

        if expected_version is None:
            if self._get_row(stage_id) is not None:
                raise StaleBracketError(f"Stage {stage_id} already has a bracket")
            self.session.add(
                BracketORM(stage_id=stage_id, status=bracket.status.value, version=1, snapshot_json=snapshot)
            )
            self.session.commit()
            return 1

        updated = (
            self.session.query(BracketORM)
            .filter(BracketORM.stage_id == stage_id, BracketORM.version == expected_version)
            .update(
                {
                    "snapshot_json": snapshot,
                    "status": bracket.status.value,
                    "version": expected_version + 1,
                    "updated_at": datetime.utcnow(),
                },
                synchronize_session=False,
            )
        )
        if updated == 0:
            self.session.rollback()
            raise StaleBracketError(
                f"Bracket of stage {stage_id} changed since version {expected_version}"
            )
        self.session.commit()
        return expected_version + 1

    def delete(self, stage_id: str) -> bool:
        """Delete the bracket of a stage.

        Returns:
            True if deleted, False if not found
        """
        row = self._get_row(stage_id)
        if row:
            self.session.delete(row)
            self.session.commit()
            return True
        return False
