"""Data models for rtm.

Domain model hierarchy:
- Stage contains Groups (round robin) and a Bracket (single elimination)
- Group contains Entries and Matches
- Bracket contains BracketNodes, each owning one Match
- Match contains Sets
- Set contains the score (games)
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Union


class Ruleset(str, Enum):
    """Set scoring rules."""

    STANDARD = "standard"  # First to 6, tiebreak at 6-6
    SHORT = "short"  # First to 4 (Super 8 / compact formats)


class SeedingPolicy(str, Enum):
    """How qualifiers are ordered into the bracket."""

    BEST_VS_BEST = "best-vs-best"
    RANKED_PAIRING = "ranked-pairing"
    RANDOM_DRAW = "random-draw"


class PairFormation(str, Enum):
    """How qualified individuals are paired up for the elimination phase."""

    BEST_WITH_BEST = "best-with-best"  # 1st with 1st, leftover 1st with best 2nd, 2nd with 2nd
    CROSS_RANKING = "cross-ranking"  # i-th best of the upper half with i-th of the lower half
    RANDOM_DRAW = "random-draw"


class MatchStatus(str, Enum):
    """Match status."""

    SCHEDULED = "scheduled"  # Entries known (or pending), not played
    IN_PROGRESS = "in_progress"
    FINISHED = "finished"
    CANCELLED = "cancelled"
    BYE = "bye"  # Single entry, advances without playing


class RoundType(str, Enum):
    """Tournament round types, named by distance from the final."""

    GROUP = "GROUP"
    ROUND_OF_64 = "R64"
    ROUND_OF_32 = "R32"
    ROUND_OF_16 = "R16"
    QUARTERFINAL = "QF"
    SEMIFINAL = "SF"
    FINAL = "F"


class BracketStatus(str, Enum):
    """Bracket lifecycle."""

    IN_PROGRESS = "in_progress"
    COMPLETE = "complete"
    CANCELLED = "cancelled"


SIDE_A = "A"
SIDE_B = "B"


# ============================================================================
# Core Domain Models
# ============================================================================


@dataclass(frozen=True)
class Entry:
    """A competing unit in a match.

    A fixed pair carries two player ids; individual formats carry one and are
    combined into rotating pairs before reaching the engine.
    """

    id: str
    name: str
    origin: str = ""  # "1st of Group A", "Winner SF 1", ...
    player_ids: tuple[str, ...] = ()

    def __str__(self) -> str:
        """String representation."""
        origin_str = f" ({self.origin})" if self.origin else ""
        return f"{self.name}{origin_str}"


@dataclass
class Set:
    """A single set within a match, scored in games."""

    number: int  # 1, 2, 3, etc.
    games_a: int
    games_b: int

    @property
    def winner_side(self) -> Optional[str]:
        """Return "A" or "B" for the side with more games, None if tied."""
        if self.games_a > self.games_b:
            return SIDE_A
        elif self.games_b > self.games_a:
            return SIDE_B
        return None

    def to_dict(self) -> dict:
        return {"number": self.number, "games_a": self.games_a, "games_b": self.games_b}

    @classmethod
    def from_dict(cls, data: dict) -> "Set":
        return cls(number=int(data["number"]), games_a=int(data["games_a"]), games_b=int(data["games_b"]))

    def __str__(self) -> str:
        """String representation."""
        return f"{self.games_a}-{self.games_b}"


@dataclass
class Match:
    """A match between two entries.

    Group matches reference their group; bracket matches are owned by a
    BracketNode and may have an entry id still unknown (None) while a feeder
    node is unresolved.
    """

    id: str
    entry_a_id: Optional[str]
    entry_b_id: Optional[str]
    status: MatchStatus = MatchStatus.SCHEDULED
    sets: list[Set] = field(default_factory=list)
    winner_id: Optional[str] = None
    group_id: Optional[str] = None

    @property
    def sets_won_a(self) -> int:
        """Count sets won by side A."""
        return sum(1 for s in self.sets if s.winner_side == SIDE_A)

    @property
    def sets_won_b(self) -> int:
        """Count sets won by side B."""
        return sum(1 for s in self.sets if s.winner_side == SIDE_B)

    @property
    def games_a(self) -> int:
        """Total games won by side A across all sets."""
        return sum(s.games_a for s in self.sets)

    @property
    def games_b(self) -> int:
        """Total games won by side B across all sets."""
        return sum(s.games_b for s in self.sets)

    @property
    def is_finished(self) -> bool:
        return self.status == MatchStatus.FINISHED

    def involves(self, entry_id: str) -> bool:
        return entry_id in (self.entry_a_id, self.entry_b_id)

    def to_dict(self) -> dict:
        """Persisted shape of a match."""
        return {
            "id": self.id,
            "entry_a_id": self.entry_a_id,
            "entry_b_id": self.entry_b_id,
            "status": self.status.value,
            "sets": [s.to_dict() for s in self.sets],
            "winner_id": self.winner_id,
            "group_id": self.group_id,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Match":
        return cls(
            id=str(data["id"]),
            entry_a_id=data.get("entry_a_id"),
            entry_b_id=data.get("entry_b_id"),
            status=MatchStatus(data.get("status", MatchStatus.SCHEDULED.value)),
            sets=[Set.from_dict(s) for s in data.get("sets") or []],
            winner_id=data.get("winner_id"),
            group_id=data.get("group_id"),
        )

    def __str__(self) -> str:
        """String representation."""
        score = f"{self.sets_won_a}-{self.sets_won_b}" if self.sets else "vs"
        return f"Match {self.id}: {self.entry_a_id or 'TBD'} {score} {self.entry_b_id or 'TBD'}"


# ============================================================================
# Group Phase Models
# ============================================================================


@dataclass
class Group:
    """A round-robin group."""

    id: str
    name: str  # "Group A", "Group B", ...
    entry_ids: list[str] = field(default_factory=list)
    match_ids: list[str] = field(default_factory=list)

    @property
    def size(self) -> int:
        """Number of entries in group."""
        return len(self.entry_ids)

    def __str__(self) -> str:
        """String representation."""
        return f"{self.name} ({self.size} entries)"


@dataclass
class StandingRow:
    """Standing for an entry within its group.

    Derived from the group's matches on every change, never stored as the
    source of truth.
    """

    entry_id: str
    group_id: Optional[str] = None
    points: int = 0
    played: int = 0
    wins: int = 0
    losses: int = 0
    games_won: int = 0
    games_lost: int = 0
    sets_won: int = 0
    sets_lost: int = 0
    # Administrator-assigned position, wins over every computed key
    position_override: Optional[int] = None
    # Final position after ordering (1 = best)
    position: Optional[int] = None

    @property
    def game_diff(self) -> int:
        return self.games_won - self.games_lost

    @property
    def set_diff(self) -> int:
        return self.sets_won - self.sets_lost

    def to_dict(self) -> dict:
        return {
            "entry_id": self.entry_id,
            "group_id": self.group_id,
            "position": self.position,
            "points": self.points,
            "played": self.played,
            "wins": self.wins,
            "losses": self.losses,
            "games_won": self.games_won,
            "games_lost": self.games_lost,
            "game_diff": self.game_diff,
            "sets_won": self.sets_won,
            "sets_lost": self.sets_lost,
            "set_diff": self.set_diff,
            "position_override": self.position_override,
        }

    def __str__(self) -> str:
        """String representation."""
        pos = f"#{self.position}" if self.position else "unranked"
        return f"{pos} {self.entry_id}: {self.points}pts {self.wins}W-{self.losses}L"


# ============================================================================
# Elimination Phase Models
# ============================================================================


@dataclass(frozen=True)
class Resolved:
    """Slot already holding its entry."""

    entry: Entry


@dataclass(frozen=True)
class Pending:
    """Slot waiting for the winner of another node ("TBD")."""

    from_node_id: str
    slot: str  # Slot of the waiting node this winner will fill


SlotSource = Union[Resolved, Pending]


@dataclass
class BracketNode:
    """One match position in the elimination tree."""

    id: str
    phase: RoundType
    order: int  # 1-based within phase
    match: Match
    slot_a: SlotSource
    slot_b: Optional[SlotSource] = None  # None only on a BYE node
    feeds_into_node_id: Optional[str] = None
    feeds_slot: Optional[str] = None

    @property
    def entry_a(self) -> Optional[Entry]:
        return self.slot_a.entry if isinstance(self.slot_a, Resolved) else None

    @property
    def entry_b(self) -> Optional[Entry]:
        return self.slot_b.entry if isinstance(self.slot_b, Resolved) else None

    @property
    def is_bye(self) -> bool:
        return self.match.status == MatchStatus.BYE

    @property
    def is_ready(self) -> bool:
        """Both entries known, so a score can be recorded."""
        return self.entry_a is not None and self.entry_b is not None

    @property
    def winner(self) -> Optional[Entry]:
        for entry in (self.entry_a, self.entry_b):
            if entry is not None and entry.id == self.match.winner_id:
                return entry
        return None

    def get_slot(self, side: str) -> Optional[SlotSource]:
        return self.slot_a if side == SIDE_A else self.slot_b

    def set_slot(self, side: str, source: SlotSource) -> None:
        if side == SIDE_A:
            self.slot_a = source
            self.match.entry_a_id = source.entry.id if isinstance(source, Resolved) else None
        else:
            self.slot_b = source
            self.match.entry_b_id = source.entry.id if isinstance(source, Resolved) else None

    def to_dict(self) -> dict:
        """Persisted shape of a node."""
        return {
            "id": self.id,
            "phase": self.phase.value,
            "order": self.order,
            "match_id": self.match.id,
            "feeds_into_node_id": self.feeds_into_node_id,
            "slot": self.feeds_slot,
        }

    def __str__(self) -> str:
        """String representation."""
        a = self.entry_a.name if self.entry_a else "TBD"
        if self.is_bye:
            return f"{self.phase.value}{self.order}: {a} (BYE)"
        b = self.entry_b.name if self.entry_b else "TBD"
        return f"{self.phase.value}{self.order}: {a} vs {b}"


@dataclass
class Bracket:
    """Single-elimination tree.

    Nodes are kept in round order (first round first, FINAL last).
    """

    nodes: list[BracketNode] = field(default_factory=list)
    status: BracketStatus = BracketStatus.IN_PROGRESS
    stage_id: Optional[str] = None

    def get_node(self, node_id: str) -> Optional[BracketNode]:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def nodes_in_phase(self, phase: RoundType) -> list[BracketNode]:
        return sorted((n for n in self.nodes if n.phase == phase), key=lambda n: n.order)

    @property
    def phases(self) -> list[RoundType]:
        """Phases present, in playing order."""
        seen = []
        for node in self.nodes:
            if node.phase not in seen:
                seen.append(node.phase)
        return seen

    @property
    def final(self) -> Optional[BracketNode]:
        for node in self.nodes:
            if node.phase == RoundType.FINAL:
                return node
        return None

    @property
    def champion(self) -> Optional[Entry]:
        """Winner of the FINAL once the bracket is COMPLETE."""
        if self.status != BracketStatus.COMPLETE or self.final is None:
            return None
        return self.final.winner

    @property
    def bye_nodes(self) -> list[BracketNode]:
        return [n for n in self.nodes if n.is_bye]

    def __str__(self) -> str:
        """String representation."""
        return f"Bracket ({len(self.nodes)} nodes, {self.status.value})"
