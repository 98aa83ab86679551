"""Seed assignment from group standings.

Qualifiers are the top N rows of every group. They are ranked across groups
by in-group position first, then by their group numbers (points, wins, game
differential, set differential), and finally by group order.

Policies:
- best-vs-best: classic seeding table, top seeds meet as late as possible;
  group mates are kept apart in the first round whenever a swap with an
  equally placed qualifier allows it.
- ranked-pairing: same ranking, paired adjacently (1-2, 3-4, ...).
- random-draw: uniform shuffle from a seedable random source.

Byes go to the top seeds (see rtm.bracket.first_round_pairs).
"""

import dataclasses
import logging
import random
from dataclasses import dataclass
from typing import Optional, Union

from rtm.bracket import (
    MAX_BRACKET_SIZE,
    PAIRING_ADJACENT,
    PAIRING_STANDARD,
    first_round_pairs,
)
from rtm.i18n import get_string
from rtm.models import Entry, SeedingPolicy, StandingRow
from rtm.validation import ErrorCode, ValidationError

logger = logging.getLogger(__name__)


@dataclass
class Qualifier:
    """An entry that advanced from a group, with what ranks it."""

    entry: Entry
    group_id: str
    group_index: int
    row: StandingRow

    @property
    def position(self) -> int:
        return self.row.position or 1


def pairing_for_policy(policy: Union[SeedingPolicy, str]) -> str:
    """Bracket pairing layout that realises a seeding policy."""
    policy = SeedingPolicy(policy)
    if policy == SeedingPolicy.RANKED_PAIRING:
        return PAIRING_ADJACENT
    return PAIRING_STANDARD


def ordinal(n: int) -> str:
    """Localized ordinal ("1st", "2nd", ...) for a group position."""
    label = get_string(f"labels.ordinals.{n}")
    if label == f"labels.ordinals.{n}":
        return get_string("labels.ordinal_default", n=n)
    return label


def origin_label(position: int, group_name: str) -> str:
    """Human label such as "1st of Group A"."""
    return get_string("labels.group_origin", position=ordinal(position), group=group_name)


def _precondition(key: str, **context) -> ValidationError:
    return ValidationError(
        code=ErrorCode.PRECONDITION_NOT_MET,
        message=get_string(f"errors.{key}", **context),
        context=context,
    )


def rank_key(qualifier: Qualifier) -> tuple:
    """Cross-group ranking key (lower is better)."""
    row = qualifier.row
    return (
        qualifier.position,
        -row.points,
        -row.wins,
        -row.game_diff,
        -row.set_diff,
        qualifier.group_index,
    )


def collect_qualifiers(
    group_standings: dict[str, list[StandingRow]],
    qualifiers_per_group: int,
    entries: dict[str, Entry],
    group_names: Optional[dict[str, str]] = None,
) -> list[Qualifier]:
    """Take the top rows of every group, labelled with where they came from.

    Args:
        group_standings: group_id -> rows sorted by position
        qualifiers_per_group: How many advance from each group
        entries: entry_id -> Entry
        group_names: Optional group_id -> display name (defaults to the id)

    Returns:
        Qualifiers in group order. A group with fewer rows than requested
        contributes all of them.
    """
    if qualifiers_per_group < 1:
        raise ValueError(f"qualifiers_per_group must be at least 1, got {qualifiers_per_group}")

    group_names = group_names or {}
    qualifiers = []

    for group_index, (group_id, rows) in enumerate(group_standings.items()):
        name = group_names.get(group_id, group_id)
        if len(rows) < qualifiers_per_group:
            logger.debug("%s has %d entries, all of them qualify", name, len(rows))

        ordered = sorted(rows, key=lambda r: r.position if r.position is not None else len(rows) + 1)
        for row in ordered[:qualifiers_per_group]:
            entry = entries[row.entry_id]
            labelled = dataclasses.replace(entry, origin=origin_label(row.position or 1, name))
            qualifiers.append(
                Qualifier(entry=labelled, group_id=group_id, group_index=group_index, row=row)
            )

    return qualifiers


def separate_group_mates(ranked: list[Qualifier]) -> list[Qualifier]:
    """Swap equally placed qualifiers so group mates do not meet in round one.

    Works on the classic seeding table. For every first-round pairing whose
    two qualifiers share a group, the lower seed is exchanged with the lower
    seed of another pairing when both qualifiers hold the same in-group
    position and the exchange leaves both pairings clean.

    Args:
        ranked: Qualifiers in seed order

    Returns:
        New list in seed order
    """
    seeds = list(ranked)
    pairs = [(a, b) for a, b in first_round_pairs(len(seeds), PAIRING_STANDARD) if b is not None]

    def clash(a: int, b: int) -> bool:
        return seeds[a - 1].group_id == seeds[b - 1].group_id

    for top, low in pairs:
        if not clash(top, low):
            continue

        candidates = sorted(
            (p for p in pairs if p != (top, low)),
            key=lambda p: abs(p[1] - low),
        )
        for other_top, other_low in candidates:
            if seeds[other_low - 1].position != seeds[low - 1].position:
                continue
            seeds[low - 1], seeds[other_low - 1] = seeds[other_low - 1], seeds[low - 1]
            if not clash(top, low) and not clash(other_top, other_low):
                logger.debug("Swapped seeds %d and %d to separate group mates", low, other_low)
                break
            seeds[low - 1], seeds[other_low - 1] = seeds[other_low - 1], seeds[low - 1]
        else:
            logger.debug("Could not separate group mates at seeds %d and %d", top, low)

    return seeds


def assign_seeds(
    group_standings: dict[str, list[StandingRow]],
    qualifiers_per_group: int,
    policy: Union[SeedingPolicy, str],
    entries: dict[str, Entry],
    rng: Optional[Union[random.Random, int]] = None,
    group_names: Optional[dict[str, str]] = None,
) -> Union[list[Entry], ValidationError]:
    """Select qualifiers and order them into bracket seeds.

    Args:
        group_standings: group_id -> rows sorted by position
        qualifiers_per_group: How many advance from each group
        policy: "best-vs-best", "ranked-pairing" or "random-draw"
        entries: entry_id -> Entry
        rng: random.Random instance or int seed, used by random-draw
        group_names: Optional group_id -> display name

    Returns:
        Entries in seed order (index 0 = top seed), origin labels set, or
        PRECONDITION_NOT_MET
    """
    policy = SeedingPolicy(policy)

    qualifiers = collect_qualifiers(group_standings, qualifiers_per_group, entries, group_names)

    if len(qualifiers) < 2:
        return _precondition("too_few_qualifiers", count=len(qualifiers))

    if len(qualifiers) > MAX_BRACKET_SIZE:
        return _precondition("too_many_qualifiers", count=len(qualifiers), max_size=MAX_BRACKET_SIZE)

    if policy == SeedingPolicy.RANDOM_DRAW:
        if not isinstance(rng, random.Random):
            rng = random.Random(rng)
        seeded = list(qualifiers)
        rng.shuffle(seeded)
    else:
        seeded = sorted(qualifiers, key=rank_key)
        if policy == SeedingPolicy.BEST_VS_BEST:
            seeded = separate_group_mates(seeded)

    logger.info(
        "Seeds assigned: %d qualifiers from %d groups (%s)",
        len(seeded), len(group_standings), policy.value,
    )
    return [q.entry for q in seeded]
