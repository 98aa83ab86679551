"""Single-elimination bracket builder."""

import logging
import math
from typing import Optional

from rtm.models import (
    SIDE_A,
    SIDE_B,
    Bracket,
    BracketNode,
    Entry,
    Match,
    MatchStatus,
    Pending,
    Resolved,
    RoundType,
)

logger = logging.getLogger(__name__)

PAIRING_STANDARD = "standard"  # 1 vs last, 2 vs second-last, ...
PAIRING_ADJACENT = "adjacent"  # 1 vs 2, 3 vs 4, ...

# Phase by distance from the final
PHASES_FROM_FINAL = [
    RoundType.FINAL,
    RoundType.SEMIFINAL,
    RoundType.QUARTERFINAL,
    RoundType.ROUND_OF_16,
    RoundType.ROUND_OF_32,
    RoundType.ROUND_OF_64,
]

MAX_BRACKET_SIZE = 2 ** len(PHASES_FROM_FINAL)


def next_power_of_2(n: int) -> int:
    """Return the next power of 2 >= n.

    Examples:
        >>> next_power_of_2(5)
        8
        >>> next_power_of_2(8)
        8
        >>> next_power_of_2(15)
        16
    """
    if n <= 1:
        return 1
    return 2 ** math.ceil(math.log2(n))


def count_byes(num_qualifiers: int) -> tuple[int, int, int]:
    """Byes needed to fill the bracket.

    Returns:
        (byes, first_round_matches, bracket_size)

    Examples:
        >>> count_byes(8)
        (0, 4, 8)
        >>> count_byes(6)
        (2, 2, 8)
        >>> count_byes(5)
        (3, 1, 8)
    """
    bracket_size = next_power_of_2(num_qualifiers)
    byes = bracket_size - num_qualifiers
    first_round_matches = (num_qualifiers - byes) // 2
    return byes, first_round_matches, bracket_size


def get_round_type_for_size(bracket_size: int) -> RoundType:
    """Get the RoundType of the first round for a bracket size.

    Args:
        bracket_size: Power of 2 (2, 4, 8, ...)

    Raises:
        ValueError: If the size is not a supported power of 2
    """
    if bracket_size < 2 or bracket_size & (bracket_size - 1):
        raise ValueError(f"Bracket size must be a power of 2 >= 2, got {bracket_size}")
    distance = int(math.log2(bracket_size)) - 1
    if distance >= len(PHASES_FROM_FINAL):
        raise ValueError(f"Bracket size {bracket_size} exceeds the maximum of {MAX_BRACKET_SIZE}")
    return PHASES_FROM_FINAL[distance]


def standard_seed_order(bracket_size: int) -> list[int]:
    """Seed numbers in slot order for the classic seeding table.

    Built recursively: every seed s of the half-size table is followed by
    its complement (size + 1 - s), so seeds 1 and 2 can only meet in the
    final, 1-4 and 2-3 in the semifinals, and so on.

    Examples:
        >>> standard_seed_order(4)
        [1, 4, 2, 3]
        >>> standard_seed_order(8)
        [1, 8, 4, 5, 2, 7, 3, 6]
    """
    if bracket_size == 1:
        return [1]
    order = []
    for seed in standard_seed_order(bracket_size // 2):
        order.append(seed)
        order.append(bracket_size + 1 - seed)
    return order


def first_round_pairs(num_seeds: int, pairing: str = PAIRING_STANDARD) -> list[tuple[int, Optional[int]]]:
    """First-round pairings as 1-based seed numbers, None meaning a bye.

    Byes always go to the top seeds.

    Examples:
        >>> first_round_pairs(5)
        [(1, None), (4, 5), (2, None), (3, None)]
        >>> first_round_pairs(4, "adjacent")
        [(1, 2), (3, 4)]
        >>> first_round_pairs(6, "adjacent")
        [(1, None), (2, None), (3, 4), (5, 6)]
    """
    if num_seeds < 2:
        raise ValueError(f"Cannot pair {num_seeds} seeds (minimum 2)")

    byes, _, bracket_size = count_byes(num_seeds)

    if pairing == PAIRING_STANDARD:
        order = standard_seed_order(bracket_size)
        pairs = []
        for i in range(0, bracket_size, 2):
            s1, s2 = order[i], order[i + 1]
            pairs.append((s1, s2 if s2 <= num_seeds else None))
        return pairs

    if pairing == PAIRING_ADJACENT:
        pairs = [(seed, None) for seed in range(1, byes + 1)]
        for seed in range(byes + 1, num_seeds + 1, 2):
            pairs.append((seed, seed + 1))
        return pairs

    raise ValueError(f"Unknown pairing '{pairing}'")


def _node_id(phase: RoundType, order: int) -> str:
    return f"{phase.value}-{order}"


def _leaf_node(phase: RoundType, order: int, entry_a: Entry, entry_b: Optional[Entry]) -> BracketNode:
    node_id = _node_id(phase, order)
    if entry_b is None:
        match = Match(
            id=f"match-{node_id}",
            entry_a_id=entry_a.id,
            entry_b_id=None,
            status=MatchStatus.BYE,
            winner_id=entry_a.id,
        )
        return BracketNode(id=node_id, phase=phase, order=order, match=match, slot_a=Resolved(entry_a))

    match = Match(id=f"match-{node_id}", entry_a_id=entry_a.id, entry_b_id=entry_b.id)
    return BracketNode(
        id=node_id,
        phase=phase,
        order=order,
        match=match,
        slot_a=Resolved(entry_a),
        slot_b=Resolved(entry_b),
    )


def build_bracket(
    seeds: list[Entry],
    pairing: str = PAIRING_STANDARD,
    stage_id: Optional[str] = None,
) -> Bracket:
    """Build the elimination tree from an ordered seed list.

    Creates one leaf per first-round pairing (seed vs bye or opponent) and
    parent nodes up to the FINAL. Parent slots start Pending on their feeder
    node; a bye leaf is already decided, so its entry is placed in the parent
    slot right away.

    Args:
        seeds: Entries in seed order (index 0 = top seed)
        pairing: "standard" (classic table) or "adjacent" (ranked pairing)
        stage_id: Optional stage identifier kept on the bracket

    Returns:
        Bracket with nodes in round order

    Raises:
        ValueError: If fewer than 2 seeds, duplicate entries or too many seeds
    """
    if len(seeds) < 2:
        raise ValueError(f"Cannot build bracket with {len(seeds)} seeds (minimum 2)")

    if len({s.id for s in seeds}) != len(seeds):
        raise ValueError("Seed list contains the same entry twice")

    byes, _, bracket_size = count_byes(len(seeds))
    first_round = get_round_type_for_size(bracket_size)

    bracket = Bracket(stage_id=stage_id)
    level = []
    for order, (seed_a, seed_b) in enumerate(first_round_pairs(len(seeds), pairing), start=1):
        entry_a = seeds[seed_a - 1]
        entry_b = seeds[seed_b - 1] if seed_b is not None else None
        node = _leaf_node(first_round, order, entry_a, entry_b)
        if entry_b is None:
            logger.debug("Bye for seed %d (%s) in %s", seed_a, entry_a.name, node.id)
        level.append(node)
    bracket.nodes.extend(level)

    distance = PHASES_FROM_FINAL.index(first_round)
    while len(level) > 1:
        distance -= 1
        phase = PHASES_FROM_FINAL[distance]
        parents = []
        for order in range(1, len(level) // 2 + 1):
            node_id = _node_id(phase, order)
            children = (level[2 * order - 2], level[2 * order - 1])
            parent = BracketNode(
                id=node_id,
                phase=phase,
                order=order,
                match=Match(id=f"match-{node_id}", entry_a_id=None, entry_b_id=None),
                slot_a=Pending(from_node_id=children[0].id, slot=SIDE_A),
                slot_b=Pending(from_node_id=children[1].id, slot=SIDE_B),
            )
            for child, side in zip(children, (SIDE_A, SIDE_B)):
                child.feeds_into_node_id = parent.id
                child.feeds_slot = side
                if child.is_bye:
                    parent.set_slot(side, Resolved(child.winner))
            parents.append(parent)
        bracket.nodes.extend(parents)
        level = parents

    logger.info(
        "Bracket built: %d seeds, size %d, %d byes, first round %s",
        len(seeds), bracket_size, byes, first_round.value,
    )
    return bracket
