"""Group builder with snake seeding and round robin fixtures."""

import logging
import random
import string
from typing import Optional, Union

from rtm.i18n import get_string
from rtm.models import Entry, Group, Match, MatchStatus, PairFormation
from rtm.seeding import Qualifier, rank_key
from rtm.validation import ErrorCode, ValidationError

logger = logging.getLogger(__name__)


def calculate_group_distribution(num_entries: int, preferred_size: int = 3) -> list[int]:
    """Calculate group sizes.

    Fills as many groups of the preferred size as possible and absorbs the
    remainder by growing some of them, so no group drops below 3.

    Args:
        num_entries: Total number of entries
        preferred_size: Preferred group size (3, 4 or 5)

    Returns:
        List of group sizes

    Examples:
        >>> calculate_group_distribution(6)
        [3, 3]
        >>> calculate_group_distribution(7)
        [3, 4]
        >>> calculate_group_distribution(8)
        [4, 4]
        >>> calculate_group_distribution(11)
        [3, 4, 4]
        >>> calculate_group_distribution(5)
        [5]
        >>> calculate_group_distribution(11, 4)
        [4, 4, 3]
    """
    if num_entries < 3:
        raise ValueError(f"Cannot create groups with {num_entries} entries (minimum 3)")

    if preferred_size not in (3, 4, 5):
        raise ValueError(f"Preferred size must be 3, 4 or 5, got {preferred_size}")

    full_groups = num_entries // preferred_size
    remainder = num_entries % preferred_size

    if remainder == 0:
        return [preferred_size] * full_groups

    if preferred_size == 3:
        if remainder == 1:
            # One group of 4 instead of a group of 1
            return [3] * (full_groups - 1) + [4]
        if full_groups >= 2:
            # Upgrade two 3s to 4s: 8 -> [4, 4]
            return [3] * (full_groups - 2) + [4, 4]
        # 5 entries: single group of 5
        return [num_entries]

    if preferred_size == 4:
        if remainder == 3:
            return [4] * full_groups + [3]
        if remainder == 2:
            # 6 -> [3, 3], 10 -> [4, 3, 3]
            return [4] * (full_groups - 1) + [3, 3]
        if full_groups >= 2:
            # Convert two 4s into three 3s: 9 -> [3, 3, 3]
            return [4] * (full_groups - 2) + [3, 3, 3]
        return [num_entries]

    # preferred_size == 5
    if remainder >= 3:
        return [5] * full_groups + [remainder]
    if remainder == 2:
        # 7 -> [4, 3], 12 -> [5, 4, 3]
        return [5] * (full_groups - 1) + [4, 3]
    # 6 -> [3, 3], 11 -> [5, 3, 3]
    return [5] * (full_groups - 1) + [3, 3]


def distribute_snake(
    entries: list[Entry], num_groups: int, sizes: Optional[list[int]] = None
) -> list[list[Entry]]:
    """Distribute seeded entries into groups using the serpentine method.

    Seeds flow in a snake pattern:
    - Group A: 1, 6, 7
    - Group B: 2, 5, 8
    - Group C: 3, 4, 9

    A group that reached its size is skipped on later passes.

    Args:
        entries: Entries sorted by seed (1 = best)
        num_groups: Number of groups to create
        sizes: Optional capacity of every group (defaults to an even split)

    Returns:
        List of lists, each containing the entries of one group
    """
    if not entries:
        raise ValueError("Cannot distribute empty entry list")

    if num_groups < 1:
        raise ValueError(f"Number of groups must be at least 1, got {num_groups}")

    if sizes is None:
        sizes = [len(entries) // num_groups + (1 if i < len(entries) % num_groups else 0) for i in range(num_groups)]
    elif len(sizes) != num_groups or sum(sizes) != len(entries):
        raise ValueError(f"Group sizes {sizes} do not fit {len(entries)} entries in {num_groups} groups")

    groups = [[] for _ in range(num_groups)]
    remaining = iter(entries)
    placed = 0
    row = 0
    while placed < len(entries):
        columns = range(num_groups) if row % 2 == 0 else reversed(range(num_groups))
        for group_idx in columns:
            if placed < len(entries) and len(groups[group_idx]) < sizes[group_idx]:
                groups[group_idx].append(next(remaining))
                placed += 1
        row += 1

    return groups


def generate_round_robin_fixtures(group_size: int) -> list[tuple[int, int]]:
    """Generate round robin fixtures, deciding match last.

    The match between the 2nd and 3rd seeded entries, the one that usually
    decides the second qualifying spot, is played in the final round.

    Args:
        group_size: Number of entries in the group

    Returns:
        List of (entry_num1, entry_num2) tuples (1-indexed), in playing order
    """
    if group_size < 2:
        raise ValueError(f"Group size must be at least 2, got {group_size}")

    if group_size == 3:
        return [(1, 3), (1, 2), (2, 3)]

    if group_size == 4:
        return [(1, 3), (2, 4), (1, 2), (3, 4), (1, 4), (2, 3)]

    if group_size == 5:
        # Berger table, nobody plays two matches in a row
        return [
            (1, 4), (2, 5),
            (3, 4), (1, 5),
            (2, 3), (4, 5),
            (1, 3), (2, 4),
            (3, 5), (1, 2),
        ]

    fixtures = []
    for i in range(1, group_size + 1):
        for j in range(i + 1, group_size + 1):
            fixtures.append((i, j))
    return fixtures


def group_name(index: int) -> str:
    """Display name of the group at `index` (0-based): "Group A", "Group B", ..."""
    letters = string.ascii_uppercase
    label = letters[index % 26] * (index // 26 + 1)
    return f"Group {label}"


def create_groups(
    entries: list[Entry],
    group_size_preference: int = 3,
    stage_id: Optional[str] = None,
) -> tuple[list[Group], list[Match]]:
    """Create groups with snake seeding and generate their fixtures.

    Args:
        entries: Entries in seed order (1 = best)
        group_size_preference: Preferred group size (3, 4 or 5)
        stage_id: Optional prefix for group and match ids

    Returns:
        Tuple of (groups, matches); every match is SCHEDULED
    """
    if not entries:
        raise ValueError("Cannot create groups with empty entry list")

    if len({e.id for e in entries}) != len(entries):
        raise ValueError("Entry list contains the same entry twice")

    sizes = calculate_group_distribution(len(entries), group_size_preference)
    buckets = distribute_snake(entries, len(sizes), sizes)
    prefix = f"{stage_id}-" if stage_id else ""

    groups = []
    matches = []
    for index, members in enumerate(buckets):
        name = group_name(index)
        group_id = f"{prefix}{name.split()[-1].lower()}"
        group = Group(id=group_id, name=name, entry_ids=[e.id for e in members])

        for fixture_idx, (num_a, num_b) in enumerate(generate_round_robin_fixtures(len(members)), start=1):
            match = Match(
                id=f"{group_id}-m{fixture_idx}",
                entry_a_id=members[num_a - 1].id,
                entry_b_id=members[num_b - 1].id,
                status=MatchStatus.SCHEDULED,
                group_id=group_id,
            )
            group.match_ids.append(match.id)
            matches.append(match)

        groups.append(group)

    logger.info("Created %d groups (%s) with %d matches", len(groups), sizes, len(matches))
    return groups, matches


# Partner rotation for a 4-player individual group: AB x CD, AC x BD, AD x BC
ROTATION = [((0, 1), (2, 3)), ((0, 2), (1, 3)), ((0, 3), (1, 2))]


def make_pair(first: Entry, second: Entry) -> Entry:
    """Pair entry for two individual players."""
    player_ids = (first.player_ids or (first.id,)) + (second.player_ids or (second.id,))
    origin = " / ".join(o for o in (first.origin, second.origin) if o)
    return Entry(
        id=f"{first.id}+{second.id}",
        name=f"{first.name} / {second.name}",
        origin=origin,
        player_ids=player_ids,
    )


def rotating_pair_matches(players: list[Entry], group_id: str) -> tuple[dict[str, Entry], list[Match]]:
    """Build the King of the Beach matches of a 4-player group.

    Every player partners each of the other three once. The returned pair
    entries are what the matches reference; feed both to
    rtm.standings.compute_individual_standings to classify the players.

    Args:
        players: Exactly 4 individual entries
        group_id: Group the matches belong to

    Returns:
        (pair entry id -> pair Entry, matches)
    """
    if len(players) != 4:
        raise ValueError(f"Rotating pairs need exactly 4 players, got {len(players)}")

    pairs = {}
    matches = []
    for number, ((a1, a2), (b1, b2)) in enumerate(ROTATION, start=1):
        side_a = make_pair(players[a1], players[a2])
        side_b = make_pair(players[b1], players[b2])
        pairs[side_a.id] = side_a
        pairs[side_b.id] = side_b
        matches.append(
            Match(
                id=f"{group_id}-m{number}",
                entry_a_id=side_a.id,
                entry_b_id=side_b.id,
                group_id=group_id,
            )
        )

    return pairs, matches


def create_rotating_groups(
    players: list[Entry], stage_id: Optional[str] = None
) -> tuple[list[Group], list[Match], dict[str, Entry]]:
    """Create King of the Beach groups of 4 with snake seeding.

    Args:
        players: Individual entries in seed order; a multiple of 4
        stage_id: Optional prefix for group and match ids

    Returns:
        Tuple of (groups, matches, pair entries by id)
    """
    if not players or len(players) % 4:
        raise ValueError(f"Rotating pairs need a multiple of 4 players, got {len(players)}")

    prefix = f"{stage_id}-" if stage_id else ""
    buckets = distribute_snake(players, len(players) // 4)

    groups = []
    matches = []
    pairs = {}
    for index, members in enumerate(buckets):
        name = group_name(index)
        group_id = f"{prefix}{name.split()[-1].lower()}"
        group_pairs, group_matches = rotating_pair_matches(members, group_id)
        groups.append(
            Group(
                id=group_id,
                name=name,
                entry_ids=[p.id for p in members],
                match_ids=[m.id for m in group_matches],
            )
        )
        matches.extend(group_matches)
        pairs.update(group_pairs)

    logger.info("Created %d rotating-pair groups with %d matches", len(groups), len(matches))
    return groups, matches, pairs


def form_qualifier_pairs(
    qualifiers: list[Qualifier],
    mode: Union[PairFormation, str] = PairFormation.BEST_WITH_BEST,
    rng: Optional[Union[random.Random, int]] = None,
) -> Union[list[Entry], ValidationError]:
    """Turn individual qualifiers into fixed pairs for the elimination phase.

    Qualifiers are ranked across groups by in-group position, then by their
    group numbers (see rtm.seeding.rank_key).

    - best-with-best: consecutive players in that ranking play together, so
      winners pair with winners, an odd winner out takes the best runner-up,
      and the remaining runners-up pair with each other.
    - cross-ranking: the ranking is split in half and the i-th player of the
      upper half partners the i-th player of the lower half (with 2 qualifiers
      per group: i-th best winner with i-th best runner-up).
    - random-draw: shuffled from a seedable random source, partners taken from
      different groups whenever possible.

    Args:
        qualifiers: Individual qualifiers from rtm.seeding.collect_qualifiers
        mode: Pair formation mode
        rng: random.Random or int seed, used by random-draw

    Returns:
        Pair entries, strongest first for the ranked modes, or
        PRECONDITION_NOT_MET for an odd number of qualifiers

    Examples:
        >>> from rtm.models import StandingRow
        >>> qs = [
        ...     Qualifier(Entry(p, p.upper()), g, i, StandingRow(p, position=pos, points=pts))
        ...     for p, g, i, pos, pts in [("a", "A", 0, 1, 9), ("b", "A", 0, 2, 3),
        ...                               ("c", "B", 1, 1, 6), ("d", "B", 1, 2, 0)]
        ... ]
        >>> [p.id for p in form_qualifier_pairs(qs, "best-with-best")]
        ['a+c', 'b+d']
        >>> [p.id for p in form_qualifier_pairs(qs, "cross-ranking")]
        ['a+b', 'c+d']
    """
    mode = PairFormation(mode)

    if len(qualifiers) % 2:
        return ValidationError(
            code=ErrorCode.PRECONDITION_NOT_MET,
            message=get_string("errors.odd_qualifiers", count=len(qualifiers)),
            context={"count": len(qualifiers)},
        )

    ranked = sorted(qualifiers, key=rank_key)
    half = len(ranked) // 2

    if mode == PairFormation.BEST_WITH_BEST:
        partners = [(ranked[i], ranked[i + 1]) for i in range(0, len(ranked), 2)]
    elif mode == PairFormation.CROSS_RANKING:
        partners = list(zip(ranked[:half], ranked[half:]))
    else:
        if not isinstance(rng, random.Random):
            rng = random.Random(rng)
        pool = list(qualifiers)
        rng.shuffle(pool)
        partners = []
        while pool:
            first = pool.pop(0)
            index = next((i for i, q in enumerate(pool) if q.group_id != first.group_id), 0)
            partners.append((first, pool.pop(index)))

    pairs = [make_pair(a.entry, b.entry) for a, b in partners]
    logger.info("Formed %d pairs from %d qualifiers (%s)", len(pairs), len(qualifiers), mode.value)
    return pairs
