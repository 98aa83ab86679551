"""Group standings calculator.

Scoring:
- Win: 3 points
- Loss: 0 points

Ordering keys (all descending):
1. Points
2. Wins
3. Game differential
4. Set differential

An administrator-assigned position override beats every computed key.
Entries still tied after all keys keep their input order; there is no
head-to-head or random tie-break.
"""

import logging
from typing import Iterable, Optional

from rtm.models import Entry, Match, MatchStatus, StandingRow

logger = logging.getLogger(__name__)

POINTS_PER_WIN = 3


def _credit(
    row: StandingRow,
    won: bool,
    sets_w: int,
    sets_l: int,
    games_w: int,
    games_l: int,
) -> None:
    row.played += 1
    if won:
        row.wins += 1
        row.points += POINTS_PER_WIN
    else:
        row.losses += 1
    row.sets_won += sets_w
    row.sets_lost += sets_l
    row.games_won += games_w
    row.games_lost += games_l


def _winner_id(match: Match) -> Optional[str]:
    if match.winner_id is not None:
        return match.winner_id
    if match.sets_won_a > match.sets_won_b:
        return match.entry_a_id
    if match.sets_won_b > match.sets_won_a:
        return match.entry_b_id
    return None


def _finished(matches: Iterable[Match]) -> list[Match]:
    return [m for m in matches if m.status == MatchStatus.FINISHED]


def sort_key(row: StandingRow) -> tuple:
    """Computed ordering key; entries that never played go last."""
    return (row.played == 0, -row.points, -row.wins, -row.game_diff, -row.set_diff)


def order_rows(rows: list[StandingRow]) -> list[StandingRow]:
    """Sort rows and assign positions.

    Rows carrying a position_override are pinned to that position; the rest
    fill the remaining positions in computed order.

    Args:
        rows: Rows in input (entry) order

    Returns:
        Rows sorted by position (1 = best), positions assigned
    """
    computed = sorted(rows, key=sort_key)
    size = len(computed)
    placed: list[Optional[StandingRow]] = [None] * size

    pinned = sorted(
        (r for r in computed if r.position_override is not None),
        key=lambda r: r.position_override,
    )
    for row in pinned:
        index = min(max(row.position_override, 1), size) - 1
        while placed[index] is not None and index < size - 1:
            index += 1
        if placed[index] is not None:
            # collision at the bottom: nearest free slot above
            index = max(i for i, r in enumerate(placed) if r is None)
        placed[index] = row

    remaining = iter(r for r in computed if r.position_override is None)
    for index in range(size):
        if placed[index] is None:
            placed[index] = next(remaining)

    for position, row in enumerate(placed, start=1):
        row.position = position

    return placed


def compute_standings(
    matches: list[Match],
    entries: list[Entry],
    position_overrides: Optional[dict[str, int]] = None,
    group_id: Optional[str] = None,
) -> list[StandingRow]:
    """Calculate standings for a group from its matches.

    Only FINISHED matches count. Games are summed over the sets of a match;
    sets are counted. The result does not depend on the order of `matches`.

    Args:
        matches: Matches of the group (any status)
        entries: Entries of the group, in registration order
        position_overrides: Optional entry_id -> position set by an administrator
        group_id: Group identifier copied onto the rows

    Returns:
        List of StandingRow sorted by position (1 = best)
    """
    position_overrides = position_overrides or {}
    rows = {
        entry.id: StandingRow(
            entry_id=entry.id,
            group_id=group_id,
            position_override=position_overrides.get(entry.id),
        )
        for entry in entries
    }

    if len(entries) == 1:
        # Auto-qualified, nothing to play
        only = rows[entries[0].id]
        only.position = 1
        return [only]

    for match in _finished(matches):
        winner_id = _winner_id(match)
        if winner_id is None:
            logger.debug("Skipping finished match %s without a winner", match.id)
            continue

        side_a = rows.get(match.entry_a_id)
        side_b = rows.get(match.entry_b_id)
        if side_a is not None:
            _credit(side_a, winner_id == match.entry_a_id, match.sets_won_a, match.sets_won_b,
                    match.games_a, match.games_b)
        if side_b is not None:
            _credit(side_b, winner_id == match.entry_b_id, match.sets_won_b, match.sets_won_a,
                    match.games_b, match.games_a)

    return order_rows(list(rows.values()))


def compute_individual_standings(
    matches: list[Match],
    players: list[Entry],
    pairs: dict[str, Entry],
    position_overrides: Optional[dict[str, int]] = None,
    group_id: Optional[str] = None,
) -> list[StandingRow]:
    """Standings for rotating-partner groups (King of the Beach).

    Each match side is a pair Entry built for that match only; the result is
    credited to every player of the pair, so individuals are classified with
    the same fold and ordering as fixed pairs.

    Args:
        matches: Group matches whose entry ids reference `pairs`
        players: Individual entries (one player id each), registration order
        pairs: pair entry id -> pair Entry (player_ids reference players)
        position_overrides: Optional player entry id -> position
        group_id: Group identifier copied onto the rows
    """
    position_overrides = position_overrides or {}
    by_player_id = {}
    rows = {}
    for player in players:
        rows[player.id] = StandingRow(
            entry_id=player.id,
            group_id=group_id,
            position_override=position_overrides.get(player.id),
        )
        for player_id in player.player_ids or (player.id,):
            by_player_id[player_id] = rows[player.id]

    def members(entry_id: Optional[str]) -> list[StandingRow]:
        pair = pairs.get(entry_id)
        if pair is None:
            return []
        return [by_player_id[p] for p in pair.player_ids if p in by_player_id]

    for match in _finished(matches):
        winner_id = _winner_id(match)
        if winner_id is None:
            continue
        for row in members(match.entry_a_id):
            _credit(row, winner_id == match.entry_a_id, match.sets_won_a, match.sets_won_b,
                    match.games_a, match.games_b)
        for row in members(match.entry_b_id):
            _credit(row, winner_id == match.entry_b_id, match.sets_won_b, match.sets_won_a,
                    match.games_b, match.games_a)

    return order_rows(list(rows.values()))
