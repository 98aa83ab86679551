"""Group phase to elimination phase hand-off."""

import logging
import random
from dataclasses import dataclass, field
from typing import Optional, Union

from rtm.bracket import MAX_BRACKET_SIZE, build_bracket
from rtm.group_builder import form_qualifier_pairs
from rtm.i18n import get_string
from rtm.models import (
    Bracket,
    Entry,
    Group,
    Match,
    MatchStatus,
    PairFormation,
    SeedingPolicy,
    StandingRow,
)
from rtm.seeding import assign_seeds, collect_qualifiers, pairing_for_policy
from rtm.standings import compute_individual_standings, compute_standings
from rtm.validation import ErrorCode, ValidationError

logger = logging.getLogger(__name__)


@dataclass
class GroupState:
    """Everything needed to classify one group.

    For rotating-partner groups `entries` holds the individual players and
    `pairs` the pair entries referenced by the matches.
    """

    group: Group
    entries: list[Entry]
    matches: list[Match] = field(default_factory=list)
    position_overrides: dict[str, int] = field(default_factory=dict)
    pairs: Optional[dict[str, Entry]] = None

    @property
    def is_individual(self) -> bool:
        return self.pairs is not None


def is_group_complete(
    matches: list[Match], entries: list[Entry], expected_matches: Optional[int] = None
) -> bool:
    """Check whether a group has finished playing.

    A single-entry group is complete without playing. Otherwise every
    non-cancelled match must be FINISHED and there must be at least
    `expected_matches` of them (full round robin, n(n-1)/2, by default).

    Examples:
        >>> is_group_complete([], [Entry("e1", "Solo")])
        True
        >>> is_group_complete([], [Entry("e1", "A"), Entry("e2", "B")])
        False
    """
    if len(entries) == 1:
        return True

    if expected_matches is None:
        n = len(entries)
        expected_matches = n * (n - 1) // 2

    live = [m for m in matches if m.status != MatchStatus.CANCELLED]
    finished = [m for m in live if m.status == MatchStatus.FINISHED]
    return len(finished) == len(live) and len(finished) >= expected_matches


def _state_complete(state: GroupState) -> bool:
    if state.is_individual:
        return is_group_complete(state.matches, state.entries, expected_matches=max(len(state.matches), 1))
    return is_group_complete(state.matches, state.entries)


def standings_for(state: GroupState) -> list[StandingRow]:
    """Current standings of a group, whatever its format."""
    if state.is_individual:
        return compute_individual_standings(
            state.matches,
            state.entries,
            state.pairs,
            position_overrides=state.position_overrides,
            group_id=state.group.id,
        )
    return compute_standings(
        state.matches,
        state.entries,
        position_overrides=state.position_overrides,
        group_id=state.group.id,
    )


def _precondition(key: str, **context) -> ValidationError:
    return ValidationError(
        code=ErrorCode.PRECONDITION_NOT_MET,
        message=get_string(f"errors.{key}", **context),
        context=context,
    )


def _pair_seeds(
    group_standings: dict[str, list[StandingRow]],
    qualifiers_per_group: int,
    entries: dict[str, Entry],
    group_names: dict[str, str],
    pair_formation: Union[PairFormation, str],
    rng: Optional[Union[random.Random, int]],
) -> Union[list[Entry], ValidationError]:
    """Seeds for an individual format: qualified players formed into pairs."""
    qualifiers = collect_qualifiers(group_standings, qualifiers_per_group, entries, group_names)
    pairs = form_qualifier_pairs(qualifiers, pair_formation, rng)
    if isinstance(pairs, ValidationError):
        return pairs
    if len(pairs) < 2:
        return _precondition("too_few_qualifiers", count=len(pairs))
    if len(pairs) > MAX_BRACKET_SIZE:
        return _precondition("too_many_qualifiers", count=len(pairs), max_size=MAX_BRACKET_SIZE)
    return pairs


def generate_elimination(
    groups: list[GroupState],
    policy: Union[SeedingPolicy, str] = SeedingPolicy.BEST_VS_BEST,
    qualifiers_per_group: int = 2,
    rng: Optional[Union[random.Random, int]] = None,
    stage_id: Optional[str] = None,
    pair_formation: Union[PairFormation, str] = PairFormation.BEST_WITH_BEST,
) -> Union[Bracket, ValidationError]:
    """Build the elimination bracket once every group is complete.

    The completeness check and the standings used for seeding are computed
    from the same inputs in the same call, so a bracket can never be seeded
    from a group that is still being played.

    Individual (rotating-pair) groups qualify players, not pairs: the
    qualified players are first formed into fixed pairs with
    `pair_formation`, and those pairs are seeded in formation order.

    Args:
        groups: State of every group of the stage, in group order
        policy: Seeding policy
        qualifiers_per_group: How many advance from each group
        rng: random.Random or int seed, used by random-draw
        stage_id: Optional stage identifier kept on the bracket
        pair_formation: How qualified individuals are paired up

    Returns:
        A new Bracket, or PRECONDITION_NOT_MET
    """
    if not groups:
        return _precondition("too_few_qualifiers", count=0)

    if len(groups) == 1:
        return _precondition("single_group", group=groups[0].group.name)

    incomplete = [state.group.name for state in groups if not _state_complete(state)]
    if incomplete:
        return ValidationError(
            code=ErrorCode.PRECONDITION_NOT_MET,
            message=get_string("errors.groups_incomplete", groups=", ".join(incomplete)),
            context={"groups": incomplete},
        )

    group_standings = {state.group.id: standings_for(state) for state in groups}
    entries = {entry.id: entry for state in groups for entry in state.entries}
    group_names = {state.group.id: state.group.name for state in groups}

    if any(state.is_individual for state in groups):
        seeds = _pair_seeds(
            group_standings, qualifiers_per_group, entries, group_names, pair_formation, rng
        )
    else:
        seeds = assign_seeds(
            group_standings,
            qualifiers_per_group,
            policy,
            entries,
            rng=rng,
            group_names=group_names,
        )
    if isinstance(seeds, ValidationError):
        return seeds

    bracket = build_bracket(seeds, pairing=pairing_for_policy(policy), stage_id=stage_id)
    logger.info("Elimination generated from %d groups", len(groups))
    return bracket
