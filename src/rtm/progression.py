"""Result recording and winner propagation.

Every operation here returns a new object; the bracket or match passed in
is left untouched, so callers can keep the previous snapshot for an
optimistic version check.
"""

import copy
import logging
from typing import Optional, Union

from rtm.i18n import get_string
from rtm.models import (
    SIDE_A,
    Bracket,
    BracketNode,
    BracketStatus,
    Match,
    MatchStatus,
    Pending,
    Resolved,
    RoundType,
    Ruleset,
    Set,
)
from rtm.validation import ErrorCode, ValidationError, validate_match_sets

logger = logging.getLogger(__name__)


class BracketStateError(Exception):
    """Raised when an operation is attempted on a cancelled bracket.

    This is a contract violation by the caller, not a user error.
    """

    pass


def _error(code: ErrorCode, key: str, **context) -> ValidationError:
    return ValidationError(code=code, message=get_string(f"errors.{key}", **context), context=context)


def _copy_sets(sets: list[Set]) -> list[Set]:
    return [Set(number=s.number, games_a=s.games_a, games_b=s.games_b) for s in sets]


def _reset_match(match: Match) -> None:
    match.status = MatchStatus.SCHEDULED
    match.sets = []
    match.winner_id = None


def _invalidate_downstream(bracket: Bracket, node: BracketNode) -> None:
    """Send the slot fed by `node` back to TBD, cascading up the tree.

    A parent that had already been played loses its result, and its own
    parent slot is reset in turn.
    """
    parent = bracket.get_node(node.feeds_into_node_id) if node.feeds_into_node_id else None
    while parent is not None:
        parent.set_slot(node.feeds_slot, Pending(from_node_id=node.id, slot=node.feeds_slot))
        was_played = parent.match.status == MatchStatus.FINISHED
        if parent.match.sets or was_played:
            logger.debug("Resetting %s after a change in %s", parent.id, node.id)
            _reset_match(parent.match)
        if not was_played:
            break
        node = parent
        parent = bracket.get_node(node.feeds_into_node_id) if node.feeds_into_node_id else None


def _refresh_status(bracket: Bracket) -> None:
    final = bracket.final
    if final is not None and final.match.status in (MatchStatus.FINISHED, MatchStatus.BYE):
        bracket.status = BracketStatus.COMPLETE
    else:
        bracket.status = BracketStatus.IN_PROGRESS


def record_result(
    bracket: Bracket,
    node_id: str,
    sets: list[Set],
    ruleset: Union[Ruleset, str] = Ruleset.STANDARD,
    best_of: int = 1,
) -> Union[Bracket, ValidationError]:
    """Record the score of a bracket node and advance its winner.

    All sets are validated before anything changes. Recording over a
    finished node is a correction: when the winner changes, every node that
    had received the old winner goes back to TBD and loses its result.

    Args:
        bracket: Current bracket snapshot
        node_id: Node to score
        sets: Sets in playing order
        ruleset: "standard" or "short"
        best_of: Sets in the match format (1 in the observed formats)

    Returns:
        The updated bracket, or a ValidationError (NODE_NOT_FOUND,
        ALREADY_FINAL_LOCKED, PRECONDITION_NOT_MET or a score error)

    Raises:
        BracketStateError: If the bracket was cancelled
    """
    if bracket.status == BracketStatus.CANCELLED:
        raise BracketStateError("Cannot record results on a cancelled bracket")

    node = bracket.get_node(node_id)
    if node is None:
        return _error(ErrorCode.NODE_NOT_FOUND, "NODE_NOT_FOUND", node_id=node_id)

    if node.is_bye:
        return _error(
            ErrorCode.ALREADY_FINAL_LOCKED,
            "ALREADY_FINAL_LOCKED",
            node=node.id,
            reason=get_string("errors.bye_locked"),
        )

    if not node.is_ready:
        return _error(ErrorCode.PRECONDITION_NOT_MET, "node_not_ready", node=node.id)

    outcome = validate_match_sets(sets, ruleset, best_of)
    if isinstance(outcome, ValidationError):
        return outcome

    updated = copy.deepcopy(bracket)
    node = updated.get_node(node_id)
    winner = node.entry_a if outcome.winner == SIDE_A else node.entry_b

    previous_winner_id = node.match.winner_id if node.match.status == MatchStatus.FINISHED else None
    if previous_winner_id is not None and previous_winner_id != winner.id:
        logger.info("Winner of %s changed, invalidating downstream nodes", node.id)
        _invalidate_downstream(updated, node)

    node.match.sets = _copy_sets(sets)
    node.match.status = MatchStatus.FINISHED
    node.match.winner_id = winner.id

    parent = updated.get_node(node.feeds_into_node_id) if node.feeds_into_node_id else None
    if parent is not None:
        parent.set_slot(node.feeds_slot, Resolved(winner))

    _refresh_status(updated)

    if node.phase == RoundType.FINAL and updated.status == BracketStatus.COMPLETE:
        logger.info("Bracket complete, champion: %s", winner.name)

    return updated


def reopen_node(bracket: Bracket, node_id: str) -> Union[Bracket, ValidationError]:
    """Clear a played node so it can be scored again from scratch.

    Downstream nodes that carried its winner go back to TBD.
    """
    if bracket.status == BracketStatus.CANCELLED:
        raise BracketStateError("Cannot reopen nodes on a cancelled bracket")

    node = bracket.get_node(node_id)
    if node is None:
        return _error(ErrorCode.NODE_NOT_FOUND, "NODE_NOT_FOUND", node_id=node_id)
    if node.is_bye:
        return _error(
            ErrorCode.ALREADY_FINAL_LOCKED,
            "ALREADY_FINAL_LOCKED",
            node=node.id,
            reason=get_string("errors.bye_locked"),
        )

    updated = copy.deepcopy(bracket)
    node = updated.get_node(node_id)
    if node.match.status == MatchStatus.FINISHED:
        _invalidate_downstream(updated, node)
    _reset_match(node.match)
    _refresh_status(updated)
    return updated


def cancel_bracket(bracket: Bracket) -> None:
    """Discard every node and match of the bracket.

    Irreversible: a new bracket must be generated from the standings.

    Raises:
        BracketStateError: If the bracket was already cancelled
    """
    if bracket.status == BracketStatus.CANCELLED:
        raise BracketStateError("Bracket already cancelled")

    played = sum(1 for n in bracket.nodes if n.match.status == MatchStatus.FINISHED)
    logger.info("Cancelling bracket with %d nodes (%d played)", len(bracket.nodes), played)
    bracket.nodes.clear()
    bracket.status = BracketStatus.CANCELLED


def record_group_result(
    match: Match,
    sets: list[Set],
    ruleset: Union[Ruleset, str] = Ruleset.STANDARD,
    best_of: int = 1,
) -> Union[Match, ValidationError]:
    """Score a group match.

    A finished match can be re-scored (correction); it is validated from
    scratch. Standings must be recomputed by the caller afterwards.

    Returns:
        A new FINISHED match, or a ValidationError
    """
    if match.status in (MatchStatus.BYE, MatchStatus.CANCELLED):
        return _error(
            ErrorCode.ALREADY_FINAL_LOCKED,
            "ALREADY_FINAL_LOCKED",
            node=match.id,
            reason=match.status.value,
        )

    if match.entry_a_id is None or match.entry_b_id is None:
        return _error(ErrorCode.PRECONDITION_NOT_MET, "node_not_ready", node=match.id)

    outcome = validate_match_sets(sets, ruleset, best_of)
    if isinstance(outcome, ValidationError):
        return outcome

    updated = copy.deepcopy(match)
    updated.sets = _copy_sets(sets)
    updated.status = MatchStatus.FINISHED
    updated.winner_id = match.entry_a_id if outcome.winner == SIDE_A else match.entry_b_id
    return updated


def champion_of(bracket: Bracket) -> Optional[str]:
    """Champion entry id, None until the FINAL is played."""
    champion = bracket.champion
    return champion.id if champion else None
