"""Validation rules for racket-sport set scores.

A set is played in games. Two rulesets are supported:

- standard: first to 6 games, tiebreak at 6-6. Valid scores are
  6-0..6-4, 7-5 and 7-6.
- short (Super 8 / compact formats): first to 4 games. Valid scores are
  4-0..4-2, 5-3, 5-4, 6-0..6-4, 7-5 and 7-6.

Every call site (result forms, bracket progression, group results) goes
through this module, so the rules live in exactly one place. Errors are
returned as ValidationError values rather than raised.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union

from rtm.i18n import get_string
from rtm.models import SIDE_A, SIDE_B, Ruleset, Set


class ErrorCode(str, Enum):
    """Engine error taxonomy."""

    NO_WINNER = "NO_WINNER"
    SET_INVALID = "SET_INVALID"
    SET_MIN_GAMES_FOR_WINNER = "SET_MIN_GAMES_FOR_WINNER"
    SET_SCORE_NOT_ALLOWED = "SET_SCORE_NOT_ALLOWED"
    PRECONDITION_NOT_MET = "PRECONDITION_NOT_MET"
    NODE_NOT_FOUND = "NODE_NOT_FOUND"
    ALREADY_FINAL_LOCKED = "ALREADY_FINAL_LOCKED"


@dataclass(frozen=True)
class ValidationError:
    """A user-facing error returned by an engine operation.

    Not an exception: callers check for it with isinstance and render
    `message` next to the offending field.
    """

    code: ErrorCode
    message: str
    context: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"


@dataclass(frozen=True)
class SetResult:
    """A validated set."""

    winner: str  # "A" or "B"
    games_a: int
    games_b: int


@dataclass(frozen=True)
class MatchOutcome:
    """A validated sequence of sets."""

    winner: str  # "A" or "B"
    sets_won_a: int
    sets_won_b: int


@dataclass(frozen=True)
class SetRules:
    """Scoring table for a ruleset."""

    min_games: int  # Winner must reach at least this many games
    max_games: int  # Nobody can go above this
    # Winning game count -> losing counts allowed with it
    allowed: dict[int, tuple[int, ...]]


RULES: dict[Ruleset, SetRules] = {
    Ruleset.STANDARD: SetRules(
        min_games=6,
        max_games=7,
        allowed={
            6: (0, 1, 2, 3, 4),
            7: (5, 6),
        },
    ),
    Ruleset.SHORT: SetRules(
        min_games=4,
        max_games=7,
        allowed={
            4: (0, 1, 2),
            5: (3, 4),
            6: (0, 1, 2, 3, 4),
            7: (5, 6),
        },
    ),
}


def get_rules(ruleset: Union[Ruleset, str]) -> SetRules:
    """Return the scoring table for a ruleset (enum or its string value).

    Raises:
        ValueError: If the ruleset is unknown
    """
    return RULES[Ruleset(ruleset)]


def _error(code: ErrorCode, key: str, **context) -> ValidationError:
    return ValidationError(code=code, message=get_string(f"errors.{key}", **context), context=context)


def _format_allowed(winner_games: int, losers: tuple[int, ...]) -> str:
    scores = [f"{winner_games}-{loser}" for loser in losers]
    if len(scores) == 1:
        return scores[0]
    return ", ".join(scores[:-1]) + " / " + scores[-1]


def validate_set(
    games_a: int, games_b: int, ruleset: Union[Ruleset, str] = Ruleset.STANDARD
) -> Union[SetResult, ValidationError]:
    """Validate a single set score.

    Args:
        games_a: Games won by side A
        games_b: Games won by side B
        ruleset: "standard" or "short"

    Returns:
        SetResult with the winning side, or a ValidationError

    Examples:
        >>> validate_set(6, 4).winner
        'A'
        >>> validate_set(5, 7).winner
        'B'
        >>> validate_set(6, 5).code.value
        'SET_SCORE_NOT_ALLOWED'
        >>> validate_set(4, 2, "short").winner
        'A'
        >>> validate_set(4, 2).code.value
        'SET_MIN_GAMES_FOR_WINNER'
    """
    rules = get_rules(ruleset)

    if games_a < 0 or games_b < 0:
        return _error(ErrorCode.SET_INVALID, "SET_INVALID_NEGATIVE", games_a=games_a, games_b=games_b)

    if games_a > rules.max_games or games_b > rules.max_games:
        return _error(
            ErrorCode.SET_INVALID,
            "SET_INVALID_TOO_HIGH",
            games_a=games_a,
            games_b=games_b,
            max_games=rules.max_games,
        )

    if games_a == games_b:
        return _error(ErrorCode.NO_WINNER, "NO_WINNER", games_a=games_a, games_b=games_b)

    winner_games = max(games_a, games_b)
    loser_games = min(games_a, games_b)

    if winner_games < rules.min_games:
        return _error(
            ErrorCode.SET_MIN_GAMES_FOR_WINNER,
            "SET_MIN_GAMES_FOR_WINNER",
            min_games=rules.min_games,
            games_a=games_a,
            games_b=games_b,
        )

    losers = rules.allowed.get(winner_games, ())
    if loser_games not in losers:
        return _error(
            ErrorCode.SET_SCORE_NOT_ALLOWED,
            "SET_SCORE_NOT_ALLOWED",
            winner_games=winner_games,
            allowed=_format_allowed(winner_games, losers),
            games_a=games_a,
            games_b=games_b,
        )

    return SetResult(winner=SIDE_A if games_a > games_b else SIDE_B, games_a=games_a, games_b=games_b)


def validate_match_sets(
    sets: list[Set], ruleset: Union[Ruleset, str] = Ruleset.STANDARD, best_of: int = 1
) -> Union[MatchOutcome, ValidationError]:
    """Validate every set of a match submission.

    The whole submission is rejected on the first invalid set; the error
    message is prefixed with the set number.

    Args:
        sets: Sets in playing order
        ruleset: "standard" or "short"
        best_of: Match format (1, 3, 5). Observed formats play a single set.

    Returns:
        MatchOutcome with the winning side, or a ValidationError
    """
    if best_of < 1 or best_of % 2 == 0:
        raise ValueError(f"best_of must be a positive odd number, got {best_of}")

    if not sets:
        return _error(ErrorCode.SET_INVALID, "no_sets")

    numbers = [s.number for s in sets]
    if numbers != list(range(1, len(sets) + 1)):
        return _error(ErrorCode.SET_INVALID, "set_sequence", numbers=numbers)

    if len(sets) > best_of:
        return _error(
            ErrorCode.SET_INVALID, "too_many_sets", best_of=best_of, max_sets=best_of, count=len(sets)
        )

    sets_to_win = best_of // 2 + 1
    won = {SIDE_A: 0, SIDE_B: 0}

    for s in sets:
        if max(won.values()) >= sets_to_win:
            return _error(ErrorCode.SET_INVALID, "extra_sets")

        result = validate_set(s.games_a, s.games_b, ruleset)
        if isinstance(result, ValidationError):
            return ValidationError(
                code=result.code,
                message=get_string("errors.set_prefix", number=s.number, message=result.message),
                context={**result.context, "set_number": s.number},
            )
        won[result.winner] += 1

    if max(won.values()) < sets_to_win:
        return _error(
            ErrorCode.NO_WINNER, "match_undecided", sets_to_win=sets_to_win, best_of=best_of
        )

    winner = SIDE_A if won[SIDE_A] > won[SIDE_B] else SIDE_B
    return MatchOutcome(winner=winner, sets_won_a=won[SIDE_A], sets_won_b=won[SIDE_B])
