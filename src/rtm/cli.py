"""Command-line interface for rtm."""

import logging
import re

import click

from rtm import __version__

SCORE_PATTERN = re.compile(r"^(\d+)-(\d+)$")


def parse_scores(scores: tuple[str, ...]) -> list:
    """Turn ("6-4", "7-5") into numbered Set objects."""
    from rtm.models import Set

    sets = []
    for number, score in enumerate(scores, start=1):
        match = SCORE_PATTERN.match(score.strip())
        if not match:
            raise click.BadParameter(f"'{score}' is not a score like 6-4", param_hint="SCORES")
        sets.append(Set(number=number, games_a=int(match.group(1)), games_b=int(match.group(2))))
    return sets


def _open(ctx):
    """Session bound to the database selected on the command line."""
    from rtm.storage import DatabaseManager

    db = DatabaseManager(ctx.obj.get("db"))
    db.create_tables()
    return db.get_session()


def _load_stage_config(session, stage: str) -> dict:
    from rtm.i18n import set_language
    from rtm.storage import StageRepository

    stage_orm = StageRepository(session).get_by_id(stage)
    if stage_orm is None:
        click.echo(f"[ERROR] Stage '{stage}' not found", err=True)
        click.echo("   Run 'rtm create-stage' first", err=True)
        raise click.Abort()

    cfg = stage_orm.config
    ctx = click.get_current_context()
    set_language(ctx.obj.get("lang") or cfg["lang"])
    return cfg


def _load_group_states(session, stage: str, cfg: dict) -> list:
    """Rebuild the GroupState of every group from the database."""
    from rtm.group_builder import rotating_pair_matches
    from rtm.models import Group
    from rtm.stage import GroupState
    from rtm.storage import EntryRepository, GroupRepository, MatchRepository

    entries = {e.id: e for e in EntryRepository(session).get_by_stage(stage)}
    match_repo = MatchRepository(session)

    states = []
    for group_orm in GroupRepository(session).get_by_stage(stage):
        members = [entries[entry_id] for entry_id in group_orm.entry_ids]
        matches = [m.to_match() for m in match_repo.get_by_group(group_orm.id)]
        pairs = None
        if cfg["format"] == "rotating-pairs":
            pairs, _ = rotating_pair_matches(members, group_orm.id)
        states.append(
            GroupState(
                group=Group(
                    id=group_orm.id,
                    name=group_orm.name,
                    entry_ids=group_orm.entry_ids,
                    match_ids=[m.id for m in matches],
                ),
                entries=members,
                matches=matches,
                position_overrides=group_orm.position_overrides,
                pairs=pairs,
            )
        )
    return states


def _load_bracket(session, stage: str):
    from rtm.storage import BracketRepository

    loaded = BracketRepository(session).load(stage)
    if loaded is None:
        click.echo(f"[ERROR] Stage '{stage}' has no bracket", err=True)
        click.echo("   Run 'rtm build-bracket' first", err=True)
        raise click.Abort()
    return loaded


def _echo_error(error) -> None:
    click.echo(f"[ERROR] {error.code.value}: {error.message}", err=True)


def _echo_bracket(bracket) -> None:
    from rtm.i18n import get_string

    tbd = get_string("labels.tbd")
    for phase in bracket.phases:
        click.echo(f"\n  {phase.value}")
        for node in bracket.nodes_in_phase(phase):
            a = str(node.entry_a) if node.entry_a else tbd
            if node.is_bye:
                click.echo(f"    {node.id:<8} {a}  ({get_string('labels.bye')})")
                continue
            b = str(node.entry_b) if node.entry_b else tbd
            score = " ".join(str(s) for s in node.match.sets)
            winner = node.winner
            result = f"  [{score}] -> {winner.name}" if winner else ""
            click.echo(f"    {node.id:<8} {a}  vs  {b}{result}")

    champion = bracket.champion
    if champion:
        click.echo(f"\n  {get_string('labels.champion')}: {champion.name}")


@click.group()
@click.version_option(version=__version__)
@click.option("--db", "db_path", default=None, help="SQLite database path (default: .rtm/rtm.sqlite)")
@click.option("--lang", type=click.Choice(["en", "pt"]), default=None, help="Language for messages")
@click.option("--verbose", "-v", is_flag=True, help="Show engine log output")
@click.pass_context
def cli(ctx, db_path: str, lang: str, verbose: bool):
    """Racket Tournament Manager - group stage to elimination bracket."""
    ctx.ensure_object(dict)
    ctx.obj["db"] = db_path
    ctx.obj["lang"] = lang
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


@cli.command()
@click.argument("games_a", type=int)
@click.argument("games_b", type=int)
@click.option("--ruleset", type=click.Choice(["standard", "short"]), default="standard")
@click.pass_context
def validate_set(ctx, games_a: int, games_b: int, ruleset: str):
    """Check a single set score.

    Example:
        rtm validate-set 7 5 --ruleset short
    """
    from rtm.i18n import set_language
    from rtm.validation import ValidationError, validate_set as check_set

    if ctx.obj.get("lang"):
        set_language(ctx.obj["lang"])

    result = check_set(games_a, games_b, ruleset)
    if isinstance(result, ValidationError):
        _echo_error(result)
        raise click.Abort()

    click.echo(f"[SUCCESS] {games_a}-{games_b} is valid, winner: side {result.winner}")


@cli.command()
@click.option("--csv", "csv_path", required=True, help="Path to entries CSV file")
@click.option("--config", required=True, help="Path to stage config YAML file")
@click.option("--stage", required=True, help="Stage identifier")
@click.pass_context
def create_stage(ctx, csv_path: str, config: str, stage: str):
    """Import entries and build the groups of a stage.

    CSV must have columns: id,name (optional player1,player2), in seed order

    Example:
        rtm create-stage --csv entries.csv --config stage.yaml --stage open-a
    """
    from rtm.config_loader import ConfigError, load_and_validate_config
    from rtm.group_builder import create_groups, create_rotating_groups
    from rtm.io_csv import CSVImportError, import_entries_csv
    from rtm.storage import (
        EntryRepository,
        GroupRepository,
        MatchRepository,
        StageRepository,
    )

    try:
        click.echo(f"[INFO] Loading config from: {config}")
        cfg = load_and_validate_config(config)

        click.echo(f"[INFO] Reading CSV file: {csv_path}")
        entries = import_entries_csv(csv_path)
        if not entries:
            click.echo("[ERROR] No entries to import", err=True)
            raise click.Abort()

        session = _open(ctx)
        stage_repo = StageRepository(session)
        if stage_repo.get_by_id(stage) is not None:
            click.echo(f"[ERROR] Stage '{stage}' already exists", err=True)
            raise click.Abort()

        if cfg["format"] == "rotating-pairs":
            groups, matches, _ = create_rotating_groups(entries, stage_id=stage)
        else:
            groups, matches = create_groups(entries, cfg["group_size_preference"], stage_id=stage)

        stage_repo.create(stage, cfg)
        EntryRepository(session).create_many(entries, stage)
        group_repo = GroupRepository(session)
        match_repo = MatchRepository(session)
        for group in groups:
            group_repo.create(group, stage)
        for match in matches:
            match_repo.create(match, stage)

        click.echo(f"[SUCCESS] Created {len(groups)} groups with {len(matches)} matches")
        for group in groups:
            click.echo(f"  {group.name}: {group.size} entries")
        click.echo("\n[DONE] Stage ready for group results")

    except ConfigError as e:
        click.echo(f"[ERROR] Configuration Error: {e}", err=True)
        raise click.Abort()
    except CSVImportError as e:
        click.echo(f"[ERROR] CSV Import Error: {e}", err=True)
        raise click.Abort()
    except ValueError as e:
        click.echo(f"[ERROR] {e}", err=True)
        raise click.Abort()


@cli.command()
@click.option("--stage", required=True, help="Stage identifier")
@click.option("--match", "match_id", required=True, help="Group match id")
@click.argument("scores", nargs=-1, required=True)
@click.pass_context
def record_group_result(ctx, stage: str, match_id: str, scores: tuple[str, ...]):
    """Score a group match (re-scoring corrects it).

    Example:
        rtm record-group-result --stage open-a --match open-a-a-m1 6-4
    """
    from rtm.progression import record_group_result as score_match
    from rtm.stage import standings_for
    from rtm.storage import MatchRepository, StandingRepository
    from rtm.validation import ValidationError

    sets = parse_scores(scores)
    session = _open(ctx)
    cfg = _load_stage_config(session, stage)

    match_repo = MatchRepository(session)
    match_orm = match_repo.get_by_id(match_id)
    if match_orm is None or match_orm.stage_id != stage:
        click.echo(f"[ERROR] Match '{match_id}' not found in stage {stage}", err=True)
        raise click.Abort()

    scored = score_match(match_orm.to_match(), sets, cfg["ruleset"], cfg["best_of"])
    if isinstance(scored, ValidationError):
        _echo_error(scored)
        raise click.Abort()

    match_repo.update_result(scored)
    click.echo(f"[SUCCESS] {match_id}: {' '.join(scores)} winner {scored.winner_id}")

    # Refresh the cached standings of the group
    for state in _load_group_states(session, stage, cfg):
        if state.group.id == scored.group_id:
            StandingRepository(session).replace_group(stage, state.group.id, standings_for(state))


@cli.command()
@click.option("--stage", required=True, help="Stage identifier")
@click.option("--group", "group_id", required=True, help="Group id")
@click.option("--entry", "entry_id", required=True, help="Entry id")
@click.option("--position", type=int, default=None, help="Position to pin (omit to clear)")
@click.pass_context
def set_position(ctx, stage: str, group_id: str, entry_id: str, position: int):
    """Pin an entry's group position, overriding the computed order."""
    from rtm.storage import GroupRepository

    session = _open(ctx)
    _load_stage_config(session, stage)

    if position is not None and position < 1:
        raise click.BadParameter("position must be at least 1", param_hint="--position")

    if not GroupRepository(session).set_position_override(group_id, entry_id, position):
        click.echo(f"[ERROR] Entry '{entry_id}' not found in group '{group_id}'", err=True)
        raise click.Abort()

    if position is None:
        click.echo(f"[SUCCESS] Cleared position override of {entry_id}")
    else:
        click.echo(f"[SUCCESS] {entry_id} pinned to position {position} in {group_id}")


@cli.command()
@click.option("--stage", required=True, help="Stage identifier")
@click.pass_context
def standings(ctx, stage: str):
    """Compute and show the standings of every group.

    Example:
        rtm standings --stage open-a
    """
    from rtm.stage import is_group_complete, standings_for
    from rtm.storage import StandingRepository

    session = _open(ctx)
    cfg = _load_stage_config(session, stage)
    standing_repo = StandingRepository(session)

    for state in _load_group_states(session, stage, cfg):
        rows = standings_for(state)
        standing_repo.replace_group(stage, state.group.id, rows)
        names = {e.id: e.name for e in state.entries}

        expected = len(state.matches) if state.is_individual else None
        done = is_group_complete(state.matches, state.entries, expected)
        click.echo(f"\n[STATS] {state.group.name}{'' if done else ' (in progress)'}")
        click.echo(f"  {'Pos':<4}{'Entry':<28}{'Pts':>4}{'P':>4}{'W':>4}{'L':>4}{'GD':>5}{'SD':>5}")
        for row in rows:
            pinned = "*" if row.position_override is not None else ""
            click.echo(
                f"  {str(row.position) + pinned:<4}{names.get(row.entry_id, row.entry_id):<28}"
                f"{row.points:>4}{row.played:>4}{row.wins:>4}{row.losses:>4}"
                f"{row.game_diff:>5}{row.set_diff:>5}"
            )

    click.echo("\n[DONE] Standings calculation complete!")


@cli.command()
@click.option("--stage", required=True, help="Stage identifier")
@click.pass_context
def build_bracket(ctx, stage: str):
    """Seed the qualifiers and build the elimination bracket.

    Only possible once every group is complete. A cancelled bracket is
    replaced.

    Example:
        rtm build-bracket --stage open-a
    """
    from rtm.bracket import count_byes
    from rtm.models import BracketStatus
    from rtm.stage import generate_elimination
    from rtm.storage import BracketRepository, StaleBracketError
    from rtm.validation import ValidationError

    session = _open(ctx)
    cfg = _load_stage_config(session, stage)
    bracket_repo = BracketRepository(session)

    expected_version = None
    existing = bracket_repo.load(stage)
    if existing is not None:
        current, expected_version = existing
        if current.status != BracketStatus.CANCELLED:
            click.echo(f"[ERROR] Stage '{stage}' already has a bracket", err=True)
            click.echo("   Run 'rtm cancel-bracket' first to rebuild it", err=True)
            raise click.Abort()

    click.echo("[BUILD]  Building elimination bracket...")
    bracket = generate_elimination(
        _load_group_states(session, stage, cfg),
        policy=cfg["seeding_policy"],
        qualifiers_per_group=cfg["qualifiers_per_group"],
        rng=cfg["random_seed"],
        stage_id=stage,
        pair_formation=cfg["pair_formation"],
    )
    if isinstance(bracket, ValidationError):
        _echo_error(bracket)
        raise click.Abort()

    try:
        bracket_repo.save(bracket, stage, expected_version)
    except StaleBracketError as e:
        click.echo(f"[ERROR] {e}", err=True)
        raise click.Abort()

    first_phase = bracket.nodes_in_phase(bracket.phases[0])
    byes, first_round, size = count_byes(sum(1 if n.is_bye else 2 for n in first_phase))
    click.echo(f"[SUCCESS] Bracket of {size} with {byes} byes and {first_round} first-round matches")
    _echo_bracket(bracket)
    click.echo("\n[DONE] Bracket built successfully!")


@cli.command()
@click.option("--stage", required=True, help="Stage identifier")
@click.option("--node", "node_id", required=True, help="Bracket node id (e.g. SF-1)")
@click.argument("scores", nargs=-1, required=True)
@click.pass_context
def record_result(ctx, stage: str, node_id: str, scores: tuple[str, ...]):
    """Score a bracket node and advance its winner.

    Example:
        rtm record-result --stage open-a --node QF-2 7-5
    """
    from rtm.progression import BracketStateError
    from rtm.progression import record_result as score_node
    from rtm.storage import BracketRepository, StaleBracketError
    from rtm.validation import ValidationError

    sets = parse_scores(scores)
    session = _open(ctx)
    cfg = _load_stage_config(session, stage)
    bracket, version = _load_bracket(session, stage)

    try:
        updated = score_node(bracket, node_id, sets, cfg["ruleset"], cfg["best_of"])
    except BracketStateError as e:
        click.echo(f"[ERROR] {e}", err=True)
        raise click.Abort()

    if isinstance(updated, ValidationError):
        _echo_error(updated)
        raise click.Abort()

    try:
        BracketRepository(session).save(updated, stage, version)
    except StaleBracketError as e:
        click.echo(f"[ERROR] {e}", err=True)
        click.echo("   Reload the bracket and submit again", err=True)
        raise click.Abort()

    node = updated.get_node(node_id)
    click.echo(f"[SUCCESS] {node_id}: {' '.join(scores)} winner {node.winner.name}")
    if updated.champion:
        click.echo(f"[DONE] Champion: {updated.champion.name}")


@cli.command()
@click.option("--stage", required=True, help="Stage identifier")
@click.pass_context
def show_bracket(ctx, stage: str):
    """Print the bracket of a stage."""
    session = _open(ctx)
    _load_stage_config(session, stage)
    bracket, version = _load_bracket(session, stage)

    click.echo(f"[INFO] Bracket of {stage} ({bracket.status.value}, version {version})")
    _echo_bracket(bracket)


@cli.command()
@click.option("--stage", required=True, help="Stage identifier")
@click.confirmation_option(prompt="Discard the whole bracket and every bracket result?")
@click.pass_context
def cancel_bracket(ctx, stage: str):
    """Discard the bracket of a stage. Irreversible."""
    from rtm.progression import BracketStateError
    from rtm.progression import cancel_bracket as discard
    from rtm.storage import BracketRepository, StaleBracketError

    session = _open(ctx)
    _load_stage_config(session, stage)
    bracket, version = _load_bracket(session, stage)

    try:
        discard(bracket)
        BracketRepository(session).save(bracket, stage, version)
    except (BracketStateError, StaleBracketError) as e:
        click.echo(f"[ERROR] {e}", err=True)
        raise click.Abort()

    click.echo(f"[SUCCESS] Bracket of {stage} cancelled")


@cli.command()
@click.option("--stage", required=True, help="Stage identifier")
@click.option("--what", type=click.Choice(["standings", "bracket"]), default="standings")
@click.option("--out", required=True, help="Output CSV path")
@click.pass_context
def export(ctx, stage: str, what: str, out: str):
    """Export standings or the bracket to CSV.

    Example:
        rtm export --stage open-a --what standings --out standings.csv
    """
    from rtm.io_csv import export_bracket_csv, export_standings_csv
    from rtm.stage import standings_for

    session = _open(ctx)
    cfg = _load_stage_config(session, stage)

    if what == "bracket":
        bracket, _ = _load_bracket(session, stage)
        export_bracket_csv(bracket, out)
    else:
        states = _load_group_states(session, stage, cfg)
        export_standings_csv(
            {state.group.id: standings_for(state) for state in states},
            {e.id: e for state in states for e in state.entries},
            out,
            group_names={state.group.id: state.group.name for state in states},
        )

    click.echo(f"[SUCCESS] Exported {what} to {out}")


if __name__ == "__main__":
    cli()
