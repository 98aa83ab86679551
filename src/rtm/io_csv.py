"""CSV import/export utilities."""

import csv
import logging
from pathlib import Path
from typing import Optional

from rtm.models import Bracket, Entry, StandingRow

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = {"id", "name"}
PLAYER_COLUMNS = ("player1", "player2")


class CSVImportError(Exception):
    """Error during CSV import."""
    pass


def validate_entry_row(row: dict, row_num: int) -> dict:
    """Validate an entry row from CSV.

    Args:
        row: Dictionary with CSV columns
        row_num: Row number for error messages

    Returns:
        Validated dictionary with cleaned data

    Raises:
        CSVImportError: If validation fails
    """
    errors = []

    for field in sorted(REQUIRED_COLUMNS):
        if not (row.get(field) or "").strip():
            errors.append(f"Missing required field '{field}'")

    if errors:
        raise CSVImportError(f"Row {row_num}: {', '.join(errors)}")

    validated = {
        "id": row["id"].strip(),
        "name": row["name"].strip(),
    }

    players = [(row.get(col) or "").strip() for col in PLAYER_COLUMNS]
    if players[1] and not players[0]:
        raise CSVImportError(f"Row {row_num}: 'player2' given without 'player1'")
    players = [p for p in players if p]
    if len(players) == 2 and players[0] == players[1]:
        raise CSVImportError(f"Row {row_num}: a pair needs two different players, got '{players[0]}' twice")
    validated["player_ids"] = tuple(players)

    return validated


def import_entries_csv(csv_path: str, skip_duplicates: bool = True) -> list[Entry]:
    """Import entries from CSV file.

    CSV format (player columns optional, in seed order):
        id,name,player1,player2
        d1,Ana / Bia,ana,bia

    Args:
        csv_path: Path to CSV file
        skip_duplicates: Skip rows with an id already seen instead of failing

    Returns:
        List of Entry objects in file order

    Raises:
        CSVImportError: If file not found or validation fails
    """
    csv_file = Path(csv_path)
    if not csv_file.exists():
        raise CSVImportError(f"CSV file not found: {csv_path}")

    entries = []
    seen_ids = set()
    skipped_count = 0

    with open(csv_file, "r", encoding="utf-8") as f:
        reader = csv.DictReader(f)

        if not REQUIRED_COLUMNS.issubset(set(reader.fieldnames or [])):
            missing = REQUIRED_COLUMNS - set(reader.fieldnames or [])
            raise CSVImportError(f"CSV missing required columns: {sorted(missing)}")

        for row_num, row in enumerate(reader, start=2):  # Row 1 is the header
            validated = validate_entry_row(row, row_num)

            if validated["id"] in seen_ids:
                if not skip_duplicates:
                    raise CSVImportError(f"Row {row_num}: Duplicate id '{validated['id']}'")
                logger.warning("Row %d: Duplicate id %s, skipping", row_num, validated["id"])
                skipped_count += 1
                continue

            seen_ids.add(validated["id"])
            entries.append(
                Entry(id=validated["id"], name=validated["name"], player_ids=validated["player_ids"])
            )

    logger.info("Validated %d entries from %s", len(entries), csv_path)
    if skipped_count > 0:
        logger.info("Skipped %d duplicate rows", skipped_count)

    return entries


def export_standings_csv(
    standings: dict[str, list[StandingRow]],
    entries_by_id: dict[str, Entry],
    path: str,
    group_names: Optional[dict[str, str]] = None,
):
    """Export group standings to CSV.

    Args:
        standings: group_id -> rows sorted by position
        entries_by_id: Dictionary mapping entry id to Entry
        path: Output CSV path
        group_names: Optional group_id -> display name
    """
    group_names = group_names or {}
    with open(path, "w", encoding="utf-8", newline="") as f:
        writer = csv.writer(f)
        writer.writerow([
            "Group", "Position", "Entry_ID", "Entry_Name", "Points", "Played",
            "Wins", "Losses", "Games_W", "Games_L", "Game_Diff", "Sets_W", "Sets_L",
        ])

        for group_id, rows in standings.items():
            for row in rows:
                entry = entries_by_id.get(row.entry_id)
                writer.writerow([
                    group_names.get(group_id, group_id),
                    row.position or "",
                    row.entry_id,
                    entry.name if entry else "",
                    row.points,
                    row.played,
                    row.wins,
                    row.losses,
                    row.games_won,
                    row.games_lost,
                    row.game_diff,
                    row.sets_won,
                    row.sets_lost,
                ])


def export_bracket_csv(bracket: Bracket, path: str):
    """Export bracket nodes to CSV, one row per node in round order.

    Args:
        bracket: Bracket to export
        path: Output CSV path
    """
    with open(path, "w", encoding="utf-8", newline="") as f:
        writer = csv.writer(f)
        writer.writerow(["Node", "Phase", "Entry_A", "Entry_B", "Score", "Winner", "Is_BYE"])

        for node in bracket.nodes:
            winner = node.winner
            writer.writerow([
                node.id,
                node.phase.value,
                node.entry_a.name if node.entry_a else "",
                node.entry_b.name if node.entry_b else "",
                " ".join(str(s) for s in node.match.sets),
                winner.name if winner else "",
                "YES" if node.is_bye else "NO",
            ])
