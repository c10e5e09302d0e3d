"""Console progress lines and end-of-run reporting for the migration."""

from __future__ import annotations

import logging
from pathlib import Path

import pandas as pd

from .models import LibraryEntryData, MigrationSummary

logger = logging.getLogger(__name__)

RESULT_COLUMNS: tuple[str, ...] = (
    "legacy_game_id",
    "title",
    "user_id",
    "action",
    "success",
    "catalog_id",
    "library_entry_id",
    "catalog_action",
    "error",
)

NEXT_STEPS: tuple[str, ...] = (
    "Verify the data in the library_games table is correct",
    "Update access policies on the games table (remove user-based policies)",
    "Remove user_id, play_count, personal_rating, review columns from the games table",
    "Deploy the new application code",
)


def short_id(value: str | None) -> str:
    if not value:
        return "unknown"
    return f"{value[:8]}..."


def group_line(index: int, total: int, title: str, record_count: int) -> str:
    return f'[{index}/{total}] Processing: "{title}" ({record_count} record(s))'


def catalog_created_line(game_id: str) -> str:
    return f"  ✓ Created shared game (ID: {short_id(game_id)})"


def catalog_reused_line(game_id: str) -> str:
    return f"  → Using existing shared game (ID: {short_id(game_id)})"


def catalog_failed_line(message: str) -> str:
    return f"  ✗ Failed to create/find shared game: {message}"


def skipped_without_user_line() -> str:
    return "    - Skipped library entry for game without user_id"


def skipped_existing_line(user_id: str) -> str:
    return f"    - Skipped: Library entry already exists for user {short_id(user_id)}"


def library_created_line(entry: LibraryEntryData) -> str:
    rating = entry.personal_rating if entry.personal_rating is not None else "none"
    return (
        f"    ✓ Created library entry for user {short_id(entry.user_id)} "
        f"(plays: {entry.play_count}, rating: {rating})"
    )


def library_failed_line(message: str) -> str:
    return f"    ✗ Failed to create library entry: {message}"


def summary_frame(summary: MigrationSummary) -> pd.DataFrame:
    rows = [
        ("Total legacy game records", summary.total_legacy_games),
        ("Unique titles found", summary.unique_titles),
        ("Shared games created", summary.unique_games_created),
        ("Shared games reused", summary.catalog_entries_reused),
        ("Library entries created", summary.library_entries_created),
        ("Skipped (existing/no user)", summary.skipped),
        ("Failed", summary.failed),
    ]
    return pd.DataFrame(rows, columns=["Metric", "Count"])


def format_summary(summary: MigrationSummary) -> str:
    """Return the end-of-run summary table followed by operator guidance."""

    border = "=" * 40
    lines = [
        "",
        "Migration Summary".center(40, "="),
        summary_frame(summary).to_string(index=False),
        border,
        "",
    ]
    if summary.failed == 0:
        lines.append("Migration completed successfully!")
        lines.append("")
        lines.append("Next steps:")
        lines.extend(f"{index}. {step}" for index, step in enumerate(NEXT_STEPS, start=1))
    else:
        lines.append(
            f"Migration completed with {summary.failed} errors. "
            "Please review the failed records."
        )
    return "\n".join(lines)


def results_frame(summary: MigrationSummary) -> pd.DataFrame:
    return pd.DataFrame(
        [result.as_dict() for result in summary.results],
        columns=list(RESULT_COLUMNS),
    )


def write_results_report(summary: MigrationSummary, path: Path) -> Path:
    """Write one CSV row per migration result to ``path``."""

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    results_frame(summary).to_csv(path, index=False)
    logger.info("Wrote %d migration results to %s", len(summary.results), path)
    return path


__all__ = [
    "NEXT_STEPS",
    "RESULT_COLUMNS",
    "format_summary",
    "results_frame",
    "summary_frame",
    "write_results_report",
]
