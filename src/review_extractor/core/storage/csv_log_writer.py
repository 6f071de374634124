"""
Purpose: Append structured rows to CSV logs.
Constraints: Storage helper only; no matching logic.
"""

# Imports
import csv
from pathlib import Path
from typing import Mapping, Sequence, Any

from review_extractor.core.models import MatchSession

SESSION_SUMMARY_HEADER = [
    "session_id",
    "url",
    "project_name",
    "status",
    "stop_reason",
    "expected_count",
    "matched_count",
    "unmatched",
    "attempts",
    "safety_limit",
    "started_at",
    "finished_at",
]


# Helpers
def append_log(path: Path, row: Mapping[str, Any], header: Sequence[str]) -> None:
    """Append a row to a CSV log, creating headers on first write."""
    path.parent.mkdir(parents=True, exist_ok=True)
    file_exists = path.exists()
    with path.open("a", newline="", encoding="utf-8") as csvfile:
        writer = csv.DictWriter(csvfile, fieldnames=header, extrasaction="ignore")
        if not file_exists:
            writer.writeheader()
        writer.writerow(row)


def append_session_summary(path: Path, session: MatchSession, url: str = "", project_name: str = "") -> None:
    """One CSV row per matching pass."""
    row = session.summary()
    row.update({
        "url": url,
        "project_name": project_name,
        "unmatched": "|".join(session.unmatched_names),
    })
    append_log(path, row, SESSION_SUMMARY_HEADER)
