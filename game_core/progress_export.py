"""Helpers to export per-OMI progress in JSON/CSV formats."""
from __future__ import annotations

from typing import Any, Dict, List, Mapping
import csv
import io

from .types import OMIProgress

_FIELDS: tuple[str, ...] = (
    "omi_id",
    "mastery_level",
    "total_attempts",
    "successful_attempts",
    "success_rate",
    "average_accuracy",
    "last_attempt",
    "history_len",
)


def _row(progress: OMIProgress) -> Dict[str, Any]:
    return {
        "omi_id": progress.omi_id,
        "mastery_level": progress.mastery_level,
        "total_attempts": int(progress.total_attempts),
        "successful_attempts": int(progress.successful_attempts),
        "success_rate": round(progress.success_rate, 4),
        "average_accuracy": round(float(progress.average_accuracy), 4),
        "last_attempt": progress.last_attempt or "",
        "history_len": len(progress.evidence_history),
    }


def to_json(progress: Mapping[str, OMIProgress]) -> Dict[str, Any]:
    """Return a JSON-safe payload, rows sorted by OMI id."""

    rows: List[Dict[str, Any]] = [_row(progress[k]) for k in sorted(progress)]
    return {"omis": rows}


def to_csv(progress: Mapping[str, OMIProgress]) -> str:
    """Render progress as CSV with a fixed header."""

    buf = io.StringIO()
    writer = csv.DictWriter(buf, fieldnames=_FIELDS)
    writer.writeheader()
    for key in sorted(progress):
        writer.writerow(_row(progress[key]))
    return buf.getvalue()


__all__ = ["to_json", "to_csv"]
