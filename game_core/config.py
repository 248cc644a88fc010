from __future__ import annotations
import os


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw.strip())
    except ValueError:
        return default


EVIDENCE_HISTORY_LIMIT: int = 10

MASTERED_RULE    = {"success_rate": 0.9, "accuracy": 0.9, "min_attempts": 3}
PROFICIENT_RULE  = {"success_rate": 0.7, "accuracy": 0.7, "min_attempts": 2}
EMERGING_RULE    = {"success_rate": 0.4, "min_attempts": 1}

MASTERY_LEVELS: tuple[str, ...] = ("not-yet", "emerging", "proficient", "mastered")

PERSIST_ENABLED: bool = True

DEBUG_TRACE: bool = False
TRACE_FIELDS: tuple[str, ...] = (
    "omi_id",
    "demonstrated",
    "accuracy",
    "level_before",
    "level_after",
    "total_attempts",
    "success_rate",
    "average_accuracy",
)
# // env overrides for staging/ops
PERSIST_ENABLED = _env_bool("PERSIST_ENABLED", PERSIST_ENABLED)
DEBUG_TRACE = _env_bool("DEBUG_TRACE", False)
