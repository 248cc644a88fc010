"""Per-submission OMI evidence.

A submission touches every OMI named in the ``omiMapping`` of any of its
evaluated sub-units.  Each touched OMI gets exactly one evidence record:
``demonstrated`` only if every touching sub-unit was correct, ``accuracy`` the
mean of the touching sub-units' own accuracies.  This is a within-submission
judgement and is unrelated to the lifetime tiers in :mod:`game_core.mastery`.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Dict, Iterable, List, Optional, Union

from .types import OMIEvidence

Clock = Union[str, Callable[[], str], None]


def utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def resolve_timestamp(now: Clock = None) -> str:
    if now is None:
        return utcnow_iso()
    if callable(now):
        return str(now())
    return str(now)


@dataclass
class UnitOutcome:
    """Outcome of one evaluated sub-unit (a question, activity or showdown)."""

    unit_id: str
    correct: bool
    accuracy: float
    omi_mapping: List[str] = field(default_factory=list)


def aggregate_omi_evidence(units: Iterable[UnitOutcome], timestamp: Optional[str] = None) -> List[OMIEvidence]:
    touching: Dict[str, List[UnitOutcome]] = {}
    for unit in units:
        # a unit listing the same OMI twice still counts once
        for omi_id in dict.fromkeys(unit.omi_mapping):
            touching.setdefault(omi_id, []).append(unit)

    if not touching:
        return []

    ts = timestamp or utcnow_iso()
    out: List[OMIEvidence] = []
    for omi_id, group in touching.items():
        correct_count = sum(1 for u in group if u.correct)
        accuracy = sum(float(u.accuracy) for u in group) / len(group)
        out.append(
            OMIEvidence(
                omi_id=omi_id,
                demonstrated=correct_count == len(group),
                accuracy=max(0.0, min(1.0, accuracy)),
                timestamp=ts,
            )
        )
    return out


__all__ = ["UnitOutcome", "aggregate_omi_evidence", "utcnow_iso", "resolve_timestamp"]
