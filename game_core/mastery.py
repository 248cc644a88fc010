# game_core/mastery.py
from __future__ import annotations
from dataclasses import replace
from typing import Dict, Iterable, Mapping, Optional
import logging

from . import config
from .types import MasteryLevel, OMIEvidence, OMIProgress


log = logging.getLogger(__name__)


def _emit_trace(**values: object) -> None:
    if not config.DEBUG_TRACE:
        return
    ordered = []
    for key in config.TRACE_FIELDS:
        if key in values:
            ordered.append(f"{key}={values[key]}")
    if ordered:
        log.info("trace %s", " ".join(ordered))


def classify_mastery(total_attempts: int, successful_attempts: int, average_accuracy: float) -> MasteryLevel:
    """Lifetime tier from running aggregates; highest matching tier wins.

    This is recomputed from scratch on every update, so a learner can drop out
    of ``mastered`` when later evidence pulls the lifetime figures down.
    """

    total = int(total_attempts)
    rate = (successful_attempts / total) if total > 0 else 0.0
    acc = float(average_accuracy)

    m = config.MASTERED_RULE
    if rate >= m["success_rate"] and acc >= m["accuracy"] and total >= m["min_attempts"]:
        return "mastered"
    p = config.PROFICIENT_RULE
    if rate >= p["success_rate"] and acc >= p["accuracy"] and total >= p["min_attempts"]:
        return "proficient"
    e = config.EMERGING_RULE
    if rate >= e["success_rate"] or total >= e["min_attempts"]:
        return "emerging"
    return "not-yet"


def apply_evidence(progress: Optional[OMIProgress], evidence: OMIEvidence) -> OMIProgress:
    """Fold one evidence record into an OMI's progress, returning a new record."""

    prev = progress if progress is not None else OMIProgress(omi_id=evidence.omi_id)
    total = prev.total_attempts + 1
    successful = prev.successful_attempts + (1 if evidence.demonstrated else 0)
    # lifetime mean, deliberately not limited to the retained history window
    average = (prev.average_accuracy * prev.total_attempts + float(evidence.accuracy)) / total
    history = (list(prev.evidence_history) + [evidence])[-config.EVIDENCE_HISTORY_LIMIT:]
    level = classify_mastery(total, successful, average)

    _emit_trace(
        omi_id=evidence.omi_id,
        demonstrated=evidence.demonstrated,
        accuracy=round(float(evidence.accuracy), 3),
        level_before=prev.mastery_level,
        level_after=level,
        total_attempts=total,
        success_rate=round(successful / total, 3),
        average_accuracy=round(average, 3),
    )
    if level != prev.mastery_level and prev.total_attempts > 0:
        log.debug("omi %s mastery %s -> %s", evidence.omi_id, prev.mastery_level, level)

    return replace(
        prev,
        mastery_level=level,
        total_attempts=total,
        successful_attempts=successful,
        average_accuracy=average,
        last_attempt=evidence.timestamp,
        evidence_history=history,
    )


def record_evidence(
    progress: Mapping[str, OMIProgress], evidence: Iterable[OMIEvidence]
) -> Dict[str, OMIProgress]:
    """Apply evidence in order, one record at a time; the input map is untouched."""

    out = dict(progress)
    for ev in evidence:
        out[ev.omi_id] = apply_evidence(out.get(ev.omi_id), ev)
    return out


class MasteryTracker:
    """Holds the per-OMI progress map; the only writer of ``OMIProgress``."""

    def __init__(self, progress: Optional[Mapping[str, OMIProgress]] = None):
        self._progress: Dict[str, OMIProgress] = dict(progress or {})

    @property
    def progress(self) -> Dict[str, OMIProgress]:
        return dict(self._progress)

    def record(self, evidence: Iterable[OMIEvidence]) -> Dict[str, OMIProgress]:
        evidence = list(evidence)
        self._progress = record_evidence(self._progress, evidence)
        return {ev.omi_id: self._progress[ev.omi_id] for ev in evidence}

    def get(self, omi_id: str) -> Optional[OMIProgress]:
        return self._progress.get(omi_id)

    def mastery_level(self, omi_id: str) -> MasteryLevel:
        p = self._progress.get(omi_id)
        return p.mastery_level if p else "not-yet"

    def reset(self) -> None:
        self._progress = {}


__all__ = ["classify_mastery", "apply_evidence", "record_evidence", "MasteryTracker"]
