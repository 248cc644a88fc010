from __future__ import annotations
import math
from typing import Any, Dict, Iterable, List, Mapping

from .specs import question_ids
from .types import EvaluationResult, GameSpec, OMIProgress, SubmittedQuestion

MASTERY_BADGES: Dict[str, Dict[str, str]] = {
    "not-yet":    {"label": "Not Yet",    "icon": "○"},
    "emerging":   {"label": "Emerging",   "icon": "◔"},
    "proficient": {"label": "Proficient", "icon": "◑"},
    "mastered":   {"label": "Mastered",   "icon": "●"},
}


def _round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def _pct(part: int, whole: int) -> int:
    return _round_half_up(part / whole * 100) if whole > 0 else 0


def overall_progress(
    specs: Iterable[GameSpec],
    submitted: Iterable[SubmittedQuestion],
    evaluations: Mapping[str, EvaluationResult] | None = None,
) -> Dict[str, Any]:
    """Library-level progress across every loaded game."""

    specs = list(specs)
    evaluations = evaluations or {}
    by_key = {(q.game_id, q.question_id): q for q in submitted}

    questions: List[Dict[str, Any]] = []
    for spec in specs:
        for qid in question_ids(spec):
            sub = by_key.get((spec.id, qid))
            questions.append({
                "gameId": spec.id,
                "questionId": qid,
                "isAnswered": sub is not None,
                "isCorrect": bool(sub and sub.correct),
            })

    answered = sum(1 for q in questions if q["isAnswered"])
    correct = sum(1 for q in questions if q["isAnswered"] and q["isCorrect"])
    completed_games = [s.id for s in specs if evaluations.get(s.id) is not None and evaluations[s.id].correct]
    return {
        "totalGames": len(specs),
        "completedGames": len(completed_games),
        "allQuestions": questions,
        "totalQuestions": len(questions),
        "answeredQuestions": answered,
        "correctQuestions": correct,
        "percentageComplete": _pct(answered, len(questions)),
        "percentageCorrect": _pct(correct, answered),
        "isComplete": len(questions) > 0 and answered == len(questions),
    }


def omi_badges(progress: Mapping[str, OMIProgress], omi_ids: Iterable[str]) -> List[Dict[str, Any]]:
    out = []
    for omi_id in omi_ids:
        p = progress.get(omi_id)
        level = p.mastery_level if p else "not-yet"
        badge = MASTERY_BADGES[level]
        out.append({
            "omiId": omi_id,
            "masteryLevel": level,
            "label": badge["label"],
            "icon": badge["icon"],
            "successRate": f"{p.successful_attempts}/{p.total_attempts}" if p else "0/0",
            "percentage": _round_half_up(p.average_accuracy * 100) if p else 0,
        })
    return out
