from __future__ import annotations
from typing import Any, Dict, List, Mapping, NamedTuple, Optional
import logging

from .evidence import Clock, UnitOutcome, aggregate_omi_evidence, resolve_timestamp
from .specs import payload_from_dict
from .types import (
    ActivitySetSpec,
    AnswerPayload,
    ClassificationQuestion,
    EvaluationResult,
    FillInTheBlanksAnswer,
    FillInTheBlanksSpec,
    GameSpec,
    MCQAnswer,
    MCQSpec,
    OrderingAnswer,
    OrderingSpec,
    Pair,
    PairMatchAnswer,
    PairMatchSpec,
    Showdown,
    ShowdownAnswer,
)

log = logging.getLogger(__name__)

SCORABLE_TYPES: frozenset[str] = frozenset({
    "mcq", "ordering", "pair-match", "fill-in-the-blanks",
    "mcq-set", "ordering-set", "pair-match-set", "fill-in-the-blanks-set",
    "classification-set", "showdown-set", "activity-set",
})

MCQ_OK = "Correct!"
MCQ_MISS = "Not quite. Review the concept and try again."
ORDER_OK = "Perfect order!"
ORDER_MISS = "That order is off. Adjust and retry."
PAIRS_OK = "Great job matching the pairs!"
PAIRS_MISS = "Some matches are incorrect. Try again."
PAIRS_INCOMPLETE = "Keep practicing those matches!"
BLANKS_OK = "All blanks filled correctly!"
SET_OK = "Perfect! All correct!"


class _Unit(NamedTuple):
    correct: bool
    score: float
    accuracy: float          # partial-credit signal for OMI evidence
    feedback: str


def can_score_locally(game_type: str) -> bool:
    return game_type in SCORABLE_TYPES


def _fraction(hits: int, total: int) -> float:
    return hits / total if total > 0 else 0.0


# ---- atomic rules ----
def _score_mcq(q: MCQSpec, option_id: Optional[str]) -> _Unit:
    correct = option_id is not None and option_id == q.correct_option_id
    credit = 1.0 if correct else 0.0
    return _Unit(correct, credit, credit, MCQ_OK if correct else (q.explanation or MCQ_MISS))


def _score_ordering(q: OrderingSpec, order: Optional[List[str]]) -> _Unit:
    expected = list(q.items)
    submitted = list(order or [])
    correct = order is not None and submitted == expected
    hits = sum(1 for i, value in enumerate(expected) if i < len(submitted) and submitted[i] == value)
    positional = _fraction(hits, len(expected))
    return _Unit(correct, 1.0 if correct else 0.0, positional, ORDER_OK if correct else ORDER_MISS)


def _score_pair_match(q: PairMatchSpec, matches: Optional[List[Pair]]) -> _Unit:
    expected = {p.left: p.right for p in q.pairs}
    submitted = {m.left: m.right for m in (matches or [])}
    hits = sum(1 for left, right in expected.items() if submitted.get(left) == right)
    accuracy = _fraction(hits, len(expected))
    if matches is None or len(expected) != len(submitted):
        return _Unit(False, 0.0, accuracy, PAIRS_INCOMPLETE)
    correct = hits == len(expected)
    return _Unit(correct, 1.0 if correct else 0.0, accuracy, PAIRS_OK if correct else PAIRS_MISS)


def _blank_hits(q: FillInTheBlanksSpec, answers: Optional[Mapping[str, str]]) -> Dict[str, bool]:
    chosen = answers or {}
    return {s.id: chosen.get(s.id) == s.blank_answer for s in q.sentences}


def _score_blanks(q: FillInTheBlanksSpec, answers: Optional[Mapping[str, str]]) -> _Unit:
    hits = sum(1 for ok in _blank_hits(q, answers).values() if ok)
    total = len(q.sentences)
    score = _fraction(hits, total)
    correct = score == 1.0
    feedback = BLANKS_OK if correct else f"{hits} of {total} blanks correct. Check the highlighted sentences."
    return _Unit(correct, score, score, feedback)


def _score_classification(q: ClassificationQuestion, assigned: Optional[Mapping[str, str]]) -> _Unit:
    chosen = assigned or {}
    correct = assigned is not None and all(chosen.get(it.id) == it.correct_category_id for it in q.items)
    credit = 1.0 if correct else 0.0
    return _Unit(correct, credit, credit, "")


def _score_showdown(sd: Showdown, answer: Optional[ShowdownAnswer]) -> _Unit:
    if answer is None:
        return _Unit(False, 0.0, 0.0, "")
    # reasons must match exactly: no omissions, no extras
    correct = answer.option_id == sd.correct_option_id and set(answer.reason_ids) == sd.correct_reason_ids()
    credit = 1.0 if correct else 0.0
    return _Unit(correct, credit, credit, "")


def _score_atomic(q, payload: Any) -> _Unit:
    """Dispatch one atomic game on its own tag; ``payload`` may be ``None``."""

    t = q.type
    if t == "mcq":
        return _score_mcq(q, payload.option_id if isinstance(payload, MCQAnswer) else None)
    if t == "ordering":
        return _score_ordering(q, payload.order if isinstance(payload, OrderingAnswer) else None)
    if t == "pair-match":
        return _score_pair_match(q, payload.matches if isinstance(payload, PairMatchAnswer) else None)
    if t == "fill-in-the-blanks":
        return _score_blanks(q, payload.answers if isinstance(payload, FillInTheBlanksAnswer) else None)
    raise ValueError(f"not an atomic game type: {t!r}")


def _set_accuracy(kind: str, unit: _Unit) -> float:
    # inside sets only fill-in-the-blanks carries fractional accuracy
    if kind == "fill-in-the-blanks":
        return unit.score
    return 1.0 if unit.correct else 0.0


# ---- aggregation ----
def _atomic_result(spec, payload: Any, ts: str) -> EvaluationResult:
    unit = _score_atomic(spec, payload)
    outcome = UnitOutcome(spec.id, unit.correct, unit.accuracy, list(spec.omi_mapping))
    if spec.type == "fill-in-the-blanks":
        # each sentence is its own question in progress tracking
        answers = payload.answers if isinstance(payload, FillInTheBlanksAnswer) else None
        unit_results = _blank_hits(spec, answers)
    else:
        unit_results = {spec.id: unit.correct}
    return EvaluationResult(
        game_id=spec.id,
        correct=unit.correct,
        score=unit.score,
        feedback=unit.feedback,
        omi_evidence=aggregate_omi_evidence([outcome], ts),
        unit_results=unit_results,
    )


def _set_result(game_id: str, outcomes: List[UnitOutcome], ts: str) -> EvaluationResult:
    total = len(outcomes)
    hits = sum(1 for o in outcomes if o.correct)
    score = _fraction(hits, total)
    correct = total > 0 and hits == total
    feedback = SET_OK if correct else f"You answered {hits} of {total} correctly."
    return EvaluationResult(
        game_id=game_id,
        correct=correct,
        score=score,
        feedback=feedback,
        omi_evidence=aggregate_omi_evidence(outcomes, ts),
        unit_results={o.unit_id: o.correct for o in outcomes},
    )


def _outcome(unit_id: str, kind: str, unit: _Unit, omi_mapping: List[str]) -> UnitOutcome:
    return UnitOutcome(unit_id, unit.correct, _set_accuracy(kind, unit), list(omi_mapping))


def _activity_payload(activity, raw: Any) -> Any:
    if raw is None:
        return None
    if isinstance(raw, AnswerPayload):
        return raw.payload if raw.type == activity.type else None
    if isinstance(raw, Mapping):
        try:
            return payload_from_dict(activity.type, raw)
        except ValueError as exc:
            log.debug("activity %s answer not convertible: %s", activity.id, exc)
            return None
    return raw


def _activity_outcomes(spec: ActivitySetSpec, answers: Mapping[str, Any]) -> List[UnitOutcome]:
    out: List[UnitOutcome] = []
    for activity in spec.activities:
        payload = _activity_payload(activity, answers.get(activity.id))
        unit = _score_atomic(activity, payload)
        out.append(_outcome(activity.id, activity.type, unit, activity.omi_mapping))
    return out


def _set_outcomes(spec: GameSpec, payload: Any) -> List[UnitOutcome]:
    answers: Dict[str, Any] = dict(getattr(payload, "answers", None) or {})
    t = spec.type
    if t == "mcq-set":
        return [_outcome(q.id, "mcq", _score_mcq(q, answers.get(q.id)), q.omi_mapping) for q in spec.questions]
    if t == "ordering-set":
        return [_outcome(q.id, "ordering", _score_ordering(q, answers.get(q.id)), q.omi_mapping) for q in spec.questions]
    if t == "pair-match-set":
        return [_outcome(q.id, "pair-match", _score_pair_match(q, answers.get(q.id)), q.omi_mapping) for q in spec.questions]
    if t == "fill-in-the-blanks-set":
        return [
            _outcome(q.id, "fill-in-the-blanks", _score_blanks(q, answers.get(q.id)), q.omi_mapping)
            for q in spec.questions
        ]
    if t == "classification-set":
        return [
            _outcome(q.id, "classification", _score_classification(q, answers.get(q.id)), q.omi_mapping)
            for q in spec.questions
        ]
    if t == "showdown-set":
        return [_outcome(sd.id, "showdown", _score_showdown(sd, answers.get(sd.id)), sd.omi_mapping) for sd in spec.showdowns]
    if t == "activity-set":
        return _activity_outcomes(spec, answers)
    raise ValueError(f"unknown game type: {t!r}")


def evaluate(spec: GameSpec, answer: Optional[AnswerPayload], now: Clock = None) -> Optional[EvaluationResult]:
    """
    Score ``answer`` against ``spec``.
    Returns None when the answer's type tag does not match the spec (nothing to
    evaluate yet).  Wrong or missing sub-answers are ordinary results.
    ``now`` pins the evidence timestamp (ISO string or zero-arg callable).
    """
    if answer is None or answer.type != spec.type:
        log.debug("answer type %r not applicable to spec %s (%s)",
                  getattr(answer, "type", None), spec.id, spec.type)
        return None
    ts = resolve_timestamp(now)
    if spec.type in ("mcq", "ordering", "pair-match", "fill-in-the-blanks"):
        return _atomic_result(spec, answer.payload, ts)
    return _set_result(spec.id, _set_outcomes(spec, answer.payload), ts)


__all__ = ["evaluate", "can_score_locally", "SCORABLE_TYPES"]
