"""Renderer/progress state as an explicit reducer plus a persisting store.

``RendererState`` holds two kinds of data: per-session scratch state
(``answers``, ``evaluations``, ``timers``) that is never written out, and the
learner's progress (``omi_progress``, ``asked_questions``,
``submitted_questions``) which is persisted through an injected
:class:`ProgressBackend`.  Every mutation is an action passed to
:func:`reduce`; :class:`ProgressStore` is a thin stateful wrapper that
dispatches actions and saves the persisted half after progress-changing ones.

Persistence is fire-and-forget with last-write-wins semantics: a failed save
is logged and dropped, and a missing or unreadable document loads as empty
progress.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Iterable, List, Mapping, Optional, Protocol, Union

from . import config
from .evidence import utcnow_iso
from .mastery import record_evidence
from .types import (
    AnswerPayload,
    AskedQuestion,
    EvaluationResult,
    MasteryLevel,
    OMIEvidence,
    OMIProgress,
    SubmittedQuestion,
    TimerState,
)

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class RendererState:
    answers: Dict[str, AnswerPayload] = field(default_factory=dict)
    evaluations: Dict[str, EvaluationResult] = field(default_factory=dict)
    timers: Dict[str, TimerState] = field(default_factory=dict)
    omi_progress: Dict[str, OMIProgress] = field(default_factory=dict)
    asked_questions: List[AskedQuestion] = field(default_factory=list)
    submitted_questions: List[SubmittedQuestion] = field(default_factory=list)


# ---- actions ----
@dataclass(frozen=True)
class SetAnswer:
    game_id: str
    answer: Optional[AnswerPayload]


@dataclass(frozen=True)
class ClearAnswer:
    game_id: str


@dataclass(frozen=True)
class SetEvaluation:
    game_id: str
    result: Optional[EvaluationResult]


@dataclass(frozen=True)
class ClearEvaluation:
    game_id: str


@dataclass(frozen=True)
class InitTimer:
    game_id: str
    time_limit_sec: int


@dataclass(frozen=True)
class TickTimer:
    game_id: str


@dataclass(frozen=True)
class StopTimer:
    game_id: str


@dataclass(frozen=True)
class ResetGame:
    game_id: str


@dataclass(frozen=True)
class RecordOMIEvidence:
    evidence: tuple[OMIEvidence, ...]


@dataclass(frozen=True)
class MarkQuestionSubmitted:
    game_id: str
    question_id: str
    correct: bool
    timestamp: str


@dataclass(frozen=True)
class MarkQuestionAsked:
    spec_path: str
    question_id: str
    timestamp: str


@dataclass(frozen=True)
class RecordSubmission:
    """Submitted-question upserts and OMI evidence of one graded answer."""

    game_id: str
    results: tuple[tuple[str, bool], ...]
    evidence: tuple[OMIEvidence, ...]
    timestamp: str


@dataclass(frozen=True)
class ResetAllProgress:
    pass


Action = Union[
    SetAnswer, ClearAnswer, SetEvaluation, ClearEvaluation,
    InitTimer, TickTimer, StopTimer, ResetGame,
    RecordOMIEvidence, MarkQuestionSubmitted, MarkQuestionAsked, RecordSubmission, ResetAllProgress,
]

PERSISTED_ACTIONS = (
    RecordOMIEvidence, MarkQuestionSubmitted, MarkQuestionAsked, RecordSubmission, ResetAllProgress,
)


def _without(d: Dict[str, Any], key: str) -> Dict[str, Any]:
    return {k: v for k, v in d.items() if k != key}


def _with(d: Dict[str, Any], key: str, value: Any) -> Dict[str, Any]:
    out = dict(d)
    out[key] = value
    return out


def _tick(state: RendererState, game_id: str) -> RendererState:
    timer = state.timers.get(game_id)
    if timer is None or not timer.active:
        return state
    nxt = max(0, timer.remaining_sec - 1)
    return replace(state, timers=_with(state.timers, game_id, TimerState(nxt, nxt > 0)))


def _upsert_submitted(state: RendererState, game_id: str,
                      results: Iterable[tuple[str, bool]], timestamp: str) -> RendererState:
    results = list(results)
    if not results:
        return state
    fresh = [SubmittedQuestion(game_id, qid, bool(ok), timestamp) for qid, ok in results]
    replaced = {qid for qid, _ok in results}
    rest = [q for q in state.submitted_questions if not (q.game_id == game_id and q.question_id in replaced)]
    return replace(state, submitted_questions=rest + fresh)


def reduce(state: RendererState, action: Action) -> RendererState:
    """Return the state after ``action``; ``state`` itself is never mutated."""

    if isinstance(action, SetAnswer):
        return replace(state, answers=_with(state.answers, action.game_id, action.answer))
    if isinstance(action, ClearAnswer):
        return replace(state, answers=_without(state.answers, action.game_id))
    if isinstance(action, SetEvaluation):
        return replace(state, evaluations=_with(state.evaluations, action.game_id, action.result))
    if isinstance(action, ClearEvaluation):
        return replace(state, evaluations=_without(state.evaluations, action.game_id))
    if isinstance(action, InitTimer):
        if action.time_limit_sec <= 0:
            return state
        timer = TimerState(remaining_sec=int(action.time_limit_sec), active=True)
        return replace(state, timers=_with(state.timers, action.game_id, timer))
    if isinstance(action, TickTimer):
        return _tick(state, action.game_id)
    if isinstance(action, StopTimer):
        timer = state.timers.get(action.game_id)
        if timer is None:
            return state
        return replace(state, timers=_with(state.timers, action.game_id, replace(timer, active=False)))
    if isinstance(action, ResetGame):
        return replace(
            state,
            answers=_without(state.answers, action.game_id),
            evaluations=_without(state.evaluations, action.game_id),
            timers=_without(state.timers, action.game_id),
        )
    if isinstance(action, RecordOMIEvidence):
        if not action.evidence:
            return state
        return replace(state, omi_progress=record_evidence(state.omi_progress, action.evidence))
    if isinstance(action, MarkQuestionSubmitted):
        return _upsert_submitted(state, action.game_id, ((action.question_id, action.correct),), action.timestamp)
    if isinstance(action, RecordSubmission):
        state = _upsert_submitted(state, action.game_id, action.results, action.timestamp)
        if action.evidence:
            state = replace(state, omi_progress=record_evidence(state.omi_progress, action.evidence))
        return state
    if isinstance(action, MarkQuestionAsked):
        entry = AskedQuestion(action.spec_path, action.question_id, action.timestamp)
        rest = [
            q for q in state.asked_questions
            if not (q.spec_path == action.spec_path and q.question_id == action.question_id)
        ]
        return replace(state, asked_questions=rest + [entry])
    if isinstance(action, ResetAllProgress):
        return RendererState()
    raise TypeError(f"unknown action: {type(action).__name__}")


# ---- persistence ----
def to_document(state: RendererState) -> Dict[str, Any]:
    """JSON-safe persisted subset; session scratch state is excluded."""

    return {
        "omiProgress": {k: v.to_dict() for k, v in state.omi_progress.items()},
        "askedQuestions": [q.to_dict() for q in state.asked_questions],
        "submittedQuestions": [q.to_dict() for q in state.submitted_questions],
    }


def _load_entries(raw: Any, loader) -> List[Any]:
    out: List[Any] = []
    if not isinstance(raw, list):
        return out
    for entry in raw:
        try:
            out.append(loader(entry))
        except (KeyError, TypeError, ValueError) as exc:
            log.warning("skipping malformed progress entry: %s", exc)
    return out


def from_document(doc: Any) -> RendererState:
    if not isinstance(doc, dict):
        return RendererState()
    progress: Dict[str, OMIProgress] = {}
    raw_progress = doc.get("omiProgress")
    if isinstance(raw_progress, dict):
        for omi_id, entry in raw_progress.items():
            try:
                progress[str(omi_id)] = OMIProgress.from_dict(entry)
            except (KeyError, TypeError, ValueError, AttributeError) as exc:
                log.warning("skipping malformed progress for %s: %s", omi_id, exc)
    return RendererState(
        omi_progress=progress,
        asked_questions=_load_entries(doc.get("askedQuestions"), AskedQuestion.from_dict),
        submitted_questions=_load_entries(doc.get("submittedQuestions"), SubmittedQuestion.from_dict),
    )


class ProgressBackend(Protocol):
    def load(self) -> Optional[Dict[str, Any]]: ...

    def save(self, document: Dict[str, Any]) -> None: ...


class MemoryBackend:
    """Keeps the persisted document in memory; used by tests and the CLI."""

    def __init__(self, document: Optional[Dict[str, Any]] = None):
        self.document = document
        self.saves = 0

    def load(self) -> Optional[Dict[str, Any]]:
        return self.document

    def save(self, document: Dict[str, Any]) -> None:
        self.document = document
        self.saves += 1


class ProgressStore:
    def __init__(self, backend: Optional[ProgressBackend] = None, *, autoload: bool = True):
        self.backend = backend
        self.state = RendererState()
        if autoload:
            self.load()

    # ---- plumbing ----
    def dispatch(self, action: Action) -> RendererState:
        self.state = reduce(self.state, action)
        if isinstance(action, PERSISTED_ACTIONS):
            self.save()
        return self.state

    def load(self) -> None:
        doc = None
        if self.backend is not None:
            try:
                doc = self.backend.load()
            except Exception as exc:
                log.warning("progress load failed, starting empty: %s", exc)
                doc = None
        loaded = from_document(doc)
        self.state = replace(
            self.state,
            omi_progress=loaded.omi_progress,
            asked_questions=loaded.asked_questions,
            submitted_questions=loaded.submitted_questions,
        )

    def save(self) -> None:
        if self.backend is None or not config.PERSIST_ENABLED:
            return
        try:
            self.backend.save(to_document(self.state))
        except Exception as exc:
            # not retried; the next successful write supersedes this one
            log.warning("progress save failed: %s", exc)

    def persisted_document(self) -> Dict[str, Any]:
        return to_document(self.state)

    # ---- session scratch state ----
    def set_answer(self, game_id: str, answer: Optional[AnswerPayload]) -> None:
        self.dispatch(SetAnswer(game_id, answer))

    def clear_answer(self, game_id: str) -> None:
        self.dispatch(ClearAnswer(game_id))

    def set_evaluation(self, game_id: str, result: Optional[EvaluationResult]) -> None:
        self.dispatch(SetEvaluation(game_id, result))

    def clear_evaluation(self, game_id: str) -> None:
        self.dispatch(ClearEvaluation(game_id))

    def init_timer(self, game_id: str, time_limit_sec: int) -> None:
        self.dispatch(InitTimer(game_id, time_limit_sec))

    def tick_timer(self, game_id: str) -> Optional[int]:
        """Advance an active timer one step; None when there is nothing to tick."""

        timer = self.state.timers.get(game_id)
        if timer is None or not timer.active:
            return None
        self.dispatch(TickTimer(game_id))
        return self.state.timers[game_id].remaining_sec

    def stop_timer(self, game_id: str) -> None:
        self.dispatch(StopTimer(game_id))

    def get_timer(self, game_id: str) -> Optional[TimerState]:
        return self.state.timers.get(game_id)

    def reset_game(self, game_id: str) -> None:
        self.dispatch(ResetGame(game_id))

    # ---- progress ----
    def record_omi_evidence(self, evidence: Iterable[OMIEvidence]) -> Dict[str, OMIProgress]:
        batch = tuple(evidence)
        self.dispatch(RecordOMIEvidence(batch))
        return {ev.omi_id: self.state.omi_progress[ev.omi_id] for ev in batch}

    def get_omi_progress(self, omi_id: str) -> Optional[OMIProgress]:
        return self.state.omi_progress.get(omi_id)

    def get_omi_mastery(self, omi_id: str) -> MasteryLevel:
        progress = self.state.omi_progress.get(omi_id)
        return progress.mastery_level if progress else "not-yet"

    def mark_question_submitted(self, game_id: str, question_id: str, correct: bool,
                                timestamp: Optional[str] = None) -> None:
        self.dispatch(MarkQuestionSubmitted(game_id, question_id, bool(correct), timestamp or utcnow_iso()))

    def record_submission(self, game_id: str, unit_results: Mapping[str, bool],
                          evidence: Iterable[OMIEvidence] = (),
                          timestamp: Optional[str] = None) -> Dict[str, OMIProgress]:
        """Apply one graded answer's question results and evidence with a single save."""

        batch = tuple(evidence)
        results = tuple((qid, bool(ok)) for qid, ok in unit_results.items())
        self.dispatch(RecordSubmission(game_id, results, batch, timestamp or utcnow_iso()))
        return {ev.omi_id: self.state.omi_progress[ev.omi_id] for ev in batch}

    def get_submitted_questions_for_game(self, game_id: str) -> List[SubmittedQuestion]:
        return [q for q in self.state.submitted_questions if q.game_id == game_id]

    def mark_question_asked(self, spec_path: str, question_id: str, timestamp: Optional[str] = None) -> None:
        self.dispatch(MarkQuestionAsked(spec_path, question_id, timestamp or utcnow_iso()))

    def was_question_asked(self, spec_path: str, question_id: str) -> bool:
        return any(q.spec_path == spec_path and q.question_id == question_id for q in self.state.asked_questions)

    def reset_all_progress(self) -> None:
        self.dispatch(ResetAllProgress())


__all__ = [
    "RendererState",
    "reduce",
    "to_document",
    "from_document",
    "ProgressBackend",
    "MemoryBackend",
    "ProgressStore",
]
