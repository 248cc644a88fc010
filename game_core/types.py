from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional, Union

from . import config

GameType = Literal[
    "mcq", "ordering", "pair-match", "fill-in-the-blanks",
    "mcq-set", "ordering-set", "pair-match-set", "fill-in-the-blanks-set",
    "classification-set", "showdown-set", "activity-set",
]
MasteryLevel = Literal["not-yet", "emerging", "proficient", "mastered"]


@dataclass
class Metadata:
    subject: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    difficulty: Optional[int] = None
    omis: List[str] = field(default_factory=list)
    assessment_standard: Optional[str] = None
    level: Optional[str] = None


@dataclass
class Option:
    id: str; text: str


@dataclass
class Pair:
    left: str; right: str


@dataclass
class Sentence:
    id: str; text: List[str]; blank_answer: str


# ---- atomic games (also used as sub-questions inside sets) ----
@dataclass
class MCQSpec:
    id: str
    options: List[Option]
    correct_option_id: str
    type: str = "mcq"
    title: Optional[str] = None
    prompt: Optional[str] = None
    instructions: Optional[str] = None
    time_limit_sec: Optional[int] = None
    explanation: Optional[str] = None
    omi_mapping: List[str] = field(default_factory=list)
    metadata: Optional[Metadata] = None


@dataclass
class OrderingSpec:
    id: str
    items: List[str]
    type: str = "ordering"
    title: Optional[str] = None
    prompt: Optional[str] = None
    instructions: Optional[str] = None
    time_limit_sec: Optional[int] = None
    shuffle: Optional[bool] = None
    omi_mapping: List[str] = field(default_factory=list)
    metadata: Optional[Metadata] = None


@dataclass
class PairMatchSpec:
    id: str
    pairs: List[Pair]
    type: str = "pair-match"
    title: Optional[str] = None
    prompt: Optional[str] = None
    instructions: Optional[str] = None
    time_limit_sec: Optional[int] = None
    distractors_right: List[str] = field(default_factory=list)
    omi_mapping: List[str] = field(default_factory=list)
    metadata: Optional[Metadata] = None


@dataclass
class FillInTheBlanksSpec:
    id: str
    sentences: List[Sentence]
    word_bank: List[str] = field(default_factory=list)
    type: str = "fill-in-the-blanks"
    title: Optional[str] = None
    prompt: Optional[str] = None
    instructions: Optional[str] = None
    time_limit_sec: Optional[int] = None
    omi_mapping: List[str] = field(default_factory=list)
    metadata: Optional[Metadata] = None


AtomicSpec = Union[MCQSpec, OrderingSpec, PairMatchSpec, FillInTheBlanksSpec]


# ---- classification / showdown sub-questions ----
@dataclass
class Category:
    id: str; name: str


@dataclass
class ClassificationItem:
    id: str; text: str; correct_category_id: str


@dataclass
class ClassificationQuestion:
    id: str
    categories: List[Category]
    items: List[ClassificationItem]
    type: str = "classification"
    title: Optional[str] = None
    prompt: Optional[str] = None
    omi_mapping: List[str] = field(default_factory=list)


@dataclass
class ShowdownOption:
    id: str; label: str; description: str = ""


@dataclass
class ShowdownReason:
    id: str; label: str; correct: bool


@dataclass
class Showdown:
    id: str
    prompt: str
    options: List[ShowdownOption]
    correct_option_id: str
    reason_options: List[ShowdownReason]
    title: Optional[str] = None
    context: Dict[str, Any] = field(default_factory=dict)
    improvement_question: Optional[Dict[str, Any]] = None
    omi_mapping: List[str] = field(default_factory=list)

    def correct_reason_ids(self) -> set[str]:
        return {r.id for r in self.reason_options if r.correct}


# ---- set / composite games ----
@dataclass
class MCQSetSpec:
    id: str
    questions: List[MCQSpec]
    type: str = "mcq-set"
    title: Optional[str] = None
    description: Optional[str] = None
    metadata: Optional[Metadata] = None


@dataclass
class OrderingSetSpec:
    id: str
    questions: List[OrderingSpec]
    type: str = "ordering-set"
    title: Optional[str] = None
    description: Optional[str] = None
    metadata: Optional[Metadata] = None


@dataclass
class PairMatchSetSpec:
    id: str
    questions: List[PairMatchSpec]
    type: str = "pair-match-set"
    title: Optional[str] = None
    description: Optional[str] = None
    metadata: Optional[Metadata] = None


@dataclass
class FillInTheBlanksSetSpec:
    id: str
    questions: List[FillInTheBlanksSpec]
    type: str = "fill-in-the-blanks-set"
    title: Optional[str] = None
    description: Optional[str] = None
    metadata: Optional[Metadata] = None


@dataclass
class ClassificationSetSpec:
    id: str
    questions: List[ClassificationQuestion]
    type: str = "classification-set"
    title: Optional[str] = None
    description: Optional[str] = None
    metadata: Optional[Metadata] = None


@dataclass
class ShowdownSetSpec:
    id: str
    showdowns: List[Showdown]
    type: str = "showdown-set"
    title: Optional[str] = None
    description: Optional[str] = None
    metadata: Optional[Metadata] = None


@dataclass
class ActivitySetSpec:
    id: str
    activities: List[AtomicSpec]
    type: str = "activity-set"
    title: Optional[str] = None
    description: Optional[str] = None
    metadata: Optional[Metadata] = None


GameSpec = Union[
    MCQSpec, OrderingSpec, PairMatchSpec, FillInTheBlanksSpec,
    MCQSetSpec, OrderingSetSpec, PairMatchSetSpec, FillInTheBlanksSetSpec,
    ClassificationSetSpec, ShowdownSetSpec, ActivitySetSpec,
]


# ---- answers ----
@dataclass
class MCQAnswer:
    option_id: str


@dataclass
class OrderingAnswer:
    order: List[str]


@dataclass
class PairMatchAnswer:
    matches: List[Pair]


@dataclass
class FillInTheBlanksAnswer:
    answers: Dict[str, str]                     # sentence id -> word


@dataclass
class MCQSetAnswer:
    answers: Dict[str, str]                     # question id -> option id


@dataclass
class OrderingSetAnswer:
    answers: Dict[str, List[str]]


@dataclass
class PairMatchSetAnswer:
    answers: Dict[str, List[Pair]]


@dataclass
class FillInTheBlanksSetAnswer:
    answers: Dict[str, Dict[str, str]]


@dataclass
class ClassificationSetAnswer:
    answers: Dict[str, Dict[str, str]]          # question id -> {item id: category id}


@dataclass
class ShowdownAnswer:
    option_id: str
    reason_ids: List[str] = field(default_factory=list)
    improvement_option_id: Optional[str] = None


@dataclass
class ShowdownSetAnswer:
    answers: Dict[str, ShowdownAnswer]


@dataclass
class ActivitySetAnswer:
    answers: Dict[str, Any]                     # activity id -> typed payload or raw dict


@dataclass
class AnswerPayload:
    type: str
    payload: Any


# ---- results, evidence, progress ----
@dataclass
class OMIEvidence:
    omi_id: str
    demonstrated: bool
    accuracy: float
    timestamp: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "omiId": self.omi_id,
            "demonstrated": self.demonstrated,
            "accuracy": self.accuracy,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "OMIEvidence":
        return cls(
            omi_id=str(raw["omiId"]),
            demonstrated=bool(raw["demonstrated"]),
            accuracy=float(raw["accuracy"]),
            timestamp=str(raw["timestamp"]),
        )


@dataclass
class EvaluationResult:
    game_id: str
    correct: bool
    score: float
    feedback: Optional[str] = None
    omi_evidence: List[OMIEvidence] = field(default_factory=list)
    unit_results: Dict[str, bool] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "gameId": self.game_id,
            "correct": self.correct,
            "score": self.score,
            "omiEvidence": [ev.to_dict() for ev in self.omi_evidence],
            "unitResults": dict(self.unit_results),
        }
        if self.feedback is not None:
            out["feedback"] = self.feedback
        return out


@dataclass
class OMIProgress:
    omi_id: str
    mastery_level: MasteryLevel = "not-yet"
    total_attempts: int = 0
    successful_attempts: int = 0
    average_accuracy: float = 0.0
    last_attempt: Optional[str] = None
    evidence_history: List[OMIEvidence] = field(default_factory=list)

    @property
    def success_rate(self) -> float:
        if self.total_attempts <= 0:
            return 0.0
        return self.successful_attempts / self.total_attempts

    def to_dict(self) -> Dict[str, Any]:
        return {
            "omiId": self.omi_id,
            "masteryLevel": self.mastery_level,
            "totalAttempts": self.total_attempts,
            "successfulAttempts": self.successful_attempts,
            "averageAccuracy": self.average_accuracy,
            "lastAttempt": self.last_attempt,
            "evidenceHistory": [ev.to_dict() for ev in self.evidence_history],
        }

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "OMIProgress":
        level = raw.get("masteryLevel", "not-yet")
        if level not in config.MASTERY_LEVELS:
            raise ValueError(f"unknown mastery level: {level!r}")
        total = int(raw.get("totalAttempts", 0))
        successful = int(raw.get("successfulAttempts", 0))
        if total < 0 or successful < 0 or successful > total:
            raise ValueError("attempt counters out of range")
        return cls(
            omi_id=str(raw["omiId"]),
            mastery_level=level,
            total_attempts=total,
            successful_attempts=successful,
            average_accuracy=float(raw.get("averageAccuracy", 0.0)),
            last_attempt=raw.get("lastAttempt"),
            evidence_history=[OMIEvidence.from_dict(ev) for ev in raw.get("evidenceHistory") or []],
        )


@dataclass
class SubmittedQuestion:
    game_id: str; question_id: str; correct: bool; timestamp: str

    def to_dict(self) -> Dict[str, Any]:
        return {"gameId": self.game_id, "questionId": self.question_id,
                "correct": self.correct, "timestamp": self.timestamp}

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "SubmittedQuestion":
        return cls(str(raw["gameId"]), str(raw["questionId"]), bool(raw["correct"]), str(raw["timestamp"]))


@dataclass
class AskedQuestion:
    spec_path: str; question_id: str; timestamp: str

    def to_dict(self) -> Dict[str, Any]:
        return {"specPath": self.spec_path, "questionId": self.question_id, "timestamp": self.timestamp}

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "AskedQuestion":
        return cls(str(raw["specPath"]), str(raw["questionId"]), str(raw["timestamp"]))


@dataclass
class TimerState:
    remaining_sec: int
    active: bool
