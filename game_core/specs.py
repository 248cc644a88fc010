"""Conversion of JSON game specs and answer envelopes into typed dataclasses.

Specs arrive already validated against the authoring schema, so nothing here
re-checks value constraints such as minimum option counts.  The converters only
map camelCase JSON onto the dataclasses in :mod:`game_core.types` and raise
``ValueError`` when a ``type`` tag is unknown or a required key is absent.
"""
from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping

from .types import (
    ActivitySetAnswer,
    ActivitySetSpec,
    AnswerPayload,
    Category,
    ClassificationItem,
    ClassificationQuestion,
    ClassificationSetAnswer,
    ClassificationSetSpec,
    FillInTheBlanksAnswer,
    FillInTheBlanksSetAnswer,
    FillInTheBlanksSetSpec,
    FillInTheBlanksSpec,
    GameSpec,
    MCQAnswer,
    MCQSetAnswer,
    MCQSetSpec,
    MCQSpec,
    Metadata,
    Option,
    OrderingAnswer,
    OrderingSetAnswer,
    OrderingSetSpec,
    OrderingSpec,
    Pair,
    PairMatchAnswer,
    PairMatchSetAnswer,
    PairMatchSetSpec,
    PairMatchSpec,
    Sentence,
    Showdown,
    ShowdownAnswer,
    ShowdownOption,
    ShowdownReason,
    ShowdownSetAnswer,
    ShowdownSetSpec,
)

ATOMIC_TYPES: tuple[str, ...] = ("mcq", "ordering", "pair-match", "fill-in-the-blanks")


def _req(raw: Mapping[str, Any], key: str) -> Any:
    if not isinstance(raw, Mapping):
        raise ValueError(f"expected an object, got {type(raw).__name__}")
    if key not in raw:
        raise ValueError(f"missing required key {key!r}")
    return raw[key]


def _str_list(value: Any) -> List[str]:
    return [str(v) for v in (value or [])]


def _metadata(raw: Any) -> Metadata | None:
    if not isinstance(raw, Mapping):
        return None
    return Metadata(
        subject=raw.get("subject"),
        tags=_str_list(raw.get("tags")),
        difficulty=raw.get("difficulty"),
        omis=_str_list(raw.get("omis")),
        assessment_standard=raw.get("assessmentStandard"),
        level=raw.get("level"),
    )


def _common(raw: Mapping[str, Any]) -> Dict[str, Any]:
    return {
        "id": str(_req(raw, "id")),
        "title": raw.get("title"),
        "prompt": raw.get("prompt"),
        "instructions": raw.get("instructions"),
        "time_limit_sec": raw.get("timeLimitSec"),
        "omi_mapping": _str_list(raw.get("omiMapping")),
        "metadata": _metadata(raw.get("metadata")),
    }


def _pairs(raw: Any) -> List[Pair]:
    return [Pair(left=str(_req(p, "left")), right=str(_req(p, "right"))) for p in (raw or [])]


def _mcq(raw: Mapping[str, Any]) -> MCQSpec:
    return MCQSpec(
        options=[Option(id=str(_req(o, "id")), text=str(o.get("text", ""))) for o in _req(raw, "options")],
        correct_option_id=str(_req(raw, "correctOptionId")),
        explanation=raw.get("explanation"),
        **_common(raw),
    )


def _ordering(raw: Mapping[str, Any]) -> OrderingSpec:
    return OrderingSpec(items=_str_list(_req(raw, "items")), shuffle=raw.get("shuffle"), **_common(raw))


def _pair_match(raw: Mapping[str, Any]) -> PairMatchSpec:
    return PairMatchSpec(
        pairs=_pairs(_req(raw, "pairs")),
        distractors_right=_str_list(raw.get("distractorsRight")),
        **_common(raw),
    )


def _fill_in(raw: Mapping[str, Any]) -> FillInTheBlanksSpec:
    sentences = [
        Sentence(id=str(_req(s, "id")), text=_str_list(s.get("text")), blank_answer=str(_req(s, "blank_answer")))
        for s in _req(raw, "sentences")
    ]
    return FillInTheBlanksSpec(sentences=sentences, word_bank=_str_list(raw.get("word_bank")), **_common(raw))


def _classification_question(raw: Mapping[str, Any]) -> ClassificationQuestion:
    return ClassificationQuestion(
        id=str(_req(raw, "id")),
        categories=[Category(id=str(_req(c, "id")), name=str(c.get("name", ""))) for c in _req(raw, "categories")],
        items=[
            ClassificationItem(
                id=str(_req(it, "id")),
                text=str(it.get("text", "")),
                correct_category_id=str(_req(it, "correctCategoryId")),
            )
            for it in _req(raw, "items")
        ],
        title=raw.get("title"),
        prompt=raw.get("prompt"),
        omi_mapping=_str_list(raw.get("omiMapping")),
    )


def _showdown(raw: Mapping[str, Any]) -> Showdown:
    return Showdown(
        id=str(_req(raw, "id")),
        prompt=str(raw.get("prompt", "")),
        options=[
            ShowdownOption(id=str(_req(o, "id")), label=str(o.get("label", "")), description=str(o.get("description", "")))
            for o in _req(raw, "options")
        ],
        correct_option_id=str(_req(raw, "correctOptionId")),
        reason_options=[
            ShowdownReason(id=str(_req(r, "id")), label=str(r.get("label", "")), correct=bool(_req(r, "correct")))
            for r in _req(raw, "reasonOptions")
        ],
        title=raw.get("title"),
        context=dict(raw.get("context") or {}),
        improvement_question=raw.get("improvementQuestion"),
        omi_mapping=_str_list(raw.get("omiMapping")),
    )


def _set_common(raw: Mapping[str, Any]) -> Dict[str, Any]:
    return {
        "id": str(_req(raw, "id")),
        "title": raw.get("title"),
        "description": raw.get("description"),
        "metadata": _metadata(raw.get("metadata")),
    }


_ATOMIC_BUILDERS: Dict[str, Callable[[Mapping[str, Any]], Any]] = {
    "mcq": _mcq,
    "ordering": _ordering,
    "pair-match": _pair_match,
    "fill-in-the-blanks": _fill_in,
}


def _activity(raw: Mapping[str, Any]):
    t = _req(raw, "type")
    builder = _ATOMIC_BUILDERS.get(t)
    if builder is None:
        raise ValueError(f"unsupported activity type: {t!r}")
    return builder(raw)


def spec_from_dict(raw: Mapping[str, Any]) -> GameSpec:
    """Build the typed spec for ``raw`` by dispatching on its ``type`` tag."""

    t = _req(raw, "type")
    if t in _ATOMIC_BUILDERS:
        return _ATOMIC_BUILDERS[t](raw)
    if t == "mcq-set":
        return MCQSetSpec(questions=[_mcq(q) for q in _req(raw, "questions")], **_set_common(raw))
    if t == "ordering-set":
        return OrderingSetSpec(questions=[_ordering(q) for q in _req(raw, "questions")], **_set_common(raw))
    if t == "pair-match-set":
        return PairMatchSetSpec(questions=[_pair_match(q) for q in _req(raw, "questions")], **_set_common(raw))
    if t == "fill-in-the-blanks-set":
        return FillInTheBlanksSetSpec(questions=[_fill_in(q) for q in _req(raw, "questions")], **_set_common(raw))
    if t == "classification-set":
        return ClassificationSetSpec(
            questions=[_classification_question(q) for q in _req(raw, "questions")], **_set_common(raw)
        )
    if t == "showdown-set":
        return ShowdownSetSpec(showdowns=[_showdown(s) for s in _req(raw, "showdowns")], **_set_common(raw))
    if t == "activity-set":
        return ActivitySetSpec(activities=[_activity(a) for a in _req(raw, "activities")], **_set_common(raw))
    raise ValueError(f"unknown game type: {t!r}")


def _str_map(raw: Any) -> Dict[str, str]:
    if not isinstance(raw, Mapping):
        raise ValueError("expected an object of string values")
    return {str(k): str(v) for k, v in raw.items()}


def _showdown_answer(raw: Mapping[str, Any]) -> ShowdownAnswer:
    return ShowdownAnswer(
        option_id=str(_req(raw, "optionId")),
        reason_ids=_str_list(raw.get("reasonIds")),
        improvement_option_id=raw.get("improvementOptionId"),
    )


def payload_from_dict(game_type: str, raw: Mapping[str, Any]):
    """Convert the ``payload`` half of an answer envelope for ``game_type``."""

    if game_type == "mcq":
        return MCQAnswer(option_id=str(_req(raw, "optionId")))
    if game_type == "ordering":
        return OrderingAnswer(order=_str_list(_req(raw, "order")))
    if game_type == "pair-match":
        return PairMatchAnswer(matches=_pairs(_req(raw, "matches")))
    if game_type == "fill-in-the-blanks":
        return FillInTheBlanksAnswer(answers=_str_map(_req(raw, "answers")))

    answers = _req(raw, "answers")
    if not isinstance(answers, Mapping):
        raise ValueError("answers must be an object keyed by question id")
    if game_type == "mcq-set":
        return MCQSetAnswer(answers=_str_map(answers))
    if game_type == "ordering-set":
        return OrderingSetAnswer(answers={str(k): _str_list(v) for k, v in answers.items()})
    if game_type == "pair-match-set":
        return PairMatchSetAnswer(answers={str(k): _pairs(v) for k, v in answers.items()})
    if game_type == "fill-in-the-blanks-set":
        return FillInTheBlanksSetAnswer(answers={str(k): _str_map(v) for k, v in answers.items()})
    if game_type == "classification-set":
        return ClassificationSetAnswer(answers={str(k): _str_map(v) for k, v in answers.items()})
    if game_type == "showdown-set":
        return ShowdownSetAnswer(answers={str(k): _showdown_answer(v) for k, v in answers.items()})
    if game_type == "activity-set":
        # activity payloads are converted lazily, against each activity's own type
        return ActivitySetAnswer(answers=dict(answers))
    raise ValueError(f"unknown game type: {game_type!r}")


def answer_from_dict(raw: Mapping[str, Any]) -> AnswerPayload:
    t = str(_req(raw, "type"))
    return AnswerPayload(type=t, payload=payload_from_dict(t, _req(raw, "payload")))


def load_spec_file(path: str | Path) -> GameSpec:
    data = Path(path).read_text(encoding="utf-8")
    return spec_from_dict(json.loads(data))


def question_ids(spec: GameSpec) -> List[str]:
    """Ids of the sub-units a learner answers, in presentation order.

    Single mcq, ordering and pair-match games have no sub-units and
    contribute nothing to question totals.
    """

    t = spec.type
    if t == "fill-in-the-blanks":
        return [s.id for s in spec.sentences]
    if t in ATOMIC_TYPES:
        return []
    if t == "showdown-set":
        return [s.id for s in spec.showdowns]
    if t == "activity-set":
        return [a.id for a in spec.activities]
    return [q.id for q in spec.questions]


__all__ = [
    "ATOMIC_TYPES",
    "spec_from_dict",
    "payload_from_dict",
    "answer_from_dict",
    "load_spec_file",
    "question_ids",
]
