from __future__ import annotations

from game_core.scoring import can_score_locally, evaluate
from game_core.specs import answer_from_dict, spec_from_dict
from game_core.types import (
    AnswerPayload,
    FillInTheBlanksAnswer,
    MCQAnswer,
    OrderingAnswer,
    Pair,
    PairMatchAnswer,
)

from tests.conftest import FIXED_TS


MCQ = spec_from_dict({
    "id": "mcq-1",
    "type": "mcq",
    "options": [{"id": "a", "text": "Affordance"}, {"id": "b", "text": "Signifier"}],
    "correctOptionId": "b",
    "explanation": "A signifier communicates where the action should take place.",
    "omiMapping": ["omi.terms"],
})

ORDERING = spec_from_dict({
    "id": "order-1",
    "type": "ordering",
    "items": ["research", "ideate", "prototype", "test"],
    "omiMapping": ["omi.process"],
})

PAIRS = spec_from_dict({
    "id": "pairs-1",
    "type": "pair-match",
    "pairs": [
        {"left": "visibility", "right": "status shown"},
        {"left": "feedback", "right": "response to action"},
        {"left": "consistency", "right": "same patterns"},
    ],
    "omiMapping": ["omi.heuristics"],
})

BLANKS = spec_from_dict({
    "id": "blanks-1",
    "type": "fill-in-the-blanks",
    "sentences": [
        {"id": "s1", "text": ["Users scan, they don't ", "."], "blank_answer": "read"},
        {"id": "s2", "text": ["Keep the ", " short."], "blank_answer": "path"},
        {"id": "s3", "text": ["Test with real ", "."], "blank_answer": "users"},
        {"id": "s4", "text": ["Label every ", "."], "blank_answer": "control"},
    ],
    "word_bank": ["read", "path", "users", "control"],
})


def _ev(spec, payload):
    return evaluate(spec, AnswerPayload(type=spec.type, payload=payload), now=FIXED_TS)


def test_mcq_correct_and_incorrect_are_binary():
    ok = _ev(MCQ, MCQAnswer("b"))
    miss = _ev(MCQ, MCQAnswer("a"))

    assert ok.correct is True and ok.score == 1
    assert ok.feedback == "Correct!"
    assert miss.correct is False and miss.score == 0
    assert miss.feedback == MCQ.explanation
    for res in (ok, miss):
        assert res.score in (0, 1)
        assert res.correct == (res.score == 1)


def test_mcq_without_explanation_uses_default_feedback():
    spec = spec_from_dict({
        "id": "m",
        "type": "mcq",
        "options": [{"id": "a", "text": "A"}, {"id": "b", "text": "B"}],
        "correctOptionId": "a",
    })
    res = _ev(spec, MCQAnswer("b"))
    assert res.feedback == "Not quite. Review the concept and try again."
    assert res.omi_evidence == []


def test_type_mismatch_returns_none():
    assert evaluate(MCQ, AnswerPayload(type="ordering", payload=OrderingAnswer(["a"]))) is None
    assert evaluate(MCQ, None) is None


def test_ordering_requires_exact_sequence_and_reports_positional_accuracy():
    exact = _ev(ORDERING, OrderingAnswer(["research", "ideate", "prototype", "test"]))
    assert exact.correct and exact.score == 1
    assert exact.omi_evidence[0].accuracy == 1.0

    swapped = _ev(ORDERING, OrderingAnswer(["research", "ideate", "test", "prototype"]))
    assert swapped.correct is False and swapped.score == 0
    evidence = swapped.omi_evidence[0]
    assert evidence.omi_id == "omi.process"
    assert evidence.demonstrated is False
    assert evidence.accuracy == 0.5
    assert evidence.accuracy != swapped.score


def test_ordering_shorter_submission_is_incorrect():
    res = _ev(ORDERING, OrderingAnswer(["research", "ideate", "prototype"]))
    assert res.correct is False
    assert res.omi_evidence[0].accuracy == 0.75


def test_pair_match_all_correct():
    matches = [Pair(p.left, p.right) for p in PAIRS.pairs]
    res = _ev(PAIRS, PairMatchAnswer(matches))
    assert res.correct and res.score == 1
    assert res.feedback == "Great job matching the pairs!"


def test_pair_match_with_fewer_matches_is_incorrect_not_error():
    res = _ev(PAIRS, PairMatchAnswer([Pair("visibility", "status shown")]))
    assert res.correct is False
    assert res.score == 0
    assert res.feedback == "Keep practicing those matches!"
    assert abs(res.omi_evidence[0].accuracy - 1 / 3) < 1e-9


def test_pair_match_wrong_partner_scores_partial_accuracy():
    matches = [
        Pair("visibility", "status shown"),
        Pair("feedback", "same patterns"),
        Pair("consistency", "response to action"),
    ]
    res = _ev(PAIRS, PairMatchAnswer(matches))
    assert res.correct is False and res.score == 0
    assert res.feedback == "Some matches are incorrect. Try again."
    assert abs(res.omi_evidence[0].accuracy - 1 / 3) < 1e-9


def test_fill_in_the_blanks_gives_partial_credit():
    res = _ev(BLANKS, FillInTheBlanksAnswer({"s1": "read", "s2": "path", "s3": "control"}))
    assert res.score == 0.5
    assert res.correct is False
    assert res.unit_results == {"s1": True, "s2": True, "s3": False, "s4": False}

    full = _ev(BLANKS, FillInTheBlanksAnswer({"s1": "read", "s2": "path", "s3": "users", "s4": "control"}))
    assert full.score == 1 and full.correct


def test_blank_comparison_is_exact():
    res = _ev(BLANKS, FillInTheBlanksAnswer({"s1": "Read", "s2": " path", "s3": "users", "s4": "control"}))
    assert res.score == 0.5


def test_evaluation_is_idempotent_for_identical_input():
    answer = answer_from_dict({"type": "ordering", "payload": {"order": ["ideate", "research", "prototype", "test"]}})
    first = evaluate(ORDERING, answer, now=FIXED_TS)
    second = evaluate(ORDERING, answer, now=FIXED_TS)
    assert first.to_dict() == second.to_dict()

    unpinned_a = evaluate(ORDERING, answer).to_dict()
    unpinned_b = evaluate(ORDERING, answer).to_dict()
    for d in (unpinned_a, unpinned_b):
        for ev in d["omiEvidence"]:
            ev.pop("timestamp")
    assert unpinned_a == unpinned_b


def test_every_game_type_is_scorable():
    for t in ("mcq", "ordering", "pair-match", "fill-in-the-blanks", "mcq-set", "showdown-set", "activity-set"):
        assert can_score_locally(t)
    assert not can_score_locally("crossword")
