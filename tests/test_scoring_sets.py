from __future__ import annotations

from game_core.scoring import evaluate
from game_core.specs import answer_from_dict, spec_from_dict
from game_core.types import AnswerPayload, MCQSetAnswer, OrderingSetAnswer

from tests.conftest import (
    FIXED_TS,
    build_activity_set_raw,
    build_mcq_set_raw,
    build_showdown_set_raw,
)


def _evidence_by_omi(result):
    return {ev.omi_id: ev for ev in result.omi_evidence}


def test_mcq_set_partial_submission_scenario(mcq_set_spec):
    answer = AnswerPayload(type="mcq-set", payload=MCQSetAnswer({"q1": "B", "q2": "D"}))
    res = evaluate(mcq_set_spec, answer, now=FIXED_TS)

    assert res.correct is False
    assert res.score == 0.5
    assert res.unit_results == {"q1": True, "q2": False}

    ev = _evidence_by_omi(res)
    assert list(ev) == ["a", "b"], "one record per touched OMI, first-seen order"
    assert ev["a"].demonstrated is False
    assert ev["a"].accuracy == 0.5
    assert ev["b"].demonstrated is False
    assert ev["b"].accuracy == 0.0
    assert all(e.timestamp == FIXED_TS for e in res.omi_evidence)


def test_mcq_set_all_correct():
    spec = spec_from_dict(build_mcq_set_raw())
    res = evaluate(spec, AnswerPayload("mcq-set", MCQSetAnswer({"q1": "B", "q2": "C"})), now=FIXED_TS)
    assert res.correct and res.score == 1
    assert all(e.demonstrated and e.accuracy == 1.0 for e in res.omi_evidence)


def test_missing_sub_answer_counts_as_incorrect():
    spec = spec_from_dict(build_mcq_set_raw())
    res = evaluate(spec, AnswerPayload("mcq-set", MCQSetAnswer({"q1": "B"})), now=FIXED_TS)
    assert res.correct is False
    assert res.score == 0.5
    assert res.unit_results["q2"] is False


def test_set_without_omi_mapping_emits_no_evidence():
    spec = spec_from_dict(build_mcq_set_raw([("q1", "A", []), ("q2", "B", [])]))
    res = evaluate(spec, AnswerPayload("mcq-set", MCQSetAnswer({"q1": "A", "q2": "B"})), now=FIXED_TS)
    assert res.correct
    assert res.omi_evidence == []


def test_empty_set_scores_zero_without_dividing_by_zero():
    spec = spec_from_dict({"id": "empty", "type": "mcq-set", "questions": []})
    res = evaluate(spec, AnswerPayload("mcq-set", MCQSetAnswer({})), now=FIXED_TS)
    assert res.score == 0
    assert res.correct is False
    assert res.omi_evidence == []


def test_ordering_set_uses_binary_accuracy_per_question():
    spec = spec_from_dict({
        "id": "os",
        "type": "ordering-set",
        "questions": [
            {"id": "o1", "type": "ordering", "items": ["a", "b", "c", "d"], "omiMapping": ["seq"]},
            {"id": "o2", "type": "ordering", "items": ["x", "y"], "omiMapping": ["seq"]},
        ],
    })
    answer = AnswerPayload("ordering-set", OrderingSetAnswer({"o1": ["a", "b", "d", "c"], "o2": ["x", "y"]}))
    res = evaluate(spec, answer, now=FIXED_TS)
    assert res.score == 0.5 and not res.correct
    (ev,) = res.omi_evidence
    assert ev.demonstrated is False
    assert ev.accuracy == 0.5


def test_pair_match_set_from_json_payload():
    spec = spec_from_dict({
        "id": "pms",
        "type": "pair-match-set",
        "questions": [
            {"id": "p1", "type": "pair-match", "pairs": [{"left": "a", "right": "1"}, {"left": "b", "right": "2"}]},
            {"id": "p2", "type": "pair-match", "pairs": [{"left": "c", "right": "3"}], "omiMapping": ["match"]},
        ],
    })
    answer = answer_from_dict({
        "type": "pair-match-set",
        "payload": {"answers": {
            "p1": [{"left": "a", "right": "1"}],
            "p2": [{"left": "c", "right": "3"}],
        }},
    })
    res = evaluate(spec, answer, now=FIXED_TS)
    assert res.unit_results == {"p1": False, "p2": True}
    assert res.score == 0.5
    assert [(e.omi_id, e.demonstrated) for e in res.omi_evidence] == [("match", True)]


def test_fill_in_the_blanks_set_carries_fractional_accuracy():
    spec = spec_from_dict({
        "id": "fbs",
        "type": "fill-in-the-blanks-set",
        "questions": [
            {
                "id": "f1",
                "type": "fill-in-the-blanks",
                "sentences": [
                    {"id": "s1", "text": ["", ""], "blank_answer": "one"},
                    {"id": "s2", "text": ["", ""], "blank_answer": "two"},
                ],
                "word_bank": ["one", "two"],
                "omiMapping": ["words"],
            },
            {
                "id": "f2",
                "type": "fill-in-the-blanks",
                "sentences": [{"id": "s3", "text": ["", ""], "blank_answer": "three"}],
                "word_bank": ["three"],
                "omiMapping": ["words"],
            },
        ],
    })
    answer = answer_from_dict({
        "type": "fill-in-the-blanks-set",
        "payload": {"answers": {"f1": {"s1": "one", "s2": "one"}, "f2": {"s3": "three"}}},
    })
    res = evaluate(spec, answer, now=FIXED_TS)
    assert res.score == 0.5
    assert res.correct is False
    (ev,) = res.omi_evidence
    assert ev.accuracy == 0.75
    assert ev.demonstrated is False


def test_classification_set_requires_every_item():
    spec = spec_from_dict({
        "id": "cls",
        "type": "classification-set",
        "questions": [
            {
                "id": "c1",
                "type": "classification",
                "categories": [{"id": "good", "name": "Good"}, {"id": "bad", "name": "Bad"}],
                "items": [
                    {"id": "i1", "text": "Undo button", "correctCategoryId": "good"},
                    {"id": "i2", "text": "Hidden menu", "correctCategoryId": "bad"},
                ],
                "omiMapping": ["classify"],
            },
            {
                "id": "c2",
                "type": "classification",
                "categories": [{"id": "good", "name": "Good"}, {"id": "bad", "name": "Bad"}],
                "items": [{"id": "i3", "text": "Clear error text", "correctCategoryId": "good"}],
                "omiMapping": ["classify"],
            },
        ],
    })
    answer = answer_from_dict({
        "type": "classification-set",
        "payload": {"answers": {"c1": {"i1": "good", "i2": "good"}, "c2": {"i3": "good"}}},
    })
    res = evaluate(spec, answer, now=FIXED_TS)
    assert res.unit_results == {"c1": False, "c2": True}
    assert res.score == 0.5
    assert res.omi_evidence[0].accuracy == 0.5


def test_showdown_requires_exact_reason_set():
    spec = spec_from_dict(build_showdown_set_raw())

    def run(sd1: dict, sd2: dict):
        answer = answer_from_dict({"type": "showdown-set", "payload": {"answers": {"sd1": sd1, "sd2": sd2}}})
        return evaluate(spec, answer, now=FIXED_TS)

    exact = {"optionId": "B", "reasonIds": ["r2", "r1"]}
    superset = {"optionId": "B", "reasonIds": ["r1", "r2", "r3"]}
    subset = {"optionId": "B", "reasonIds": ["r1"]}
    wrong_option = {"optionId": "A", "reasonIds": ["r1", "r2"]}

    assert run(exact, exact).correct is True
    assert run(exact, superset).unit_results == {"sd1": True, "sd2": False}
    assert run(subset, exact).unit_results == {"sd1": False, "sd2": True}
    res = run(wrong_option, exact)
    assert res.unit_results["sd1"] is False
    assert res.score == 0.5

    ev = _evidence_by_omi(run(exact, superset))
    assert ev["omi.compare"].demonstrated is False
    assert ev["omi.compare"].accuracy == 0.5
    assert ev["omi.justify"].accuracy == 0.0


def test_activity_set_dispatches_on_each_activity_type():
    spec = spec_from_dict(build_activity_set_raw())
    answer = answer_from_dict({
        "type": "activity-set",
        "payload": {"answers": {
            "act-mcq": {"optionId": "x"},
            "act-order": {"order": ["one", "three", "two"]},
            "act-blanks": {"answers": {"s1": "rose", "s2": "green"}},
        }},
    })
    res = evaluate(spec, answer, now=FIXED_TS)
    assert res.unit_results == {"act-mcq": True, "act-order": False, "act-blanks": False}
    assert abs(res.score - 1 / 3) < 1e-9
    assert res.correct is False

    ev = _evidence_by_omi(res)
    assert ev["omi.choice"].demonstrated is True
    # ordering contributes 0, the half-right blanks contribute 0.5
    assert ev["omi.sequence"].accuracy == 0.25
    assert ev["omi.sequence"].demonstrated is False


def test_activity_set_unconvertible_sub_answer_is_incorrect():
    spec = spec_from_dict(build_activity_set_raw())
    answer = answer_from_dict({
        "type": "activity-set",
        "payload": {"answers": {"act-mcq": {"wrongKey": "x"}}},
    })
    res = evaluate(spec, answer, now=FIXED_TS)
    assert res.unit_results == {"act-mcq": False, "act-order": False, "act-blanks": False}
    assert res.score == 0
