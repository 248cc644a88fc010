from __future__ import annotations

import pytest

from game_core.specs import spec_from_dict
from game_core.store import MemoryBackend, ProgressStore

FIXED_TS = "2025-01-01T00:00:00+00:00"


def build_mcq_set_raw(questions: list[tuple[str, str, list[str]]] | None = None) -> dict:
    """Create a deterministic mcq-set spec as authored JSON.

    ``questions`` is a list of ``(question_id, correct_option_id, omi_mapping)``.
    """

    questions = questions or [("q1", "B", ["a"]), ("q2", "C", ["a", "b"])]
    return {
        "id": "mcq-set-1",
        "type": "mcq-set",
        "title": "Usability basics",
        "questions": [
            {
                "id": qid,
                "type": "mcq",
                "prompt": f"Question {qid}",
                "options": [{"id": oid, "text": f"Option {oid}"} for oid in ("A", "B", "C", "D")],
                "correctOptionId": correct,
                "omiMapping": omis,
            }
            for qid, correct, omis in questions
        ],
    }


def build_activity_set_raw() -> dict:
    return {
        "id": "mixed-1",
        "type": "activity-set",
        "activities": [
            {
                "id": "act-mcq",
                "type": "mcq",
                "options": [{"id": "x", "text": "X"}, {"id": "y", "text": "Y"}],
                "correctOptionId": "x",
                "omiMapping": ["omi.choice"],
            },
            {
                "id": "act-order",
                "type": "ordering",
                "items": ["one", "two", "three"],
                "omiMapping": ["omi.sequence"],
            },
            {
                "id": "act-blanks",
                "type": "fill-in-the-blanks",
                "sentences": [
                    {"id": "s1", "text": ["A ", " is red."], "blank_answer": "rose"},
                    {"id": "s2", "text": ["The sky is ", "."], "blank_answer": "blue"},
                ],
                "word_bank": ["rose", "blue", "green"],
                "omiMapping": ["omi.sequence"],
            },
        ],
    }


def build_showdown_set_raw() -> dict:
    def showdown(sid: str, omis: list[str]) -> dict:
        return {
            "id": sid,
            "prompt": "Which interface is more usable?",
            "context": {
                "interfaceA": {"summary": "A", "details": ["dense menus"]},
                "interfaceB": {"summary": "B", "details": ["clear labels"]},
            },
            "options": [
                {"id": "A", "label": "Interface A", "description": "menus"},
                {"id": "B", "label": "Interface B", "description": "labels"},
            ],
            "correctOptionId": "B",
            "reasonOptions": [
                {"id": "r1", "label": "Clear labels", "correct": True},
                {"id": "r2", "label": "Consistent layout", "correct": True},
                {"id": "r3", "label": "More colours", "correct": False},
            ],
            "omiMapping": omis,
        }

    return {
        "id": "showdown-1",
        "type": "showdown-set",
        "showdowns": [showdown("sd1", ["omi.compare"]), showdown("sd2", ["omi.compare", "omi.justify"])],
    }


@pytest.fixture
def mcq_set_spec():
    return spec_from_dict(build_mcq_set_raw())


@pytest.fixture
def memory_store() -> ProgressStore:
    return ProgressStore(MemoryBackend())
