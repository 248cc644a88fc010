from __future__ import annotations
from fastapi import FastAPI, HTTPException, Body, Query, Response
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel
import logging, os, typing as t
from contextlib import contextmanager

# ---- Engine imports ----
from game_core import config
from game_core.evidence import utcnow_iso
from game_core.progress_export import to_json as export_to_json, to_csv as export_to_csv
from game_core.reporting import omi_badges
from game_core.scoring import evaluate
from game_core.specs import answer_from_dict, spec_from_dict
from game_core.store import ProgressStore
from game_core.types import OMIEvidence
from .storage import backend_for, learner_lock, list_learners, load_spec

log = logging.getLogger(__name__)

app = FastAPI(title="Learning Games Scoring API")


@app.get("/")
def root():
    return {"status": "ok", "service": "learning-games-api"}


ALLOWED_ORIGINS = [
    o.strip() for o in os.getenv("ALLOWED_ORIGINS", "http://localhost:5173,http://localhost:3000").split(",") if o.strip()
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
    allow_credentials=False,
)


# ---- Schemas ----
class EvaluateReq(BaseModel):
    spec: dict[str, t.Any]
    answer: dict[str, t.Any]


class SubmitReq(BaseModel):
    learner_id: str = "default"
    spec: dict[str, t.Any] | None = None
    spec_id: str | None = None       # looked up under DATA_DIR/specs when spec is omitted
    answer: dict[str, t.Any]


class EvidenceIn(BaseModel):
    omi_id: str
    demonstrated: bool
    accuracy: float
    timestamp: str | None = None


class EvidenceReq(BaseModel):
    evidence: list[EvidenceIn]


class SubmittedReq(BaseModel):
    game_id: str
    question_id: str
    correct: bool


class AskedReq(BaseModel):
    spec_path: str
    question_id: str


# ---- Helpers ----
def _store(learner_id: str) -> ProgressStore:
    return ProgressStore(backend_for(learner_id))


@contextmanager
def _locked_store(learner_id: str) -> t.Iterator[ProgressStore]:
    # load, update and save as one step per learner
    with learner_lock(learner_id):
        yield _store(learner_id)


def _parse(raw_spec: dict[str, t.Any], raw_answer: dict[str, t.Any]):
    try:
        return spec_from_dict(raw_spec), answer_from_dict(raw_answer)
    except ValueError as exc:
        raise HTTPException(422, f"invalid spec or answer: {exc}")


def _progress_payload(store: ProgressStore, omi_ids: t.Iterable[str]) -> dict[str, t.Any]:
    out: dict[str, t.Any] = {}
    for omi_id in omi_ids:
        p = store.get_omi_progress(omi_id)
        if p is not None:
            out[omi_id] = p.to_dict()
    return out


# ---- Health ----
@app.get("/health")
def health():
    return {
        "persist_enabled": config.PERSIST_ENABLED,
        "history_limit": config.EVIDENCE_HISTORY_LIMIT,
        "debug_trace": config.DEBUG_TRACE,
    }


# ---- Scoring ----
@app.post("/evaluate")
def evaluate_endpoint(req: EvaluateReq):
    spec, answer = _parse(req.spec, req.answer)
    result = evaluate(spec, answer)
    return {"result": result.to_dict() if result else None}


@app.post("/games/submit")
def submit(req: SubmitReq = Body(...)):
    raw_spec = req.spec
    if raw_spec is None:
        if not req.spec_id:
            raise HTTPException(422, "either spec or spec_id is required")
        raw_spec = load_spec(req.spec_id)
        if raw_spec is None:
            raise HTTPException(404, "spec not found")
    spec, answer = _parse(raw_spec, req.answer)
    result = evaluate(spec, answer)
    if result is None:
        return {"result": None, "progress": {}}

    with _locked_store(req.learner_id) as store:
        store.record_submission(spec.id, result.unit_results, result.omi_evidence)
        progress = _progress_payload(store, (ev.omi_id for ev in result.omi_evidence))
    return {"result": result.to_dict(), "progress": progress}


# ---- Progress ----
@app.get("/learners")
def learners():
    return {"learners": list_learners()}


@app.get("/progress/{learner_id}")
def get_progress(learner_id: str):
    return _store(learner_id).persisted_document()


@app.delete("/progress/{learner_id}")
def reset_progress(learner_id: str):
    with _locked_store(learner_id) as store:
        store.reset_all_progress()
    return {"ok": True}


@app.post("/progress/{learner_id}/evidence")
def record_evidence(learner_id: str, req: EvidenceReq):
    batch = [
        OMIEvidence(
            omi_id=ev.omi_id,
            demonstrated=ev.demonstrated,
            accuracy=max(0.0, min(1.0, float(ev.accuracy))),
            timestamp=ev.timestamp or utcnow_iso(),
        )
        for ev in req.evidence
    ]
    with _locked_store(learner_id) as store:
        updated = store.record_omi_evidence(batch)
    return {"progress": {k: v.to_dict() for k, v in updated.items()}}


@app.get("/progress/{learner_id}/omi/{omi_id}")
def get_omi(learner_id: str, omi_id: str):
    store = _store(learner_id)
    p = store.get_omi_progress(omi_id)
    return {
        "omiId": omi_id,
        "masteryLevel": store.get_omi_mastery(omi_id),
        "progress": p.to_dict() if p else None,
    }


@app.get("/progress/{learner_id}/badges")
def get_badges(learner_id: str, omi: list[str] = Query(default=[])):
    store = _store(learner_id)
    return {"badges": omi_badges(store.state.omi_progress, omi)}


@app.post("/progress/{learner_id}/submitted")
def mark_submitted(learner_id: str, req: SubmittedReq):
    with _locked_store(learner_id) as store:
        store.mark_question_submitted(req.game_id, req.question_id, req.correct)
    return {"ok": True}


@app.get("/progress/{learner_id}/games/{game_id}/submitted")
def submitted_for_game(learner_id: str, game_id: str):
    rows = _store(learner_id).get_submitted_questions_for_game(game_id)
    return {"gameId": game_id, "submitted": [r.to_dict() for r in rows]}


@app.post("/progress/{learner_id}/asked")
def mark_asked(learner_id: str, req: AskedReq):
    with _locked_store(learner_id) as store:
        store.mark_question_asked(req.spec_path, req.question_id)
    return {"ok": True}


@app.get("/progress/{learner_id}/export.json")
def export_json(learner_id: str):
    store = _store(learner_id)
    return {"learnerId": learner_id, **export_to_json(store.state.omi_progress)}


@app.get("/progress/{learner_id}/export.csv")
def export_csv(learner_id: str):
    store = _store(learner_id)
    body = export_to_csv(store.state.omi_progress)
    filename = f"{learner_id}_omi_progress.csv"
    return Response(
        content=body,
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename=\"{filename}\""},
    )
