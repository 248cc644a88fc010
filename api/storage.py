"""JSON-file persistence for learner progress.

The production deployment could swap this module for a database-backed
backend; anything with ``load()``/``save(doc)`` satisfies
:class:`game_core.store.ProgressBackend`.  One document per learner is kept
under ``DATA_DIR/progress``.
"""

from __future__ import annotations

import json
import os
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional
from urllib.parse import quote, unquote


DATA_ROOT = Path(os.getenv("DATA_DIR", "data")).resolve()
PROGRESS_DIR = DATA_ROOT / "progress"
SPECS_DIR = DATA_ROOT / "specs"

_LOCK = threading.Lock()
_LEARNER_LOCKS: Dict[str, threading.Lock] = {}


def _ensure_dirs() -> None:
    PROGRESS_DIR.mkdir(parents=True, exist_ok=True)
    DATA_ROOT.mkdir(parents=True, exist_ok=True)


def _read_json(path: Path, default: Any) -> Any:
    if not path.exists():
        return default
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return default


def _write_json(path: Path, payload: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    tmp.write_text(json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8")
    tmp.replace(path)


def _file_stem(raw_id: str) -> str:
    # percent-encoding keeps distinct ids on distinct files
    return quote(raw_id or "default", safe="")


def progress_path(learner_id: str) -> Path:
    return PROGRESS_DIR / f"{_file_stem(learner_id)}.json"


def learner_lock(learner_id: str) -> threading.Lock:
    """Lock held across load, update and save of one learner's document."""

    key = _file_stem(learner_id)
    with _LOCK:
        return _LEARNER_LOCKS.setdefault(key, threading.Lock())


class JsonFileBackend:
    """Last-write-wins JSON document on disk."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def load(self) -> Optional[Dict[str, Any]]:
        doc = _read_json(self.path, None)
        return doc if isinstance(doc, dict) else None

    def save(self, document: Dict[str, Any]) -> None:
        with _LOCK:
            _write_json(self.path, document)


def backend_for(learner_id: str) -> JsonFileBackend:
    _ensure_dirs()
    return JsonFileBackend(progress_path(learner_id))


def list_learners() -> List[str]:
    if not PROGRESS_DIR.exists():
        return []
    return sorted(unquote(p.stem) for p in PROGRESS_DIR.glob("*.json"))


def load_spec(spec_id: str) -> Optional[Dict[str, Any]]:
    """Raw authored spec stored as ``DATA_DIR/specs/<id>.json``, if any."""

    path = SPECS_DIR / f"{_file_stem(spec_id)}.json"
    doc = _read_json(path, None)
    return doc if isinstance(doc, dict) else None
