from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional
import logging

from .evidence import Clock, resolve_timestamp
from .scoring import evaluate
from .store import ProgressStore
from .types import AnswerPayload, EvaluationResult, GameSpec

log = logging.getLogger(__name__)

EVENT_KINDS: tuple[str, ...] = (
    "ready",
    "answer.submitted",
    "evaluate.requested",
    "time.expired",
    "omi.evidence",
    "game.completed",
)


@dataclass
class RendererEvent:
    kind: str
    game_id: str
    data: Dict[str, Any] = field(default_factory=dict)


EventListener = Callable[[RendererEvent], None]


class GameSession:
    """One mounted game: wires answers, the countdown, scoring and progress.

    The countdown is advanced by calling :meth:`tick` once a second.  A
    successful :meth:`submit` stops the timer before anything else is
    recorded, so no later tick can report expiry.
    """

    def __init__(self, spec: GameSpec, store: ProgressStore,
                 on_event: Optional[EventListener] = None, now: Clock = None):
        self.spec = spec
        self.store = store
        self.on_event = on_event
        self.now = now
        self._ready = False
        self._closed = False

    @property
    def game_id(self) -> str:
        return self.spec.id

    @property
    def time_limit_sec(self) -> Optional[int]:
        return getattr(self.spec, "time_limit_sec", None)

    def _emit(self, kind: str, **data: Any) -> None:
        if kind not in EVENT_KINDS:
            raise ValueError(f"unknown renderer event: {kind!r}")
        if self.on_event is None:
            return
        try:
            self.on_event(RendererEvent(kind=kind, game_id=self.game_id, data=data))
        except Exception:
            log.exception("event listener failed for %s on %s", kind, self.game_id)

    def start(self) -> None:
        if self._ready:
            return
        self._ready = True
        self._emit("ready")
        if self.time_limit_sec:
            self.store.init_timer(self.game_id, int(self.time_limit_sec))

    @property
    def time_expired(self) -> bool:
        timer = self.store.get_timer(self.game_id)
        return bool(timer and timer.remaining_sec == 0)

    @property
    def evaluation(self) -> Optional[EvaluationResult]:
        return self.store.state.evaluations.get(self.game_id)

    def tick(self) -> Optional[int]:
        remaining = self.store.tick_timer(self.game_id)
        if remaining is None:
            return None
        if remaining == 0:
            self.store.stop_timer(self.game_id)
            self._emit("time.expired")
        return remaining

    def change_answer(self, payload: Any) -> None:
        if self._closed:
            return
        self.store.set_answer(self.game_id, AnswerPayload(type=self.spec.type, payload=payload))
        if self.evaluation is not None:
            self.store.clear_evaluation(self.game_id)

    def submit(self, payload: Any) -> Optional[EvaluationResult]:
        if self._closed:
            log.debug("submit ignored on closed game %s", self.game_id)
            return None
        if self.time_expired:
            log.info("submit refused for %s: time expired", self.game_id)
            return None
        envelope = AnswerPayload(type=self.spec.type, payload=payload)
        self.store.set_answer(self.game_id, envelope)
        self._emit("answer.submitted", payload=envelope)
        self._emit("evaluate.requested")

        result = evaluate(self.spec, envelope, now=self.now)
        if result is None:
            return None

        self.store.stop_timer(self.game_id)
        self.store.set_evaluation(self.game_id, result)
        if result.omi_evidence:
            self._emit("omi.evidence", evidence=list(result.omi_evidence))
        self.store.record_submission(self.game_id, result.unit_results, result.omi_evidence,
                                     timestamp=resolve_timestamp(self.now))
        self._emit("game.completed", score=result.score)
        return result

    def reset(self) -> None:
        self.store.clear_answer(self.game_id)
        self.store.clear_evaluation(self.game_id)

    def close(self) -> None:
        """Tear down the timer and drop unsaved answer/evaluation state."""

        self.store.stop_timer(self.game_id)
        self.store.reset_game(self.game_id)
        self._closed = True


__all__ = ["GameSession", "RendererEvent", "EVENT_KINDS"]
