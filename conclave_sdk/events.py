"""
Progress notification for a task lifecycle.

Callers that want to observe intermediate progress pass an ``on_event``
callback; it receives ``(TaskEvent, payload)``:

    SUBMITTED  -> TaskDescriptor
    RECORD     -> TaskRecord (terminal)
    RESULT     -> TaskResult (verified, still encrypted)
    DECRYPTED  -> TaskResult (with decrypted_output)
    ERROR      -> the exception

Events come from a single `TaskLifecycle` per task whose stages only move
forward, so SUBMITTED always precedes RESULT/ERROR and nothing is emitted
after ERROR or DECRYPTED.
"""

from __future__ import annotations

import logging
from enum import Enum, IntEnum
from typing import Any, Callable, List, Optional, Tuple

log = logging.getLogger(__name__)


class TaskEvent(str, Enum):
    SUBMITTED = "submitted"
    RECORD = "record"
    RESULT = "result"
    DECRYPTED = "decrypted"
    ERROR = "error"


class Stage(IntEnum):
    CREATED = 0
    SUBMITTED = 1
    TERMINAL = 2
    FETCHED = 3
    DECRYPTED = 4
    FAILED = 5


EventCallback = Callable[[TaskEvent, Any], None]

_EVENT_FOR_STAGE = {
    Stage.SUBMITTED: TaskEvent.SUBMITTED,
    Stage.TERMINAL: TaskEvent.RECORD,
    Stage.FETCHED: TaskEvent.RESULT,
    Stage.DECRYPTED: TaskEvent.DECRYPTED,
    Stage.FAILED: TaskEvent.ERROR,
}


class TaskLifecycle:
    """Forward-only stage tracker that emits one event per transition."""

    def __init__(self, on_event: Optional[EventCallback] = None, *, stage: Stage = Stage.CREATED) -> None:
        self._on_event = on_event
        self._stage = stage
        self.history: List[Tuple[TaskEvent, Any]] = []

    @property
    def stage(self) -> Stage:
        return self._stage

    @property
    def finished(self) -> bool:
        return self._stage in (Stage.DECRYPTED, Stage.FAILED)

    def advance(self, stage: Stage, payload: Any) -> None:
        if stage is Stage.FAILED:
            raise ValueError("use fail() to record an error")
        if self.finished or stage != self._stage + 1:
            raise RuntimeError(f"illegal lifecycle transition {self._stage.name} -> {stage.name}")
        self._emit(stage, payload)

    def fail(self, error: BaseException) -> None:
        """Record a terminal error; a second failure is ignored."""
        if self.finished:
            return
        self._emit(Stage.FAILED, error)

    def _emit(self, stage: Stage, payload: Any) -> None:
        self._stage = stage
        event = _EVENT_FOR_STAGE[stage]
        self.history.append((event, payload))
        log.debug("lifecycle -> %s", event.value)
        if self._on_event is not None:
            self._on_event(event, payload)


__all__ = ["TaskEvent", "Stage", "EventCallback", "TaskLifecycle"]
