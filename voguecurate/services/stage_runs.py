"""Per-collection timeline of stage attempts and the state changes they caused."""
from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Deque, Dict, List

from voguecurate.schemas.collections import StageKind

logger = logging.getLogger(__name__)


class StageState(str, Enum):
    LOCKED = "locked"
    AVAILABLE = "available"
    PENDING = "pending"
    COMPLETE = "complete"


class OutcomeStatus(str, Enum):
    APPLIED = "applied"
    SKIPPED = "skipped"
    FAILED = "failed"
    DROPPED = "dropped"


@dataclass(slots=True)
class StageTransition:
    """One started stage attempt: the state it left and the state it produced.

    ``to_state`` is ``COMPLETE`` after an applied result, and after a failed
    regeneration that kept the previous output; a failed first attempt returns
    the stage to ``AVAILABLE``.
    """

    stage: StageKind
    collection_id: str
    request_id: str
    from_state: StageState
    to_state: StageState
    status: OutcomeStatus
    input_hash: str
    duration_ms: float
    error: str | None = None
    finished_at: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )


class StageTimeline:
    """Remember how each collection's stages moved between states.

    Skipped triggers change nothing and are not kept. The newest transition of
    a stage still carries the error of its last failure after the dismissible
    notice is gone. Each collection keeps at most ``per_collection`` entries,
    and a deleted collection's entries are forgotten.
    """

    def __init__(self, *, per_collection: int = 30) -> None:
        self._limit = per_collection
        self._entries: Dict[str, Deque[StageTransition]] = {}

    def record(self, transition: StageTransition) -> None:
        entries = self._entries.get(transition.collection_id)
        if entries is None:
            entries = deque(maxlen=self._limit)
            self._entries[transition.collection_id] = entries
        entries.append(transition)
        logger.info(
            "Stage transition",
            extra={
                "stage": transition.stage.value,
                "collection_id": transition.collection_id,
                "request_id": transition.request_id,
                "from_state": transition.from_state.value,
                "to_state": transition.to_state.value,
                "status": transition.status.value,
            },
        )

    def history(
        self, collection_id: str, *, stage: StageKind | None = None
    ) -> List[StageTransition]:
        """Return the collection's transitions, newest first."""

        entries = self._entries.get(collection_id, ())
        return [t for t in reversed(entries) if stage is None or t.stage is stage]

    def latest(self, collection_id: str) -> Dict[StageKind, StageTransition]:
        newest: Dict[StageKind, StageTransition] = {}
        for transition in self.history(collection_id):
            newest.setdefault(transition.stage, transition)
        return newest

    def last_failure(self, collection_id: str) -> StageTransition | None:
        for transition in self.history(collection_id):
            if transition.status is OutcomeStatus.FAILED:
                return transition
        return None

    def forget(self, collection_id: str) -> None:
        self._entries.pop(collection_id, None)


__all__ = [
    "OutcomeStatus",
    "StageState",
    "StageTimeline",
    "StageTransition",
]
