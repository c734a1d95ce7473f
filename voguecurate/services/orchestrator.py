"""Sequence the three curation stages against collections in the store."""
from __future__ import annotations

import hashlib
import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, Set, Tuple
from uuid import uuid4

from voguecurate.schemas.collections import (
    Collection,
    ExhibitionStrategy,
    PromotionalAssets,
    StageKind,
)
from voguecurate.services.curation import CurationService
from voguecurate.services.errors import CredentialInvalid, CurationError
from voguecurate.services.notices import GENERIC_GENERATION_ERROR, NoticeBoard
from voguecurate.services.stage_runs import (
    OutcomeStatus,
    StageState,
    StageTimeline,
    StageTransition,
)
from voguecurate.services.store import CollectionStore

logger = logging.getLogger(__name__)

StagePayload = ExhibitionStrategy | PromotionalAssets | str

_DEPENDENT_STAGES = (StageKind.VISUAL_CONCEPT, StageKind.PROMOTION)


@dataclass(slots=True)
class StageOutcome:
    stage: StageKind
    collection_id: str | None
    status: OutcomeStatus
    reason: str | None = None
    error: str | None = None


def _stage_output(collection: Collection, stage: StageKind) -> Any:
    if stage is StageKind.STRATEGY:
        return collection.strategy
    if stage is StageKind.VISUAL_CONCEPT:
        return collection.visual_concept_url
    return collection.promo_assets


class CurationOrchestrator:
    """Run strategy, visual concept and promotional stages per collection.

    Stages 2 and 3 depend on the strategy and stay locked until it exists.
    A busy flag per (collection, stage) blocks re-entrant triggers without
    cancelling the outstanding call. While stage 2 or 3 is running, the
    strategy of that collection cannot be regenerated, and while the strategy
    is running neither dependent stage may start, so a dependent output always
    sits next to the strategy it was derived from.

    The target collection is captured by id when a stage starts, so a result
    that arrives after the user switched collections still lands on the
    collection it was started for; results for collections deleted in the
    meantime are dropped.
    """

    def __init__(
        self,
        store: CollectionStore,
        service: CurationService,
        notices: NoticeBoard,
        *,
        timeline: StageTimeline | None = None,
    ) -> None:
        self._store = store
        self._service = service
        self._notices = notices
        self._timeline = timeline if timeline is not None else StageTimeline()
        self._busy: Set[Tuple[str, StageKind]] = set()

    @property
    def timeline(self) -> StageTimeline:
        return self._timeline

    def is_busy(self, collection_id: str, stage: StageKind) -> bool:
        return (collection_id, stage) in self._busy

    def pipeline_state(self, collection_id: str) -> Dict[StageKind, StageState]:
        collection = self._store.get(collection_id)
        return {stage: self._stage_state(collection_id, collection, stage) for stage in StageKind}

    async def trigger(
        self,
        stage: StageKind,
        collection_id: str | None = None,
        *,
        regenerate: bool = False,
    ) -> StageOutcome:
        """Start ``stage`` for a collection (default: the active one) and await it."""

        target_id = collection_id or self._store.active_id
        collection = self._store.get(target_id) if target_id else None
        if collection is None:
            return self._skipped(stage, target_id, "no_collection")
        skip_reason = self._skip_reason(stage, collection, regenerate=regenerate)
        if skip_reason:
            return self._skipped(stage, collection.id, skip_reason)

        from_state = self._stage_state(collection.id, collection, stage)
        key = (collection.id, stage)
        self._busy.add(key)
        self._notices.dismiss()
        request_id = uuid4().hex
        started = time.perf_counter()
        input_hash = _hash_inputs(_stage_inputs(stage, collection))
        logger.info(
            "Starting stage",
            extra={"stage": stage.value, "collection_id": collection.id, "request_id": request_id},
        )

        outcome: StageOutcome
        try:
            payload = await self._run_stage(stage, collection)
        except CredentialInvalid as exc:
            self._notices.require_credentials(str(exc))
            outcome = StageOutcome(stage, collection.id, OutcomeStatus.FAILED, error=str(exc))
        except CurationError as exc:
            logger.warning(
                "Stage failed",
                extra={"stage": stage.value, "collection_id": collection.id, "request_id": request_id},
                exc_info=exc,
            )
            self._notices.post(exc.kind, str(exc))
            outcome = StageOutcome(stage, collection.id, OutcomeStatus.FAILED, error=str(exc))
        except Exception as exc:
            logger.exception(
                "Stage failed unexpectedly",
                extra={"stage": stage.value, "collection_id": collection.id, "request_id": request_id},
            )
            self._notices.post("GenerationError", GENERIC_GENERATION_ERROR)
            outcome = StageOutcome(stage, collection.id, OutcomeStatus.FAILED, error=str(exc))
        else:
            updated = await self._store.apply_stage_result(
                stage, payload, collection_id=collection.id
            )
            status = OutcomeStatus.APPLIED if updated is not None else OutcomeStatus.DROPPED
            outcome = StageOutcome(stage, collection.id, status)
        finally:
            self._busy.discard(key)

        duration_ms = (time.perf_counter() - started) * 1000
        logger.info(
            "Stage finished",
            extra={
                "stage": stage.value,
                "collection_id": collection.id,
                "request_id": request_id,
                "status": outcome.status.value,
                "duration_ms": duration_ms,
            },
        )
        current = self._store.get(collection.id)
        if current is not None:
            self._timeline.record(
                StageTransition(
                    stage=stage,
                    collection_id=collection.id,
                    request_id=request_id,
                    from_state=from_state,
                    to_state=self._stage_state(collection.id, current, stage),
                    status=outcome.status,
                    input_hash=input_hash,
                    duration_ms=duration_ms,
                    error=outcome.error,
                )
            )
        return outcome

    def _stage_state(
        self, collection_id: str, collection: Collection | None, stage: StageKind
    ) -> StageState:
        if self.is_busy(collection_id, stage):
            return StageState.PENDING
        if collection is None or (
            stage is not StageKind.STRATEGY and collection.strategy is None
        ):
            return StageState.LOCKED
        if _stage_output(collection, stage) is not None:
            return StageState.COMPLETE
        return StageState.AVAILABLE

    def _skipped(self, stage: StageKind, collection_id: str | None, reason: str) -> StageOutcome:
        logger.debug(
            "Stage trigger ignored",
            extra={"stage": stage.value, "collection_id": collection_id, "reason": reason},
        )
        return StageOutcome(
            stage=stage,
            collection_id=collection_id,
            status=OutcomeStatus.SKIPPED,
            reason=reason,
        )

    def _skip_reason(
        self, stage: StageKind, collection: Collection, *, regenerate: bool
    ) -> str | None:
        if self.is_busy(collection.id, stage):
            return "busy"
        if stage is StageKind.STRATEGY:
            if any(self.is_busy(collection.id, dependent) for dependent in _DEPENDENT_STAGES):
                return "dependents_busy"
        else:
            if collection.strategy is None:
                return "strategy_missing"
            if self.is_busy(collection.id, StageKind.STRATEGY):
                return "strategy_busy"
        if not regenerate and _stage_output(collection, stage) is not None:
            return "already_complete"
        return None

    async def _run_stage(self, stage: StageKind, collection: Collection) -> StagePayload:
        if stage is StageKind.STRATEGY:
            return await self._service.generate_strategy(
                name=collection.name,
                description=collection.description,
                images=[image.transmittable() for image in collection.images],
            )
        strategy = collection.strategy
        if strategy is None:
            raise RuntimeError(f"Stage {stage.value} requires an exhibition strategy")
        if stage is StageKind.VISUAL_CONCEPT:
            return await self._service.generate_visual_concept(strategy)
        return await self._service.generate_promotional_suite(
            name=collection.name, strategy=strategy
        )


def _stage_inputs(stage: StageKind, collection: Collection) -> Dict[str, Any]:
    if stage is StageKind.STRATEGY:
        return {
            "name": collection.name,
            "description": collection.description,
            "images": [image.id for image in collection.images],
        }
    strategy = collection.strategy.model_dump() if collection.strategy else None
    return {"name": collection.name, "strategy": strategy}


def _hash_inputs(inputs: Dict[str, Any]) -> str:
    serialized = json.dumps(inputs, sort_keys=True, default=str)
    return hashlib.sha256(serialized.encode("utf-8")).hexdigest()


__all__ = [
    "CurationOrchestrator",
    "OutcomeStatus",
    "StageOutcome",
    "StageState",
]
