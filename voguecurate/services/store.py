"""In-memory collection store with an active pointer and write-through persistence."""
from __future__ import annotations

import logging
from typing import Callable, List, Sequence

from voguecurate.schemas.collections import (
    Collection,
    CollectionImage,
    ExhibitionStrategy,
    PromotionalAssets,
    StageKind,
    new_id,
    now_ms,
)
from voguecurate.services.archive import PersistenceGate
from voguecurate.services.errors import ArchiveWriteError, CollectionNotFound, StorageFull
from voguecurate.services.notices import NoticeBoard

logger = logging.getLogger(__name__)

Mutation = Callable[[Collection], Collection]

_STAGE_FIELDS = {
    StageKind.STRATEGY: "strategy",
    StageKind.VISUAL_CONCEPT: "visual_concept_url",
    StageKind.PROMOTION: "promo_assets",
}


class CollectionStore:
    """Authoritative list of collections plus the id of the active one.

    The list is the single source of truth: ``active`` is looked up by id, so
    the active collection and its list entry can never diverge. Every mutation
    updates memory without yielding and then awaits one save through the
    persistence gate. Save failures are posted to the notice board and never
    roll back or corrupt the in-memory state.
    """

    def __init__(
        self,
        gate: PersistenceGate,
        notices: NoticeBoard,
        collections: Sequence[Collection] = (),
    ) -> None:
        self._gate = gate
        self._notices = notices
        self._collections: List[Collection] = list(collections)
        self._active_id: str | None = None
        self._pending: List[CollectionImage] = []

    @classmethod
    async def open(cls, gate: PersistenceGate, notices: NoticeBoard) -> "CollectionStore":
        """Build a store from whatever the archive currently holds."""

        return cls(gate, notices, await gate.load())

    @property
    def collections(self) -> List[Collection]:
        return list(self._collections)

    @property
    def pending_images(self) -> List[CollectionImage]:
        return list(self._pending)

    @property
    def active_id(self) -> str | None:
        return self._active_id

    @property
    def active(self) -> Collection | None:
        if self._active_id is None:
            return None
        return self.get(self._active_id)

    def get(self, collection_id: str) -> Collection | None:
        for collection in self._collections:
            if collection.id == collection_id:
                return collection
        return None

    def select(self, collection_id: str) -> Collection:
        collection = self.get(collection_id)
        if collection is None:
            raise CollectionNotFound(collection_id)
        self._active_id = collection_id
        return collection

    def close(self) -> None:
        self._active_id = None

    async def create_collection(
        self, name: str, season: str = "", description: str = ""
    ) -> Collection | None:
        if not name or not name.strip():
            return None

        collection = Collection(
            id=new_id(),
            name=name.strip(),
            season=season,
            description=description,
            created_at=now_ms(),
            images=list(self._pending),
        )
        self._collections.insert(0, collection)
        self._active_id = collection.id
        self._pending = []
        logger.info(
            "Collection created",
            extra={"collection_id": collection.id, "image_count": len(collection.images)},
        )
        await self._persist()
        return collection

    async def delete_collection(self, collection_id: str) -> bool:
        remaining = [c for c in self._collections if c.id != collection_id]
        if len(remaining) == len(self._collections):
            return False
        self._collections = remaining
        if self._active_id == collection_id:
            self._active_id = None
        logger.info("Collection deleted", extra={"collection_id": collection_id})
        await self._persist()
        return True

    async def add_images(self, images: Sequence[CollectionImage]) -> None:
        if not images:
            return
        if self._active_id is None:
            self._pending.extend(images)
            return
        self._apply_mutation(
            self._active_id,
            lambda c: c.model_copy(update={"images": [*c.images, *images]}),
        )
        await self._persist()

    async def remove_image(self, image_id: str) -> bool:
        active = self.active
        if active is None or not any(image.id == image_id for image in active.images):
            return False
        self._apply_mutation(
            active.id,
            lambda c: c.model_copy(
                update={"images": [image for image in c.images if image.id != image_id]}
            ),
        )
        await self._persist()
        return True

    async def apply_stage_result(
        self,
        kind: StageKind,
        payload: ExhibitionStrategy | PromotionalAssets | str,
        *,
        collection_id: str | None = None,
    ) -> Collection | None:
        """Attach a stage output to a collection, replacing any prior one of that kind.

        The target defaults to the active collection. Results for a collection
        that no longer exists are dropped.
        """

        target_id = collection_id or self._active_id
        if target_id is None or self.get(target_id) is None:
            logger.warning(
                "Dropping stage result for missing collection",
                extra={"stage": kind.value, "collection_id": target_id},
            )
            return None
        updated = self._apply_mutation(
            target_id, lambda c: c.model_copy(update={_STAGE_FIELDS[kind]: payload})
        )
        await self._persist()
        return updated

    def _apply_mutation(self, collection_id: str, mutate: Mutation) -> Collection:
        for index, collection in enumerate(self._collections):
            if collection.id == collection_id:
                updated = mutate(collection)
                self._collections[index] = updated
                return updated
        raise CollectionNotFound(collection_id)

    async def _persist(self) -> None:
        try:
            await self._gate.save(self._collections)
        except (StorageFull, ArchiveWriteError) as exc:
            self._notices.post(exc.kind, str(exc))


__all__ = ["CollectionStore"]
