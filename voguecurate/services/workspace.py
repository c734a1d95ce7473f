"""Wire the store, gate, notices and orchestrator for one process."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from voguecurate.core.config import Settings
from voguecurate.db.session import get_session_maker
from voguecurate.services.archive import (
    ArchiveSlot,
    JsonFileSlot,
    PersistenceGate,
    SQLArchiveSlot,
)
from voguecurate.services.curation import CurationService
from voguecurate.services.notices import NoticeBoard
from voguecurate.services.orchestrator import CurationOrchestrator
from voguecurate.services.stage_runs import StageTimeline
from voguecurate.services.store import CollectionStore

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class Workspace:
    settings: Settings
    store: CollectionStore
    notices: NoticeBoard
    service: CurationService
    orchestrator: CurationOrchestrator


def build_archive_slot(settings: Settings) -> ArchiveSlot:
    """Return the SQL slot when a database is configured, else the JSON file slot."""

    if settings.database_url:
        return SQLArchiveSlot(
            get_session_maker(settings),
            key=settings.archive_slot_key,
            max_bytes=settings.archive_max_bytes,
        )
    path = Path(settings.archive_store_dir) / f"{settings.archive_slot_key}.json"
    return JsonFileSlot(path, max_bytes=settings.archive_max_bytes)


async def build_workspace(
    settings: Settings, *, slot: ArchiveSlot | None = None
) -> Workspace:
    """Load the archive once and construct the process-wide workspace."""

    notices = NoticeBoard()
    gate = PersistenceGate(slot or build_archive_slot(settings))
    store = await CollectionStore.open(gate, notices)
    service = CurationService(settings)
    orchestrator = CurationOrchestrator(
        store,
        service,
        notices,
        timeline=StageTimeline(per_collection=settings.stage_history_size),
    )
    logger.info(
        "Workspace ready",
        extra={
            "collection_count": len(store.collections),
            "archive_backend": "sql" if settings.database_url else "file",
        },
    )
    return Workspace(
        settings=settings,
        store=store,
        notices=notices,
        service=service,
        orchestrator=orchestrator,
    )


__all__ = ["Workspace", "build_archive_slot", "build_workspace"]
