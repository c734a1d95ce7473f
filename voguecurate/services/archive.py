"""Durable archive slot and the persistence gate guarding it."""
from __future__ import annotations

import asyncio
import errno
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import List, Protocol, Sequence

from pydantic import TypeAdapter, ValidationError
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from voguecurate.db import models
from voguecurate.schemas.collections import Collection
from voguecurate.services.errors import ArchiveWriteError, StorageFull

logger = logging.getLogger(__name__)

STORAGE_FULL_MESSAGE = "Storage limit reached. Please delete old collections."

_COLLECTIONS_ADAPTER = TypeAdapter(List[Collection])
_QUOTA_ERRNOS = {errno.ENOSPC, errno.EDQUOT}


class StorageQuotaExceeded(Exception):
    """Raised by a slot when a write would exceed its capacity."""


class ArchiveSlot(Protocol):
    async def read(self) -> str | None: ...

    async def write(self, payload: str) -> None: ...


def _check_quota(payload: str, max_bytes: int) -> int:
    size = len(payload.encode("utf-8"))
    if max_bytes > 0 and size > max_bytes:
        raise StorageQuotaExceeded(
            f"Archive payload of {size} bytes exceeds the {max_bytes} byte quota"
        )
    return size


class JsonFileSlot:
    """Archive slot backed by a single JSON file, replaced atomically on write."""

    def __init__(self, path: str | Path, *, max_bytes: int) -> None:
        self._path = Path(path)
        self._max_bytes = max_bytes

    @property
    def path(self) -> Path:
        return self._path

    async def read(self) -> str | None:
        return await asyncio.to_thread(self._read)

    async def write(self, payload: str) -> None:
        _check_quota(payload, self._max_bytes)
        try:
            await asyncio.to_thread(self._write, payload)
        except OSError as exc:
            if exc.errno in _QUOTA_ERRNOS:
                raise StorageQuotaExceeded(str(exc)) from exc
            raise ArchiveWriteError(f"Cannot write archive {self._path}: {exc}") from exc

    def _read(self) -> str | None:
        if not self._path.exists():
            return None
        return self._path.read_text(encoding="utf-8")

    def _write(self, payload: str) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            dir=self._path.parent, prefix=f".{self._path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(payload)
            os.replace(tmp_name, self._path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise


class SQLArchiveSlot:
    """Archive slot stored as one row of the ``archive_slots`` table."""

    def __init__(
        self, session_maker: async_sessionmaker, *, key: str, max_bytes: int
    ) -> None:
        self._session_maker = session_maker
        self._key = key
        self._max_bytes = max_bytes

    async def read(self) -> str | None:
        async with self._session_maker() as session:
            row = (
                await session.execute(
                    select(models.ArchiveSlot).where(models.ArchiveSlot.key == self._key)
                )
            ).scalar_one_or_none()
            return row.payload if row else None

    async def write(self, payload: str) -> None:
        size = _check_quota(payload, self._max_bytes)
        try:
            async with self._session_maker() as session:
                row = await session.get(models.ArchiveSlot, self._key)
                if row is None:
                    session.add(
                        models.ArchiveSlot(key=self._key, payload=payload, size_bytes=size)
                    )
                else:
                    row.payload = payload
                    row.size_bytes = size
                await session.commit()
        except SQLAlchemyError as exc:
            raise ArchiveWriteError(f"Cannot write archive slot {self._key}: {exc}") from exc


class PersistenceGate:
    """Serialize the collection list into a slot and report capacity failures."""

    def __init__(self, slot: ArchiveSlot) -> None:
        self._slot = slot
        self._lock = asyncio.Lock()

    async def load(self) -> List[Collection]:
        """Return the archived collections; missing or corrupt data yields ``[]``."""

        try:
            payload = await self._slot.read()
        except (OSError, SQLAlchemyError) as exc:
            logger.warning("Archive read failed; starting empty", exc_info=exc)
            return []
        if not payload:
            return []
        try:
            collections = _COLLECTIONS_ADAPTER.validate_json(payload)
        except (ValidationError, json.JSONDecodeError, ValueError) as exc:
            logger.warning(
                "Archive payload is corrupt; starting empty",
                extra={"payload_bytes": len(payload)},
                exc_info=exc,
            )
            return []
        logger.info("Archive loaded", extra={"collection_count": len(collections)})
        return collections

    async def save(self, collections: Sequence[Collection]) -> None:
        """Write the full list; raise ``StorageFull`` when the slot is at capacity."""

        payload = _COLLECTIONS_ADAPTER.dump_json(list(collections), by_alias=True).decode(
            "utf-8"
        )
        async with self._lock:
            try:
                await self._slot.write(payload)
            except StorageQuotaExceeded as exc:
                logger.warning(
                    "Archive write rejected for capacity",
                    extra={"payload_bytes": len(payload), "collection_count": len(collections)},
                )
                raise StorageFull(STORAGE_FULL_MESSAGE) from exc


__all__ = [
    "ArchiveSlot",
    "JsonFileSlot",
    "PersistenceGate",
    "SQLArchiveSlot",
    "STORAGE_FULL_MESSAGE",
    "StorageQuotaExceeded",
]
