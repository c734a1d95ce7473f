"""Image upload endpoint feeding the pending buffer or the active collection."""
from __future__ import annotations

import logging
import mimetypes
from typing import List

from fastapi import APIRouter, Depends, File, UploadFile, status

from voguecurate.deps import get_workspace
from voguecurate.schemas.workspace import UploadResponse
from voguecurate.services.images import UploadedImage, normalize_batch
from voguecurate.services.workspace import Workspace

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/uploads", tags=["uploads"])

UPLOAD_READ_CHUNK_SIZE = 64 * 1024  # 64 KiB per chunk


@router.post(
    "",
    response_model=UploadResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Upload reference images",
)
async def upload_images(
    images: List[UploadFile] = File(..., description="Reference images, kept in order"),
    workspace: Workspace = Depends(get_workspace),
) -> UploadResponse:
    """Normalize files and stage them.

    With no active collection the images go to the pending buffer used by the
    next collection; otherwise they are appended to the active collection.
    Files that are not images, too large, or undecodable are skipped.
    """

    settings = workspace.settings
    uploads = await _to_uploaded_images(
        images,
        allowed_prefixes=settings.upload_allowed_mime_prefixes,
        limit=settings.upload_max_bytes,
    )
    normalized = await normalize_batch(uploads, settings=settings)

    store = workspace.store
    active_id = store.active_id
    await store.add_images(normalized)
    return UploadResponse(
        target="collection" if active_id else "pending",
        collection_id=active_id,
        accepted=len(normalized),
        skipped=len(images) - len(normalized),
        images=normalized,
    )


async def _to_uploaded_images(
    files: List[UploadFile], *, allowed_prefixes: tuple[str, ...], limit: int
) -> List[UploadedImage]:
    uploads: List[UploadedImage] = []
    for file in files:
        filename = file.filename or "uploaded-image"
        content_type = _resolve_content_type(file)
        if content_type and not any(
            content_type.startswith(prefix) for prefix in allowed_prefixes
        ):
            logger.warning(
                "Skipping upload with unsupported type",
                extra={"upload_filename": filename, "content_type": content_type},
            )
            await file.close()
            continue

        data = await _read_upload_bytes(file, limit=limit)
        if data is None:
            logger.warning(
                "Skipping oversized upload",
                extra={"upload_filename": filename, "limit_bytes": limit},
            )
            continue
        uploads.append(
            UploadedImage(filename=filename, content_type=content_type, data=data)
        )
    return uploads


def _resolve_content_type(file: UploadFile) -> str | None:
    if file.content_type:
        return file.content_type
    guessed_type, _ = mimetypes.guess_type(file.filename or "")
    return guessed_type


async def _read_upload_bytes(file: UploadFile, *, limit: int) -> bytes | None:
    total = 0
    chunks: list[bytes] = []
    try:
        while True:
            chunk = await file.read(UPLOAD_READ_CHUNK_SIZE)
            if not chunk:
                break
            total += len(chunk)
            if total > limit:
                return None
            chunks.append(chunk)
    finally:
        await file.close()

    return b"".join(chunks)
