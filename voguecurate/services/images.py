"""Normalize uploaded images into bounded, self-contained JPEG data URIs."""
from __future__ import annotations

import asyncio
import base64
import io
import logging
from dataclasses import dataclass
from typing import List, Sequence

from PIL import Image, ImageOps, UnidentifiedImageError

from voguecurate.core.config import Settings
from voguecurate.schemas.collections import CollectionImage, new_id
from voguecurate.services.errors import DecodeError

logger = logging.getLogger(__name__)

MAX_IMAGE_DIMENSION = 1024
JPEG_QUALITY = 0.8


@dataclass(slots=True)
class UploadedImage:
    """In-memory representation of an uploaded file."""

    filename: str
    content_type: str | None
    data: bytes


@dataclass(slots=True)
class NormalizedImage:
    data_uri: str
    width: int
    height: int


def scaled_size(width: int, height: int, max_edge: int) -> tuple[int, int]:
    """Return (width, height) scaled so the longer edge is at most ``max_edge``.

    Images that already fit are returned unchanged; nothing is upscaled.
    """

    longer = max(width, height)
    if longer <= max_edge:
        return width, height
    scale = max_edge / longer
    if width >= height:
        return max_edge, max(1, round(height * scale))
    return max(1, round(width * scale)), max_edge


def normalize_image(
    data: bytes,
    *,
    max_edge: int = MAX_IMAGE_DIMENSION,
    quality: float = JPEG_QUALITY,
) -> NormalizedImage:
    """Decode ``data``, bound its dimensions and re-encode it as a JPEG data URI."""

    if not data:
        raise DecodeError("Image payload is empty")
    try:
        with Image.open(io.BytesIO(data)) as source:
            source.load()
            image = ImageOps.exif_transpose(source)
    except (UnidentifiedImageError, OSError, ValueError, Image.DecompressionBombError) as exc:
        raise DecodeError(f"Cannot decode image: {exc}") from exc

    target = scaled_size(image.width, image.height, max_edge)
    if target != image.size:
        image = image.resize(target, Image.LANCZOS)
    if image.mode != "RGB":
        image = image.convert("RGB")

    buffer = io.BytesIO()
    image.save(buffer, format="JPEG", quality=int(round(quality * 100)))
    encoded = base64.b64encode(buffer.getvalue()).decode("ascii")
    return NormalizedImage(
        data_uri=f"data:image/jpeg;base64,{encoded}",
        width=image.width,
        height=image.height,
    )


async def normalize_batch(
    uploads: Sequence[UploadedImage], *, settings: Settings
) -> List[CollectionImage]:
    """Normalize uploads in order, skipping (and logging) any that fail to decode."""

    images: List[CollectionImage] = []
    for index, upload in enumerate(uploads):
        try:
            normalized = await asyncio.to_thread(
                normalize_image,
                upload.data,
                max_edge=settings.image_max_edge,
                quality=settings.image_quality,
            )
        except DecodeError as exc:
            logger.warning(
                "Skipping undecodable upload",
                extra={"upload_filename": upload.filename, "index": index},
                exc_info=exc,
            )
            continue
        images.append(
            CollectionImage(id=new_id(), url=normalized.data_uri, base64=normalized.data_uri)
        )

    logger.info(
        "Normalized upload batch",
        extra={"received": len(uploads), "accepted": len(images)},
    )
    return images


__all__ = [
    "JPEG_QUALITY",
    "MAX_IMAGE_DIMENSION",
    "NormalizedImage",
    "UploadedImage",
    "normalize_batch",
    "normalize_image",
    "scaled_size",
]
