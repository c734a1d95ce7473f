"""Tests for the upload image normalizer."""
from __future__ import annotations

import base64
import io

import pytest
from PIL import Image

from voguecurate.core.config import Settings
from voguecurate.services.errors import DecodeError
from voguecurate.services.images import (
    UploadedImage,
    normalize_batch,
    normalize_image,
    scaled_size,
)


def _decode(data_uri: str) -> Image.Image:
    header, _, payload = data_uri.partition(",")
    assert header == "data:image/jpeg;base64"
    image = Image.open(io.BytesIO(base64.b64decode(payload)))
    image.load()
    return image


def test_normalize_downscales_landscape_to_max_edge(image_bytes) -> None:
    result = normalize_image(image_bytes(3000, 1500))

    decoded = _decode(result.data_uri)
    assert decoded.format == "JPEG"
    assert decoded.size == (1024, 512)
    assert (result.width, result.height) == (1024, 512)


def test_normalize_downscales_portrait_to_max_edge(image_bytes) -> None:
    result = normalize_image(image_bytes(800, 2048, fmt="JPEG"))

    assert _decode(result.data_uri).size == (400, 1024)


def test_normalize_never_upscales(image_bytes) -> None:
    result = normalize_image(image_bytes(300, 200))

    assert _decode(result.data_uri).size == (300, 200)


def test_normalize_flattens_transparency() -> None:
    buffer = io.BytesIO()
    Image.new("RGBA", (64, 32), (10, 20, 30, 128)).save(buffer, format="PNG")

    decoded = _decode(normalize_image(buffer.getvalue()).data_uri)
    assert decoded.mode == "RGB"
    assert decoded.size == (64, 32)


@pytest.mark.parametrize(
    ("source", "expected"),
    [
        ((1024, 1024), (1024, 1024)),
        ((1025, 10), (1024, 10)),
        ((4096, 3), (1024, 1)),
        ((640, 5000), (131, 1024)),
    ],
)
def test_scaled_size_bounds_longer_edge(source, expected) -> None:
    width, height = scaled_size(*source, 1024)

    assert (width, height) == expected
    assert max(width, height) <= 1024
    assert width <= source[0] and height <= source[1]


def test_normalize_rejects_non_image_payload() -> None:
    with pytest.raises(DecodeError):
        normalize_image(b"definitely not an image")

    with pytest.raises(DecodeError):
        normalize_image(b"")


@pytest.mark.anyio
async def test_batch_skips_undecodable_file_and_keeps_order(image_bytes) -> None:
    uploads = [
        UploadedImage(filename="first.png", content_type="image/png", data=image_bytes(100, 50)),
        UploadedImage(filename="broken.png", content_type="image/png", data=b"\x89PNG-truncated"),
        UploadedImage(filename="third.png", content_type="image/png", data=image_bytes(60, 120)),
    ]

    images = await normalize_batch(uploads, settings=Settings())

    assert len(images) == 2
    assert [_decode(image.url).size for image in images] == [(100, 50), (60, 120)]
    assert all(image.base64 == image.url for image in images)
    assert images[0].id != images[1].id


@pytest.mark.anyio
async def test_batch_respects_configured_max_edge(image_bytes) -> None:
    uploads = [
        UploadedImage(filename="big.png", content_type="image/png", data=image_bytes(900, 300))
    ]

    images = await normalize_batch(uploads, settings=Settings(image_max_edge=300))

    assert _decode(images[0].url).size == (300, 100)
