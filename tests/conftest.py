import io

import pytest
from PIL import Image


@pytest.fixture
def anyio_backend() -> str:
    """Force anyio-based tests to run with asyncio backend only."""

    return "asyncio"


def make_image_bytes(
    width: int, height: int, *, fmt: str = "PNG", color: tuple[int, int, int] = (180, 40, 60)
) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), color).save(buffer, format=fmt)
    return buffer.getvalue()


@pytest.fixture
def image_bytes():
    """Factory producing encoded test images of a given size."""

    return make_image_bytes
