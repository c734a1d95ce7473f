"""Helpers for creating google-genai async clients."""
from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from google import genai
from google.genai.client import AsyncClient

from voguecurate.core.config import Settings


@asynccontextmanager
async def async_genai_client(
    settings: Settings, *, api_key: str | None = None
) -> AsyncIterator[AsyncClient]:
    """Yield the async surface of a `genai.Client` and ensure cleanup."""

    client = genai.Client(api_key=api_key or settings.gemini_api_key)
    try:
        yield client.aio
    finally:
        await client.aio.aclose()


__all__ = ["async_genai_client"]
