"""Calls to the generative capability for each curation stage."""
from __future__ import annotations

import asyncio
import base64
import binascii
import json
import logging
import re
from typing import Any, Awaitable, Callable, Dict, List, Sequence, TypeVar
from uuid import uuid4

from google.genai import errors as genai_errors
from google.genai import types
from pydantic import ValidationError

from voguecurate.core.config import Settings
from voguecurate.schemas.collections import (
    ExhibitionStrategy,
    PromotionalAssets,
    PromotionalCopy,
)
from voguecurate.services.errors import (
    CredentialInvalid,
    CurationError,
    GenerationServiceError,
    MalformedResponse,
    NoImageReturned,
)
from voguecurate.services.genai_client import async_genai_client

logger = logging.getLogger(__name__)

T = TypeVar("T")

MALFORMED_MESSAGE = (
    "The digital curator returned an unexpected format. Please refresh and try again."
)
EMPTY_RESPONSE_MESSAGE = "The digital curator is currently unavailable."
NO_IMAGE_MESSAGE = "Failed to generate visual render."
MISSING_KEY_MESSAGE = "No Gemini API key is configured. Provide a key to continue."
REJECTED_KEY_MESSAGE = "The Gemini API key was rejected. Please select a valid key."

_FENCE_PATTERN = re.compile(r"```json\n?|```")
_CREDENTIAL_STATUSES = {"UNAUTHENTICATED", "PERMISSION_DENIED"}
_CREDENTIAL_MARKERS = ("api key not valid", "api_key_invalid", "requested entity was not found")


def _string_schema() -> types.Schema:
    return types.Schema(type=types.Type.STRING)


STRATEGY_SCHEMA = types.Schema(
    type=types.Type.OBJECT,
    properties={
        "themeName": _string_schema(),
        "tagline": _string_schema(),
        "conceptDescription": _string_schema(),
        "lightingStrategy": _string_schema(),
        "musicAtmosphere": _string_schema(),
        "spatialArrangement": _string_schema(),
        "materialsUsed": types.Schema(type=types.Type.ARRAY, items=_string_schema()),
    },
    required=[
        "themeName",
        "tagline",
        "conceptDescription",
        "lightingStrategy",
        "musicAtmosphere",
        "spatialArrangement",
        "materialsUsed",
    ],
)

PROMO_COPY_SCHEMA = types.Schema(
    type=types.Type.OBJECT,
    properties={
        "instagramCaption": _string_schema(),
        "pressSnippet": _string_schema(),
    },
    required=["instagramCaption", "pressSnippet"],
)


def strip_code_fences(text: str) -> str:
    """Remove markdown code fences wrapping a JSON payload."""

    return _FENCE_PATTERN.sub("", text).strip()


def parse_structured_text(text: str | None) -> Dict[str, Any]:
    """Parse structured-mode response text, fenced or not."""

    if not text or not text.strip():
        raise MalformedResponse(EMPTY_RESPONSE_MESSAGE)
    try:
        payload = json.loads(strip_code_fences(text))
    except json.JSONDecodeError as exc:
        raise MalformedResponse(MALFORMED_MESSAGE) from exc
    if not isinstance(payload, dict):
        raise MalformedResponse(MALFORMED_MESSAGE)
    return payload


def extract_inline_image(response: Any) -> str:
    """Return the first inline image of the first candidate as a data URI."""

    candidates = getattr(response, "candidates", None) or []
    content = getattr(candidates[0], "content", None) if candidates else None
    for part in getattr(content, "parts", None) or []:
        inline = getattr(part, "inline_data", None)
        if not inline or not inline.data:
            continue
        data = inline.data
        encoded = base64.b64encode(data).decode("ascii") if isinstance(data, bytes) else data
        mime_type = inline.mime_type or "image/png"
        return f"data:{mime_type};base64,{encoded}"
    raise NoImageReturned(NO_IMAGE_MESSAGE)


def image_part(reference: str) -> types.Part:
    """Build an inline image part from a data URI or bare base64 string."""

    header, sep, data = reference.partition(",")
    mime_type = "image/jpeg"
    if sep:
        declared = header.removeprefix("data:").split(";")[0]
        mime_type = declared or mime_type
    else:
        data = reference
    return types.Part.from_bytes(data=base64.b64decode(data, validate=True), mime_type=mime_type)


def classify_api_error(exc: genai_errors.APIError) -> CurationError:
    """Map a google-genai API error onto the curation error taxonomy."""

    status = (exc.status or "").upper()
    message = (exc.message or "").lower()
    if (
        exc.code in (401, 403)
        or status in _CREDENTIAL_STATUSES
        or any(marker in message for marker in _CREDENTIAL_MARKERS)
    ):
        return CredentialInvalid(REJECTED_KEY_MESSAGE)
    return GenerationServiceError(exc.message or f"Gemini API error {exc.code}")


class CurationService:
    """Coordinate strategy, render and promotional generation calls."""

    def __init__(self, settings: Settings, *, api_key: str | None = None) -> None:
        self._settings = settings
        self._api_key = api_key or settings.gemini_api_key

    @property
    def has_api_key(self) -> bool:
        return bool(self._api_key)

    def set_api_key(self, api_key: str) -> None:
        self._api_key = api_key

    async def generate_strategy(
        self, *, name: str, description: str, images: Sequence[str]
    ) -> ExhibitionStrategy:
        request_id = uuid4().hex
        self._ensure_credentials()

        parts: List[types.Part] = []
        for index, reference in enumerate(images):
            try:
                parts.append(image_part(reference))
            except (binascii.Error, ValueError):
                logger.warning(
                    "Skipping image with invalid encoding",
                    extra={"request_id": request_id, "index": index},
                )
        prompt = self._settings.strategy_prompt_template.format(
            name=name, description=description
        )
        parts.append(types.Part.from_text(text=prompt))

        logger.info(
            "Requesting exhibition strategy",
            extra={
                "request_id": request_id,
                "model": self._settings.gemini_text_model,
                "image_count": len(parts) - 1,
            },
        )
        async with async_genai_client(self._settings, api_key=self._api_key) as client:
            response = await self._call(
                lambda: client.models.generate_content(
                    model=self._settings.gemini_text_model,
                    contents=[types.Content(role="user", parts=parts)],
                    config=types.GenerateContentConfig(
                        response_mime_type="application/json",
                        response_schema=STRATEGY_SCHEMA,
                    ),
                ),
                operation="strategy",
                request_id=request_id,
            )

        payload = parse_structured_text(getattr(response, "text", None))
        try:
            return ExhibitionStrategy.model_validate(payload)
        except ValidationError as exc:
            logger.warning(
                "Strategy payload failed validation",
                extra={"request_id": request_id, "keys": sorted(payload)},
            )
            raise MalformedResponse(MALFORMED_MESSAGE) from exc

    async def generate_visual_concept(self, strategy: ExhibitionStrategy) -> str:
        request_id = uuid4().hex
        self._ensure_credentials()
        prompt = self._settings.visual_prompt_template.format(
            theme_name=strategy.theme_name,
            spatial_arrangement=strategy.spatial_arrangement,
            lighting_strategy=strategy.lighting_strategy,
            materials=", ".join(strategy.materials_used),
        )
        async with async_genai_client(self._settings, api_key=self._api_key) as client:
            return await self._generate_image(
                client,
                prompt=prompt,
                aspect_ratio=self._settings.visual_aspect_ratio,
                operation="visual_concept",
                request_id=request_id,
            )

    async def generate_promotional_suite(
        self, *, name: str, strategy: ExhibitionStrategy
    ) -> PromotionalAssets:
        request_id = uuid4().hex
        self._ensure_credentials()
        copy_prompt = self._settings.promo_copy_prompt_template.format(
            name=name, theme_name=strategy.theme_name, tagline=strategy.tagline
        )
        poster_prompt = self._settings.poster_prompt_template.format(
            theme_name=strategy.theme_name
        )

        async with async_genai_client(self._settings, api_key=self._api_key) as client:
            copy_response = await self._call(
                lambda: client.models.generate_content(
                    model=self._settings.gemini_text_model,
                    contents=copy_prompt,
                    config=types.GenerateContentConfig(
                        response_mime_type="application/json",
                        response_schema=PROMO_COPY_SCHEMA,
                    ),
                ),
                operation="promo_copy",
                request_id=request_id,
            )
            payload = parse_structured_text(getattr(copy_response, "text", None))
            try:
                copy = PromotionalCopy.model_validate(payload)
            except ValidationError as exc:
                raise MalformedResponse(MALFORMED_MESSAGE) from exc

            poster_url = await self._generate_image(
                client,
                prompt=poster_prompt,
                aspect_ratio=self._settings.poster_aspect_ratio,
                operation="poster",
                request_id=request_id,
            )

        return PromotionalAssets(
            tagline=strategy.tagline,
            instagram_caption=copy.instagram_caption,
            press_snippet=copy.press_snippet,
            poster_url=poster_url,
        )

    def _ensure_credentials(self) -> None:
        if not self._api_key:
            raise CredentialInvalid(MISSING_KEY_MESSAGE)

    async def _generate_image(
        self,
        client: Any,
        *,
        prompt: str,
        aspect_ratio: str,
        operation: str,
        request_id: str,
    ) -> str:
        logger.info(
            "Requesting image",
            extra={
                "request_id": request_id,
                "operation": operation,
                "model": self._settings.gemini_image_model,
                "aspect_ratio": aspect_ratio,
            },
        )
        response = await self._call(
            lambda: client.models.generate_content(
                model=self._settings.gemini_image_model,
                contents=[types.Content(role="user", parts=[types.Part.from_text(text=prompt)])],
                config=types.GenerateContentConfig(
                    response_modalities=["TEXT", "IMAGE"],
                    image_config=types.ImageConfig(aspect_ratio=aspect_ratio),
                ),
            ),
            operation=operation,
            request_id=request_id,
        )
        return extract_inline_image(response)

    async def _call(
        self,
        task: Callable[[], Awaitable[T]],
        *,
        operation: str,
        request_id: str,
    ) -> T:
        try:
            return await asyncio.wait_for(
                task(), timeout=self._settings.genai_request_timeout
            )
        except genai_errors.APIError as exc:
            logger.warning(
                "Gemini %s call failed",
                operation,
                extra={"request_id": request_id, "operation": operation, "code": exc.code},
            )
            raise classify_api_error(exc) from exc
        except asyncio.TimeoutError as exc:
            raise GenerationServiceError(
                f"Gemini {operation} call timed out (request_id={request_id})"
            ) from exc


__all__ = [
    "CurationService",
    "PROMO_COPY_SCHEMA",
    "STRATEGY_SCHEMA",
    "classify_api_error",
    "extract_inline_image",
    "image_part",
    "parse_structured_text",
    "strip_code_fences",
]
