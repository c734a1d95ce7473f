"""Tests for the generative curation calls."""
from __future__ import annotations

import base64
import json
from contextlib import asynccontextmanager
from typing import Any

import pytest
from google.genai import errors as genai_errors

from voguecurate.core.config import Settings
from voguecurate.schemas.collections import ExhibitionStrategy
from voguecurate.services import curation
from voguecurate.services.curation import (
    CurationService,
    parse_structured_text,
    strip_code_fences,
)
from voguecurate.services.errors import (
    CredentialInvalid,
    GenerationServiceError,
    MalformedResponse,
    NoImageReturned,
)

pytestmark = pytest.mark.anyio("asyncio")

STRATEGY_PAYLOAD = {
    "themeName": "Quiet Ruin",
    "tagline": "Beauty in the unfinished",
    "conceptDescription": "Wabi-sabi tailoring",
    "lightingStrategy": "Low raking light",
    "musicAtmosphere": "Rain",
    "spatialArrangement": "Winding corridor",
    "materialsUsed": ["washi", "linen"],
}


class _StubInlineData:
    def __init__(self, data: bytes, mime_type: str | None = "image/png") -> None:
        self.data = data
        self.mime_type = mime_type


class _StubPart:
    def __init__(self, inline_data: _StubInlineData | None = None, text: str | None = None) -> None:
        self.inline_data = inline_data
        self.text = text


class _StubContent:
    def __init__(self, parts: list[_StubPart]) -> None:
        self.parts = parts


class _StubCandidate:
    def __init__(self, parts: list[_StubPart]) -> None:
        self.content = _StubContent(parts)


class _StubResponse:
    def __init__(self, text: str | None = None, parts: list[_StubPart] | None = None) -> None:
        self.text = text
        self.candidates = [_StubCandidate(parts)] if parts is not None else []


class _StubModels:
    def __init__(self, responses: list[Any]) -> None:
        self._responses = list(responses)
        self.calls: list[dict[str, Any]] = []

    async def generate_content(self, **kwargs: Any):  # type: ignore[override]
        self.calls.append(kwargs)
        response = self._responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


class _StubClient:
    def __init__(self, responses: list[Any]) -> None:
        self.models = _StubModels(responses)


def _install(monkeypatch: pytest.MonkeyPatch, responses: list[Any]) -> _StubClient:
    client = _StubClient(responses)

    @asynccontextmanager
    async def fake_client(_: Settings, *, api_key: str | None = None):
        assert api_key == "test-key"
        yield client

    monkeypatch.setattr(curation, "async_genai_client", fake_client)
    return client


def _strategy() -> ExhibitionStrategy:
    return ExhibitionStrategy.model_validate(STRATEGY_PAYLOAD)


def test_fenced_text_parses_like_plain_json() -> None:
    plain = json.dumps(STRATEGY_PAYLOAD)
    fenced = f"```json\n{plain}\n```"

    assert strip_code_fences(fenced) == plain
    assert parse_structured_text(fenced) == parse_structured_text(plain)
    assert parse_structured_text(f"```\n{plain}\n```") == STRATEGY_PAYLOAD


@pytest.mark.parametrize("text", [None, "", "   ", "not json", "[1, 2]"])
def test_unparseable_text_is_malformed(text: str | None) -> None:
    with pytest.raises(MalformedResponse):
        parse_structured_text(text)


async def test_generate_strategy_sends_images_and_schema(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    client = _install(
        monkeypatch,
        [_StubResponse(text=f"```json\n{json.dumps(STRATEGY_PAYLOAD)}\n```")],
    )
    service = CurationService(Settings(gemini_api_key="test-key"))
    encoded = base64.b64encode(b"jpeg-bytes").decode("ascii")

    strategy = await service.generate_strategy(
        name="Satori",
        description="Layered wool",
        images=[f"data:image/jpeg;base64,{encoded}", encoded],
    )

    assert strategy.theme_name == "Quiet Ruin"
    assert strategy.materials_used == ["washi", "linen"]
    call = client.models.calls[0]
    parts = call["contents"][0].parts
    assert len(parts) == 3
    assert parts[0].inline_data.data == b"jpeg-bytes"
    assert parts[0].inline_data.mime_type == "image/jpeg"
    assert "Satori" in parts[-1].text
    assert call["config"].response_mime_type == "application/json"
    assert set(call["config"].response_schema.required) == set(STRATEGY_PAYLOAD)


@pytest.mark.parametrize("missing", sorted(STRATEGY_PAYLOAD))
async def test_generate_strategy_rejects_incomplete_payload(
    monkeypatch: pytest.MonkeyPatch, missing: str
) -> None:
    incomplete = {key: value for key, value in STRATEGY_PAYLOAD.items() if key != missing}
    _install(monkeypatch, [_StubResponse(text=json.dumps(incomplete))])
    service = CurationService(Settings(gemini_api_key="test-key"))

    with pytest.raises(MalformedResponse):
        await service.generate_strategy(name="Satori", description="", images=[])


async def test_visual_concept_returns_first_inline_image(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    client = _install(
        monkeypatch,
        [
            _StubResponse(
                parts=[
                    _StubPart(text="Here is your render"),
                    _StubPart(inline_data=_StubInlineData(b"png-bytes")),
                    _StubPart(inline_data=_StubInlineData(b"second")),
                ]
            )
        ],
    )
    service = CurationService(Settings(gemini_api_key="test-key"))

    url = await service.generate_visual_concept(_strategy())

    assert url == "data:image/png;base64," + base64.b64encode(b"png-bytes").decode("ascii")
    call = client.models.calls[0]
    assert call["config"].image_config.aspect_ratio == "16:9"
    prompt = call["contents"][0].parts[0].text
    assert "Quiet Ruin" in prompt
    assert "washi, linen" in prompt


async def test_visual_concept_without_image_fails(monkeypatch: pytest.MonkeyPatch) -> None:
    _install(monkeypatch, [_StubResponse(parts=[_StubPart(text="Sorry")])])
    service = CurationService(Settings(gemini_api_key="test-key"))

    with pytest.raises(NoImageReturned):
        await service.generate_visual_concept(_strategy())


async def test_promotional_suite_combines_copy_poster_and_tagline(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    client = _install(
        monkeypatch,
        [
            _StubResponse(
                text=json.dumps({"instagramCaption": "#satori", "pressSnippet": "Two lines."})
            ),
            _StubResponse(parts=[_StubPart(inline_data=_StubInlineData(b"poster"))]),
        ],
    )
    service = CurationService(Settings(gemini_api_key="test-key"))

    assets = await service.generate_promotional_suite(name="Satori", strategy=_strategy())

    assert assets.tagline == "Beauty in the unfinished"
    assert assets.instagram_caption == "#satori"
    assert assets.press_snippet == "Two lines."
    assert assets.poster_url.startswith("data:image/png;base64,")
    assert client.models.calls[1]["config"].image_config.aspect_ratio == "3:4"


async def test_promotional_suite_fails_when_poster_missing(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    _install(
        monkeypatch,
        [
            _StubResponse(text=json.dumps({"instagramCaption": "c", "pressSnippet": "p"})),
            _StubResponse(parts=[]),
        ],
    )
    service = CurationService(Settings(gemini_api_key="test-key"))

    with pytest.raises(NoImageReturned):
        await service.generate_promotional_suite(name="Satori", strategy=_strategy())


async def test_rejected_key_maps_to_credential_invalid(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    rejection = genai_errors.ClientError(
        403,
        {"error": {"code": 403, "message": "Permission denied", "status": "PERMISSION_DENIED"}},
    )
    _install(monkeypatch, [rejection])
    service = CurationService(Settings(gemini_api_key="test-key"))

    with pytest.raises(CredentialInvalid):
        await service.generate_visual_concept(_strategy())


async def test_other_api_errors_map_to_service_error(monkeypatch: pytest.MonkeyPatch) -> None:
    overloaded = genai_errors.ServerError(
        503, {"error": {"code": 503, "message": "Model overloaded", "status": "UNAVAILABLE"}}
    )
    _install(monkeypatch, [overloaded])
    service = CurationService(Settings(gemini_api_key="test-key"))

    with pytest.raises(GenerationServiceError):
        await service.generate_visual_concept(_strategy())


async def test_missing_key_fails_before_calling_generator(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    client = _install(monkeypatch, [])
    service = CurationService(Settings(gemini_api_key=None))

    with pytest.raises(CredentialInvalid):
        await service.generate_strategy(name="Satori", description="", images=[])
    assert client.models.calls == []

    service.set_api_key("test-key")
    assert service.has_api_key
