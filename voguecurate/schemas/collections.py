"""Schemas for collections and the generated exhibition outputs.

Attributes are snake_case in Python; the archive payload and the HTTP wire
format use the camelCase aliases (``themeName``, ``visualConceptUrl``...).
"""
from __future__ import annotations

import time
from enum import Enum
from typing import List
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def new_id() -> str:
    return uuid4().hex


def now_ms() -> int:
    return int(time.time() * 1000)


class CollectionImage(CamelModel):
    id: str = Field(default_factory=new_id, description="Opaque image id")
    url: str = Field(..., description="Display reference (JPEG data URI)")
    base64: str | None = Field(
        default=None, description="Same encoding kept for transmission to the generator"
    )

    def transmittable(self) -> str:
        """Return the encoding to send to the generator."""

        return self.base64 or self.url


class ExhibitionStrategy(CamelModel):
    theme_name: str
    tagline: str
    concept_description: str
    lighting_strategy: str
    music_atmosphere: str
    spatial_arrangement: str
    materials_used: List[str]


class PromotionalCopy(CamelModel):
    instagram_caption: str
    press_snippet: str


class PromotionalAssets(CamelModel):
    tagline: str
    instagram_caption: str
    press_snippet: str
    poster_url: str | None = None


class Collection(CamelModel):
    id: str = Field(default_factory=new_id)
    name: str
    season: str = ""
    description: str = ""
    created_at: int = Field(default_factory=now_ms, description="Epoch milliseconds")
    images: List[CollectionImage] = Field(default_factory=list)
    strategy: ExhibitionStrategy | None = None
    visual_concept_url: str | None = None
    promo_assets: PromotionalAssets | None = None


class StageKind(str, Enum):
    STRATEGY = "strategy"
    VISUAL_CONCEPT = "visual_concept"
    PROMOTION = "promotion"


class CollectionCreateRequest(CamelModel):
    name: str = Field(..., description="Collection name, e.g. Satori")
    season: str = Field(default="", description="Season, e.g. FW25")
    description: str = Field(default="", description="Aesthetic description and vision")


__all__ = [
    "CamelModel",
    "Collection",
    "CollectionCreateRequest",
    "CollectionImage",
    "ExhibitionStrategy",
    "PromotionalAssets",
    "PromotionalCopy",
    "StageKind",
    "new_id",
    "now_ms",
]
