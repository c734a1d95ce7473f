"""Application-wide settings and generative client configuration helpers."""
from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_STRATEGY_PROMPT_TEMPLATE = (
    'Acting as a world-class fashion exhibition curator, analyze this fashion collection: "{name}". '
    "Description: {description}.\n"
    "Create a detailed exhibition strategy including a theme name, a short evocative tagline, "
    "concept, lighting, music/soundscape, spatial arrangement, and materials.\n"
    "You MUST respond in raw JSON format matching the requested schema."
)

DEFAULT_VISUAL_PROMPT_TEMPLATE = (
    'A professional architectural 3D render of a high-fashion exhibition titled "{theme_name}".\n'
    "The space shows: {spatial_arrangement}.\n"
    "Lighting: {lighting_strategy}.\n"
    "Materials: {materials}.\n"
    "Atmosphere: Museum quality, sophisticated, avant-garde. Realistic textures, dramatic shadows."
)

DEFAULT_PROMO_COPY_PROMPT_TEMPLATE = (
    "Write promotional copy for a fashion exhibition.\n"
    "Collection: {name}.\n"
    "Theme: {theme_name}.\n"
    "Tagline: {tagline}.\n"
    "Provide: 1. A punchy Instagram caption with hashtags. "
    "2. A sophisticated 2-sentence press snippet.\n"
    "Respond in raw JSON format."
)

DEFAULT_POSTER_PROMPT_TEMPLATE = (
    'A high-end cinematic fashion advertisement poster for an exhibition titled "{theme_name}".\n'
    "Style: Vogue editorial, luxury, minimalist but dramatic.\n"
    "Atmosphere: Avant-garde installation in the background, sharp fashion silhouette in the foreground.\n"
    "Lighting: High contrast, dramatic shadows."
)


class Settings(BaseSettings):
    """Global application configuration."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    gemini_api_key: Optional[str] = Field(default=None, env="GEMINI_API_KEY")
    gemini_text_model: str = Field(
        default="gemini-3-flash-preview", env="GEMINI_TEXT_MODEL"
    )
    gemini_image_model: str = Field(
        default="gemini-2.5-flash-image", env="GEMINI_IMAGE_MODEL"
    )
    genai_request_timeout: float = Field(default=120.0, env="GENAI_REQUEST_TIMEOUT")
    strategy_prompt_template: str = Field(
        default=DEFAULT_STRATEGY_PROMPT_TEMPLATE, env="STRATEGY_PROMPT_TEMPLATE"
    )
    visual_prompt_template: str = Field(
        default=DEFAULT_VISUAL_PROMPT_TEMPLATE, env="VISUAL_PROMPT_TEMPLATE"
    )
    promo_copy_prompt_template: str = Field(
        default=DEFAULT_PROMO_COPY_PROMPT_TEMPLATE, env="PROMO_COPY_PROMPT_TEMPLATE"
    )
    poster_prompt_template: str = Field(
        default=DEFAULT_POSTER_PROMPT_TEMPLATE, env="POSTER_PROMPT_TEMPLATE"
    )
    visual_aspect_ratio: str = Field(default="16:9", env="VISUAL_ASPECT_RATIO")
    poster_aspect_ratio: str = Field(default="3:4", env="POSTER_ASPECT_RATIO")
    # Image normalization
    image_max_edge: int = Field(default=1024, env="IMAGE_MAX_EDGE")
    image_quality: float = Field(default=0.8, env="IMAGE_QUALITY")
    upload_allowed_mime_prefixes: tuple[str, ...] = Field(
        default=("image/",), env="UPLOAD_ALLOWED_MIME_PREFIXES"
    )
    upload_max_bytes: int = Field(
        default=20 * 1024 * 1024, env="UPLOAD_MAX_BYTES"
    )
    # Collection archive (JSON file slot, or SQL when DATABASE_URL is set)
    archive_slot_key: str = Field(
        default="voguecurate_collections", env="ARCHIVE_SLOT_KEY"
    )
    archive_store_dir: str = Field(default="storage", env="ARCHIVE_STORE_DIR")
    archive_max_bytes: int = Field(
        default=5 * 1024 * 1024, env="ARCHIVE_MAX_BYTES"
    )
    database_url: Optional[str] = Field(default=None, env="DATABASE_URL")
    database_echo: bool = Field(default=False, env="DATABASE_ECHO")
    stage_history_size: int = Field(default=30, env="STAGE_HISTORY_SIZE")


@lru_cache
def get_settings() -> Settings:
    """Return cached settings instance."""

    return Settings()


__all__ = ["Settings", "get_settings"]
