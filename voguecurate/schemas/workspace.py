"""Schemas for the workspace, upload and stage endpoints."""
from __future__ import annotations

from typing import Dict, List, Literal

from pydantic import Field

from voguecurate.schemas.collections import CamelModel, Collection, CollectionImage, StageKind
from voguecurate.schemas.stage_runs import StageTransitionView


class NoticeView(CamelModel):
    kind: str = Field(..., description="Error taxonomy name, e.g. StorageFull")
    message: str
    created_at: str = Field(..., description="ISO-8601 timestamp")


class WorkspaceResponse(CamelModel):
    collections: List[Collection]
    active_collection_id: str | None = None
    pending_images: List[CollectionImage] = Field(default_factory=list)
    notice: NoticeView | None = None
    credential_required: bool = False
    credential_message: str | None = None


class CollectionDetailResponse(CamelModel):
    collection: Collection
    active: bool
    stages: Dict[StageKind, str] = Field(
        ..., description="Stage state: locked, available, pending or complete"
    )
    last_runs: Dict[StageKind, StageTransitionView] = Field(
        default_factory=dict, description="Most recent started attempt per stage"
    )


class UploadResponse(CamelModel):
    target: Literal["pending", "collection"]
    collection_id: str | None = None
    accepted: int
    skipped: int
    images: List[CollectionImage]


class StageTriggerResponse(CamelModel):
    stage: StageKind
    collection_id: str | None = None
    status: str = Field(..., description="applied, skipped, failed or dropped")
    reason: str | None = None
    error: str | None = None
    collection: Collection | None = None
    notice: NoticeView | None = None
    credential_required: bool = False


class CredentialsRequest(CamelModel):
    api_key: str = Field(..., min_length=1, description="Gemini API key")
