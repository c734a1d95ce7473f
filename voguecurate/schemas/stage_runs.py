"""Schemas for a collection's stage history."""
from __future__ import annotations

from typing import List

from pydantic import Field

from voguecurate.schemas.collections import CamelModel, StageKind


class StageTransitionView(CamelModel):
    stage: StageKind
    request_id: str = Field(..., description="Id of the stage attempt")
    from_state: str = Field(..., description="Stage state when the attempt started")
    to_state: str = Field(..., description="Stage state after the attempt finished")
    status: str = Field(..., description="applied or failed")
    error: str | None = Field(default=None, description="Failure message, if any")
    duration_ms: float
    finished_at: str = Field(..., description="ISO-8601 timestamp")


class StageHistoryResponse(CamelModel):
    collection_id: str
    runs: List[StageTransitionView]
