"""FastAPI dependency helpers."""
from __future__ import annotations

from fastapi import HTTPException, Request

from voguecurate.services.workspace import Workspace


def get_workspace(request: Request) -> Workspace:
    """Return the workspace built at startup."""

    workspace = getattr(request.app.state, "workspace", None)
    if workspace is None:
        raise HTTPException(status_code=503, detail="Workspace is not initialised")
    return workspace
