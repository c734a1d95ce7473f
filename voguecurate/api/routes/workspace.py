"""Workspace endpoints: overall state, notices and the API credential."""
from __future__ import annotations

from fastapi import APIRouter, Depends, status

from voguecurate.deps import get_workspace
from voguecurate.schemas.workspace import (
    CredentialsRequest,
    NoticeView,
    WorkspaceResponse,
)
from voguecurate.services.notices import Notice, NoticeBoard
from voguecurate.services.workspace import Workspace

router = APIRouter(prefix="/workspace", tags=["workspace"])


def notice_view(notice: Notice | None) -> NoticeView | None:
    if notice is None:
        return None
    return NoticeView(kind=notice.kind, message=notice.message, created_at=notice.created_at)


def workspace_response(workspace: Workspace) -> WorkspaceResponse:
    store = workspace.store
    notices: NoticeBoard = workspace.notices
    return WorkspaceResponse(
        collections=store.collections,
        active_collection_id=store.active_id,
        pending_images=store.pending_images,
        notice=notice_view(notices.current),
        credential_required=notices.credential_required,
        credential_message=notices.credential_message,
    )


@router.get("", response_model=WorkspaceResponse, summary="Current workspace state")
async def get_workspace_state(
    workspace: Workspace = Depends(get_workspace),
) -> WorkspaceResponse:
    return workspace_response(workspace)


@router.delete(
    "/notice",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Dismiss the current notice",
)
async def dismiss_notice(workspace: Workspace = Depends(get_workspace)) -> None:
    workspace.notices.dismiss()


@router.put(
    "/credentials",
    response_model=WorkspaceResponse,
    summary="Replace the Gemini API key",
)
async def update_credentials(
    body: CredentialsRequest,
    workspace: Workspace = Depends(get_workspace),
) -> WorkspaceResponse:
    """Install a new API key and clear the blocking credential prompt."""

    workspace.service.set_api_key(body.api_key.strip())
    workspace.notices.credentials_resolved()
    return workspace_response(workspace)


@router.post(
    "/close",
    response_model=WorkspaceResponse,
    summary="Leave the editor and clear the active collection",
)
async def close_active_collection(
    workspace: Workspace = Depends(get_workspace),
) -> WorkspaceResponse:
    workspace.store.close()
    return workspace_response(workspace)
