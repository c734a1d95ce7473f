"""Collection endpoints: create, open, delete, edit images and run stages."""
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, status

from voguecurate.api.routes.workspace import notice_view
from voguecurate.deps import get_workspace
from voguecurate.schemas.collections import Collection, CollectionCreateRequest, StageKind
from voguecurate.schemas.stage_runs import StageHistoryResponse, StageTransitionView
from voguecurate.schemas.workspace import CollectionDetailResponse, StageTriggerResponse
from voguecurate.services.errors import CollectionNotFound
from voguecurate.services.stage_runs import StageTransition
from voguecurate.services.workspace import Workspace

router = APIRouter(prefix="/collections", tags=["collections"])


def _transition_view(transition: StageTransition) -> StageTransitionView:
    return StageTransitionView(
        stage=transition.stage,
        request_id=transition.request_id,
        from_state=transition.from_state.value,
        to_state=transition.to_state.value,
        status=transition.status.value,
        error=transition.error,
        duration_ms=transition.duration_ms,
        finished_at=transition.finished_at,
    )


def _detail(workspace: Workspace, collection: Collection) -> CollectionDetailResponse:
    states = workspace.orchestrator.pipeline_state(collection.id)
    latest = workspace.orchestrator.timeline.latest(collection.id)
    return CollectionDetailResponse(
        collection=collection,
        active=workspace.store.active_id == collection.id,
        stages={stage: state.value for stage, state in states.items()},
        last_runs={stage: _transition_view(run) for stage, run in latest.items()},
    )


def _require(workspace: Workspace, collection_id: str) -> Collection:
    collection = workspace.store.get(collection_id)
    if collection is None:
        raise HTTPException(status_code=404, detail="Collection not found")
    return collection


@router.post(
    "",
    response_model=CollectionDetailResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a collection from the pending images",
)
async def create_collection(
    body: CollectionCreateRequest,
    workspace: Workspace = Depends(get_workspace),
) -> CollectionDetailResponse:
    collection = await workspace.store.create_collection(
        body.name, season=body.season, description=body.description
    )
    if collection is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Collection name is required",
        )
    workspace.notices.dismiss()
    return _detail(workspace, collection)


@router.get(
    "/{collection_id}",
    response_model=CollectionDetailResponse,
    summary="Get a collection and its stage states",
)
async def get_collection(
    collection_id: str, workspace: Workspace = Depends(get_workspace)
) -> CollectionDetailResponse:
    return _detail(workspace, _require(workspace, collection_id))


@router.post(
    "/{collection_id}/select",
    response_model=CollectionDetailResponse,
    summary="Open a collection in the editor",
)
async def select_collection(
    collection_id: str, workspace: Workspace = Depends(get_workspace)
) -> CollectionDetailResponse:
    try:
        collection = workspace.store.select(collection_id)
    except CollectionNotFound:
        raise HTTPException(status_code=404, detail="Collection not found")
    return _detail(workspace, collection)


@router.delete(
    "/{collection_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a collection",
)
async def delete_collection(
    collection_id: str, workspace: Workspace = Depends(get_workspace)
) -> None:
    if not await workspace.store.delete_collection(collection_id):
        raise HTTPException(status_code=404, detail="Collection not found")
    workspace.orchestrator.timeline.forget(collection_id)


@router.delete(
    "/active/images/{image_id}",
    response_model=CollectionDetailResponse,
    summary="Remove an image from the active collection",
)
async def remove_active_image(
    image_id: str, workspace: Workspace = Depends(get_workspace)
) -> CollectionDetailResponse:
    store = workspace.store
    if store.active is None:
        raise HTTPException(status_code=409, detail="No collection is open")
    await store.remove_image(image_id)
    active = store.active
    if active is None:
        raise HTTPException(status_code=409, detail="No collection is open")
    return _detail(workspace, active)


@router.post(
    "/{collection_id}/stages/{stage}",
    response_model=StageTriggerResponse,
    summary="Run a curation stage for a collection",
)
async def trigger_stage(
    collection_id: str,
    stage: StageKind,
    regenerate: bool = Query(False, description="Replace an existing stage output"),
    workspace: Workspace = Depends(get_workspace),
) -> StageTriggerResponse:
    """Run one stage and report its outcome.

    Stage failures are reported in the body and on the workspace notice, not
    as HTTP errors.
    """

    _require(workspace, collection_id)
    outcome = await workspace.orchestrator.trigger(
        stage, collection_id, regenerate=regenerate
    )
    return StageTriggerResponse(
        stage=outcome.stage,
        collection_id=outcome.collection_id,
        status=outcome.status.value,
        reason=outcome.reason,
        error=outcome.error,
        collection=workspace.store.get(collection_id),
        notice=notice_view(workspace.notices.current),
        credential_required=workspace.notices.credential_required,
    )


@router.get(
    "/{collection_id}/stage-runs",
    response_model=StageHistoryResponse,
    summary="List a collection's stage attempts, newest first",
)
async def list_stage_runs(
    collection_id: str,
    stage: StageKind | None = Query(None, description="Filter by stage"),
    workspace: Workspace = Depends(get_workspace),
) -> StageHistoryResponse:
    _require(workspace, collection_id)
    runs = workspace.orchestrator.timeline.history(collection_id, stage=stage)
    return StageHistoryResponse(
        collection_id=collection_id,
        runs=[_transition_view(run) for run in runs],
    )
