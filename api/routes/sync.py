"""Sync status endpoints."""

from fastapi import APIRouter
from pydantic import BaseModel

from api.dependencies import WorkspaceDep
from engine.item import Item, SyncStatus
from engine.sync import SyncReport

router = APIRouter(
    prefix="/sync",
    tags=["sync"],
)


class SyncStatusResponse(BaseModel):
    """Response model for the sync overview.

    Attributes:
        paused: Whether sync is paused.
        in_flight: Items currently syncing.
        unsynced: Items waiting for sync (pending or error).
        counts: Number of items per status.
    """

    paused: bool
    in_flight: int
    unsynced: int
    counts: dict[str, int]


class PauseResponse(BaseModel):
    paused: bool
    message: str


class UpdateStatusRequest(BaseModel):
    sync_status: SyncStatus


class RetryResponse(BaseModel):
    retried: bool
    item: Item


@router.get("/status", response_model=SyncStatusResponse)
async def get_sync_status(workspace: WorkspaceDep):
    return SyncStatusResponse(**workspace.get_sync_status())


@router.post("/trigger", response_model=SyncReport)
async def trigger_sync(workspace: WorkspaceDep):
    """Start syncing every pending or errored item."""
    return workspace.trigger_manual_sync()


@router.post("/pause", response_model=PauseResponse)
async def toggle_pause(workspace: WorkspaceDep):
    """Pause or resume sync."""
    paused = workspace.toggle_sync_pause()
    return PauseResponse(paused=paused, message="Sync paused" if paused else "Sync resumed")


@router.post("/items/{item_id}", response_model=Item)
async def update_item_status(
    item_id: str, request: UpdateStatusRequest, workspace: WorkspaceDep
):
    """Set the sync status of one item.

    Returns 404 if the item does not exist.
    """
    workspace.update_sync_status(item_id, request.sync_status)
    return workspace.get_item(item_id)


@router.post("/items/{item_id}/retry", response_model=RetryResponse)
async def retry_item(item_id: str, workspace: WorkspaceDep):
    """Move an errored item back to pending."""
    retried = workspace.retry_item(item_id)
    return RetryResponse(retried=retried, item=workspace.get_item(item_id))
