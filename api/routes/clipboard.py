"""Clipboard endpoints.

Paste targets the current folder of the navigation cursor.
"""

from typing import Optional

from fastapi import APIRouter
from pydantic import BaseModel

from api.dependencies import WorkspaceDep
from api.models import ItemIdsRequest, TransferResponse
from api.utils import transfer_response
from engine.clipboard import ClipboardItem

router = APIRouter(
    prefix="/clipboard",
    tags=["clipboard"],
)


class ClipboardResponse(BaseModel):
    """Response model for the clipboard.

    Attributes:
        clipboard: The pending payload (None when empty).
        message: Human-readable message.
    """

    clipboard: Optional[ClipboardItem] = None
    message: str


@router.get("", response_model=ClipboardResponse)
async def get_clipboard(workspace: WorkspaceDep):
    clipboard = workspace.clipboard
    return ClipboardResponse(
        clipboard=clipboard,
        message="Clipboard is empty" if clipboard is None else f"{len(clipboard.items)} item(s)",
    )


@router.post("/cut", response_model=ClipboardResponse)
async def cut_items(request: ItemIdsRequest, workspace: WorkspaceDep):
    """Cut items (the next paste moves them)."""
    payload = workspace.cut_to_clipboard(request.item_ids)
    if payload is None:
        return ClipboardResponse(clipboard=workspace.clipboard, message="No items found")
    return ClipboardResponse(clipboard=payload, message=f"Items Cut: {len(payload.items)}")


@router.post("/copy", response_model=ClipboardResponse)
async def copy_items(request: ItemIdsRequest, workspace: WorkspaceDep):
    """Copy items (each paste creates fresh copies)."""
    payload = workspace.copy_to_clipboard(request.item_ids)
    if payload is None:
        return ClipboardResponse(clipboard=workspace.clipboard, message="No items found")
    return ClipboardResponse(clipboard=payload, message=f"Items Copied: {len(payload.items)}")


@router.post("/paste", response_model=TransferResponse)
async def paste_items(workspace: WorkspaceDep):
    """Paste into the current folder. An empty clipboard is ignored."""
    future = workspace.paste_from_clipboard()
    return transfer_response(workspace, future)


@router.delete("", response_model=ClipboardResponse)
async def clear_clipboard(workspace: WorkspaceDep):
    workspace.clear_clipboard()
    return ClipboardResponse(message="Clipboard cleared")
