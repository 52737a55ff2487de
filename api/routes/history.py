"""Undo/redo endpoints."""

from typing import Any

from fastapi import APIRouter
from pydantic import BaseModel

from api.dependencies import WorkspaceDep
from api.models import HistoryResponse

router = APIRouter(
    prefix="/history",
    tags=["history"],
)


class HistoryStateResponse(BaseModel):
    """Response model for the history ledger.

    Attributes:
        can_undo: Whether undo is available.
        can_redo: Whether redo is available.
        undo_stack: Undoable operations, most recent first.
        redo_stack: Redoable operations, next to redo first.
    """

    can_undo: bool
    can_redo: bool
    undo_stack: list[dict[str, Any]]
    redo_stack: list[dict[str, Any]]


@router.get("", response_model=HistoryStateResponse)
async def get_history(workspace: WorkspaceDep):
    history = workspace.history
    return HistoryStateResponse(
        can_undo=history.can_undo,
        can_redo=history.can_redo,
        undo_stack=history.get_undo_summary(),
        redo_stack=history.get_redo_summary(),
    )


@router.post("/undo", response_model=HistoryResponse)
async def undo(workspace: WorkspaceDep):
    """Undo the most recent operation.

    Answers with "Nothing to undo" when the ledger is empty.
    """
    return HistoryResponse(**workspace.undo())


@router.post("/redo", response_model=HistoryResponse)
async def redo(workspace: WorkspaceDep):
    """Redo the most recently undone operation."""
    return HistoryResponse(**workspace.redo())


@router.delete("", response_model=HistoryStateResponse)
async def clear_history(workspace: WorkspaceDep):
    workspace.clear_history()
    return HistoryStateResponse(can_undo=False, can_redo=False, undo_stack=[], redo_stack=[])
