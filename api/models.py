"""Shared request and response models for API endpoints.

This module contains models used across several route modules, mainly the
transfer response shared by move, copy, upload, drop, paste and conflict
resolution.
"""

from typing import Any, Literal, Optional

from pydantic import BaseModel, Field

from engine.conflicts import ConflictItem
from engine.mutations import TransferResult


class ItemIdsRequest(BaseModel):
    """Request model for operations on a selection of items.

    Attributes:
        item_ids: Ids of the selected items.
    """

    item_ids: list[str] = Field(..., min_length=1, description="Ids of the selected items")


class TransferRequest(BaseModel):
    """Request model for move and copy.

    Attributes:
        item_ids: Ids of the items to transfer.
        target_path: Destination folder path.
    """

    item_ids: list[str] = Field(..., min_length=1, description="Ids of the items to transfer")
    target_path: list[str] = Field(default_factory=list, description="Destination folder")


class TransferResponse(BaseModel):
    """Response model for transfers.

    A transfer either completes immediately or waits for the client to
    resolve name conflicts through the /conflicts endpoints.

    Attributes:
        status: "completed", "pending_conflicts" or "ignored".
        result: Outcome of the transfer when completed.
        conflicts: Conflicts waiting for a resolution.
        message: Human-readable summary.
    """

    status: Literal["completed", "pending_conflicts", "ignored"]
    result: Optional[TransferResult] = None
    conflicts: list[ConflictItem] = Field(default_factory=list)
    message: str


class HistoryResponse(BaseModel):
    """Response model for undo/redo.

    Attributes:
        operation: Summary of the undone/redone operation (None if nothing).
        can_undo: Whether more undos are available.
        can_redo: Whether redos are available.
        message: Human-readable message.
    """

    operation: Optional[dict[str, Any]] = None
    can_undo: bool
    can_redo: bool
    message: str


class ErrorResponse(BaseModel):
    """Standard error response model.

    Attributes:
        error: Error type or code.
        detail: Human-readable error message.
    """

    error: str
    detail: str
