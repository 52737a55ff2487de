"""Conflict resolution endpoints.

A move, copy, upload, drop or paste that hits name collisions answers with
status "pending_conflicts". The client then answers the conflicts one by
one (or all at once) here; the transfer is applied once every conflict has
a resolution.
"""

from typing import Optional

from fastapi import APIRouter
from pydantic import BaseModel, Field

from api.dependencies import WorkspaceDep
from api.models import TransferResponse
from engine.conflicts import ConflictItem, ConflictResolution
from engine.mutations import TransferResult
from engine.workspace import Workspace

router = APIRouter(
    prefix="/conflicts",
    tags=["conflicts"],
)


class ConflictStateResponse(BaseModel):
    """Response model for the conflict dialog.

    Attributes:
        state: "idle" or "presenting".
        current_index: Index of the conflict being presented.
        remaining: Conflicts still unanswered.
        current_conflict: The conflict being presented.
        conflicts: Every conflict of the pending request.
    """

    state: str
    current_index: Optional[int] = None
    remaining: int
    current_conflict: Optional[ConflictItem] = None
    conflicts: list[ConflictItem]


class ResolveRequest(BaseModel):
    resolution: ConflictResolution
    apply_to_all: bool = Field(default=False, description="Answer every remaining conflict")


def _conflict_response(
    workspace: Workspace, result: Optional[TransferResult]
) -> TransferResponse:
    if result is not None:
        return TransferResponse(
            status="completed",
            result=result,
            message=(
                f"{result.operation.capitalize()} completed: "
                f"{len(result.transferred)} item(s) placed"
            ),
        )
    if workspace.arbiter.is_open:
        return TransferResponse(
            status="pending_conflicts",
            conflicts=workspace.arbiter.conflicts,
            message=f"{workspace.arbiter.remaining} conflict(s) remaining",
        )
    return TransferResponse(status="ignored", message="No conflicts are pending")


@router.get("", response_model=ConflictStateResponse)
async def get_conflicts(workspace: WorkspaceDep):
    return ConflictStateResponse(**workspace.get_conflicts())


@router.post("/resolve", response_model=TransferResponse)
async def resolve_conflict(request: ResolveRequest, workspace: WorkspaceDep):
    """Answer the current conflict, or all remaining ones."""
    result = workspace.resolve_conflict(request.resolution, request.apply_to_all)
    return _conflict_response(workspace, result)


@router.post("/close", response_model=TransferResponse)
async def close_dialog(workspace: WorkspaceDep):
    """Dismiss the dialog; every unanswered conflict is skipped."""
    result = workspace.dismiss_conflicts()
    return _conflict_response(workspace, result)
