"""Tree browsing and structural mutation endpoints.

These endpoints read the workspace tree and dispatch create, delete, rename,
move, copy, upload and drag-and-drop requests into the Workspace.
"""

from typing import Any, Optional

from fastapi import APIRouter, Query
from pydantic import BaseModel, Field

from api.dependencies import WorkspaceDep
from api.models import ItemIdsRequest, TransferRequest, TransferResponse
from api.utils import parse_path, transfer_response
from engine.item import Item
from engine.mutations import FileUpload

router = APIRouter(
    prefix="/tree",
    tags=["tree"],
)


# Request/Response Models


class TreeResponse(BaseModel):
    """Response model for the whole tree.

    Attributes:
        version: Snapshot version (bumped by every write).
        item_count: Total number of items.
        items: Root-level items with their subtrees.
    """

    version: int
    item_count: int
    items: list[Item]


class ItemDetailResponse(BaseModel):
    """Response model for a single item.

    Attributes:
        item: The item with its subtree.
        path: Path of the folder containing the item.
    """

    item: Item
    path: list[str]


class CreateItemRequest(BaseModel):
    """Request model for creating a folder or file.

    Attributes:
        name: Name of the new item.
        path: Folder to create it in (default: the current folder).
        size: Size in bytes (files only).
    """

    name: str = Field(..., description="Name of the new item")
    path: Optional[list[str]] = Field(default=None, description="Destination folder")
    size: int = Field(default=0, ge=0, description="Size in bytes (files only)")


class DeleteResponse(BaseModel):
    deleted_ids: list[str]
    deleted_count: int
    operation_id: Optional[str] = None


class RenameRequest(BaseModel):
    """Request model for renaming an item.

    Attributes:
        item_id: Id of the item to rename.
        new_name: The new name.
    """

    item_id: str
    new_name: str


class UploadRequest(BaseModel):
    """Request model for adding external files.

    Attributes:
        files: Name and size of each file.
        target_path: Destination folder (default: the current folder).
    """

    files: list[FileUpload] = Field(..., min_length=1)
    target_path: Optional[list[str]] = None


class DropRequest(BaseModel):
    """Request model for drag-and-drop.

    Attributes:
        payload: Raw JSON drag data, e.g. '{"id": "..."}'.
        target_path: Folder the item was dropped on.
    """

    payload: str
    target_path: list[str] = Field(default_factory=list)


class ValidationResponse(BaseModel):
    valid: bool
    errors: list[str]


# Route Handlers


@router.get("", response_model=TreeResponse)
async def get_tree(workspace: WorkspaceDep):
    """Get the whole tree."""
    tree = workspace.get_snapshot()
    return TreeResponse(version=tree.version, item_count=len(tree), items=tree.to_items())


@router.get("/items", response_model=list[Item])
async def list_items(
    workspace: WorkspaceDep,
    path: Optional[str] = Query(default=None, description="Folder path, e.g. docs/reports"),
):
    """List the children of a folder.

    Without ``path`` the current folder is listed.
    """
    if path is None:
        return workspace.get_current_items()
    return workspace.list_items(parse_path(path))


@router.get("/items/{item_id}", response_model=ItemDetailResponse)
async def get_item(item_id: str, workspace: WorkspaceDep):
    """Get one item with its subtree and location."""
    tree = workspace.get_snapshot()
    return ItemDetailResponse(item=tree.get_item(item_id), path=tree.path_of(item_id))


@router.post("/folders", response_model=Item, status_code=201)
async def create_folder(request: CreateItemRequest, workspace: WorkspaceDep):
    """Create an empty folder.

    Returns 409 if a sibling already uses the name.
    """
    return workspace.create_folder(request.name, request.path)


@router.post("/files", response_model=Item, status_code=201)
async def create_file(request: CreateItemRequest, workspace: WorkspaceDep):
    """Create a file.

    Returns 409 if a sibling already uses the name.
    """
    return workspace.create_file(request.name, request.path, request.size)


@router.post("/delete", response_model=DeleteResponse)
async def delete_items(request: ItemIdsRequest, workspace: WorkspaceDep):
    """Delete items and their subtrees. Unknown ids are ignored."""
    return DeleteResponse(**workspace.delete(request.item_ids))


@router.post("/rename", response_model=Item)
async def rename_item(request: RenameRequest, workspace: WorkspaceDep):
    """Rename an item in place."""
    return workspace.rename(request.item_id, request.new_name)


@router.post("/move", response_model=TransferResponse)
async def move_items(request: TransferRequest, workspace: WorkspaceDep):
    """Move items into another folder.

    Returns "pending_conflicts" when destination names collide; resolve them
    through the /conflicts endpoints.
    """
    future = workspace.move_items(request.item_ids, request.target_path)
    return transfer_response(workspace, future)


@router.post("/copy", response_model=TransferResponse)
async def copy_items(request: TransferRequest, workspace: WorkspaceDep):
    """Copy items into another folder (the copies get fresh ids)."""
    future = workspace.copy_items(request.item_ids, request.target_path)
    return transfer_response(workspace, future)


@router.post("/upload", response_model=TransferResponse)
async def upload_files(request: UploadRequest, workspace: WorkspaceDep):
    """Add external files to a folder."""
    future = workspace.upload_files(request.files, request.target_path)
    return transfer_response(workspace, future)


@router.post("/drop", response_model=TransferResponse)
async def drop_item(request: DropRequest, workspace: WorkspaceDep):
    """Move a dragged item onto a folder.

    Malformed drag data is ignored rather than rejected.
    """
    future = workspace.handle_drop(request.payload, request.target_path)
    return transfer_response(workspace, future)


@router.get("/validate", response_model=ValidationResponse)
async def validate_tree(workspace: WorkspaceDep) -> Any:
    """Check the tree and navigation cursor for consistency."""
    errors = workspace.validate()
    return ValidationResponse(valid=not errors, errors=errors)
