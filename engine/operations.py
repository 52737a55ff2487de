"""Operation records kept by the history ledger.

Each operation describes one user-visible mutation and carries the exact
replay data needed to undo and redo it:

- ``before``: subtrees the operation detached, with the parent id and index
  they had before it ran.
- ``after``: subtrees the operation attached, with the parent id and index
  they ended up at.

Undo detaches every ``after`` placement and re-attaches every ``before``
placement; redo does the reverse. The descriptive fields (names, paths,
affected items) exist for summaries and API responses.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union
from uuid import uuid4

from pydantic import BaseModel, Field

from engine.item import Item


class OperationType(str, Enum):
    """Kinds of recorded operations."""

    CREATE_FOLDER = "create_folder"
    CREATE_FILE = "create_file"
    DELETE = "delete"
    RENAME = "rename"
    MOVE = "move"
    COPY = "copy"
    UPLOAD = "upload"


class Placement(BaseModel):
    """Position of a subtree in the tree.

    Args:
        parent_id: Id of the containing folder (None = root).
        index: Position among the siblings.
        item: The subtree as it was at that position.
    """

    parent_id: Optional[str] = Field(description="Containing folder id (None = root)")
    index: int = Field(ge=0, description="Position among the siblings")
    item: Item = Field(description="The subtree at that position")


def _display(path: list[str]) -> str:
    return "/" + "/".join(path)


class BaseOperation(BaseModel):
    """Fields shared by every operation record."""

    operation_id: str = Field(
        default_factory=lambda: str(uuid4()), description="Unique operation id"
    )
    performed_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the operation was applied",
    )
    before: list[Placement] = Field(
        default_factory=list, description="Subtrees detached by the operation"
    )
    after: list[Placement] = Field(
        default_factory=list, description="Subtrees attached by the operation"
    )

    def get_summary(self) -> str:
        return self.type

    def to_summary_dict(self) -> dict[str, Any]:
        """Short description used by history listings."""
        return {
            "operation_id": self.operation_id,
            "type": self.type,
            "summary": self.get_summary(),
            "performed_at": self.performed_at.isoformat(),
        }


class CreateFolderOperation(BaseOperation):
    type: Literal["create_folder"] = "create_folder"
    folder: Item = Field(description="The created folder")
    path: list[str] = Field(description="Folder where it was created")

    def get_summary(self) -> str:
        return f"Create folder '{self.folder.name}' in {_display(self.path)}"


class CreateFileOperation(BaseOperation):
    type: Literal["create_file"] = "create_file"
    file: Item = Field(description="The created file")
    path: list[str] = Field(description="Folder where it was created")

    def get_summary(self) -> str:
        return f"Create file '{self.file.name}' in {_display(self.path)}"


class DeleteOperation(BaseOperation):
    type: Literal["delete"] = "delete"
    items: list[Item] = Field(description="Deleted subtrees")
    paths: list[list[str]] = Field(
        default_factory=list, description="Parent path of each deleted item"
    )

    def get_summary(self) -> str:
        return f"Delete {len(self.items)} item(s)"


class RenameOperation(BaseOperation):
    type: Literal["rename"] = "rename"
    item_id: str = Field(description="Id of the renamed item")
    old_name: str = Field(description="Name before the rename")
    new_name: str = Field(description="Name after the rename")
    path: list[str] = Field(description="Folder containing the item")

    def get_summary(self) -> str:
        return f"Rename '{self.old_name}' to '{self.new_name}'"


class MoveOperation(BaseOperation):
    type: Literal["move"] = "move"
    items: list[Item] = Field(description="Moved subtrees, as they were before")
    source_path: list[str] = Field(description="Folder the items came from")
    target_path: list[str] = Field(description="Destination folder")
    replaced: list[Item] = Field(
        default_factory=list, description="Destination items removed by replace"
    )
    renamed: dict[str, str] = Field(
        default_factory=dict, description="Item id -> name given by rename"
    )

    def get_summary(self) -> str:
        return f"Move {len(self.items)} item(s) to {_display(self.target_path)}"


class CopyOperation(BaseOperation):
    type: Literal["copy"] = "copy"
    items: list[Item] = Field(description="Copied subtrees (fresh ids)")
    source_path: list[str] = Field(description="Folder the originals live in")
    target_path: list[str] = Field(description="Destination folder")
    replaced: list[Item] = Field(
        default_factory=list, description="Destination items removed by replace"
    )
    renamed: dict[str, str] = Field(
        default_factory=dict, description="Item id -> name given by rename"
    )

    def get_summary(self) -> str:
        return f"Copy {len(self.items)} item(s) to {_display(self.target_path)}"


class UploadOperation(BaseOperation):
    type: Literal["upload"] = "upload"
    files: list[Item] = Field(description="Uploaded files")
    path: list[str] = Field(description="Destination folder")
    replaced: list[Item] = Field(
        default_factory=list, description="Destination items removed by replace"
    )
    renamed: dict[str, str] = Field(
        default_factory=dict, description="Item id -> name given by rename"
    )

    def get_summary(self) -> str:
        return f"Upload {len(self.files)} file(s) to {_display(self.path)}"


Operation = Annotated[
    Union[
        CreateFolderOperation,
        CreateFileOperation,
        DeleteOperation,
        RenameOperation,
        MoveOperation,
        CopyOperation,
        UploadOperation,
    ],
    Field(discriminator="type"),
]
