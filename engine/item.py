"""Item models for the virtual workspace tree.

An ``Item`` is the nested, public representation of a file or folder. The
tree arena stores ``ItemData`` records, which carry every field except
``children``; subtrees are materialised back into ``Item`` on demand.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator, model_validator


class ItemKind(str, Enum):
    """Whether an item is a file or a folder."""

    FILE = "file"
    FOLDER = "folder"


class SyncStatus(str, Enum):
    """Convergence state of an item with its remote counterpart."""

    PENDING = "pending"
    SYNCING = "syncing"
    SYNCED = "synced"
    REJECTED = "rejected"
    ERROR = "error"
    IGNORED = "ignored"
    HIDDEN = "hidden"


class PermissionType(str, Enum):
    """Access level of a sharing grant."""

    READ = "read"
    WRITE = "write"
    ADMIN = "admin"


class Permission(BaseModel):
    """A sharing grant attached to an item.

    Args:
        id: Unique identifier of the grant.
        name: Display name of the grantee.
        email: Email address of the grantee.
        type: Access level.
        avatar: Optional avatar URL.
    """

    class Config:
        frozen = True

    id: str = Field(description="Unique identifier of the grant")
    name: str = Field(description="Display name of the grantee")
    email: str = Field(description="Email address of the grantee")
    type: PermissionType = Field(description="Access level")
    avatar: Optional[str] = Field(default=None, description="Avatar URL")


def new_item_id() -> str:
    """Generate a fresh opaque item id."""
    return str(uuid4())


class ItemData(BaseModel):
    """A single file or folder node without its children.

    Records are immutable. Every change produces a new record through
    ``model_copy(update=...)``, which keeps old tree snapshots intact.

    Args:
        id: Opaque identifier, unique tree-wide and stable across moves.
        name: Display name, unique among siblings.
        kind: File or folder.
        created_at: When the item was created.
        modified_at: When the item was last modified.
        size: Size in bytes for files; always None for folders.
        sync_status: Sync state, or None when the item is not tracked.
        permissions: Sharing grants (never mutated by the engine).
    """

    class Config:
        frozen = True

    id: str = Field(default_factory=new_item_id, description="Opaque unique id")
    name: str = Field(description="Display name, unique among siblings")
    kind: ItemKind = Field(description="File or folder")
    created_at: datetime = Field(description="When the item was created")
    modified_at: datetime = Field(description="When the item was last modified")
    size: Optional[int] = Field(default=None, description="Size in bytes (files only)")
    sync_status: Optional[SyncStatus] = Field(
        default=None, description="Sync state (None = not tracked)"
    )
    permissions: list[Permission] = Field(
        default_factory=list, description="Sharing grants"
    )

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Validate that the name is non-empty and has no path separator.

        Raises:
            ValueError: If the name is empty, whitespace or contains '/'.
        """
        if not v or not v.strip():
            raise ValueError("name cannot be empty")
        if "/" in v:
            raise ValueError("name cannot contain '/'")
        return v

    @field_validator("size")
    @classmethod
    def validate_size(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v < 0:
            raise ValueError("size cannot be negative")
        return v

    @model_validator(mode="after")
    def validate_folder_size(self) -> "ItemData":
        """Folders never carry a pre-aggregated size."""
        if self.kind == ItemKind.FOLDER and self.size is not None:
            raise ValueError("folders cannot have a size")
        return self

    @property
    def is_folder(self) -> bool:
        return self.kind == ItemKind.FOLDER

    def to_dict(self) -> dict[str, Any]:
        """Convert this record to a JSON-compatible dictionary.

        Returns:
            Dictionary representation suitable for API responses.
        """
        return self.model_dump(mode="json")


class Item(ItemData):
    """A file or folder together with its subtree.

    Folders always carry a ``children`` list (empty by default). Files never
    do. Sibling names inside ``children`` must be unique.

    Args:
        children: Ordered child items (folders only).

    Examples:
        folder = Item(
            name="docs",
            kind=ItemKind.FOLDER,
            created_at=now,
            modified_at=now,
            children=[
                Item(name="a.txt", kind=ItemKind.FILE, size=10,
                     created_at=now, modified_at=now),
            ],
        )
    """

    children: Optional[list["Item"]] = Field(
        default=None, description="Ordered child items (folders only)"
    )

    @model_validator(mode="before")
    @classmethod
    def default_folder_children(cls, data: Any) -> Any:
        if isinstance(data, dict):
            if data.get("kind") == ItemKind.FOLDER and data.get("children") is None:
                data = {**data, "children": []}
        return data

    @model_validator(mode="after")
    def validate_children(self) -> "Item":
        """Validate the file/folder shape and sibling name uniqueness.

        Raises:
            ValueError: If a file has children or two children share a name.
        """
        if self.kind == ItemKind.FILE and self.children is not None:
            raise ValueError("files cannot have children")
        if self.children:
            seen: set[str] = set()
            for child in self.children:
                if child.name in seen:
                    raise ValueError(
                        f"duplicate child name '{child.name}' in folder '{self.name}'"
                    )
                seen.add(child.name)
        return self

    def to_data(self) -> ItemData:
        """Return this item's node record without the subtree."""
        return ItemData(**{key: value for key, value in self if key != "children"})

    def iter_subtree(self):
        """Yield this item and every descendant, depth-first pre-order."""
        yield self
        for child in self.children or []:
            yield from child.iter_subtree()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Item":
        """Create an Item (with subtree) from a dictionary."""
        return cls.model_validate(data)
