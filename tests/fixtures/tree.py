"""Fixtures for items and tree snapshots."""

from datetime import datetime, timezone

import pytest

from engine.item import Item, ItemKind, Permission, PermissionType, SyncStatus
from engine.tree import TreeSnapshot

FIXED_TIME = datetime(2025, 1, 15, 10, 30, tzinfo=timezone.utc)


def create_file_item(
    name: str = "file.txt",
    size: int = 100,
    item_id: str | None = None,
    sync_status: SyncStatus | None = SyncStatus.SYNCED,
    **kwargs,
) -> Item:
    """Create a file Item with sensible defaults.

    Args:
        name: File name.
        size: Size in bytes.
        item_id: Fixed id (defaults to a fresh uuid).
        sync_status: Sync state.
        **kwargs: Additional fields to override.

    Returns:
        File Item ready for testing.
    """
    fields = {
        "name": name,
        "kind": ItemKind.FILE,
        "size": size,
        "created_at": FIXED_TIME,
        "modified_at": FIXED_TIME,
        "sync_status": sync_status,
        **kwargs,
    }
    if item_id is not None:
        fields["id"] = item_id
    return Item(**fields)


def create_folder_item(
    name: str = "folder",
    children: list[Item] | None = None,
    item_id: str | None = None,
    sync_status: SyncStatus | None = SyncStatus.SYNCED,
    **kwargs,
) -> Item:
    """Create a folder Item with sensible defaults.

    Args:
        name: Folder name.
        children: Child items (defaults to none).
        item_id: Fixed id (defaults to a fresh uuid).
        sync_status: Sync state.
        **kwargs: Additional fields to override.

    Returns:
        Folder Item ready for testing.
    """
    fields = {
        "name": name,
        "kind": ItemKind.FOLDER,
        "children": list(children or []),
        "created_at": FIXED_TIME,
        "modified_at": FIXED_TIME,
        "sync_status": sync_status,
        **kwargs,
    }
    if item_id is not None:
        fields["id"] = item_id
    return Item(**fields)


def create_permission(**kwargs) -> Permission:
    fields = {
        "id": "perm-1",
        "name": "Alice",
        "email": "alice@example.com",
        "type": PermissionType.READ,
        **kwargs,
    }
    return Permission(**fields)


def create_sample_items() -> list[Item]:
    """Create the sample workspace used across tests.

    Layout (ids in parentheses):
        /docs (docs)
            fileX.txt (fileX, 100 bytes)
            report.pdf (report, 2048 bytes)
        /archive (archive)
        /folderB (folderB)
            child (child)
                nested.txt (nested, 10 bytes)
            notes.txt (notes, 5 bytes)
        /folderA (folderA)
        /readme.md (readme, 42 bytes)

    Every item is synced.
    """
    return [
        create_folder_item(
            "docs",
            item_id="docs",
            children=[
                create_file_item("fileX.txt", size=100, item_id="fileX"),
                create_file_item("report.pdf", size=2048, item_id="report"),
            ],
        ),
        create_folder_item("archive", item_id="archive"),
        create_folder_item(
            "folderB",
            item_id="folderB",
            children=[
                create_folder_item(
                    "child",
                    item_id="child",
                    children=[create_file_item("nested.txt", size=10, item_id="nested")],
                ),
                create_file_item("notes.txt", size=5, item_id="notes"),
            ],
        ),
        create_folder_item("folderA", item_id="folderA"),
        create_file_item("readme.md", size=42, item_id="readme"),
    ]


def create_sample_tree() -> TreeSnapshot:
    return TreeSnapshot.from_items(create_sample_items())


def subtree_shape(item: Item) -> tuple:
    """Names and kinds of a subtree, ignoring ids."""
    return (
        item.name,
        item.kind,
        tuple(subtree_shape(child) for child in item.children or []),
    )


@pytest.fixture
def sample_items() -> list[Item]:
    return create_sample_items()


@pytest.fixture
def sample_tree() -> TreeSnapshot:
    return create_sample_tree()
