"""Clipboard payload.

The clipboard holds at most one payload. A new cut or copy replaces the
previous one; pasting a cut clears it, pasting a copy keeps it for repeated
pastes.
"""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field

from engine.item import Item
from engine.tree import TreeSnapshot


class ClipboardOperation(str, Enum):
    CUT = "cut"
    COPY = "copy"


class ClipboardItem(BaseModel):
    """A cut or copied selection.

    Args:
        items: Snapshot of the selected items with their subtrees.
        source_path: Folder the selection was taken from.
        operation: Whether the selection was cut or copied.
    """

    items: list[Item] = Field(description="Selected items with their subtrees")
    source_path: list[str] = Field(description="Folder the selection came from")
    operation: ClipboardOperation = Field(description="Cut or copy")

    @property
    def item_ids(self) -> list[str]:
        return [item.id for item in self.items]

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json")


def snapshot_selection(
    tree: TreeSnapshot, item_ids: list[str], operation: ClipboardOperation
) -> Optional[ClipboardItem]:
    """Capture the selected items for the clipboard.

    Unknown ids are dropped. The source path is the parent folder of the
    first item found.

    Returns:
        The payload, or None when no id resolved.
    """
    found = [item_id for item_id in dict.fromkeys(item_ids) if tree.contains(item_id)]
    if not found:
        return None
    return ClipboardItem(
        items=[tree.get_item(item_id) for item_id in found],
        source_path=tree.path_of(found[0]),
        operation=operation,
    )
