"""Error taxonomy for the workspace tree engine.

Exception Hierarchy:
    WorkspaceError (base)
    ├── ItemNotFoundError - id lookup miss on an operation that needs the item
    │   └── PathNotFoundError - a path segment is missing or is not a folder
    ├── NameConflictError - a sibling already uses the requested name
    ├── CyclicMoveError - a folder would be moved into its own subtree
    ├── InvalidNameError - the requested name can never be a valid item name
    └── ConflictRequestPendingError - the arbiter is already presenting conflicts

Benign misses (deleting an unknown id, stamping a status on a deleted item,
pasting with an empty clipboard) are not errors and never raise.
"""


class WorkspaceError(Exception):
    """Base exception for all workspace engine errors.

    Attributes:
        message: Human-readable error description.
    """

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)

    def __str__(self) -> str:
        return self.message


class ItemNotFoundError(WorkspaceError):
    """Raised when an operation needs an item id that does not exist.

    Args:
        item_id: The id that could not be resolved.
    """

    def __init__(self, item_id: str, message: str | None = None) -> None:
        self.item_id = item_id
        super().__init__(message or f"Item '{item_id}' not found")


class PathNotFoundError(ItemNotFoundError):
    """Raised when a path does not resolve to an existing folder.

    Args:
        path: The path that failed to resolve.
        segment: The first segment that was missing or not a folder.
    """

    def __init__(self, path: list[str], segment: str | None = None) -> None:
        self.path = list(path)
        self.segment = segment
        display = "/" + "/".join(path)
        message = f"Path '{display}' does not resolve to a folder"
        if segment is not None:
            message += f" (segment '{segment}')"
        super().__init__(item_id=display, message=message)


class NameConflictError(WorkspaceError):
    """Raised when a sibling already bears the requested name.

    Args:
        name: The colliding name.
        path: Path of the folder where the collision happened.
        existing_id: Id of the item that already uses the name.
    """

    def __init__(
        self, name: str, path: list[str], existing_id: str | None = None
    ) -> None:
        self.name = name
        self.path = list(path)
        self.existing_id = existing_id
        display = "/" + "/".join(path)
        super().__init__(f"An item named '{name}' already exists in '{display}'")


class CyclicMoveError(WorkspaceError):
    """Raised when a folder would be moved into itself or one of its descendants.

    Args:
        item_id: Id of the folder being moved.
        target_path: The destination path that lies inside the folder.
    """

    def __init__(self, item_id: str, target_path: list[str]) -> None:
        self.item_id = item_id
        self.target_path = list(target_path)
        display = "/" + "/".join(target_path)
        super().__init__(
            f"Cannot move folder '{item_id}' into its own subtree '{display}'"
        )


class InvalidNameError(WorkspaceError, ValueError):
    """Raised when a name is empty or contains a path separator."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Invalid item name: {name!r}")


class ConflictRequestPendingError(WorkspaceError):
    """Raised when conflicts are submitted while another request is unresolved."""

    def __init__(self, pending_count: int) -> None:
        self.pending_count = pending_count
        super().__init__(
            f"A conflict request with {pending_count} unresolved conflict(s) "
            "is already pending"
        )
