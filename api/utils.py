"""Utility functions for API route handlers."""

from concurrent.futures import Future
from typing import Optional

from api.models import TransferResponse
from engine.workspace import Workspace


def parse_path(raw: Optional[str]) -> list[str]:
    """Split a slash-separated path into folder names.

    Empty segments are dropped, so "", "/", "a/b" and "/a/b/" all work.

    Examples:
        >>> parse_path("/docs/reports/")
        ['docs', 'reports']
        >>> parse_path(None)
        []
    """
    if not raw:
        return []
    return [segment for segment in raw.split("/") if segment]


def transfer_response(workspace: Workspace, future: Optional[Future]) -> TransferResponse:
    """Convert a transfer future into an API response.

    Args:
        workspace: The Workspace the transfer was started on.
        future: The transfer future, or None when the request was ignored.

    Returns:
        "completed" with the result, "pending_conflicts" with the conflicts
        the client must resolve, or "ignored".
    """
    if future is None:
        return TransferResponse(status="ignored", message="Nothing to transfer")

    if future.done():
        result = future.result()
        return TransferResponse(
            status="completed",
            result=result,
            message=(
                f"{result.operation.capitalize()} completed: "
                f"{len(result.transferred)} item(s) placed"
            ),
        )

    conflicts = workspace.arbiter.conflicts
    return TransferResponse(
        status="pending_conflicts",
        conflicts=conflicts,
        message=f"{len(conflicts)} conflict(s) need a resolution",
    )
