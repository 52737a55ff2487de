"""Exception handlers for the workspace FastAPI application.

This module converts engine exceptions into consistent, user-friendly JSON
responses.
"""

import logging

from fastapi import Request, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from engine.exceptions import (
    ConflictRequestPendingError,
    CyclicMoveError,
    InvalidNameError,
    ItemNotFoundError,
    NameConflictError,
    PathNotFoundError,
)

logger = logging.getLogger(__name__)


async def item_not_found_handler(request: Request, exc: ItemNotFoundError):
    """Handle ItemNotFoundError (and PathNotFoundError) with a 404."""
    content = {
        "error": "Item Not Found",
        "detail": exc.message,
        "item_id": exc.item_id,
    }
    if isinstance(exc, PathNotFoundError):
        content["error"] = "Path Not Found"
        content["path"] = exc.path
        content["segment"] = exc.segment
    return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content=content)


async def name_conflict_handler(request: Request, exc: NameConflictError):
    """Handle NameConflictError.

    Returns a 409 (Conflict) naming the colliding sibling.
    """
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content={
            "error": "Name Conflict",
            "detail": exc.message,
            "name": exc.name,
            "path": exc.path,
            "existing_id": exc.existing_id,
        },
    )


async def cyclic_move_handler(request: Request, exc: CyclicMoveError):
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "error": "Cyclic Move",
            "detail": exc.message,
            "item_id": exc.item_id,
            "target_path": exc.target_path,
        },
    )


async def invalid_name_handler(request: Request, exc: InvalidNameError):
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "error": "Invalid Name",
            "detail": exc.message,
            "name": exc.name,
        },
    )


async def conflict_pending_handler(request: Request, exc: ConflictRequestPendingError):
    """Handle ConflictRequestPendingError.

    Returns a 409 telling the client to finish the open conflict dialog.
    """
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content={
            "error": "Conflicts Pending",
            "detail": exc.message,
            "pending_count": exc.pending_count,
            "suggestion": "Resolve them with POST /conflicts/resolve or POST /conflicts/close",
        },
    )


async def model_validation_handler(request: Request, exc: ValidationError):
    """Handle pydantic errors raised while building items inside the engine.

    Request bodies are validated by FastAPI before they reach the engine;
    this covers records the engine builds itself (e.g. an uploaded file
    whose size turns negative).
    """
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error": "Invalid Item",
            "detail": f"{exc.error_count()} field(s) failed validation",
            "validation_errors": exc.errors(include_url=False, include_context=False),
        },
    )


async def value_error_handler(request: Request, exc: ValueError):
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": "Bad Request", "detail": str(exc)},
    )


async def runtime_error_handler(request: Request, exc: RuntimeError):
    """Handle RuntimeError.

    Raised when an undo or redo no longer matches the tree (the ledger keeps
    its position) or when a request arrives before the workspace exists.
    """
    logger.error(f"Request {request.method} {request.url.path} failed: {exc}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "Workspace Operation Failed", "detail": str(exc)},
    )


async def unhandled_exception_handler(request: Request, exc: Exception):
    """Log anything unexpected and answer with an opaque 500."""
    logger.error(
        f"Unhandled {type(exc).__name__} on {request.method} {request.url.path}",
        exc_info=exc,
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "Internal Server Error", "detail": "The workspace failed to answer"},
    )


def register_exception_handlers(app) -> None:
    """Register every handler on ``app``, specific exceptions first."""
    app.add_exception_handler(ItemNotFoundError, item_not_found_handler)
    app.add_exception_handler(NameConflictError, name_conflict_handler)
    app.add_exception_handler(CyclicMoveError, cyclic_move_handler)
    app.add_exception_handler(InvalidNameError, invalid_name_handler)
    app.add_exception_handler(ConflictRequestPendingError, conflict_pending_handler)
    app.add_exception_handler(ValidationError, model_validation_handler)
    app.add_exception_handler(ValueError, value_error_handler)
    app.add_exception_handler(RuntimeError, runtime_error_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
