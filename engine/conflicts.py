"""Conflict resolution arbiter.

When a move, copy or upload would place an item where a sibling already has
the same name, the workspace asks the arbiter how to proceed. The arbiter
presents the conflicts one at a time and collects a resolution for each:

    idle --show_conflicts--> presenting(0) --handle_resolution--> presenting(1)
         ... --last resolution / apply_to_all / close_dialog--> idle

The caller receives a ``concurrent.futures.Future`` that resolves to the
full list of responses once every conflict is answered.
"""

import logging
from concurrent.futures import Future
from enum import Enum
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field

from engine.exceptions import ConflictRequestPendingError
from engine.item import Item

logger = logging.getLogger(__name__)


class ConflictResolution(str, Enum):
    """How to settle a single name conflict."""

    REPLACE = "replace"
    RENAME = "rename"
    SKIP = "skip"


class ArbiterState(str, Enum):
    IDLE = "idle"
    PRESENTING = "presenting"


class ConflictItem(BaseModel):
    """A proposed placement that collides with an existing sibling.

    Args:
        operation: The transfer that produced the conflict.
        source_item: The item being placed.
        existing_item: The item already using the name at the destination.
    """

    operation: Literal["move", "copy", "upload"] = Field(
        description="Transfer that produced the conflict"
    )
    source_item: Item = Field(description="Item being placed")
    existing_item: Item = Field(description="Item already at the destination")

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json")


class ConflictResponse(BaseModel):
    """A resolution chosen for one conflict."""

    conflict: ConflictItem = Field(description="The conflict being answered")
    resolution: ConflictResolution = Field(description="Chosen resolution")


class ConflictArbiter:
    """Collects resolutions for a batch of name conflicts.

    Only one request may be pending at a time. A second ``show_conflicts``
    while the first is unresolved raises ``ConflictRequestPendingError``.

    Example:
        >>> future = arbiter.show_conflicts(conflicts)
        >>> arbiter.handle_resolution(ConflictResolution.RENAME, apply_to_all=True)
        >>> [r.resolution for r in future.result()]
        ['rename', 'rename']
    """

    def __init__(self) -> None:
        self._conflicts: list[ConflictItem] = []
        self._responses: list[ConflictResponse] = []
        self._future: Optional[Future] = None

    @property
    def state(self) -> ArbiterState:
        return ArbiterState.PRESENTING if self._future is not None else ArbiterState.IDLE

    @property
    def is_open(self) -> bool:
        return self._future is not None

    @property
    def conflicts(self) -> list[ConflictItem]:
        return list(self._conflicts)

    @property
    def current_index(self) -> int:
        return len(self._responses)

    @property
    def current_conflict(self) -> Optional[ConflictItem]:
        if not self.is_open:
            return None
        return self._conflicts[self.current_index]

    @property
    def remaining(self) -> int:
        return len(self._conflicts) - len(self._responses)

    def show_conflicts(self, conflicts: list[ConflictItem]) -> Future:
        """Start presenting a batch of conflicts.

        Args:
            conflicts: Conflicts to resolve, in presentation order.

        Returns:
            Future resolving to ``list[ConflictResponse]``, in the same order.

        Raises:
            ConflictRequestPendingError: If another request is still open.
        """
        if self._future is not None:
            raise ConflictRequestPendingError(self.remaining)

        future: Future = Future()
        if not conflicts:
            future.set_result([])
            return future

        self._conflicts = list(conflicts)
        self._responses = []
        self._future = future
        logger.info(f"Presenting {len(conflicts)} conflict(s)")
        return future

    def handle_resolution(
        self, resolution: ConflictResolution, apply_to_all: bool = False
    ) -> None:
        """Answer the current conflict, or all remaining ones.

        Calling this while idle is ignored.
        """
        if self._future is None:
            logger.warning("Ignoring conflict resolution: no conflicts are pending")
            return

        resolution = ConflictResolution(resolution)
        pending = self._conflicts[len(self._responses):]
        if not apply_to_all:
            pending = pending[:1]
        for conflict in pending:
            self._responses.append(
                ConflictResponse(conflict=conflict, resolution=resolution)
            )
        logger.debug(
            f"Resolved {len(pending)} conflict(s) as {resolution.value}, "
            f"{self.remaining} remaining"
        )

        if self.remaining == 0:
            self._finish()

    def close_dialog(self) -> None:
        """Dismiss the request, skipping every unanswered conflict."""
        if self._future is None:
            return
        logger.info(f"Conflict dialog closed, skipping {self.remaining} conflict(s)")
        self.handle_resolution(ConflictResolution.SKIP, apply_to_all=True)

    def _finish(self) -> None:
        future, responses = self._future, self._responses
        self._future = None
        self._conflicts = []
        self._responses = []
        future.set_result(responses)

    def to_dict(self) -> dict[str, Any]:
        """Convert the arbiter state to a JSON-compatible dictionary."""
        current = self.current_conflict
        return {
            "state": self.state.value,
            "current_index": self.current_index if self.is_open else None,
            "remaining": self.remaining,
            "current_conflict": current.to_dict() if current else None,
            "conflicts": [conflict.to_dict() for conflict in self._conflicts],
        }
