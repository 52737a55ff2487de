"""Undo/Redo history ledger.

The ledger records intent only. It never touches the tree: the workspace
asks the mutation engine to revert or replay whatever operation the ledger
hands back.

- ``past``: operations available for undo (oldest first, newest at end)
- ``future``: operations available for redo (next to redo at front)
"""

from typing import Any, Optional

from pydantic import BaseModel, Field, TypeAdapter, field_validator, model_validator

from engine.operations import Operation

_operation_adapter: TypeAdapter = TypeAdapter(Operation)


class HistoryLedger(BaseModel):
    """Two-stack undo/redo ledger.

    - ``add_operation()`` appends to ``past`` and clears ``future`` (a new
      action invalidates the redo branch)
    - ``undo()`` moves the newest ``past`` entry to the front of ``future``
    - ``redo()`` moves the front of ``future`` back onto ``past``

    An operation is never in both stacks. The ledger has an optional maximum
    size; when exceeded, the oldest entries are discarded.

    Args:
        past: Operations available for undo (newest at end).
        future: Operations available for redo (next to redo first).
        max_size: Maximum number of entries per stack (None = unlimited).

    Examples:
        ledger = HistoryLedger(max_size=100)
        ledger.add_operation(operation)

        operation = ledger.undo()
        if operation is not None:
            tree = revert_operation(tree, operation)
    """

    past: list[Operation] = Field(
        default_factory=list,
        description="Operations available for undo (newest at end)",
    )
    future: list[Operation] = Field(
        default_factory=list,
        description="Operations available for redo (next to redo first)",
    )
    max_size: Optional[int] = Field(
        default=None,
        description="Maximum number of entries per stack (None = unlimited)",
    )

    @field_validator("max_size")
    @classmethod
    def validate_max_size(cls, v: Optional[int]) -> Optional[int]:
        """Validate that max_size is positive if provided.

        Raises:
            ValueError: If max_size is not positive.
        """
        if v is not None and v <= 0:
            raise ValueError("max_size must be positive")
        return v

    @model_validator(mode="after")
    def trim_entries_to_max_size(self) -> "HistoryLedger":
        """Trim entries if they exceed max_size."""
        if self.max_size is not None:
            if len(self.past) > self.max_size:
                self.past = self.past[-self.max_size :]
            if len(self.future) > self.max_size:
                self.future = self.future[: self.max_size]
        return self

    @property
    def can_undo(self) -> bool:
        return len(self.past) > 0

    @property
    def can_redo(self) -> bool:
        return len(self.future) > 0

    @property
    def undo_count(self) -> int:
        return len(self.past)

    @property
    def redo_count(self) -> int:
        return len(self.future)

    def add_operation(self, operation: Operation) -> Optional[Operation]:
        """Record a newly applied operation.

        Clears ``future`` (new timeline). If max_size is exceeded, the oldest
        entry is dropped.

        Returns:
            The dropped oldest entry if max_size was exceeded, None otherwise.
        """
        self.future.clear()
        self.past.append(operation)

        if self.max_size is not None and len(self.past) > self.max_size:
            return self.past.pop(0)
        return None

    def undo(self) -> Optional[Operation]:
        """Move the newest operation from ``past`` to the front of ``future``.

        Returns:
            The operation to revert, or None when there is nothing to undo.
        """
        if not self.past:
            return None
        operation = self.past.pop()
        self.future.insert(0, operation)
        if self.max_size is not None and len(self.future) > self.max_size:
            self.future.pop()
        return operation

    def redo(self) -> Optional[Operation]:
        """Move the front of ``future`` back onto ``past``.

        Returns:
            The operation to replay, or None when there is nothing to redo.
        """
        if not self.future:
            return None
        operation = self.future.pop(0)
        self.past.append(operation)
        return operation

    def clear_history(self) -> None:
        """Empty both stacks."""
        self.past.clear()
        self.future.clear()

    def get_undo_summary(self) -> list[dict[str, Any]]:
        """Summaries of undoable operations, most recent first."""
        return [operation.to_summary_dict() for operation in reversed(self.past)]

    def get_redo_summary(self) -> list[dict[str, Any]]:
        """Summaries of redoable operations, next to redo first."""
        return [operation.to_summary_dict() for operation in self.future]

    def to_dict(self) -> dict[str, Any]:
        """Convert this ledger to a dictionary.

        Returns:
            Dictionary representation suitable for serialization.
        """
        return {
            "past": [_operation_adapter.dump_python(op, mode="json") for op in self.past],
            "future": [
                _operation_adapter.dump_python(op, mode="json") for op in self.future
            ],
            "max_size": self.max_size,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "HistoryLedger":
        """Create a HistoryLedger from a dictionary."""
        return cls(
            past=[_operation_adapter.validate_python(op) for op in data.get("past", [])],
            future=[
                _operation_adapter.validate_python(op) for op in data.get("future", [])
            ],
            max_size=data.get("max_size"),
        )
