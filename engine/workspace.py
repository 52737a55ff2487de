"""Workspace aggregate.

The ``Workspace`` owns the tree and every piece of session state around it
(current path, clipboard, history, sync pause flag, conflict arbiter). It is
the only writer of the tree: each operation computes a new snapshot with the
pure functions in ``engine.mutations`` / ``engine.sync`` and swaps it in under
the operation lock.
"""

import json
import logging
import threading
import uuid
from collections.abc import Callable
from concurrent.futures import Future
from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, Field

from engine.clipboard import ClipboardItem, ClipboardOperation, snapshot_selection
from engine.config import WorkspaceConfig
from engine.conflicts import ConflictArbiter, ConflictResolution
from engine.exceptions import ConflictRequestPendingError
from engine.history import HistoryLedger
from engine.item import Item, ItemKind, SyncStatus
from engine.mutations import (
    FileUpload,
    TransferPlan,
    TransferResult,
    apply_transfer,
    create_file,
    create_folder,
    delete_items,
    plan_snapshot_copy,
    plan_transfer,
    plan_upload,
    rename_item,
    replay_operation,
    revert_operation,
)
from engine.operations import Operation
from engine.sync import (
    SimulatedSyncTransport,
    SyncReport,
    SyncTransport,
    ThreadingScheduler,
    find_unsynced,
    status_counts,
    update_sync_status,
    update_sync_statuses,
)
from engine.tree import TreeSnapshot

logger = logging.getLogger(__name__)

ROOT_DIRECTORY_ID = "root-directory"
ROOT_DIRECTORY_NAME = "Workspace"


class DirectoryInfo(BaseModel):
    """Summary of the folder under the navigation cursor."""

    id: str = Field(description="Folder id (root-directory for the root)")
    name: str = Field(description="Folder name")
    path: list[str] = Field(description="Full path of the folder")
    sync_status: Optional[SyncStatus] = Field(default=None, description="Sync state")
    item_count: int = Field(description="Number of direct children")
    size: int = Field(description="Total size of all files in the subtree")
    modified_at: Optional[datetime] = Field(default=None, description="Last modified")


class Workspace(BaseModel):
    """Directory-tree state engine for one workspace session.

    Responsibilities:
    - Structural mutations (create, delete, rename, move, copy, upload)
    - Clipboard cut/copy/paste
    - Undo/redo through the history ledger
    - Sync status propagation through a pluggable transport
    - Name conflict arbitration for transfers
    - Navigation cursor that always points at an existing folder

    Transfers that hit name conflicts suspend until the conflicts are
    resolved through ``resolve_conflict`` or ``dismiss_conflicts``; they
    return a ``Future`` resolving to a ``TransferResult``.

    Attributes:
        workspace_id: Unique identifier for this workspace session.
        tree: Current tree snapshot (replaced wholesale on every write).
        current_path: Navigation cursor.
        clipboard: Pending cut/copy payload.
        history: Undo/redo ledger.
        sync_paused: Whether manual and automatic sync are suspended.
        config: Engine settings.
    """

    workspace_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    tree: TreeSnapshot = Field(default_factory=TreeSnapshot.empty)
    current_path: list[str] = Field(default_factory=list)
    clipboard: Optional[ClipboardItem] = None
    history: HistoryLedger = Field(default_factory=HistoryLedger)
    sync_paused: bool = False
    config: WorkspaceConfig = Field(default_factory=WorkspaceConfig)

    class Config:
        arbitrary_types_allowed = True

    def __init__(
        self,
        transport: Optional[SyncTransport] = None,
        clock: Optional[Callable[[], datetime]] = None,
        **data,
    ):
        """Initialize with private attributes.

        Args:
            transport: Sync transport (default: simulated, timer-driven).
            clock: Source of timestamps (default: current UTC time).
        """
        super().__init__(**data)
        if self.config.history_max_size is not None and self.history.max_size is None:
            self.history.max_size = self.config.history_max_size
        self._transport = transport or SimulatedSyncTransport(
            ThreadingScheduler(),
            min_delay=self.config.sync_min_delay,
            jitter=self.config.sync_jitter,
            failure_rate=self.config.sync_failure_rate,
        )
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._arbiter = ConflictArbiter()
        self._pending_transfer: Optional[Future] = None
        self._in_flight: set[str] = set()
        self._operation_lock = threading.RLock()
        self.current_path = self.tree.deepest_existing(self.current_path)

    @classmethod
    def from_items(cls, items: list[Item], **kwargs) -> "Workspace":
        """Create a workspace whose tree holds ``items`` at the root."""
        return cls(tree=TreeSnapshot.from_items(items), **kwargs)

    @property
    def arbiter(self) -> ConflictArbiter:
        return self._arbiter

    def _now(self) -> datetime:
        return self._clock()

    def _settle_current_path(self) -> None:
        settled = self.tree.deepest_existing(self.current_path)
        if settled != self.current_path:
            logger.info(
                f"Current folder /{'/'.join(self.current_path)} no longer exists, "
                f"moved to /{'/'.join(settled)}"
            )
            self.current_path = settled

    def _commit(self, tree: TreeSnapshot, operation: Operation) -> None:
        self.tree = tree
        dropped = self.history.add_operation(operation)
        if dropped is not None:
            logger.debug(f"History full, dropped oldest entry {dropped.operation_id}")
        self._settle_current_path()

    # ===== Structural Mutations =====

    def create_folder(self, name: str, path: Optional[list[str]] = None) -> Item:
        """Create an empty folder (in the current folder by default).

        Raises:
            InvalidNameError: If the name is not usable.
            PathNotFoundError: If the path does not resolve.
            NameConflictError: If a sibling already uses the name.
        """
        with self._operation_lock:
            target = self.current_path if path is None else path
            tree, operation = create_folder(self.tree, target, name, self._now())
            self._commit(tree, operation)
            logger.info(f"Folder created: '{name}' in /{'/'.join(target)}")
            self._auto_sync([operation.folder.id])
            return operation.folder

    def create_file(
        self, name: str, path: Optional[list[str]] = None, size: int = 0
    ) -> Item:
        """Create a file (in the current folder by default).

        Raises:
            InvalidNameError: If the name is not usable.
            PathNotFoundError: If the path does not resolve.
            NameConflictError: If a sibling already uses the name.
        """
        with self._operation_lock:
            target = self.current_path if path is None else path
            tree, operation = create_file(self.tree, target, name, self._now(), size)
            self._commit(tree, operation)
            logger.info(f"File created: '{name}' in /{'/'.join(target)}")
            self._auto_sync([operation.file.id])
            return operation.file

    def delete(self, item_ids: list[str]) -> dict[str, Any]:
        """Delete items and their subtrees. Unknown ids are ignored.

        Returns:
            Dict with deleted_ids, deleted_count, operation_id.
        """
        with self._operation_lock:
            tree, operation = delete_items(self.tree, item_ids, self._now())
            if operation is None:
                logger.debug("Delete matched no items")
                return {"deleted_ids": [], "deleted_count": 0, "operation_id": None}

            self._commit(tree, operation)
            deleted_ids = [item.id for item in operation.items]
            logger.info(f"Deleted {len(deleted_ids)} item(s)")
            return {
                "deleted_ids": deleted_ids,
                "deleted_count": len(deleted_ids),
                "operation_id": operation.operation_id,
            }

    def rename(self, item_id: str, new_name: str) -> Item:
        """Rename an item in place.

        Raises:
            InvalidNameError: If the name is not usable.
            ItemNotFoundError: If the id does not exist.
            NameConflictError: If a sibling already uses the name.
        """
        with self._operation_lock:
            tree, operation = rename_item(self.tree, item_id, new_name, self._now())
            if operation is not None:
                self._commit(tree, operation)
                logger.info(f"Renamed '{operation.old_name}' to '{new_name}'")
                self._auto_sync([item_id])
            return self.tree.get_item(item_id)

    # ===== Transfers =====

    def move_items(self, item_ids: list[str], target_path: list[str]) -> Future:
        """Move items into ``target_path``.

        Returns:
            Future resolving to a ``TransferResult`` once any name conflicts
            have been resolved (already resolved when there were none).

        Raises:
            ItemNotFoundError: If a source id does not exist.
            PathNotFoundError: If the destination does not resolve.
            CyclicMoveError: If a folder would move into its own subtree.
            ConflictRequestPendingError: If conflicts are already being resolved.
        """
        with self._operation_lock:
            plan = plan_transfer(self.tree, "move", item_ids, target_path)
            return self._start_transfer(plan)

    def copy_items(self, item_ids: list[str], target_path: list[str]) -> Future:
        """Copy items (fresh ids) into ``target_path``. See ``move_items``."""
        with self._operation_lock:
            plan = plan_transfer(self.tree, "copy", item_ids, target_path)
            return self._start_transfer(plan)

    def upload_files(
        self, files: list[FileUpload], target_path: Optional[list[str]] = None
    ) -> Future:
        """Add external files to a folder (the current folder by default)."""
        with self._operation_lock:
            target = self.current_path if target_path is None else target_path
            plan = plan_upload(self.tree, files, target, self._now())
            return self._start_transfer(plan)

    def _start_transfer(self, plan: TransferPlan) -> Future:
        result_future: Future = Future()
        if not plan.has_conflicts:
            self._finish_transfer(plan, [], result_future)
            return result_future

        if self._arbiter.is_open:
            raise ConflictRequestPendingError(self._arbiter.remaining)
        conflicts_future = self._arbiter.show_conflicts(plan.conflicts)
        self._pending_transfer = result_future
        logger.info(
            f"{plan.operation.capitalize()} to /{'/'.join(plan.target_path)} "
            f"waiting on {len(plan.conflicts)} conflict(s)"
        )
        conflicts_future.add_done_callback(
            lambda done: self._finish_transfer(plan, done.result(), result_future)
        )
        return result_future

    def _finish_transfer(
        self, plan: TransferPlan, responses: list, result_future: Future
    ) -> None:
        with self._operation_lock:
            self._pending_transfer = None
            try:
                tree, operation, result = apply_transfer(
                    self.tree, plan, responses, self._now()
                )
            except Exception as e:
                logger.error(f"Failed to apply {plan.operation}: {e}", exc_info=True)
                result_future.set_exception(e)
                return

            if operation is not None:
                self._commit(tree, operation)
            logger.info(
                f"{plan.operation.capitalize()} finished: "
                f"{len(result.transferred)} placed, {len(result.skipped_ids)} skipped, "
                f"{len(result.replaced_ids)} replaced"
            )
            result_future.set_result(result)
            self._auto_sync(
                [node.id for item in result.transferred for node in item.iter_subtree()]
            )

    # ===== Conflicts =====

    def get_conflicts(self) -> dict[str, Any]:
        return self._arbiter.to_dict()

    def resolve_conflict(
        self, resolution: ConflictResolution, apply_to_all: bool = False
    ) -> Optional[TransferResult]:
        """Answer the current conflict (or all remaining ones).

        Returns:
            The transfer result if this answer completed the pending transfer,
            None otherwise.
        """
        with self._operation_lock:
            pending = self._pending_transfer
            self._arbiter.handle_resolution(resolution, apply_to_all)
            return self._completed_result(pending)

    def dismiss_conflicts(self) -> Optional[TransferResult]:
        """Close the conflict dialog, skipping every unanswered conflict."""
        with self._operation_lock:
            pending = self._pending_transfer
            self._arbiter.close_dialog()
            return self._completed_result(pending)

    @staticmethod
    def _completed_result(pending: Optional[Future]) -> Optional[TransferResult]:
        if pending is None or not pending.done():
            return None
        return pending.result()

    # ===== Clipboard =====

    def cut_to_clipboard(self, item_ids: list[str]) -> Optional[ClipboardItem]:
        """Put items on the clipboard for a later move."""
        return self._to_clipboard(item_ids, ClipboardOperation.CUT)

    def copy_to_clipboard(self, item_ids: list[str]) -> Optional[ClipboardItem]:
        """Put items on the clipboard for later copies."""
        return self._to_clipboard(item_ids, ClipboardOperation.COPY)

    def _to_clipboard(
        self, item_ids: list[str], operation: ClipboardOperation
    ) -> Optional[ClipboardItem]:
        with self._operation_lock:
            payload = snapshot_selection(self.tree, item_ids, operation)
            if payload is None:
                logger.debug(f"Nothing to {operation.value}: no id resolved")
                return None
            self.clipboard = payload
            label = "Cut" if operation == ClipboardOperation.CUT else "Copied"
            logger.info(f"Items {label}: {len(payload.items)} item(s) on the clipboard")
            return payload

    def paste_from_clipboard(self) -> Optional[Future]:
        """Paste the clipboard into the current folder.

        A cut moves the original items and clears the clipboard. A copy
        clones the items as they were when copied and keeps the clipboard for
        further pastes.

        Returns:
            Future resolving to a ``TransferResult``, or None when the
            clipboard is empty or none of its cut items still exist.
        """
        with self._operation_lock:
            payload = self.clipboard
            if payload is None:
                logger.debug("Paste ignored: clipboard is empty")
                return None

            if payload.operation == ClipboardOperation.COPY:
                plan = plan_snapshot_copy(
                    self.tree, payload.items, payload.source_path, self.current_path
                )
                return self._start_transfer(plan)

            item_ids = [item_id for item_id in payload.item_ids if self.tree.contains(item_id)]
            if not item_ids:
                logger.warning("Paste ignored: cut items no longer exist")
                self.clipboard = None
                return None

            future = self.move_items(item_ids, self.current_path)
            self.clipboard = None
            return future

    def clear_clipboard(self) -> None:
        with self._operation_lock:
            self.clipboard = None

    # ===== History =====

    def undo(self) -> dict[str, Any]:
        """Revert the most recent operation.

        Returns:
            Dict with operation summary, can_undo, can_redo, message.

        Raises:
            RuntimeError: If the tree no longer matches the operation. The
                ledger position is restored.
        """
        with self._operation_lock:
            operation = self.history.undo()
            if operation is None:
                return self._history_response(None, "Nothing to undo")
            try:
                self.tree = revert_operation(self.tree, operation)
            except RuntimeError:
                self.history.redo()
                logger.error(f"Undo of {operation.operation_id} failed", exc_info=True)
                raise
            self._release_stale_syncing()
            self._settle_current_path()
            logger.info(f"Undid: {operation.get_summary()}")
            return self._history_response(operation, f"Undid: {operation.get_summary()}")

    def redo(self) -> dict[str, Any]:
        """Re-apply the most recently undone operation.

        Raises:
            RuntimeError: If the tree no longer matches the operation. The
                ledger position is restored.
        """
        with self._operation_lock:
            operation = self.history.redo()
            if operation is None:
                return self._history_response(None, "Nothing to redo")
            try:
                self.tree = replay_operation(self.tree, operation)
            except RuntimeError:
                self.history.undo()
                logger.error(f"Redo of {operation.operation_id} failed", exc_info=True)
                raise
            self._release_stale_syncing()
            self._settle_current_path()
            logger.info(f"Redid: {operation.get_summary()}")
            return self._history_response(operation, f"Redid: {operation.get_summary()}")

    def _history_response(
        self, operation: Optional[Operation], message: str
    ) -> dict[str, Any]:
        return {
            "operation": operation.to_summary_dict() if operation else None,
            "can_undo": self.history.can_undo,
            "can_redo": self.history.can_redo,
            "message": message,
        }

    def clear_history(self) -> None:
        with self._operation_lock:
            self.history.clear_history()
            logger.info("History cleared")

    # ===== Sync =====

    def update_sync_status(self, item_id: str, status: SyncStatus) -> bool:
        """Stamp a status on one item.

        Returns:
            False when the item does not exist (no-op), True otherwise.
        """
        with self._operation_lock:
            if not self.tree.contains(item_id):
                logger.debug(f"Status update for missing item '{item_id}' ignored")
                return False
            self.tree = update_sync_status(self.tree, item_id, status)
            return True

    def retry_item(self, item_id: str) -> bool:
        """Move an item from ``error`` back to ``pending``.

        Returns:
            True if the item was in error and is now pending.

        Raises:
            ItemNotFoundError: If the id does not exist.
        """
        with self._operation_lock:
            record = self.tree.require(item_id)
            if record.sync_status != SyncStatus.ERROR:
                return False
            self.tree = update_sync_status(self.tree, item_id, SyncStatus.PENDING)
            logger.info(f"Retrying sync of '{record.name}'")
            self._auto_sync([item_id])
            return True

    def trigger_manual_sync(self) -> SyncReport:
        """Submit every ``pending`` or ``error`` item for sync."""
        with self._operation_lock:
            if self.sync_paused:
                logger.info("Sync is paused")
                return SyncReport(message="Sync is paused", paused=True)

            item_ids = find_unsynced(self.tree)
            if not item_ids:
                logger.info("Nothing to sync")
                return SyncReport(message="Nothing to sync")

            self._submit(item_ids)
            logger.info(f"Sync Started: {len(item_ids)} item(s)")
            return SyncReport(item_ids=item_ids, message=f"Syncing {len(item_ids)} item(s)")

    def toggle_sync_pause(self) -> bool:
        """Flip the pause flag. Returns the new value."""
        with self._operation_lock:
            self.sync_paused = not self.sync_paused
            logger.info(f"Sync {'paused' if self.sync_paused else 'resumed'}")
            return self.sync_paused

    def get_sync_status(self) -> dict[str, Any]:
        with self._operation_lock:
            return {
                "paused": self.sync_paused,
                "in_flight": len(self._in_flight),
                "unsynced": len(find_unsynced(self.tree)),
                "counts": status_counts(self.tree),
            }

    def _submit(self, item_ids: list[str]) -> None:
        self.tree = update_sync_statuses(self.tree, item_ids, SyncStatus.SYNCING)
        self._in_flight.update(item_ids)
        for item_id in item_ids:
            self._transport.submit(item_id, self._complete_sync)

    def _release_stale_syncing(self) -> None:
        """Return restored ``syncing`` items with nothing in flight to ``pending``."""
        stale = [
            record.id
            for record in self.tree.walk()
            if record.sync_status == SyncStatus.SYNCING
            and record.id not in self._in_flight
        ]
        if not stale:
            return
        logger.debug(f"{len(stale)} restored item(s) had no sync in flight, marked pending")
        self.tree = update_sync_statuses(self.tree, stale, SyncStatus.PENDING)
        self._auto_sync(stale)

    def _auto_sync(self, item_ids: list[str]) -> None:
        if not self.config.auto_sync or self.sync_paused:
            return
        pending = []
        for item_id in item_ids:
            record = self.tree.get(item_id)
            if record is not None and record.sync_status == SyncStatus.PENDING:
                pending.append(item_id)
        if pending:
            self._submit(pending)

    def _complete_sync(self, item_id: str, status: SyncStatus) -> None:
        with self._operation_lock:
            self._in_flight.discard(item_id)
            record = self.tree.get(item_id)
            if record is None or record.sync_status != SyncStatus.SYNCING:
                logger.debug(f"Sync result for '{item_id}' ignored: item changed or gone")
            else:
                self.tree = update_sync_status(self.tree, item_id, status)
                if status == SyncStatus.ERROR:
                    logger.warning(f"Sync failed for '{record.name}'")
                else:
                    logger.debug(f"Synced '{record.name}'")
            if not self._in_flight:
                logger.info("Sync completed")

    # ===== Navigation =====

    def navigate_to(self, path: list[str]) -> list[str]:
        """Move the cursor to ``path``.

        Raises:
            PathNotFoundError: If the path does not resolve.
        """
        with self._operation_lock:
            self.tree.resolve_path(path)
            self.current_path = list(path)
            return self.current_path

    def restore_path(self, path: list[str]) -> list[str]:
        """Move the cursor to the deepest existing prefix of ``path``."""
        with self._operation_lock:
            self.current_path = self.tree.deepest_existing(path)
            return self.current_path

    def navigate_up(self) -> list[str]:
        with self._operation_lock:
            if self.current_path:
                self.current_path = self.current_path[:-1]
            return self.current_path

    def navigate_to_root(self) -> list[str]:
        with self._operation_lock:
            self.current_path = []
            return self.current_path

    def get_current_items(self) -> list[Item]:
        with self._operation_lock:
            tree, path = self.tree, list(self.current_path)
        return tree.list_path(path)

    def get_current_directory_info(self) -> DirectoryInfo:
        """Describe the current folder; the root is a virtual folder."""
        with self._operation_lock:
            tree, path = self.tree, list(self.current_path)
        folder_id = tree.resolve_path(path)
        size = sum(
            record.size or 0
            for record in tree.walk(folder_id)
            if record.kind == ItemKind.FILE
        )
        item_count = len(tree.child_ids(folder_id))
        if folder_id is None:
            return DirectoryInfo(
                id=ROOT_DIRECTORY_ID,
                name=ROOT_DIRECTORY_NAME,
                path=[],
                sync_status=SyncStatus.HIDDEN,
                item_count=item_count,
                size=size,
            )
        record = tree.require(folder_id)
        return DirectoryInfo(
            id=record.id,
            name=record.name,
            path=path,
            sync_status=record.sync_status,
            item_count=item_count,
            size=size,
            modified_at=record.modified_at,
        )

    # ===== Drag and Drop =====

    def handle_drop(self, payload: str, target_path: list[str]) -> Optional[Future]:
        """Move a dragged item into ``target_path``.

        ``payload`` is the JSON drag data, an object with at least an ``id``.
        Malformed payloads and drops of a folder onto itself are ignored.

        Returns:
            Future resolving to a ``TransferResult``, or None when ignored.
        """
        try:
            data = json.loads(payload)
        except json.JSONDecodeError as e:
            logger.warning(f"Ignoring malformed drop payload: {e}")
            return None
        if not isinstance(data, dict) or not isinstance(data.get("id"), str):
            logger.warning("Ignoring drop payload without an item id")
            return None

        item_id = data["id"]
        with self._operation_lock:
            if self.tree.resolve_path(target_path) == item_id:
                logger.debug(f"Ignoring drop of '{item_id}' onto itself")
                return None
            return self.move_items([item_id], target_path)

    # ===== State Access =====

    def get_snapshot(self) -> TreeSnapshot:
        return self.tree

    def get_item(self, item_id: str) -> Item:
        return self.tree.get_item(item_id)

    def list_items(self, path: list[str]) -> list[Item]:
        return self.tree.list_path(path)

    def validate(self) -> list[str]:
        """Validate workspace consistency.

        Returns:
            List of validation errors (empty if valid).
        """
        with self._operation_lock:
            tree, path = self.tree, list(self.current_path)
        errors = [f"Tree: {issue}" for issue in tree.validate()]
        if not tree.path_exists(path):
            errors.append(f"Current path /{'/'.join(path)} does not resolve")
        return errors

    def to_dict(self) -> dict[str, Any]:
        """Summarise session state for API responses."""
        with self._operation_lock:
            return {
                "workspace_id": self.workspace_id,
                "version": self.tree.version,
                "item_count": len(self.tree),
                "current_path": self.current_path,
                "clipboard": self.clipboard.to_dict() if self.clipboard else None,
                "history": {
                    "can_undo": self.history.can_undo,
                    "can_redo": self.history.can_redo,
                    "undo_count": self.history.undo_count,
                    "redo_count": self.history.redo_count,
                },
                "sync_paused": self.sync_paused,
                "conflicts_open": self._arbiter.is_open,
            }

    def shutdown(self) -> None:
        """Stop pending sync timers and release the conflict dialog."""
        with self._operation_lock:
            self._arbiter.close_dialog()
            self._transport.shutdown()
            logger.info(f"Workspace {self.workspace_id} shut down")
