"""Workspace tree engine package.

This package contains the directory-tree state engine: the item model, the
arena-backed tree snapshot, pure mutation functions, the undo/redo ledger,
clipboard, sync propagation, conflict arbitration and the ``Workspace``
aggregate that ties them together.
"""

from engine.clipboard import ClipboardItem, ClipboardOperation
from engine.config import WorkspaceConfig
from engine.conflicts import ConflictArbiter, ConflictItem, ConflictResolution, ConflictResponse
from engine.history import HistoryLedger
from engine.item import Item, ItemData, ItemKind, Permission, PermissionType, SyncStatus
from engine.mutations import FileUpload, TransferPlan, TransferResult
from engine.operations import Operation, OperationType
from engine.sync import ManualScheduler, SimulatedSyncTransport, ThreadingScheduler
from engine.tree import TreeBuilder, TreeSnapshot
from engine.workspace import DirectoryInfo, Workspace

__all__ = [
    "ClipboardItem",
    "ClipboardOperation",
    "WorkspaceConfig",
    "ConflictArbiter",
    "ConflictItem",
    "ConflictResolution",
    "ConflictResponse",
    "HistoryLedger",
    "Item",
    "ItemData",
    "ItemKind",
    "Permission",
    "PermissionType",
    "SyncStatus",
    "FileUpload",
    "TransferPlan",
    "TransferResult",
    "Operation",
    "OperationType",
    "ManualScheduler",
    "SimulatedSyncTransport",
    "ThreadingScheduler",
    "TreeBuilder",
    "TreeSnapshot",
    "DirectoryInfo",
    "Workspace",
]
