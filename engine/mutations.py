"""Mutation engine: pure snapshot-to-snapshot tree operations.

Every function takes a ``TreeSnapshot`` and returns a new one together with
the ``Operation`` record that describes the change (or ``None`` when nothing
changed). The input snapshot is never modified. Any exception leaves the
caller's snapshot exactly as it was.

Transfers (move, copy, upload) run in two steps so that name collisions can
be settled by the conflict arbiter in between:

1. ``plan_transfer`` / ``plan_snapshot_copy`` / ``plan_upload`` validate the
   request and list the conflicts.
2. ``apply_transfer`` applies the batch with the chosen resolutions.
"""

import logging
from datetime import datetime, timezone
from typing import Literal, Optional

from pydantic import BaseModel, Field

from engine.conflicts import ConflictItem, ConflictResolution, ConflictResponse
from engine.exceptions import (
    CyclicMoveError,
    InvalidNameError,
    NameConflictError,
    WorkspaceError,
)
from engine.item import Item, ItemKind, SyncStatus, new_item_id
from engine.operations import (
    CopyOperation,
    CreateFileOperation,
    CreateFolderOperation,
    DeleteOperation,
    MoveOperation,
    Operation,
    OperationType,
    Placement,
    RenameOperation,
    UploadOperation,
)
from engine.tree import TreeBuilder, TreeSnapshot

logger = logging.getLogger(__name__)

TransferKind = Literal["move", "copy", "upload"]


def validate_name(name: str) -> str:
    """Check that a name can be used for an item.

    Raises:
        InvalidNameError: If the name is empty, blank or contains '/'.
    """
    if not name or not name.strip() or "/" in name:
        raise InvalidNameError(name)
    return name


# ===== Create / Delete / Rename =====


def _create(
    tree: TreeSnapshot, path: list[str], item: Item
) -> tuple[TreeSnapshot, Placement]:
    parent_id = tree.resolve_path(path)
    existing = tree.child_named(parent_id, item.name)
    if existing is not None:
        raise NameConflictError(item.name, path, existing.id)

    builder = TreeBuilder(tree)
    builder.attach(parent_id, item)
    new_tree = builder.build()
    return new_tree, Placement(
        parent_id=parent_id, index=new_tree.index_of(item.id), item=item
    )


def create_folder(
    tree: TreeSnapshot, path: list[str], name: str, now: datetime
) -> tuple[TreeSnapshot, CreateFolderOperation]:
    """Create an empty folder under ``path``.

    Args:
        tree: Current snapshot.
        path: Folder to create in.
        name: Name of the new folder.
        now: Timestamp for created_at/modified_at.

    Returns:
        Tuple of (new snapshot, operation record).

    Raises:
        InvalidNameError: If the name is not usable.
        PathNotFoundError: If ``path`` does not resolve.
        NameConflictError: If a sibling already has ``name``.
    """
    validate_name(name)
    folder = Item(
        name=name,
        kind=ItemKind.FOLDER,
        created_at=now,
        modified_at=now,
        sync_status=SyncStatus.PENDING,
        children=[],
    )
    new_tree, placement = _create(tree, path, folder)
    operation = CreateFolderOperation(
        folder=folder, path=list(path), after=[placement], performed_at=now
    )
    return new_tree, operation


def create_file(
    tree: TreeSnapshot, path: list[str], name: str, now: datetime, size: int = 0
) -> tuple[TreeSnapshot, CreateFileOperation]:
    """Create a file under ``path``. Same rules as ``create_folder``."""
    validate_name(name)
    file = Item(
        name=name,
        kind=ItemKind.FILE,
        size=size,
        created_at=now,
        modified_at=now,
        sync_status=SyncStatus.PENDING,
    )
    new_tree, placement = _create(tree, path, file)
    operation = CreateFileOperation(
        file=file, path=list(path), after=[placement], performed_at=now
    )
    return new_tree, operation


def _selection_roots(tree: TreeSnapshot, item_ids: list[str]) -> list[str]:
    """Drop duplicates and items whose ancestor is also selected."""
    selected = list(dict.fromkeys(item_ids))
    selected_set = set(selected)
    roots = []
    for item_id in selected:
        parent_id = tree.parent_of(item_id)
        nested = False
        while parent_id is not None:
            if parent_id in selected_set:
                nested = True
                break
            parent_id = tree.parent_of(parent_id)
        if not nested:
            roots.append(item_id)
    return roots


def delete_items(
    tree: TreeSnapshot, item_ids: list[str], now: Optional[datetime] = None
) -> tuple[TreeSnapshot, Optional[DeleteOperation]]:
    """Remove items and their subtrees.

    Unknown ids are ignored. When nothing matches, the same snapshot is
    returned with no operation record, so deleting twice is the same as
    deleting once.
    """
    found = [item_id for item_id in item_ids if tree.contains(item_id)]
    if len(found) < len(item_ids):
        logger.debug(f"Ignoring {len(item_ids) - len(found)} unknown id(s) in delete")
    roots = _selection_roots(tree, found)
    if not roots:
        return tree, None

    before = [
        Placement(
            parent_id=tree.parent_of(item_id),
            index=tree.index_of(item_id),
            item=tree.get_item(item_id),
        )
        for item_id in roots
    ]
    builder = TreeBuilder(tree)
    for item_id in roots:
        builder.detach(item_id)

    operation = DeleteOperation(
        items=[placement.item for placement in before],
        paths=[tree.path_of(item_id) for item_id in roots],
        before=before,
        performed_at=now or datetime.now(timezone.utc),
    )
    return builder.build(), operation


def rename_item(
    tree: TreeSnapshot, item_id: str, new_name: str, now: datetime
) -> tuple[TreeSnapshot, Optional[RenameOperation]]:
    """Rename an item in place.

    Renaming to the current name is a no-op. A rename stamps the item as
    ``pending`` and updates ``modified_at``.

    Raises:
        InvalidNameError: If the new name is not usable.
        ItemNotFoundError: If the id does not exist.
        NameConflictError: If a sibling already has ``new_name``.
    """
    validate_name(new_name)
    record = tree.require(item_id)
    if record.name == new_name:
        return tree, None

    parent_id = tree.parent_of(item_id)
    path = tree.path_of(item_id)
    existing = tree.child_named(parent_id, new_name)
    if existing is not None:
        raise NameConflictError(new_name, path, existing.id)

    index = tree.index_of(item_id)
    builder = TreeBuilder(tree)
    builder.replace(
        record.model_copy(
            update={
                "name": new_name,
                "modified_at": now,
                "sync_status": SyncStatus.PENDING,
            }
        )
    )
    new_tree = builder.build()
    operation = RenameOperation(
        item_id=item_id,
        old_name=record.name,
        new_name=new_name,
        path=path,
        before=[Placement(parent_id=parent_id, index=index, item=tree.get_item(item_id))],
        after=[
            Placement(parent_id=parent_id, index=index, item=new_tree.get_item(item_id))
        ],
        performed_at=now,
    )
    return new_tree, operation


# ===== Cloning and naming =====


def _clone(item: Item) -> Item:
    fields = dict(item)
    fields["id"] = new_item_id()
    fields["sync_status"] = SyncStatus.PENDING
    if item.is_folder:
        fields["children"] = [_clone(child) for child in item.children or []]
    return Item(**fields)


def deep_clone(items: list[Item]) -> list[Item]:
    """Clone subtrees with a fresh id at every node.

    Names, sizes, timestamps and permissions are preserved. Every clone is
    marked ``pending``.
    """
    return [_clone(item) for item in items]


def copy_name(name: str, taken: set[str], is_folder: bool = False) -> str:
    """Return the first free name of the form ``base (copy).ext``.

    Later candidates are ``base (copy 2).ext``, ``base (copy 3).ext``, ...
    Folders and dot-files keep the whole name as the base.

    Example:
        >>> copy_name("report.pdf", {"report.pdf", "report (copy).pdf"})
        'report (copy 2).pdf'
    """
    dot = name.rfind(".")
    if is_folder or dot <= 0:
        base, ext = name, ""
    else:
        base, ext = name[:dot], name[dot:]

    candidate = f"{base} (copy){ext}"
    counter = 2
    while candidate in taken:
        candidate = f"{base} (copy {counter}){ext}"
        counter += 1
    return candidate


# ===== Transfers =====


class FileUpload(BaseModel):
    """An external file dropped into the workspace."""

    name: str = Field(description="File name")
    size: int = Field(default=0, ge=0, description="Size in bytes")


class TransferPlan(BaseModel):
    """A validated move, copy or upload waiting for conflict resolutions.

    Args:
        operation: Kind of transfer.
        sources: Items to place, as they were when planned.
        source_path: Folder of the first source (empty for uploads).
        target_path: Destination folder.
        target_id: Destination folder id (None = root).
        conflicts: Name collisions that need a resolution.
        noop_ids: Sources already in the destination folder (moves only).
        from_snapshot: Sources are captured items, cloned as they were
            captured rather than looked up in the tree (clipboard copies).
    """

    operation: TransferKind = Field(description="Kind of transfer")
    sources: list[Item] = Field(default_factory=list, description="Items to place")
    source_path: list[str] = Field(default_factory=list, description="Source folder")
    target_path: list[str] = Field(description="Destination folder")
    target_id: Optional[str] = Field(default=None, description="Destination folder id")
    conflicts: list[ConflictItem] = Field(
        default_factory=list, description="Collisions needing a resolution"
    )
    noop_ids: list[str] = Field(
        default_factory=list, description="Sources already at the destination"
    )
    from_snapshot: bool = Field(
        default=False, description="Clone sources as captured, not from the tree"
    )

    @property
    def has_conflicts(self) -> bool:
        return len(self.conflicts) > 0


class TransferResult(BaseModel):
    """Outcome of an applied transfer."""

    operation: TransferKind = Field(description="Kind of transfer")
    target_path: list[str] = Field(description="Destination folder")
    transferred: list[Item] = Field(
        default_factory=list, description="Items placed at the destination"
    )
    skipped_ids: list[str] = Field(default_factory=list, description="Skipped sources")
    replaced_ids: list[str] = Field(
        default_factory=list, description="Destination items removed by replace"
    )
    renamed: dict[str, str] = Field(
        default_factory=dict, description="Placed item id -> name given by rename"
    )
    unchanged_ids: list[str] = Field(
        default_factory=list, description="Sources already at the destination"
    )
    operation_id: Optional[str] = Field(
        default=None, description="History record id (None when nothing changed)"
    )

    def to_dict(self) -> dict:
        return self.model_dump(mode="json")


def _plan_conflicts(
    tree: TreeSnapshot,
    operation: TransferKind,
    sources: list[Item],
    target_id: Optional[str],
) -> tuple[list[ConflictItem], list[str]]:
    claimed: dict[str, Item] = {}
    conflicts: list[ConflictItem] = []
    noop_ids: list[str] = []

    for source in sources:
        if operation == "move" and tree.parent_of(source.id) == target_id:
            noop_ids.append(source.id)
            continue
        existing = claimed.get(source.name)
        if existing is None:
            record = tree.child_named(target_id, source.name)
            if record is not None:
                existing = tree.get_item(record.id)
        if existing is not None:
            conflicts.append(
                ConflictItem(
                    operation=operation, source_item=source, existing_item=existing
                )
            )
        else:
            claimed[source.name] = source
    return conflicts, noop_ids


def plan_transfer(
    tree: TreeSnapshot,
    operation: Literal["move", "copy"],
    item_ids: list[str],
    target_path: list[str],
) -> TransferPlan:
    """Validate a move or copy and list its name conflicts.

    Collisions are checked against the destination's children and against
    names claimed by earlier items of the same batch. Moving an item into
    the folder it already lives in is a no-op for that item.

    Raises:
        ItemNotFoundError: If a source id does not exist.
        PathNotFoundError: If ``target_path`` does not resolve.
        CyclicMoveError: If a folder would move into itself or a descendant.
    """
    for item_id in item_ids:
        tree.require(item_id)
    target_id = tree.resolve_path(target_path)
    roots = _selection_roots(tree, item_ids)

    if operation == "move" and target_id is not None:
        for item_id in roots:
            if item_id == target_id or tree.is_ancestor(item_id, target_id):
                raise CyclicMoveError(item_id, target_path)

    sources = [tree.get_item(item_id) for item_id in roots]
    conflicts, noop_ids = _plan_conflicts(tree, operation, sources, target_id)
    return TransferPlan(
        operation=operation,
        sources=sources,
        source_path=tree.path_of(roots[0]) if roots else [],
        target_path=list(target_path),
        target_id=target_id,
        conflicts=conflicts,
        noop_ids=noop_ids,
    )


def plan_snapshot_copy(
    tree: TreeSnapshot,
    items: list[Item],
    source_path: list[str],
    target_path: list[str],
) -> TransferPlan:
    """Plan a copy of items captured earlier, such as a clipboard payload.

    The items are cloned as they were captured, so renaming or deleting the
    originals afterwards does not change what gets pasted. Items nested
    inside another captured item are copied with it only.

    Raises:
        PathNotFoundError: If ``target_path`` does not resolve.
    """
    target_id = tree.resolve_path(target_path)
    nested = {
        node.id for item in items for node in item.iter_subtree() if node.id != item.id
    }
    sources = [item for item in items if item.id not in nested]
    conflicts, _ = _plan_conflicts(tree, "copy", sources, target_id)
    return TransferPlan(
        operation="copy",
        sources=sources,
        source_path=list(source_path),
        target_path=list(target_path),
        target_id=target_id,
        conflicts=conflicts,
        from_snapshot=True,
    )


def plan_upload(
    tree: TreeSnapshot,
    files: list[FileUpload],
    target_path: list[str],
    now: datetime,
) -> TransferPlan:
    """Turn external files into new pending file items and list conflicts.

    Raises:
        InvalidNameError: If a file name is not usable.
        PathNotFoundError: If ``target_path`` does not resolve.
    """
    target_id = tree.resolve_path(target_path)
    sources = [
        Item(
            name=validate_name(upload.name),
            kind=ItemKind.FILE,
            size=upload.size,
            created_at=now,
            modified_at=now,
            sync_status=SyncStatus.PENDING,
        )
        for upload in files
    ]
    conflicts, _ = _plan_conflicts(tree, "upload", sources, target_id)
    return TransferPlan(
        operation="upload",
        sources=sources,
        target_path=list(target_path),
        target_id=target_id,
        conflicts=conflicts,
    )


def apply_transfer(
    tree: TreeSnapshot,
    plan: TransferPlan,
    responses: list[ConflictResponse],
    now: datetime,
) -> tuple[TreeSnapshot, Optional[Operation], TransferResult]:
    """Apply a planned transfer with the chosen conflict resolutions.

    Sources and destination are looked up again by id, so the tree may have
    changed since planning. Sources that no longer exist are skipped, except
    for snapshot copies, which clone the captured items. A
    collision without a recorded resolution is settled as ``rename``. A
    ``replace`` whose existing item contains the moved source is settled as
    ``skip``.

    Args:
        tree: Current snapshot.
        plan: The plan returned by ``plan_transfer`` or ``plan_upload``.
        responses: Resolutions collected by the arbiter.
        now: Timestamp for the operation record.

    Returns:
        Tuple of (new snapshot, operation record or None, result summary).

    Raises:
        CyclicMoveError: If the destination now lies inside a moved folder.
    """
    resolutions = {
        response.conflict.source_item.id: response.resolution for response in responses
    }
    result = TransferResult(operation=plan.operation, target_path=plan.target_path)
    target_id = plan.target_id

    if target_id is not None and not tree.contains(target_id):
        logger.warning(
            f"Destination of {plan.operation} no longer exists, skipping "
            f"{len(plan.sources)} item(s)"
        )
        result.skipped_ids = [source.id for source in plan.sources]
        return tree, None, result
    if target_id is not None:
        result.target_path = tree.full_path(target_id)

    if plan.operation == "move" and target_id is not None:
        for source in plan.sources:
            if tree.contains(source.id) and (
                source.id == target_id or tree.is_ancestor(source.id, target_id)
            ):
                raise CyclicMoveError(source.id, result.target_path)

    builder = TreeBuilder(tree)
    moved_before: list[Placement] = []
    replaced_before: list[Placement] = []
    placed: list[str] = []

    for source in plan.sources:
        if (
            plan.operation != "upload"
            and not plan.from_snapshot
            and not builder.contains(source.id)
        ):
            logger.warning(f"Skipping {plan.operation} of missing item '{source.id}'")
            result.skipped_ids.append(source.id)
            continue
        if plan.operation == "move" and builder.parent_of(source.id) == target_id:
            result.unchanged_ids.append(source.id)
            continue

        name = source.name
        renamed = False
        existing = builder.child_named(target_id, name)
        if existing is not None:
            resolution = resolutions.get(source.id, ConflictResolution.RENAME)
            if resolution == ConflictResolution.REPLACE and plan.operation != "upload":
                if existing.id == source.id or builder.is_ancestor(existing.id, source.id):
                    logger.warning(
                        f"Cannot replace '{existing.name}': it contains the source item"
                    )
                    resolution = ConflictResolution.SKIP

            if resolution == ConflictResolution.SKIP:
                result.skipped_ids.append(source.id)
                continue
            if resolution == ConflictResolution.RENAME:
                name = copy_name(name, builder.child_names(target_id), source.is_folder)
                renamed = True
            else:
                builder.detach(existing.id)
                if existing.id in placed:
                    placed.remove(existing.id)
                else:
                    replaced_before.append(
                        Placement(
                            parent_id=target_id,
                            index=tree.index_of(existing.id),
                            item=tree.get_item(existing.id),
                        )
                    )
                result.replaced_ids.append(existing.id)

        if plan.operation == "move":
            moved_before.append(
                Placement(
                    parent_id=tree.parent_of(source.id),
                    index=tree.index_of(source.id),
                    item=tree.get_item(source.id),
                )
            )
            item = builder.detach(source.id).model_copy(
                update={"name": name, "sync_status": SyncStatus.PENDING}
            )
        elif plan.operation == "copy":
            original = source if plan.from_snapshot else builder.materialize(source.id)
            item = deep_clone([original])[0]
            if renamed:
                item = item.model_copy(update={"name": name})
        else:
            item = source.model_copy(update={"name": name})

        builder.attach(target_id, item)
        placed.append(item.id)
        if renamed:
            result.renamed[item.id] = name

    if not placed and not replaced_before and not moved_before:
        return tree, None, result

    new_tree = builder.build()
    after = [
        Placement(
            parent_id=target_id,
            index=new_tree.index_of(item_id),
            item=new_tree.get_item(item_id),
        )
        for item_id in placed
    ]
    result.transferred = [placement.item for placement in after]
    before = moved_before + replaced_before
    replaced = [placement.item for placement in replaced_before]

    if plan.operation == "move":
        operation = MoveOperation(
            items=[placement.item for placement in moved_before],
            source_path=plan.source_path,
            target_path=result.target_path,
            replaced=replaced,
            renamed=result.renamed,
            before=before,
            after=after,
            performed_at=now,
        )
    elif plan.operation == "copy":
        operation = CopyOperation(
            items=result.transferred,
            source_path=plan.source_path,
            target_path=result.target_path,
            replaced=replaced,
            renamed=result.renamed,
            before=before,
            after=after,
            performed_at=now,
        )
    else:
        operation = UploadOperation(
            files=result.transferred,
            path=result.target_path,
            replaced=replaced,
            renamed=result.renamed,
            before=before,
            after=after,
            performed_at=now,
        )
    result.operation_id = operation.operation_id
    return new_tree, operation, result


# ===== Undo / Redo =====


def _apply_placements(
    tree: TreeSnapshot,
    operation: Operation,
    detach: list[Placement],
    attach: list[Placement],
) -> TreeSnapshot:
    builder = TreeBuilder(tree)
    try:
        for placement in detach:
            builder.detach(placement.item.id)
        for placement in sorted(attach, key=lambda p: p.index):
            builder.attach(placement.parent_id, placement.item, placement.index)
    except (WorkspaceError, ValueError) as e:
        raise RuntimeError(
            f"Cannot apply '{operation.type}' operation {operation.operation_id}: {e}"
        ) from e
    return builder.build()


def _swap_record(tree: TreeSnapshot, operation: Operation, item: Item) -> TreeSnapshot:
    builder = TreeBuilder(tree)
    try:
        builder.replace(item.to_data())
    except WorkspaceError as e:
        raise RuntimeError(
            f"Cannot apply '{operation.type}' operation {operation.operation_id}: {e}"
        ) from e
    return builder.build()


def revert_operation(tree: TreeSnapshot, operation: Operation) -> TreeSnapshot:
    """Return the snapshot with ``operation`` undone.

    Raises:
        RuntimeError: If the tree no longer matches the operation's result.
    """
    if operation.type == OperationType.RENAME:
        return _swap_record(tree, operation, operation.before[0].item)
    return _apply_placements(tree, operation, operation.after, operation.before)


def replay_operation(tree: TreeSnapshot, operation: Operation) -> TreeSnapshot:
    """Return the snapshot with ``operation`` applied again.

    Raises:
        RuntimeError: If the tree no longer matches the operation's starting point.
    """
    if operation.type == OperationType.RENAME:
        return _swap_record(tree, operation, operation.after[0].item)
    return _apply_placements(tree, operation, operation.before, operation.after)
