"""Unit tests for the mutation engine.

This module tests the pure snapshot-to-snapshot operations:
- create_folder / create_file / delete_items / rename_item
- copy naming and deep cloning
- plan_transfer / plan_upload / apply_transfer with conflict resolutions
- revert_operation / replay_operation
"""

import pytest

from engine.conflicts import ConflictResolution, ConflictResponse
from engine.exceptions import (
    CyclicMoveError,
    InvalidNameError,
    ItemNotFoundError,
    NameConflictError,
    PathNotFoundError,
)
from engine.item import SyncStatus
from engine.mutations import (
    FileUpload,
    apply_transfer,
    copy_name,
    create_file,
    create_folder,
    deep_clone,
    delete_items,
    plan_snapshot_copy,
    plan_transfer,
    plan_upload,
    rename_item,
    replay_operation,
    revert_operation,
    validate_name,
)
from engine.operations import OperationType
from engine.tree import TreeSnapshot
from tests.fixtures.tree import (
    FIXED_TIME,
    create_file_item,
    create_folder_item,
    create_sample_items,
    subtree_shape,
)


def respond_all(plan, resolution):
    """Answer every conflict of a plan with the same resolution."""
    return [
        ConflictResponse(conflict=conflict, resolution=resolution)
        for conflict in plan.conflicts
    ]


def tree_with_archived_duplicate() -> TreeSnapshot:
    """Sample tree where /archive already holds a 'fileX.txt' (id 'old')."""
    items = create_sample_items()
    items[1] = create_folder_item(
        "archive",
        item_id="archive",
        children=[create_file_item("fileX.txt", size=1, item_id="old")],
    )
    return TreeSnapshot.from_items(items)


# =============================================================================
# Create / Delete / Rename
# =============================================================================


class TestValidateName:
    """Test name validation."""

    @pytest.mark.parametrize("name", ["", "   ", "a/b", "/"])
    def test_rejects_unusable_names(self, name):
        with pytest.raises(InvalidNameError):
            validate_name(name)

    def test_invalid_name_is_a_value_error(self):
        with pytest.raises(ValueError):
            validate_name("")

    def test_accepts_regular_names(self):
        assert validate_name("report (final).pdf") == "report (final).pdf"


class TestCreate:
    """Test create_folder and create_file.

    GENERAL PATTERN: the new item is pending and appended to its folder; the
    input snapshot stays untouched.
    """

    def test_create_folder(self, sample_tree):
        new_tree, operation = create_folder(sample_tree, ["docs"], "drafts", FIXED_TIME)

        folder = new_tree.child_named("docs", "drafts")
        assert folder is not None and folder.is_folder
        assert folder.sync_status == SyncStatus.PENDING
        assert new_tree.child_ids("docs")[-1] == folder.id
        assert sample_tree.child_named("docs", "drafts") is None

        assert operation.type == OperationType.CREATE_FOLDER
        assert operation.path == ["docs"]
        assert operation.after[0].parent_id == "docs"
        assert operation.after[0].index == 2

    def test_create_file_at_root(self, sample_tree):
        new_tree, operation = create_file(sample_tree, [], "todo.txt", FIXED_TIME, size=12)

        record = new_tree.child_named(None, "todo.txt")
        assert record.size == 12
        assert record.created_at == FIXED_TIME
        assert operation.file.id == record.id

    def test_create_with_existing_name(self, sample_tree):
        with pytest.raises(NameConflictError) as exc_info:
            create_folder(sample_tree, [], "docs", FIXED_TIME)
        assert exc_info.value.existing_id == "docs"

    def test_create_in_missing_path(self, sample_tree):
        with pytest.raises(PathNotFoundError):
            create_file(sample_tree, ["nope"], "a.txt", FIXED_TIME)

    def test_create_with_invalid_name(self, sample_tree):
        with pytest.raises(InvalidNameError):
            create_folder(sample_tree, [], "a/b", FIXED_TIME)


class TestDelete:
    """Test delete_items."""

    def test_delete_removes_subtree(self, sample_tree):
        new_tree, operation = delete_items(sample_tree, ["folderB"])

        for item_id in ("folderB", "child", "nested", "notes"):
            assert item_id not in new_tree
        assert operation.type == OperationType.DELETE
        assert operation.before[0].index == 2
        assert operation.paths == [[]]

    def test_delete_is_idempotent(self, sample_tree):
        once, _ = delete_items(sample_tree, ["fileX"])
        twice, operation = delete_items(once, ["fileX"])

        assert twice is once
        assert operation is None

    def test_unknown_ids_are_ignored(self, sample_tree):
        new_tree, operation = delete_items(sample_tree, ["ghost", "readme"])
        assert "readme" not in new_tree
        assert [item.id for item in operation.items] == ["readme"]

    def test_nested_selection_collapses_to_root(self, sample_tree):
        _, operation = delete_items(sample_tree, ["folderB", "nested", "folderB"])
        assert [item.id for item in operation.items] == ["folderB"]


class TestRename:
    """Test rename_item."""

    def test_rename_stamps_pending_and_modified_at(self, sample_tree):
        later = FIXED_TIME.replace(hour=12)
        new_tree, operation = rename_item(sample_tree, "readme", "README.md", later)

        record = new_tree.get("readme")
        assert record.name == "README.md"
        assert record.sync_status == SyncStatus.PENDING
        assert record.modified_at == later
        assert new_tree.index_of("readme") == sample_tree.index_of("readme")
        assert operation.old_name == "readme.md"
        assert operation.new_name == "README.md"

    def test_rename_to_same_name_is_noop(self, sample_tree):
        new_tree, operation = rename_item(sample_tree, "readme", "readme.md", FIXED_TIME)
        assert new_tree is sample_tree
        assert operation is None

    def test_rename_conflict(self, sample_tree):
        with pytest.raises(NameConflictError):
            rename_item(sample_tree, "fileX", "report.pdf", FIXED_TIME)

    def test_rename_unknown_item(self, sample_tree):
        with pytest.raises(ItemNotFoundError):
            rename_item(sample_tree, "ghost", "x", FIXED_TIME)


# =============================================================================
# Cloning and Naming
# =============================================================================


class TestCopyName:
    """Test copy_name candidates."""

    def test_first_copy(self):
        assert copy_name("report.pdf", {"report.pdf"}) == "report (copy).pdf"

    def test_numbered_copies(self):
        taken = {"report.pdf", "report (copy).pdf", "report (copy 2).pdf"}
        assert copy_name("report.pdf", taken) == "report (copy 3).pdf"

    def test_folder_keeps_whole_name(self):
        assert copy_name("v1.2", {"v1.2"}, is_folder=True) == "v1.2 (copy)"

    def test_dot_file_keeps_whole_name(self):
        assert copy_name(".env", {".env"}) == ".env (copy)"

    def test_name_without_extension(self):
        assert copy_name("Makefile", {"Makefile"}) == "Makefile (copy)"


class TestDeepClone:
    """Test deep_clone."""

    def test_fresh_ids_same_shape(self, sample_tree):
        original = sample_tree.get_item("folderB")
        clone = deep_clone([original])[0]

        original_ids = {node.id for node in original.iter_subtree()}
        clone_ids = {node.id for node in clone.iter_subtree()}
        assert original_ids.isdisjoint(clone_ids)
        assert subtree_shape(clone) == subtree_shape(original)
        assert all(node.sync_status == SyncStatus.PENDING for node in clone.iter_subtree())
        assert clone.children[1].size == 5


# =============================================================================
# Transfers
# =============================================================================


class TestPlanTransfer:
    """Test validation and conflict detection when planning transfers."""

    def test_move_into_own_descendant(self, sample_tree):
        with pytest.raises(CyclicMoveError) as exc_info:
            plan_transfer(sample_tree, "move", ["folderB"], ["folderB", "child"])
        assert exc_info.value.item_id == "folderB"

    def test_move_into_itself(self, sample_tree):
        with pytest.raises(CyclicMoveError):
            plan_transfer(sample_tree, "move", ["folderB"], ["folderB"])

    def test_copy_into_own_descendant_is_allowed(self, sample_tree):
        plan = plan_transfer(sample_tree, "copy", ["folderB"], ["folderB", "child"])
        assert not plan.has_conflicts

    def test_unknown_source(self, sample_tree):
        with pytest.raises(ItemNotFoundError):
            plan_transfer(sample_tree, "move", ["ghost"], ["archive"])

    def test_unknown_target(self, sample_tree):
        with pytest.raises(PathNotFoundError):
            plan_transfer(sample_tree, "move", ["fileX"], ["ghost"])

    def test_copy_onto_itself_conflicts(self, sample_tree):
        plan = plan_transfer(sample_tree, "copy", ["fileX"], ["docs"])
        assert len(plan.conflicts) == 1
        assert plan.conflicts[0].existing_item.id == "fileX"

    def test_move_into_same_folder_is_noop(self, sample_tree):
        plan = plan_transfer(sample_tree, "move", ["fileX"], ["docs"])
        assert plan.noop_ids == ["fileX"]
        assert not plan.has_conflicts

    def test_source_path(self, sample_tree):
        plan = plan_transfer(sample_tree, "move", ["nested"], [])
        assert plan.source_path == ["folderB", "child"]


class TestApplyTransfer:
    """Test apply_transfer.

    GENERAL PATTERN: plan, optionally answer conflicts, apply, then check
    the new snapshot and the TransferResult.
    """

    def test_move_keeps_id_and_stamps_pending(self, sample_tree):
        plan = plan_transfer(sample_tree, "move", ["fileX"], ["archive"])
        new_tree, operation, result = apply_transfer(sample_tree, plan, [], FIXED_TIME)

        assert new_tree.parent_of("fileX") == "archive"
        assert new_tree.get("fileX").sync_status == SyncStatus.PENDING
        assert new_tree.child_ids("docs") == ("report",)
        assert operation.type == OperationType.MOVE
        assert result.operation_id == operation.operation_id
        assert [item.id for item in result.transferred] == ["fileX"]

    def test_move_into_same_folder_changes_nothing(self, sample_tree):
        plan = plan_transfer(sample_tree, "move", ["fileX"], ["docs"])
        new_tree, operation, result = apply_transfer(sample_tree, plan, [], FIXED_TIME)

        assert new_tree is sample_tree
        assert operation is None
        assert result.unchanged_ids == ["fileX"]

    def test_copy_subtree_into_itself(self, sample_tree):
        plan = plan_transfer(sample_tree, "copy", ["folderB"], ["folderB", "child"])
        new_tree, _, result = apply_transfer(sample_tree, plan, [], FIXED_TIME)

        clone = new_tree.child_named("child", "folderB")
        assert clone is not None and clone.id != "folderB"
        assert subtree_shape(new_tree.get_item(clone.id)) == subtree_shape(
            sample_tree.get_item("folderB")
        )
        assert new_tree.validate() == []
        assert result.transferred[0].id == clone.id

    def test_unanswered_conflict_defaults_to_rename(self, sample_tree):
        plan = plan_transfer(sample_tree, "copy", ["fileX"], ["docs"])
        new_tree, _, result = apply_transfer(sample_tree, plan, [], FIXED_TIME)

        copy = new_tree.child_named("docs", "fileX (copy).txt")
        assert copy is not None
        assert result.renamed == {copy.id: "fileX (copy).txt"}

    def test_replace_removes_existing(self):
        tree = tree_with_archived_duplicate()
        plan = plan_transfer(tree, "move", ["fileX"], ["archive"])
        new_tree, operation, result = apply_transfer(
            tree, plan, respond_all(plan, ConflictResolution.REPLACE), FIXED_TIME
        )

        assert "old" not in new_tree
        assert new_tree.child_named("archive", "fileX.txt").id == "fileX"
        assert result.replaced_ids == ["old"]
        assert [item.id for item in operation.replaced] == ["old"]

    def test_skip_leaves_tree_unchanged(self):
        tree = tree_with_archived_duplicate()
        plan = plan_transfer(tree, "move", ["fileX"], ["archive"])
        new_tree, operation, result = apply_transfer(
            tree, plan, respond_all(plan, ConflictResolution.SKIP), FIXED_TIME
        )

        assert new_tree is tree
        assert operation is None
        assert result.skipped_ids == ["fileX"]

    def test_copy_replace_onto_itself_is_skipped(self, sample_tree):
        plan = plan_transfer(sample_tree, "copy", ["folderB"], [])
        new_tree, operation, result = apply_transfer(
            sample_tree, plan, respond_all(plan, ConflictResolution.REPLACE), FIXED_TIME
        )

        assert operation is None
        assert result.skipped_ids == ["folderB"]
        assert "nested" in new_tree

    def test_replace_of_ancestor_is_skipped(self):
        tree = TreeSnapshot.from_items(
            [
                create_folder_item(
                    "outer",
                    item_id="outer",
                    children=[create_folder_item("outer", item_id="inner")],
                )
            ]
        )
        plan = plan_transfer(tree, "move", ["inner"], [])
        new_tree, operation, result = apply_transfer(
            tree, plan, respond_all(plan, ConflictResolution.REPLACE), FIXED_TIME
        )

        assert operation is None
        assert result.skipped_ids == ["inner"]
        assert new_tree.parent_of("inner") == "outer"

    def test_sources_deleted_after_planning_are_skipped(self, sample_tree):
        plan = plan_transfer(sample_tree, "move", ["fileX", "readme"], ["archive"])
        tree, _ = delete_items(sample_tree, ["fileX"])
        new_tree, _, result = apply_transfer(tree, plan, [], FIXED_TIME)

        assert result.skipped_ids == ["fileX"]
        assert new_tree.parent_of("readme") == "archive"

    def test_deleted_target_skips_everything(self, sample_tree):
        plan = plan_transfer(sample_tree, "copy", ["fileX", "readme"], ["archive"])
        tree, _ = delete_items(sample_tree, ["archive"])
        new_tree, operation, result = apply_transfer(tree, plan, [], FIXED_TIME)

        assert new_tree is tree
        assert operation is None
        assert result.skipped_ids == ["fileX", "readme"]

    def test_target_moved_under_source_after_planning(self, sample_tree):
        plan = plan_transfer(sample_tree, "move", ["folderB"], ["folderA"])
        tree, _, _ = apply_transfer(
            sample_tree,
            plan_transfer(sample_tree, "move", ["folderA"], ["folderB"]),
            [],
            FIXED_TIME,
        )
        with pytest.raises(CyclicMoveError):
            apply_transfer(tree, plan, [], FIXED_TIME)


class TestSnapshotCopy:
    """Test plan_snapshot_copy: copies of items captured earlier.

    GENERAL PATTERN: the captured items are cloned as they were captured,
    whatever happened to the originals since.
    """

    def test_copies_captured_item_after_original_deleted(self, sample_tree):
        captured = [sample_tree.get_item("docs")]
        tree, _ = delete_items(sample_tree, ["docs"], FIXED_TIME)

        plan = plan_snapshot_copy(tree, captured, [], ["archive"])
        new_tree, operation, result = apply_transfer(tree, plan, [], FIXED_TIME)

        clone = result.transferred[0]
        assert subtree_shape(clone) == subtree_shape(captured[0])
        assert clone.id != "docs"
        assert operation.type == OperationType.COPY
        assert new_tree.validate() == []

    def test_conflicts_use_captured_names(self, sample_tree):
        captured = [sample_tree.get_item("fileX")]
        plan = plan_snapshot_copy(sample_tree, captured, ["docs"], ["docs"])

        assert [c.source_item.id for c in plan.conflicts] == ["fileX"]
        assert plan.conflicts[0].existing_item.id == "fileX"

    def test_nested_captures_collapse_to_root(self, sample_tree):
        captured = [sample_tree.get_item("folderB"), sample_tree.get_item("nested")]
        plan = plan_snapshot_copy(sample_tree, captured, [], ["archive"])

        assert [source.id for source in plan.sources] == ["folderB"]


class TestUpload:
    """Test plan_upload and applying uploads."""

    def test_upload_creates_pending_files(self, sample_tree):
        plan = plan_upload(
            sample_tree, [FileUpload(name="photo.png", size=500)], ["archive"], FIXED_TIME
        )
        new_tree, operation, result = apply_transfer(sample_tree, plan, [], FIXED_TIME)

        record = new_tree.child_named("archive", "photo.png")
        assert record.size == 500
        assert record.sync_status == SyncStatus.PENDING
        assert operation.type == OperationType.UPLOAD

    def test_duplicate_names_within_batch_conflict(self, sample_tree):
        files = [FileUpload(name="a.txt", size=1), FileUpload(name="a.txt", size=2)]
        plan = plan_upload(sample_tree, files, ["archive"], FIXED_TIME)

        assert len(plan.conflicts) == 1
        assert plan.conflicts[0].existing_item.id == plan.sources[0].id

        new_tree, _, _ = apply_transfer(sample_tree, plan, [], FIXED_TIME)
        names = sorted(record.name for record in new_tree.children_of("archive"))
        assert names == ["a (copy).txt", "a.txt"]

    def test_upload_replace_within_batch(self, sample_tree):
        files = [FileUpload(name="a.txt", size=1), FileUpload(name="a.txt", size=2)]
        plan = plan_upload(sample_tree, files, ["archive"], FIXED_TIME)
        new_tree, operation, result = apply_transfer(
            sample_tree, plan, respond_all(plan, ConflictResolution.REPLACE), FIXED_TIME
        )

        records = new_tree.children_of("archive")
        assert [(r.name, r.size) for r in records] == [("a.txt", 2)]
        assert operation.replaced == []
        assert len(operation.after) == 1

    def test_upload_with_invalid_name(self, sample_tree):
        with pytest.raises(InvalidNameError):
            plan_upload(sample_tree, [FileUpload(name="a/b")], [], FIXED_TIME)


# =============================================================================
# Revert / Replay
# =============================================================================


class TestRevertReplay:
    """Test that revert undoes and replay redoes every operation kind.

    GENERAL PATTERN: revert(apply(T)) == T and replay(revert(apply(T))) ==
    apply(T), compared on records and child order.
    """

    def _check(self, before, after, operation):
        reverted = revert_operation(after, operation)
        assert reverted == before
        assert reverted.validate() == []
        assert replay_operation(reverted, operation) == after

    def test_create(self, sample_tree):
        after, operation = create_folder(sample_tree, ["docs"], "drafts", FIXED_TIME)
        self._check(sample_tree, after, operation)

    def test_delete_restores_positions(self, sample_tree):
        after, operation = delete_items(sample_tree, ["fileX", "folderB", "readme"])
        self._check(sample_tree, after, operation)

    def test_rename(self, sample_tree):
        after, operation = rename_item(sample_tree, "notes", "todo.txt", FIXED_TIME)
        self._check(sample_tree, after, operation)

    def test_move_from_several_folders(self, sample_tree):
        plan = plan_transfer(sample_tree, "move", ["fileX", "nested", "readme"], ["archive"])
        after, operation, _ = apply_transfer(sample_tree, plan, [], FIXED_TIME)
        self._check(sample_tree, after, operation)

    def test_move_with_replace(self):
        tree = tree_with_archived_duplicate()
        plan = plan_transfer(tree, "move", ["fileX"], ["archive"])
        after, operation, _ = apply_transfer(
            tree, plan, respond_all(plan, ConflictResolution.REPLACE), FIXED_TIME
        )
        self._check(tree, after, operation)

    def test_copy_with_rename(self, sample_tree):
        plan = plan_transfer(sample_tree, "copy", ["docs"], [])
        after, operation, _ = apply_transfer(sample_tree, plan, [], FIXED_TIME)
        self._check(sample_tree, after, operation)

    def test_revert_on_diverged_tree(self, sample_tree):
        after, operation = create_folder(sample_tree, [], "tmp", FIXED_TIME)
        diverged, _ = delete_items(after, [operation.folder.id])
        with pytest.raises(RuntimeError):
            revert_operation(diverged, operation)
