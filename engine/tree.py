"""Tree model: an immutable, arena-indexed snapshot of the workspace tree.

A ``TreeSnapshot`` stores every node in a flat map from id to ``ItemData``
plus a children index (parent id -> ordered child ids) and a parent index.
The root is the ``None`` parent. Snapshots are never edited in place: writers
use a ``TreeBuilder``, which copies the index maps on construction, and
``build()`` a new snapshot. Readers holding an older snapshot therefore never
observe a partial write.
"""

from collections.abc import Iterable, Iterator, Mapping
from typing import Any, Optional

from engine.exceptions import ItemNotFoundError, NameConflictError, PathNotFoundError
from engine.item import Item, ItemData

ParentId = Optional[str]


def _materialize(
    nodes: Mapping[str, ItemData],
    children: Mapping[ParentId, tuple[str, ...]],
    item_id: str,
) -> Item:
    record = nodes[item_id]
    fields = dict(record)
    if record.is_folder:
        fields["children"] = [
            _materialize(nodes, children, child_id)
            for child_id in children.get(item_id, ())
        ]
    return Item(**fields)


def _path_of(
    nodes: Mapping[str, ItemData],
    parents: Mapping[str, ParentId],
    item_id: str,
) -> list[str]:
    path: list[str] = []
    parent_id = parents[item_id]
    while parent_id is not None:
        path.append(nodes[parent_id].name)
        parent_id = parents[parent_id]
    path.reverse()
    return path


class TreeSnapshot:
    """Immutable view of the workspace tree at one version.

    Args:
        nodes: Map from item id to its node record.
        children: Map from parent id (None = root) to ordered child ids.
        parents: Map from item id to its parent id (None = root).
        version: Monotonic version counter, bumped by every write.

    Example:
        >>> tree = TreeSnapshot.from_items([docs_folder, readme_file])
        >>> folder_id = tree.resolve_path(["docs"])
        >>> [child.name for child in tree.children_of(folder_id)]
        ['report.txt']
    """

    __slots__ = ("_nodes", "_children", "_parents", "_version")

    def __init__(
        self,
        nodes: dict[str, ItemData],
        children: dict[ParentId, tuple[str, ...]],
        parents: dict[str, ParentId],
        version: int = 0,
    ) -> None:
        self._nodes = nodes
        self._children = children
        self._parents = parents
        self._version = version

    @classmethod
    def empty(cls) -> "TreeSnapshot":
        """Create a snapshot with an empty root."""
        return cls(nodes={}, children={None: ()}, parents={}, version=0)

    @classmethod
    def from_items(cls, items: Iterable[Item], version: int = 0) -> "TreeSnapshot":
        """Build a snapshot from nested root items.

        Args:
            items: Root-level items, each with its subtree.
            version: Version to stamp on the snapshot.

        Returns:
            New TreeSnapshot.

        Raises:
            ValueError: If ids repeat anywhere in the tree or two root items
                share a name.
        """
        nodes: dict[str, ItemData] = {}
        children: dict[ParentId, tuple[str, ...]] = {}
        parents: dict[str, ParentId] = {}

        def add(parent_id: ParentId, siblings: list[Item]) -> None:
            names: set[str] = set()
            for item in siblings:
                if item.id in nodes:
                    raise ValueError(f"duplicate item id '{item.id}'")
                if item.name in names:
                    raise ValueError(f"duplicate sibling name '{item.name}'")
                names.add(item.name)
                nodes[item.id] = item.to_data()
                parents[item.id] = parent_id
                if item.is_folder:
                    add(item.id, item.children or [])
            children[parent_id] = tuple(item.id for item in siblings)

        add(None, list(items))
        return cls(nodes=nodes, children=children, parents=parents, version=version)

    # ===== Basic Lookups =====

    @property
    def version(self) -> int:
        return self._version

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, item_id: object) -> bool:
        return item_id in self._nodes

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TreeSnapshot):
            return NotImplemented
        return self._nodes == other._nodes and self._children == other._children

    def __repr__(self) -> str:
        return f"TreeSnapshot(version={self._version}, items={len(self._nodes)})"

    def contains(self, item_id: str) -> bool:
        return item_id in self._nodes

    def get(self, item_id: str) -> Optional[ItemData]:
        """Return the node record for an id, or None if it does not exist."""
        return self._nodes.get(item_id)

    def require(self, item_id: str) -> ItemData:
        """Return the node record for an id.

        Raises:
            ItemNotFoundError: If the id does not exist.
        """
        record = self._nodes.get(item_id)
        if record is None:
            raise ItemNotFoundError(item_id)
        return record

    def parent_of(self, item_id: str) -> ParentId:
        """Return the parent id of an item (None for root-level items)."""
        self.require(item_id)
        return self._parents[item_id]

    def child_ids(self, parent_id: ParentId = None) -> tuple[str, ...]:
        return self._children.get(parent_id, ())

    def children_of(self, parent_id: ParentId = None) -> list[ItemData]:
        """Return the ordered child records of a folder (None = root)."""
        return [self._nodes[child_id] for child_id in self.child_ids(parent_id)]

    def child_named(self, parent_id: ParentId, name: str) -> Optional[ItemData]:
        """Return the child with an exact (case-sensitive) name, if any."""
        for child_id in self.child_ids(parent_id):
            record = self._nodes[child_id]
            if record.name == name:
                return record
        return None

    def index_of(self, item_id: str) -> int:
        """Return the position of an item among its siblings."""
        parent_id = self.parent_of(item_id)
        return self._children[parent_id].index(item_id)

    # ===== Paths =====

    def resolve_path(self, path: list[str]) -> ParentId:
        """Resolve a folder path one segment at a time.

        Args:
            path: Folder names from the root ([] is the root).

        Returns:
            The folder's id, or None for the root.

        Raises:
            PathNotFoundError: If a segment is missing or is not a folder.
        """
        current: ParentId = None
        for segment in path:
            record = self.child_named(current, segment)
            if record is None or not record.is_folder:
                raise PathNotFoundError(path, segment)
            current = record.id
        return current

    def path_exists(self, path: list[str]) -> bool:
        try:
            self.resolve_path(path)
        except PathNotFoundError:
            return False
        return True

    def deepest_existing(self, path: list[str]) -> list[str]:
        """Return the longest prefix of ``path`` that still resolves."""
        current: ParentId = None
        resolved: list[str] = []
        for segment in path:
            record = self.child_named(current, segment)
            if record is None or not record.is_folder:
                break
            current = record.id
            resolved.append(segment)
        return resolved

    def path_of(self, item_id: str) -> list[str]:
        """Return the path of the folder that contains an item."""
        self.require(item_id)
        return _path_of(self._nodes, self._parents, item_id)

    def full_path(self, item_id: str) -> list[str]:
        """Return the path of an item including its own name."""
        return self.path_of(item_id) + [self._nodes[item_id].name]

    # ===== Structure =====

    def is_ancestor(self, ancestor_id: str, item_id: str) -> bool:
        """Check whether ``ancestor_id`` is a strict ancestor of ``item_id``."""
        parent_id = self._parents.get(item_id)
        while parent_id is not None:
            if parent_id == ancestor_id:
                return True
            parent_id = self._parents[parent_id]
        return False

    def subtree_ids(self, item_id: str) -> list[str]:
        """Return an item's id followed by all descendant ids, depth-first."""
        self.require(item_id)
        result = [item_id]
        for child_id in self._children.get(item_id, ()):
            result.extend(self.subtree_ids(child_id))
        return result

    def walk(self, parent_id: ParentId = None) -> Iterator[ItemData]:
        """Yield every record below ``parent_id``, depth-first pre-order."""
        for child_id in self._children.get(parent_id, ()):
            record = self._nodes[child_id]
            yield record
            if record.is_folder:
                yield from self.walk(child_id)

    def get_item(self, item_id: str) -> Item:
        """Materialise an item with its whole subtree.

        Raises:
            ItemNotFoundError: If the id does not exist.
        """
        self.require(item_id)
        return _materialize(self._nodes, self._children, item_id)

    def list_path(self, path: list[str]) -> list[Item]:
        """Return the materialised children of the folder at ``path``."""
        folder_id = self.resolve_path(path)
        return [
            _materialize(self._nodes, self._children, child_id)
            for child_id in self.child_ids(folder_id)
        ]

    def to_items(self) -> list[Item]:
        """Materialise the whole tree as nested root items."""
        return self.list_path([])

    def to_dict(self) -> dict[str, Any]:
        """Convert this snapshot to a JSON-compatible dictionary."""
        return {
            "version": self._version,
            "item_count": len(self._nodes),
            "items": [item.to_dict() for item in self.to_items()],
        }

    def validate(self) -> list[str]:
        """Validate structural invariants and return any issues.

        Checks:
        - Every indexed child exists and points back to its parent
        - Sibling names are unique
        - Only folders have children entries
        - Every node is reachable from the root exactly once (no cycles)

        Returns:
            List of validation error messages (empty list if valid).
        """
        issues: list[str] = []

        for parent_id, child_ids in self._children.items():
            if parent_id is not None:
                parent = self._nodes.get(parent_id)
                if parent is None:
                    issues.append(f"children index references missing parent '{parent_id}'")
                    continue
                if not parent.is_folder:
                    issues.append(f"file '{parent_id}' has a children entry")
            names: set[str] = set()
            for child_id in child_ids:
                record = self._nodes.get(child_id)
                if record is None:
                    issues.append(f"children index references missing item '{child_id}'")
                    continue
                if self._parents.get(child_id) != parent_id:
                    issues.append(f"item '{child_id}' has an inconsistent parent")
                if record.name in names:
                    issues.append(
                        f"duplicate sibling name '{record.name}' under '{parent_id}'"
                    )
                names.add(record.name)

        reachable: set[str] = set()
        stack: list[ParentId] = [None]
        while stack:
            parent_id = stack.pop()
            for child_id in self._children.get(parent_id, ()):
                if child_id in reachable:
                    issues.append(f"item '{child_id}' is reachable more than once")
                    continue
                reachable.add(child_id)
                if child_id in self._children:
                    stack.append(child_id)

        unreachable = set(self._nodes) - reachable
        if unreachable:
            issues.append(f"{len(unreachable)} item(s) unreachable from the root")

        for item_id, record in self._nodes.items():
            if record.is_folder and item_id not in self._children:
                issues.append(f"folder '{item_id}' has no children entry")

        return issues


class TreeBuilder:
    """Copy-on-write editor producing the next ``TreeSnapshot``.

    The builder copies the three index maps of its base snapshot once. Node
    records are shared with the base until replaced. Nothing touches the base
    snapshot, so discarding a builder after an exception leaves no trace.

    Args:
        base: The snapshot to start from.
    """

    def __init__(self, base: TreeSnapshot) -> None:
        self._base_version = base.version
        self._nodes = dict(base._nodes)
        self._children = dict(base._children)
        self._parents = dict(base._parents)

    def contains(self, item_id: str) -> bool:
        return item_id in self._nodes

    def get(self, item_id: str) -> Optional[ItemData]:
        return self._nodes.get(item_id)

    def parent_of(self, item_id: str) -> ParentId:
        if item_id not in self._nodes:
            raise ItemNotFoundError(item_id)
        return self._parents[item_id]

    def child_ids(self, parent_id: ParentId) -> tuple[str, ...]:
        return self._children.get(parent_id, ())

    def child_named(self, parent_id: ParentId, name: str) -> Optional[ItemData]:
        for child_id in self.child_ids(parent_id):
            if self._nodes[child_id].name == name:
                return self._nodes[child_id]
        return None

    def child_names(self, parent_id: ParentId) -> set[str]:
        return {self._nodes[child_id].name for child_id in self.child_ids(parent_id)}

    def is_ancestor(self, ancestor_id: str, item_id: str) -> bool:
        parent_id = self._parents.get(item_id)
        while parent_id is not None:
            if parent_id == ancestor_id:
                return True
            parent_id = self._parents[parent_id]
        return False

    def _folder_path(self, folder_id: ParentId) -> list[str]:
        if folder_id is None:
            return []
        return _path_of(self._nodes, self._parents, folder_id) + [self._nodes[folder_id].name]

    def materialize(self, item_id: str) -> Item:
        if item_id not in self._nodes:
            raise ItemNotFoundError(item_id)
        return _materialize(self._nodes, self._children, item_id)

    def attach(self, parent_id: ParentId, item: Item, index: Optional[int] = None) -> None:
        """Insert an item and its subtree under a folder.

        Args:
            parent_id: Destination folder id (None = root).
            item: The item to insert, with its subtree.
            index: Position among the siblings (default: append).

        Raises:
            ItemNotFoundError: If the parent does not exist or is not a folder.
            NameConflictError: If a sibling already uses the item's name.
            ValueError: If any id in the subtree already exists.
        """
        if parent_id is not None:
            parent = self._nodes.get(parent_id)
            if parent is None or not parent.is_folder:
                raise ItemNotFoundError(parent_id, f"Folder '{parent_id}' not found")
        existing = self.child_named(parent_id, item.name)
        if existing is not None:
            path = self._folder_path(parent_id)
            raise NameConflictError(item.name, path, existing.id)

        for node in item.iter_subtree():
            if node.id in self._nodes:
                raise ValueError(f"duplicate item id '{node.id}'")

        siblings = list(self._children.get(parent_id, ()))
        if index is None or index > len(siblings):
            index = len(siblings)
        siblings.insert(index, item.id)
        self._children[parent_id] = tuple(siblings)
        self._add_subtree(parent_id, item)

    def _add_subtree(self, parent_id: ParentId, item: Item) -> None:
        self._nodes[item.id] = item.to_data()
        self._parents[item.id] = parent_id
        if item.is_folder:
            kids = item.children or []
            self._children[item.id] = tuple(child.id for child in kids)
            for child in kids:
                self._add_subtree(item.id, child)

    def detach(self, item_id: str) -> Item:
        """Remove an item and its subtree, returning the removed subtree.

        Raises:
            ItemNotFoundError: If the id does not exist.
        """
        removed = self.materialize(item_id)
        parent_id = self._parents[item_id]
        self._children[parent_id] = tuple(
            child_id for child_id in self._children[parent_id] if child_id != item_id
        )
        for node in removed.iter_subtree():
            del self._nodes[node.id]
            del self._parents[node.id]
            self._children.pop(node.id, None)
        return removed

    def replace(self, record: ItemData) -> None:
        """Swap the node record of an existing item (same id, same parent).

        Raises:
            ItemNotFoundError: If the id does not exist.
            NameConflictError: If the new name collides with a sibling.
        """
        current = self._nodes.get(record.id)
        if current is None:
            raise ItemNotFoundError(record.id)
        if record.name != current.name:
            parent_id = self._parents[record.id]
            existing = self.child_named(parent_id, record.name)
            if existing is not None:
                path = _path_of(self._nodes, self._parents, record.id)
                raise NameConflictError(record.name, path, existing.id)
        self._nodes[record.id] = record

    def build(self) -> TreeSnapshot:
        """Freeze the edits into the next snapshot version."""
        return TreeSnapshot(
            nodes=self._nodes,
            children=self._children,
            parents=self._parents,
            version=self._base_version + 1,
        )
