"""In-memory node tree with write-through persistence.

NodeStore owns every Node record and keeps the tree consistent:

- a child's id is listed in its parent's ``children_ids`` and nowhere else,
- ``depth`` is 0 for roots and parent depth + 1 otherwise, for every node,
- no node is its own ancestor.

Records are frozen dataclasses. Each mutation builds the replacement records
first, writes them to the storage backend, and only then swaps them into the
in-memory map, so a failed write leaves the store as it was.
"""

import threading
from collections import defaultdict
from collections.abc import Iterable
from dataclasses import replace
from datetime import UTC, datetime, timedelta

from loguru import logger

from nodespace.config import DEFAULT_EDITOR, DEFAULT_TITLE, NEW_CHILD_TITLE, NEW_NODE_TITLE
from nodespace.core.store.memory_storage import MemoryStorage
from nodespace.core.text import generate_node_id, is_valid_node_id, word_count
from nodespace.exceptions import StorageError
from nodespace.models.node import HierarchyNode, Node, NodeMetadata, SaveResult, StoreStats
from nodespace.protocols import PendingSaveTracker, StorageProtocol


def _require_str(name: str, value: object, *, optional: bool = False) -> None:
    if optional and value is None:
        return
    if not isinstance(value, str):
        msg = f"{name} must be a string, got {type(value).__name__}"
        raise TypeError(msg)


class NodeStore:
    """Canonical mapping from node id to Node, with tree maintenance."""

    def __init__(self, storage: StorageProtocol | None = None) -> None:
        self._storage: StorageProtocol = storage if storage is not None else MemoryStorage()
        self._nodes: dict[str, Node] = {}
        # Serializes every mutation.
        self._lock = threading.RLock()
        self._autosave: PendingSaveTracker | None = None
        self._last_timestamp: datetime | None = None
        self._last_activity: datetime | None = None
        self._hydrate()

    def _hydrate(self) -> None:
        for node_id, record in self._storage.items():
            self._nodes[node_id] = Node.from_record(record)
        if self._nodes:
            self._last_activity = max(n.updated_at for n in self._nodes.values())
            self._last_timestamp = self._last_activity
            logger.debug("Loaded {} nodes from storage", len(self._nodes))

    def bind_autosave(self, tracker: PendingSaveTracker) -> None:
        """Attach the auto-save coordinator so deletes cancel its pending saves."""
        self._autosave = tracker

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._nodes

    # --- internals ---

    def _now(self) -> datetime:
        """Current UTC time, strictly later than any timestamp issued before."""
        now = datetime.now(tz=UTC)
        if self._last_timestamp is not None and now <= self._last_timestamp:
            now = self._last_timestamp + timedelta(microseconds=1)
        self._last_timestamp = now
        return now

    def _new_id(self) -> str:
        while True:
            node_id = generate_node_id()
            if node_id not in self._nodes:
                return node_id

    def _commit(self, changed: Iterable[Node] = (), removed: Iterable[str] = ()) -> None:
        """Write changes to storage as one batch, then install them in memory.

        Raises StorageError before touching memory if the backend fails.
        """
        changed = list(changed)
        removed = list(removed)
        self._storage.write_batch([(node.id, node.to_record()) for node in changed], removed)
        for node in changed:
            self._nodes[node.id] = node
        for node_id in removed:
            self._nodes.pop(node_id, None)
        self._last_activity = self._last_timestamp

    def _apply(self, action: str, changed: Iterable[Node] = (), removed: Iterable[str] = ()) -> bool:
        try:
            self._commit(changed, removed)
        except StorageError:
            logger.exception("Storage failed during {}", action)
            return False
        return True

    def _subtree_ids(self, node_id: str) -> list[str]:
        """Ids of node_id and all its descendants, pre-order."""
        result: list[str] = []
        stack = [node_id]
        while stack:
            current = stack.pop()
            result.append(current)
            node = self._nodes.get(current)
            if node is not None:
                stack.extend(reversed(node.children_ids))
        return result

    def _is_same_or_ancestor(self, ancestor_id: str, node_id: str) -> bool:
        """True if ancestor_id is node_id or lies on node_id's parent chain."""
        seen: set[str] = set()
        current: str | None = node_id
        while current is not None and current not in seen:
            if current == ancestor_id:
                return True
            seen.add(current)
            node = self._nodes.get(current)
            current = node.parent_id if node is not None else None
        return False

    @staticmethod
    def _with_children(node: Node, children_ids: tuple[str, ...], now: datetime) -> Node:
        return replace(
            node,
            updated_at=now,
            metadata=replace(node.metadata, children_ids=children_ids),
        )

    # --- CRUD ---

    def create(self, content: str = "", title: str | None = None) -> Node | None:
        """Create a root node.

        Returns None only if the storage backend rejects the write.
        """
        _require_str("content", content)
        _require_str("title", title, optional=True)
        with self._lock:
            now = self._now()
            node = Node(
                id=self._new_id(),
                content=content,
                title=NEW_NODE_TITLE if title is None else title,
                parent_id=None,
                depth=0,
                expanded=True,
                created_at=now,
                updated_at=now,
                metadata=NodeMetadata(word_count=word_count(content)),
            )
            if not self._apply("create", [node]):
                return None
        logger.debug("Created root node {}", node.id)
        return node

    def create_child(
        self, parent_id: str, content: str = "", title: str | None = None
    ) -> Node | None:
        """Create a node under parent_id, appended after its existing children.

        Returns None if the parent does not exist.
        """
        _require_str("content", content)
        _require_str("title", title, optional=True)
        with self._lock:
            parent = self._nodes.get(parent_id)
            if parent is None:
                logger.warning("Cannot create child: parent {} not found", parent_id)
                return None

            now = self._now()
            child = Node(
                id=self._new_id(),
                content=content,
                title=NEW_CHILD_TITLE if title is None else title,
                parent_id=parent.id,
                depth=parent.depth + 1,
                expanded=False,
                created_at=now,
                updated_at=now,
                metadata=NodeMetadata(word_count=word_count(content)),
            )
            updated_parent = self._with_children(parent, (*parent.children_ids, child.id), now)
            if not self._apply("create_child", [child, updated_parent]):
                return None
        logger.debug("Created node {} under {} at depth {}", child.id, parent_id, child.depth)
        return child

    def save(self, node_id: str, content: str, title: str | None = None) -> SaveResult:
        """Store new content for node_id, creating a root node if it is unknown.

        Never raises: bad input and storage failures come back as
        ``SaveResult(success=False, error=...)`` with the record untouched.
        """
        if not is_valid_node_id(node_id):
            return SaveResult(
                success=False,
                id=str(node_id),
                timestamp=datetime.now(tz=UTC),
                error=f"Invalid node id: {node_id!r}",
            )
        if not isinstance(content, str):
            return SaveResult(
                success=False,
                id=node_id,
                timestamp=datetime.now(tz=UTC),
                error=f"Content must be a string, got {type(content).__name__}",
            )
        if title is not None and not isinstance(title, str):
            return SaveResult(
                success=False,
                id=node_id,
                timestamp=datetime.now(tz=UTC),
                error=f"Title must be a string, got {type(title).__name__}",
            )

        with self._lock:
            now = self._now()
            existing = self._nodes.get(node_id)
            if existing is None:
                node = Node(
                    id=node_id,
                    content=content,
                    title=title or DEFAULT_TITLE,
                    parent_id=None,
                    depth=0,
                    expanded=True,
                    created_at=now,
                    updated_at=now,
                    metadata=NodeMetadata(word_count=word_count(content), version=1),
                )
            else:
                node = replace(
                    existing,
                    content=content,
                    title=title or existing.title or DEFAULT_TITLE,
                    updated_at=now,
                    metadata=replace(
                        existing.metadata,
                        word_count=word_count(content),
                        version=existing.metadata.version + 1,
                        last_edited_by=DEFAULT_EDITOR,
                    ),
                )
            try:
                self._commit([node])
            except StorageError as e:
                logger.error("Save of {} failed: {}", node_id, e)
                return SaveResult(success=False, id=node_id, timestamp=now, error=str(e))

        logger.debug("Saved {} (version {})", node_id, node.metadata.version)
        return SaveResult(success=True, id=node_id, timestamp=now, version=node.metadata.version)

    def load(self, node_id: str) -> Node | None:
        return self._nodes.get(node_id)

    def delete(self, node_id: str) -> bool:
        """Delete node_id together with its whole subtree.

        Pending auto-saves of every removed node are cancelled.
        """
        with self._lock:
            node = self._nodes.get(node_id)
            if node is None:
                return False

            now = self._now()
            doomed = self._subtree_ids(node_id)
            changed: list[Node] = []
            parent = self._nodes.get(node.parent_id) if node.parent_id is not None else None
            if parent is not None:
                remaining = tuple(c for c in parent.children_ids if c != node_id)
                changed.append(self._with_children(parent, remaining, now))

            if not self._apply("delete", changed, doomed):
                return False

            if self._autosave is not None:
                for doomed_id in doomed:
                    self._autosave.cancel(doomed_id)

        logger.debug("Deleted {} ({} nodes including descendants)", node_id, len(doomed))
        return True

    # --- tree maintenance ---

    def move(self, node_id: str, new_parent_id: str | None) -> bool:
        """Reparent node_id under new_parent_id, or make it a root when None.

        Both ends are validated before anything changes. Moving a node under
        itself or one of its descendants is rejected. Depths of the whole
        moved subtree are recomputed.
        """
        with self._lock:
            node = self._nodes.get(node_id)
            if node is None:
                logger.warning("Cannot move {}: node not found", node_id)
                return False

            new_parent: Node | None = None
            if new_parent_id is not None:
                new_parent = self._nodes.get(new_parent_id)
                if new_parent is None:
                    logger.warning("Cannot move {}: parent {} not found", node_id, new_parent_id)
                    return False
                if self._is_same_or_ancestor(node_id, new_parent_id):
                    logger.warning(
                        "Cannot move {} under {}: would create a cycle", node_id, new_parent_id
                    )
                    return False

            now = self._now()
            staged: dict[str, Node] = {}

            old_parent = self._nodes.get(node.parent_id) if node.parent_id is not None else None
            if old_parent is not None:
                remaining = tuple(c for c in old_parent.children_ids if c != node_id)
                staged[old_parent.id] = self._with_children(old_parent, remaining, now)

            if new_parent is not None:
                base = staged.get(new_parent.id, new_parent)
                staged[base.id] = self._with_children(base, (*base.children_ids, node_id), now)
                depth = new_parent.depth + 1
            else:
                depth = 0

            staged[node_id] = replace(node, parent_id=new_parent_id, depth=depth, updated_at=now)

            # Re-derive depths across the moved subtree.
            stack = [(child_id, depth + 1) for child_id in node.children_ids]
            while stack:
                child_id, child_depth = stack.pop()
                child = self._nodes.get(child_id)
                if child is None:
                    continue
                if child.depth != child_depth:
                    staged[child_id] = replace(child, depth=child_depth)
                stack.extend((grandchild, child_depth + 1) for grandchild in child.children_ids)

            if not self._apply("move", staged.values()):
                return False

        logger.debug("Moved {} under {} (depth {})", node_id, new_parent_id or "<root>", depth)
        return True

    def toggle_expansion(self, node_id: str) -> bool:
        """Flip the expanded flag. Leaves (and unknown ids) return False."""
        with self._lock:
            node = self._nodes.get(node_id)
            if node is None or not node.has_children:
                return False
            toggled = replace(node, expanded=not node.expanded, updated_at=self._now())
            return self._apply("toggle_expansion", [toggled])

    # --- queries ---

    def children(self, parent_id: str) -> list[Node]:
        """Direct children ordered by creation time."""
        parent = self._nodes.get(parent_id)
        if parent is None:
            return []
        found = [self._nodes[c] for c in parent.children_ids if c in self._nodes]
        return sorted(found, key=lambda n: n.created_at)

    def list_all(self) -> list[Node]:
        """Every node, most recently updated first."""
        return sorted(self._nodes.values(), key=lambda n: n.updated_at, reverse=True)

    def search(self, query: str) -> list[Node]:
        """Case-insensitive substring match on title or content.

        A blank query returns everything, like list_all().
        """
        if not query.strip():
            return self.list_all()
        needle = query.lower()
        return [
            n
            for n in self.list_all()
            if needle in n.title.lower() or needle in n.content.lower()
        ]

    def build_hierarchy(self) -> list[HierarchyNode]:
        """Snapshot the store as nested trees, siblings ordered by creation time."""
        by_parent: dict[str | None, list[Node]] = defaultdict(list)
        for node in self._nodes.values():
            by_parent[node.parent_id].append(node)
        for siblings in by_parent.values():
            siblings.sort(key=lambda n: n.created_at)

        roots = by_parent.get(None, [])
        built: dict[str, HierarchyNode] = {}
        # Post-order walk: a view is built once all of its children are.
        stack: list[tuple[Node, bool]] = [(root, False) for root in roots]
        while stack:
            node, children_done = stack.pop()
            kids = by_parent.get(node.id, [])
            if not children_done:
                stack.append((node, True))
                stack.extend((kid, False) for kid in kids)
                continue
            built[node.id] = HierarchyNode(
                id=node.id,
                title=node.title,
                content=node.content,
                depth=node.depth,
                parent_id=node.parent_id,
                expanded=node.expanded,
                created_at=node.created_at,
                updated_at=node.updated_at,
                word_count=node.metadata.word_count,
                version=node.metadata.version,
                last_edited_by=node.metadata.last_edited_by,
                children=tuple(built[kid.id] for kid in kids),
            )
        return [built[root.id] for root in roots]

    def stats(self) -> StoreStats:
        nodes = list(self._nodes.values())
        return StoreStats(
            total_nodes=len(nodes),
            root_count=sum(1 for n in nodes if n.parent_id is None),
            max_depth=max((n.depth for n in nodes), default=0),
            nodes_with_children=sum(1 for n in nodes if n.has_children),
            pending_auto_saves=self._autosave.pending_count if self._autosave is not None else 0,
            last_activity=self._last_activity,
        )

    def verify_integrity(self) -> list[str]:
        """Describe every broken tree invariant; an empty list means consistent."""
        problems: list[str] = []
        for node in self._nodes.values():
            if node.parent_id is None:
                if node.depth != 0:
                    problems.append(f"{node.id}: root has depth {node.depth}")
            else:
                parent = self._nodes.get(node.parent_id)
                if parent is None:
                    problems.append(f"{node.id}: parent {node.parent_id} does not exist")
                else:
                    if node.id not in parent.children_ids:
                        problems.append(f"{node.id}: missing from {parent.id}.children_ids")
                    if node.depth != parent.depth + 1:
                        problems.append(
                            f"{node.id}: depth {node.depth}, parent depth {parent.depth}"
                        )
                    if self._is_same_or_ancestor(node.id, parent.id):
                        problems.append(f"{node.id}: is its own ancestor")
            for child_id in node.children_ids:
                child = self._nodes.get(child_id)
                if child is None:
                    problems.append(f"{node.id}: child {child_id} does not exist")
                elif child.parent_id != node.id:
                    problems.append(
                        f"{node.id}: child {child_id} points at parent {child.parent_id}"
                    )
            if len(set(node.children_ids)) != len(node.children_ids):
                problems.append(f"{node.id}: duplicate entries in children_ids")
        return problems
