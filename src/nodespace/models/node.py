"""Domain models for the node tree."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from nodespace.config import DEFAULT_EDITOR


@dataclass(frozen=True)
class NodeMetadata:
    """Derived and bookkeeping fields of a node."""

    word_count: int = 0
    version: int = 1
    children_ids: tuple[str, ...] = ()
    last_edited_by: str = DEFAULT_EDITOR

    @property
    def has_children(self) -> bool:
        return len(self.children_ids) > 0


@dataclass(frozen=True)
class Node:
    """A titled, content-bearing unit of the tree."""

    id: str
    content: str
    title: str
    parent_id: str | None
    depth: int
    expanded: bool
    created_at: datetime
    updated_at: datetime
    metadata: NodeMetadata = field(default_factory=NodeMetadata)

    @property
    def children_ids(self) -> tuple[str, ...]:
        return self.metadata.children_ids

    @property
    def has_children(self) -> bool:
        return self.metadata.has_children

    @property
    def is_root(self) -> bool:
        return self.parent_id is None

    def to_record(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible dict for storage backends."""
        return {
            "id": self.id,
            "content": self.content,
            "title": self.title,
            "parent_id": self.parent_id,
            "depth": self.depth,
            "expanded": self.expanded,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "metadata": {
                "word_count": self.metadata.word_count,
                "version": self.metadata.version,
                "children_ids": list(self.metadata.children_ids),
                "last_edited_by": self.metadata.last_edited_by,
            },
        }

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "Node":
        """Inverse of to_record."""
        meta = record.get("metadata", {})
        return cls(
            id=record["id"],
            content=record.get("content", ""),
            title=record.get("title", ""),
            parent_id=record.get("parent_id"),
            depth=record.get("depth", 0),
            expanded=record.get("expanded", True),
            created_at=datetime.fromisoformat(record["created_at"]),
            updated_at=datetime.fromisoformat(record["updated_at"]),
            metadata=NodeMetadata(
                word_count=meta.get("word_count", 0),
                version=meta.get("version", 1),
                children_ids=tuple(meta.get("children_ids", ())),
                last_edited_by=meta.get("last_edited_by", DEFAULT_EDITOR),
            ),
        )


@dataclass(frozen=True)
class SaveResult:
    """Outcome of a content save."""

    success: bool
    id: str
    timestamp: datetime
    version: int | None = None
    error: str | None = None


@dataclass(frozen=True)
class HierarchyNode:
    """A node with its children nested, as projected for tree rendering."""

    id: str
    title: str
    content: str
    depth: int
    parent_id: str | None
    expanded: bool
    created_at: datetime
    updated_at: datetime
    word_count: int
    version: int
    last_edited_by: str
    children: tuple["HierarchyNode", ...] = ()
    node_type: str = "text"

    @property
    def has_children(self) -> bool:
        return len(self.children) > 0

    def to_dict(self) -> dict[str, Any]:
        """Nested plain-dict form, children included."""
        return {
            "id": self.id,
            "title": self.title,
            "content": self.content,
            "node_type": self.node_type,
            "depth": self.depth,
            "parent_id": self.parent_id,
            "expanded": self.expanded,
            "has_children": self.has_children,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "word_count": self.word_count,
            "version": self.version,
            "last_edited_by": self.last_edited_by,
            "children": [child.to_dict() for child in self.children],
        }


@dataclass(frozen=True)
class StoreStats:
    """Aggregate view over a store's current state."""

    total_nodes: int
    root_count: int
    max_depth: int
    nodes_with_children: int
    pending_auto_saves: int
    last_activity: datetime | None
