"""Hierarchical note store with reparenting, search and debounced auto-save."""

from nodespace.core.autosave import AutoSaveCoordinator
from nodespace.core.store.memory_storage import MemoryStorage
from nodespace.core.store.node_store import NodeStore
from nodespace.core.store.sqlite_storage import SqliteStorage
from nodespace.models.node import HierarchyNode, Node, NodeMetadata, SaveResult, StoreStats
from nodespace.protocols import PendingSaveTracker, StorageProtocol

__all__ = [
    "AutoSaveCoordinator",
    "HierarchyNode",
    "MemoryStorage",
    "Node",
    "NodeMetadata",
    "NodeStore",
    "PendingSaveTracker",
    "SaveResult",
    "SqliteStorage",
    "StorageProtocol",
    "StoreStats",
]
