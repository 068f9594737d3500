"""Exception types raised inside nodespace."""


class NodespaceError(Exception):
    """Base class for nodespace errors."""


class StorageError(NodespaceError):
    """A storage backend failed to read or write a record."""
