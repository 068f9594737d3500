"""Protocols for dependency injection in the node store."""

from collections.abc import Iterator, Sequence
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class StorageProtocol(Protocol):
    """Protocol for durable record stores behind a NodeStore.

    Implementations raise StorageError when a read or write fails.
    """

    def get(self, node_id: str) -> dict[str, Any] | None:
        """Return the stored record, or None if absent."""
        ...

    def put(self, node_id: str, record: dict[str, Any]) -> None:
        """Insert or replace a record."""
        ...

    def delete(self, node_id: str) -> None:
        """Remove a record. Missing ids are ignored."""
        ...

    def write_batch(
        self,
        puts: Sequence[tuple[str, dict[str, Any]]],
        deletes: Sequence[str] = (),
    ) -> None:
        """Apply every put and delete together, or none of them."""
        ...

    def items(self) -> Iterator[tuple[str, dict[str, Any]]]:
        """Yield every stored (id, record) pair."""
        ...


@runtime_checkable
class PendingSaveTracker(Protocol):
    """Protocol for the auto-save coordinator as seen by the store."""

    @property
    def pending_count(self) -> int:
        """Number of node ids with a save waiting to fire."""
        ...

    def cancel(self, node_id: str) -> None:
        """Drop the pending save for node_id, if any."""
        ...
