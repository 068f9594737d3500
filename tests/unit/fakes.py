"""Fake implementations for testing the node store."""

from collections.abc import Sequence
from typing import Any

from nodespace.core.store.memory_storage import MemoryStorage
from nodespace.exceptions import StorageError


class FlakyStorage(MemoryStorage):
    """MemoryStorage that can be told to fail writes.

    ``fail_writes`` fails every batch. ``fail_on_write`` fails the batch that
    contains the Nth record write (1-based, counted over the storage's life),
    after the earlier records of that batch were already staged. A failed
    batch leaves the records untouched. Successful puts and deletes are
    recorded for assertions.
    """

    def __init__(self) -> None:
        super().__init__()
        self.fail_writes = False
        self.fail_on_write: int | None = None
        self.writes = 0
        self.puts: list[str] = []
        self.deletes: list[str] = []

    def write_batch(
        self,
        puts: Sequence[tuple[str, dict[str, Any]]],
        deletes: Sequence[str] = (),
    ) -> None:
        for node_id in [node_id for node_id, _ in puts] + list(deletes):
            self.writes += 1
            if self.fail_writes or self.writes == self.fail_on_write:
                msg = f"disk full while writing {node_id}"
                raise StorageError(msg)
        super().write_batch(puts, deletes)
        self.puts.extend(node_id for node_id, _ in puts)
        self.deletes.extend(deletes)


class RecordingTracker:
    """Stand-in for AutoSaveCoordinator that records cancellations."""

    def __init__(self, pending: set[str] | None = None) -> None:
        self.pending: set[str] = set(pending or ())
        self.cancelled: list[str] = []

    @property
    def pending_count(self) -> int:
        return len(self.pending)

    def cancel(self, node_id: str) -> None:
        self.cancelled.append(node_id)
        self.pending.discard(node_id)
