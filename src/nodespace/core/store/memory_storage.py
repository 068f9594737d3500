"""Dict-backed record storage, the default when nothing durable is configured."""

import copy
from collections.abc import Iterator, Sequence
from typing import Any


class MemoryStorage:
    """Keep deep copies of records in a dict."""

    def __init__(self) -> None:
        self.records: dict[str, dict[str, Any]] = {}

    def get(self, node_id: str) -> dict[str, Any] | None:
        record = self.records.get(node_id)
        return copy.deepcopy(record) if record is not None else None

    def put(self, node_id: str, record: dict[str, Any]) -> None:
        self.write_batch([(node_id, record)])

    def delete(self, node_id: str) -> None:
        self.write_batch([], [node_id])

    def write_batch(
        self,
        puts: Sequence[tuple[str, dict[str, Any]]],
        deletes: Sequence[str] = (),
    ) -> None:
        # Copy everything before touching the dict.
        staged = [(node_id, copy.deepcopy(record)) for node_id, record in puts]
        for node_id, record in staged:
            self.records[node_id] = record
        for node_id in deletes:
            self.records.pop(node_id, None)

    def items(self) -> Iterator[tuple[str, dict[str, Any]]]:
        for node_id, record in list(self.records.items()):
            yield node_id, copy.deepcopy(record)
