"""Debounced auto-save: coalesce bursts of edits into one save per node."""

import asyncio
from dataclasses import dataclass

from loguru import logger

from nodespace.config import AUTO_SAVE_DELAY_MS
from nodespace.core.store.node_store import NodeStore
from nodespace.models.node import SaveResult


@dataclass
class _PendingSave:
    task: asyncio.Task[None]
    result: asyncio.Future[SaveResult]
    content: str
    title: str | None


class AutoSaveCoordinator:
    """Hold at most one pending save per node id.

    Each schedule() call replaces the pending save for its id and restarts the
    delay. A replaced or cancelled schedule() future is abandoned: it is never
    resolved and never rejected, so callers must not wait on it.

    Must be used from inside a running event loop.
    """

    def __init__(self, store: NodeStore, *, delay_ms: int = AUTO_SAVE_DELAY_MS) -> None:
        self._store = store
        self.delay_ms = delay_ms
        self._pending: dict[str, _PendingSave] = {}
        store.bind_autosave(self)

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def is_pending(self, node_id: str) -> bool:
        return node_id in self._pending

    def schedule(
        self,
        node_id: str,
        content: str,
        title: str | None = None,
        delay_ms: int | None = None,
    ) -> asyncio.Future[SaveResult]:
        """Save content after delay_ms of quiet, superseding any earlier schedule.

        Returns a future resolving to the SaveResult once the save has run.
        """
        loop = asyncio.get_running_loop()
        self.cancel(node_id)

        delay = self.delay_ms if delay_ms is None else delay_ms
        result: asyncio.Future[SaveResult] = loop.create_future()
        task = loop.create_task(self._fire_after(node_id, result, max(delay, 0) / 1000))
        self._pending[node_id] = _PendingSave(task=task, result=result, content=content, title=title)
        logger.debug("Auto-save for {} scheduled in {} ms", node_id, delay)
        return result

    def cancel(self, node_id: str) -> None:
        """Drop the pending save for node_id. No-op if nothing is pending."""
        pending = self._pending.pop(node_id, None)
        if pending is None:
            return
        pending.task.cancel()
        logger.debug("Auto-save for {} cancelled", node_id)

    def cancel_all(self) -> None:
        for node_id in list(self._pending):
            self.cancel(node_id)

    def flush(self, node_id: str | None = None) -> list[SaveResult]:
        """Run pending saves now instead of waiting out the delay.

        Flushes only node_id when given, else every pending save.
        """
        node_ids = [node_id] if node_id is not None else list(self._pending)
        results: list[SaveResult] = []
        for pending_id in node_ids:
            pending = self._pending.get(pending_id)
            if pending is None:
                continue
            pending.task.cancel()
            result = self._run(pending_id, pending)
            if result is not None:
                results.append(result)
        return results

    async def _fire_after(
        self, node_id: str, token: asyncio.Future[SaveResult], delay_s: float
    ) -> None:
        await asyncio.sleep(delay_s)
        pending = self._pending.get(node_id)
        if pending is None or pending.result is not token:
            return
        self._run(node_id, pending)

    def _run(self, node_id: str, pending: _PendingSave) -> SaveResult | None:
        if self._pending.get(node_id) is not pending:
            return None
        # The slot is released before the future resolves.
        del self._pending[node_id]
        result = self._store.save(node_id, pending.content, pending.title)
        if not result.success:
            logger.warning("Auto-save for {} failed: {}", node_id, result.error)
        if not pending.result.done():
            pending.result.set_result(result)
        return result
