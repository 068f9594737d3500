"""Tests for the debounced auto-save coordinator."""

import asyncio

import pytest

from nodespace.core.autosave import AutoSaveCoordinator
from nodespace.core.store.node_store import NodeStore
from nodespace.models.node import SaveResult


class SaveSpy:
    """Wrap NodeStore.save and remember each call."""

    def __init__(self, store: NodeStore) -> None:
        self._save = store.save
        self.calls: list[tuple[str, str, str | None]] = []

    def __call__(self, node_id: str, content: str, title: str | None = None) -> SaveResult:
        self.calls.append((node_id, content, title))
        return self._save(node_id, content, title)


@pytest.fixture
def spy(store: NodeStore, monkeypatch: pytest.MonkeyPatch) -> SaveSpy:
    recorder = SaveSpy(store)
    monkeypatch.setattr(store, "save", recorder)
    return recorder


@pytest.fixture
def autosave(store: NodeStore) -> AutoSaveCoordinator:
    return AutoSaveCoordinator(store, delay_ms=10)


@pytest.mark.asyncio
async def test_rapid_schedules_coalesce_into_one_save(
    store: NodeStore, spy: SaveSpy, autosave: AutoSaveCoordinator
) -> None:
    first = autosave.schedule("n1", "a")
    second = autosave.schedule("n1", "b")

    result = await asyncio.wait_for(second, timeout=1)
    await asyncio.sleep(0.05)

    assert result.success is True
    assert spy.calls == [("n1", "b", None)]
    assert not first.done()
    node = store.load("n1")
    assert node is not None
    assert node.content == "b"
    assert node.metadata.version == 1


@pytest.mark.asyncio
async def test_different_ids_are_independent(
    spy: SaveSpy, autosave: AutoSaveCoordinator
) -> None:
    one = autosave.schedule("n1", "first")
    two = autosave.schedule("n2", "second", title="Second")
    assert autosave.pending_count == 2

    results = await asyncio.wait_for(asyncio.gather(one, two), timeout=1)

    assert [r.id for r in results] == ["n1", "n2"]
    assert sorted(spy.calls) == [("n1", "first", None), ("n2", "second", "Second")]
    assert autosave.pending_count == 0


@pytest.mark.asyncio
async def test_cancel_prevents_the_save(spy: SaveSpy, autosave: AutoSaveCoordinator) -> None:
    future = autosave.schedule("n1", "draft")
    assert autosave.is_pending("n1")

    autosave.cancel("n1")
    await asyncio.sleep(0.05)

    assert spy.calls == []
    assert not autosave.is_pending("n1")
    assert not future.done()


@pytest.mark.asyncio
async def test_cancel_without_pending_is_noop(autosave: AutoSaveCoordinator) -> None:
    autosave.cancel("nothing-here")
    assert autosave.pending_count == 0


@pytest.mark.asyncio
async def test_pending_slot_is_released_before_future_resolves(
    autosave: AutoSaveCoordinator,
) -> None:
    seen: list[bool] = []
    future = autosave.schedule("n1", "text")
    future.add_done_callback(lambda _: seen.append(autosave.is_pending("n1")))

    await asyncio.wait_for(future, timeout=1)
    await asyncio.sleep(0)

    assert seen == [False]


@pytest.mark.asyncio
async def test_delete_cancels_pending_save(
    store: NodeStore, spy: SaveSpy, autosave: AutoSaveCoordinator
) -> None:
    node = store.create("original")
    assert node is not None
    autosave.schedule(node.id, "edited")

    assert store.delete(node.id) is True
    await asyncio.sleep(0.05)

    assert spy.calls == []
    assert store.load(node.id) is None
    assert not autosave.is_pending(node.id)


@pytest.mark.asyncio
async def test_stats_report_pending_auto_saves(
    store: NodeStore, autosave: AutoSaveCoordinator
) -> None:
    autosave.schedule("n1", "x", delay_ms=5000)
    autosave.schedule("n2", "y", delay_ms=5000)
    assert store.stats().pending_auto_saves == 2

    autosave.cancel_all()
    assert store.stats().pending_auto_saves == 0


@pytest.mark.asyncio
async def test_flush_saves_immediately(
    store: NodeStore, spy: SaveSpy, autosave: AutoSaveCoordinator
) -> None:
    future = autosave.schedule("n1", "now please", delay_ms=5000)
    autosave.schedule("n2", "later", delay_ms=5000)

    results = autosave.flush("n1")

    assert [r.id for r in results] == ["n1"]
    assert future.done()
    assert future.result().success is True
    assert store.load("n1") is not None
    assert autosave.is_pending("n2")

    remaining = autosave.flush()
    assert [r.id for r in remaining] == ["n2"]
    assert autosave.pending_count == 0
    assert len(spy.calls) == 2


@pytest.mark.asyncio
async def test_invalid_id_resolves_with_failed_result(autosave: AutoSaveCoordinator) -> None:
    result = await asyncio.wait_for(autosave.schedule("bad id", "text"), timeout=1)
    assert result.success is False
    assert result.error is not None


def test_schedule_requires_running_loop(autosave: AutoSaveCoordinator) -> None:
    with pytest.raises(RuntimeError):
        autosave.schedule("n1", "text")
