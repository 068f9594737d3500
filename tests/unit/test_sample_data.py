"""Tests for the sample hierarchy."""

from nodespace.core.store.node_store import NodeStore
from nodespace.sample_data import seed_sample_data
from tests.unit.fakes import FlakyStorage


def test_seed_builds_two_level_hierarchy(store: NodeStore) -> None:
    root = seed_sample_data(store)
    assert root is not None
    assert root.title == "Project Root"
    assert len(root.children_ids) == 2
    assert len(store) == 5
    assert store.verify_integrity() == []


def test_seed_collapses_chapter_with_sections(store: NodeStore) -> None:
    root = seed_sample_data(store)
    assert root is not None
    chapter_one, chapter_two = store.children(root.id)
    assert chapter_one.expanded is True
    assert chapter_two.expanded is False
    assert all(s.depth == 2 for s in store.children(chapter_one.id))


def test_seed_reports_storage_failure(flaky_storage: FlakyStorage) -> None:
    flaky_storage.fail_writes = True
    assert seed_sample_data(NodeStore(flaky_storage)) is None
