"""Shared test fixtures."""

import pytest

from nodespace.core.store.node_store import NodeStore
from nodespace.models.node import Node
from nodespace.sample_data import seed_sample_data
from tests.unit.fakes import FlakyStorage


@pytest.fixture
def store() -> NodeStore:
    """Return an empty in-memory store."""
    return NodeStore()


@pytest.fixture
def chain(store: NodeStore) -> tuple[Node, Node, Node]:
    """Build A -> B -> C (C's parent is B, B's parent is A) and return the three nodes."""
    a = store.create("alpha content", "A")
    assert a is not None
    b = store.create_child(a.id, "beta content", "B")
    assert b is not None
    c = store.create_child(b.id, "gamma content", "C")
    assert c is not None
    return a, b, c


@pytest.fixture
def sample_store(store: NodeStore) -> NodeStore:
    """Return a store holding the five-node sample hierarchy."""
    assert seed_sample_data(store) is not None
    return store


@pytest.fixture
def flaky_storage() -> FlakyStorage:
    return FlakyStorage()
