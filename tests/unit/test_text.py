"""Tests for word counting and node id helpers."""

import pytest

from nodespace.core.text import generate_node_id, is_valid_node_id, word_count


@pytest.mark.parametrize(
    ("content", "expected"),
    [
        ("  hello   world  ", 2),
        ("", 0),
        ("one", 1),
        ("   \n\t  ", 0),
        ("line one\nline two\ttabbed", 5),
    ],
)
def test_word_count(content: str, expected: int) -> None:
    assert word_count(content) == expected


def test_generated_ids_are_unique_and_valid() -> None:
    ids = {generate_node_id() for _ in range(200)}
    assert len(ids) == 200
    assert all(i.startswith("text-") for i in ids)
    assert all(is_valid_node_id(i) for i in ids)


@pytest.mark.parametrize("bad", ["", "has space", "tab\there", "x" * 129, None, 42])
def test_invalid_node_ids(bad: object) -> None:
    assert is_valid_node_id(bad) is False
