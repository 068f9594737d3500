"""Sample hierarchy for trying nodespace out."""

from nodespace.core.store.node_store import NodeStore
from nodespace.models.node import Node

_ROOT = (
    "Project Root",
    "This is the **root node** of our hierarchical structure.\n\n"
    "It contains several child nodes demonstrating tree patterns.",
)

# (title, content, children)
_CHAPTERS: list[tuple[str, str, list[tuple[str, str]]]] = [
    (
        "Chapter 1: Introduction",
        "This is the **first child node**.\n\n"
        "It has its own children to demonstrate multi-level hierarchy.",
        [
            (
                "Section 1.1: Core Concepts",
                "This is a **grandchild node** at depth 2.\n\n"
                "- Demonstrates deeper hierarchy\n- Shows indentation patterns",
            ),
            (
                "Section 1.2: Advanced Features",
                "Another **grandchild node** showing sibling relationships.\n\n"
                "This completes our hierarchy example.",
            ),
        ],
    ),
    (
        "Chapter 2: Conclusion",
        "This is the **second child node**.\n\nIt's a leaf node with no children.",
        [],
    ),
]


def seed_sample_data(store: NodeStore) -> Node | None:
    """Create a root with two chapters and two sections; return the root."""
    title, content = _ROOT
    root = store.create(content, title)
    if root is None:
        return None
    for chapter_title, chapter_content, sections in _CHAPTERS:
        chapter = store.create_child(root.id, chapter_content, chapter_title)
        if chapter is None:
            return None
        for section_title, section_content in sections:
            if store.create_child(chapter.id, section_content, section_title) is None:
                return None
        if sections:
            store.toggle_expansion(chapter.id)
    return store.load(root.id)
