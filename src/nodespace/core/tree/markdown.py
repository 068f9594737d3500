"""Render node subtrees as markdown."""

import io

from nodespace.core.store.node_store import NodeStore
from nodespace.models.node import HierarchyNode


def _find_view(roots: list[HierarchyNode], node_id: str) -> HierarchyNode | None:
    stack = list(roots)
    while stack:
        view = stack.pop()
        if view.id == node_id:
            return view
        stack.extend(view.children)
    return None


def render_subtree_as_markdown(
    store: NodeStore,
    *,
    node_id: str | None = None,
    max_depth: int | None = None,
    include_content: bool = True,
) -> str:
    """Render a node and its descendants as indented markdown.

    Args:
        store: Node store to read from.
        node_id: The root node to start rendering from (None = every root).
        max_depth: Max levels below the start node to include (None = unlimited).
        include_content: Whether to include node content under each title.

    Returns:
        Markdown string with bullet-list hierarchy, or "" if node_id is unknown.
    """
    roots = store.build_hierarchy()
    if node_id is not None:
        start = _find_view(roots, node_id)
        if start is None:
            return ""
        roots = [start]

    out = io.StringIO()
    stack: list[tuple[HierarchyNode, int]] = [(view, 0) for view in reversed(roots)]
    while stack:
        view, level = stack.pop()
        indent = "    " * level
        out.write(f"{indent}- {view.title}\n")

        if include_content and view.content:
            for line in view.content.split("\n"):
                out.write(f"{indent}  {line}".rstrip() + "\n")

        # Truncation indicator when children are cut off by max_depth
        if max_depth is not None and level >= max_depth:
            if view.children:
                count = len(view.children)
                noun = "child" if count == 1 else "children"
                out.write(f"{indent}    - ... ({count} more {noun}, id={view.id})\n")
            continue

        stack.extend((child, level + 1) for child in reversed(view.children))

    return out.getvalue()
