"""MCP server exposing node tree editing, search and auto-save tools."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any

from loguru import logger
from mcp.server.fastmcp import Context, FastMCP

from nodespace.config import DATABASE_FILENAME, resolve_data_directory
from nodespace.core.autosave import AutoSaveCoordinator
from nodespace.core.store.node_store import NodeStore
from nodespace.core.store.sqlite_storage import SqliteStorage
from nodespace.core.tree.markdown import render_subtree_as_markdown
from nodespace.models.node import Node


def _node_dict(node: Node, *, response_format: str = "detailed") -> dict[str, Any]:
    entry: dict[str, Any] = {
        "id": node.id,
        "title": node.title,
        "content": node.content if response_format == "detailed" else node.content[:120],
        "parent_id": node.parent_id,
        "depth": node.depth,
        "updated_at": node.updated_at.isoformat(),
    }
    if response_format == "detailed":
        entry.update(
            {
                "expanded": node.expanded,
                "created_at": node.created_at.isoformat(),
                "word_count": node.metadata.word_count,
                "version": node.metadata.version,
                "has_children": node.has_children,
                "children_ids": list(node.children_ids),
                "last_edited_by": node.metadata.last_edited_by,
            }
        )
    return entry


# --- Core functions (testable without MCP context) ---


def nodespace_create(
    store: NodeStore, *, content: str = "", title: str | None = None
) -> dict[str, Any]:
    """Create a root-level node."""
    node = store.create(content, title)
    if node is None:
        return {"error": "Storage rejected the new node."}
    return {"node": _node_dict(node)}


def nodespace_create_child(
    store: NodeStore, *, parent_id: str, content: str = "", title: str | None = None
) -> dict[str, Any]:
    """Create a node under an existing parent.

    Args:
        parent_id: Parent node ID.
        content: Content for the new node.
        title: Optional title (default "New Child Node").
    """
    if parent_id not in store:
        return {"error": f"Node '{parent_id}' not found."}
    node = store.create_child(parent_id, content, title)
    if node is None:
        return {"error": "Storage rejected the new node."}
    return {"node": _node_dict(node)}


def nodespace_save(
    store: NodeStore, *, node_id: str, content: str, title: str | None = None
) -> dict[str, Any]:
    """Save content immediately (creates the node if the id is unknown)."""
    result = store.save(node_id, content, title)
    output: dict[str, Any] = {
        "success": result.success,
        "node_id": result.id,
        "timestamp": result.timestamp.isoformat(),
    }
    if result.success:
        output["version"] = result.version
    else:
        output["error"] = result.error
    return output


def nodespace_read_node(
    store: NodeStore,
    *,
    node_id: str,
    max_depth: int | None = None,
    output_format: str = "markdown",
) -> dict[str, Any]:
    """Read a node and its subtree as markdown or structured JSON.

    Args:
        node_id: Node ID to read.
        max_depth: Max depth levels to include (None = unlimited).
        output_format: "markdown" or "json".
    """
    node = store.load(node_id)
    if node is None:
        return {"error": f"Node '{node_id}' not found."}

    if output_format == "markdown":
        md = render_subtree_as_markdown(store, node_id=node_id, max_depth=max_depth)
        estimated_tokens = len(md) // 4
        result: dict[str, Any] = {
            "content": md,
            "node_id": node_id,
            "estimated_tokens": estimated_tokens,
        }
        if estimated_tokens > 5000:
            result["warning"] = (
                f"Large result (~{estimated_tokens} tokens). "
                "Consider using max_depth to limit output."
            )
        return result

    # JSON format: recursive tree up to max_depth
    def _build_children(parent_id: str, remaining_depth: int | None) -> list[dict[str, Any]]:
        result_list = []
        for c in store.children(parent_id):
            entry: dict[str, Any] = {
                "id": c.id,
                "title": c.title,
                "content": c.content,
                "child_count": len(c.children_ids),
            }
            if c.has_children and (remaining_depth is None or remaining_depth > 1):
                next_depth = None if remaining_depth is None else remaining_depth - 1
                entry["children"] = _build_children(c.id, next_depth)
            result_list.append(entry)
        return result_list

    return {
        "node": _node_dict(node),
        "children": _build_children(node_id, max_depth),
    }


def nodespace_delete(store: NodeStore, *, node_id: str) -> dict[str, Any]:
    """Delete a node and its whole subtree."""
    if not store.delete(node_id):
        return {"success": False, "error": f"Node '{node_id}' not found."}
    return {"success": True, "node_id": node_id}


def nodespace_move(
    store: NodeStore, *, node_id: str, new_parent_id: str | None = None
) -> dict[str, Any]:
    """Move a node under a new parent, or to the root level when new_parent_id is None."""
    if node_id not in store:
        return {"success": False, "error": f"Node '{node_id}' not found."}
    if new_parent_id is not None and new_parent_id not in store:
        return {"success": False, "error": f"Node '{new_parent_id}' not found."}
    if not store.move(node_id, new_parent_id):
        return {
            "success": False,
            "error": f"Cannot move '{node_id}' under '{new_parent_id}': it would become "
            "its own ancestor.",
        }
    moved = store.load(node_id)
    return {"success": True, "node_id": node_id, "depth": moved.depth if moved else None}


def nodespace_toggle_expansion(store: NodeStore, *, node_id: str) -> dict[str, Any]:
    """Expand or collapse a node that has children."""
    if not store.toggle_expansion(node_id):
        return {"success": False, "error": f"Node '{node_id}' not found or has no children."}
    node = store.load(node_id)
    return {"success": True, "node_id": node_id, "expanded": node.expanded if node else None}


def nodespace_children(store: NodeStore, *, parent_id: str) -> dict[str, Any]:
    """List direct children of a node, oldest first."""
    children = store.children(parent_id)
    return {
        "parent_id": parent_id,
        "children": [_node_dict(c, response_format="concise") for c in children],
        "count": len(children),
    }


def nodespace_search(
    store: NodeStore,
    *,
    query: str = "",
    limit: int = 20,
    offset: int = 0,
    response_format: str = "concise",
) -> dict[str, Any]:
    """Search node titles and content (case-insensitive substring).

    An empty query lists every node, most recently updated first.

    Args:
        query: Search text.
        limit: Max results (1-50, default 20).
        offset: Pagination offset.
        response_format: "concise" or "detailed".
    """
    limit = max(1, min(limit, 50))
    offset = max(0, offset)
    matches = store.search(query)
    total = len(matches)
    page = matches[offset : offset + limit]

    output: dict[str, Any] = {
        "results": [_node_dict(n, response_format=response_format) for n in page],
        "count": len(page),
        "total": total,
        "has_more": offset + len(page) < total,
    }
    if output["has_more"]:
        output["next_offset"] = offset + limit
    return output


def nodespace_hierarchy(store: NodeStore) -> dict[str, Any]:
    """Return every root with its nested children."""
    roots = store.build_hierarchy()
    return {"roots": [r.to_dict() for r in roots], "count": len(roots)}


def nodespace_stats(store: NodeStore) -> dict[str, Any]:
    stats = store.stats()
    return {
        "total_nodes": stats.total_nodes,
        "root_count": stats.root_count,
        "max_depth": stats.max_depth,
        "nodes_with_children": stats.nodes_with_children,
        "pending_auto_saves": stats.pending_auto_saves,
        "last_activity": stats.last_activity.isoformat() if stats.last_activity else None,
    }


def nodespace_schedule_save(
    autosave: AutoSaveCoordinator,
    *,
    node_id: str,
    content: str,
    title: str | None = None,
    delay_ms: int | None = None,
) -> dict[str, Any]:
    """Queue a debounced save; must be called from a running event loop."""
    autosave.schedule(node_id, content, title, delay_ms)
    return {
        "scheduled": True,
        "node_id": node_id,
        "delay_ms": autosave.delay_ms if delay_ms is None else delay_ms,
        "pending_auto_saves": autosave.pending_count,
    }


def nodespace_cancel_save(autosave: AutoSaveCoordinator, *, node_id: str) -> dict[str, Any]:
    was_pending = autosave.is_pending(node_id)
    autosave.cancel(node_id)
    return {"cancelled": was_pending, "node_id": node_id}


# --- MCP Server Setup ---


@dataclass
class ServerContext:
    """Shared resources for the MCP server lifetime."""

    storage: SqliteStorage
    store: NodeStore
    autosave: AutoSaveCoordinator


@asynccontextmanager
async def server_lifespan(_server: FastMCP) -> AsyncIterator[ServerContext]:
    """Open database on startup; flush pending saves and close on shutdown."""
    db_path = resolve_data_directory() / DATABASE_FILENAME
    storage = SqliteStorage.open(db_path)
    store = NodeStore(storage)
    autosave = AutoSaveCoordinator(store)
    logger.info("Serving {} nodes from {}", len(store), db_path)
    try:
        yield ServerContext(storage=storage, store=store, autosave=autosave)
    finally:
        flushed = autosave.flush()
        if flushed:
            logger.info("Flushed {} pending auto-saves", len(flushed))
        storage.close()


mcp_server = FastMCP(
    "nodespace",
    instructions="""\
nodespace is a tree of titled text nodes. Every node has an id, a title, markdown-like
content, a parent (or none for root-level nodes) and ordered children.

## Workflow
1. Use nodespace_search_tool or nodespace_hierarchy_tool to find nodes.
2. Read a subtree with nodespace_read_node_tool (max_depth=2 keeps output small).
3. Edit with nodespace_save_tool for an immediate write, or
   nodespace_schedule_save_tool while a user is still typing; repeated schedules
   for the same node collapse into a single write after a quiet period.
4. Restructure with nodespace_create_child_tool and nodespace_move_tool. A node can
   never be moved under one of its own descendants.

Deleting a node deletes its whole subtree.
""",
    lifespan=server_lifespan,
)


def _ctx(mcp_ctx: Context) -> ServerContext:
    return mcp_ctx.request_context.lifespan_context  # type: ignore[return-value]


# --- MCP Tool Wrappers ---


@mcp_server.tool()
async def nodespace_create_tool(
    ctx: Context, content: str = "", title: str | None = None
) -> dict[str, Any]:
    """Create a new root-level node.

    Args:
        content: Node content (markdown-like text).
        title: Optional title (default "New Text Node").
    """
    return nodespace_create(_ctx(ctx).store, content=content, title=title)


@mcp_server.tool()
async def nodespace_create_child_tool(
    ctx: Context, parent_id: str, content: str = "", title: str | None = None
) -> dict[str, Any]:
    """Create a node as the last child of parent_id.

    Args:
        parent_id: Parent node ID.
        content: Node content.
        title: Optional title (default "New Child Node").
    """
    return nodespace_create_child(
        _ctx(ctx).store, parent_id=parent_id, content=content, title=title
    )


@mcp_server.tool()
async def nodespace_save_tool(
    ctx: Context, node_id: str, content: str, title: str | None = None
) -> dict[str, Any]:
    """Save a node's content now. Unknown ids create a new root-level node.

    Any pending scheduled save for the node is dropped first.

    Args:
        node_id: Node ID.
        content: Full new content.
        title: New title (keeps the current title when omitted).
    """
    server = _ctx(ctx)
    server.autosave.cancel(node_id)
    return nodespace_save(server.store, node_id=node_id, content=content, title=title)


@mcp_server.tool()
async def nodespace_schedule_save_tool(
    ctx: Context,
    node_id: str,
    content: str,
    title: str | None = None,
    delay_ms: int | None = None,
) -> dict[str, Any]:
    """Schedule a debounced save. A later schedule for the same node replaces this one.

    Args:
        node_id: Node ID.
        content: Full new content.
        title: New title (keeps the current title when omitted).
        delay_ms: Quiet period before writing (default 2000).
    """
    return nodespace_schedule_save(
        _ctx(ctx).autosave, node_id=node_id, content=content, title=title, delay_ms=delay_ms
    )


@mcp_server.tool()
async def nodespace_cancel_save_tool(ctx: Context, node_id: str) -> dict[str, Any]:
    """Cancel a pending scheduled save.

    Args:
        node_id: Node ID.
    """
    return nodespace_cancel_save(_ctx(ctx).autosave, node_id=node_id)


@mcp_server.tool()
async def nodespace_read_node_tool(
    ctx: Context,
    node_id: str,
    max_depth: int | None = None,
    output_format: str = "markdown",
) -> dict[str, Any]:
    """Read a node and its subtree as markdown or structured JSON.

    Args:
        node_id: Node ID to read.
        max_depth: Max depth levels (None = unlimited).
        output_format: "markdown" (human-readable) or "json" (structured).
    """
    return nodespace_read_node(
        _ctx(ctx).store, node_id=node_id, max_depth=max_depth, output_format=output_format
    )


@mcp_server.tool()
async def nodespace_delete_tool(ctx: Context, node_id: str) -> dict[str, Any]:
    """Delete a node and all of its descendants.

    Args:
        node_id: Node ID to delete.
    """
    return nodespace_delete(_ctx(ctx).store, node_id=node_id)


@mcp_server.tool()
async def nodespace_move_tool(
    ctx: Context, node_id: str, new_parent_id: str | None = None
) -> dict[str, Any]:
    """Move a node (with its subtree) under a new parent, or to root level.

    Args:
        node_id: Node ID to move.
        new_parent_id: New parent node ID; omit to make the node root-level.
    """
    return nodespace_move(_ctx(ctx).store, node_id=node_id, new_parent_id=new_parent_id)


@mcp_server.tool()
async def nodespace_toggle_expansion_tool(ctx: Context, node_id: str) -> dict[str, Any]:
    """Expand or collapse a node that has children.

    Args:
        node_id: Node ID.
    """
    return nodespace_toggle_expansion(_ctx(ctx).store, node_id=node_id)


@mcp_server.tool()
async def nodespace_children_tool(ctx: Context, parent_id: str) -> dict[str, Any]:
    """List the direct children of a node, oldest first.

    Args:
        parent_id: Parent node ID.
    """
    return nodespace_children(_ctx(ctx).store, parent_id=parent_id)


@mcp_server.tool()
async def nodespace_search_tool(
    ctx: Context,
    query: str = "",
    limit: int = 20,
    offset: int = 0,
    response_format: str = "concise",
) -> dict[str, Any]:
    """Search node titles and content, most recently updated first.

    Pagination: When has_more is true, use next_offset in a follow-up call.

    Args:
        query: Search text (case-insensitive substring). Empty lists everything.
        limit: Max results (1-50, default 20).
        offset: Pagination offset.
        response_format: "concise" or "detailed".
    """
    return nodespace_search(
        _ctx(ctx).store, query=query, limit=limit, offset=offset, response_format=response_format
    )


@mcp_server.tool()
async def nodespace_hierarchy_tool(ctx: Context) -> dict[str, Any]:
    """Return the whole tree: every root-level node with nested children."""
    return nodespace_hierarchy(_ctx(ctx).store)


@mcp_server.tool()
async def nodespace_stats_tool(ctx: Context) -> dict[str, Any]:
    """Node counts, maximum depth and pending auto-saves."""
    return nodespace_stats(_ctx(ctx).store)


def run_mcp_server() -> None:
    """Run the MCP server with stdio transport."""
    from nodespace.logging_config import configure_logging

    configure_logging(verbose=False)
    mcp_server.run(transport="stdio")
