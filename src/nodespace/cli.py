"""CLI for nodespace (edit, browse, search, MCP server)."""

import json
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Annotated

import typer
from loguru import logger

from nodespace.config import DATABASE_FILENAME, resolve_data_directory
from nodespace.core.store.node_store import NodeStore
from nodespace.core.store.sqlite_storage import SqliteStorage
from nodespace.core.tree.markdown import render_subtree_as_markdown
from nodespace.logging_config import configure_logging
from nodespace.models.node import Node
from nodespace.sample_data import seed_sample_data

app = typer.Typer(help="nodespace: a tree of titled text nodes.")

DataDirOption = Annotated[
    Path | None,
    typer.Option("--data-dir", "-d", help="Directory holding the node database"),
]


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
    log_file: Annotated[
        Path | None,
        typer.Option("--log-file", help="Also write debug logs to this file"),
    ] = None,
) -> None:
    configure_logging(verbose=verbose, log_file=log_file)


@contextmanager
def _open_store(data_dir: Path | None) -> Iterator[NodeStore]:
    """Open the SQLite-backed store, creating the database on first use."""
    db_path = (data_dir or resolve_data_directory()) / DATABASE_FILENAME
    storage = SqliteStorage.open(db_path)
    try:
        yield NodeStore(storage)
    finally:
        storage.close()


def _require_node(store: NodeStore, node_id: str) -> Node:
    node = store.load(node_id)
    if node is None:
        typer.echo(f"Node '{node_id}' not found.")
        raise typer.Exit(1)
    return node


@app.command()
def create(
    content: str = typer.Argument("", help="Node content"),
    title: Annotated[str | None, typer.Option("--title", "-t", help="Node title")] = None,
    data_dir: DataDirOption = None,
) -> None:
    """Create a root-level node."""
    with _open_store(data_dir) as store:
        node = store.create(content, title)
        if node is None:
            typer.echo("Failed to store the new node.")
            raise typer.Exit(1)
        typer.echo(node.id)


@app.command(name="add-child")
def add_child(
    parent_id: str = typer.Argument(..., help="Parent node ID"),
    content: str = typer.Argument("", help="Node content"),
    title: Annotated[str | None, typer.Option("--title", "-t", help="Node title")] = None,
    data_dir: DataDirOption = None,
) -> None:
    """Create a node under an existing parent."""
    with _open_store(data_dir) as store:
        _require_node(store, parent_id)
        node = store.create_child(parent_id, content, title)
        if node is None:
            typer.echo("Failed to store the new node.")
            raise typer.Exit(1)
        typer.echo(node.id)


@app.command()
def save(
    node_id: str = typer.Argument(..., help="Node ID (created if unknown)"),
    content: str = typer.Argument(..., help="New content"),
    title: Annotated[str | None, typer.Option("--title", "-t", help="New title")] = None,
    data_dir: DataDirOption = None,
) -> None:
    """Save new content for a node."""
    with _open_store(data_dir) as store:
        result = store.save(node_id, content, title)
        if not result.success:
            typer.echo(f"Save failed: {result.error}")
            raise typer.Exit(1)
        typer.echo(f"Saved {result.id} (version {result.version})")


@app.command()
def show(
    node_id: str = typer.Argument(..., help="Node ID"),
    output_json: bool = typer.Option(False, "--json", "-j", help="Output as JSON"),
    data_dir: DataDirOption = None,
) -> None:
    """Show a single node."""
    with _open_store(data_dir) as store:
        node = _require_node(store, node_id)
        if output_json:
            typer.echo(json.dumps(node.to_record(), indent=2))
            return
        typer.echo(f"{node.title}  [id={node.id}]")
        typer.echo(
            f"  depth={node.depth}  parent={node.parent_id or '-'}  "
            f"version={node.metadata.version}  words={node.metadata.word_count}  "
            f"children={len(node.children_ids)}"
        )
        typer.echo(f"  updated {node.updated_at:%Y-%m-%d %H:%M}")
        if node.content:
            typer.echo()
            typer.echo(node.content)


@app.command()
def move(
    node_id: str = typer.Argument(..., help="Node ID to move"),
    to: Annotated[str | None, typer.Option("--to", help="New parent node ID")] = None,
    root: bool = typer.Option(False, "--root", help="Make the node root-level"),
    data_dir: DataDirOption = None,
) -> None:
    """Move a node (and its subtree) under another node, or to the root level."""
    if (to is None) == (not root):
        typer.echo("Pass exactly one of --to or --root.")
        raise typer.Exit(2)
    with _open_store(data_dir) as store:
        _require_node(store, node_id)
        if to is not None:
            _require_node(store, to)
        if not store.move(node_id, to):
            typer.echo(f"Cannot move '{node_id}' under '{to}': it would become its own ancestor.")
            raise typer.Exit(1)
        moved = _require_node(store, node_id)
        typer.echo(f"Moved {node_id} (depth {moved.depth})")


@app.command()
def delete(
    node_id: str = typer.Argument(..., help="Node ID to delete"),
    data_dir: DataDirOption = None,
) -> None:
    """Delete a node together with all of its descendants."""
    with _open_store(data_dir) as store:
        if not store.delete(node_id):
            typer.echo(f"Node '{node_id}' not found.")
            raise typer.Exit(1)
        typer.echo(f"Deleted {node_id}")


@app.command()
def toggle(
    node_id: str = typer.Argument(..., help="Node ID"),
    data_dir: DataDirOption = None,
) -> None:
    """Expand or collapse a node with children."""
    with _open_store(data_dir) as store:
        _require_node(store, node_id)
        if not store.toggle_expansion(node_id):
            typer.echo(f"Node '{node_id}' has no children.")
            raise typer.Exit(1)
        state = "expanded" if _require_node(store, node_id).expanded else "collapsed"
        typer.echo(f"{node_id} {state}")


@app.command()
def children(
    parent_id: str = typer.Argument(..., help="Parent node ID"),
    data_dir: DataDirOption = None,
) -> None:
    """List the direct children of a node."""
    with _open_store(data_dir) as store:
        _require_node(store, parent_id)
        for child in store.children(parent_id):
            typer.echo(f"  {child.title}  [id={child.id}]")


@app.command()
def search(
    query: str = typer.Argument("", help="Search query (empty lists everything)"),
    limit: int = typer.Option(10, "--limit", "-n", help="Max results"),
    output_json: bool = typer.Option(False, "--json", "-j", help="Output as JSON"),
    data_dir: DataDirOption = None,
) -> None:
    """Search node titles and content."""
    with _open_store(data_dir) as store:
        results = store.search(query)
        shown = results[:limit]

        if output_json:
            data = {
                "results": [
                    {
                        "node_id": n.id,
                        "title": n.title,
                        "content": n.content,
                        "depth": n.depth,
                        "updated_at": n.updated_at.isoformat(),
                    }
                    for n in shown
                ],
                "total": len(results),
            }
            typer.echo(json.dumps(data, indent=2))
            return

        typer.echo(f"Found {len(results)} results (showing {len(shown)}):\n")
        for n in shown:
            typer.echo(f"  {n.title}")
            if n.content:
                typer.echo(f"    {n.content.splitlines()[0][:80]}")
            typer.echo(f"    id={n.id}  depth={n.depth}")
            typer.echo()


@app.command()
def tree(
    node_id: str | None = typer.Argument(None, help="Start node (default: every root)"),
    max_depth: Annotated[
        int | None,
        typer.Option("--max-depth", "-m", help="Max depth levels to render"),
    ] = None,
    titles_only: bool = typer.Option(False, "--titles-only", help="Omit node content"),
    data_dir: DataDirOption = None,
) -> None:
    """Render the tree (or a subtree) as markdown."""
    with _open_store(data_dir) as store:
        if node_id is not None:
            _require_node(store, node_id)
        md = render_subtree_as_markdown(
            store, node_id=node_id, max_depth=max_depth, include_content=not titles_only
        )
        typer.echo(md.rstrip("\n") if md else "No nodes.")


@app.command()
def stats(data_dir: DataDirOption = None) -> None:
    """Show node counts and tree depth."""
    with _open_store(data_dir) as store:
        s = store.stats()
        typer.echo(f"Nodes:               {s.total_nodes}")
        typer.echo(f"Root nodes:          {s.root_count}")
        typer.echo(f"Max depth:           {s.max_depth}")
        typer.echo(f"Nodes with children: {s.nodes_with_children}")
        if s.last_activity is not None:
            typer.echo(f"Last activity:       {s.last_activity:%Y-%m-%d %H:%M:%S}")


@app.command()
def check(data_dir: DataDirOption = None) -> None:
    """Verify parent/child links and depths."""
    with _open_store(data_dir) as store:
        problems = store.verify_integrity()
        if problems:
            for problem in problems:
                typer.echo(f"  {problem}")
            typer.echo(f"{len(problems)} problems found.")
            raise typer.Exit(1)
        typer.echo(f"OK: {len(store)} nodes consistent.")


@app.command()
def seed(data_dir: DataDirOption = None) -> None:
    """Add the sample hierarchy (a root, two chapters, two sections)."""
    with _open_store(data_dir) as store:
        root = seed_sample_data(store)
        if root is None:
            logger.error("Seeding failed")
            raise typer.Exit(1)
        typer.echo(root.id)


@app.command()
def serve() -> None:
    """Start the MCP server (stdio transport)."""
    from nodespace.mcp.server import run_mcp_server

    run_mcp_server()
