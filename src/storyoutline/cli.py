"""CLI entrypoints for storyoutline."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any, NoReturn, Optional

import typer

from storyoutline.config import Settings, load_settings
from storyoutline.logging import configure_logging, get_logger
from storyoutline.store import OutlineStore
from storyoutline.tools import build_outline_registry

app = typer.Typer(add_completion=False, help="Path-addressed novel outline store")
logger = get_logger(__name__)

_state: dict[str, Any] = {}


def _settings() -> Settings:
    settings = load_settings()
    storage_dir = _state.get("storage_dir")
    if storage_dir is not None:
        settings.storage_dir = storage_dir
    return settings


def _store() -> OutlineStore:
    settings = _settings()
    configure_logging(settings.log_level, settings.log_dir)
    return OutlineStore.from_settings(settings)


def _emit(payload: Any) -> None:
    typer.echo(json.dumps(payload, ensure_ascii=False, indent=2))


def _fail(store: OutlineStore, payload: Any) -> NoReturn:
    _emit(payload)
    diagnostic = store.last_diagnostic
    if diagnostic is not None:
        typer.echo(f"{diagnostic.kind}: {diagnostic.message}", err=True)
    raise typer.Exit(code=1)


def _parse_meta(items: list[str] | None) -> dict[str, Any]:
    """Parse ``key=value`` pairs; values are decoded as JSON when possible."""

    meta: dict[str, Any] = {}
    for item in items or []:
        key, sep, raw = item.partition("=")
        if not sep or not key:
            raise typer.BadParameter(f"Expected key=value, got '{item}'", param_hint="--meta")
        try:
            meta[key] = json.loads(raw)
        except json.JSONDecodeError:
            meta[key] = raw
    return meta


@app.callback()
def main(
    storage_dir: Optional[Path] = typer.Option(
        None,
        "--storage-dir",
        help="Storage directory (overrides STORYOUTLINE_STORAGE_DIR)",
    ),
) -> None:
    """Inspect and edit a volume/act/plot-point/chapter outline."""

    _state["storage_dir"] = storage_dir


@app.command()
def get(ref: str = typer.Argument(..., help="Node path, or chapter index such as 51 / c51")) -> None:
    """Show one node."""

    store = _store()
    node = asyncio.run(store.get_node(ref))
    if node is None:
        _fail(store, None)
    _emit(node.to_payload())


@app.command()
def children(parent: str = typer.Argument("/", help="Parent path; '/' lists volumes")) -> None:
    """List the direct children of a node."""

    store = _store()
    nodes = asyncio.run(store.get_children(parent))
    _emit([n.to_payload() for n in nodes])


@app.command()
def add(
    parent: str = typer.Argument(..., help="Parent path"),
    node_type: str = typer.Option(..., "--type", "-t", help="volume, act, plot_point or chapter"),
    title: str = typer.Option(..., "--title", help="Node title"),
    index: Optional[int] = typer.Option(None, "--index", "-i", help="Global chapter index (chapters only)"),
    meta: Optional[list[str]] = typer.Option(None, "--meta", "-m", help="Metadata entry key=value"),
) -> None:
    """Add a node and print its new path."""

    data: dict[str, Any] = {"type": node_type, "title": title, "metadata": _parse_meta(meta)}
    if index is not None:
        data["index"] = index
    store = _store()
    new_path = asyncio.run(store.add_node(parent, data))
    if new_path is None:
        _fail(store, {"newNodePath": None})
    _emit({"newNodePath": new_path})


@app.command()
def update(
    ref: str = typer.Argument(..., help="Node path or chapter reference"),
    title: Optional[str] = typer.Option(None, "--title", help="New title"),
    index: Optional[int] = typer.Option(None, "--index", "-i", help="New global chapter index"),
    meta: Optional[list[str]] = typer.Option(None, "--meta", "-m", help="Metadata entry key=value"),
) -> None:
    """Update a node's title, index or metadata."""

    patch: dict[str, Any] = {}
    if title is not None:
        patch["title"] = title
    if index is not None:
        patch["index"] = index
    if meta:
        patch["metadata"] = _parse_meta(meta)
    store = _store()
    ok = asyncio.run(store.update_node(ref, patch))
    if not ok:
        _fail(store, {"success": False})
    _emit({"success": True})


@app.command()
def delete(ref: str = typer.Argument(..., help="Node path or chapter reference")) -> None:
    """Delete a node and everything below it."""

    store = _store()
    ok = asyncio.run(store.delete_node(ref))
    if not ok:
        _fail(store, {"success": False})
    _emit({"success": True})


@app.command()
def chapters() -> None:
    """List all chapters in global index order."""

    store = _store()
    _emit([c.to_payload() for c in asyncio.run(store.get_all_chapters_sorted())])


@app.command()
def window(
    ref: str = typer.Argument(..., help="Center chapter path or index"),
    size: Optional[int] = typer.Option(None, "--size", "-s", help="Chapters on each side"),
) -> None:
    """Show the chapters around a chapter."""

    store = _store()
    result = asyncio.run(store.get_chapter_window(ref, size))
    if not result:
        _fail(store, [])
    _emit([c.to_payload() for c in result])


@app.command()
def migrate(
    source: Optional[Path] = typer.Option(
        None,
        "--source",
        help="Nested outline YAML (defaults to STORYOUTLINE_NESTED_OUTLINE_FILE in the storage dir)",
    ),
) -> None:
    """Replace the outline with a flattened nested YAML outline."""

    store = _store()
    ok = asyncio.run(store.migrate_from_nested(source))
    if not ok:
        _fail(store, {"success": False})
    logger.info("Migration finished")
    _emit({"success": True})


@app.command()
def tools() -> None:
    """List the outline tools and their input schemas."""

    _emit(build_outline_registry(_store()).list_tools())


if __name__ == "__main__":
    app()
