"""Outline tools: the store operations under their tool names and input schemas."""

from __future__ import annotations

from typing import Any

from storyoutline.logging import get_logger
from storyoutline.store import OutlineStore
from storyoutline.tools.registry import ToolRegistry, ToolResult

logger = get_logger(__name__)

_PATH_EXAMPLES = "e.g. '/v1', '/v1/a1', '/v1/a1/p1', '/v1/a1/p1/c1'; chapters also accept '51' or 'c51'"

GET_NODE_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "path": {"type": "string", "description": f"Unique node path, {_PATH_EXAMPLES}"},
    },
    "required": ["path"],
}

GET_CHILDREN_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "parentPath": {
            "type": "string",
            "description": "Parent path: '/' lists volumes, '/v1' its acts, '/v1/a1/p1' its chapters",
        },
    },
    "required": ["parentPath"],
}

WINDOW_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "centerChapterPath": {"type": "string", "description": "Center chapter path or index reference"},
        "windowSize": {
            "type": "number",
            "description": "How many chapters before and after the center to include (default 2)",
        },
    },
    "required": ["centerChapterPath"],
}

UPDATE_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "path": {"type": "string", "description": "Path of the node to update"},
        "newData": {
            "type": "object",
            "description": (
                "Fields to update, e.g. {'title': 'New title', 'metadata': {...}}. "
                "'type' cannot be changed and is ignored."
            ),
        },
    },
    "required": ["path", "newData"],
}

ADD_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "parentPath": {
            "type": "string",
            "description": "'/' (volume), '/v1' (act), '/v1/a1' (plot point), '/v1/a1/p1' (chapter)",
        },
        "nodeData": {
            "type": "object",
            "description": "Must contain 'type' and 'title'; chapters also need 'index'.",
            "properties": {
                "type": {"type": "string", "enum": ["volume", "act", "plot_point", "chapter"]},
                "title": {"type": "string"},
                "index": {"type": "number", "description": "Global chapter index (chapters only)"},
                "metadata": {"type": "object"},
            },
            "required": ["type", "title"],
        },
    },
    "required": ["parentPath", "nodeData"],
}

DELETE_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "path": {"type": "string", "description": "Path of the node to delete, with all its descendants"},
    },
    "required": ["path"],
}


def register_outline_tools(registry: ToolRegistry, store: OutlineStore) -> ToolRegistry:
    """Register every outline tool on ``registry``, bound to ``store``."""

    async def get_outline_node(path: str) -> dict[str, Any] | None:
        node = await store.get_node(path)
        return node.to_payload() if node is not None else None

    async def get_outline_children(parentPath: str) -> list[dict[str, Any]]:  # noqa: N803
        return [child.to_payload() for child in await store.get_children(parentPath)]

    async def get_chapter_outline_window_by_path(
        centerChapterPath: str,  # noqa: N803
        windowSize: int | float | None = None,  # noqa: N803
    ) -> list[dict[str, Any]]:
        size = int(windowSize) if windowSize is not None else None
        window = await store.get_chapter_window(centerChapterPath, size)
        return [chapter.to_payload() for chapter in window]

    async def update_outline_node(path: str, newData: dict[str, Any]) -> ToolResult | dict[str, Any]:  # noqa: N803
        if not isinstance(newData, dict):
            return ToolResult(success=False, error="'newData' must be an object")
        update = dict(newData)
        if "type" in update:
            update.pop("type")
            logger.warning("update_outline_node received 'type'; node types cannot change", extra={"path": path})
        return {"success": await store.update_node(path, update)}

    async def add_outline_node(parentPath: str, nodeData: dict[str, Any]) -> ToolResult | dict[str, Any]:  # noqa: N803
        if not isinstance(nodeData, dict):
            return ToolResult(success=False, error="'nodeData' must be an object")
        if nodeData.get("type") == "chapter" and nodeData.get("index") is None:
            return ToolResult(success=False, error="Chapter nodes require 'index' in 'nodeData'")
        return {"newNodePath": await store.add_node(parentPath, nodeData)}

    async def delete_outline_node(path: str) -> dict[str, Any]:
        return {"success": await store.delete_node(path)}

    async def convert_yaml_to_json(source: str | None = None) -> dict[str, Any]:
        return {"success": await store.migrate_from_nested(source)}

    registry.register_function(
        "get_outline_node",
        get_outline_node,
        "Get one outline node (volume, act, plot point or chapter) by path.",
        GET_NODE_SCHEMA,
    )
    registry.register_function(
        "get_outline_children",
        get_outline_children,
        "Get all direct children of a parent path.",
        GET_CHILDREN_SCHEMA,
    )
    registry.register_function(
        "get_chapter_outline_window_by_path",
        get_chapter_outline_window_by_path,
        "Get the outline of a chapter and the N chapters before and after it in global order.",
        WINDOW_SCHEMA,
    )
    registry.register_function(
        "update_outline_node",
        update_outline_node,
        "Update title and metadata of an outline node.",
        UPDATE_SCHEMA,
    )
    registry.register_function(
        "add_outline_node",
        add_outline_node,
        "Add a volume, act, plot point or chapter under a parent path.",
        ADD_SCHEMA,
    )
    registry.register_function(
        "delete_outline_node",
        delete_outline_node,
        "Delete an outline node and all of its descendants.",
        DELETE_SCHEMA,
    )
    registry.register_function(
        "convert_yaml_to_json",
        convert_yaml_to_json,
        "Replace the outline with the flattened form of the nested YAML outline.",
    )
    return registry


def build_outline_registry(store: OutlineStore) -> ToolRegistry:
    """Create a registry holding only the outline tools."""

    return register_outline_tools(ToolRegistry(), store)
