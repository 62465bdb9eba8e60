"""Tools exposing outline operations by name."""

from __future__ import annotations

from storyoutline.tools.outline_tools import build_outline_registry, register_outline_tools
from storyoutline.tools.registry import FunctionTool, Tool, ToolRegistry, ToolResult

__all__ = [
    "Tool",
    "ToolResult",
    "ToolRegistry",
    "FunctionTool",
    "build_outline_registry",
    "register_outline_tools",
]
