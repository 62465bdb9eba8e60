"""Tool registry and execution framework.

Outline operations are exposed as named tools with JSON schemas so a protocol layer can
list and dispatch them without knowing the store API.
"""

from __future__ import annotations

import inspect
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable

from pydantic import BaseModel, Field

from storyoutline.logging import get_logger

logger = get_logger(__name__)


class ToolResult(BaseModel):
    """Result from a tool execution."""

    success: bool = True
    content: str | dict | list | None = None
    error: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class Tool(ABC):
    """Base class for tools."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Tool name."""

    @property
    @abstractmethod
    def description(self) -> str:
        """Tool description."""

    @abstractmethod
    async def execute(self, **kwargs: Any) -> ToolResult:
        """Execute the tool.

        Args:
            **kwargs: Tool arguments.

        Returns:
            ToolResult with execution result.
        """

    def get_schema(self) -> dict[str, Any]:
        """Get JSON schema for tool arguments."""
        return {
            "type": "object",
            "properties": {},
            "required": [],
        }


class FunctionTool(Tool):
    """Tool wrapper for a sync or async Python function."""

    def __init__(
        self,
        name: str,
        func: Callable[..., Any | Awaitable[Any]],
        description: str,
        schema: dict[str, Any] | None = None,
    ) -> None:
        """Initialize function tool.

        Args:
            name: Tool name.
            func: Python function to wrap; coroutine functions are awaited.
            description: Tool description.
            schema: Optional JSON schema for arguments.
        """
        self._name = name
        self._func = func
        self._description = description
        self._schema = schema or self._infer_schema(func)

    @property
    def name(self) -> str:
        return self._name

    @property
    def description(self) -> str:
        return self._description

    async def execute(self, **kwargs: Any) -> ToolResult:
        """Execute the wrapped function."""
        missing = [k for k in self._schema.get("required", []) if k not in kwargs]
        if missing:
            return ToolResult(success=False, error=f"Missing required arguments: {', '.join(missing)}")
        try:
            result = self._func(**kwargs)
            if inspect.isawaitable(result):
                result = await result
            if isinstance(result, ToolResult):
                return result
            return ToolResult(success=True, content=result)
        except Exception as e:
            logger.exception("Tool execution failed", extra={"tool": self._name})
            return ToolResult(success=False, error=str(e))

    def get_schema(self) -> dict[str, Any]:
        return self._schema

    @staticmethod
    def _infer_schema(func: Callable[..., Any]) -> dict[str, Any]:
        """Infer schema from function signature."""
        sig = inspect.signature(func)
        properties: dict[str, Any] = {}
        required: list[str] = []

        for param_name, param in sig.parameters.items():
            if param_name == "self":
                continue
            properties[param_name] = {"type": "string"}
            if param.default == inspect.Parameter.empty:
                required.append(param_name)

        return {"type": "object", "properties": properties, "required": required}


class ToolRegistry:
    """Registry for managing tools."""

    def __init__(self) -> None:
        self._tools: dict[str, Tool] = {}

    def register(self, tool: Tool) -> None:
        """Register a tool.

        Args:
            tool: Tool instance to register.
        """
        self._tools[tool.name] = tool
        logger.debug("Tool registered", extra={"tool": tool.name})

    def register_function(
        self,
        name: str,
        func: Callable[..., Any],
        description: str,
        schema: dict[str, Any] | None = None,
    ) -> None:
        """Register a function as a tool."""
        self.register(FunctionTool(name=name, func=func, description=description, schema=schema))

    def get(self, name: str) -> Tool | None:
        return self._tools.get(name)

    def list_tools(self) -> list[dict[str, Any]]:
        """List all registered tools with their schemas."""
        return [
            {
                "name": tool.name,
                "description": tool.description,
                "inputSchema": tool.get_schema(),
            }
            for tool in self._tools.values()
        ]

    async def execute(self, tool_name: str, arguments: dict[str, Any] | None = None) -> ToolResult:
        """Execute a tool by name.

        Args:
            tool_name: Name of the tool to execute.
            arguments: Tool arguments.

        Returns:
            ToolResult with execution result.
        """
        tool = self.get(tool_name)
        if tool is None:
            return ToolResult(
                success=False,
                error=f"Tool '{tool_name}' not found. Available tools: {', '.join(self._tools.keys())}",
            )
        return await tool.execute(**(arguments or {}))
