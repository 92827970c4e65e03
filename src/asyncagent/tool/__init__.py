"""Tool system — base classes and registry."""

from asyncagent.tool.base import BaseTool, ToolError, ToolOk, ToolResult
from asyncagent.tool.registry import ToolRegistry, ToolStart

__all__ = [
    "BaseTool",
    "ToolError",
    "ToolOk",
    "ToolRegistry",
    "ToolResult",
    "ToolStart",
]
