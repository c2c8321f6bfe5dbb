"""Sandboxed tools and the tool registry."""

from airsspec.infrastructure.tools.file_tools import ReadFileTool, WriteFileTool
from airsspec.infrastructure.tools.registry import BaseTool, ToolRegistry
from airsspec.infrastructure.tools.sandbox import DEFAULT_DENY_PATTERNS, Sandbox
from airsspec.infrastructure.tools.search_tool import SearchTool

__all__ = [
    "BaseTool",
    "ToolRegistry",
    "Sandbox",
    "DEFAULT_DENY_PATTERNS",
    "ReadFileTool",
    "WriteFileTool",
    "SearchTool",
]
