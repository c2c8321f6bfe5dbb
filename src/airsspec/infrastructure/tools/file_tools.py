"""read_file / write_file tools. Every path goes through the Sandbox first."""

from __future__ import annotations

from typing import Any

import aiofiles

from airsspec.core.domain.errors import ToolExecutionError
from airsspec.infrastructure.tools.registry import BaseTool
from airsspec.infrastructure.tools.sandbox import Sandbox


class ReadFileTool(BaseTool):
    name = "read_file"
    description = "Read a UTF-8 text file inside the workspace."

    def __init__(self, sandbox: Sandbox, max_bytes: int = 1_000_000):
        super().__init__()
        self.sandbox = sandbox
        self.max_bytes = max_bytes

    @property
    def parameters_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "path": {"type": "string", "description": "File path, relative to the workspace"},
            },
            "required": ["path"],
            "additionalProperties": False,
        }

    async def run(self, path: str) -> dict[str, Any]:
        file_path = self.sandbox.resolve(path)
        self.logger.info("file_read_start", path=str(file_path))

        if not file_path.is_file():
            raise ToolExecutionError(f"File does not exist: {path}")
        size = file_path.stat().st_size
        if size > self.max_bytes:
            raise ToolExecutionError(f"File too large ({size} bytes, limit {self.max_bytes}): {path}")

        try:
            async with aiofiles.open(file_path, "r", encoding="utf-8") as f:
                content = await f.read()
        except (OSError, UnicodeDecodeError) as e:
            raise ToolExecutionError(f"Failed to read file {path}: {e}") from e

        self.logger.info("file_read_success", path=str(file_path), content_length=len(content))
        return {"path": self.sandbox.relative(file_path), "content": content, "size": len(content)}


class WriteFileTool(BaseTool):
    name = "write_file"
    description = "Write a UTF-8 text file inside the workspace, creating parent directories."

    def __init__(self, sandbox: Sandbox):
        super().__init__()
        self.sandbox = sandbox

    @property
    def parameters_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "path": {"type": "string", "description": "File path, relative to the workspace"},
                "content": {"type": "string", "description": "Full file content"},
            },
            "required": ["path", "content"],
            "additionalProperties": False,
        }

    async def run(self, path: str, content: str) -> dict[str, Any]:
        file_path = self.sandbox.resolve(path)
        self.logger.info("file_write_start", path=str(file_path), content_length=len(content))

        try:
            file_path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(file_path, "w", encoding="utf-8") as f:
                await f.write(content)
        except OSError as e:
            raise ToolExecutionError(f"Failed to write file {path}: {e}") from e

        self.logger.info("file_write_success", path=str(file_path), size=len(content))
        return {"path": self.sandbox.relative(file_path), "size": len(content)}
