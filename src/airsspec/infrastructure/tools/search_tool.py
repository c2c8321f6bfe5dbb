"""Regex search across files under an allowed root."""

from __future__ import annotations

import asyncio
import re
from pathlib import Path
from typing import Any

from airsspec.core.domain.errors import InvalidToolInputError, ToolExecutionError
from airsspec.infrastructure.tools.registry import BaseTool
from airsspec.infrastructure.tools.sandbox import Sandbox

DEFAULT_MAX_RESULTS = 100


class SearchTool(BaseTool):
    """
    Line-oriented regex search.

    Files matching a deny pattern or resolving outside the sandbox are
    skipped, as are files that are not valid UTF-8. Results are capped at
    ``max_results``; ``truncated`` tells the caller more matches exist.
    """

    name = "search"
    description = "Search files in the workspace for a regular expression."

    def __init__(self, sandbox: Sandbox, max_results: int = DEFAULT_MAX_RESULTS):
        super().__init__()
        self.sandbox = sandbox
        self.max_results = max_results

    @property
    def parameters_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "pattern": {"type": "string", "description": "Python regular expression"},
                "path": {"type": "string", "description": "Directory or file to search", "default": "."},
                "glob": {"type": "string", "description": "File name filter", "default": "*"},
                "context_lines": {"type": "integer", "description": "Lines of context", "default": 2},
                "max_results": {"type": "integer", "description": "Match limit", "default": 100},
            },
            "required": ["pattern"],
            "additionalProperties": False,
        }

    async def run(
        self,
        pattern: str,
        path: str = ".",
        glob: str = "*",
        context_lines: int = 2,
        max_results: int | None = None,
    ) -> dict[str, Any]:
        try:
            regex = re.compile(pattern)
        except re.error as e:
            raise InvalidToolInputError(f"Invalid regular expression '{pattern}': {e}") from e
        if context_lines < 0:
            raise InvalidToolInputError("context_lines must not be negative")
        if max_results is None:
            max_results = self.max_results
        elif max_results < 1:
            raise InvalidToolInputError("max_results must be at least 1")

        limit = min(max_results, self.max_results)
        base = self.sandbox.resolve(path)
        if not base.exists():
            raise ToolExecutionError(f"Path does not exist: {path}")

        self.logger.info("search_start", pattern=pattern, path=str(base), glob=glob)
        matches, truncated = await asyncio.to_thread(
            self._scan, regex, base, glob, context_lines, limit
        )
        self.logger.info("search_end", matches=len(matches), truncated=truncated)
        return {"pattern": pattern, "matches": matches, "count": len(matches), "truncated": truncated}

    def _scan(
        self, regex: re.Pattern[str], base: Path, glob: str, context_lines: int, limit: int
    ) -> tuple[list[dict[str, Any]], bool]:
        files = [base] if base.is_file() else sorted(p for p in base.rglob(glob) if p.is_file())
        matches: list[dict[str, Any]] = []

        for file_path in files:
            if self.sandbox.is_denied(file_path):
                continue
            try:
                lines = file_path.read_text(encoding="utf-8").splitlines()
            except (OSError, UnicodeDecodeError):
                continue

            for index, line in enumerate(lines):
                if not regex.search(line):
                    continue
                if len(matches) >= limit:
                    return matches, True
                start = max(0, index - context_lines)
                matches.append(
                    {
                        "file": self.sandbox.relative(file_path.resolve()),
                        "line": index + 1,
                        "text": line,
                        "context": lines[start : index + context_lines + 1],
                    }
                )
        return matches, False
