"""Tool base class and the name-keyed tool registry."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Iterator

import structlog

from airsspec.core.domain.errors import InvalidToolInputError, ToolNotFoundError
from airsspec.core.interfaces.tools import ToolProtocol

_JSON_TYPES: dict[str, tuple[type, ...]] = {
    "string": (str,),
    "integer": (int,),
    "number": (int, float),
    "boolean": (bool,),
    "object": (dict,),
    "array": (list,),
}


class BaseTool(ABC):
    """
    Template for tools: ``execute`` validates the arguments against
    ``parameters_schema`` and then calls ``run``.
    """

    name: str = ""
    description: str = ""

    def __init__(self):
        self.logger = structlog.get_logger().bind(tool=self.name)

    @property
    @abstractmethod
    def parameters_schema(self) -> dict[str, Any]:
        """JSON schema for tool parameters."""

    @abstractmethod
    async def run(self, **kwargs: Any) -> dict[str, Any]:
        """Do the work. Raise a ToolError subclass on failure."""

    async def execute(self, **kwargs: Any) -> dict[str, Any]:
        valid, error = self.validate_params(**kwargs)
        if not valid:
            raise InvalidToolInputError(f"{self.name}: {error}")
        return await self.run(**kwargs)

    def validate_params(self, **kwargs: Any) -> tuple[bool, str | None]:
        """Validate parameters before execution."""
        schema = self.parameters_schema
        properties = schema.get("properties", {})

        for required in schema.get("required", []):
            if required not in kwargs:
                return False, f"Missing required parameter: {required}"

        for key, value in kwargs.items():
            spec = properties.get(key)
            if spec is None:
                if schema.get("additionalProperties", True) is False:
                    return False, f"Unknown parameter: {key}"
                continue
            expected = _JSON_TYPES.get(spec.get("type", ""))
            if expected is None:
                continue
            # bool is an int subclass; keep "integer" strict
            if isinstance(value, bool) and bool not in expected:
                return False, f"Parameter '{key}' must be of type {spec['type']}"
            if not isinstance(value, expected):
                return False, f"Parameter '{key}' must be of type {spec['type']}"

        return True, None


class ToolRegistry:
    """
    Name-keyed collection of tools.

    Populated at wiring time and read-only while sessions run.
    """

    def __init__(self, tools: list[ToolProtocol] | None = None):
        self._tools: dict[str, ToolProtocol] = {}
        self.logger = structlog.get_logger().bind(component="tool_registry")
        for tool in tools or []:
            self.register(tool)

    def register(self, tool: ToolProtocol) -> None:
        if tool.name in self._tools:
            self.logger.warning("tool_replaced", tool=tool.name)
        self._tools[tool.name] = tool
        self.logger.debug("tool_registered", tool=tool.name)

    def get(self, name: str) -> ToolProtocol:
        try:
            return self._tools[name]
        except KeyError:
            raise ToolNotFoundError(name) from None

    def list(self) -> list[str]:
        return sorted(self._tools)

    def describe(self) -> str:
        """Human-readable tool list for prompts."""
        lines = []
        for name in self.list():
            tool = self._tools[name]
            params = ", ".join(tool.parameters_schema.get("properties", {}))
            lines.append(f"- {name}({params}): {tool.description}")
        return "\n".join(lines)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    def __iter__(self) -> Iterator[ToolProtocol]:
        return iter(self._tools[name] for name in self.list())
