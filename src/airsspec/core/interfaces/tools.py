"""
Tool Protocol

A tool is a named capability the executor can dispatch to. Tools are
stateless with respect to the registry and sandbox: they may read the
sandbox policy but never change it.

Contract:
- ``execute`` returns a JSON-serialisable dict on success
- failures raise a ToolError subclass (ToolExecutionError,
  SecurityViolationError, InvalidToolInputError)
- a tool that spends LLM tokens reports them under the ``tokens`` key
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class ToolProtocol(Protocol):
    @property
    def name(self) -> str: ...

    @property
    def description(self) -> str: ...

    @property
    def parameters_schema(self) -> dict[str, Any]: ...

    async def execute(self, **kwargs: Any) -> dict[str, Any]: ...


@runtime_checkable
class ToolRegistryProtocol(Protocol):
    """Name-keyed lookup the executor dispatches through."""

    def get(self, name: str) -> ToolProtocol:
        """Raises ToolNotFoundError for unknown names."""
        ...

    def list(self) -> list[str]: ...
