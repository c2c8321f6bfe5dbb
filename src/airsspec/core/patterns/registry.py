"""
Pattern Registry and Selection

Patterns are registered as factories keyed by name, because a pattern
instance is bound to one LLM provider and one PatternConfig.
"""

from __future__ import annotations

from typing import Callable, Protocol, Sequence, runtime_checkable

import structlog

from airsspec.core.domain.errors import PatternNotFoundError
from airsspec.core.domain.reasoning import PatternConfig
from airsspec.core.interfaces.llm import LLMProviderProtocol
from airsspec.core.patterns.base import ReasoningPattern
from airsspec.core.patterns.chain_of_thought import ChainOfThoughtPattern
from airsspec.core.patterns.react import ReActPattern

PatternFactory = Callable[[LLMProviderProtocol, PatternConfig], ReasoningPattern]


class PatternRegistry:
    """Name -> factory mapping for reasoning patterns."""

    def __init__(self):
        self._factories: dict[str, PatternFactory] = {}
        self.logger = structlog.get_logger().bind(component="pattern_registry")

    @classmethod
    def with_defaults(cls) -> PatternRegistry:
        registry = cls()
        registry.register(ReActPattern.name, ReActPattern)
        registry.register(ChainOfThoughtPattern.name, ChainOfThoughtPattern)
        return registry

    def register(self, name: str, factory: PatternFactory) -> None:
        if name in self._factories:
            self.logger.warning("pattern_replaced", pattern=name)
        self._factories[name] = factory

    def create(
        self,
        name: str,
        llm_provider: LLMProviderProtocol,
        config: PatternConfig | None = None,
    ) -> ReasoningPattern:
        factory = self._factories.get(name)
        if factory is None:
            raise PatternNotFoundError(name)
        return factory(llm_provider, config or PatternConfig())

    def list(self) -> list[str]:
        return sorted(self._factories)

    def __contains__(self, name: str) -> bool:
        return name in self._factories


@runtime_checkable
class PatternSelectorProtocol(Protocol):
    def select(self, query: str, available_tools: Sequence[str]) -> str:
        """Return the name of the pattern to use for ``query``."""
        ...


class RuleBasedPatternSelector:
    """Tool use needs ReAct; without tools Chain-of-Thought is enough."""

    def __init__(self, with_tools: str = ReActPattern.name, without_tools: str = ChainOfThoughtPattern.name):
        self.with_tools = with_tools
        self.without_tools = without_tools

    def select(self, query: str, available_tools: Sequence[str]) -> str:
        return self.with_tools if available_tools else self.without_tools
