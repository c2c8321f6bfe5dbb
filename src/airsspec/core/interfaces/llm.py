"""
LLM Provider Protocol

The single capability reasoning patterns depend on:

    complete(request) -> response

Any provider satisfying this shape is acceptable. The concrete adapter in
airsspec.infrastructure.llm is one option; tests use AsyncMock.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol, runtime_checkable

from airsspec.core.domain.models import TokenUsage


class Role(str, Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True)
class Message:
    role: Role
    content: str

    def to_dict(self) -> dict[str, str]:
        return {"role": self.role.value, "content": self.content}


@dataclass(frozen=True)
class CompletionRequest:
    messages: list[Message] = field(default_factory=list)
    max_tokens: int | None = None
    temperature: float | None = None


@dataclass(frozen=True)
class CompletionResponse:
    text: str
    token_usage: TokenUsage = field(default_factory=TokenUsage)


@runtime_checkable
class LLMProviderProtocol(Protocol):
    async def complete(self, request: CompletionRequest) -> CompletionResponse:
        """
        Perform one completion.

        Raises:
            LLMRequestError: If the provider fails (after its own retries)
        """
        ...
