"""Shared fixtures: LLM responses and mock tools."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from airsspec.core.domain.models import TokenUsage
from airsspec.core.interfaces.llm import CompletionResponse


def make_completion(text: str, prompt_tokens: int = 10, completion_tokens: int = 5) -> CompletionResponse:
    return CompletionResponse(
        text=text,
        token_usage=TokenUsage(prompt_tokens=prompt_tokens, completion_tokens=completion_tokens),
    )


@pytest.fixture
def completion():
    """Factory for CompletionResponse (15 tokens by default)."""
    return make_completion


@pytest.fixture
def mock_llm_provider():
    """Mock LLMProviderProtocol."""
    mock = AsyncMock()
    mock.complete.return_value = make_completion("Final Answer: default")
    return mock


@pytest.fixture
def make_tool():
    """Factory for mock tools with optional delay, result or error."""

    def _make(name, result=None, error=None, delay=0.0):
        async def execute(**kwargs):
            if delay:
                await asyncio.sleep(delay)
            if error is not None:
                raise error
            return result if result is not None else {"tool": name, "args": kwargs}

        tool = MagicMock()
        tool.name = name
        tool.description = f"Mock tool {name}"
        tool.parameters_schema = {"type": "object", "properties": {}}
        tool.execute = AsyncMock(side_effect=execute)
        return tool

    return _make
