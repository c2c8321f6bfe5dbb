"""
Reasoning Pattern Base

A reasoning pattern is a pure strategy: given the current ExecutionContext
it produces the next ReasoningStep. It talks to the LLM capability but
never calls tools; the executor owns tool dispatch.

Concrete patterns (ReAct, Chain-of-Thought) only decide how the prompt is
phrased and how the completion text is parsed. Prompt assembly, the LLM
round trip, token accounting and the continue/stop decision live here.
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from dataclasses import replace
from typing import Sequence

import structlog

from airsspec.core.domain.errors import ActionFailedError, ParseError
from airsspec.core.domain.reasoning import (
    ExecutionContext,
    Extension,
    HistoryEntry,
    HistoryKind,
    PatternConfig,
    ReasoningStep,
)
from airsspec.core.interfaces.llm import (
    CompletionRequest,
    CompletionResponse,
    LLMProviderProtocol,
    Message,
    Role,
)


class ReasoningPattern(ABC):
    """
    Strategy that drives an agent's reasoning/acting loop.

    Subclasses set ``name`` and implement ``format_prompt`` and
    ``parse_response``. ``next_step`` is the only suspension point: it
    awaits one LLM completion.
    """

    name: str = "base"

    def __init__(
        self,
        llm_provider: LLMProviderProtocol,
        config: PatternConfig | None = None,
        system_prompt: str | None = None,
    ):
        self.llm_provider = llm_provider
        self._config = config or PatternConfig()
        self.system_prompt = system_prompt
        self.logger = structlog.get_logger().bind(component="pattern", pattern=self.name)

    @property
    def config(self) -> PatternConfig:
        return self._config

    async def next_step(self, context: ExecutionContext) -> ReasoningStep:
        """
        Ask the LLM for the next step.

        Raises:
            ActionFailedError: The LLM call failed (recoverable)
            ParseError: The completion did not match the expected format
        """
        response = await self._complete(context)
        tokens = response.token_usage.total_tokens
        try:
            step = self.parse_response(response.text)
        except ParseError as e:
            e.tokens = tokens
            raise
        return replace(step, tokens=tokens)

    def should_continue(self, context: ExecutionContext) -> bool:
        if context.has_final_answer():
            return False
        if context.iteration >= self._config.max_iterations:
            return False
        if context.tokens_used >= self._config.max_tokens:
            return False
        return True

    @abstractmethod
    def format_prompt(self, query: str, tools: Sequence[str] | None = None) -> str:
        """Render the pattern's instruction prompt for ``query``."""

    @abstractmethod
    def parse_response(self, response: str) -> ReasoningStep:
        """Parse raw LLM output. Raises ParseError on unrecognised output."""

    def interpret_extension(
        self, step: Extension, context: ExecutionContext
    ) -> ReasoningStep | None:
        """
        Turn an Extension step this pattern emitted into a core step.

        Returning None (or another Extension) tells the executor to record
        the extension and continue with the next iteration.
        """
        return None

    def build_messages(self, context: ExecutionContext) -> list[Message]:
        messages = []
        if self.system_prompt:
            messages.append(Message(Role.SYSTEM, self.system_prompt))
        messages.append(
            Message(Role.USER, self.format_prompt(context.query, context.available_tools))
        )
        for entry in context.history:
            message = self._history_message(entry)
            if message is not None:
                messages.append(message)
        return messages

    def _history_message(self, entry: HistoryEntry) -> Message | None:
        if entry.kind == HistoryKind.THOUGHT:
            return Message(Role.ASSISTANT, f"Thought: {entry.text}")
        if entry.kind == HistoryKind.ACTION_REQUESTED and entry.request is not None:
            return Message(
                Role.ASSISTANT,
                f"Action: {entry.request.tool}\n"
                f"Action Input: {json.dumps(entry.request.args)}",
            )
        if entry.kind == HistoryKind.OBSERVATION and entry.result is not None:
            result = entry.result
            if result.success:
                body = json.dumps(result.output, default=str)
            else:
                body = f"ERROR: {result.error}"
            return Message(Role.USER, f"Observation ({result.tool}): {body}")
        if entry.kind == HistoryKind.ERROR:
            return Message(Role.USER, f"Error: {entry.text}")
        return None

    async def _complete(self, context: ExecutionContext) -> CompletionResponse:
        request = CompletionRequest(
            messages=self.build_messages(context),
            max_tokens=self._int_setting("max_completion_tokens"),
            temperature=self._float_setting("temperature"),
        )
        self.logger.debug(
            "llm_call_start", iteration=context.iteration, messages=len(request.messages)
        )
        try:
            response = await self.llm_provider.complete(request)
        except ActionFailedError:
            raise
        except Exception as e:
            self.logger.warning("llm_call_failed", error=str(e), error_type=type(e).__name__)
            raise ActionFailedError(f"LLM completion failed: {e}") from e

        self.logger.debug("llm_call_end", tokens=response.token_usage.total_tokens)
        return response

    def _int_setting(self, key: str) -> int | None:
        value = self._config.settings.get(key)
        return int(value) if value is not None else None

    def _float_setting(self, key: str) -> float | None:
        value = self._config.settings.get(key)
        return float(value) if value is not None else None
