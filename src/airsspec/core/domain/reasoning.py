"""
Reasoning Step Types

This module defines the values that flow through the reasoning loop:

- ReasoningStep: what a pattern asks the executor to do next. It is a
  closed union of Thought, Action, ParallelActions, FinalAnswer and
  Extension. Extension carries an opaque payload that only the pattern
  that emitted it knows how to interpret.
- ActionRequest / ActionResult: a tool call and its outcome
- HistoryEntry: immutable record appended to ExecutionContext.history
- ExecutionContext: mutable state of one reasoning run, owned and
  mutated only by the executor driving that session
- PatternConfig: strategy tuning, immutable once a pattern is built
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Union


@dataclass(frozen=True)
class ActionRequest:
    """A request to invoke a tool by name with JSON-like arguments."""

    tool: str
    args: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"tool": self.tool, "args": dict(self.args)}


@dataclass(frozen=True)
class ActionResult:
    """
    Outcome of a tool invocation.

    Attributes:
        tool: Tool that was invoked
        success: Whether the call succeeded
        output: Tool output (None on failure)
        error: Human-readable error message (None on success)
        tokens: Tokens the tool reported spending (e.g. a sub-LLM call)
    """

    tool: str
    success: bool
    output: Any = None
    error: str | None = None
    tokens: int = 0

    @classmethod
    def ok(cls, tool: str, output: Any, tokens: int = 0) -> ActionResult:
        return cls(tool=tool, success=True, output=output, tokens=tokens)

    @classmethod
    def failed(cls, tool: str, error: str) -> ActionResult:
        return cls(tool=tool, success=False, error=error)

    def to_dict(self) -> dict[str, Any]:
        return {
            "tool": self.tool,
            "success": self.success,
            "output": self.output,
            "error": self.error,
        }


@dataclass(frozen=True)
class Thought:
    text: str
    tokens: int = 0


@dataclass(frozen=True)
class Action:
    request: ActionRequest
    thought: str | None = None
    tokens: int = 0


@dataclass(frozen=True)
class ParallelActions:
    requests: tuple[ActionRequest, ...]
    thought: str | None = None
    tokens: int = 0


@dataclass(frozen=True)
class FinalAnswer:
    answer: str
    tokens: int = 0


@dataclass(frozen=True)
class Extension:
    """Pattern-specific step (e.g. a tree-of-thought branch evaluation)."""

    pattern: str
    kind: str
    data: str
    tokens: int = 0


ReasoningStep = Union[Thought, Action, ParallelActions, FinalAnswer, Extension]


class HistoryKind(str, Enum):
    THOUGHT = "thought"
    ACTION_REQUESTED = "action_requested"
    OBSERVATION = "observation"
    FINAL_ANSWER = "final_answer"
    EXTENSION = "extension"
    ERROR = "error"


@dataclass(frozen=True)
class HistoryEntry:
    """
    One immutable record in the reasoning history.

    Exactly one payload field is set, matching ``kind``: ``text`` for
    thoughts, final answers, extensions and errors; ``request`` for
    requested actions; ``result`` for observations.
    """

    kind: HistoryKind
    text: str | None = None
    request: ActionRequest | None = None
    result: ActionResult | None = None

    @classmethod
    def thought(cls, text: str) -> HistoryEntry:
        return cls(kind=HistoryKind.THOUGHT, text=text)

    @classmethod
    def action_requested(cls, request: ActionRequest) -> HistoryEntry:
        return cls(kind=HistoryKind.ACTION_REQUESTED, request=request)

    @classmethod
    def observation(cls, result: ActionResult) -> HistoryEntry:
        return cls(kind=HistoryKind.OBSERVATION, result=result)

    @classmethod
    def final_answer(cls, text: str) -> HistoryEntry:
        return cls(kind=HistoryKind.FINAL_ANSWER, text=text)

    @classmethod
    def extension(cls, step: Extension) -> HistoryEntry:
        return cls(kind=HistoryKind.EXTENSION, text=f"{step.pattern}/{step.kind}: {step.data}")

    @classmethod
    def error(cls, text: str) -> HistoryEntry:
        return cls(kind=HistoryKind.ERROR, text=text)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"type": self.kind.value}
        if self.text is not None:
            data["text"] = self.text
        if self.request is not None:
            data["request"] = self.request.to_dict()
        if self.result is not None:
            data["result"] = self.result.to_dict()
        return data


@dataclass
class ExecutionContext:
    """
    Mutable state of one reasoning run.

    Created by the executor at session start and mutated only by that
    executor. ``iteration`` and ``tokens_used`` never decrease.
    """

    query: str
    available_tools: list[str] = field(default_factory=list)
    history: list[HistoryEntry] = field(default_factory=list)
    iteration: int = 0
    tokens_used: int = 0
    metadata: dict[str, str] = field(default_factory=dict)

    def add_history(self, entry: HistoryEntry) -> None:
        self.history.append(entry)

    def increment_iteration(self) -> None:
        self.iteration += 1

    def add_tokens(self, tokens: int) -> None:
        if tokens < 0:
            raise ValueError(f"token usage cannot be negative: {tokens}")
        self.tokens_used += tokens

    def set_metadata(self, key: str, value: str) -> None:
        self.metadata[key] = value

    def has_final_answer(self) -> bool:
        return any(entry.kind == HistoryKind.FINAL_ANSWER for entry in self.history)

    def observations(self) -> list[ActionResult]:
        return [
            entry.result
            for entry in self.history
            if entry.kind == HistoryKind.OBSERVATION and entry.result is not None
        ]


@dataclass(frozen=True)
class PatternConfig:
    """
    Tuning knobs for a reasoning pattern.

    Defaults mirror a general-purpose agent: 20 iterations, 100k tokens,
    parallel actions enabled and a 30 second timeout per tool call.
    ``settings`` holds free-form pattern-specific values such as
    ``temperature`` or ``max_completion_tokens``.
    """

    max_iterations: int = 20
    max_tokens: int = 100_000
    parallel_actions: bool = True
    action_timeout_secs: float = 30
    settings: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.max_iterations < 1:
            raise ValueError("max_iterations must be at least 1")
        if self.max_tokens < 1:
            raise ValueError("max_tokens must be at least 1")
        if self.action_timeout_secs <= 0:
            raise ValueError("action_timeout_secs must be positive")
        object.__setattr__(self, "settings", MappingProxyType(dict(self.settings)))
