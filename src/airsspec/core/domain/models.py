"""
Core Domain Models

Session lifecycle and resource types used by the agent executor:

- Budget: resource ceiling for a session, fixed at creation
- Session: one execution run of one agent (PENDING -> RUNNING -> COMPLETED/FAILED)
- Agent: what to run (query, reasoning pattern, permitted tools)
- ExecutionResult: outcome of a completed session
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Any

from airsspec.core.domain.errors import InvalidSessionStateError

if TYPE_CHECKING:
    from airsspec.core.domain.reasoning import HistoryEntry
    from airsspec.core.patterns.base import ReasoningPattern


@dataclass(frozen=True)
class Budget:
    """Resource ceiling for one session. Never mutated once created."""

    max_tokens: int = 100_000
    max_iterations: int = 20
    timeout_secs: float = 300

    def __post_init__(self) -> None:
        if self.max_tokens < 1 or self.max_iterations < 1 or self.timeout_secs <= 0:
            raise ValueError(f"Budget limits must be positive: {self}")

    def exceeded(self, used_tokens: int, iterations: int, elapsed_secs: float) -> bool:
        return (
            used_tokens > self.max_tokens
            or iterations > self.max_iterations
            or elapsed_secs > self.timeout_secs
        )


@dataclass(frozen=True)
class TokenUsage:
    prompt_tokens: int = 0
    completion_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.prompt_tokens + self.completion_tokens

    def __add__(self, other: TokenUsage) -> TokenUsage:
        return TokenUsage(
            prompt_tokens=self.prompt_tokens + other.prompt_tokens,
            completion_tokens=self.completion_tokens + other.completion_tokens,
        )


class SessionStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (SessionStatus.COMPLETED, SessionStatus.FAILED)


class FailureReason(str, Enum):
    MAX_ITERATIONS = "max_iterations"
    BUDGET_EXHAUSTED = "budget_exhausted"
    PARSE_ERROR = "parse_error"
    PATTERN_ERROR = "pattern_error"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Session:
    """
    One execution run of one agent.

    Status changes are driven solely by the executor. COMPLETED and FAILED
    are absorbing: any further change raises InvalidSessionStateError.
    """

    agent_id: str
    budget: Budget
    id: str = field(default_factory=lambda: f"session-{uuid.uuid4().hex[:12]}")
    status: SessionStatus = SessionStatus.PENDING
    failure: FailureReason | None = None
    failure_message: str | None = None
    started_at: datetime | None = None
    finished_at: datetime | None = None

    def start(self) -> None:
        self._require(SessionStatus.PENDING, "start")
        self.status = SessionStatus.RUNNING
        self.started_at = _utcnow()

    def complete(self) -> None:
        self._require(SessionStatus.RUNNING, "complete")
        self.status = SessionStatus.COMPLETED
        self.finished_at = _utcnow()

    def fail(self, reason: FailureReason, message: str) -> None:
        self._require(SessionStatus.RUNNING, "fail")
        self.status = SessionStatus.FAILED
        self.failure = reason
        self.failure_message = message
        self.finished_at = _utcnow()

    def _require(self, expected: SessionStatus, operation: str) -> None:
        if self.status != expected:
            raise InvalidSessionStateError(
                f"Cannot {operation} session {self.id} in status {self.status.value}",
                session=self,
            )


@dataclass
class Agent:
    """
    An agent to run: a query answered with a given reasoning pattern.

    Attributes:
        id: Stable agent identifier; at most one session per id runs at a time
        query: The user's query / mission
        pattern: Reasoning pattern driving the loop
        allowed_tools: Tool names this agent may call (None means all registered)
        name: Display name
        description: Free-form description
    """

    id: str
    query: str
    pattern: ReasoningPattern
    allowed_tools: list[str] | None = None
    name: str = ""
    description: str = ""


@dataclass
class ExecutionResult:
    """Result of a session that reached a final answer."""

    output: str
    iterations: int
    total_tokens: int
    session_id: str
    history: list[HistoryEntry] = field(default_factory=list)

    @property
    def result(self) -> str:
        return self.output

    def to_dict(self) -> dict[str, Any]:
        return {
            "session_id": self.session_id,
            "output": self.output,
            "iterations": self.iterations,
            "total_tokens": self.total_tokens,
            "history": [entry.to_dict() for entry in self.history],
        }
