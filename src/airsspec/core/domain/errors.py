"""
Error Taxonomy

Every failure the engine can surface derives from AirsspecError. The tree
mirrors the three concerns of the core:

- PatternError: reasoning pattern failures (parse, budget, LLM I/O)
- ToolError: tool lookup, sandbox and execution failures
- StateError: phase transitions and state persistence

ExecutionError is what AgentExecutor.run raises when a session ends in
FAILED. It carries the failed Session and its ExecutionContext so callers
can audit what happened.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from airsspec.core.domain.models import FailureReason, Session
    from airsspec.core.domain.reasoning import ExecutionContext


class AirsspecError(Exception):
    """Base class for all engine errors."""


# --- Reasoning patterns -------------------------------------------------------


class PatternError(AirsspecError):
    """A reasoning pattern could not produce a step."""


class ParseError(PatternError):
    """LLM output did not match the pattern's expected format."""

    def __init__(self, message: str, raw: str | None = None, tokens: int = 0):
        super().__init__(f"Failed to parse LLM response: {message}")
        self.raw = raw
        # LLM tokens spent on the unparseable completion
        self.tokens = tokens


class PatternNotFoundError(PatternError):
    def __init__(self, name: str):
        super().__init__(f"Pattern not found: {name}")
        self.name = name


class BudgetExhaustedError(PatternError):
    def __init__(self, message: str):
        super().__init__(f"Budget exhausted: {message}")


class MaxIterationsError(PatternError):
    def __init__(self, iterations: int):
        super().__init__(f"Maximum iterations reached: {iterations}")
        self.iterations = iterations


class ActionFailedError(PatternError):
    """An I/O operation issued by the pattern failed (recoverable)."""


class LLMRequestError(ActionFailedError):
    """The LLM provider failed after exhausting its retries."""

    def __init__(self, message: str, attempts: int = 1):
        super().__init__(f"LLM request failed after {attempts} attempt(s): {message}")
        self.attempts = attempts


class PatternInternalError(PatternError):
    pass


# --- Tools ---------------------------------------------------------------------


class ToolError(AirsspecError):
    """Base class for tool failures."""


class ToolNotFoundError(ToolError):
    def __init__(self, name: str):
        super().__init__(f"Tool not found: {name}")
        self.name = name


class SecurityViolationError(ToolError):
    """A path was rejected by the sandbox before any I/O happened."""

    def __init__(self, path: str, reason: str):
        super().__init__(f"Security violation for '{path}': {reason}")
        self.path = path
        self.reason = reason


class ToolExecutionError(ToolError):
    pass


class InvalidToolInputError(ToolError):
    pass


# --- UOW state -------------------------------------------------------------------


class StateError(AirsspecError):
    pass


class GateNotMetError(StateError):
    """A phase transition was refused; the stored state is unchanged."""

    def __init__(self, reason: str):
        super().__init__(f"Gate condition not met: {reason}")
        self.reason = reason


class InvalidTransitionError(GateNotMetError):
    """The target phase is not the immediate successor of the current one."""

    def __init__(self, from_phase: Any, to_phase: Any):
        super().__init__(
            f"invalid transition from {from_phase} to {to_phase}: "
            "phases advance one step at a time"
        )
        self.from_phase = from_phase
        self.to_phase = to_phase


class StatePersistenceError(StateError):
    pass


class StateNotFoundError(StatePersistenceError):
    def __init__(self, uow_id: str):
        super().__init__(f"No persisted state for unit of work: {uow_id}")
        self.uow_id = uow_id


# --- Artifacts ------------------------------------------------------------------


class ArtifactError(AirsspecError):
    pass


class ArtifactStoreError(ArtifactError):
    pass


# --- Executor ---------------------------------------------------------------------


class ExecutionError(AirsspecError):
    """A session terminated as FAILED.

    Attributes:
        reason: FailureReason recorded on the session (None for conflicts)
        session: The failed Session, if one was started
        context: The ExecutionContext at the time of failure
    """

    def __init__(
        self,
        message: str,
        *,
        reason: FailureReason | None = None,
        session: Session | None = None,
        context: ExecutionContext | None = None,
    ):
        super().__init__(message)
        self.reason = reason
        self.session = session
        self.context = context


class MaxIterationsExceeded(ExecutionError):
    pass


class BudgetExceeded(ExecutionError):
    pass


class PatternParseFailedError(ExecutionError):
    pass


class PatternFailedError(ExecutionError):
    pass


class SessionConflictError(ExecutionError):
    """Another session for the same agent is already running."""


class InvalidSessionStateError(ExecutionError):
    """A session status change was requested from a terminal state."""
