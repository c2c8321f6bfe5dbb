"""
Agent Executor

Drives one agent session through the reasoning/acting loop:

1. ask the pattern for the next step (awaits the LLM)
2. dispatch the step: record thoughts, run tool calls, finish on a final answer
3. account tokens and check the pattern and budget limits

Tool and LLM failures are recovered locally and fed back to the pattern as
history entries. Repeated parse failures, pattern errors, exhausted budgets
and the iteration ceiling are fatal: the session is marked FAILED and an
ExecutionError carrying the session and context is raised.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any

import structlog

from airsspec.core.domain.errors import (
    ActionFailedError,
    BudgetExceeded,
    BudgetExhaustedError,
    ExecutionError,
    MaxIterationsError,
    MaxIterationsExceeded,
    ParseError,
    PatternError,
    PatternFailedError,
    PatternParseFailedError,
    SessionConflictError,
    ToolError,
)
from airsspec.core.domain.models import (
    Agent,
    Budget,
    ExecutionResult,
    FailureReason,
    Session,
)
from airsspec.core.domain.reasoning import (
    Action,
    ActionRequest,
    ActionResult,
    ExecutionContext,
    Extension,
    FinalAnswer,
    HistoryEntry,
    ParallelActions,
    PatternConfig,
    ReasoningStep,
    Thought,
)
from airsspec.core.interfaces.tools import ToolRegistryProtocol

_FAILURE_ERRORS: dict[FailureReason, type[ExecutionError]] = {
    FailureReason.MAX_ITERATIONS: MaxIterationsExceeded,
    FailureReason.BUDGET_EXHAUSTED: BudgetExceeded,
    FailureReason.PARSE_ERROR: PatternParseFailedError,
    FailureReason.PATTERN_ERROR: PatternFailedError,
}


class AgentExecutor:
    """
    Runs agent sessions against a tool registry.

    One executor may serve many agents, but each agent id has at most one
    RUNNING session at a time.

    Args:
        tool_registry: Registry the executor dispatches tool calls through
        max_parse_failures: Consecutive ParseErrors tolerated before the
            session fails with PARSE_ERROR
    """

    def __init__(self, tool_registry: ToolRegistryProtocol, max_parse_failures: int = 2):
        if max_parse_failures < 1:
            raise ValueError("max_parse_failures must be at least 1")
        self.tool_registry = tool_registry
        self.max_parse_failures = max_parse_failures
        self._running: dict[str, Session] = {}
        self.logger = structlog.get_logger().bind(component="agent_executor")

    def is_running(self, agent_id: str) -> bool:
        return agent_id in self._running

    async def run(self, agent: Agent, budget: Budget | None = None) -> ExecutionResult:
        """
        Execute ``agent`` until it produces a final answer or fails.

        Raises:
            SessionConflictError: A session for ``agent.id`` is already running
            ExecutionError: The session ended as FAILED (see ``reason``)
        """
        if agent.id in self._running:
            running = self._running[agent.id]
            raise SessionConflictError(
                f"Agent {agent.id} already has a running session: {running.id}",
                session=running,
            )

        budget = budget or Budget()
        session = Session(agent_id=agent.id, budget=budget)
        context = ExecutionContext(query=agent.query, available_tools=self._tools_for(agent))
        context.set_metadata("session_id", session.id)
        context.set_metadata("pattern", agent.pattern.name)

        self._running[agent.id] = session
        session.start()
        self.logger.info(
            "session_started",
            session_id=session.id,
            agent_id=agent.id,
            pattern=agent.pattern.name,
            tools=context.available_tools,
            max_iterations=budget.max_iterations,
            max_tokens=budget.max_tokens,
        )

        try:
            return await asyncio.wait_for(
                self._loop(agent, session, context), timeout=budget.timeout_secs
            )
        except asyncio.TimeoutError:
            raise self._fail(
                session,
                context,
                FailureReason.BUDGET_EXHAUSTED,
                f"session timed out after {budget.timeout_secs}s",
            ) from None
        finally:
            del self._running[agent.id]

    async def _loop(
        self, agent: Agent, session: Session, context: ExecutionContext
    ) -> ExecutionResult:
        pattern = agent.pattern
        config = pattern.config
        started = time.monotonic()
        parse_failures = 0

        while True:
            context.increment_iteration()
            step: ReasoningStep | None = None
            try:
                step = await pattern.next_step(context)
                parse_failures = 0
            except ParseError as e:
                parse_failures += 1
                context.add_tokens(e.tokens)
                context.add_history(HistoryEntry.error(str(e)))
                self.logger.warning(
                    "parse_failed",
                    session_id=session.id,
                    iteration=context.iteration,
                    consecutive=parse_failures,
                    tokens=e.tokens,
                    error=str(e),
                )
                if parse_failures >= self.max_parse_failures:
                    raise self._fail(
                        session,
                        context,
                        FailureReason.PARSE_ERROR,
                        f"{parse_failures} consecutive parse failures, last: {e}",
                    ) from e
            except ActionFailedError as e:
                context.add_history(HistoryEntry.error(str(e)))
                self.logger.warning(
                    "llm_call_failed",
                    session_id=session.id,
                    iteration=context.iteration,
                    error=str(e),
                )
            except MaxIterationsError as e:
                raise self._fail(session, context, FailureReason.MAX_ITERATIONS, str(e)) from e
            except BudgetExhaustedError as e:
                raise self._fail(session, context, FailureReason.BUDGET_EXHAUSTED, str(e)) from e
            except PatternError as e:
                raise self._fail(session, context, FailureReason.PATTERN_ERROR, str(e)) from e

            if step is not None:
                context.add_tokens(step.tokens)
                answer = await self._dispatch(step, agent, config, context, session)
                if answer is not None:
                    return self._complete(session, context, answer)

            reason = self._limit_reached(agent, session.budget, context, started)
            if reason is not None:
                if reason == FailureReason.MAX_ITERATIONS:
                    message = f"maximum iterations reached: {context.iteration}"
                else:
                    message = f"token budget exhausted: {context.tokens_used} tokens used"
                raise self._fail(session, context, reason, message)

    async def _dispatch(
        self,
        step: ReasoningStep,
        agent: Agent,
        config: PatternConfig,
        context: ExecutionContext,
        session: Session,
    ) -> str | None:
        """Apply ``step`` to the context. Returns the answer for a FinalAnswer."""
        if isinstance(step, FinalAnswer):
            context.add_history(HistoryEntry.final_answer(step.answer))
            return step.answer

        if isinstance(step, Thought):
            context.add_history(HistoryEntry.thought(step.text))
            self.logger.debug("thought", session_id=session.id, iteration=context.iteration)
            return None

        if isinstance(step, Action):
            if step.thought:
                context.add_history(HistoryEntry.thought(step.thought))
            context.add_history(HistoryEntry.action_requested(step.request))
            result = await self._execute_action(step.request, agent, config, session)
            self._record_observation(result, context)
            return None

        if isinstance(step, ParallelActions):
            if step.thought:
                context.add_history(HistoryEntry.thought(step.thought))
            for request in step.requests:
                context.add_history(HistoryEntry.action_requested(request))
            results = await self._execute_all(step.requests, agent, config, session)
            for result in results:
                self._record_observation(result, context)
            return None

        if isinstance(step, Extension):
            interpreted = agent.pattern.interpret_extension(step, context)
            # Extensions resolve in one hop
            if interpreted is None or isinstance(interpreted, Extension):
                context.add_history(HistoryEntry.extension(step))
                self.logger.info(
                    "extension_ignored",
                    session_id=session.id,
                    extension_pattern=step.pattern,
                    kind=step.kind,
                )
                return None
            return await self._dispatch(interpreted, agent, config, context, session)

        raise TypeError(f"Unknown reasoning step: {step!r}")

    async def _execute_all(
        self,
        requests: tuple[ActionRequest, ...],
        agent: Agent,
        config: PatternConfig,
        session: Session,
    ) -> list[ActionResult]:
        """Run every request; results come back in request order."""
        self.logger.info(
            "parallel_actions_start",
            session_id=session.id,
            count=len(requests),
            parallel=config.parallel_actions,
        )
        if config.parallel_actions:
            return list(
                await asyncio.gather(
                    *(self._execute_action(r, agent, config, session) for r in requests)
                )
            )
        return [await self._execute_action(r, agent, config, session) for r in requests]

    async def _execute_action(
        self,
        request: ActionRequest,
        agent: Agent,
        config: PatternConfig,
        session: Session,
    ) -> ActionResult:
        """Execute one tool call. Never raises for tool-side failures."""
        if agent.allowed_tools is not None and request.tool not in agent.allowed_tools:
            self.logger.warning("tool_not_allowed", session_id=session.id, tool=request.tool)
            return ActionResult.failed(
                request.tool, f"Tool '{request.tool}' is not allowed for agent {agent.id}"
            )

        self.logger.info("tool_execution_start", session_id=session.id, tool=request.tool)
        try:
            tool = self.tool_registry.get(request.tool)
            output = await asyncio.wait_for(
                tool.execute(**request.args), timeout=config.action_timeout_secs
            )
        except asyncio.TimeoutError:
            self.logger.warning(
                "tool_execution_timeout",
                session_id=session.id,
                tool=request.tool,
                timeout=config.action_timeout_secs,
            )
            return ActionResult.failed(
                request.tool, f"Tool '{request.tool}' timed out after {config.action_timeout_secs}s"
            )
        except ToolError as e:
            self.logger.warning(
                "tool_execution_failed",
                session_id=session.id,
                tool=request.tool,
                error=str(e),
                error_type=type(e).__name__,
            )
            return ActionResult.failed(request.tool, str(e))
        except Exception as e:
            self.logger.error(
                "tool_execution_exception",
                session_id=session.id,
                tool=request.tool,
                error=str(e),
                error_type=type(e).__name__,
            )
            return ActionResult.failed(request.tool, f"{type(e).__name__}: {e}")

        self.logger.info("tool_execution_end", session_id=session.id, tool=request.tool)
        return ActionResult.ok(request.tool, output, tokens=_reported_tokens(output))

    def _record_observation(self, result: ActionResult, context: ExecutionContext) -> None:
        context.add_history(HistoryEntry.observation(result))
        if result.tokens:
            context.add_tokens(result.tokens)

    def _limit_reached(
        self, agent: Agent, budget: Budget, context: ExecutionContext, started: float
    ) -> FailureReason | None:
        ceiling = min(agent.pattern.config.max_iterations, budget.max_iterations)
        if context.iteration >= ceiling:
            return FailureReason.MAX_ITERATIONS
        elapsed = time.monotonic() - started
        if not agent.pattern.should_continue(context) or budget.exceeded(
            context.tokens_used, context.iteration, elapsed
        ):
            return FailureReason.BUDGET_EXHAUSTED
        return None

    def _complete(self, session: Session, context: ExecutionContext, answer: str) -> ExecutionResult:
        session.complete()
        self.logger.info(
            "session_completed",
            session_id=session.id,
            iterations=context.iteration,
            tokens_used=context.tokens_used,
        )
        return ExecutionResult(
            output=answer,
            iterations=context.iteration,
            total_tokens=context.tokens_used,
            session_id=session.id,
            history=list(context.history),
        )

    def _fail(
        self,
        session: Session,
        context: ExecutionContext,
        reason: FailureReason,
        message: str,
    ) -> ExecutionError:
        session.fail(reason, message)
        self.logger.error(
            "session_failed",
            session_id=session.id,
            agent_id=session.agent_id,
            reason=reason.value,
            message=message,
            iterations=context.iteration,
            tokens_used=context.tokens_used,
        )
        return _FAILURE_ERRORS[reason](
            f"Session {session.id} failed ({reason.value}): {message}",
            reason=reason,
            session=session,
            context=context,
        )

    def _tools_for(self, agent: Agent) -> list[str]:
        registered = self.tool_registry.list()
        if agent.allowed_tools is None:
            return registered
        return [name for name in registered if name in agent.allowed_tools]


def _reported_tokens(output: Any) -> int:
    if isinstance(output, dict):
        tokens = output.get("tokens", 0)
        if isinstance(tokens, int) and tokens > 0:
            return tokens
    return 0
