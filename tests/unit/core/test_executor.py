"""
Unit Tests for AgentExecutor

Drives the loop with an AsyncMock LLM provider and mock tools to verify
step dispatch, parallel fan-out ordering, failure recovery and the
termination rules.
"""

import asyncio
import json

import pytest

from airsspec.core.domain.errors import (
    BudgetExceeded,
    MaxIterationsExceeded,
    PatternFailedError,
    PatternInternalError,
    PatternParseFailedError,
    SessionConflictError,
    ToolExecutionError,
)
from airsspec.core.domain.executor import AgentExecutor
from airsspec.core.domain.models import Agent, Budget, FailureReason, SessionStatus
from airsspec.core.domain.reasoning import (
    Extension,
    FinalAnswer,
    HistoryKind,
    PatternConfig,
    Thought,
)
from airsspec.core.patterns.base import ReasoningPattern
from airsspec.core.patterns.chain_of_thought import ChainOfThoughtPattern
from airsspec.core.patterns.react import ReActPattern
from airsspec.infrastructure.tools.registry import ToolRegistry


def parallel_action(*tools):
    return "Action: " + json.dumps([{"tool": t, "args": {}} for t in tools])


def observations(result_or_context):
    return [
        entry.result
        for entry in result_or_context.history
        if entry.kind == HistoryKind.OBSERVATION
    ]


@pytest.fixture
def registry(make_tool):
    return ToolRegistry(
        [
            make_tool("slow", delay=0.05),
            make_tool("fast"),
            make_tool("broken", error=ToolExecutionError("disk on fire")),
        ]
    )


@pytest.fixture
def executor(registry):
    return AgentExecutor(registry)


def react_agent(llm, agent_id="agent-1", **config):
    return Agent(id=agent_id, query="test query", pattern=ReActPattern(llm, PatternConfig(**config)))


class TestCompletion:
    @pytest.mark.asyncio
    async def test_immediate_final_answer(self, executor, mock_llm_provider, completion):
        mock_llm_provider.complete.return_value = completion("Final Answer: 42")

        result = await executor.run(react_agent(mock_llm_provider, max_iterations=5))

        assert result.result == "42"
        assert result.iterations == 1
        assert result.total_tokens == 15
        assert result.session_id.startswith("session-")
        assert not executor.is_running("agent-1")

    @pytest.mark.asyncio
    async def test_thought_then_answer(self, executor, mock_llm_provider, completion):
        mock_llm_provider.complete.side_effect = [
            completion("Thought: let me think"),
            completion("Final Answer: done"),
        ]

        result = await executor.run(react_agent(mock_llm_provider))

        assert result.iterations == 2
        assert result.total_tokens == 30
        assert [e.kind for e in result.history] == [HistoryKind.THOUGHT, HistoryKind.FINAL_ANSWER]

    @pytest.mark.asyncio
    async def test_chain_of_thought_agent(self, executor, mock_llm_provider, completion):
        mock_llm_provider.complete.side_effect = [
            completion("First, 6 times 7."),
            completion("Final Answer: 42"),
        ]
        agent = Agent(id="cot", query="6*7?", pattern=ChainOfThoughtPattern(mock_llm_provider))

        result = await executor.run(agent)

        assert result.output == "42"
        assert result.history[0].text == "First, 6 times 7."


class TestToolDispatch:
    @pytest.mark.asyncio
    async def test_single_action_observation(self, executor, registry, mock_llm_provider, completion):
        mock_llm_provider.complete.side_effect = [
            completion('Action: fast\nAction Input: {"x": 1}'),
            completion("Final Answer: ok"),
        ]

        result = await executor.run(react_agent(mock_llm_provider))

        [observation] = observations(result)
        assert observation.success
        assert observation.output == {"tool": "fast", "args": {"x": 1}}
        registry.get("fast").execute.assert_awaited_once_with(x=1)

    @pytest.mark.asyncio
    async def test_parallel_actions_partial_failure_in_request_order(
        self, executor, mock_llm_provider, completion
    ):
        mock_llm_provider.complete.side_effect = [
            completion(parallel_action("slow", "broken", "fast")),
            completion("Final Answer: done"),
        ]

        result = await executor.run(react_agent(mock_llm_provider))

        results = observations(result)
        assert [r.tool for r in results] == ["slow", "broken", "fast"]
        assert [r.success for r in results] == [True, False, True]
        assert "disk on fire" in results[1].error

    @pytest.mark.asyncio
    async def test_parallel_actions_run_concurrently(self, make_tool, mock_llm_provider, completion):
        executor = AgentExecutor(
            ToolRegistry([make_tool("a", delay=0.2), make_tool("b", delay=0.2), make_tool("c", delay=0.2)])
        )
        mock_llm_provider.complete.side_effect = [
            completion(parallel_action("a", "b", "c")),
            completion("Final Answer: done"),
        ]

        loop = asyncio.get_running_loop()
        started = loop.time()
        await executor.run(react_agent(mock_llm_provider))

        assert loop.time() - started < 0.5

    @pytest.mark.asyncio
    async def test_sequential_when_parallel_disabled(self, executor, mock_llm_provider, completion):
        mock_llm_provider.complete.side_effect = [
            completion(parallel_action("slow", "broken", "fast")),
            completion("Final Answer: done"),
        ]

        result = await executor.run(react_agent(mock_llm_provider, parallel_actions=False))

        results = observations(result)
        assert [r.tool for r in results] == ["slow", "broken", "fast"]
        assert [r.success for r in results] == [True, False, True]

    @pytest.mark.asyncio
    async def test_unknown_tool_is_failed_observation(self, executor, mock_llm_provider, completion):
        mock_llm_provider.complete.side_effect = [
            completion("Action: teleport"),
            completion("Final Answer: gave up"),
        ]

        result = await executor.run(react_agent(mock_llm_provider))

        [observation] = observations(result)
        assert not observation.success
        assert "Tool not found: teleport" in observation.error

    @pytest.mark.asyncio
    async def test_tool_timeout_is_failed_observation(self, make_tool, mock_llm_provider, completion):
        executor = AgentExecutor(ToolRegistry([make_tool("sleepy", delay=5)]))
        mock_llm_provider.complete.side_effect = [
            completion("Action: sleepy"),
            completion("Final Answer: moved on"),
        ]

        result = await executor.run(react_agent(mock_llm_provider, action_timeout_secs=0.05))

        [observation] = observations(result)
        assert not observation.success
        assert "timed out" in observation.error

    @pytest.mark.asyncio
    async def test_unexpected_tool_exception_is_failed_observation(
        self, make_tool, mock_llm_provider, completion
    ):
        executor = AgentExecutor(ToolRegistry([make_tool("buggy", error=KeyError("oops"))]))
        mock_llm_provider.complete.side_effect = [
            completion("Action: buggy"),
            completion("Final Answer: recovered"),
        ]

        result = await executor.run(react_agent(mock_llm_provider))

        assert result.output == "recovered"
        assert "KeyError" in observations(result)[0].error

    @pytest.mark.asyncio
    async def test_disallowed_tool_not_executed(self, executor, registry, mock_llm_provider, completion):
        mock_llm_provider.complete.side_effect = [
            completion("Action: broken"),
            completion("Final Answer: ok"),
        ]
        agent = react_agent(mock_llm_provider)
        agent.allowed_tools = ["fast"]

        result = await executor.run(agent)

        [observation] = observations(result)
        assert "not allowed" in observation.error
        registry.get("broken").execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_available_tools_respect_allow_list(self, executor, mock_llm_provider, completion):
        mock_llm_provider.complete.return_value = completion("Final Answer: ok")
        agent = react_agent(mock_llm_provider)
        agent.allowed_tools = ["fast", "slow"]

        await executor.run(agent)

        request = mock_llm_provider.complete.await_args.args[0]
        assert "Available tools: fast, slow" in request.messages[0].content

    @pytest.mark.asyncio
    async def test_tool_reported_tokens_are_counted(self, make_tool, mock_llm_provider, completion):
        executor = AgentExecutor(ToolRegistry([make_tool("summarise", result={"summary": "s", "tokens": 100})]))
        mock_llm_provider.complete.side_effect = [
            completion("Action: summarise"),
            completion("Final Answer: ok"),
        ]

        result = await executor.run(react_agent(mock_llm_provider))

        assert result.total_tokens == 15 + 100 + 15


class TestRecovery:
    @pytest.mark.asyncio
    async def test_llm_failure_is_recorded_and_loop_continues(
        self, executor, mock_llm_provider, completion
    ):
        mock_llm_provider.complete.side_effect = [
            ConnectionError("upstream 503"),
            completion("Final Answer: second try"),
        ]

        result = await executor.run(react_agent(mock_llm_provider))

        assert result.output == "second try"
        assert result.iterations == 2
        assert result.history[0].kind == HistoryKind.ERROR
        assert "upstream 503" in result.history[0].text

    @pytest.mark.asyncio
    async def test_single_parse_failure_is_tolerated(self, executor, mock_llm_provider, completion):
        mock_llm_provider.complete.side_effect = [
            completion("no markers here"),
            completion("Final Answer: fixed"),
        ]

        result = await executor.run(react_agent(mock_llm_provider))

        assert result.output == "fixed"
        assert result.history[0].kind == HistoryKind.ERROR

    @pytest.mark.asyncio
    async def test_unparseable_reply_tokens_are_counted(self, executor, mock_llm_provider, completion):
        mock_llm_provider.complete.side_effect = [
            completion("no markers here", prompt_tokens=80, completion_tokens=20),
            completion("Final Answer: fixed"),
        ]

        result = await executor.run(react_agent(mock_llm_provider))

        assert result.total_tokens == 115


class TestTermination:
    @pytest.mark.asyncio
    async def test_halts_at_max_iterations(self, executor, mock_llm_provider, completion):
        mock_llm_provider.complete.return_value = completion("Thought: still thinking")

        with pytest.raises(MaxIterationsExceeded) as exc_info:
            await executor.run(react_agent(mock_llm_provider, max_iterations=3))

        error = exc_info.value
        assert error.reason == FailureReason.MAX_ITERATIONS
        assert error.context.iteration == 3
        assert error.session.status == SessionStatus.FAILED
        assert error.session.failure == FailureReason.MAX_ITERATIONS
        assert mock_llm_provider.complete.await_count == 3

    @pytest.mark.asyncio
    async def test_budget_iteration_ceiling(self, executor, mock_llm_provider, completion):
        mock_llm_provider.complete.return_value = completion("Thought: hm")

        with pytest.raises(MaxIterationsExceeded):
            await executor.run(react_agent(mock_llm_provider), Budget(max_iterations=2))

        assert mock_llm_provider.complete.await_count == 2

    @pytest.mark.asyncio
    async def test_token_budget_exhausted(self, executor, mock_llm_provider, completion):
        mock_llm_provider.complete.return_value = completion("Thought: expensive")

        with pytest.raises(BudgetExceeded) as exc_info:
            await executor.run(react_agent(mock_llm_provider), Budget(max_tokens=20))

        assert exc_info.value.reason == FailureReason.BUDGET_EXHAUSTED
        assert exc_info.value.context.tokens_used == 30
        assert exc_info.value.context.iteration == 2

    @pytest.mark.asyncio
    async def test_pattern_token_ceiling(self, executor, mock_llm_provider, completion):
        mock_llm_provider.complete.return_value = completion("Thought: expensive")

        with pytest.raises(BudgetExceeded):
            await executor.run(react_agent(mock_llm_provider, max_tokens=15))

        assert mock_llm_provider.complete.await_count == 1

    @pytest.mark.asyncio
    async def test_repeated_parse_failures_are_fatal(self, executor, mock_llm_provider, completion):
        mock_llm_provider.complete.return_value = completion("gibberish")

        with pytest.raises(PatternParseFailedError) as exc_info:
            await executor.run(react_agent(mock_llm_provider))

        assert exc_info.value.reason == FailureReason.PARSE_ERROR
        assert mock_llm_provider.complete.await_count == 2

    @pytest.mark.asyncio
    async def test_unparseable_replies_count_against_token_budget(
        self, executor, mock_llm_provider, completion
    ):
        mock_llm_provider.complete.side_effect = [
            completion("garbage", prompt_tokens=900, completion_tokens=100),
            completion("Thought: hm"),
        ] * 5 + [completion("Final Answer: done")]

        with pytest.raises(BudgetExceeded) as exc_info:
            await executor.run(react_agent(mock_llm_provider), Budget(max_tokens=500))

        assert exc_info.value.context.tokens_used == 1000
        assert exc_info.value.context.iteration == 1
        assert mock_llm_provider.complete.await_count == 1

    @pytest.mark.asyncio
    async def test_session_timeout(self, executor, mock_llm_provider, completion):
        async def slow_completion(request):
            await asyncio.sleep(5)
            return completion("Final Answer: too late")

        mock_llm_provider.complete.side_effect = slow_completion

        with pytest.raises(BudgetExceeded) as exc_info:
            await executor.run(react_agent(mock_llm_provider), Budget(timeout_secs=0.05))

        assert exc_info.value.session.failure == FailureReason.BUDGET_EXHAUSTED
        assert "timed out" in str(exc_info.value)
        assert not executor.is_running("agent-1")

    @pytest.mark.asyncio
    async def test_internal_pattern_error_is_fatal(self, executor, mock_llm_provider):
        class BrokenPattern(ReActPattern):
            async def next_step(self, context):
                raise PatternInternalError("corrupted state")

        agent = Agent(id="broken", query="q", pattern=BrokenPattern(mock_llm_provider))

        with pytest.raises(PatternFailedError) as exc_info:
            await executor.run(agent)

        assert exc_info.value.reason == FailureReason.PATTERN_ERROR


class TestSessions:
    @pytest.mark.asyncio
    async def test_second_run_for_same_agent_is_rejected(self, executor, mock_llm_provider, completion):
        release = asyncio.Event()

        async def gated_completion(request):
            await release.wait()
            return completion("Final Answer: first")

        mock_llm_provider.complete.side_effect = gated_completion
        agent = react_agent(mock_llm_provider)

        first = asyncio.create_task(executor.run(agent))
        await asyncio.sleep(0)
        assert executor.is_running(agent.id)

        with pytest.raises(SessionConflictError):
            await executor.run(agent)

        release.set()
        result = await first
        assert result.output == "first"
        assert not executor.is_running(agent.id)

    @pytest.mark.asyncio
    async def test_different_agents_may_run(self, executor, mock_llm_provider, completion):
        mock_llm_provider.complete.return_value = completion("Final Answer: ok")

        results = await asyncio.gather(
            executor.run(react_agent(mock_llm_provider, agent_id="a")),
            executor.run(react_agent(mock_llm_provider, agent_id="b")),
        )

        assert [r.output for r in results] == ["ok", "ok"]


class ExtensionPattern(ReasoningPattern):
    """Emits an Extension step first, then a final answer."""

    name = "extension_test"

    def __init__(self, llm_provider, interpret=False):
        super().__init__(llm_provider)
        self.interpret = interpret

    def format_prompt(self, query, tools=None):
        return query

    def parse_response(self, response):
        if response.startswith("EXT"):
            return Extension(pattern=self.name, kind="branch", data=response[4:])
        return FinalAnswer(answer=response)

    def interpret_extension(self, step, context):
        if self.interpret:
            return Thought(text=f"interpreted {step.data}")
        return None


class TestExtensions:
    @pytest.mark.asyncio
    async def test_unrecognised_extension_is_logged_and_skipped(
        self, executor, mock_llm_provider, completion
    ):
        mock_llm_provider.complete.side_effect = [completion("EXT b1"), completion("done")]
        agent = Agent(id="ext", query="q", pattern=ExtensionPattern(mock_llm_provider))

        result = await executor.run(agent)

        assert result.output == "done"
        assert result.history[0].kind == HistoryKind.EXTENSION
        assert "branch" in result.history[0].text

    @pytest.mark.asyncio
    async def test_interpreted_extension_is_dispatched(self, executor, mock_llm_provider, completion):
        mock_llm_provider.complete.side_effect = [completion("EXT b1"), completion("done")]
        agent = Agent(id="ext", query="q", pattern=ExtensionPattern(mock_llm_provider, interpret=True))

        result = await executor.run(agent)

        assert result.history[0].kind == HistoryKind.THOUGHT
        assert result.history[0].text == "interpreted b1"

    @pytest.mark.asyncio
    async def test_extension_interpreted_as_extension_is_skipped(
        self, executor, mock_llm_provider, completion
    ):
        class SelfReferentialPattern(ExtensionPattern):
            def interpret_extension(self, step, context):
                return step

        mock_llm_provider.complete.side_effect = [completion("EXT b1"), completion("done")]
        agent = Agent(id="ext", query="q", pattern=SelfReferentialPattern(mock_llm_provider))

        result = await executor.run(agent)

        assert result.output == "done"
        assert result.history[0].kind == HistoryKind.EXTENSION
        assert result.iterations == 2
