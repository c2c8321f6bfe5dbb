"""
Unit tests for ReActPattern

Covers response parsing, prompt formatting, the continue/stop decision and
the LLM round trip through next_step.
"""

import pytest

from airsspec.core.domain.errors import ActionFailedError, ParseError
from airsspec.core.domain.reasoning import (
    Action,
    ActionRequest,
    ActionResult,
    ExecutionContext,
    FinalAnswer,
    HistoryEntry,
    ParallelActions,
    PatternConfig,
    Thought,
)
from airsspec.core.interfaces.llm import Role
from airsspec.core.patterns.react import ReActPattern


@pytest.fixture
def pattern(mock_llm_provider):
    return ReActPattern(mock_llm_provider, PatternConfig(max_iterations=5, max_tokens=1000))


class TestParseResponse:
    def test_final_answer(self, pattern):
        step = pattern.parse_response("Final Answer: 42")
        assert step == FinalAnswer(answer="42")

    def test_thought_only(self, pattern):
        step = pattern.parse_response("Thought: I should look at the README first.")
        assert isinstance(step, Thought)
        assert step.text == "I should look at the README first."

    def test_action_with_action_input(self, pattern):
        step = pattern.parse_response(
            "Thought: need the config\n"
            "Action: read_file\n"
            'Action Input: {"path": "config.yaml"}'
        )
        assert isinstance(step, Action)
        assert step.request == ActionRequest("read_file", {"path": "config.yaml"})
        assert step.thought == "need the config"

    def test_action_with_inline_json(self, pattern):
        step = pattern.parse_response('Action: search {"pattern": "TODO"}')
        assert step.request == ActionRequest("search", {"pattern": "TODO"})

    def test_action_without_arguments(self, pattern):
        step = pattern.parse_response("Action: list_things")
        assert step.request == ActionRequest("list_things", {})

    def test_fenced_action_input(self, pattern):
        step = pattern.parse_response(
            'Action: read_file\nAction Input: ```json\n{"path": "a.md"}\n```'
        )
        assert step.request.args == {"path": "a.md"}

    def test_markdown_bold_markers(self, pattern):
        step = pattern.parse_response('**Action:** read_file\n**Action Input:** {"path": "a.md"}')
        assert step.request == ActionRequest("read_file", {"path": "a.md"})

    def test_parallel_actions(self, pattern):
        step = pattern.parse_response(
            "Thought: read both\n"
            'Action: [{"tool": "read_file", "args": {"path": "a.md"}},\n'
            '         {"tool": "read_file", "args": {"path": "b.md"}}]'
        )
        assert isinstance(step, ParallelActions)
        assert [r.args["path"] for r in step.requests] == ["a.md", "b.md"]
        assert step.thought == "read both"

    def test_single_element_list_is_plain_action(self, pattern):
        step = pattern.parse_response('Action: [{"tool": "search", "args": {"pattern": "x"}}]')
        assert isinstance(step, Action)
        assert step.request.tool == "search"

    def test_first_terminal_marker_wins(self, pattern):
        step = pattern.parse_response("Final Answer: done\nAction: read_file")
        assert isinstance(step, FinalAnswer)

    def test_markers_are_case_insensitive(self, pattern):
        step = pattern.parse_response("final answer: yes")
        assert step == FinalAnswer(answer="yes")

    @pytest.mark.parametrize(
        "text",
        [
            "I think the answer is probably 42.",
            "",
            "Action: read_file\nAction Input: {not json}",
            'Action: read_file\nAction Input: ["a.md"]',
            "Final Answer:   ",
            "Action: []",
            'Action: [{"args": {}}]',
            'Action Input: {"path": "a.md"}',
        ],
    )
    def test_unparseable_output_raises(self, pattern, text):
        with pytest.raises(ParseError):
            pattern.parse_response(text)


class TestPromptAndLoopControl:
    def test_format_prompt_lists_tools(self, pattern):
        prompt = pattern.format_prompt("Summarise", ["read_file", "search"])
        assert "read_file, search" in prompt
        assert "Final Answer:" in prompt
        assert "Summarise" in prompt

    def test_should_continue_false_after_final_answer(self, pattern):
        context = ExecutionContext(query="q")
        assert pattern.should_continue(context)
        context.add_history(HistoryEntry.final_answer("42"))
        assert not pattern.should_continue(context)

    def test_should_continue_false_at_iteration_ceiling(self, pattern):
        context = ExecutionContext(query="q", iteration=5)
        assert not pattern.should_continue(context)

    def test_should_continue_false_at_token_ceiling(self, pattern):
        context = ExecutionContext(query="q", tokens_used=1000)
        assert not pattern.should_continue(context)

    def test_build_messages_replays_history(self, pattern):
        context = ExecutionContext(query="q", available_tools=["read_file"])
        context.add_history(HistoryEntry.thought("look"))
        context.add_history(HistoryEntry.action_requested(ActionRequest("read_file", {"path": "a"})))
        context.add_history(HistoryEntry.observation(ActionResult.failed("read_file", "missing")))

        messages = pattern.build_messages(context)

        assert messages[0].role == Role.USER
        assert "read_file" in messages[0].content
        assert [m.role for m in messages[1:]] == [Role.ASSISTANT, Role.ASSISTANT, Role.USER]
        assert "ERROR: missing" in messages[-1].content


class TestNextStep:
    @pytest.mark.asyncio
    async def test_next_step_reports_tokens(self, pattern, mock_llm_provider, completion):
        mock_llm_provider.complete.return_value = completion("Final Answer: 42", 30, 12)

        step = await pattern.next_step(ExecutionContext(query="What is 6*7?"))

        assert step == FinalAnswer(answer="42", tokens=42)
        request = mock_llm_provider.complete.await_args.args[0]
        assert "What is 6*7?" in request.messages[0].content

    @pytest.mark.asyncio
    async def test_parse_error_reports_tokens(self, pattern, mock_llm_provider, completion):
        mock_llm_provider.complete.return_value = completion("no markers", 70, 30)

        with pytest.raises(ParseError) as exc_info:
            await pattern.next_step(ExecutionContext(query="q"))

        assert exc_info.value.tokens == 100

    @pytest.mark.asyncio
    async def test_settings_forwarded_to_request(self, mock_llm_provider, completion):
        mock_llm_provider.complete.return_value = completion("Thought: hm")
        pattern = ReActPattern(
            mock_llm_provider,
            PatternConfig(settings={"temperature": "0.2", "max_completion_tokens": "256"}),
            system_prompt="Be brief.",
        )

        await pattern.next_step(ExecutionContext(query="q"))

        request = mock_llm_provider.complete.await_args.args[0]
        assert request.temperature == 0.2
        assert request.max_tokens == 256
        assert request.messages[0].role == Role.SYSTEM

    @pytest.mark.asyncio
    async def test_provider_failure_becomes_action_failed(self, pattern, mock_llm_provider):
        mock_llm_provider.complete.side_effect = ConnectionError("network down")

        with pytest.raises(ActionFailedError, match="network down"):
            await pattern.next_step(ExecutionContext(query="q"))
