"""
ReAct Pattern (Reason + Act)

The model alternates between reasoning and tool use:

    Thought: I need the config file first.
    Action: read_file
    Action Input: {"path": "config.yaml"}

and ends with

    Final Answer: <answer>

Several tool calls for one step are written as a JSON list:

    Action: [{"tool": "read_file", "args": {"path": "a.md"}},
             {"tool": "read_file", "args": {"path": "b.md"}}]
"""

from __future__ import annotations

import json
import re
from typing import Any, Sequence

from airsspec.core.domain.errors import ParseError
from airsspec.core.domain.reasoning import (
    Action,
    ActionRequest,
    FinalAnswer,
    ParallelActions,
    ReasoningStep,
    Thought,
)
from airsspec.core.patterns.base import ReasoningPattern
from airsspec.core.patterns.markers import (
    ACTION,
    ACTION_INPUT,
    FINAL_ANSWER,
    THOUGHT,
    load_json,
    split_sections,
)

REACT_PROMPT_TEMPLATE = """You are an autonomous agent that solves tasks step by step.

Available tools: {tools}

Answer using exactly one of the following formats.

To reason about the next move:
Thought: <your reasoning>

To call a tool:
Thought: <why this tool>
Action: <tool name>
Action Input: <JSON object with the tool arguments>

To call several independent tools at once:
Thought: <why these tools>
Action: [{{"tool": "<tool name>", "args": {{...}}}}, ...]

When you know the answer:
Final Answer: <the answer>

Query: {query}
"""

_TOOL_NAME_RE = re.compile(r"^`?([A-Za-z_][\w.\-]*)`?\s*(.*)$", re.DOTALL)


class ReActPattern(ReasoningPattern):
    """Reason + Act: thoughts interleaved with tool calls."""

    name = "react"

    def format_prompt(self, query: str, tools: Sequence[str] | None = None) -> str:
        tool_list = ", ".join(tools) if tools else "(none)"
        return REACT_PROMPT_TEMPLATE.format(tools=tool_list, query=query)

    def parse_response(self, response: str) -> ReasoningStep:
        sections = split_sections(response)
        if not sections:
            raise ParseError(
                "expected 'Thought:', 'Action:' or 'Final Answer:' marker", raw=response[:500]
            )

        thought: str | None = None
        for index, (marker, body) in enumerate(sections):
            if marker == THOUGHT and thought is None:
                thought = body
            elif marker == FINAL_ANSWER:
                if not body:
                    raise ParseError("empty final answer", raw=response[:500])
                return FinalAnswer(answer=body)
            elif marker == ACTION:
                action_input = self._action_input(sections[index + 1 :])
                return self._parse_action(body, action_input, thought, response)

        if thought is None:
            # Only stray "Action Input:" sections
            raise ParseError("'Action Input:' without 'Action:'", raw=response[:500])
        return Thought(text=thought)

    @staticmethod
    def _action_input(rest: list[tuple[str, str]]) -> str | None:
        if rest and rest[0][0] == ACTION_INPUT:
            return rest[0][1]
        return None

    def _parse_action(
        self, body: str, action_input: str | None, thought: str | None, raw: str
    ) -> ReasoningStep:
        if not body:
            raise ParseError("empty action", raw=raw[:500])

        if body.startswith("[") or body.startswith("{") or body.startswith("```"):
            payload = self._decode(body, raw)
            if isinstance(payload, list):
                requests = tuple(self._request_from_obj(item, raw) for item in payload)
                if not requests:
                    raise ParseError("empty action list", raw=raw[:500])
                if len(requests) == 1:
                    return Action(request=requests[0], thought=thought)
                return ParallelActions(requests=requests, thought=thought)
            return Action(request=self._request_from_obj(payload, raw), thought=thought)

        match = _TOOL_NAME_RE.match(body)
        if not match:
            raise ParseError(f"invalid tool name in action: {body[:80]!r}", raw=raw[:500])
        tool, inline_args = match.group(1), match.group(2).strip()

        args_text = inline_args or action_input
        args: Any = {}
        if args_text:
            args = self._decode(args_text, raw)
        if not isinstance(args, dict):
            raise ParseError(f"arguments for '{tool}' must be a JSON object", raw=raw[:500])
        return Action(request=ActionRequest(tool=tool, args=args), thought=thought)

    @staticmethod
    def _decode(text: str, raw: str) -> Any:
        try:
            return load_json(text)
        except json.JSONDecodeError as e:
            raise ParseError(f"invalid JSON in action: {e}", raw=raw[:500]) from e

    @staticmethod
    def _request_from_obj(obj: Any, raw: str) -> ActionRequest:
        if not isinstance(obj, dict) or not isinstance(obj.get("tool"), str):
            raise ParseError("each action needs a 'tool' name", raw=raw[:500])
        args = obj.get("args", obj.get("arguments", {})) or {}
        if not isinstance(args, dict):
            raise ParseError(f"arguments for '{obj['tool']}' must be a JSON object", raw=raw[:500])
        return ActionRequest(tool=obj["tool"], args=args)
