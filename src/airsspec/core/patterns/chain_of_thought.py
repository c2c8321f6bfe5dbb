"""
Chain-of-Thought Pattern

Pure reasoning, no tool use. Each completion is either another reasoning
step or the final answer.
"""

from __future__ import annotations

from typing import Sequence

from airsspec.core.domain.errors import ParseError
from airsspec.core.domain.reasoning import FinalAnswer, ReasoningStep, Thought
from airsspec.core.patterns.base import ReasoningPattern
from airsspec.core.patterns.markers import FINAL_ANSWER, THOUGHT, split_sections

COT_PROMPT_TEMPLATE = """Think through the following problem step by step.

Write one reasoning step per reply, prefixed with "Thought:".
When you are confident, reply with:
Final Answer: <the answer>

Problem: {query}
"""


class ChainOfThoughtPattern(ReasoningPattern):
    name = "cot"

    def format_prompt(self, query: str, tools: Sequence[str] | None = None) -> str:
        return COT_PROMPT_TEMPLATE.format(query=query)

    def parse_response(self, response: str) -> ReasoningStep:
        sections = split_sections(response)
        for marker, body in sections:
            if marker == FINAL_ANSWER:
                if not body:
                    raise ParseError("empty final answer", raw=response[:500])
                return FinalAnswer(answer=body)

        if sections and sections[0][0] == THOUGHT:
            text = sections[0][1]
        else:
            text = response.strip()
        if not text:
            raise ParseError("empty response", raw=response[:500])
        return Thought(text=text)
