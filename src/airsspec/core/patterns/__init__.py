"""Reasoning patterns: the strategies that drive the agent loop."""

from airsspec.core.patterns.base import ReasoningPattern
from airsspec.core.patterns.chain_of_thought import ChainOfThoughtPattern
from airsspec.core.patterns.react import ReActPattern
from airsspec.core.patterns.registry import PatternRegistry, RuleBasedPatternSelector

__all__ = [
    "ReasoningPattern",
    "ReActPattern",
    "ChainOfThoughtPattern",
    "PatternRegistry",
    "RuleBasedPatternSelector",
]
