"""Marker-based splitting of LLM output ("Thought:", "Action:", ...)."""

from __future__ import annotations

import json
import re
from typing import Any

THOUGHT = "thought"
ACTION = "action"
ACTION_INPUT = "action input"
FINAL_ANSWER = "final answer"

# Longest alternatives first so "Action Input" is not read as "Action"
_MARKER_RE = re.compile(
    r"^[ \t>*#]*(final answer|action input|action|thought)[ \t]*\**[ \t]*:\**",
    re.IGNORECASE | re.MULTILINE,
)

_FENCE_RE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL)


def split_sections(text: str) -> list[tuple[str, str]]:
    """
    Split ``text`` into (marker, body) pairs in document order.

    Markers must start a line. Text before the first marker is dropped.
    Returns an empty list when no marker is present.
    """
    matches = list(_MARKER_RE.finditer(text))
    sections = []
    for i, match in enumerate(matches):
        end = matches[i + 1].start() if i + 1 < len(matches) else len(text)
        sections.append((match.group(1).lower(), text[match.end() : end].strip()))
    return sections


def load_json(raw: str) -> Any:
    """json.loads that tolerates a surrounding markdown code fence."""
    raw = raw.strip()
    fenced = _FENCE_RE.match(raw)
    if fenced:
        raw = fenced.group(1)
    return json.loads(raw)
