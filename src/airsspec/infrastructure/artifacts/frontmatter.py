"""YAML frontmatter helpers for markdown artifacts.

An artifact starts with a ``---`` line, a YAML mapping, and a closing
``---`` line; the markdown body follows.
"""

from __future__ import annotations

from typing import Any

import yaml

DELIMITER = "---"


def _split(content: str) -> tuple[str, str] | None:
    lines = content.lstrip("\ufeff").splitlines()
    if not lines or lines[0].strip() != DELIMITER:
        return None
    for index in range(1, len(lines)):
        if lines[index].strip() == DELIMITER:
            return "\n".join(lines[1:index]), "\n".join(lines[index + 1 :])
    return None


def extract_frontmatter(content: str) -> str | None:
    """Raw YAML between the delimiters, or None if there is no frontmatter."""
    parts = _split(content)
    return parts[0] if parts else None


def extract_body(content: str) -> str:
    """Everything after the frontmatter (the whole text if there is none)."""
    parts = _split(content)
    return parts[1] if parts else content


def parse_frontmatter(content: str) -> dict[str, Any] | None:
    """
    Parse the frontmatter into a dict.

    Returns None when there is no frontmatter block.

    Raises:
        yaml.YAMLError: The block is not valid YAML
        ValueError: The block is valid YAML but not a mapping
    """
    raw = extract_frontmatter(content)
    if raw is None:
        return None
    data = yaml.safe_load(raw)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"frontmatter must be a mapping, got {type(data).__name__}")
    return data
