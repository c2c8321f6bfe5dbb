"""Path sandbox shared by every filesystem-touching tool.

Paths are checked before any I/O happens:

1. canonicalise (relative paths are anchored at the first allowed root,
   symlinks are followed)
2. reject anything that does not live under an allowed root
3. reject anything matching a deny pattern

The policy is read-only once constructed, so one Sandbox is safely shared
by concurrent tool calls.
"""

from __future__ import annotations

from fnmatch import fnmatchcase
from pathlib import Path
from typing import Iterable, Sequence

import structlog

from airsspec.core.domain.errors import SecurityViolationError

DEFAULT_DENY_PATTERNS: tuple[str, ...] = (".env*", "*.key", "*.pem", ".git/*", ".git")

logger = structlog.get_logger().bind(component="sandbox")


class Sandbox:
    """
    Allowed roots plus deny patterns.

    Deny patterns are shell globs matched against every trailing sub-path
    of the root-relative path, so ``.git/*`` also rejects
    ``vendor/lib/.git/config``.
    """

    def __init__(
        self,
        allowed_roots: Iterable[str | Path],
        deny_patterns: Sequence[str] = DEFAULT_DENY_PATTERNS,
    ):
        roots = tuple(Path(root).expanduser().resolve() for root in allowed_roots)
        if not roots:
            raise ValueError("Sandbox needs at least one allowed root")
        self._roots = roots
        self._deny_patterns = tuple(deny_patterns)

    @property
    def allowed_roots(self) -> tuple[Path, ...]:
        return self._roots

    @property
    def deny_patterns(self) -> tuple[str, ...]:
        return self._deny_patterns

    @property
    def default_root(self) -> Path:
        return self._roots[0]

    def resolve(self, path: str | Path) -> Path:
        """Return the canonical absolute path, or raise SecurityViolationError."""
        resolved = self._canonical(path)

        root = self._root_of(resolved)
        if root is None:
            logger.warning("path_outside_roots", path=str(path), resolved=str(resolved))
            raise SecurityViolationError(str(path), "path is outside the allowed roots")

        pattern = self._denied_by(resolved.relative_to(root))
        if pattern is not None:
            logger.warning("path_denied", path=str(path), pattern=pattern)
            raise SecurityViolationError(str(path), f"path matches deny pattern '{pattern}'")
        return resolved

    def is_denied(self, path: str | Path) -> bool:
        """True if ``path`` would be rejected by ``resolve``. Does not log."""
        resolved = self._canonical(path)
        root = self._root_of(resolved)
        if root is None:
            return True
        return self._denied_by(resolved.relative_to(root)) is not None

    def relative(self, resolved: Path) -> str:
        """Display form of a resolved path: relative to its root when possible."""
        root = self._root_of(resolved)
        if root is None:
            return str(resolved)
        return resolved.relative_to(root).as_posix()

    def _canonical(self, path: str | Path) -> Path:
        candidate = Path(path).expanduser()
        if not candidate.is_absolute():
            candidate = self._roots[0] / candidate
        return candidate.resolve()

    def _root_of(self, resolved: Path) -> Path | None:
        for root in self._roots:
            if resolved == root or root in resolved.parents:
                return root
        return None

    def _denied_by(self, relative: Path) -> str | None:
        parts = relative.parts
        for start in range(len(parts)):
            tail = "/".join(parts[start:])
            for pattern in self._deny_patterns:
                if fnmatchcase(tail, pattern):
                    return pattern
        return None
