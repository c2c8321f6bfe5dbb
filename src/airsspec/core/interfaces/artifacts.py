"""
Artifact Store and Validator Protocols

The compliance gate never parses artifacts itself. It asks a store whether
an artifact exists and a validator (keyed by ArtifactType) whether its
content is valid; approval is derived from both.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from airsspec.core.domain.phases import ArtifactRef, ArtifactType


@dataclass(frozen=True)
class ValidationIssue:
    field: str
    message: str


@dataclass
class ValidationResult:
    valid: bool = True
    errors: list[ValidationIssue] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    # Parsed frontmatter, when the validator got that far
    metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def success(cls, metadata: dict[str, Any] | None = None) -> ValidationResult:
        return cls(valid=True, metadata=metadata or {})

    @classmethod
    def failure(cls, errors: list[ValidationIssue]) -> ValidationResult:
        return cls(valid=False, errors=list(errors))

    def add_warning(self, warning: str) -> None:
        self.warnings.append(warning)


@runtime_checkable
class ArtifactStoreProtocol(Protocol):
    async def read(self, path: Path) -> str: ...

    async def write(self, path: Path, content: str) -> None: ...

    async def exists(self, path: Path) -> bool: ...


@runtime_checkable
class ArtifactValidatorProtocol(Protocol):
    @property
    def artifact_type(self) -> ArtifactType: ...

    def validate(self, content: str) -> ValidationResult: ...


@runtime_checkable
class ArtifactSourceProtocol(Protocol):
    """Anything that can list the gating artifacts of a unit of work."""

    async def collect(self, uow_id: str) -> list[ArtifactRef]: ...
