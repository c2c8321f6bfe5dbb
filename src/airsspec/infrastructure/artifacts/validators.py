"""
Artifact validators.

One validator per ArtifactType. Each parses the YAML frontmatter and checks
it against a pydantic model; every problem becomes a ValidationIssue so the
caller sees all of them at once.
"""

from __future__ import annotations

from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from airsspec.core.domain.phases import ArtifactType
from airsspec.core.interfaces.artifacts import (
    ArtifactValidatorProtocol,
    ValidationIssue,
    ValidationResult,
)
from airsspec.infrastructure.artifacts.frontmatter import extract_body, parse_frontmatter


class ArtifactFrontmatter(BaseModel):
    """Fields every gating artifact declares."""

    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)

    title: str = Field(min_length=1)
    status: str = Field(min_length=1)


class RequirementsFrontmatter(ArtifactFrontmatter):
    pass


class DaaFrontmatter(ArtifactFrontmatter):
    pass


class AdrFrontmatter(ArtifactFrontmatter):
    decision: str = Field(min_length=1)


class RfcFrontmatter(ArtifactFrontmatter):
    summary: str = Field(min_length=1)


class BoltPlanFrontmatter(ArtifactFrontmatter):
    bolt_id: str = Field(min_length=1)


class FrontmatterValidator:
    """Validates an artifact's frontmatter against ``model``."""

    def __init__(self, artifact_type: ArtifactType, model: type[ArtifactFrontmatter]):
        self._artifact_type = artifact_type
        self.model = model

    @property
    def artifact_type(self) -> ArtifactType:
        return self._artifact_type

    def validate(self, content: str) -> ValidationResult:
        try:
            data = parse_frontmatter(content)
        except (yaml.YAMLError, ValueError) as e:
            return ValidationResult.failure(
                [ValidationIssue("frontmatter", f"invalid YAML frontmatter: {e}")]
            )
        if data is None:
            return ValidationResult.failure(
                [ValidationIssue("frontmatter", "missing '---' delimited frontmatter")]
            )

        try:
            parsed = self.model.model_validate(data)
        except ValidationError as e:
            return ValidationResult.failure([_issue(error) for error in e.errors()])

        result = ValidationResult.success(metadata=parsed.model_dump())
        if not extract_body(content).strip():
            result.add_warning(f"{self._artifact_type} artifact has an empty body")
        return result


def _issue(error: dict[str, Any]) -> ValidationIssue:
    field = ".".join(str(part) for part in error.get("loc", ())) or "frontmatter"
    return ValidationIssue(field, error.get("msg", "invalid value"))


_MODELS: dict[ArtifactType, type[ArtifactFrontmatter]] = {
    ArtifactType.REQUIREMENTS: RequirementsFrontmatter,
    ArtifactType.DAA: DaaFrontmatter,
    ArtifactType.ADR: AdrFrontmatter,
    ArtifactType.RFC: RfcFrontmatter,
    ArtifactType.BOLT_PLAN: BoltPlanFrontmatter,
}


def validators_by_type() -> dict[ArtifactType, ArtifactValidatorProtocol]:
    return {t: FrontmatterValidator(t, model) for t, model in _MODELS.items()}
