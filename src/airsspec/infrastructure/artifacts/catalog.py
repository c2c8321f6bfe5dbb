"""
Artifact catalog: finds a UOW's gating artifacts on disk and derives their
approval status.

Locations, relative to ``<root>/uow/<uow_id>/``:

    requirements.md        REQUIREMENTS
    daa.md                 DAA
    adr/*.md               ADR (one or more)
    rfc.md                 RFC
    bolts/*/plan.md        BOLT_PLAN (one per bolt)

An artifact is ``approved`` only if its validator passes and its
frontmatter declares ``status: approved``. A valid artifact with another
status keeps that status; an invalid one is reported as ``invalid``.
"""

from __future__ import annotations

from pathlib import Path
from typing import Mapping

import structlog

from airsspec.core.domain.errors import ArtifactStoreError
from airsspec.core.domain.phases import APPROVED, ArtifactRef, ArtifactType
from airsspec.core.interfaces.artifacts import (
    ArtifactStoreProtocol,
    ArtifactValidatorProtocol,
    ValidationResult,
)
from airsspec.infrastructure.artifacts.validators import validators_by_type

INVALID = "invalid"

ARTIFACT_LOCATIONS: dict[ArtifactType, str] = {
    ArtifactType.REQUIREMENTS: "requirements.md",
    ArtifactType.DAA: "daa.md",
    ArtifactType.ADR: "adr/*.md",
    ArtifactType.RFC: "rfc.md",
    ArtifactType.BOLT_PLAN: "bolts/*/plan.md",
}


class ArtifactCatalog:
    def __init__(
        self,
        store: ArtifactStoreProtocol,
        root: str | Path,
        validators: Mapping[ArtifactType, ArtifactValidatorProtocol] | None = None,
    ):
        self.store = store
        self.root = Path(root)
        self.validators = dict(validators) if validators is not None else validators_by_type()
        self.logger = structlog.get_logger().bind(component="artifact_catalog")

    def uow_dir(self, uow_id: str) -> Path:
        return self.root / "uow" / uow_id

    def locate(self, uow_id: str, artifact_type: ArtifactType) -> list[Path]:
        return sorted(
            p for p in self.uow_dir(uow_id).glob(ARTIFACT_LOCATIONS[artifact_type]) if p.is_file()
        )

    async def collect(self, uow_id: str) -> list[ArtifactRef]:
        refs = []
        for artifact_type in ARTIFACT_LOCATIONS:
            for path in self.locate(uow_id, artifact_type):
                refs.append(await self.inspect(path, artifact_type))
        self.logger.debug(
            "artifacts_collected",
            uow_id=uow_id,
            count=len(refs),
            approved=sum(1 for ref in refs if ref.approved),
        )
        return refs

    async def inspect(self, path: Path, artifact_type: ArtifactType) -> ArtifactRef:
        result = await self.validate(path, artifact_type)
        return ArtifactRef(
            path=str(path), artifact_type=artifact_type, status=self._status(result)
        )

    async def validate(self, path: Path, artifact_type: ArtifactType) -> ValidationResult:
        validator = self.validators.get(artifact_type)
        if validator is None:
            raise ArtifactStoreError(f"No validator registered for {artifact_type}")
        content = await self.store.read(path)
        result = validator.validate(content)
        if not result.valid:
            self.logger.info(
                "artifact_invalid",
                path=str(path),
                artifact_type=artifact_type.value,
                errors=[f"{issue.field}: {issue.message}" for issue in result.errors],
            )
        return result

    @staticmethod
    def _status(result: ValidationResult) -> str:
        if not result.valid:
            return INVALID
        status = str(result.metadata.get("status", "")).strip().lower()
        if status == APPROVED:
            return APPROVED
        return status or INVALID
