"""
Compliance Gate

Decides whether a unit of work may leave its current phase. The rule is
the same for every phase: the target must be the immediate successor, and
every artifact type produced by the current phase must be present with
approved status.
"""

from __future__ import annotations

from typing import Iterable, Protocol, runtime_checkable

import structlog

from airsspec.core.domain.errors import GateNotMetError
from airsspec.core.domain.phases import ArtifactRef, ArtifactType, Phase, UowState
from airsspec.core.interfaces.artifacts import ArtifactSourceProtocol

# Artifacts required to *leave* each phase
REQUIRED_ARTIFACTS: dict[Phase, tuple[ArtifactType, ...]] = {
    Phase.IDLE: (),
    Phase.RESEARCH: (ArtifactType.REQUIREMENTS,),
    Phase.INCEPTION: (ArtifactType.DAA,),
    Phase.DESIGN: (ArtifactType.ADR,),
    Phase.PLANNING: (ArtifactType.RFC,),
    Phase.CONSTRUCTION: (),
}


@runtime_checkable
class ComplianceGateProtocol(Protocol):
    def required_artifacts(self, phase: Phase) -> list[ArtifactType]: ...

    def can_transition(
        self, from_phase: Phase, to_phase: Phase, artifacts: Iterable[ArtifactRef]
    ) -> bool: ...

    async def validate_gate(
        self, state: UowState, artifacts: Iterable[ArtifactRef] | None = None
    ) -> None: ...


class DefaultComplianceGate:
    """
    Gate backed by REQUIRED_ARTIFACTS.

    Args:
        catalog: Source of the UOW's artifacts, used by ``validate_gate``
            when the caller passes none
    """

    def __init__(self, catalog: ArtifactSourceProtocol | None = None):
        self.catalog = catalog
        self.logger = structlog.get_logger().bind(component="compliance_gate")

    def required_artifacts(self, phase: Phase) -> list[ArtifactType]:
        return list(REQUIRED_ARTIFACTS[phase])

    def can_transition(
        self, from_phase: Phase, to_phase: Phase, artifacts: Iterable[ArtifactRef]
    ) -> bool:
        return self.check(from_phase, to_phase, artifacts) is None

    def check(
        self, from_phase: Phase, to_phase: Phase, artifacts: Iterable[ArtifactRef]
    ) -> str | None:
        """Return why ``from_phase -> to_phase`` is refused, or None if it is allowed."""
        if from_phase.successor() != to_phase:
            return (
                f"invalid transition from {from_phase} to {to_phase}: "
                "phases advance one step at a time"
            )
        missing = self.missing_artifacts(from_phase, artifacts)
        if missing:
            names = ", ".join(str(t) for t in missing)
            return f"leaving {from_phase} requires approved artifacts: {names}"
        return None

    def missing_artifacts(
        self, phase: Phase, artifacts: Iterable[ArtifactRef]
    ) -> list[ArtifactType]:
        approved = {ref.artifact_type for ref in artifacts if ref.approved}
        return [t for t in REQUIRED_ARTIFACTS[phase] if t not in approved]

    async def validate_gate(
        self, state: UowState, artifacts: Iterable[ArtifactRef] | None = None
    ) -> None:
        """
        Re-check the artifacts that were required to enter ``state.phase``.

        Raises:
            GateNotMetError: A required artifact is missing or not approved
        """
        previous = state.phase.predecessor()
        if previous is None:
            return
        if artifacts is None:
            artifacts = await self._collect(state.id)
        missing = self.missing_artifacts(previous, artifacts)
        if missing:
            names = ", ".join(str(t) for t in missing)
            self.logger.warning(
                "gate_not_met", uow_id=state.id, phase=state.phase.value, missing=names
            )
            raise GateNotMetError(f"{state.phase} requires approved artifacts: {names}")

    async def _collect(self, uow_id: str) -> list[ArtifactRef]:
        if self.catalog is None:
            return []
        return await self.catalog.collect(uow_id)
