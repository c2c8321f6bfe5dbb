"""
Unit-of-Work Phase Types

A unit of work (UOW) moves through a fixed sequence of phases:

    idle -> research -> inception -> design -> planning -> construction

It never skips a phase and never moves backwards. Leaving a phase requires
the artifacts produced in that phase to exist and be approved; the rules
live in ComplianceGate, these are only the records.

UowState and Transition serialise to plain JSON-compatible dicts so any
StatePersistence implementation can store them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class Phase(str, Enum):
    IDLE = "idle"
    RESEARCH = "research"
    INCEPTION = "inception"
    DESIGN = "design"
    PLANNING = "planning"
    CONSTRUCTION = "construction"

    @property
    def position(self) -> int:
        return PHASE_ORDER.index(self)

    def successor(self) -> Phase | None:
        position = self.position
        if position + 1 < len(PHASE_ORDER):
            return PHASE_ORDER[position + 1]
        return None

    def predecessor(self) -> Phase | None:
        position = self.position
        if position > 0:
            return PHASE_ORDER[position - 1]
        return None

    def __str__(self) -> str:
        return self.value


PHASE_ORDER: tuple[Phase, ...] = (
    Phase.IDLE,
    Phase.RESEARCH,
    Phase.INCEPTION,
    Phase.DESIGN,
    Phase.PLANNING,
    Phase.CONSTRUCTION,
)


class ArtifactType(str, Enum):
    REQUIREMENTS = "requirements"
    DAA = "daa"
    ADR = "adr"
    RFC = "rfc"
    BOLT_PLAN = "bolt_plan"

    def __str__(self) -> str:
        return self.value


APPROVED = "approved"


@dataclass(frozen=True)
class ArtifactRef:
    """Reference to a gating artifact produced by an upstream phase."""

    path: str
    artifact_type: ArtifactType
    status: str = "draft"

    @property
    def approved(self) -> bool:
        return self.status.lower() == APPROVED


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class UowState:
    id: str
    phase: Phase = Phase.IDLE
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime | None = None

    def __post_init__(self) -> None:
        if self.updated_at is None:
            self.updated_at = self.created_at

    def advance(self, to: Phase) -> UowState:
        """Return a copy of this state moved to ``to`` with a fresh updated_at."""
        return UowState(id=self.id, phase=to, created_at=self.created_at, updated_at=_utcnow())

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "phase": self.phase.value,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> UowState:
        return cls(
            id=data["id"],
            phase=Phase(data["phase"]),
            created_at=datetime.fromisoformat(data["created_at"]),
            updated_at=datetime.fromisoformat(data["updated_at"]),
        )


@dataclass(frozen=True)
class Transition:
    """A historical phase change. Append-only: never mutated or deleted."""

    from_phase: Phase
    to_phase: Phase
    at: datetime = field(default_factory=_utcnow)
    reason: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "from": self.from_phase.value,
            "to": self.to_phase.value,
            "at": self.at.isoformat(),
            "reason": self.reason,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Transition:
        return cls(
            from_phase=Phase(data["from"]),
            to_phase=Phase(data["to"]),
            at=datetime.fromisoformat(data["at"]),
            reason=data.get("reason"),
        )
