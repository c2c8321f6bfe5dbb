"""
Unit-of-Work State Machine

Advances a UOW one phase at a time. A transition is validated first
(ordering, then artifacts) and only then persisted: the new state is saved
and the transition appended to the log. A refused transition leaves the
stored state untouched.
"""

from __future__ import annotations

import asyncio
from typing import Iterable

import structlog

from airsspec.core.domain.errors import (
    GateNotMetError,
    InvalidTransitionError,
    StateNotFoundError,
    StatePersistenceError,
)
from airsspec.core.domain.phases import ArtifactRef, Phase, Transition, UowState
from airsspec.core.gate import DefaultComplianceGate
from airsspec.core.interfaces.artifacts import ArtifactSourceProtocol
from airsspec.core.interfaces.state import StatePersistenceProtocol


class UowStateMachine:
    def __init__(
        self,
        persistence: StatePersistenceProtocol,
        gate: DefaultComplianceGate,
        catalog: ArtifactSourceProtocol | None = None,
    ):
        self.persistence = persistence
        self.gate = gate
        self.catalog = catalog
        self._locks: dict[str, asyncio.Lock] = {}
        self.logger = structlog.get_logger().bind(component="uow_state_machine")

    def _get_lock(self, uow_id: str) -> asyncio.Lock:
        if uow_id not in self._locks:
            self._locks[uow_id] = asyncio.Lock()
        return self._locks[uow_id]

    async def create(self, uow_id: str) -> UowState:
        """Persist a new UOW in the IDLE phase. Raises StatePersistenceError if it exists."""
        async with self._get_lock(uow_id):
            try:
                await self.persistence.load(uow_id)
            except StateNotFoundError:
                state = UowState(id=uow_id)
                await self.persistence.save(state)
                self.logger.info("uow_created", uow_id=uow_id)
                return state
            raise StatePersistenceError(f"Unit of work already exists: {uow_id}")

    async def load(self, uow_id: str) -> UowState:
        return await self.persistence.load(uow_id)

    async def history(self, uow_id: str) -> list[Transition]:
        return await self.persistence.load_transitions(uow_id)

    async def transition(
        self,
        uow_id: str,
        to: Phase,
        artifacts: Iterable[ArtifactRef] | None = None,
        reason: str | None = None,
    ) -> UowState:
        """
        Move ``uow_id`` to phase ``to``.

        Artifacts default to whatever the catalog finds for the UOW.

        Raises:
            InvalidTransitionError: ``to`` is not the immediate successor
            GateNotMetError: A required artifact is missing or unapproved
            StateNotFoundError: The UOW was never created
        """
        async with self._get_lock(uow_id):
            current = await self.persistence.load(uow_id)

            if current.phase.successor() != to:
                self.logger.warning(
                    "transition_rejected",
                    uow_id=uow_id,
                    from_phase=current.phase.value,
                    to_phase=to.value,
                    cause="ordering",
                )
                raise InvalidTransitionError(current.phase, to)

            if artifacts is None:
                artifacts = await self.catalog.collect(uow_id) if self.catalog else []
            artifacts = list(artifacts)

            refusal = self.gate.check(current.phase, to, artifacts)
            if refusal is not None:
                self.logger.warning(
                    "transition_rejected",
                    uow_id=uow_id,
                    from_phase=current.phase.value,
                    to_phase=to.value,
                    cause=refusal,
                )
                raise GateNotMetError(refusal)

            new_state = current.advance(to)
            await self.gate.validate_gate(new_state, artifacts)

            await self.persistence.save(new_state)
            try:
                await self.persistence.record_transition(
                    uow_id,
                    Transition(
                        from_phase=current.phase,
                        to_phase=to,
                        at=new_state.updated_at,
                        reason=reason,
                    ),
                )
            except Exception as e:
                self.logger.error(
                    "transition_log_failed",
                    uow_id=uow_id,
                    from_phase=current.phase.value,
                    to_phase=to.value,
                    error=str(e),
                )
                await self.persistence.save(current)
                raise
            self.logger.info(
                "transition_applied",
                uow_id=uow_id,
                from_phase=current.phase.value,
                to_phase=to.value,
            )
            return new_state
