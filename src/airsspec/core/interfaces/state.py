"""
State Persistence Protocol

Durable store for the current UowState of each unit of work plus an
append-only log of its Transitions. On restart the current phase is simply
the last saved state: transitions are only persisted after they have been
validated and applied, so no replay is needed.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from airsspec.core.domain.phases import Transition, UowState


@runtime_checkable
class StatePersistenceProtocol(Protocol):
    async def load(self, uow_id: str) -> UowState:
        """Raises StateNotFoundError if nothing was saved for ``uow_id``."""
        ...

    async def save(self, state: UowState) -> None: ...

    async def record_transition(self, uow_id: str, transition: Transition) -> None: ...

    async def load_transitions(self, uow_id: str) -> list[Transition]: ...
