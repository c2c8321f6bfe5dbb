"""
File-based UOW state persistence.

Layout under ``work_dir``:

    uow/<uow_id>/state.json         current UowState, replaced atomically
    uow/<uow_id>/transitions.jsonl  one Transition per line, append-only
"""

from __future__ import annotations

import asyncio
import json
import os
import re
import tempfile
from pathlib import Path

import aiofiles
import structlog

from airsspec.core.domain.errors import StateNotFoundError, StatePersistenceError
from airsspec.core.domain.phases import Transition, UowState

STATE_FILE = "state.json"
TRANSITIONS_FILE = "transitions.jsonl"

_UOW_ID_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")


class FileStatePersistence:
    def __init__(self, work_dir: str | Path):
        self.work_dir = Path(work_dir)
        self.locks: dict[str, asyncio.Lock] = {}
        self.logger = structlog.get_logger().bind(component="file_state_persistence")

    def _get_lock(self, uow_id: str) -> asyncio.Lock:
        if uow_id not in self.locks:
            self.locks[uow_id] = asyncio.Lock()
        return self.locks[uow_id]

    def uow_dir(self, uow_id: str) -> Path:
        if not _UOW_ID_RE.match(uow_id):
            raise StatePersistenceError(f"Invalid unit of work id: {uow_id!r}")
        return self.work_dir / "uow" / uow_id

    async def load(self, uow_id: str) -> UowState:
        path = self.uow_dir(uow_id) / STATE_FILE
        if not path.exists():
            raise StateNotFoundError(uow_id)

        try:
            async with aiofiles.open(path, "r", encoding="utf-8") as f:
                data = json.loads(await f.read())
            state = UowState.from_dict(data)
        except (OSError, ValueError, KeyError) as e:
            self.logger.error("state_load_failed", uow_id=uow_id, path=str(path), error=str(e))
            raise StatePersistenceError(f"Corrupt state file {path}: {e}") from e

        self.logger.debug("state_loaded", uow_id=uow_id, phase=state.phase.value)
        return state

    async def save(self, state: UowState) -> None:
        directory = self.uow_dir(state.id)
        async with self._get_lock(state.id):
            try:
                directory.mkdir(parents=True, exist_ok=True)
                await self._write_atomic(
                    directory / STATE_FILE, json.dumps(state.to_dict(), indent=2)
                )
            except OSError as e:
                self.logger.error("state_save_failed", uow_id=state.id, error=str(e))
                raise StatePersistenceError(f"Failed to save state for {state.id}: {e}") from e

        self.logger.info("state_saved", uow_id=state.id, phase=state.phase.value)

    async def record_transition(self, uow_id: str, transition: Transition) -> None:
        directory = self.uow_dir(uow_id)
        async with self._get_lock(uow_id):
            try:
                directory.mkdir(parents=True, exist_ok=True)
                async with aiofiles.open(directory / TRANSITIONS_FILE, "a", encoding="utf-8") as f:
                    await f.write(json.dumps(transition.to_dict()) + "\n")
            except OSError as e:
                self.logger.error("transition_record_failed", uow_id=uow_id, error=str(e))
                raise StatePersistenceError(
                    f"Failed to record transition for {uow_id}: {e}"
                ) from e

        self.logger.info(
            "transition_recorded",
            uow_id=uow_id,
            from_phase=transition.from_phase.value,
            to_phase=transition.to_phase.value,
        )

    async def load_transitions(self, uow_id: str) -> list[Transition]:
        path = self.uow_dir(uow_id) / TRANSITIONS_FILE
        if not path.exists():
            return []

        transitions = []
        async with aiofiles.open(path, "r", encoding="utf-8") as f:
            async for line in f:
                line = line.strip()
                if not line:
                    continue
                try:
                    transitions.append(Transition.from_dict(json.loads(line)))
                except (ValueError, KeyError) as e:
                    raise StatePersistenceError(f"Corrupt transition log {path}: {e}") from e
        return transitions

    async def _write_atomic(self, path: Path, content: str) -> None:
        # Temp file in the same directory keeps the rename on one filesystem
        fd, temp_path = tempfile.mkstemp(dir=path.parent, suffix=".tmp", prefix=".state_")
        os.close(fd)
        try:
            async with aiofiles.open(temp_path, "w", encoding="utf-8") as f:
                await f.write(content)
            Path(temp_path).replace(path)
        except Exception:
            Path(temp_path).unlink(missing_ok=True)
            raise
