"""Filesystem-backed artifact store."""

from __future__ import annotations

from pathlib import Path

import aiofiles
import structlog

from airsspec.core.domain.errors import ArtifactStoreError


class FileArtifactStore:
    """
    Reads and writes artifact documents as UTF-8 files.

    Relative paths are resolved against ``root``.
    """

    def __init__(self, root: str | Path):
        self.root = Path(root)
        self.logger = structlog.get_logger().bind(component="artifact_store")

    def _path(self, path: str | Path) -> Path:
        path = Path(path)
        return path if path.is_absolute() else self.root / path

    async def read(self, path: str | Path) -> str:
        target = self._path(path)
        try:
            async with aiofiles.open(target, "r", encoding="utf-8") as f:
                return await f.read()
        except (OSError, UnicodeDecodeError) as e:
            self.logger.warning("artifact_read_failed", path=str(target), error=str(e))
            raise ArtifactStoreError(f"Failed to read artifact {target}: {e}") from e

    async def write(self, path: str | Path, content: str) -> None:
        target = self._path(path)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(target, "w", encoding="utf-8") as f:
                await f.write(content)
        except OSError as e:
            raise ArtifactStoreError(f"Failed to write artifact {target}: {e}") from e
        self.logger.info("artifact_written", path=str(target), size=len(content))

    async def exists(self, path: str | Path) -> bool:
        return self._path(path).is_file()
