from airsspec.infrastructure.persistence.artifact_store import FileArtifactStore
from airsspec.infrastructure.persistence.file_state import FileStatePersistence

__all__ = ["FileArtifactStore", "FileStatePersistence"]
