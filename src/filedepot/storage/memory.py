"""In-memory artifact index.

Entries live for the lifetime of the process: the index starts empty and
nothing is persisted on shutdown.
"""

from __future__ import annotations

import threading
from collections.abc import Sequence

from filedepot.models.artifact import Artifact
from filedepot.storage.repository import ArtifactIndex


class InMemoryArtifactIndex(ArtifactIndex):
    """Dict-backed index.  Thread-safe via ``threading.Lock``."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._artifacts: dict[str, Artifact] = {}

    async def register(self, artifact: Artifact) -> Artifact:
        with self._lock:
            self._artifacts[artifact.uri] = artifact
        return artifact

    async def resolve(self, uri: str) -> Artifact | None:
        with self._lock:
            return self._artifacts.get(uri)

    async def resolve_many(self, uris: Sequence[str]) -> list[Artifact | None]:
        # Single lock acquisition so the batch sees one consistent snapshot
        with self._lock:
            return [self._artifacts.get(uri) for uri in uris]

    async def unregister(self, uri: str) -> Artifact | None:
        with self._lock:
            return self._artifacts.pop(uri, None)

    async def count(self) -> int:
        with self._lock:
            return len(self._artifacts)
