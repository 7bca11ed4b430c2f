"""Abstract index interface for artifact persistence."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence

from filedepot.models.artifact import Artifact


class ArtifactIndex(ABC):
    """Maps retrieval URIs to :class:`Artifact` metadata.

    Implementations must tolerate concurrent readers and writers.
    """

    @abstractmethod
    async def register(self, artifact: Artifact) -> Artifact:
        """Insert *artifact*, replacing any entry under the same URI."""

    @abstractmethod
    async def resolve(self, uri: str) -> Artifact | None: ...

    @abstractmethod
    async def resolve_many(self, uris: Sequence[str]) -> list[Artifact | None]:
        """Look up each URI; misses stay in place as ``None``."""

    @abstractmethod
    async def unregister(self, uri: str) -> Artifact | None:
        """Drop the entry for *uri*, returning it if present."""

    @abstractmethod
    async def count(self) -> int: ...
