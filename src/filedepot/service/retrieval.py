"""Retrieval pipeline: resolve a batch of URIs back to verified bytes."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass

from filedepot.models.artifact import Artifact
from filedepot.models.errors import IntegrityError, NotFoundError, ValidationError
from filedepot.service.content_store import ContentStore
from filedepot.storage.repository import ArtifactIndex

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LoadedFile:
    """Raw bytes of one artifact plus the MIME type recorded at ingestion."""

    data: bytes
    mime_type: str


class RetrievalPipeline:
    """Strict all-or-nothing batch loader."""

    def __init__(self, store: ContentStore, index: ArtifactIndex) -> None:
        self._store = store
        self._index = index

    async def load(self, uris: Sequence[str]) -> list[LoadedFile]:
        """Return one :class:`LoadedFile` per URI, in input order.

        Raises :class:`ValidationError` for an empty batch or a non-string
        URI, :class:`NotFoundError` when any URI is unknown (or its blob is
        missing on disk), and :class:`IntegrityError` when a blob no longer
        matches its recorded hash.
        """
        if isinstance(uris, (str, bytes)) or not uris:
            raise ValidationError("No URIs provided")
        if not all(isinstance(uri, str) for uri in uris):
            raise ValidationError("All URIs must be strings")

        artifacts = await self._index.resolve_many(uris)
        missing = [uri for uri, artifact in zip(uris, artifacts, strict=True) if artifact is None]
        if missing:
            logger.info("Load request for %d unknown URI(s): %s", len(missing), missing)
            raise NotFoundError("One or more files not found")

        return list(await asyncio.gather(*(self._load_one(a) for a in artifacts if a is not None)))

    async def _load_one(self, artifact: Artifact) -> LoadedFile:
        try:
            data = await self._store.read(artifact.uri)
        except NotFoundError:
            logger.warning("Index entry %s has no file on disk", artifact.uri)
            raise
        if not await self._store.verify_integrity(artifact.path, artifact.content_hash, data=data):
            logger.warning("Integrity check failed for %s", artifact.uri)
            raise IntegrityError(f"Integrity check failed for {artifact.uri}")
        return LoadedFile(data=data, mime_type=artifact.mime_type)
