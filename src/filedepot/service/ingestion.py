"""Ingestion pipeline: turn a batch of uploaded files into indexed artifacts."""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Callable, Collection, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime

from filedepot.models.artifact import Artifact
from filedepot.models.errors import StorageError, ValidationError
from filedepot.service.content_store import ContentStore, content_hash, date_partition, mime_type_of
from filedepot.service.naming import generate_stored_name
from filedepot.storage.repository import ArtifactIndex

logger = logging.getLogger(__name__)

_MAX_NAME_ATTEMPTS = 5


@dataclass(frozen=True)
class IncomingFile:
    """One file part as received from the transport layer."""

    original_name: str
    mime_hint: str
    data: bytes


@dataclass(frozen=True)
class IngestedFile:
    """Response entry for one ingested file."""

    name: str
    uri: str
    type: str


def _utcnow() -> datetime:
    return datetime.now(UTC)


class IngestionPipeline:
    """Names, stores, hashes and registers each file of a batch.

    A batch is all-or-nothing: blobs are written first, in input order, and
    only registered once every write succeeded.  On any failure the blobs
    already written by the batch are removed before the error propagates.
    """

    def __init__(
        self,
        store: ContentStore,
        index: ArtifactIndex,
        *,
        record_hash: bool = True,
        allowed_mime_types: Collection[str] | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._store = store
        self._index = index
        self._record_hash = record_hash
        self._allowed = frozenset(allowed_mime_types) if allowed_mime_types is not None else None
        self._clock = clock

    async def ingest(self, files: Sequence[IncomingFile]) -> list[IngestedFile]:
        """Store *files* and return one response entry per file, in order."""
        if not files:
            raise ValidationError("No files provided")
        self._check_types(files)

        now = self._clock()
        partition = date_partition(now)
        now_ms = int(now.timestamp() * 1000)

        written: list[Artifact] = []
        registered: list[Artifact] = []
        try:
            for item in files:
                written.append(await self._store_one(item, partition, now, now_ms, written))
            for artifact in written:
                registered.append(await self._index.register(artifact))
        except BaseException:
            # shielded so a cancelled request still cleans up after itself
            await asyncio.shield(self._rollback(written, registered))
            raise

        for artifact in registered:
            logger.info("Stored %s (%d bytes)", artifact.uri, artifact.size)
        return [
            IngestedFile(
                name=item.original_name,
                uri=artifact.uri,
                type=item.mime_hint or artifact.mime_type,
            )
            for item, artifact in zip(files, registered, strict=True)
        ]

    # -- internal ------------------------------------------------------------

    def _check_types(self, files: Sequence[IncomingFile]) -> None:
        if self._allowed is None:
            return
        for item in files:
            mime = item.mime_hint or mime_type_of(item.original_name)
            if mime not in self._allowed:
                raise ValidationError(f"File type not allowed: {item.original_name} ({mime})")

    async def _store_one(
        self,
        item: IncomingFile,
        partition: str,
        now: datetime,
        now_ms: int,
        pending: Sequence[Artifact],
    ) -> Artifact:
        taken = {a.uri for a in pending}
        for _ in range(_MAX_NAME_ATTEMPTS):
            stored_name = generate_stored_name(item.original_name, now_ms=now_ms)
            uri = self._store.uri_for(partition, stored_name)
            if uri in taken or await self._index.resolve(uri) is not None:
                logger.warning("Stored name collision on %s, regenerating", uri)
                continue
            try:
                path = await self._store.write(partition, stored_name, item.data)
            except FileExistsError:
                logger.warning("Blob already on disk at %s, regenerating", uri)
                continue
            break
        else:
            raise StorageError(f"Could not allocate a unique name for {item.original_name}")

        return Artifact(
            id=str(uuid.uuid4()),
            original_name=item.original_name,
            stored_name=stored_name,
            path=str(path),
            uri=uri,
            mime_type=mime_type_of(item.original_name),
            size=len(item.data),
            content_hash=content_hash(item.data) if self._record_hash else None,
            created_at=now,
        )

    async def _rollback(self, written: Sequence[Artifact], registered: Sequence[Artifact]) -> None:
        if not written:
            return
        logger.warning("Ingestion failed, rolling back %d stored file(s)", len(written))
        for artifact in registered:
            await self._index.unregister(artifact.uri)
        for artifact in written:
            try:
                await self._store.remove(artifact.path)
            except StorageError as exc:
                logger.warning("Could not remove orphaned file %s: %s", artifact.path, exc)
