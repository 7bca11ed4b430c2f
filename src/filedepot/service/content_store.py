"""Filesystem blob store partitioned by calendar date.

Blobs live under ``<upload_root>/<YYYY-MM-DD>/<stored_name>`` and are
addressed externally by URIs of the form ``/uploads/<YYYY-MM-DD>/<stored_name>``.
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
import posixpath
from datetime import datetime
from pathlib import Path, PurePosixPath

import aiofiles
import aiofiles.os

from filedepot.models.errors import NotFoundError, StorageError

logger = logging.getLogger(__name__)

URI_PREFIX = "/uploads"
DEFAULT_MIME_TYPE = "application/octet-stream"

MIME_TYPES: dict[str, str] = {
    ".html": "text/html",
    ".js": "text/javascript",
    ".css": "text/css",
    ".json": "application/json",
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif": "image/gif",
    ".svg": "image/svg+xml",
    ".pdf": "application/pdf",
    ".doc": "application/msword",
    ".docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    ".xls": "application/vnd.ms-excel",
    ".xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    ".ppt": "application/vnd.ms-powerpoint",
    ".pptx": "application/vnd.openxmlformats-officedocument.presentationml.presentation",
    ".txt": "text/plain",
    ".zip": "application/zip",
    ".mp3": "audio/mpeg",
    ".mp4": "video/mp4",
    ".wav": "audio/wav",
    ".avi": "video/x-msvideo",
    ".mov": "video/quicktime",
    ".xml": "application/xml",
    ".csv": "text/csv",
}


def mime_type_of(path: str | Path) -> str:
    """Map a file extension (case-insensitive) to a MIME type.  No sniffing."""
    ext = posixpath.splitext(str(path).replace("\\", "/"))[1].lower()
    return MIME_TYPES.get(ext, DEFAULT_MIME_TYPE)


def content_hash(data: bytes) -> str:
    """Hex SHA-256 digest of *data*."""
    return hashlib.sha256(data).hexdigest()


def _is_unsafe_component(name: str) -> bool:
    return name in ("", ".", "..") or "/" in name or "\\" in name


def date_partition(moment: datetime) -> str:
    """Folder name for blobs written at *moment*."""
    return moment.strftime("%Y-%m-%d")


class ContentStore:
    """Reads and writes blobs below a single upload root."""

    def __init__(self, upload_root: str | Path) -> None:
        self._root = Path(upload_root).resolve()

    @property
    def root(self) -> Path:
        return self._root

    # -- addressing ----------------------------------------------------------

    @staticmethod
    def uri_for(directory_hint: str, stored_name: str) -> str:
        return f"{URI_PREFIX}/{directory_hint}/{stored_name}"

    def resolve_path(self, uri: str) -> Path:
        """Resolve *uri* to an absolute path below the upload root.

        ``/uploads/<date>/<name>`` maps into the date partition; anything else
        is treated as a bare filename under the root.  URIs that would escape
        the root raise :class:`NotFoundError`.
        """
        prefix = URI_PREFIX + "/"
        relative = uri[len(prefix):] if uri.startswith(prefix) else uri
        parts = [p for p in PurePosixPath(relative.replace("\\", "/")).parts if p != "/"]
        if not parts or any(p in (".", "..") for p in parts):
            raise NotFoundError(f"File not found: {uri}")
        path = self._root.joinpath(*parts).resolve()
        if not path.is_relative_to(self._root):
            raise NotFoundError(f"File not found: {uri}")
        return path

    # -- blob I/O ------------------------------------------------------------

    async def write(self, directory_hint: str, stored_name: str, data: bytes) -> Path:
        """Write *data* into the ``directory_hint`` partition; return its path.

        The blob is created exclusively: if ``stored_name`` already exists in
        the partition, :class:`FileExistsError` is raised and the existing
        blob is left untouched. Other I/O failures raise :class:`StorageError`.
        A cancelled write never leaves a blob behind.
        """
        for component in (directory_hint, stored_name):
            if _is_unsafe_component(component):
                raise StorageError(f"Invalid path component: {component!r}")
        directory = self._root / directory_hint
        path = directory / stored_name
        try:
            directory.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StorageError(f"Error writing file {stored_name}: {exc.strerror or exc}") from exc

        pending = asyncio.ensure_future(self._create_blob(path, data))
        try:
            await asyncio.shield(pending)
        except asyncio.CancelledError:
            # the worker thread may still be writing; wait for it, then drop the blob
            await asyncio.shield(self._discard(pending, path))
            raise
        except FileExistsError:
            raise
        except OSError as exc:
            raise StorageError(f"Error writing file {stored_name}: {exc.strerror or exc}") from exc
        logger.debug("Wrote %d bytes to %s", len(data), path)
        return path

    @staticmethod
    async def _create_blob(path: Path, data: bytes) -> None:
        async with aiofiles.open(path, "xb") as f:
            await f.write(data)

    async def _discard(self, pending: asyncio.Future, path: Path) -> None:
        try:
            await pending
        except OSError:
            # nothing of ours was created
            return
        await self.remove(path)
        logger.debug("Discarded cancelled write to %s", path)

    async def read(self, uri: str) -> bytes:
        """Read the blob addressed by *uri*."""
        return await self.read_path(self.resolve_path(uri), label=uri)

    async def read_path(self, path: str | Path, *, label: str | None = None) -> bytes:
        path = Path(path)
        name = label or path.name
        if not path.is_file():
            raise NotFoundError(f"File not found: {name}")
        try:
            async with aiofiles.open(path, "rb") as f:
                return await f.read()
        except FileNotFoundError:
            raise NotFoundError(f"File not found: {name}") from None
        except OSError as exc:
            raise StorageError(f"Error reading file {name}: {exc.strerror or exc}") from exc

    async def remove(self, path: str | Path) -> None:
        """Delete a blob; a blob that is already gone is not an error."""
        try:
            await aiofiles.os.remove(path)
        except FileNotFoundError:
            pass
        except OSError as exc:
            raise StorageError(f"Error removing file {Path(path).name}: {exc.strerror or exc}") from exc

    # -- integrity -----------------------------------------------------------

    @staticmethod
    def hash(data: bytes) -> str:
        return content_hash(data)

    @staticmethod
    def mime_type_of(path: str | Path) -> str:
        return mime_type_of(path)

    async def verify_integrity(
        self,
        path: str | Path,
        expected_digest: str | None = None,
        *,
        data: bytes | None = None,
    ) -> bool:
        """Recompute the blob hash at *path* and compare with *expected_digest*.

        With no expected digest the blob is trusted and ``True`` is returned.
        Callers that already hold the blob's bytes pass them as *data* so the
        blob is not read a second time.
        """
        if not expected_digest:
            return True
        if data is None:
            data = await self.read_path(path)
        return content_hash(data) == expected_digest
