"""Upload and download endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, File, UploadFile
from fastapi.responses import FileResponse

from filedepot.api.deps import (
    get_content_store,
    get_ingestion_pipeline,
    get_retrieval_pipeline,
    get_settings,
)
from filedepot.api.schemas import (
    ErrorResponse,
    FileUploadResponse,
    LoadedFileResponse,
    LoadFilesRequest,
)
from filedepot.models.errors import NotFoundError, ValidationError
from filedepot.service.content_store import ContentStore, mime_type_of
from filedepot.service.ingestion import IncomingFile, IngestionPipeline
from filedepot.service.retrieval import RetrievalPipeline
from filedepot.settings import Settings

router = APIRouter()
uploads_router = APIRouter()

_ERRORS = {
    400: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    413: {"model": ErrorResponse},
    429: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}


# -- helpers -----------------------------------------------------------------


async def _read_parts(files: list[UploadFile], settings: Settings) -> list[IncomingFile]:
    """Buffer multipart parts, enforcing the per-request limits."""
    if len(files) > settings.max_files:
        raise ValidationError("Maximum number of files exceeded")
    parts: list[IncomingFile] = []
    for upload in files:
        if upload.size is not None and upload.size > settings.max_file_size:
            raise ValidationError("File exceeds the maximum allowed size")
        data = await upload.read()
        if len(data) > settings.max_file_size:
            raise ValidationError("File exceeds the maximum allowed size")
        parts.append(
            IncomingFile(
                original_name=upload.filename or "",
                mime_hint=upload.content_type or "",
                data=data,
            )
        )
    return parts


# -- endpoints ---------------------------------------------------------------


@router.post("/add-files", response_model=list[FileUploadResponse], responses=_ERRORS)
async def add_files(
    files: list[UploadFile] | None = File(default=None),  # noqa: B008
    settings: Settings = Depends(get_settings),  # noqa: B008
    pipeline: IngestionPipeline = Depends(get_ingestion_pipeline),  # noqa: B008
) -> list[FileUploadResponse]:
    """Upload one or more files (multipart field ``files``)."""
    if not files:
        raise ValidationError("No files provided")
    parts = await _read_parts(files, settings)
    ingested = await pipeline.ingest(parts)
    return [FileUploadResponse.from_ingested(item) for item in ingested]


@router.post("/load-files", response_model=list[LoadedFileResponse], responses=_ERRORS)
async def load_files(
    body: LoadFilesRequest,
    pipeline: RetrievalPipeline = Depends(get_retrieval_pipeline),  # noqa: B008
) -> list[LoadedFileResponse]:
    """Fetch the bytes of previously uploaded files, all or nothing."""
    loaded = await pipeline.load(body.uris)
    return [LoadedFileResponse.from_loaded(item) for item in loaded]


@uploads_router.get("/{date}/{stored_name}", responses={404: {"model": ErrorResponse}})
async def download_file(
    date: str,
    stored_name: str,
    store: ContentStore = Depends(get_content_store),  # noqa: B008
) -> FileResponse:
    """Serve a stored blob directly."""
    uri = store.uri_for(date, stored_name)
    path = store.resolve_path(uri)
    if not path.is_file():
        raise NotFoundError(f"File not found: {uri}")
    return FileResponse(path, media_type=mime_type_of(path))
