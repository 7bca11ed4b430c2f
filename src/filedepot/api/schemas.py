"""API request/response Pydantic schemas."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field, StrictStr

from filedepot.service.ingestion import IngestedFile
from filedepot.service.retrieval import LoadedFile


class FileUploadResponse(BaseModel):
    """One entry of the POST /api/add-files response."""

    name: str = Field(description="Original client filename")
    uri: str = Field(description="Retrieval key for POST /api/load-files")
    type: str = Field(description="MIME type")

    @classmethod
    def from_ingested(cls, item: IngestedFile) -> FileUploadResponse:
        return cls(name=item.name, uri=item.uri, type=item.type)


class LoadFilesRequest(BaseModel):
    """Request body for POST /api/load-files."""

    uris: list[StrictStr] = Field(description="URIs returned by POST /api/add-files")


class BufferPayload(BaseModel):
    """Raw bytes encoded as a JSON array of integers 0-255."""

    type: Literal["Buffer"] = "Buffer"
    data: list[int]


class LoadedFileResponse(BaseModel):
    """One entry of the POST /api/load-files response."""

    buffer: BufferPayload
    type: str

    @classmethod
    def from_loaded(cls, item: LoadedFile) -> LoadedFileResponse:
        return cls(buffer=BufferPayload(data=list(item.data)), type=item.mime_type)


class ErrorBody(BaseModel):
    message: str
    statusCode: int  # noqa: N815


class ErrorResponse(BaseModel):
    """Standard error envelope."""

    error: ErrorBody


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "ok"
    version: str = ""
