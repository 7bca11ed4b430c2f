"""Artifact record: metadata for one stored upload."""

from __future__ import annotations

from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field


class Artifact(BaseModel):
    """A stored upload. Immutable once registered in the index."""

    model_config = ConfigDict(frozen=True)

    id: str
    original_name: str
    stored_name: str
    path: str = Field(description="Absolute filesystem path of the blob")
    uri: str = Field(description="Retrieval key, e.g. /uploads/2026-10-19/<stored_name>")
    mime_type: str
    size: int = Field(ge=0)
    content_hash: str | None = Field(default=None, description="Hex SHA-256 of the blob")
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
