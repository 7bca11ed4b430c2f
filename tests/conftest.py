"""Shared test fixtures for FileDepot."""

from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path

import pytest

from filedepot.service.content_store import ContentStore
from filedepot.service.ingestion import IncomingFile, IngestionPipeline
from filedepot.service.retrieval import RetrievalPipeline
from filedepot.storage.memory import InMemoryArtifactIndex

FIXED_NOW = datetime(2026, 10, 19, 12, 30, 0, tzinfo=UTC)
FIXED_PARTITION = "2026-10-19"


@pytest.fixture
def upload_root(tmp_path: Path) -> Path:
    return tmp_path / "uploads"


@pytest.fixture
def store(upload_root: Path) -> ContentStore:
    return ContentStore(upload_root)


@pytest.fixture
def index() -> InMemoryArtifactIndex:
    return InMemoryArtifactIndex()


@pytest.fixture
def ingestion(store: ContentStore, index: InMemoryArtifactIndex) -> IngestionPipeline:
    """Ingestion pipeline with a frozen clock."""
    return IngestionPipeline(store, index, clock=lambda: FIXED_NOW)


@pytest.fixture
def retrieval(store: ContentStore, index: InMemoryArtifactIndex) -> RetrievalPipeline:
    return RetrievalPipeline(store, index)


@pytest.fixture
def sample_files() -> list[IncomingFile]:
    return [
        IncomingFile("Relatório Final.PDF", "application/pdf", b"%PDF-1.4 fake"),
        IncomingFile("notes.txt", "text/plain", b"hello world\n"),
        IncomingFile("photo.jpeg", "image/jpeg", bytes(range(256))),
    ]


def stored_files(root: Path) -> list[Path]:
    """All regular files below *root*."""
    if not root.exists():
        return []
    return sorted(p for p in root.rglob("*") if p.is_file())
