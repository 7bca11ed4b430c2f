"""Dependency injection for FastAPI: the process-wide depot singleton."""

from __future__ import annotations

from dataclasses import dataclass

from fastapi import Request

from filedepot.service.content_store import ContentStore
from filedepot.service.ingestion import IngestionPipeline
from filedepot.service.retrieval import RetrievalPipeline
from filedepot.settings import Settings
from filedepot.storage.memory import InMemoryArtifactIndex
from filedepot.storage.repository import ArtifactIndex


@dataclass
class Depot:
    """Wired-up store, index and pipelines for one process."""

    store: ContentStore
    index: ArtifactIndex
    ingestion: IngestionPipeline
    retrieval: RetrievalPipeline


def build_depot(settings: Settings, index: ArtifactIndex | None = None) -> Depot:
    """Assemble a :class:`Depot` from settings (fresh in-memory index by default)."""
    store = ContentStore(settings.upload_root)
    index = index if index is not None else InMemoryArtifactIndex()
    ingestion = IngestionPipeline(
        store,
        index,
        record_hash=settings.record_content_hash,
        allowed_mime_types=settings.allowed_mime_types if settings.mime_check_enabled else None,
    )
    return Depot(
        store=store,
        index=index,
        ingestion=ingestion,
        retrieval=RetrievalPipeline(store, index),
    )


_depot: Depot | None = None


def init_depot(depot: Depot) -> None:
    """Set the global Depot (called at app startup)."""
    global _depot  # noqa: PLW0603
    _depot = depot


def get_depot() -> Depot:
    if _depot is None:
        raise RuntimeError("Depot not initialised — call init_depot() first")
    return _depot


def get_ingestion_pipeline() -> IngestionPipeline:
    """FastAPI ``Depends`` provider for the ingestion pipeline."""
    return get_depot().ingestion


def get_retrieval_pipeline() -> RetrievalPipeline:
    """FastAPI ``Depends`` provider for the retrieval pipeline."""
    return get_depot().retrieval


def get_content_store() -> ContentStore:
    return get_depot().store


def reset_depot() -> None:
    """Clear the global Depot (for tests)."""
    global _depot  # noqa: PLW0603
    _depot = None


def get_settings(request: Request) -> Settings:
    """FastAPI ``Depends`` provider for the application's settings."""
    return request.app.state.settings
