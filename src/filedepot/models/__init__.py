"""Pydantic domain models for FileDepot."""

from filedepot.models.artifact import Artifact
from filedepot.models.errors import (
    DepotError,
    ErrorKind,
    IntegrityError,
    NotFoundError,
    StorageError,
    ValidationError,
)

__all__ = [
    "Artifact",
    "DepotError",
    "ErrorKind",
    "IntegrityError",
    "NotFoundError",
    "StorageError",
    "ValidationError",
]
