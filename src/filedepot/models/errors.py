"""Error taxonomy shared by the pipelines and the API layer.

Every failure raised by the core is a :class:`DepotError` carrying an
:class:`ErrorKind` tag.  The HTTP status is derived from the tag, so callers
dispatch on ``exc.kind`` rather than on the exception class.
"""

from __future__ import annotations

from enum import StrEnum


class ErrorKind(StrEnum):
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    INTEGRITY = "integrity"
    STORAGE = "storage"
    RATE_LIMITED = "rate_limited"
    PAYLOAD_TOO_LARGE = "payload_too_large"


STATUS_CODES: dict[ErrorKind, int] = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.INTEGRITY: 400,
    ErrorKind.STORAGE: 500,
    ErrorKind.RATE_LIMITED: 429,
    ErrorKind.PAYLOAD_TOO_LARGE: 413,
}


class DepotError(Exception):
    """A tagged failure with a user-facing message."""

    def __init__(self, kind: ErrorKind, message: str) -> None:
        self.kind = kind
        self.message = message
        super().__init__(message)

    @property
    def status_code(self) -> int:
        return STATUS_CODES[self.kind]

    def to_dict(self) -> dict[str, object]:
        return {"message": self.message, "statusCode": self.status_code}


class ValidationError(DepotError):
    """Malformed or empty batch."""

    def __init__(self, message: str) -> None:
        super().__init__(ErrorKind.VALIDATION, message)


class NotFoundError(DepotError):
    """URI not in the index, or blob missing on disk."""

    def __init__(self, message: str) -> None:
        super().__init__(ErrorKind.NOT_FOUND, message)


class IntegrityError(DepotError):
    """Recomputed content hash differs from the recorded one."""

    def __init__(self, message: str) -> None:
        super().__init__(ErrorKind.INTEGRITY, message)


class StorageError(DepotError):
    """Underlying filesystem failure."""

    def __init__(self, message: str) -> None:
        super().__init__(ErrorKind.STORAGE, message)
