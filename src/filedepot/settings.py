"""Shared settings loaded from environment / .env file."""

from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from filedepot.service.content_store import MIME_TYPES


class Settings(BaseSettings):
    """Configuration for the FileDepot REST API server.

    Values are read from environment variables and from a ``.env`` file
    in the working directory.  List-valued options take JSON, e.g.
    ``ALLOWED_MIME_TYPES='["image/png", "application/pdf"]'``.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Shared
    log_level: str = "INFO"

    # REST API
    api_server_host: str = "localhost"
    api_server_port: int = 3000
    port: int | None = None  # platform-injected PORT takes precedence over api_server_port

    @property
    def effective_port(self) -> int:
        """Return the port to listen on (injected PORT takes precedence)."""
        return self.port if self.port is not None else self.api_server_port

    # Storage
    upload_root: Path = Path("public/uploads")
    record_content_hash: bool = True

    # Upload limits (enforced at the HTTP boundary)
    max_file_size: int = 10 * 1024 * 1024  # 10 MB per file
    max_files: int = 10  # files per request
    mime_check_enabled: bool = False
    allowed_mime_types: list[str] = Field(
        default_factory=lambda: sorted(set(MIME_TYPES.values()))
    )

    # Rate limiting, per client address
    rate_limit_enabled: bool = True
    rate_limit_window_seconds: int = 15 * 60
    upload_rate_limit: int = 100
    download_rate_limit: int = 300

    # CORS
    cors_enabled: bool = True
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])
