"""Application configuration loaded from environment variables."""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Documented maximum page size of the remote items endpoint.
MAX_BOARD_PAGE_SIZE = 50


class Settings(BaseSettings):
    """Board Mirror application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Core
    debug: bool = False
    expose_docs: bool = False

    # Database
    database_url: str = "sqlite+aiosqlite:///data/db/board_mirror.db"

    # Server
    host: str = "0.0.0.0"
    port: int = Field(default=8000, ge=1, le=65535)

    # CORS
    cors_origins: list[str] = Field(default_factory=list)
    trusted_hosts: list[str] = Field(default_factory=list)

    # Bearer token required on mutating endpoints (disabled when empty)
    api_token: str = ""

    # Remote board API
    board_api_base: str = "https://api.miro.com/v2"
    board_api_token: str = ""
    board_page_size: int = Field(default=MAX_BOARD_PAGE_SIZE, ge=1, le=MAX_BOARD_PAGE_SIZE)
    board_api_timeout_seconds: float = Field(default=30.0, gt=0)
    board_item_types: list[str] = Field(default_factory=list)

    # Sync engine
    sync_batch_size: int = Field(default=100, ge=1, le=1000)
    fingerprint_batch_size: int = Field(default=500, ge=1)

    # Response hardening
    security_headers_enabled: bool = True

    def validate_runtime_security(self) -> None:
        """Validate security-critical production settings."""
        if self.debug:
            return

        violations: list[str] = []
        if not self.board_api_token:
            violations.append("BOARD_API_TOKEN must be configured")
        if len(self.api_token) < 32:
            violations.append("API_TOKEN must be set to a high-entropy value (>=32 chars)")
        if not self.trusted_hosts:
            violations.append("TRUSTED_HOSTS must be configured in production")

        if violations:
            joined = "; ".join(violations)
            raise ValueError(f"Insecure production configuration: {joined}")
