# src/config/settings.py - v2
"""Typed configuration loaded from .env via pydantic-settings.

Single source of truth for deployment-specific settings. A Settings instance
is built once at process start and passed explicitly to the submitter,
poller, reconciler and lifecycle manager.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(Exception):
    """Raised when configuration is internally inconsistent."""


class Settings(BaseSettings):
    """Application settings loaded from .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # === Remote batch provider ===
    batch_provider: Literal["openai", "anthropic", "mock"] = "openai"
    batch_model: str = "gpt-4o"
    batch_max_tokens: int = 4000
    batch_temperature: float = 0.7
    batch_completion_window: str = "24h"

    # Provider API keys
    openai_api_key: str = ""
    anthropic_api_key: str = ""

    # === Batch lifecycle ===
    batch_root: Path = Path("~/.docbatch/batch-data")
    batch_size: int = 10
    batch_poll_interval_s: float = 60.0
    batch_max_age_hours: float = 0.0
    batch_archive_processed: bool = False

    # === Source discovery ===
    source_extensions: str = ".js,.jsx,.ts,.tsx,.py"
    source_ignore_dirs: str = "node_modules,dist,build,.git,__pycache__,.venv"
    max_files_per_package: int = 0

    # === Documentation writer ===
    writer_skip_file_checks: bool = False
    writer_check_commit: bool = True

    # === Logging ===
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "text"] = "text"
    log_file: Path | None = None
    log_rotation: str = "10MB"
    log_retention: int = 5

    # --- Validators ---

    @field_validator("batch_size")
    @classmethod
    def validate_batch_size(cls, v: int) -> int:  # noqa: N805
        if v < 1:
            raise ValueError("batch_size must be >= 1")
        return v

    @field_validator("batch_max_age_hours", "batch_poll_interval_s")
    @classmethod
    def validate_non_negative(cls, v: float) -> float:  # noqa: N805
        if v < 0:
            raise ValueError("value must be >= 0")
        return v

    @model_validator(mode="after")
    def validate_config_consistency(self) -> Settings:
        """Cross-field consistency rules."""
        errors: list[str] = []

        if self.max_files_per_package < 0:
            errors.append("MAX_FILES_PER_PACKAGE must be >= 0")

        if not self.source_extensions_list:
            errors.append("SOURCE_EXTENSIONS must list at least one extension")

        if self.batch_max_tokens < 1:
            errors.append("BATCH_MAX_TOKENS must be >= 1")

        if errors:
            raise ConfigurationError("; ".join(errors))

        return self

    # --- Helpers ---

    @property
    def batch_root_path(self) -> Path:
        """Registry root with ~ expanded."""
        return Path(self.batch_root).expanduser()

    @property
    def source_extensions_list(self) -> list[str]:
        """Parse comma-separated source extensions (lowercased, dot-prefixed)."""
        exts = []
        for ext in self.source_extensions.split(","):
            ext = ext.strip().lower()
            if not ext:
                continue
            exts.append(ext if ext.startswith(".") else f".{ext}")
        return exts

    @property
    def source_ignore_dirs_list(self) -> list[str]:
        """Parse comma-separated ignored directory names."""
        return [d.strip() for d in self.source_ignore_dirs.split(",") if d.strip()]

    def api_key_for(self, provider: str) -> str:
        """Return the configured API key for a provider ("" if none)."""
        if provider == "openai":
            return self.openai_api_key
        if provider == "anthropic":
            return self.anthropic_api_key
        return ""


def load_settings(**overrides: object) -> Settings:
    """Load settings from .env with optional overrides.

    Args:
        **overrides: Field-level overrides (for testing or CLI flags).

    Returns:
        Validated Settings instance.

    Raises:
        ConfigurationError: If configuration is internally inconsistent.
    """
    return Settings(**overrides)  # type: ignore[arg-type]
