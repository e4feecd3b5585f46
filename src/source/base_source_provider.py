# src/source/base_source_provider.py - v1
"""Abstract Source Provider interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path

from docbatch.source.models import SourceFile


class BaseSourceProvider(ABC):
    """Supplies the files of one package that need documentation."""

    @property
    @abstractmethod
    def package_path(self) -> Path:
        """Root of the package being documented."""

    @abstractmethod
    def list_sources(self, max_files: int = 0) -> list[SourceFile]:
        """Return pending files in deterministic order.

        Args:
            max_files: Cap on the number of files (0 = no cap). When capped,
                entry points are kept first.
        """

    @abstractmethod
    def current_commit(self) -> str | None:
        """Commit hash of the package's working tree, None if unknown."""
