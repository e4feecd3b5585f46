# src/storage/base_doc_writer.py - v1
"""Abstract Documentation Writer interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path

from pydantic import BaseModel

from docbatch.batch.models import BatchItem, ReconcileReport


class ApplyResult(BaseModel):
    """What applying one generated document did to its file."""

    file_path: str
    blocks_added: int = 0
    already_applied: bool = False
    written: bool = True


class BaseDocWriter(ABC):
    """Applies generated documentation text to source files."""

    @abstractmethod
    def apply(self, package_root: Path, item: BatchItem, text: str) -> ApplyResult:
        """Apply text to the item's file.

        Raises:
            WriteConflict: The file changed since submission.
            PerItemFailure: The file is missing or the text is unusable.
        """

    def record_run(
        self, package_root: Path, batch_id: str, report: ReconcileReport
    ) -> None:
        """Hook called once after a job has been reconciled."""
