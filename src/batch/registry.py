# src/batch/registry.py - v1
"""Durable on-disk registry of submitted batch jobs.

One JSON record per job, written atomically. A record is only ever visible
complete, so a crash mid-write leaves either the previous state or nothing.
Records that cannot be parsed are reported as CorruptRecord and skipped.
"""

from __future__ import annotations

import json
import logging
import os
import shutil
from abc import ABC, abstractmethod
from pathlib import Path

from pydantic import ValidationError

from docbatch.batch.errors import CorruptRecord, RegistryError
from docbatch.batch.models import BatchJob
from docbatch.llm.models import RemoteResult
from docbatch.storage import layout
from docbatch.storage.atomic import atomic_write_json, atomic_write_text

logger = logging.getLogger(__name__)


class BaseBatchRegistry(ABC):
    """Storage interface for BatchJob records."""

    @abstractmethod
    def persist(self, job: BatchJob, payload: str | None = None) -> None:
        """Write the job record (and raw payload) atomically."""

    @abstractmethod
    def get(self, batch_id: str) -> BatchJob | None:
        """Return the active record for batch_id, or None."""

    @abstractmethod
    def list_active(self) -> list[BatchJob]:
        """All parseable active records. Corrupt ones are skipped."""

    @abstractmethod
    def quarantine(self, batch_id: str) -> None:
        """Move a job into the quarantine namespace. Idempotent."""

    @abstractmethod
    def remove(self, batch_id: str) -> None:
        """Drop a fully reconciled job from the active namespace."""

    @abstractmethod
    def load_payload(self, batch_id: str) -> str | None:
        """Raw submission payload, if kept."""

    @abstractmethod
    def save_results(self, batch_id: str, results: list[RemoteResult]) -> None:
        """Cache fetched remote results."""

    @abstractmethod
    def load_results(self, batch_id: str) -> list[RemoteResult] | None:
        """Cached remote results, or None."""

    @abstractmethod
    def list_quarantined(self) -> list[BatchJob]:
        """Parseable records in the quarantine namespace."""


class JsonBatchRegistry(BaseBatchRegistry):
    """File-based registry rooted at a directory."""

    def __init__(self, root: Path, archive_processed: bool = False) -> None:
        self._root = Path(root).expanduser()
        self._archive = archive_processed
        self.last_corrupt: list[CorruptRecord] = []
        try:
            layout.ensure_registry_directories(self._root)
        except OSError as e:
            raise RegistryError(f"Cannot create registry root {self._root}: {e}") from e

    @property
    def root(self) -> Path:
        return self._root

    # --- Writes ---

    def persist(self, job: BatchJob, payload: str | None = None) -> None:
        try:
            if payload is not None:
                atomic_write_text(layout.payload_path(self._root, job.batch_id), payload)
            # The record publishes the job, so it goes last.
            atomic_write_text(
                layout.record_path(self._root, job.batch_id),
                job.model_dump_json(indent=2),
            )
        except OSError as e:
            raise RegistryError(f"Cannot persist batch {job.batch_id}: {e}") from e
        logger.debug("Persisted batch %s (%d items)", job.batch_id, len(job.items))

    def quarantine(self, batch_id: str) -> None:
        target = layout.failed_dir(self._root)
        moved = self._move_job(batch_id, target)
        if moved:
            logger.warning("Quarantined batch %s into %s", batch_id, target)
        else:
            logger.debug("Batch %s already quarantined or absent", batch_id)

    def remove(self, batch_id: str) -> None:
        if self._archive:
            self._move_job(batch_id, layout.processed_dir(self._root))
            logger.info("Archived batch %s", batch_id)
            return
        try:
            for path in layout.job_files(self._root, batch_id):
                if path.exists():
                    path.unlink()
        except OSError as e:
            raise RegistryError(f"Cannot remove batch {batch_id}: {e}") from e
        logger.info("Removed batch %s", batch_id)

    def save_results(self, batch_id: str, results: list[RemoteResult]) -> None:
        try:
            atomic_write_json(
                layout.results_path(self._root, batch_id),
                [r.model_dump(mode="json", exclude={"raw"}) for r in results],
            )
        except OSError as e:
            raise RegistryError(f"Cannot cache results for {batch_id}: {e}") from e

    # --- Reads ---

    def get(self, batch_id: str) -> BatchJob | None:
        path = layout.record_path(self._root, batch_id)
        if not path.exists():
            return None
        return self._read_record(path)

    def list_active(self) -> list[BatchJob]:
        return self._list_dir(self._root)

    def list_quarantined(self) -> list[BatchJob]:
        return self._list_dir(layout.failed_dir(self._root))

    def load_payload(self, batch_id: str) -> str | None:
        path = layout.payload_path(self._root, batch_id)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def load_results(self, batch_id: str) -> list[RemoteResult] | None:
        path = layout.results_path(self._root, batch_id)
        if not path.exists():
            return None
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            return [RemoteResult(**entry) for entry in data]
        except (json.JSONDecodeError, ValidationError, TypeError) as e:
            # A bad cache is refetched, not fatal
            logger.warning("Ignoring unreadable results cache %s: %s", path, e)
            return None

    # --- Internals ---

    def _list_dir(self, directory: Path) -> list[BatchJob]:
        jobs: list[BatchJob] = []
        corrupt: list[CorruptRecord] = []
        try:
            paths = layout.iter_record_paths(directory)
        except OSError as e:
            raise RegistryError(f"Cannot list registry {directory}: {e}") from e

        for path in paths:
            try:
                jobs.append(self._read_record(path))
            except CorruptRecord as e:
                logger.warning("%s", e)
                corrupt.append(e)
        self.last_corrupt = corrupt
        return jobs

    def _read_record(self, path: Path) -> BatchJob:
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError as e:
            # Removed between listing and reading
            raise CorruptRecord(str(path), "record vanished while reading") from e
        except OSError as e:
            raise RegistryError(f"Cannot read {path}: {e}") from e

        try:
            job = BatchJob.model_validate_json(raw)
        except ValidationError as e:
            raise CorruptRecord(str(path), _summarize(e)) from e

        expected = layout.batch_id_from_record(path)
        if expected is not None and expected != job.batch_id:
            raise CorruptRecord(
                str(path), f"batch_id {job.batch_id!r} does not match filename"
            )
        return job

    def _move_job(self, batch_id: str, target_dir: Path) -> bool:
        """Move all files of a job into target_dir. Record moves last.

        Returns True if anything was moved.
        """
        moved = False
        try:
            target_dir.mkdir(parents=True, exist_ok=True)
            for src in layout.job_files(self._root, batch_id):
                if not src.exists():
                    continue
                dst = target_dir / src.name
                if dst.exists():
                    dst.unlink()
                try:
                    os.replace(src, dst)
                except OSError:
                    # Cross-device registry roots
                    shutil.move(str(src), str(dst))
                moved = True
        except OSError as e:
            raise RegistryError(f"Cannot move batch {batch_id} to {target_dir}: {e}") from e
        return moved


def _summarize(error: ValidationError) -> str:
    first = error.errors()[0] if error.errors() else {}
    loc = ".".join(str(p) for p in first.get("loc", ())) or "<root>"
    return f"{first.get('msg', str(error))} at {loc}"
