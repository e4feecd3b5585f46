# tests/conftest.py - v2
"""Shared test fixtures for unit and integration tests.

Provides settings bound to a temp registry, sample packages, sample jobs and
an in-process batch backend. No network access; all remote calls are faked.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path

import pytest

from docbatch.batch.identity import content_hash, file_path_id
from docbatch.batch.models import BatchItem, BatchJob
from docbatch.batch.registry import JsonBatchRegistry
from docbatch.config.settings import Settings
from docbatch.llm.adapters.mock_batch import MockBatchClient
from docbatch.storage.local_doc_writer import LocalDocWriter


SAMPLE_SOURCES = {
    "a.ts": "export function alpha(x: number): number {\n  return x + 1;\n}\n",
    "b.ts": "export const beta = (s: string) => s.trim();\n",
    "c.ts": "export class Gamma {\n  run(): void {}\n}\n",
}


# === FIXTURES: Configuration ===


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings with a temp registry root and no .env lookup."""
    return Settings(
        _env_file=None,
        batch_provider="mock",
        batch_root=tmp_path / "registry",
        writer_check_commit=False,
    )


@pytest.fixture
def registry(settings: Settings) -> JsonBatchRegistry:
    return JsonBatchRegistry(settings.batch_root_path)


# === FIXTURES: Sample data ===


@pytest.fixture
def package_dir(tmp_path: Path) -> Path:
    """Package with three TypeScript files: a.ts, b.ts, c.ts."""
    pkg = tmp_path / "pkg"
    pkg.mkdir()
    for name, code in SAMPLE_SOURCES.items():
        (pkg / name).write_text(code, encoding="utf-8")
    return pkg


def _make_item(index: int, path: str, content: str | None = None) -> BatchItem:
    """Item as the submitter builds it: request_id = index + 1."""
    return BatchItem(
        request_id=index + 1,
        file_path=path,
        file_path_id=file_path_id(path),
        file_path_index=index,
        content_hash=content_hash(content) if content is not None else None,
    )


@pytest.fixture
def sample_job(package_dir: Path) -> BatchJob:
    """Job covering the three sample files, created at a fixed time."""
    items = [
        _make_item(i, name, SAMPLE_SOURCES[name])
        for i, name in enumerate(sorted(SAMPLE_SOURCES))
    ]
    return BatchJob(
        batch_id="batch_abc123",
        package_path=str(package_dir),
        created_at=datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc),
        items=items,
        provider="mock",
        model="mock-model",
    )


# === FIXTURES: Collaborators ===


@pytest.fixture
def mock_client() -> MockBatchClient:
    return MockBatchClient()


@pytest.fixture
def writer() -> LocalDocWriter:
    return LocalDocWriter(check_commit=False)


@pytest.fixture
def make_item():
    """Factory for BatchItems laid out the way the submitter assigns them."""
    return _make_item


@pytest.fixture(autouse=True)
def reset_docbatch_logger():
    """Undo handlers and level set by setup_logging() inside a test."""
    logger = logging.getLogger("docbatch")
    level = logger.level
    yield
    for handler in logger.handlers:
        handler.close()
    logger.handlers.clear()
    logger.setLevel(level)


@pytest.fixture
def sample_sources() -> dict[str, str]:
    """Original contents of the files in ``package_dir``."""
    return dict(SAMPLE_SOURCES)
