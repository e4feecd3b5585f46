# src/storage/layout.py - v2
"""Registry directory structure.

Layout under the registry root:

    items-<batch_id>.json      BatchJob record
    payload-<batch_id>.jsonl   raw payload sent to the remote batch API
    results-<batch_id>.json    cached remote results
    failed/                    quarantine namespace (same three files)
    processed/                 archive of reconciled jobs
"""

from __future__ import annotations

from pathlib import Path

FAILED_DIR = "failed"
PROCESSED_DIR = "processed"

RECORD_PREFIX = "items-"
RECORD_SUFFIX = ".json"
PAYLOAD_PREFIX = "payload-"
PAYLOAD_SUFFIX = ".jsonl"
RESULTS_PREFIX = "results-"
RESULTS_SUFFIX = ".json"

RUN_LOG_FILENAME = ".docbatchrc.json"


def failed_dir(root: Path) -> Path:
    return root / FAILED_DIR


def processed_dir(root: Path) -> Path:
    return root / PROCESSED_DIR


def record_path(root: Path, batch_id: str) -> Path:
    return root / f"{RECORD_PREFIX}{batch_id}{RECORD_SUFFIX}"


def payload_path(root: Path, batch_id: str) -> Path:
    return root / f"{PAYLOAD_PREFIX}{batch_id}{PAYLOAD_SUFFIX}"


def results_path(root: Path, batch_id: str) -> Path:
    return root / f"{RESULTS_PREFIX}{batch_id}{RESULTS_SUFFIX}"


def job_files(root: Path, batch_id: str) -> list[Path]:
    """All files belonging to one job, record last."""
    return [
        payload_path(root, batch_id),
        results_path(root, batch_id),
        record_path(root, batch_id),
    ]


def batch_id_from_record(path: Path) -> str | None:
    """Extract the batch id from a record filename, None if not a record."""
    name = path.name
    if not (name.startswith(RECORD_PREFIX) and name.endswith(RECORD_SUFFIX)):
        return None
    batch_id = name[len(RECORD_PREFIX) : -len(RECORD_SUFFIX)]
    return batch_id or None


def iter_record_paths(directory: Path) -> list[Path]:
    """Record files in a directory, sorted by name. Temp files are ignored."""
    if not directory.is_dir():
        return []
    return sorted(
        p
        for p in directory.glob(f"{RECORD_PREFIX}*{RECORD_SUFFIX}")
        if p.is_file()
    )


def run_log_path(package_path: Path) -> Path:
    """Per-package run log appended after reconciliation."""
    return package_path / RUN_LOG_FILENAME


def ensure_registry_directories(root: Path) -> None:
    """Create the registry root and its sub-namespaces."""
    for directory in (root, failed_dir(root), processed_dir(root)):
        directory.mkdir(parents=True, exist_ok=True)
