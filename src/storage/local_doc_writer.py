# src/storage/local_doc_writer.py - v2
"""Local filesystem Documentation Writer (default backend).

Before overwriting a file the writer checks that it is still the file that
was submitted: same content hash when one was recorded, otherwise no git
changes since the submission commit. Writing text that is already on disk
counts as applied, so a rerun after an interrupted pass is harmless.
"""

from __future__ import annotations

import json
import logging
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING

from docbatch.version import __version__
from docbatch.batch.errors import PerItemFailure, WriteConflict
from docbatch.batch.identity import content_hash
from docbatch.batch.models import BatchItem, ReconcileReport
from docbatch.llm.prompts import clean_llm_response, is_python_file
from docbatch.source import git
from docbatch.storage import layout
from docbatch.storage.atomic import atomic_write_json, atomic_write_text
from docbatch.storage.base_doc_writer import ApplyResult, BaseDocWriter

if TYPE_CHECKING:
    from docbatch.config.settings import Settings

logger = logging.getLogger(__name__)

_JSDOC_RE = re.compile(r"/\*\*[\s\S]*?\*/")
_DOCSTRING_RE = re.compile(r"(\"\"\"|''')[\s\S]*?\1")
_TEST_SNIPPET_MAX_LEN = 500


def count_doc_blocks(code: str, file_path: str) -> int:
    """Number of documentation blocks (JSDoc or docstrings) in code."""
    pattern = _DOCSTRING_RE if is_python_file(file_path) else _JSDOC_RE
    return len(pattern.findall(code))


def looks_like_test_snippet(text: str) -> bool:
    """A short describe() block with no imports is a test, not documented source."""
    return (
        "describe(" in text
        and "import" not in text
        and len(text) < _TEST_SNIPPET_MAX_LEN
    )


class LocalDocWriter(BaseDocWriter):
    """Write generated documentation back to files on disk."""

    def __init__(
        self,
        skip_file_checks: bool = False,
        check_commit: bool = True,
        dry_run: bool = False,
    ) -> None:
        self._skip_file_checks = skip_file_checks
        self._check_commit = check_commit
        self._dry_run = dry_run

    @classmethod
    def from_settings(cls, settings: Settings, **overrides: bool) -> LocalDocWriter:
        options = {
            "skip_file_checks": settings.writer_skip_file_checks,
            "check_commit": settings.writer_check_commit,
        }
        options.update(overrides)
        return cls(**options)

    def apply(self, package_root: Path, item: BatchItem, text: str) -> ApplyResult:
        target = Path(package_root) / item.file_path
        documented = clean_llm_response(text)
        if not documented.strip():
            raise PerItemFailure(item.file_path, "empty documentation result")

        if target.exists():
            raw = target.read_bytes()
            current = raw.decode("utf-8", errors="replace")
        elif self._skip_file_checks:
            raw, current = b"", ""
        else:
            raise PerItemFailure(item.file_path, f"file not found: {target}")

        if current == documented:
            logger.debug("%s already carries this documentation", item.file_path)
            return ApplyResult(
                file_path=item.file_path, already_applied=True, written=False
            )

        if looks_like_test_snippet(documented):
            raise PerItemFailure(item.file_path, "result looks like test code, not documentation")

        if current and not self._skip_file_checks:
            self._check_unchanged(package_root, item, raw)

        blocks = max(
            0,
            count_doc_blocks(documented, item.file_path)
            - count_doc_blocks(current, item.file_path),
        )

        if self._dry_run:
            logger.info("[dry-run] would update %s (+%d doc blocks)", item.file_path, blocks)
            return ApplyResult(file_path=item.file_path, blocks_added=blocks, written=False)

        try:
            atomic_write_text(target, documented)
        except OSError as e:
            raise PerItemFailure(item.file_path, f"write failed: {e}") from e
        logger.info("Updated %s (+%d doc blocks)", item.file_path, blocks)
        return ApplyResult(file_path=item.file_path, blocks_added=blocks)

    def record_run(
        self, package_root: Path, batch_id: str, report: ReconcileReport
    ) -> None:
        """Append this reconciliation to the package's run log."""
        if self._dry_run or not Path(package_root).is_dir():
            return
        path = layout.run_log_path(Path(package_root))
        log: dict = {"version": __version__, "runs": []}
        if path.exists():
            try:
                loaded = json.loads(path.read_text(encoding="utf-8"))
                if isinstance(loaded, dict) and isinstance(loaded.get("runs"), list):
                    log = loaded
            except json.JSONDecodeError as e:
                logger.warning("Rewriting unreadable run log %s: %s", path, e)
        log["version"] = __version__
        log["runs"].append(
            {
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "batch_id": batch_id,
                "files_applied": len(report.applied),
                "files_failed": len(report.failed),
                "doc_blocks_added": report.blocks_added,
            }
        )
        try:
            atomic_write_json(path, log)
        except OSError as e:
            # The run log is informational; the files are already written
            logger.warning("Could not update run log %s: %s", path, e)

    def _check_unchanged(self, package_root: Path, item: BatchItem, raw: bytes) -> None:
        if item.content_hash:
            if content_hash(raw) != item.content_hash:
                raise WriteConflict(item.file_path, "content changed since submission")
            return
        if self._check_commit and item.commit_hash:
            changed = git.file_changed_since(Path(package_root), item.commit_hash, item.file_path)
            if changed:
                raise WriteConflict(
                    item.file_path, f"file changed since commit {item.commit_hash[:12]}"
                )
