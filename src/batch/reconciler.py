# src/batch/reconciler.py - v1
"""Result Reconciler: map remote results back to the files they belong to.

Join keys, tried in order; a stage is used only when the previous one is
unavailable or ambiguous (matches zero or several items):

    1. request_id, parsed from a ``request-<request_id>-<index>`` custom_id
    2. file_path_id, recomputed from the payload line the result points at
    3. file_path_index, from the custom_id trailing integer or line_number

Every item of the job ends with exactly one outcome: applied or failed.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from pathlib import Path

from docbatch.batch.errors import PerItemFailure
from docbatch.batch.identity import file_path_id, parse_custom_id
from docbatch.batch.models import BatchItem, BatchJob, ItemOutcome, ReconcileReport
from docbatch.batch.payload import payload_file_paths
from docbatch.config.settings import Settings
from docbatch.llm.models import RemoteResult
from docbatch.logging.context import set_step
from docbatch.storage.base_doc_writer import BaseDocWriter

logger = logging.getLogger(__name__)

MISSING_RESULT = "missing_result"
REMOTE_ERROR = "remote_error"
SKIPPED = "skipped"


def resolve_package_root(package_path: str, repo_path: str | Path | None = None) -> Path:
    """Where the job's files live now.

    An absolute override replaces the recorded package path; a relative one
    is joined with the package's directory name.
    """
    recorded = Path(package_path).expanduser()
    if repo_path is None:
        return recorded
    override = Path(repo_path).expanduser()
    if override.is_absolute():
        return override
    return override / recorded.name


class _JoinIndex:
    """Lookup tables over a job's items."""

    def __init__(self, items: list[BatchItem], payload: str | None) -> None:
        self.by_request_id: dict[int, list[BatchItem]] = defaultdict(list)
        self.by_path_id: dict[str, list[BatchItem]] = defaultdict(list)
        self.by_index: dict[int, list[BatchItem]] = defaultdict(list)
        for item in items:
            self.by_request_id[item.request_id].append(item)
            if item.file_path_id:
                self.by_path_id[item.file_path_id].append(item)
            if item.file_path_index is not None:
                self.by_index[item.file_path_index].append(item)
        self.line_paths = payload_file_paths(payload)

    def match(self, result: RemoteResult) -> tuple[BatchItem | None, str | None]:
        request_id, trailing = parse_custom_id(result.custom_id)

        if request_id is not None:
            found = self.by_request_id.get(request_id, [])
            if len(found) == 1:
                return found[0], "request_id"

        by_path = self._match_line(result.line_number)
        position = trailing if trailing is not None else result.line_number
        by_position = None
        if position is not None:
            found = self.by_index.get(position, [])
            by_position = found[0] if len(found) == 1 else None

        if by_path is not None:
            if by_position is not None and by_position.request_id != by_path.request_id:
                logger.warning(
                    "Join keys disagree for result %s: file_path_id -> %s, "
                    "file_path_index -> %s; keeping file_path_id",
                    result.custom_id or f"line {result.line_number}",
                    by_path.file_path, by_position.file_path,
                )
            return by_path, "file_path_id"

        if by_position is not None:
            return by_position, "file_path_index"
        return None, None

    def _match_line(self, line_number: int | None) -> BatchItem | None:
        if line_number is None or not 0 <= line_number < len(self.line_paths):
            return None
        path = self.line_paths[line_number]
        if path is None:
            return None
        found = self.by_path_id.get(file_path_id(path), [])
        return found[0] if len(found) == 1 else None


class ResultReconciler:
    """Join remote results to items and apply them through the writer."""

    def __init__(
        self,
        writer: BaseDocWriter,
        settings: Settings,
        repo_path: str | Path | None = None,
        max_files: int = 0,
    ) -> None:
        self._writer = writer
        self._settings = settings
        self._repo_path = repo_path
        self._max_files = max_files

    def reconcile(
        self,
        job: BatchJob,
        results: list[RemoteResult],
        payload: str | None = None,
    ) -> ReconcileReport:
        """Disposition every item of a completed job.

        Args:
            job: The completed job.
            results: Remote results, in any order.
            payload: Raw submitted payload, used for line-number joins.
        """
        report = ReconcileReport(batch_id=job.batch_id)
        if not job.items:
            return report

        index = _JoinIndex(job.items, payload)
        matched: dict[int, list[tuple[RemoteResult, str]]] = defaultdict(list)
        for result in results:
            item, key = index.match(result)
            if item is None:
                report.unmatched_results += 1
                logger.warning(
                    "Result %s matches no item of batch %s",
                    result.custom_id or f"line {result.line_number}", job.batch_id,
                )
                continue
            matched[item.request_id].append((result, key))

        root = resolve_package_root(job.package_path, self._repo_path)
        selected = self._select(job.items)
        for item in job.items:
            set_step("reconcile", item.file_path)
            if item.request_id not in selected:
                report.outcomes.append(
                    _failed(item, SKIPPED, "not selected in test mode")
                )
                continue
            report.outcomes.append(self._disposition(root, item, matched.get(item.request_id, [])))
        set_step(None)

        logger.info(
            "Reconciled batch %s: %d applied, %d failed, %d unmatched results",
            job.batch_id, len(report.applied), len(report.failed), report.unmatched_results,
        )
        return report

    def _disposition(
        self, root: Path, item: BatchItem, candidates: list[tuple[RemoteResult, str]]
    ) -> ItemOutcome:
        if not candidates:
            return _failed(item, MISSING_RESULT, "no result returned for this item")

        successes = [(r, key) for r, key in candidates if r.ok]
        if not successes:
            result, key = candidates[0]
            return _failed(item, REMOTE_ERROR, result.error or "empty result", key)
        if len(successes) > 1:
            logger.debug("%d results for %s, using the first", len(successes), item.file_path)

        result, key = successes[0]
        try:
            applied = self._writer.apply(root, item, result.text or "")
        except PerItemFailure as e:
            logger.warning("Not applied %s: %s", item.file_path, e.reason)
            return _failed(item, e.kind, e.reason, key)
        except OSError as e:
            logger.warning("Not applied %s: %s", item.file_path, e)
            return _failed(item, PerItemFailure.kind, str(e), key)

        return ItemOutcome(
            request_id=item.request_id,
            file_path=item.file_path,
            status="applied",
            matched_by=key,
            blocks_added=applied.blocks_added,
        )

    def _select(self, items: list[BatchItem]) -> set[int]:
        """Request ids to apply: all, or the first max_files with entry points first."""
        if not self._max_files or len(items) <= self._max_files:
            return {i.request_id for i in items}
        ordered = [i for i in items if i.is_entry_point] + [
            i for i in items if not i.is_entry_point
        ]
        chosen = ordered[: self._max_files]
        logger.info(
            "Test mode: applying %d of %d files (%d entry points)",
            len(chosen), len(items), sum(1 for i in chosen if i.is_entry_point),
        )
        return {i.request_id for i in chosen}


def _failed(
    item: BatchItem, kind: str, detail: str, matched_by: str | None = None
) -> ItemOutcome:
    return ItemOutcome(
        request_id=item.request_id,
        file_path=item.file_path,
        status="failed",
        error_kind=kind,
        detail=detail,
        matched_by=matched_by,
    )
