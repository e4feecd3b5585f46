# src/batch/manager.py - v2
"""Batch lifecycle manager: one reconciliation pass over the registry.

A pass lists active jobs, polls each one, reconciles completed jobs and
classifies failed ones. Each job is handled all-or-nothing: its record is
removed only once every item has a disposition, so an interrupted pass can
simply be run again. RegistryError aborts the pass; every other error is
contained to the job it belongs to.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from docbatch.batch.classifier import FailureClassifier, FailureKind
from docbatch.batch.errors import RegistryError, RemoteAPIError
from docbatch.batch.models import (
    BatchJob,
    JobReport,
    JobState,
    PassReport,
    PollOutcome,
    ReconcileReport,
)
from docbatch.batch.poller import StatusPoller
from docbatch.batch.reconciler import ResultReconciler, resolve_package_root
from docbatch.batch.registry import BaseBatchRegistry
from docbatch.config.settings import Settings
from docbatch.llm.base_batch_client import BaseBatchClient
from docbatch.llm.models import RemoteResult
from docbatch.llm.retry import with_retry
from docbatch.logging.context import batch_context, set_step
from docbatch.storage.base_doc_writer import BaseDocWriter

logger = logging.getLogger(__name__)


class BatchLifecycleManager:
    """Drive registry jobs from submission to reconciliation or quarantine."""

    def __init__(
        self,
        registry: BaseBatchRegistry,
        client: BaseBatchClient,
        writer: BaseDocWriter,
        settings: Settings,
        repo_path: str | Path | None = None,
        max_files: int = 0,
    ) -> None:
        self._registry = registry
        self._client = client
        self._writer = writer
        self._settings = settings
        self._repo_path = repo_path
        self._poller = StatusPoller(client, settings)
        self._reconciler = ResultReconciler(
            writer, settings, repo_path=repo_path, max_files=max_files
        )
        self._classifier = FailureClassifier(registry)

    async def run_pass(self) -> PassReport:
        """Poll every active job and act on terminal states."""
        return await self._pass(act=True)

    async def check(self) -> PassReport:
        """Status-only pass: no reconciliation, no quarantine."""
        return await self._pass(act=False)

    async def wait(
        self, interval_s: float | None = None, max_passes: int | None = None
    ) -> PassReport:
        """Repeat passes until no active job remains.

        Interrupting the wait stops local polling only; remote jobs keep
        running and are picked up by the next invocation.
        """
        interval = self._settings.batch_poll_interval_s if interval_s is None else interval_s
        passes = 0
        while True:
            report = await self.run_pass()
            passes += 1
            pending = sum(1 for j in report.jobs if _still_running(j))
            if pending == 0 or (max_passes is not None and passes >= max_passes):
                return report
            logger.info("%d jobs still active, next pass in %.0fs", pending, interval)
            await asyncio.sleep(interval)

    async def _pass(self, act: bool) -> PassReport:
        jobs = self._registry.list_active()
        report = PassReport(
            corrupt_records=[c.path for c in getattr(self._registry, "last_corrupt", [])]
        )
        for job in jobs:
            with batch_context(job.batch_id, job.package_name, step="poll"):
                try:
                    outcome = await self._poller.poll(job)
                except Exception as e:
                    logger.exception("Polling batch %s aborted", job.batch_id)
                    report.jobs.append(_poll_error_report(job, e))
                    continue
                job_report = _job_report(outcome)
                if act:
                    try:
                        await self._act(job, outcome, job_report)
                    except RegistryError:
                        raise
                    except Exception as e:
                        # Record untouched: the next pass starts this job over
                        logger.exception("Handling of batch %s aborted", job.batch_id)
                        job_report.action = "error"
                        job_report.detail = str(e)
                report.jobs.append(job_report)
            set_step(None)
        return report

    async def _act(self, job: BatchJob, outcome: PollOutcome, job_report: JobReport) -> None:
        if outcome.state == JobState.COMPLETED:
            await self._complete(job, job_report)
        elif outcome.state == JobState.FAILED:
            set_step("classify")
            status = self._poller.last_status[job.batch_id]
            kind = self._classifier.handle(job, status)
            job_report.action = (
                "quarantined" if kind == FailureKind.PERMANENT else "left_active"
            )
            job_report.detail = outcome.error

    async def _complete(self, job: BatchJob, job_report: JobReport) -> None:
        if not job.items:
            logger.info("Batch %s has no items; removing it", job.batch_id)
            self._registry.remove(job.batch_id)
            job_report.action = "reconciled"
            job_report.reconcile = ReconcileReport(batch_id=job.batch_id)
            return

        set_step("fetch")
        try:
            results = await self._results(job)
        except RemoteAPIError as e:
            logger.warning("Could not fetch results of batch %s: %s", job.batch_id, e)
            job_report.action = "left_active"
            job_report.detail = f"results unavailable: {e}"
            return

        set_step("reconcile")
        payload = self._registry.load_payload(job.batch_id)
        reconciled = self._reconciler.reconcile(job, results, payload)

        self._writer.record_run(
            resolve_package_root(job.package_path, self._repo_path), job.batch_id, reconciled
        )
        self._registry.remove(job.batch_id)
        job_report.action = "reconciled"
        job_report.reconcile = reconciled

    async def _results(self, job: BatchJob) -> list[RemoteResult]:
        cached = self._registry.load_results(job.batch_id)
        if cached is not None:
            logger.debug("Using cached results for batch %s", job.batch_id)
            return cached
        results = await with_retry(
            self._client.fetch_results,
            job.batch_id,
            operation=f"fetch results {job.batch_id}",
        )
        self._registry.save_results(job.batch_id, results)
        return results


def _still_running(job: JobReport) -> bool:
    if job.state is None:
        # Only a transient poll error may clear up by itself
        return job.poll_error == "transient"
    if job.state in (JobState.PENDING, JobState.PROCESSING):
        return True
    return job.state == JobState.COMPLETED and job.action != "reconciled"


def _poll_error_report(job: BatchJob, error: Exception) -> JobReport:
    return JobReport(
        batch_id=job.batch_id,
        package_name=job.package_name,
        item_count=len(job.items),
        age_hours=round(job.age().total_seconds() / 3600, 2),
        action="error",
        detail=f"{type(error).__name__}: {error}",
    )


def _job_report(outcome: PollOutcome) -> JobReport:
    return JobReport(
        batch_id=outcome.batch_id,
        package_name=outcome.package_name,
        item_count=outcome.item_count,
        age_hours=outcome.age_hours,
        state=outcome.state,
        is_stale=outcome.is_stale,
        action="left_active" if outcome.is_unknown else "none",
        detail=outcome.error,
        poll_error=outcome.poll_error,
    )
