# src/batch/submitter.py - v1
"""Batch Submitter: package pending files into remote batch jobs.

A job is persisted only after the remote API has returned its batch id, and
the submitter reports success only after persistence. If submission fails,
no record is written.
"""

from __future__ import annotations

import logging
from pathlib import Path

from docbatch.batch.errors import RegistryError, RemoteAPIError, SubmissionError
from docbatch.batch.models import BatchJob, utc_now
from docbatch.batch.payload import build_items, build_requests, chunked
from docbatch.batch.registry import BaseBatchRegistry
from docbatch.config.settings import Settings
from docbatch.llm.base_batch_client import BaseBatchClient
from docbatch.llm.retry import RetryConfig, with_retry
from docbatch.logging.context import batch_context
from docbatch.source.base_source_provider import BaseSourceProvider
from docbatch.source.models import SourceFile

logger = logging.getLogger(__name__)


class BatchSubmitter:
    """Submit source files as batch jobs and record them in the registry."""

    def __init__(
        self,
        client: BaseBatchClient,
        registry: BaseBatchRegistry,
        settings: Settings,
        source_provider: BaseSourceProvider | None = None,
        retry_config: RetryConfig | None = None,
    ) -> None:
        self._client = client
        self._registry = registry
        self._settings = settings
        self._source_provider = source_provider
        self._retry_config = retry_config

    async def submit_package(self, package_path: Path | None = None) -> list[BatchJob]:
        """Pull sources from the Source Provider and submit them.

        Raises:
            SubmissionError: If no Source Provider is configured.
        """
        if self._source_provider is None:
            raise SubmissionError("No source provider configured")
        root = Path(package_path) if package_path else self._source_provider.package_path
        sources = self._source_provider.list_sources(
            max_files=self._settings.max_files_per_package
        )
        return await self.submit_items(root, sources)

    async def submit_items(
        self, package_path: Path | str, sources: list[SourceFile]
    ) -> list[BatchJob]:
        """Submit sources in chunks of at most ``batch_size`` files.

        Each chunk is its own job. Jobs submitted before a failing chunk stay
        persisted; the failure propagates and later chunks are not sent.

        Returns:
            The persisted jobs, in submission order.
        """
        jobs: list[BatchJob] = []
        if not sources:
            logger.info("Nothing to submit for %s", package_path)
            return jobs

        chunks = chunked(sources, self._settings.batch_size)
        for number, chunk in enumerate(chunks, start=1):
            job = await self._submit_chunk(str(package_path), chunk)
            logger.info(
                "Submitted chunk %d/%d as batch %s (%d files)",
                number, len(chunks), job.batch_id, len(job.items),
            )
            jobs.append(job)
        return jobs

    async def resubmit(self, job: BatchJob) -> BatchJob:
        """Resubmit a job from its persisted payload under a new batch id.

        The new record is persisted before the old one is removed, so the
        items are never without an owning record.
        """
        payload = self._registry.load_payload(job.batch_id)
        if payload is None:
            raise SubmissionError(f"No payload kept for batch {job.batch_id}")

        new_id = await self._send(payload)
        new_job = job.model_copy(update={"batch_id": new_id, "created_at": utc_now()})
        self._registry.persist(new_job, payload)
        self._registry.remove(job.batch_id)
        logger.info("Resubmitted batch %s as %s", job.batch_id, new_id)
        return new_job

    async def _submit_chunk(self, package_path: str, chunk: list[SourceFile]) -> BatchJob:
        items = build_items(chunk)
        requests = build_requests(items, chunk, self._settings, model=self._client.model)
        payload = self._client.build_payload(requests)

        batch_id = await self._send(payload)
        job = BatchJob(
            batch_id=batch_id,
            package_path=package_path,
            items=items,
            provider=self._client.provider_name,
            model=self._client.model,
        )
        with batch_context(batch_id, job.package_name, step="submit"):
            try:
                self._registry.persist(job, payload)
            except RegistryError:
                # No local record: the remote job would be orphaned
                await self._cancel_orphan(batch_id)
                raise
        return job

    async def _cancel_orphan(self, batch_id: str) -> None:
        try:
            cancelled = await self._client.cancel(batch_id)
        except RemoteAPIError as e:
            logger.error("Could not cancel unrecorded batch %s: %s", batch_id, e)
            return
        logger.error(
            "Batch %s could not be recorded; remote cancel %s",
            batch_id, "accepted" if cancelled else "refused",
        )

    async def _send(self, payload: str) -> str:
        try:
            batch_id = await with_retry(
                self._client.submit,
                payload,
                operation=f"{self._client.provider_name} submit",
                config=self._retry_config,
            )
        except RemoteAPIError as e:
            raise SubmissionError(f"Batch submission failed: {e}") from e
        if not batch_id:
            raise SubmissionError("Remote API returned an empty batch id")
        return batch_id


