# src/batch/poller.py - v2
"""Status Poller: query the remote state of active jobs.

Polling never touches the registry. A failure to reach the remote API is
reported as an unknown state, never as FAILED. Remote API and network errors
are contained here; anything else propagates to the caller.
"""

from __future__ import annotations

import logging
from datetime import datetime

from docbatch.batch.errors import RemoteAPIError, TransientRemoteError
from docbatch.batch.models import BatchJob, JobState, PollOutcome, utc_now
from docbatch.config.settings import Settings
from docbatch.llm.base_batch_client import BaseBatchClient
from docbatch.llm.models import RemoteStatus
from docbatch.llm.retry import RetryConfig, with_retry

logger = logging.getLogger(__name__)

# Polls are repeated every pass, so one quick retry is enough
POLL_RETRY_CONFIG = RetryConfig(max_retries=1, base_delay_s=1.0)


class StatusPoller:
    """Poll remote batch state for registry jobs."""

    def __init__(
        self,
        client: BaseBatchClient,
        settings: Settings,
        retry_config: RetryConfig | None = POLL_RETRY_CONFIG,
    ) -> None:
        self._client = client
        self._settings = settings
        self._retry_config = retry_config
        self.last_status: dict[str, RemoteStatus] = {}

    async def poll(self, job: BatchJob, now: datetime | None = None) -> PollOutcome:
        """Query one job. Never raises for remote API or network errors."""
        age_hours = job.age(now or utc_now()).total_seconds() / 3600
        outcome = PollOutcome(
            batch_id=job.batch_id,
            package_name=job.package_name,
            item_count=len(job.items),
            age_hours=round(age_hours, 2),
            is_stale=self._is_stale(age_hours),
        )

        try:
            status: RemoteStatus = await with_retry(
                self._client.status,
                job.batch_id,
                operation=f"status {job.batch_id}",
                config=self._retry_config,
            )
        except (TransientRemoteError, OSError) as e:
            # Unknown: retried on the next pass
            logger.warning("Status of batch %s unknown: %s", job.batch_id, e)
            outcome.error = f"TransientRemoteError: {e}"
            outcome.poll_error = "transient"
            return outcome
        except RemoteAPIError as e:
            # Not found, auth and the like: asking again will not help
            logger.error("Status of batch %s unavailable: %s", job.batch_id, e)
            outcome.error = f"{type(e).__name__}: {e}"
            outcome.poll_error = "permanent"
            return outcome

        self.last_status[job.batch_id] = status
        outcome.state = status.state
        outcome.raw_status = status.raw_status
        outcome.total_count = status.total_count
        outcome.completed_count = status.completed_count
        outcome.failed_count = status.failed_count
        if status.state == JobState.FAILED:
            outcome.error = status.error_message or status.error_code or status.raw_status

        if outcome.is_stale and status.state in (JobState.PENDING, JobState.PROCESSING):
            logger.warning(
                "Batch %s has been %s for %.1fh (limit %.1fh)",
                job.batch_id, status.raw_status, age_hours,
                self._settings.batch_max_age_hours,
            )
        logger.debug(
            "Batch %s: %s (%s), %d/%d done",
            job.batch_id, status.state.value, status.raw_status,
            status.completed_count, status.total_count,
        )
        return outcome

    async def poll_all(self, jobs: list[BatchJob]) -> list[PollOutcome]:
        """Poll jobs one after another."""
        now = utc_now()
        return [await self.poll(job, now) for job in jobs]

    def _is_stale(self, age_hours: float) -> bool:
        limit = self._settings.batch_max_age_hours
        return limit > 0 and age_hours > limit
