# src/batch/models.py - v2
"""Batch lifecycle models: BatchItem, BatchJob, JobState and report types.

BatchJob is the persisted unit of work. Its state is never stored: it is
recomputed from the remote batch API on every poll.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from enum import Enum
from pathlib import PurePath
from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator

RECORD_SCHEMA_VERSION = 1


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class JobState(str, Enum):
    """Remote job state, as normalised across providers."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class BatchItem(BaseModel):
    """One documentation request inside a batch job."""

    request_id: int
    file_path: str
    file_path_id: str | None = None
    file_path_index: int | None = None
    is_entry_point: bool = False
    commit_hash: str | None = None
    content_hash: str | None = None


class BatchJob(BaseModel):
    """A submitted batch job and the items it carries."""

    schema_version: int = RECORD_SCHEMA_VERSION
    batch_id: str
    package_path: str
    created_at: datetime = Field(default_factory=utc_now)
    items: list[BatchItem] = Field(default_factory=list)
    provider: str = "openai"
    model: str | None = None

    @field_validator("schema_version")
    @classmethod
    def validate_schema_version(cls, v: int) -> int:  # noqa: N805
        if v != RECORD_SCHEMA_VERSION:
            raise ValueError(
                f"unsupported schema_version {v} (expected {RECORD_SCHEMA_VERSION})"
            )
        return v

    @field_validator("batch_id")
    @classmethod
    def validate_batch_id(cls, v: str) -> str:  # noqa: N805
        if not v or "/" in v or "\\" in v:
            raise ValueError(f"invalid batch_id {v!r}")
        return v

    @field_validator("created_at")
    @classmethod
    def ensure_utc(cls, v: datetime) -> datetime:  # noqa: N805
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    @model_validator(mode="after")
    def validate_unique_request_ids(self) -> BatchJob:
        seen: set[int] = set()
        for item in self.items:
            if item.request_id in seen:
                raise ValueError(f"duplicate request_id {item.request_id}")
            seen.add(item.request_id)
        return self

    @property
    def package_name(self) -> str:
        return PurePath(self.package_path).name or self.package_path

    def age(self, now: datetime | None = None) -> timedelta:
        """Time elapsed since submission."""
        return (now or utc_now()) - self.created_at


PollError = Literal["transient", "permanent"]


class PollOutcome(BaseModel):
    """Result of polling one job.

    ``state`` is None when the status call failed; ``poll_error`` then says
    whether a later poll may succeed.
    """

    batch_id: str
    package_name: str
    item_count: int
    state: JobState | None = None
    raw_status: str | None = None
    completed_count: int = 0
    failed_count: int = 0
    total_count: int = 0
    age_hours: float = 0.0
    is_stale: bool = False
    error: str | None = None
    poll_error: PollError | None = None

    @property
    def is_unknown(self) -> bool:
        return self.state is None


class ItemOutcome(BaseModel):
    """Terminal disposition of one item after reconciliation."""

    request_id: int
    file_path: str
    status: Literal["applied", "failed"]
    error_kind: str | None = None
    detail: str | None = None
    matched_by: Literal["request_id", "file_path_id", "file_path_index"] | None = None
    blocks_added: int = 0


class ReconcileReport(BaseModel):
    """Outcome of reconciling one completed job."""

    batch_id: str
    outcomes: list[ItemOutcome] = Field(default_factory=list)
    unmatched_results: int = 0

    @property
    def applied(self) -> list[ItemOutcome]:
        return [o for o in self.outcomes if o.status == "applied"]

    @property
    def failed(self) -> list[ItemOutcome]:
        return [o for o in self.outcomes if o.status == "failed"]

    @property
    def blocks_added(self) -> int:
        return sum(o.blocks_added for o in self.outcomes)


class JobReport(BaseModel):
    """Per-job line of a lifecycle pass summary."""

    batch_id: str
    package_name: str
    item_count: int
    age_hours: float
    state: JobState | None = None
    is_stale: bool = False
    action: Literal[
        "none", "reconciled", "quarantined", "left_active", "error"
    ] = "none"
    detail: str | None = None
    poll_error: PollError | None = None
    reconcile: ReconcileReport | None = None


class PassReport(BaseModel):
    """Summary of one lifecycle pass, rendered by the CLI."""

    jobs: list[JobReport] = Field(default_factory=list)
    corrupt_records: list[str] = Field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.jobs)

    def count(self, state: JobState | None) -> int:
        return sum(1 for j in self.jobs if j.state == state)

    def count_action(self, action: str) -> int:
        return sum(1 for j in self.jobs if j.action == action)
