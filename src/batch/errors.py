# src/batch/errors.py - v1
"""Error hierarchy for the batch job lifecycle.

Per-job and per-item errors are contained and reported by the lifecycle
manager; only RegistryError aborts a pass.
"""

from __future__ import annotations

from typing import Any


class BatchError(Exception):
    """Base class for all batch lifecycle errors."""


class RegistryError(BatchError):
    """The registry root cannot be read or written."""


class CorruptRecord(BatchError):
    """A persisted record could not be parsed. Skipped, never fatal."""

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Corrupt batch record {path}: {reason}")


class RemoteAPIError(BatchError):
    """Error reported by (or while talking to) a remote batch API."""

    def __init__(
        self,
        message: str,
        provider: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.provider = provider
        self.details = details or {}

    def __str__(self) -> str:
        if self.provider:
            return f"[{self.provider}] {self.message}"
        return self.message


class TransientRemoteError(RemoteAPIError):
    """Temporary condition (network, rate limit, 5xx). The job stays active."""

    def __init__(
        self,
        message: str,
        provider: str | None = None,
        retry_after: float | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, provider, details)
        self.retry_after = retry_after


class PermanentRemoteError(RemoteAPIError):
    """Non-retryable remote error (auth, invalid request, unknown batch)."""

    def __init__(
        self,
        message: str,
        provider: str | None = None,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, provider, details)
        self.error_code = error_code


class PermanentJobFailure(BatchError):
    """The remote API reports the whole job as failed for good."""

    def __init__(self, batch_id: str, reason: str) -> None:
        self.batch_id = batch_id
        self.reason = reason
        super().__init__(f"Batch {batch_id} failed permanently: {reason}")


class PerItemFailure(BatchError):
    """One item of a completed job could not be applied."""

    kind = "per_item_failure"

    def __init__(self, file_path: str, reason: str) -> None:
        self.file_path = file_path
        self.reason = reason
        super().__init__(f"{file_path}: {reason}")


class WriteConflict(PerItemFailure):
    """The target file changed since submission; the result is not applied."""

    kind = "write_conflict"


class SubmissionError(BatchError):
    """Submission was rejected or aborted; nothing was persisted."""
