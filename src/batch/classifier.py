# src/batch/classifier.py - v2
"""Failure Classifier: decide whether a FAILED job is worth another look.

Permanent failures (malformed submission, validation errors, cancellation)
are quarantined together with their payload. Transient ones (expiry,
infrastructure trouble) stay active; nothing is resubmitted automatically.
"""

from __future__ import annotations

import logging
import re
from enum import Enum

from docbatch.batch.errors import PermanentJobFailure
from docbatch.batch.models import BatchJob
from docbatch.batch.registry import BaseBatchRegistry
from docbatch.llm.models import RemoteStatus

logger = logging.getLogger(__name__)

_TRANSIENT_STATUSES = {"expired"}
_TRANSIENT_MARKERS = (
    "rate_limit",
    "rate limit",
    "timeout",
    "timed out",
    "overloaded",
    "server_error",
    "server error",
    "internal error",
    "internal_error",
    "unavailable",
    "temporarily",
    "capacity",
)
# Status codes count as whole numbers only, and in a message only where they
# read as an HTTP status: "Line 500 of the input file" is not a server error
_CODE_RE = re.compile(r"^(?:429|5\d\d)$")
_MESSAGE_CODE_RE = re.compile(r"(?:\(|\b(?:http|status|code|error)[\s:]*)(?:429|5\d\d)\b")


class FailureKind(str, Enum):
    PERMANENT = "permanent"
    TRANSIENT = "transient"


class FailureClassifier:
    """Classify failed jobs and quarantine the permanent ones."""

    def __init__(self, registry: BaseBatchRegistry) -> None:
        self._registry = registry

    def classify(self, status: RemoteStatus) -> FailureKind:
        if status.raw_status in _TRANSIENT_STATUSES or status.error_code in _TRANSIENT_STATUSES:
            return FailureKind.TRANSIENT
        text = " ".join(
            part.lower() for part in (status.error_code, status.error_message) if part
        )
        if any(marker in text for marker in _TRANSIENT_MARKERS):
            return FailureKind.TRANSIENT
        if _CODE_RE.match((status.error_code or "").strip()):
            return FailureKind.TRANSIENT
        if _MESSAGE_CODE_RE.search(text):
            return FailureKind.TRANSIENT
        return FailureKind.PERMANENT

    def handle(self, job: BatchJob, status: RemoteStatus) -> FailureKind:
        """Quarantine a permanently failed job; leave a transient one active."""
        kind = self.classify(status)
        reason = status.error_message or status.error_code or status.raw_status
        if kind == FailureKind.PERMANENT:
            failure = PermanentJobFailure(job.batch_id, reason)
            logger.error("%s; moving to quarantine", failure)
            self._registry.quarantine(job.batch_id)
        else:
            logger.warning(
                "Batch %s failed transiently (%s); left active for resubmission",
                job.batch_id, reason,
            )
        return kind
