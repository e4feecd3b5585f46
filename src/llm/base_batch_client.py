# src/llm/base_batch_client.py - v1
"""Abstract remote batch API client.

Adapters translate provider SDK exceptions into TransientRemoteError or
PermanentRemoteError so callers never see SDK-specific types.
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod

from docbatch.batch.errors import PermanentRemoteError, TransientRemoteError
from docbatch.llm.models import BatchRequest, RemoteResult, RemoteStatus
from docbatch.llm.retry import classify_error, extract_retry_after


class BaseBatchClient(ABC):
    """Unified interface for asynchronous batch backends."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Provider identifier (openai, anthropic, mock)."""

    @property
    def model(self) -> str | None:
        return getattr(self, "_model", None)

    @abstractmethod
    def build_payload(self, requests: list[BatchRequest]) -> str:
        """Render requests as the provider's JSONL payload."""

    @abstractmethod
    async def submit(self, payload: str) -> str:
        """Submit a payload and return the remote batch id."""

    @abstractmethod
    async def status(self, batch_id: str) -> RemoteStatus:
        """Query the normalised state of a batch."""

    @abstractmethod
    async def fetch_results(self, batch_id: str) -> list[RemoteResult]:
        """Retrieve results of a completed batch."""

    @abstractmethod
    async def cancel(self, batch_id: str) -> bool:
        """Ask the provider to cancel a batch. True if accepted."""

    def _translate(
        self, error: Exception, action: str, default_transient: bool = False
    ) -> TransientRemoteError | PermanentRemoteError:
        """Map an SDK or network exception onto the remote error split."""
        if isinstance(error, (TransientRemoteError, PermanentRemoteError)):
            return error
        kind = classify_error(error)
        message = f"{action} failed: {error}"
        if kind == "transient" or (kind == "unknown" and default_transient):
            return TransientRemoteError(
                message,
                self.provider_name,
                retry_after=extract_retry_after(str(error)),
            )
        code = getattr(error, "status_code", None) or getattr(error, "code", None)
        return PermanentRemoteError(
            message,
            self.provider_name,
            error_code=str(code) if code is not None else None,
        )


def iter_jsonl(payload: str | bytes) -> list[dict]:
    """Parse JSONL into dicts, skipping blank lines. Line order is preserved."""
    text = payload.decode("utf-8") if isinstance(payload, bytes) else payload
    rows: list[dict] = []
    for line in text.splitlines():
        line = line.strip()
        if line:
            rows.append(json.loads(line))
    return rows
