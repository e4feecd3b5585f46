# src/llm/models.py - v2
"""Remote batch API types: BatchRequest, RemoteStatus, RemoteResult.

Every provider adapter normalises its wire format into these types.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel

from docbatch.batch.models import JobState


class Message(BaseModel):
    """Single chat message."""

    role: str
    content: str


class BatchRequest(BaseModel):
    """One request line of a batch payload."""

    custom_id: str
    messages: list[Message]
    model: str
    max_tokens: int = 4000
    temperature: float = 0.7
    system: str | None = None


class RemoteStatus(BaseModel):
    """Normalised status of a remote batch job."""

    batch_id: str
    state: JobState
    raw_status: str
    error_code: str | None = None
    error_message: str | None = None
    total_count: int = 0
    completed_count: int = 0
    failed_count: int = 0


class RemoteResult(BaseModel):
    """One result line of a completed batch.

    ``custom_id`` and ``line_number`` are both optional. The OpenAI and
    Anthropic adapters always key results by ``custom_id`` and leave
    ``line_number`` unset, since neither returns results in submission order.
    ``line_number`` (0-based payload line) is for backends that only report
    the position of the request. Exactly one of ``text`` and ``error`` is set.
    """

    custom_id: str | None = None
    line_number: int | None = None
    text: str | None = None
    error: str | None = None
    raw: Any = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.text is not None
