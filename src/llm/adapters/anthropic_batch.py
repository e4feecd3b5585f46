# src/llm/adapters/anthropic_batch.py - v2
"""Anthropic Message Batches adapter implementing BaseBatchClient.

Uses the official anthropic SDK (AsyncAnthropic). A batch that has ended is
COMPLETED even when some requests errored, expired or were canceled; those
surface as per-item errors in the results. Every result carries the
request's custom_id; result order is not guaranteed.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from docbatch.batch.models import JobState
from docbatch.llm.base_batch_client import BaseBatchClient, iter_jsonl
from docbatch.llm.models import BatchRequest, RemoteResult, RemoteStatus

logger = logging.getLogger(__name__)

STATUS_MAPPING: dict[str, JobState] = {
    "in_progress": JobState.PROCESSING,
    "canceling": JobState.PROCESSING,
    "ended": JobState.COMPLETED,
}


class AnthropicBatchClient(BaseBatchClient):
    """Adapter for the Anthropic Message Batches API."""

    def __init__(
        self,
        model: str = "claude-sonnet-4-20250514",
        api_key: str | None = None,
        client: Any = None,
        **kwargs: Any,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self.__client = client

    @property
    def provider_name(self) -> str:
        return "anthropic"

    @property
    def _client(self) -> Any:
        """Lazy-init Anthropic client (only on first API call)."""
        if self.__client is None:
            import anthropic

            self.__client = anthropic.AsyncAnthropic(api_key=self._api_key or "")
        return self.__client

    def build_payload(self, requests: list[BatchRequest]) -> str:
        lines = []
        for req in requests:
            params: dict[str, Any] = {
                "model": req.model,
                "max_tokens": req.max_tokens,
                "temperature": req.temperature,
                "messages": [{"role": m.role, "content": m.content} for m in req.messages],
            }
            if req.system:
                params["system"] = req.system
            lines.append(
                json.dumps({"custom_id": req.custom_id, "params": params}, separators=(",", ":"))
            )
        return "\n".join(lines)

    async def submit(self, payload: str) -> str:
        requests = iter_jsonl(payload)
        try:
            batch = await self._client.messages.batches.create(requests=requests)
        except Exception as e:
            raise self._translate(e, "Anthropic batch submission") from e
        logger.info("Submitted Anthropic batch %s (%d requests)", batch.id, len(requests))
        return batch.id

    async def status(self, batch_id: str) -> RemoteStatus:
        try:
            batch = await self._client.messages.batches.retrieve(batch_id)
        except Exception as e:
            raise self._translate(e, f"Anthropic status for {batch_id}", default_transient=True) from e

        raw = str(batch.processing_status)
        counts = batch.request_counts
        processing = getattr(counts, "processing", 0) or 0
        succeeded = getattr(counts, "succeeded", 0) or 0
        failed = sum(
            getattr(counts, name, 0) or 0 for name in ("errored", "canceled", "expired")
        )
        return RemoteStatus(
            batch_id=batch_id,
            state=STATUS_MAPPING.get(raw, JobState.PROCESSING),
            raw_status=raw,
            total_count=processing + succeeded + failed,
            completed_count=succeeded,
            failed_count=failed,
        )

    async def fetch_results(self, batch_id: str) -> list[RemoteResult]:
        results: list[RemoteResult] = []
        try:
            decoder = await self._client.messages.batches.results(batch_id)
            async for entry in decoder:
                results.append(_to_remote_result(entry))
        except Exception as e:
            raise self._translate(e, f"Anthropic results for {batch_id}", default_transient=True) from e
        logger.info("Fetched %d results for Anthropic batch %s", len(results), batch_id)
        return results

    async def cancel(self, batch_id: str) -> bool:
        try:
            batch = await self._client.messages.batches.cancel(batch_id)
        except Exception as e:
            raise self._translate(e, f"Anthropic cancel for {batch_id}") from e
        return str(batch.processing_status) in ("canceling", "ended")


def _to_remote_result(entry: Any) -> RemoteResult:
    custom_id = getattr(entry, "custom_id", None)
    result = entry.result
    kind = getattr(result, "type", None)

    if kind == "succeeded":
        blocks = getattr(result.message, "content", None) or []
        text = "".join(
            getattr(b, "text", "") for b in blocks if getattr(b, "type", None) == "text"
        )
        return RemoteResult(custom_id=custom_id, text=text)

    if kind == "errored":
        error = getattr(getattr(result, "error", None), "error", None)
        detail = getattr(error, "message", None) or "request errored"
        err_type = getattr(error, "type", None)
        return RemoteResult(
            custom_id=custom_id, error=f"{err_type}: {detail}" if err_type else detail
        )

    return RemoteResult(custom_id=custom_id, error=str(kind or "unknown result"))
