# src/llm/adapters/openai_batch.py - v2
"""OpenAI Batch API adapter implementing BaseBatchClient.

Uses the official openai SDK (AsyncOpenAI): JSONL upload through the Files
API, then /v1/batches create, retrieve and cancel. Results come from the
output file and, for rejected requests, the error file. Output lines are not
in submission order, so results are keyed by custom_id only.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any

from docbatch.batch.models import JobState
from docbatch.llm.base_batch_client import BaseBatchClient, iter_jsonl
from docbatch.llm.models import BatchRequest, RemoteResult, RemoteStatus

logger = logging.getLogger(__name__)

CHAT_COMPLETIONS_URL = "/v1/chat/completions"

STATUS_MAPPING: dict[str, JobState] = {
    "validating": JobState.PENDING,
    "in_progress": JobState.PROCESSING,
    "finalizing": JobState.PROCESSING,
    "cancelling": JobState.PROCESSING,
    "completed": JobState.COMPLETED,
    "failed": JobState.FAILED,
    "expired": JobState.FAILED,
    "cancelled": JobState.FAILED,
}


class OpenAIBatchClient(BaseBatchClient):
    """OpenAI /v1/batches adapter."""

    def __init__(
        self,
        model: str = "gpt-4o",
        api_key: str = "",
        completion_window: str = "24h",
        client: Any = None,
        **kwargs: Any,
    ) -> None:
        self._model = model
        self._api_key = api_key
        self._completion_window = completion_window
        self._client = client

    @property
    def provider_name(self) -> str:
        return "openai"

    def _sdk(self) -> Any:
        if self._client is None:
            import openai

            self._client = openai.AsyncOpenAI(api_key=self._api_key)
        return self._client

    def build_payload(self, requests: list[BatchRequest]) -> str:
        lines = []
        for req in requests:
            messages: list[dict[str, str]] = []
            if req.system:
                messages.append({"role": "system", "content": req.system})
            messages.extend({"role": m.role, "content": m.content} for m in req.messages)
            lines.append(
                json.dumps(
                    {
                        "custom_id": req.custom_id,
                        "method": "POST",
                        "url": CHAT_COMPLETIONS_URL,
                        "body": {
                            "model": req.model,
                            "messages": messages,
                            "max_tokens": req.max_tokens,
                            "temperature": req.temperature,
                        },
                    },
                    separators=(",", ":"),
                )
            )
        return "\n".join(lines)

    async def submit(self, payload: str) -> str:
        client = self._sdk()
        name = f"docbatch_{datetime.now(timezone.utc):%Y%m%dT%H%M%S}.jsonl"
        try:
            uploaded = await client.files.create(
                file=(name, payload.encode("utf-8")), purpose="batch"
            )
            batch = await client.batches.create(
                input_file_id=uploaded.id,
                endpoint=CHAT_COMPLETIONS_URL,
                completion_window=self._completion_window,
            )
        except Exception as e:
            raise self._translate(e, "OpenAI batch submission") from e
        logger.info("Submitted OpenAI batch %s (input file %s)", batch.id, uploaded.id)
        return batch.id

    async def status(self, batch_id: str) -> RemoteStatus:
        try:
            batch = await self._sdk().batches.retrieve(batch_id)
        except Exception as e:
            raise self._translate(e, f"OpenAI status for {batch_id}", default_transient=True) from e

        raw = str(batch.status)
        state = STATUS_MAPPING.get(raw, JobState.PROCESSING)
        error_code, error_message = _batch_error(batch)
        if raw in ("expired", "cancelled") and error_code is None:
            error_code = raw
        counts = getattr(batch, "request_counts", None)
        return RemoteStatus(
            batch_id=batch_id,
            state=state,
            raw_status=raw,
            error_code=error_code,
            error_message=error_message,
            total_count=getattr(counts, "total", 0) or 0,
            completed_count=getattr(counts, "completed", 0) or 0,
            failed_count=getattr(counts, "failed", 0) or 0,
        )

    async def fetch_results(self, batch_id: str) -> list[RemoteResult]:
        client = self._sdk()
        try:
            batch = await client.batches.retrieve(batch_id)
            results: list[RemoteResult] = []
            if batch.output_file_id:
                content = await client.files.content(batch.output_file_id)
                results.extend(parse_output_file(content.read()))
            if batch.error_file_id:
                content = await client.files.content(batch.error_file_id)
                results.extend(parse_output_file(content.read()))
        except Exception as e:
            raise self._translate(e, f"OpenAI results for {batch_id}", default_transient=True) from e
        logger.info("Fetched %d results for OpenAI batch %s", len(results), batch_id)
        return results

    async def cancel(self, batch_id: str) -> bool:
        try:
            batch = await self._sdk().batches.cancel(batch_id)
        except Exception as e:
            raise self._translate(e, f"OpenAI cancel for {batch_id}") from e
        return str(batch.status) in ("cancelling", "cancelled")


def parse_output_file(content: bytes | str) -> list[RemoteResult]:
    """Parse an OpenAI output or error JSONL file into RemoteResults."""
    results: list[RemoteResult] = []
    for line_number, row in enumerate(iter_jsonl(content)):
        custom_id = row.get("custom_id")
        error = row.get("error")
        response = row.get("response") or {}
        body = response.get("body") or {}

        if error:
            results.append(
                RemoteResult(custom_id=custom_id, error=_format_error(error), raw=row)
            )
            continue

        status_code = response.get("status_code")
        if status_code is not None and status_code != 200:
            results.append(
                RemoteResult(
                    custom_id=custom_id,
                    error=_format_error(body.get("error") or f"HTTP {status_code}"),
                    raw=row,
                )
            )
            continue

        choices = body.get("choices") or []
        text = None
        if choices:
            text = (choices[0].get("message") or {}).get("content")
        if text is None:
            results.append(
                RemoteResult(custom_id=custom_id, error="empty response", raw=row)
            )
        else:
            results.append(RemoteResult(custom_id=custom_id, text=text, raw=row))
        logger.debug("Parsed output line %d (%s)", line_number, custom_id)
    return results


def _format_error(error: Any) -> str:
    if isinstance(error, dict):
        code = error.get("code")
        message = error.get("message") or "unknown error"
        return f"{code}: {message}" if code else str(message)
    return str(error)


def _batch_error(batch: Any) -> tuple[str | None, str | None]:
    errors = getattr(batch, "errors", None)
    data = getattr(errors, "data", None) or []
    if not data:
        return None, None
    first = data[0]
    return getattr(first, "code", None), getattr(first, "message", None)
