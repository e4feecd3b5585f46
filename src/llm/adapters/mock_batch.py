# src/llm/adapters/mock_batch.py - v1
"""In-process batch backend with scripted status sequences.

Used by ``--dry-run`` and tests. Every submitted payload is kept in memory;
each status() call advances the job one step along its script, and the last
state repeats. Results prepend a documentation stub to the submitted code
unless a responder is supplied.
"""

from __future__ import annotations

import itertools
import json
import logging
import re
from typing import Any, Callable

from docbatch.batch.errors import PermanentRemoteError
from docbatch.batch.models import JobState
from docbatch.llm.base_batch_client import BaseBatchClient, iter_jsonl
from docbatch.llm.models import BatchRequest, RemoteResult, RemoteStatus
from docbatch.llm.prompts import is_python_file

logger = logging.getLogger(__name__)

_FILE_LINE_RE = re.compile(r"^File: (.+)$", re.MULTILINE)

DEFAULT_SCRIPT: tuple[JobState, ...] = (JobState.COMPLETED,)

Responder = Callable[[dict[str, Any]], RemoteResult]


class MockBatchClient(BaseBatchClient):
    """Fake remote batch API."""

    def __init__(
        self,
        model: str = "mock-model",
        script: list[JobState] | tuple[JobState, ...] | None = None,
        responder: Responder | None = None,
        error_code: str | None = None,
        **kwargs: Any,
    ) -> None:
        self._model = model
        self._script = tuple(script or DEFAULT_SCRIPT)
        self._responder = responder or _stub_responder
        self._error_code = error_code
        self._ids = itertools.count(1)
        self.payloads: dict[str, str] = {}
        self.cancelled: set[str] = set()
        self._steps: dict[str, int] = {}

    @property
    def provider_name(self) -> str:
        return "mock"

    def build_payload(self, requests: list[BatchRequest]) -> str:
        return "\n".join(
            json.dumps(
                {
                    "custom_id": r.custom_id,
                    "body": {
                        "model": r.model,
                        "messages": [m.model_dump() for m in r.messages],
                    },
                },
                separators=(",", ":"),
            )
            for r in requests
        )

    async def submit(self, payload: str) -> str:
        batch_id = f"mock_batch_{next(self._ids):04d}"
        self.payloads[batch_id] = payload
        self._steps[batch_id] = 0
        logger.info("Mock batch %s accepted (%d lines)", batch_id, len(iter_jsonl(payload)))
        return batch_id

    async def status(self, batch_id: str) -> RemoteStatus:
        if batch_id not in self.payloads:
            raise PermanentRemoteError(
                f"batch {batch_id} not found", self.provider_name, error_code="not_found"
            )
        if batch_id in self.cancelled:
            state, raw = JobState.FAILED, "cancelled"
        else:
            step = self._steps[batch_id]
            state = self._script[min(step, len(self._script) - 1)]
            self._steps[batch_id] = step + 1
            raw = state.value
        total = len(iter_jsonl(self.payloads[batch_id]))
        return RemoteStatus(
            batch_id=batch_id,
            state=state,
            raw_status=raw,
            error_code=(self._error_code or raw) if state == JobState.FAILED else None,
            total_count=total,
            completed_count=total if state == JobState.COMPLETED else 0,
        )

    async def fetch_results(self, batch_id: str) -> list[RemoteResult]:
        payload = self.payloads.get(batch_id)
        if payload is None:
            raise PermanentRemoteError(
                f"batch {batch_id} not found", self.provider_name, error_code="not_found"
            )
        return [self._responder(row) for row in iter_jsonl(payload)]

    async def cancel(self, batch_id: str) -> bool:
        if batch_id not in self.payloads:
            return False
        self.cancelled.add(batch_id)
        return True


def _stub_responder(row: dict[str, Any]) -> RemoteResult:
    messages = row.get("body", {}).get("messages", [])
    prompt = messages[-1]["content"] if messages else ""
    code = prompt.split("Code to document:\n", 1)[-1]
    match = _FILE_LINE_RE.search(prompt)
    if match and is_python_file(match.group(1)):
        stub = '"""Documentation stub."""\n'
    else:
        stub = "/** Documentation stub. */\n"
    return RemoteResult(custom_id=row.get("custom_id"), text=stub + code)
