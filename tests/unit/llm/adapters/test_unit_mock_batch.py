# tests/unit/llm/adapters/test_unit_mock_batch.py - v1
"""Tests for the in-process mock batch backend."""

from __future__ import annotations

import pytest

from docbatch.batch.errors import PermanentRemoteError
from docbatch.batch.models import JobState
from docbatch.llm.adapters.mock_batch import MockBatchClient
from docbatch.llm.models import BatchRequest, Message, RemoteResult
from docbatch.llm.prompts import build_doc_prompt


def _payload(client: MockBatchClient, path: str = "a.ts", code: str = "const a = 1;\n") -> str:
    req = BatchRequest(
        custom_id="request-1-0",
        messages=[Message(role="user", content=build_doc_prompt(code, path, False))],
        model="mock-model",
    )
    return client.build_payload([req])


class TestMockBatchClient:
    @pytest.mark.asyncio
    async def test_ids_are_sequential(self):
        client = MockBatchClient()
        assert await client.submit("{}") == "mock_batch_0001"
        assert await client.submit("{}") == "mock_batch_0002"

    @pytest.mark.asyncio
    async def test_script_advances_and_last_state_repeats(self):
        client = MockBatchClient(script=[JobState.PENDING, JobState.COMPLETED])
        batch_id = await client.submit(_payload(client))
        states = [(await client.status(batch_id)).state for _ in range(3)]
        assert states == [JobState.PENDING, JobState.COMPLETED, JobState.COMPLETED]

    @pytest.mark.asyncio
    async def test_unknown_batch(self):
        with pytest.raises(PermanentRemoteError):
            await MockBatchClient().status("nope")

    @pytest.mark.asyncio
    async def test_stub_results(self):
        client = MockBatchClient()
        batch_id = await client.submit(_payload(client))
        [result] = await client.fetch_results(batch_id)
        assert result.custom_id == "request-1-0"
        assert result.text == "/** Documentation stub. */\nconst a = 1;\n"

    @pytest.mark.asyncio
    async def test_python_stub(self):
        client = MockBatchClient()
        batch_id = await client.submit(_payload(client, "m.py", "x = 1\n"))
        [result] = await client.fetch_results(batch_id)
        assert result.text.startswith('"""Documentation stub."""\n')

    @pytest.mark.asyncio
    async def test_custom_responder(self):
        client = MockBatchClient(responder=lambda row: RemoteResult(error="refused"))
        batch_id = await client.submit(_payload(client))
        [result] = await client.fetch_results(batch_id)
        assert result.error == "refused"

    @pytest.mark.asyncio
    async def test_cancel(self):
        client = MockBatchClient(script=[JobState.PROCESSING])
        batch_id = await client.submit(_payload(client))
        assert await client.cancel(batch_id)
        status = await client.status(batch_id)
        assert status.state == JobState.FAILED
        assert status.raw_status == "cancelled"
        assert not await client.cancel("nope")
