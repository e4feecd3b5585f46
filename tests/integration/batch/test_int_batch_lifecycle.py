# tests/integration/batch/test_int_batch_lifecycle.py - v1
"""End-to-end lifecycle: submit, poll across invocations, reconcile or quarantine.

No external services required: the mock backend stands in for the remote
batch API and the registry lives in a temp directory. Each pass builds a
fresh registry object, so nothing but the directory carries state between
invocations.
"""

from __future__ import annotations

import json
import shutil
from pathlib import Path

import pytest

from docbatch.batch.errors import PermanentRemoteError, SubmissionError
from docbatch.batch.manager import BatchLifecycleManager
from docbatch.batch.models import JobState
from docbatch.batch.registry import JsonBatchRegistry
from docbatch.batch.submitter import BatchSubmitter
from docbatch.llm.adapters.mock_batch import MockBatchClient
from docbatch.llm.models import RemoteResult
from docbatch.source.filesystem_provider import FilesystemSourceProvider
from docbatch.storage.local_doc_writer import LocalDocWriter

DOC = "/** documented */\n"


def _documenting(row: dict) -> RemoteResult:
    prompt = row["body"]["messages"][-1]["content"]
    return RemoteResult(
        custom_id=row["custom_id"], text=DOC + prompt.split("Code to document:\n", 1)[-1]
    )


def _line_only(row: dict) -> RemoteResult:
    """Result that carries no custom_id, only the payload line it answers."""
    documented = _documenting(row)
    line = int(row["custom_id"].rsplit("-", 1)[1])
    return RemoteResult(line_number=line, text=documented.text)


async def _submit(client, settings, package_dir) -> list:
    registry = JsonBatchRegistry(settings.batch_root_path)
    provider = FilesystemSourceProvider(package_dir, settings)
    return await BatchSubmitter(client, registry, settings, source_provider=provider).submit_package()


async def _process(client, settings, writer=None, **kwargs):
    registry = JsonBatchRegistry(settings.batch_root_path)
    manager = BatchLifecycleManager(
        registry, client, writer or LocalDocWriter(check_commit=False), settings, **kwargs
    )
    return await manager.run_pass()


def _documented(package_dir: Path, name: str, sources: dict[str, str]) -> bool:
    return (package_dir / name).read_text() == DOC + sources[name]


class TestLineOrderReconciliation:
    @pytest.mark.asyncio
    async def test_three_files_joined_by_payload_line(self, settings, sample_sources, package_dir):
        client = MockBatchClient(responder=_line_only)
        real_fetch = client.fetch_results

        async def reversed_fetch(batch_id):
            return list(reversed(await real_fetch(batch_id)))

        client.fetch_results = reversed_fetch
        await _submit(client, settings, package_dir)

        report = await _process(client, settings)

        outcomes = report.jobs[0].reconcile.outcomes
        assert [o.status for o in outcomes] == ["applied"] * 3
        assert {o.matched_by for o in outcomes} == {"file_path_id"}
        for name in sample_sources:
            assert _documented(package_dir, name, sample_sources), name

    @pytest.mark.asyncio
    async def test_falls_back_to_index_without_payload(self, settings, sample_sources, package_dir):
        client = MockBatchClient(responder=_line_only)
        [job] = await _submit(client, settings, package_dir)
        (settings.batch_root_path / f"payload-{job.batch_id}.jsonl").unlink()

        report = await _process(client, settings)

        outcomes = report.jobs[0].reconcile.outcomes
        assert {o.matched_by for o in outcomes} == {"file_path_index"}
        for name in sample_sources:
            assert _documented(package_dir, name, sample_sources), name


class TestAcrossInvocations:
    @pytest.mark.asyncio
    async def test_pending_processing_completed(self, settings, sample_sources, package_dir):
        client = MockBatchClient(
            script=[JobState.PENDING, JobState.PROCESSING, JobState.COMPLETED],
            responder=_documenting,
        )
        [job] = await _submit(client, settings, package_dir)

        states = []
        for _ in range(3):
            report = await _process(client, settings)
            states.append(report.jobs[0].state)

        assert states == [JobState.PENDING, JobState.PROCESSING, JobState.COMPLETED]
        assert JsonBatchRegistry(settings.batch_root_path).list_active() == []
        assert all(_documented(package_dir, name, sample_sources) for name in sample_sources)
        log = json.loads((package_dir / ".docbatchrc.json").read_text())
        assert log["runs"][0]["batch_id"] == job.batch_id
        assert log["runs"][0]["doc_blocks_added"] == 3

    @pytest.mark.asyncio
    async def test_permanent_failure_is_quarantined(self, settings, sample_sources, package_dir):
        client = MockBatchClient(
            script=[JobState.PENDING, JobState.PROCESSING, JobState.FAILED],
            error_code="invalid_request",
        )
        [job] = await _submit(client, settings, package_dir)

        actions = [(await _process(client, settings)).jobs[0].action for _ in range(3)]

        assert actions == ["none", "none", "quarantined"]
        registry = JsonBatchRegistry(settings.batch_root_path)
        assert registry.list_active() == []
        assert [j.batch_id for j in registry.list_quarantined()] == [job.batch_id]
        assert (settings.batch_root_path / "failed" / f"payload-{job.batch_id}.jsonl").exists()
        assert (package_dir / "a.ts").read_text() == sample_sources["a.ts"]

        # Quarantined jobs are not polled again
        assert (await _process(client, settings)).total == 0


class TestPartialFailures:
    @pytest.mark.asyncio
    async def test_changed_file_is_a_conflict(self, settings, sample_sources, package_dir):
        client = MockBatchClient(responder=_documenting)
        await _submit(client, settings, package_dir)
        (package_dir / "b.ts").write_text("export const beta = 2;\n")

        report = await _process(client, settings)

        reconcile = report.jobs[0].reconcile
        assert [(o.file_path, o.status) for o in reconcile.outcomes] == [
            ("a.ts", "applied"), ("b.ts", "failed"), ("c.ts", "applied"),
        ]
        assert reconcile.failed[0].error_kind == "write_conflict"
        assert (package_dir / "b.ts").read_text() == "export const beta = 2;\n"
        assert JsonBatchRegistry(settings.batch_root_path).list_active() == []

    @pytest.mark.asyncio
    async def test_remote_item_error(self, settings, sample_sources, package_dir):
        def responder(row):
            if row["custom_id"] == "request-2-1":
                return RemoteResult(custom_id=row["custom_id"], error="context_length_exceeded")
            return _documenting(row)

        client = MockBatchClient(responder=responder)
        await _submit(client, settings, package_dir)

        reconcile = (await _process(client, settings)).jobs[0].reconcile

        assert [o.error_kind for o in reconcile.failed] == ["remote_error"]
        assert (package_dir / "b.ts").read_text() == sample_sources["b.ts"]
        assert _documented(package_dir, "a.ts", sample_sources)

    @pytest.mark.asyncio
    async def test_test_mode_limits_files(self, settings, sample_sources, package_dir):
        client = MockBatchClient(responder=_documenting)
        await _submit(client, settings, package_dir)

        reconcile = (await _process(client, settings, max_files=1)).jobs[0].reconcile

        assert len(reconcile.applied) == 1
        assert [o.error_kind for o in reconcile.failed] == ["skipped", "skipped"]
        assert _documented(package_dir, "a.ts", sample_sources)
        assert (package_dir / "c.ts").read_text() == sample_sources["c.ts"]


class TestRelocatedRepository:
    @pytest.mark.asyncio
    async def test_absolute_repo_path(self, settings, sample_sources, package_dir, tmp_path):
        client = MockBatchClient(responder=_documenting)
        await _submit(client, settings, package_dir)
        moved = tmp_path / "elsewhere" / "pkg"
        shutil.copytree(package_dir, moved)

        await _process(client, settings, repo_path=moved)

        assert all(_documented(moved, name, sample_sources) for name in sample_sources)
        assert (package_dir / "a.ts").read_text() == sample_sources["a.ts"]

    @pytest.mark.asyncio
    async def test_relative_repo_path_joins_package_name(
        self, settings, sample_sources, package_dir, tmp_path, monkeypatch
    ):
        client = MockBatchClient(responder=_documenting)
        await _submit(client, settings, package_dir)
        shutil.copytree(package_dir, tmp_path / "checkout" / "pkg")
        monkeypatch.chdir(tmp_path)

        await _process(client, settings, repo_path="checkout")

        assert _documented(tmp_path / "checkout" / "pkg", "a.ts", sample_sources)


class TestSubmission:
    @pytest.mark.asyncio
    async def test_failed_chunk_persists_nothing_for_it(self, settings, sample_sources, package_dir):
        settings = settings.model_copy(update={"batch_size": 2})
        client = MockBatchClient()
        real_submit = client.submit
        calls = 0

        async def flaky_submit(payload):
            nonlocal calls
            calls += 1
            if calls == 2:
                raise PermanentRemoteError("invalid input file", "mock", error_code="400")
            return await real_submit(payload)

        client.submit = flaky_submit

        with pytest.raises(SubmissionError):
            await _submit(client, settings, package_dir)

        [job] = JsonBatchRegistry(settings.batch_root_path).list_active()
        assert [i.file_path for i in job.items] == ["a.ts", "b.ts"]
        assert len(list(settings.batch_root_path.glob("payload-*"))) == 1


class TestCommitCheck:
    @pytest.mark.git
    @pytest.mark.asyncio
    async def test_uncommitted_change_conflicts(self, settings, sample_sources, git_package, git):
        client = MockBatchClient(responder=_documenting)
        [job] = await _submit(client, settings, git_package)
        assert job.items[0].commit_hash == git(git_package, "rev-parse", "HEAD")

        # Records without content hashes fall back to the git check
        registry = JsonBatchRegistry(settings.batch_root_path)
        legacy = job.model_copy(
            update={"items": [i.model_copy(update={"content_hash": None}) for i in job.items]}
        )
        registry.persist(legacy)
        (git_package / "a.ts").write_text("export const changed = true;\n")

        report = await _process(client, settings, writer=LocalDocWriter(check_commit=True))

        reconcile = report.jobs[0].reconcile
        assert [o.status for o in reconcile.outcomes] == ["failed", "applied", "applied"]
        assert reconcile.failed[0].error_kind == "write_conflict"
        assert _documented(git_package, "b.ts", sample_sources)
