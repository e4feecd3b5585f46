# tests/integration/storage/test_int_registry_durability.py - v1
"""Registry durability across process restarts and interrupted writes.

Filesystem only. A fresh JsonBatchRegistry on the same root stands in for a
new process.
"""

from __future__ import annotations

import os
from unittest.mock import patch

import pytest

from docbatch.batch.errors import RegistryError
from docbatch.batch.registry import JsonBatchRegistry


class TestRestart:
    def test_records_survive_new_instance(self, settings, sample_job):
        JsonBatchRegistry(settings.batch_root_path).persist(sample_job, payload="p")
        reopened = JsonBatchRegistry(settings.batch_root_path)
        assert reopened.list_active() == [sample_job]
        assert reopened.load_payload(sample_job.batch_id) == "p"

    def test_quarantine_survives_new_instance(self, settings, sample_job):
        first = JsonBatchRegistry(settings.batch_root_path)
        first.persist(sample_job)
        first.quarantine(sample_job.batch_id)
        reopened = JsonBatchRegistry(settings.batch_root_path)
        assert reopened.list_active() == []
        assert reopened.list_quarantined() == [sample_job]

    def test_archive_keeps_processed_jobs(self, settings, sample_job):
        registry = JsonBatchRegistry(settings.batch_root_path, archive_processed=True)
        registry.persist(sample_job, payload="p")
        registry.remove(sample_job.batch_id)
        processed = settings.batch_root_path / "processed"
        assert (processed / f"items-{sample_job.batch_id}.json").exists()
        assert (processed / f"payload-{sample_job.batch_id}.jsonl").exists()
        assert registry.list_active() == []


class TestInterruptedWrites:
    def test_failed_record_write_publishes_nothing(self, settings, sample_job):
        registry = JsonBatchRegistry(settings.batch_root_path)
        real_replace = os.replace

        def fail_on_record(src, dst):
            if str(dst).endswith(f"items-{sample_job.batch_id}.json"):
                raise OSError("disk full")
            return real_replace(src, dst)

        with patch("docbatch.storage.atomic.os.replace", side_effect=fail_on_record):
            with pytest.raises(RegistryError):
                registry.persist(sample_job, payload="p")

        reopened = JsonBatchRegistry(settings.batch_root_path)
        assert reopened.list_active() == []
        assert reopened.last_corrupt == []
        assert not any(p.name.endswith(".tmp") for p in settings.batch_root_path.iterdir())

    def test_overwrite_is_all_or_nothing(self, settings, sample_job):
        registry = JsonBatchRegistry(settings.batch_root_path)
        registry.persist(sample_job)
        changed = sample_job.model_copy(update={"model": "other-model"})

        with patch("docbatch.storage.atomic.os.replace", side_effect=OSError("crash")):
            with pytest.raises(RegistryError):
                registry.persist(changed)

        assert JsonBatchRegistry(settings.batch_root_path).get(sample_job.batch_id) == sample_job

    def test_stray_temp_files_are_ignored(self, settings, sample_job):
        registry = JsonBatchRegistry(settings.batch_root_path)
        registry.persist(sample_job)
        (settings.batch_root_path / f".items-{sample_job.batch_id}.json.999.tmp").write_text("{")
        assert registry.list_active() == [sample_job]
        assert registry.last_corrupt == []


class TestCorruptRecords:
    def test_corrupt_records_do_not_hide_valid_ones(self, settings, sample_job):
        registry = JsonBatchRegistry(settings.batch_root_path)
        registry.persist(sample_job)
        root = settings.batch_root_path
        (root / "items-truncated.json").write_text('{"schema_version": 1, "batch_id": "trun')
        (root / "items-legacy.json").write_text('[{"filePath": "a.ts"}]')

        jobs = registry.list_active()

        assert jobs == [sample_job]
        assert sorted(os.path.basename(c.path) for c in registry.last_corrupt) == [
            "items-legacy.json",
            "items-truncated.json",
        ]
        # Corrupt records are reported, never deleted
        assert (root / "items-truncated.json").exists()
