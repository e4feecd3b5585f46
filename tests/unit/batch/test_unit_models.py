# tests/unit/batch/test_unit_models.py - v2
"""Tests for batch/models.py: record validation and report helpers."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from docbatch.batch.models import (
    RECORD_SCHEMA_VERSION,
    BatchItem,
    BatchJob,
    ItemOutcome,
    JobReport,
    JobState,
    PassReport,
    ReconcileReport,
)


class TestBatchJob:
    def test_defaults(self):
        job = BatchJob(batch_id="b1", package_path="/repo/pkg")
        assert job.schema_version == RECORD_SCHEMA_VERSION
        assert job.items == []
        assert job.created_at.tzinfo is not None

    def test_package_name(self):
        job = BatchJob(batch_id="b1", package_path="/repo/packages/ui")
        assert job.package_name == "ui"

    def test_age(self):
        created = datetime(2026, 1, 1, tzinfo=timezone.utc)
        job = BatchJob(batch_id="b1", package_path="p", created_at=created)
        assert job.age(created + timedelta(hours=3)) == timedelta(hours=3)

    def test_naive_timestamp_becomes_utc(self):
        job = BatchJob(batch_id="b1", package_path="p", created_at=datetime(2026, 1, 1))
        assert job.created_at.tzinfo == timezone.utc

    def test_duplicate_request_ids_rejected(self):
        items = [
            BatchItem(request_id=1, file_path="a.ts"),
            BatchItem(request_id=1, file_path="b.ts"),
        ]
        with pytest.raises(ValueError, match="duplicate request_id"):
            BatchJob(batch_id="b1", package_path="p", items=items)

    def test_unknown_schema_version_rejected(self):
        with pytest.raises(ValueError, match="schema_version"):
            BatchJob(batch_id="b1", package_path="p", schema_version=99)

    @pytest.mark.parametrize("bad", ["", "../x", "a/b"])
    def test_batch_id_must_be_a_plain_name(self, bad):
        with pytest.raises(ValueError):
            BatchJob(batch_id=bad, package_path="p")

    def test_json_round_trip(self):
        job = BatchJob(
            batch_id="b1",
            package_path="/repo/pkg",
            items=[BatchItem(request_id=1, file_path="a.ts", file_path_index=0, is_entry_point=True)],
        )
        assert BatchJob.model_validate_json(job.model_dump_json()) == job


class TestReports:
    def test_reconcile_report_partitions(self):
        report = ReconcileReport(
            batch_id="b1",
            outcomes=[
                ItemOutcome(request_id=1, file_path="a.ts", status="applied", blocks_added=2),
                ItemOutcome(request_id=2, file_path="b.ts", status="failed", error_kind="missing_result"),
                ItemOutcome(request_id=3, file_path="c.ts", status="applied", blocks_added=1),
            ],
        )
        assert [o.file_path for o in report.applied] == ["a.ts", "c.ts"]
        assert [o.file_path for o in report.failed] == ["b.ts"]
        assert report.blocks_added == 3

    def test_pass_report_counts(self):
        report = PassReport(
            jobs=[
                JobReport(batch_id="1", package_name="p", item_count=1, age_hours=0, state=JobState.PENDING),
                JobReport(batch_id="2", package_name="p", item_count=1, age_hours=0, state=JobState.PENDING),
                JobReport(batch_id="3", package_name="p", item_count=1, age_hours=0, state=None, action="left_active"),
            ]
        )
        assert report.total == 3
        assert report.count(JobState.PENDING) == 2
        assert report.count(None) == 1
        assert report.count_action("left_active") == 1
