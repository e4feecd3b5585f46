# tests/unit/logging/test_unit_context.py - v2
"""Tests for logging/context.py: batch-scoped logging variables."""

from __future__ import annotations

from docbatch.logging.context import (
    batch_context,
    clear_context,
    get_context,
    set_batch_context,
    set_step,
)


class TestLogContext:
    def setup_method(self):
        clear_context()

    def teardown_method(self):
        clear_context()

    def test_initial_state(self):
        ctx = get_context()
        assert ctx.batch_id is None
        assert ctx.package is None
        assert ctx.step is None

    def test_set_batch_context(self):
        set_batch_context("batch_1", "pkg")
        ctx = get_context()
        assert ctx.batch_id == "batch_1"
        assert ctx.package == "pkg"

    def test_set_step_with_file(self):
        set_step("reconcile", "src/a.ts")
        ctx = get_context()
        assert ctx.step == "reconcile"
        assert ctx.file_path == "src/a.ts"

    def test_as_dict_filters_none(self):
        set_batch_context("batch_1")
        d = get_context().as_dict()
        assert d == {"batch_id": "batch_1"}

    def test_batch_context_restores_previous(self):
        set_batch_context("outer", "pkg_outer")
        with batch_context("inner", "pkg_inner", step="poll"):
            ctx = get_context()
            assert ctx.batch_id == "inner"
            assert ctx.step == "poll"
        ctx = get_context()
        assert ctx.batch_id == "outer"
        assert ctx.package == "pkg_outer"
        assert ctx.step is None

    def test_clear(self):
        set_batch_context("batch_1", "pkg")
        set_step("poll")
        clear_context()
        assert get_context().as_dict() == {}
