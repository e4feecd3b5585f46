# tests/unit/config/test_unit_settings.py - v2
"""Tests for config/settings.py: defaults, validation and helpers."""

from __future__ import annotations

from pathlib import Path

import pytest

from docbatch.config.settings import ConfigurationError, Settings, load_settings


class TestSettingsDefaults:
    def test_default_provider(self):
        s = Settings(_env_file=None)
        assert s.batch_provider == "openai"
        assert s.batch_model == "gpt-4o"

    def test_default_lifecycle(self):
        s = Settings(_env_file=None)
        assert s.batch_size == 10
        assert s.batch_max_age_hours == 0.0
        assert s.batch_archive_processed is False

    def test_no_api_key_needed_to_build(self):
        s = Settings(_env_file=None, openai_api_key="")
        assert s.api_key_for("openai") == ""


class TestSettingsValidation:
    def test_batch_size_must_be_positive(self):
        with pytest.raises(ValueError, match="batch_size"):
            Settings(_env_file=None, batch_size=0)

    def test_negative_max_age(self):
        with pytest.raises(ValueError):
            Settings(_env_file=None, batch_max_age_hours=-1)

    def test_negative_max_files(self):
        with pytest.raises(ConfigurationError, match="MAX_FILES_PER_PACKAGE"):
            Settings(_env_file=None, max_files_per_package=-1)

    def test_empty_extensions(self):
        with pytest.raises(ConfigurationError, match="SOURCE_EXTENSIONS"):
            Settings(_env_file=None, source_extensions=" , ")

    def test_unknown_provider(self):
        with pytest.raises(ValueError):
            Settings(_env_file=None, batch_provider="ollama")


class TestSettingsHelpers:
    def test_batch_root_expands_user(self):
        s = Settings(_env_file=None, batch_root=Path("~/x"))
        assert s.batch_root_path == Path.home() / "x"

    def test_extensions_normalized(self):
        s = Settings(_env_file=None, source_extensions="TS, .js,py")
        assert s.source_extensions_list == [".ts", ".js", ".py"]

    def test_ignore_dirs(self):
        s = Settings(_env_file=None, source_ignore_dirs="node_modules, dist")
        assert s.source_ignore_dirs_list == ["node_modules", "dist"]

    def test_api_key_for(self):
        s = Settings(_env_file=None, openai_api_key="sk-1", anthropic_api_key="ak-2")
        assert s.api_key_for("openai") == "sk-1"
        assert s.api_key_for("anthropic") == "ak-2"
        assert s.api_key_for("mock") == ""

    def test_load_settings_overrides(self, monkeypatch, tmp_path):
        monkeypatch.chdir(tmp_path)
        s = load_settings(batch_size=25)
        assert s.batch_size == 25
