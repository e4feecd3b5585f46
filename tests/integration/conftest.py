# tests/integration/conftest.py - v8
"""Shared fixtures for integration tests.

Everything runs against the local filesystem and the in-process mock batch
backend. Tests marked ``git`` need a git binary and are skipped without one.
"""

from __future__ import annotations

import shutil
import subprocess
from pathlib import Path

import pytest


def pytest_configure(config):
    config.addinivalue_line("markers", "git: marks tests requiring the git CLI")


def _git(repo: Path, *args: str) -> str:
    result = subprocess.run(
        ["git", *args], cwd=repo, capture_output=True, text=True, check=True
    )
    return result.stdout.strip()


@pytest.fixture
def git_package(package_dir: Path) -> Path:
    """The sample package committed into a fresh git repository."""
    if shutil.which("git") is None:
        pytest.skip("git not installed")
    _git(package_dir, "init", "-q")
    _git(package_dir, "config", "user.email", "ci@example.com")
    _git(package_dir, "config", "user.name", "CI")
    _git(package_dir, "config", "commit.gpgsign", "false")
    _git(package_dir, "add", ".")
    _git(package_dir, "commit", "-q", "-m", "initial")
    return package_dir


@pytest.fixture
def git():
    """Run git in a repository and return stdout."""
    return _git
