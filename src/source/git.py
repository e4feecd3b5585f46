# src/source/git.py - v1
"""Thin wrappers over the git CLI. Every helper returns None outside a repository."""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path

logger = logging.getLogger(__name__)

_GIT_TIMEOUT_S = 15


def _run_git(args: list[str], cwd: Path) -> subprocess.CompletedProcess[str] | None:
    try:
        return subprocess.run(  # noqa: S603
            ["git", *args],  # noqa: S607
            cwd=str(cwd),
            capture_output=True,
            text=True,
            timeout=_GIT_TIMEOUT_S,
            check=False,
        )
    except (OSError, subprocess.TimeoutExpired) as e:
        logger.debug("git %s unavailable in %s: %s", " ".join(args), cwd, e)
        return None


def head_commit(path: Path) -> str | None:
    """Return ``git rev-parse HEAD`` for the repository containing path."""
    result = _run_git(["rev-parse", "HEAD"], path)
    if result is None or result.returncode != 0:
        return None
    commit = result.stdout.strip()
    return commit or None


def file_changed_since(repo_path: Path, commit: str, relative_path: str) -> bool | None:
    """Whether a file differs from its state at ``commit``.

    Returns True or False, or None when git cannot answer (no repo,
    unknown commit).
    """
    result = _run_git(["diff", "--quiet", commit, "--", relative_path], repo_path)
    if result is None:
        return None
    if result.returncode == 0:
        return False
    if result.returncode == 1:
        return True
    logger.debug("git diff failed for %s@%s: %s", relative_path, commit, result.stderr.strip())
    return None
