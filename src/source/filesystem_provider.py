# src/source/filesystem_provider.py - v1
"""Filesystem Source Provider: walk a package directory for source files.

Files are returned sorted by normalised repo-relative path. That order is
the deterministic ordering that file_path_index refers to.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path, PurePosixPath
from typing import TYPE_CHECKING

from docbatch.batch.identity import content_hash, normalize_path
from docbatch.source import git
from docbatch.source.base_source_provider import BaseSourceProvider
from docbatch.source.models import SourceFile

if TYPE_CHECKING:
    from docbatch.config.settings import Settings

logger = logging.getLogger(__name__)

DEFAULT_EXTENSIONS = (".js", ".jsx", ".ts", ".tsx", ".py")
DEFAULT_IGNORE_DIRS = ("node_modules", "dist", "build", ".git", "__pycache__", ".venv")

_ENTRY_STEMS = {"index", "main"}
_PY_ENTRY_NAMES = {"__init__.py", "__main__.py", "main.py"}
_PACKAGE_JSON_FIELDS = ("main", "module", "types", "typings")


class FilesystemSourceProvider(BaseSourceProvider):
    """Discover documentable files under a package directory."""

    def __init__(self, package_path: Path, settings: Settings | None = None) -> None:
        self._root = Path(package_path).expanduser().resolve()
        if settings is not None:
            self._extensions = tuple(settings.source_extensions_list)
            self._ignore_dirs = frozenset(settings.source_ignore_dirs_list)
        else:
            self._extensions = DEFAULT_EXTENSIONS
            self._ignore_dirs = frozenset(DEFAULT_IGNORE_DIRS)
        self._declared_entries: set[str] | None = None

    @property
    def package_path(self) -> Path:
        return self._root

    def current_commit(self) -> str | None:
        return git.head_commit(self._root)

    def list_sources(self, max_files: int = 0) -> list[SourceFile]:
        if not self._root.is_dir():
            raise ValueError(f"Package path is not a directory: {self._root}")

        commit = self.current_commit()
        sources: list[SourceFile] = []
        for rel in self._discover():
            path = self._root / rel
            try:
                raw = path.read_bytes()
            except OSError as e:
                logger.warning("Skipping unreadable file %s: %s", rel, e)
                continue
            sources.append(
                SourceFile(
                    relative_path=rel,
                    content=raw.decode("utf-8", errors="replace"),
                    content_hash=content_hash(raw),
                    is_entry_point=self.is_entry_point(rel),
                    commit_hash=commit,
                    size_bytes=len(raw),
                )
            )

        if max_files and len(sources) > max_files:
            sources = _prioritize_entry_points(sources, max_files)

        logger.info(
            "Found %d source files in %s (%d entry points)",
            len(sources), self._root, sum(1 for s in sources if s.is_entry_point),
        )
        return sources

    def is_entry_point(self, relative_path: str) -> bool:
        """Heuristic package entry point detection.

        index/main modules at the package root or directly under src/, Python
        package markers at those locations, or any file named by package.json.
        """
        rel = normalize_path(relative_path)
        posix = PurePosixPath(rel)
        parent = str(posix.parent)
        at_top = parent in (".", "", "src")

        if at_top and posix.stem in _ENTRY_STEMS and posix.suffix in (".ts", ".tsx", ".js", ".jsx"):
            return True
        if at_top and posix.name in _PY_ENTRY_NAMES:
            return True
        return rel in self._package_json_entries()

    # --- Internals ---

    def _discover(self) -> list[str]:
        found: list[str] = []
        for dirpath, dirnames, filenames in os.walk(self._root):
            # Prune in place so os.walk does not descend
            dirnames[:] = [d for d in dirnames if d not in self._ignore_dirs]
            for name in filenames:
                if not name.lower().endswith(self._extensions):
                    continue
                rel = os.path.relpath(os.path.join(dirpath, name), self._root)
                found.append(normalize_path(rel))
        return sorted(found)

    def _package_json_entries(self) -> set[str]:
        if self._declared_entries is not None:
            return self._declared_entries

        entries: set[str] = set()
        pkg_json = self._root / "package.json"
        if pkg_json.is_file():
            try:
                data = json.loads(pkg_json.read_text(encoding="utf-8"))
            except (OSError, json.JSONDecodeError) as e:
                logger.debug("Unreadable package.json in %s: %s", self._root, e)
                data = {}
            for field in _PACKAGE_JSON_FIELDS:
                value = data.get(field) if isinstance(data, dict) else None
                if isinstance(value, str) and value:
                    entries.add(normalize_path(value))
        self._declared_entries = entries
        return entries


def _prioritize_entry_points(sources: list[SourceFile], limit: int) -> list[SourceFile]:
    """Keep at most ``limit`` files, entry points first, preserving path order."""
    entries = [s for s in sources if s.is_entry_point]
    others = [s for s in sources if not s.is_entry_point]
    chosen = {s.relative_path for s in (entries + others)[:limit]}
    return [s for s in sources if s.relative_path in chosen]
