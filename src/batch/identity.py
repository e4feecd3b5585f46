# src/batch/identity.py - v1
"""Stable identifiers for submitted files.

file_path_id depends only on the normalised repo-relative path, so it can be
recomputed from a payload line long after submission. content_hash pins the
exact bytes that were sent for documentation.
"""

from __future__ import annotations

import hashlib
import re
from pathlib import PurePosixPath

_CUSTOM_ID_RE = re.compile(r"^request-(\d+)-(\d+)$")
_TRAILING_INDEX_RE = re.compile(r"-(\d+)$")


def normalize_path(path: str) -> str:
    """Normalise a repo-relative path: forward slashes, no leading './'."""
    posix = PurePosixPath(path.replace("\\", "/"))
    parts = [p for p in posix.parts if p not in ("", ".")]
    return "/".join(parts)


def file_path_id(relative_path: str) -> str:
    """SHA-256 of the normalised repo-relative path."""
    return hashlib.sha256(normalize_path(relative_path).encode("utf-8")).hexdigest()


def content_hash(content: str | bytes) -> str:
    """SHA-256 of file content."""
    data = content.encode("utf-8") if isinstance(content, str) else content
    return hashlib.sha256(data).hexdigest()


def make_custom_id(request_id: int, index: int) -> str:
    return f"request-{request_id}-{index}"


def parse_custom_id(custom_id: str | None) -> tuple[int | None, int | None]:
    """Split a custom_id into (request_id, index).

    ``request-<request_id>-<index>`` yields both. Any other id ending in
    ``-<digits>`` yields only the trailing index. Anything else yields
    (None, None).
    """
    if not custom_id:
        return None, None
    match = _CUSTOM_ID_RE.match(custom_id)
    if match:
        return int(match.group(1)), int(match.group(2))
    trailing = _TRAILING_INDEX_RE.search(custom_id)
    if trailing:
        return None, int(trailing.group(1))
    return None, None
