# src/storage/atomic.py - v1
"""Atomic file writes: write a sibling temp file, then os.replace over the target.

Readers either see the previous content or the complete new content, never a
partially written file.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any


def _tmp_path(path: Path) -> Path:
    return path.with_name(f".{path.name}.{os.getpid()}.tmp")


def atomic_write_text(path: Path, content: str, encoding: str = "utf-8") -> None:
    """Write text to path atomically."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = _tmp_path(path)
    try:
        with open(tmp, "w", encoding=encoding) as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp, path)
    except BaseException:
        if tmp.exists():
            tmp.unlink()
        raise


def atomic_write_json(path: Path, data: Any, indent: int = 2) -> None:
    """Serialise data as JSON and write it atomically."""
    atomic_write_text(path, json.dumps(data, indent=indent, default=str))
