# src/source/models.py - v1
"""Source file model handed from the Source Provider to the Submitter."""

from __future__ import annotations

from pydantic import BaseModel


class SourceFile(BaseModel):
    """A file pending documentation."""

    relative_path: str
    content: str
    content_hash: str
    is_entry_point: bool = False
    commit_hash: str | None = None
    size_bytes: int = 0
