# src/batch/payload.py - v1
"""Build batch items and provider requests from source files.

Request ids start at 1 within a job; file_path_index is the 0-based position
of the file in the chunk, which is also its line number in the payload.
"""

from __future__ import annotations

import json
import re

from docbatch.batch.identity import file_path_id, make_custom_id
from docbatch.batch.models import BatchItem
from docbatch.config.settings import Settings
from docbatch.llm.models import BatchRequest, Message
from docbatch.llm.prompts import SYSTEM_PROMPT, build_doc_prompt
from docbatch.source.models import SourceFile

_FILE_LINE_RE = re.compile(r"^File: (.+)$", re.MULTILINE)


def build_items(sources: list[SourceFile]) -> list[BatchItem]:
    """Assign request ids, indices and stable ids to an ordered chunk."""
    return [
        BatchItem(
            request_id=index + 1,
            file_path=src.relative_path,
            file_path_id=file_path_id(src.relative_path),
            file_path_index=index,
            is_entry_point=src.is_entry_point,
            commit_hash=src.commit_hash,
            content_hash=src.content_hash,
        )
        for index, src in enumerate(sources)
    ]


def build_requests(
    items: list[BatchItem],
    sources: list[SourceFile],
    settings: Settings,
    model: str | None = None,
) -> list[BatchRequest]:
    """One documentation request per item, in item order."""
    if len(items) != len(sources):
        raise ValueError("items and sources must align one-to-one")

    requests: list[BatchRequest] = []
    for item, src in zip(items, sources):
        prompt = build_doc_prompt(src.content, item.file_path, item.is_entry_point)
        requests.append(
            BatchRequest(
                custom_id=make_custom_id(item.request_id, item.file_path_index or 0),
                messages=[Message(role="user", content=prompt)],
                model=model or settings.batch_model,
                max_tokens=settings.batch_max_tokens,
                temperature=settings.batch_temperature,
                system=SYSTEM_PROMPT,
            )
        )
    return requests


def payload_file_paths(payload: str | None) -> list[str | None]:
    """Recover the submitted file path of every payload line, in line order.

    Lines that cannot be parsed, or whose prompt names no file, yield None.
    """
    if not payload:
        return []
    paths: list[str | None] = []
    for line in payload.splitlines():
        if not line.strip():
            continue
        try:
            row = json.loads(line)
        except json.JSONDecodeError:
            paths.append(None)
            continue
        paths.append(_file_path_from_row(row))
    return paths


def _file_path_from_row(row: object) -> str | None:
    if not isinstance(row, dict):
        return None
    # openai: body.messages, anthropic: params.messages
    body = row.get("body") or row.get("params") or {}
    messages = body.get("messages") if isinstance(body, dict) else None
    for message in messages or []:
        content = message.get("content") if isinstance(message, dict) else None
        if isinstance(content, str):
            match = _FILE_LINE_RE.search(content)
            if match:
                return match.group(1).strip()
    return None


def chunked(sources: list[SourceFile], size: int) -> list[list[SourceFile]]:
    """Split sources into consecutive chunks of at most ``size``."""
    if size < 1:
        raise ValueError("chunk size must be >= 1")
    return [sources[i : i + size] for i in range(0, len(sources), size)]
