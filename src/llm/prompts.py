# src/llm/prompts.py - v1
"""Documentation prompts and LLM response cleaning."""

from __future__ import annotations

import logging
import re
from pathlib import PurePosixPath

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a senior engineer who writes precise, concise API documentation. "
    "You only add or edit documentation comments and never change code."
)

_JS_RULES = """\
Add JSDoc comments to this TypeScript/JavaScript code.

Placement:
- Document at the highest useful scope: modules, interfaces, types, classes, components, functions.
- Use /** ... */ blocks only. Inline comments only for genuinely obscure logic.
- Add @typedef tags for non-trivial object shapes.

Content:
- Interfaces and types: purpose and properties.
- Classes and components: responsibility, props or methods, state and effects.
- Functions: purpose, @param for every parameter, @returns, notable side effects.
- React components: @description, props via @param props.name, @returns, at least one @example.
"""

_PY_RULES = """\
Add docstrings to this Python code.

Placement:
- Module docstring at the top, then classes, public methods and functions.
- Use triple-quoted docstrings only. Inline comments only for genuinely obscure logic.

Content:
- Classes: responsibility and important attributes.
- Functions: purpose, Args, Returns and Raises sections where they apply.
"""

_RESPONSE_RULES = """\
Response format:
- Return ONLY the documented code, complete, with no explanation.
- Do not wrap the code in markdown fences.
- Do not change the code structure, only add or modify comments.
"""

_ENTRY_POINT_JS = (
    "This file IS the package entry point: add a @packageDocumentation block at the "
    "top describing the package's purpose and main capabilities."
)
_NOT_ENTRY_POINT_JS = (
    "This file is NOT the package entry point: do NOT add a @packageDocumentation tag."
)
_ENTRY_POINT_PY = (
    "This file IS the package entry point: its module docstring must describe the "
    "package's purpose and main capabilities."
)
_NOT_ENTRY_POINT_PY = "This file is NOT the package entry point."

_FENCE_OPEN_RE = re.compile(
    r"^```(?:typescript|javascript|tsx|jsx|ts|js|python|py)?[ \t]*\n", re.MULTILINE
)
_FENCE_CLOSE_RE = re.compile(r"\n```[ \t]*$", re.MULTILINE)


def is_python_file(file_path: str) -> bool:
    return PurePosixPath(file_path).suffix.lower() in (".py", ".pyi")


def build_doc_prompt(code: str, file_path: str, is_entry_point: bool) -> str:
    """Build the user prompt asking the model to document one file."""
    if is_python_file(file_path):
        rules = _PY_RULES
        entry = _ENTRY_POINT_PY if is_entry_point else _NOT_ENTRY_POINT_PY
    else:
        rules = _JS_RULES
        entry = _ENTRY_POINT_JS if is_entry_point else _NOT_ENTRY_POINT_JS

    return (
        f"{rules}\n{_RESPONSE_RULES}\n"
        f"File: {file_path}\n{entry}\n\n"
        f"Code to document:\n{code}"
    )


def clean_llm_response(response: str) -> str:
    """Strip a surrounding markdown code fence from a model response.

    Falls back to the raw response when cleaning would drop more than half of
    its content.
    """
    cleaned = _FENCE_OPEN_RE.sub("", response, count=1)
    cleaned = _FENCE_CLOSE_RE.sub("", cleaned, count=1)
    if len(cleaned.strip()) < len(response.strip()) / 2:
        logger.warning("Response cleaning would drop most of the content, keeping original")
        return response
    return cleaned
