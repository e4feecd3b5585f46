# src/llm/retry.py - v3
"""Retry policy with exponential backoff for remote batch API calls.

Only transient failures are retried. Exhausting the budget raises
RetryExhausted, which is itself transient: the job stays active for a later
pass.
"""

from __future__ import annotations

import asyncio
import logging
import random
import re
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from docbatch.batch.errors import PermanentRemoteError, TransientRemoteError

logger = logging.getLogger(__name__)

_TRANSIENT_MARKERS = (
    "rate limit",
    "rate_limit",
    "ratelimit",
    "timeout",
    "timed out",
    "temporarily",
    "overloaded",
    "connection",
    "network",
    "server error",
    "server_error",
    "unavailable",
)
_PERMANENT_MARKERS = (
    "unauthorized",
    "authentication",
    "permission",
    "invalid",
    "not found",
)
_RETRY_AFTER_RE = re.compile(r"retry[- ]after[:\s]+(\d+(?:\.\d+)?)", re.IGNORECASE)
# HTTP status codes in a message: whole numbers in a status context only
_CODE_PREFIX = r"(?:^|\(|\b(?:http|status|code|error)[\s:]*)"
_TRANSIENT_CODE_RE = re.compile(_CODE_PREFIX + r"(?:429|5\d\d)\b")
_PERMANENT_CODE_RE = re.compile(_CODE_PREFIX + r"(?:401|403|404|422)\b")


class RetryExhausted(TransientRemoteError):
    """All retries exhausted for a transient remote failure."""

    def __init__(self, operation: str, attempts: int, last_error: Exception):
        self.operation = operation
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            f"{operation} failed after {attempts} attempts: {last_error}",
            getattr(last_error, "provider", None),
        )


@dataclass(frozen=True)
class RetryConfig:
    """Backoff parameters for transient errors."""

    max_retries: int = 3
    base_delay_s: float = 2.0
    backoff_factor: float = 2.0
    max_delay_s: float = 60.0
    jitter: bool = True


DEFAULT_RETRY_CONFIG = RetryConfig()


def classify_error(error: Exception) -> str:
    """Classify an exception as "transient", "permanent" or "unknown"."""
    if isinstance(error, TransientRemoteError):
        return "transient"
    if isinstance(error, PermanentRemoteError):
        return "permanent"
    if isinstance(error, (asyncio.TimeoutError, ConnectionError)):
        return "transient"

    name = type(error).__name__.lower()
    if "timeout" in name or "connection" in name or "ratelimit" in name:
        return "transient"

    status = getattr(error, "status_code", None)
    if isinstance(status, int):
        if status == 429 or status >= 500:
            return "transient"
        if 400 <= status < 500:
            return "permanent"

    msg = str(error).lower()
    if any(marker in msg for marker in _TRANSIENT_MARKERS) or _TRANSIENT_CODE_RE.search(msg):
        return "transient"
    if any(marker in msg for marker in _PERMANENT_MARKERS) or _PERMANENT_CODE_RE.search(msg):
        return "permanent"
    return "unknown"


def extract_retry_after(message: str) -> float | None:
    """Pull a retry-after hint (seconds) out of an error message."""
    match = _RETRY_AFTER_RE.search(message)
    return float(match.group(1)) if match else None


def _compute_delay(config: RetryConfig, attempt: int, hint: float | None) -> float:
    """Delay for a given attempt (0-based). A server hint wins if larger."""
    delay = config.base_delay_s * (config.backoff_factor**attempt)
    if config.jitter:
        delay *= 0.5 + random.random()  # noqa: S311
    if hint is not None:
        delay = max(delay, hint)
    return min(delay, config.max_delay_s)


async def with_retry(
    fn: Callable[..., Awaitable[Any]],
    *args: Any,
    operation: str = "remote call",
    config: RetryConfig | None = None,
    **kwargs: Any,
) -> Any:
    """Execute an async call, retrying transient failures.

    Raises:
        RetryExhausted: If transient failures outlast the retry budget.
        Exception: Non-transient errors propagate unchanged on first sight.
    """
    cfg = config or DEFAULT_RETRY_CONFIG
    attempts = 0

    while True:
        try:
            return await fn(*args, **kwargs)
        except Exception as e:
            if classify_error(e) != "transient":
                raise
            attempts += 1
            if attempts > cfg.max_retries:
                raise RetryExhausted(operation, attempts, e) from e

            delay = _compute_delay(cfg, attempts - 1, getattr(e, "retry_after", None))
            logger.warning(
                "%s: transient error (attempt %d/%d), retrying in %.1fs: %s",
                operation, attempts, cfg.max_retries, delay, e,
            )
            await asyncio.sleep(delay)
