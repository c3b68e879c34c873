"""Retry with exponential backoff for calls against unreliable collaborators."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Sequence, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Error kinds retried against the remote service by default.
DEFAULT_RETRYABLE = ("rate-limited", "network-error", "server-error")


@dataclass(frozen=True)
class RetryOptions:
    max_attempts: int = 3
    base_delay: float = 1.0  # seconds
    backoff_factor: float = 2.0
    max_delay: float = 15.0
    retryable_errors: Sequence[str] | None = None

    def delay_after(self, attempt: int) -> float:
        """Delay before attempt ``attempt + 1`` (attempts are 1-based)."""
        return min(self.base_delay * self.backoff_factor ** (attempt - 1), self.max_delay)


def is_retryable(error: BaseException, patterns: Sequence[str] | None) -> bool:
    """Match ``error`` by message, class name or ``kind`` attribute."""
    if not patterns:
        return True
    message = str(error)
    name = type(error).__name__
    kind = str(getattr(error, "kind", "") or "")
    return any(p in message or p in name or (kind and p in kind) for p in patterns)


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    label: str,
    options: RetryOptions | None = None,
    *,
    sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
) -> T:
    """
    Await ``operation()`` up to ``options.max_attempts`` times.

    A non-matching error (when ``retryable_errors`` is set) is raised
    immediately. When attempts run out the last error is re-raised with a
    note naming ``label``.
    """
    opts = options or RetryOptions()
    attempts = max(1, opts.max_attempts)
    for attempt in range(1, attempts + 1):
        try:
            result = await operation()
        except Exception as exc:
            if not is_retryable(exc, opts.retryable_errors):
                logger.error("%s failed with non-retryable error: %s", label, exc)
                exc.add_note(f"{label}: non-retryable failure on attempt {attempt}")
                raise
            if attempt >= attempts:
                logger.error("%s failed after %d attempts: %s", label, attempts, exc)
                exc.add_note(f"{label}: failed after {attempts} attempt(s)")
                raise
            delay = opts.delay_after(attempt)
            logger.warning(
                "%s failed (attempt %d/%d): %s. Retrying in %.2fs...",
                label,
                attempt,
                attempts,
                exc,
                delay,
            )
            await sleep(delay)
            continue
        if attempt > 1:
            logger.info("%s succeeded on attempt %d", label, attempt)
        return result
    raise AssertionError("unreachable")  # pragma: no cover
