"""Name -> external id lookups for trigger metrics and lists."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable

from flowwright.utils.retry import DEFAULT_RETRYABLE, RetryOptions, with_retry

logger = logging.getLogger(__name__)

Loader = Callable[[], Awaitable[list[dict[str, Any]]]]


class NameDirectory:
    """
    Read-through cache over a full listing of named remote resources.

    The listing is fetched on first lookup and kept for the lifetime of the
    instance. A failed load is not cached, so the next lookup tries again.
    With ``retry`` set, each load goes through :func:`with_retry`.
    """

    def __init__(
        self,
        loader: Loader,
        kind: str = "resource",
        *,
        retry: RetryOptions | None = None,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    ) -> None:
        self._loader = loader
        self._kind = kind
        self._retry = retry
        self._sleep = sleep
        self._ids: dict[str, str] = {}
        self._loaded = False
        self._lock = asyncio.Lock()

    @property
    def loaded(self) -> bool:
        return self._loaded

    async def _load(self) -> list[dict[str, Any]]:
        if self._retry is None:
            return await self._loader()
        return await with_retry(
            self._loader, f"Load account {self._kind}s", self._retry, sleep=self._sleep
        )

    async def _ensure_loaded(self) -> None:
        async with self._lock:
            if self._loaded:
                return
            logger.info("Loading account %ss...", self._kind)
            entries = await self._load()
            for entry in entries:
                name, entry_id = entry.get("name"), entry.get("id")
                if name and entry_id:
                    self._ids.setdefault(name, entry_id)
            self._loaded = True
            logger.info("Loaded %d %ss from account.", len(self._ids), self._kind)

    async def names(self) -> list[str]:
        await self._ensure_loaded()
        return list(self._ids)

    async def find_by_name(self, name: str) -> str | None:
        """Exact match first, then case-insensitive substring match either way."""
        await self._ensure_loaded()
        if name in self._ids:
            return self._ids[name]
        lower = name.lower()
        if not lower:
            return None
        for candidate, candidate_id in self._ids.items():
            cand = candidate.lower()
            if lower in cand or cand in lower:
                logger.info('Fuzzy matched "%s" to "%s" (%s)', name, candidate, candidate_id)
                return candidate_id
        logger.warning('%s "%s" not found.', self._kind.capitalize(), name)
        return None


class TriggerDirectory:
    """Metric and list lookups used to resolve trigger names."""

    def __init__(self, metrics: NameDirectory, lists: NameDirectory) -> None:
        self.metrics = metrics
        self.lists = lists

    @classmethod
    def from_client(
        cls,
        client: Any,
        *,
        retry: RetryOptions | None = None,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    ) -> TriggerDirectory:
        retry = retry or RetryOptions(retryable_errors=DEFAULT_RETRYABLE)
        return cls(
            metrics=NameDirectory(client.get_all_metrics, kind="metric", retry=retry, sleep=sleep),
            lists=NameDirectory(client.get_all_lists, kind="list", retry=retry, sleep=sleep),
        )

    async def find_metric(self, name: str) -> str | None:
        return await self.metrics.find_by_name(name)

    async def find_list(self, name: str) -> str | None:
        return await self.lists.find_by_name(name)
