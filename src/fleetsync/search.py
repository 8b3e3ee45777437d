"""External toll search client.

Identical searches share one in-flight task: a second caller joins the
running task instead of issuing a duplicate request. Successful notice lists
are cached in the ``toll_search`` namespace under
:attr:`TollSearchRequest.cache_key`. The service applies the notice-number
and motorcycle inputs itself, so a narrowed search is cached under its own
key and never stands in for the plain plate search.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Protocol

from fleetsync._api.toll_search import search_toll_notices
from fleetsync._transport import Transport
from fleetsync.cache import MISSING, TwoTierCache
from fleetsync.ingestion.notices import normalize_notice
from fleetsync.models.search import (
    TollSearchRequest,
    TollSearchResult,
    TollSearchSuccess,
    TollSearchTotals,
)
from fleetsync.models.toll import TollNotice

_logger = logging.getLogger(__name__)

CACHE_NAMESPACE = "toll_search"
DEFAULT_SEARCH_TIMEOUT = 35.0


class TollSearchProvider(Protocol):
    async def search(self, request: TollSearchRequest) -> TollSearchResult:
        """Search the provider; failures come back as :class:`TollSearchFailure`."""
        ...


class HttpTollSearchClient:
    """Toll search over HTTP with in-flight sharing and result caching.

    Parameters
    ----------
    transport : Transport
        Transport rooted at the search service.
    cache : TwoTierCache or None
        Cache for successful notice lists. ``None`` disables caching.
    timeout : float
        Per-request timeout in seconds.
    """

    def __init__(
        self,
        transport: Transport,
        *,
        cache: TwoTierCache | None = None,
        timeout: float = DEFAULT_SEARCH_TIMEOUT,
    ) -> None:
        self._transport = transport
        self._cache = cache
        self._timeout = timeout
        self._in_flight: dict[str, asyncio.Task[TollSearchResult]] = {}

    @property
    def in_flight(self) -> int:
        return len(self._in_flight)

    async def search(self, request: TollSearchRequest) -> TollSearchResult:
        key = request.cache_key
        running = self._in_flight.get(key)
        if running is not None:
            _logger.info("Joining running toll search for %s", request.licence_plate)
            return await asyncio.shield(running)

        cached = await self._cached_notices(key)
        if cached is not None:
            _logger.debug("Toll search cache hit for %s", key)
            return TollSearchSuccess(notices=cached, totals=TollSearchTotals.from_notices(cached))

        # The cache lookup may have yielded to another caller for the same key.
        task = self._in_flight.get(key)
        if task is None:
            task = asyncio.create_task(self._perform(request))
            self._in_flight[key] = task
            task.add_done_callback(lambda done: self._forget(key, done))
        return await asyncio.shield(task)

    def _forget(self, key: str, task: asyncio.Task[TollSearchResult]) -> None:
        if self._in_flight.get(key) is task:
            del self._in_flight[key]

    async def _perform(self, request: TollSearchRequest) -> TollSearchResult:
        result = await search_toll_notices(self._transport, request, timeout=self._timeout)
        if isinstance(result, TollSearchSuccess) and self._cache is not None:
            payload = [notice.model_dump(mode="json") for notice in result.notices]
            await self._cache.set(CACHE_NAMESPACE, request.cache_key, payload)
        return result

    async def _cached_notices(self, key: str) -> list[TollNotice] | None:
        if self._cache is None:
            return None
        value: Any = await self._cache.get(CACHE_NAMESPACE, key)
        if value is MISSING:
            return None
        try:
            return [normalize_notice(item) for item in value]
        except (TypeError, ValueError) as exc:
            _logger.warning("Discarding unreadable cached toll search %s: %s", key, exc)
            await self._cache.delete(CACHE_NAMESPACE, key)
            return None
