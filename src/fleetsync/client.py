"""High-level async client for rental toll reconciliation."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

import aiohttp

from fleetsync._transport import RestTransport
from fleetsync.aggregate import aggregate_weekly, compute_statistics
from fleetsync.cache import HttpRemoteTier, TwoTierCache
from fleetsync.config import FleetSyncConfig
from fleetsync.exceptions import FleetSyncConfigError, FleetSyncError
from fleetsync.export import export_csv
from fleetsync.ingestion.notices import normalize_rental_notice
from fleetsync.models.rental import ReconciliationResult, Rental
from fleetsync.models.search import TollSearchRequest, TollSearchResult
from fleetsync.models.summary import TollStatistics, WeeklyTollSummary
from fleetsync.models.toll import RentalTollNotice
from fleetsync.reconciler import TollReconciler
from fleetsync.search import HttpTollSearchClient, TollSearchProvider
from fleetsync.store import PostgrestTollStore, TollNoticeStore

_logger = logging.getLogger(__name__)

RENTAL_TOLLS_NAMESPACE = "rental_tolls"


def _utcnow() -> datetime:
    return datetime.now(UTC)


class FleetSyncClient:
    """Async client wiring the store, search provider, cache and reconciler.

    Anything not passed in is built from *config* on entry and torn down on
    exit; injected collaborators are left open.

    Usage::

        async with FleetSyncClient(FleetSyncConfig.from_env()) as client:
            result = await client.refresh_rental(rental)
            for week in result.summaries:
                print(week.key, week.total_tolls)
    """

    def __init__(
        self,
        config: FleetSyncConfig,
        *,
        session: aiohttp.ClientSession | None = None,
        store: TollNoticeStore | None = None,
        search: TollSearchProvider | None = None,
        cache: TwoTierCache | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._config = config
        self._external_session = session is not None
        self._http_session = session
        self._injected_store = store
        self._injected_search = search
        self._injected_cache = cache
        self._clock = clock or _utcnow
        self._cache: TwoTierCache | None = None
        self._remote: HttpRemoteTier | None = None
        self._search: TollSearchProvider | None = None
        self._reconciler: TollReconciler | None = None

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> FleetSyncClient:
        try:
            cache = self._injected_cache if self._injected_cache is not None else await self._build_cache()
            self._cache = cache
            store = self._injected_store if self._injected_store is not None else self._build_store()
            self._search = self._injected_search if self._injected_search is not None else self._build_search(cache)
        except BaseException:
            await self.__aexit__(None, None, None)
            raise
        self._reconciler = TollReconciler(
            store,
            self._search,
            user_id=self._config.user_id,
            clock=self._clock,
            on_refresh=self._invalidate_rental,
        )
        return self

    async def __aexit__(self, *exc: Any) -> None:
        if self._injected_cache is None and self._cache is not None:
            await self._cache.close()
        if self._remote is not None:
            self._remote.close()
            self._remote = None
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None
        self._cache = None
        self._search = None
        self._reconciler = None

    def _http(self) -> aiohttp.ClientSession:
        if self._http_session is None:
            self._http_session = aiohttp.ClientSession()
        return self._http_session

    async def _build_cache(self) -> TwoTierCache:
        config = self._config
        if config.remote_cache_url:
            headers = {"authorization": f"Bearer {config.remote_cache_token}"} if config.remote_cache_token else None
            transport = RestTransport(
                config.remote_cache_url,
                self._http(),
                headers=headers,
                trace=config.api_trace_enabled,
            )
            self._remote = HttpRemoteTier(transport)
            await self._remote.connect()
        return TwoTierCache(remote=self._remote, key_prefix=config.cache_key_prefix)

    def _build_store(self) -> TollNoticeStore:
        config = self._config
        if not config.rest_url or not config.supabase_key:
            raise FleetSyncConfigError("supabase_url and supabase_key are required without an explicit store")
        transport = RestTransport(
            config.rest_url,
            self._http(),
            headers={"apikey": config.supabase_key, "authorization": f"Bearer {config.supabase_key}"},
            trace=config.api_trace_enabled,
        )
        return PostgrestTollStore(transport)

    def _build_search(self, cache: TwoTierCache) -> TollSearchProvider:
        config = self._config
        if not config.toll_search_url:
            raise FleetSyncConfigError("toll_search_url is required without an explicit search provider")
        transport = RestTransport(config.toll_search_url, self._http(), trace=config.api_trace_enabled)
        return HttpTollSearchClient(transport, cache=cache, timeout=config.toll_search_timeout)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _require_reconciler(self) -> TollReconciler:
        if self._reconciler is None:
            raise FleetSyncError("Client not initialized. Use 'async with FleetSyncClient(...) as client:'")
        return self._reconciler

    def _require_cache(self) -> TwoTierCache:
        if self._cache is None:
            raise FleetSyncError("Client not initialized. Use 'async with FleetSyncClient(...) as client:'")
        return self._cache

    async def _invalidate_rental(self, rental_id: str) -> None:
        if self._cache is not None:
            await self._cache.delete(RENTAL_TOLLS_NAMESPACE, rental_id)

    @property
    def cache(self) -> TwoTierCache:
        return self._require_cache()

    @property
    def reconciler(self) -> TollReconciler:
        return self._require_reconciler()

    # ------------------------------------------------------------------
    # Rental tolls
    # ------------------------------------------------------------------

    async def refresh_rental(self, rental: Rental) -> ReconciliationResult:
        """Reconcile *rental*'s stored notices with the search provider."""
        return await self._require_reconciler().refresh(rental)

    async def get_rental_tolls(self, rental_id: str) -> list[RentalTollNotice]:
        """Stored notices of *rental_id*, newest issued first (cached briefly)."""
        reconciler = self._require_reconciler()
        cache = self._require_cache()

        async def _load() -> list[dict[str, Any]]:
            notices = await reconciler.load_persisted(rental_id)
            return [notice.model_dump(mode="json") for notice in notices]

        rows = await cache.get_or_set(RENTAL_TOLLS_NAMESPACE, rental_id, _load)
        return [normalize_rental_notice(row) for row in rows]

    async def get_weekly_summaries(self, rental_id: str) -> list[WeeklyTollSummary]:
        return aggregate_weekly(await self.get_rental_tolls(rental_id))

    async def get_statistics(self, rental_id: str, *, now: datetime | None = None) -> TollStatistics:
        notices = await self.get_rental_tolls(rental_id)
        return compute_statistics(notices, now=now or self._clock())

    async def mark_paid(self, notice_id: str, rental_id: str | None = None) -> RentalTollNotice | None:
        """Flag one stored notice as paid and drop the rental's cached notices."""
        notice = await self._require_reconciler().mark_paid(notice_id)
        owner = rental_id or (notice.rental_id if notice is not None else None)
        if owner is not None:
            await self._invalidate_rental(owner)
        return notice

    async def export_rental_csv(self, rental: Rental) -> str:
        notices = await self.get_rental_tolls(rental.id)
        return export_csv(notices, rental_id=rental.id, vehicle_registration=rental.vehicle_registration)

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    async def search(self, request: TollSearchRequest) -> TollSearchResult:
        """Run a toll search without touching any rental."""
        if self._search is None:
            raise FleetSyncError("Client not initialized. Use 'async with FleetSyncClient(...) as client:'")
        return await self._search.search(request)

