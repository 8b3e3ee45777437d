"""Rental toll reconciliation.

:class:`TollReconciler` brings a rental's persisted toll notices up to date
with the external search provider::

    load persisted -> search -> filter to rental window -> upsert -> reload -> aggregate

At most one refresh runs per reconciler instance. A refresh requested while
another is in flight is dropped (status ``SKIPPED``), not queued.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Iterable, Sequence
from datetime import UTC, date, datetime
from typing import TypeVar

from pydantic import ValidationError

from fleetsync.aggregate import aggregate_weekly
from fleetsync.exceptions import TollSearchError
from fleetsync.ingestion.notices import dedupe_notices, to_rental_row
from fleetsync.models.rental import ReconciliationResult, ReconciliationStatus, Rental
from fleetsync.models.search import TollSearchFailure, TollSearchRequest, TollSearchResult
from fleetsync.models.toll import RentalTollNotice, TollNotice
from fleetsync.search import TollSearchProvider
from fleetsync.store import TollNoticeStore

_logger = logging.getLogger(__name__)

TNotice = TypeVar("TNotice", bound=TollNotice)

RefreshHook = Callable[[str], Awaitable[None]]


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _as_date(value: date | datetime) -> date:
    return value.date() if isinstance(value, datetime) else value


class TollReconciler:
    """Reconcile persisted rental toll notices against the search provider.

    Parameters
    ----------
    store : TollNoticeStore
        Where rental toll notices are persisted.
    search : TollSearchProvider
        External toll search.
    user_id : str or None
        Owner stamped on written rows when the rental carries none.
    clock : callable or None
        Returns the aware "now" used for ``synced_at``.
    on_refresh : callable or None
        Awaited with the rental id after every refresh that ran, whether it
        succeeded or raised.
    """

    def __init__(
        self,
        store: TollNoticeStore,
        search: TollSearchProvider,
        *,
        user_id: str | None = None,
        clock: Callable[[], datetime] | None = None,
        on_refresh: RefreshHook | None = None,
    ) -> None:
        self._store = store
        self._search = search
        self._user_id = user_id
        self._clock = clock or _utcnow
        self._on_refresh = on_refresh
        self._searching = False

    @property
    def is_searching(self) -> bool:
        return self._searching

    async def load_persisted(self, rental_id: str) -> list[RentalTollNotice]:
        """Stored notices of *rental_id*, newest issued first."""
        return await self._store.list_for_rental(rental_id)

    async def search_external(
        self,
        licence_plate: str,
        state: str,
        *,
        toll_notice_number: str | None = None,
        is_motorcycle: bool | None = None,
        raise_on_failure: bool = False,
    ) -> TollSearchResult:
        """Search the provider for notices issued to a plate.

        A successful search with no notices is not a failure. Failures,
        including search inputs the provider would reject, are returned as
        :class:`TollSearchFailure` unless *raise_on_failure* is set, in which
        case :class:`TollSearchError` is raised instead.
        """
        try:
            request = TollSearchRequest(
                licence_plate=licence_plate,
                state=state,
                toll_notice_number=toll_notice_number,
                is_motorcycle=is_motorcycle,
            )
        except ValidationError as exc:
            first = exc.errors()[0]
            field = ".".join(str(part) for part in first["loc"]) or "request"
            result: TollSearchResult = TollSearchFailure(error=f"Invalid toll search {field}: {first['msg']}")
        else:
            result = await self._search.search(request)
        if isinstance(result, TollSearchFailure) and raise_on_failure:
            raise TollSearchError(result.error)
        return result

    @staticmethod
    def filter_to_rental_window(
        notices: Iterable[TNotice],
        start: date | datetime,
        end: date | datetime,
    ) -> list[TNotice]:
        """Keep notices issued on any calendar day in ``[start, end]``."""
        first, last = _as_date(start), _as_date(end)
        return [n for n in notices if first <= n.issued_date.date() <= last]

    async def upsert_notices(
        self,
        notices: Sequence[TollNotice],
        rental_id: str,
        *,
        user_id: str | None = None,
        persisted: Sequence[RentalTollNotice] = (),
    ) -> int:
        """Write *notices* under *rental_id*; returns the number of rows sent.

        Repeated notice numbers are written once. Notices without a number
        are matched on :attr:`TollNotice.fallback_identity` against each
        other and against *persisted*, since the store's unique key never
        matches a missing number.
        """
        seen = {n.fallback_identity for n in persisted if n.toll_notice_number is None}
        candidates: list[TollNotice] = []
        for notice in dedupe_notices(notices):
            if notice.toll_notice_number is None:
                identity = notice.fallback_identity
                if identity in seen:
                    continue
                seen.add(identity)
            candidates.append(notice)
        if not candidates:
            return 0

        synced_at = self._clock()
        owner = user_id if user_id is not None else self._user_id
        rows = [to_rental_row(n, rental_id=rental_id, user_id=owner, synced_at=synced_at) for n in candidates]
        await self._store.upsert(rows)
        return len(rows)

    async def mark_paid(self, notice_id: str) -> RentalTollNotice | None:
        """Flag a stored notice as paid; ``None`` when no notice has that id."""
        notice = await self._store.mark_paid(notice_id, synced_at=self._clock())
        if notice is None:
            _logger.warning("Toll notice %s not found; nothing marked paid", notice_id)
        return notice

    async def refresh(self, rental: Rental) -> ReconciliationResult:
        """Run one reconciliation pass for *rental*.

        Raises
        ------
        TollPersistenceError
            If reading or writing the store fails. Rows already written stay.
        """
        if self._searching:
            _logger.info("Toll search already in progress; skipping refresh of rental %s", rental.id)
            return ReconciliationResult(rental_id=rental.id, status=ReconciliationStatus.SKIPPED)

        self._searching = True
        try:
            return await self._refresh(rental)
        finally:
            self._searching = False
            if self._on_refresh is not None:
                await self._on_refresh(rental.id)

    async def _refresh(self, rental: Rental) -> ReconciliationResult:
        persisted = await self.load_persisted(rental.id)
        search = await self.search_external(rental.licence_plate, rental.state)

        if isinstance(search, TollSearchFailure):
            _logger.error("Toll search failed for rental %s: %s", rental.id, search.error)
            return self._result(rental.id, ReconciliationStatus.SEARCH_FAILED, persisted, error=search.error)

        found = search.notices
        if not found:
            _logger.info("No toll notices found for rental %s (%s)", rental.id, rental.licence_plate)
            return self._result(rental.id, ReconciliationStatus.NO_NOTICES_FOUND, persisted)

        in_window = self.filter_to_rental_window(found, rental.start_date, rental.end_date)
        if not in_window:
            _logger.info(
                "None of %d toll notices fall within rental %s (%s to %s)",
                len(found),
                rental.id,
                rental.start_date,
                rental.end_date,
            )
            return self._result(rental.id, ReconciliationStatus.NO_NOTICES_IN_WINDOW, persisted, found_count=len(found))

        written = await self.upsert_notices(in_window, rental.id, user_id=rental.user_id, persisted=persisted)
        current = await self.load_persisted(rental.id)
        _logger.info(
            "Rental %s: %d found, %d in window, %d written, %d stored",
            rental.id,
            len(found),
            len(in_window),
            written,
            len(current),
        )
        return self._result(
            rental.id,
            ReconciliationStatus.UPDATED,
            current,
            found_count=len(found),
            in_window_count=len(in_window),
            persisted_count=written,
        )

    @staticmethod
    def _result(
        rental_id: str,
        status: ReconciliationStatus,
        notices: list[RentalTollNotice],
        *,
        found_count: int = 0,
        in_window_count: int = 0,
        persisted_count: int = 0,
        error: str | None = None,
    ) -> ReconciliationResult:
        return ReconciliationResult(
            rental_id=rental_id,
            status=status,
            notices=notices,
            summaries=aggregate_weekly(notices),
            found_count=found_count,
            in_window_count=in_window_count,
            persisted_count=persisted_count,
            error=error,
        )
