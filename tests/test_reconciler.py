from __future__ import annotations

import asyncio
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from typing import Any

import pytest

from fleetsync.exceptions import TollPersistenceError, TollSearchError
from fleetsync.ingestion.notices import normalize_notice
from fleetsync.models.rental import ReconciliationStatus, Rental
from fleetsync.models.search import TollSearchFailure, TollSearchRequest, TollSearchResult, TollSearchSuccess
from fleetsync.models.toll import TollNotice
from fleetsync.reconciler import TollReconciler
from fleetsync.store import InMemoryTollStore

SYNC_TIME = datetime(2024, 6, 20, 9, tzinfo=UTC)


def _clock() -> datetime:
    return SYNC_TIME


def _notice(issued: str, number: str | None = None, **overrides: Any) -> TollNotice:
    raw: dict[str, Any] = {
        "licencePlate": "ABC123",
        "state": "NSW",
        "tollNoticeNumber": number,
        "motorway": "M7",
        "issuedDate": issued,
        "adminFee": 1.0,
        "tollAmount": 4.0,
    }
    raw.update(overrides)
    return normalize_notice(raw, search_source="api_search")


@dataclass
class FakeSearch:
    result: TollSearchResult = field(default_factory=TollSearchSuccess)
    delay: float = 0.0
    requests: list[TollSearchRequest] = field(default_factory=list)

    async def search(self, request: TollSearchRequest) -> TollSearchResult:
        self.requests.append(request)
        if self.delay:
            await asyncio.sleep(self.delay)
        return self.result


class FailingUpsertStore(InMemoryTollStore):
    async def upsert(self, rows: Sequence[dict[str, Any]]) -> None:
        raise TollPersistenceError("database unavailable", operation="upsert")


def _june_rental() -> Rental:
    return Rental(
        id="rental-1",
        start_date=date(2024, 6, 1),
        end_date=date(2024, 6, 14),
        licence_plate="ABC123",
        user_id="user-1",
    )


def _june_search() -> FakeSearch:
    return FakeSearch(
        result=TollSearchSuccess(
            notices=[
                _notice("2024-06-05T10:00:00", "TN-1"),
                _notice("2024-05-30T10:00:00", "TN-2"),
                _notice("2024-06-12T10:00:00", "TN-3"),
            ]
        )
    )


def test_window_filter_is_inclusive_of_whole_end_day() -> None:
    notices = [
        _notice("2023-12-31T23:59:59", "before"),
        _notice("2024-01-01T00:00:00", "first"),
        _notice("2024-01-10T23:59:59", "last"),
        _notice("2024-01-11T00:00:00", "after"),
    ]

    kept = TollReconciler.filter_to_rental_window(notices, date(2024, 1, 1), date(2024, 1, 10))

    assert [n.toll_notice_number for n in kept] == ["first", "last"]


def test_window_filter_accepts_datetime_bounds() -> None:
    kept = TollReconciler.filter_to_rental_window(
        [_notice("2024-01-10T23:59:59", "last")],
        datetime(2024, 1, 1, 12),
        datetime(2024, 1, 10, 8),
    )
    assert len(kept) == 1


@pytest.mark.asyncio
async def test_refresh_persists_only_in_window_notices() -> None:
    store = InMemoryTollStore(clock=_clock)
    reconciler = TollReconciler(store, _june_search(), clock=_clock)

    result = await reconciler.refresh(_june_rental())

    assert result.status is ReconciliationStatus.UPDATED
    assert result.found_count == 3
    assert result.in_window_count == 2
    assert result.persisted_count == 2
    assert len(store) == 2
    assert [n.toll_notice_number for n in result.notices] == ["TN-3", "TN-1"]
    assert sum(s.total_tolls for s in result.summaries) == 2
    assert [s.week_number for s in result.summaries] == [24, 23]
    assert all(row["user_id"] == "user-1" for row in store.rows())
    assert all(row["synced_at"] == SYNC_TIME.isoformat() for row in store.rows())


@pytest.mark.asyncio
async def test_refresh_is_idempotent() -> None:
    store = InMemoryTollStore(clock=_clock)
    reconciler = TollReconciler(store, _june_search(), clock=_clock)

    first = await reconciler.refresh(_june_rental())
    rows_after_first = store.rows()
    second = await reconciler.refresh(_june_rental())

    assert store.rows() == rows_after_first
    assert second.summaries == first.summaries
    assert second.notices == first.notices


@pytest.mark.asyncio
async def test_numberless_notices_are_not_duplicated_across_refreshes() -> None:
    search = FakeSearch(
        result=TollSearchSuccess(
            notices=[_notice("2024-06-05T10:00:00"), _notice("2024-06-05T10:00:00"), _notice("2024-06-06T10:00:00")]
        )
    )
    store = InMemoryTollStore(clock=_clock)
    reconciler = TollReconciler(store, search, clock=_clock)

    await reconciler.refresh(_june_rental())
    await reconciler.refresh(_june_rental())

    assert len(store) == 2


@pytest.mark.asyncio
async def test_concurrent_refresh_searches_once() -> None:
    search = _june_search()
    search.delay = 0.01
    reconciler = TollReconciler(InMemoryTollStore(clock=_clock), search, clock=_clock)

    first, second = await asyncio.gather(reconciler.refresh(_june_rental()), reconciler.refresh(_june_rental()))

    assert len(search.requests) == 1
    assert first.status is ReconciliationStatus.UPDATED
    assert second.status is ReconciliationStatus.SKIPPED
    assert second.notices == []
    assert reconciler.is_searching is False


@pytest.mark.asyncio
async def test_search_failure_keeps_persisted_notices() -> None:
    store = InMemoryTollStore(clock=_clock)
    await TollReconciler(store, _june_search(), clock=_clock).refresh(_june_rental())

    failing = FakeSearch(result=TollSearchFailure(error="Network connection issue."))
    result = await TollReconciler(store, failing, clock=_clock).refresh(_june_rental())

    assert result.status is ReconciliationStatus.SEARCH_FAILED
    assert not result.ok
    assert result.error == "Network connection issue."
    assert len(result.notices) == 2
    assert sum(s.total_tolls for s in result.summaries) == 2
    assert len(store) == 2


@pytest.mark.asyncio
async def test_zero_results_is_not_a_failure() -> None:
    reconciler = TollReconciler(InMemoryTollStore(clock=_clock), FakeSearch(), clock=_clock)

    result = await reconciler.refresh(_june_rental())

    assert result.status is ReconciliationStatus.NO_NOTICES_FOUND
    assert result.ok
    assert result.notices == []


@pytest.mark.asyncio
async def test_out_of_window_results_persist_nothing() -> None:
    search = FakeSearch(result=TollSearchSuccess(notices=[_notice("2024-05-30T10:00:00", "TN-2")]))
    store = InMemoryTollStore(clock=_clock)

    result = await TollReconciler(store, search, clock=_clock).refresh(_june_rental())

    assert result.status is ReconciliationStatus.NO_NOTICES_IN_WINDOW
    assert result.found_count == 1
    assert len(store) == 0


@pytest.mark.asyncio
async def test_persistence_failure_raises_and_releases_guard() -> None:
    reconciler = TollReconciler(FailingUpsertStore(clock=_clock), _june_search(), clock=_clock)

    with pytest.raises(TollPersistenceError):
        await reconciler.refresh(_june_rental())
    assert reconciler.is_searching is False


@pytest.mark.asyncio
async def test_on_refresh_hook_runs_after_each_refresh() -> None:
    seen: list[str] = []

    async def hook(rental_id: str) -> None:
        seen.append(rental_id)

    reconciler = TollReconciler(FailingUpsertStore(clock=_clock), _june_search(), clock=_clock, on_refresh=hook)
    with pytest.raises(TollPersistenceError):
        await reconciler.refresh(_june_rental())

    reconciler = TollReconciler(InMemoryTollStore(clock=_clock), FakeSearch(), clock=_clock, on_refresh=hook)
    await reconciler.refresh(_june_rental())

    assert seen == ["rental-1", "rental-1"]


@pytest.mark.asyncio
async def test_search_external_can_raise_on_failure() -> None:
    reconciler = TollReconciler(
        InMemoryTollStore(clock=_clock),
        FakeSearch(result=TollSearchFailure(error="down")),
        clock=_clock,
    )

    result = await reconciler.search_external("abc123", "nsw")
    assert isinstance(result, TollSearchFailure)

    with pytest.raises(TollSearchError, match="down"):
        await reconciler.search_external("abc123", "nsw", raise_on_failure=True)


def test_rental_rejects_unknown_state() -> None:
    with pytest.raises(ValueError, match="state must be one of"):
        Rental(id="r", start_date=date(2024, 6, 1), end_date=date(2024, 6, 2), licence_plate="ABC123", state="XX")

    rental = Rental(id="r", start_date=date(2024, 6, 1), end_date=date(2024, 6, 2), licence_plate="ABC123", state="vic")
    assert rental.state == "VIC"


@pytest.mark.asyncio
async def test_invalid_search_input_is_a_typed_failure() -> None:
    search = _june_search()
    reconciler = TollReconciler(InMemoryTollStore(clock=_clock), search, clock=_clock)

    result = await reconciler.search_external("ABC123", "XX")

    assert isinstance(result, TollSearchFailure)
    assert "state" in result.error
    assert search.requests == []
    with pytest.raises(TollSearchError):
        await reconciler.search_external("ABC123", "XX", raise_on_failure=True)


@pytest.mark.asyncio
async def test_refresh_of_unvalidated_rental_with_bad_state_reports_search_failure() -> None:
    store = InMemoryTollStore(clock=_clock)
    rental = Rental.model_construct(
        id="rental-1",
        start_date=date(2024, 6, 1),
        end_date=date(2024, 6, 14),
        licence_plate="ABC123",
        state="XX",
        vehicle_registration=None,
        user_id=None,
    )

    result = await TollReconciler(store, _june_search(), clock=_clock).refresh(rental)

    assert result.status is ReconciliationStatus.SEARCH_FAILED
    assert result.error is not None and "state" in result.error
    assert len(store) == 0


@pytest.mark.asyncio
async def test_upsert_uses_reconciler_user_when_rental_has_none() -> None:
    store = InMemoryTollStore(clock=_clock)
    reconciler = TollReconciler(store, FakeSearch(), user_id="owner-9", clock=_clock)

    written = await reconciler.upsert_notices([_notice("2024-06-05T10:00:00", "TN-1")], "rental-1")

    assert written == 1
    assert store.rows()[0]["user_id"] == "owner-9"


@pytest.mark.asyncio
async def test_mark_paid_stamps_sync_time() -> None:
    store = InMemoryTollStore(clock=_clock)
    reconciler = TollReconciler(store, _june_search(), clock=_clock)
    await reconciler.refresh(_june_rental())
    target = (await reconciler.load_persisted("rental-1"))[0]

    paid = await reconciler.mark_paid(target.id or "")

    assert paid is not None
    assert paid.is_paid
    assert paid.trip_status == "Paid"
    assert paid.synced_at == SYNC_TIME
    assert await reconciler.mark_paid("nope") is None
