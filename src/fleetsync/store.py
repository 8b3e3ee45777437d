"""Persisted toll notice stores.

Every store decodes rows through :func:`normalize_rental_notice`, so a
malformed row fails fast with :class:`TollRecordError` instead of leaking
blank fields to callers.
"""

from __future__ import annotations

import copy
import itertools
from collections.abc import Callable, Sequence
from datetime import UTC, datetime
from typing import Any, Protocol

from fleetsync._api.rental_tolls import fetch_rental_toll_rows, mark_rental_toll_paid, upsert_rental_toll_rows
from fleetsync._transport import Transport
from fleetsync.exceptions import FleetSyncTransportError, TollPersistenceError
from fleetsync.ingestion.notices import normalize_rental_notice
from fleetsync.models.toll import PAID_STATUS, RentalTollNotice


def _utcnow() -> datetime:
    return datetime.now(UTC)


class TollNoticeStore(Protocol):
    """Keyed record store holding ``rental_toll_notices`` rows."""

    async def list_for_rental(self, rental_id: str) -> list[RentalTollNotice]:
        """All notices of *rental_id*, newest issued first; empty when none."""
        ...

    async def upsert(self, rows: Sequence[dict[str, Any]]) -> None:
        """Insert or overwrite rows keyed by ``(toll_notice_number, rental_id)``."""
        ...

    async def mark_paid(self, notice_id: str, *, synced_at: datetime) -> RentalTollNotice | None:
        """Flag one notice as paid; ``None`` when no notice has that id."""
        ...


class PostgrestTollStore:
    """Store backed by the hosted database's PostgREST API."""

    def __init__(self, transport: Transport) -> None:
        self._transport = transport

    async def list_for_rental(self, rental_id: str) -> list[RentalTollNotice]:
        try:
            rows = await fetch_rental_toll_rows(self._transport, rental_id)
        except FleetSyncTransportError as exc:
            raise TollPersistenceError(f"Loading toll notices for rental {rental_id} failed: {exc}", operation="select") from exc
        return [normalize_rental_notice(row) for row in rows]

    async def upsert(self, rows: Sequence[dict[str, Any]]) -> None:
        try:
            await upsert_rental_toll_rows(self._transport, rows)
        except FleetSyncTransportError as exc:
            raise TollPersistenceError(f"Saving {len(rows)} toll notices failed: {exc}", operation="upsert") from exc

    async def mark_paid(self, notice_id: str, *, synced_at: datetime) -> RentalTollNotice | None:
        try:
            row = await mark_rental_toll_paid(self._transport, notice_id, synced_at=synced_at)
        except FleetSyncTransportError as exc:
            raise TollPersistenceError(f"Marking toll notice {notice_id} as paid failed: {exc}", operation="update") from exc
        return normalize_rental_notice(row) if row is not None else None


class InMemoryTollStore:
    """Deterministic in-process store with the same semantics as the database.

    Ids are sequential (``toll-1``, ``toll-2``...). Overwriting an existing
    ``(toll_notice_number, rental_id)`` replaces the whole row but keeps its
    id and ``created_at``. Like a SQL unique constraint, rows without a
    notice number never conflict.
    """

    def __init__(self, *, clock: Callable[[], datetime] = _utcnow) -> None:
        self._clock = clock
        self._ids = itertools.count(1)
        self._rows: dict[str, dict[str, Any]] = {}
        self._by_key: dict[tuple[str, str], str] = {}

    def __len__(self) -> int:
        return len(self._rows)

    def rows(self) -> list[dict[str, Any]]:
        """Copies of every stored row in insertion order."""
        return [copy.deepcopy(row) for row in self._rows.values()]

    async def list_for_rental(self, rental_id: str) -> list[RentalTollNotice]:
        rows = [row for row in self._rows.values() if row.get("rental_id") == rental_id]
        # Same ordering as the database: issued_date is an ISO string column.
        rows.sort(key=lambda row: str(row.get("issued_date") or ""), reverse=True)
        return [normalize_rental_notice(row) for row in rows]

    async def upsert(self, rows: Sequence[dict[str, Any]]) -> None:
        for row in rows:
            if not row.get("rental_id"):
                raise TollPersistenceError("Row is missing rental_id", operation="upsert")
        for row in rows:
            number = row.get("toll_notice_number")
            key = (str(number), str(row["rental_id"])) if number else None
            existing_id = self._by_key.get(key) if key is not None else None
            if existing_id is not None:
                created_at = self._rows[existing_id]["created_at"]
                self._rows[existing_id] = {**copy.deepcopy(row), "id": existing_id, "created_at": created_at}
                continue
            notice_id = f"toll-{next(self._ids)}"
            self._rows[notice_id] = {
                **copy.deepcopy(row),
                "id": notice_id,
                "created_at": self._clock().isoformat(),
            }
            if key is not None:
                self._by_key[key] = notice_id

    async def mark_paid(self, notice_id: str, *, synced_at: datetime) -> RentalTollNotice | None:
        row = self._rows.get(notice_id)
        if row is None:
            return None
        row.update({"is_paid": True, "trip_status": PAID_STATUS, "synced_at": synced_at.isoformat()})
        return normalize_rental_notice(row)
