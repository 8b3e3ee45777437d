"""PostgREST endpoints of the ``rental_toll_notices`` table.

Endpoints:
  - GET   /rental_toll_notices?rental_id=eq.<id>&order=issued_date.desc
  - POST  /rental_toll_notices?on_conflict=toll_notice_number,rental_id (upsert)
  - PATCH /rental_toll_notices?id=eq.<id>
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime
from typing import Any

from fleetsync._transport import Transport
from fleetsync.exceptions import FleetSyncTransportError
from fleetsync.models.toll import PAID_STATUS

_logger = logging.getLogger(__name__)

_ENDPOINT = "/rental_toll_notices"
UPSERT_CONFLICT_TARGET = "toll_notice_number,rental_id"


def _as_rows(body: Any, endpoint: str) -> list[dict[str, Any]]:
    if body is None:
        return []
    if not isinstance(body, list) or not all(isinstance(row, dict) for row in body):
        raise FleetSyncTransportError(f"Expected a list of rows from {endpoint}", endpoint=endpoint)
    return body


async def fetch_rental_toll_rows(transport: Transport, rental_id: str) -> list[dict[str, Any]]:
    """Fetch every stored row of *rental_id*, newest issued first."""
    body = await transport.request(
        "GET",
        _ENDPOINT,
        params={"select": "*", "rental_id": f"eq.{rental_id}", "order": "issued_date.desc"},
    )
    rows = _as_rows(body, _ENDPOINT)
    _logger.debug("Fetched %d toll rows for rental %s", len(rows), rental_id)
    return rows


async def upsert_rental_toll_rows(transport: Transport, rows: Sequence[dict[str, Any]]) -> None:
    """Insert or overwrite *rows* keyed by ``(toll_notice_number, rental_id)``."""
    if not rows:
        return
    await transport.request(
        "POST",
        _ENDPOINT,
        params={"on_conflict": UPSERT_CONFLICT_TARGET},
        json_body=list(rows),
        headers={"prefer": "resolution=merge-duplicates,return=minimal"},
    )
    _logger.debug("Upserted %d toll rows", len(rows))


async def mark_rental_toll_paid(
    transport: Transport,
    notice_id: str,
    *,
    synced_at: datetime,
) -> dict[str, Any] | None:
    """Flag one row as paid and return the updated row (``None`` if no row matched)."""
    body = await transport.request(
        "PATCH",
        _ENDPOINT,
        params={"id": f"eq.{notice_id}"},
        json_body={"is_paid": True, "trip_status": PAID_STATUS, "synced_at": synced_at.isoformat()},
        headers={"prefer": "return=representation"},
    )
    rows = _as_rows(body, _ENDPOINT)
    return rows[0] if rows else None
