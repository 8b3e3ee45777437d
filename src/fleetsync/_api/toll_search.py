"""Toll search service endpoint.

Endpoint:
  - POST /api/tolls/search (single request, may take tens of seconds)

The service answers ``{"success": true, "notices": [...], "totals": {...}}``
or ``{"success": false, "error": "..."}``.
"""

from __future__ import annotations

import logging
from typing import Any

from fleetsync._transport import Transport
from fleetsync.exceptions import FleetSyncTransportError, TollRecordError
from fleetsync.ingestion.notices import normalize_notice
from fleetsync.models.search import (
    TollSearchFailure,
    TollSearchRequest,
    TollSearchResult,
    TollSearchSuccess,
    TollSearchTotals,
)

_logger = logging.getLogger(__name__)

_ENDPOINT = "/api/tolls/search"

SEARCH_SOURCE = "api_search"

_GENERIC_ERROR = "Failed to retrieve toll notices. Please try again."


def describe_search_error(message: str) -> str:
    """Map a low-level failure message to the text shown to users."""
    lowered = message.lower()
    if "timed out" in lowered:
        return (
            "The toll notice search is taking longer than expected. The toll website may be "
            "experiencing high traffic. Please try again in a few minutes."
        )
    if "network" in lowered or "connection" in lowered:
        return "Network connection issue. Please check your internet connection and try again."
    if "website may be experiencing issues" in lowered:
        return "The toll notice website appears to be experiencing issues. Please try again later."
    return _GENERIC_ERROR


def parse_search_response(body: Any) -> TollSearchResult:
    """Turn a search service reply into a typed result.

    A reply carrying a notice without its identifying fields is reported as
    a failure rather than silently dropping the notice.
    """
    if not isinstance(body, dict):
        return TollSearchFailure(error="Toll search returned an unexpected response")
    if not body.get("success"):
        return TollSearchFailure(error=str(body.get("error") or "Failed to search toll notices"))

    raw_notices = body.get("notices") or []
    if not isinstance(raw_notices, list):
        return TollSearchFailure(error="Toll search returned an unexpected response")
    try:
        notices = [normalize_notice(raw, search_source=SEARCH_SOURCE) for raw in raw_notices]
    except TollRecordError as exc:
        _logger.error("Toll search returned a malformed notice: %s", exc)
        return TollSearchFailure(error=f"Malformed toll notice from provider: {exc}")

    totals_raw = body.get("totals")
    totals = (
        TollSearchTotals.model_validate(totals_raw)
        if isinstance(totals_raw, dict)
        else TollSearchTotals.from_notices(notices)
    )
    return TollSearchSuccess(notices=notices, totals=totals)


async def search_toll_notices(
    transport: Transport,
    request: TollSearchRequest,
    *,
    timeout: float,
) -> TollSearchResult:
    """Run one search against the service; never raises for provider failures."""
    try:
        body = await transport.request(
            "POST",
            _ENDPOINT,
            json_body=request.to_payload(),
            timeout=timeout,
        )
    except FleetSyncTransportError as exc:
        _logger.error(
            "Toll search failed for %s/%s: %s",
            request.licence_plate,
            request.state,
            exc,
        )
        return TollSearchFailure(error=describe_search_error(str(exc)))
    return parse_search_response(body)
