"""Toll notice normalizer.

Converts provider search results and persisted ``rental_toll_notices`` rows
into :class:`TollNotice` / :class:`RentalTollNotice`, and builds the row
shape written back to the store.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import datetime
from typing import Any, Literal, TypeVar

from pydantic import ValidationError
from pydantic.alias_generators import to_camel

from fleetsync.exceptions import TollRecordError
from fleetsync.ingestion.weeks import week_of_year
from fleetsync.models.toll import RentalTollNotice, TollNotice, VehicleType

TNotice = TypeVar("TNotice", bound=TollNotice)

NoticeStatus = Literal["Paid", "Overdue", "Unpaid"]

#: Column names of the persisted ``rental_toll_notices`` table written by :func:`to_rental_row`.
RENTAL_ROW_FIELDS: tuple[str, ...] = (
    "rental_id",
    "licence_plate",
    "state",
    "toll_notice_number",
    "motorway",
    "issued_date",
    "trip_status",
    "admin_fee",
    "toll_amount",
    "total_amount",
    "due_date",
    "is_paid",
    "vehicle_type",
    "week_of_year",
    "year",
    "synced_at",
    "user_id",
)


def _validate(model: type[TNotice], raw: Mapping[str, Any]) -> TNotice:
    try:
        return model.model_validate(dict(raw))
    except ValidationError as exc:
        first = exc.errors()[0] if exc.errors() else {}
        loc = first.get("loc", ())
        field = str(loc[0]) if loc else ""
        # Errors are located by alias (``licencePlate``); report the field name.
        by_alias = {info.alias or to_camel(name): name for name, info in model.model_fields.items()}
        field = by_alias.get(field, field)
        raise TollRecordError(
            f"Invalid {model.__name__} record: {field or 'record'}: {first.get('msg', exc)}",
            field=field,
        ) from exc


def normalize_notice(raw: Mapping[str, Any] | TollNotice, *, search_source: str | None = None) -> TollNotice:
    """Normalize a provider or stored record into a :class:`TollNotice`.

    Raises
    ------
    TollRecordError
        If the plate, state, motorway or issued date is missing or unusable.
    """
    notice = raw if isinstance(raw, TollNotice) else _validate(TollNotice, raw)
    if search_source is not None and notice.search_source is None:
        notice = notice.model_copy(update={"search_source": search_source})
    return notice


def normalize_rental_notice(raw: Mapping[str, Any]) -> RentalTollNotice:
    """Decode one persisted ``rental_toll_notices`` row.

    Raises
    ------
    TollRecordError
        If an identifying field (including ``rental_id``) is missing.
    """
    return _validate(RentalTollNotice, raw)


def to_rental_row(
    notice: TollNotice,
    *,
    rental_id: str,
    user_id: str | None,
    synced_at: datetime,
) -> dict[str, Any]:
    """Build the persisted row for *notice* under *rental_id*."""
    vehicle_type = notice.vehicle_type or VehicleType.CAR
    return {
        "rental_id": rental_id,
        "licence_plate": notice.licence_plate,
        "state": notice.state,
        "toll_notice_number": notice.toll_notice_number,
        "motorway": notice.motorway,
        "issued_date": notice.issued_date.isoformat(timespec="seconds"),
        "trip_status": notice.trip_status,
        "admin_fee": notice.admin_fee,
        "toll_amount": notice.toll_amount,
        "total_amount": notice.total_amount,
        "due_date": notice.due_date.isoformat() if notice.due_date is not None else None,
        "is_paid": notice.is_paid,
        "vehicle_type": vehicle_type.value,
        "week_of_year": week_of_year(notice.issued_date),
        "year": notice.issued_date.year,
        "synced_at": synced_at.isoformat(),
        "user_id": user_id if user_id is not None else notice.user_id,
    }


def dedupe_notices(notices: Iterable[TNotice]) -> list[TNotice]:
    """Drop repeats of a provider notice number, keeping the first.

    Notices without a number are all kept.
    """
    seen: set[str] = set()
    unique: list[TNotice] = []
    for notice in notices:
        number = notice.toll_notice_number
        if number is not None:
            if number in seen:
                continue
            seen.add(number)
        unique.append(notice)
    return unique


def notice_status(notice: TollNotice, now: datetime) -> NoticeStatus:
    if notice.is_paid:
        return "Paid"
    if notice.is_overdue(now):
        return "Overdue"
    return "Unpaid"


def filter_notices(
    notices: Iterable[RentalTollNotice],
    *,
    search: str | None = None,
    status: Literal["all", "paid", "unpaid"] = "all",
    week: str = "all",
) -> list[RentalTollNotice]:
    """Filter notices the way the rental toll table does.

    ``search`` matches case-insensitively against plate, notice number and
    motorway; ``week`` is ``"all"`` or a ``"{year}-{week}"`` key.
    """
    term = (search or "").strip().lower()
    result: list[RentalTollNotice] = []
    for notice in notices:
        if term and not (
            term in notice.licence_plate.lower()
            or term in (notice.toll_notice_number or "").lower()
            or term in notice.motorway.lower()
        ):
            continue
        if status == "paid" and not notice.is_paid:
            continue
        if status == "unpaid" and notice.is_paid:
            continue
        if week != "all" and notice.week_key != week:
            continue
        result.append(notice)
    return result
