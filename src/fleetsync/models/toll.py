"""Toll notice models."""

from __future__ import annotations

from datetime import date, datetime
from enum import StrEnum
from typing import Any

from pydantic import Field, field_validator, model_validator

from fleetsync.ingestion.normalize import parse_date, parse_datetime, safe_bool, safe_money, safe_str
from fleetsync.ingestion.weeks import week_of_year
from fleetsync.models._base import FleetBaseModel

PAID_STATUS = "Paid"
UNPAID_STATUS = "Unpaid"


class VehicleType(StrEnum):
    CAR = "car"
    MOTORCYCLE = "motorcycle"


class TollNotice(FleetBaseModel):
    """A single toll-road charge issued against a licence plate.

    Parameters
    ----------
    id : str or None
        Store identifier. Provider results usually have none.
    licence_plate : str
        Vehicle plate, upper-cased.
    state : str
        Issuing jurisdiction (``NSW``, ``VIC``...), upper-cased.
    toll_notice_number : str or None
        Provider reference number.
    motorway : str
        Motorway or route name.
    issued_date : datetime
        When the notice was issued (naive local time).
    trip_status : str
        Free-text provider status.
    admin_fee, toll_amount, total_amount : float
        Currency amounts. ``total_amount`` defaults to
        ``admin_fee + toll_amount`` only when the source omits it; a
        supplied value is kept even if it disagrees.
    due_date : date
        Payment due date; the issued date when the source has none.
    is_paid : bool
        Whether the notice has been paid.
    vehicle_type : VehicleType or None
        Vehicle class the notice was searched for.
    search_source : str or None
        Provenance tag (``api_search``, ``rental_search``, ``manual``).
    user_id : str or None
        Owning account.
    """

    id: str | None = None
    licence_plate: str
    state: str
    toll_notice_number: str | None = None
    motorway: str
    issued_date: datetime
    trip_status: str = UNPAID_STATUS
    admin_fee: float = Field(default=0.0, ge=0)
    toll_amount: float = Field(default=0.0, ge=0)
    total_amount: float = Field(default=0.0, ge=0)
    due_date: date | None = None
    is_paid: bool = False
    vehicle_type: VehicleType | None = None
    search_source: str | None = None
    user_id: str | None = None

    @field_validator("id", "toll_notice_number", "search_source", "user_id", mode="before")
    @classmethod
    def _coerce_optional_str(cls, value: Any) -> str | None:
        return safe_str(value)

    @field_validator("licence_plate", "state", mode="before")
    @classmethod
    def _coerce_upper(cls, value: Any) -> Any:
        text = safe_str(value)
        return text.upper() if text is not None else value

    @field_validator("motorway", "trip_status", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> Any:
        text = safe_str(value)
        return text if text is not None else value

    @field_validator("issued_date", mode="before")
    @classmethod
    def _coerce_issued(cls, value: Any) -> datetime:
        parsed = parse_datetime(value)
        if parsed is None:
            raise ValueError(f"unrecognised date {value!r}")
        return parsed

    @field_validator("due_date", mode="before")
    @classmethod
    def _coerce_due(cls, value: Any) -> date | None:
        return parse_date(value)

    @field_validator("admin_fee", "toll_amount", "total_amount", mode="before")
    @classmethod
    def _coerce_money(cls, value: Any) -> float:
        parsed = safe_money(value)
        return parsed if parsed is not None else 0.0

    @field_validator("is_paid", mode="before")
    @classmethod
    def _coerce_paid(cls, value: Any) -> bool:
        return bool(safe_bool(value))

    @field_validator("vehicle_type", mode="before")
    @classmethod
    def _coerce_vehicle_type(cls, value: Any) -> VehicleType | None:
        text = safe_str(value)
        if text is None:
            return None
        try:
            return VehicleType(text.lower())
        except ValueError:
            return None

    @model_validator(mode="after")
    def _fill_derived(self) -> TollNotice:
        if "total_amount" not in self.model_fields_set:
            object.__setattr__(self, "total_amount", self.admin_fee + self.toll_amount)
        if self.due_date is None:
            object.__setattr__(self, "due_date", self.issued_date.date())
        return self

    @property
    def fallback_identity(self) -> tuple[str, str, datetime, float, float]:
        """Identity for notices without a provider number."""
        issued = self.issued_date.replace(microsecond=0)
        return (self.licence_plate, self.motorway, issued, self.toll_amount, self.admin_fee)

    def is_overdue(self, now: datetime) -> bool:
        return not self.is_paid and self.due_date is not None and self.due_date < now.date()


class RentalTollNotice(TollNotice):
    """A toll notice attached to the rental whose window it falls in.

    ``week_of_year`` and ``year`` are derived from ``issued_date`` when the
    source doesn't carry them.
    """

    rental_id: str
    week_of_year: int | None = None
    year: int | None = None
    created_at: datetime | None = None
    synced_at: datetime | None = None

    @field_validator("rental_id", mode="before")
    @classmethod
    def _coerce_rental_id(cls, value: Any) -> Any:
        text = safe_str(value)
        return text if text is not None else value

    @model_validator(mode="after")
    def _fill_week(self) -> RentalTollNotice:
        if self.week_of_year is None:
            object.__setattr__(self, "week_of_year", week_of_year(self.issued_date))
        if self.year is None:
            object.__setattr__(self, "year", self.issued_date.year)
        return self

    @property
    def upsert_key(self) -> tuple[str | None, str]:
        return (self.toll_notice_number, self.rental_id)

    @property
    def week_key(self) -> str:
        return f"{self.year}-{self.week_of_year}"
