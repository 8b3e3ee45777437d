"""Derived (never persisted) toll aggregates."""

from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field

from fleetsync.models.toll import RentalTollNotice


class WeeklyTollSummary(BaseModel):
    """Notices of one (year, week) bucket with their totals.

    ``paid_count + unpaid_count == total_tolls == len(notices)`` and
    ``total_amount`` is the sum of the members' ``total_amount``.
    """

    model_config = ConfigDict(frozen=True)

    week_number: int
    year: int
    start_date: date
    end_date: date
    total_tolls: int = 0
    total_amount: float = 0.0
    admin_fees: float = 0.0
    toll_fees: float = 0.0
    paid_count: int = 0
    unpaid_count: int = 0
    unpaid_amount: float = 0.0
    notices: list[RentalTollNotice] = Field(default_factory=list)

    @property
    def key(self) -> str:
        return f"{self.year}-{self.week_number}"


class TollStatistics(BaseModel):
    """Headline numbers for a set of notices, evaluated at a given time."""

    model_config = ConfigDict(frozen=True)

    total_notices: int = 0
    total_amount: float = 0.0
    paid_notices: int = 0
    unpaid_notices: int = 0
    unpaid_amount: float = 0.0
    overdue_notices: int = 0
    overdue_amount: float = 0.0
    admin_fees: float = 0.0
    toll_fees: float = 0.0
    unique_motorways: int = 0
    unique_vehicles: int = 0
    earliest: datetime | None = None
    latest: datetime | None = None
