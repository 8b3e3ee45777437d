"""Weekly aggregation and summary statistics over rental toll notices.

Both functions are pure: the same input (in the same order) always yields
the same output, and summaries are rebuilt from scratch on every call.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime

from fleetsync.ingestion.weeks import week_dates
from fleetsync.models.summary import TollStatistics, WeeklyTollSummary
from fleetsync.models.toll import RentalTollNotice


@dataclass
class _WeekBucket:
    week_number: int
    year: int
    total_amount: float = 0.0
    admin_fees: float = 0.0
    toll_fees: float = 0.0
    paid_count: int = 0
    unpaid_count: int = 0
    unpaid_amount: float = 0.0
    notices: list[RentalTollNotice] = field(default_factory=list)

    def add(self, notice: RentalTollNotice) -> None:
        self.total_amount += notice.total_amount
        self.admin_fees += notice.admin_fee
        self.toll_fees += notice.toll_amount
        self.notices.append(notice)
        if notice.is_paid:
            self.paid_count += 1
        else:
            self.unpaid_count += 1
            self.unpaid_amount += notice.total_amount

    def to_summary(self) -> WeeklyTollSummary:
        start, end = week_dates(self.year, self.week_number)
        return WeeklyTollSummary(
            week_number=self.week_number,
            year=self.year,
            start_date=start,
            end_date=end,
            total_tolls=len(self.notices),
            total_amount=self.total_amount,
            admin_fees=self.admin_fees,
            toll_fees=self.toll_fees,
            paid_count=self.paid_count,
            unpaid_count=self.unpaid_count,
            unpaid_amount=self.unpaid_amount,
            notices=list(self.notices),
        )


def aggregate_weekly(notices: Iterable[RentalTollNotice]) -> list[WeeklyTollSummary]:
    """Group notices by ``(year, week_of_year)``.

    Notices keep their input order inside a week. Weeks are returned most
    recent first (year descending, then week descending).
    """
    buckets: dict[tuple[int, int], _WeekBucket] = {}
    for notice in notices:
        # Both are always filled by RentalTollNotice validation.
        year = notice.year if notice.year is not None else notice.issued_date.year
        week = notice.week_of_year if notice.week_of_year is not None else 1
        bucket = buckets.get((year, week))
        if bucket is None:
            bucket = _WeekBucket(week_number=week, year=year)
            buckets[(year, week)] = bucket
        bucket.add(notice)

    ordered = sorted(buckets.values(), key=lambda b: (b.year, b.week_number), reverse=True)
    return [bucket.to_summary() for bucket in ordered]


def compute_statistics(notices: Iterable[RentalTollNotice], *, now: datetime) -> TollStatistics:
    """Summarize *notices*; a notice is overdue when unpaid and due before *now*'s date."""
    items = list(notices)
    if not items:
        return TollStatistics()

    unpaid = [n for n in items if not n.is_paid]
    overdue = [n for n in unpaid if n.is_overdue(now)]
    issued = [n.issued_date for n in items]
    return TollStatistics(
        total_notices=len(items),
        total_amount=sum(n.total_amount for n in items),
        paid_notices=len(items) - len(unpaid),
        unpaid_notices=len(unpaid),
        unpaid_amount=sum(n.total_amount for n in unpaid),
        overdue_notices=len(overdue),
        overdue_amount=sum(n.total_amount for n in overdue),
        admin_fees=sum(n.admin_fee for n in items),
        toll_fees=sum(n.toll_amount for n in items),
        unique_motorways=len({n.motorway for n in items}),
        unique_vehicles=len({n.licence_plate for n in items}),
        earliest=min(issued),
        latest=max(issued),
    )
