from __future__ import annotations

import random
from datetime import UTC, date, datetime, timedelta

import pytest

from fleetsync.aggregate import aggregate_weekly, compute_statistics
from fleetsync.models.toll import RentalTollNotice


def _notice(issued: datetime, *, number: str, paid: bool = False, total: float = 5.0, **extra: object) -> RentalTollNotice:
    return RentalTollNotice(
        rental_id="rental-1",
        licence_plate=str(extra.pop("licence_plate", "ABC123")),
        state="NSW",
        toll_notice_number=number,
        motorway=str(extra.pop("motorway", "M2 Hills")),
        issued_date=issued,
        admin_fee=1.0,
        toll_amount=total - 1.0,
        total_amount=total,
        is_paid=paid,
        **extra,
    )


def test_empty_input_yields_no_summaries() -> None:
    assert aggregate_weekly([]) == []


def test_weeks_are_ordered_most_recent_first() -> None:
    week_three = _notice(datetime(2024, 1, 14, 9), number="A")
    week_five = _notice(datetime(2024, 1, 28, 9), number="B")

    for order in ([week_three, week_five], [week_five, week_three]):
        summaries = aggregate_weekly(order)
        assert [(s.year, s.week_number) for s in summaries] == [(2024, 5), (2024, 3)]


def test_year_sorts_before_week() -> None:
    late_2023 = _notice(datetime(2023, 12, 31, 9), number="A")
    early_2024 = _notice(datetime(2024, 1, 2, 9), number="B")

    summaries = aggregate_weekly([late_2023, early_2024])

    assert [s.key for s in summaries] == ["2024-1", "2023-53"]


def test_summary_totals_and_counts() -> None:
    notices = [
        _notice(datetime(2024, 6, 3, 8), number="A", paid=True, total=5.0),
        _notice(datetime(2024, 6, 5, 8), number="B", total=7.5),
        _notice(datetime(2024, 6, 7, 8), number="C", total=2.5),
    ]

    (summary,) = aggregate_weekly(notices)

    assert summary.week_number == 23
    assert summary.start_date == date(2024, 6, 2)
    assert summary.end_date == date(2024, 6, 8)
    assert summary.total_tolls == 3
    assert summary.total_amount == pytest.approx(15.0)
    assert summary.admin_fees == pytest.approx(3.0)
    assert summary.toll_fees == pytest.approx(12.0)
    assert summary.paid_count == 1
    assert summary.unpaid_count == 2
    assert summary.unpaid_amount == pytest.approx(10.0)
    assert [n.toll_notice_number for n in summary.notices] == ["A", "B", "C"]


def test_counts_add_up_for_generated_notices() -> None:
    rng = random.Random(1234)
    start = datetime(2024, 1, 1, 6)
    notices = [
        _notice(
            start + timedelta(days=rng.randrange(0, 120), hours=rng.randrange(0, 18)),
            number=f"N-{i}",
            paid=rng.random() < 0.4,
            total=round(rng.uniform(1, 20), 2),
        )
        for i in range(200)
    ]

    summaries = aggregate_weekly(notices)

    assert sum(s.total_tolls for s in summaries) == len(notices)
    for summary in summaries:
        assert summary.paid_count + summary.unpaid_count == summary.total_tolls
        assert summary.total_tolls == len(summary.notices)
        assert summary.total_amount == pytest.approx(sum(n.total_amount for n in summary.notices))
    assert len({s.key for s in summaries}) == len(summaries)


def test_aggregation_is_deterministic() -> None:
    notices = [
        _notice(datetime(2024, 2, d, 12), number=f"N-{d}", paid=d % 2 == 0)
        for d in range(1, 28)
    ]
    assert aggregate_weekly(notices) == aggregate_weekly(list(notices))


def test_statistics_over_notices() -> None:
    now = datetime(2024, 7, 15, tzinfo=UTC)
    notices = [
        _notice(datetime(2024, 6, 3, 8), number="A", paid=True, total=5.0),
        _notice(datetime(2024, 6, 5, 8), number="B", total=7.5, due_date=date(2024, 6, 30)),
        _notice(
            datetime(2024, 6, 12, 8),
            number="C",
            total=2.5,
            due_date=date(2024, 8, 1),
            motorway="Westlink M7",
            licence_plate="XYZ789",
        ),
    ]

    stats = compute_statistics(notices, now=now)

    assert stats.total_notices == 3
    assert stats.total_amount == pytest.approx(15.0)
    assert stats.paid_notices == 1
    assert stats.unpaid_notices == 2
    assert stats.unpaid_amount == pytest.approx(10.0)
    assert stats.overdue_notices == 1
    assert stats.overdue_amount == pytest.approx(7.5)
    assert stats.unique_motorways == 2
    assert stats.unique_vehicles == 2
    assert stats.earliest == datetime(2024, 6, 3, 8)
    assert stats.latest == datetime(2024, 6, 12, 8)


def test_statistics_of_nothing_are_zero() -> None:
    stats = compute_statistics([], now=datetime(2024, 1, 1, tzinfo=UTC))
    assert stats.total_notices == 0
    assert stats.earliest is None
