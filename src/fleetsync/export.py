"""CSV export of a rental's toll notices."""

from __future__ import annotations

import csv
import io
from collections.abc import Iterable

from fleetsync.models.toll import PAID_STATUS, UNPAID_STATUS, RentalTollNotice

CSV_HEADERS = [
    "Rental ID",
    "Vehicle Registration",
    "Licence Plate",
    "Notice Number",
    "Motorway",
    "Issued Date",
    "Due Date",
    "Admin Fee",
    "Toll Amount",
    "Total Amount",
    "Status",
    "Week of Year",
    "Year",
]


def format_money(amount: float) -> str:
    return f"${amount:.2f}"


def export_filename(rental_id: str) -> str:
    return f"rental-{rental_id}-toll-notices.csv"


def export_csv(
    notices: Iterable[RentalTollNotice],
    *,
    rental_id: str,
    vehicle_registration: str | None = None,
) -> str:
    """Render *notices* as CSV text, one row per notice after the header.

    Issued dates are written as ``YYYY-MM-DDTHH:MM:SS`` and due dates as
    ``YYYY-MM-DD``; amounts as ``$X.XX``.
    """
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_HEADERS)
    for notice in notices:
        writer.writerow(
            [
                rental_id,
                vehicle_registration or "",
                notice.licence_plate,
                notice.toll_notice_number or "",
                notice.motorway,
                notice.issued_date.isoformat(timespec="seconds"),
                notice.due_date.isoformat() if notice.due_date is not None else "",
                format_money(notice.admin_fee),
                format_money(notice.toll_amount),
                format_money(notice.total_amount),
                PAID_STATUS if notice.is_paid else UNPAID_STATUS,
                notice.week_of_year,
                notice.year,
            ]
        )
    return buffer.getvalue()
