#!/usr/bin/env python3
"""Reconcile one rental's toll notices and print the weekly breakdown.

Usage
-----
Set environment variables and run::

    export FLEETSYNC_SUPABASE_URL="https://project.supabase.co"
    export FLEETSYNC_SUPABASE_KEY="service-key"
    export FLEETSYNC_TOLL_SEARCH_URL="https://fleet.example.com"
    python scripts/refresh_rental.py RENTAL_ID ABC123 2024-06-01 2024-06-14

Options::

    --state NSW          Issuing state (default: FLEETSYNC_DEFAULT_STATE or NSW)
    --registration REG   Vehicle registration written to the CSV
    --csv FILE           Also write the rental's notices as CSV to FILE
    --json               Output as machine-readable JSON
    --no-search          Only read stored notices, skip the provider search
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from datetime import date
from pathlib import Path

# Allow running from the repo root without installing the package.
_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from fleetsync import FleetSyncClient, FleetSyncConfig, Rental  # noqa: E402
from fleetsync.export import export_filename  # noqa: E402
from fleetsync.models import WeeklyTollSummary  # noqa: E402

# ── helpers ──────────────────────────────────────────────────


def _section(title: str) -> str:
    line = "=" * 60
    return f"\n{line}\n  {title}\n{line}"


def _format_week(week: WeeklyTollSummary) -> list[str]:
    lines = [
        f"  Week {week.week_number}, {week.year} ({week.start_date} to {week.end_date})",
        f"    notices: {week.total_tolls} (paid {week.paid_count}, unpaid {week.unpaid_count})",
        f"    total:   ${week.total_amount:.2f} (admin ${week.admin_fees:.2f}, tolls ${week.toll_fees:.2f})",
    ]
    for notice in week.notices:
        lines.append(
            f"      - {notice.issued_date:%Y-%m-%d %H:%M} {notice.motorway}"
            f" #{notice.toll_notice_number or '-'} ${notice.total_amount:.2f}"
        )
    return lines


# ── main ─────────────────────────────────────────────────────


async def main() -> int:
    parser = argparse.ArgumentParser(description="Reconcile a rental's toll notices")
    parser.add_argument("rental_id", help="Rental identifier")
    parser.add_argument("licence_plate", help="Licence plate to search")
    parser.add_argument("start", type=date.fromisoformat, help="Rental start date (YYYY-MM-DD)")
    parser.add_argument("end", type=date.fromisoformat, help="Rental end date (YYYY-MM-DD)")
    parser.add_argument("--state", help="Issuing state")
    parser.add_argument("--registration", help="Vehicle registration for the CSV export")
    parser.add_argument("--csv", nargs="?", const="", help="Write notices as CSV (default file name when empty)")
    parser.add_argument("--json", action="store_true", dest="json_mode", help="Output machine-readable JSON")
    parser.add_argument("--no-search", action="store_true", help="Skip the provider search")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    args = parser.parse_args()

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")
    else:
        logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    config = FleetSyncConfig.from_env()
    rental = Rental(
        id=args.rental_id,
        licence_plate=args.licence_plate,
        start_date=args.start,
        end_date=args.end,
        state=args.state or config.default_state,
        vehicle_registration=args.registration,
        user_id=config.user_id,
    )

    async with FleetSyncClient(config) as client:
        if args.no_search:
            summaries = await client.get_weekly_summaries(rental.id)
            status, error = "stored", None
        else:
            result = await client.refresh_rental(rental)
            summaries, status, error = result.summaries, result.status.value, result.error

        if args.csv is not None:
            target = Path(args.csv or export_filename(rental.id))
            target.write_text(await client.export_rental_csv(rental), encoding="utf-8")
            print(f"CSV written to {target}", file=sys.stderr)

    if args.json_mode:
        payload = {
            "rental_id": rental.id,
            "status": status,
            "error": error,
            "weeks": [week.model_dump(mode="json") for week in summaries],
        }
        print(json.dumps(payload, indent=2, ensure_ascii=False))
    else:
        out = [_section(f"Rental {rental.id} - {rental.licence_plate} ({rental.state})")]
        out.append(f"  status: {status}")
        if error:
            out.append(f"  error:  {error}")
        if not summaries:
            out.append("  no toll notices")
        for week in summaries:
            out.extend(_format_week(week))
        print("\n".join(out))

    return 1 if status == "search_failed" else 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
