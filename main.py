"""
Booking engine command-line entry point.

Operational commands against the configured database (DATABASE_URL), plus
the offline console demo.

Usage:
    Create tables:        python main.py init-db
    Expire due requests:  python main.py expire
    Print a month grid:   python main.py grid dj-nova 2025 12
    Export a calendar:    python main.py ics dj-nova 2025 12 > gigs.ics
    Console demo:         python main.py demo --scenario cancel
"""

import argparse
import logging
import sys
from datetime import date

from booking_engine.config import settings
from booking_engine.errors import BookingEngineError
from booking_engine.logging_context import trace_scope
from booking_engine.scheduling.grid import build_month_grid, weeks
from booking_engine.scheduling.ics import export_calendar
from booking_engine.services.booking_service import BookingService
from booking_engine.store.database import init_db, make_engine, make_session_factory

logger = logging.getLogger(__name__)


def _build_service() -> BookingService:
    engine = make_engine()
    init_db(engine)
    return BookingService(make_session_factory(engine))


def _run_init_db(args) -> None:
    init_db(make_engine())
    logger.info("Tables created on %s", settings.database.url.split("://")[0])


def _run_expire(args) -> None:
    """Sweep pending requests past their deadline. Meant for cron."""
    expired = _build_service().expire_due_requests()
    for request in expired:
        print(f"{request.id}\t{request.provider_id}\t{request.event_date.isoformat()}")
    logger.info("Expired %d request(s)", len(expired))


def _run_grid(args) -> None:
    service = _build_service()
    days = service.get_availability(args.provider_id, args.year, args.month)
    cells = build_month_grid(args.year, args.month, days, today=date.today())
    print(" Su  Mo  Tu  We  Th  Fr  Sa")
    for row in weeks(cells):
        print("".join(
            f"{cell.date.day:3d}{cell.status.value[0].upper()}" if cell.is_current_month else "    "
            for cell in row
        ))
    print(service.calendar_stats(args.provider_id, args.year, args.month).model_dump_json())


def _run_ics(args) -> None:
    service = _build_service()
    bookings = [
        b for b in service.list_bookings(args.provider_id, "upcoming")
        if (b.event_date.year, b.event_date.month) == (args.year, args.month)
    ]
    days = service.get_availability(args.provider_id, args.year, args.month)
    sys.stdout.write(export_calendar(bookings, days))


def _run_demo(args) -> None:
    """Start the offline console demo (in-memory database)."""
    from console_demo import ConsoleSession

    session = ConsoleSession()
    try:
        session.run_scenario(args.scenario)
    finally:
        session.close()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Booking and availability engine")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init-db", help="Create database tables").set_defaults(func=_run_init_db)
    sub.add_parser("expire", help="Expire pending requests past their deadline").set_defaults(
        func=_run_expire
    )

    for name, func, help_text in (
        ("grid", _run_grid, "Print a provider's month grid"),
        ("ics", _run_ics, "Export a provider's month as iCalendar"),
    ):
        p = sub.add_parser(name, help=help_text)
        p.add_argument("provider_id")
        p.add_argument("year", type=int)
        p.add_argument("month", type=int, choices=range(1, 13), metavar="month")
        p.set_defaults(func=func)

    demo = sub.add_parser("demo", help="Run the offline console demo")
    demo.add_argument(
        "--scenario",
        choices=["booking", "negotiate", "cancel", "expire", "race"],
        default="booking",
    )
    demo.set_defaults(func=_run_demo)
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    with trace_scope("CLI"):
        try:
            args.func(args)
        except BookingEngineError as exc:
            logger.error("%s failed: %s", args.command, exc)
            return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
