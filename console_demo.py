"""
Offline console demo: walks a booking through its lifecycle on an
in-memory database.

Uses the real service, status machines, availability store and calendar
grid. No network, no external database. Designed for live demo
walkthroughs.

Usage:
    python console_demo.py
    python console_demo.py --scenario negotiate
    python console_demo.py --scenario expire
"""

import argparse
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

from booking_engine.config import settings
from booking_engine.errors import BookingEngineError
from booking_engine.lifecycle.derived import contract_status, payout_status
from booking_engine.logging_context import trace_scope
from booking_engine.scheduling.grid import build_month_grid, weeks
from booking_engine.scheduling.ics import export_calendar
from booking_engine.schemas.availability_schema import AvailabilityStatus
from booking_engine.services.booking_service import BookingService
from booking_engine.services.notifications import RecordingNotificationSink
from booking_engine.store.database import init_db, make_engine, make_session_factory

BLUE = "\033[94m"
GREEN = "\033[92m"
YELLOW = "\033[93m"
RED = "\033[91m"
DIM = "\033[2m"
RESET = "\033[0m"
BOLD = "\033[1m"

PROVIDER = "dj-nova"
CLIENT = "anna-k"
RIVAL = "club-phonix"

# One letter per status in the printed month grid.
_STATUS_MARK = {
    AvailabilityStatus.AVAILABLE: ".",
    AvailabilityStatus.BOOKED: "B",
    AvailabilityStatus.PENDING: "P",
    AvailabilityStatus.BLOCKED: "x",
    AvailabilityStatus.OPEN_GIG: "o",
}


class DemoClock:
    """Clock the demo can wind forward."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


class ConsoleSession:
    """Drives the booking service through scripted scenarios in the terminal."""

    SCENARIOS = ("booking", "negotiate", "cancel", "expire", "race")

    def __init__(self, event_date: date = date(2025, 12, 20)) -> None:
        self.engine = make_engine("sqlite://", echo=False)
        init_db(self.engine)
        self.sink = RecordingNotificationSink()
        self.clock = DemoClock(datetime(2025, 12, 1, 10, 0, tzinfo=timezone.utc))
        self.service = BookingService(
            make_session_factory(self.engine), notifier=self.sink, clock=self.clock
        )
        self.event_date = event_date

    def say(self, who: str, text: str) -> None:
        colour = GREEN if who == PROVIDER else BLUE
        print(f"{colour}{BOLD}[{who}]{RESET} {colour}{text}{RESET}")

    def system_log(self, text: str) -> None:
        print(f"{DIM}  >> {text}{RESET}")

    def flush_notifications(self) -> None:
        for user_id, kind, _ in self.sink.sent:
            self.system_log(f"notify {user_id}: {kind.value}")
        self.sink.clear()

    def show_month(self) -> None:
        year, month = self.event_date.year, self.event_date.month
        days = self.service.get_availability(PROVIDER, year, month)
        cells = build_month_grid(year, month, days, today=self.clock.now.date())
        print(f"\n{BOLD}  {self.event_date:%B %Y} ({PROVIDER}){RESET}")
        print(f"{DIM}   Su Mo Tu We Th Fr Sa{RESET}")
        for row in weeks(cells):
            marks = [
                f"{cell.date.day:2d}{_STATUS_MARK[cell.status]}" if cell.is_current_month else "   "
                for cell in row
            ]
            print("  " + "".join(marks))
        stats = self.service.calendar_stats(PROVIDER, year, month)
        print(f"{DIM}  {stats.model_dump()}{RESET}")

    def _request(self, requester: str, budget: str = "1200.00"):
        request = self.service.create_request({
            "provider_id": PROVIDER,
            "requester_id": requester,
            "event_date": self.event_date.isoformat(),
            "event_time_start": "20:00",
            "event_time_end": "23:45",
            "event_type": "birthday",
            "location_name": "Kulturfabrik",
            "proposed_budget": budget,
            "message": "30th birthday, house and disco please.",
        })
        self.say(requester, f"Requests {PROVIDER} on {request.event_date} for {request.proposed_budget} EUR.")
        self.system_log(f"Request {request.id[:8]} {request.status.value}, expires {request.expires_at:%Y-%m-%d %H:%M}Z")
        self.flush_notifications()
        return request

    # ------------------------------------------------------------------ #
    # Scenarios
    # ------------------------------------------------------------------ #

    def scenario_booking(self) -> None:
        self.service.set_availability(PROVIDER, {"date": self.event_date.isoformat(), "status": "open_gig"})
        self.system_log(f"{PROVIDER} marks {self.event_date} as open gig")
        request = self._request(CLIENT)

        booking = self.service.accept_request(request.id, PROVIDER)
        self.say(PROVIDER, f"Accepted. Booking {booking.booking_number} confirmed.")
        self.system_log(
            f"total {booking.total_price}, fee {booking.platform_fee_amount}, "
            f"deposit {booking.deposit_amount} due {booking.deposit_due_date}, "
            f"final {booking.final_payment_amount} due {booking.final_payment_due_date}"
        )
        self.flush_notifications()
        self.show_month()

        self.service.attach_contract(booking.id, "https://files.example/contracts/demo.pdf")
        self.service.sign_contract(booking.id, PROVIDER)
        booking = self.service.sign_contract(booking.id, CLIENT)
        self.system_log(f"Contract: {contract_status(booking).state.value}")
        self.service.record_deposit_payment(booking.id)
        self.service.record_final_payment(booking.id)
        self.flush_notifications()

        self.clock.now = datetime.combine(self.event_date, datetime.min.time(), tzinfo=timezone.utc) + timedelta(hours=19)
        self.service.start_booking(booking.id)
        self.clock.now += timedelta(hours=6)
        booking = self.service.complete_booking(booking.id, PROVIDER)
        self.service.schedule_payout(booking.id, booking.event_date + timedelta(days=3))
        booking = self.service.mark_payout_completed(booking.id)
        self.system_log(f"Booking {booking.status.value}, payout {payout_status(booking).value}")
        self.flush_notifications()

        trail = self.service.status_history("booking", booking.id)
        self.system_log("History: " + " -> ".join(h.new_status for h in trail))
        ics = export_calendar([booking], self.service.get_availability(PROVIDER, 2025, 12))
        self.system_log(f"iCalendar export: {ics.count('BEGIN:VEVENT')} event(s)")

    def scenario_negotiate(self) -> None:
        request = self._request(CLIENT, budget="800.00")
        self.service.propose_counter_offer(request.id, PROVIDER, Decimal("1100"), "Includes light show")
        self.say(PROVIDER, "Counter-offer: 1100 EUR including the light show.")
        self.flush_notifications()
        request = self.service.acknowledge_counter_offer(request.id, CLIENT)
        self.say(CLIENT, f"Deal at {request.proposed_budget} EUR.")
        booking = self.service.accept_request(request.id, PROVIDER)
        self.say(PROVIDER, f"Accepted. Booking {booking.booking_number} at {booking.total_price} EUR.")
        self.flush_notifications()

    def scenario_cancel(self) -> None:
        self.service.set_availability(PROVIDER, {"date": self.event_date.isoformat(), "status": "open_gig"})
        booking = self.service.accept_request(self._request(CLIENT).id, PROVIDER)
        self.show_month()
        self.service.cancel_booking(booking.id, CLIENT, "Venue flooded")
        self.say(CLIENT, "Cancelled: venue flooded.")
        self.flush_notifications()
        self.show_month()

    def scenario_expire(self) -> None:
        request = self._request(CLIENT)
        self.clock.now += timedelta(hours=settings.booking.request_expiry_hours + 1)
        self.system_log(f"Clock moved to {self.clock.now:%Y-%m-%d %H:%M}Z")
        expired = self.service.expire_due_requests()
        self.system_log(f"Sweep expired {len(expired)} request(s)")
        self.flush_notifications()
        try:
            self.service.accept_request(request.id, PROVIDER)
        except BookingEngineError as exc:
            print(f"{RED}  Late accept refused: {exc}{RESET}")

    def scenario_race(self) -> None:
        first = self._request(CLIENT)
        second = self._request(RIVAL, budget="1500.00")
        booking = self.service.accept_request(second.id, PROVIDER)
        self.say(PROVIDER, f"Accepted {RIVAL}: {booking.booking_number}.")
        try:
            self.service.accept_request(first.id, PROVIDER)
        except BookingEngineError as exc:
            print(f"{YELLOW}  Second accept refused: {exc}{RESET}")
        self.service.reject_request(first.id, PROVIDER, "Already booked")
        self.say(PROVIDER, f"Declined {CLIENT}: already booked.")
        self.flush_notifications()
        self.show_month()

    def run_scenario(self, scenario: str) -> None:
        if scenario not in self.SCENARIOS:
            print(f"{RED}Unknown scenario: {scenario}{RESET}")
            return

        print()
        print(f"{BOLD}{'=' * 60}{RESET}")
        print(f"{BOLD}  BOOKING ENGINE - Scenario: {scenario}{RESET}")
        print(f"{BOLD}  Provider: {PROVIDER}  Event date: {self.event_date}{RESET}")
        print(f"{BOLD}{'=' * 60}{RESET}")
        print()

        with trace_scope("DEMO"):
            getattr(self, f"scenario_{scenario}")()

        print(f"\n{BOLD}{'=' * 60}{RESET}")
        print(f"{BOLD}  Scenario '{scenario}' complete.{RESET}")
        print(f"{BOLD}{'=' * 60}{RESET}")

    def close(self) -> None:
        self.engine.dispose()


def main() -> None:
    parser = argparse.ArgumentParser(description="Offline booking engine demo")
    parser.add_argument(
        "--scenario",
        choices=ConsoleSession.SCENARIOS,
        default="booking",
        help="Which lifecycle walkthrough to play",
    )
    args = parser.parse_args()

    session = ConsoleSession()
    try:
        session.run_scenario(args.scenario)
    finally:
        session.close()


if __name__ == "__main__":
    main()
