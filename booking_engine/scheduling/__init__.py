from booking_engine.scheduling.grid import CalendarCell, build_month_grid
from booking_engine.scheduling.policy import (
    ActorRole,
    AvailabilityToggled,
    CalendarMode,
    DateSelected,
    can_select,
    handle_day_click,
    is_within_booking_window,
)

__all__ = [
    "CalendarCell",
    "build_month_grid",
    "ActorRole",
    "CalendarMode",
    "DateSelected",
    "AvailabilityToggled",
    "can_select",
    "handle_day_click",
    "is_within_booking_window",
]
