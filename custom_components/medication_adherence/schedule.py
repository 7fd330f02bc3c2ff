"""Schedule expansion and calendar helpers."""
from __future__ import annotations

from datetime import date, datetime, time, timedelta
from typing import TYPE_CHECKING

from dateutil import rrule

from homeassistant.util import dt as dt_util

from .const import (
    DEFAULT_INTERVAL_HOURS, FIRST_DOSE_HOUR, FIXED_TIMES,
    FREQ_CUSTOM_TIMES, FREQ_INTERVAL_HOURS,
)

if TYPE_CHECKING:
    from .models import Medicine

# Any fixed day works, only the clock part of the grid is kept.
_GRID_DAY = date(2000, 1, 1)


def as_date(value) -> date | None:
    """Coerce a date, datetime or ISO string to a calendar date."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return dt_util.parse_date(str(value)[:10])


def generate_times(medicine: Medicine) -> list[str]:
    """Return the daily HH:MM dose times for a medicine."""
    if medicine.frequency in FIXED_TIMES:
        return list(FIXED_TIMES[medicine.frequency])

    if medicine.frequency == FREQ_CUSTOM_TIMES:
        return [t for t in medicine.custom_times or () if t]

    if medicine.frequency == FREQ_INTERVAL_HOURS:
        interval = medicine.interval_hours
        if not interval or interval < 1:
            interval = DEFAULT_INTERVAL_HOURS
        # Truncated at midnight: no dose wraps into the next day.
        rule = rrule.rrule(
            rrule.HOURLY,
            interval=interval,
            dtstart=datetime.combine(_GRID_DAY, time(FIRST_DOSE_HOUR)),
            until=datetime.combine(_GRID_DAY, time(23, 59)),
        )
        return [occurrence.strftime("%H:%M") for occurrence in rule]

    return []


def is_active_on_date(medicine: Medicine, day) -> bool:
    """Whether the day falls inside the medicine's start/end window."""
    day = as_date(day)
    if day < medicine.start_date:
        return False
    if medicine.end_date and day > medicine.end_date:
        return False
    return True


def dates_backwards(days: int, today: date | None = None) -> list[date]:
    """Return `days` dates ending with today, oldest first."""
    if days <= 0:
        return []
    if today is None:
        today = dt_util.now().date()
    start = as_date(today) - timedelta(days=days - 1)
    rule = rrule.rrule(rrule.DAILY, dtstart=datetime.combine(start, time()), count=days)
    return [occurrence.date() for occurrence in rule]
