"""
Calendar - event display formatting and Google Calendar links.

Everything here is pure string formatting over dates; nothing touches the
network or the database.
"""

import logging
import math
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Optional
from urllib.parse import urlencode

from inboxhub.engine.timeline import as_date

logger = logging.getLogger(__name__)

GOOGLE_CALENDAR_URL = 'https://calendar.google.com/calendar/render'

URGENCY_COLORS = {
    'past': 'red-dark',
    'critical': 'red',
    'urgent': 'orange',
    'normal': 'green',
}


@dataclass
class EventDisplay:
    date_display: str
    time_display: Optional[str]
    relative_date: str
    is_all_day: bool
    days_from_now: int


@dataclass
class Urgency:
    level: str
    color: str


@dataclass
class CalendarEvent:
    """Input for calendar link generation. Dates are YYYY-MM-DD, times HH:MM."""
    title: str
    start_date: str
    start_time: Optional[str] = None
    end_date: Optional[str] = None
    end_time: Optional[str] = None
    description: Optional[str] = None
    location: Optional[str] = None


# =============================================================================
# DATE / TIME FORMATTING
# =============================================================================

def format_event_date(value, short: bool = False, include_year: bool = True) -> str:
    """
    'Sun, Jan 25, 2026' by default; short gives 'Jan 25, 2026' or 'Jan 25'.
    Unparseable input comes back unchanged.
    """
    try:
        d = as_date(value)
    except ValueError:
        logger.warning(f"Failed to format date {value!r}")
        return str(value)

    if short:
        text = f"{d:%b} {d.day}"
        return f"{text}, {d.year}" if include_year else text
    return f"{d:%a}, {d:%b} {d.day}, {d.year}"


def _parse_time(value: str):
    hours_str, _, minutes_str = value.strip().partition(':')
    hours = int(hours_str)
    minutes = int(minutes_str[:2] or 0)
    if not (0 <= hours < 24 and 0 <= minutes < 60):
        raise ValueError(value)
    return hours, minutes


def format_time_12h(value: Optional[str]) -> Optional[str]:
    """'18:00' -> '6:00 PM'. Unparseable input comes back unchanged."""
    if not value:
        return value
    try:
        hours, minutes = _parse_time(value)
    except ValueError:
        logger.warning(f"Failed to format time {value!r}")
        return value

    period = 'PM' if hours >= 12 else 'AM'
    return f"{hours % 12 or 12}:{minutes:02d} {period}"


def calculate_days_from_now(value, today: Optional[date] = None) -> int:
    """Signed whole days from today (negative = past)."""
    today = today or date.today()
    return (as_date(value) - today).days


def format_relative_date(days: int) -> str:
    if days == 0:
        return 'Today'
    if days == 1:
        return 'Tomorrow'
    if days == -1:
        return 'Yesterday'
    if 1 < days <= 7:
        return f"In {days} days"
    if 7 < days <= 14:
        return 'Next week'
    if days > 14:
        return f"In {math.ceil(days / 7)} weeks"
    if -7 <= days < -1:
        return f"{abs(days)} days ago"
    return f"{abs(math.ceil(days / 7))} weeks ago"


def get_deadline_urgency(days: int) -> Urgency:
    """Display styling for a deadline that is `days` away."""
    if days < 0:
        level = 'past'
    elif days == 0:
        level = 'critical'
    elif days <= 3:
        level = 'urgent'
    else:
        level = 'normal'
    return Urgency(level=level, color=URGENCY_COLORS[level])


def format_event_display(
    start_date,
    start_time: Optional[str] = None,
    end_time: Optional[str] = None,
    end_date=None,
    today: Optional[date] = None,
) -> EventDisplay:
    """
    Everything an event card shows about when the event happens.

    Multi-day events render the date as a range:
        'Sat, Jan 24, 2026 - Mon, Jan 26, 2026'
    """
    date_display = format_event_date(start_date)
    if end_date and as_date(end_date) != as_date(start_date):
        date_display = f"{date_display} - {format_event_date(end_date)}"

    time_display = None
    if start_time:
        time_display = format_time_12h(start_time)
        if end_time:
            time_display = f"{time_display} - {format_time_12h(end_time)}"

    days = calculate_days_from_now(start_date, today)

    return EventDisplay(
        date_display=date_display,
        time_display=time_display,
        relative_date=format_relative_date(days),
        is_all_day=not start_time,
        days_from_now=days,
    )


# =============================================================================
# GOOGLE CALENDAR LINKS
# =============================================================================

def _at(day: date, value: str) -> datetime:
    hours, minutes = _parse_time(value)
    return datetime(day.year, day.month, day.day, hours, minutes)


def calendar_dates_param(event: CalendarEvent) -> str:
    """
    Google's `dates` value.
    Timed:   YYYYMMDDTHHMMSS/YYYYMMDDTHHMMSS (end defaults to start + 1h)
    All-day: YYYYMMDD/YYYYMMDD with an exclusive end date
    """
    start = as_date(event.start_date)
    end = as_date(event.end_date) if event.end_date else start

    if event.start_time:
        start_at = _at(start, event.start_time)
        end_at = _at(end, event.end_time) if event.end_time else start_at + timedelta(hours=1)
        return f"{start_at:%Y%m%dT%H%M%S}/{end_at:%Y%m%dT%H%M%S}"
    return f"{start:%Y%m%d}/{end + timedelta(days=1):%Y%m%d}"


def generate_google_calendar_link(event: CalendarEvent) -> str:
    """Pre-filled 'create event' URL. Raises ValueError on unparseable dates/times."""
    params = {
        'action': 'TEMPLATE',
        'text': event.title,
        'dates': calendar_dates_param(event),
    }
    if event.description:
        params['details'] = event.description
    if event.location:
        params['location'] = event.location

    url = f"{GOOGLE_CALENDAR_URL}?{urlencode(params)}"
    logger.debug(f"Generated calendar link for '{event.title}'")
    return url
