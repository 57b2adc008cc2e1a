"""
Timeline - groups extracted dates into display buckets.

Buckets, in display order:
    overdue    date < today, not acknowledged
    today
    tomorrow
    this_week  today+2 .. the next Sunday (a week out when today is Sunday)
    next_week  the following Monday .. Sunday
    later      everything further out (up to the optional horizon)
    done       acknowledged dates already in the past (only with show_done)

Every non-hidden date inside the horizon lands in exactly one bucket.
Acknowledged dates are dropped unless show_done is set; hidden dates are
always dropped. Recurring dates arrive already resolved to their next
occurrence.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Dict, Iterable, List, Optional, Tuple
from zoneinfo import ZoneInfo

from inboxhub.models import ExtractedDate

logger = logging.getLogger(__name__)

BUCKETS = ('overdue', 'today', 'tomorrow', 'this_week', 'next_week', 'later', 'done')

BUCKET_LABELS = {
    'overdue': 'Overdue',
    'today': 'Today',
    'tomorrow': 'Tomorrow',
    'this_week': 'This Week',
    'next_week': 'Next Week',
    'later': 'Later',
    'done': 'Done',
}


@dataclass
class DateStats:
    total: int = 0
    overdue: int = 0
    pending: int = 0
    acknowledged: int = 0


# =============================================================================
# DATE HELPERS
# =============================================================================

def today_in(timezone: str) -> date:
    """Current calendar date in the given IANA timezone."""
    return datetime.now(ZoneInfo(timezone)).date()


def as_date(value) -> date:
    """Coerce a date, datetime or 'YYYY-MM-DD' string to a date."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value:
        return date.fromisoformat(value[:10])
    raise ValueError(f"Not a date: {value!r}")


def end_of_week(today: date) -> date:
    """Next Sunday after today. On a Sunday that is a week out."""
    return today + timedelta(days=7 - (today.weekday() + 1) % 7)


def end_of_next_week(today: date) -> date:
    return end_of_week(today) + timedelta(days=7)


def _time_key(event_time: Optional[str]) -> Optional[Tuple[int, int, int]]:
    if not event_time:
        return None
    try:
        parts = [int(p) for p in str(event_time).split(':')]
    except ValueError:
        logger.debug(f"Unparseable event_time {event_time!r}, treating as all-day")
        return None
    parts += [0] * (3 - len(parts))
    return tuple(parts[:3])


def sort_key(item: ExtractedDate):
    """Date ascending, then timed items by time, then all-day items."""
    t = _time_key(item.event_time)
    return (as_date(item.date), t is None, t or (0, 0, 0))


# =============================================================================
# GROUPING
# =============================================================================

def classify(item: ExtractedDate, today: date) -> str:
    """Bucket key for one date, ignoring visibility rules."""
    d = as_date(item.date)

    if d < today:
        return 'done' if item.is_acknowledged else 'overdue'
    if d == today:
        return 'today'
    if d == today + timedelta(days=1):
        return 'tomorrow'
    if d <= end_of_week(today):
        return 'this_week'
    if d <= end_of_next_week(today):
        return 'next_week'
    return 'later'


def is_visible(item: ExtractedDate, today: date, show_done: bool = False,
               horizon_days: Optional[int] = None) -> bool:
    """Whether a date takes part in grouping at all."""
    if item.is_hidden:
        return False
    if item.is_acknowledged and not show_done:
        return False
    if horizon_days is not None and as_date(item.date) > today + timedelta(days=horizon_days):
        return False
    return True


def group_dates_by_period(
    dates: Iterable[ExtractedDate],
    today: Optional[date] = None,
    show_done: bool = False,
    horizon_days: Optional[int] = None,
) -> Dict[str, List[ExtractedDate]]:
    """
    Partition dates into ordered buckets (see module docstring).

    Args:
        dates: Extracted dates in any order
        today: Reference day; defaults to the local date
        show_done: Keep acknowledged dates
        horizon_days: Drop dates further out than this many days

    Returns: dict keyed by BUCKETS (always all keys, in order), each list sorted
    """
    today = today or date.today()
    groups: Dict[str, List[ExtractedDate]] = {key: [] for key in BUCKETS}

    skipped = 0
    for item in dates:
        if not is_visible(item, today, show_done=show_done, horizon_days=horizon_days):
            skipped += 1
            continue
        groups[classify(item, today)].append(item)

    for key in BUCKETS:
        groups[key].sort(key=sort_key)

    logger.debug(
        "group_dates_by_period: "
        + ", ".join(f"{k}={len(v)}" for k, v in groups.items())
        + f", skipped={skipped}"
    )
    return groups


def date_stats(dates: Iterable[ExtractedDate], today: Optional[date] = None) -> DateStats:
    """Counts for the timeline header."""
    today = today or date.today()
    stats = DateStats()
    for item in dates:
        stats.total += 1
        if item.is_acknowledged:
            stats.acknowledged += 1
        else:
            stats.pending += 1
            if as_date(item.date) < today:
                stats.overdue += 1
    return stats


def bucket_label(key: str) -> str:
    return BUCKET_LABELS[key]
