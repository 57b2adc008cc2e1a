"""
Unit tests for event display formatting and calendar links
(inboxhub/engine/calendar.py). Pure functions, no mocking.
"""

from datetime import date
from urllib.parse import parse_qs, urlparse

import pytest

from inboxhub.engine.calendar import (
    CalendarEvent, GOOGLE_CALENDAR_URL,
    calculate_days_from_now, calendar_dates_param, format_event_date, format_event_display,
    format_relative_date, format_time_12h, generate_google_calendar_link, get_deadline_urgency,
)

TODAY = date(2026, 1, 21)


def _query(url):
    parsed = urlparse(url)
    return {k: v[0] for k, v in parse_qs(parsed.query).items()}


# ---------------------------------------------------------------------------
# format_event_date
# ---------------------------------------------------------------------------

def test_format_event_date_long():
    assert format_event_date('2026-01-25') == 'Sun, Jan 25, 2026'


def test_format_event_date_short():
    assert format_event_date('2026-01-25', short=True) == 'Jan 25, 2026'


def test_format_event_date_short_without_year():
    assert format_event_date(date(2026, 1, 5), short=True, include_year=False) == 'Jan 5'


def test_format_event_date_invalid_returned_unchanged():
    assert format_event_date('sometime soon') == 'sometime soon'


# ---------------------------------------------------------------------------
# format_time_12h
# ---------------------------------------------------------------------------

@pytest.mark.parametrize('value,expected', [
    ('18:00', '6:00 PM'),
    ('18:00:00', '6:00 PM'),
    ('09:05', '9:05 AM'),
    ('00:15', '12:15 AM'),
    ('12:00', '12:00 PM'),
])
def test_format_time_12h(value, expected):
    assert format_time_12h(value) == expected


@pytest.mark.parametrize('value', ['25:00', 'noon', '7:75'])
def test_format_time_12h_invalid_returned_unchanged(value):
    assert format_time_12h(value) == value


def test_format_time_12h_none():
    assert format_time_12h(None) is None


# ---------------------------------------------------------------------------
# relative dates
# ---------------------------------------------------------------------------

def test_days_from_now_today_is_zero():
    assert calculate_days_from_now(TODAY, TODAY) == 0


def test_days_from_now_signed():
    assert calculate_days_from_now('2026-01-24', TODAY) == 3
    assert calculate_days_from_now('2026-01-18', TODAY) == -3


@pytest.mark.parametrize('days,expected', [
    (0, 'Today'),
    (1, 'Tomorrow'),
    (-1, 'Yesterday'),
    (3, 'In 3 days'),
    (7, 'In 7 days'),
    (10, 'Next week'),
    (15, 'In 3 weeks'),
    (-3, '3 days ago'),
    (-21, '3 weeks ago'),
])
def test_format_relative_date(days, expected):
    assert format_relative_date(days) == expected


# ---------------------------------------------------------------------------
# urgency
# ---------------------------------------------------------------------------

@pytest.mark.parametrize('days,level,color', [
    (-1, 'past', 'red-dark'),
    (0, 'critical', 'red'),
    (1, 'urgent', 'orange'),
    (3, 'urgent', 'orange'),
    (4, 'normal', 'green'),
])
def test_deadline_urgency(days, level, color):
    urgency = get_deadline_urgency(days)
    assert urgency.level == level
    assert urgency.color == color


# ---------------------------------------------------------------------------
# format_event_display
# ---------------------------------------------------------------------------

def test_event_display_timed():
    display = format_event_display('2026-01-25', '18:00', '20:30', today=TODAY)
    assert display.date_display == 'Sun, Jan 25, 2026'
    assert display.time_display == '6:00 PM - 8:30 PM'
    assert display.relative_date == 'In 4 days'
    assert display.is_all_day is False
    assert display.days_from_now == 4


def test_event_display_all_day():
    display = format_event_display('2026-01-21', today=TODAY)
    assert display.time_display is None
    assert display.is_all_day is True
    assert display.relative_date == 'Today'


def test_event_display_multi_day_range():
    display = format_event_display('2026-01-24', end_date='2026-01-26', today=TODAY)
    assert display.date_display == 'Sat, Jan 24, 2026 - Mon, Jan 26, 2026'


def test_event_display_same_end_date_is_not_a_range():
    display = format_event_display('2026-01-24', end_date='2026-01-24', today=TODAY)
    assert ' - ' not in display.date_display


# ---------------------------------------------------------------------------
# Google Calendar links
# ---------------------------------------------------------------------------

def test_dates_param_timed_defaults_to_one_hour():
    event = CalendarEvent(title='Launch', start_date='2026-01-25', start_time='18:00')
    assert calendar_dates_param(event) == '20260125T180000/20260125T190000'


def test_dates_param_timed_with_end():
    event = CalendarEvent(title='Launch', start_date='2026-01-25', start_time='18:00', end_time='21:15')
    assert calendar_dates_param(event) == '20260125T180000/20260125T211500'


def test_dates_param_late_event_rolls_into_next_day():
    event = CalendarEvent(title='Late show', start_date='2026-01-25', start_time='23:30')
    assert calendar_dates_param(event) == '20260125T233000/20260126T003000'


def test_dates_param_all_day_end_is_exclusive():
    event = CalendarEvent(title='Holiday', start_date='2026-01-25')
    assert calendar_dates_param(event) == '20260125/20260126'


def test_dates_param_multi_day_all_day():
    event = CalendarEvent(title='Conference', start_date='2026-01-25', end_date='2026-01-27')
    assert calendar_dates_param(event) == '20260125/20260128'


def test_google_calendar_link_fields():
    event = CalendarEvent(
        title='Design Review & Drinks', start_date='2026-01-25', start_time='18:00',
        description='Bring the Q1 deck', location='Studio 4, Chicago',
    )
    url = generate_google_calendar_link(event)
    assert url.startswith(GOOGLE_CALENDAR_URL + '?')
    q = _query(url)
    assert q['action'] == 'TEMPLATE'
    assert q['text'] == 'Design Review & Drinks'
    assert q['dates'] == '20260125T180000/20260125T190000'
    assert q['details'] == 'Bring the Q1 deck'
    assert q['location'] == 'Studio 4, Chicago'


def test_google_calendar_link_omits_empty_fields():
    q = _query(generate_google_calendar_link(CalendarEvent(title='Holiday', start_date='2026-01-25')))
    assert 'details' not in q
    assert 'location' not in q


def test_google_calendar_link_invalid_time_raises():
    with pytest.raises(ValueError):
        generate_google_calendar_link(CalendarEvent(title='X', start_date='2026-01-25', start_time='late'))
