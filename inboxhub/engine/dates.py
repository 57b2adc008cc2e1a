"""
Dates Engine - extracted dates store and the optimistic timeline.

Actions on a date:
    acknowledge  mark done
    snooze       mark done, note the snooze date in the description
    hide         mark done and drop priority to 0 (never shown again)

Dates are never deleted, only flagged.
"""

import logging
from dataclasses import replace
from datetime import date, datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from inboxhub.bus.events import (
    bus, toast, EVENT_DATE_ACKNOWLEDGED, EVENT_DATE_SNOOZED, EVENT_DATE_HIDDEN,
)
from inboxhub.config import config
from inboxhub.db.connection import get_db_cursor
from inboxhub.engine.api_client import ApiClient, ApiError
from inboxhub.engine.timeline import as_date, date_stats, group_dates_by_period, DateStats
from inboxhub.logging_config import short_id
from inboxhub.models import DATE_TYPES, ExtractedDate, RelatedContact, RelatedEmail

logger = logging.getLogger(__name__)

DATE_ACTIONS = ('acknowledge', 'snooze', 'hide')

_ACTION_EVENTS = {
    'acknowledge': EVENT_DATE_ACKNOWLEDGED,
    'snooze': EVENT_DATE_SNOOZED,
    'hide': EVENT_DATE_HIDDEN,
}


def action_updates(action: str, title: str, snooze_until=None,
                   now: Optional[datetime] = None) -> Dict[str, Any]:
    """Column changes an action makes. Raises ValueError for bad input."""
    if action not in DATE_ACTIONS:
        raise ValueError(f"Invalid action: {action}. Must be one of {DATE_ACTIONS}")

    now = now or datetime.now(timezone.utc)
    updates: Dict[str, Any] = {'is_acknowledged': True, 'acknowledged_at': now}

    if action == 'snooze':
        if not snooze_until:
            raise ValueError("snooze needs a snooze_until date")
        until = as_date(snooze_until).isoformat()
        updates['description'] = f"Snoozed until {until}. Original: {title}"
    elif action == 'hide':
        updates['priority_score'] = 0

    return updates


# =============================================================================
# DATE STORE
# =============================================================================

_SELECT_DATES = """
    SELECT d.*,
           e.subject AS email_subject, e.sender_name AS email_sender_name,
           e.sender_email AS email_sender_email, e.snippet AS email_snippet,
           e.date AS email_date,
           c.name AS contact_name, c.email AS contact_email, c.is_vip AS contact_is_vip
    FROM extracted_dates d
    LEFT JOIN emails e ON e.id = d.email_id
    LEFT JOIN contacts c ON c.id = d.contact_id
"""


def _row_to_date(row: Dict[str, Any]) -> ExtractedDate:
    email = None
    if row.get('email_id'):
        email = RelatedEmail(
            id=row['email_id'],
            subject=row.get('email_subject'),
            sender_name=row.get('email_sender_name'),
            sender_email=row.get('email_sender_email'),
            snippet=row.get('email_snippet'),
            date=row.get('email_date'),
        )
    contact = None
    if row.get('contact_id'):
        contact = RelatedContact(
            id=row['contact_id'],
            name=row.get('contact_name'),
            email=row.get('contact_email'),
            is_vip=bool(row.get('contact_is_vip')),
        )

    return ExtractedDate(
        id=row['id'],
        date_type=row.get('date_type') or 'other',
        date=row['date'],
        event_time=row.get('event_time'),
        title=row.get('title') or '',
        description=row.get('description'),
        is_acknowledged=bool(row.get('is_acknowledged')),
        acknowledged_at=row.get('acknowledged_at'),
        is_recurring=bool(row.get('is_recurring')),
        recurrence_pattern=row.get('recurrence_pattern'),
        email_id=row.get('email_id'),
        contact_id=row.get('contact_id'),
        confidence=row.get('confidence') or 0.0,
        priority_score=row.get('priority_score'),
        event_metadata=row.get('event_metadata'),
        email=email,
        contact=contact,
    )


def list_dates(
    user_id: str,
    date_type: Optional[str] = None,
    date_from=None,
    date_to=None,
    is_acknowledged: Optional[bool] = None,
    email_id: Optional[str] = None,
    contact_id: Optional[str] = None,
    limit: Optional[int] = None,
    offset: int = 0,
) -> List[ExtractedDate]:
    """
    Extracted dates with their source email and contact.
    Ordered by date, then priority (highest first).
    """
    if date_type and date_type not in DATE_TYPES:
        raise ValueError(f"Invalid date_type: {date_type}. Must be one of {DATE_TYPES}")

    conditions = ["d.user_id = %(user_id)s"]
    params: Dict[str, Any] = {'user_id': user_id}

    if date_type:
        conditions.append("d.date_type = %(date_type)s")
        params['date_type'] = date_type
    if date_from:
        conditions.append("d.date >= %(date_from)s")
        params['date_from'] = as_date(date_from)
    if date_to:
        conditions.append("d.date <= %(date_to)s")
        params['date_to'] = as_date(date_to)
    if is_acknowledged is not None:
        conditions.append("d.is_acknowledged = %(is_acknowledged)s")
        params['is_acknowledged'] = is_acknowledged
    if email_id:
        conditions.append("d.email_id = %(email_id)s")
        params['email_id'] = email_id
    if contact_id:
        conditions.append("d.contact_id = %(contact_id)s")
        params['contact_id'] = contact_id

    params['limit'] = limit or config.DATES_PAGE_LIMIT
    params['offset'] = offset
    where_clause = " AND ".join(conditions)

    with get_db_cursor() as cur:
        cur.execute(f"""
            {_SELECT_DATES}
            WHERE {where_clause}
            ORDER BY d.date ASC, d.priority_score DESC NULLS LAST
            LIMIT %(limit)s OFFSET %(offset)s
        """, params)
        rows = cur.fetchall()

    logger.debug(f"list_dates: {len(rows)} rows (type={date_type}, acknowledged={is_acknowledged})")
    return [_row_to_date(row) for row in rows]


def get_date(user_id: str, date_id: str) -> Optional[ExtractedDate]:
    """Get one extracted date with its email and contact."""
    with get_db_cursor() as cur:
        cur.execute(f"""
            {_SELECT_DATES}
            WHERE d.id = %s AND d.user_id = %s
        """, (date_id, user_id))
        row = cur.fetchone()

    if row:
        return _row_to_date(row)
    logger.debug(f"get_date: date_id={short_id(date_id)} not found")
    return None


def apply_date_action(user_id: str, date_id: str, action: str, snooze_until=None) -> bool:
    """
    Apply an action directly in the database.
    Returns: True if updated, False if the date does not exist for this user
    """
    if action not in DATE_ACTIONS:
        raise ValueError(f"Invalid action: {action}. Must be one of {DATE_ACTIONS}")

    with get_db_cursor() as cur:
        cur.execute(
            "SELECT id, title FROM extracted_dates WHERE id = %s AND user_id = %s",
            (date_id, user_id)
        )
        existing = cur.fetchone()
        if not existing:
            logger.warning(f"Extracted date {short_id(date_id)} not found for action {action}")
            return False

        updates = action_updates(action, existing['title'] or '', snooze_until)
        set_clause = ', '.join(f"{key} = %({key})s" for key in updates)

        cur.execute(f"""
            UPDATE extracted_dates
            SET {set_clause}, updated_at = NOW()
            WHERE id = %(date_id)s AND user_id = %(user_id)s
        """, dict(updates, date_id=date_id, user_id=user_id))

    logger.info(f"Date action {action} on {short_id(date_id)}")
    bus.emit(_ACTION_EVENTS[action], {'date_id': date_id, 'snooze_until': snooze_until})
    return True


# =============================================================================
# OPTIMISTIC TIMELINE
# =============================================================================

class DateTimeline:
    """
    Dates currently on screen.

    Actions update the local item at once and then POST to the API. When the
    request fails the item goes back to its previous state and an error toast
    is emitted. Stats are always computed from the current items.
    """

    def __init__(self, dates: Iterable[ExtractedDate], api: Optional[ApiClient] = None):
        self.dates = list(dates)
        self.api = api or ApiClient()

    def _index(self, date_id: str) -> int:
        for i, item in enumerate(self.dates):
            if item.id == date_id:
                return i
        raise KeyError(date_id)

    def get(self, date_id: str) -> ExtractedDate:
        return self.dates[self._index(date_id)]

    def stats(self, today: Optional[date] = None) -> DateStats:
        return date_stats(self.dates, today)

    def grouped(self, today: Optional[date] = None, show_done: bool = False,
                horizon_days: Optional[int] = None) -> Dict[str, List[ExtractedDate]]:
        return group_dates_by_period(self.dates, today, show_done=show_done, horizon_days=horizon_days)

    def acknowledge(self, date_id: str) -> bool:
        return self._apply(date_id, 'acknowledge')

    def snooze(self, date_id: str, until) -> bool:
        return self._apply(date_id, 'snooze', until)

    def hide(self, date_id: str) -> bool:
        return self._apply(date_id, 'hide')

    def _apply(self, date_id: str, action: str, snooze_until=None) -> bool:
        index = self._index(date_id)
        previous = self.dates[index]
        updates = action_updates(action, previous.title, snooze_until)
        self.dates[index] = replace(previous, **updates)

        until = as_date(snooze_until).isoformat() if action == 'snooze' else None
        try:
            self.api.date_action(date_id, action, snooze_until=until)
        except ApiError as e:
            self.dates[index] = previous
            logger.error(f"Date action {action} on {short_id(date_id)} failed, rolled back: {e.message}")
            toast(f"Failed to {action} date: {e.message}")
            return False

        logger.info(f"Date action {action} on {short_id(date_id)}")
        bus.emit(_ACTION_EVENTS[action], {'date_id': date_id, 'snooze_until': until})
        return True
