"""
Briefing - AI daily brief over the timeline, open actions and VIP contacts.
"""

import logging
from typing import Optional

from inboxhub.config import config
from inboxhub.db.connection import get_db_cursor
from inboxhub.engine import contacts, dates
from inboxhub.engine.ai_client import call_ai
from inboxhub.engine.contact_query import ContactQuery
from inboxhub.engine.timeline import bucket_label, group_dates_by_period, today_in
from inboxhub.logging_config import log_call

logger = logging.getLogger(__name__)

BRIEF_BUCKETS = ('overdue', 'today', 'tomorrow', 'this_week')
MAX_ITEMS_PER_BUCKET = 5


def count_pending_actions(user_id: str) -> int:
    with get_db_cursor() as cur:
        cur.execute(
            "SELECT COUNT(*) AS pending FROM actions WHERE user_id = %s AND status = 'pending'",
            (user_id,)
        )
        row = cur.fetchone()
    return row['pending'] if row else 0


def _date_line(item) -> str:
    when = f"{item.date} {item.event_time}" if item.event_time else f"{item.date}"
    source = f" (from {item.contact.name or item.contact.email})" if item.contact else ""
    return f"- [{item.date_type}] {item.title} on {when}{source}"


def build_brief_prompt(grouped, pending_actions: int, vips) -> str:
    sections = []
    for key in BRIEF_BUCKETS:
        items = grouped.get(key) or []
        if not items:
            continue
        lines = [_date_line(i) for i in items[:MAX_ITEMS_PER_BUCKET]]
        more = len(items) - MAX_ITEMS_PER_BUCKET
        if more > 0:
            lines.append(f"- ...and {more} more")
        sections.append(f"{bucket_label(key).upper()} ({len(items)}):\n" + "\n".join(lines))

    vip_lines = "\n".join(f"- {c.display_name} <{c.email}>" for c in vips) or "- none"
    timeline = "\n\n".join(sections) or "No upcoming dates."

    return f"""Here is the user's situation today.

{timeline}

OPEN ACTIONS: {pending_actions} pending

VIP CONTACTS:
{vip_lines}

Write a short (150 words) daily brief:
1. What must happen today (overdue first)
2. What to prepare for this week
3. Which VIPs deserve attention

Be specific and actionable."""


@log_call
def generate_daily_brief(user_id: str, model: Optional[str] = None) -> str:
    """Daily brief text for one user."""
    _model = model or config.DEFAULT_AI_MODEL
    logger.info(f"Generating daily brief with {_model}")

    today = today_in(config.TIMEZONE)
    grouped = group_dates_by_period(dates.list_dates(user_id, is_acknowledged=False), today)
    pending = count_pending_actions(user_id)
    vips, _ = contacts.search_contacts(user_id, ContactQuery(is_vip=True, page_size=10))

    prompt = build_brief_prompt(grouped, pending, vips)
    return call_ai(prompt, model=_model)
