"""
Contact query builder.

Maps what the contacts screen has selected (tab, filter chip, search box,
sort, page) onto the query the contact store runs. Pure; no I/O.
"""

import math
from dataclasses import dataclass
from typing import Optional

SORT_COLUMNS = ('last_seen_at', 'email_count', 'name')
TABS = ('all', 'clients', 'personal', 'subscriptions')
FILTER_TABS = ('all', 'vip', 'muted')

DEFAULT_PAGE_SIZE = 50


@dataclass
class ContactFilterState:
    tab: str = 'all'
    filter_tab: str = 'all'
    search: Optional[str] = None
    sort_by: str = 'last_seen_at'
    sort_order: Optional[str] = None
    page: Optional[int] = None
    page_size: Optional[int] = None
    sender_type: Optional[str] = None
    is_client: Optional[bool] = None


@dataclass
class ContactQuery:
    search: Optional[str] = None
    sender_type: Optional[str] = None
    broadcast_subtype: Optional[str] = None
    is_client: Optional[bool] = None
    is_vip: Optional[bool] = None
    is_muted: Optional[bool] = None
    sort_by: str = 'last_seen_at'
    sort_order: str = 'desc'
    page: int = 1
    page_size: int = DEFAULT_PAGE_SIZE

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size


def default_sort_order(sort_by: str) -> str:
    """Names read A-Z; dates and counts newest/biggest first."""
    return 'asc' if sort_by == 'name' else 'desc'


def build_contact_query(state: ContactFilterState) -> ContactQuery:
    sort_by = state.sort_by or 'last_seen_at'
    query = ContactQuery(
        search=(state.search or '').strip() or None,
        sort_by=sort_by,
        sort_order=state.sort_order or default_sort_order(sort_by),
        page=state.page or 1,
        page_size=state.page_size or DEFAULT_PAGE_SIZE,
        is_client=state.is_client,
    )

    if state.tab == 'clients':
        query.is_client = True
    elif state.tab == 'personal':
        query.sender_type = 'direct'
    elif state.tab == 'subscriptions':
        query.sender_type = 'broadcast'
    elif state.sender_type and state.sender_type != 'all':
        query.sender_type = state.sender_type

    if state.filter_tab == 'vip':
        query.is_vip = True
    elif state.filter_tab == 'muted':
        query.is_muted = True

    return query


def paginate(total_count: int, page: int = 1, page_size: int = DEFAULT_PAGE_SIZE) -> dict:
    """Page metadata for a result set of total_count rows."""
    total_pages = math.ceil(total_count / page_size) if page_size else 0
    start_item = (page - 1) * page_size + 1 if total_count else 0
    end_item = min(page * page_size, total_count)
    return {
        'page': page,
        'page_size': page_size,
        'total_count': total_count,
        'total_pages': total_pages,
        'has_next': page < total_pages,
        'has_prev': page > 1,
        'start_item': start_item,
        'end_item': end_item,
    }
