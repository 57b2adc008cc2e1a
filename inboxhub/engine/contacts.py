"""
Contacts Engine - contact store and the optimistic contact list.

Reads go straight to Postgres. Flag changes made from the list (VIP, mute)
go through the web API so the server's side effects run; the list flips the
flag locally first and puts it back if the request fails.
"""

import logging
import re
from typing import Any, Dict, Iterable, List, Optional, Tuple

from inboxhub.bus.events import bus, toast, EVENT_CONTACT_UPDATED, EVENT_VIP_MARKED
from inboxhub.db.connection import get_db_cursor
from inboxhub.engine.api_client import ApiClient, ApiError
from inboxhub.engine.contact_query import ContactQuery, SORT_COLUMNS
from inboxhub.logging_config import short_id
from inboxhub.models import Contact, from_row

logger = logging.getLogger(__name__)

# Allowlist for dynamic UPDATE queries; column names never come from user input directly
_CONTACT_COLUMNS = {
    'name', 'company', 'job_title', 'relationship_type', 'is_vip', 'is_muted',
    'notes', 'is_client', 'client_status', 'client_priority',
}

_UUID_RE = re.compile(r'^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$', re.IGNORECASE)


def _validate_columns(updates: Dict[str, Any], allowed: set, entity: str) -> None:
    """Raise ValueError if any key in updates is not an allowed column name."""
    invalid = set(updates.keys()) - allowed
    if invalid:
        raise ValueError(f"Invalid {entity} fields: {invalid}")


def is_uuid(value: str) -> bool:
    return bool(_UUID_RE.match(value or ''))


# =============================================================================
# CONTACT STORE
# =============================================================================

def search_contacts(user_id: str, query: ContactQuery) -> Tuple[List[Contact], int]:
    """
    One page of contacts matching the query.
    Returns: (contacts, total_count)
    """
    if query.sort_by not in SORT_COLUMNS:
        raise ValueError(f"Invalid sort column: {query.sort_by}")
    direction = 'ASC' if query.sort_order == 'asc' else 'DESC'

    conditions = ["user_id = %(user_id)s"]
    params: Dict[str, Any] = {'user_id': user_id}

    if query.search:
        conditions.append("(name ILIKE %(search)s OR email ILIKE %(search)s)")
        params['search'] = f"%{query.search}%"

    if query.sender_type:
        conditions.append("sender_type = %(sender_type)s")
        params['sender_type'] = query.sender_type

    if query.broadcast_subtype:
        conditions.append("broadcast_subtype = %(broadcast_subtype)s")
        params['broadcast_subtype'] = query.broadcast_subtype

    for flag in ('is_client', 'is_vip', 'is_muted'):
        value = getattr(query, flag)
        if value is not None:
            conditions.append(f"{flag} = %({flag})s")
            params[flag] = value

    where_clause = " AND ".join(conditions)
    params['limit'] = query.page_size
    params['offset'] = query.offset

    with get_db_cursor() as cur:
        cur.execute(f"SELECT COUNT(*) AS total FROM contacts WHERE {where_clause}", params)
        total = cur.fetchone()['total']

        # sort_by is checked against SORT_COLUMNS above
        cur.execute(f"""
            SELECT * FROM contacts
            WHERE {where_clause}
            ORDER BY {query.sort_by} {direction} NULLS LAST
            LIMIT %(limit)s OFFSET %(offset)s
        """, params)
        rows = cur.fetchall()

    logger.debug(
        f"search_contacts: {len(rows)}/{total} (page={query.page}, sender_type={query.sender_type}, "
        f"vip={query.is_vip}, muted={query.is_muted}, client={query.is_client})"
    )
    return [from_row(Contact, row) for row in rows], total


def get_contact(user_id: str, contact_id: str) -> Optional[Contact]:
    """Get contact by ID."""
    with get_db_cursor() as cur:
        cur.execute("""
            SELECT * FROM contacts
            WHERE id = %s AND user_id = %s
        """, (contact_id, user_id))

        row = cur.fetchone()
        if row:
            return from_row(Contact, row)
        logger.debug(f"get_contact: contact_id={short_id(contact_id)} not found")
        return None


def update_contact(user_id: str, contact_id: str, updates: Dict[str, Any]) -> bool:
    """
    Update contact fields.
    Args:
        user_id: Owner of the contact
        contact_id: ID of contact to update
        updates: Dict of field_name: new_value
    Returns: True if updated, False if not found
    """
    if not updates:
        return False

    _validate_columns(updates, _CONTACT_COLUMNS, 'contact')

    set_clause = ', '.join(f"{key} = %({key})s" for key in updates.keys())
    params = dict(updates, contact_id=contact_id, user_id=user_id)

    with get_db_cursor() as cur:
        cur.execute(f"""
            UPDATE contacts
            SET {set_clause}, updated_at = NOW()
            WHERE id = %(contact_id)s AND user_id = %(user_id)s
        """, params)

        if cur.rowcount > 0:
            logger.info(f"Updated contact {short_id(contact_id)}: {list(updates.keys())}")
            bus.emit(EVENT_CONTACT_UPDATED, {'contact_id': contact_id, 'updates': updates})
            return True
        return False


def get_contact_stats(user_id: str) -> Dict[str, Any]:
    """Totals for the contacts header: all, VIP, muted, clients, per sender type."""
    with get_db_cursor() as cur:
        cur.execute("""
            SELECT
                COUNT(*) AS total,
                COUNT(*) FILTER (WHERE is_vip) AS vip,
                COUNT(*) FILTER (WHERE is_muted) AS muted,
                COUNT(*) FILTER (WHERE is_client) AS clients
            FROM contacts WHERE user_id = %s
        """, (user_id,))
        totals = cur.fetchone()

        cur.execute("""
            SELECT COALESCE(sender_type, 'unknown') AS sender_type, COUNT(*) AS count
            FROM contacts WHERE user_id = %s
            GROUP BY 1
        """, (user_id,))
        by_sender = {row['sender_type']: row['count'] for row in cur.fetchall()}

    stats = dict(totals) if totals else {'total': 0, 'vip': 0, 'muted': 0, 'clients': 0}
    stats['by_sender_type'] = by_sender
    return stats


def mark_as_vip(user_id: str, contact_ids: Iterable[str]) -> int:
    """
    Flag contacts as VIP and remember their addresses in user_context.vip_emails.
    Ids that are not UUIDs are skipped. Returns the number of contacts marked.
    """
    contact_ids = list(contact_ids)
    valid_ids = [cid for cid in contact_ids if is_uuid(cid)]
    if len(valid_ids) != len(contact_ids):
        logger.warning(f"Some contact IDs are not valid UUIDs: provided={len(contact_ids)} valid={len(valid_ids)}")
    if not valid_ids:
        return 0

    with get_db_cursor() as cur:
        cur.execute("""
            UPDATE contacts
            SET is_vip = TRUE, updated_at = NOW()
            WHERE user_id = %s AND id = ANY(%s::uuid[])
            RETURNING id, email
        """, (user_id, valid_ids))
        marked = cur.fetchall()

    logger.info(f"Marked {len(marked)} contacts as VIP for user {short_id(user_id)}")

    emails = [row['email'] for row in marked if row.get('email')]
    if emails:
        try:
            _merge_vip_emails(user_id, emails)
        except Exception as e:
            # VIP flags are already committed at this point
            logger.warning(f"Failed to update user_context.vip_emails: {e}")

    bus.emit(EVENT_VIP_MARKED, {'user_id': user_id, 'contact_ids': [row['id'] for row in marked]})
    return len(marked)


def _merge_vip_emails(user_id: str, emails: List[str]):
    with get_db_cursor() as cur:
        cur.execute("SELECT vip_emails FROM user_context WHERE user_id = %s", (user_id,))
        row = cur.fetchone()
        existing = list((row or {}).get('vip_emails') or [])
        merged = existing + [e for e in emails if e not in existing]

        cur.execute("""
            INSERT INTO user_context (user_id, vip_emails, updated_at)
            VALUES (%s, %s, NOW())
            ON CONFLICT (user_id) DO UPDATE
            SET vip_emails = EXCLUDED.vip_emails, updated_at = NOW()
        """, (user_id, merged))

    logger.debug(f"Updated user_context.vip_emails for {short_id(user_id)}: {len(merged)} VIPs")


# =============================================================================
# OPTIMISTIC CONTACT LIST
# =============================================================================

class ContactList:
    """
    Contacts currently on screen.

    toggle_vip / toggle_muted change the local flag immediately, then PUT it
    to the API. On failure the flag goes back to its old value and an error
    toast is emitted. No retry.
    """

    def __init__(self, contacts: Iterable[Contact], api: Optional[ApiClient] = None, total_count: int = 0):
        self.contacts = list(contacts)
        self.total_count = total_count or len(self.contacts)
        self.api = api or ApiClient()

    def get(self, contact_id: str) -> Contact:
        for contact in self.contacts:
            if contact.id == contact_id:
                return contact
        raise KeyError(contact_id)

    def toggle_vip(self, contact_id: str) -> bool:
        return self._toggle(contact_id, 'is_vip', 'VIP status')

    def toggle_muted(self, contact_id: str) -> bool:
        return self._toggle(contact_id, 'is_muted', 'mute status')

    def _toggle(self, contact_id: str, flag: str, label: str) -> bool:
        contact = self.get(contact_id)
        previous = getattr(contact, flag)
        setattr(contact, flag, not previous)

        try:
            self.api.update_contact(contact_id, **{flag: not previous})
        except ApiError as e:
            setattr(contact, flag, previous)
            logger.error(f"Failed to update {label} for {short_id(contact_id)}, rolled back: {e.message}")
            toast(f"Failed to update {label}: {e.message}")
            return False

        logger.info(f"{flag}={not previous} for contact {short_id(contact_id)}")
        bus.emit(EVENT_CONTACT_UPDATED, {'contact_id': contact_id, 'updates': {flag: not previous}})
        return True
