"""
Postgres access for the mailbox database (Supabase).

Every query in the engine goes through get_db_cursor(): one connection per
block, committed when the block exits cleanly, rolled back when it raises.
Rows come back as dicts so they map straight onto the dataclasses in
inboxhub.models.

    with get_db_cursor() as cur:
        cur.execute("SELECT * FROM contacts WHERE id = %s AND user_id = %s", (contact_id, user_id))
        row = cur.fetchone()
"""

import logging
from contextlib import contextmanager

import psycopg2
from psycopg2.extras import RealDictCursor

from inboxhub.config import config

logger = logging.getLogger(__name__)

APPLICATION_NAME = "inboxhub-cli"


def _connect():
    return psycopg2.connect(
        config.DATABASE_URL,
        connect_timeout=config.DB_CONNECT_TIMEOUT_SECONDS,
        application_name=APPLICATION_NAME,
    )


@contextmanager
def get_db_connection():
    """Open a connection for one unit of work. Errors roll back and re-raise."""
    conn = _connect()
    logger.debug("Postgres connection opened")
    try:
        yield conn
        conn.commit()
    except Exception as e:
        conn.rollback()
        logger.error(f"Rolled back: {type(e).__name__}: {e}")
        raise
    finally:
        conn.close()


@contextmanager
def get_db_cursor(dict_cursor=True):
    """Cursor on a fresh connection. dict_cursor=False gives plain tuples."""
    with get_db_connection() as conn:
        cur = conn.cursor(cursor_factory=RealDictCursor if dict_cursor else None)
        try:
            yield cur
        finally:
            cur.close()
