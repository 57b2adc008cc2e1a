"""
Sync Status - finite-state view of the Gmail sync.

States:
    never_synced  account has never completed a sync
    idle          nothing running; shows last sync time
    syncing       a sync is in flight
    success       a sync just finished (shown for SYNC_SUCCESS_RESET_SECONDS)
    error         the last sync failed

All state changes go through transition(); anything not listed in
_TRANSITIONS raises InvalidTransition.
"""

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Optional

from inboxhub.bus.events import bus, EVENT_SYNC_STARTED, EVENT_SYNC_COMPLETED, EVENT_SYNC_FAILED
from inboxhub.config import config
from inboxhub.db.connection import get_db_cursor
from inboxhub.engine.api_client import ApiClient, ApiError
from inboxhub.models import SyncLog, from_row

logger = logging.getLogger(__name__)


class SyncState(str, Enum):
    IDLE = 'idle'
    SYNCING = 'syncing'
    SUCCESS = 'success'
    ERROR = 'error'
    NEVER_SYNCED = 'never_synced'


class SyncEvent(str, Enum):
    SYNC_REQUESTED = 'sync_requested'
    SYNC_SUCCEEDED = 'sync_succeeded'
    SYNC_FAILED = 'sync_failed'
    SUCCESS_TIMEOUT = 'success_timeout'
    STATUS_REFRESHED = 'status_refreshed'


class InvalidTransition(Exception):
    def __init__(self, state: SyncState, event: SyncEvent):
        super().__init__(f"Cannot apply {event.value} while {state.value}")
        self.state = state
        self.event = event


_TRANSITIONS = {
    (SyncState.IDLE, SyncEvent.SYNC_REQUESTED): SyncState.SYNCING,
    (SyncState.NEVER_SYNCED, SyncEvent.SYNC_REQUESTED): SyncState.SYNCING,
    (SyncState.ERROR, SyncEvent.SYNC_REQUESTED): SyncState.SYNCING,
    (SyncState.SUCCESS, SyncEvent.SYNC_REQUESTED): SyncState.SYNCING,
    (SyncState.SYNCING, SyncEvent.SYNC_SUCCEEDED): SyncState.SUCCESS,
    (SyncState.SYNCING, SyncEvent.SYNC_FAILED): SyncState.ERROR,
    (SyncState.SUCCESS, SyncEvent.SUCCESS_TIMEOUT): SyncState.IDLE,
}


def transition(state: SyncState, event: SyncEvent, derived: Optional[SyncState] = None) -> SyncState:
    """
    Single reducer for the sync state.

    STATUS_REFRESHED carries the state re-derived from the database and is
    accepted from any state, except that a success being shown is kept until
    its timeout.
    """
    if event == SyncEvent.STATUS_REFRESHED:
        if derived is None:
            raise ValueError("STATUS_REFRESHED needs a derived state")
        return state if state == SyncState.SUCCESS else derived

    try:
        return _TRANSITIONS[(state, event)]
    except KeyError:
        raise InvalidTransition(state, event)


def derive_status(last_sync_at: Optional[datetime], latest_log: Optional[SyncLog]) -> SyncState:
    """State implied by what is persisted (account + latest sync log)."""
    if not last_sync_at:
        return SyncState.NEVER_SYNCED
    if latest_log and latest_log.status == 'failed':
        return SyncState.ERROR
    if latest_log and latest_log.status == 'started':
        return SyncState.SYNCING
    return SyncState.IDLE


def format_last_sync(last_sync_at: Optional[datetime], now: Optional[datetime] = None) -> str:
    if not last_sync_at:
        return 'Never synced'
    now = now or datetime.now(timezone.utc)
    minutes = int((now - last_sync_at).total_seconds() // 60)
    hours = minutes // 60

    if minutes < 1:
        return 'Just now'
    if minutes < 60:
        return f"{minutes} min ago"
    if hours < 24:
        return f"{hours} hour{'s' if hours > 1 else ''} ago"
    return last_sync_at.strftime('%m/%d/%Y')


def sync_summary(result: dict) -> str:
    """'5 new emails, 3 analyzed, 2 actions found' from a /api/emails/sync response."""
    totals = result.get('totals') or {}
    analysis = result.get('analysis') or {}
    created = totals.get('totalCreated') or 0
    analyzed = analysis.get('successCount') or 0
    actions = analysis.get('actionsCreated') or 0
    return f"{created} new emails, {analyzed} analyzed, {actions} actions found"


# =============================================================================
# STATUS SNAPSHOT
# =============================================================================

@dataclass
class AnalysisInfo:
    status: str = 'complete'
    analyzed_count: int = 0
    unanalyzed_count: int = 0
    pending_actions: int = 0


@dataclass
class SyncStatusInfo:
    status: SyncState = SyncState.NEVER_SYNCED
    last_sync_at: Optional[datetime] = None
    emails_count: int = 0
    error_message: Optional[str] = None
    account_email: Optional[str] = None
    analysis: AnalysisInfo = field(default_factory=AnalysisInfo)
    summary: Optional[str] = None


def analysis_status(analyzed: int, unanalyzed: int) -> str:
    if unanalyzed > 0 and analyzed == 0:
        return 'pending'
    if unanalyzed > 0:
        return 'ready'
    return 'complete'


def fetch_sync_snapshot(user_id: str) -> dict:
    """Account, latest sync log and aggregate counts for one user."""
    with get_db_cursor() as cur:
        cur.execute("""
            SELECT email, last_sync_at FROM gmail_accounts
            WHERE user_id = %s AND sync_enabled = TRUE
            ORDER BY last_sync_at DESC NULLS LAST
            LIMIT 1
        """, (user_id,))
        account = cur.fetchone()

        cur.execute("""
            SELECT status, error_message, started_at, completed_at, emails_fetched
            FROM sync_logs
            WHERE user_id = %s
            ORDER BY started_at DESC
            LIMIT 1
        """, (user_id,))
        log_row = cur.fetchone()

        cur.execute("""
            SELECT
                COUNT(*) AS emails_count,
                COUNT(analyzed_at) AS analyzed_count
            FROM emails WHERE user_id = %s
        """, (user_id,))
        counts = cur.fetchone()

        cur.execute(
            "SELECT COUNT(*) AS pending_actions FROM actions WHERE user_id = %s AND status = 'pending'",
            (user_id,)
        )
        actions = cur.fetchone()

    return {
        'account': dict(account) if account else None,
        'latest_log': from_row(SyncLog, log_row) if log_row else None,
        'emails_count': counts['emails_count'] if counts else 0,
        'analyzed_count': counts['analyzed_count'] if counts else 0,
        'pending_actions': actions['pending_actions'] if actions else 0,
    }


# =============================================================================
# TRACKER
# =============================================================================

class SyncStatusTracker:
    """
    Holds the sync status for one user, refreshes it from the database and
    triggers syncs through the web API.

    Time is passed in (`now`) so the success timeout is deterministic.
    """

    def __init__(self, user_id: str, api: Optional[ApiClient] = None,
                 reset_seconds: Optional[float] = None, poll_interval: Optional[float] = None,
                 fetch_snapshot: Callable[[str], dict] = fetch_sync_snapshot,
                 sleep: Callable[[float], None] = time.sleep):
        self.user_id = user_id
        self.api = api or ApiClient()
        self.reset_seconds = config.SYNC_SUCCESS_RESET_SECONDS if reset_seconds is None else reset_seconds
        self.poll_interval = config.SYNC_POLL_INTERVAL_SECONDS if poll_interval is None else poll_interval
        self._fetch_snapshot = fetch_snapshot
        self._sleep = sleep
        self._success_at: Optional[datetime] = None
        self._in_flight = False
        self.info = SyncStatusInfo()

    @property
    def status(self) -> SyncState:
        return self.info.status

    def _apply(self, event: SyncEvent, derived: Optional[SyncState] = None):
        previous = self.info.status
        self.info.status = transition(previous, event, derived)
        if self.info.status != previous:
            logger.debug(f"Sync status {previous.value} -> {self.info.status.value} ({event.value})")

    def expire_success(self, now: Optional[datetime] = None):
        """Revert a shown success to idle once it has been up long enough."""
        now = now or datetime.now(timezone.utc)
        if self.info.status == SyncState.SUCCESS and self._success_at is not None:
            if (now - self._success_at).total_seconds() >= self.reset_seconds:
                self._apply(SyncEvent.SUCCESS_TIMEOUT)
                self._success_at = None
                self.info.summary = None

    def refresh(self, now: Optional[datetime] = None) -> SyncStatusInfo:
        """Re-read counts and persisted status. Counts always update."""
        self.expire_success(now)
        snapshot = self._fetch_snapshot(self.user_id)

        account = snapshot.get('account') or {}
        latest_log = snapshot.get('latest_log')
        last_sync_at = account.get('last_sync_at')
        emails = snapshot.get('emails_count') or 0
        analyzed = snapshot.get('analyzed_count') or 0
        unanalyzed = max(emails - analyzed, 0)

        self.info.emails_count = emails
        self.info.account_email = account.get('email')
        self.info.analysis = AnalysisInfo(
            status=analysis_status(analyzed, unanalyzed),
            analyzed_count=analyzed,
            unanalyzed_count=unanalyzed,
            pending_actions=snapshot.get('pending_actions') or 0,
        )
        if last_sync_at:
            self.info.last_sync_at = last_sync_at

        if not self._in_flight:
            derived = derive_status(last_sync_at, latest_log)
            self._apply(SyncEvent.STATUS_REFRESHED, derived)
            if self.info.status == SyncState.ERROR:
                self.info.error_message = (latest_log.error_message if latest_log else None) or 'Sync failed'
            elif self.info.status != SyncState.SUCCESS:
                self.info.error_message = None

        return self.info

    def trigger_sync(self, now: Optional[datetime] = None) -> SyncStatusInfo:
        """
        Run a sync through the web API.

        Raises InvalidTransition when a sync from this client is already
        running. API failures do not raise; they land in the error state.
        """
        self._apply(SyncEvent.SYNC_REQUESTED)
        self._in_flight = True
        self.info.error_message = None
        self.info.summary = None
        bus.emit(EVENT_SYNC_STARTED, {'user_id': self.user_id})
        logger.info("Manual sync triggered")

        try:
            result = self.api.sync_emails()
        except ApiError as e:
            return self._sync_failed(e.message)
        finally:
            self._in_flight = False

        if not isinstance(result, dict):
            return self._sync_failed(f"Unexpected sync response ({type(result).__name__})")

        now = now or datetime.now(timezone.utc)
        totals = result.get('totals') or {}
        analysis = result.get('analysis') or {}

        self._apply(SyncEvent.SYNC_SUCCEEDED)
        self._success_at = now
        self.info.last_sync_at = now
        self.info.emails_count += totals.get('totalCreated') or 0
        if analysis:
            self.info.analysis = AnalysisInfo(
                status='complete',
                analyzed_count=self.info.analysis.analyzed_count + (analysis.get('successCount') or 0),
                unanalyzed_count=0,
                pending_actions=self.info.analysis.pending_actions + (analysis.get('actionsCreated') or 0),
            )
        self.info.summary = sync_summary(result)

        logger.info(f"Manual sync completed: {self.info.summary}")
        bus.emit(EVENT_SYNC_COMPLETED, {'user_id': self.user_id, 'summary': self.info.summary})
        return self.info

    def _sync_failed(self, message: Optional[str]) -> SyncStatusInfo:
        self._apply(SyncEvent.SYNC_FAILED)
        self.info.error_message = message or 'Sync failed'
        logger.error(f"Manual sync failed: {self.info.error_message}")
        bus.emit(EVENT_SYNC_FAILED, {'user_id': self.user_id, 'error': self.info.error_message})
        return self.info

    def poll(self, iterations: Optional[int] = None,
             on_update: Optional[Callable[[SyncStatusInfo], None]] = None):
        """
        Refresh every poll_interval seconds. Runs forever unless iterations
        is given; refresh errors are logged and polling continues.
        """
        count = 0
        while iterations is None or count < iterations:
            if count:
                self._sleep(self.poll_interval)
            try:
                self.refresh()
            except Exception as e:
                logger.error(f"Error fetching sync status: {e}")
            else:
                if on_update:
                    on_update(self.info)
            count += 1
