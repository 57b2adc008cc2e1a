"""
Data Models
Dataclasses for all entities. These are pure Python objects, no database logic.
"""

from dataclasses import dataclass, field, fields
from datetime import date, datetime
from typing import Any, Dict, List, Optional


DATE_TYPES = (
    'deadline', 'event', 'payment_due', 'birthday', 'anniversary', 'expiration',
    'appointment', 'follow_up', 'reminder', 'recurring', 'other',
)

RELATIONSHIP_TYPES = (
    'client', 'colleague', 'vendor', 'friend', 'family', 'recruiter', 'service', 'unknown',
)

SENDER_TYPES = ('direct', 'broadcast', 'cold_outreach', 'opportunity', 'unknown')

BROADCAST_SUBTYPES = ('newsletter_author', 'company_newsletter', 'digest_service', 'transactional')

CLIENT_STATUSES = ('active', 'inactive', 'archived')
CLIENT_PRIORITIES = ('vip', 'high', 'medium', 'low')

SYNC_LOG_STATUSES = ('started', 'completed', 'failed')


def from_row(cls, row: Dict[str, Any]):
    """Build a dataclass from a DB row, ignoring columns the model does not carry."""
    names = {f.name for f in fields(cls)}
    return cls(**{k: v for k, v in row.items() if k in names})


@dataclass
class RelatedEmail:
    """Source email joined onto an extracted date"""
    id: Optional[str] = None
    subject: Optional[str] = None
    sender_name: Optional[str] = None
    sender_email: Optional[str] = None
    snippet: Optional[str] = None
    date: Optional[datetime] = None


@dataclass
class RelatedContact:
    """Contact joined onto an extracted date"""
    id: Optional[str] = None
    name: Optional[str] = None
    email: Optional[str] = None
    is_vip: bool = False


@dataclass
class ExtractedDate:
    """A date/deadline/event inferred from an email by the upstream extractor"""
    id: Optional[str] = None
    date_type: str = 'other'
    date: Optional[date] = None
    event_time: Optional[str] = None
    title: str = ''
    description: Optional[str] = None
    is_acknowledged: bool = False
    acknowledged_at: Optional[datetime] = None
    is_recurring: bool = False
    recurrence_pattern: Optional[str] = None
    email_id: Optional[str] = None
    contact_id: Optional[str] = None
    confidence: float = 0.0
    priority_score: Optional[int] = None
    event_metadata: Optional[Dict[str, Any]] = None
    email: Optional[RelatedEmail] = None
    contact: Optional[RelatedContact] = None

    @property
    def is_hidden(self) -> bool:
        """Hide = acknowledged with priority pushed to zero."""
        return self.is_acknowledged and self.priority_score == 0


@dataclass
class Contact:
    """A sender the user has exchanged email with"""
    id: Optional[str] = None
    email: str = ''
    name: Optional[str] = None
    company: Optional[str] = None
    job_title: Optional[str] = None
    relationship_type: str = 'unknown'
    is_vip: bool = False
    is_muted: bool = False
    email_count: int = 0
    first_seen_at: Optional[datetime] = None
    last_seen_at: Optional[datetime] = None
    sender_type: str = 'unknown'
    broadcast_subtype: Optional[str] = None
    is_client: bool = False
    client_status: Optional[str] = None
    client_priority: Optional[str] = None
    notes: Optional[str] = None

    @property
    def display_name(self) -> str:
        return self.name or self.email


@dataclass
class SyncLog:
    """Latest row of sync_logs for a user"""
    status: str = 'completed'
    error_message: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    emails_fetched: int = 0


@dataclass
class UserContext:
    """Onboarding answers used to personalise AI analysis"""
    role: str = ''
    company: str = ''
    priorities: List[str] = field(default_factory=list)
    projects: List[str] = field(default_factory=list)
    vip_emails: List[str] = field(default_factory=list)
    vip_domains: List[str] = field(default_factory=list)
    location_city: str = ''
    location_metro: str = ''
    interests: List[str] = field(default_factory=list)
    work_hours_start: str = '09:00'
    work_hours_end: str = '17:00'
    work_days: List[int] = field(default_factory=lambda: [1, 2, 3, 4, 5])
    onboarding_completed: bool = False
    onboarding_step: int = 0
