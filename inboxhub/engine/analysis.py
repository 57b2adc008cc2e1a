"""
Analysis - typed view of the AI analysis stored per email.

The analyzer writes one JSONB blob per section into `email_analyses`. Older
analyzer versions used camelCase keys, newer ones snake_case, and optional
sections may be missing entirely. normalize_analysis() is the one place that
turns that raw data into typed results; anything malformed raises
AnalysisFormatError instead of leaking half-parsed values to the display.
"""

import logging
import datetime as dt
import re
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator
from pydantic.alias_generators import to_camel

from inboxhub.bus.events import bus, EVENT_ANALYSIS_REQUESTED
from inboxhub.db.connection import get_db_cursor
from inboxhub.engine.api_client import ApiClient
from inboxhub.logging_config import short_id
from inboxhub.models import DATE_TYPES

logger = logging.getLogger(__name__)

SECTIONS = ('categorization', 'action_extraction', 'client_tagging', 'event_detection', 'date_extraction')

_TIME_RE = re.compile(r'^([01]?\d|2[0-3]):[0-5]\d(:[0-5]\d)?$')


class AnalysisFormatError(ValueError):
    """Analysis JSON does not match the expected shape."""


def _check_time(value: Optional[str]) -> Optional[str]:
    if value is not None and not _TIME_RE.match(value.strip()):
        raise ValueError(f"expected HH:MM time, got '{value}'")
    return value.strip() if value else value


class AnalysisSection(BaseModel):
    """Accepts snake_case or camelCase keys; null and '' count as missing."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra='ignore')

    @model_validator(mode='before')
    @classmethod
    def _drop_empty(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return {k: v for k, v in data.items() if v is not None and v != ''}
        return data


class CategorizationResult(AnalysisSection):
    category: str = 'unknown'
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    reasoning: str = ''


class ActionExtractionResult(AnalysisSection):
    has_action: bool = False
    action_type: Literal['respond', 'review', 'create', 'schedule', 'decide', 'none'] = 'none'
    action_title: Optional[str] = None
    action_description: Optional[str] = None
    urgency_score: Optional[int] = None
    deadline: Optional[str] = None
    estimated_minutes: Optional[int] = None
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)


class ClientTaggingResult(AnalysisSection):
    client_match: bool = False
    client_id: Optional[str] = None
    client_name: Optional[str] = None
    project_name: Optional[str] = None
    match_confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    new_client_suggestion: Optional[str] = None
    relationship_signal: Optional[Literal['positive', 'neutral', 'negative', 'unknown']] = None


class EventDetectionResult(AnalysisSection):
    has_event: bool = False
    event_title: str = 'Untitled Event'
    event_date: Optional[dt.date] = None
    event_time: Optional[str] = None
    event_end_date: Optional[dt.date] = None
    event_end_time: Optional[str] = None
    location_type: Literal['in_person', 'virtual', 'hybrid', 'unknown'] = 'unknown'
    location: Optional[str] = None
    event_locality: Optional[str] = None
    registration_deadline: Optional[str] = None
    rsvp_required: bool = False
    rsvp_url: Optional[str] = None
    rsvp_deadline: Optional[str] = None
    organizer: Optional[str] = None
    cost: Optional[str] = None
    additional_details: Optional[str] = None
    event_summary: Optional[str] = None
    key_points: List[str] = Field(default_factory=list)
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)

    @field_validator('event_time', 'event_end_time')
    @classmethod
    def _valid_time(cls, value: Optional[str]) -> Optional[str]:
        return _check_time(value)


class DateExtractionItem(AnalysisSection):
    date_type: str = 'other'
    date: dt.date
    time: Optional[str] = None
    end_date: Optional[dt.date] = None
    end_time: Optional[str] = None
    title: str = ''
    description: Optional[str] = None
    related_entity: Optional[str] = None
    is_recurring: bool = False
    recurrence_pattern: Optional[str] = None
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)

    @field_validator('date_type')
    @classmethod
    def _known_date_type(cls, value: str) -> str:
        if value not in DATE_TYPES:
            raise ValueError(f"unsupported date_type '{value}'")
        return value

    @field_validator('time', 'end_time')
    @classmethod
    def _valid_time(cls, value: Optional[str]) -> Optional[str]:
        return _check_time(value)


class DateExtractionResult(AnalysisSection):
    has_dates: bool = False
    dates: List[DateExtractionItem] = Field(default_factory=list)
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)

    @model_validator(mode='after')
    def _has_dates_matches(self):
        if self.dates and not self.has_dates:
            self.has_dates = True
        return self


class NormalizedAnalysis(AnalysisSection):
    categorization: Optional[CategorizationResult] = None
    action_extraction: Optional[ActionExtractionResult] = None
    client_tagging: Optional[ClientTaggingResult] = None
    event_detection: Optional[EventDetectionResult] = None
    date_extraction: Optional[DateExtractionResult] = None
    tokens_used: Optional[int] = None
    processing_time_ms: Optional[int] = None
    analyzer_version: Optional[str] = None


def _describe(error: ValidationError) -> str:
    parts = []
    for item in error.errors():
        loc = '.'.join(str(p) for p in item['loc'])
        parts.append(f"{loc}: {item['msg']}")
    return '; '.join(parts)


def normalize_analysis(raw: Optional[Dict[str, Any]]) -> NormalizedAnalysis:
    """
    Validate a raw analysis row/blob into NormalizedAnalysis.

    Args:
        raw: dict with any of the section keys (snake or camel case)

    Raises:
        AnalysisFormatError: wrong types, unparseable dates, unknown enum values
    """
    if raw is None:
        return NormalizedAnalysis()
    if not isinstance(raw, dict):
        raise AnalysisFormatError(f"Analysis must be an object, got {type(raw).__name__}")

    try:
        normalized = NormalizedAnalysis.model_validate(raw)
    except ValidationError as e:
        message = _describe(e)
        logger.error(f"Malformed analysis: {message}")
        raise AnalysisFormatError(message) from e

    logger.debug(
        "Normalized analysis sections: "
        + ", ".join(s for s in SECTIONS if getattr(normalized, s) is not None)
    )
    return normalized


def fetch_analysis(email_id: str) -> Optional[NormalizedAnalysis]:
    """Latest analysis for an email, or None when it has not been analyzed yet."""
    with get_db_cursor() as cur:
        cur.execute("""
            SELECT categorization, action_extraction, client_tagging, event_detection,
                   date_extraction, tokens_used, processing_time_ms, analyzer_version
            FROM email_analyses
            WHERE email_id = %s
            ORDER BY created_at DESC
            LIMIT 1
        """, (email_id,))
        row = cur.fetchone()

    if not row:
        logger.info(f"No analysis yet for email {short_id(email_id)}")
        return None
    return normalize_analysis(dict(row))


def request_analysis(email_id: str, api: Optional[ApiClient] = None) -> Dict[str, Any]:
    """Ask the server to (re)analyze one email. ApiError propagates."""
    result = (api or ApiClient()).analyze_email(email_id)
    bus.emit(EVENT_ANALYSIS_REQUESTED, {'email_id': email_id})
    return result
