"""
API Client - talks to the InboxHub web application.

Writes (contact updates, date actions, sync, analysis, onboarding) go through
the web API so the server-side rules and side effects run. Reads mostly go
straight to Postgres (see contacts.py / dates.py).

Errors map onto a small hierarchy rooted at ApiError:
    400 -> ApiValidationError
    401 -> ApiAuthError
    404 -> ApiNotFoundError
    5xx -> ApiServerError
    network failure -> ApiConnectionError (status None)
"""

import logging
from typing import Any, Dict, List, Optional

import requests

from inboxhub.config import config
from inboxhub.logging_config import short_id

logger = logging.getLogger(__name__)


# =============================================================================
# ERRORS
# =============================================================================

class ApiError(Exception):
    """Non-2xx response (or no response at all) from the web API."""

    def __init__(self, status: Optional[int], message: str):
        super().__init__(message)
        self.status = status
        self.message = message


class ApiValidationError(ApiError):
    pass


class ApiAuthError(ApiError):
    pass


class ApiNotFoundError(ApiError):
    pass


class ApiServerError(ApiError):
    pass


class ApiConnectionError(ApiError):
    pass


_STATUS_ERRORS = {
    400: ApiValidationError,
    401: ApiAuthError,
    404: ApiNotFoundError,
}


def error_for_response(response) -> ApiError:
    """Build the ApiError subclass matching a failed response."""
    message = None
    try:
        body = response.json()
        if isinstance(body, dict):
            message = body.get('error') or body.get('message')
    except ValueError:
        pass
    message = message or f"HTTP {response.status_code}"

    if response.status_code >= 500:
        cls = ApiServerError
    else:
        cls = _STATUS_ERRORS.get(response.status_code, ApiError)
    return cls(response.status_code, message)


# =============================================================================
# CLIENT
# =============================================================================

class ApiClient:
    """
    Thin JSON client over requests.Session.

    Args:
        base_url: Web app root, e.g. https://inbox.example.com
        session_cookie: Raw Cookie header value of a logged-in session
        timeout: Per-request timeout in seconds
    """

    def __init__(self, base_url: Optional[str] = None, session_cookie: Optional[str] = None,
                 timeout: Optional[float] = None, session: Optional[requests.Session] = None):
        self.base_url = (base_url or config.API_BASE_URL).rstrip('/')
        self.timeout = timeout or config.API_TIMEOUT_SECONDS
        self.session = session or requests.Session()
        self.session.headers.update({'Accept': 'application/json'})
        cookie = session_cookie if session_cookie is not None else config.SESSION_COOKIE
        if cookie:
            self.session.headers['Cookie'] = cookie

    def request(self, method: str, path: str, json: Optional[Dict] = None,
                params: Optional[Dict] = None) -> Any:
        """Send a request; returns the decoded JSON body (None when empty)."""
        url = f"{self.base_url}{path}"
        logger.debug(f"{method} {path}")

        try:
            response = self.session.request(method, url, json=json, params=params, timeout=self.timeout)
        except requests.RequestException as e:
            logger.error(f"{method} {path} failed: {e}")
            raise ApiConnectionError(None, f"Could not reach {self.base_url}: {e}")

        if not response.ok:
            error = error_for_response(response)
            logger.warning(f"{method} {path} -> {response.status_code}: {error.message}")
            raise error

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            raise ApiError(response.status_code, f"Invalid JSON from {path}")

    # -------------------------------------------------------------------------
    # Contacts
    # -------------------------------------------------------------------------

    def get_contact(self, contact_id: str) -> Dict:
        return self.request('GET', f"/api/contacts/{contact_id}")

    def update_contact(self, contact_id: str, **fields) -> Dict:
        logger.info(f"Updating contact {short_id(contact_id)}: {sorted(fields)}")
        return self.request('PUT', f"/api/contacts/{contact_id}", json=fields)

    def mark_vip(self, contact_ids: List[str]) -> Dict:
        return self.request('POST', '/api/contacts/mark-vip', json={'contactIds': list(contact_ids)})

    # -------------------------------------------------------------------------
    # Profile
    # -------------------------------------------------------------------------

    def get_profile(self) -> Dict:
        return self.request('GET', '/api/profile')

    def update_profile(self, **fields) -> Dict:
        return self.request('PATCH', '/api/profile', json=fields)

    # -------------------------------------------------------------------------
    # Emails
    # -------------------------------------------------------------------------

    def sync_emails(self) -> Dict:
        logger.info("Requesting email sync")
        return self.request('POST', '/api/emails/sync') or {}

    def analyze_email(self, email_id: str) -> Dict:
        logger.info(f"Requesting analysis for email {short_id(email_id)}")
        return self.request('POST', f"/api/emails/{email_id}/analyze") or {}

    # -------------------------------------------------------------------------
    # Extracted dates
    # -------------------------------------------------------------------------

    def list_dates(self, **params) -> Dict:
        query = {k: v for k, v in params.items() if v is not None}
        return self.request('GET', '/api/dates', params=query)

    def date_action(self, date_id: str, action: str, snooze_until: Optional[str] = None) -> Dict:
        body = {'action': action}
        if snooze_until:
            body['snooze_until'] = snooze_until
        return self.request('POST', f"/api/dates/{date_id}", json=body)

    # -------------------------------------------------------------------------
    # Ideas
    # -------------------------------------------------------------------------

    def add_idea(self, idea: str, idea_type: str = 'note', email_id: Optional[str] = None) -> Dict:
        body = {'idea': idea, 'ideaType': idea_type}
        if email_id:
            body['emailId'] = email_id
        return self.request('POST', '/api/ideas', json=body)

    # -------------------------------------------------------------------------
    # Onboarding / user context
    # -------------------------------------------------------------------------

    def save_onboarding_step(self, step: int, data: Dict) -> Dict:
        return self.request('POST', '/api/user/context/onboarding', json={'step': step, 'data': data})

    def update_user_context(self, **fields) -> Dict:
        return self.request('PUT', '/api/user/context', json=fields)
