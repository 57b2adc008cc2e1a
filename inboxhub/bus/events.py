"""
Event Bus - Decoupled Module Communication
Engine modules emit events; the CLI (and tests) listen. Toasts for failed
optimistic updates travel the same way.
"""

from typing import Callable, Dict, List, Any, Optional
import logging

logger = logging.getLogger(__name__)


class EventBus:
    """
    Simple synchronous event bus.
    A failing handler is logged and never breaks the emitter.
    """

    def __init__(self):
        self._handlers: Dict[str, List[Callable]] = {}

    def on(self, event_name: str, handler: Callable):
        """
        Register a handler for an event.

        Args:
            event_name: Name of the event to listen for
            handler: Callable that receives the event_data dict
        """
        self._handlers.setdefault(event_name, []).append(handler)
        logger.debug(f"Registered handler for event '{event_name}': {getattr(handler, '__name__', handler)}")

    def off(self, event_name: str, handler: Callable):
        """Remove a previously registered handler. Unknown handlers are ignored."""
        handlers = self._handlers.get(event_name, [])
        if handler in handlers:
            handlers.remove(handler)

    def emit(self, event_name: str, event_data: Optional[Dict[str, Any]] = None):
        """
        Emit an event to all registered handlers.

        Args:
            event_name: Name of the event
            event_data: Optional dict of data to pass to handlers
        """
        if event_data is None:
            event_data = {}

        logger.debug(f"Emitting event '{event_name}' with data: {event_data}")

        for handler in list(self._handlers.get(event_name, [])):
            try:
                handler(event_data)
            except Exception as e:
                logger.error(f"Error in handler {getattr(handler, '__name__', handler)} for event '{event_name}': {e}")

    def clear(self):
        """Clear all handlers (useful for testing)."""
        self._handlers.clear()


# Singleton instance
bus = EventBus()


def toast(message: str, level: str = 'error', title: Optional[str] = None):
    """Emit a user-facing notification."""
    bus.emit(EVENT_TOAST, {'level': level, 'title': title, 'message': message})


# =============================================================================
# STANDARD EVENTS
# =============================================================================

# Contacts
EVENT_CONTACT_UPDATED = 'contact_updated'
EVENT_VIP_MARKED = 'vip_marked'

# Extracted dates
EVENT_DATE_ACKNOWLEDGED = 'date_acknowledged'
EVENT_DATE_SNOOZED = 'date_snoozed'
EVENT_DATE_HIDDEN = 'date_hidden'

# Sync
EVENT_SYNC_STARTED = 'sync_started'
EVENT_SYNC_COMPLETED = 'sync_completed'
EVENT_SYNC_FAILED = 'sync_failed'

# Analysis
EVENT_ANALYSIS_REQUESTED = 'analysis_requested'

# Onboarding
EVENT_ONBOARDING_STEP_SAVED = 'onboarding_step_saved'
EVENT_ONBOARDING_COMPLETED = 'onboarding_completed'

# User-facing notifications
EVENT_TOAST = 'toast'
