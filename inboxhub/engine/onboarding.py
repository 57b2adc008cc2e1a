"""
Onboarding - the seven-step user context wizard.

    role -> priorities -> projects -> vips -> location -> interests -> schedule

Wizard state changes only through reduce(); OnboardingWizard adds the I/O:
each step is saved before the wizard moves on, and the last step marks
onboarding complete.
"""

import logging
import re
from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional, Tuple, Union

from inboxhub.bus.events import bus, toast, EVENT_ONBOARDING_STEP_SAVED, EVENT_ONBOARDING_COMPLETED
from inboxhub.engine.api_client import ApiClient, ApiError
from inboxhub.models import UserContext

logger = logging.getLogger(__name__)

STEPS = ('role', 'priorities', 'projects', 'vips', 'location', 'interests', 'schedule')

STEP_FIELDS = {
    'role': ('role', 'company'),
    'priorities': ('priorities',),
    'projects': ('projects',),
    'vips': ('vip_emails', 'vip_domains'),
    'location': ('location_city', 'location_metro'),
    'interests': ('interests',),
    'schedule': ('work_hours_start', 'work_hours_end', 'work_days'),
}

MAX_PRIORITIES = 5
MAX_PROJECTS = 20
MAX_PROJECT_LENGTH = 100
MAX_VIP_EMAILS = 50
MAX_VIP_DOMAINS = 20

EMAIL_RE = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')
DOMAIN_RE = re.compile(r'^@[a-zA-Z0-9][a-zA-Z0-9-]*(\.[a-zA-Z0-9][a-zA-Z0-9-]*)+$')


class VipInputError(ValueError):
    pass


# =============================================================================
# STATE + ACTIONS
# =============================================================================

@dataclass(frozen=True)
class WizardState:
    step_index: int = 0
    data: UserContext = field(default_factory=UserContext)
    completed: bool = False

    @property
    def step(self) -> str:
        return STEPS[self.step_index]

    @property
    def is_first_step(self) -> bool:
        return self.step_index == 0

    @property
    def is_last_step(self) -> bool:
        return self.step_index == len(STEPS) - 1


@dataclass(frozen=True)
class UpdateStep:
    step: str
    fields: Dict[str, object]


@dataclass(frozen=True)
class NextStep:
    pass


@dataclass(frozen=True)
class PrevStep:
    pass


@dataclass(frozen=True)
class Complete:
    pass


Action = Union[UpdateStep, NextStep, PrevStep, Complete]


def _check_step_fields(step: str, fields: Dict[str, object]):
    if step not in STEP_FIELDS:
        raise ValueError(f"Unknown onboarding step: {step}")
    invalid = set(fields) - set(STEP_FIELDS[step])
    if invalid:
        raise ValueError(f"Fields {sorted(invalid)} do not belong to step '{step}'")

    if len(fields.get('priorities') or []) > MAX_PRIORITIES:
        raise ValueError(f"Select up to {MAX_PRIORITIES} priorities")
    projects = fields.get('projects') or []
    if len(projects) > MAX_PROJECTS:
        raise ValueError(f"Maximum {MAX_PROJECTS} projects allowed")
    if any(len(p) > MAX_PROJECT_LENGTH for p in projects):
        raise ValueError(f"Project names are limited to {MAX_PROJECT_LENGTH} characters")


def reduce(state: WizardState, action: Action) -> WizardState:
    """Pure transition function for the wizard."""
    if isinstance(action, UpdateStep):
        _check_step_fields(action.step, action.fields)
        return replace(state, data=replace(state.data, **action.fields))

    if isinstance(action, NextStep):
        return replace(state, step_index=min(state.step_index + 1, len(STEPS) - 1))

    if isinstance(action, PrevStep):
        return replace(state, step_index=max(state.step_index - 1, 0))

    if isinstance(action, Complete):
        data = replace(state.data, onboarding_completed=True, onboarding_step=len(STEPS))
        return replace(state, data=data, completed=True)

    raise TypeError(f"Unknown wizard action: {action!r}")


def step_payload(state: WizardState, step: Optional[str] = None) -> Dict[str, object]:
    """The fields saved for one step."""
    step = step or state.step
    return {name: getattr(state.data, name) for name in STEP_FIELDS[step]}


# =============================================================================
# VIP INPUT
# =============================================================================

def add_vip(vip_emails: List[str], vip_domains: List[str], value: str) -> Tuple[List[str], List[str]]:
    """
    Add an email or an @domain to the VIP lists.

    Input is trimmed and lower-cased. Returns new (emails, domains) lists.
    Raises VipInputError on bad format, full list, or duplicate.
    """
    entry = (value or '').strip().lower()
    if not entry:
        raise VipInputError('Enter an email or @domain')

    if entry.startswith('@'):
        if not DOMAIN_RE.match(entry):
            raise VipInputError('Invalid domain format. Use format: @company.com')
        if len(vip_domains) >= MAX_VIP_DOMAINS:
            raise VipInputError(f"Maximum {MAX_VIP_DOMAINS} VIP domains allowed")
        if entry in {d.lower() for d in vip_domains}:
            raise VipInputError('This domain is already in your VIP list')
        logger.debug(f"Added VIP domain {entry}")
        return list(vip_emails), list(vip_domains) + [entry]

    if not EMAIL_RE.match(entry):
        raise VipInputError('Invalid email format. Use format: name@company.com')
    if len(vip_emails) >= MAX_VIP_EMAILS:
        raise VipInputError(f"Maximum {MAX_VIP_EMAILS} VIP emails allowed")
    if entry in {e.lower() for e in vip_emails}:
        raise VipInputError('This email is already in your VIP list')
    logger.debug("Added VIP email")
    return list(vip_emails) + [entry], list(vip_domains)


def remove_vip(vip_emails: List[str], vip_domains: List[str], value: str) -> Tuple[List[str], List[str]]:
    entry = (value or '').strip().lower()
    return (
        [e for e in vip_emails if e.lower() != entry],
        [d for d in vip_domains if d.lower() != entry],
    )


# =============================================================================
# WIZARD
# =============================================================================

class OnboardingWizard:
    """Drives WizardState and persists each step through the API."""

    def __init__(self, api: Optional[ApiClient] = None, initial: Optional[UserContext] = None):
        self.api = api or ApiClient()
        self.state = WizardState(data=initial or UserContext())

    def dispatch(self, action: Action) -> WizardState:
        self.state = reduce(self.state, action)
        return self.state

    def update(self, **fields) -> WizardState:
        return self.dispatch(UpdateStep(self.state.step, fields))

    def add_vip(self, value: str) -> WizardState:
        emails, domains = add_vip(self.state.data.vip_emails, self.state.data.vip_domains, value)
        return self.dispatch(UpdateStep('vips', {'vip_emails': emails, 'vip_domains': domains}))

    def next(self) -> bool:
        """
        Save the current step and advance (or finish on the last step).
        Returns False and stays put when saving fails.
        """
        step_number = self.state.step_index + 1
        payload = step_payload(self.state)

        try:
            self.api.save_onboarding_step(step_number, payload)
        except ApiError as e:
            logger.error(f"Failed to save onboarding step {step_number}: {e.message}")
            toast('Unable to save your progress. Please try again.', title='Save failed')
            return False

        logger.info(f"Saved onboarding step {step_number} ({self.state.step})")
        bus.emit(EVENT_ONBOARDING_STEP_SAVED, {'step': step_number, 'fields': sorted(payload)})

        if not self.state.is_last_step:
            self.dispatch(NextStep())
            return True

        try:
            self.api.update_user_context(onboarding_completed=True, onboarding_step=len(STEPS))
        except ApiError as e:
            logger.error(f"Failed to complete onboarding: {e.message}")
            toast('Failed to complete setup. Please try again.', title='Error')
            return False

        self.dispatch(Complete())
        logger.info("User context wizard completed")
        bus.emit(EVENT_ONBOARDING_COMPLETED, {})
        return True

    def back(self) -> WizardState:
        return self.dispatch(PrevStep())

    def skip(self):
        """Mark the wizard as seen without completing it."""
        logger.info("User skipping onboarding wizard")
        try:
            self.api.update_user_context(onboarding_step=0)
        except ApiError as e:
            logger.warning(f"Failed to save skip state: {e.message}")
