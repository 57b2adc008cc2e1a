#!/usr/bin/env python3
"""
InboxHub Terminal CLI
Contacts, timeline, sync status, analysis and onboarding from the terminal.
"""

import logging
from datetime import timedelta
from typing import List

import click

from inboxhub.bus.events import bus, EVENT_TOAST
from inboxhub.config import config
from inboxhub.engine import analysis as analysis_store
from inboxhub.engine import contacts as contact_store
from inboxhub.engine import dates as date_store
from inboxhub.engine.api_client import ApiClient, ApiError
from inboxhub.engine.analysis import AnalysisFormatError
from inboxhub.engine.calendar import (
    CalendarEvent, format_event_display, generate_google_calendar_link, get_deadline_urgency,
    calculate_days_from_now, format_relative_date, format_time_12h,
)
from inboxhub.engine.contact_query import (
    ContactFilterState, FILTER_TABS, SORT_COLUMNS, TABS, build_contact_query, paginate,
)
from inboxhub.engine.onboarding import OnboardingWizard, VipInputError, STEPS
from inboxhub.engine.sync_status import SyncState, SyncStatusTracker, InvalidTransition, format_last_sync
from inboxhub.engine.timeline import BUCKETS, bucket_label, today_in
from inboxhub.logging_config import configure_logging, log_call
from inboxhub.models import DATE_TYPES, SENDER_TYPES

AI_MODEL_CHOICES = ['claude', 'deepseek-chat', 'deepseek-reasoner']

RETRY_HINT = "Nothing was changed; try again in a moment."

# Acknowledged dates older than this stay out of `timeline --show-done`
DONE_LOOKBACK_DAYS = 30


def _echo_toast(event_data):
    title = event_data.get('title')
    prefix = f"{title}: " if title else ""
    err = event_data.get('level') == 'error'
    click.echo(f"{'✗' if err else '•'} {prefix}{event_data.get('message')}", err=err)


def _user_id() -> str:
    if not config.USER_ID:
        raise click.UsageError("USER_ID is not set. Add it to .env")
    return config.USER_ID


def _fail(command: str, exc: Exception, hint: str = RETRY_HINT):
    logging.getLogger("inboxhub").error(f"{command} failed: {exc}", exc_info=True)
    click.echo(f"Error: {exc}", err=True)
    if hint:
        click.echo(hint, err=True)


def _split_list(raw: str) -> List[str]:
    return [part.strip() for part in (raw or '').split(',') if part.strip()]


@click.group()
def cli():
    """InboxHub - inbox contacts, deadlines and sync from the terminal"""
    configure_logging()
    bus.off(EVENT_TOAST, _echo_toast)
    bus.on(EVENT_TOAST, _echo_toast)


# =============================================================================
# CONTACTS COMMANDS
# =============================================================================

@cli.group()
def contacts():
    """Browse contacts and manage VIP / mute flags"""
    pass


@contacts.command('list')
@click.option('--tab', type=click.Choice(TABS), default='all', show_default=True)
@click.option('--filter', 'filter_tab', type=click.Choice(FILTER_TABS), default='all', show_default=True)
@click.option('--search', help='Match name or email')
@click.option('--sort', 'sort_by', type=click.Choice(SORT_COLUMNS), default='last_seen_at', show_default=True)
@click.option('--order', 'sort_order', type=click.Choice(['asc', 'desc']), help='Default: asc for name, else desc')
@click.option('--page', default=1, show_default=True)
@click.option('--sender-type', type=click.Choice(('all',) + SENDER_TYPES), default='all', show_default=True)
@log_call
def contacts_list(tab, filter_tab, search, sort_by, sort_order, page, sender_type):
    """List contacts"""
    state = ContactFilterState(
        tab=tab, filter_tab=filter_tab, search=search, sort_by=sort_by, sort_order=sort_order,
        page=page, page_size=config.CONTACTS_PAGE_SIZE, sender_type=sender_type,
    )
    query = build_contact_query(state)

    try:
        results, total = contact_store.search_contacts(_user_id(), query)
    except click.UsageError:
        raise
    except Exception as e:
        _fail("contacts list", e)
        return

    if not results:
        click.echo("No contacts found.")
        return

    pages = paginate(total, query.page, query.page_size)
    click.echo(f"\nShowing {pages['start_item']}-{pages['end_item']} of {total} contacts:\n")
    click.echo(f"{'ID':<10} {'Name':<28} {'Email':<32} {'Emails':>6}  {'Flags':<10}")
    click.echo("-" * 90)

    for c in results:
        flags = ' '.join(f for f, on in (('VIP', c.is_vip), ('muted', c.is_muted), ('client', c.is_client)) if on)
        click.echo(
            f"{(c.id or '')[:8]:<10} {c.display_name[:26]:<28} {c.email[:30]:<32} "
            f"{c.email_count:>6}  {flags:<10}"
        )

    if pages['total_pages'] > 1:
        click.echo(f"\nPage {pages['page']} of {pages['total_pages']}")


@contacts.command('show')
@click.argument('contact_id')
@log_call
def contacts_show(contact_id):
    """Show contact details"""
    logger = logging.getLogger("inboxhub")
    contact = contact_store.get_contact(_user_id(), contact_id)

    if not contact:
        logger.warning(f"contacts_show | contact_id={contact_id} not found")
        click.echo(f"Contact {contact_id} not found.", err=True)
        return

    click.echo(f"\n{'='*80}")
    click.echo(f"CONTACT: {contact.display_name}")
    click.echo(f"{'='*80}")
    click.echo(f"Email:        {contact.email}")
    click.echo(f"Company:      {contact.company or '(not set)'}")
    click.echo(f"Job title:    {contact.job_title or '(not set)'}")
    click.echo(f"Relationship: {contact.relationship_type}")
    click.echo(f"Sender type:  {contact.sender_type}")
    click.echo(f"VIP:          {'yes' if contact.is_vip else 'no'}")
    click.echo(f"Muted:        {'yes' if contact.is_muted else 'no'}")
    click.echo(f"Client:       {'yes' if contact.is_client else 'no'}")
    click.echo(f"Emails:       {contact.email_count}")
    click.echo(f"Last seen:    {contact.last_seen_at or 'never'}")

    if contact.notes:
        click.echo(f"\nNotes:\n{contact.notes}")


def _toggle_flag(contact_id: str, flag: str):
    contact = contact_store.get_contact(_user_id(), contact_id)
    if not contact:
        click.echo(f"Contact {contact_id} not found.", err=True)
        return

    listing = contact_store.ContactList([contact], api=ApiClient())
    ok = listing.toggle_vip(contact_id) if flag == 'is_vip' else listing.toggle_muted(contact_id)
    if ok:
        label = 'VIP' if flag == 'is_vip' else 'Muted'
        click.echo(f"✓ {label} {'on' if getattr(contact, flag) else 'off'} for {contact.display_name}")


@contacts.command('vip')
@click.argument('contact_id')
@log_call
def contacts_vip(contact_id):
    """Toggle the VIP flag"""
    _toggle_flag(contact_id, 'is_vip')


@contacts.command('mute')
@click.argument('contact_id')
@log_call
def contacts_mute(contact_id):
    """Toggle the muted flag"""
    _toggle_flag(contact_id, 'is_muted')


@contacts.command('mark-vip')
@click.argument('contact_ids', nargs=-1, required=True)
@click.option('--direct', is_flag=True, help='Write to the database instead of the web API')
@log_call
def contacts_mark_vip(contact_ids, direct):
    """Mark several contacts as VIP"""
    try:
        if direct:
            marked = contact_store.mark_as_vip(_user_id(), contact_ids)
        else:
            marked = (ApiClient().mark_vip(list(contact_ids)) or {}).get('marked', 0)
    except ApiError as e:
        _fail("contacts mark-vip", e)
        return

    click.echo(f"✓ Marked {marked} contact(s) as VIP")


# =============================================================================
# TIMELINE + DATES COMMANDS
# =============================================================================

def _format_date_item(item, today) -> str:
    days = calculate_days_from_now(item.date, today)
    urgency = get_deadline_urgency(days)
    when = format_relative_date(days)
    if item.event_time:
        when = f"{when} {format_time_12h(item.event_time)}"
    marker = '!' if urgency.level in ('past', 'critical') else ' '
    done = ' (done)' if item.is_acknowledged else ''
    return f"  {marker} {(item.id or '')[:8]:<9} {when:<22} [{item.date_type}] {item.title}{done}"


@cli.command('timeline')
@click.option('--show-done', is_flag=True, help='Include acknowledged dates')
@click.option('--type', 'date_type', type=click.Choice(DATE_TYPES), help='Only this date type')
@click.option('--horizon', type=int, help='Hide dates more than N days out')
@click.option('--done-days', default=DONE_LOOKBACK_DAYS, show_default=True,
              help='With --show-done, how far back to read acknowledged dates')
@log_call
def timeline(show_done, date_type, horizon, done_days):
    """Upcoming deadlines, events and reminders grouped by period"""
    today = today_in(config.TIMEZONE)
    try:
        user_id = _user_id()
        items = date_store.list_dates(user_id, date_type=date_type, is_acknowledged=False)
        if show_done:
            items = items + date_store.list_dates(
                user_id, date_type=date_type, is_acknowledged=True,
                date_from=today - timedelta(days=done_days),
            )
    except click.UsageError:
        raise
    except Exception as e:
        _fail("timeline", e)
        return

    board = date_store.DateTimeline(items, api=ApiClient())
    stats = board.stats(today)
    grouped = board.grouped(today, show_done=show_done, horizon_days=horizon)

    click.echo(
        f"\n{stats.total} dates | {stats.overdue} overdue | "
        f"{stats.pending} pending | {stats.acknowledged} done\n"
    )

    shown = 0
    for key in BUCKETS:
        bucket = grouped[key]
        if not bucket:
            continue
        click.echo(f"{bucket_label(key)} ({len(bucket)})")
        for item in bucket:
            click.echo(_format_date_item(item, today))
        click.echo()
        shown += len(bucket)

    if not shown:
        click.echo("Nothing on the timeline.")


@cli.group()
def dates():
    """Acknowledge, snooze or hide extracted dates"""
    pass


_ACTION_DONE = {'acknowledge': 'Acknowledged', 'snooze': 'Snoozed', 'hide': 'Hidden'}


def _date_action(date_id: str, action: str, direct: bool, snooze_until=None):
    user_id = _user_id()

    try:
        if direct:
            ok = date_store.apply_date_action(user_id, date_id, action, snooze_until)
            if not ok:
                click.echo(f"Date {date_id} not found.", err=True)
                return
            label = date_id[:8]
        else:
            item = date_store.get_date(user_id, date_id)
            if not item:
                click.echo(f"Date {date_id} not found.", err=True)
                return
            board = date_store.DateTimeline([item], api=ApiClient())
            if action == 'snooze':
                ok = board.snooze(date_id, snooze_until)
            elif action == 'hide':
                ok = board.hide(date_id)
            else:
                ok = board.acknowledge(date_id)
            label = item.title
    except ValueError as e:
        click.echo(f"Error: {e}", err=True)
        return

    if ok:
        click.echo(f"✓ {_ACTION_DONE[action]}: {label}")


@dates.command('ack')
@click.argument('date_id')
@click.option('--direct', is_flag=True, help='Write to the database instead of the web API')
@log_call
def dates_ack(date_id, direct):
    """Mark a date as done"""
    _date_action(date_id, 'acknowledge', direct)


@dates.command('snooze')
@click.argument('date_id')
@click.argument('until')
@click.option('--direct', is_flag=True, help='Write to the database instead of the web API')
@log_call
def dates_snooze(date_id, until, direct):
    """Snooze a date until UNTIL (YYYY-MM-DD)"""
    _date_action(date_id, 'snooze', direct, snooze_until=until)


@dates.command('hide')
@click.argument('date_id')
@click.option('--direct', is_flag=True, help='Write to the database instead of the web API')
@log_call
def dates_hide(date_id, direct):
    """Hide a date for good"""
    _date_action(date_id, 'hide', direct)


# =============================================================================
# SYNC COMMANDS
# =============================================================================

def _echo_sync_status(info):
    label = {
        SyncState.NEVER_SYNCED: 'Never synced',
        SyncState.IDLE: 'Up to date',
        SyncState.SYNCING: 'Syncing...',
        SyncState.SUCCESS: 'Sync complete',
        SyncState.ERROR: 'Sync failed',
    }[info.status]
    account = f" ({info.account_email})" if info.account_email else ""
    click.echo(f"{label}{account} | last sync: {format_last_sync(info.last_sync_at)}")
    click.echo(
        f"  {info.emails_count} emails | {info.analysis.analyzed_count} analyzed | "
        f"{info.analysis.unanalyzed_count} waiting | {info.analysis.pending_actions} pending actions"
    )
    if info.status == SyncState.ERROR and info.error_message:
        click.echo(f"  Error: {info.error_message}")


@cli.group()
def sync():
    """Gmail sync status and manual sync"""
    pass


@sync.command('now')
@log_call
def sync_now():
    """Run a sync now"""
    tracker = SyncStatusTracker(_user_id(), api=ApiClient())
    try:
        tracker.refresh()
        click.echo("Syncing...")
        info = tracker.trigger_sync()
    except InvalidTransition as e:
        click.echo(f"Error: {e}", err=True)
        return
    except Exception as e:
        _fail("sync now", e)
        return

    if info.status == SyncState.SUCCESS:
        click.echo(f"✓ {info.summary}")
    else:
        click.echo(f"Error: {info.error_message}", err=True)
        click.echo(RETRY_HINT, err=True)


@sync.command('status')
@log_call
def sync_status():
    """Show the current sync status"""
    tracker = SyncStatusTracker(_user_id(), api=ApiClient())
    try:
        info = tracker.refresh()
    except Exception as e:
        _fail("sync status", e, hint=None)
        return
    _echo_sync_status(info)


@sync.command('watch')
@click.option('--iterations', type=int, help='Stop after N refreshes (default: run until Ctrl-C)')
@log_call
def sync_watch(iterations):
    """Poll the sync status every SYNC_POLL_INTERVAL_SECONDS"""
    tracker = SyncStatusTracker(_user_id(), api=ApiClient())
    click.echo(f"Polling every {tracker.poll_interval}s (Ctrl-C to stop)\n")
    try:
        tracker.poll(iterations=iterations, on_update=_echo_sync_status)
    except KeyboardInterrupt:
        click.echo("\nStopped.")


# =============================================================================
# ANALYSIS COMMANDS
# =============================================================================

@cli.group()
def analysis():
    """AI analysis of a single email"""
    pass


@analysis.command('show')
@click.argument('email_id')
@log_call
def analysis_show(email_id):
    """Show the analysis for an email"""
    try:
        result = analysis_store.fetch_analysis(email_id)
    except AnalysisFormatError as e:
        _fail("analysis show", e, hint="The stored analysis is malformed; re-run it with 'analysis run'.")
        return

    if result is None:
        click.echo(f"No analysis yet for {email_id}. Run: inboxhub analysis run {email_id}")
        return

    if result.categorization:
        cat = result.categorization
        click.echo(f"\nCategory: {cat.category} ({cat.confidence:.0%})")
        if cat.reasoning:
            click.echo(f"  {cat.reasoning}")

    if result.action_extraction and result.action_extraction.has_action:
        act = result.action_extraction
        click.echo(f"\nAction: [{act.action_type}] {act.action_title or ''}")
        if act.deadline:
            click.echo(f"  Deadline: {act.deadline}")

    event = result.event_detection
    if event and event.has_event and event.event_date:
        display = format_event_display(
            event.event_date, event.event_time, event.event_end_time, event.event_end_date,
            today=today_in(config.TIMEZONE),
        )
        click.echo(f"\nEvent: {event.event_title}")
        click.echo(f"  When:  {display.date_display} ({display.relative_date})")
        if display.time_display:
            click.echo(f"  Time:  {display.time_display}")
        if event.location:
            click.echo(f"  Where: {event.location} [{event.location_type}]")
        if event.event_summary:
            click.echo(f"  {event.event_summary}")
        for point in event.key_points:
            click.echo(f"  - {point}")
        try:
            link = generate_google_calendar_link(CalendarEvent(
                title=event.event_title,
                start_date=event.event_date.isoformat(),
                start_time=event.event_time,
                end_date=event.event_end_date.isoformat() if event.event_end_date else None,
                end_time=event.event_end_time,
                description=event.event_summary,
                location=event.location,
            ))
            click.echo(f"  Add to calendar: {link}")
        except ValueError as e:
            logging.getLogger("inboxhub").warning(f"analysis_show | no calendar link for {email_id}: {e}")
            click.echo("  Add to calendar: (unavailable, event time could not be read)")

    if result.date_extraction and result.date_extraction.dates:
        click.echo("\nDates found:")
        for d in result.date_extraction.dates:
            time_part = f" {format_time_12h(d.time)}" if d.time else ""
            click.echo(f"  - {d.date}{time_part} [{d.date_type}] {d.title}")


@analysis.command('run')
@click.argument('email_id')
@log_call
def analysis_run(email_id):
    """Ask the server to (re)analyze an email"""
    try:
        result = analysis_store.request_analysis(email_id, api=ApiClient())
    except ApiError as e:
        _fail("analysis run", e)
        return
    click.echo(f"✓ Analysis requested for {email_id}")
    if result.get('category'):
        click.echo(f"  Category: {result['category']}")


# =============================================================================
# PROFILE + IDEAS COMMANDS
# =============================================================================

@cli.group()
def profile():
    """View or edit your profile"""
    pass


@profile.command('show')
@log_call
def profile_show():
    """Show your profile"""
    try:
        data = ApiClient().get_profile() or {}
    except ApiError as e:
        _fail("profile show", e, hint=None)
        return
    for key, value in data.items():
        click.echo(f"{key:<20} {value}")


@profile.command('set')
@click.argument('pairs', nargs=-1, required=True)
@log_call
def profile_set(pairs):
    """Update profile fields: KEY=VALUE ..."""
    fields = {}
    for pair in pairs:
        key, sep, value = pair.partition('=')
        if not sep or not key:
            raise click.BadParameter(f"Expected KEY=VALUE, got '{pair}'")
        fields[key.strip()] = value.strip()

    try:
        ApiClient().update_profile(**fields)
    except ApiError as e:
        _fail("profile set", e)
        return
    click.echo(f"✓ Updated profile: {', '.join(sorted(fields))}")


@cli.group()
def ideas():
    """Save ideas"""
    pass


@ideas.command('add')
@click.argument('text')
@click.option('--type', 'idea_type', default='note', show_default=True)
@click.option('--email-id', help='Email the idea came from')
@log_call
def ideas_add(text, idea_type, email_id):
    """Save an idea"""
    try:
        ApiClient().add_idea(text, idea_type=idea_type, email_id=email_id)
    except ApiError as e:
        _fail("ideas add", e)
        return
    click.echo("✓ Idea saved")


# =============================================================================
# ONBOARDING
# =============================================================================

def _prompt_step(wizard: OnboardingWizard):
    step = wizard.state.step
    data = wizard.state.data

    if step == 'role':
        wizard.update(
            role=click.prompt("Your role", default=data.role or "", show_default=False),
            company=click.prompt("Company", default=data.company or "", show_default=False),
        )
    elif step in ('priorities', 'projects', 'interests'):
        current = ', '.join(getattr(data, step))
        raw = click.prompt(f"{step.capitalize()} (comma separated)", default=current, show_default=False)
        try:
            wizard.update(**{step: _split_list(raw)})
        except ValueError as e:
            click.echo(f"  {e}", err=True)
            _prompt_step(wizard)
    elif step == 'vips':
        click.echo("  Add VIP emails or @domains, one per line. Enter on a blank line when done.")
        while True:
            raw = click.prompt("  VIP", default="", show_default=False)
            if not raw:
                break
            try:
                wizard.add_vip(raw)
            except VipInputError as e:
                click.echo(f"  {e}", err=True)
    elif step == 'location':
        wizard.update(
            location_city=click.prompt("City", default=data.location_city or "", show_default=False),
            location_metro=click.prompt("Metro area", default=data.location_metro or "", show_default=False),
        )
    elif step == 'schedule':
        days = click.prompt("Work days (1=Mon .. 7=Sun)", default=','.join(str(d) for d in data.work_days))
        wizard.update(
            work_hours_start=click.prompt("Work starts", default=data.work_hours_start),
            work_hours_end=click.prompt("Work ends", default=data.work_hours_end),
            work_days=[int(d) for d in _split_list(days) if d.isdigit()],
        )


@cli.command('onboard')
@log_call
def onboard():
    """Set up your context (7 short steps)"""
    wizard = OnboardingWizard(api=ApiClient())
    click.echo("\n=== INBOXHUB SETUP ===")

    while not wizard.state.completed:
        index = wizard.state.step_index
        click.echo(f"\nStep {index + 1}/{len(STEPS)}: {wizard.state.step.capitalize()}")
        _prompt_step(wizard)

        while not wizard.next():
            if not click.confirm("Try again?", default=True):
                click.echo("Setup paused. Run 'inboxhub onboard' to continue.")
                return

    click.echo("\n✓ Setup complete")


# =============================================================================
# AI COMMANDS
# =============================================================================

@cli.command('brief')
@click.option('--model', type=click.Choice(AI_MODEL_CHOICES), default=None,
              help='AI model to use (default: DEFAULT_AI_MODEL)')
@log_call
def brief(model):
    """AI daily brief - what needs attention today"""
    try:
        from inboxhub.engine import briefing

        click.echo(f"\nGenerating daily brief [{model or config.DEFAULT_AI_MODEL}]...\n")
        result = briefing.generate_daily_brief(_user_id(), model=model)
        click.echo(result)
        click.echo()

    except click.UsageError:
        raise
    except Exception as e:
        _fail("brief", e, hint=None)


# =============================================================================
# MAIN
# =============================================================================

if __name__ == '__main__':
    cli()
