"""
Unit tests for inboxhub/cli/main.py.

Mocking strategy:
  - patch inboxhub.cli.main.configure_logging (autouse) to prevent file I/O
  - patch inboxhub.cli.main.ApiClient so no HTTP happens; the optimistic
    ContactList / DateTimeline run for real against that mock
  - patch store functions on the engine modules the CLI imports
    (contact_store, date_store, analysis_store)
  - the brief command imports briefing lazily, so patch
    inboxhub.engine.briefing.generate_daily_brief
  - Use click.testing.CliRunner to invoke commands end-to-end
"""

import pytest
from datetime import date, datetime, timezone
from unittest.mock import call, patch

from click.testing import CliRunner

from inboxhub.cli.main import cli
from inboxhub.engine.analysis import AnalysisFormatError, normalize_analysis
from inboxhub.engine.api_client import ApiServerError, ApiValidationError
from inboxhub.engine.sync_status import InvalidTransition, SyncEvent, SyncState, SyncStatusInfo, AnalysisInfo
from inboxhub.models import Contact, ExtractedDate


USER = '00000000-0000-4000-8000-000000000001'
C1 = '3f2b8c1e-9d4a-4e6f-8b2a-1c3d5e7f9a0b'
D1 = '5b6c7d8e-0000-4000-8000-00000000d001'
TODAY = date(2026, 1, 21)

SAMPLE_CONTACT = Contact(
    id=C1, email='ana@acme.com', name='Ana Ruiz', company='Acme', job_title='CTO',
    relationship_type='client', is_client=True, email_count=12, sender_type='direct',
)

SAMPLE_DATE = ExtractedDate(
    id=D1, date=date(2026, 1, 23), event_time='17:00', title='Send Q1 proposal',
    date_type='deadline', priority_score=80,
)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture(autouse=True)
def no_logging():
    """Prevent configure_logging from creating log files during tests."""
    with patch("inboxhub.cli.main.configure_logging"):
        yield


@pytest.fixture(autouse=True)
def user_id():
    with patch("inboxhub.cli.main.config.USER_ID", USER):
        yield


@pytest.fixture
def api():
    with patch("inboxhub.cli.main.ApiClient") as mock_cls:
        yield mock_cls.return_value


# ---------------------------------------------------------------------------
# General
# ---------------------------------------------------------------------------

def test_missing_user_id_is_usage_error(runner):
    with patch("inboxhub.cli.main.config.USER_ID", ""):
        result = runner.invoke(cli, ["contacts", "list"])
    assert result.exit_code == 2
    assert "USER_ID is not set" in result.output


# ---------------------------------------------------------------------------
# contacts
# ---------------------------------------------------------------------------

class TestContactsList:

    def test_empty_result(self, runner):
        with patch("inboxhub.cli.main.contact_store.search_contacts", return_value=([], 0)):
            result = runner.invoke(cli, ["contacts", "list"])
        assert result.exit_code == 0
        assert "No contacts found" in result.output

    def test_lists_contacts_with_range(self, runner):
        with patch("inboxhub.cli.main.contact_store.search_contacts", return_value=([SAMPLE_CONTACT], 1)):
            result = runner.invoke(cli, ["contacts", "list"])
        assert result.exit_code == 0
        assert "Showing 1-1 of 1 contacts" in result.output
        assert "Ana Ruiz" in result.output
        assert "client" in result.output

    def test_tab_and_filter_reach_query(self, runner):
        with patch("inboxhub.cli.main.contact_store.search_contacts", return_value=([], 0)) as mock_search:
            runner.invoke(cli, ["contacts", "list", "--tab", "subscriptions", "--filter", "muted", "--sort", "name"])
        user, query = mock_search.call_args[0]
        assert user == USER
        assert query.sender_type == 'broadcast'
        assert query.is_muted is True
        assert query.sort_order == 'asc'

    def test_invalid_tab_rejected(self, runner):
        result = runner.invoke(cli, ["contacts", "list", "--tab", "friends"])
        assert result.exit_code != 0

    def test_database_error_is_reported(self, runner):
        with patch("inboxhub.cli.main.contact_store.search_contacts", side_effect=RuntimeError("db down")):
            result = runner.invoke(cli, ["contacts", "list"])
        assert result.exit_code == 0
        assert "Error: db down" in result.output


class TestContactsShow:

    def test_not_found(self, runner):
        with patch("inboxhub.cli.main.contact_store.get_contact", return_value=None):
            result = runner.invoke(cli, ["contacts", "show", C1])
        assert "not found" in result.output

    def test_shows_details(self, runner):
        with patch("inboxhub.cli.main.contact_store.get_contact", return_value=SAMPLE_CONTACT):
            result = runner.invoke(cli, ["contacts", "show", C1])
        assert result.exit_code == 0
        assert "CONTACT: Ana Ruiz" in result.output
        assert "Acme" in result.output


class TestContactsVip:

    def test_toggle_vip_success(self, runner, api):
        contact = Contact(id=C1, email='ana@acme.com', name='Ana Ruiz')
        with patch("inboxhub.cli.main.contact_store.get_contact", return_value=contact):
            result = runner.invoke(cli, ["contacts", "vip", C1])
        assert result.exit_code == 0
        assert "✓ VIP on for Ana Ruiz" in result.output
        api.update_contact.assert_called_once_with(C1, is_vip=True)

    def test_toggle_vip_failure_shows_toast(self, runner, api):
        api.update_contact.side_effect = ApiServerError(500, "Database unavailable")
        contact = Contact(id=C1, email='ana@acme.com', name='Ana Ruiz')
        with patch("inboxhub.cli.main.contact_store.get_contact", return_value=contact):
            result = runner.invoke(cli, ["contacts", "vip", C1])
        assert "Failed to update VIP status: Database unavailable" in result.output
        assert "✓" not in result.output
        assert contact.is_vip is False

    def test_toggle_mute(self, runner, api):
        contact = Contact(id=C1, email='ana@acme.com', is_muted=True)
        with patch("inboxhub.cli.main.contact_store.get_contact", return_value=contact):
            result = runner.invoke(cli, ["contacts", "mute", C1])
        assert "✓ Muted off for ana@acme.com" in result.output

    def test_mark_vip_through_api(self, runner, api):
        api.mark_vip.return_value = {'success': True, 'marked': 2}
        result = runner.invoke(cli, ["contacts", "mark-vip", C1, "other-id"])
        assert "✓ Marked 2 contact(s) as VIP" in result.output
        api.mark_vip.assert_called_once_with([C1, "other-id"])

    def test_mark_vip_direct(self, runner):
        with patch("inboxhub.cli.main.contact_store.mark_as_vip", return_value=1) as mock_mark:
            result = runner.invoke(cli, ["contacts", "mark-vip", "--direct", C1])
        assert "✓ Marked 1 contact(s) as VIP" in result.output
        mock_mark.assert_called_once_with(USER, (C1,))

    def test_mark_vip_api_error(self, runner, api):
        api.mark_vip.side_effect = ApiValidationError(400, "contactIds array required")
        result = runner.invoke(cli, ["contacts", "mark-vip", C1])
        assert "Error: contactIds array required" in result.output


# ---------------------------------------------------------------------------
# timeline + dates
# ---------------------------------------------------------------------------

class TestTimeline:

    def test_groups_by_bucket(self, runner, api):
        items = [
            ExtractedDate(id='d-over', date=date(2026, 1, 19), title='Pay invoice', date_type='payment_due'),
            SAMPLE_DATE,
        ]
        with patch("inboxhub.cli.main.date_store.list_dates", return_value=items), \
             patch("inboxhub.cli.main.today_in", return_value=TODAY):
            result = runner.invoke(cli, ["timeline"])
        assert result.exit_code == 0
        assert "2 dates | 1 overdue | 2 pending | 0 done" in result.output
        assert "Overdue (1)" in result.output
        assert "This Week (1)" in result.output
        assert "In 2 days 5:00 PM" in result.output
        assert result.output.index("Overdue") < result.output.index("This Week")

    def test_empty(self, runner, api):
        with patch("inboxhub.cli.main.date_store.list_dates", return_value=[]), \
             patch("inboxhub.cli.main.today_in", return_value=TODAY):
            result = runner.invoke(cli, ["timeline"])
        assert "Nothing on the timeline." in result.output

    def test_pending_only_by_default(self, runner, api):
        with patch("inboxhub.cli.main.date_store.list_dates", return_value=[]) as mock_list, \
             patch("inboxhub.cli.main.today_in", return_value=TODAY):
            runner.invoke(cli, ["timeline", "--type", "deadline"])
        mock_list.assert_called_once_with(USER, date_type='deadline', is_acknowledged=False)

    def test_show_done_reads_recent_acknowledged_separately(self, runner, api):
        with patch("inboxhub.cli.main.date_store.list_dates", return_value=[]) as mock_list, \
             patch("inboxhub.cli.main.today_in", return_value=TODAY):
            runner.invoke(cli, ["timeline", "--show-done", "--type", "deadline"])
        assert mock_list.call_args_list == [
            call(USER, date_type='deadline', is_acknowledged=False),
            call(USER, date_type='deadline', is_acknowledged=True, date_from=date(2025, 12, 22)),
        ]

    def test_show_done_lookback_is_configurable(self, runner, api):
        with patch("inboxhub.cli.main.date_store.list_dates", return_value=[]) as mock_list, \
             patch("inboxhub.cli.main.today_in", return_value=TODAY):
            runner.invoke(cli, ["timeline", "--show-done", "--done-days", "7"])
        assert mock_list.call_args_list[1][1]['date_from'] == date(2026, 1, 14)

    def test_show_done_lists_pending_and_done(self, runner, api):
        done = ExtractedDate(id='d-done', date=date(2026, 1, 20), title='Filed taxes', is_acknowledged=True)
        with patch("inboxhub.cli.main.date_store.list_dates", side_effect=[[SAMPLE_DATE], [done]]), \
             patch("inboxhub.cli.main.today_in", return_value=TODAY):
            result = runner.invoke(cli, ["timeline", "--show-done"])
        assert "2 dates | 0 overdue | 1 pending | 1 done" in result.output
        assert "Done (1)" in result.output


class TestDates:

    def test_ack_through_api(self, runner, api):
        with patch("inboxhub.cli.main.date_store.get_date", return_value=SAMPLE_DATE):
            result = runner.invoke(cli, ["dates", "ack", D1])
        assert "✓ Acknowledged: Send Q1 proposal" in result.output
        api.date_action.assert_called_once_with(D1, 'acknowledge', snooze_until=None)

    def test_ack_failure_shows_toast(self, runner, api):
        api.date_action.side_effect = ApiServerError(500, "Failed to update date")
        with patch("inboxhub.cli.main.date_store.get_date", return_value=SAMPLE_DATE):
            result = runner.invoke(cli, ["dates", "ack", D1])
        assert "Failed to acknowledge date: Failed to update date" in result.output
        assert "✓" not in result.output

    def test_snooze_through_api(self, runner, api):
        with patch("inboxhub.cli.main.date_store.get_date", return_value=SAMPLE_DATE):
            result = runner.invoke(cli, ["dates", "snooze", D1, "2026-02-01"])
        assert "✓ Snoozed: Send Q1 proposal" in result.output
        api.date_action.assert_called_once_with(D1, 'snooze', snooze_until='2026-02-01')

    def test_snooze_bad_date(self, runner, api):
        with patch("inboxhub.cli.main.date_store.get_date", return_value=SAMPLE_DATE):
            result = runner.invoke(cli, ["dates", "snooze", D1, "soon"])
        assert "Error:" in result.output
        api.date_action.assert_not_called()

    def test_hide_direct(self, runner):
        with patch("inboxhub.cli.main.date_store.apply_date_action", return_value=True) as mock_apply:
            result = runner.invoke(cli, ["dates", "hide", "--direct", D1])
        assert "✓ Hidden: 5b6c7d8e" in result.output
        mock_apply.assert_called_once_with(USER, D1, 'hide', None)

    def test_not_found(self, runner, api):
        with patch("inboxhub.cli.main.date_store.get_date", return_value=None):
            result = runner.invoke(cli, ["dates", "ack", D1])
        assert f"Date {D1} not found." in result.output


# ---------------------------------------------------------------------------
# sync
# ---------------------------------------------------------------------------

class TestSync:

    def _tracker(self, mock_cls):
        tracker = mock_cls.return_value
        tracker.poll_interval = 30
        return tracker

    def test_sync_now_success(self, runner, api):
        with patch("inboxhub.cli.main.SyncStatusTracker") as mock_cls:
            tracker = self._tracker(mock_cls)
            tracker.trigger_sync.return_value = SyncStatusInfo(
                status=SyncState.SUCCESS, summary='5 new emails, 3 analyzed, 2 actions found',
            )
            result = runner.invoke(cli, ["sync", "now"])
        assert "Syncing..." in result.output
        assert "✓ 5 new emails, 3 analyzed, 2 actions found" in result.output

    def test_sync_now_error(self, runner, api):
        with patch("inboxhub.cli.main.SyncStatusTracker") as mock_cls:
            tracker = self._tracker(mock_cls)
            tracker.trigger_sync.return_value = SyncStatusInfo(status=SyncState.ERROR, error_message='Token expired')
            result = runner.invoke(cli, ["sync", "now"])
        assert "Error: Token expired" in result.output

    def test_sync_now_while_syncing(self, runner, api):
        with patch("inboxhub.cli.main.SyncStatusTracker") as mock_cls:
            tracker = self._tracker(mock_cls)
            tracker.trigger_sync.side_effect = InvalidTransition(SyncState.SYNCING, SyncEvent.SYNC_REQUESTED)
            result = runner.invoke(cli, ["sync", "now"])
        assert "Cannot apply sync_requested while syncing" in result.output

    def test_sync_status(self, runner, api):
        info = SyncStatusInfo(
            status=SyncState.IDLE, account_email='me@example.com', emails_count=40,
            last_sync_at=datetime.now(timezone.utc),
            analysis=AnalysisInfo(status='ready', analyzed_count=30, unanalyzed_count=10, pending_actions=4),
        )
        with patch("inboxhub.cli.main.SyncStatusTracker") as mock_cls:
            self._tracker(mock_cls).refresh.return_value = info
            result = runner.invoke(cli, ["sync", "status"])
        assert "Up to date (me@example.com) | last sync: Just now" in result.output
        assert "40 emails | 30 analyzed | 10 waiting | 4 pending actions" in result.output

    def test_sync_watch_passes_iterations(self, runner, api):
        with patch("inboxhub.cli.main.SyncStatusTracker") as mock_cls:
            tracker = self._tracker(mock_cls)
            result = runner.invoke(cli, ["sync", "watch", "--iterations", "2"])
        assert "Polling every 30s" in result.output
        assert tracker.poll.call_args[1]['iterations'] == 2


# ---------------------------------------------------------------------------
# analysis
# ---------------------------------------------------------------------------

class TestAnalysis:

    def test_show_event_with_calendar_link(self, runner):
        result_obj = normalize_analysis({
            'categorization': {'category': 'client', 'confidence': 0.9},
            'eventDetection': {
                'hasEvent': True, 'eventTitle': 'Design review', 'eventDate': '2026-01-25',
                'eventTime': '18:00', 'location': 'Studio 4', 'locationType': 'in_person',
            },
        })
        with patch("inboxhub.cli.main.analysis_store.fetch_analysis", return_value=result_obj), \
             patch("inboxhub.cli.main.today_in", return_value=TODAY):
            result = runner.invoke(cli, ["analysis", "show", "e1"])
        assert result.exit_code == 0
        assert "Category: client (90%)" in result.output
        assert "When:  Sun, Jan 25, 2026 (In 4 days)" in result.output
        assert "Time:  6:00 PM" in result.output
        assert "calendar.google.com" in result.output

    def test_show_malformed_analysis_reports_error(self, runner):
        with patch("inboxhub.cli.main.analysis_store.fetch_analysis",
                   side_effect=AnalysisFormatError("event_detection.eventTime: expected HH:MM time, got 'TBD'")):
            result = runner.invoke(cli, ["analysis", "show", "e1"])
        assert result.exit_code == 0
        assert "Error: event_detection.eventTime" in result.output
        assert "re-run it with 'analysis run'" in result.output

    def test_show_without_calendar_link_when_time_unreadable(self, runner):
        result_obj = normalize_analysis({
            'eventDetection': {'hasEvent': True, 'eventTitle': 'Gala', 'eventDate': '2026-01-25'},
        })
        with patch("inboxhub.cli.main.analysis_store.fetch_analysis", return_value=result_obj), \
             patch("inboxhub.cli.main.today_in", return_value=TODAY), \
             patch("inboxhub.cli.main.generate_google_calendar_link", side_effect=ValueError("TBD")):
            result = runner.invoke(cli, ["analysis", "show", "e1"])
        assert result.exit_code == 0
        assert "Event: Gala" in result.output
        assert "Add to calendar: (unavailable" in result.output

    def test_show_missing(self, runner):
        with patch("inboxhub.cli.main.analysis_store.fetch_analysis", return_value=None):
            result = runner.invoke(cli, ["analysis", "show", "e1"])
        assert "No analysis yet for e1" in result.output

    def test_run(self, runner, api):
        api.analyze_email.return_value = {'category': 'newsletter'}
        with patch("inboxhub.cli.main.analysis_store.bus.emit"):
            result = runner.invoke(cli, ["analysis", "run", "e1"])
        assert "✓ Analysis requested for e1" in result.output
        assert "Category: newsletter" in result.output


# ---------------------------------------------------------------------------
# profile / ideas / brief
# ---------------------------------------------------------------------------

def test_profile_set(runner, api):
    result = runner.invoke(cli, ["profile", "set", "full_name=Ana Ruiz", "timezone=UTC"])
    assert "✓ Updated profile: full_name, timezone" in result.output
    api.update_profile.assert_called_once_with(full_name='Ana Ruiz', timezone='UTC')


def test_profile_set_bad_pair(runner, api):
    result = runner.invoke(cli, ["profile", "set", "full_name"])
    assert result.exit_code != 0
    api.update_profile.assert_not_called()


def test_ideas_add(runner, api):
    result = runner.invoke(cli, ["ideas", "add", "Pitch a case study", "--email-id", "e1"])
    assert "✓ Idea saved" in result.output
    api.add_idea.assert_called_once_with("Pitch a case study", idea_type='note', email_id='e1')


def test_brief(runner):
    with patch("inboxhub.engine.briefing.generate_daily_brief", return_value="Focus on Acme today.") as mock_brief:
        result = runner.invoke(cli, ["brief", "--model", "claude"])
    assert "Focus on Acme today." in result.output
    mock_brief.assert_called_once_with(USER, model='claude')


def test_brief_error(runner):
    with patch("inboxhub.engine.briefing.generate_daily_brief", side_effect=ValueError("DEEPSEEK_API_KEY not set")):
        result = runner.invoke(cli, ["brief"])
    assert "Error: DEEPSEEK_API_KEY not set" in result.output


# ---------------------------------------------------------------------------
# onboard
# ---------------------------------------------------------------------------

def test_onboard_walks_all_steps(runner, api):
    answers = "\n".join([
        "Founder", "Acme",          # role
        "Revenue, Hiring",          # priorities
        "Q1 launch",                # projects
        "ana@acme.com", "nope", "",  # vips
        "Chicago", "Chicagoland",   # location
        "AI",                       # interests
        "", "", "",                 # schedule defaults
    ]) + "\n"
    with patch("inboxhub.engine.onboarding.bus.emit"):
        result = runner.invoke(cli, ["onboard"], input=answers)

    assert result.exit_code == 0, result.output
    assert "Invalid email format" in result.output
    assert "✓ Setup complete" in result.output
    assert api.save_onboarding_step.call_count == 7
    saved = {c[0][0]: c[0][1] for c in api.save_onboarding_step.call_args_list}
    assert saved[1] == {'role': 'Founder', 'company': 'Acme'}
    assert saved[2] == {'priorities': ['Revenue', 'Hiring']}
    assert saved[4] == {'vip_emails': ['ana@acme.com'], 'vip_domains': []}
    assert saved[7]['work_days'] == [1, 2, 3, 4, 5]
    api.update_user_context.assert_called_once_with(onboarding_completed=True, onboarding_step=7)


def test_onboard_save_failure_can_pause(runner, api):
    api.save_onboarding_step.side_effect = ApiServerError(500, "boom")
    result = runner.invoke(cli, ["onboard"], input="Founder\nAcme\nn\n")
    assert "Unable to save your progress" in result.output
    assert "Setup paused" in result.output
