from datetime import date
from unittest.mock import patch

from pytest_bdd import scenarios, given, when, then, parsers

from inboxhub.cli.main import cli
from inboxhub.engine.api_client import ApiServerError
from inboxhub.models import ExtractedDate

scenarios("features/timeline.feature")


def _find(context, title):
    return next(d for d in context["dates"] if d.title == title)


@given(parsers.parse("today is {day}"))
def today_is(context, day):
    context["today"] = date.fromisoformat(day)
    context["dates"] = []


@given(parsers.parse('a deadline "{title}" on {day}'))
def deadline_on(context, title, day):
    n = len(context["dates"]) + 1
    context["dates"].append(ExtractedDate(
        id=f"00000000-0000-4000-8000-{n:012d}", date=date.fromisoformat(day),
        title=title, date_type="deadline", priority_score=50,
    ))


@given(parsers.parse('the server rejects date actions with "{message}"'))
def server_rejects_actions(api, message):
    api.date_action.side_effect = ApiServerError(500, message)


@when("the user views the timeline")
def view_timeline(runner, context, api):
    with patch("inboxhub.cli.main.date_store.list_dates", return_value=context["dates"]), \
         patch("inboxhub.cli.main.today_in", return_value=context["today"]):
        context["result"] = runner.invoke(cli, ["timeline"])


@when(parsers.parse('the user acknowledges "{title}"'))
def acknowledge(runner, context, api, title):
    item = _find(context, title)
    with patch("inboxhub.cli.main.date_store.get_date", return_value=item):
        context["result"] = runner.invoke(cli, ["dates", "ack", item.id])


@when(parsers.parse('the user snoozes "{title}" until {day}'))
def snooze(runner, context, api, title, day):
    item = _find(context, title)
    with patch("inboxhub.cli.main.date_store.get_date", return_value=item):
        context["result"] = runner.invoke(cli, ["dates", "snooze", item.id, day])


@then(parsers.parse('"{first}" is listed before "{second}"'))
def listed_before(context, first, second):
    output = context["result"].output
    assert output.index(first) < output.index(second)


@then(parsers.parse("the server was asked to snooze until {day}"))
def server_snoozed(api, day):
    assert api.date_action.call_args[1]["snooze_until"] == day
