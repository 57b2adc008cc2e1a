"""
Shared fixtures and step definitions for BDD tests.

- runner, api, context: available to all scenario files in this directory
- no_logging, user_id: autouse, no log files and a fixed mailbox owner
- 'the output contains' step: shared across all feature files
"""

import pytest
from unittest.mock import patch
from click.testing import CliRunner
from pytest_bdd import then, parsers

USER = "00000000-0000-4000-8000-000000000001"


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def api():
    """The web API as the CLI sees it. Given steps set return values / failures."""
    with patch("inboxhub.cli.main.ApiClient") as mock_cls:
        yield mock_cls.return_value


@pytest.fixture
def context():
    """Mutable dict shared between Given/When/Then steps within a scenario."""
    return {}


@pytest.fixture(autouse=True)
def no_logging():
    with patch("inboxhub.cli.main.configure_logging"):
        yield


@pytest.fixture(autouse=True)
def user_id():
    with patch("inboxhub.cli.main.config.USER_ID", USER):
        yield


@then(parsers.parse('the output contains "{text}"'))
def output_contains(context, text):
    assert text in context["result"].output, (
        f"Expected {text!r} in output:\n{context['result'].output}"
    )
