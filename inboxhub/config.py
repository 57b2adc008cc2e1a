"""
InboxHub Configuration
Loads settings from environment variables with sensible defaults.
"""

import logging
import os
from pathlib import Path
from urllib.parse import urlparse
from dotenv import load_dotenv

_logger = logging.getLogger(__name__)

# Load .env file
env_path = Path(__file__).parent.parent / '.env'
load_dotenv(env_path)

_LOCAL_HOSTS = {'localhost', '127.0.0.1', '::1'}


class Config:
    """Application configuration."""

    # Supabase Postgres connection string, required (see .env.example)
    DATABASE_URL = os.getenv('DATABASE_URL')
    if not DATABASE_URL:
        _logger.critical("DATABASE_URL is not set, cannot start. Copy .env.example to .env and configure it.")
        raise ValueError("DATABASE_URL environment variable is not set. Copy .env.example to .env and configure it.")
    DB_CONNECT_TIMEOUT_SECONDS = int(os.getenv('DB_CONNECT_TIMEOUT_SECONDS', '10'))

    # Web application API (sync, analyze, contact updates)
    API_BASE_URL = os.getenv('API_BASE_URL', 'http://localhost:3000').rstrip('/')
    SESSION_COOKIE = os.getenv('SESSION_COOKIE', '')
    API_TIMEOUT_SECONDS = float(os.getenv('API_TIMEOUT_SECONDS', '30'))

    # The session cookie travels with every API request
    _api_parsed = urlparse(API_BASE_URL)
    if _api_parsed.scheme == 'http' and _api_parsed.hostname not in _LOCAL_HOSTS:
        _logger.warning(
            f"API_BASE_URL uses plain HTTP to a non-local host ({_api_parsed.hostname}). "
            "The session cookie is sent unencrypted; use HTTPS."
        )

    # Owner of the mailbox data (auth.users id)
    USER_ID = os.getenv('USER_ID', '')

    # Timezone used for "today" in timeline grouping
    TIMEZONE = os.getenv('TIMEZONE', 'America/Chicago')

    # Sync status polling
    SYNC_POLL_INTERVAL_SECONDS = int(os.getenv('SYNC_POLL_INTERVAL_SECONDS', '30'))
    SYNC_SUCCESS_RESET_SECONDS = int(os.getenv('SYNC_SUCCESS_RESET_SECONDS', '3'))

    # Paging
    CONTACTS_PAGE_SIZE = int(os.getenv('CONTACTS_PAGE_SIZE', '50'))
    DATES_PAGE_LIMIT = int(os.getenv('DATES_PAGE_LIMIT', '100'))

    # AI Configuration (daily brief only; analysis runs server-side)
    DEEPSEEK_API_KEY = os.getenv('DEEPSEEK_API_KEY', '')
    DEEPSEEK_BASE_URL = os.getenv('DEEPSEEK_BASE_URL', 'https://api.deepseek.com')
    DEFAULT_AI_MODEL = os.getenv('DEFAULT_AI_MODEL', 'deepseek-chat')
    ANTHROPIC_API_KEY = os.getenv('ANTHROPIC_API_KEY', '')


# Singleton instance
config = Config()
