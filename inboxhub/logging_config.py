"""
Logging for InboxHub.

All modules log under the 'inboxhub' logger (module loggers are children of
it), which writes to one rotating file:

  logs/inboxhub.log   5 MB x 3 backups, LOG_DIR overrides the directory
  level               LOG_LEVEL (default INFO)

CLI commands are wrapped in @log_call:

    2026-10-18 09:12:44 | DEBUG    | CALL dates_ack | args=('3f2b8c1e…', direct=False)
    2026-10-18 09:12:44 | INFO     | OK   dates_ack | 212ms
    2026-10-18 09:12:46 | ERROR    | FAIL sync_now | ApiServerError: Sync failed | 1840ms

Ids are logged truncated (short_id) and arguments whose names look like
credentials are never written out.
"""

import functools
import logging
import logging.handlers
import os
import re
import time
from pathlib import Path
from typing import Optional

_LOG_DIR = Path(os.environ.get("LOG_DIR", Path(__file__).parent.parent / "logs"))
_LOG_FILE = _LOG_DIR / "inboxhub.log"
_FORMAT = "%(asctime)s | %(levelname)-8s | %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
_MAX_BYTES = 5 * 1024 * 1024
_BACKUP_COUNT = 3

_SHORT_ID_LEN = 8
_MAX_ARG_LEN = 60
_UUID_RE = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.I)
_SECRET_NAMES = ("cookie", "token", "password", "secret", "api_key")


def configure_logging(level: Optional[str] = None) -> logging.Logger:
    """
    Attach the rotating file handler to the 'inboxhub' logger.
    Calling it again is a no-op once a handler is attached.
    """
    logger = logging.getLogger("inboxhub")
    if logger.handlers:
        return logger

    _LOG_DIR.mkdir(parents=True, exist_ok=True)
    level_name = (level or os.environ.get("LOG_LEVEL", "INFO")).upper()
    logger.setLevel(getattr(logging, level_name, logging.INFO))

    handler = logging.handlers.RotatingFileHandler(
        _LOG_FILE, maxBytes=_MAX_BYTES, backupCount=_BACKUP_COUNT, encoding="utf-8",
    )
    handler.setFormatter(logging.Formatter(_FORMAT, datefmt=_DATE_FORMAT))
    logger.addHandler(handler)
    return logger


def short_id(value: Optional[str]) -> str:
    """First 8 characters of an id, '-' for None."""
    if not value:
        return "-"
    return str(value)[:_SHORT_ID_LEN]


def _render(value) -> str:
    if isinstance(value, str):
        if _UUID_RE.match(value):
            return f"'{short_id(value)}…'"
        if len(value) > _MAX_ARG_LEN:
            return repr(value[:_MAX_ARG_LEN] + "…")
    return repr(value)


def _render_kwarg(name: str, value) -> str:
    if any(s in name.lower() for s in _SECRET_NAMES):
        return f"{name}=***"
    return f"{name}={_render(value)}"


def log_call(func):
    """
    Trace a function: DEBUG on entry, INFO with timing on return,
    ERROR with timing on exception (which is re-raised).
    """
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        logger = logging.getLogger("inboxhub")
        name = func.__name__
        parts = [_render(a) for a in args] + [_render_kwarg(k, v) for k, v in kwargs.items()]
        logger.debug(f"CALL {name} | args=({', '.join(parts) or '—'})")

        start = time.perf_counter()
        try:
            result = func(*args, **kwargs)
        except Exception as exc:
            ms = int((time.perf_counter() - start) * 1000)
            logger.error(f"FAIL {name} | {type(exc).__name__}: {exc} | {ms}ms")
            raise

        ms = int((time.perf_counter() - start) * 1000)
        logger.info(f"OK   {name} | {ms}ms")
        return result

    return wrapper
