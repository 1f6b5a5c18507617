"""
Logging for the cart edge and client store.

    from storefront.logging import get_logger
    logger = get_logger(__name__)

Anything taken from a request (line ids, cookie headers, upstream bodies)
goes through one of the sanitize_* helpers before it is logged.
"""

import logging
import os
import sys
from functools import cache

_DETAILED_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
# Vercel adds its own timestamps
_SERVERLESS_FORMAT = "%(levelname)s - %(name)s - %(message)s"

# Every proxied call goes through httpx; its per-request lines stay out of INFO
_QUIET_LOGGERS = ("httpx", "httpcore")


def _setup() -> None:
    root = logging.getLogger()
    if root.handlers:
        return

    level = getattr(logging, os.environ.get("LOG_LEVEL", "INFO").upper(), logging.INFO)
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        logging.Formatter(_SERVERLESS_FORMAT if os.environ.get("VERCEL") == "1" else _DETAILED_FORMAT)
    )
    root.setLevel(level)
    root.addHandler(handler)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


_setup()


@cache
def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def _strip_control(value: str) -> str:
    # CWE-117: a newline in a logged value would forge a log record
    return value.replace("\r", "\\r").replace("\n", "\\n").replace("\t", "\\t").replace("\x00", "")


def sanitize_id_for_logging(line_id: str | None) -> str:
    """First 8 characters of a line id (ids arrive in the request path)."""
    if not line_id:
        return "N/A"
    return _strip_control(str(line_id))[:8]


def sanitize_string_for_logging(value: str | None, max_length: int = 50) -> str:
    """Upstream bodies and messages, truncated with a trailing "..."."""
    if not value:
        return "N/A"
    safe = _strip_control(str(value))
    return safe if len(safe) <= max_length else safe[:max_length] + "..."


def sanitize_cookie_for_logging(cookie_header: str | None) -> str:
    """
    Reduce a Cookie header to the cookie names it carries.

    Values are session tokens and must never be written to logs.

    Examples:
        "ci_session=abc; theme=dark" -> "ci_session,theme"
        None -> "none"
    """
    if not cookie_header:
        return "none"
    names = []
    for part in cookie_header.split(";"):
        name = part.split("=", 1)[0].strip()
        if name:
            names.append(_strip_control(name)[:32])
    return ",".join(names) if names else "none"


__all__ = [
    "get_logger",
    "sanitize_cookie_for_logging",
    "sanitize_id_for_logging",
    "sanitize_string_for_logging",
]
