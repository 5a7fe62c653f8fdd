"""Logging setup for the job_importer package plus helpers for keeping user input out of logs.

Only the ``job_importer`` logger is configured; the root logger and any handlers an
embedding application installed are left alone. Every logger handed out by
``get_logger`` masks personal data in its records before any handler sees them.
"""
from __future__ import annotations

import logging
import re
import sys
from urllib.parse import urlsplit

from job_importer.configuration import settings

PACKAGE_LOGGER = "job_importer"

_FORMAT = "%(asctime)s  %(levelname)-8s  %(name)s  %(message)s"
_DATE_FMT = "%Y-%m-%d %H:%M:%S"
_configured = False

_EMAIL_RE = re.compile(r"\b[\w.+-]+@[\w.-]+\.\w+\b")
_SSN_RE = re.compile(r"\b\d{3}-\d{2}-\d{4}\b")
_PHONE_RE = re.compile(r"\b\d{3}[-.]?\d{3}[-.]?\d{4}\b")


def mask_personal_data(text: str) -> str:
    text = _EMAIL_RE.sub("[email]", text)
    text = _SSN_RE.sub("[ssn]", text)
    return _PHONE_RE.sub("[phone]", text)


class PersonalDataFilter(logging.Filter):
    """Rewrites the rendered message with e-mail, SSN and phone patterns masked."""

    def filter(self, record: logging.LogRecord) -> bool:
        try:
            message = record.getMessage()
        except (TypeError, ValueError):
            # Bad format args are reported by the handler, not here
            return True
        masked = mask_personal_data(message)
        if masked != message:
            record.msg = masked
            record.args = None
        return True


_PERSONAL_DATA_FILTER = PersonalDataFilter()


def get_logger(name: str) -> logging.Logger:
    """Return a named logger with personal-data masking attached."""
    global _configured
    if not _configured:
        _configure()
        _configured = True
    logger = logging.getLogger(name)
    if not any(isinstance(f, PersonalDataFilter) for f in logger.filters):
        logger.addFilter(_PERSONAL_DATA_FILTER)
    return logger


def _configure() -> None:
    package = logging.getLogger(PACKAGE_LOGGER)
    package.setLevel(getattr(logging, settings.log_level, logging.INFO))

    # Output already configured by us or by the host application
    if package.handlers or logging.getLogger().handlers:
        return

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(logging.Formatter(_FORMAT, datefmt=_DATE_FMT))
    package.addHandler(console)


def sanitize_for_log(text: str, max_length: int = 50) -> str:
    """Truncate user-provided text and mask personal data in it."""
    if not text:
        return ""
    out = text[:max_length] + "..." if len(text) > max_length else text
    return mask_personal_data(out)


def redact_url(url: str) -> str:
    """Hostname only; path, query and credentials never reach the logs."""
    try:
        host = urlsplit(url or "").hostname
    except ValueError:
        host = None
    return host or "[invalid-url]"
