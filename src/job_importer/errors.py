"""Error taxonomy for the URL import flow.

Every failure the caller can see carries an ``ErrorKind``; HTTP status codes are
derived from the kind, never from message text. ``public_message`` is the only
string that may be returned to a client, ``detail`` stays in server logs.
"""
from __future__ import annotations

from enum import Enum
from typing import Dict, Optional


class ErrorKind(str, Enum):
    INVALID_URL = "invalid_url"
    SSRF_BLOCKED = "ssrf_blocked"
    FETCH_FAILED = "fetch_failed"
    CLEANUP_FAILED = "cleanup_failed"


HTTP_STATUS_BY_KIND: Dict[ErrorKind, int] = {
    ErrorKind.INVALID_URL: 400,
    ErrorKind.SSRF_BLOCKED: 400,
    ErrorKind.FETCH_FAILED: 500,
    ErrorKind.CLEANUP_FAILED: 500,
}


class ScrapeError(Exception):
    kind: ErrorKind = ErrorKind.FETCH_FAILED
    default_message = "Failed to scrape URL"

    def __init__(self, public_message: Optional[str] = None, detail: Optional[str] = None):
        self.public_message = public_message or self.default_message
        self.detail = detail
        super().__init__(detail or self.public_message)

    @property
    def status_code(self) -> int:
        return HTTP_STATUS_BY_KIND[self.kind]


class InvalidURLError(ScrapeError):
    kind = ErrorKind.INVALID_URL
    default_message = "Invalid URL format"


class SSRFBlockedError(ScrapeError):
    kind = ErrorKind.SSRF_BLOCKED
    default_message = "URL blocked: access to this address is not allowed"


class FetchFailedError(ScrapeError):
    kind = ErrorKind.FETCH_FAILED
    default_message = "Failed to fetch the job posting"


class CleanupFailedError(ScrapeError):
    kind = ErrorKind.CLEANUP_FAILED
    default_message = "Job description cleanup failed"
