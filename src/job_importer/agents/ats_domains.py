"""
ATS domain reputation
- Static list of applicant-tracking vendors whose job pages render client-side.
- Used only to bias the garbage classifier; never to block a fetch.
- The list can be replaced at process start with a JSON array file (ATS_DOMAINS_FILE).
"""
from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional, Tuple
from urllib.parse import urlsplit

from job_importer.configuration import settings
from job_importer.log import get_logger

log = get_logger(__name__)

DEFAULT_ATS_DOMAINS: Tuple[str, ...] = (
    "brassring.com",
    "workday.com",
    "taleo.net",
    "icims.com",
    "myworkdayjobs.com",
    "greenhouse.io",
    "lever.co",
    "smartrecruiters.com",
    "jobs.ashbyhq.com",
    "boards.greenhouse.io",
)


@dataclass(frozen=True)
class DomainReputationList:
    domains: Tuple[str, ...] = DEFAULT_ATS_DOMAINS

    @classmethod
    def of(cls, domains: Iterable[str]) -> "DomainReputationList":
        cleaned = tuple(d.strip().lower() for d in domains if d and d.strip())
        return cls(domains=cleaned)

    def is_problematic(self, url: Optional[str]) -> bool:
        """True when the URL's host contains or ends with a listed vendor domain."""
        try:
            hostname = (urlsplit(url or "").hostname or "").lower()
        except ValueError:
            return False
        if not hostname:
            return False
        return any(domain in hostname or hostname.endswith(domain) for domain in self.domains)


def load_domain_list(path: Optional[str] = None) -> DomainReputationList:
    """Read a JSON array of domains; fall back to the built-in list when unset or unreadable."""
    if not path:
        return DomainReputationList()
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        log.warning("Could not load ATS domain list from %s (%s); using defaults", path, exc)
        return DomainReputationList()
    if not isinstance(data, list) or not all(isinstance(d, str) for d in data):
        log.warning("ATS domain list at %s is not a JSON array of strings; using defaults", path)
        return DomainReputationList()
    return DomainReputationList.of(data)


# Loaded once at import; read-only afterwards
ATS_DOMAINS = load_domain_list(settings.ats_domains_file)


def is_problematic_domain(url: str) -> bool:
    return ATS_DOMAINS.is_problematic(url)
