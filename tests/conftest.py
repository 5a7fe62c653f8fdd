from __future__ import annotations

import socket
from typing import Dict, Iterable, List, Optional

import pytest
from requests.structures import CaseInsensitiveDict

from job_importer.errors import CleanupFailedError
from job_importer.models import RawContent, StructuredJobDescription

CLEAN_POSTING = """Senior Software Engineer

We are looking for a talented software engineer to join our platform team.
You will be responsible for building scalable web applications and services
used by thousands of customers every day.

Requirements:
- 5+ years of experience in Python or Go
- Experience with distributed systems and cloud infrastructure
- Strong problem solving and communication skills

Benefits:
- Competitive salary and equity
- Health insurance for you and your family
- Remote work options and a learning budget
"""

TEMPLATE_GARBAGE = """{{a}} {{b}} {{c}} {{d}} {{e}} {{f}} {{g}} {{h}} {{i}} {{j}}
{{k}} {{l}} {{m}} Loading job data...
"""


def make_resolver(table: Dict[str, List[str]]):
    """getaddrinfo stand-in: hostname -> list of IP strings; unknown hosts fail like DNS."""
    calls: List[str] = []

    def resolver(host, port, *args, **kwargs):
        calls.append(host)
        if host not in table:
            raise socket.gaierror(socket.EAI_NONAME, "Name or service not known")
        out = []
        for ip in table[host]:
            family = socket.AF_INET6 if ":" in ip else socket.AF_INET
            sockaddr = (ip, port, 0, 0) if family == socket.AF_INET6 else (ip, port)
            out.append((family, socket.SOCK_STREAM, socket.IPPROTO_TCP, "", sockaddr))
        return out

    resolver.calls = calls
    return resolver


class FakeResponse:
    def __init__(
        self,
        status_code: int = 200,
        body: bytes = b"",
        headers: Optional[Dict[str, str]] = None,
        reason: str = "OK",
        chunk_size: int = 1024,
    ):
        self.status_code = status_code
        self.reason = reason
        self.headers = CaseInsensitiveDict(headers or {})
        self._body = body
        self._chunk_size = chunk_size
        self.closed = False

    @property
    def is_redirect(self) -> bool:
        return "location" in self.headers and self.status_code in (301, 302, 303, 307, 308)

    def iter_content(self, chunk_size: int = 1) -> Iterable[bytes]:
        step = self._chunk_size
        for i in range(0, len(self._body), step):
            yield self._body[i:i + step]

    def close(self) -> None:
        self.closed = True


class FakeSession:
    """Serves canned responses per URL and records every request."""

    def __init__(self, routes: Dict[str, FakeResponse]):
        self.routes = routes
        self.requests: List[Dict] = []

    def get(self, url, **kwargs):
        self.requests.append({"url": url, **kwargs})
        if url not in self.routes:
            raise AssertionError(f"unexpected request to {url}")
        return self.routes[url]

    def close(self) -> None:
        pass


class FakeCleaner:
    def __init__(self, result: Optional[StructuredJobDescription] = None, error: Optional[Exception] = None):
        self.result = result
        self.error = error
        self.calls: List[str] = []
        self.timeouts: List[Optional[float]] = []

    def clean(self, raw_text: str, timeout: Optional[float] = None) -> StructuredJobDescription:
        self.calls.append(raw_text)
        self.timeouts.append(timeout)
        if self.error is not None:
            raise self.error
        return self.result


def structured_job(**overrides) -> StructuredJobDescription:
    data = {
        "title": "Senior Software Engineer",
        "company": "Acme Corp",
        "location": "Remote",
        "employment_type": "Full-time",
        "salary": None,
        "description": (
            "Acme is hiring a senior software engineer to design, build and operate the "
            "services behind its customer platform. You will work closely with product "
            "and design partners and mentor other engineers on the team."
        ),
        "responsibilities": ["Build backend services", "Review code"],
        "requirements": ["5+ years of Python"],
        "nice_to_have": ["Kubernetes experience"],
        "benefits": ["Health insurance"],
    }
    data.update(overrides)
    return StructuredJobDescription(**data)


def raw_content(description: str = CLEAN_POSTING, url: str = "https://jobs.example.com/123") -> RawContent:
    return RawContent(
        description=description,
        source_url=url,
        title="Senior Software Engineer",
        company="Acme Corp",
        location="Berlin",
    )


@pytest.fixture
def public_resolver():
    return make_resolver({
        "jobs.example.com": ["93.184.216.34"],
        "careers.example.org": ["93.184.216.35"],
        "cdn.example.net": ["93.184.216.36", "2606:2800:220:1:248:1893:25c8:1946"],
    })


@pytest.fixture
def failing_cleaner():
    return FakeCleaner(error=CleanupFailedError(detail="model returned no structured output"))
