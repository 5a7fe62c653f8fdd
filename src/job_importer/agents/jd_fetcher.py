"""
JD Fetcher
- Given a URL, fetches the HTML through the URL guard and extracts visible text.
- Redirects are followed by hand so every hop is re-validated; hop count, total time
  and body size are all capped.
- Sessions created here connect to the address the guard checked, so a second DNS
  answer cannot redirect the connection.
- Extraction prefers JSON-LD JobPosting data, then common job-description containers,
  then the whole <body>.
"""
from __future__ import annotations

import json
import re
import socket
import time
from typing import Any, Dict, Iterable, List, Optional, Tuple
from urllib.parse import urljoin, urlsplit, urlunsplit

import requests
from bs4 import BeautifulSoup
from requests.adapters import HTTPAdapter

from job_importer.agents.url_guard import ALLOWED_SCHEMES, GuardedURL, Resolver, guard_url
from job_importer.configuration import settings
from job_importer.errors import FetchFailedError, InvalidURLError, SSRFBlockedError
from job_importer.log import get_logger, redact_url
from job_importer.models import RawContent

log = get_logger(__name__)

_CHUNK_SIZE = 64 * 1024
_MIN_DESCRIPTION_CHARS = 200

_STRIP_TAGS = ["script", "style", "noscript", "nav", "header", "footer", "aside", "template"]

_DESCRIPTION_SELECTORS = [
    '[class*="job-description"]',
    '[class*="jobDescription"]',
    '[id*="job-description"]',
    '[class*="description"]',
    "article",
    "main",
    ".content",
    "#content",
]

_TITLE_SELECTORS = ["h1", '[class*="job-title"]', '[class*="jobTitle"]']

_WS_RE = re.compile(r"\s+")


def _headers() -> Dict[str, str]:
    return {
        "User-Agent": settings.fetch_user_agent,
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
        "Accept-Language": "en-US,en;q=0.5",
    }


def _remaining(deadline: float) -> float:
    left = deadline - time.monotonic()
    if left <= 0:
        raise FetchFailedError(detail="fetch deadline exceeded")
    return left


def _read_limited(resp: requests.Response, max_bytes: int, deadline: float) -> bytes:
    declared = resp.headers.get("Content-Length")
    if declared and declared.isdigit() and int(declared) > max_bytes:
        raise FetchFailedError(detail=f"Response too large: {declared} bytes exceeds {max_bytes} byte limit")

    chunks: List[bytes] = []
    total = 0
    for chunk in resp.iter_content(chunk_size=_CHUNK_SIZE):
        if not chunk:
            continue
        total += len(chunk)
        if total > max_bytes:
            raise FetchFailedError(detail=f"Response too large: exceeds {max_bytes} byte limit")
        _remaining(deadline)
        chunks.append(chunk)
    return b"".join(chunks)


class PinnedAddressAdapter(HTTPAdapter):
    """Connects to the address the guard approved instead of resolving the host again.

    The request URL is rewritten to the pinned IP. The Host header, TLS SNI and the
    certificate hostname check keep using the original hostname.
    """

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        self._pins: Dict[str, str] = {}
        super().__init__(*args, **kwargs)

    def pin(self, guarded: GuardedURL) -> None:
        self._pins[guarded.hostname.lower()] = guarded.addresses[0]

    def send(self, request: requests.PreparedRequest, **kwargs: Any) -> requests.Response:
        parts = urlsplit(request.url)
        hostname = (parts.hostname or "").lower()
        address = self._pins.get(hostname)
        pool_kw = self.poolmanager.connection_pool_kw
        if address is not None:
            host = f"[{address}]" if ":" in address else address
            request.headers["Host"] = parts.netloc.rsplit("@", 1)[-1]
            request.url = urlunsplit(parts._replace(netloc=f"{host}:{parts.port}" if parts.port else host))
        if address is not None and parts.scheme == "https":
            pool_kw["server_hostname"] = hostname
            pool_kw["assert_hostname"] = hostname
        else:
            pool_kw.pop("server_hostname", None)
            pool_kw.pop("assert_hostname", None)
        return super().send(request, **kwargs)


def _guard_redirect(current: str, location: str, hop: int, resolver: Resolver) -> GuardedURL:
    try:
        target = urljoin(current, location)
        return guard_url(target, resolver=resolver)
    except SSRFBlockedError as exc:
        exc.detail = f"redirect hop {hop}: {exc.detail}"
        raise
    except InvalidURLError as exc:
        scheme = target.split(":", 1)[0].lower() if ":" in target else ""
        if scheme not in ALLOWED_SCHEMES:
            raise SSRFBlockedError(detail=f"redirect hop {hop}: scheme {scheme!r} not allowed") from exc
        raise FetchFailedError(
            detail=f"redirect hop {hop}: unusable Location header ({exc.detail or exc.public_message})"
        ) from exc
    except ValueError as exc:
        raise FetchFailedError(detail=f"redirect hop {hop}: unusable Location header ({exc})") from exc


def fetch_html(
    url: str,
    *,
    session: Optional[requests.Session] = None,
    resolver: Resolver = socket.getaddrinfo,
    timeout: Optional[float] = None,
    max_bytes: Optional[int] = None,
    max_redirects: Optional[int] = None,
) -> Tuple[str, bytes]:
    """Fetch a URL with SSRF checks on every hop. Returns (final_url, body bytes)."""
    timeout = settings.fetch_timeout_seconds if timeout is None else timeout
    max_bytes = settings.fetch_max_bytes if max_bytes is None else max_bytes
    max_redirects = settings.fetch_max_redirects if max_redirects is None else max_redirects
    deadline = time.monotonic() + timeout

    # Only sessions created here are pinned; an injected session keeps its own transport
    own_session = session is None
    adapter: Optional[PinnedAddressAdapter] = None
    if own_session:
        sess = requests.Session()
        adapter = PinnedAddressAdapter()
        sess.mount("http://", adapter)
        sess.mount("https://", adapter)
    else:
        sess = session
    try:
        guarded = guard_url(url, resolver=resolver)
        for hop in range(max_redirects + 1):
            current = guarded.url
            if adapter is not None:
                adapter.pin(guarded)
            try:
                resp = sess.get(
                    current,
                    headers=_headers(),
                    timeout=_remaining(deadline),
                    allow_redirects=False,
                    stream=True,
                )
            except requests.RequestException as exc:
                raise FetchFailedError(detail=f"request to {redact_url(current)} failed: {exc!r}") from exc

            try:
                if resp.is_redirect:
                    guarded = _guard_redirect(current, resp.headers.get("Location", ""), hop + 1, resolver)
                    continue

                if not 200 <= resp.status_code < 300:
                    raise FetchFailedError(
                        detail=f"Failed to fetch URL: {resp.status_code} {resp.reason}"
                    )
                try:
                    body = _read_limited(resp, max_bytes, deadline)
                except requests.RequestException as exc:
                    raise FetchFailedError(detail=f"reading body failed: {exc!r}") from exc
                return current, body
            finally:
                resp.close()

        raise FetchFailedError(detail=f"Too many redirects (limit {max_redirects})")
    finally:
        if own_session:
            sess.close()


# ---------------- Extraction ----------------


def _clean_text(text: str) -> str:
    return _WS_RE.sub(" ", text or "").strip()


def _html_to_text(fragment: str) -> str:
    return _clean_text(BeautifulSoup(fragment, "html.parser").get_text(" "))


def _iter_jsonld_nodes(data: Any) -> Iterable[Dict[str, Any]]:
    if isinstance(data, list):
        for item in data:
            yield from _iter_jsonld_nodes(item)
    elif isinstance(data, dict):
        yield data
        if "@graph" in data:
            yield from _iter_jsonld_nodes(data["@graph"])


def _is_job_posting(node: Dict[str, Any]) -> bool:
    kind = node.get("@type")
    if isinstance(kind, list):
        return "JobPosting" in kind
    return kind == "JobPosting"


def _first_str(value: Any) -> Optional[str]:
    if isinstance(value, list):
        value = value[0] if value else None
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _jsonld_job(soup: BeautifulSoup) -> Dict[str, Optional[str]]:
    for tag in soup.find_all("script", attrs={"type": "application/ld+json"}):
        raw = tag.string or tag.get_text()
        if not raw:
            continue
        try:
            data = json.loads(raw)
        except ValueError:
            continue
        for node in _iter_jsonld_nodes(data):
            if not _is_job_posting(node):
                continue
            org = node.get("hiringOrganization")
            company = org.get("name") if isinstance(org, dict) else _first_str(org)
            place = node.get("jobLocation")
            if isinstance(place, list):
                place = place[0] if place else None
            address = place.get("address") if isinstance(place, dict) else None
            location = address.get("addressLocality") if isinstance(address, dict) else None
            description = node.get("description")
            return {
                "title": _first_str(node.get("title")),
                "company": _first_str(company),
                "location": _first_str(location),
                "description": _html_to_text(description) if isinstance(description, str) else None,
            }
    return {}


def parse_job_html(html: Any, source_url: str) -> RawContent:
    """Strip markup down to visible text plus best-effort title/company/location."""
    soup = BeautifulSoup(html, "html.parser")

    # JSON-LD lives in <script>, so read it before scripts are removed
    job = _jsonld_job(soup)
    page_title = _clean_text(soup.title.get_text()) if soup.title else ""

    for tag in soup(_STRIP_TAGS):
        tag.decompose()

    description = job.get("description") or ""
    if not description:
        for selector in _DESCRIPTION_SELECTORS:
            element = soup.select_one(selector)
            if element is not None:
                description = _clean_text(element.get_text(" "))
                if len(description) > _MIN_DESCRIPTION_CHARS:
                    break

    # Fallback to body text if no specific content found
    if len(description) < _MIN_DESCRIPTION_CHARS:
        body = soup.body or soup
        description = _clean_text(body.get_text(" "))

    title = job.get("title")
    if not title:
        for selector in _TITLE_SELECTORS:
            element = soup.select_one(selector)
            if element is not None and _clean_text(element.get_text(" ")):
                title = _clean_text(element.get_text(" "))
                break
    title = title or page_title or None

    return RawContent(
        description=description,
        source_url=source_url,
        title=title,
        company=job.get("company"),
        location=job.get("location"),
    )


def fetch_raw_content(
    url: str,
    *,
    session: Optional[requests.Session] = None,
    resolver: Resolver = socket.getaddrinfo,
    timeout: Optional[float] = None,
) -> RawContent:
    """Guarded fetch + extraction. `source_url` stays the URL the caller submitted."""
    final_url, body = fetch_html(url, session=session, resolver=resolver, timeout=timeout)
    raw = parse_job_html(body, source_url=url)
    log.debug(
        "Fetched %d bytes from %s (final host %s), %d chars extracted",
        len(body),
        redact_url(url),
        redact_url(final_url),
        len(raw.description),
    )
    return raw
