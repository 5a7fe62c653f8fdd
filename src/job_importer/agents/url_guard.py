"""
URL Guard (SSRF protection)
- Only absolute http/https URLs with a hostname are accepted.
- Internal / metadata hostnames are refused before any DNS lookup.
- The hostname is resolved and EVERY address must be publicly routable; one private,
  loopback, link-local, multicast, unspecified or reserved address blocks the URL.
- Called again for each redirect hop by the fetcher.
"""
from __future__ import annotations

import ipaddress
import socket
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Sequence, Tuple, Union
from urllib.parse import SplitResult, urlsplit

from job_importer.configuration import settings
from job_importer.errors import FetchFailedError, InvalidURLError, SSRFBlockedError

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]
Resolver = Callable[..., List[Tuple[Any, ...]]]

ALLOWED_SCHEMES = ("http", "https")

BLOCKED_HOSTNAMES = (
    "localhost",
    "metadata",
    "metadata.google.internal",
    "metadata.google",
)
BLOCKED_HOST_SUFFIXES = (".localhost", ".internal", ".local", ".localdomain")

# Cloud metadata endpoints (AWS/GCP/Azure, Alibaba, Oracle)
METADATA_ADDRESSES = (
    ipaddress.ip_address("169.254.169.254"),
    ipaddress.ip_address("100.100.100.200"),
    ipaddress.ip_address("192.0.0.192"),
    ipaddress.ip_address("fd00:ec2::254"),
)

# Checked in addition to the ipaddress flags; some of these are not covered by
# is_private/is_reserved on every Python version.
BLOCKED_NETWORKS = (
    ipaddress.ip_network("0.0.0.0/8"),
    ipaddress.ip_network("10.0.0.0/8"),
    ipaddress.ip_network("100.64.0.0/10"),
    ipaddress.ip_network("127.0.0.0/8"),
    ipaddress.ip_network("169.254.0.0/16"),
    ipaddress.ip_network("172.16.0.0/12"),
    ipaddress.ip_network("192.0.0.0/24"),
    ipaddress.ip_network("192.0.2.0/24"),
    ipaddress.ip_network("192.168.0.0/16"),
    ipaddress.ip_network("198.18.0.0/15"),
    ipaddress.ip_network("198.51.100.0/24"),
    ipaddress.ip_network("203.0.113.0/24"),
    ipaddress.ip_network("224.0.0.0/4"),
    ipaddress.ip_network("240.0.0.0/4"),
    ipaddress.ip_network("::/128"),
    ipaddress.ip_network("::1/128"),
    ipaddress.ip_network("64:ff9b::/96"),
    ipaddress.ip_network("100::/64"),
    ipaddress.ip_network("2001:db8::/32"),
    ipaddress.ip_network("fc00::/7"),
    ipaddress.ip_network("fe80::/10"),
    ipaddress.ip_network("ff00::/8"),
)


@dataclass(frozen=True)
class GuardedURL:
    url: str
    scheme: str
    hostname: str
    port: int
    addresses: Tuple[str, ...]


def parse_url(url: str) -> SplitResult:
    """Syntactic checks only: absolute http(s) URL with a hostname."""
    if not isinstance(url, str) or not url.strip():
        raise InvalidURLError("URL is required")
    try:
        parts = urlsplit(url.strip())
        # .port raises ValueError for out-of-range or non-numeric ports
        parts.port
    except ValueError as exc:
        raise InvalidURLError(detail=f"unparseable URL: {exc}") from exc
    if parts.scheme.lower() not in ALLOWED_SCHEMES:
        raise InvalidURLError("Only HTTP and HTTPS URLs are allowed", detail=f"scheme={parts.scheme!r}")
    if not parts.hostname:
        raise InvalidURLError(detail="missing hostname")
    return parts


def is_blocked_address(address: Union[str, IPAddress]) -> bool:
    try:
        ip = ipaddress.ip_address(address) if isinstance(address, str) else address
    except ValueError:
        return True
    # Unwrap IPv4 embedded in IPv6 (::ffff:127.0.0.1, 2002::/16 6to4)
    if isinstance(ip, ipaddress.IPv6Address):
        embedded = ip.ipv4_mapped or ip.sixtofour
        if embedded is not None and is_blocked_address(embedded):
            return True
    if ip in METADATA_ADDRESSES:
        return True
    if (
        ip.is_private
        or ip.is_loopback
        or ip.is_link_local
        or ip.is_multicast
        or ip.is_reserved
        or ip.is_unspecified
    ):
        return True
    if any(ip in network for network in BLOCKED_NETWORKS):
        return True
    return not ip.is_global


def is_blocked_hostname(hostname: str) -> bool:
    host = hostname.lower().rstrip(".")
    if host in BLOCKED_HOSTNAMES:
        return True
    return host.endswith(BLOCKED_HOST_SUFFIXES)


def is_allowed_domain(hostname: str, allowed: Sequence[str]) -> bool:
    host = hostname.lower().rstrip(".")
    return any(host == domain or host.endswith("." + domain) for domain in allowed)


def resolve_addresses(hostname: str, port: int, resolver: Resolver = socket.getaddrinfo) -> Tuple[str, ...]:
    try:
        infos = resolver(hostname, port, proto=socket.IPPROTO_TCP)
    except (socket.gaierror, UnicodeError, OSError) as exc:
        raise FetchFailedError(detail=f"DNS resolution failed for {hostname}: {exc}") from exc
    addresses: List[str] = []
    for info in infos:
        sockaddr = info[4]
        # IPv6 sockaddr may carry a zone suffix (fe80::1%eth0)
        ip = str(sockaddr[0]).split("%", 1)[0] if sockaddr else ""
        if ip and ip not in addresses:
            addresses.append(ip)
    if not addresses:
        raise FetchFailedError(detail=f"DNS resolution returned no addresses for {hostname}")
    return tuple(addresses)


def guard_url(
    url: str,
    resolver: Resolver = socket.getaddrinfo,
    allowed_domains: Optional[Sequence[str]] = None,
) -> GuardedURL:
    """Validate a URL and its resolved addresses; raise InvalidURLError / SSRFBlockedError."""
    parts = parse_url(url)
    hostname = parts.hostname or ""
    scheme = parts.scheme.lower()
    port = parts.port or (443 if scheme == "https" else 80)

    if is_blocked_hostname(hostname):
        raise SSRFBlockedError(detail=f"blocked hostname {hostname}")

    allowed = settings.fetch_allowed_domains if allowed_domains is None else allowed_domains
    if allowed and not is_allowed_domain(hostname, allowed):
        raise SSRFBlockedError(
            "URL blocked: this domain is not allowed",
            detail=f"{hostname} not in allowlist",
        )

    # IP literals are checked without touching DNS
    try:
        literal: Optional[IPAddress] = ipaddress.ip_address(hostname)
    except ValueError:
        literal = None

    if literal is not None:
        addresses: Tuple[str, ...] = (str(literal),)
    else:
        addresses = resolve_addresses(hostname, port, resolver)

    blocked = [a for a in addresses if is_blocked_address(a)]
    if blocked:
        raise SSRFBlockedError(detail=f"{hostname} resolves to disallowed address(es) {blocked}")

    return GuardedURL(
        url=parts.geturl(),
        scheme=scheme,
        hostname=hostname,
        port=port,
        addresses=addresses,
    )
