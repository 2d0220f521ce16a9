"""URL admission guard (SSRF defense).

Decides whether a user-supplied URL may be retrieved.  The check is lexical:
the lower-cased hostname is matched against a deny-list of private,
loopback and link-local patterns.  A hostname that *resolves* to a private
address (DNS rebinding, wildcard DNS services, TOCTOU between check and
connect) passes the lexical check.  Plugging a :class:`HostResolver` into
:class:`UrlGuard` adds a resolve-then-check step for deployments that need
it; the public contract (``validate(raw) -> Allowed | Rejected``) is the
same either way.
"""

from __future__ import annotations

import ipaddress
import socket
from dataclasses import dataclass
from typing import Protocol, Union
from urllib.parse import SplitResult, urlsplit, urlunsplit

import structlog

from html_scraper.scraper.config import DEFAULT_CONFIG, RetrievalConfig

logger = structlog.get_logger(__name__)

INVALID_FORMAT: str = "Invalid URL format"
SCHEME_NOT_ALLOWED: str = "Only HTTP and HTTPS URLs are allowed"
PRIVATE_ADDRESS: str = "Private IP addresses are not allowed"
HOSTNAME_BLOCKED: str = "This hostname is not allowed"

_ALLOWED_SCHEMES: frozenset[str] = frozenset({"http", "https"})


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ValidatedUrl:
    """A URL that passed admission.

    Attributes:
        scheme: ``"http"`` or ``"https"``.
        hostname: Lower-cased hostname, IPv6 brackets removed.
        href: Normalized absolute URL handed to the retrievers.
    """

    scheme: str
    hostname: str
    href: str

    def __str__(self) -> str:
        return self.href


@dataclass(frozen=True)
class Allowed:
    url: ValidatedUrl


@dataclass(frozen=True)
class Rejected:
    reason: str


AdmissionResult = Union[Allowed, Rejected]


# ---------------------------------------------------------------------------
# Resolution strategy
# ---------------------------------------------------------------------------


class HostResolver(Protocol):
    """Maps a hostname to the IP address strings it resolves to."""

    def resolve(self, hostname: str) -> list[str]: ...


class SocketResolver:
    """Resolve hostnames with the system resolver (``socket.getaddrinfo``)."""

    def resolve(self, hostname: str) -> list[str]:
        infos = socket.getaddrinfo(hostname, None, proto=socket.IPPROTO_TCP)
        return sorted({info[4][0] for info in infos})


def _is_internal_address(address: str) -> bool:
    try:
        ip = ipaddress.ip_address(address.split("%", 1)[0])
    except ValueError:
        return False
    if isinstance(ip, ipaddress.IPv6Address) and ip.ipv4_mapped is not None:
        ip = ip.ipv4_mapped
    return (
        ip.is_private
        or ip.is_loopback
        or ip.is_link_local
        or ip.is_reserved
        or ip.is_unspecified
        or ip.is_multicast
    )


# ---------------------------------------------------------------------------
# Guard
# ---------------------------------------------------------------------------


def _normalize_href(parts: SplitResult, hostname: str, port: int | None) -> str:
    host = f"[{hostname}]" if ":" in hostname else hostname
    netloc = host if port is None else f"{host}:{port}"
    if parts.username is not None:
        userinfo = parts.username
        if parts.password is not None:
            userinfo += f":{parts.password}"
        netloc = f"{userinfo}@{netloc}"
    return urlunsplit(
        (parts.scheme.lower(), netloc, parts.path or "/", parts.query, parts.fragment)
    )


class UrlGuard:
    """Admission control for retrieval targets.

    Args:
        config: Supplies the deny-list patterns and blocked hostnames.
        resolver: Optional resolve-then-check strategy.  ``None`` keeps the
            guard a pure function of its input.
    """

    def __init__(
        self,
        config: RetrievalConfig = DEFAULT_CONFIG,
        resolver: HostResolver | None = None,
    ) -> None:
        self.config = config
        self.resolver = resolver

    def validate(self, raw_url: str) -> AdmissionResult:
        """Admit or reject ``raw_url``.

        Returns:
            ``Allowed(ValidatedUrl)`` or ``Rejected(reason)``.
        """
        try:
            parts = urlsplit(raw_url.strip())
            port = parts.port
        except (ValueError, AttributeError):
            return Rejected(INVALID_FORMAT)

        scheme = parts.scheme.lower()
        if not scheme:
            return Rejected(INVALID_FORMAT)
        if scheme not in _ALLOWED_SCHEMES:
            return Rejected(SCHEME_NOT_ALLOWED)

        hostname = (parts.hostname or "").lower()
        if not hostname:
            return Rejected(INVALID_FORMAT)

        if any(pattern.search(hostname) for pattern in self.config.host_patterns):
            return Rejected(PRIVATE_ADDRESS)
        if hostname in self.config.blocked_hostnames:
            return Rejected(HOSTNAME_BLOCKED)

        if self.resolver is not None and self._resolves_internal(self.resolver, hostname):
            return Rejected(PRIVATE_ADDRESS)

        return Allowed(
            ValidatedUrl(
                scheme=scheme,
                hostname=hostname,
                href=_normalize_href(parts, hostname, port),
            )
        )

    def _resolves_internal(self, resolver: HostResolver, hostname: str) -> bool:
        try:
            addresses = resolver.resolve(hostname)
        except OSError as exc:
            # Unresolvable hosts fail later at connect time with a network error.
            logger.debug("guard_resolution_failed", hostname=hostname, error=str(exc))
            return False
        internal = [a for a in addresses if _is_internal_address(a)]
        if internal:
            logger.info("guard_resolved_internal", hostname=hostname, addresses=internal)
        return bool(internal)


def validate_url(raw_url: str, config: RetrievalConfig | None = None) -> AdmissionResult:
    """Lexical admission check with the given (or default) configuration."""
    return UrlGuard(config or DEFAULT_CONFIG).validate(raw_url)
