"""
DNS lookup primitives built on dnspython's async resolver.

This module provides:
- Single resolver per process (configurable by application)
- Per-event-loop query semaphore (acquired by the concurrent resolver)
- perform_lookup(): one record-type query, classified into a DNSResult
- lookup_addresses(): forward-address lookup through the host resolver path
- Setter API for application to inject the resolver and throttle limit

Nothing here raises for DNS-level failures: NXDOMAIN / NODATA come back as
rcodes with no error message, every other failure as an rcode plus message.
"""
from __future__ import annotations

import asyncio
import os
import socket
from dataclasses import dataclass, field
from dotenv import load_dotenv
from typing import Optional, List, Any

import dns.asyncresolver
import dns.exception
import dns.rdatatype
import dns.resolver

from .dns_records import RECORD_TYPES
from .dns_utils import strip_trailing_dot, dedupe_addresses
from .logger import get_child_logger

load_dotenv()
logger = get_child_logger("dns_lookup")

# --------------------------------------------------------------------
# Default configuration and application-settable backing stores
# --------------------------------------------------------------------
DEFAULT_SEMAPHORE_LIMIT = int(os.getenv("DNS_SEMAPHORE_LIMIT", "32"))
DEFAULT_QUERY_TIMEOUT = float(os.getenv("DNS_QUERY_TIMEOUT", "3.0"))
DEFAULT_QUERY_LIFETIME = float(os.getenv("DNS_QUERY_LIFETIME", "5.0"))
FALLBACK_NAMESERVERS = ["1.1.1.1", "8.8.8.8"]

# rcodes that mean "no data", not "lookup failed"
EMPTY_RCODES = frozenset({"NXDOMAIN", "NODATA"})

_default_resolver: Optional[dns.asyncresolver.Resolver] = None
_default_semaphore: Optional[asyncio.Semaphore] = None
_default_semaphore_loop: Optional[asyncio.AbstractEventLoop] = None
_default_semaphore_limit: int = DEFAULT_SEMAPHORE_LIMIT

_FAMILIES = {socket.AF_INET: 4, socket.AF_INET6: 6}
_NOT_FOUND_ERRNOS = frozenset(
    getattr(socket, n) for n in ("EAI_NONAME", "EAI_NODATA") if hasattr(socket, n)
)


@dataclass
class DNSResult:
    """Result of a DNS lookup."""
    rcode: str  # NOERROR, NXDOMAIN, NODATA, SERVFAIL, TIMEOUT, ERROR
    answers: List[Any] = field(default_factory=list)
    ttl: int = 0
    error: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return self.rcode in EMPTY_RCODES


# --------------------------------------------------------------------
# Setter API for application to centrally configure resolver & semaphore
# --------------------------------------------------------------------
def set_default_resolver(resolver: Optional[dns.asyncresolver.Resolver]) -> None:
    """
    Set a custom default resolver instance to be used by get_default_resolver().
    Passing None drops the current one so the next call rebuilds it.
    """
    global _default_resolver
    _default_resolver = resolver
    if resolver is not None:
        logger.info("Default resolver injected by application (nameservers={})", getattr(resolver, "nameservers", None))


def set_default_semaphore(limit: int) -> None:
    """
    Set how many queries may be in flight at once across the process.
    The semaphore itself is created lazily inside the running event loop.
    """
    global _default_semaphore, _default_semaphore_loop, _default_semaphore_limit
    if int(limit) < 1:
        raise ValueError(f"Semaphore limit must be at least 1, got {limit}")
    _default_semaphore_limit = int(limit)
    _default_semaphore = None
    _default_semaphore_loop = None
    logger.info("Default semaphore limit set to {}", _default_semaphore_limit)


def _running_loop() -> Optional[asyncio.AbstractEventLoop]:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None


def get_default_resolver(nameservers: Optional[List[str]] = None) -> dns.asyncresolver.Resolver:
    """
    Get or create the default resolver for this process.

    Args:
        nameservers: List of nameserver IPs. Defaults to DNS_NAMESERVERS,
            then the system configuration, then public fallbacks.

    Returns:
        Configured dnspython async resolver.
    """
    global _default_resolver

    if _default_resolver is None:
        if nameservers is None:
            ns_env = os.getenv("DNS_NAMESERVERS", "")
            nameservers = [s.strip() for s in ns_env.split(",") if s.strip()] or None
        try:
            resolver = dns.asyncresolver.Resolver()
        except dns.resolver.NoResolverConfiguration:
            logger.warning("No system resolver configuration found, using {}", FALLBACK_NAMESERVERS)
            resolver = dns.asyncresolver.Resolver(configure=False)
            resolver.nameservers = list(FALLBACK_NAMESERVERS)
        if nameservers:
            resolver.nameservers = nameservers
        resolver.timeout = DEFAULT_QUERY_TIMEOUT
        resolver.lifetime = DEFAULT_QUERY_LIFETIME
        _default_resolver = resolver
        logger.info("Created default resolver with nameservers: {}", resolver.nameservers)

    return _default_resolver


def default_semaphore() -> asyncio.Semaphore:
    """
    Get or create the query semaphore for the running event loop.

    A semaphore is tied to the loop it first waits on, so a new one is made
    whenever the caller runs in a different loop (CLI runs, test runs).
    """
    global _default_semaphore, _default_semaphore_loop
    loop = _running_loop()
    if _default_semaphore is None or (_default_semaphore_loop is not None and _default_semaphore_loop is not loop):
        _default_semaphore = asyncio.Semaphore(_default_semaphore_limit)
        _default_semaphore_loop = loop
        logger.debug("Created default semaphore with limit: {}", _default_semaphore_limit)
    return _default_semaphore


# --------------------------------------------------------------------
# Answer extraction
# --------------------------------------------------------------------
def _extract_answers(rtype: str, answer) -> List[Any]:
    if rtype in ("A", "AAAA"):
        return [str(rdata.address) for rdata in answer]
    if rtype in ("NS", "CNAME"):
        return [strip_trailing_dot(rdata.target) for rdata in answer]
    if rtype == "MX":
        return [{"priority": int(rdata.preference), "exchange": strip_trailing_dot(rdata.exchange)} for rdata in answer]
    if rtype == "TXT":
        return [tuple(s.decode("utf-8", errors="replace") for s in rdata.strings) for rdata in answer]
    # SOA: a zone has a single one, keep at most one
    for rdata in answer:
        return [{
            "nsname": strip_trailing_dot(rdata.mname),
            "hostmaster": strip_trailing_dot(rdata.rname),
            "serial": int(rdata.serial),
            "refresh": int(rdata.refresh),
            "retry": int(rdata.retry),
            "expire": int(rdata.expire),
            "minttl": int(rdata.minimum),
        }]
    return []


def _error_text(exc: BaseException) -> str:
    return str(exc) or exc.__class__.__name__


# --------------------------------------------------------------------
# Lookups
# --------------------------------------------------------------------
async def perform_lookup(
    rtype: str,
    name: str,
    resolver: Optional[dns.asyncresolver.Resolver] = None,
) -> DNSResult:
    """
    Query one record type and classify the outcome.

    Only non-DNS exceptions (programming errors, cancellation) escape.
    Throttling is the caller's job (see default_semaphore()).
    """
    rtype = rtype.upper()
    if rtype not in RECORD_TYPES:
        raise ValueError(f"Unsupported record type: {rtype}")
    if resolver is None:
        resolver = get_default_resolver()

    rdtype = dns.rdatatype.from_text(rtype)

    try:
        answer = await resolver.resolve(name, rdtype)
    except dns.resolver.NXDOMAIN:
        return DNSResult("NXDOMAIN")
    except dns.resolver.NoAnswer:
        return DNSResult("NODATA")
    except dns.exception.Timeout as e:
        return DNSResult("TIMEOUT", error=_error_text(e))
    except dns.resolver.NoNameservers as e:
        return DNSResult("SERVFAIL", error=_error_text(e))
    except dns.exception.DNSException as e:
        return DNSResult("ERROR", error=_error_text(e))

    rrset = getattr(answer, "rrset", None)
    ttl = int(rrset.ttl) if rrset is not None else 0
    return DNSResult("NOERROR", _extract_answers(rtype, answer), ttl)


async def _getaddrinfo(name: str):
    loop = asyncio.get_running_loop()
    return await loop.getaddrinfo(name, None, type=socket.SOCK_STREAM)


async def lookup_addresses(name: str) -> DNSResult:
    """
    Resolve forward addresses via the host resolver (hosts file, nsswitch).

    Answers are (ip, family) pairs with family 4 or 6. Every failure,
    including "name not known", is reported with an error message.
    """
    try:
        infos = await _getaddrinfo(name)
    except socket.gaierror as e:
        rcode = "NXDOMAIN" if e.errno in _NOT_FOUND_ERRNOS else "ERROR"
        return DNSResult(rcode, error=_error_text(e))
    except (OSError, UnicodeError) as e:
        return DNSResult("ERROR", error=_error_text(e))

    pairs = [(sockaddr[0], _FAMILIES[family]) for family, _, _, _, sockaddr in infos if family in _FAMILIES]
    return DNSResult("NOERROR", list(dedupe_addresses(pairs)))


def reset_defaults() -> None:
    """Drop the process resolver and semaphore, restore the env limit. Useful for testing."""
    global _default_resolver, _default_semaphore, _default_semaphore_loop, _default_semaphore_limit
    _default_semaphore_limit = DEFAULT_SEMAPHORE_LIMIT
    _default_resolver = None
    _default_semaphore = None
    _default_semaphore_loop = None


__all__ = [
    "DNSResult",
    "EMPTY_RCODES",
    "set_default_resolver",
    "set_default_semaphore",
    "get_default_resolver",
    "default_semaphore",
    "perform_lookup",
    "lookup_addresses",
    "reset_defaults",
]
