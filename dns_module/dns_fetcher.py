from __future__ import annotations

import asyncio
import os
from typing import Optional, List, Any, Dict

from dotenv import load_dotenv

from . import dns_lookup
from .aggregator import aggregate
from .dns_lookup import DNSResult
from .dns_records import RecordBundle, RecordTypeResult, AddressResult, RECORD_TYPES
from .logger import get_child_logger

load_dotenv()

DEFAULT_DOMAIN_TIMEOUT_S = float(os.getenv("DNS_DOMAIN_TIMEOUT", "10.0"))

# Task key for the forward-address slot, next to the seven record types
ADDRESS_SLOT = "IPs"

log = get_child_logger("dns_fetcher")


class DNSLookup:
    """
    Resolver backend used by ConcurrentResolver.

    Delegates to the dns_lookup module with one resolver per instance. Any
    object exposing the same two coroutines can be passed to
    ConcurrentResolver in its place:

        async resolve_type(name, rtype) -> DNSResult
        async resolve_addresses(name) -> DNSResult
    """

    def __init__(
        self,
        nameservers: Optional[List[str]] = None,
        resolver: Optional[Any] = None,
    ):
        if resolver is None:
            resolver = dns_lookup.get_default_resolver(nameservers=nameservers)
        self.resolver = resolver

    async def resolve_type(self, name: str, rtype: str) -> DNSResult:
        return await dns_lookup.perform_lookup(rtype, name, resolver=self.resolver)

    async def resolve_addresses(self, name: str) -> DNSResult:
        return await dns_lookup.lookup_addresses(name)


class ConcurrentResolver:
    """
    Resolve all record types plus forward addresses for one domain.

    Eight lookups run as independent tasks and are joined with all-settled
    semantics: a failing or slow lookup never cancels its siblings, and a
    lookup still running at the deadline is cancelled and marked as timed out.
    resolve() always returns a complete RecordBundle.

    Every lookup holds a permit of the query throttle (the process-wide
    dns_lookup.default_semaphore() unless one is passed in) while it runs.
    The deadline is counted per lookup from the moment it gets its permit,
    so queueing behind other domains never expires it.
    """

    def __init__(
        self,
        lookup: Optional[Any] = None,
        domain_timeout_s: float = DEFAULT_DOMAIN_TIMEOUT_S,
        throttle: Optional[asyncio.Semaphore] = None,
    ):
        if lookup is None:
            lookup = DNSLookup()
        self.lookup = lookup
        self.domain_timeout_s = domain_timeout_s
        self.throttle = throttle

    async def _throttled(self, throttle: asyncio.Semaphore, call, *args) -> DNSResult:
        async with throttle:
            return await asyncio.wait_for(call(*args), timeout=self.domain_timeout_s)

    async def resolve(self, domain: str) -> RecordBundle:
        throttle = self.throttle if self.throttle is not None else dns_lookup.default_semaphore()
        tasks: Dict[str, asyncio.Task] = {
            rtype: asyncio.ensure_future(self._throttled(throttle, self.lookup.resolve_type, domain, rtype))
            for rtype in RECORD_TYPES
        }
        tasks[ADDRESS_SLOT] = asyncio.ensure_future(
            self._throttled(throttle, self.lookup.resolve_addresses, domain)
        )

        try:
            await asyncio.wait(tasks.values())
        except BaseException:
            # Caller cancelled: don't leave orphaned lookups behind
            for task in tasks.values():
                task.cancel()
            raise

        type_results = [self._type_result(domain, rtype, tasks[rtype]) for rtype in RECORD_TYPES]
        addr = self._address_result(domain, tasks[ADDRESS_SLOT])
        bundle = aggregate(type_results, addr, domain)

        errors = bundle.errors()
        if errors:
            log.info("[{}] resolved with {} slot error(s): {}", domain, len(errors), ", ".join(errors))
        else:
            log.debug("[{}] resolved", domain)
        return bundle

    def _settled(self, domain: str, slot: str, task: asyncio.Task):
        """Return (DNSResult, None) or (None, error message) for one task."""
        try:
            return task.result(), None
        except asyncio.TimeoutError:
            log.warning("[{}] {} lookup timed out after {}s", domain, slot, self.domain_timeout_s)
            return None, f"Lookup timed out after {self.domain_timeout_s:g}s"
        except Exception as exc:
            log.exception("[{}] {} lookup raised {}", domain, slot, exc.__class__.__name__)
            return None, str(exc) or exc.__class__.__name__

    def _type_result(self, domain: str, rtype: str, task: asyncio.Task) -> RecordTypeResult:
        result, error = self._settled(domain, rtype, task)
        if error is not None:
            return RecordTypeResult(rtype, (), error)
        if result.is_empty:
            return RecordTypeResult(rtype)
        if result.error:
            log.warning("[{}] {} lookup failed ({}): {}", domain, rtype, result.rcode, result.error)
            return RecordTypeResult(rtype, (), result.error)
        return RecordTypeResult(rtype, tuple(result.answers))

    def _address_result(self, domain: str, task: asyncio.Task) -> AddressResult:
        result, error = self._settled(domain, ADDRESS_SLOT, task)
        if error is not None:
            return AddressResult((), error)
        if result.error:
            log.warning("[{}] address lookup failed ({}): {}", domain, result.rcode, result.error)
            return AddressResult((), result.error)
        return AddressResult(tuple((str(ip), int(family)) for ip, family in result.answers))


async def fetch_domain(
    domain: str,
    lookup: Optional[Any] = None,
    domain_timeout_s: float = DEFAULT_DOMAIN_TIMEOUT_S,
) -> RecordBundle:
    """
    Resolve one already-normalized domain name.

    Args:
        domain: Bare host name (see dns_utils.normalize_domain).
        lookup: Resolver backend (DNSLookup() if None).
        domain_timeout_s: Deadline for each lookup, counted once it holds a
            throttle permit.

    Returns:
        RecordBundle with every slot filled.
    """
    return await ConcurrentResolver(lookup, domain_timeout_s=domain_timeout_s).resolve(domain)


__all__ = [
    "ADDRESS_SLOT",
    "DEFAULT_DOMAIN_TIMEOUT_S",
    "DNSLookup",
    "ConcurrentResolver",
    "fetch_domain",
]
