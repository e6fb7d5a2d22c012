"""
Shared fixtures: a scriptable resolver backend and isolated storage dirs.
"""

import asyncio
import os
import sys
import tempfile

import pytest

# Make the flat modules (main, api, dns_module, batch_module) importable from a checkout
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

# api.py provisions these at import time; keep them out of the checkout
_STORAGE = tempfile.mkdtemp(prefix="dns-bulk-lookup-tests-")
os.environ.setdefault("UPLOAD_DIR", os.path.join(_STORAGE, "uploads"))
os.environ.setdefault("PUBLIC_DIR", os.path.join(_STORAGE, "public"))

from dns_module import dns_lookup  # noqa: E402
from dns_module.dns_lookup import DNSResult  # noqa: E402


class FakeLookup:
    """
    Resolver backend with canned answers.

    `answers` maps (name, rtype) -> DNSResult | Exception, with rtype "IPs"
    for forward addresses. Missing keys resolve as NXDOMAIN / not found.
    `delays` maps the same keys (or a bare name) to seconds to sleep first.
    """

    def __init__(self, answers=None, delays=None):
        self.answers = dict(answers or {})
        self.delays = dict(delays or {})
        self.calls = []

    async def _answer(self, name, slot):
        self.calls.append((name, slot))
        delay = self.delays.get((name, slot), self.delays.get(name, 0))
        if delay:
            await asyncio.sleep(delay)
        result = self.answers.get((name, slot))
        if isinstance(result, BaseException):
            raise result
        if result is None:
            if slot == "IPs":
                return DNSResult("NXDOMAIN", error=f"getaddrinfo ENOTFOUND {name}")
            return DNSResult("NXDOMAIN")
        return result

    async def resolve_type(self, name, rtype):
        return await self._answer(name, rtype)

    async def resolve_addresses(self, name):
        return await self._answer(name, "IPs")


def example_answers(name="example.com"):
    """A zone with A, AAAA, TXT, NS and SOA data but no MX."""
    return {
        (name, "A"): DNSResult("NOERROR", ["93.184.216.34"], 300),
        (name, "AAAA"): DNSResult("NOERROR", ["2606:2800:220:1:248:1893:25c8:1946"], 300),
        (name, "MX"): DNSResult("NODATA"),
        (name, "TXT"): DNSResult("NOERROR", [("v=spf1 -all",), ("part one ", "part two")], 300),
        (name, "NS"): DNSResult("NOERROR", ["a.iana-servers.net", "b.iana-servers.net"], 300),
        (name, "CNAME"): DNSResult("NODATA"),
        (name, "SOA"): DNSResult("NOERROR", [{
            "nsname": "ns.icann.org",
            "hostmaster": "noc.dns.icann.org",
            "serial": 2024081414,
            "refresh": 7200,
            "retry": 3600,
            "expire": 1209600,
            "minttl": 3600,
        }], 3600),
        (name, "IPs"): DNSResult("NOERROR", [("93.184.216.34", 4), ("2606:2800:220:1:248:1893:25c8:1946", 6)]),
    }


@pytest.fixture
def fake_lookup():
    return FakeLookup(example_answers())


@pytest.fixture(autouse=True)
def reset_dns_defaults():
    """Drop the process-wide resolver/semaphore so each test starts clean."""
    dns_lookup.reset_defaults()
    yield
    dns_lookup.reset_defaults()
