# /dns_module/dns_records.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Tuple, Dict, Any, Iterator

# Canonical slot order for every bundle and every payload built from one
RECORD_TYPES: Tuple[str, ...] = ("A", "AAAA", "MX", "TXT", "NS", "CNAME", "SOA")


@dataclass(frozen=True)
class RecordTypeResult:
    """
    Outcome of one record-type query.

    values == () and error is None  -> the name has no data of this type
    values == () and error is set   -> the query itself failed
    """
    rtype: str
    values: Tuple[Any, ...] = ()
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class AddressResult:
    """Forward-address lookup outcome: ((ip, family), ...) with family 4 or 6."""
    addresses: Tuple[Tuple[str, int], ...] = ()
    error: Optional[str] = None

    def to_list(self) -> list:
        return [{"address": ip, "family": family} for ip, family in self.addresses]


@dataclass(frozen=True)
class RecordBundle:
    """
    Always-complete result of resolving one domain.

    `records` holds exactly one RecordTypeResult per entry of RECORD_TYPES,
    in that order. Build it with aggregator.aggregate() rather than by hand.
    """
    domain: str
    records: Tuple[RecordTypeResult, ...]
    addresses: AddressResult = field(default_factory=AddressResult)

    def __post_init__(self):
        types = tuple(r.rtype for r in self.records)
        if types != RECORD_TYPES:
            raise ValueError(f"RecordBundle slots must be {RECORD_TYPES}, got {types}")

    def __iter__(self) -> Iterator[RecordTypeResult]:
        return iter(self.records)

    def get(self, rtype: str) -> RecordTypeResult:
        return self.records[RECORD_TYPES.index(rtype.upper())]

    def errors(self) -> Dict[str, str]:
        """Per-slot error messages keyed like the HTTP payload (<TYPE>_error, IP_error)."""
        out = {f"{r.rtype}_error": r.error for r in self.records if r.error}
        if self.addresses.error:
            out["IP_error"] = self.addresses.error
        return out

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"domain": self.domain}
        for r in self.records:
            payload[r.rtype] = _jsonable(r.values)
        payload["IPs"] = self.addresses.to_list()
        payload.update(self.errors())
        return payload


def _jsonable(values: Tuple[Any, ...]) -> list:
    # TXT values are tuples of strings; emit lists so JSON round-trips cleanly
    return [list(v) if isinstance(v, tuple) else v for v in values]
