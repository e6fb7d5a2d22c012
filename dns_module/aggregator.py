# /dns_module/aggregator.py
from __future__ import annotations

from dataclasses import replace
from typing import Iterable, Dict

from .dns_records import RecordBundle, RecordTypeResult, AddressResult, RECORD_TYPES


def aggregate(
    type_results: Iterable[RecordTypeResult],
    addr: AddressResult,
    domain: str,
) -> RecordBundle:
    """
    Merge per-type outcomes into a RecordBundle in canonical slot order.

    Results may arrive in any order. The first result seen for a type wins;
    a type with no result at all gets an error slot so the bundle is always
    complete.
    """
    by_type: Dict[str, RecordTypeResult] = {}
    for result in type_results:
        key = result.rtype.upper()
        if key not in by_type:
            by_type[key] = result if result.rtype == key else replace(result, rtype=key)

    slots = tuple(
        by_type.get(rtype) or RecordTypeResult(rtype, (), f"No result for {rtype}")
        for rtype in RECORD_TYPES
    )
    return RecordBundle(domain=domain, records=slots, addresses=addr)
