# /dns_module/dns_utils.py
from __future__ import annotations

import re
from typing import Optional, List, Dict, Any, Tuple

from .dns_records import RecordBundle, RecordTypeResult, AddressResult, RECORD_TYPES

_SCHEME_RE = re.compile(r"^https?://", re.I)
_WWW_RE = re.compile(r"^www\.", re.I)

# Derived column names added to every resolved batch row, in output order
DOMAIN_FIELD = "Domain"
ADDRESS_FIELD = "IP_Addresses"
RECORD_FIELDS: Dict[str, str] = {rtype: f"{rtype}_Records" for rtype in RECORD_TYPES}
BUNDLE_FIELDS: Tuple[str, ...] = (DOMAIN_FIELD, *RECORD_FIELDS.values(), ADDRESS_FIELD)


# --------------------------------------------------------------------
# Normalization
# --------------------------------------------------------------------
def normalize_domain(raw: Optional[str], strip_path: bool = False) -> str:
    """
    Reduce user input to a bare host name.

    Drops a leading http:// or https://, then a leading www., and with
    strip_path also anything from the first "/" on. No validation: a
    malformed string comes back minus whatever prefixes matched, and the
    resolver reports it as a per-type error later.
    """
    if not raw:
        return ""
    name = str(raw).strip()
    name = _SCHEME_RE.sub("", name, count=1)
    name = _WWW_RE.sub("", name, count=1)
    if strip_path:
        name = name.split("/", 1)[0]
    return name


def strip_trailing_dot(name: Any) -> str:
    return str(name).rstrip(".")


# --------------------------------------------------------------------
# Row formatting (batch output)
# --------------------------------------------------------------------
def _format_mx(values) -> List[str]:
    return [f"{mx['priority']} {mx['exchange']}" for mx in values]


def _format_txt(values) -> List[str]:
    return ["".join(chunks) for chunks in values]


def _format_soa(values) -> List[str]:
    keys = ("nsname", "hostmaster", "serial", "refresh", "retry", "expire", "minttl")
    return [" ".join(str(soa[k]) for k in keys) for soa in values]


_FORMATTERS = {
    "MX": (_format_mx, ", "),
    "TXT": (_format_txt, "; "),
    "SOA": (_format_soa, "; "),
}


def format_record_result(result: RecordTypeResult) -> str:
    """One spreadsheet cell for one record type."""
    if result.error:
        return f"Error: {result.error}"
    if not result.values:
        return f"No {result.rtype} records found"
    fmt, sep = _FORMATTERS.get(result.rtype, (lambda vs: [str(v) for v in vs], ", "))
    return sep.join(fmt(result.values))


def format_addresses(result: AddressResult) -> str:
    if result.error:
        return f"Error: {result.error}"
    if not result.addresses:
        return "No IP addresses found"
    return ", ".join(f"{ip} (IPv{family})" for ip, family in result.addresses)


def format_bundle_fields(bundle: RecordBundle) -> Dict[str, str]:
    """Derived fields for a resolved batch row, in canonical column order."""
    fields: Dict[str, str] = {DOMAIN_FIELD: bundle.domain}
    for result in bundle:
        fields[RECORD_FIELDS[result.rtype]] = format_record_result(result)
    fields[ADDRESS_FIELD] = format_addresses(bundle.addresses)
    return fields


def dedupe_addresses(pairs) -> Tuple[Tuple[str, int], ...]:
    """Drop repeated (ip, family) pairs, keeping first-seen order."""
    seen = set()
    out: List[Tuple[str, int]] = []
    for pair in pairs:
        if pair in seen:
            continue
        seen.add(pair)
        out.append(pair)
    return tuple(out)


__all__ = [
    "DOMAIN_FIELD",
    "ADDRESS_FIELD",
    "RECORD_FIELDS",
    "BUNDLE_FIELDS",
    "normalize_domain",
    "strip_trailing_dot",
    "format_record_result",
    "format_addresses",
    "format_bundle_fields",
    "dedupe_addresses",
]
