"""
batch_module/columns.py

Strategies that pick the domain-bearing value out of one spreadsheet row.

A strategy is any callable `(row) -> Optional[str]`. Returning None (or a
blank string) means the row has nothing to resolve and is passed through.
Raising marks the row as failed; the pipeline records the error on that
row and moves on.
"""
from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Callable, Optional

DomainExtractor = Callable[[Mapping], Optional[str]]

# Header names treated as an explicit domain column, case-insensitive
DOMAIN_COLUMN_NAMES = ("domain", "url", "website", "host")

_URL_MARKERS = ("http://", "https://", ".")


def _require_mapping(row: Any) -> Mapping:
    if not isinstance(row, Mapping):
        raise TypeError(f"row must be a mapping of column -> value, got {type(row).__name__}")
    return row


def find_domain_candidate(row: Mapping) -> Optional[str]:
    """
    Default strategy.

    1. A column whose header is one of DOMAIN_COLUMN_NAMES with a non-empty
       string value.
    2. Otherwise the first string value containing a scheme or a dot.
    """
    row = _require_mapping(row)

    for key, value in row.items():
        if str(key).strip().lower() in DOMAIN_COLUMN_NAMES and isinstance(value, str) and value.strip():
            return value.strip()

    for value in row.values():
        if isinstance(value, str) and any(marker in value for marker in _URL_MARKERS):
            return value.strip()
    return None


def column_extractor(column: str) -> DomainExtractor:
    """Strategy bound to one named column (header match is case-insensitive)."""
    wanted = column.strip().lower()

    def _extract(row: Mapping) -> Optional[str]:
        row = _require_mapping(row)
        for key, value in row.items():
            if str(key).strip().lower() == wanted:
                if value is None:
                    return None
                return str(value).strip()
        return None

    _extract.__name__ = f"column_extractor[{column}]"
    return _extract


def extractor_from_setting(column: Optional[str]) -> DomainExtractor:
    """Resolve the BATCH_DOMAIN_COLUMN setting to a strategy."""
    if column and column.strip():
        return column_extractor(column)
    return find_domain_candidate
