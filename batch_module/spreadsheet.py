"""
batch_module/spreadsheet.py

Tabular document I/O for batch jobs, backed by polars.

Public API:
- read_rows(data, filename) -> list[dict]
    first sheet of .xlsx/.xls (calamine engine) or a .csv file
- write_rows(rows, sheet_name, columns) -> bytes
    .xlsx document (xlsxwriter engine)
- output_filename(prefix) -> "<prefix>-<epoch-ms>.xlsx"

Notes:
- Works on bytes only; where uploads live on disk is the caller's business.
- Unreadable documents and documents without data rows raise SpreadsheetError,
  which callers report as a failure of the whole job.
"""
from __future__ import annotations

import io
import time
from pathlib import PurePath
from typing import Any, Dict, List, Optional, Sequence

import polars as pl

EXCEL_SUFFIXES = (".xlsx", ".xls")
CSV_SUFFIXES = (".csv",)
SUPPORTED_SUFFIXES = EXCEL_SUFFIXES + CSV_SUFFIXES

DEFAULT_SHEET_NAME = "DNS Results"


class SpreadsheetError(ValueError):
    """The document could not be read, or holds no rows."""


def is_supported(filename: str) -> bool:
    return PurePath(filename or "").suffix.lower() in SUPPORTED_SUFFIXES


def read_rows(data: bytes, filename: str) -> List[Dict[str, Any]]:
    suffix = PurePath(filename or "").suffix.lower()
    if suffix not in SUPPORTED_SUFFIXES:
        raise SpreadsheetError(f"Unsupported document type: {filename!r}")
    if not data:
        raise SpreadsheetError(f"{filename} is empty")

    try:
        if suffix in CSV_SUFFIXES:
            # Read every column as text; domain sniffing works on strings
            df = pl.read_csv(io.BytesIO(data), infer_schema_length=0)
        else:
            df = pl.read_excel(io.BytesIO(data), sheet_id=1)
    except Exception as e:
        raise SpreadsheetError(f"Could not read {filename}: {e}") from e

    if df.height == 0:
        raise SpreadsheetError(f"{filename} contains no rows")
    return df.to_dicts()


def _columns(rows: Sequence[Dict[str, Any]]) -> List[str]:
    seen: Dict[str, None] = {}
    for row in rows:
        for key in row:
            seen.setdefault(str(key), None)
    return list(seen)


def write_rows(
    rows: Sequence[Dict[str, Any]],
    sheet_name: str = DEFAULT_SHEET_NAME,
    columns: Optional[Sequence[str]] = None,
) -> bytes:
    """
    Render rows as an .xlsx workbook.

    Columns default to the union of row keys in first-seen order. With no rows,
    `columns` gives the header of an otherwise empty sheet.
    """
    if columns is None:
        columns = _columns(rows)
    if rows:
        data = {col: [row.get(col) for row in rows] for col in columns}
        df = pl.DataFrame(data, strict=False)
    else:
        df = pl.DataFrame(schema={str(col): pl.String for col in columns})

    buf = io.BytesIO()
    df.write_excel(workbook=buf, worksheet=sheet_name, autofit=True)
    return buf.getvalue()


def output_filename(prefix: str = "dns-results") -> str:
    return f"{prefix}-{int(time.time() * 1000)}.xlsx"


__all__ = [
    "SpreadsheetError",
    "EXCEL_SUFFIXES",
    "SUPPORTED_SUFFIXES",
    "DEFAULT_SHEET_NAME",
    "is_supported",
    "read_rows",
    "write_rows",
    "output_filename",
]
