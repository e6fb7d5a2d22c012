import asyncio
import io

import polars as pl
import pytest

from batch_module.pipeline import BatchPipeline
from batch_module.spreadsheet import SpreadsheetError
from dns_module.dns_fetcher import ConcurrentResolver
from main import lookup_domain, process_workbook, build_pipeline

from conftest import FakeLookup, example_answers


def test_lookup_domain_normalizes_before_resolving(fake_lookup):
    bundle = asyncio.run(lookup_domain("https://www.example.com", ConcurrentResolver(fake_lookup)))
    assert bundle.domain == "example.com"
    assert {name for name, _ in fake_lookup.calls} == {"example.com"}


def _pipeline(lookup):
    return BatchPipeline(ConcurrentResolver(lookup, domain_timeout_s=5))


def _read(document):
    return pl.read_excel(io.BytesIO(document)).to_dicts()


CSV = b"Company,URL\nAcme,https://www.example.com/contact\nNobody,n/a\n"


def test_process_workbook_drops_rows_without_domain_by_default(fake_lookup):
    document = asyncio.run(process_workbook(CSV, "leads.csv", _pipeline(fake_lookup), include_unresolved=False))
    rows = _read(document)

    assert len(rows) == 1
    assert rows[0]["Company"] == "Acme"
    assert rows[0]["Domain"] == "example.com"
    assert rows[0]["MX_Records"] == "No MX records found"
    assert rows[0]["SOA_Records"] == "ns.icann.org noc.dns.icann.org 2024081414 7200 3600 1209600 3600"


def test_process_workbook_can_keep_unresolved_rows(fake_lookup):
    document = asyncio.run(process_workbook(CSV, "leads.csv", _pipeline(fake_lookup), include_unresolved=True))
    rows = _read(document)

    assert [r["Company"] for r in rows] == ["Acme", "Nobody"]
    assert rows[1]["Domain"] is None


def test_process_workbook_without_usable_rows_writes_header_only_sheet(fake_lookup):
    document = asyncio.run(process_workbook(b"Name\nAcme\n", "names.csv", _pipeline(fake_lookup), include_unresolved=False))
    df = pl.read_excel(io.BytesIO(document))

    assert df.height == 0
    assert df.columns[:2] == ["Name", "Domain"]
    assert "IP_Addresses" in df.columns
    assert fake_lookup.calls == []


def test_process_workbook_unreadable_input_is_a_job_error(fake_lookup):
    with pytest.raises(SpreadsheetError):
        asyncio.run(process_workbook(b"", "names.csv", _pipeline(fake_lookup)))


def test_build_pipeline_with_named_column():
    lookup = FakeLookup(example_answers("example.org"))
    pipeline = build_pipeline(ConcurrentResolver(lookup), column="Site", max_concurrency=2)
    rows = [{"Site": "example.org", "Alias": "example.com"}]
    out = asyncio.run(pipeline.process(rows))

    assert pipeline.max_concurrency == 2
    assert out[0]["Domain"] == "example.org"
