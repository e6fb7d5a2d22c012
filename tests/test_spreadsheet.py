import io
import re

import polars as pl
import pytest

from batch_module.spreadsheet import (
    SpreadsheetError,
    is_supported,
    read_rows,
    write_rows,
    output_filename,
)


def test_read_csv_keeps_values_as_text():
    data = b"Company,URL,Employees\nAcme,https://acme.com,12\nGlobex,globex.org,7\n"
    rows = read_rows(data, "leads.csv")
    assert rows == [
        {"Company": "Acme", "URL": "https://acme.com", "Employees": "12"},
        {"Company": "Globex", "URL": "globex.org", "Employees": "7"},
    ]


def test_written_workbook_has_union_of_columns_in_first_seen_order():
    rows = [
        {"URL": "a.com", "Domain": "a.com", "MX_Records": "10 mx.a.com"},
        {"URL": "b.com", "Error": "Error processing row: boom"},
    ]
    document = write_rows(rows)

    df = pl.read_excel(io.BytesIO(document))
    assert df.columns == ["URL", "Domain", "MX_Records", "Error"]
    assert df.height == 2
    assert df["Error"].to_list() == [None, "Error processing row: boom"]


def test_no_rows_with_explicit_columns_writes_header_only():
    document = write_rows([], columns=["Name", "Domain"])

    df = pl.read_excel(io.BytesIO(document))
    assert df.columns == ["Name", "Domain"]
    assert df.height == 0
    with pytest.raises(SpreadsheetError):
        read_rows(document, "results.xlsx")


def test_excel_rows_read_back_as_dicts():
    document = write_rows([{"Website": "www.example.com", "Notes": "hq"}])
    assert read_rows(document, "upload.xlsx") == [{"Website": "www.example.com", "Notes": "hq"}]


@pytest.mark.parametrize(
    "data, filename",
    [
        (b"", "empty.xlsx"),
        (b"this is not a workbook", "broken.xlsx"),
        (b"URL\n", "header-only.csv"),
        (b"URL\nexample.com\n", "notes.txt"),
    ],
)
def test_unreadable_or_empty_documents_are_job_level_errors(data, filename):
    with pytest.raises(SpreadsheetError):
        read_rows(data, filename)


def test_supported_suffixes():
    assert is_supported("Leads.XLSX")
    assert is_supported("old.xls")
    assert is_supported("rows.csv")
    assert not is_supported("rows.txt")
    assert not is_supported("")


def test_output_filename_is_timestamped():
    assert re.fullmatch(r"dns-results-\d{13}\.xlsx", output_filename())
    assert output_filename("mx-results").startswith("mx-results-")
