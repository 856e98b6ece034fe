"""
Tests for data_loader: CSV reading, header auto-mapping and row
validation for asset and cashflow uploads.
"""
import base64
import math

import pandas as pd
import pytest

from data_loader import (
    ASSET_COLUMN_ALIASES,
    CASHFLOW_COLUMN_ALIASES,
    auto_map_columns,
    canon,
    decode_upload,
    parse_assets_csv,
    parse_cashflows_csv,
    read_csv_robust,
    to_float,
)

ASSETS_CSV = (
    "Asset Class,Beginning MV,Ending MV\n"
    'Equities,"1,000,000",1120000\n'
    "Cash,$50000,50500\n"
    ",,\n"
    "Broken,abc,10\n"
)

CASHFLOWS_CSV = (
    "Transaction Date,Transaction Type,Transaction Details,Amount,Asset Class\n"
    '2024-01-15,INFLOW,Contribution,"1,000.00",Equities\n'
    "2024-02-01,outflow,Withdrawal,250,Cash\n"
    "bad-date,INFLOW,x,10,Equities\n"
    "2024-03-01,TRANSFER,x,10,Equities\n"
    "2024-03-02,INFLOW,x,abc,Equities\n"
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

class TestHelpers:
    def test_canon(self):
        assert canon("Beginning MV") == "beginningmv"
        assert canon(" Asset_Class ") == "assetclass"

    @pytest.mark.parametrize("raw, expected", [
        ("1,234.50", 1234.5),
        ("$1,000", 1000.0),
        ("£ 10", 10.0),
        ("€7", 7.0),
        (42, 42.0),
    ])
    def test_to_float(self, raw, expected):
        assert to_float(raw) == expected

    @pytest.mark.parametrize("raw", ["", "abc", None, True])
    def test_to_float_invalid(self, raw):
        assert math.isnan(to_float(raw))

    def test_decode_upload(self):
        payload = base64.b64encode(b"a,b\n1,2\n").decode()
        assert decode_upload(f"data:text/csv;base64,{payload}") == b"a,b\n1,2\n"


class TestAutoMap:
    def test_exact_aliases(self):
        mapping, missing = auto_map_columns(
            ["Sector", "Opening Value", "Closing Value"], ASSET_COLUMN_ALIASES
        )
        assert mapping == {
            "asset_class": "Sector",
            "beginning_value": "Opening Value",
            "ending_value": "Closing Value",
        }
        assert missing == []

    def test_substring_fallback(self):
        mapping, missing = auto_map_columns(["Asset Class Name", "BMV", "EMV"], ASSET_COLUMN_ALIASES)
        assert mapping["asset_class"] == "Asset Class Name"
        assert missing == []

    def test_reports_missing(self):
        mapping, missing = auto_map_columns(["Date", "Amount"], CASHFLOW_COLUMN_ALIASES)
        assert mapping["transaction_date"] == "Date"
        assert mapping["amount"] == "Amount"
        assert "transaction_type" in missing
        assert "asset_class" in missing


# ---------------------------------------------------------------------------
# Raw reading
# ---------------------------------------------------------------------------

class TestReadCsv:
    def test_reads_path(self, tmp_path):
        path = tmp_path / "assets.csv"
        path.write_text(ASSETS_CSV, encoding="utf-8")
        df, errors = read_csv_robust(str(path))
        assert errors == []
        # The all-blank row is dropped
        assert len(df) == 3

    def test_semicolon_separator(self):
        df, errors = read_csv_robust(b"Asset Class;Beginning MV;Ending MV\nCash;100;101\n")
        assert errors == []
        assert list(df.columns) == ["Asset Class", "Beginning MV", "Ending MV"]

    def test_latin1_fallback(self, capsys):
        raw = "Asset Class,Beginning MV,Ending MV\nCaf\xe9 Fund,100,110\n".encode("latin-1")
        df, errors = read_csv_robust(raw)
        assert errors == []
        assert df.iloc[0]["Asset Class"] == "Caf\xe9 Fund"
        assert "fallback encoding" in capsys.readouterr().out

    def test_empty_input(self):
        df, errors = read_csv_robust(b"")
        assert df.empty
        assert errors

    def test_missing_file(self, tmp_path):
        df, errors = read_csv_robust(str(tmp_path / "nope.csv"))
        assert df.empty
        assert errors


# ---------------------------------------------------------------------------
# Assets
# ---------------------------------------------------------------------------

class TestParseAssets:
    def test_valid_rows(self):
        assets, errors = parse_assets_csv(ASSETS_CSV.encode())
        assert errors == []
        assert [a.name for a in assets] == ["Equities", "Cash"]
        assert assets[0].beginning_value == 1_000_000.0
        assert assets[1].beginning_value == 50_000.0
        assert assets[1].ending_value == 50_500.0

    def test_unmappable_headers(self):
        assets, errors = parse_assets_csv(b"Foo,Bar\n1,2\n")
        assert assets == []
        assert errors[0].startswith("Could not auto-map columns")
        assert "Found headers: Foo, Bar" in errors[0]


# ---------------------------------------------------------------------------
# Cashflows
# ---------------------------------------------------------------------------

class TestParseCashflows:
    def test_valid_rows_signed_by_type(self):
        cashflows, _ = parse_cashflows_csv(CASHFLOWS_CSV.encode())
        assert len(cashflows) == 2

        inflow, outflow = cashflows
        assert inflow.date == pd.Timestamp("2024-01-15")
        assert inflow.amount == 1000.0
        assert inflow.asset_class == "Equities"
        assert inflow.details == "Contribution"
        assert inflow.flow_type == "INFLOW"

        assert outflow.amount == -250.0
        assert outflow.flow_type == "OUTFLOW"

    def test_row_errors(self):
        _, errors = parse_cashflows_csv(CASHFLOWS_CSV.encode())
        assert errors == [
            'Row 3: Invalid date "bad-date"',
            'Row 4: Invalid transaction type "TRANSFER" (must be INFLOW or OUTFLOW)',
            'Row 5: Invalid amount "abc"',
        ]

    def test_details_column_optional(self):
        raw = b"Date,Type,Amount,Asset Class\n2024-01-15,INFLOW,100,Cash\n"
        cashflows, errors = parse_cashflows_csv(raw)
        assert errors == []
        assert cashflows[0].details == ""

    def test_missing_required_column(self):
        cashflows, errors = parse_cashflows_csv(b"Date,Amount\n2024-01-15,100\n")
        assert cashflows == []
        assert "transaction_type" in errors[0]
