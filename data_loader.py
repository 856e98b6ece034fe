import base64
import csv
import io
import os
import re

import numpy as np
import pandas as pd

from financial_math import Cashflow, to_timestamp
from portfolio_engine import Asset

# ============================================================
# CONFIG
# ============================================================
CSV_ENCODINGS = ("utf-8-sig", "utf-8", "latin-1")

# Canonical header aliases (see canon()), tried in order
ASSET_COLUMN_ALIASES = {
    "asset_class": ["assetclass", "asset", "class", "sector", "fund", "category"],
    "beginning_value": ["beginningmv", "openingmv", "bv", "bmv", "startmv", "beginningvalue",
                        "openingvalue", "startvalue", "beginmv"],
    "ending_value": ["endingmv", "closingmv", "ev", "emv", "endmv", "endingvalue",
                     "closingvalue", "endvalue"],
}

CASHFLOW_COLUMN_ALIASES = {
    "transaction_date": ["transactiondate", "date", "tradedate", "valuedate", "txdate", "txndate"],
    "transaction_type": ["transactiontype", "type", "txtype", "txntype", "direction", "flowtype"],
    "details": ["transactiondetails", "details", "description", "narration", "memo", "notes",
                "reference"],
    "amount": ["amount", "amt", "value", "cashflow", "cf", "flow"],
    "asset_class": ["assetclass", "asset", "class", "sector", "fund", "category"],
}

OPTIONAL_CASHFLOW_COLUMNS = {"details"}

_CURRENCY_JUNK = re.compile(r"[,\s$£€₦]")

# ------------------------------------------------------------
# Column auto-mapping
# ------------------------------------------------------------

def canon(s) -> str:
    """'Beginning MV' -> 'beginningmv'"""
    return re.sub(r"[^a-z0-9]", "", str(s).lower())


def auto_map_columns(headers, alias_map: dict):
    """
    Map target fields onto raw CSV headers.

    Exact canonical match first (alias order); otherwise a substring
    match in either direction against a header not already taken.

    Returns:
        (mapping {target: raw header}, missing [targets])
    """
    canon_headers = [(h, canon(h)) for h in headers]
    mapping = {}

    for target, aliases in alias_map.items():
        found = None
        for alias in aliases:
            found = next((raw for raw, c in canon_headers if c == alias), None)
            if found is not None:
                break

        if found is None:
            taken = set(mapping.values())
            for alias in aliases:
                found = next(
                    (raw for raw, c in canon_headers
                     if c and (alias in c or c in alias) and raw not in taken),
                    None,
                )
                if found is not None:
                    break

        if found is not None:
            mapping[target] = found

    missing = [k for k in alias_map if k not in mapping]
    return mapping, missing


def to_float(x) -> float:
    """Numeric coercion that tolerates thousands separators and currency symbols."""
    if x is None or isinstance(x, bool):
        return np.nan
    if isinstance(x, (int, float, np.integer, np.floating)):
        return float(x)
    cleaned = _CURRENCY_JUNK.sub("", str(x)).strip()
    if not cleaned:
        return np.nan
    try:
        return float(cleaned)
    except ValueError:
        return np.nan


# ------------------------------------------------------------
# Raw CSV reading
# ------------------------------------------------------------

def decode_upload(contents: str) -> bytes:
    """Decode a dcc.Upload data URL ("data:text/csv;base64,....")."""
    content_type, content_string = contents.split(",", 1)
    return base64.b64decode(content_string)


def _read_source_bytes(source) -> bytes:
    if isinstance(source, (bytes, bytearray)):
        return bytes(source)
    if isinstance(source, (str, os.PathLike)):
        with open(source, "rb") as f:
            return f.read()
    data = source.read()
    return data.encode("utf-8") if isinstance(data, str) else data


def read_csv_robust(source):
    """
    Read a CSV from a path, bytes or file-like object.

    Tries several encodings and sniffs the separator. Every column is
    read as text; type coercion happens in the parse_* functions.

    Returns:
        (DataFrame, errors)
    """
    try:
        raw = _read_source_bytes(source)
    except OSError as e:
        return pd.DataFrame(), [str(e)]

    last_error = None
    for i, encoding in enumerate(CSV_ENCODINGS):
        try:
            df = pd.read_csv(
                io.BytesIO(raw),
                sep=None,
                engine="python",
                encoding=encoding,
                dtype=str,
                keep_default_na=False,
                skip_blank_lines=True,
            )
        except UnicodeDecodeError as e:
            last_error = e
            continue
        except (pd.errors.ParserError, pd.errors.EmptyDataError, csv.Error) as e:
            return pd.DataFrame(), [f"Could not parse CSV: {e}"]

        if i > 0:
            print(f"CSV decoded with fallback encoding '{encoding}'.")
        df.columns = [str(c).strip() for c in df.columns]
        # Drop rows that are entirely empty strings
        if not df.empty:
            blank = df.apply(lambda r: all(str(v).strip() == "" for v in r), axis=1)
            df = df[~blank]
        return df.reset_index(drop=True), []

    return pd.DataFrame(), [f"Could not decode CSV: {last_error}"]


# ------------------------------------------------------------
# Assets CSV: Asset Class | Beginning MV | Ending MV
# ------------------------------------------------------------

def parse_assets_csv(source):
    """
    Returns:
        (list[Asset], errors)

    Rows with a blank name or non-numeric values are skipped.
    """
    df, errors = read_csv_robust(source)
    if errors:
        return [], errors

    headers = list(df.columns)
    mapping, missing = auto_map_columns(headers, ASSET_COLUMN_ALIASES)
    if missing:
        return [], [
            f"Could not auto-map columns: {', '.join(missing)}. "
            f"Found headers: {', '.join(headers)}"
        ]

    assets = []
    for _, row in df.iterrows():
        name = str(row[mapping["asset_class"]]).strip()
        bv = to_float(row[mapping["beginning_value"]])
        ev = to_float(row[mapping["ending_value"]])
        if name and np.isfinite(bv) and np.isfinite(ev):
            assets.append(Asset(name=name, beginning_value=bv, ending_value=ev))

    return assets, []


# ------------------------------------------------------------
# Cashflows CSV: Transaction Date | Type | Amount | Asset Class
# ------------------------------------------------------------

def parse_cashflows_csv(source):
    """
    Transaction type must be INFLOW or OUTFLOW (any case); amounts are
    given unsigned and signed here (+ inflow, - outflow).

    Returns:
        (list[Cashflow], errors) -- one error per rejected row; valid
        rows are returned alongside them.
    """
    df, errors = read_csv_robust(source)
    if errors:
        return [], errors

    headers = list(df.columns)
    mapping, missing = auto_map_columns(headers, CASHFLOW_COLUMN_ALIASES)
    required_missing = [m for m in missing if m not in OPTIONAL_CASHFLOW_COLUMNS]
    if required_missing:
        return [], [
            f"Could not auto-map columns: {', '.join(required_missing)}. "
            f"Found headers: {', '.join(headers)}"
        ]

    parse_errors = []
    cashflows = []

    for idx, row in enumerate(df.to_dict("records"), start=1):
        raw_date = row[mapping["transaction_date"]]
        date = to_timestamp(str(raw_date).strip()) if str(raw_date).strip() else None
        if date is None:
            parse_errors.append(f'Row {idx}: Invalid date "{raw_date}"')
            continue

        raw_type = str(row[mapping["transaction_type"]] or "").strip().upper()
        if raw_type not in ("INFLOW", "OUTFLOW"):
            parse_errors.append(
                f'Row {idx}: Invalid transaction type "{raw_type}" (must be INFLOW or OUTFLOW)'
            )
            continue

        amount = to_float(row[mapping["amount"]])
        if not np.isfinite(amount) or amount < 0:
            parse_errors.append(f'Row {idx}: Invalid amount "{row[mapping["amount"]]}"')
            continue

        details = str(row[mapping["details"]]).strip() if "details" in mapping else ""

        cashflows.append(Cashflow(
            date=date,
            amount=amount if raw_type == "INFLOW" else -amount,
            asset_class=str(row[mapping["asset_class"]] or "").strip(),
            details=details,
            flow_type=raw_type,
        ))

    return cashflows, parse_errors
