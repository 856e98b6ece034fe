import pandas as pd

# =====================================================================
# Formatting Helpers (decimal inputs: 0.12 -> 12.00%)
# =====================================================================

def _finite(x):
    """float(x) when x is a finite number, else None."""
    if x is None or isinstance(x, bool):
        return None
    try:
        v = float(x)
    except (TypeError, ValueError):
        return None
    if pd.isna(v) or v in (float("inf"), float("-inf")):
        return None
    return v


def fmt_pct_clean(x, decimals: int = 2):
    v = _finite(x)
    if v is None:
        return "N/A"
    return f"{v * 100:.{decimals}f}%"


def fmt_signed_pct(x, decimals: int = 2):
    v = _finite(x)
    if v is None:
        return "N/A"
    prefix = "+" if v > 0 else ""
    return f"{prefix}{v * 100:.{decimals}f}%"


def fmt_number_clean(x, decimals: int = 2):
    v = _finite(x)
    if v is None:
        return "N/A"
    return f"{v:,.{decimals}f}"


def fmt_dollar_clean(x):
    v = _finite(x)
    if v is None:
        return "N/A"
    if v < 0:
        return f"-${abs(v):,.2f}"
    return f"${v:,.2f}"
