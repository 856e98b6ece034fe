import math
from dataclasses import dataclass

import numpy as np
import pandas as pd

# ============================================================
# CONFIG / CONSTANTS
# ============================================================
DIETZ_EPSILON = 1e-12

# ACT/365 day count
DAYS_PER_YEAR = 365
ONE_DAY = pd.Timedelta(days=1)

# ============================================================
# ERRORS
# ============================================================

class PerformanceCalculationError(ValueError):
    """Base class for a return that cannot be computed from its inputs."""


class InvalidPeriodError(PerformanceCalculationError):
    pass


class NonFiniteInputError(PerformanceCalculationError):
    pass


class UnstableDenominatorError(PerformanceCalculationError):
    pass


class ZeroTotalBasisError(PerformanceCalculationError):
    pass


class PortfolioCalculationError(PerformanceCalculationError):
    pass


# ============================================================
# RECORDS
# ============================================================

@dataclass(frozen=True)
class Cashflow:
    """
    External cashflow for the period.

    amount is signed: positive = INFLOW (contribution),
    negative = OUTFLOW (withdrawal).
    """
    date: pd.Timestamp
    amount: float
    asset_class: str = ""
    details: str = ""
    flow_type: str = ""

    def to_dict(self) -> dict:
        return {
            "date": pd.Timestamp(self.date).isoformat(),
            "amount": self.amount,
            "asset_class": self.asset_class,
            "details": self.details,
            "flow_type": self.flow_type,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "Cashflow":
        return cls(
            date=pd.Timestamp(d["date"]),
            amount=float(d["amount"]),
            asset_class=d.get("asset_class", "") or "",
            details=d.get("details", "") or "",
            flow_type=d.get("flow_type", "") or "",
        )


@dataclass(frozen=True)
class WeightedCashflow:
    date: pd.Timestamp
    amount: float
    weight: float
    weighted_amount: float
    asset_class: str = ""
    details: str = ""


# ------------------------------------------------------------
# Input helpers
# ------------------------------------------------------------

def is_finite_number(x) -> bool:
    """True for real, finite numbers (bools and numeric strings are rejected)."""
    if isinstance(x, bool) or not isinstance(x, (int, float, np.integer, np.floating)):
        return False
    return bool(np.isfinite(x))


def to_timestamp(value):
    """Coerce to pd.Timestamp; returns None when the value is not a valid date."""
    if value is None or isinstance(value, bool):
        return None
    try:
        ts = pd.Timestamp(value)
    except (TypeError, ValueError, OverflowError):
        return None
    if pd.isna(ts):
        return None
    # Aware dates compare on their UTC wall time
    if ts.tzinfo is not None:
        ts = ts.tz_convert(None)
    return ts


def _flow_fields(cf):
    """Pull (date, amount) out of a Cashflow or a mapping with the same keys."""
    if isinstance(cf, dict):
        return cf.get("date"), cf.get("amount")
    return getattr(cf, "date", None), getattr(cf, "amount", None)


def _period_flows(cashflows, start: pd.Timestamp, end: pd.Timestamp):
    """
    Yield (flow, date, amount, weight) for every flow inside [start, end].

    Both boundaries are inclusive. Flows with an invalid date or a
    non-finite amount are dropped silently.
    """
    total = end - start
    for cf in cashflows or []:
        raw_date, amount = _flow_fields(cf)
        d = to_timestamp(raw_date)
        if d is None or not is_finite_number(amount):
            continue
        if d < start or d > end:
            continue
        # Clamp guards against floating-point overshoot at the boundaries
        w = min(1.0, max(0.0, (end - d) / total))
        yield cf, d, float(amount), w


# ============================================================
# ACT/365 ANNUALIZATION
# ============================================================

def period_days(start, end) -> int:
    """Whole days between start and end, rounded half-up."""
    span = (pd.Timestamp(end) - pd.Timestamp(start)) / ONE_DAY
    return int(math.floor(span + 0.5))


def annualize(period_return: float, start, end) -> float:
    """
    ACT/365 annualization: (1 + r) ** (365 / days) - 1.

    Returns NaN (never raises) when the period is not positive, the
    return is not finite, or r <= -1 (no real fractional power exists).
    """
    if not is_finite_number(period_return):
        return np.nan

    start_ts, end_ts = to_timestamp(start), to_timestamp(end)
    if start_ts is None or end_ts is None:
        return np.nan

    days = period_days(start_ts, end_ts)
    if days <= 0:
        return np.nan

    base = 1.0 + float(period_return)
    if base <= 0.0:
        return np.nan

    with np.errstate(over="ignore", invalid="ignore"):
        value = np.power(base, DAYS_PER_YEAR / days) - 1.0
    return float(value)


# ============================================================
# MODIFIED DIETZ
# ============================================================

def compute_cashflow_weights(cashflows, start, end) -> list:
    """
    Modified Dietz time weights for each cashflow in [start, end].

        w_i = clamp((t1 - t_i) / (t1 - t0), 0, 1)

    A flow on the start date is weighted ~1 (invested for the whole
    period), a flow on the end date ~0. Output keeps input order.
    Returns an empty list for a non-positive period.
    """
    start_ts, end_ts = to_timestamp(start), to_timestamp(end)
    if start_ts is None or end_ts is None or end_ts - start_ts <= pd.Timedelta(0):
        return []

    out = []
    for cf, d, amount, w in _period_flows(cashflows, start_ts, end_ts):
        if isinstance(cf, dict):
            asset_class = cf.get("asset_class", "") or ""
            details = cf.get("details", "") or ""
        else:
            asset_class = getattr(cf, "asset_class", "") or ""
            details = getattr(cf, "details", "") or ""
        out.append(WeightedCashflow(
            date=d,
            amount=amount,
            weight=w,
            weighted_amount=w * amount,
            asset_class=asset_class,
            details=details,
        ))
    return out


def weighted_cashflows_frame(cashflows, start, end) -> pd.DataFrame:
    """Adjusted cashflows table (date, asset class, amount, weight, weighted amount)."""
    rows = compute_cashflow_weights(cashflows, start, end)
    cols = ["date", "asset_class", "details", "amount", "weight", "weighted_amount"]
    if not rows:
        return pd.DataFrame(columns=cols)
    return pd.DataFrame(
        [{c: getattr(r, c) for c in cols} for r in rows],
        columns=cols,
    )


def modified_dietz(
    beginning_value: float,
    ending_value: float,
    cashflows=None,
    start=None,
    end=None,
    return_components: bool = False,
):
    """
    Modified Dietz return for one asset or a whole portfolio over [start, end].

        R = (EV - BV - Σ CF_i) / (BV + Σ w_i * CF_i)

    cashflows: Cashflow records (or dicts with date/amount), signed
               + for inflows, - for outflows. Flows outside the
               period are ignored.

    Raises:
        NonFiniteInputError:      BV or EV is not a finite number
        InvalidPeriodError:       bad dates or end <= start
        UnstableDenominatorError: |BV + Σ w_i * CF_i| < 1e-12
    """
    if not is_finite_number(beginning_value) or not is_finite_number(ending_value):
        raise NonFiniteInputError(
            "Beginning value and ending value must be finite numbers."
        )

    start_ts, end_ts = to_timestamp(start), to_timestamp(end)
    if start_ts is None or end_ts is None:
        raise InvalidPeriodError("Start date and end date must be valid dates.")

    if end_ts - start_ts <= pd.Timedelta(0):
        raise InvalidPeriodError("End date must be after start date.")

    V0 = float(beginning_value)
    V1 = float(ending_value)

    net_external_flows = 0.0
    sum_weighted_flows = 0.0
    for _, _, amount, w in _period_flows(cashflows, start_ts, end_ts):
        net_external_flows += amount
        sum_weighted_flows += w * amount

    denom = V0 + sum_weighted_flows
    if abs(denom) < DIETZ_EPSILON:
        raise UnstableDenominatorError(
            "Unstable denominator: beginning value plus weighted cashflows is near zero."
        )

    gain = V1 - V0 - net_external_flows

    if return_components:
        return {
            "return": gain / denom,
            "start_val": V0,
            "end_val": V1,
            "net_flow": net_external_flows,
            "weighted_flow": sum_weighted_flows,
            "denom": denom,
        }

    return gain / denom
