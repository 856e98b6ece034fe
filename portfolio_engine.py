from dataclasses import dataclass, field

import numpy as np
import pandas as pd

from financial_math import (
    DIETZ_EPSILON,
    PerformanceCalculationError,
    PortfolioCalculationError,
    ZeroTotalBasisError,
    annualize,
    is_finite_number,
    modified_dietz,
)
from attribution_engine import AttributionInput

# ============================================================
# RECORDS
# ============================================================

@dataclass(frozen=True)
class Asset:
    name: str
    beginning_value: float
    ending_value: float

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "beginning_value": self.beginning_value,
            "ending_value": self.ending_value,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "Asset":
        return cls(
            name=str(d["name"]),
            beginning_value=float(d["beginning_value"]),
            ending_value=float(d["ending_value"]),
        )


@dataclass(frozen=True)
class AssetResult:
    name: str
    beginning_value: float
    ending_value: float
    weight: float
    period_return: float
    annualized_return: float
    contribution: float

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "beginning_value": self.beginning_value,
            "ending_value": self.ending_value,
            "weight": self.weight,
            "period_return": self.period_return,
            "annualized_return": self.annualized_return,
            "contribution": self.contribution,
        }


@dataclass(frozen=True)
class PortfolioResult:
    beginning_value: float
    ending_value: float
    period_return: float
    annualized_return: float

    def to_dict(self) -> dict:
        return {
            "beginning_value": self.beginning_value,
            "ending_value": self.ending_value,
            "period_return": self.period_return,
            "annualized_return": self.annualized_return,
        }


@dataclass(frozen=True)
class PerformanceResult:
    asset_results: tuple
    portfolio: PortfolioResult
    issues: tuple = field(default_factory=tuple)

    def to_dict(self) -> dict:
        return {
            "asset_results": [a.to_dict() for a in self.asset_results],
            "portfolio": self.portfolio.to_dict(),
            "issues": list(self.issues),
        }

    @classmethod
    def from_dict(cls, d: dict) -> "PerformanceResult":
        # JSON stores turn NaN into null
        def _num(x):
            return np.nan if x is None else float(x)

        assets = tuple(
            AssetResult(
                name=a["name"],
                **{k: _num(a[k]) for k in (
                    "beginning_value", "ending_value", "weight",
                    "period_return", "annualized_return", "contribution",
                )},
            )
            for a in d.get("asset_results", [])
        )
        p = d["portfolio"]
        portfolio = PortfolioResult(**{k: _num(p[k]) for k in (
            "beginning_value", "ending_value", "period_return", "annualized_return",
        )})
        return cls(asset_results=assets, portfolio=portfolio, issues=tuple(d.get("issues", [])))


def _asset_fields(asset):
    if isinstance(asset, dict):
        return asset["name"], asset["beginning_value"], asset["ending_value"]
    return asset.name, asset.beginning_value, asset.ending_value


def _flow_asset_class(cf) -> str:
    if isinstance(cf, dict):
        return cf.get("asset_class", "")
    return getattr(cf, "asset_class", "")


def _flow_amount(cf) -> float:
    amount = cf.get("amount") if isinstance(cf, dict) else getattr(cf, "amount", None)
    return float(amount) if is_finite_number(amount) else np.nan


# ============================================================
# CORE: Portfolio aggregation
# ============================================================

def compute_portfolio_returns(assets, cashflows=None, start=None, end=None) -> PerformanceResult:
    """
    Per-asset and whole-portfolio Modified Dietz returns for one period.

      - Asset flows are the cashflows whose asset_class equals the
        asset name exactly (no case/whitespace normalization).
      - An asset failing its own Dietz calculation is reported in
        `issues` as "<name>: <message>" and carried at 0% return.
      - The portfolio aggregate uses every cashflow; a failure there
        is fatal (PortfolioCalculationError).

    Raises ZeroTotalBasisError when the summed beginning value <= 0.
    """
    assets = list(assets or [])
    cashflows = list(cashflows or [])

    total_bv = sum(_asset_fields(a)[1] for a in assets)
    if total_bv <= 0:
        raise ZeroTotalBasisError(
            "Total beginning market value must be greater than zero."
        )

    issues = []
    asset_results = []

    for asset in assets:
        name, bv, ev = _asset_fields(asset)
        asset_flows = [cf for cf in cashflows if _flow_asset_class(cf) == name]

        try:
            # Zero-basis assets with no net flow have nothing to measure.
            # A non-numeric amount makes the sum NaN, which goes to Dietz.
            flow_sum = sum(_flow_amount(cf) for cf in asset_flows)
            if bv == 0 and (not asset_flows or abs(flow_sum) < DIETZ_EPSILON):
                period_return = 0.0
            else:
                period_return = modified_dietz(bv, ev, asset_flows, start, end)
        except PerformanceCalculationError as e:
            issues.append(f"{name}: {e}")
            period_return = 0.0

        weight = bv / total_bv
        asset_results.append(AssetResult(
            name=name,
            beginning_value=bv,
            ending_value=ev,
            weight=weight,
            period_return=period_return,
            annualized_return=annualize(period_return, start, end),
            contribution=weight * period_return,
        ))

    # ------ Portfolio-level aggregate ------
    total_ev = sum(_asset_fields(a)[2] for a in assets)
    try:
        portfolio_return = modified_dietz(total_bv, total_ev, cashflows, start, end)
    except PerformanceCalculationError as e:
        raise PortfolioCalculationError(f"Portfolio Dietz error: {e}") from e

    portfolio = PortfolioResult(
        beginning_value=total_bv,
        ending_value=total_ev,
        period_return=portfolio_return,
        annualized_return=annualize(portfolio_return, start, end),
    )

    return PerformanceResult(
        asset_results=tuple(asset_results),
        portfolio=portfolio,
        issues=tuple(issues),
    )


# ------------------------------------------------------------
# Cross-view mapping and tables
# ------------------------------------------------------------

def performance_to_attribution_input(result: PerformanceResult, benchmark=None) -> list:
    """
    Map performance results onto Brinson-Fachler inputs.

    benchmark: optional {asset name: (benchmark_weight, benchmark_return)};
               assets without an entry get a 0/0 benchmark leg.
    """
    if result is None:
        return []
    benchmark = benchmark or {}
    rows = []
    for a in result.asset_results:
        bw, br = benchmark.get(a.name, (0.0, 0.0))
        rows.append(AttributionInput(
            name=a.name,
            portfolio_weight=a.weight,
            portfolio_return=a.period_return,
            benchmark_weight=bw,
            benchmark_return=br,
        ))
    return rows


def asset_results_frame(result: PerformanceResult) -> pd.DataFrame:
    """One row per asset class plus a "Total Portfolio" row."""
    cols = [
        "Asset Class", "Beginning MV", "Ending MV", "Weight",
        "Period Return", "Annualized Return", "Contribution",
    ]
    rows = [
        [a.name, a.beginning_value, a.ending_value, a.weight,
         a.period_return, a.annualized_return, a.contribution]
        for a in result.asset_results
    ]
    p = result.portfolio
    rows.append([
        "Total Portfolio", p.beginning_value, p.ending_value,
        1.0 if result.asset_results else np.nan,
        p.period_return, p.annualized_return,
        sum(a.contribution for a in result.asset_results),
    ])
    return pd.DataFrame(rows, columns=cols)
