"""
Brinson-Fachler performance attribution.

Decomposes active return (portfolio - benchmark) per asset class into:

    Allocation  = (Wp_i - Wb_i) * (Rb_i - Rb_total)
    Selection   = Wb_i * (Rp_i - Rb_i)
    Interaction = (Wp_i - Wb_i) * (Rp_i - Rb_i)

with Rb_total = Σ Wb_i * Rb_i. All weights and returns are decimals
(0.12 = 12%). Weights are not normalized or validated here; the weight
sums are returned so callers can flag them.
"""
from dataclasses import dataclass

import numpy as np
import pandas as pd

EFFECT_LABELS = {
    "allocation": "Asset Allocation",
    "selection": "Stock Selection",
    "interaction": "Interaction",
}

NO_DATA_INSIGHT = "No data to analyze."


@dataclass(frozen=True)
class AttributionInput:
    name: str
    portfolio_weight: float
    portfolio_return: float
    benchmark_weight: float
    benchmark_return: float

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "portfolio_weight": self.portfolio_weight,
            "portfolio_return": self.portfolio_return,
            "benchmark_weight": self.benchmark_weight,
            "benchmark_return": self.benchmark_return,
        }


@dataclass(frozen=True)
class AssetAttribution:
    name: str
    portfolio_weight: float
    portfolio_return: float
    benchmark_weight: float
    benchmark_return: float
    allocation: float
    selection: float
    interaction: float
    total: float

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "portfolio_weight": self.portfolio_weight,
            "portfolio_return": self.portfolio_return,
            "benchmark_weight": self.benchmark_weight,
            "benchmark_return": self.benchmark_return,
            "allocation": self.allocation,
            "selection": self.selection,
            "interaction": self.interaction,
            "total": self.total,
        }


@dataclass(frozen=True)
class AttributionTotals:
    allocation: float
    selection: float
    interaction: float
    active_return: float


@dataclass(frozen=True)
class AttributionResult:
    attribution: tuple
    totals: AttributionTotals
    portfolio_return: float
    benchmark_return: float
    total_portfolio_weight: float
    total_benchmark_weight: float
    insight: str

    def to_dict(self) -> dict:
        return {
            "attribution": [a.to_dict() for a in self.attribution],
            "totals": {
                "allocation": self.totals.allocation,
                "selection": self.totals.selection,
                "interaction": self.totals.interaction,
                "active_return": self.totals.active_return,
            },
            "portfolio_return": self.portfolio_return,
            "benchmark_return": self.benchmark_return,
            "total_portfolio_weight": self.total_portfolio_weight,
            "total_benchmark_weight": self.total_benchmark_weight,
            "insight": self.insight,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "AttributionResult":
        def _f(v):
            return np.nan if v is None else float(v)

        t = d.get("totals") or {}
        return cls(
            attribution=tuple(
                AssetAttribution(name=a["name"], **{k: _f(v) for k, v in a.items() if k != "name"})
                for a in d.get("attribution") or []
            ),
            totals=AttributionTotals(
                allocation=_f(t.get("allocation", 0.0)),
                selection=_f(t.get("selection", 0.0)),
                interaction=_f(t.get("interaction", 0.0)),
                active_return=_f(t.get("active_return", 0.0)),
            ),
            portfolio_return=_f(d.get("portfolio_return", 0.0)),
            benchmark_return=_f(d.get("benchmark_return", 0.0)),
            total_portfolio_weight=_f(d.get("total_portfolio_weight", 0.0)),
            total_benchmark_weight=_f(d.get("total_benchmark_weight", 0.0)),
            insight=d.get("insight") or NO_DATA_INSIGHT,
        )


def _as_input(row) -> AttributionInput:
    if isinstance(row, AttributionInput):
        return row
    return AttributionInput(
        name=str(row["name"]),
        portfolio_weight=row["portfolio_weight"],
        portfolio_return=row["portfolio_return"],
        benchmark_weight=row["benchmark_weight"],
        benchmark_return=row["benchmark_return"],
    )


# ============================================================
# CORE: Brinson-Fachler
# ============================================================

def brinson_fachler(assets) -> AttributionResult:
    """
    Run Brinson-Fachler attribution over a list of asset classes.

    Rows may be AttributionInput records or dicts with the same keys.
    Empty input gives an all-zero result rather than an error.
    """
    rows = [_as_input(r) for r in (assets or [])]
    if not rows:
        return AttributionResult(
            attribution=(),
            totals=AttributionTotals(0.0, 0.0, 0.0, 0.0),
            portfolio_return=0.0,
            benchmark_return=0.0,
            total_portfolio_weight=0.0,
            total_benchmark_weight=0.0,
            insight=NO_DATA_INSIGHT,
        )

    portfolio_return = 0.0
    benchmark_return = 0.0
    total_pw = 0.0
    total_bw = 0.0
    for a in rows:
        portfolio_return += a.portfolio_weight * a.portfolio_return
        benchmark_return += a.benchmark_weight * a.benchmark_return
        total_pw += a.portfolio_weight
        total_bw += a.benchmark_weight

    total_allocation = 0.0
    total_selection = 0.0
    total_interaction = 0.0
    attribution = []

    for a in rows:
        active_weight = a.portfolio_weight - a.benchmark_weight
        allocation = active_weight * (a.benchmark_return - benchmark_return)
        selection = a.benchmark_weight * (a.portfolio_return - a.benchmark_return)
        interaction = active_weight * (a.portfolio_return - a.benchmark_return)

        total_allocation += allocation
        total_selection += selection
        total_interaction += interaction

        attribution.append(AssetAttribution(
            name=a.name,
            portfolio_weight=a.portfolio_weight,
            portfolio_return=a.portfolio_return,
            benchmark_weight=a.benchmark_weight,
            benchmark_return=a.benchmark_return,
            allocation=allocation,
            selection=selection,
            interaction=interaction,
            total=allocation + selection + interaction,
        ))

    active_return = portfolio_return - benchmark_return

    return AttributionResult(
        attribution=tuple(attribution),
        totals=AttributionTotals(
            allocation=total_allocation,
            selection=total_selection,
            interaction=total_interaction,
            active_return=active_return,
        ),
        portfolio_return=portfolio_return,
        benchmark_return=benchmark_return,
        total_portfolio_weight=total_pw,
        total_benchmark_weight=total_bw,
        insight=generate_attribution_insight(attribution, active_return),
    )


# ------------------------------------------------------------
# Template insight (used when no AI text is available)
# ------------------------------------------------------------

def find_extreme_effects(attribution):
    """
    Largest positive and largest negative single effect across every
    asset and all three effect types.

    Returns (best, worst), each (value, name, label) or None.
    """
    best = None
    worst = None
    for d in attribution:
        for key, label in EFFECT_LABELS.items():
            value = getattr(d, key)
            if not np.isfinite(value):
                continue
            if best is None or value > best[0]:
                best = (value, d.name, label)
            if worst is None or value < worst[0]:
                worst = (value, d.name, label)
    return best, worst


def generate_attribution_insight(attribution, active_return: float) -> str:
    def abs_pct(v):
        return f"{abs(v * 100):.2f}%"

    direction = "outperformed" if active_return > 0 else "underperformed"
    insight = f"The portfolio {direction} the benchmark by {abs_pct(active_return)}. "

    best, worst = find_extreme_effects(attribution)
    if best is not None and best[0] > 0:
        value, name, label = best
        insight += f"The largest positive contributor was {label} in {name} (+{abs_pct(value)}). "
    if worst is not None and worst[0] < 0:
        value, name, label = worst
        insight += f"The biggest detractor was {label} in {name} (-{abs_pct(value)})."

    return insight.strip()


def attribution_frame(result: AttributionResult) -> pd.DataFrame:
    """Per-asset effects table with a "Total" row."""
    cols = [
        "Asset Class", "Portfolio Weight", "Portfolio Return",
        "Benchmark Weight", "Benchmark Return",
        "Allocation", "Selection", "Interaction", "Total Effect",
    ]
    rows = [
        [a.name, a.portfolio_weight, a.portfolio_return,
         a.benchmark_weight, a.benchmark_return,
         a.allocation, a.selection, a.interaction, a.total]
        for a in result.attribution
    ]
    t = result.totals
    rows.append([
        "Total", result.total_portfolio_weight, result.portfolio_return,
        result.total_benchmark_weight, result.benchmark_return,
        t.allocation, t.selection, t.interaction,
        t.allocation + t.selection + t.interaction,
    ])
    return pd.DataFrame(rows, columns=cols)


def weights_are_normalized(result: AttributionResult, tolerance: float = 1e-6) -> bool:
    """True when both weight sums are 1 within tolerance."""
    return bool(
        np.isclose(result.total_portfolio_weight, 1.0, atol=tolerance)
        and np.isclose(result.total_benchmark_weight, 1.0, atol=tolerance)
    )
