import math
from dataclasses import dataclass, field
from datetime import datetime

import numpy as np
import pandas as pd
import plotly.graph_objects as go

from financial_math import Cashflow
from portfolio_engine import Asset, PerformanceResult
from attribution_engine import AttributionInput, AttributionResult
from config import GLOBAL_PALETTE

# ============================================================
# SESSION STATE (dcc.Store payloads)
# ============================================================
# Results travel between callbacks as JSON in dcc.Store components;
# nothing is cached server-side.

def _json_safe(obj):
    """Replace NaN/inf with None so the payload is valid JSON."""
    if isinstance(obj, dict):
        return {k: _json_safe(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_json_safe(v) for v in obj]
    if isinstance(obj, float) and not math.isfinite(obj):
        return None
    return obj


def performance_to_store(result: PerformanceResult):
    return _json_safe(result.to_dict()) if result is not None else None


def performance_from_store(data):
    if not data:
        return None
    return PerformanceResult.from_dict(data)


def attribution_to_store(result: AttributionResult):
    return _json_safe(result.to_dict()) if result is not None else None


def attribution_from_store(data):
    if not data:
        return None
    return AttributionResult.from_dict(data)


def assets_to_store(assets) -> list:
    return [a.to_dict() for a in assets]


def assets_from_store(data) -> list:
    return [Asset.from_dict(d) for d in (data or [])]


def cashflows_to_store(cashflows) -> list:
    return [c.to_dict() for c in cashflows]


def cashflows_from_store(data) -> list:
    return [Cashflow.from_dict(d) for d in (data or [])]


ATTRIBUTION_FIELDS = ("portfolio_weight", "portfolio_return", "benchmark_weight", "benchmark_return")


def attribution_inputs_from_rows(rows) -> list:
    """Grid rows (values in percent, 12 = 12%) -> AttributionInput list in decimals."""
    out = []
    for r in rows or []:
        name = str(r.get("name") or "").strip()
        if not name:
            continue

        def _num(key):
            try:
                return float(r.get(key)) / 100.0
            except (TypeError, ValueError):
                return np.nan

        out.append(AttributionInput(name=name, **{k: _num(k) for k in ATTRIBUTION_FIELDS}))
    return out


def attribution_rows_from_inputs(inputs) -> list:
    """Inverse of attribution_inputs_from_rows; accepts dicts or AttributionInput."""
    rows = []
    for i in inputs or []:
        d = i if isinstance(i, dict) else i.to_dict()
        row = {"name": d["name"]}
        for k in ATTRIBUTION_FIELDS:
            v = d.get(k)
            row[k] = round(v * 100.0, 6) if v is not None and math.isfinite(v) else None
        rows.append(row)
    return rows


def benchmark_legs_from_rows(rows) -> dict:
    """{name: (benchmark_weight, benchmark_return)} in decimals, from grid rows."""
    legs = {}
    for a in attribution_inputs_from_rows(rows):
        bw = a.benchmark_weight if np.isfinite(a.benchmark_weight) else 0.0
        br = a.benchmark_return if np.isfinite(a.benchmark_return) else 0.0
        legs[a.name] = (bw, br)
    return legs


# ------------------------------------------------------------
# Multi-period snapshots
# ------------------------------------------------------------

@dataclass(frozen=True)
class PeriodSnapshot:
    id: str
    label: str
    start: pd.Timestamp
    end: pd.Timestamp
    assets: tuple
    cashflows: tuple
    performance: PerformanceResult
    saved_at: pd.Timestamp = field(default_factory=pd.Timestamp.now)

    def to_dict(self) -> dict:
        return _json_safe({
            "id": self.id,
            "label": self.label,
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "assets": assets_to_store(self.assets),
            "cashflows": cashflows_to_store(self.cashflows),
            "performance": self.performance.to_dict(),
            "saved_at": self.saved_at.isoformat(),
        })

    @classmethod
    def from_dict(cls, d: dict) -> "PeriodSnapshot":
        return cls(
            id=d["id"],
            label=d["label"],
            start=pd.Timestamp(d["start"]),
            end=pd.Timestamp(d["end"]),
            assets=tuple(assets_from_store(d.get("assets"))),
            cashflows=tuple(cashflows_from_store(d.get("cashflows"))),
            performance=PerformanceResult.from_dict(d["performance"]),
            saved_at=pd.Timestamp(d["saved_at"]) if d.get("saved_at") else pd.Timestamp.now(),
        )


def make_period_snapshot(start, end, assets, cashflows, performance) -> PeriodSnapshot:
    start = pd.Timestamp(start)
    end = pd.Timestamp(end)
    return PeriodSnapshot(
        id=f"{start.date().isoformat()}_{end.date().isoformat()}",
        label=f"{start.strftime('%Y-%m-%d')} – {end.strftime('%Y-%m-%d')}",
        start=start,
        end=end,
        assets=tuple(assets),
        cashflows=tuple(cashflows),
        performance=performance,
        saved_at=pd.Timestamp(datetime.now()),
    )


def save_period_snapshot(periods, snapshot: PeriodSnapshot) -> list:
    """New list with `snapshot` appended, replacing any snapshot with the same id."""
    kept = [p for p in (periods or []) if p.id != snapshot.id]
    return kept + [snapshot]


def remove_period(periods, period_id: str) -> list:
    return [p for p in (periods or []) if p.id != period_id]


def periods_to_store(periods) -> list:
    return [p.to_dict() for p in periods]


def periods_from_store(data) -> list:
    return [PeriodSnapshot.from_dict(d) for d in (data or [])]


# ============================================================
# FIGURES
# ============================================================

def _template(theme):
    return "plotly_white" if theme == "light" else "plotly_dark"


def get_contribution_chart(result: PerformanceResult, theme="dark"):
    """Waterfall of per-asset contributions summing to the total."""
    if result is None or not result.asset_results:
        return go.Figure()

    names = [a.name for a in result.asset_results]
    contribs = [a.contribution * 100 for a in result.asset_results]
    total = sum(contribs)

    fig = go.Figure(go.Waterfall(
        name="Contribution",
        orientation="v",
        measure=["relative"] * len(names) + ["total"],
        x=names + ["Total"],
        y=contribs + [0],
        text=[f"{x:+.2f}%" for x in contribs] + [f"{total:+.2f}%"],
        textposition="auto",
        connector={"line": {"color": "rgb(63, 63, 63)"}},
        decreasing={"marker": {"color": GLOBAL_PALETTE[2]}},  # Red
        increasing={"marker": {"color": GLOBAL_PALETTE[4]}},  # Green
        totals={"marker": {"color": GLOBAL_PALETTE[0]}},      # Blue
        hovertemplate="<b>%{x}</b><br>Contribution: %{text}<extra></extra>",
    ))
    fig.update_traces(textfont_size=12, cliponaxis=False)

    fig.update_layout(
        title="Contribution to Return",
        yaxis_title="Contribution (%)",
        template=_template(theme),
        margin=dict(l=40, r=20, t=80, b=40),
        height=400,
        showlegend=False,
    )
    return fig


def get_attribution_chart(result, theme="dark"):
    """Grouped bars: allocation / selection / interaction per asset class."""
    if result is None or not result.attribution:
        return go.Figure()

    names = [a.name for a in result.attribution]
    fig = go.Figure()
    series = [
        ("Allocation", "allocation", GLOBAL_PALETTE[0]),
        ("Selection", "selection", GLOBAL_PALETTE[4]),
        ("Interaction", "interaction", GLOBAL_PALETTE[10]),
    ]
    for label, key, color in series:
        fig.add_trace(go.Bar(
            name=label,
            x=names,
            y=[getattr(a, key) * 100 for a in result.attribution],
            marker_color=color,
            hovertemplate="<b>%{x}</b><br>" + label + ": %{y:+.2f}%<extra></extra>",
        ))

    fig.update_layout(
        barmode="group",
        title="Attribution Effects by Asset Class",
        yaxis_title="Effect (%)",
        template=_template(theme),
        margin=dict(l=40, r=20, t=80, b=40),
        height=400,
        legend=dict(orientation="h", y=-0.15),
    )
    return fig


def get_period_returns_chart(periods, theme="dark"):
    """Portfolio period and annualized return per saved snapshot."""
    if not periods:
        return go.Figure()

    labels = [p.label for p in periods]
    period_ret = [p.performance.portfolio.period_return * 100 for p in periods]
    ann_ret = [
        (r * 100 if r is not None and np.isfinite(r) else None)
        for r in (p.performance.portfolio.annualized_return for p in periods)
    ]

    fig = go.Figure()
    fig.add_trace(go.Bar(
        name="Period Return", x=labels, y=period_ret,
        marker_color=np.where(np.array(period_ret) >= 0, GLOBAL_PALETTE[4], GLOBAL_PALETTE[2]),
        hovertemplate="<b>%{x}</b><br>Period: %{y:+.2f}%<extra></extra>",
    ))
    fig.add_trace(go.Scatter(
        name="Annualized", x=labels, y=ann_ret, mode="lines+markers",
        line=dict(color=GLOBAL_PALETTE[0]),
        hovertemplate="<b>%{x}</b><br>Annualized: %{y:+.2f}%<extra></extra>",
    ))
    fig.update_layout(
        title="Portfolio Return by Period",
        yaxis_title="Return (%)",
        template=_template(theme),
        margin=dict(l=40, r=20, t=80, b=40),
        height=400,
    )
    return fig
