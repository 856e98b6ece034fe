"""
Tests for dash_wrappers: session store payloads, saved-period snapshots
and figure builders.
"""
import json
import math

import pandas as pd
import pytest

import dash_wrappers as dw
from attribution_engine import brinson_fachler
from config import DEFAULT_ATTRIBUTION_ROWS
from financial_math import Cashflow
from portfolio_engine import Asset, compute_portfolio_returns

START = "2024-01-01"
END = "2024-12-31"


@pytest.fixture
def assets():
    return [Asset("Equities", 1000.0, 1232.0), Asset("Cash", 100.0, 101.0)]


@pytest.fixture
def cashflows():
    return [Cashflow(pd.Timestamp(START), 100.0, "Equities", "Contribution", "INFLOW")]


@pytest.fixture
def performance(assets, cashflows):
    return compute_portfolio_returns(assets, cashflows, pd.Timestamp(START), pd.Timestamp(END))


# ---------------------------------------------------------------------------
# Store payloads
# ---------------------------------------------------------------------------

class TestStores:
    def test_performance_payload_is_json(self, performance):
        data = dw.performance_to_store(performance)
        assert dw.performance_from_store(json.loads(json.dumps(data))) == performance

    def test_nan_stored_as_null(self):
        # A six-hour period rounds to zero days and cannot be annualized
        result = compute_portfolio_returns(
            [Asset("Equities", 100.0, 110.0)], [], pd.Timestamp(START), pd.Timestamp("2024-01-01 06:00")
        )
        data = dw.performance_to_store(result)
        assert data["portfolio"]["annualized_return"] is None
        json.dumps(data, allow_nan=False)
        assert math.isnan(dw.performance_from_store(data).portfolio.annualized_return)

    def test_empty_store(self):
        assert dw.performance_from_store(None) is None
        assert dw.attribution_from_store({}) is None
        assert dw.assets_from_store(None) == []
        assert dw.cashflows_from_store(None) == []

    def test_assets_and_cashflows(self, assets, cashflows):
        assert dw.assets_from_store(dw.assets_to_store(assets)) == assets
        restored = dw.cashflows_from_store(json.loads(json.dumps(dw.cashflows_to_store(cashflows))))
        assert restored == cashflows

    def test_attribution(self):
        result = brinson_fachler(DEFAULT_ATTRIBUTION_ROWS)
        assert dw.attribution_from_store(dw.attribution_to_store(result)) == result


class TestAttributionGridRows:
    def test_rows_are_percent(self):
        rows = dw.attribution_rows_from_inputs(DEFAULT_ATTRIBUTION_ROWS)
        assert rows[0] == {
            "name": "Equities",
            "portfolio_weight": 60.0,
            "portfolio_return": 12.0,
            "benchmark_weight": 50.0,
            "benchmark_return": 10.0,
        }

    def test_rows_to_inputs(self):
        inputs = dw.attribution_inputs_from_rows([
            {"name": " Equities ", "portfolio_weight": 60, "portfolio_return": "12",
             "benchmark_weight": 50, "benchmark_return": 10},
            {"name": "", "portfolio_weight": 40},
            {"name": "Bonds", "portfolio_weight": None, "portfolio_return": "x",
             "benchmark_weight": 50, "benchmark_return": 5},
        ])
        assert [i.name for i in inputs] == ["Equities", "Bonds"]
        assert inputs[0].portfolio_weight == pytest.approx(0.60)
        assert inputs[0].portfolio_return == pytest.approx(0.12)
        assert math.isnan(inputs[1].portfolio_weight)
        assert math.isnan(inputs[1].portfolio_return)

    def test_default_rows_reproduce_default_result(self):
        rows = dw.attribution_rows_from_inputs(DEFAULT_ATTRIBUTION_ROWS)
        result = brinson_fachler(dw.attribution_inputs_from_rows(rows))
        assert result.totals.active_return == pytest.approx(0.014)

    def test_benchmark_legs(self):
        legs = dw.benchmark_legs_from_rows([
            {"name": "Cash", "portfolio_weight": 10, "portfolio_return": 1,
             "benchmark_weight": 20, "benchmark_return": None},
        ])
        assert legs["Cash"] == pytest.approx((0.2, 0.0))


# ---------------------------------------------------------------------------
# Saved periods
# ---------------------------------------------------------------------------

class TestPeriodSnapshots:
    def test_id_and_label(self, assets, cashflows, performance):
        snap = dw.make_period_snapshot(START, END, assets, cashflows, performance)
        assert snap.id == "2024-01-01_2024-12-31"
        assert snap.label == "2024-01-01 – 2024-12-31"
        assert snap.assets == tuple(assets)

    def test_save_replaces_same_id(self, assets, cashflows, performance):
        first = dw.make_period_snapshot(START, END, assets, cashflows, performance)
        other = dw.make_period_snapshot("2023-01-01", "2023-12-31", assets, [], performance)
        periods = dw.save_period_snapshot([], first)
        periods = dw.save_period_snapshot(periods, other)

        again = dw.make_period_snapshot(START, END, assets[:1], [], performance)
        updated = dw.save_period_snapshot(periods, again)

        assert [p.id for p in updated] == [other.id, first.id]
        assert updated[-1].assets == (assets[0],)
        # Input list is untouched
        assert periods == [first, other]

    def test_remove(self, assets, cashflows, performance):
        snap = dw.make_period_snapshot(START, END, assets, cashflows, performance)
        assert dw.remove_period([snap], snap.id) == []
        assert dw.remove_period([snap], "missing") == [snap]

    def test_store_round_trip(self, assets, cashflows, performance):
        snap = dw.make_period_snapshot(START, END, assets, cashflows, performance)
        data = json.loads(json.dumps(dw.periods_to_store([snap])))
        (restored,) = dw.periods_from_store(data)
        assert restored.id == snap.id
        assert restored.start == pd.Timestamp(START)
        assert restored.cashflows == snap.cashflows
        assert restored.performance == performance


# ---------------------------------------------------------------------------
# Figures
# ---------------------------------------------------------------------------

class TestFigures:
    def test_contribution_chart(self, performance):
        fig = dw.get_contribution_chart(performance, theme="light")
        trace = fig.data[0]
        assert trace.type == "waterfall"
        assert list(trace.x) == ["Equities", "Cash", "Total"]
        assert list(trace.measure)[-1] == "total"

    def test_attribution_chart(self):
        fig = dw.get_attribution_chart(brinson_fachler(DEFAULT_ATTRIBUTION_ROWS))
        assert [t.name for t in fig.data] == ["Allocation", "Selection", "Interaction"]

    def test_period_chart(self, assets, performance):
        snap = dw.make_period_snapshot(START, END, assets, [], performance)
        fig = dw.get_period_returns_chart([snap])
        assert len(fig.data) == 2

    def test_empty_figures(self):
        assert len(dw.get_contribution_chart(None).data) == 0
        assert len(dw.get_attribution_chart(None).data) == 0
        assert len(dw.get_period_returns_chart([]).data) == 0
