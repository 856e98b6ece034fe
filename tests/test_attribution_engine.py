"""
Tests for attribution_engine: Brinson-Fachler effects, totals and the
template insight.
"""
import pytest

from attribution_engine import (
    NO_DATA_INSIGHT,
    AttributionInput,
    AttributionResult,
    attribution_frame,
    brinson_fachler,
    find_extreme_effects,
    generate_attribution_insight,
    weights_are_normalized,
)
from config import DEFAULT_ATTRIBUTION_ROWS


@pytest.fixture
def default_result():
    return brinson_fachler(DEFAULT_ATTRIBUTION_ROWS)


def _by_name(result, name):
    return next(a for a in result.attribution if a.name == name)


class TestBrinsonFachler:
    def test_default_returns(self, default_result):
        assert default_result.portfolio_return == pytest.approx(0.085)
        assert default_result.benchmark_return == pytest.approx(0.071)
        assert default_result.totals.active_return == pytest.approx(0.014)

    def test_effects_sum_to_active_return(self, default_result):
        t = default_result.totals
        assert t.allocation + t.selection + t.interaction == pytest.approx(t.active_return)

    def test_per_asset_effects(self, default_result):
        eq = _by_name(default_result, "Equities")
        assert eq.allocation == pytest.approx(0.1 * (0.10 - 0.071))
        assert eq.selection == pytest.approx(0.5 * 0.02)
        assert eq.interaction == pytest.approx(0.1 * 0.02)

        fi = _by_name(default_result, "Fixed Income")
        assert fi.allocation == pytest.approx(-0.1 * (0.05 - 0.071))
        assert fi.selection == pytest.approx(-0.004)
        assert fi.interaction == pytest.approx(0.001)

    def test_asset_total_is_sum_of_effects(self, default_result):
        for a in default_result.attribution:
            assert a.total == pytest.approx(a.allocation + a.selection + a.interaction)

    def test_totals_are_sums_over_assets(self, default_result):
        t = default_result.totals
        assert t.allocation == pytest.approx(sum(a.allocation for a in default_result.attribution))
        assert t.selection == pytest.approx(sum(a.selection for a in default_result.attribution))
        assert t.interaction == pytest.approx(sum(a.interaction for a in default_result.attribution))

    def test_identical_weights_have_no_allocation(self, default_result):
        cash = _by_name(default_result, "Cash")
        assert cash.allocation == pytest.approx(0.0)
        assert cash.interaction == pytest.approx(0.0)

    def test_single_asset_is_all_selection(self):
        result = brinson_fachler([AttributionInput("Equities", 1.0, 0.12, 1.0, 0.10)])
        a = result.attribution[0]
        assert a.allocation == pytest.approx(0.0)
        assert a.interaction == pytest.approx(0.0)
        assert a.selection == pytest.approx(0.02)
        assert result.totals.active_return == pytest.approx(0.02)

    def test_empty_input(self):
        for empty in ([], None):
            result = brinson_fachler(empty)
            assert result.attribution == ()
            assert result.totals.active_return == 0.0
            assert result.insight == NO_DATA_INSIGHT

    def test_weight_sums_reported(self, default_result):
        assert default_result.total_portfolio_weight == pytest.approx(1.0)
        assert default_result.total_benchmark_weight == pytest.approx(1.0)
        assert weights_are_normalized(default_result)

    def test_unnormalized_weights_flagged_not_rescaled(self):
        result = brinson_fachler([AttributionInput("Equities", 0.5, 0.10, 0.5, 0.10)])
        assert not weights_are_normalized(result)
        assert result.portfolio_return == pytest.approx(0.05)

    def test_to_dict_from_dict(self, default_result):
        assert AttributionResult.from_dict(default_result.to_dict()) == default_result

    def test_attribution_frame(self, default_result):
        df = attribution_frame(default_result)
        assert list(df["Asset Class"]) == ["Equities", "Fixed Income", "Cash", "Total"]
        assert df.iloc[-1]["Total Effect"] == pytest.approx(0.014)


class TestInsight:
    def test_default_insight_text(self, default_result):
        assert default_result.insight == (
            "The portfolio outperformed the benchmark by 1.40%. "
            "The largest positive contributor was Stock Selection in Equities (+1.00%). "
            "The biggest detractor was Stock Selection in Fixed Income (-0.40%)."
        )

    def test_extremes_span_all_effect_types(self, default_result):
        best, worst = find_extreme_effects(default_result.attribution)
        assert best[1:] == ("Equities", "Stock Selection")
        assert worst[1:] == ("Fixed Income", "Stock Selection")

    def test_underperformance_from_allocation(self):
        result = brinson_fachler([
            AttributionInput("Equities", 0.4, 0.10, 0.5, 0.10),
            AttributionInput("Bonds", 0.6, 0.05, 0.5, 0.05),
        ])
        # Pure allocation: underweight the higher-returning class
        assert result.totals.active_return < 0
        assert result.insight.startswith("The portfolio underperformed the benchmark by 0.50%.")

    def test_no_positive_or_negative_effects(self):
        text = generate_attribution_insight([], 0.0)
        assert text == "The portfolio underperformed the benchmark by 0.00%."
