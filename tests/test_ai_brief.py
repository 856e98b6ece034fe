"""
Tests for components.ai_brief: the Anthropic client (network mocked),
template fallbacks and the fallback wrapper.
"""
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pandas as pd
import pytest
import requests

import config
from attribution_engine import brinson_fachler
from components import ai_brief
from components.ai_brief import (
    AINarrativeError,
    call_claude,
    fallback_committee_report,
    fallback_performance_summary,
    generate_executive_summary,
    generate_with_fallback,
)
from config import DEFAULT_ATTRIBUTION_ROWS
from portfolio_engine import Asset, compute_portfolio_returns


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _ok_response(text="Generated text"):
    resp = MagicMock()
    resp.status_code = 200
    resp.json.return_value = {"content": [{"type": "text", "text": text}]}
    return resp


def _error_response(status=500):
    resp = MagicMock()
    resp.status_code = status
    resp.text = "server error"
    return resp


def _performance(eq_end=1100.0, cash_end=101.0):
    return compute_portfolio_returns(
        [Asset("Equities", 1000.0, eq_end), Asset("Cash", 100.0, cash_end)],
        [],
        pd.Timestamp("2024-01-01"),
        pd.Timestamp("2024-12-31"),
    )


@pytest.fixture
def api_key(monkeypatch):
    monkeypatch.setattr(config, "ANTHROPIC_API_KEY", "test-key")


@pytest.fixture
def no_api_key(monkeypatch):
    monkeypatch.setattr(config, "ANTHROPIC_API_KEY", "")


# ---------------------------------------------------------------------------
# call_claude
# ---------------------------------------------------------------------------

class TestCallClaude:
    def test_missing_key_raises_without_request(self, no_api_key):
        with patch.object(ai_brief.requests, "post") as post:
            with pytest.raises(AINarrativeError, match="not configured"):
                call_claude("prompt", "system")
        post.assert_not_called()

    def test_success(self, api_key):
        with patch("components.ai_brief.requests.post", return_value=_ok_response("hello")) as post:
            assert call_claude("prompt", "system") == "hello"

        kwargs = post.call_args.kwargs
        assert kwargs["headers"]["x-api-key"] == "test-key"
        assert kwargs["headers"]["anthropic-version"] == config.ANTHROPIC_VERSION
        assert kwargs["json"]["system"] == "system"
        assert kwargs["json"]["messages"] == [{"role": "user", "content": "prompt"}]

    def test_retries_then_succeeds(self, api_key):
        side_effect = [requests.ConnectionError("down"), _error_response(529), _ok_response()]
        with patch("components.ai_brief.requests.post", side_effect=side_effect) as post, \
                patch("components.ai_brief.time.sleep") as sleep:
            assert call_claude("prompt", "system") == "Generated text"

        assert post.call_count == 3
        assert [c.args[0] for c in sleep.call_args_list] == [1, 2]

    def test_gives_up_after_all_attempts(self, api_key):
        with patch("components.ai_brief.requests.post", return_value=_error_response()) as post, \
                patch("components.ai_brief.time.sleep") as sleep:
            with pytest.raises(AINarrativeError, match="failed after 6 attempts"):
                call_claude("prompt", "system")

        assert post.call_count == len(config.AI_RETRY_DELAYS) + 1
        assert [c.args[0] for c in sleep.call_args_list] == list(config.AI_RETRY_DELAYS)


# ---------------------------------------------------------------------------
# Fallback wrapper
# ---------------------------------------------------------------------------

class TestGenerateWithFallback:
    def test_uses_ai_text(self, api_key):
        result = brinson_fachler(DEFAULT_ATTRIBUTION_ROWS)
        with patch("components.ai_brief.requests.post", return_value=_ok_response("AI summary")) as post:
            text, source = generate_with_fallback(generate_executive_summary, result.insight, result)

        assert (text, source) == ("AI summary", "ai")
        assert "Total Active Return: 1.40%" in post.call_args.kwargs["json"]["messages"][0]["content"]

    def test_falls_back_without_key(self, no_api_key, capsys):
        result = brinson_fachler(DEFAULT_ATTRIBUTION_ROWS)
        text, source = generate_with_fallback(generate_executive_summary, result.insight, result)

        assert (text, source) == (result.insight, "template")
        assert "AI narrative unavailable" in capsys.readouterr().out

    def test_empty_ai_text_falls_back(self, api_key):
        with patch("components.ai_brief.requests.post", return_value=_ok_response("")):
            text, source = generate_with_fallback(
                generate_executive_summary, "fallback", brinson_fachler(DEFAULT_ATTRIBUTION_ROWS)
            )
        assert (text, source) == ("fallback", "template")

    def test_other_errors_propagate(self):
        def broken(_):
            raise KeyError("bug")

        with pytest.raises(KeyError):
            generate_with_fallback(broken, "fallback", None)


# ---------------------------------------------------------------------------
# Template text
# ---------------------------------------------------------------------------

class TestTemplates:
    def test_performance_summary(self):
        text = fallback_performance_summary(_performance())
        assert "**9.18%**" in text  # (1201 - 1100) / 1100
        assert "largest contributor was **Equities**" in text
        assert "could not be measured" not in text

    def test_performance_summary_names_detractor(self):
        text = fallback_performance_summary(_performance(eq_end=1100.0, cash_end=90.0))
        assert "**Cash** detracted" in text

    def test_performance_summary_mentions_issues(self):
        perf = _performance()
        perf = type(perf)(perf.asset_results, perf.portfolio, ("Cash: bad data",))
        assert "1 asset(s) could not be measured" in fallback_performance_summary(perf)

    def test_committee_report_empty(self):
        assert fallback_committee_report([]) == "No saved periods to report on."

    def test_committee_report_trend(self):
        snapshots = [
            SimpleNamespace(label="2023", performance=_performance(eq_end=1050.0)),
            SimpleNamespace(label="2024", performance=_performance(eq_end=1150.0)),
        ]
        text = fallback_committee_report(snapshots)
        assert "- **2023**:" in text
        assert "- **2024**:" in text
        assert "**improving**" in text
