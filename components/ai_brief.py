import json
import time

import requests

import config
from report_formatting import fmt_pct_clean, fmt_signed_pct, fmt_dollar_clean


class AINarrativeError(RuntimeError):
    pass


# ============================================================
# Anthropic Messages API client
# ============================================================

def call_claude(prompt: str, system_instruction: str) -> str:
    """
    Send one prompt to Claude and return the text of the reply.

    Retries with exponential backoff (config.AI_RETRY_DELAYS). Raises
    AINarrativeError when no key is configured or every attempt fails.
    """
    api_key = config.ANTHROPIC_API_KEY
    if not api_key:
        raise AINarrativeError(
            "Anthropic API key not configured. Add ANTHROPIC_API_KEY to your .env file."
        )

    payload = {
        "model": config.ANTHROPIC_MODEL,
        "max_tokens": config.AI_MAX_TOKENS,
        "system": system_instruction,
        "messages": [{"role": "user", "content": prompt}],
    }
    headers = {
        "content-type": "application/json",
        "x-api-key": api_key,
        "anthropic-version": config.ANTHROPIC_VERSION,
    }

    delays = list(config.AI_RETRY_DELAYS)
    max_attempts = len(delays) + 1
    last_error = None

    for attempt in range(max_attempts):
        try:
            resp = requests.post(
                config.ANTHROPIC_API_URL,
                headers=headers,
                json=payload,
                timeout=config.AI_REQUEST_TIMEOUT,
            )
            if resp.status_code != 200:
                raise AINarrativeError(f"HTTP {resp.status_code}: {resp.text[:200]}")
            content = resp.json().get("content") or []
            return content[0].get("text", "") if content else ""
        except (requests.RequestException, ValueError, AINarrativeError) as e:
            last_error = e
            if attempt < max_attempts - 1:
                time.sleep(delays[attempt])

    raise AINarrativeError(f"AI request failed after {max_attempts} attempts: {last_error}")


# ============================================================
# Prompt builders
# ============================================================

def _asset_breakdown(attribution_result) -> list:
    return [
        {
            "AssetClass": a.name,
            "PortfolioWeight": fmt_pct_clean(a.portfolio_weight, 1),
            "BenchmarkWeight": fmt_pct_clean(a.benchmark_weight, 1),
            "Allocation": fmt_pct_clean(a.allocation),
            "Selection": fmt_pct_clean(a.selection),
            "Interaction": fmt_pct_clean(a.interaction),
            "Total": fmt_pct_clean(a.total),
        }
        for a in attribution_result.attribution
    ]


def generate_executive_summary(attribution_result) -> str:
    t = attribution_result.totals
    prompt = (
        "Write a 2-paragraph executive summary of the following portfolio performance "
        "attribution data (Brinson-Fachler method).\n\n"
        f"Total Active Return: {fmt_pct_clean(t.active_return)}\n"
        f"Total Allocation Effect: {fmt_pct_clean(t.allocation)}\n"
        f"Total Selection Effect: {fmt_pct_clean(t.selection)}\n\n"
        f"Asset Class Breakdown:\n{json.dumps(_asset_breakdown(attribution_result))}\n\n"
        "Make it professional, suitable for a client report. Highlight the biggest winners "
        "and losers without being overly verbose."
    )
    return call_claude(prompt, "You are an expert portfolio manager and quantitative analyst.")


def generate_recommendations(attribution_result) -> str:
    prompt = (
        "Based on the following Brinson-Fachler attribution data, provide 3 bullet points of "
        "strategic, actionable recommendations for the portfolio manager.\n\n"
        f"Total Active Return: {fmt_pct_clean(attribution_result.totals.active_return)}\n"
        f"Asset Breakdown:\n{json.dumps(_asset_breakdown(attribution_result))}\n\n"
        "Focus on whether they should improve asset allocation timing, security selection, "
        "or reconsider weighting in specific classes. Keep it concise."
    )
    return call_claude(prompt, "You are a senior investment strategist advising a portfolio manager.")


def generate_performance_commentary(performance) -> str:
    stats = [
        {
            "AssetClass": a.name,
            "Weight": fmt_pct_clean(a.weight, 1),
            "PeriodReturn": fmt_pct_clean(a.period_return),
            "Contribution": fmt_pct_clean(a.contribution),
        }
        for a in performance.asset_results
    ]
    prompt = (
        "Write a concise 2-paragraph performance commentary for this portfolio.\n\n"
        f"Portfolio Period Return: {fmt_pct_clean(performance.portfolio.period_return)}\n"
        f"Annualized Return: {fmt_pct_clean(performance.portfolio.annualized_return)}\n\n"
        f"Asset Class Results:\n{json.dumps(stats)}\n\n"
        "Make it professional and suitable for an investor report. Note which asset classes "
        "drove performance and any areas of concern."
    )
    return call_claude(prompt, "You are a senior portfolio analyst writing an investor report.")


def generate_committee_report(snapshots) -> str:
    periods = [
        {
            "period": s.label,
            "portfolioReturn": fmt_pct_clean(s.performance.portfolio.period_return),
            "annualizedReturn": fmt_pct_clean(s.performance.portfolio.annualized_return),
            "beginningValue": s.performance.portfolio.beginning_value,
            "endingValue": s.performance.portfolio.ending_value,
            "assetBreakdown": [
                {
                    "name": a.name,
                    "weight": fmt_pct_clean(a.weight, 1),
                    "return": fmt_pct_clean(a.period_return),
                    "contribution": fmt_pct_clean(a.contribution),
                }
                for a in s.performance.asset_results
            ],
        }
        for s in snapshots
    ]
    prompt = (
        "Generate a comprehensive Investment Committee Report based on the following "
        "multi-period portfolio performance data.\n\n"
        f"PERIODS:\n{json.dumps(periods, indent=2)}\n\n"
        "Structure the report as follows:\n"
        "1. EXECUTIVE SUMMARY (2-3 paragraphs): overview of performance across all periods "
        "and whether it is improving or deteriorating.\n"
        "2. PERFORMANCE ANALYSIS (2-3 paragraphs): returns by period, best and worst asset "
        "classes, and the drivers of performance.\n"
        "3. RISK & ALLOCATION COMMENTARY (1-2 paragraphs): allocation shifts, concentration, "
        "and how allocation decisions impacted returns.\n"
        "4. OUTLOOK & RECOMMENDATIONS (3-5 bullet points).\n\n"
        "Reference specific numbers from the data."
    )
    return call_claude(
        prompt,
        "You are a Chief Investment Officer preparing a formal report for the Investment "
        "Committee. Write in a professional tone. Use markdown headers and bullet points.",
    )


# ============================================================
# Template fallbacks (no network)
# ============================================================

def fallback_performance_summary(performance) -> str:
    """One-paragraph commentary built from the numbers alone."""
    p = performance.portfolio
    text = (
        f"Portfolio returned **{fmt_pct_clean(p.period_return)}** over the evaluation period "
        f"(**{fmt_pct_clean(p.annualized_return)}** annualized), moving from "
        f"{fmt_dollar_clean(p.beginning_value)} to {fmt_dollar_clean(p.ending_value)}."
    )

    ranked = sorted(performance.asset_results, key=lambda a: a.contribution, reverse=True)
    if ranked:
        best = ranked[0]
        text += (
            f" The largest contributor was **{best.name}** "
            f"({fmt_signed_pct(best.contribution)} of return)."
        )
        worst = ranked[-1]
        if len(ranked) > 1 and worst.contribution < 0:
            text += f" **{worst.name}** detracted {fmt_signed_pct(worst.contribution)}."

    if performance.issues:
        text += f" {len(performance.issues)} asset(s) could not be measured and were carried at 0%."
    return text


def fallback_committee_report(snapshots) -> str:
    if not snapshots:
        return "No saved periods to report on."

    lines = ["### Period Summary", ""]
    for s in snapshots:
        p = s.performance.portfolio
        lines.append(
            f"- **{s.label}**: {fmt_signed_pct(p.period_return)} "
            f"({fmt_pct_clean(p.annualized_return)} annualized), "
            f"{fmt_dollar_clean(p.beginning_value)} → {fmt_dollar_clean(p.ending_value)}"
        )

    returns = [s.performance.portfolio.period_return for s in snapshots]
    if len(returns) > 1:
        trend = "improving" if returns[-1] > returns[0] else "deteriorating"
        lines += ["", f"Performance is **{trend}** across the saved periods."]
    return "\n".join(lines)


def generate_with_fallback(generator, fallback_text: str, *args):
    """
    Run an AI generator, falling back to template text on any AI failure.

    Returns:
        (text, source) with source "ai" or "template"
    """
    try:
        text = generator(*args)
        if text:
            return text, "ai"
    except AINarrativeError as e:
        print(f"AI narrative unavailable, using template text: {e}")
    return fallback_text, "template"
