"""Plain-text summaries of a short check result for clipboard and export."""

from datetime import datetime
from typing import Optional

from .explainer import ShortCheckExplainer
from .normalizer import NormalizedFacts
from .schema import FACTOR_LABELS, AlertColor, ShortCheckResult

SUMMARY_FORMATS = ("quick", "full")

SEPARATOR = "═" * 55
SUB_SEPARATOR = "─" * 45

ALERT_ICONS = {
    AlertColor.RED: "🔴",
    AlertColor.ORANGE: "🟠",
    AlertColor.YELLOW: "🟡",
}

# Factors considered for the quick summary's top list
QUICK_FACTORS = ["offering_ability", "droppiness", "float", "cash_need", "overall_risk"]

FULL_BREAKDOWN_ORDER = [
    "droppiness",
    "overall_risk",
    "cash_need",
    "cash_runway",
    "offering_ability",
    "institutional_ownership",
    "float",
    "short_interest",
    "historical_dilution",
    "debt_to_cash",
    "price_spike",
    "news_catalyst",
]


def _long_date(value: datetime) -> str:
    return f"{value:%B} {value.day}, {value.year}"


def _alert_lines(result: ShortCheckResult) -> list[str]:
    return [f"{ALERT_ICONS[alert.color]} {alert.label}" for alert in result.alert_labels]


def _key_metric_lines(facts: NormalizedFacts) -> list[str]:
    lines = []
    if facts.effective_cash_runway:
        lines.append(f"• Cash Runway: {facts.effective_cash_runway:.1f} months")
    if facts.float_shares:
        lines.append(f"• Float: {facts.float_shares / 1e6:.2f}M shares")
    if facts.institutional_ownership is not None:
        lines.append(f"• Institutional Ownership: {facts.institutional_ownership:g}%")
    if facts.current_price:
        lines.append(f"• Current Price: ${facts.current_price:.2f}")
    return lines


def generate_summary(
    result: ShortCheckResult,
    facts: Optional[NormalizedFacts] = None,
    fmt: str = "quick",
    now: Optional[datetime] = None,
    explainer: Optional[ShortCheckExplainer] = None,
) -> str:
    """Render a result as a quick or full text summary.

    Args:
        result: Scored result
        facts: Normalized record the result was computed from, for key metrics
            and the risk synopsis
        fmt: "quick" or "full"
        now: Date printed in the full summary; defaults to the result's as_of
        explainer: Explainer used for the risk synopsis

    Returns:
        Multi-line summary text
    """
    if fmt not in SUMMARY_FORMATS:
        raise ValueError(f"Unknown summary format: {fmt!r} (expected one of {', '.join(SUMMARY_FORMATS)})")

    explainer = explainer or ShortCheckExplainer()
    if fmt == "quick":
        return _quick_summary(result, facts, explainer)
    return _full_summary(result, facts, now or result.as_of, explainer)


def _quick_summary(
    result: ShortCheckResult,
    facts: Optional[NormalizedFacts],
    explainer: ShortCheckExplainer,
) -> str:
    ticker = (result.ticker or "N/A").upper()
    lines = [
        f"SHORT CHECK - {ticker}",
        f"Rating: {result.rating:.1f}% | {result.category.value}",
        "",
    ]

    if result.alert_labels:
        lines.append("Key Alerts:")
        lines.extend(_alert_lines(result))
        lines.append("")

    contributions = result.score_breakdown.contributions()
    factors = sorted(
        ((key, contributions[key]) for key in QUICK_FACTORS if contributions[key] != 0),
        key=lambda item: -abs(item[1]),
    )
    if factors:
        lines.append("Top Factors:")
        for key, value in factors:
            lines.append(f"• {FACTOR_LABELS[key]}: {value:+.1f}")
        lines.append("")

    if facts is not None:
        lines.append("Key Metrics:")
        lines.extend(_key_metric_lines(facts))
        lines.append("")

        # Sentences end with ". "; decimals such as "2.0 months" must not split
        first_sentence = explainer.risk_synopsis(facts).split(". ")[0].rstrip(".")
        if first_sentence:
            lines.append(f"Summary: {first_sentence}.")
            lines.append("")

    if result.walk_away_flags:
        lines.append("⚠️ Walk-Away Flags:")
        lines.extend(f"• {flag}" for flag in result.walk_away_flags)
        lines.append("")

    droppiness = result.score_breakdown.actual_values.get("droppiness")
    if droppiness:
        lines.append(f"Droppiness: {droppiness}")

    return "\n".join(lines).rstrip("\n")


def _full_summary(
    result: ShortCheckResult,
    facts: Optional[NormalizedFacts],
    now: datetime,
    explainer: ShortCheckExplainer,
) -> str:
    ticker = (result.ticker or "N/A").upper()
    lines = [
        SEPARATOR,
        f"SHORT CHECK ANALYSIS - {ticker}",
        f"Generated: {_long_date(now)}",
        SEPARATOR,
        "",
        "OVERALL RATING:",
        f"{result.rating:.1f}%",
        f"Category: {result.category.value}",
        "",
    ]

    if result.alert_labels:
        lines.append("ALERT LABELS:")
        lines.extend(_alert_lines(result))
        lines.append("")

    if facts is not None:
        lines.append("RISK SYNOPSIS:")
        lines.append(explainer.risk_synopsis(facts))
        lines.append("")

    lines.append("SCORE BREAKDOWN:")
    contributions = result.score_breakdown.contributions()
    for key in FULL_BREAKDOWN_ORDER:
        lines.append(f"{FACTOR_LABELS[key]}: {contributions[key]:+.1f}")
    lines.append(SUB_SEPARATOR)
    lines.append(f"Total: {result.total_score} / {result.max_possible_score} ({result.rating:.1f}%)")
    lines.append("")

    if facts is not None:
        lines.append("KEY METRICS:")
        lines.extend(_key_metric_lines(facts))
        lines.append("")

    if result.walk_away_flags:
        lines.append("WALK-AWAY FLAGS:")
        lines.extend(f"• {flag}" for flag in result.walk_away_flags)
        lines.append("")

    if result.alert_card:
        lines.append("ALERT CARD:")
        lines.append(SUB_SEPARATOR)
        lines.append(result.alert_card)
        lines.append("")

    lines.append(SUB_SEPARATOR)
    lines.append(f"Generated by Short Check • {now:%Y-%m-%d}")
    return "\n".join(lines)
