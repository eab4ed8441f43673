"""Explainer - presentation layer of the short check engine.

Turns a scored record into display artifacts: alert chips, per-factor
red-flag tags, human-readable actual values, a risk synopsis and the alert
card. Builds the final ShortCheckResult.
"""

from datetime import datetime
from typing import Optional

from .config import ShortCheckConfig, get_config
from .factors import count_risk_indicators
from .normalizer import NormalizedFacts, contains_keyword, provider_severity, status_text
from .schema import (
    FACTOR_LABELS,
    AlertColor,
    AlertLabel,
    Category,
    FactorExplanation,
    RedFlagTag,
    ScoreBreakdown,
    Severity,
    ShortCheckResult,
    WalkAwayFlag,
)
from .status_resolver import ResolvedStatuses

FACTOR_EXPLANATIONS: dict[str, str] = {
    "cash_need": (
        "Companies with <3 months of runway often raise capital via dilutive offerings, "
        "which can depress share price."
    ),
    "cash_runway": (
        "Companies with <3 months of runway often raise capital via dilutive offerings, "
        "which can depress share price."
    ),
    "offering_ability": (
        "A shelf or ATM allows the company to issue shares rapidly, increasing supply "
        "and downward price pressure."
    ),
    "historical_dilution": (
        "Companies that have significantly increased shares outstanding show a pattern "
        "of shareholder dilution, indicating likely future dilution."
    ),
    "institutional_ownership": (
        "Low institutional ownership suggests limited professional interest and support, "
        "increasing vulnerability to selling pressure."
    ),
    "short_interest": (
        "Elevated short interest indicates bearish sentiment is already priced in, but also "
        "creates potential for short squeezes if catalysts emerge."
    ),
    "news_catalyst": (
        "Strong positive news can drive price appreciation, making short positions risky. "
        "Lack of bullish catalysts favors short setups."
    ),
    "float": (
        "Low float stocks are more volatile and susceptible to price manipulation, but also "
        "create higher risk/reward for short positions."
    ),
    "overall_risk": (
        "Combines multiple risk factors including cash position, dilution mechanisms, and "
        "market structure to assess overall short setup quality."
    ),
    "price_spike": (
        "Recent price spikes may indicate speculative interest, but often represent "
        "overextension that creates attractive short entry points."
    ),
    "debt_to_cash": (
        "High debt relative to cash increases financial stress and the likelihood of "
        "dilutive capital raises to meet obligations."
    ),
    "droppiness": (
        "Measures how quickly past price spikes faded. Stocks whose spikes fade fast "
        "reward shorts that enter after a run-up."
    ),
}

DEFAULT_EXPLANATION = "This metric contributes to the overall short setup assessment."

# Order used to break ties when ranking top factors
TOP_FACTOR_ORDER = [
    "droppiness",
    "overall_risk",
    "cash_need",
    "offering_ability",
    "cash_runway",
    "short_interest",
    "historical_dilution",
    "news_catalyst",
    "float",
    "price_spike",
    "debt_to_cash",
    "institutional_ownership",
]

MAX_NEWS_DISPLAY = 80


def _factor_key(factor: str) -> str:
    """Accept either a factor key ("cash_need") or its label ("Cash Need")."""
    normalized = factor.strip()
    for key, label in FACTOR_LABELS.items():
        if normalized.lower() in (key, label.lower()):
            return key
    return normalized


def get_factor_explanation(factor: str) -> FactorExplanation:
    """Why a factor matters for a short setup."""
    key = _factor_key(factor)
    return FactorExplanation(
        title=FACTOR_LABELS.get(key, factor),
        explanation=FACTOR_EXPLANATIONS.get(key, DEFAULT_EXPLANATION),
    )


def format_dollars(amount: Optional[float]) -> Optional[str]:
    """Format a raw dollar amount as $1.2M, $350K or $900."""
    if amount is None:
        return None
    if abs(amount) >= 1_000_000:
        return f"${amount / 1_000_000:.1f}M"
    if abs(amount) >= 1_000:
        return f"${amount / 1_000:.0f}K"
    return f"${amount:.0f}"


def format_shares(shares: Optional[float]) -> Optional[str]:
    """Format a raw share count as 1.2M shares, 350K shares or 900 shares."""
    if shares is None:
        return None
    if shares >= 1_000_000:
        return f"{shares / 1_000_000:.1f}M shares"
    if shares >= 1_000:
        return f"{shares / 1_000:.0f}K shares"
    return f"{shares:.0f} shares"


def format_runway(runway: float) -> str:
    return f"{runway:.1f} months"


def top_factors(breakdown: ScoreBreakdown, limit: int = 5) -> list[tuple[str, int]]:
    """Highest-magnitude non-zero contributions, largest first."""
    contributions = breakdown.contributions()
    ranked = sorted(
        ((key, contributions[key]) for key in TOP_FACTOR_ORDER),
        key=lambda item: -abs(item[1]),
    )
    return [(key, value) for key, value in ranked[:limit] if value != 0]


class ShortCheckExplainer:
    """Generates display artifacts for a scored record.

    Principles:
    - Explanations never change the score
    - Every chip and tag is derived from normalized values
    - Provider-tagged statuses are shown as such
    """

    def __init__(self, config: Optional[ShortCheckConfig] = None):
        """Initialize explainer with configuration."""
        self.config = config or get_config()
        self.alerts = self.config.alerts
        self.keywords = self.config.keywords

    # -------------------------------------------------------------------------
    # Alert chips
    # -------------------------------------------------------------------------

    def alert_labels(
        self,
        facts: NormalizedFacts,
        statuses: ResolvedStatuses,
        breakdown: ScoreBreakdown,
        flags: list[WalkAwayFlag],
    ) -> list[AlertLabel]:
        """Visual chips shown next to the rating."""
        labels = []

        runway = facts.effective_cash_runway
        burn = facts.quarterly_burn_rate
        if (
            runway is not None
            and runway <= self.alerts.cash_raise_runway_months
            and burn is not None
            and burn < 0
            and abs(burn) > self.alerts.cash_raise_min_burn
        ):
            labels.append(AlertLabel(label="Cash Raise Likely", color=AlertColor.RED))

        float_shares = facts.float_shares
        if float_shares is not None and float_shares < self.alerts.low_float_shares:
            labels.append(AlertLabel(label="Low Float Risk", color=AlertColor.ORANGE))

        if self._has_max_dilution_tools(facts):
            labels.append(AlertLabel(label="Max Dilution Tools", color=AlertColor.ORANGE))

        if (
            float_shares is not None
            and float_shares < self.alerts.trap_float_shares
            and statuses.offering == Severity.GREEN
        ):
            labels.append(AlertLabel(label="TRAP_RISK", color=AlertColor.RED))

        if any(flag.code == "double_green" for flag in flags):
            labels.append(AlertLabel(label="DOUBLE_GREEN_LOCKOUT", color=AlertColor.RED))

        spike = facts.price_spike_pct
        if (
            breakdown.cash_need == 25
            and spike is not None
            and spike > self.alerts.pump_spike_pct
            and statuses.offering == Severity.RED
        ):
            labels.append(AlertLabel(label="DILUTION_PUMP", color=AlertColor.ORANGE))

        return labels

    def _has_max_dilution_tools(self, facts: NormalizedFacts) -> bool:
        text = status_text(facts.atm_shelf_status)
        if not text:
            return False
        has_atm = contains_keyword(text, self.keywords.atm_status)
        has_shelf = contains_keyword(text, self.keywords.shelf_status)
        has_convertible = contains_keyword(text, self.keywords.convertible_status)
        mechanisms = sum([has_atm, has_shelf, has_convertible])
        return mechanisms >= 3 or (has_atm and has_shelf)

    # -------------------------------------------------------------------------
    # Per-factor tags and values
    # -------------------------------------------------------------------------

    def red_flag_tag(self, factor: str, facts: NormalizedFacts) -> Optional[RedFlagTag]:
        """Inline warning for a factor row, if its value warrants one."""
        key = _factor_key(factor)

        if key == "cash_runway":
            runway = facts.effective_cash_runway
            if runway is not None and runway < 3:
                return RedFlagTag(
                    icon="🔴",
                    label="Urgent",
                    color=AlertColor.RED,
                    tooltip="Company may need to raise capital imminently",
                )

        elif key == "offering_ability":
            text = status_text(facts.atm_shelf_status)
            if contains_keyword(text, ["atm active", "active atm", "active dilution",
                                       "equity line", "share purchase agreement"]):
                return RedFlagTag(
                    icon="🧨",
                    label="Active Shelf",
                    color=AlertColor.RED,
                    tooltip="ATM/S-1 in place; capable of issuing shares",
                )
            if contains_keyword(text, self.keywords.shelf_status):
                return RedFlagTag(
                    icon="⚠️",
                    label="Shelf Filed",
                    color=AlertColor.ORANGE,
                    tooltip="S-1/Shelf filed but not yet active",
                )

        elif key == "institutional_ownership":
            ownership = facts.institutional_ownership
            if ownership is not None and ownership < 2:
                return RedFlagTag(
                    icon="⚠️",
                    label="Weak Support",
                    color=AlertColor.YELLOW,
                    tooltip="Minimal institutional confidence",
                )

        elif key == "float":
            if facts.float_shares is not None and facts.float_shares < 5_000_000:
                return RedFlagTag(
                    icon="🎈",
                    label="Thin Float",
                    color=AlertColor.ORANGE,
                    tooltip="Higher volatility risk",
                )

        elif key == "short_interest":
            short_interest = facts.short_interest
            if short_interest is not None and short_interest > self.alerts.elevated_short_interest_pct:
                return RedFlagTag(
                    icon="📈",
                    label="Elevated",
                    color=AlertColor.ORANGE,
                    tooltip="Bearish positioning is already underway",
                )

        return None

    def actual_values(
        self,
        facts: NormalizedFacts,
        droppiness: Optional[float] = None,
        source_notes: Optional[dict[str, str]] = None,
    ) -> dict[str, str]:
        """Human-readable values behind each factor. Never used in arithmetic."""
        values: dict[str, Optional[str]] = {}
        notes = source_notes or {}
        runway = facts.effective_cash_runway
        burn = facts.quarterly_burn_rate

        cash_parts = []
        if burn is not None and burn < 0:
            cash_parts.append(f"{format_dollars(abs(burn))} burn")
        if runway is not None:
            cash_parts.append(f"{runway:.1f} mo runway")
        values["cash_need"] = ", ".join(cash_parts) or None
        values["cash_runway"] = format_runway(runway) if runway is not None else None

        offering_tag = provider_severity(facts.atm_shelf_status)
        if offering_tag is not None:
            values["offering_ability"] = f"{offering_tag.value} (provider)"
        else:
            values["offering_ability"] = status_text(facts.atm_shelf_status)

        values["historical_dilution"] = self._describe_dilution(facts, notes.get("historical_os"))

        if facts.institutional_ownership is not None:
            values["institutional_ownership"] = f"{facts.institutional_ownership:.1f}%"
        if facts.short_interest is not None:
            values["short_interest"] = f"{facts.short_interest:.1f}%"

        news = facts.recent_news
        if news and news.strip().lower() != "none":
            values["news_catalyst"] = news if len(news) <= MAX_NEWS_DISPLAY else f"{news[:MAX_NEWS_DISPLAY]}..."

        values["float"] = format_shares(facts.float_shares)

        risk_tag = provider_severity(facts.overall_risk_status)
        if risk_tag is not None:
            values["overall_risk"] = f"{risk_tag.value} (provider)"
        else:
            indicators = count_risk_indicators(facts, self.keywords)
            if indicators:
                values["overall_risk"] = f"{indicators} risk indicator points"

        if facts.price_spike_pct is not None:
            values["price_spike"] = f"{facts.price_spike_pct:.2f}%"
        elif facts.price_spike:
            values["price_spike"] = "Spike detected"

        values["debt_to_cash"] = self._describe_debt(facts, notes.get("debt_cash"))

        if droppiness is not None:
            values["droppiness"] = f"{droppiness:.0f} ({self._droppiness_verdict(droppiness)})"

        return {key: value for key, value in values.items() if value}

    def _describe_dilution(self, facts: NormalizedFacts, source: Optional[str]) -> Optional[str]:
        current = facts.outstanding_shares
        baseline = facts.outstanding_shares_3_years_ago
        parts = []
        if current is not None:
            parts.append(f"Current O/S: {format_shares(current).replace(' shares', '')}")
        if baseline is None:
            parts.append("(historical data unavailable)")
            return " ".join(parts)

        parts.append(f"O/S 3y ago: {format_shares(baseline).replace(' shares', '')}")
        if baseline > 0:
            increase = ((current or 0) - baseline) / baseline * 100
            parts.append(f"({'+' if increase > 0 else ''}{increase:.0f}% increase)")
        if source == "sec":
            parts.append("(SEC)")
        elif source == "yahoo-finance":
            parts.append("(Yahoo)")
        return " ".join(parts)

    def _describe_debt(self, facts: NormalizedFacts, source: Optional[str]) -> Optional[str]:
        if facts.has_actual_debt_data is False:
            return "Debt data unavailable (provider shows net cash only)"
        parts = []
        if facts.debt is not None:
            parts.append(f"Debt: {format_dollars(facts.debt)}")
        if facts.cash_on_hand is not None:
            parts.append(f"Cash: {format_dollars(facts.cash_on_hand)}")
        if not parts:
            return None
        suffix = " (Yahoo Finance)" if source == "yahoo-finance" else ""
        return ", ".join(parts) + suffix

    @staticmethod
    def _droppiness_verdict(droppiness: float) -> str:
        if droppiness >= 70:
            return "spikes fade quickly"
        if droppiness >= 50:
            return "spikes usually fade"
        if droppiness >= 40:
            return "mixed behavior"
        return "spikes hold"

    # -------------------------------------------------------------------------
    # Synopsis and alert card
    # -------------------------------------------------------------------------

    def risk_synopsis(self, facts: NormalizedFacts) -> str:
        """One or two sentences summarizing the risk drivers that are present."""
        subject = facts.ticker or "This company"
        parts = []

        if facts.effective_cash_runway is not None:
            parts.append(f"{subject} has only {facts.effective_cash_runway:.1f} months of runway")

        text = status_text(facts.atm_shelf_status)
        has_active = contains_keyword(text, ["active", "atm", "equity line"])
        has_shelf = contains_keyword(text, self.keywords.shelf_status)
        if has_active and has_shelf:
            parts.append("multiple active dilution tools")
        elif has_active:
            parts.append("active dilution tools")
        elif has_shelf:
            parts.append("dilution tools available")

        if facts.float_shares is not None:
            parts.append(f"a float of {facts.float_shares / 1_000_000:.2f}M shares")

        if facts.institutional_ownership is not None:
            parts.append(f"institutional ownership of just {facts.institutional_ownership:.1f}%")

        short_interest = facts.short_interest
        if short_interest is not None and short_interest > self.alerts.elevated_short_interest_pct:
            parts.append(f"elevated short interest of {short_interest:.1f}%")

        if not parts:
            return f"{subject} presents a mixed risk profile based on the analyzed factors."

        if len(parts) == 1:
            synopsis = parts[0]
        elif len(parts) == 2:
            synopsis = f"{parts[0]} and {parts[1]}"
        else:
            synopsis = f"{parts[0]}, {', '.join(parts[1:-1])}, and {parts[-1]}"

        synopsis += "."
        if len(parts) >= 2:
            synopsis += " It may face selling pressure and increased volatility."
        return synopsis

    def alert_card(
        self,
        facts: NormalizedFacts,
        rating: float,
        category: Category,
        breakdown: ScoreBreakdown,
        flags: list[WalkAwayFlag],
    ) -> str:
        """Free-text card with verdict, key metrics, flags and top factors."""
        ticker = facts.ticker or "N/A"
        card = f"{ticker} is a {category.value} with a rating of {rating:.1f}%.\n\n"

        metrics = []
        if facts.effective_cash_runway is not None:
            metrics.append(f"Cash Runway: {format_runway(facts.effective_cash_runway)}.")
        if facts.cash_on_hand:
            metrics.append(f"Cash on hand: ${facts.cash_on_hand / 1_000_000:.1f}M.")
        if facts.quarterly_burn_rate is not None:
            metrics.append(f"Quarterly burn: ${abs(facts.quarterly_burn_rate) / 1_000_000:.2f}M.")
        text = status_text(facts.atm_shelf_status)
        if text:
            metrics.append(f"Dilution tools: {text}.")
        if facts.short_interest is not None:
            metrics.append(f"Short interest: {facts.short_interest:.1f}%.")
        if facts.float_shares:
            metrics.append(f"Float: {facts.float_shares / 1_000_000:.2f}M.")
        if facts.institutional_ownership is not None:
            metrics.append(f"Institutional ownership: {facts.institutional_ownership:.1f}%.")
        if facts.market_cap:
            metrics.append(f"Market cap: ${facts.market_cap / 1_000_000:.1f}M.")
        card += " ".join(metrics)

        if flags:
            card += f"\n\n⚠️ Walk-away flags: {', '.join(flag.message for flag in flags)}"

        top = top_factors(breakdown)
        if top:
            formatted = ", ".join(f"{FACTOR_LABELS[key]} ({value:+.1f})" for key, value in top)
            card += f"\n\nTop scoring factors: {formatted}"

        return card

    # -------------------------------------------------------------------------
    # Result
    # -------------------------------------------------------------------------

    def build_result(
        self,
        facts: NormalizedFacts,
        statuses: ResolvedStatuses,
        breakdown: ScoreBreakdown,
        flags: list[WalkAwayFlag],
        total: int,
        maximum: int,
        rating: float,
        category: Category,
        now: datetime,
        droppiness: Optional[float] = None,
        scalp_setup: bool = False,
        source_notes: Optional[dict[str, str]] = None,
    ) -> ShortCheckResult:
        """Build the complete result with display artifacts attached."""
        breakdown = breakdown.model_copy(
            update={"actual_values": self.actual_values(facts, droppiness, source_notes)}
        )
        return ShortCheckResult(
            ticker=facts.ticker,
            as_of=now,
            rating=rating,
            category=category,
            walk_away_flags=[flag.message for flag in flags],
            alert_labels=self.alert_labels(facts, statuses, breakdown, flags),
            score_breakdown=breakdown,
            alert_card=self.alert_card(facts, rating, category, breakdown, flags),
            total_score=total,
            max_possible_score=maximum,
            walk_away_details=flags,
            offering_severity=statuses.offering,
            overhead_severity=statuses.overhead,
            effective_cash_runway=facts.effective_cash_runway,
            droppiness_supplied=droppiness is not None,
            scalp_setup=scalp_setup,
        )
