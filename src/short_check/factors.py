"""Per-factor scorers.

Twelve independent pure functions, one per risk factor. Each takes normalized
values (raw units, clamped) and returns an integer contribution within the
range listed in FACTOR_RANGES. Missing data maps to the factor's default and
never raises.

Positive contributions favour a short setup; negative ones argue against it.
"""

from datetime import datetime, timedelta
from typing import Optional

from .config import KeywordsConfig
from .normalizer import NormalizedFacts, contains_keyword, status_text
from .schema import NewsClass, Severity

# Inclusive (min, max) contribution of each factor
FACTOR_RANGES: dict[str, tuple[int, int]] = {
    "cash_need": (0, 25),
    "cash_runway": (-10, 15),
    "offering_ability": (-30, 25),
    "historical_dilution": (0, 10),
    "institutional_ownership": (-5, 5),
    "short_interest": (-5, 15),
    "news_catalyst": (0, 15),
    "float": (-10, 10),
    "overall_risk": (0, 10),
    "price_spike": (0, 10),
    "debt_to_cash": (0, 10),
    "droppiness": (-8, 12),
}

# Offering severity x overhead supply severity
OFFERING_MATRIX: dict[tuple[Severity, Severity], int] = {
    (Severity.RED, Severity.RED): 25,
    (Severity.RED, Severity.YELLOW): 22,
    (Severity.RED, Severity.GREEN): 18,
    (Severity.YELLOW, Severity.RED): 21,
    (Severity.YELLOW, Severity.YELLOW): 15,
    (Severity.YELLOW, Severity.GREEN): 10,
    (Severity.GREEN, Severity.RED): -5,
    (Severity.GREEN, Severity.YELLOW): -20,
    (Severity.GREEN, Severity.GREEN): -30,
}

# Flat score when the provider marks offering ability Yellow
PROVIDER_YELLOW_OFFERING_SCORE = 10

# (upper bound exclusive, score); the last band catches everything above
SHORT_INTEREST_BANDS = [(3, 15), (7, 12), (10, 10), (15, 8), (20, 6), (25, 3), (30, 0)]
SHORT_INTEREST_ABOVE = -5

FLOAT_BANDS = [(2_000_000, 8), (5_000_000, 6), (10_000_000, 4), (20_000_000, 2)]

NEWS_SCORES = {
    NewsClass.NONE: 15,
    NewsClass.BULLISH: 0,
    NewsClass.DILUTION: 10,
    NewsClass.NEUTRAL: 5,
    NewsClass.MECHANICAL: 15,
    NewsClass.FLUFF: 10,
    NewsClass.OTHER: 15,
}

SMALL_CAP_MARKET_CAP = 100_000_000
MICRO_CAP_MARKET_CAP = 50_000_000


def _tag_score(tag: Optional[Severity], red: int, yellow: int, green: int) -> Optional[int]:
    if tag is None:
        return None
    return {Severity.RED: red, Severity.YELLOW: yellow, Severity.GREEN: green}[tag]


def score_cash_need(
    runway: Optional[float],
    burn_rate: Optional[float],
    tag: Optional[Severity] = None,
) -> int:
    """Urgency of raising cash (0..25)."""
    tagged = _tag_score(tag, 25, 18, 5)
    if tagged is not None:
        return tagged
    if burn_rate is not None and burn_rate >= 0:
        return 5
    if runway is None:
        return 0
    if runway < 6:
        return 25
    if runway < 24:
        return 18
    return 5


def score_cash_runway(
    runway: Optional[float],
    burn_rate: Optional[float],
    cash_need_tag: Optional[Severity] = None,
) -> int:
    """Months of runway (-10..15).

    A Green cash-need provider tag means the provider sees no cash pressure,
    so runway is never scored as a penalty in that case.
    """
    if cash_need_tag == Severity.GREEN:
        if runway is None:
            return 10
        if runway < 6:
            return 12
        if runway < 12:
            return 10
        if runway < 24:
            return 3
        return 1

    if burn_rate is not None and burn_rate >= 0:
        return -10
    if runway is None:
        return 0
    if runway < 6:
        return 15
    if runway < 12:
        return 10
    if runway < 18:
        return 3
    if runway < 24:
        return 1
    return -10


def score_offering_ability(
    offering: Severity,
    overhead: Severity,
    offering_tag: Optional[Severity] = None,
) -> int:
    """Ability to sell new shares into the market (-30..25)."""
    if offering_tag == Severity.YELLOW:
        return PROVIDER_YELLOW_OFFERING_SCORE
    return OFFERING_MATRIX[(offering, overhead)]


def score_historical_dilution(
    outstanding_shares: Optional[float],
    outstanding_shares_3_years_ago: Optional[float],
    tag: Optional[Severity] = None,
) -> int:
    """Share count growth over three years (0..10)."""
    tagged = _tag_score(tag, 10, 7, 3)
    if tagged is not None:
        return tagged
    if not outstanding_shares or outstanding_shares_3_years_ago is None:
        return 3
    if outstanding_shares_3_years_ago <= 0:
        return 10

    growth_pct = (outstanding_shares - outstanding_shares_3_years_ago) / outstanding_shares_3_years_ago * 100
    if growth_pct > 100:
        return 10
    if growth_pct >= 30:
        return 7
    return 3


def score_institutional_ownership(
    ownership_pct: Optional[float],
    market_cap: Optional[float] = None,
) -> int:
    """Institutional support (-5..5). Low ownership means weak support."""
    if ownership_pct is None:
        if market_cap is None or market_cap < SMALL_CAP_MARKET_CAP:
            return 5
        return 3
    if ownership_pct < 10:
        return 5
    if ownership_pct < 25:
        return 4
    if ownership_pct < 50:
        return 0
    return -5


def score_short_interest(short_interest_pct: Optional[float]) -> int:
    """Existing short crowding (-5..15). Low short interest leaves room."""
    if short_interest_pct is None:
        return 8
    for upper, score in SHORT_INTEREST_BANDS:
        if short_interest_pct < upper:
            return score
    return SHORT_INTEREST_ABOVE


def is_recent(news_date: Optional[datetime], now: datetime, recency_days: int = 7) -> bool:
    """Whether a headline falls inside the recency window. Undated counts as recent."""
    if news_date is None:
        return True
    return news_date >= now - timedelta(days=recency_days)


def classify_news(
    headline: Optional[str],
    news_date: Optional[datetime],
    now: datetime,
    keywords: KeywordsConfig,
    recency_days: int = 7,
) -> NewsClass:
    """Classify a headline. Bullish only counts when it is recent."""
    if not headline or not headline.strip() or headline.strip().lower() == "none":
        return NewsClass.NONE

    if is_recent(news_date, now, recency_days) and contains_keyword(headline, keywords.bullish_news):
        return NewsClass.BULLISH
    if contains_keyword(headline, keywords.dilution_news):
        return NewsClass.DILUTION
    if contains_keyword(headline, keywords.neutral_news):
        return NewsClass.NEUTRAL
    if contains_keyword(headline, keywords.mechanical_news):
        return NewsClass.MECHANICAL
    if contains_keyword(headline, keywords.fluff_news):
        return NewsClass.FLUFF
    return NewsClass.OTHER


def score_news_catalyst(news_class: NewsClass) -> int:
    """Catalyst risk of the latest headline (0..15). Recent bullish news scores 0."""
    return NEWS_SCORES[news_class]


def score_float(float_shares: Optional[float], offering: Severity) -> int:
    """Float size (-10..10).

    Tiny floats squeeze hard; with no way to issue shares (Green offering)
    they are a trap for shorts rather than an opportunity.
    """
    if float_shares is None:
        return 5
    if float_shares < 500_000:
        return -10 if offering == Severity.GREEN else 10
    if float_shares < 1_000_000:
        return -5 if offering == Severity.GREEN else 9
    for upper, score in FLOAT_BANDS:
        if float_shares < upper:
            return score
    return 0


def count_risk_indicators(facts: NormalizedFacts, keywords: KeywordsConfig) -> int:
    """Count the overall risk indicators present in a normalized record."""
    count = 0

    runway = facts.effective_cash_runway
    if runway is not None and runway < 6:
        count += 2

    text = status_text(facts.atm_shelf_status)
    if contains_keyword(text, keywords.risk_dilution_status):
        count += 2
    elif contains_keyword(text, keywords.shelf_status):
        count += 1

    ratio = facts.os_to_float_ratio
    if ratio is not None:
        if ratio >= 2:
            count += 2
        elif ratio > 1.2:
            count += 1

    ownership = facts.institutional_ownership
    if ownership is not None:
        if ownership < 1:
            count += 2
        elif ownership < 5:
            count += 1

    if facts.debt and facts.cash_on_hand and facts.debt > 2 * facts.cash_on_hand:
        count += 1

    if facts.market_cap is not None and facts.market_cap < MICRO_CAP_MARKET_CAP:
        count += 1

    return count


def score_overall_risk(indicator_count: int, tag: Optional[Severity] = None) -> int:
    """Aggregate risk posture (0..10)."""
    tagged = _tag_score(tag, 10, 5, 3)
    if tagged is not None:
        return tagged
    if indicator_count >= 5:
        return 10
    if indicator_count >= 3:
        return 7
    if indicator_count >= 2:
        return 5
    return 3


def score_price_spike(spike: Optional[bool], spike_pct: Optional[float] = None) -> int:
    """Recent price spike (0..10). A measured percentage wins over the boolean."""
    if spike_pct is not None:
        return 10 if spike_pct >= 20 else 0
    return 5 if spike else 0


def score_debt_to_cash(
    debt: Optional[float],
    cash: Optional[float],
    has_actual_debt_data: Optional[bool] = None,
) -> int:
    """Debt relative to cash (0..10)."""
    if has_actual_debt_data is False:
        return 0
    if not debt or not cash:
        return 0
    ratio = debt / cash
    if ratio > 2:
        return 10
    if ratio > 1:
        return 7
    return 4


def score_droppiness(droppiness: Optional[float]) -> int:
    """Historical tendency of spikes to fade (-8..12)."""
    if droppiness is None:
        return 0
    if droppiness >= 70:
        return 12
    if droppiness >= 50:
        return 5
    if droppiness >= 40:
        return 0
    return -8
