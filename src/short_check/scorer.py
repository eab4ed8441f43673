"""Aggregator - combines factor contributions into a rating and category.

Runs the twelve per-factor scorers over a normalized record, sums them,
normalizes the total against a context-dependent maximum and maps the rating
onto the four verdict tiers. Walk-away flags that count toward the category
override the tier but never the rating.
"""

import logging
from datetime import datetime
from typing import Optional

from .config import ShortCheckConfig, get_config
from .factors import (
    classify_news,
    count_risk_indicators,
    score_cash_need,
    score_cash_runway,
    score_debt_to_cash,
    score_droppiness,
    score_float,
    score_historical_dilution,
    score_institutional_ownership,
    score_news_catalyst,
    score_offering_ability,
    score_overall_risk,
    score_price_spike,
    score_short_interest,
)
from .normalizer import NormalizedFacts
from .schema import Category, ScoreBreakdown, WalkAwayFlag
from .status_resolver import ResolvedStatuses

logger = logging.getLogger(__name__)


class ShortCheckScorer:
    """Scores a normalized record.

    Scoring principles:
    - Every factor is scored independently from normalized values
    - Missing data maps to a factor default, never an error
    - The rating is not floored; negative totals give negative ratings
    - Counting walk-away flags force No-Trade but leave the rating visible
    """

    def __init__(self, config: Optional[ShortCheckConfig] = None):
        """Initialize scorer with optional custom configuration."""
        self.config = config or get_config()

    def score_factors(
        self,
        facts: NormalizedFacts,
        statuses: ResolvedStatuses,
        now: datetime,
        droppiness: Optional[float] = None,
    ) -> ScoreBreakdown:
        """Score all twelve factors for a normalized record.

        Args:
            facts: Normalized input record
            statuses: Resolved categorical severities
            now: Reference time for news recency
            droppiness: Optional droppiness score (0-100), already clamped

        Returns:
            ScoreBreakdown with one contribution per factor
        """
        keywords = self.config.keywords
        runway = facts.effective_cash_runway
        burn = facts.quarterly_burn_rate

        news_class = classify_news(
            facts.recent_news,
            facts.recent_news_date,
            now,
            keywords,
            self.config.news.recency_days,
        )

        return ScoreBreakdown(
            cash_need=score_cash_need(runway, burn, statuses.cash_need),
            cash_runway=score_cash_runway(runway, burn, statuses.cash_need),
            offering_ability=score_offering_ability(
                statuses.offering, statuses.overhead, statuses.offering_tag
            ),
            historical_dilution=score_historical_dilution(
                facts.outstanding_shares,
                facts.outstanding_shares_3_years_ago,
                statuses.historical_dilution,
            ),
            institutional_ownership=score_institutional_ownership(
                facts.institutional_ownership, facts.market_cap
            ),
            short_interest=score_short_interest(facts.short_interest),
            news_catalyst=score_news_catalyst(news_class),
            float_score=score_float(facts.float_shares, statuses.offering),
            overall_risk=score_overall_risk(
                count_risk_indicators(facts, keywords), statuses.overall_risk
            ),
            price_spike=score_price_spike(facts.price_spike, facts.price_spike_pct),
            debt_to_cash=score_debt_to_cash(
                facts.debt, facts.cash_on_hand, facts.has_actual_debt_data
            ),
            droppiness=score_droppiness(droppiness),
        )

    def max_possible_score(self, facts: NormalizedFacts, droppiness_supplied: bool) -> int:
        """Denominator for the rating.

        With non-negative cash flow the runway factor is pinned at its
        penalty, so its upside is excluded from the achievable maximum.
        """
        scale = self.config.score_scale
        maximum = scale.positive_cash_flow_max if facts.has_positive_cash_flow else scale.base_max
        if droppiness_supplied:
            maximum += scale.droppiness_bonus
        return maximum

    @staticmethod
    def calculate_rating(total: int, maximum: int) -> float:
        """Rating as a percentage of the maximum, rounded to one decimal."""
        if maximum <= 0:
            return 0.0
        return round(total / maximum * 100, 1)

    def determine_category(self, rating: float, flags: list[WalkAwayFlag]) -> Category:
        """Map a rating onto a verdict tier, honoring walk-away flags."""
        if any(flag.counts_toward_category for flag in flags):
            return Category.NO_TRADE

        thresholds = self.config.category_thresholds
        if rating >= thresholds.high_priority:
            return Category.HIGH_PRIORITY
        if rating >= thresholds.moderate:
            return Category.MODERATE
        if rating >= thresholds.speculative:
            return Category.SPECULATIVE
        return Category.NO_TRADE

    def aggregate(
        self,
        breakdown: ScoreBreakdown,
        facts: NormalizedFacts,
        flags: list[WalkAwayFlag],
        droppiness_supplied: bool,
    ) -> tuple[int, int, float, Category]:
        """Combine a breakdown and walk-away flags.

        Returns:
            Tuple of (total_score, max_possible_score, rating, category)
        """
        total = breakdown.total
        maximum = self.max_possible_score(facts, droppiness_supplied)
        rating = self.calculate_rating(total, maximum)
        category = self.determine_category(rating, flags)

        logger.debug(
            "Scored %s: total=%d max=%d rating=%.1f category=%s breakdown=%s",
            facts.ticker or "<unknown>",
            total,
            maximum,
            rating,
            category.value,
            breakdown.contributions(),
        )
        return total, maximum, rating, category
