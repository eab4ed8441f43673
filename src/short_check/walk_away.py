"""Walk-Away Evaluator - hard disqualifiers for a short setup.

Inspects the normalized record (not the score breakdown). Any flag that
counts toward the category forces "No-Trade"; the cash runway and positive
cash flow flags are reported but are already priced into the numeric score.
"""

import logging
from datetime import datetime
from typing import Optional

from .config import ShortCheckConfig, get_config
from .factors import classify_news
from .normalizer import NormalizedFacts, contains_keyword
from .schema import NewsClass, WalkAwayFlag
from .status_resolver import ResolvedStatuses

logger = logging.getLogger(__name__)


class WalkAwayEvaluator:
    """Evaluates walk-away rules for a normalized record.

    Rules are independent of each other and of the score; each check returns
    a flag or None.
    """

    # Scalp setup thresholds
    SCALP_MIN_SPIKE_PCT = 100
    SCALP_MAX_RUNWAY_MONTHS = 4
    SCALP_MAX_MARKET_CAP = 150_000_000
    SCALP_FLOAT_CHECK_MARKET_CAP = 70_000_000
    SCALP_MAX_FLOAT = 10_000_000

    def __init__(self, config: Optional[ShortCheckConfig] = None):
        self.config = config or get_config()

    def evaluate(
        self,
        facts: NormalizedFacts,
        statuses: ResolvedStatuses,
        now: datetime,
    ) -> list[WalkAwayFlag]:
        """Run every walk-away rule and return the flags that fired."""
        checks = [
            self._check_long_cash_runway(facts),
            self._check_positive_cash_flow(facts),
            self._check_institutional_ownership(facts),
            self._check_bullish_news(facts, now),
            self._check_market_cap(facts),
            self._check_double_green(statuses),
        ]
        flags = [flag for flag in checks if flag is not None]

        if flags:
            logger.debug(
                "Walk-away flags for %s: %s",
                facts.ticker or "<unknown>",
                ", ".join(flag.code for flag in flags),
            )
        return flags

    def _check_long_cash_runway(self, facts: NormalizedFacts) -> Optional[WalkAwayFlag]:
        threshold = self.config.walk_away.long_runway_months
        runway = facts.effective_cash_runway
        if runway is not None and runway >= threshold:
            return WalkAwayFlag(
                code="long_cash_runway",
                message=f"Cash runway >= {threshold:g} months",
                counts_toward_category=False,
            )
        return None

    def _check_positive_cash_flow(self, facts: NormalizedFacts) -> Optional[WalkAwayFlag]:
        if facts.has_positive_cash_flow:
            return WalkAwayFlag(
                code="positive_cash_flow",
                message="Positive cash flow",
                counts_toward_category=False,
            )
        return None

    def _check_institutional_ownership(self, facts: NormalizedFacts) -> Optional[WalkAwayFlag]:
        threshold = self.config.walk_away.institutional_ownership_pct
        ownership = facts.institutional_ownership
        if ownership is not None and ownership >= threshold:
            return WalkAwayFlag(
                code="institutional_ownership",
                message=f"Institutional ownership >= {threshold:g}%",
            )
        return None

    def _check_bullish_news(self, facts: NormalizedFacts, now: datetime) -> Optional[WalkAwayFlag]:
        news_class = classify_news(
            facts.recent_news,
            facts.recent_news_date,
            now,
            self.config.keywords,
            self.config.news.recency_days,
        )
        if news_class == NewsClass.BULLISH:
            return WalkAwayFlag(
                code="bullish_news",
                message="Strong positive news catalyst detected (recent)",
            )
        return None

    def _check_market_cap(self, facts: NormalizedFacts) -> Optional[WalkAwayFlag]:
        """Market cap exclusions.

        Above the large cap threshold the company can raise money elsewhere
        unless its runway is short. In the mid band only an urgent runway
        keeps the setup alive.
        """
        rules = self.config.walk_away
        market_cap = facts.market_cap
        runway = facts.effective_cash_runway
        if market_cap is None:
            return None

        if market_cap > rules.large_market_cap:
            if runway is None or runway >= rules.adequate_runway_months:
                return WalkAwayFlag(
                    code="large_market_cap",
                    message=f"Market cap > {_millions(rules.large_market_cap)} with adequate cash runway",
                )
            return None

        if market_cap >= rules.mid_market_cap:
            urgent = runway is not None and runway <= rules.mid_cap_urgent_runway_months
            if not urgent:
                return WalkAwayFlag(
                    code="mid_market_cap",
                    message=(
                        f"Market cap {_millions(rules.mid_market_cap)}-{_millions(rules.large_market_cap)} "
                        f"requires cash runway <= {rules.mid_cap_urgent_runway_months:g} months"
                    ),
                )
        return None

    def _check_double_green(self, statuses: ResolvedStatuses) -> Optional[WalkAwayFlag]:
        if statuses.is_double_green:
            return WalkAwayFlag(
                code="double_green",
                message="Double Green trap (offering ability Green + overhead supply Green)",
            )
        return None

    def check_scalp_setup(
        self,
        facts: NormalizedFacts,
        flags: list[WalkAwayFlag],
    ) -> bool:
        """Whether the record qualifies as a parabolic scalp setup.

        Informational only: the category is never changed by it.
        """
        spike = facts.price_spike_pct
        if spike is None or spike <= self.SCALP_MIN_SPIKE_PCT:
            return False

        runway = facts.effective_cash_runway
        if runway is None or runway >= self.SCALP_MAX_RUNWAY_MONTHS:
            return False

        market_cap = facts.market_cap
        if market_cap is None or market_cap >= self.SCALP_MAX_MARKET_CAP:
            return False
        if market_cap >= self.SCALP_FLOAT_CHECK_MARKET_CAP:
            if (facts.float_shares or 0) > self.SCALP_MAX_FLOAT:
                return False

        codes = {flag.code for flag in flags}
        if "bullish_news" in codes:
            return False

        has_news = bool(facts.recent_news) and facts.recent_news.strip().lower() != "none"
        if has_news:
            if "double_green" in codes:
                return False
            if not contains_keyword(facts.recent_news, self.config.keywords.fluff_news):
                return False

        return True


def _millions(value: float) -> str:
    return f"${value / 1_000_000:g}M"
