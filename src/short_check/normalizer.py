"""Field Normalizer - first stage of the short check pipeline.

Reconciles raw-vs-millions encodings, clamps out-of-range values and derives
cash runway so every later stage compares like with like.
"""

import logging
import math
import re
from datetime import datetime
from functools import lru_cache
from typing import Iterable, Optional

from pydantic import BaseModel, ConfigDict

from .schema import ExtractedData, FreeTextStatus, ProviderTag, Severity, StatusTag

logger = logging.getLogger(__name__)

# Values below this magnitude are "millions" shorthand
MILLIONS_THRESHOLD = 1000
MILLIONS_MULTIPLIER = 1_000_000

MONTHS_PER_QUARTER = 3


def to_raw_units(value: Optional[float]) -> Optional[float]:
    """Convert a "millions" shorthand value to raw units.

    ``12.5`` becomes ``12_500_000``; values already in raw units pass through
    unchanged, so applying this twice is harmless for raw inputs.
    """
    if value is None:
        return None
    if abs(value) < MILLIONS_THRESHOLD:
        return value * MILLIONS_MULTIPLIER
    return value


def derive_cash_runway(cash: Optional[float], burn: Optional[float]) -> Optional[float]:
    """Months of cash left at the current quarterly burn.

    Only defined when there is cash on hand and the company is burning it.
    """
    if cash is None or burn is None:
        return None
    if cash <= 0 or burn >= 0:
        return None
    return cash / (abs(burn) / MONTHS_PER_QUARTER)


@lru_cache(maxsize=512)
def _keyword_pattern(keyword: str) -> "re.Pattern[str]":
    keyword = keyword.strip().lower()
    prefix = r"\b" if keyword[:1].isalnum() else ""
    suffix = r"s?\b" if keyword[-1:].isalnum() else ""
    return re.compile(prefix + re.escape(keyword) + suffix)


def find_keywords(text: Optional[str], keywords: Iterable[str]) -> list[str]:
    """Return the keywords found in text (case-insensitive, word boundaries)."""
    if not text:
        return []
    lowered = text.lower()
    return [k for k in keywords if k.strip() and _keyword_pattern(k).search(lowered)]


def contains_keyword(text: Optional[str], keywords: Iterable[str]) -> bool:
    """Check whether any keyword appears in text."""
    return bool(find_keywords(text, keywords))


def provider_severity(status: Optional[StatusTag]) -> Optional[Severity]:
    """Severity of a provider tag, or None for free text and missing tags."""
    if isinstance(status, ProviderTag):
        return status.severity
    return None


def status_text(status: Optional[StatusTag]) -> Optional[str]:
    """Text of a free-text status, or None for provider tags and missing tags."""
    if isinstance(status, FreeTextStatus):
        return status.text
    return None


class NormalizedFacts(BaseModel):
    """Input record after unit reconciliation and clamping.

    All share and dollar quantities are in raw units. ``effective_cash_runway``
    is the explicit runway when supplied, otherwise the derived one.
    """
    model_config = ConfigDict(frozen=True)

    ticker: Optional[str] = None

    cash_on_hand: Optional[float] = None
    quarterly_burn_rate: Optional[float] = None
    cash_runway: Optional[float] = None
    effective_cash_runway: Optional[float] = None

    outstanding_shares: Optional[float] = None
    outstanding_shares_3_years_ago: Optional[float] = None
    float_shares: Optional[float] = None
    market_cap: Optional[float] = None
    debt: Optional[float] = None
    has_actual_debt_data: Optional[bool] = None

    atm_shelf_status: Optional[StatusTag] = None
    overhead_supply_status: Optional[StatusTag] = None
    cash_need_status: Optional[StatusTag] = None
    historical_dilution_status: Optional[StatusTag] = None
    overall_risk_status: Optional[StatusTag] = None

    institutional_ownership: Optional[float] = None
    short_interest: Optional[float] = None
    price_spike: Optional[bool] = None
    price_spike_pct: Optional[float] = None
    recent_news: Optional[str] = None
    recent_news_date: Optional[datetime] = None
    current_price: Optional[float] = None
    confidence: Optional[float] = None

    @property
    def has_positive_cash_flow(self) -> bool:
        return self.quarterly_burn_rate is not None and self.quarterly_burn_rate >= 0

    @property
    def os_to_float_ratio(self) -> Optional[float]:
        """Outstanding shares divided by float, when both are known."""
        if not self.outstanding_shares or not self.float_shares:
            return None
        return self.outstanding_shares / self.float_shares


class FieldNormalizer:
    """Normalizes an ExtractedData record into NormalizedFacts."""

    # Share and dollar counts that may arrive as "millions" shorthand
    SCALED_FIELDS = [
        "cash_on_hand",
        "outstanding_shares",
        "outstanding_shares_3_years_ago",
        "float_shares",
        "debt",
    ]

    PERCENT_FIELDS = ["institutional_ownership", "short_interest"]

    def normalize(self, data: ExtractedData) -> NormalizedFacts:
        """Normalize an input record. Never raises for missing fields."""
        values = {
            name: self._normalize_count(name, getattr(data, name))
            for name in self.SCALED_FIELDS
        }
        for name in self.PERCENT_FIELDS:
            values[name] = self._clamp(name, getattr(data, name), 0.0, 100.0)

        burn = to_raw_units(self._clamp("quarterly_burn_rate", data.quarterly_burn_rate, None, None))
        explicit_runway = self._clamp("cash_runway", data.cash_runway, 0.0, None)
        effective_runway = explicit_runway
        if effective_runway is None:
            effective_runway = derive_cash_runway(values["cash_on_hand"], burn)

        return NormalizedFacts(
            ticker=data.ticker.strip().upper() if data.ticker else None,
            quarterly_burn_rate=burn,
            cash_runway=explicit_runway,
            effective_cash_runway=effective_runway,
            market_cap=self._clamp("market_cap", data.market_cap, 0.0, None),
            has_actual_debt_data=data.has_actual_debt_data,
            atm_shelf_status=data.atm_shelf_status,
            overhead_supply_status=data.overhead_supply_status,
            cash_need_status=data.cash_need_status,
            historical_dilution_status=data.historical_dilution_status,
            overall_risk_status=data.overall_risk_status,
            price_spike=data.price_spike,
            price_spike_pct=self._clamp("price_spike_pct", data.price_spike_pct, 0.0, None),
            recent_news=data.recent_news,
            recent_news_date=data.recent_news_date,
            current_price=self._clamp("current_price", data.current_price, 0.0, None),
            confidence=self._clamp("confidence", data.confidence, 0.0, 1.0),
            **values,
        )

    def normalize_droppiness(self, value: Optional[float]) -> Optional[float]:
        """Clamp a droppiness score to the 0-100 scale."""
        return self._clamp("droppiness", value, 0.0, 100.0)

    def _normalize_count(self, name: str, value: Optional[float]) -> Optional[float]:
        return to_raw_units(self._clamp(name, value, 0.0, None))

    def _clamp(
        self,
        name: str,
        value: Optional[float],
        low: Optional[float],
        high: Optional[float],
    ) -> Optional[float]:
        if value is None:
            return None
        if not math.isfinite(value):
            logger.warning("Ignoring non-finite %s: %s", name, value)
            return None
        if low is not None and value < low:
            logger.warning("Clamping %s from %s to %s", name, value, low)
            return low
        if high is not None and value > high:
            logger.warning("Clamping %s from %s to %s", name, value, high)
            return high
        return value
