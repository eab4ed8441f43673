"""Pydantic models for the Short Check scoring engine.

Input schema for extracted ticker data and output schemas for the score
breakdown, walk-away flags and final result. Input field names are snake_case
but the camelCase keys produced by the web client are accepted as well.
"""

import logging
from datetime import date, datetime, timezone
from email.utils import parsedate_to_datetime
from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

logger = logging.getLogger(__name__)


# =============================================================================
# Severity and Category Enums
# =============================================================================


class Severity(str, Enum):
    """Traffic-light severity for categorical factors."""
    RED = "Red"  # High
    YELLOW = "Yellow"  # Medium
    GREEN = "Green"  # Low

    @classmethod
    def from_label(cls, value: str) -> Optional["Severity"]:
        """Parse a severity from Red/Yellow/Green or High/Medium/Low labels."""
        if not value:
            return None
        mapping = {
            "red": cls.RED,
            "high": cls.RED,
            "yellow": cls.YELLOW,
            "medium": cls.YELLOW,
            "green": cls.GREEN,
            "low": cls.GREEN,
        }
        return mapping.get(value.strip().lower())


class Category(str, Enum):
    """Ordered verdict tiers, best short setup first."""
    HIGH_PRIORITY = "High-Priority Short Candidate"
    MODERATE = "Moderate Short Candidate"
    SPECULATIVE = "Speculative Short Candidate"
    NO_TRADE = "No-Trade"


class AlertColor(str, Enum):
    """Display color of an alert chip."""
    RED = "red"
    ORANGE = "orange"
    YELLOW = "yellow"


class NewsClass(str, Enum):
    """Classification of the most recent news headline."""
    NONE = "none"
    BULLISH = "bullish"
    DILUTION = "dilution"
    NEUTRAL = "neutral"
    MECHANICAL = "mechanical"
    FLUFF = "fluff"
    OTHER = "other"


# =============================================================================
# Status Tags
# =============================================================================


class ProviderTag(BaseModel):
    """Severity supplied directly by the upstream data provider (authoritative)."""
    model_config = ConfigDict(frozen=True)

    kind: Literal["provider"] = "provider"
    severity: Severity

    @field_validator("severity", mode="before")
    @classmethod
    def _parse_severity(cls, value: Any) -> Any:
        if isinstance(value, str) and not isinstance(value, Severity):
            parsed = Severity.from_label(value)
            if parsed is not None:
                return parsed
        return value


class FreeTextStatus(BaseModel):
    """Status text that still needs heuristic classification."""
    model_config = ConfigDict(frozen=True)

    kind: Literal["freetext"] = "freetext"
    text: str


StatusTag = Annotated[Union[ProviderTag, FreeTextStatus], Field(discriminator="kind")]

# Prefix used by the screenshot extractor to mark provider tags inside a string
PROVIDER_TAG_PREFIX = "dt:"


def status_from_string(value: str) -> Union[ProviderTag, FreeTextStatus]:
    """Parse a legacy status string such as ``"DT:Red"`` or ``"ATM Active"``.

    Strings carrying the provider prefix and a recognised severity become
    provider tags; everything else (including unrecognised provider tags) is
    kept as free text for heuristic classification.
    """
    stripped = value.strip()
    if stripped.lower().startswith(PROVIDER_TAG_PREFIX):
        severity = Severity.from_label(stripped[len(PROVIDER_TAG_PREFIX):])
        if severity is not None:
            return ProviderTag(severity=severity)
    return FreeTextStatus(text=stripped)


# =============================================================================
# Input Record
# =============================================================================


_DATE_FORMATS = ("%b %d, %Y", "%B %d, %Y", "%m/%d/%Y", "%Y/%m/%d", "%d %b %Y")


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse a timestamp from the date formats seen in provider feeds.

    Returns a timezone-aware UTC datetime, or None when the value is empty or
    cannot be parsed.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return _as_utc(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    if not isinstance(value, str):
        return None

    text = value.strip()
    try:
        return _as_utc(datetime.fromisoformat(text.replace("Z", "+00:00")))
    except ValueError:
        pass
    for fmt in _DATE_FORMATS:
        try:
            return _as_utc(datetime.strptime(text, fmt))
        except ValueError:
            continue
    try:
        parsed = parsedate_to_datetime(text)
    except (TypeError, ValueError, IndexError):
        return None
    return _as_utc(parsed) if parsed is not None else None


class ExtractedData(BaseModel):
    """Sparse facts about one ticker at one point in time.

    Populated by screenshot extraction, manual entry or enrichment lookups.
    Every field is optional. Share and dollar quantities may be raw values or
    "millions" shorthand; the normalizer reconciles them before scoring.
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="allow",
    )

    ticker: Optional[str] = None

    # Cash facts
    cash_on_hand: Optional[float] = None
    quarterly_burn_rate: Optional[float] = None  # negative = burn
    cash_runway: Optional[float] = None  # months

    # Capital structure
    outstanding_shares: Optional[float] = None
    outstanding_shares_3_years_ago: Optional[float] = None
    historical_os_source: Optional[Literal["yahoo-finance", "sec", "unknown"]] = Field(
        None, alias="historicalOSSource"
    )
    float_shares: Optional[float] = Field(None, alias="float")
    market_cap: Optional[float] = None
    debt: Optional[float] = None
    has_actual_debt_data: Optional[bool] = None
    debt_cash_source: Optional[Literal["ocr", "yahoo-finance", "manual"]] = None

    # Categorical status tags
    atm_shelf_status: Optional[StatusTag] = None
    overhead_supply_status: Optional[StatusTag] = None
    cash_need_status: Optional[StatusTag] = None
    historical_dilution_status: Optional[StatusTag] = None
    overall_risk_status: Optional[StatusTag] = None

    # Market facts
    institutional_ownership: Optional[float] = None  # 0-100
    short_interest: Optional[float] = None  # 0-100
    price_spike: Optional[bool] = None
    price_spike_pct: Optional[float] = None
    recent_news: Optional[str] = None
    recent_news_date: Optional[datetime] = None
    current_price: Optional[float] = None

    # Provenance
    confidence: Optional[float] = None  # 0-1

    @field_validator(
        "atm_shelf_status",
        "overhead_supply_status",
        "cash_need_status",
        "historical_dilution_status",
        "overall_risk_status",
        mode="before",
    )
    @classmethod
    def _parse_status(cls, value: Any) -> Any:
        if isinstance(value, str):
            if not value.strip():
                return None
            return status_from_string(value)
        return value

    @field_validator("recent_news_date", mode="before")
    @classmethod
    def _parse_news_date(cls, value: Any) -> Optional[datetime]:
        parsed = parse_timestamp(value)
        if parsed is None and value not in (None, ""):
            logger.warning("Ignoring unparseable news date: %r", value)
        return parsed


# =============================================================================
# Output Models
# =============================================================================


FACTOR_LABELS: dict[str, str] = {
    "cash_need": "Cash Need",
    "cash_runway": "Cash Runway",
    "offering_ability": "Offering Ability",
    "historical_dilution": "Historical Dilution",
    "institutional_ownership": "Institutional Ownership",
    "short_interest": "Short Interest",
    "news_catalyst": "News Catalyst",
    "float": "Float",
    "overall_risk": "Overall Risk",
    "price_spike": "Price Spike",
    "debt_to_cash": "Debt/Cash Ratio",
    "droppiness": "Droppiness",
}


class ScoreBreakdown(BaseModel):
    """One contribution per factor plus display strings."""
    cash_need: int = 0
    cash_runway: int = 0
    offering_ability: int = 0
    historical_dilution: int = 0
    institutional_ownership: int = 0
    short_interest: int = 0
    news_catalyst: int = 0
    float_score: int = 0
    overall_risk: int = 0
    price_spike: int = 0
    debt_to_cash: int = 0
    droppiness: int = 0

    # Human-readable values keyed by factor name; not used in arithmetic
    actual_values: dict[str, str] = Field(default_factory=dict)

    def contributions(self) -> dict[str, int]:
        """Factor contributions keyed by factor name, in display order."""
        return {
            "cash_need": self.cash_need,
            "cash_runway": self.cash_runway,
            "offering_ability": self.offering_ability,
            "historical_dilution": self.historical_dilution,
            "institutional_ownership": self.institutional_ownership,
            "short_interest": self.short_interest,
            "news_catalyst": self.news_catalyst,
            "float": self.float_score,
            "overall_risk": self.overall_risk,
            "price_spike": self.price_spike,
            "debt_to_cash": self.debt_to_cash,
            "droppiness": self.droppiness,
        }

    @property
    def total(self) -> int:
        return sum(self.contributions().values())


class AlertLabel(BaseModel):
    """A visual alert chip shown next to the rating."""
    label: str
    color: AlertColor


class RedFlagTag(BaseModel):
    """Inline warning attached to a single factor row."""
    icon: str
    label: str
    color: AlertColor
    tooltip: str


class FactorExplanation(BaseModel):
    """Why a factor matters for a short setup."""
    title: str
    explanation: str


class WalkAwayFlag(BaseModel):
    """A hard disqualifier found in the input record."""
    code: str  # e.g., "institutional_ownership", "double_green"
    message: str
    counts_toward_category: bool = True


class ShortCheckResult(BaseModel):
    """Complete output from the scoring engine."""
    ticker: Optional[str] = None
    as_of: datetime

    rating: float  # percentage, rounded to one decimal, not floored
    category: Category
    walk_away_flags: list[str] = Field(default_factory=list)
    alert_labels: list[AlertLabel] = Field(default_factory=list)
    score_breakdown: ScoreBreakdown
    alert_card: str = ""

    # Transparency
    total_score: int = 0
    max_possible_score: int = 0
    walk_away_details: list[WalkAwayFlag] = Field(default_factory=list)
    offering_severity: Severity = Severity.GREEN
    overhead_severity: Severity = Severity.GREEN
    effective_cash_runway: Optional[float] = None
    droppiness_supplied: bool = False
    scalp_setup: bool = False
