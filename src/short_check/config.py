"""Centralized configuration management for the short check engine."""

import os
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field


class ScoreScaleConfig(BaseModel):
    """Denominators used to normalize the total score into a rating.

    The base maximum assumes the company is burning cash. Positive cash flow
    removes the runway-related upside from the maximum, and a supplied
    droppiness score adds its own maximum contribution.
    """
    base_max: int = Field(
        150,
        description="Maximum possible score when the company is burning cash"
    )
    positive_cash_flow_max: int = Field(
        113,
        description="Maximum possible score when quarterly cash flow is non-negative"
    )
    droppiness_bonus: int = Field(
        12,
        description="Added to the maximum when a droppiness score was supplied"
    )


class CategoryThresholdsConfig(BaseModel):
    """Rating thresholds (0-100) for each verdict tier."""
    high_priority: float = Field(70.0, description="Minimum rating for High-Priority Short Candidate")
    moderate: float = Field(40.0, description="Minimum rating for Moderate Short Candidate")
    speculative: float = Field(20.0, description="Minimum rating for Speculative Short Candidate")


class WalkAwayConfig(BaseModel):
    """Thresholds for the walk-away disqualifiers."""
    long_runway_months: float = Field(
        24.0,
        description="Runway (months) at or above which the long cash runway flag fires"
    )
    institutional_ownership_pct: float = Field(
        75.0,
        description="Institutional ownership (%) at or above which the setup is disqualified"
    )
    large_market_cap: float = Field(
        100_000_000,
        description="Market cap above which a company with adequate runway is disqualified"
    )
    mid_market_cap: float = Field(
        70_000_000,
        description="Lower bound of the mid market cap band"
    )
    mid_cap_urgent_runway_months: float = Field(
        4.0,
        description="Mid market cap companies with runway at or below this are still shortable"
    )
    adequate_runway_months: float = Field(
        6.0,
        description="Runway (months) considered adequate for the large market cap rule"
    )


class AlertsConfig(BaseModel):
    """Thresholds for the alert chips shown next to the rating."""
    cash_raise_runway_months: float = Field(
        2.0,
        description="Runway (months) at or below which a cash raise is likely"
    )
    cash_raise_min_burn: float = Field(
        1_000_000,
        description="Quarterly burn (dollars) above which a cash raise is likely"
    )
    low_float_shares: float = Field(3_000_000, description="Float below which Low Float Risk is shown")
    trap_float_shares: float = Field(2_000_000, description="Float below which a green offering is a trap")
    pump_spike_pct: float = Field(50.0, description="Price spike (%) above which a dilution pump is flagged")
    elevated_short_interest_pct: float = Field(
        6.0,
        description="Short interest (%) mentioned in the risk synopsis"
    )


class NewsConfig(BaseModel):
    """News classification settings."""
    recency_days: int = Field(
        7,
        description="Bullish headlines within this many days count as recent"
    )


class KeywordsConfig(BaseModel):
    """Keyword tables used by news classification and status heuristics.

    Keywords are matched case-insensitively on word boundaries; a trailing
    plural "s" is accepted.
    """
    bullish_news: list[str] = Field(default_factory=lambda: [
        "partnership", "approval", "fda approval", "contract", "major contract",
        "revenue growth", "strategic", "strategic partnership", "breakthrough",
        "acquisition", "merger", "deal", "profit", "earnings beat",
        "guidance raise", "positive", "expands",
    ])
    dilution_news: list[str] = Field(default_factory=lambda: [
        "s-1", "atm", "424b", "424b5", "424(b)", "convertible",
        "convertible preferred", "warrant", "equity line",
        "share purchase agreement", "shelf offering", "public offering",
        "follow-on",
    ])
    neutral_news: list[str] = Field(default_factory=lambda: [
        "earnings", "launch", "q1", "q2", "q3", "q4", "quarter", "financials",
        "financial results", "presentation", "conference", "webcast",
        "announces",
    ])
    mechanical_news: list[str] = Field(default_factory=lambda: [
        "holders", "share count", "shares outstanding", "outstanding shares",
        "float", "shareholder", "filing", "form", "register", "delisted",
        "listed", "symbol", "ticker", "split", "reverse split", "dividend",
        "ex-dividend", "files 10-", "files 8-", "files form",
    ])
    fluff_news: list[str] = Field(default_factory=lambda: [
        "exploring", "considering", "potential", "could", "may", "rumor",
        "speculation",
    ])
    active_dilution_status: list[str] = Field(default_factory=lambda: [
        "equity line", "share purchase agreement", "purchase agreement",
        "atm active", "active atm", "at-the-market", "active dilution",
        "warrant", "convertible", "white lion",
    ])
    shelf_status: list[str] = Field(default_factory=lambda: ["s-1", "shelf"])
    risk_dilution_status: list[str] = Field(default_factory=lambda: [
        "active", "atm", "warrant", "convertible", "white lion", "equity line",
        "share purchase agreement",
    ])
    atm_status: list[str] = Field(default_factory=lambda: ["atm", "at-the-market"])
    convertible_status: list[str] = Field(default_factory=lambda: [
        "convertible", "warrant", "equity line",
    ])


class ShortCheckConfig(BaseModel):
    """Complete configuration for the short check engine."""
    score_scale: ScoreScaleConfig = Field(default_factory=ScoreScaleConfig)
    category_thresholds: CategoryThresholdsConfig = Field(default_factory=CategoryThresholdsConfig)
    walk_away: WalkAwayConfig = Field(default_factory=WalkAwayConfig)
    alerts: AlertsConfig = Field(default_factory=AlertsConfig)
    news: NewsConfig = Field(default_factory=NewsConfig)
    keywords: KeywordsConfig = Field(default_factory=KeywordsConfig)


# Global config instance
_config: Optional[ShortCheckConfig] = None


def get_config() -> ShortCheckConfig:
    """Get the current configuration.

    Returns the global config, initializing with defaults if not yet loaded.
    """
    global _config
    if _config is None:
        _config = ShortCheckConfig()
    return _config


def load_config(path: Path) -> ShortCheckConfig:
    """Load configuration from a YAML file.

    Args:
        path: Path to the YAML configuration file.

    Returns:
        The loaded ShortCheckConfig.
    """
    global _config

    with open(path, 'r', encoding='utf-8') as f:
        data = yaml.safe_load(f)

    _config = ShortCheckConfig.model_validate(data or {})
    return _config


def reset_config() -> None:
    """Reset configuration to defaults."""
    global _config
    _config = ShortCheckConfig()


def find_config_file() -> Optional[Path]:
    """Find a short check configuration file.

    Looks in (order of priority):
    1. SHORT_CHECK_CONFIG environment variable
    2. ./short-check-config.yaml
    3. ./short-check-config.yml
    4. ~/.config/short-check/config.yaml
    """
    env_path = os.environ.get("SHORT_CHECK_CONFIG")
    if env_path:
        path = Path(env_path)
        if path.exists():
            return path

    for name in ["short-check-config.yaml", "short-check-config.yml"]:
        path = Path(name)
        if path.exists():
            return path

    user_config = Path.home() / ".config" / "short-check" / "config.yaml"
    if user_config.exists():
        return user_config

    return None


def save_default_config(path: Path) -> None:
    """Save the default configuration to a YAML file.

    Args:
        path: Path where to save the configuration.
    """
    data = ShortCheckConfig().model_dump()

    yaml_content = """# Short Check Configuration
# =========================
#
# This file holds the calibration constants of the short check score:
# score denominators, category thresholds, walk-away and alert thresholds,
# and the keyword tables used for news and status classification.
#
# Copy this file to one of these locations:
#   - ./short-check-config.yaml (current directory)
#   - ~/.config/short-check/config.yaml (user config)
#
# Or set the SHORT_CHECK_CONFIG environment variable.

"""
    yaml_content += yaml.dump(data, default_flow_style=False, sort_keys=False, allow_unicode=True)

    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, 'w', encoding='utf-8') as f:
        f.write(yaml_content)
