"""Tests for the per-factor scorers."""

from datetime import datetime, timedelta, timezone

import pytest

from short_check.config import KeywordsConfig
from short_check.factors import (
    FACTOR_RANGES,
    OFFERING_MATRIX,
    classify_news,
    count_risk_indicators,
    is_recent,
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
from short_check.normalizer import FieldNormalizer
from short_check.schema import ExtractedData, NewsClass, Severity

NOW = datetime(2025, 1, 20, 12, 0, tzinfo=timezone.utc)
KEYWORDS = KeywordsConfig()


def facts_for(**fields):
    return FieldNormalizer().normalize(ExtractedData(**fields))


class TestCashScores:
    """Tests for cash need and cash runway."""

    @pytest.mark.parametrize("runway,expected", [(2, 25), (5.9, 25), (6, 18), (10, 18), (23.9, 18), (24, 5), (36, 5)])
    def test_cash_need_by_runway(self, runway, expected):
        assert score_cash_need(runway, -1_000_000) == expected

    def test_cash_need_without_runway(self):
        assert score_cash_need(None, -1_000_000) == 0
        assert score_cash_need(None, None) == 0

    def test_cash_need_positive_cash_flow(self):
        assert score_cash_need(3, 0) == 5
        assert score_cash_need(None, 500_000) == 5

    @pytest.mark.parametrize("tag,expected", [(Severity.RED, 25), (Severity.YELLOW, 18), (Severity.GREEN, 5)])
    def test_cash_need_provider_tag(self, tag, expected):
        # A 30 month runway would otherwise score 5
        assert score_cash_need(30, -1_000_000, tag) == expected

    def test_cash_need_monotonic_in_runway(self):
        assert score_cash_need(10, -1_000_000) == 18
        assert score_cash_need(4, -1_000_000) == 25

    @pytest.mark.parametrize("runway,expected", [
        (None, 0), (3, 15), (6, 10), (11.9, 10), (12, 3), (17, 3), (18, 1), (23, 1), (24, -10), (40, -10),
    ])
    def test_cash_runway_bands(self, runway, expected):
        assert score_cash_runway(runway, -1_000_000) == expected

    def test_cash_runway_positive_cash_flow(self):
        assert score_cash_runway(None, 0) == -10
        assert score_cash_runway(3, 250_000) == -10

    @pytest.mark.parametrize("runway,expected", [(None, 10), (3, 12), (8, 10), (20, 3), (30, 1)])
    def test_cash_runway_never_negative_with_green_cash_need(self, runway, expected):
        assert score_cash_runway(runway, 250_000, Severity.GREEN) == expected

    def test_cash_runway_ignores_red_cash_need_tag(self):
        assert score_cash_runway(3, -1_000_000, Severity.RED) == 15


class TestOfferingAbility:
    """Tests for the offering x overhead matrix."""

    def test_matrix_values(self):
        assert score_offering_ability(Severity.RED, Severity.RED) == 25
        assert score_offering_ability(Severity.RED, Severity.GREEN) == 18
        assert score_offering_ability(Severity.YELLOW, Severity.RED) == 21
        assert score_offering_ability(Severity.GREEN, Severity.YELLOW) == -20
        assert score_offering_ability(Severity.GREEN, Severity.GREEN) == -30

    def test_matrix_is_complete(self):
        assert len(OFFERING_MATRIX) == 9

    def test_provider_yellow_is_flat(self):
        for overhead in Severity:
            assert score_offering_ability(Severity.YELLOW, overhead, Severity.YELLOW) == 10

    def test_provider_red_uses_matrix(self):
        assert score_offering_ability(Severity.RED, Severity.YELLOW, Severity.RED) == 22


class TestHistoricalDilution:
    """Tests for three-year share count growth."""

    def test_growth_bands(self):
        assert score_historical_dilution(25_000_000, 10_000_000) == 10
        assert score_historical_dilution(13_000_000, 10_000_000) == 7
        assert score_historical_dilution(11_000_000, 10_000_000) == 3

    def test_missing_data(self):
        assert score_historical_dilution(None, 10_000_000) == 3
        assert score_historical_dilution(10_000_000, None) == 3

    def test_zero_baseline(self):
        assert score_historical_dilution(10_000_000, 0) == 10

    def test_provider_tag(self):
        assert score_historical_dilution(11_000_000, 10_000_000, Severity.RED) == 10
        assert score_historical_dilution(25_000_000, 10_000_000, Severity.YELLOW) == 7
        assert score_historical_dilution(25_000_000, 10_000_000, Severity.GREEN) == 3


class TestMarketStructure:
    """Tests for institutional ownership, short interest and float."""

    @pytest.mark.parametrize("ownership,expected", [(0.5, 5), (9.9, 5), (10, 4), (24.9, 4), (25, 0), (49, 0), (50, -5), (74, -5)])
    def test_institutional_ownership_bands(self, ownership, expected):
        assert score_institutional_ownership(ownership) == expected

    def test_institutional_ownership_missing(self):
        assert score_institutional_ownership(None) == 5
        assert score_institutional_ownership(None, 50_000_000) == 5
        assert score_institutional_ownership(None, 200_000_000) == 3

    @pytest.mark.parametrize("short_interest,expected", [
        (None, 8), (2, 15), (3, 12), (5, 12), (8, 10), (12, 8), (17, 6), (22, 3), (27, 0), (35, -5),
    ])
    def test_short_interest_bands(self, short_interest, expected):
        assert score_short_interest(short_interest) == expected

    def test_short_interest_monotonic(self):
        assert score_short_interest(5) <= score_short_interest(2)

    @pytest.mark.parametrize("float_shares,expected", [
        (None, 5), (1_500_000, 8), (3_000_000, 6), (7_000_000, 4), (15_000_000, 2), (25_000_000, 0),
    ])
    def test_float_bands(self, float_shares, expected):
        assert score_float(float_shares, Severity.RED) == expected

    def test_tiny_float_depends_on_offering(self):
        assert score_float(400_000, Severity.RED) == 10
        assert score_float(400_000, Severity.GREEN) == -10
        assert score_float(900_000, Severity.YELLOW) == 9
        assert score_float(900_000, Severity.GREEN) == -5


class TestNewsCatalyst:
    """Tests for news classification and scoring."""

    def classify(self, headline, news_date=None):
        return classify_news(headline, news_date, NOW, KEYWORDS)

    def test_absent_news(self):
        assert self.classify(None) == NewsClass.NONE
        assert self.classify("") == NewsClass.NONE
        assert self.classify(" None ") == NewsClass.NONE
        assert score_news_catalyst(NewsClass.NONE) == 15

    def test_recent_bullish(self):
        news_date = NOW - timedelta(days=2)
        assert self.classify("FDA approval received", news_date) == NewsClass.BULLISH
        assert score_news_catalyst(NewsClass.BULLISH) == 0

    def test_undated_bullish_counts_as_recent(self):
        assert self.classify("Signs strategic partnerships") == NewsClass.BULLISH

    def test_stale_bullish_is_not_bullish(self):
        news_date = NOW - timedelta(days=19)
        assert self.classify("FDA approval received", news_date) == NewsClass.OTHER

    def test_dilution_filing(self):
        assert self.classify("Company files S-1 registration statement") == NewsClass.DILUTION
        assert score_news_catalyst(NewsClass.DILUTION) == 10

    def test_neutral(self):
        assert self.classify("Q3 financial results") == NewsClass.NEUTRAL
        assert score_news_catalyst(NewsClass.NEUTRAL) == 5

    def test_mechanical(self):
        assert self.classify("Reverse split effective Monday") == NewsClass.MECHANICAL
        assert score_news_catalyst(NewsClass.MECHANICAL) == 15

    def test_fluff(self):
        assert self.classify("Exploring options for growth") == NewsClass.FLUFF
        assert score_news_catalyst(NewsClass.FLUFF) == 10

    def test_default(self):
        assert self.classify("CEO interviewed on television") == NewsClass.OTHER
        assert score_news_catalyst(NewsClass.OTHER) == 15

    def test_recency_window(self):
        assert is_recent(None, NOW)
        assert is_recent(NOW - timedelta(days=7), NOW)
        assert not is_recent(NOW - timedelta(days=8), NOW)
        assert is_recent(NOW - timedelta(days=8), NOW, recency_days=10)


class TestOverallRisk:
    """Tests for overall risk indicators."""

    def test_no_indicators(self):
        assert count_risk_indicators(facts_for(), KEYWORDS) == 0
        assert score_overall_risk(0) == 3

    def test_indicator_counting(self):
        facts = facts_for(
            cash_runway=3,                   # +2
            atm_shelf_status="ATM Active",   # +2
            outstanding_shares=25,
            float_shares=10,                 # ratio 2.5: +2
            institutional_ownership=0.5,     # +2
            debt=30,
            cash_on_hand=10,                 # debt > 2x cash: +1
            market_cap=20_000_000,           # +1
        )
        assert count_risk_indicators(facts, KEYWORDS) == 10
        assert score_overall_risk(10) == 10

    def test_milder_indicators(self):
        facts = facts_for(
            atm_shelf_status="S-1 filed",    # +1
            outstanding_shares=13,
            float_shares=10,                 # ratio 1.3: +1
            institutional_ownership=3,       # +1
        )
        assert count_risk_indicators(facts, KEYWORDS) == 3
        assert score_overall_risk(3) == 7

    def test_count_mapping(self):
        assert score_overall_risk(5) == 10
        assert score_overall_risk(4) == 7
        assert score_overall_risk(2) == 5
        assert score_overall_risk(1) == 3

    def test_provider_tag(self):
        assert score_overall_risk(10, Severity.GREEN) == 3
        assert score_overall_risk(0, Severity.YELLOW) == 5
        assert score_overall_risk(0, Severity.RED) == 10


class TestRemainingFactors:
    """Tests for price spike, debt/cash and droppiness."""

    def test_price_spike(self):
        assert score_price_spike(None, 25) == 10
        assert score_price_spike(None, 20) == 10
        assert score_price_spike(True, 10) == 0
        assert score_price_spike(True, None) == 5
        assert score_price_spike(None, None) == 0

    def test_debt_to_cash(self):
        assert score_debt_to_cash(12_000_000, 5_000_000) == 10
        assert score_debt_to_cash(6_000_000, 5_000_000) == 7
        assert score_debt_to_cash(2_000_000, 5_000_000) == 4

    def test_debt_to_cash_missing(self):
        assert score_debt_to_cash(None, 5_000_000) == 0
        assert score_debt_to_cash(0, 5_000_000) == 0
        assert score_debt_to_cash(12_000_000, None) == 0

    def test_debt_to_cash_without_actual_debt_data(self):
        assert score_debt_to_cash(12_000_000, 5_000_000, has_actual_debt_data=False) == 0

    @pytest.mark.parametrize("droppiness,expected", [(None, 0), (80, 12), (70, 12), (55, 5), (45, 0), (30, -8)])
    def test_droppiness(self, droppiness, expected):
        assert score_droppiness(droppiness) == expected


class TestBoundedness:
    """Every factor stays inside its documented range."""

    RUNWAYS = [None, 0, 1, 5.9, 6, 12, 18, 24, 100]
    BURNS = [None, -5_000_000, 0, 5_000_000]
    TAGS = [None, Severity.RED, Severity.YELLOW, Severity.GREEN]

    def assert_in_range(self, factor, value):
        low, high = FACTOR_RANGES[factor]
        assert low <= value <= high, f"{factor}={value} outside {low}..{high}"

    def test_cash_factors(self):
        for runway in self.RUNWAYS:
            for burn in self.BURNS:
                for tag in self.TAGS:
                    self.assert_in_range("cash_need", score_cash_need(runway, burn, tag))
                    self.assert_in_range("cash_runway", score_cash_runway(runway, burn, tag))

    def test_offering_and_float(self):
        for offering in Severity:
            for overhead in Severity:
                for tag in self.TAGS:
                    self.assert_in_range(
                        "offering_ability", score_offering_ability(offering, overhead, tag)
                    )
            for float_shares in [None, 0, 400_000, 900_000, 1_500_000, 50_000_000]:
                self.assert_in_range("float", score_float(float_shares, offering))

    def test_percent_factors(self):
        for pct in [None, 0, 1, 9, 24, 49, 74, 100]:
            self.assert_in_range("institutional_ownership", score_institutional_ownership(pct))
            self.assert_in_range("short_interest", score_short_interest(pct))
            self.assert_in_range("droppiness", score_droppiness(pct))
            self.assert_in_range("price_spike", score_price_spike(True, pct))

    def test_news_classes(self):
        for news_class in NewsClass:
            self.assert_in_range("news_catalyst", score_news_catalyst(news_class))

    def test_count_based_factors(self):
        for count in range(0, 12):
            for tag in self.TAGS:
                self.assert_in_range("overall_risk", score_overall_risk(count, tag))


class TestMixedUnits:
    """Ratio-based scores agree whichever encoding each operand uses."""

    @pytest.mark.parametrize("current,baseline", [
        (25, 10_000_000),
        (25_000_000, 10),
        (25_000_000, 10_000_000),
    ])
    def test_historical_dilution(self, current, baseline):
        facts = facts_for(outstanding_shares=current, outstanding_shares_3_years_ago=baseline)
        assert score_historical_dilution(
            facts.outstanding_shares, facts.outstanding_shares_3_years_ago
        ) == 10

    @pytest.mark.parametrize("debt,cash", [
        (30_000_000, 10),
        (30, 10_000_000),
        (30_000_000, 10_000_000),
    ])
    def test_debt_to_cash(self, debt, cash):
        facts = facts_for(debt=debt, cash_on_hand=cash)
        assert score_debt_to_cash(facts.debt, facts.cash_on_hand) == 10
        assert count_risk_indicators(facts, KEYWORDS) == 1

    @pytest.mark.parametrize("outstanding,float_shares", [(30_000_000, 10), (30, 10_000_000)])
    def test_os_to_float_indicators(self, outstanding, float_shares):
        facts = facts_for(outstanding_shares=outstanding, float_shares=float_shares)
        assert count_risk_indicators(facts, KEYWORDS) == 2
