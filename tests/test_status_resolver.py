"""Tests for the Status Resolver."""

import pytest

from short_check.config import KeywordsConfig
from short_check.normalizer import FieldNormalizer
from short_check.schema import ExtractedData, Severity
from short_check.status_resolver import StatusResolver


@pytest.fixture
def resolver():
    return StatusResolver(KeywordsConfig())


def resolve(resolver, **fields):
    facts = FieldNormalizer().normalize(ExtractedData(**fields))
    return resolver.resolve(facts)


class TestOfferingSeverity:
    """Tests for offering ability resolution."""

    def test_provider_tag_wins_over_ratio(self, resolver):
        # O/S-to-float of 3.0 would heuristically be Red
        statuses = resolve(
            resolver,
            atm_shelf_status="DT:Green",
            outstanding_shares=30,
            float_shares=10,
        )
        assert statuses.offering == Severity.GREEN
        assert statuses.offering_from_provider
        assert statuses.offering_tag == Severity.GREEN

    @pytest.mark.parametrize("text", [
        "ATM Active",
        "Equity line with White Lion",
        "Warrants outstanding",
        "Convertible notes",
        "Share purchase agreement signed",
        "At-the-market program",
    ])
    def test_active_mechanisms_are_red(self, resolver, text):
        assert resolve(resolver, atm_shelf_status=text).offering == Severity.RED

    def test_shelf_with_high_ratio_is_red(self, resolver):
        statuses = resolve(
            resolver, atm_shelf_status="S-1 filed", outstanding_shares=16, float_shares=10
        )
        assert statuses.offering == Severity.RED

    def test_shelf_with_low_ratio_is_yellow(self, resolver):
        statuses = resolve(
            resolver, atm_shelf_status="Shelf registration", outstanding_shares=10, float_shares=10
        )
        assert statuses.offering == Severity.YELLOW

    def test_no_text_uses_ratio(self, resolver):
        assert resolve(resolver, outstanding_shares=15, float_shares=10).offering == Severity.RED
        assert resolve(resolver, outstanding_shares=14, float_shares=10).offering == Severity.GREEN

    def test_no_data_defaults_green(self, resolver):
        statuses = resolve(resolver)
        assert statuses.offering == Severity.GREEN
        assert not statuses.offering_from_provider
        assert statuses.offering_tag is None

    def test_other_text_is_green(self, resolver):
        assert resolve(resolver, atm_shelf_status="No filings").offering == Severity.GREEN


class TestOverheadSeverity:
    """Tests for overhead supply resolution."""

    @pytest.mark.parametrize("outstanding,expected", [
        (12.5, Severity.RED),
        (12, Severity.RED),
        (11.5, Severity.YELLOW),
        (10.5, Severity.GREEN),
    ])
    def test_ratio_bands(self, resolver, outstanding, expected):
        statuses = resolve(resolver, outstanding_shares=outstanding, float_shares=10)
        assert statuses.overhead == expected

    def test_missing_values_default_green(self, resolver):
        assert resolve(resolver, outstanding_shares=30).overhead == Severity.GREEN

    def test_provider_tag_wins(self, resolver):
        statuses = resolve(
            resolver,
            overhead_supply_status="DT:Medium",
            outstanding_shares=20,
            float_shares=10,
        )
        assert statuses.overhead == Severity.YELLOW
        assert statuses.overhead_from_provider


class TestOtherStatuses:
    """Tests for the pass-through provider tags and double green detection."""

    def test_provider_tags_pass_through(self, resolver):
        statuses = resolve(
            resolver,
            cash_need_status="DT:High",
            historical_dilution_status="DT:Low",
            overall_risk_status="DT:Yellow",
        )
        assert statuses.cash_need == Severity.RED
        assert statuses.historical_dilution == Severity.GREEN
        assert statuses.overall_risk == Severity.YELLOW

    def test_free_text_is_not_a_tag(self, resolver):
        statuses = resolve(resolver, cash_need_status="urgent")
        assert statuses.cash_need is None

    def test_double_green_requires_both_provider_tags(self, resolver):
        both = resolve(resolver, atm_shelf_status="DT:Green", overhead_supply_status="DT:Low")
        assert both.is_double_green

        # Heuristic greens are not a provider lockout
        assert not resolve(resolver).is_double_green
        assert not resolve(resolver, atm_shelf_status="DT:Green").is_double_green
