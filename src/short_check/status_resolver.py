"""Status Resolver - reconciles provider tags with heuristic derivations.

Provider tags are authoritative and are never second-guessed. Only when a
factor has no provider tag do the keyword and share-structure heuristics run,
and the default for anything unknown is Green.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from .config import KeywordsConfig, get_config
from .normalizer import NormalizedFacts, contains_keyword, provider_severity, status_text
from .schema import Severity

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolvedStatuses:
    """Severities for the categorical factors of one record.

    ``offering`` and ``overhead`` are always resolved. The remaining fields
    carry the provider tag when present and None otherwise, in which case the
    factor scorers apply their numeric rules.
    """
    offering: Severity
    overhead: Severity
    offering_from_provider: bool = False
    overhead_from_provider: bool = False
    cash_need: Optional[Severity] = None
    historical_dilution: Optional[Severity] = None
    overall_risk: Optional[Severity] = None

    @property
    def offering_tag(self) -> Optional[Severity]:
        return self.offering if self.offering_from_provider else None

    @property
    def is_double_green(self) -> bool:
        """Both offering and overhead carry a Green provider tag."""
        return (
            self.offering_from_provider
            and self.overhead_from_provider
            and self.offering == Severity.GREEN
            and self.overhead == Severity.GREEN
        )


class StatusResolver:
    """Resolves categorical severities for offering ability and overhead supply."""

    # O/S-to-float ratios
    OFFERING_RED_RATIO = 1.5
    OVERHEAD_RED_RATIO = 1.2
    OVERHEAD_YELLOW_RATIO = 1.1

    def __init__(self, keywords: Optional[KeywordsConfig] = None):
        self.keywords = keywords or get_config().keywords

    def resolve(self, facts: NormalizedFacts) -> ResolvedStatuses:
        """Resolve every categorical factor of a normalized record."""
        offering_tag = provider_severity(facts.atm_shelf_status)
        overhead_tag = provider_severity(facts.overhead_supply_status)

        statuses = ResolvedStatuses(
            offering=offering_tag or self.offering_severity(facts),
            overhead=overhead_tag or self.overhead_severity(facts),
            offering_from_provider=offering_tag is not None,
            overhead_from_provider=overhead_tag is not None,
            cash_need=provider_severity(facts.cash_need_status),
            historical_dilution=provider_severity(facts.historical_dilution_status),
            overall_risk=provider_severity(facts.overall_risk_status),
        )
        logger.debug(
            "Resolved statuses for %s: offering=%s overhead=%s",
            facts.ticker or "<unknown>",
            statuses.offering.value,
            statuses.overhead.value,
        )
        return statuses

    def offering_severity(self, facts: NormalizedFacts) -> Severity:
        """Derive offering ability severity from status text and share structure."""
        tag = provider_severity(facts.atm_shelf_status)
        if tag is not None:
            return tag

        ratio = facts.os_to_float_ratio
        high_ratio = ratio is not None and ratio >= self.OFFERING_RED_RATIO
        text = status_text(facts.atm_shelf_status)

        if not text or not text.strip():
            return Severity.RED if high_ratio else Severity.GREEN

        if contains_keyword(text, self.keywords.active_dilution_status):
            return Severity.RED

        if contains_keyword(text, self.keywords.shelf_status):
            return Severity.RED if high_ratio else Severity.YELLOW

        return Severity.GREEN

    def overhead_severity(self, facts: NormalizedFacts) -> Severity:
        """Derive overhead supply severity from the O/S-to-float ratio."""
        tag = provider_severity(facts.overhead_supply_status)
        if tag is not None:
            return tag

        ratio = facts.os_to_float_ratio
        if ratio is None:
            return Severity.GREEN
        if ratio >= self.OVERHEAD_RED_RATIO:
            return Severity.RED
        if ratio >= self.OVERHEAD_YELLOW_RATIO:
            return Severity.YELLOW
        return Severity.GREEN
