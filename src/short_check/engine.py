"""Short Check Engine - wires the scoring pipeline together.

normalize -> resolve statuses -> score factors / evaluate walk-away flags
-> aggregate -> explain.
"""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional, Union

from pydantic import ValidationError
from pydantic.alias_generators import to_camel

from .config import ShortCheckConfig, get_config
from .explainer import ShortCheckExplainer
from .normalizer import FieldNormalizer, NormalizedFacts
from .schema import ExtractedData, ShortCheckResult
from .scorer import ShortCheckScorer
from .status_resolver import StatusResolver
from .summary import generate_summary
from .walk_away import WalkAwayEvaluator

logger = logging.getLogger(__name__)


def parse_override(value: str) -> Any:
    """Parse a command-line override value: JSON literals, else the raw string."""
    try:
        return json.loads(value)
    except json.JSONDecodeError:
        return value


def load_input(path: Union[str, Path]) -> dict:
    """Load a raw input record from a JSON file.

    Accepts a single JSON object or a one-element array holding one.

    Raises:
        ValueError: If the file is not JSON or does not hold a single object.
    """
    path = Path(path)
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ValueError(f"{path} is not valid JSON: {e}") from e

    if isinstance(data, list):
        if len(data) != 1:
            raise ValueError(f"{path} must hold a single record, found {len(data)}")
        data = data[0]
    if not isinstance(data, dict):
        raise ValueError(f"{path} must hold a JSON object, found {type(data).__name__}")
    return data


def _field_keys(key: str) -> set[str]:
    """Every key that populates the same ExtractedData field as ``key``."""
    for name, field in ExtractedData.model_fields.items():
        keys = {name, field.alias or to_camel(name)}
        if key in keys:
            return keys
    return {key}


def apply_overrides(raw: dict, overrides: dict[str, Any]) -> dict:
    """Merge overrides into a raw record.

    An override replaces the field whether the record spells it in
    camelCase or snake_case, so ``cash_runway=3`` wins over ``cashRunway``.
    """
    merged = dict(raw)
    for key, value in overrides.items():
        for existing in _field_keys(key):
            merged.pop(existing, None)
        merged[key] = value
    return merged


def _format_validation_error(error: ValidationError) -> list[str]:
    issues = []
    for detail in error.errors():
        location = ".".join(str(part) for part in detail["loc"]) or "<record>"
        issues.append(f"{location}: {detail['msg']}")
    return issues


def parse_extracted_data(raw: dict) -> ExtractedData:
    """Validate a raw record into ExtractedData.

    Raises:
        ValueError: If any field has the wrong type.
    """
    try:
        return ExtractedData.model_validate(raw)
    except ValidationError as e:
        raise ValueError("Invalid input record: " + "; ".join(_format_validation_error(e))) from e


def validate_input(path: Union[str, Path]) -> tuple[bool, list[str]]:
    """Validate an input file without scoring it.

    Returns:
        Tuple of (is_valid, issues)
    """
    try:
        raw = load_input(path)
    except (OSError, ValueError) as e:
        return False, [str(e)]

    try:
        data = ExtractedData.model_validate(raw)
    except ValidationError as e:
        return False, _format_validation_error(e)

    issues = []
    if not data.ticker:
        issues.append("No ticker supplied")
    if data.model_extra:
        issues.append(f"Unrecognized fields ignored: {', '.join(sorted(data.model_extra))}")
    if raw.get("recentNewsDate", raw.get("recent_news_date")) and data.recent_news_date is None:
        issues.append("recent_news_date could not be parsed and will be ignored")

    # Issues above are informational; the record can still be scored
    return True, issues


class ShortCheckEngine:
    """Scores extracted ticker data for short-setup quality.

    The engine is stateless between calls: the same record, droppiness and
    ``now`` always produce the same result.
    """

    def __init__(self, config: Optional[ShortCheckConfig] = None):
        self.config = config or get_config()
        self.normalizer = FieldNormalizer()
        self.resolver = StatusResolver(self.config.keywords)
        self.scorer = ShortCheckScorer(self.config)
        self.walk_away = WalkAwayEvaluator(self.config)
        self.explainer = ShortCheckExplainer(self.config)

    def normalize(self, data: Union[ExtractedData, dict]) -> NormalizedFacts:
        """Normalize a record without scoring it."""
        if isinstance(data, dict):
            data = parse_extracted_data(data)
        return self.normalizer.normalize(data)

    def score(
        self,
        data: Union[ExtractedData, dict],
        droppiness: Optional[float] = None,
        now: Optional[datetime] = None,
    ) -> ShortCheckResult:
        """Score a single record.

        Args:
            data: Extracted data, as a model or a raw dict
            droppiness: Optional droppiness score (0-100)
            now: Reference time for news recency (default: current UTC time)

        Returns:
            Complete ShortCheckResult
        """
        if isinstance(data, dict):
            data = parse_extracted_data(data)
        now = self._as_utc(now or datetime.now(timezone.utc))

        facts = self.normalizer.normalize(data)
        droppiness = self.normalizer.normalize_droppiness(droppiness)
        statuses = self.resolver.resolve(facts)

        breakdown = self.scorer.score_factors(facts, statuses, now, droppiness)
        flags = self.walk_away.evaluate(facts, statuses, now)
        total, maximum, rating, category = self.scorer.aggregate(
            breakdown, facts, flags, droppiness is not None
        )
        scalp_setup = self.walk_away.check_scalp_setup(facts, flags)

        source_notes = {}
        if data.historical_os_source:
            source_notes["historical_os"] = data.historical_os_source
        if data.debt_cash_source:
            source_notes["debt_cash"] = data.debt_cash_source

        return self.explainer.build_result(
            facts,
            statuses,
            breakdown,
            flags,
            total=total,
            maximum=maximum,
            rating=rating,
            category=category,
            now=now,
            droppiness=droppiness,
            scalp_setup=scalp_setup,
            source_notes=source_notes,
        )

    def score_file(
        self,
        path: Union[str, Path],
        droppiness: Optional[float] = None,
        now: Optional[datetime] = None,
        overrides: Optional[dict[str, Any]] = None,
    ) -> ShortCheckResult:
        """Load a JSON record from disk, apply overrides and score it."""
        raw = apply_overrides(load_input(path), overrides or {})
        logger.debug("Scoring %s with %d override(s)", path, len(overrides or {}))
        return self.score(raw, droppiness=droppiness, now=now)

    def summarize(
        self,
        data: Union[ExtractedData, dict],
        fmt: str = "quick",
        droppiness: Optional[float] = None,
        now: Optional[datetime] = None,
    ) -> str:
        """Score a record and render it as a text summary."""
        result = self.score(data, droppiness=droppiness, now=now)
        return generate_summary(
            result,
            self.normalize(data),
            fmt=fmt,
            now=result.as_of,
            explainer=self.explainer,
        )

    @staticmethod
    def _as_utc(value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
