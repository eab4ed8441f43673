"""Short Check - deterministic short-setup scoring for small-cap equities."""

from short_check.config import ShortCheckConfig, get_config, load_config, reset_config
from short_check.engine import ShortCheckEngine, validate_input
from short_check.schema import (
    Category,
    ExtractedData,
    ScoreBreakdown,
    Severity,
    ShortCheckResult,
)

__version__ = "1.0.0"

__all__ = [
    "ShortCheckConfig",
    "get_config",
    "load_config",
    "reset_config",
    "ShortCheckEngine",
    "validate_input",
    "Category",
    "ExtractedData",
    "ScoreBreakdown",
    "Severity",
    "ShortCheckResult",
]
