"""Referral tier catalog and resolution."""

from tarana.tiers.catalog import (
    BASE_DAILY_CREDITS,
    TIER_CATALOG,
    TierConfig,
    get_all_tiers,
    get_default_tier,
    get_tier_config,
    validate_catalog,
)
from tarana.tiers.resolver import TierProgress, calculate_progress, get_next_tier, resolve_tier

__all__ = [
    "BASE_DAILY_CREDITS",
    "TIER_CATALOG",
    "TierConfig",
    "TierProgress",
    "calculate_progress",
    "get_all_tiers",
    "get_default_tier",
    "get_next_tier",
    "get_tier_config",
    "resolve_tier",
    "validate_catalog",
]
