"""Referral tier definitions."""

from dataclasses import dataclass

from tarana.errors import TierConfigurationError

# Every profile gets this many credits per day before any tier bonus
BASE_DAILY_CREDITS = 5


@dataclass(frozen=True)
class TierConfig:
    """Configuration for a referral tier."""

    id: str
    name: str
    referrals_required: int  # Active referrals needed to unlock
    total_daily_credits: int
    benefits: tuple[str, ...] = ()

    @property
    def daily_credits_bonus(self) -> int:
        return self.total_daily_credits - BASE_DAILY_CREDITS


# Tier configurations, ascending by threshold
TIER_CATALOG: tuple[TierConfig, ...] = (
    TierConfig(
        id="default",
        name="Default",
        referrals_required=0,
        total_daily_credits=5,
        benefits=("5 daily credits", "Access to all features"),
    ),
    TierConfig(
        id="explorer",
        name="Explorer",
        referrals_required=1,
        total_daily_credits=6,
        benefits=("6 daily credits", "Priority support", "1 active referral"),
    ),
    TierConfig(
        id="smart-traveler",
        name="Smart Traveler",
        referrals_required=3,
        total_daily_credits=8,
        benefits=("8 daily credits", "Premium features", "3 active referrals"),
    ),
    TierConfig(
        id="voyager",
        name="Voyager",
        referrals_required=5,
        total_daily_credits=10,
        benefits=("10 daily credits", "VIP access", "5 active referrals"),
    ),
)


def validate_catalog(catalog: tuple[TierConfig, ...]) -> None:
    """Check that a catalog can be resolved against.

    Thresholds must start at zero and be strictly increasing, so every
    referral count maps to exactly one tier.

    Raises:
        TierConfigurationError: If the catalog is empty or malformed
    """
    if not catalog:
        raise TierConfigurationError("Tier catalog is empty")

    if catalog[0].referrals_required != 0:
        raise TierConfigurationError(
            f"Lowest tier '{catalog[0].name}' must require 0 referrals, "
            f"got {catalog[0].referrals_required}"
        )

    seen_names: set[str] = set()
    for previous, current in zip(catalog, catalog[1:]):
        if current.referrals_required <= previous.referrals_required:
            raise TierConfigurationError(
                f"Tier thresholds must be strictly increasing: '{previous.name}' "
                f"({previous.referrals_required}) >= '{current.name}' ({current.referrals_required})"
            )

    for tier in catalog:
        if tier.name in seen_names:
            raise TierConfigurationError(f"Duplicate tier name: {tier.name}")
        seen_names.add(tier.name)
        if tier.total_daily_credits < 0:
            raise TierConfigurationError(f"Tier '{tier.name}' has negative daily credits")


# Fail at import time rather than on the first request
validate_catalog(TIER_CATALOG)


def get_all_tiers() -> list[TierConfig]:
    """Get all tiers, ascending by referral threshold."""
    return list(TIER_CATALOG)


def get_default_tier() -> TierConfig:
    """Get the tier every new profile starts in."""
    return TIER_CATALOG[0]


def get_tier_config(tier_name: str) -> TierConfig | None:
    """Look up a tier by display name or id.

    Args:
        tier_name: Tier name ("Smart Traveler") or id ("smart-traveler")

    Returns:
        Matching tier or None
    """
    for tier in TIER_CATALOG:
        if tier.name == tier_name or tier.id == tier_name:
            return tier
    return None
