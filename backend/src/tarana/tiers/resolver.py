"""Map active referral counts onto the tier catalog."""

from dataclasses import dataclass

from tarana.errors import ValidationError
from tarana.tiers.catalog import TIER_CATALOG, TierConfig


@dataclass
class TierProgress:
    """Where a referral count sits in the tier ladder."""

    current_referrals: int
    current_tier: TierConfig
    next_tier: TierConfig | None
    referrals_needed: int
    progress_percentage: float

    @property
    def is_max_tier(self) -> bool:
        return self.next_tier is None


def _validate_count(active_referral_count: int) -> int:
    # bool is an int subclass; reject it explicitly
    if isinstance(active_referral_count, bool) or not isinstance(active_referral_count, int):
        raise ValidationError(
            f"Invalid referral count: {active_referral_count!r}. Must be a non-negative integer."
        )
    if active_referral_count < 0:
        raise ValidationError(
            f"Invalid referral count: {active_referral_count}. Must be a non-negative integer."
        )
    return active_referral_count


def resolve_tier(active_referral_count: int) -> TierConfig:
    """Get the highest tier unlocked by a referral count.

    Args:
        active_referral_count: Number of active referrals

    Returns:
        Highest tier whose threshold is <= the count (lowest tier otherwise)
    """
    count = _validate_count(active_referral_count)

    for tier in reversed(TIER_CATALOG):
        if tier.referrals_required <= count:
            return tier
    return TIER_CATALOG[0]


def get_next_tier(active_referral_count: int) -> TierConfig | None:
    """Get the lowest tier still locked for a referral count.

    Args:
        active_referral_count: Number of active referrals

    Returns:
        Next tier to unlock, or None at the top tier
    """
    count = _validate_count(active_referral_count)

    for tier in TIER_CATALOG:
        if tier.referrals_required > count:
            return tier
    return None


def calculate_progress(active_referral_count: int) -> TierProgress:
    """Compute progress from the current tier towards the next one.

    The percentage covers the span between the two thresholds, so it drops
    back to 0 as soon as a threshold is crossed. At the top tier it is 100.
    """
    count = _validate_count(active_referral_count)
    current = resolve_tier(count)
    upcoming = get_next_tier(count)

    if upcoming is None:
        return TierProgress(
            current_referrals=count,
            current_tier=current,
            next_tier=None,
            referrals_needed=0,
            progress_percentage=100.0,
        )

    span = upcoming.referrals_required - current.referrals_required
    percentage = (count - current.referrals_required) / span * 100

    return TierProgress(
        current_referrals=count,
        current_tier=current,
        next_tier=upcoming,
        referrals_needed=max(0, upcoming.referrals_required - count),
        progress_percentage=round(min(100.0, max(0.0, percentage)), 2),
    )
