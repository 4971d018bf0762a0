"""Tier service - per-user tier lookups backed by live referral counts."""

from tarana.logging_config import get_logger
from tarana.referral.service import ReferralService, referral_service
from tarana.tiers.catalog import TierConfig, get_all_tiers
from tarana.tiers.resolver import TierProgress, calculate_progress, resolve_tier

logger = get_logger(__name__)


class TierService:
    """Resolve tiers for users.

    The active referral count always comes from referral rows, never from
    the cached counter on the profile.
    """

    def __init__(self, referrals: ReferralService | None = None):
        self.referrals = referrals or referral_service

    def get_all_tiers(self) -> list[TierConfig]:
        return get_all_tiers()

    def get_user_tier(self, user_id: str) -> TierConfig:
        """Get the tier a user is entitled to right now."""
        return resolve_tier(self.referrals.count_active_referrals(user_id))

    def get_tier_progress(self, user_id: str) -> TierProgress:
        """Get a user's progress towards their next tier.

        Args:
            user_id: User ID

        Returns:
            Current tier, next tier, referrals needed and progress percentage
        """
        active = self.referrals.count_active_referrals(user_id)
        progress = calculate_progress(active)
        logger.debug(
            "tier_progress_computed",
            user_id=user_id,
            active_referrals=active,
            tier=progress.current_tier.name,
        )
        return progress


# Singleton instance
tier_service = TierService()
