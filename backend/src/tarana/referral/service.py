"""Referral service for referral codes, relationships and statistics."""

from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from tarana.errors import (
    DependencyUnavailableError,
    DuplicateReferralError,
    InvalidReferralCodeError,
    ProfileNotFoundError,
    SelfReferralError,
)
from tarana.logging_config import get_logger
from tarana.settings import settings
from tarana.storage.db import Database, db
from tarana.storage.models import Referral, ReferralStatus
from tarana.storage.repo import ProfileRepository, ReferralRepository, normalize_referral_code
from tarana.tiers.resolver import calculate_progress

logger = get_logger(__name__)


@dataclass
class ReferralCounts:
    """A user's referrals partitioned by status.

    Statuses other than pending/active land in ``other`` and never count
    towards tier progress.
    """

    total: int = 0
    active: int = 0
    pending: int = 0
    other: int = 0

    @classmethod
    def from_status_counts(cls, by_status: dict[str, int]) -> "ReferralCounts":
        counts = cls()
        for status, count in by_status.items():
            counts.total += count
            if status == ReferralStatus.ACTIVE:
                counts.active += count
            elif status == ReferralStatus.PENDING:
                counts.pending += count
            else:
                counts.other += count
        return counts


@dataclass
class ReferralStats:
    """Referral statistics for the dashboard."""

    total_referrals: int
    active_referrals: int
    pending_referrals: int
    other_referrals: int
    current_tier: str
    referrals_needed: int
    total_bonus_credits: int
    recent_referrals: list[Referral] = field(default_factory=list)


@dataclass
class CreatedReferral:
    """Result of recording a signup referral."""

    referral_id: int
    referrer_id: str
    referee_id: str
    status: str
    created_at: datetime


class ReferralService:
    """Service for referral codes and relationships.

    Only observes referral status; activation is driven elsewhere.
    """

    def __init__(self, database: Database | None = None):
        """Initialize referral service."""
        self.db = database or db
        self.logger = get_logger(__name__)

    def validate_referral_code(self, code: str) -> bool:
        """Check whether a referral code belongs to any profile.

        Args:
            code: Referral code to validate

        Returns:
            True if a profile owns the code
        """
        if not code or not code.strip():
            return False

        try:
            with self.db.session() as session:
                return ProfileRepository(session).get_by_code(code) is not None
        except SQLAlchemyError as e:
            self.logger.error("referral_code_validation_failed", error=str(e))
            raise DependencyUnavailableError("Referral store unavailable while validating code") from e

    def get_user_referral_code(self, user_id: str) -> str:
        """Get a user's referral code.

        Args:
            user_id: User ID

        Returns:
            Referral code

        Raises:
            ProfileNotFoundError: If the user has no profile
        """
        try:
            with self.db.session() as session:
                profile = ProfileRepository(session).get(user_id)
        except SQLAlchemyError as e:
            self.logger.error("referral_code_read_failed", user_id=user_id, error=str(e))
            raise DependencyUnavailableError("Referral store unavailable while reading code") from e

        if not profile:
            raise ProfileNotFoundError(user_id)
        return profile.referral_code

    def get_referral_counts(self, user_id: str) -> ReferralCounts:
        """Count a user's referral rows by status.

        Raises:
            DependencyUnavailableError: If the referral rows cannot be read (retryable)
        """
        try:
            with self.db.session() as session:
                by_status = ReferralRepository(session).count_by_status(user_id)
        except SQLAlchemyError as e:
            self.logger.error("referral_count_failed", user_id=user_id, error=str(e))
            raise DependencyUnavailableError("Referral store unavailable while counting referrals") from e

        return ReferralCounts.from_status_counts(by_status)

    def count_active_referrals(self, user_id: str) -> int:
        """Live count of active referrals; the source of truth for tiers."""
        return self.get_referral_counts(user_id).active

    def get_referral_stats(self, user_id: str) -> ReferralStats:
        """Get referral statistics for a user.

        Args:
            user_id: User ID

        Returns:
            Stats derived from the user's referral rows
        """
        counts = self.get_referral_counts(user_id)

        try:
            with self.db.session() as session:
                recent = ReferralRepository(session).list_for_referrer(
                    user_id, limit=settings.recent_referrals_limit
                )
        except SQLAlchemyError as e:
            self.logger.error("recent_referrals_read_failed", user_id=user_id, error=str(e))
            raise DependencyUnavailableError("Referral store unavailable while reading referrals") from e

        progress = calculate_progress(counts.active)

        return ReferralStats(
            total_referrals=counts.total,
            active_referrals=counts.active,
            pending_referrals=counts.pending,
            other_referrals=counts.other,
            current_tier=progress.current_tier.name,
            referrals_needed=progress.referrals_needed,
            total_bonus_credits=progress.current_tier.daily_credits_bonus,
            recent_referrals=recent,
        )

    def create_referral(self, referral_code: str, referee_id: str) -> CreatedReferral:
        """Record that a new user signed up with someone's referral code.

        The referral starts as pending. The referee's profile is provisioned
        if it does not exist yet.

        Args:
            referral_code: Code entered at signup
            referee_id: The new user's ID

        Returns:
            Created referral

        Raises:
            InvalidReferralCodeError: If no profile owns the code
            SelfReferralError: If the code is the referee's own
            DuplicateReferralError: If the pair already exists
        """
        code = normalize_referral_code(referral_code)

        try:
            with self.db.session() as session:
                profiles = ProfileRepository(session)
                referrals = ReferralRepository(session)

                referrer = profiles.get_by_code(code)
                if not referrer:
                    raise InvalidReferralCodeError(code)

                if referrer.id == referee_id:
                    raise SelfReferralError()

                if referrals.exists(referrer.id, referee_id):
                    raise DuplicateReferralError()

                if not profiles.get(referee_id):
                    profiles.create(referee_id)

                referral = referrals.create(referrer.id, referee_id, code)
                referrer.total_referrals += 1

                created = CreatedReferral(
                    referral_id=referral.id,
                    referrer_id=referrer.id,
                    referee_id=referee_id,
                    status=referral.status,
                    created_at=referral.created_at,
                )
        except IntegrityError as e:
            # Lost a race against a concurrent signup for the same pair
            self.logger.warning("referral_insert_conflict", referee_id=referee_id, error=str(e))
            raise DuplicateReferralError() from e
        except SQLAlchemyError as e:
            self.logger.error("referral_create_failed", referee_id=referee_id, error=str(e))
            raise DependencyUnavailableError("Referral store unavailable while recording referral") from e

        self.logger.info(
            "referral_tracked",
            referral_id=created.referral_id,
            referrer_id=created.referrer_id,
            referee_id=referee_id,
        )
        return created


# Singleton instance
referral_service = ReferralService()
