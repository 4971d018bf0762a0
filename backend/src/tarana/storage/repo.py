"""Repository layer for data access."""

import secrets

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from tarana.errors import DependencyUnavailableError
from tarana.logging_config import get_logger
from tarana.settings import settings
from tarana.storage.models import CreditTransaction, Referral, ReferralStatus, UserProfile, utcnow
from tarana.tiers.catalog import get_default_tier

logger = get_logger(__name__)

# Exclude confusing characters: 0, O, I, l, 1
REFERRAL_CODE_ALPHABET = "ABCDEFGHJKMNPQRSTUVWXYZ23456789"
MAX_CODE_ATTEMPTS = 10


def generate_referral_code(length: int | None = None) -> str:
    """Generate a readable referral code.

    Format: ABC12XYZ (8 chars by default)
    """
    length = length or settings.referral_code_length
    return "".join(secrets.choice(REFERRAL_CODE_ALPHABET) for _ in range(length))


def normalize_referral_code(code: str) -> str:
    return code.strip().upper()


class ProfileRepository:
    """Repository for UserProfile entities."""

    def __init__(self, session: Session):
        self.session = session

    def get(self, user_id: str, for_update: bool = False) -> UserProfile | None:
        """Get profile by user ID, optionally locking the row."""
        stmt = select(UserProfile).where(UserProfile.id == user_id)
        if for_update:
            stmt = stmt.with_for_update()
        return self.session.scalars(stmt).first()

    def get_by_code(self, code: str) -> UserProfile | None:
        """Get the profile that owns a referral code."""
        return self.session.scalars(
            select(UserProfile).where(UserProfile.referral_code == normalize_referral_code(code))
        ).first()

    def code_exists(self, code: str) -> bool:
        return self.session.scalar(
            select(func.count(UserProfile.id)).where(UserProfile.referral_code == code)
        ) > 0

    def create(self, user_id: str) -> UserProfile:
        """Create a Default-tier profile with a fresh referral code.

        Args:
            user_id: Principal ID from the session

        Returns:
            Created profile

        Raises:
            DependencyUnavailableError: If no unused referral code was found
        """
        for _ in range(MAX_CODE_ATTEMPTS):
            code = generate_referral_code()
            if not self.code_exists(code):
                break
        else:
            logger.error("referral_code_exhausted", user_id=user_id, attempts=MAX_CODE_ATTEMPTS)
            raise DependencyUnavailableError(
                "Could not allocate a unique referral code", code="REFERRAL_CODE_EXHAUSTED"
            )

        default_tier = get_default_tier()
        profile = UserProfile(
            id=user_id,
            referral_code=code,
            current_tier=default_tier.name,
            daily_credits=default_tier.total_daily_credits,
            credits_used_today=0,
            total_referrals=0,
            active_referrals=0,
        )
        self.session.add(profile)
        self.session.flush()
        logger.info("profile_created", user_id=user_id, referral_code=code)
        return profile

    def list_due_for_refresh(self, force: bool = False) -> list[UserProfile]:
        """Profiles whose daily usage has not been reset today."""
        stmt = select(UserProfile)
        if not force:
            start_of_day = utcnow().replace(hour=0, minute=0, second=0, microsecond=0)
            stmt = stmt.where(UserProfile.last_credit_refresh < start_of_day)
        return list(self.session.scalars(stmt.order_by(UserProfile.id)))


class ReferralRepository:
    """Repository for Referral entities."""

    def __init__(self, session: Session):
        self.session = session

    def list_for_referrer(self, referrer_id: str, limit: int | None = None) -> list[Referral]:
        """Referrals made by a user, newest first."""
        stmt = (
            select(Referral)
            .where(Referral.referrer_id == referrer_id)
            .order_by(Referral.created_at.desc(), Referral.id.desc())
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        return list(self.session.scalars(stmt))

    def count_by_status(self, referrer_id: str) -> dict[str, int]:
        """Count a user's referrals grouped by raw status value."""
        rows = self.session.execute(
            select(Referral.status, func.count(Referral.id))
            .where(Referral.referrer_id == referrer_id)
            .group_by(Referral.status)
        ).all()
        return {status: count for status, count in rows}

    def count_active(self, referrer_id: str) -> int:
        return self.session.scalar(
            select(func.count(Referral.id)).where(
                Referral.referrer_id == referrer_id,
                Referral.status == ReferralStatus.ACTIVE,
            )
        ) or 0

    def exists(self, referrer_id: str, referee_id: str) -> bool:
        return self.session.scalar(
            select(func.count(Referral.id)).where(
                Referral.referrer_id == referrer_id,
                Referral.referee_id == referee_id,
            )
        ) > 0

    def create(self, referrer_id: str, referee_id: str, code: str) -> Referral:
        """Record a new pending referral."""
        referral = Referral(
            referrer_id=referrer_id,
            referee_id=referee_id,
            referral_code=code,
            status=ReferralStatus.PENDING,
        )
        self.session.add(referral)
        self.session.flush()
        logger.info("referral_created", referral_id=referral.id, referrer_id=referrer_id, referee_id=referee_id)
        return referral


class TransactionRepository:
    """Repository for CreditTransaction entities."""

    def __init__(self, session: Session):
        self.session = session

    def add(
        self,
        user_id: str,
        transaction_type: str,
        amount: int,
        balance_after: int,
        service: str | None = None,
        description: str | None = None,
    ) -> CreditTransaction:
        """Append a ledger row."""
        transaction = CreditTransaction(
            user_id=user_id,
            transaction_type=transaction_type,
            amount=amount,
            service=service,
            description=description,
            balance_after=balance_after,
        )
        self.session.add(transaction)
        self.session.flush()
        return transaction

    def recent(self, user_id: str, limit: int) -> list[CreditTransaction]:
        """Most recent ledger rows for a user, newest first."""
        return list(
            self.session.scalars(
                select(CreditTransaction)
                .where(CreditTransaction.user_id == user_id)
                .order_by(CreditTransaction.created_at.desc(), CreditTransaction.id.desc())
                .limit(limit)
            )
        )
