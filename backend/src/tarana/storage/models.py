"""Database models for profiles, referrals and the credit ledger."""

from datetime import datetime, timezone

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def utcnow() -> datetime:
    """Current UTC time as a naive datetime (the store keeps UTC without tzinfo)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


class UserProfile(Base):
    """Referral and credit state for one user.

    ``active_referrals``, ``current_tier`` and ``daily_credits`` are a cache
    derived from the user's referral rows; see ``tarana.referral.reconcile``.
    """

    __tablename__ = "user_profiles"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    referral_code: Mapped[str] = mapped_column(String(10), unique=True, nullable=False, index=True)

    # Tier and allotment
    current_tier: Mapped[str] = mapped_column(String(20), default="Default", nullable=False)
    daily_credits: Mapped[int] = mapped_column(Integer, default=5, nullable=False)
    credits_used_today: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_credit_refresh: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    # Referral counters
    total_referrals: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    active_referrals: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    # Relationships
    referrals_made: Mapped[list["Referral"]] = relationship(
        "Referral", foreign_keys="Referral.referrer_id", back_populates="referrer"
    )
    transactions: Mapped[list["CreditTransaction"]] = relationship(
        "CreditTransaction", back_populates="user"
    )

    @property
    def remaining_credits(self) -> int:
        return self.daily_credits - self.credits_used_today

    def __repr__(self) -> str:
        return f"<UserProfile(id={self.id}, tier='{self.current_tier}', credits={self.daily_credits})>"


class ReferralStatus:
    """Known referral statuses. The column is free text; other values may appear."""

    PENDING = "pending"
    ACTIVE = "active"


class Referral(Base):
    """A referrer -> referee relationship."""

    __tablename__ = "referrals"
    __table_args__ = (UniqueConstraint("referrer_id", "referee_id", name="unique_referral"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    referrer_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("user_profiles.id"), nullable=False, index=True
    )
    referee_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("user_profiles.id"), nullable=False, index=True
    )
    referral_code: Mapped[str] = mapped_column(String(10), nullable=False)
    status: Mapped[str] = mapped_column(String(20), default=ReferralStatus.PENDING, nullable=False, index=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    activated_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    referrer: Mapped["UserProfile"] = relationship(
        "UserProfile", foreign_keys=[referrer_id], back_populates="referrals_made"
    )

    def __repr__(self) -> str:
        return f"<Referral(referrer={self.referrer_id}, referee={self.referee_id}, status='{self.status}')>"


class TransactionType:
    """Ledger row kinds."""

    SPEND = "spend"
    REFRESH = "refresh"
    BONUS = "bonus"
    EARN = "earn"


class CreditTransaction(Base):
    """Append-only credit ledger row."""

    __tablename__ = "credit_transactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("user_profiles.id"), nullable=False, index=True
    )

    # Transaction details
    transaction_type: Mapped[str] = mapped_column(String(20), nullable=False)
    amount: Mapped[int] = mapped_column(Integer, nullable=False)  # Negative = spend
    service: Mapped[str | None] = mapped_column(String(50), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    balance_after: Mapped[int] = mapped_column(Integer, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False, index=True)

    user: Mapped["UserProfile"] = relationship("UserProfile", back_populates="transactions")

    def __repr__(self) -> str:
        return f"<CreditTransaction(id={self.id}, user={self.user_id}, amount={self.amount})>"
