"""Credit ledger gateway: balances, history and consumption."""

from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from tarana.credits.procedure import ConsumeProcedure, ConsumeResult, get_consume_procedure
from tarana.errors import (
    DependencyUnavailableError,
    InsufficientBalanceError,
    ProfileNotFoundError,
    ValidationError,
)
from tarana.logging_config import get_logger
from tarana.settings import settings
from tarana.storage.db import Database, db
from tarana.storage.models import CreditTransaction, TransactionType, UserProfile, utcnow
from tarana.storage.repo import ProfileRepository, TransactionRepository

logger = get_logger(__name__)

# Insert races on a first request resolve on the next read
PROVISION_ATTEMPTS = 3


class ServiceType:
    """Features that spend credits."""

    TARANA_GALA = "tarana_gala"  # Itinerary generation
    TARANA_EATS = "tarana_eats"  # Meal recommendations

    ALL = (TARANA_GALA, TARANA_EATS)


@dataclass
class CreditBalance:
    """Today's credit position for a user."""

    daily_credits: int
    used_today: int
    remaining_today: int
    tier: str
    last_refresh: datetime
    next_refresh: datetime


def normalize_history_limit(limit: int | str | None) -> int:
    """Clamp a requested history size.

    Missing, unparseable or < 1 values give the default; anything above the
    ceiling is capped.
    """
    try:
        value = int(limit) if limit is not None else 0
    except (TypeError, ValueError):
        value = 0

    if value < 1:
        value = settings.history_default_limit
    return min(value, settings.history_max_limit)


class CreditService:
    """Service for reading and consuming daily credits.

    Operations:
    - Balance and history reads
    - Atomic consumption through the store's consume procedure
    - Profile provisioning
    - The daily usage reset
    """

    def __init__(self, database: Database | None = None, procedure: ConsumeProcedure | None = None):
        """Initialize credit service.

        Args:
            database: Database to use (defaults to the global instance)
            procedure: Consume procedure (defaults to the configured one)
        """
        self.db = database or db
        self.procedure = procedure or get_consume_procedure()
        self.logger = get_logger(__name__)

    def ensure_profile(self, user_id: str) -> tuple[UserProfile, bool]:
        """Get the user's profile, creating a Default-tier one if missing.

        Args:
            user_id: User ID

        Returns:
            (profile, created) tuple
        """
        for attempt in range(1, PROVISION_ATTEMPTS + 1):
            try:
                with self.db.session() as session:
                    repo = ProfileRepository(session)
                    profile = repo.get(user_id)
                    if profile:
                        return profile, False
                    return repo.create(user_id), True
            except IntegrityError as e:
                # Another request inserted this profile (or took the code) first
                self.logger.info("profile_provisioning_conflict", user_id=user_id, attempt=attempt, error=str(e))
            except SQLAlchemyError as e:
                self.logger.error("profile_provisioning_failed", user_id=user_id, error=str(e))
                raise DependencyUnavailableError("Credit store unavailable while provisioning profile") from e

        raise DependencyUnavailableError("Could not provision profile after repeated conflicts")

    def _load_profile(self, user_id: str) -> UserProfile:
        try:
            with self.db.session() as session:
                profile = ProfileRepository(session).get(user_id)
        except SQLAlchemyError as e:
            self.logger.error("balance_read_failed", user_id=user_id, error=str(e))
            raise DependencyUnavailableError("Credit store unavailable while reading balance") from e

        if not profile:
            raise ProfileNotFoundError(user_id)
        return profile

    def get_current_balance(self, user_id: str) -> int:
        """Get credits left today.

        Args:
            user_id: User ID

        Returns:
            ``daily_credits - credits_used_today``

        Raises:
            ProfileNotFoundError: If the user has no profile
        """
        return self._load_profile(user_id).remaining_credits

    def get_balance_summary(self, user_id: str) -> CreditBalance:
        """Get the full balance view shown on the dashboard."""
        profile = self._load_profile(user_id)

        start_of_today = utcnow().replace(hour=0, minute=0, second=0, microsecond=0)
        return CreditBalance(
            daily_credits=profile.daily_credits,
            used_today=profile.credits_used_today,
            remaining_today=profile.remaining_credits,
            tier=profile.current_tier,
            last_refresh=profile.last_credit_refresh,
            next_refresh=start_of_today + timedelta(days=1),
        )

    def get_credit_history(self, user_id: str, limit: int | None = None) -> list[CreditTransaction]:
        """Get the user's most recent ledger rows.

        Args:
            user_id: User ID
            limit: Max records (default 20, capped at 100)

        Returns:
            Transactions, newest first
        """
        limit = normalize_history_limit(limit)
        try:
            with self.db.session() as session:
                return TransactionRepository(session).recent(user_id, limit)
        except SQLAlchemyError as e:
            self.logger.error("history_read_failed", user_id=user_id, error=str(e))
            raise DependencyUnavailableError("Credit store unavailable while reading history") from e

    def consume_credits(
        self,
        user_id: str,
        amount: int,
        service: str,
        description: str | None = None,
    ) -> ConsumeResult:
        """Consume credits through the store's atomic procedure.

        Not idempotent: a retry after a timeout may consume twice, so
        callers should re-read the balance first.

        Args:
            user_id: User ID
            amount: Credits to consume (positive)
            service: Feature label
            description: Optional ledger description

        Returns:
            Result with the new balance and transaction ID

        Raises:
            ValidationError: If amount or service is invalid
            InsufficientBalanceError: If the procedure rejected the request
            DependencyUnavailableError: If the store or procedure failed
        """
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise ValidationError("Amount must be a positive integer")
        if not service:
            raise ValidationError("Service is required")

        description = description or f"Used {amount} credit(s) for {service}"

        try:
            with self.db.session() as session:
                result = self.procedure.execute(session, user_id, amount, service, description)
        except SQLAlchemyError as e:
            self.logger.error(
                "credit_consumption_failed",
                user_id=user_id,
                amount=amount,
                service=service,
                procedure=self.procedure.name,
                error=str(e),
            )
            raise DependencyUnavailableError(
                "Credit consumption procedure failed", code="CONSUME_ERROR"
            ) from e

        if not result.success:
            self.logger.info(
                "credit_consumption_rejected",
                user_id=user_id,
                amount=amount,
                available=result.new_balance,
                service=service,
            )
            raise InsufficientBalanceError(amount, result.new_balance, service)

        self.logger.info(
            "credits_consumed",
            user_id=user_id,
            amount=amount,
            service=service,
            new_balance=result.new_balance,
            transaction_id=result.transaction_id,
        )
        return result

    def has_sufficient_credits(self, user_id: str, required_amount: int) -> bool:
        """Advisory check; the consume procedure has the final say."""
        return self.get_current_balance(user_id) >= required_amount

    def refresh_daily_credits(self, force: bool = False) -> int:
        """Reset daily usage for every profile not yet refreshed today.

        This is the entry point for the daily scheduled job.

        Args:
            force: Refresh all profiles regardless of last refresh

        Returns:
            Number of profiles refreshed
        """
        now = utcnow()
        refreshed = 0

        with self.db.session() as session:
            transactions = TransactionRepository(session)
            for profile in ProfileRepository(session).list_due_for_refresh(force=force):
                profile.credits_used_today = 0
                profile.last_credit_refresh = now
                transactions.add(
                    user_id=profile.id,
                    transaction_type=TransactionType.REFRESH,
                    amount=profile.daily_credits,
                    balance_after=profile.daily_credits,
                    description="Daily credit refresh",
                )
                refreshed += 1

        self.logger.info("daily_credits_refreshed", profiles=refreshed, forced=force)
        return refreshed


# Singleton instance
credit_service = CreditService()
