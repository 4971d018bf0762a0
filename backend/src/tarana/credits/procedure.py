"""Atomic credit consumption procedures.

Consuming credits must check the balance, increment ``credits_used_today``
and append a ledger row as one indivisible step. That step belongs to the
store: either the ``consume_credits()`` PostgreSQL function created by the
migrations, or a single row-locked transaction for stores without it.
Callers treat the procedure's answer as authoritative.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass

from sqlalchemy import text
from sqlalchemy.orm import Session

from tarana.errors import ProfileNotFoundError
from tarana.logging_config import get_logger
from tarana.settings import settings
from tarana.storage.models import TransactionType
from tarana.storage.repo import ProfileRepository, TransactionRepository

logger = get_logger(__name__)


@dataclass
class ConsumeResult:
    """Outcome reported by a consume procedure."""

    success: bool
    new_balance: int
    transaction_id: int | None = None


class ConsumeProcedure(ABC):
    """A store-side operation that consumes credits atomically."""

    name: str = "consume_procedure"

    @abstractmethod
    def execute(
        self,
        session: Session,
        user_id: str,
        amount: int,
        service: str,
        description: str,
    ) -> ConsumeResult:
        """Consume credits inside the given session's transaction.

        On insufficient balance nothing is written and ``success`` is False.
        """


class TransactionalConsumeProcedure(ConsumeProcedure):
    """Runs check, increment and ledger insert under a row lock."""

    name = "transaction"

    def execute(
        self,
        session: Session,
        user_id: str,
        amount: int,
        service: str,
        description: str,
    ) -> ConsumeResult:
        # SELECT FOR UPDATE serialises concurrent consumers of the same profile
        profile = ProfileRepository(session).get(user_id, for_update=True)
        if not profile:
            raise ProfileNotFoundError(user_id)

        available = profile.remaining_credits
        if available < amount:
            return ConsumeResult(success=False, new_balance=available)

        profile.credits_used_today += amount
        new_balance = profile.remaining_credits

        transaction = TransactionRepository(session).add(
            user_id=user_id,
            transaction_type=TransactionType.SPEND,
            amount=-amount,
            balance_after=new_balance,
            service=service,
            description=description,
        )

        return ConsumeResult(success=True, new_balance=new_balance, transaction_id=transaction.id)


class StoredProcedureConsume(ConsumeProcedure):
    """Calls the consume_credits() function in the store."""

    name = "stored_procedure"

    CALL = text(
        "SELECT success, new_balance, transaction_id "
        "FROM consume_credits(:p_user_id, :p_amount, :p_service, :p_description)"
    )

    def execute(
        self,
        session: Session,
        user_id: str,
        amount: int,
        service: str,
        description: str,
    ) -> ConsumeResult:
        row = session.execute(
            self.CALL,
            {
                "p_user_id": user_id,
                "p_amount": amount,
                "p_service": service,
                "p_description": description,
            },
        ).one()

        # The function reports a missing profile with a NULL balance
        if row.new_balance is None:
            raise ProfileNotFoundError(user_id)

        return ConsumeResult(
            success=bool(row.success),
            new_balance=int(row.new_balance),
            transaction_id=row.transaction_id,
        )


def get_consume_procedure(mode: str | None = None) -> ConsumeProcedure:
    """Build the consume procedure configured in settings.

    Args:
        mode: Override for ``settings.credit_procedure``

    Returns:
        Consume procedure instance
    """
    mode = mode or settings.credit_procedure
    if mode == "stored_procedure":
        return StoredProcedureConsume()
    if mode == "transaction":
        return TransactionalConsumeProcedure()
    raise ValueError(f"Unknown credit procedure: {mode}")
