"""Persistence layer: models and session management."""

from tarana.storage.db import Database, db
from tarana.storage.models import (
    Base,
    CreditTransaction,
    Referral,
    ReferralStatus,
    TransactionType,
    UserProfile,
)

__all__ = [
    "Base",
    "CreditTransaction",
    "Database",
    "Referral",
    "ReferralStatus",
    "TransactionType",
    "UserProfile",
    "db",
]
