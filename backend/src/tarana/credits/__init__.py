"""Daily credit ledger."""

from tarana.credits.procedure import (
    ConsumeProcedure,
    ConsumeResult,
    StoredProcedureConsume,
    TransactionalConsumeProcedure,
    get_consume_procedure,
)
from tarana.credits.service import CreditBalance, CreditService, ServiceType, credit_service

__all__ = [
    "ConsumeProcedure",
    "ConsumeResult",
    "CreditBalance",
    "CreditService",
    "ServiceType",
    "StoredProcedureConsume",
    "TransactionalConsumeProcedure",
    "credit_service",
    "get_consume_procedure",
]
