"""Credit API v1 endpoints."""

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from tarana.api.schemas import BalanceOut, DiagnosticReportOut, TransactionOut
from tarana.auth.session import Principal, require_auth
from tarana.credits.service import ServiceType, credit_service
from tarana.diagnostics import diagnostics_service
from tarana.errors import ValidationError
from tarana.logging_config import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/credits", tags=["credits"])


# ==================== MODELS ====================


class ConsumeRequest(BaseModel):
    """Request to spend credits on a feature."""
    amount: int = 1
    service: str
    description: str | None = None


# ==================== ENDPOINTS ====================


@router.get("/balance")
async def get_balance(user: Principal = Depends(require_auth)):
    """Get the caller's credit balance for today.

    Provisions a Default-tier profile on first access.
    """
    credit_service.ensure_profile(user.user_id)
    summary = credit_service.get_balance_summary(user.user_id)
    return {"success": True, "balance": BalanceOut.model_validate(summary)}


@router.get("/history")
async def get_history(
    limit: str | None = Query(default=None),
    user: Principal = Depends(require_auth),
):
    """Get the caller's most recent credit transactions, newest first."""
    history = credit_service.get_credit_history(user.user_id, limit)
    return {
        "success": True,
        "history": [TransactionOut.model_validate(tx) for tx in history],
        "count": len(history),
    }


@router.post("/consume")
async def consume_credits(body: ConsumeRequest, user: Principal = Depends(require_auth)):
    """Spend credits on a feature.

    Returns 402 when the balance does not cover the amount.
    """
    if body.service not in ServiceType.ALL:
        raise ValidationError(f"Unknown service '{body.service}'", code="INVALID_SERVICE")

    credit_service.ensure_profile(user.user_id)
    result = credit_service.consume_credits(
        user.user_id,
        body.amount,
        body.service,
        body.description,
    )
    return {
        "success": True,
        "balance": result.new_balance,
        "transactionId": result.transaction_id,
    }


@router.post("/init-profile")
async def init_profile(user: Principal = Depends(require_auth)):
    """Create the caller's profile if it does not exist yet."""
    profile, created = credit_service.ensure_profile(user.user_id)
    if created:
        logger.info("profile_initialized", user_id=user.user_id)

    return {
        "success": True,
        "action": "created" if created else "none",
        "referralCode": profile.referral_code,
    }


@router.get("/diagnostics")
async def get_diagnostics(user: Principal = Depends(require_auth)):
    """Run the credit system health checks for the caller."""
    report = diagnostics_service.run_diagnostics(user.user_id)
    return {"success": True, "report": DiagnosticReportOut.model_validate(report)}
