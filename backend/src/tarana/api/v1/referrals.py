"""Referral API v1 endpoints."""

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from tarana.api.rate_limit import limiter
from tarana.api.schemas import ReconciliationOut, ReferralStatsOut, TierProgressOut
from tarana.auth.session import Principal, require_auth
from tarana.errors import ProfileNotFoundError, ValidationError
from tarana.logging_config import get_logger
from tarana.referral.reconcile import reconciliation_service
from tarana.referral.service import referral_service
from tarana.settings import settings
from tarana.tiers.service import tier_service

logger = get_logger(__name__)

router = APIRouter(prefix="/referrals", tags=["referrals"])


# ==================== MODELS ====================


class ValidateCodeRequest(BaseModel):
    """Request to validate a referral code."""
    code: str | None = None


class TrackReferralRequest(BaseModel):
    """Request to record a signup made with a referral code."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    referral_code: str | None = None


# ==================== ENDPOINTS ====================


@router.post("/validate")
@limiter.limit(settings.validate_rate_limit)
async def validate_referral_code(request: Request, body: ValidateCodeRequest):
    """Check whether a referral code belongs to an existing user.

    Public: used on the signup form before the user has a session.
    """
    if not body.code or not body.code.strip():
        raise ValidationError("Referral code is required", code="MISSING_REFERRAL_CODE")

    valid = referral_service.validate_referral_code(body.code)
    return {"success": True, "valid": valid, "code": body.code}


@router.get("/stats")
async def get_referral_stats(user: Principal = Depends(require_auth)):
    """Get referral statistics and tier progress for the caller.

    Includes:
    - Referral counts by status
    - Current tier and bonus credits
    - The most recent referrals
    """
    stats = referral_service.get_referral_stats(user.user_id)
    progress = tier_service.get_tier_progress(user.user_id)

    try:
        referral_code = referral_service.get_user_referral_code(user.user_id)
    except ProfileNotFoundError:
        referral_code = None

    return {
        "success": True,
        "stats": ReferralStatsOut.model_validate(stats),
        "tierProgress": TierProgressOut.model_validate(progress),
        "referralCode": referral_code,
    }


@router.get("/code")
async def get_referral_code(user: Principal = Depends(require_auth)):
    """Get the caller's referral code."""
    code = referral_service.get_user_referral_code(user.user_id)
    return {"success": True, "referralCode": code}


@router.post("/track")
async def track_referral(body: TrackReferralRequest, user: Principal = Depends(require_auth)):
    """Record that the caller signed up with someone's referral code.

    The referral starts as pending.
    """
    if not body.referral_code or not body.referral_code.strip():
        raise ValidationError("Referral code is required", code="MISSING_REFERRAL_CODE")

    created = referral_service.create_referral(body.referral_code, user.user_id)
    return {"success": True, "referralId": created.referral_id, "status": created.status}


@router.get("/reconcile")
async def inspect_tier(user: Principal = Depends(require_auth)):
    """Compare the caller's stored tier with the one their referrals earn.

    Read only.
    """
    report = reconciliation_service.inspect(user.user_id)
    return {"success": True, "report": ReconciliationOut.model_validate(report)}


@router.post("/reconcile")
async def repair_tier(user: Principal = Depends(require_auth)):
    """Bring the caller's stored tier in line with their active referrals."""
    report = reconciliation_service.repair(user.user_id)
    return {"success": True, "report": ReconciliationOut.model_validate(report)}
