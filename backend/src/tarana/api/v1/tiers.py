"""Tier API v1 endpoints."""

from fastapi import APIRouter, Depends

from tarana.api.schemas import TierOut, TierProgressOut
from tarana.auth.session import Principal, require_auth
from tarana.tiers.service import tier_service

router = APIRouter(prefix="/tiers", tags=["tiers"])


@router.get("/all")
async def get_all_tiers():
    """List every tier in ascending order of referrals required."""
    return {
        "success": True,
        "tiers": [TierOut.model_validate(tier) for tier in tier_service.get_all_tiers()],
    }


@router.get("/current")
async def get_current_tier(user: Principal = Depends(require_auth)):
    """Get the caller's tier, resolved from their active referrals."""
    progress = tier_service.get_tier_progress(user.user_id)
    return {
        "success": True,
        "currentTier": progress.current_tier.name,
        "config": TierOut.model_validate(progress.current_tier),
        "progress": TierProgressOut.model_validate(progress),
    }
