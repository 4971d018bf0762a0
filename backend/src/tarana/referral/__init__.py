"""Referral system module for Tarana.

Tier ladder driven by active referrals:
- Each active referral moves the referrer towards the next tier
- Higher tiers raise the daily credit allotment
"""

from tarana.referral.reconcile import ReconciliationReport, ReconciliationService, reconciliation_service
from tarana.referral.service import ReferralCounts, ReferralService, ReferralStats, referral_service

__all__ = [
    "ReconciliationReport",
    "ReconciliationService",
    "ReferralCounts",
    "ReferralService",
    "ReferralStats",
    "reconciliation_service",
    "referral_service",
]
