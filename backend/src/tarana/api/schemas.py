"""Pydantic models for API responses.

Built from the service dataclasses and ORM rows via ``from_attributes``;
serialised with camelCase keys.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from tarana.diagnostics import CheckOutcome


class ApiModel(BaseModel):
    """Base for API models: camelCase on the wire, readable from objects."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# ==================== TIERS ====================


class TierOut(ApiModel):
    id: str
    name: str
    referrals_required: int
    daily_credits_bonus: int
    total_daily_credits: int
    benefits: list[str]


class TierProgressOut(ApiModel):
    current_referrals: int
    current_tier: TierOut
    next_tier: TierOut | None
    referrals_needed: int
    progress_percentage: float


# ==================== CREDITS ====================


class BalanceOut(ApiModel):
    daily_credits: int
    used_today: int
    remaining_today: int
    tier: str
    last_refresh: datetime
    next_refresh: datetime


class TransactionOut(ApiModel):
    id: int
    transaction_type: str
    amount: int
    service: str | None
    description: str | None
    balance_after: int
    created_at: datetime


# ==================== REFERRALS ====================


class ReferralOut(ApiModel):
    id: int
    referrer_id: str
    referee_id: str
    referral_code: str
    status: str
    created_at: datetime
    activated_at: datetime | None


class ReferralStatsOut(ApiModel):
    total_referrals: int
    active_referrals: int
    pending_referrals: int
    other_referrals: int
    current_tier: str
    referrals_needed: int
    total_bonus_credits: int
    recent_referrals: list[ReferralOut]


class ReferralCountsOut(ApiModel):
    total: int
    active: int
    pending: int
    other: int


class TierSnapshotOut(ApiModel):
    active_referrals: int
    current_tier: str
    daily_credits: int


class FieldChangeOut(ApiModel):
    field: str
    before: int | str
    after: int | str


class ReconciliationOut(ApiModel):
    user_id: str
    counts: ReferralCountsOut
    stored: TierSnapshotOut
    expected: TierSnapshotOut
    changes: list[FieldChangeOut]
    repaired: bool
    has_issues: bool
    message: str


# ==================== DIAGNOSTICS ====================


class CheckOut(ApiModel):
    name: str
    outcome: CheckOutcome
    detail: str


class DiagnosticSummaryOut(ApiModel):
    passed: int
    failed: int
    unknown: int
    migration_run: bool
    user_setup: bool
    ready_to_use: bool


class DiagnosticReportOut(ApiModel):
    user_id: str
    generated_at: datetime
    credit_procedure: str
    checks: list[CheckOut]
    summary: DiagnosticSummaryOut
