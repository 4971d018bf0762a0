"""Tier drift detection and repair.

A profile caches ``active_referrals``, ``current_tier`` and ``daily_credits``.
The referral rows are the source of truth. ``inspect`` compares the two,
``repair`` rewrites the cache in a single-row update. ``credits_used_today``
is never touched, so a repair racing a credit consumption can only disagree
on the allotment, not on usage.
"""

from dataclasses import dataclass, field

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError

from tarana.errors import DependencyUnavailableError, ProfileNotFoundError
from tarana.logging_config import get_logger
from tarana.referral.service import ReferralCounts, ReferralService, referral_service
from tarana.storage.db import Database, db
from tarana.storage.models import UserProfile, utcnow
from tarana.storage.repo import ProfileRepository
from tarana.tiers.resolver import resolve_tier

logger = get_logger(__name__)

NO_ISSUES_MESSAGE = "No issues detected"


@dataclass(frozen=True)
class TierSnapshot:
    """The cached tier fields of a profile."""

    active_referrals: int
    current_tier: str
    daily_credits: int


@dataclass(frozen=True)
class FieldChange:
    """One cached field that differs from its derived value."""

    field: str
    before: int | str
    after: int | str


@dataclass
class ReconciliationReport:
    """Before/after view of a reconciliation run."""

    user_id: str
    counts: ReferralCounts
    stored: TierSnapshot
    expected: TierSnapshot
    changes: list[FieldChange] = field(default_factory=list)
    repaired: bool = False

    @property
    def has_issues(self) -> bool:
        return bool(self.changes)

    @property
    def message(self) -> str:
        if not self.changes:
            return NO_ISSUES_MESSAGE
        return (
            f"Current: {self.stored.current_tier} ({self.stored.daily_credits} credits, "
            f"{self.stored.active_referrals} active), "
            f"Expected: {self.expected.current_tier} ({self.expected.daily_credits} credits, "
            f"{self.expected.active_referrals} active)"
        )


def diff_snapshots(stored: TierSnapshot, expected: TierSnapshot) -> list[FieldChange]:
    changes = []
    for name in ("active_referrals", "current_tier", "daily_credits"):
        before = getattr(stored, name)
        after = getattr(expected, name)
        if before != after:
            changes.append(FieldChange(field=name, before=before, after=after))
    return changes


class ReconciliationService:
    """Recompute a user's tier from raw referral rows and fix the cache."""

    def __init__(self, database: Database | None = None, referrals: ReferralService | None = None):
        self.db = database or db
        self.referrals = referrals or referral_service
        self.logger = get_logger(__name__)

    def _build_report(self, user_id: str) -> ReconciliationReport:
        # Referral read failures surface as retryable DependencyUnavailableError
        counts = self.referrals.get_referral_counts(user_id)

        try:
            with self.db.session() as session:
                profile = ProfileRepository(session).get(user_id)
        except SQLAlchemyError as e:
            self.logger.error("reconcile_profile_read_failed", user_id=user_id, error=str(e))
            raise DependencyUnavailableError("Profile store unavailable during reconciliation") from e

        if not profile:
            raise ProfileNotFoundError(user_id)

        tier = resolve_tier(counts.active)
        stored = TierSnapshot(
            active_referrals=profile.active_referrals,
            current_tier=profile.current_tier,
            daily_credits=profile.daily_credits,
        )
        expected = TierSnapshot(
            active_referrals=counts.active,
            current_tier=tier.name,
            daily_credits=tier.total_daily_credits,
        )
        return ReconciliationReport(
            user_id=user_id,
            counts=counts,
            stored=stored,
            expected=expected,
            changes=diff_snapshots(stored, expected),
        )

    def inspect(self, user_id: str) -> ReconciliationReport:
        """Report drift without writing anything."""
        report = self._build_report(user_id)
        if report.has_issues:
            self.logger.warning(
                "tier_drift_detected",
                user_id=user_id,
                fields=[change.field for change in report.changes],
            )
        return report

    def repair(self, user_id: str) -> ReconciliationReport:
        """Overwrite drifted tier fields with values derived from referral rows.

        Idempotent: running it again right away reports no issues.

        Args:
            user_id: User ID

        Returns:
            Report listing the fields that changed
        """
        report = self._build_report(user_id)
        if not report.has_issues:
            return report

        try:
            with self.db.session() as session:
                session.execute(
                    update(UserProfile)
                    .where(UserProfile.id == user_id)
                    .values(
                        active_referrals=report.expected.active_referrals,
                        current_tier=report.expected.current_tier,
                        daily_credits=report.expected.daily_credits,
                        updated_at=utcnow(),
                    )
                )
        except SQLAlchemyError as e:
            self.logger.error("tier_repair_failed", user_id=user_id, error=str(e))
            raise DependencyUnavailableError("Profile store unavailable while repairing tier") from e

        report.repaired = True
        self.logger.info(
            "tier_drift_repaired",
            user_id=user_id,
            changes={change.field: [change.before, change.after] for change in report.changes},
        )
        return report


# Singleton instance
reconciliation_service = ReconciliationService()
