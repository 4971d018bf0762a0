"""Credit system diagnostics.

Produces a fixed-shape report: a list of named checks, each with a
pass/fail/unknown outcome and a detail string, plus a summary derived from
them. Store error messages only ever appear in ``detail``, and the report is
only served to the user it describes.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from sqlalchemy import select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from tarana.logging_config import get_logger
from tarana.settings import settings
from tarana.storage.db import Database, db
from tarana.storage.models import CreditTransaction, Referral, UserProfile, utcnow
from tarana.storage.repo import ProfileRepository
from tarana.tiers.catalog import get_tier_config

logger = get_logger(__name__)


class CheckOutcome(str, Enum):
    """Result of a single diagnostic check."""
    PASS = "pass"
    FAIL = "fail"
    UNKNOWN = "unknown"


class ProcedurePresence(str, Enum):
    """What is known about the consume_credits() procedure."""
    PRESENT = "present"
    ABSENT = "absent"
    UNKNOWN = "unknown"


class CheckName:
    USER_PROFILES_TABLE = "user_profiles_table"
    REFERRALS_TABLE = "referrals_table"
    CREDIT_TRANSACTIONS_TABLE = "credit_transactions_table"
    USER_PROFILE = "user_profile"
    CONSUME_PROCEDURE = "consume_procedure"
    TIER_ALLOTMENT = "tier_allotment"


@dataclass(frozen=True)
class CheckResult:
    name: str
    outcome: CheckOutcome
    detail: str = ""


@dataclass(frozen=True)
class DiagnosticSummary:
    passed: int
    failed: int
    unknown: int
    migration_run: bool
    user_setup: bool
    ready_to_use: bool


@dataclass
class DiagnosticReport:
    user_id: str
    generated_at: datetime
    credit_procedure: str
    checks: list[CheckResult] = field(default_factory=list)

    def outcome_of(self, name: str) -> CheckOutcome | None:
        for check in self.checks:
            if check.name == name:
                return check.outcome
        return None

    def _passed(self, *names: str) -> bool:
        return all(self.outcome_of(name) == CheckOutcome.PASS for name in names)

    def _migration_checks(self) -> tuple[str, ...]:
        tables = (
            CheckName.USER_PROFILES_TABLE,
            CheckName.REFERRALS_TABLE,
            CheckName.CREDIT_TRANSACTIONS_TABLE,
        )
        # The consume_credits() function only exists once the migration ran
        if self.credit_procedure == "stored_procedure":
            return tables + (CheckName.CONSUME_PROCEDURE,)
        return tables

    @property
    def summary(self) -> DiagnosticSummary:
        outcomes = [check.outcome for check in self.checks]
        return DiagnosticSummary(
            passed=outcomes.count(CheckOutcome.PASS),
            failed=outcomes.count(CheckOutcome.FAIL),
            unknown=outcomes.count(CheckOutcome.UNKNOWN),
            migration_run=self._passed(*self._migration_checks()),
            user_setup=self._passed(CheckName.USER_PROFILE),
            ready_to_use=self._passed(CheckName.USER_PROFILE, CheckName.CONSUME_PROCEDURE),
        )


PROCEDURE_EXISTS_SQL = text(
    """
    SELECT EXISTS (
        SELECT 1 FROM pg_proc p
        JOIN pg_namespace n ON p.pronamespace = n.oid
        WHERE n.nspname = 'public' AND p.proname = 'consume_credits'
    )
    """
)


def detect_consume_procedure(session: Session, mode: str | None = None) -> tuple[ProcedurePresence, str]:
    """Find out whether the consume procedure is available.

    Never guesses: anything that cannot be confirmed is UNKNOWN.

    Args:
        session: Open database session
        mode: Override for ``settings.credit_procedure``

    Returns:
        (presence, detail) tuple
    """
    mode = mode or settings.credit_procedure

    if mode == "transaction":
        return ProcedurePresence.PRESENT, "Not used: consumption runs as a row-locked transaction"

    dialect = session.get_bind().dialect.name
    if dialect != "postgresql":
        return ProcedurePresence.UNKNOWN, f"Cannot inspect stored procedures on {dialect}"

    try:
        exists = session.execute(PROCEDURE_EXISTS_SQL).scalar()
    except SQLAlchemyError as e:
        return ProcedurePresence.UNKNOWN, f"Procedure lookup failed: {e.__class__.__name__}"

    if exists:
        return ProcedurePresence.PRESENT, "consume_credits() found in schema public"
    return ProcedurePresence.ABSENT, "consume_credits() not found in schema public"


_PRESENCE_OUTCOME = {
    ProcedurePresence.PRESENT: CheckOutcome.PASS,
    ProcedurePresence.ABSENT: CheckOutcome.FAIL,
    ProcedurePresence.UNKNOWN: CheckOutcome.UNKNOWN,
}


class DiagnosticsService:
    """Runs the credit system health checks for one user."""

    def __init__(self, database: Database | None = None):
        self.db = database or db

    def _check_table(self, name: str, model) -> CheckResult:
        try:
            with self.db.session() as session:
                session.execute(select(model.id).limit(1)).all()
        except SQLAlchemyError as e:
            return CheckResult(name, CheckOutcome.FAIL, f"{model.__tablename__} unreachable: {e.__class__.__name__}")
        return CheckResult(name, CheckOutcome.PASS, f"{model.__tablename__} reachable")

    def _check_profile(self, user_id: str) -> tuple[CheckResult, CheckResult]:
        try:
            with self.db.session() as session:
                profile = ProfileRepository(session).get(user_id)
        except SQLAlchemyError as e:
            detail = f"Profile lookup failed: {e.__class__.__name__}"
            return (
                CheckResult(CheckName.USER_PROFILE, CheckOutcome.UNKNOWN, detail),
                CheckResult(CheckName.TIER_ALLOTMENT, CheckOutcome.UNKNOWN, detail),
            )

        if not profile:
            return (
                CheckResult(CheckName.USER_PROFILE, CheckOutcome.FAIL, "No profile for this user"),
                CheckResult(CheckName.TIER_ALLOTMENT, CheckOutcome.UNKNOWN, "No profile to compare"),
            )

        profile_check = CheckResult(
            CheckName.USER_PROFILE,
            CheckOutcome.PASS,
            f"Tier {profile.current_tier}, {profile.credits_used_today}/{profile.daily_credits} credits used",
        )

        tier = get_tier_config(profile.current_tier)
        if tier is None:
            allotment_check = CheckResult(
                CheckName.TIER_ALLOTMENT, CheckOutcome.FAIL, f"Unknown tier '{profile.current_tier}'"
            )
        elif tier.total_daily_credits != profile.daily_credits:
            allotment_check = CheckResult(
                CheckName.TIER_ALLOTMENT,
                CheckOutcome.FAIL,
                f"{tier.name} grants {tier.total_daily_credits} credits, profile has {profile.daily_credits}",
            )
        else:
            allotment_check = CheckResult(
                CheckName.TIER_ALLOTMENT, CheckOutcome.PASS, f"{tier.name} grants {tier.total_daily_credits} credits"
            )
        return profile_check, allotment_check

    def _check_procedure(self) -> CheckResult:
        try:
            with self.db.session() as session:
                presence, detail = detect_consume_procedure(session)
        except SQLAlchemyError as e:
            presence, detail = ProcedurePresence.UNKNOWN, f"Procedure check failed: {e.__class__.__name__}"
        return CheckResult(CheckName.CONSUME_PROCEDURE, _PRESENCE_OUTCOME[presence], detail)

    def run_diagnostics(self, user_id: str) -> DiagnosticReport:
        """Run every check for a user.

        Args:
            user_id: User ID

        Returns:
            Diagnostic report
        """
        report = DiagnosticReport(
            user_id=user_id,
            generated_at=utcnow(),
            credit_procedure=settings.credit_procedure,
        )
        report.checks.append(self._check_table(CheckName.USER_PROFILES_TABLE, UserProfile))
        report.checks.append(self._check_table(CheckName.REFERRALS_TABLE, Referral))
        report.checks.append(self._check_table(CheckName.CREDIT_TRANSACTIONS_TABLE, CreditTransaction))
        report.checks.extend(self._check_profile(user_id))
        report.checks.append(self._check_procedure())

        summary = report.summary
        logger.info(
            "diagnostics_completed",
            user_id=user_id,
            passed=summary.passed,
            failed=summary.failed,
            unknown=summary.unknown,
        )
        return report


# Singleton instance
diagnostics_service = DiagnosticsService()
