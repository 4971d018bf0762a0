"""
Tests for the credit system diagnostics report.
"""
from datetime import datetime
from unittest.mock import MagicMock

from sqlalchemy.exc import OperationalError

from tarana.diagnostics import (
    CheckName,
    CheckOutcome,
    CheckResult,
    DiagnosticReport,
    ProcedurePresence,
    detect_consume_procedure,
    diagnostics_service,
)
from tarana.storage.db import db


def fake_session(dialect: str) -> MagicMock:
    session = MagicMock()
    session.get_bind.return_value.dialect.name = dialect
    return session


class TestProcedureDetection:
    """Test tri-state detection of the consume procedure."""

    def test_transaction_mode_is_present(self):
        with db.session() as session:
            presence, _ = detect_consume_procedure(session, mode="transaction")
        assert presence == ProcedurePresence.PRESENT

    def test_unknown_on_sqlite(self):
        with db.session() as session:
            presence, detail = detect_consume_procedure(session, mode="stored_procedure")
        assert presence == ProcedurePresence.UNKNOWN
        assert "sqlite" in detail

    def test_present_on_postgres(self):
        session = fake_session("postgresql")
        session.execute.return_value.scalar.return_value = True
        presence, _ = detect_consume_procedure(session, mode="stored_procedure")
        assert presence == ProcedurePresence.PRESENT

    def test_absent_on_postgres(self):
        session = fake_session("postgresql")
        session.execute.return_value.scalar.return_value = False
        presence, _ = detect_consume_procedure(session, mode="stored_procedure")
        assert presence == ProcedurePresence.ABSENT

    def test_lookup_failure_is_unknown_not_absent(self):
        session = fake_session("postgresql")
        session.execute.side_effect = OperationalError("SELECT", {}, Exception("permission denied"))
        presence, detail = detect_consume_procedure(session, mode="stored_procedure")
        assert presence == ProcedurePresence.UNKNOWN
        assert "OperationalError" in detail


TABLE_CHECKS = [
    CheckResult(CheckName.USER_PROFILES_TABLE, CheckOutcome.PASS),
    CheckResult(CheckName.REFERRALS_TABLE, CheckOutcome.PASS),
    CheckResult(CheckName.CREDIT_TRANSACTIONS_TABLE, CheckOutcome.PASS),
]


class TestSummary:
    """Test the summary derived from checks."""

    def test_unknown_procedure_is_not_ready(self):
        report = DiagnosticReport(
            user_id="u",
            generated_at=datetime(2025, 1, 1),
            credit_procedure="stored_procedure",
            checks=TABLE_CHECKS + [
                CheckResult(CheckName.USER_PROFILE, CheckOutcome.PASS),
                CheckResult(CheckName.CONSUME_PROCEDURE, CheckOutcome.UNKNOWN),
            ],
        )
        summary = report.summary
        assert (summary.passed, summary.failed, summary.unknown) == (4, 0, 1)
        assert summary.user_setup
        assert not summary.migration_run
        assert not summary.ready_to_use

    def test_stored_procedure_mode_needs_the_function_for_migration(self):
        report = DiagnosticReport(
            user_id="u",
            generated_at=datetime(2025, 1, 1),
            credit_procedure="stored_procedure",
            checks=TABLE_CHECKS + [CheckResult(CheckName.CONSUME_PROCEDURE, CheckOutcome.FAIL)],
        )
        assert not report.summary.migration_run

    def test_transaction_mode_migration_depends_on_tables_only(self):
        report = DiagnosticReport(
            user_id="u",
            generated_at=datetime(2025, 1, 1),
            credit_procedure="transaction",
            checks=list(TABLE_CHECKS),
        )
        assert report.summary.migration_run

    def test_transaction_mode_missing_table_is_not_migrated(self):
        report = DiagnosticReport(
            user_id="u",
            generated_at=datetime(2025, 1, 1),
            credit_procedure="transaction",
            checks=TABLE_CHECKS[:2] + [
                CheckResult(CheckName.CREDIT_TRANSACTIONS_TABLE, CheckOutcome.FAIL),
                CheckResult(CheckName.CONSUME_PROCEDURE, CheckOutcome.PASS),
            ],
        )
        assert not report.summary.migration_run



class TestRunDiagnostics:
    """Test a full diagnostics run against the test store."""

    def test_healthy_user(self, make_profile):
        make_profile("healthy")

        report = diagnostics_service.run_diagnostics("healthy")

        assert [check.name for check in report.checks] == [
            CheckName.USER_PROFILES_TABLE,
            CheckName.REFERRALS_TABLE,
            CheckName.CREDIT_TRANSACTIONS_TABLE,
            CheckName.USER_PROFILE,
            CheckName.TIER_ALLOTMENT,
            CheckName.CONSUME_PROCEDURE,
        ]
        assert all(check.outcome == CheckOutcome.PASS for check in report.checks)
        assert report.summary.ready_to_use

    def test_user_without_profile(self):
        report = diagnostics_service.run_diagnostics("ghost")

        assert report.outcome_of(CheckName.USER_PROFILE) == CheckOutcome.FAIL
        assert report.outcome_of(CheckName.TIER_ALLOTMENT) == CheckOutcome.UNKNOWN
        assert not report.summary.user_setup
        assert not report.summary.ready_to_use

    def test_allotment_mismatch(self, make_profile):
        make_profile("mismatched", current_tier="Voyager", daily_credits=5)

        report = diagnostics_service.run_diagnostics("mismatched")

        assert report.outcome_of(CheckName.TIER_ALLOTMENT) == CheckOutcome.FAIL

    def test_missing_tables_fail(self):
        db.drop_tables()

        report = diagnostics_service.run_diagnostics("anyone")

        assert report.outcome_of(CheckName.USER_PROFILES_TABLE) == CheckOutcome.FAIL
        assert report.outcome_of(CheckName.USER_PROFILE) == CheckOutcome.UNKNOWN
        assert not report.summary.migration_run

    def test_report_names_the_consume_path(self):
        report = diagnostics_service.run_diagnostics("anyone")

        procedure_check = next(c for c in report.checks if c.name == CheckName.CONSUME_PROCEDURE)
        assert report.credit_procedure == "transaction"
        assert "row-locked transaction" in procedure_check.detail
