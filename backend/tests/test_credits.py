"""
Tests for credit balance, history, consumption and the daily refresh.
"""
import threading
from datetime import timedelta
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from tarana.credits.procedure import (
    ConsumeResult,
    StoredProcedureConsume,
    TransactionalConsumeProcedure,
    get_consume_procedure,
)
from tarana.credits.service import CreditService, credit_service, normalize_history_limit
from tarana.errors import (
    DependencyUnavailableError,
    InsufficientBalanceError,
    ProfileNotFoundError,
    ValidationError,
)
from tarana.storage.db import db
from tarana.storage.models import CreditTransaction, TransactionType, UserProfile, utcnow
from tarana.storage.repo import ProfileRepository, TransactionRepository


def add_ledger_rows(user_id: str, count: int) -> None:
    with db.session() as session:
        repo = TransactionRepository(session)
        for i in range(count):
            repo.add(user_id, TransactionType.BONUS, 1, balance_after=i, description=f"row {i}")


class TestHistoryLimit:
    """Test normalisation of the requested history size."""

    @pytest.mark.parametrize(
        "requested,expected",
        [(None, 20), (0, 20), (-5, 20), ("abc", 20), ("", 20), (1, 1), ("50", 50), (100, 100), (500, 100)],
    )
    def test_normalize(self, requested, expected):
        assert normalize_history_limit(requested) == expected

    def test_history_is_capped(self, make_profile):
        make_profile("heavy-user")
        add_ledger_rows("heavy-user", 120)

        assert len(credit_service.get_credit_history("heavy-user", 500)) == 100
        assert len(credit_service.get_credit_history("heavy-user", 0)) == 20
        assert len(credit_service.get_credit_history("heavy-user")) == 20

    def test_history_newest_first(self, make_profile):
        make_profile("ordered-user")
        add_ledger_rows("ordered-user", 3)

        history = credit_service.get_credit_history("ordered-user")
        assert [tx.description for tx in history] == ["row 2", "row 1", "row 0"]


class TestBalance:
    """Test balance reads and profile provisioning."""

    def test_balance_requires_profile(self):
        with pytest.raises(ProfileNotFoundError):
            credit_service.get_current_balance("ghost")

    def test_ensure_profile_is_idempotent(self):
        profile, created = credit_service.ensure_profile("new-user")
        again, created_again = credit_service.ensure_profile("new-user")

        assert created is True
        assert created_again is False
        assert again.referral_code == profile.referral_code
        assert profile.current_tier == "Default"
        assert profile.daily_credits == 5

    def test_concurrent_first_requests_share_one_profile(self):
        workers = 8
        barrier = threading.Barrier(workers)
        results, errors = [], []

        def provision():
            barrier.wait()
            try:
                results.append(credit_service.ensure_profile("racer"))
            except Exception as e:  # collected for the assertion below
                errors.append(e)

        threads = [threading.Thread(target=provision) for _ in range(workers)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert errors == []
        assert sum(created for _, created in results) == 1
        assert len({profile.referral_code for profile, _ in results}) == 1

    def test_referral_code_exhaustion(self, make_profile, monkeypatch):
        taken = make_profile("first").referral_code
        monkeypatch.setattr("tarana.storage.repo.generate_referral_code", lambda: taken)

        with pytest.raises(DependencyUnavailableError) as exc_info:
            with db.session() as session:
                ProfileRepository(session).create("second")

        assert exc_info.value.code == "REFERRAL_CODE_EXHAUSTED"


    def test_balance_reads_do_not_change_state(self, make_profile):
        make_profile("reader", credits_used_today=2)

        first = credit_service.get_current_balance("reader")
        second = credit_service.get_current_balance("reader")
        assert first == second == 3

    def test_balance_summary(self, make_profile):
        make_profile("summary-user", current_tier="Explorer", daily_credits=6, credits_used_today=1)

        summary = credit_service.get_balance_summary("summary-user")
        assert summary.daily_credits == 6
        assert summary.used_today == 1
        assert summary.remaining_today == 5
        assert summary.tier == "Explorer"
        assert summary.next_refresh > summary.last_refresh


class TestConsume:
    """Test credit consumption through the transactional procedure."""

    def test_consume_then_read(self, make_profile):
        make_profile("spender")
        before = credit_service.get_current_balance("spender")

        result = credit_service.consume_credits("spender", 1, "tarana_gala", "Generated itinerary")

        assert result.success
        assert result.new_balance == before - 1
        assert credit_service.get_current_balance("spender") == before - 1

        latest = credit_service.get_credit_history("spender")[0]
        assert latest.id == result.transaction_id
        assert latest.description == "Generated itinerary"
        assert latest.amount == -1
        assert latest.transaction_type == TransactionType.SPEND
        assert latest.balance_after == before - 1

    def test_default_description(self, make_profile):
        make_profile("quiet-spender")
        credit_service.consume_credits("quiet-spender", 2, "tarana_eats")

        latest = credit_service.get_credit_history("quiet-spender")[0]
        assert latest.description == "Used 2 credit(s) for tarana_eats"

    def test_insufficient_balance_changes_nothing(self, make_profile):
        make_profile("broke", credits_used_today=4)

        with pytest.raises(InsufficientBalanceError) as exc_info:
            credit_service.consume_credits("broke", 3, "tarana_gala")

        assert exc_info.value.status_code == 402
        assert exc_info.value.code == "INSUFFICIENT_CREDITS"
        assert credit_service.get_current_balance("broke") == 1
        assert credit_service.get_credit_history("broke") == []

    def test_exact_balance_can_be_spent(self, make_profile):
        make_profile("exact", credits_used_today=3)
        result = credit_service.consume_credits("exact", 2, "tarana_gala")
        assert result.new_balance == 0

    @pytest.mark.parametrize("amount", [0, -1, 1.5, True])
    def test_invalid_amount(self, make_profile, amount):
        make_profile("validator")
        with pytest.raises(ValidationError):
            credit_service.consume_credits("validator", amount, "tarana_gala")

    def test_missing_profile(self):
        with pytest.raises(ProfileNotFoundError):
            credit_service.consume_credits("ghost", 1, "tarana_gala")

    def test_has_sufficient_credits(self, make_profile):
        make_profile("checker", credits_used_today=4)
        assert credit_service.has_sufficient_credits("checker", 1)
        assert not credit_service.has_sufficient_credits("checker", 2)

    def test_store_failure_is_retryable(self, make_profile):
        make_profile("unlucky")
        procedure = MagicMock()
        procedure.name = "broken"
        procedure.execute.side_effect = OperationalError("SELECT", {}, Exception("connection lost"))
        service = CreditService(procedure=procedure)

        with pytest.raises(DependencyUnavailableError) as exc_info:
            service.consume_credits("unlucky", 1, "tarana_gala")

        assert exc_info.value.retryable
        assert exc_info.value.code == "CONSUME_ERROR"

    def test_rejection_from_procedure(self, make_profile):
        make_profile("rejected")
        procedure = MagicMock()
        procedure.name = "stub"
        procedure.execute.return_value = ConsumeResult(success=False, new_balance=0)
        service = CreditService(procedure=procedure)

        with pytest.raises(InsufficientBalanceError):
            service.consume_credits("rejected", 1, "tarana_gala")


class TestProcedureSelection:
    """Test choosing how consumption reaches the store."""

    def test_modes(self):
        assert isinstance(get_consume_procedure("transaction"), TransactionalConsumeProcedure)
        assert isinstance(get_consume_procedure("stored_procedure"), StoredProcedureConsume)

    def test_unknown_mode(self):
        with pytest.raises(ValueError):
            get_consume_procedure("carrier-pigeon")


def stored_procedure_session(success, new_balance, transaction_id) -> MagicMock:
    session = MagicMock()
    session.execute.return_value.one.return_value = SimpleNamespace(
        success=success, new_balance=new_balance, transaction_id=transaction_id
    )
    return session


class TestStoredProcedureConsume:
    """Test how consume_credits() rows are read back."""

    def test_success(self):
        session = stored_procedure_session(True, 4, 17)

        result = StoredProcedureConsume().execute(session, "sp-user", 1, "tarana_gala", "Itinerary")

        assert result == ConsumeResult(success=True, new_balance=4, transaction_id=17)
        params = session.execute.call_args.args[1]
        assert params == {
            "p_user_id": "sp-user",
            "p_amount": 1,
            "p_service": "tarana_gala",
            "p_description": "Itinerary",
        }

    def test_insufficient_balance(self):
        session = stored_procedure_session(False, 1, None)

        result = StoredProcedureConsume().execute(session, "sp-user", 3, "tarana_gala", "Itinerary")

        assert result.success is False
        assert result.new_balance == 1
        assert result.transaction_id is None

    def test_missing_profile(self):
        session = stored_procedure_session(False, None, None)

        with pytest.raises(ProfileNotFoundError):
            StoredProcedureConsume().execute(session, "ghost", 1, "tarana_gala", "Itinerary")

    def test_missing_profile_is_not_reported_as_insufficient(self):
        database = MagicMock()
        database.session.return_value.__enter__.return_value = stored_procedure_session(False, None, None)
        service = CreditService(database=database, procedure=StoredProcedureConsume())

        with pytest.raises(ProfileNotFoundError) as exc_info:
            service.consume_credits("ghost", 1, "tarana_gala")

        assert exc_info.value.status_code == 404


class TestDailyRefresh:

    """Test the daily usage reset."""

    def test_refresh_resets_stale_profiles_only(self, make_profile):
        yesterday = utcnow() - timedelta(days=1)
        make_profile("stale", credits_used_today=4, last_credit_refresh=yesterday)
        make_profile("fresh", credits_used_today=2)

        assert credit_service.refresh_daily_credits() == 1
        assert credit_service.get_current_balance("stale") == 5
        assert credit_service.get_current_balance("fresh") == 3

        latest = credit_service.get_credit_history("stale")[0]
        assert latest.transaction_type == TransactionType.REFRESH
        assert latest.balance_after == 5

    def test_forced_refresh(self, make_profile):
        make_profile("a", credits_used_today=1)
        make_profile("b", credits_used_today=2)

        assert credit_service.refresh_daily_credits(force=True) == 2
        with db.session() as session:
            used = session.scalars(select(UserProfile.credits_used_today)).all()
        assert used == [0, 0]

    def test_refresh_is_idempotent_within_a_day(self, make_profile):
        make_profile("stale", last_credit_refresh=utcnow() - timedelta(days=2))

        assert credit_service.refresh_daily_credits() == 1
        assert credit_service.refresh_daily_credits() == 0
        with db.session() as session:
            rows = session.scalars(select(CreditTransaction)).all()
        assert len(rows) == 1
