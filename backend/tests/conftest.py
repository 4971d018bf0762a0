"""
Shared fixtures: a throwaway SQLite store and an authenticated API client.
"""
import os
import tempfile

# Settings are read at import time, so point them at a scratch store first
_TMP_DIR = tempfile.mkdtemp(prefix="tarana-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TMP_DIR, 'test.db')}"
os.environ["ENV"] = "test"
os.environ["SESSION_SECRET_KEY"] = "test-secret-key-that-is-long-enough-for-hs256"
os.environ["CREDIT_PROCEDURE"] = "transaction"

import pytest
from fastapi.testclient import TestClient

from tarana.api.main import create_app
from tarana.auth.session import session_verifier
from tarana.storage.db import db
from tarana.storage.models import Referral, ReferralStatus, UserProfile
from tarana.storage.repo import ProfileRepository


@pytest.fixture(autouse=True)
def clean_db():
    """Start every test with empty tables."""
    db.drop_tables()
    db.create_tables()
    yield


@pytest.fixture
def client():
    with TestClient(create_app()) as test_client:
        yield test_client


@pytest.fixture
def auth_headers():
    """Build bearer headers for a user ID."""
    def _headers(user_id: str) -> dict:
        return {"Authorization": f"Bearer {session_verifier.create_token(user_id)}"}
    return _headers


@pytest.fixture
def make_profile():
    """Insert a profile, overriding any column."""
    def _make(user_id: str, **fields) -> UserProfile:
        with db.session() as session:
            profile = ProfileRepository(session).create(user_id)
            for name, value in fields.items():
                setattr(profile, name, value)
        return profile
    return _make


@pytest.fixture
def make_referrals(make_profile):
    """Give a referrer N referral rows with the given status."""
    counter = {"n": 0}

    def _make(referrer: UserProfile, count: int, status: str = ReferralStatus.ACTIVE) -> None:
        for _ in range(count):
            counter["n"] += 1
            referee = make_profile(f"{referrer.id}-referee-{status}-{counter['n']}")
            with db.session() as session:
                session.add(
                    Referral(
                        referrer_id=referrer.id,
                        referee_id=referee.id,
                        referral_code=referrer.referral_code,
                        status=status,
                    )
                )
    return _make
