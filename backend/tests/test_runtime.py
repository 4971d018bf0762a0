"""
Tests for store URL handling and the log context every event carries.
"""
import pytest

from tarana.logging_config import add_service_context
from tarana.settings import settings
from tarana.storage.db import normalize_database_url


class TestDatabaseUrl:
    """Test normalisation of configured store URLs."""

    @pytest.mark.parametrize(
        "url,expected",
        [
            ("postgres://app:pw@db:5432/tarana", "postgresql://app:pw@db:5432/tarana"),
            ("postgresql://app:pw@db:5432/tarana", "postgresql://app:pw@db:5432/tarana"),
            ("  sqlite:///./tarana.db\n", "sqlite:///./tarana.db"),
        ],
    )
    def test_normalize(self, url, expected):
        assert normalize_database_url(url) == expected


class TestLogContext:
    """Test the service fields added to log events."""

    def test_adds_service_and_env(self):
        event = add_service_context(None, "info", {"event": "credits_consumed"})

        assert event["service"] == settings.app_name
        assert event["env"] == "test"

    def test_keeps_explicit_values(self):
        event = add_service_context(None, "info", {"event": "cli_run", "service": "tarana-cli"})
        assert event["service"] == "tarana-cli"
