"""
Tests for the CLI interface.
"""
from datetime import timedelta

from typer.testing import CliRunner

from tarana.cli import app
from tarana.storage.db import db
from tarana.storage.models import UserProfile, utcnow

runner = CliRunner()


class TestCLI:
    """Test CLI commands."""

    def test_init(self):
        result = runner.invoke(app, ["init"])
        assert result.exit_code == 0
        assert "Database initialized" in result.output

    def test_tiers(self):
        result = runner.invoke(app, ["tiers"])
        assert result.exit_code == 0
        assert "Explorer" in result.output
        assert "Voyager" in result.output

    def test_reconcile_dry_run(self, make_profile, make_referrals):
        user = make_profile("drifter", active_referrals=2, current_tier="Explorer", daily_credits=6)
        make_referrals(user, 3)

        result = runner.invoke(app, ["reconcile", "drifter"])

        assert result.exit_code == 0
        assert "--apply" in result.output
        with db.session() as session:
            assert session.get(UserProfile, "drifter").current_tier == "Explorer"

    def test_reconcile_apply(self, make_profile, make_referrals):
        user = make_profile("drifter", active_referrals=2, current_tier="Explorer", daily_credits=6)
        make_referrals(user, 3)

        result = runner.invoke(app, ["reconcile", "drifter", "--apply"])

        assert result.exit_code == 0
        with db.session() as session:
            assert session.get(UserProfile, "drifter").current_tier == "Smart Traveler"

        again = runner.invoke(app, ["reconcile", "drifter", "--apply"])
        assert "No issues detected" in again.output

    def test_reconcile_unknown_user(self):
        result = runner.invoke(app, ["reconcile", "ghost"])
        assert result.exit_code == 1

    def test_refresh_credits(self, make_profile):
        make_profile("stale", credits_used_today=3, last_credit_refresh=utcnow() - timedelta(days=1))

        result = runner.invoke(app, ["refresh-credits"])

        assert result.exit_code == 0
        assert "Refreshed 1 profile(s)" in result.output

    def test_diagnose(self, make_profile):
        make_profile("checked")

        result = runner.invoke(app, ["diagnose", "checked"])

        assert result.exit_code == 0
        assert "Ready to use: True" in result.output

    def test_diagnose_missing_profile_fails(self):
        result = runner.invoke(app, ["diagnose", "ghost"])
        assert result.exit_code == 1
