"""Create referral and credit tables

Revision ID: 001_referral_credits
Revises:
Create Date: 2025-01-29

Adds tables for:
- user_profiles: Tier, daily allotment and referral counters per user
- referrals: Referrer/referee relationships with a status
- credit_transactions: Append-only credit ledger

On PostgreSQL also installs consume_credits(), the atomic
check-and-debit used when CREDIT_PROCEDURE=stored_procedure.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "001_referral_credits"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


CONSUME_CREDITS_FUNCTION = """
CREATE OR REPLACE FUNCTION consume_credits(
    p_user_id VARCHAR,
    p_amount INTEGER,
    p_service VARCHAR,
    p_description TEXT
)
RETURNS TABLE(success BOOLEAN, new_balance INTEGER, transaction_id INTEGER)
LANGUAGE plpgsql
AS $$
DECLARE
    v_daily INTEGER;
    v_used INTEGER;
    v_remaining INTEGER;
    v_tx_id INTEGER;
BEGIN
    SELECT daily_credits, credits_used_today
      INTO v_daily, v_used
      FROM user_profiles
     WHERE id = p_user_id
       FOR UPDATE;

    IF NOT FOUND THEN
        -- NULL balance: no such profile
        RETURN QUERY SELECT FALSE, NULL::INTEGER, NULL::INTEGER;
        RETURN;
    END IF;

    v_remaining := v_daily - v_used;
    IF v_remaining < p_amount THEN
        RETURN QUERY SELECT FALSE, v_remaining, NULL::INTEGER;
        RETURN;
    END IF;

    UPDATE user_profiles
       SET credits_used_today = credits_used_today + p_amount,
           updated_at = (NOW() AT TIME ZONE 'utc')
     WHERE id = p_user_id;

    INSERT INTO credit_transactions
        (user_id, transaction_type, amount, service, description, balance_after, created_at)
    VALUES
        (p_user_id, 'spend', -p_amount, p_service, p_description,
         v_remaining - p_amount, (NOW() AT TIME ZONE 'utc'))
    RETURNING id INTO v_tx_id;

    RETURN QUERY SELECT TRUE, v_remaining - p_amount, v_tx_id;
END;
$$;
"""


def upgrade() -> None:
    """Create referral and credit tables."""

    # User profiles table
    op.create_table(
        "user_profiles",
        sa.Column("id", sa.String(64), nullable=False),
        sa.Column("referral_code", sa.String(10), nullable=False),
        sa.Column("current_tier", sa.String(20), nullable=False, server_default="Default"),
        sa.Column("daily_credits", sa.Integer(), nullable=False, server_default="5"),
        sa.Column("credits_used_today", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_credit_refresh", sa.DateTime(), nullable=False),
        sa.Column("total_referrals", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("active_referrals", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_user_profiles_referral_code", "user_profiles", ["referral_code"], unique=True)

    # Referrals table (tracks relationships)
    op.create_table(
        "referrals",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("referrer_id", sa.String(64), nullable=False),
        sa.Column("referee_id", sa.String(64), nullable=False),
        sa.Column("referral_code", sa.String(10), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("activated_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["referrer_id"], ["user_profiles.id"]),
        sa.ForeignKeyConstraint(["referee_id"], ["user_profiles.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("referrer_id", "referee_id", name="unique_referral"),
    )
    op.create_index("ix_referrals_referrer_id", "referrals", ["referrer_id"], unique=False)
    op.create_index("ix_referrals_referee_id", "referrals", ["referee_id"], unique=False)
    op.create_index("ix_referrals_status", "referrals", ["status"], unique=False)

    # Credit ledger
    op.create_table(
        "credit_transactions",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("transaction_type", sa.String(20), nullable=False),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("service", sa.String(50), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("balance_after", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["user_profiles.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_credit_transactions_user_id", "credit_transactions", ["user_id"], unique=False)
    op.create_index("ix_credit_transactions_created_at", "credit_transactions", ["created_at"], unique=False)

    if op.get_bind().dialect.name == "postgresql":
        op.execute(CONSUME_CREDITS_FUNCTION)


def downgrade() -> None:
    """Drop referral and credit tables."""
    if op.get_bind().dialect.name == "postgresql":
        op.execute("DROP FUNCTION IF EXISTS consume_credits(VARCHAR, INTEGER, VARCHAR, TEXT)")

    op.drop_index("ix_credit_transactions_created_at", table_name="credit_transactions")
    op.drop_index("ix_credit_transactions_user_id", table_name="credit_transactions")
    op.drop_table("credit_transactions")

    op.drop_index("ix_referrals_status", table_name="referrals")
    op.drop_index("ix_referrals_referee_id", table_name="referrals")
    op.drop_index("ix_referrals_referrer_id", table_name="referrals")
    op.drop_table("referrals")

    op.drop_index("ix_user_profiles_referral_code", table_name="user_profiles")
    op.drop_table("user_profiles")
