"""create throttle_record and user tables

Revision ID: a1f3c5e7b9d2
Revises:
Create Date: 2026-10-18 10:00:00.000000

This migration creates the two tables the throttling subsystem writes to:
- throttle_record: one counter per (identifier, action) with its fixed window
- user: account identity plus the lockout field group

THROTTLE TABLE:
The composite primary key (identifier, action) is the conflict target of the
ledger's single-statement upsert, so at most one row exists per key.
expires_at is indexed for the sweeper's range delete.

LOCKOUT FIELDS:
- failed_login_attempts: consecutive failures since the last success
- account_locked_until: NULL = not locked
- last_login_at: stamped on each successful login
"""

from alembic import op
import sqlalchemy as sa

from authguard.models import GUID


# revision identifiers, used by Alembic.
revision = "a1f3c5e7b9d2"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "throttle_record",
        sa.Column("identifier", sa.String(length=255), nullable=False),
        sa.Column("action", sa.String(length=50), nullable=False),
        sa.Column("count", sa.Integer(), nullable=False),
        sa.Column("window_start", sa.DateTime(), nullable=False),
        sa.Column("expires_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("identifier", "action"),
    )
    op.create_index(
        "ix_throttle_record_expires_at",
        "throttle_record",
        ["expires_at"],
    )

    op.create_table(
        "user",
        sa.Column("id", GUID(), nullable=False),
        sa.Column("email", sa.String(length=120), nullable=False),
        sa.Column("name", sa.String(length=120), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.Column(
            "failed_login_attempts",
            sa.Integer(),
            nullable=False,
            server_default="0",
        ),
        sa.Column("account_locked_until", sa.DateTime(), nullable=True),
        sa.Column("last_login_at", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email"),
    )
    # Index for efficient queries on locked accounts
    op.create_index(
        "ix_user_account_locked_until",
        "user",
        ["account_locked_until"],
    )


def downgrade():
    op.drop_index("ix_user_account_locked_until", table_name="user")
    op.drop_table("user")
    op.drop_index("ix_throttle_record_expires_at", table_name="throttle_record")
    op.drop_table("throttle_record")
