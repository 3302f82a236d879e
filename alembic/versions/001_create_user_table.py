"""Create user data table

Revision ID: 001
Revises:
Create Date: 2026-10-18

"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op
from app.config import get_settings

revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

TABLE_NAME = get_settings().USER_TABLE_NAME


def upgrade() -> None:
    op.create_table(
        TABLE_NAME,
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column("username", sa.String(length=256), nullable=False),
        sa.Column("email", sa.String(length=256), nullable=False),
        sa.Column("password_hash", sa.String(length=256), nullable=True),
        sa.Column("provider", sa.String(length=64), nullable=True),
        sa.Column("reset_token_hash", sa.String(length=256), nullable=True),
        sa.Column("reset_token_expires_at", sa.DateTime(), nullable=True),
        sa.Column("profile", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("user_id"),
        sa.CheckConstraint(
            "(password_hash IS NULL AND provider IS NOT NULL) OR (password_hash IS NOT NULL AND provider IS NULL)",
            name="ck_user_auth_mode",
        ),
        sa.CheckConstraint(
            "(reset_token_hash IS NULL) = (reset_token_expires_at IS NULL)",
            name="ck_user_reset_pair",
        ),
    )
    op.create_index(op.f(f"ix_{TABLE_NAME}_email"), TABLE_NAME, ["email"], unique=True)


def downgrade() -> None:
    op.drop_index(op.f(f"ix_{TABLE_NAME}_email"), table_name=TABLE_NAME)
    op.drop_table(TABLE_NAME)
