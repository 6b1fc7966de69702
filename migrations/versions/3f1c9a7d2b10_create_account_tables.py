"""create_account_tables

Users, verification/reset/refresh token tables, and the gamification
records created on email verification.

Revision ID: 3f1c9a7d2b10
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects.postgresql import JSONB

# revision identifiers, used by Alembic.
revision: str = "3f1c9a7d2b10"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _id_column() -> sa.Column:
    return sa.Column("id", sa.VARCHAR(21), primary_key=True)


def _user_fk(unique: bool) -> sa.Column:
    return sa.Column(
        "user_id",
        sa.VARCHAR(21),
        sa.ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        unique=unique,
        index=True,
    )


def _created_at() -> sa.Column:
    return sa.Column(
        "created_at",
        sa.DateTime(timezone=True),
        server_default=sa.func.now(),
        nullable=False,
    )


def _updated_at() -> sa.Column:
    return sa.Column(
        "updated_at",
        sa.DateTime(timezone=True),
        server_default=sa.func.now(),
        onupdate=sa.func.now(),
        nullable=False,
    )


def upgrade() -> None:
    op.create_table(
        "users",
        _id_column(),
        sa.Column("email", sa.String(255), nullable=False, unique=True, index=True),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("is_verified", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("role", sa.String(20), nullable=False, server_default="user"),
        _created_at(),
        _updated_at(),
    )

    # One outstanding verification token / reset record per user
    op.create_table(
        "verification_tokens",
        _id_column(),
        _user_fk(unique=True),
        sa.Column("token_hash", sa.String(64), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        _created_at(),
    )
    op.create_table(
        "password_resets",
        _id_column(),
        _user_fk(unique=True),
        sa.Column("token_hash", sa.String(64), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("used", sa.Boolean(), nullable=False, server_default=sa.false()),
        _created_at(),
    )

    # Many sessions per user
    op.create_table(
        "refresh_tokens",
        _id_column(),
        _user_fk(unique=False),
        sa.Column("token_hash", sa.String(64), nullable=False, unique=True, index=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        _created_at(),
    )

    op.create_table(
        "avatars",
        _id_column(),
        _user_fk(unique=True),
        sa.Column("appearance", JSONB(), nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column("unlocked_items", JSONB(), nullable=False, server_default=sa.text("'[]'::jsonb")),
        _created_at(),
        _updated_at(),
    )
    op.create_table(
        "progress",
        _id_column(),
        _user_fk(unique=True),
        sa.Column("xp_total", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("level", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("points", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("streak_days", sa.Integer(), nullable=False, server_default="0"),
        _created_at(),
        _updated_at(),
    )
    op.create_table(
        "quiz_responses",
        _id_column(),
        _user_fk(unique=True),
        sa.Column("answers", JSONB(), nullable=False, server_default=sa.text("'{}'::jsonb")),
        _created_at(),
        _updated_at(),
    )

    # Expired-row pruning scans
    op.create_index("refresh_tokens_expires_at_idx", "refresh_tokens", ["expires_at"])


def downgrade() -> None:
    op.drop_index("refresh_tokens_expires_at_idx", table_name="refresh_tokens")
    op.drop_table("quiz_responses")
    op.drop_table("progress")
    op.drop_table("avatars")
    op.drop_table("refresh_tokens")
    op.drop_table("password_resets")
    op.drop_table("verification_tokens")
    op.drop_table("users")
