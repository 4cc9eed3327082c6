"""initial schema: profiles, teams, templates, briefs, responses

Revision ID: 5a1c0e7d2b91
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '5a1c0e7d2b91'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSONB = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")

brief_status = sa.Enum("draft", "sent", "in_progress", "completed", "archived", name="brief_status")
response_status = sa.Enum("pending", "in_progress", "completed", "expired", name="response_status")


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "user",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("email", sa.String(length=320), nullable=False),
        sa.Column("hashed_password", sa.String(length=1024), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("is_superuser", sa.Boolean(), nullable=False),
        sa.Column("is_verified", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_user_id", "user", ["id"])
    op.create_index("ix_user_email", "user", ["email"], unique=True)

    op.create_table(
        "profiles",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("user.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("email", sa.String(length=320), nullable=False),
        sa.Column("avatar_url", sa.String(), nullable=True),
        sa.Column("notification_preferences", JSONB, nullable=True),
        sa.Column("two_factor_enabled", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("two_factor_secret", sa.String(length=64), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_profiles_user_id", "profiles", ["user_id"], unique=True)

    op.create_table(
        "teams",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("user.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("members", JSONB, nullable=False),
        sa.Column("member_details", JSONB, nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_teams_id", "teams", ["id"])
    op.create_index("ix_teams_user_id", "teams", ["user_id"])

    op.create_table(
        "brief_templates",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("user.id", ondelete="CASCADE"), nullable=True),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("prompt", sa.Text(), nullable=False),
        sa.Column("is_system", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_public", sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
    )
    op.create_index("ix_brief_templates_id", "brief_templates", ["id"])
    op.create_index("ix_brief_templates_user_id", "brief_templates", ["user_id"])

    op.create_table(
        "briefs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("user.id", ondelete="CASCADE"), nullable=False),
        sa.Column("title", sa.String(length=300), nullable=False),
        sa.Column("prompt", sa.Text(), nullable=False),
        sa.Column("recipients", JSONB, nullable=False),
        sa.Column("deadline", sa.DateTime(timezone=True), nullable=True),
        sa.Column("status", brief_status, nullable=False, server_default="draft"),
        sa.Column("response_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_recipients", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("synthesis_result", JSONB, nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_briefs_id", "briefs", ["id"])
    op.create_index("ix_briefs_user_id", "briefs", ["user_id"])
    op.create_index("ix_briefs_status", "briefs", ["status"])
    op.create_index("ix_briefs_created_at", "briefs", ["created_at"])

    op.create_table(
        "responses",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("brief_id", sa.Integer(), sa.ForeignKey("briefs.id", ondelete="CASCADE"), nullable=False),
        sa.Column("recipient_email", sa.String(length=320), nullable=False),
        sa.Column("secure_token", sa.String(length=64), nullable=False),
        sa.Column("conversation", JSONB, nullable=False),
        sa.Column("status", response_status, nullable=False, server_default="pending"),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("brief_id", "recipient_email", name="uq_response_brief_recipient"),
    )
    op.create_index("ix_responses_id", "responses", ["id"])
    op.create_index("ix_responses_brief_id", "responses", ["brief_id"])
    op.create_index("ix_responses_secure_token", "responses", ["secure_token"], unique=True)
    op.create_index("ix_responses_brief_status", "responses", ["brief_id", "status"])


def downgrade() -> None:
    op.drop_table("responses")
    op.drop_table("briefs")
    op.drop_table("brief_templates")
    op.drop_table("teams")
    op.drop_table("profiles")
    op.drop_table("user")
    bind = op.get_bind()
    response_status.drop(bind, checkfirst=True)
    brief_status.drop(bind, checkfirst=True)
