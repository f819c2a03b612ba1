"""Initial schema: subscriptions, api_usage, forms, responses.

Tables may already exist (app startup runs Base.metadata.create_all, or they were
created from the Supabase SQL editor), so each table is only created if missing.

Revision ID: 001_initial
Revises:
Create Date: 2026-10-16

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    existing = set(sa.inspect(op.get_bind()).get_table_names())

    if "subscriptions" not in existing:
        op.create_table(
            "subscriptions",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("user_id", sa.String(), nullable=False),
            sa.Column("plan_type", sa.String(), nullable=False, server_default="free"),
            sa.Column("api_calls_used", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("api_calls_limit", sa.Integer(), nullable=False, server_default="50"),
            sa.Column("current_period_end", sa.DateTime(), nullable=False),
            sa.Column("created_at", sa.DateTime(), nullable=True),
            sa.Column("updated_at", sa.DateTime(), nullable=True),
            sa.CheckConstraint("api_calls_used >= 0", name="ck_subscriptions_used_non_negative"),
            sa.CheckConstraint("api_calls_limit > 0", name="ck_subscriptions_limit_positive"),
        )
        op.create_index("ix_subscriptions_user_id", "subscriptions", ["user_id"], unique=True)

    if "api_usage" not in existing:
        op.create_table(
            "api_usage",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("user_id", sa.String(), nullable=False),
            sa.Column("endpoint", sa.String(), nullable=False, server_default="transcribe"),
            sa.Column("cost_cents", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("metadata", sa.JSON(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False),
        )
        op.create_index("ix_api_usage_user_id", "api_usage", ["user_id"])
        op.create_index("ix_api_usage_created_at", "api_usage", ["created_at"])

    if "forms" not in existing:
        op.create_table(
            "forms",
            sa.Column("id", sa.String(36), primary_key=True),
            sa.Column("user_id", sa.String(), nullable=False),
            sa.Column("title", sa.String(), nullable=False),
            sa.Column("description", sa.Text(), nullable=False, server_default=""),
            sa.Column("fields", sa.JSON(), nullable=False),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("created_at", sa.DateTime(), nullable=False),
            sa.Column("updated_at", sa.DateTime(), nullable=True),
        )
        op.create_index("ix_forms_user_id", "forms", ["user_id"])
        op.create_index("ix_forms_created_at", "forms", ["created_at"])

    if "responses" not in existing:
        op.create_table(
            "responses",
            sa.Column("id", sa.String(36), primary_key=True),
            sa.Column("form_id", sa.String(36), sa.ForeignKey("forms.id", ondelete="CASCADE"), nullable=False),
            sa.Column("response_data", sa.JSON(), nullable=False),
            sa.Column("ip_address", sa.String(), nullable=True),
            sa.Column("user_agent", sa.String(), nullable=True),
            sa.Column("submitted_at", sa.DateTime(), nullable=False),
        )
        op.create_index("ix_responses_form_id", "responses", ["form_id"])
        op.create_index("ix_responses_submitted_at", "responses", ["submitted_at"])


def downgrade() -> None:
    op.drop_table("responses")
    op.drop_table("forms")
    op.drop_table("api_usage")
    op.drop_table("subscriptions")
