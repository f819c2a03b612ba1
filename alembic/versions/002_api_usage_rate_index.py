"""Add composite index for the per-minute rate limit query

Revision ID: 002_api_usage_rate_index
Revises: 001_initial
Create Date: 2026-10-16

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = "002_api_usage_rate_index"
down_revision: Union[str, None] = "001_initial"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

INDEX_NAME = "ix_api_usage_user_created"


def upgrade() -> None:
    # check_rate() counts rows by user_id within a trailing created_at window
    indexes = {ix["name"] for ix in sa.inspect(op.get_bind()).get_indexes("api_usage")}
    if INDEX_NAME not in indexes:
        op.create_index(INDEX_NAME, "api_usage", ["user_id", "created_at"], unique=False)


def downgrade() -> None:
    op.drop_index(INDEX_NAME, table_name="api_usage")
