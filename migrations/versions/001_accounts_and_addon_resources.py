"""Create accounts and addon_resources tables

Revision ID: 001
Revises:
Create Date: 2026-10-19

"""
from __future__ import annotations

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "accounts",
        sa.Column("owner_id", sa.Text, primary_key=True),
        sa.Column("aws_access_key_id", sa.Text, nullable=False),
        sa.Column("aws_secret_access_key_token", sa.LargeBinary, nullable=False),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.text("NOW()"),
        ),
    )
    op.create_table(
        "addon_resources",
        sa.Column("provider_resource_id", sa.Text, primary_key=True),
        sa.Column("owner_id", sa.Text, nullable=False),
        sa.Column("heroku_resource_id", sa.Text, nullable=False),
        sa.Column("aws_access_key_id", sa.Text, nullable=False),
        sa.Column("mark_for_deletion", sa.Boolean, nullable=False, server_default="false"),
        sa.Column("deleted_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.text("NOW()"),
        ),
    )
    op.create_index("idx_addon_resources_owner_id", "addon_resources", ["owner_id"])


def downgrade() -> None:
    op.drop_index("idx_addon_resources_owner_id", table_name="addon_resources")
    op.drop_table("addon_resources")
    op.drop_table("accounts")
