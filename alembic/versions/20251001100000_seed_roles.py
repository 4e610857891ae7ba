"""Seed the admin and user roles.

Revision ID: 20251001100000
Revises: 20251001000000
Create Date: 2025-10-01

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "20251001100000"
down_revision: Union[str, None] = "20251001000000"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

roles = sa.table(
    "roles",
    sa.column("name", sa.String),
    sa.column("status", sa.String),
    sa.column("description", sa.String),
)


def upgrade() -> None:
    op.bulk_insert(
        roles,
        [
            {"name": "admin", "status": "active", "description": "Administrator role with full access"},
            {"name": "user", "status": "active", "description": "Regular user role"},
        ],
    )


def downgrade() -> None:
    op.execute(roles.delete().where(roles.c.name.in_(["admin", "user"])))
