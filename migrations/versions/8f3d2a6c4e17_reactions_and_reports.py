"""reactions and reports

Revision ID: 8f3d2a6c4e17
Revises: 5c1e7a9b2d40
Create Date: 2026-10-16 14:03:27.904116

"""
from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "8f3d2a6c4e17"
down_revision: Union[str, Sequence[str], None] = "5c1e7a9b2d40"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create the reaction and report tables."""
    op.create_table(
        "reaction",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("vent_id", sa.String(length=64), nullable=False),
        sa.Column("type", sa.String(length=16), nullable=False),
        sa.Column("anonymous_handle", sa.String(length=64), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("vent_id", "type", "anonymous_handle"),
    )
    op.create_index("ix_reaction_vent_id", "reaction", ["vent_id"])

    op.create_table(
        "report",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("vent_id", sa.String(length=64), nullable=False),
        sa.Column("reason", sa.String(length=32), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("anonymous_handle", sa.String(length=64), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_report_vent_id", "report", ["vent_id"])


def downgrade() -> None:
    """Drop the reaction and report tables."""
    op.drop_index("ix_report_vent_id", table_name="report")
    op.drop_table("report")
    op.drop_index("ix_reaction_vent_id", table_name="reaction")
    op.drop_table("reaction")
