"""Activity log table.

Revision: 002_add_activity_log
Revises:  001_initial_schema
Created:  2026-10-18

entity_id has no foreign key: log entries outlive deleted settlements.
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision: str = "002_add_activity_log"
down_revision: str | None = "001_initial_schema"
branch_labels: tuple | None = None
depends_on: tuple | None = None

_ACTIVITY_TYPES = (
    "EXPENSE_CREATED",
    "EXPENSE_DELETED",
    "SETTLEMENT_CREATED",
    "SETTLEMENT_UPDATED",
    "SETTLEMENT_DELETED",
)


def upgrade() -> None:
    op.create_table(
        "activity",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("group_id", sa.String(36),
                  sa.ForeignKey("groups.id", ondelete="RESTRICT",
                                name="fk_activity_group"),
                  nullable=False),
        sa.Column("actor_id", sa.String(36),
                  sa.ForeignKey("users.id", ondelete="RESTRICT",
                                name="fk_activity_actor"),
                  nullable=False),
        sa.Column("type", sa.String(32), nullable=False),
        sa.Column("entity_type", sa.String(20), nullable=False),
        sa.Column("entity_id", sa.String(36), nullable=False),
        sa.Column("details", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_activity"),
        sa.CheckConstraint(
            "type IN (" + ", ".join(f"'{t}'" for t in _ACTIVITY_TYPES) + ")",
            name="ck_activity_type",
        ),
    )
    op.create_index("ix_activity_group_created", "activity", ["group_id", "created_at"])


def downgrade() -> None:
    op.drop_index("ix_activity_group_created", table_name="activity")
    op.drop_table("activity")
