"""Initial schema — all tables, constraints, and indexes.

Revision: 001_initial_schema
Created:  2026-10-18

Append-only: never edit this file after it has been applied to a database.
Schema changes go in a NEW migration.

Creation order follows FK dependencies:
  users → groups → group_members → expenses → expense_splits → settlements

Amounts are INTEGER minor units throughout. Enum-like columns are stored as
VARCHAR with CHECK constraints so the same schema runs on SQLite in tests.
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision: str = "001_initial_schema"
down_revision: str | None = None
branch_labels: tuple | None = None
depends_on: tuple | None = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id", name="pk_users"),
        sa.UniqueConstraint("email", name="uq_users_email"),
        sa.CheckConstraint("LENGTH(TRIM(name)) > 0", name="ck_users_name_nonempty"),
    )

    op.create_table(
        "groups",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("name", sa.String(80), nullable=False),
        sa.Column("base_currency_code", sa.String(3), nullable=False,
                  server_default="USD"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id", name="pk_groups"),
        sa.CheckConstraint("LENGTH(TRIM(name)) > 0", name="ck_groups_name_nonempty"),
        sa.CheckConstraint("LENGTH(base_currency_code) = 3",
                           name="ck_groups_currency_code_length"),
    )

    op.create_table(
        "group_members",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("group_id", sa.String(36),
                  sa.ForeignKey("groups.id", ondelete="CASCADE",
                                name="fk_group_members_group"),
                  nullable=False),
        sa.Column("user_id", sa.String(36),
                  sa.ForeignKey("users.id", ondelete="RESTRICT",
                                name="fk_group_members_user"),
                  nullable=False),
        sa.Column("role", sa.String(16), nullable=False),
        sa.Column("joined_at", sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id", name="pk_group_members"),
        sa.UniqueConstraint("group_id", "user_id", name="uq_group_members_group_user"),
        sa.CheckConstraint("role IN ('OWNER', 'MEMBER')", name="ck_group_members_role"),
    )
    op.create_index("ix_group_members_group_id", "group_members", ["group_id"])
    op.create_index("ix_group_members_user_id", "group_members", ["user_id"])

    op.create_table(
        "expenses",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("group_id", sa.String(36),
                  sa.ForeignKey("groups.id", ondelete="RESTRICT",
                                name="fk_expenses_group"),
                  nullable=False),
        sa.Column("paid_by_id", sa.String(36),
                  sa.ForeignKey("users.id", ondelete="RESTRICT",
                                name="fk_expenses_payer"),
                  nullable=False),
        sa.Column("amount_minor", sa.Integer(), nullable=False),
        sa.Column("currency_code", sa.String(3), nullable=False),
        sa.Column("split_type", sa.String(16), nullable=False),
        sa.Column("expense_date", sa.Date(), nullable=False),
        sa.Column("note", sa.String(500), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.func.now()),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_expenses"),
        sa.CheckConstraint("amount_minor > 0", name="ck_expenses_amount_positive"),
        sa.CheckConstraint("LENGTH(currency_code) = 3",
                           name="ck_expenses_currency_code_length"),
        sa.CheckConstraint(
            "split_type IN ('EQUAL', 'CUSTOM_AMOUNT', 'PERCENTAGE')",
            name="ck_expenses_split_type",
        ),
    )
    op.create_index("ix_expenses_group_id", "expenses", ["group_id"])
    op.create_index(
        "idx_expenses_active",
        "expenses",
        ["group_id"],
        postgresql_where=sa.text("deleted_at IS NULL"),
    )

    op.create_table(
        "expense_splits",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("expense_id", sa.String(36),
                  sa.ForeignKey("expenses.id", ondelete="CASCADE",
                                name="fk_expense_splits_expense"),
                  nullable=False),
        sa.Column("user_id", sa.String(36),
                  sa.ForeignKey("users.id", ondelete="RESTRICT",
                                name="fk_expense_splits_user"),
                  nullable=False),
        sa.Column("amount_minor", sa.Integer(), nullable=False),
        sa.Column("percentage_bps", sa.Integer(), nullable=True),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
        sa.PrimaryKeyConstraint("id", name="pk_expense_splits"),
        sa.UniqueConstraint("expense_id", "user_id",
                            name="uq_expense_splits_expense_user"),
        sa.CheckConstraint("amount_minor >= 0",
                           name="ck_expense_splits_amount_non_negative"),
        sa.CheckConstraint(
            "percentage_bps IS NULL OR (percentage_bps >= 0 AND percentage_bps <= 10000)",
            name="ck_expense_splits_bps_range",
        ),
    )
    op.create_index("ix_expense_splits_expense_id", "expense_splits", ["expense_id"])

    op.create_table(
        "settlements",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("group_id", sa.String(36),
                  sa.ForeignKey("groups.id", ondelete="RESTRICT",
                                name="fk_settlements_group"),
                  nullable=False),
        sa.Column("payer_id", sa.String(36),
                  sa.ForeignKey("users.id", ondelete="RESTRICT",
                                name="fk_settlements_payer"),
                  nullable=False),
        sa.Column("receiver_id", sa.String(36),
                  sa.ForeignKey("users.id", ondelete="RESTRICT",
                                name="fk_settlements_receiver"),
                  nullable=False),
        sa.Column("amount_minor", sa.Integer(), nullable=False),
        sa.Column("currency_code", sa.String(3), nullable=False),
        sa.Column("settled_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("note", sa.String(500), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id", name="pk_settlements"),
        sa.CheckConstraint("amount_minor > 0", name="ck_settlements_amount_positive"),
        sa.CheckConstraint("payer_id <> receiver_id",
                           name="ck_settlements_no_self_settlement"),
    )
    op.create_index("ix_settlements_group_id", "settlements", ["group_id"])


def downgrade() -> None:
    op.drop_index("ix_settlements_group_id", table_name="settlements")
    op.drop_table("settlements")
    op.drop_index("ix_expense_splits_expense_id", table_name="expense_splits")
    op.drop_table("expense_splits")
    op.drop_index("idx_expenses_active", table_name="expenses")
    op.drop_index("ix_expenses_group_id", table_name="expenses")
    op.drop_table("expenses")
    op.drop_index("ix_group_members_user_id", table_name="group_members")
    op.drop_index("ix_group_members_group_id", table_name="group_members")
    op.drop_table("group_members")
    op.drop_table("groups")
    op.drop_table("users")
