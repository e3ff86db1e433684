"""
models/split.py — ExpenseSplit table definition.

One row per participant of an expense, as produced by split_service.build_splits.

Key design points:
  - `amount_minor` is an Integer >= 0. A zero share is legal (e.g. 0 bps).
  - `percentage_bps` is only populated for PERCENTAGE expenses.
  - `position` keeps the participant order the splits were built in, so the
    remainder distribution stays reproducible when rows are read back.
  - UNIQUE(expense_id, user_id): a user appears at most once per expense.
"""

from __future__ import annotations

from sqlalchemy import CheckConstraint, ForeignKey, Integer, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from equalpay.app.extensions import db


class ExpenseSplit(db.Model):
    __tablename__ = "expense_splits"

    __table_args__ = (
        UniqueConstraint("expense_id", "user_id", name="uq_expense_splits_expense_user"),
        CheckConstraint("amount_minor >= 0", name="ck_expense_splits_amount_non_negative"),
        CheckConstraint(
            "percentage_bps IS NULL OR (percentage_bps >= 0 AND percentage_bps <= 10000)",
            name="ck_expense_splits_bps_range",
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    expense_id: Mapped[str] = mapped_column(
        ForeignKey("expenses.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    user_id: Mapped[str] = mapped_column(
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
    )

    amount_minor: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    percentage_bps: Mapped[int | None] = mapped_column(
        Integer,
        nullable=True,
    )

    position: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )

    expense: Mapped["Expense"] = relationship(  # noqa: F821
        "Expense",
        back_populates="splits",
    )

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<ExpenseSplit expense_id={self.expense_id!r} "
            f"user_id={self.user_id!r} "
            f"amount_minor={self.amount_minor}>"
        )
