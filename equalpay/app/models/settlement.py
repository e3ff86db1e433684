"""
models/settlement.py — Settlement table definition.

A settlement is a direct transfer already made outside the split mechanism:
payer gave `amount_minor` to receiver.

Key design points:
  - `amount_minor` is an Integer > 0. Never Float.
  - CHECK(payer_id <> receiver_id) backs the SELF_SETTLEMENT service check.
  - Settlements have no soft-delete; a deleted settlement is gone.
"""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from equalpay.app.extensions import db


class Settlement(db.Model):
    __tablename__ = "settlements"

    __table_args__ = (
        CheckConstraint("amount_minor > 0", name="ck_settlements_amount_positive"),
        CheckConstraint(
            "payer_id <> receiver_id",
            name="ck_settlements_no_self_settlement",
        ),
    )

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )

    group_id: Mapped[str] = mapped_column(
        ForeignKey("groups.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    payer_id: Mapped[str] = mapped_column(
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
    )

    receiver_id: Mapped[str] = mapped_column(
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
    )

    amount_minor: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    currency_code: Mapped[str] = mapped_column(
        String(3),
        nullable=False,
    )

    settled_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    note: Mapped[str | None] = mapped_column(
        String(500),
        nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    # ── Relationships ──────────────────────────────────────────────────────

    group: Mapped["Group"] = relationship(  # noqa: F821
        "Group",
        back_populates="settlements",
    )

    payer: Mapped["User"] = relationship(  # noqa: F821
        "User",
        foreign_keys=[payer_id],
    )

    receiver: Mapped["User"] = relationship(  # noqa: F821
        "User",
        foreign_keys=[receiver_id],
    )

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<Settlement id={self.id!r} "
            f"group_id={self.group_id!r} "
            f"from={self.payer_id!r} "
            f"to={self.receiver_id!r} "
            f"amount_minor={self.amount_minor}>"
        )
