"""
models/activity.py — Group activity log.

One row per expense or settlement write, added in the same transaction as
the write itself. entity_id is deliberately not a foreign key: a deleted
settlement keeps its log entries.
"""

from __future__ import annotations

import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, DateTime, Enum, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from equalpay.app.extensions import db


class ActivityType(str, enum.Enum):
    EXPENSE_CREATED    = "EXPENSE_CREATED"
    EXPENSE_DELETED    = "EXPENSE_DELETED"
    SETTLEMENT_CREATED = "SETTLEMENT_CREATED"
    SETTLEMENT_UPDATED = "SETTLEMENT_UPDATED"
    SETTLEMENT_DELETED = "SETTLEMENT_DELETED"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Activity(db.Model):
    __tablename__ = "activity"

    __table_args__ = (
        Index("ix_activity_group_created", "group_id", "created_at"),
    )

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )

    group_id: Mapped[str] = mapped_column(
        ForeignKey("groups.id", ondelete="RESTRICT"),
        nullable=False,
    )

    actor_id: Mapped[str] = mapped_column(
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
    )

    type: Mapped[ActivityType] = mapped_column(
        Enum(ActivityType, name="activity_type_enum", native_enum=False, length=32),
        nullable=False,
    )

    entity_type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
    )

    entity_id: Mapped[str] = mapped_column(
        String(36),
        nullable=False,
    )

    # Small JSON object, e.g. {"amount_minor": 5000, "currency_code": "USD"}.
    details: Mapped[dict | None] = mapped_column(
        JSON,
        nullable=True,
    )

    # Microsecond precision; the activity feed orders by this column.
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
    )

    # ── Relationships ──────────────────────────────────────────────────────

    actor: Mapped["User"] = relationship("User")  # noqa: F821

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<Activity id={self.id!r} "
            f"group_id={self.group_id!r} "
            f"type={self.type.value!r} "
            f"entity_id={self.entity_id!r}>"
        )
