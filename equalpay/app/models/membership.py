"""
models/membership.py — GroupMember junction table definition.

A row exists for every CURRENT member of a group. Members who left have no
row but may still appear in historical expenses and settlements; the balance
core reports them anyway.
"""

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import DateTime, Enum, ForeignKey, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from equalpay.app.extensions import db


class GroupRole(str, enum.Enum):
    OWNER  = "OWNER"
    MEMBER = "MEMBER"


class GroupMember(db.Model):
    __tablename__ = "group_members"

    __table_args__ = (
        UniqueConstraint("group_id", "user_id", name="uq_group_members_group_user"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    group_id: Mapped[str] = mapped_column(
        ForeignKey("groups.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    user_id: Mapped[str] = mapped_column(
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    role: Mapped[GroupRole] = mapped_column(
        Enum(GroupRole, name="group_role_enum", native_enum=False, length=16),
        nullable=False,
        default=GroupRole.MEMBER,
    )

    joined_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    # ── Relationships ──────────────────────────────────────────────────────

    user: Mapped["User"] = relationship(  # noqa: F821
        "User",
        back_populates="memberships",
    )

    group: Mapped["Group"] = relationship(  # noqa: F821
        "Group",
        back_populates="members",
    )

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<GroupMember group_id={self.group_id!r} "
            f"user_id={self.user_id!r} role={self.role.value}>"
        )
