"""
services/group_access.py — Group lookup and membership guards shared by services.

Layer rules:
  - No Flask imports. Receives a SQLAlchemy session as an argument.
  - Non-members receive 403 FORBIDDEN, never 404, so group ids are not probed.
"""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from equalpay.app.errors import AppError, ErrorCode
from equalpay.app.models.group import Group
from equalpay.app.models.membership import GroupMember


def get_group_or_404(group_id: str, session: Session) -> Group:
    """Returns the Group or raises GROUP_NOT_FOUND (404)."""
    group = session.get(Group, group_id)
    if group is None:
        raise AppError(
            ErrorCode.GROUP_NOT_FOUND,
            f"Group {group_id} does not exist.",
            404,
        )
    return group


def get_member_ids(group_id: str, session: Session) -> list[str]:
    """Returns the user ids of all current members, in join order."""
    stmt = (
        select(GroupMember.user_id)
        .where(GroupMember.group_id == group_id)
        .order_by(GroupMember.joined_at, GroupMember.id)
    )
    return list(session.execute(stmt).scalars().all())


def get_membership(group_id: str, user_id: str, session: Session) -> GroupMember | None:
    return session.execute(
        select(GroupMember).where(
            GroupMember.group_id == group_id,
            GroupMember.user_id == user_id,
        )
    ).scalar_one_or_none()


def require_member(group_id: str, user_id: str, session: Session) -> GroupMember:
    """Returns the caller's membership row or raises FORBIDDEN (403)."""
    membership = get_membership(group_id, user_id, session)
    if membership is None:
        raise AppError(
            ErrorCode.FORBIDDEN,
            f"You are not a member of group {group_id}.",
            403,
        )
    return membership
