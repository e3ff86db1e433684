"""
services/activity_service.py — Group activity log.

record_activity only adds the row to the session. The expense or settlement
service that calls it flushes, and the route commits both together, so a
write and its log entry land in one transaction or not at all.
"""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from equalpay.app.models.activity import Activity, ActivityType
from equalpay.app.services.group_access import get_group_or_404, require_member

logger = logging.getLogger(__name__)

DEFAULT_ACTIVITY_LIMIT = 100


def record_activity(
        session: Session,
        group_id: str,
        actor_id: str,
        activity_type: ActivityType,
        entity_type: str,
        entity_id: str,
        details: dict | None = None,
) -> Activity:
    activity = Activity(
        group_id=group_id,
        actor_id=actor_id,
        type=activity_type,
        entity_type=entity_type,
        entity_id=entity_id,
        details=details,
    )
    session.add(activity)
    logger.debug(
        "Activity %s on %s %s in group %s by %s",
        activity_type.value,
        entity_type,
        entity_id,
        group_id,
        actor_id,
    )
    return activity


def list_activity(
        group_id: str,
        caller_id: str,
        session: Session,
        limit: int = DEFAULT_ACTIVITY_LIMIT,
) -> list[Activity]:
    """Most recent entries first, at most `limit` of them. Members only."""
    get_group_or_404(group_id, session)
    require_member(group_id, caller_id, session)

    stmt = (
        select(Activity)
        .options(selectinload(Activity.actor))
        .where(Activity.group_id == group_id)
        .order_by(Activity.created_at.desc(), Activity.id.desc())
        .limit(limit)
    )
    return list(session.execute(stmt).scalars().all())
