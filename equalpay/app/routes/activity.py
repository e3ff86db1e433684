"""
routes/activity.py — Group activity feed.

Endpoints (url_prefix=/api/v1/groups):
  GET /groups/:id/activity?limit=N → 200  newest entries first (limit 1..100, default 100)
"""

from __future__ import annotations

from flask import Blueprint, g, jsonify, request

from equalpay.app.extensions import db
from equalpay.app.middleware.auth_middleware import require_auth
from equalpay.app.models.activity import Activity
from equalpay.app.schemas.activity_schema import ActivityQuerySchema
from equalpay.app.services import activity_service

activity_bp = Blueprint("activity", __name__)


def _serialize_activity(a: Activity) -> dict:
    return {
        "id": a.id,
        "type": a.type.value,
        "entity_type": a.entity_type,
        "entity_id": a.entity_id,
        "actor_id": a.actor_id,
        "actor_name": a.actor.name,
        "details": a.details or {},
        "created_at": a.created_at.isoformat(),
    }


@activity_bp.route("/<group_id>/activity", methods=["GET"])
@require_auth
def list_activity(group_id: str):
    """GET /groups/:id/activity — Recent expense and settlement writes."""
    query = ActivityQuerySchema().load(request.args)
    activities = activity_service.list_activity(
        group_id=group_id,
        caller_id=g.user_id,
        session=db.session,
        limit=query["limit"],
    )
    return jsonify({
        "data": [_serialize_activity(a) for a in activities],
        "warnings": [],
    }), 200
