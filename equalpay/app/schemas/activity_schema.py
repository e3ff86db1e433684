"""
schemas/activity_schema.py — Query-string schema for the activity feed.
"""

from __future__ import annotations

from marshmallow import EXCLUDE, Schema, fields, validate

from equalpay.app.services.activity_service import DEFAULT_ACTIVITY_LIMIT


class ActivityQuerySchema(Schema):
    """GET /groups/:id/activity?limit=N"""

    class Meta:
        unknown = EXCLUDE

    limit = fields.Int(
        load_default=DEFAULT_ACTIVITY_LIMIT,
        validate=validate.Range(
            min=1,
            max=DEFAULT_ACTIVITY_LIMIT,
            error="limit must be between {min} and {max}.",
        ),
    )
