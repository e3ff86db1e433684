"""
routes/settlements.py — Settlement route handlers.

Layer rules:
  - Parse, validate, call ONE service, commit, return envelope.
  - No business logic. No DB queries.

create_settlement returns (Settlement, warnings[]). An OVERPAYMENT warning
is included in the envelope; the status is still 201.

Endpoints (url_prefix=/api/v1/groups):
  POST   /groups/:id/settlements       → 201  record a payment (rate limited)
  GET    /groups/:id/settlements       → 200  list settlements
  PATCH  /groups/:id/settlements/:sid  → 200  edit a settlement (rate limited)
  DELETE /groups/:id/settlements/:sid  → 204  remove a settlement
"""

from __future__ import annotations

from flask import Blueprint, g, jsonify, request

from equalpay.app.extensions import db
from equalpay.app.middleware.auth_middleware import require_auth
from equalpay.app.middleware.rate_limit import rate_limited
from equalpay.app.models.settlement import Settlement
from equalpay.app.schemas.settlement_schema import (
    CreateSettlementSchema,
    UpdateSettlementSchema,
)
from equalpay.app.services import settlement_service

settlements_bp = Blueprint("settlements", __name__)


def _serialize_settlement(s: Settlement) -> dict:
    """Converts a Settlement ORM object to a plain dict for JSON output."""
    return {
        "id": s.id,
        "group_id": s.group_id,
        "payer_id": s.payer_id,
        "receiver_id": s.receiver_id,
        "amount_minor": s.amount_minor,
        "currency_code": s.currency_code,
        "settled_at": s.settled_at.isoformat(),
        "note": s.note,
    }


@settlements_bp.route("/<group_id>/settlements", methods=["POST"])
@require_auth
@rate_limited("settlements:create")
def create_settlement(group_id: str):
    """POST /groups/:id/settlements — Record a direct payment between members."""
    data = CreateSettlementSchema().load(request.get_json(force=True, silent=True) or {})
    settlement, warnings = settlement_service.create_settlement(
        group_id=group_id,
        caller_id=g.user_id,
        data=data,
        session=db.session,
    )
    db.session.commit()
    return jsonify({"data": _serialize_settlement(settlement), "warnings": warnings}), 201


@settlements_bp.route("/<group_id>/settlements", methods=["GET"])
@require_auth
def list_settlements(group_id: str):
    """GET /groups/:id/settlements — List all settlements for a group."""
    settlements = settlement_service.list_settlements(
        group_id=group_id,
        caller_id=g.user_id,
        session=db.session,
    )
    return jsonify({
        "data": [_serialize_settlement(s) for s in settlements],
        "warnings": [],
    }), 200


@settlements_bp.route("/<group_id>/settlements/<settlement_id>", methods=["PATCH"])
@require_auth
@rate_limited("settlements:update")
def update_settlement(group_id: str, settlement_id: str):
    """PATCH /groups/:id/settlements/:sid — Partial edit. Payer, receiver or owner only."""
    data = UpdateSettlementSchema().load(request.get_json(force=True, silent=True) or {})
    settlement = settlement_service.update_settlement(
        group_id=group_id,
        settlement_id=settlement_id,
        caller_id=g.user_id,
        data=data,
        session=db.session,
    )
    db.session.commit()
    return jsonify({"data": _serialize_settlement(settlement), "warnings": []}), 200


@settlements_bp.route("/<group_id>/settlements/<settlement_id>", methods=["DELETE"])
@require_auth
def delete_settlement(group_id: str, settlement_id: str):
    """DELETE /groups/:id/settlements/:sid — Payer, receiver or owner only."""
    settlement_service.delete_settlement(
        group_id=group_id,
        settlement_id=settlement_id,
        caller_id=g.user_id,
        session=db.session,
    )
    db.session.commit()
    return "", 204
