"""
routes/balances.py — Balance route handler.

Layer rules:
  - Call ONE service, return envelope. No business logic, no DB queries.

Endpoint (url_prefix=/api/v1/groups):
  GET /groups/:id/balances → 200  net balances + suggested payments
"""

from __future__ import annotations

from flask import Blueprint, g, jsonify

from equalpay.app.extensions import db
from equalpay.app.middleware.auth_middleware import require_auth
from equalpay.app.services import balance_service

balances_bp = Blueprint("balances", __name__)


@balances_bp.route("/<group_id>/balances", methods=["GET"])
@require_auth
def get_balances(group_id: str):
    """
    GET /groups/:id/balances

    Balances are recomputed from the stored expenses and settlements on every
    request. Membership and the zero-sum check are enforced in the service.
    """
    result = balance_service.get_balance_response(
        group_id=group_id,
        caller_id=g.user_id,
        session=db.session,
    )
    return jsonify({"data": result, "warnings": []}), 200
