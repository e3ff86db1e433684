"""
routes/expenses.py — Expense route handlers.

Registered at url_prefix=/api/v1 because this blueprint owns both the
group-scoped paths (/groups/:id/expenses) and the expense-id path
(/expenses/:id).

Layer rules:
  - Parse, validate, call ONE service, commit, return envelope.
  - No business logic. No DB queries.

Endpoints:
  POST   /groups/:id/expenses          → 201  create expense (rate limited)
  GET    /groups/:id/expenses          → 200  list active expenses
  POST   /groups/:id/expenses/replace  → 201  swap expenses for CUSTOM_AMOUNT rows (rate limited)
  DELETE /groups/:id/expenses/bulk     → 200  soft-delete several at once
  DELETE /expenses/:id                 → 204  soft-delete
"""

from __future__ import annotations

from flask import Blueprint, g, jsonify, request

from equalpay.app.extensions import db
from equalpay.app.middleware.auth_middleware import require_auth
from equalpay.app.middleware.rate_limit import rate_limited
from equalpay.app.models.expense import Expense
from equalpay.app.schemas.expense_schema import (
    BulkDeleteExpensesSchema,
    CreateExpenseSchema,
    ReplaceExpenseSchema,
)
from equalpay.app.services import expense_service

expenses_bp = Blueprint("expenses", __name__)


def _serialize_expense(expense: Expense) -> dict:
    """Converts an Expense ORM object to a plain dict for JSON output."""
    return {
        "id": expense.id,
        "group_id": expense.group_id,
        "paid_by_id": expense.paid_by_id,
        "amount_minor": expense.amount_minor,
        "currency_code": expense.currency_code,
        "split_type": expense.split_type.value,
        "expense_date": expense.expense_date.isoformat(),
        "note": expense.note,
        "created_at": expense.created_at.isoformat() if expense.created_at else None,
        "splits": [
            {
                "user_id": s.user_id,
                "amount_minor": s.amount_minor,
                "percentage_bps": s.percentage_bps,
            }
            for s in expense.splits
        ],
    }


@expenses_bp.route("/groups/<group_id>/expenses", methods=["POST"])
@require_auth
@rate_limited("expenses:create")
def create_expense(group_id: str):
    """POST /groups/:id/expenses — Record a new expense and build its splits."""
    data = CreateExpenseSchema().load(request.get_json(force=True, silent=True) or {})
    expense = expense_service.create_expense(
        group_id=group_id,
        caller_id=g.user_id,
        data=data,
        session=db.session,
    )
    db.session.commit()
    return jsonify({"data": _serialize_expense(expense), "warnings": []}), 201


@expenses_bp.route("/groups/<group_id>/expenses", methods=["GET"])
@require_auth
def list_expenses(group_id: str):
    """GET /groups/:id/expenses — Active expenses, newest first."""
    expenses = expense_service.list_expenses(
        group_id=group_id,
        caller_id=g.user_id,
        session=db.session,
    )
    return jsonify({
        "data": [_serialize_expense(e) for e in expenses],
        "warnings": [],
    }), 200


@expenses_bp.route("/groups/<group_id>/expenses/replace", methods=["POST"])
@require_auth
@rate_limited("expenses:replace")
def replace_expense(group_id: str):
    """POST /groups/:id/expenses/replace — Edit by replacement, in one transaction."""
    data = ReplaceExpenseSchema().load(request.get_json(force=True, silent=True) or {})
    expenses = expense_service.replace_expense(
        group_id=group_id,
        caller_id=g.user_id,
        data=data,
        session=db.session,
    )
    db.session.commit()
    return jsonify({
        "data": [_serialize_expense(e) for e in expenses],
        "warnings": [],
    }), 201


@expenses_bp.route("/groups/<group_id>/expenses/bulk", methods=["DELETE"])
@require_auth
def bulk_delete_expenses(group_id: str):
    """DELETE /groups/:id/expenses/bulk — Unknown or already deleted ids are skipped."""
    data = BulkDeleteExpensesSchema().load(request.get_json(force=True, silent=True) or {})
    deleted_ids = expense_service.bulk_delete_expenses(
        group_id=group_id,
        caller_id=g.user_id,
        expense_ids=data["expense_ids"],
        session=db.session,
    )
    db.session.commit()
    return jsonify({"data": {"deleted_ids": deleted_ids}, "warnings": []}), 200


@expenses_bp.route("/expenses/<expense_id>", methods=["DELETE"])
@require_auth
def delete_expense(expense_id: str):
    """DELETE /expenses/:id — Soft-delete. Payer or group owner only."""
    expense_service.delete_expense(
        expense_id=expense_id,
        caller_id=g.user_id,
        session=db.session,
    )
    db.session.commit()
    return "", 204
