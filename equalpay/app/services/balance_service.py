"""
services/balance_service.py — Balance computation and debt simplification.

This file is the SINGLE SOURCE OF TRUTH for how balances are computed.
Any change to how balances work is made here; everything else follows.

Two pure functions form the core:
  compute_net_balances()  folds expense splits and settlements into a signed
                          net position per member.
  simplify_payments()     turns net positions into suggested payments using
                          greedy largest-creditor / largest-debtor matching.

Both work on integer minor units only. Neither touches the database, raises,
or depends on anything but its arguments; identical input (including order)
produces identical output.

The rest of the module loads source rows for a group and builds the
GET /groups/:id/balances payload around the two core functions.

Layer rules:
  - No Flask imports. No current_app, request, g, or HTTP knowledge.
  - Returns plain Python dicts and lists.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from equalpay.app.errors import AppError, ErrorCode
from equalpay.app.models.expense import Expense
from equalpay.app.models.settlement import Settlement
from equalpay.app.models.user import User
from equalpay.app.services.group_access import get_group_or_404, get_member_ids

logger = logging.getLogger(__name__)


# ── Core algorithms ────────────────────────────────────────────────────────

def compute_net_balances(
        member_ids: Iterable[str],
        expenses: Iterable[Mapping],
        settlements: Iterable[Mapping],
) -> dict[str, int]:
    """
    Canonical balance computation.

    Args:
        member_ids:  Ids to report even when their balance is zero
                     (normally the current group members).
        expenses:    {"paid_by_id": str, "splits": [{"user_id": str, "amount_minor": int}]}
        settlements: {"payer_id": str, "receiver_id": str, "amount_minor": int}

    Returns {member_id: net_minor}. Positive means the member is owed money,
    negative means they owe money.

    Algorithm:
      1. Every caller-supplied id starts at 0.
      2. For each split: the participant owes their share, the payer fronted it.
      3. For each settlement: the payer's position improves, the receiver's
         remaining credit shrinks.

    Ids that appear only in historical records (members who left the group)
    are inserted when first seen. Caller-supplied ids are never dropped.

    Iteration order of the result is an implementation detail; callers treat
    it as a mapping.
    """
    balances: dict[str, int] = {member_id: 0 for member_id in member_ids}

    for expense in expenses:
        payer_id = expense["paid_by_id"]
        for split in expense["splits"]:
            amount = split["amount_minor"]
            user_id = split["user_id"]
            balances[user_id] = balances.get(user_id, 0) - amount
            balances[payer_id] = balances.get(payer_id, 0) + amount

    for settlement in settlements:
        amount = settlement["amount_minor"]
        payer_id = settlement["payer_id"]
        receiver_id = settlement["receiver_id"]
        balances[payer_id] = balances.get(payer_id, 0) + amount
        balances[receiver_id] = balances.get(receiver_id, 0) - amount

    return balances


def simplify_payments(
        balances: Mapping[str, int] | Iterable[tuple[str, int]],
) -> list[dict]:
    """
    Greedy debt simplification.

    Matches the largest remaining debtor with the largest remaining creditor
    until one side runs out. With k non-zero balances this emits at most k-1
    payments. It is not the global minimum edge count in every configuration,
    and its exact output is part of the contract.

    Args:
        balances: {member_id: net_minor} from compute_net_balances(), or an
                  iterable of (member_id, net_minor) pairs.

    Returns:
        [{"from_member_id": str, "to_member_id": str, "amount_minor": int}, ...]
        An empty list means every balance is already zero.

    Ties in magnitude keep their input order (sorted() is stable, including
    with reverse=True).

    If the balances do not sum to zero the loop stops when either side is
    exhausted; the unmatched residual is logged and left out of the result.
    """
    pairs = list(balances.items() if isinstance(balances, Mapping) else balances)

    creditors = sorted(
        [[member_id, net] for member_id, net in pairs if net > 0],
        key=lambda entry: entry[1],
        reverse=True,
    )
    debtors = sorted(
        [[member_id, -net] for member_id, net in pairs if net < 0],
        key=lambda entry: entry[1],
        reverse=True,
    )

    payments: list[dict] = []
    i = j = 0

    while i < len(creditors) and j < len(debtors):
        creditor = creditors[i]
        debtor = debtors[j]

        amount = min(creditor[1], debtor[1])
        payments.append({
            "from_member_id": debtor[0],
            "to_member_id": creditor[0],
            "amount_minor": amount,
        })

        creditor[1] -= amount
        debtor[1] -= amount

        if creditor[1] == 0:
            i += 1
        if debtor[1] == 0:
            j += 1

    unmatched_credit = sum(entry[1] for entry in creditors[i:])
    unmatched_debt = sum(entry[1] for entry in debtors[j:])
    if unmatched_credit or unmatched_debt:
        logger.warning(
            "simplify_payments received balances that do not sum to zero; "
            "unmatched credit=%d, unmatched debt=%d left without payments",
            unmatched_credit,
            unmatched_debt,
        )

    return payments


# ── Data access helpers ────────────────────────────────────────────────────
# The ONLY sanctioned way to read expense/split data for balance purposes.
# Soft-deleted expenses are filtered here and nowhere else.

def get_active_expenses(group_id: str, session: Session) -> list[Expense]:
    """Returns expenses WHERE deleted_at IS NULL, with their splits loaded."""
    stmt = (
        select(Expense)
        .options(selectinload(Expense.splits))
        .where(
            Expense.group_id == group_id,
            Expense.deleted_at.is_(None),
        )
        .order_by(Expense.created_at, Expense.id)
    )
    return list(session.execute(stmt).scalars().all())


def get_settlements(group_id: str, session: Session) -> list[Settlement]:
    """Returns all settlements for a group. Settlements have no soft-delete."""
    stmt = (
        select(Settlement)
        .where(Settlement.group_id == group_id)
        .order_by(Settlement.created_at, Settlement.id)
    )
    return list(session.execute(stmt).scalars().all())


def get_user_names(user_ids: Iterable[str], session: Session) -> dict[str, str]:
    """Returns {user_id: display name} for the users that still exist."""
    ids = list(user_ids)
    if not ids:
        return {}
    stmt = select(User.id, User.name).where(User.id.in_(ids))
    return {row.id: row.name for row in session.execute(stmt).all()}


def expense_for_balance(expense: Expense) -> dict:
    """Projects an Expense row onto the shape compute_net_balances() reads."""
    return {
        "paid_by_id": expense.paid_by_id,
        "splits": [
            {"user_id": split.user_id, "amount_minor": split.amount_minor}
            for split in expense.splits
        ],
    }


def settlement_for_balance(settlement: Settlement) -> dict:
    """Projects a Settlement row onto the shape compute_net_balances() reads."""
    return {
        "payer_id": settlement.payer_id,
        "receiver_id": settlement.receiver_id,
        "amount_minor": settlement.amount_minor,
    }


def _log_split_total_mismatches(expenses: list[Expense]) -> None:
    # Historical rows are not re-validated; a mismatch only skews "total
    # spent" figures, so it is reported rather than rejected.
    for expense in expenses:
        split_total = sum(split.amount_minor for split in expense.splits)
        if split_total != expense.amount_minor:
            logger.warning(
                "Expense %s in group %s has splits summing to %d, expected %d",
                expense.id,
                expense.group_id,
                split_total,
                expense.amount_minor,
            )


def compute_group_balances(
        group_id: str,
        session: Session,
        member_ids: list[str] | None = None,
) -> dict[str, int]:
    """
    Loads a group's active expenses and settlements and runs the aggregator.

    Returns {member_id: net_minor} for every current member plus any former
    member who still has history in the group.
    """
    if member_ids is None:
        member_ids = get_member_ids(group_id, session)

    expenses = get_active_expenses(group_id, session)
    _log_split_total_mismatches(expenses)
    settlements = get_settlements(group_id, session)

    return compute_net_balances(
        member_ids,
        [expense_for_balance(e) for e in expenses],
        [settlement_for_balance(s) for s in settlements],
    )


def get_balance_response(
        group_id: str,
        caller_id: str,
        session: Session,
) -> dict:
    """
    Builds the full payload for GET /groups/:id/balances.

    Verifies the caller is a member, computes balances and suggested
    payments, attaches display names (falling back to the raw id for users
    that no longer exist), and asserts zero-sum closure.

    Raises:
        AppError(GROUP_NOT_FOUND, 404)  -- group does not exist.
        AppError(FORBIDDEN, 403)        -- caller is not a group member.
        AppError(INTERNAL_ERROR, 500)   -- balances do not sum to zero.
    """
    group = get_group_or_404(group_id, session)

    member_ids = get_member_ids(group_id, session)
    if caller_id not in member_ids:
        raise AppError(
            ErrorCode.FORBIDDEN,
            f"You are not a member of group {group_id}.",
            403,
        )

    balances = compute_group_balances(group_id, session, member_ids=member_ids)

    # Every split and settlement moves the same amount in both directions,
    # so a non-zero sum means the stored data is corrupt.
    balance_sum = sum(balances.values())
    if balance_sum != 0:
        logger.error(
            "Balance integrity check failed for group %s: sum was %d",
            group_id,
            balance_sum,
        )
        raise AppError(
            ErrorCode.INTERNAL_ERROR,
            f"Balance integrity check failed: sum was {balance_sum} (expected 0). "
            f"Group {group_id} has inconsistent financial data.",
            500,
        )

    payments = simplify_payments(balances)
    names = get_user_names(balances.keys(), session)

    return {
        "group_id": group_id,
        "currency_code": group.base_currency_code,
        "balances": [
            {
                "member_id": member_id,
                "name": names.get(member_id, member_id),
                "net_minor": net_minor,
            }
            for member_id, net_minor in balances.items()
        ],
        "payments": [
            {
                "from_member_id": p["from_member_id"],
                "from_name": names.get(p["from_member_id"], p["from_member_id"]),
                "to_member_id": p["to_member_id"],
                "to_name": names.get(p["to_member_id"], p["to_member_id"]),
                "amount_minor": p["amount_minor"],
            }
            for p in payments
        ],
        "balance_sum": balance_sum,
    }
