"""
services/expense_service.py — Expense business logic.

Rules enforced here:
  GROUP_NOT_FOUND (404)          — group must exist
  FORBIDDEN (403)                — caller must be a current group member
  EXPENSE_NOT_FOUND (404)        — replaced expenses must be active and in the group
  PAYER_NOT_MEMBER (422)         — paid_by_id must be a current member
  SPLIT_USER_NOT_MEMBER (422)    — every participant must be a current member
  split sum rules (422)          — delegated to split_service.build_splits

Authorization for delete, bulk delete and replace: only the original payer
or a group OWNER may remove an expense.

Every created or deleted expense gets an activity row in the same
transaction (see activity_service).

Layer rules:
  - No Flask imports. Receives plain values; returns ORM objects or raises AppError.
  - Commits are the route's responsibility; only flush here.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from equalpay.app.errors import AppError, ErrorCode
from equalpay.app.models.activity import ActivityType
from equalpay.app.models.expense import Expense, SplitType
from equalpay.app.models.membership import GroupMember, GroupRole
from equalpay.app.models.split import ExpenseSplit
from equalpay.app.services.activity_service import record_activity
from equalpay.app.services.group_access import (
    get_group_or_404,
    get_member_ids,
    require_member,
)
from equalpay.app.services.split_service import build_splits

logger = logging.getLogger(__name__)


def _get_expense_or_404(expense_id: str, session: Session) -> Expense:
    """Returns the Expense (active or deleted) or raises EXPENSE_NOT_FOUND (404)."""
    expense = session.get(Expense, expense_id)
    if expense is None:
        raise AppError(
            ErrorCode.EXPENSE_NOT_FOUND,
            f"Expense {expense_id} does not exist.",
            404,
        )
    return expense


def _validate_users_are_members(
        paid_by_id: str,
        splits: list[dict],
        group_id: str,
        member_ids: list[str],
) -> None:
    """New expenses may only reference current members; history is another matter."""
    member_set = set(member_ids)
    if paid_by_id not in member_set:
        raise AppError(
            ErrorCode.PAYER_NOT_MEMBER,
            f"User {paid_by_id} is not a member of group {group_id}.",
            422,
            field="paid_by_id",
        )
    for split in splits:
        if split["user_id"] not in member_set:
            raise AppError(
                ErrorCode.SPLIT_USER_NOT_MEMBER,
                f"User {split['user_id']} is not a member of group {group_id}.",
                422,
                field="participants",
            )


def _require_payer_or_owner(
        expense: Expense,
        caller_id: str,
        membership: GroupMember,
) -> None:
    if caller_id == expense.paid_by_id or membership.role == GroupRole.OWNER:
        return
    raise AppError(
        ErrorCode.FORBIDDEN,
        "Only the original payer or a group owner may delete this expense.",
        403,
    )


def _new_expense(
        group_id: str,
        row: dict,
        currency_code: str,
        split_type: SplitType,
        splits: list[dict],
) -> Expense:
    expense = Expense(
        group_id=group_id,
        paid_by_id=row["paid_by_id"],
        amount_minor=row["amount_minor"],
        currency_code=currency_code,
        split_type=split_type,
        expense_date=row.get("expense_date") or date.today(),
        note=row.get("note"),
    )
    expense.splits = [
        ExpenseSplit(
            user_id=split["user_id"],
            amount_minor=split["amount_minor"],
            percentage_bps=split.get("percentage_bps"),
            position=position,
        )
        for position, split in enumerate(splits)
    ]
    return expense


def _log_created(expense: Expense, actor_id: str, session: Session) -> None:
    record_activity(
        session,
        group_id=expense.group_id,
        actor_id=actor_id,
        activity_type=ActivityType.EXPENSE_CREATED,
        entity_type="expense",
        entity_id=expense.id,
        details={
            "amount_minor": expense.amount_minor,
            "currency_code": expense.currency_code,
        },
    )


def _soft_delete(
        expense: Expense,
        actor_id: str,
        deleted_at: datetime,
        session: Session,
        replaced_by: list[str] | None = None,
) -> None:
    expense.deleted_at = deleted_at
    details = {
        "amount_minor": expense.amount_minor,
        "currency_code": expense.currency_code,
    }
    if replaced_by is not None:
        details["replaced_by"] = replaced_by
    record_activity(
        session,
        group_id=expense.group_id,
        actor_id=actor_id,
        activity_type=ActivityType.EXPENSE_DELETED,
        entity_type="expense",
        entity_id=expense.id,
        details=details,
    )


# ── Public service functions ───────────────────────────────────────────────

def create_expense(
        group_id: str,
        caller_id: str,
        data: dict,
        session: Session,
) -> Expense:
    """
    Records a new expense and its split rows.

    Args:
        group_id:  The group this expense belongs to.
        caller_id: The authenticated user creating the expense.
        data:      Validated dict from CreateExpenseSchema.

    The splits are built (and their sum rules checked) before anything is
    written, so a rejected request leaves no rows behind.
    """
    group = get_group_or_404(group_id, session)
    require_member(group_id, caller_id, session)

    currency_code = data.get("currency_code") or group.base_currency_code
    splits = build_splits(
        data["paid_by_id"],
        data["amount_minor"],
        currency_code,
        data["split_type"],
        data["participants"],
    )

    member_ids = get_member_ids(group_id, session)
    _validate_users_are_members(data["paid_by_id"], splits, group_id, member_ids)

    expense = _new_expense(group_id, data, currency_code, data["split_type"], splits)
    session.add(expense)
    session.flush()
    _log_created(expense, caller_id, session)

    logger.info(
        "Expense %s created in group %s: %d %s split %s over %d participants",
        expense.id,
        group_id,
        expense.amount_minor,
        currency_code,
        expense.split_type.value,
        len(splits),
    )
    return expense


def list_expenses(
        group_id: str,
        caller_id: str,
        session: Session,
) -> list[Expense]:
    """Returns active expenses for a group, newest expense_date first."""
    get_group_or_404(group_id, session)
    require_member(group_id, caller_id, session)

    stmt = (
        select(Expense)
        .options(selectinload(Expense.splits))
        .where(
            Expense.group_id == group_id,
            Expense.deleted_at.is_(None),
        )
        .order_by(Expense.expense_date.desc(), Expense.created_at.desc())
    )
    return list(session.execute(stmt).scalars().all())


def replace_expense(
        group_id: str,
        caller_id: str,
        data: dict,
        session: Session,
) -> list[Expense]:
    """
    Swaps one or more expenses for a new set of CUSTOM_AMOUNT rows.

    The replaced expenses are soft-deleted and the new ones created in the
    same flush. Each new row's participant amounts must add up to its
    amount_minor exactly.

    Args:
        data: Validated dict from ReplaceExpenseSchema:
              {"replace_expense_ids": [...], "rows": [...]}

    Raises:
        AppError(EXPENSE_NOT_FOUND, 404) — an id is unknown, deleted, or
                                           belongs to another group.
        AppError(FORBIDDEN, 403)         — caller may not delete one of them.
        AppError(..., 422)               — a row fails split or membership rules.
    """
    group = get_group_or_404(group_id, session)
    membership = require_member(group_id, caller_id, session)

    originals = []
    for expense_id in data["replace_expense_ids"]:
        expense = session.get(Expense, expense_id)
        if expense is None or expense.group_id != group_id or expense.is_deleted:
            raise AppError(
                ErrorCode.EXPENSE_NOT_FOUND,
                f"Expense {expense_id} was not found in group {group_id}. "
                f"Refresh and try editing again.",
                404,
                field="replace_expense_ids",
            )
        _require_payer_or_owner(expense, caller_id, membership)
        originals.append(expense)

    member_ids = get_member_ids(group_id, session)
    replacements = []
    for row in data["rows"]:
        currency_code = row.get("currency_code") or group.base_currency_code
        splits = build_splits(
            row["paid_by_id"],
            row["amount_minor"],
            currency_code,
            SplitType.CUSTOM_AMOUNT,
            row["participants"],
        )
        _validate_users_are_members(row["paid_by_id"], splits, group_id, member_ids)
        replacements.append(
            _new_expense(group_id, row, currency_code, SplitType.CUSTOM_AMOUNT, splits)
        )

    session.add_all(replacements)
    session.flush()

    new_ids = [expense.id for expense in replacements]
    deleted_at = datetime.now(timezone.utc)
    for expense in originals:
        _soft_delete(expense, caller_id, deleted_at, session, replaced_by=new_ids)
    for expense in replacements:
        _log_created(expense, caller_id, session)
    session.flush()

    logger.info(
        "Replaced expenses %s in group %s with %s",
        [expense.id for expense in originals],
        group_id,
        new_ids,
    )
    return replacements


def delete_expense(
        expense_id: str,
        caller_id: str,
        session: Session,
) -> None:
    """
    Soft-deletes an expense by setting deleted_at = NOW().

    Splits are preserved; balance computation skips the expense from now on.
    Re-deleting an already deleted expense is a no-op.

    Raises:
        AppError(EXPENSE_NOT_FOUND, 404)
        AppError(FORBIDDEN, 403) — caller is not a member, or neither the
                                   payer nor a group owner.
    """
    expense = _get_expense_or_404(expense_id, session)
    membership = require_member(expense.group_id, caller_id, session)
    _require_payer_or_owner(expense, caller_id, membership)

    if not expense.is_deleted:
        _soft_delete(expense, caller_id, datetime.now(timezone.utc), session)
        session.flush()
        logger.info("Expense %s deleted by %s", expense_id, caller_id)


def bulk_delete_expenses(
        group_id: str,
        caller_id: str,
        expense_ids: list[str],
        session: Session,
) -> list[str]:
    """
    Soft-deletes every active expense of `group_id` whose id is listed.

    Ids that are unknown, already deleted, or from another group are skipped.
    If the caller may not delete any one of the matches, nothing is deleted.
    Returns the ids actually deleted, in request order.
    """
    get_group_or_404(group_id, session)
    membership = require_member(group_id, caller_id, session)

    stmt = select(Expense).where(
        Expense.group_id == group_id,
        Expense.id.in_(expense_ids),
        Expense.deleted_at.is_(None),
    )
    found = {expense.id: expense for expense in session.execute(stmt).scalars().all()}
    targets = [found[eid] for eid in dict.fromkeys(expense_ids) if eid in found]

    for expense in targets:
        _require_payer_or_owner(expense, caller_id, membership)

    deleted_at = datetime.now(timezone.utc)
    for expense in targets:
        _soft_delete(expense, caller_id, deleted_at, session)
    if targets:
        session.flush()

    logger.info(
        "Bulk delete in group %s by %s: %d of %d expenses deleted",
        group_id,
        caller_id,
        len(targets),
        len(expense_ids),
    )
    return [expense.id for expense in targets]
