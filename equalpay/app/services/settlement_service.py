"""
services/settlement_service.py — Settlement business logic.

Rules enforced here:
  FORBIDDEN (403)            — caller must be a current group member
  SETTLEMENT_NOT_FOUND (404) — settlement must belong to the group in the URL
  SELF_SETTLEMENT (422)      — payer_id must differ from receiver_id
  PAYER_NOT_MEMBER (422)     — payer must be a current member
  RECEIVER_NOT_MEMBER (422)  — receiver must be a current member
  OVERPAYMENT warning        — amount exceeds the payer's outstanding debt;
                               recorded anyway, pre-payment is valid

Editing or deleting a settlement is limited to its payer, its receiver and
group OWNERs. Every create, edit and delete writes an activity row in the
same transaction.

Layer rules:
  - No Flask imports. Pure Python with a SQLAlchemy session parameter.
  - Commits are the route's responsibility; only flush here.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session

from equalpay.app.errors import AppError, ErrorCode, WarningCode
from equalpay.app.models.activity import ActivityType
from equalpay.app.models.membership import GroupMember, GroupRole
from equalpay.app.models.settlement import Settlement
from equalpay.app.services import balance_service
from equalpay.app.services.activity_service import record_activity
from equalpay.app.services.group_access import (
    get_group_or_404,
    get_member_ids,
    require_member,
)

logger = logging.getLogger(__name__)

# Fields a PATCH may change, in the order they are applied.
_EDITABLE_FIELDS = ("payer_id", "receiver_id", "amount_minor", "currency_code", "settled_at", "note")


def _outstanding_debt(balances: dict[str, int], member_id: str) -> int:
    """How much member_id still owes the group overall (0 if they are owed)."""
    return max(0, -balances.get(member_id, 0))


def _require_payer_is_member(group_id: str, payer_id: str, member_ids: list[str]) -> None:
    if payer_id not in member_ids:
        raise AppError(
            ErrorCode.PAYER_NOT_MEMBER,
            f"User {payer_id} is not a member of group {group_id}.",
            422,
            field="payer_id",
        )


def _require_receiver_is_member(group_id: str, receiver_id: str, member_ids: list[str]) -> None:
    if receiver_id not in member_ids:
        raise AppError(
            ErrorCode.RECEIVER_NOT_MEMBER,
            f"User {receiver_id} is not a member of group {group_id}.",
            422,
            field="receiver_id",
        )


def _get_settlement_or_404(group_id: str, settlement_id: str, session: Session) -> Settlement:
    """A settlement that belongs to another group is reported as not found."""
    settlement = session.get(Settlement, settlement_id)
    if settlement is None or settlement.group_id != group_id:
        raise AppError(
            ErrorCode.SETTLEMENT_NOT_FOUND,
            f"Settlement {settlement_id} does not exist in group {group_id}.",
            404,
        )
    return settlement


def _require_party_or_owner(
        settlement: Settlement,
        caller_id: str,
        membership: GroupMember,
        action: str,
) -> None:
    is_party = caller_id in (settlement.payer_id, settlement.receiver_id)
    if not (is_party or membership.role == GroupRole.OWNER):
        raise AppError(
            ErrorCode.FORBIDDEN,
            f"Only the payer, the receiver or a group owner may {action} this settlement.",
            403,
        )


def _record(
        settlement: Settlement,
        actor_id: str,
        activity_type: ActivityType,
        session: Session,
        **extra,
) -> None:
    record_activity(
        session,
        group_id=settlement.group_id,
        actor_id=actor_id,
        activity_type=activity_type,
        entity_type="settlement",
        entity_id=settlement.id,
        details={
            "amount_minor": settlement.amount_minor,
            "currency_code": settlement.currency_code,
            **extra,
        },
    )


# ── Public service functions ───────────────────────────────────────────────

def create_settlement(
        group_id: str,
        caller_id: str,
        data: dict,
        session: Session,
) -> tuple[Settlement, list[dict]]:
    """
    Records a direct payment from data["payer_id"] to data["receiver_id"].

    Returns:
        (Settlement, warnings) where warnings is a list of warning dicts.
        Example warning: {"code": "OVERPAYMENT", "message": "..."}
    """
    group = get_group_or_404(group_id, session)
    require_member(group_id, caller_id, session)

    payer_id: str = data["payer_id"]
    receiver_id: str = data["receiver_id"]
    amount_minor: int = data["amount_minor"]

    if payer_id == receiver_id:
        raise AppError(
            ErrorCode.SELF_SETTLEMENT,
            "Payer and receiver cannot be the same user.",
            422,
            field="receiver_id",
        )

    member_ids = get_member_ids(group_id, session)
    _require_payer_is_member(group_id, payer_id, member_ids)
    _require_receiver_is_member(group_id, receiver_id, member_ids)

    warnings: list[dict] = []
    balances = balance_service.compute_group_balances(group_id, session, member_ids=member_ids)
    current_debt = _outstanding_debt(balances, payer_id)
    if amount_minor > current_debt:
        warnings.append({
            "code": WarningCode.OVERPAYMENT,
            "message": (
                f"Settlement of {amount_minor} exceeds the outstanding debt of "
                f"{current_debt} owed by user {payer_id}. Recording anyway; "
                f"pre-payment is valid."
            ),
        })

    settlement = Settlement(
        group_id=group_id,
        payer_id=payer_id,
        receiver_id=receiver_id,
        amount_minor=amount_minor,
        currency_code=data.get("currency_code") or group.base_currency_code,
        settled_at=data.get("settled_at") or datetime.now(timezone.utc),
        note=data.get("note"),
    )
    session.add(settlement)
    session.flush()
    _record(settlement, caller_id, ActivityType.SETTLEMENT_CREATED, session)

    logger.info(
        "Settlement %s recorded in group %s: %s -> %s, %d",
        settlement.id,
        group_id,
        payer_id,
        receiver_id,
        amount_minor,
    )
    return settlement, warnings


def list_settlements(
        group_id: str,
        caller_id: str,
        session: Session,
) -> list[Settlement]:
    """Returns all settlements for a group, most recently settled first."""
    get_group_or_404(group_id, session)
    require_member(group_id, caller_id, session)

    stmt = (
        select(Settlement)
        .where(Settlement.group_id == group_id)
        .order_by(Settlement.settled_at.desc(), Settlement.created_at.desc())
    )
    return list(session.execute(stmt).scalars().all())


def update_settlement(
        group_id: str,
        settlement_id: str,
        caller_id: str,
        data: dict,
        session: Session,
) -> Settlement:
    """
    Applies a partial edit to a settlement.

    Only keys present in `data` change; an explicit "note": None clears the
    note. The resulting payer and receiver must differ. A party that is being
    changed must be a current member; an unchanged party may have left.
    """
    get_group_or_404(group_id, session)
    membership = require_member(group_id, caller_id, session)
    settlement = _get_settlement_or_404(group_id, settlement_id, session)
    _require_party_or_owner(settlement, caller_id, membership, "edit")

    payer_id = data.get("payer_id", settlement.payer_id)
    receiver_id = data.get("receiver_id", settlement.receiver_id)
    if payer_id == receiver_id:
        raise AppError(
            ErrorCode.SELF_SETTLEMENT,
            "Payer and receiver cannot be the same user.",
            422,
            field="receiver_id" if "receiver_id" in data else "payer_id",
        )

    if payer_id != settlement.payer_id or receiver_id != settlement.receiver_id:
        member_ids = get_member_ids(group_id, session)
        if payer_id != settlement.payer_id:
            _require_payer_is_member(group_id, payer_id, member_ids)
        if receiver_id != settlement.receiver_id:
            _require_receiver_is_member(group_id, receiver_id, member_ids)

    changed = []
    for field in _EDITABLE_FIELDS:
        if field not in data:
            continue
        value = data[field]
        if getattr(settlement, field) != value:
            setattr(settlement, field, value)
            changed.append(field)

    session.flush()
    _record(settlement, caller_id, ActivityType.SETTLEMENT_UPDATED, session, changed=changed)

    logger.info(
        "Settlement %s updated by %s: %s",
        settlement_id,
        caller_id,
        ", ".join(changed) or "no changes",
    )
    return settlement


def delete_settlement(
        group_id: str,
        settlement_id: str,
        caller_id: str,
        session: Session,
) -> None:
    """
    Permanently removes a settlement.

    Only the payer, the receiver or a group OWNER may delete it. The activity
    row written here keeps its amount after the settlement itself is gone.
    """
    get_group_or_404(group_id, session)
    membership = require_member(group_id, caller_id, session)
    settlement = _get_settlement_or_404(group_id, settlement_id, session)
    _require_party_or_owner(settlement, caller_id, membership, "delete")

    _record(settlement, caller_id, ActivityType.SETTLEMENT_DELETED, session)
    session.delete(settlement)
    session.flush()
    logger.info("Settlement %s deleted by %s", settlement_id, caller_id)
