"""
services/split_service.py — Builds per-participant split rows for a new expense.

Every split type guarantees sum(result amounts) == amount_minor exactly:
  EQUAL          floor division; the remainder is handed out one minor unit
                 at a time to participants in input order.
  CUSTOM_AMOUNT  participant amounts are taken as given and must sum to the
                 total (CUSTOM_SPLIT_SUM_MISMATCH otherwise).
  PERCENTAGE     basis points must sum to 10000 (PERCENTAGE_SPLIT_SUM_MISMATCH
                 otherwise); every participant but the last is floored and the
                 last absorbs the rounding remainder.

Integers only. No Flask imports, no database access.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence

from equalpay.app.errors import AppError, ErrorCode
from equalpay.app.models.expense import SplitType

FULL_BPS = 10_000


# ── Remainder helpers ──────────────────────────────────────────────────────

def distribute_evenly(amount_minor: int, count: int) -> list[int]:
    """
    Splits amount_minor into `count` shares that differ by at most one unit.
    The first (amount_minor % count) shares carry the extra unit.

    >>> distribute_evenly(100, 3)
    [34, 33, 33]
    """
    base, remainder = divmod(amount_minor, count)
    return [base + 1 if index < remainder else base for index in range(count)]


def allocate_by_bps(amount_minor: int, bps: Sequence[int]) -> list[int]:
    """
    Converts basis-point weights to minor units. Every entry but the last is
    floor(amount * bps / 10000); the last gets whatever is left.
    """
    shares: list[int] = []
    assigned = 0
    last_index = len(bps) - 1
    for index, weight in enumerate(bps):
        if index == last_index:
            value = amount_minor - assigned
        else:
            value = amount_minor * weight // FULL_BPS
        assigned += value
        shares.append(value)
    return shares


def _format_bps(total_bps: int) -> str:
    return f"{total_bps // 100}.{total_bps % 100:02d}%"


# ── Public API ─────────────────────────────────────────────────────────────

def build_splits(
        paid_by_id: str,
        amount_minor: int,
        currency_code: str,
        split_type: SplitType,
        participants: Sequence[Mapping],
) -> list[dict]:
    """
    Returns [{"user_id", "amount_minor"}] rows (plus "percentage_bps" for
    PERCENTAGE) in participant order.

    paid_by_id and currency_code travel with the request; they do not affect
    how the amount is divided.

    Raises:
        AppError(NO_PARTICIPANTS, 422)
        AppError(CUSTOM_SPLIT_SUM_MISMATCH, 422)
        AppError(PERCENTAGE_SPLIT_SUM_MISMATCH, 422)
    """
    if not participants:
        raise AppError(
            ErrorCode.NO_PARTICIPANTS,
            "An expense needs at least one participant.",
            422,
            field="participants",
        )

    if split_type == SplitType.EQUAL:
        shares = distribute_evenly(amount_minor, len(participants))
        return [
            {"user_id": participant["user_id"], "amount_minor": share}
            for participant, share in zip(participants, shares)
        ]

    if split_type == SplitType.CUSTOM_AMOUNT:
        amounts = [participant.get("amount_minor") or 0 for participant in participants]
        total = sum(amounts)
        if total != amount_minor:
            raise AppError(
                ErrorCode.CUSTOM_SPLIT_SUM_MISMATCH,
                f"Custom split amounts must sum to total amount "
                f"(got {total}, expected {amount_minor}).",
                422,
                field="participants",
            )
        return [
            {"user_id": participant["user_id"], "amount_minor": amount}
            for participant, amount in zip(participants, amounts)
        ]

    bps = [participant.get("percentage_bps") or 0 for participant in participants]
    total_bps = sum(bps)
    if total_bps != FULL_BPS:
        raise AppError(
            ErrorCode.PERCENTAGE_SPLIT_SUM_MISMATCH,
            f"Percentage splits must sum to 100% (got {_format_bps(total_bps)}).",
            422,
            field="participants",
        )

    shares = allocate_by_bps(amount_minor, bps)
    return [
        {
            "user_id": participant["user_id"],
            "amount_minor": share,
            "percentage_bps": weight,
        }
        for participant, share, weight in zip(participants, shares, bps)
    ]
