"""
schemas/expense_schema.py — Marshmallow schemas for expense create, replace and bulk delete.

Validation responsibility:
  - This file:
      - Field types and ranges (strict integers for minor units and bps)
      - split_type enum                 (INVALID_SPLIT_TYPE, 400)
      - currency code shape             (INVALID_CURRENCY_CODE, 400)
      - at least one participant
      - DUPLICATE_PARTICIPANT           (400) — request shape rule
  - services/split_service.py:
      - CUSTOM_SPLIT_SUM_MISMATCH     (422) — amounts vs total
      - PERCENTAGE_SPLIT_SUM_MISMATCH (422) — bps vs 10000
  - services/expense_service.py:
      - PAYER_NOT_MEMBER / SPLIT_USER_NOT_MEMBER (422) — need DB lookups

IMPORTANT: Inherits from marshmallow.Schema directly so unit tests can load
           schemas without a Flask application context.
"""

from __future__ import annotations

from marshmallow import (
    Schema,
    ValidationError,
    fields,
    post_load,
    validate,
    validates_schema,
)

from equalpay.app.errors import ErrorCode
from equalpay.app.models.expense import SplitType


# Three ASCII letters; normalised to upper case after load.
_currency_code_validator = validate.Regexp(
    r"^[A-Za-z]{3}$",
    error=ErrorCode.INVALID_CURRENCY_CODE,
)

# Upper bound of the INTEGER amount columns (int4 on Postgres).
MAX_AMOUNT_MINOR = 2**31 - 1


class ParticipantSchema(Schema):
    """
    One entry of the `participants` array.

    amount_minor is read for CUSTOM_AMOUNT, percentage_bps for PERCENTAGE.
    Both are ignored for EQUAL. A missing value counts as zero when the split
    is built, which then surfaces as a sum mismatch.
    """

    user_id = fields.Str(
        required=True,
        validate=validate.Length(min=1, max=36),
    )

    amount_minor = fields.Int(
        load_default=None,
        allow_none=True,
        strict=True,   # reject 12.5 and "12"
        validate=validate.Range(
            min=0,
            max=MAX_AMOUNT_MINOR,
            error="amount_minor must be between 0 and {max}.",
        ),
    )

    percentage_bps = fields.Int(
        load_default=None,
        allow_none=True,
        strict=True,
        validate=validate.Range(
            min=0,
            max=10000,
            error="percentage_bps must be between 0 and 10000.",
        ),
    )


class CreateExpenseSchema(Schema):
    """
    POST /groups/:id/expenses

    currency_code defaults to the group's base currency (resolved in the
    service) and expense_date defaults to today.
    """

    paid_by_id = fields.Str(
        required=True,
        validate=validate.Length(min=1, max=36),
    )

    amount_minor = fields.Int(
        required=True,
        strict=True,
        validate=validate.Range(
            min=1,
            max=MAX_AMOUNT_MINOR,
            error="amount_minor must be a positive integer no greater than {max}.",
        ),
    )

    currency_code = fields.Str(
        load_default=None,
        validate=_currency_code_validator,
    )

    expense_date = fields.Date(load_default=None)

    note = fields.Str(
        load_default=None,
        allow_none=True,
        validate=validate.Length(max=500, error="note must be at most 500 characters."),
    )

    split_type = fields.Enum(
        SplitType,
        required=True,
        by_value=True,
        error_messages={"unknown": ErrorCode.INVALID_SPLIT_TYPE},
    )

    participants = fields.List(
        fields.Nested(ParticipantSchema),
        required=True,
        validate=validate.Length(min=1, error="At least one participant is required."),
    )

    @validates_schema
    def validate_participants_unique(self, data: dict, **kwargs) -> None:
        """DUPLICATE_PARTICIPANT (400): a user may appear only once per expense."""
        user_ids = [p["user_id"] for p in data.get("participants") or []]
        if len(user_ids) != len(set(user_ids)):
            raise ValidationError({"participants": [ErrorCode.DUPLICATE_PARTICIPANT]})

    @post_load
    def normalise_currency_code(self, data: dict, **kwargs) -> dict:
        if data.get("currency_code"):
            data["currency_code"] = data["currency_code"].upper()
        return data


class ReplacementParticipantSchema(Schema):
    """Replacement rows are always CUSTOM_AMOUNT, so amount_minor is required."""

    user_id = fields.Str(
        required=True,
        validate=validate.Length(min=1, max=36),
    )

    amount_minor = fields.Int(
        required=True,
        strict=True,
        validate=validate.Range(
            min=0,
            max=MAX_AMOUNT_MINOR,
            error="amount_minor must be between 0 and {max}.",
        ),
    )


class ReplacementRowSchema(Schema):
    """One new expense in a replace request. split_type is implied."""

    paid_by_id = fields.Str(
        required=True,
        validate=validate.Length(min=1, max=36),
    )

    amount_minor = fields.Int(
        required=True,
        strict=True,
        validate=validate.Range(
            min=1,
            max=MAX_AMOUNT_MINOR,
            error="amount_minor must be a positive integer no greater than {max}.",
        ),
    )

    currency_code = fields.Str(
        load_default=None,
        validate=_currency_code_validator,
    )

    expense_date = fields.Date(load_default=None)

    note = fields.Str(
        load_default=None,
        allow_none=True,
        validate=validate.Length(max=500, error="note must be at most 500 characters."),
    )

    participants = fields.List(
        fields.Nested(ReplacementParticipantSchema),
        required=True,
        validate=validate.Length(min=1, error="At least one participant is required."),
    )

    @validates_schema
    def validate_participants_unique(self, data: dict, **kwargs) -> None:
        user_ids = [p["user_id"] for p in data.get("participants") or []]
        if len(user_ids) != len(set(user_ids)):
            raise ValidationError({"participants": [ErrorCode.DUPLICATE_PARTICIPANT]})

    @post_load
    def normalise_currency_code(self, data: dict, **kwargs) -> dict:
        if data.get("currency_code"):
            data["currency_code"] = data["currency_code"].upper()
        return data


def _unique_ids(ids: list[str]) -> None:
    if len(ids) != len(set(ids)):
        raise ValidationError("Each expense id may appear only once.")


class ReplaceExpenseSchema(Schema):
    """
    POST /groups/:id/expenses/replace

    Soft-deletes every expense in replace_expense_ids and records each entry
    of rows as a new CUSTOM_AMOUNT expense, all in one transaction.
    """

    replace_expense_ids = fields.List(
        fields.Str(validate=validate.Length(min=1, max=36)),
        required=True,
        validate=[
            validate.Length(min=1, error="At least one expense id is required."),
            _unique_ids,
        ],
    )

    rows = fields.List(
        fields.Nested(ReplacementRowSchema),
        required=True,
        validate=validate.Length(min=1, error="At least one row is required."),
    )


class BulkDeleteExpensesSchema(Schema):
    """DELETE /groups/:id/expenses/bulk"""

    expense_ids = fields.List(
        fields.Str(validate=validate.Length(min=1, max=36)),
        required=True,
        validate=validate.Length(min=1, error="No expense ids provided."),
    )
