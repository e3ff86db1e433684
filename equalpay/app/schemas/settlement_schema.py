"""
schemas/settlement_schema.py — Marshmallow schemas for settlement creation and edits.

Validation responsibility:
  - This file: field types, strictly positive integer amount, currency shape.
  - services/settlement_service.py:
      - SELF_SETTLEMENT     (422) — payer_id == receiver_id
      - PAYER_NOT_MEMBER    (422) — requires DB membership lookup
      - RECEIVER_NOT_MEMBER (422) — requires DB membership lookup
      - OVERPAYMENT warning (201) — requires current balances

IMPORTANT: Inherits from marshmallow.Schema directly, never a Flask-bound
           schema class.
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


# Kept local rather than imported from expense_schema so each schema module
# stays self-contained.
_currency_code_validator = validate.Regexp(
    r"^[A-Za-z]{3}$",
    error=ErrorCode.INVALID_CURRENCY_CODE,
)

# Upper bound of the INTEGER amount columns (int4 on Postgres).
MAX_AMOUNT_MINOR = 2**31 - 1


class CreateSettlementSchema(Schema):
    """
    POST /groups/:id/settlements

    Records a transfer already made from payer_id to receiver_id. Either party
    may record it; the caller only needs to be a member of the group.
    """

    payer_id = fields.Str(
        required=True,
        validate=validate.Length(min=1, max=36),
    )

    receiver_id = fields.Str(
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

    settled_at = fields.DateTime(load_default=None)

    note = fields.Str(
        load_default=None,
        allow_none=True,
        validate=validate.Length(max=500, error="note must be at most 500 characters."),
    )

    @post_load
    def normalise_currency_code(self, data: dict, **kwargs) -> dict:
        if data.get("currency_code"):
            data["currency_code"] = data["currency_code"].upper()
        return data


class UpdateSettlementSchema(Schema):
    """
    PATCH /groups/:id/settlements/:sid

    Every field is optional and only the keys sent are changed. Nothing has a
    load_default, so an absent key never overwrites the stored value.
    """

    payer_id = fields.Str(validate=validate.Length(min=1, max=36))

    receiver_id = fields.Str(validate=validate.Length(min=1, max=36))

    amount_minor = fields.Int(
        strict=True,
        validate=validate.Range(
            min=1,
            max=MAX_AMOUNT_MINOR,
            error="amount_minor must be a positive integer no greater than {max}.",
        ),
    )

    currency_code = fields.Str(validate=_currency_code_validator)

    settled_at = fields.DateTime()

    note = fields.Str(
        allow_none=True,
        validate=validate.Length(max=500, error="note must be at most 500 characters."),
    )

    @validates_schema
    def validate_not_empty(self, data: dict, **kwargs) -> None:
        if not data:
            raise ValidationError("At least one field must be provided.")

    @post_load
    def normalise_currency_code(self, data: dict, **kwargs) -> dict:
        if data.get("currency_code"):
            data["currency_code"] = data["currency_code"].upper()
        return data
