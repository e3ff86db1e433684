"""
errors.py — AppError base class and error code registry.

Every error returned by the EqualPay API uses a code defined here.
Service and route code raise AppError, never strings or bare exceptions.

Rules:
  - Error codes are a versioned contract. They do not change once published.
  - Error messages are human-readable prose. They may be improved at any time.
  - 401 (unauthenticated) and 403 (not a member) are never conflated.
"""

from __future__ import annotations


class AppError(Exception):

    def __init__(
            self,
            code: str,
            message: str,
            http_status: int,
            field: str | None = None,
            headers: dict[str, str] | None = None,
    ) -> None:
        super().__init__(message)
        self.code        = code
        self.message     = message
        self.http_status = http_status
        self.field       = field  # which request field caused the error
        self.headers     = headers or {}

    def to_dict(self) -> dict:
        payload = {
            "code":    self.code,
            "message": self.message,
        }
        if self.field is not None:
            payload["field"] = self.field
        return {"error": payload}

    def __repr__(self) -> str:
        return (
            f"AppError(code={self.code!r}, "
            f"http_status={self.http_status}, "
            f"message={self.message!r})"
        )


# ── Error Code Registry ────────────────────────────────────────────────────
#
# Organised by category. HTTP status is indicated in the comment.
# These are the string values sent in the API response.
# ──────────────────────────────────────────────────────────────────────────

class ErrorCode:

    # ── Schema / Input Errors (400) ────────────────────────────────────────
    MISSING_FIELD                 = "MISSING_FIELD"
    INVALID_FIELD                 = "INVALID_FIELD"
    INVALID_SPLIT_TYPE            = "INVALID_SPLIT_TYPE"
    INVALID_CURRENCY_CODE         = "INVALID_CURRENCY_CODE"
    DUPLICATE_PARTICIPANT         = "DUPLICATE_PARTICIPANT"

    # ── Not Found Errors (404) ─────────────────────────────────────────────
    NOT_FOUND                     = "NOT_FOUND"
    GROUP_NOT_FOUND               = "GROUP_NOT_FOUND"
    EXPENSE_NOT_FOUND             = "EXPENSE_NOT_FOUND"
    SETTLEMENT_NOT_FOUND          = "SETTLEMENT_NOT_FOUND"

    # ── Business Rule Violations (422) ────────────────────────────────────
    # Split construction: the only failures the balance core can produce.
    CUSTOM_SPLIT_SUM_MISMATCH     = "CUSTOM_SPLIT_SUM_MISMATCH"
    PERCENTAGE_SPLIT_SUM_MISMATCH = "PERCENTAGE_SPLIT_SUM_MISMATCH"
    NO_PARTICIPANTS               = "NO_PARTICIPANTS"

    PAYER_NOT_MEMBER              = "PAYER_NOT_MEMBER"
    SPLIT_USER_NOT_MEMBER         = "SPLIT_USER_NOT_MEMBER"
    RECEIVER_NOT_MEMBER           = "RECEIVER_NOT_MEMBER"
    SELF_SETTLEMENT               = "SELF_SETTLEMENT"

    # ── Auth Errors ────────────────────────────────────────────────────────
    # 401 = we do not know who you are
    # 403 = we know who you are, but you are not a member of the group
    TOKEN_MISSING                 = "TOKEN_MISSING"          # 401
    TOKEN_INVALID                 = "TOKEN_INVALID"          # 401
    TOKEN_EXPIRED                 = "TOKEN_EXPIRED"          # 401
    FORBIDDEN                     = "FORBIDDEN"              # 403

    # ── Throttling (429) ───────────────────────────────────────────────────
    RATE_LIMITED                  = "RATE_LIMITED"

    # ── System Errors (500) ────────────────────────────────────────────────
    INTERNAL_ERROR                = "INTERNAL_ERROR"


# ── Warning Code Registry ──────────────────────────────────────────────────
#
# Warnings are returned alongside a 2xx response in the `warnings` array.
# They do not block the request.
# ──────────────────────────────────────────────────────────────────────────

class WarningCode:

    # Settlement amount exceeds the payer's current outstanding debt.
    # Still recorded; pre-payment is valid.
    OVERPAYMENT = "OVERPAYMENT"
