"""
middleware/rate_limit.py — Per-user write throttling decorator.

Must be applied BELOW @require_auth so g.user_id is already set:

    @bp.route(...)
    @require_auth
    @rate_limited("expenses:create")
    def create_expense(...): ...

The limiter lives in current_app.extensions["rate_limiter"] (see create_app).

Successful responses carry X-RateLimit-Limit and X-RateLimit-Remaining.
A 429 carries Retry-After (seconds until the caller's window closes).
"""

from __future__ import annotations

import functools
from typing import Callable

from flask import current_app, g, make_response

from equalpay.app.errors import AppError, ErrorCode


def rate_limited(scope: str) -> Callable:
    def decorator(f: Callable) -> Callable:
        @functools.wraps(f)
        def decorated(*args, **kwargs):
            limiter = current_app.extensions["rate_limiter"]
            key = f"{scope}:{g.user_id}"
            if limiter.hit(key):
                current_app.logger.warning("Rate limit exceeded for %s", key)
                raise AppError(
                    ErrorCode.RATE_LIMITED,
                    "Too many requests. Please wait a moment and try again.",
                    429,
                    headers={"Retry-After": str(limiter.retry_after(key))},
                )

            response = make_response(f(*args, **kwargs))
            response.headers["X-RateLimit-Limit"] = str(limiter.limit)
            response.headers["X-RateLimit-Remaining"] = str(limiter.remaining(key))
            return response

        return decorated

    return decorator
