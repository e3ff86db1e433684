"""
tests/integration/helpers.py — Shared helper functions for integration tests.

  - make_user(app, ...)        → user id
  - make_group(app, ...)       → group id (owner is added as OWNER)
  - add_member(app, ...)       → inserts a GroupMember row
  - remove_member(app, ...)    → deletes a GroupMember row (history stays)
  - issue_token(user_id, ...)  → signed bearer token
  - auth_headers(user_id)      → {"Authorization": "Bearer <token>"}
  - make_expense(client, ...)  → HTTP response

These are plain functions (not pytest fixtures) so they can be called with
arbitrary arguments in any test.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import jwt
from sqlalchemy import delete

from equalpay.app.extensions import db
from equalpay.app.models.group import Group
from equalpay.app.models.membership import GroupMember, GroupRole
from equalpay.app.models.user import User
from equalpay.config import TestingConfig


def make_user(app, name: str = "Alice", email: str | None = None) -> str:
    if email is None:
        email = f"{name.lower()}@test.com"
    with app.app_context():
        user = User(name=name, email=email)
        db.session.add(user)
        db.session.commit()
        return user.id


def make_group(
    app,
    owner_id: str,
    name: str = "Test Group",
    base_currency_code: str = "USD",
) -> str:
    with app.app_context():
        group = Group(name=name, base_currency_code=base_currency_code)
        db.session.add(group)
        db.session.flush()
        db.session.add(GroupMember(group_id=group.id, user_id=owner_id, role=GroupRole.OWNER))
        db.session.commit()
        return group.id


def add_member(app, group_id: str, user_id: str, role: GroupRole = GroupRole.MEMBER) -> None:
    with app.app_context():
        db.session.add(GroupMember(group_id=group_id, user_id=user_id, role=role))
        db.session.commit()


def remove_member(app, group_id: str, user_id: str) -> None:
    with app.app_context():
        db.session.execute(
            delete(GroupMember).where(
                GroupMember.group_id == group_id,
                GroupMember.user_id == user_id,
            )
        )
        db.session.commit()


def issue_token(user_id: str, expires_in: timedelta = timedelta(minutes=15)) -> str:
    """Signs a token the way the identity provider would."""
    payload = {"sub": user_id, "exp": datetime.now(timezone.utc) + expires_in}
    return jwt.encode(payload, TestingConfig.JWT_SECRET_KEY, algorithm="HS256")


def auth_headers(user_id: str) -> dict:
    return {"Authorization": f"Bearer {issue_token(user_id)}"}


def make_expense(
    client,
    caller_id: str,
    group_id: str,
    paid_by_id: str,
    amount_minor: int,
    participants: list[dict],
    split_type: str = "EQUAL",
    **extra,
):
    """Posts an expense. Returns the HTTP response; callers assert on status."""
    payload = {
        "paid_by_id": paid_by_id,
        "amount_minor": amount_minor,
        "split_type": split_type,
        "participants": participants,
    }
    payload.update(extra)
    return client.post(
        f"/api/v1/groups/{group_id}/expenses",
        json=payload,
        headers=auth_headers(caller_id),
    )


def make_settlement(client, caller_id: str, group_id: str, payer_id: str,
                    receiver_id: str, amount_minor: int, **extra):
    payload = {"payer_id": payer_id, "receiver_id": receiver_id, "amount_minor": amount_minor}
    payload.update(extra)
    return client.post(
        f"/api/v1/groups/{group_id}/settlements",
        json=payload,
        headers=auth_headers(caller_id),
    )
