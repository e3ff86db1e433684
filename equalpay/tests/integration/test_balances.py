"""
tests/integration/test_balances.py — Integration tests for GET /groups/:id/balances.

Covered:
  - Balances and suggested payments after expenses and settlements
  - Soft-deleted expenses drop out of balances
  - Members who left keep their historical balance
  - Members with no activity are reported at zero
  - 401 / 403 / 404 failure paths
"""

from __future__ import annotations

from datetime import timedelta

from equalpay.tests.integration.helpers import (
    add_member,
    auth_headers,
    issue_token,
    make_expense,
    make_group,
    make_settlement,
    make_user,
    remove_member,
)


def _setup(app):
    """Alice (owner), Bob and Carol in one group, joined in that order."""
    alice = make_user(app, "Alice")
    bob = make_user(app, "Bob")
    carol = make_user(app, "Carol")
    group = make_group(app, alice)
    add_member(app, group, bob)
    add_member(app, group, carol)
    return alice, bob, carol, group


def _get_balances(client, caller_id, group_id):
    return client.get(
        f"/api/v1/groups/{group_id}/balances",
        headers=auth_headers(caller_id),
    )


def _by_member(data) -> dict:
    return {row["member_id"]: row["net_minor"] for row in data["balances"]}


def test_new_group_all_zero(app, client):
    alice, bob, carol, group = _setup(app)

    resp = _get_balances(client, alice, group)

    assert resp.status_code == 200
    data = resp.get_json()["data"]
    assert _by_member(data) == {alice: 0, bob: 0, carol: 0}
    assert data["payments"] == []
    assert data["balance_sum"] == 0
    assert data["currency_code"] == "USD"


def test_dinner_split_three_ways(app, client):
    """
    Alice pays 9000 split equally. Bob and Carol owe 3000 each; with equal
    debts the earlier member (Bob) is listed first.
    """
    alice, bob, carol, group = _setup(app)
    resp = make_expense(
        client, alice, group, alice, 9000,
        [{"user_id": alice}, {"user_id": bob}, {"user_id": carol}],
    )
    assert resp.status_code == 201

    data = _get_balances(client, bob, group).get_json()["data"]

    assert _by_member(data) == {alice: 6000, bob: -3000, carol: -3000}
    assert data["payments"] == [
        {
            "from_member_id": bob,
            "from_name": "Bob",
            "to_member_id": alice,
            "to_name": "Alice",
            "amount_minor": 3000,
        },
        {
            "from_member_id": carol,
            "from_name": "Carol",
            "to_member_id": alice,
            "to_name": "Alice",
            "amount_minor": 3000,
        },
    ]


def test_balances_listed_in_join_order_with_names(app, client):
    alice, bob, carol, group = _setup(app)

    data = _get_balances(client, carol, group).get_json()["data"]

    assert [(row["member_id"], row["name"]) for row in data["balances"]] == [
        (alice, "Alice"),
        (bob, "Bob"),
        (carol, "Carol"),
    ]


def test_largest_debtor_pays_first(app, client):
    alice, bob, carol, group = _setup(app)
    make_expense(
        client, alice, group, alice, 5000,
        [{"user_id": bob, "amount_minor": 2000}, {"user_id": carol, "amount_minor": 3000}],
        split_type="CUSTOM_AMOUNT",
    )

    data = _get_balances(client, alice, group).get_json()["data"]

    assert [(p["from_member_id"], p["amount_minor"]) for p in data["payments"]] == [
        (carol, 3000),
        (bob, 2000),
    ]


def test_settlement_clears_debt(app, client):
    alice, bob, carol, group = _setup(app)
    make_expense(client, alice, group, alice, 1000, [{"user_id": alice}, {"user_id": bob}])
    resp = make_settlement(client, bob, group, bob, alice, 500)
    assert resp.status_code == 201

    data = _get_balances(client, alice, group).get_json()["data"]

    assert _by_member(data) == {alice: 0, bob: 0, carol: 0}
    assert data["payments"] == []


def test_deleted_expense_excluded(app, client):
    alice, bob, carol, group = _setup(app)
    resp = make_expense(client, alice, group, alice, 2000, [{"user_id": bob}])
    expense_id = resp.get_json()["data"]["id"]

    assert client.delete(
        f"/api/v1/expenses/{expense_id}", headers=auth_headers(alice)
    ).status_code == 204

    data = _get_balances(client, alice, group).get_json()["data"]
    assert _by_member(data) == {alice: 0, bob: 0, carol: 0}


def test_former_member_keeps_historical_balance(app, client):
    """Carol owes 1500 and then leaves; her debt is still reported."""
    alice, bob, carol, group = _setup(app)
    make_expense(client, alice, group, alice, 1500, [{"user_id": carol}])
    remove_member(app, group, carol)

    data = _get_balances(client, alice, group).get_json()["data"]

    balances = _by_member(data)
    assert balances[carol] == -1500
    assert balances[alice] == 1500
    assert data["balance_sum"] == 0
    assert data["payments"] == [
        {
            "from_member_id": carol,
            "from_name": "Carol",
            "to_member_id": alice,
            "to_name": "Alice",
            "amount_minor": 1500,
        }
    ]


def test_group_currency_reported(app, client):
    alice = make_user(app, "Alice")
    group = make_group(app, alice, base_currency_code="EUR")

    data = _get_balances(client, alice, group).get_json()["data"]

    assert data["currency_code"] == "EUR"


# ── Failure paths ──────────────────────────────────────────────────────────

def test_non_member_forbidden(app, client):
    alice, bob, carol, group = _setup(app)
    mallory = make_user(app, "Mallory")

    resp = _get_balances(client, mallory, group)

    assert resp.status_code == 403
    assert resp.get_json()["error"]["code"] == "FORBIDDEN"


def test_unknown_group_not_found(app, client):
    alice = make_user(app, "Alice")

    resp = _get_balances(client, alice, "00000000-0000-0000-0000-000000000000")

    assert resp.status_code == 404
    assert resp.get_json()["error"]["code"] == "GROUP_NOT_FOUND"


def test_missing_token(app, client):
    alice, bob, carol, group = _setup(app)

    resp = client.get(f"/api/v1/groups/{group}/balances")

    assert resp.status_code == 401
    assert resp.get_json()["error"]["code"] == "TOKEN_MISSING"


def test_expired_token(app, client):
    alice, bob, carol, group = _setup(app)
    token = issue_token(alice, expires_in=timedelta(minutes=-1))

    resp = client.get(
        f"/api/v1/groups/{group}/balances",
        headers={"Authorization": f"Bearer {token}"},
    )

    assert resp.status_code == 401
    assert resp.get_json()["error"]["code"] == "TOKEN_EXPIRED"


def test_tampered_token(app, client):
    alice, bob, carol, group = _setup(app)

    resp = client.get(
        f"/api/v1/groups/{group}/balances",
        headers={"Authorization": f"Bearer {issue_token(alice)}x"},
    )

    assert resp.status_code == 401
    assert resp.get_json()["error"]["code"] == "TOKEN_INVALID"


def test_malformed_authorization_header(app, client):
    alice, bob, carol, group = _setup(app)

    resp = client.get(
        f"/api/v1/groups/{group}/balances",
        headers={"Authorization": issue_token(alice)},
    )

    assert resp.status_code == 401
    assert resp.get_json()["error"]["code"] == "TOKEN_INVALID"


def test_unknown_route_uses_error_envelope(client):
    resp = client.get("/api/v1/nothing-here")

    assert resp.status_code == 404
    assert resp.get_json()["error"]["code"] == "NOT_FOUND"
