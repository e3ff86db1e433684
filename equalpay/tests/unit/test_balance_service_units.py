"""
Unit tests for balance_service data-access helpers and get_balance_response.

These tests intentionally avoid Flask and real DB access. Every DB interaction is
mocked through a fake SQLAlchemy session object.
"""

from __future__ import annotations

import logging
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest

from equalpay.app.errors import AppError, ErrorCode
from equalpay.app.services import balance_service


def _mock_scalars_all(session: MagicMock, rows: list) -> None:
    session.execute.return_value.scalars.return_value.all.return_value = rows


def _split(user_id: str, amount_minor: int) -> SimpleNamespace:
    return SimpleNamespace(user_id=user_id, amount_minor=amount_minor)


def test_get_active_expenses_returns_rows():
    session = MagicMock()
    rows = [SimpleNamespace(id="e1"), SimpleNamespace(id="e2")]
    _mock_scalars_all(session, rows)

    result = balance_service.get_active_expenses(group_id="g1", session=session)

    assert result == rows
    session.execute.assert_called_once()


def test_get_settlements_returns_rows():
    session = MagicMock()
    rows = [SimpleNamespace(id="s1")]
    _mock_scalars_all(session, rows)

    result = balance_service.get_settlements(group_id="g1", session=session)

    assert result == rows
    session.execute.assert_called_once()


def test_get_user_names_maps_id_to_name():
    session = MagicMock()
    session.execute.return_value.all.return_value = [
        SimpleNamespace(id="u1", name="Alice"),
        SimpleNamespace(id="u2", name="Bob"),
    ]

    result = balance_service.get_user_names(["u1", "u2"], session)

    assert result == {"u1": "Alice", "u2": "Bob"}


def test_get_user_names_skips_query_for_no_ids():
    session = MagicMock()

    assert balance_service.get_user_names([], session) == {}
    session.execute.assert_not_called()


def test_expense_for_balance_projects_splits():
    expense = SimpleNamespace(
        paid_by_id="u1",
        splits=[_split("u1", 50), _split("u2", 50)],
    )

    assert balance_service.expense_for_balance(expense) == {
        "paid_by_id": "u1",
        "splits": [
            {"user_id": "u1", "amount_minor": 50},
            {"user_id": "u2", "amount_minor": 50},
        ],
    }


@patch("equalpay.app.services.balance_service.get_settlements", return_value=[])
@patch("equalpay.app.services.balance_service.get_active_expenses")
def test_compute_group_balances_logs_split_total_mismatch(
    mock_expenses,
    mock_settlements,
    caplog,
):
    mock_expenses.return_value = [
        SimpleNamespace(
            id="e1",
            group_id="g1",
            paid_by_id="u1",
            amount_minor=100,
            splits=[_split("u2", 90)],
        )
    ]

    with caplog.at_level(logging.WARNING, logger="equalpay.app.services.balance_service"):
        result = balance_service.compute_group_balances(
            "g1", MagicMock(), member_ids=["u1", "u2"]
        )

    # Balances follow the stored splits; the mismatch is only reported.
    assert result == {"u1": 90, "u2": -90}
    assert "splits summing to 90, expected 100" in caplog.text


def test_get_balance_response_raises_group_not_found():
    session = MagicMock()
    session.get.return_value = None

    with pytest.raises(AppError) as exc_info:
        balance_service.get_balance_response(group_id="missing", caller_id="u1", session=session)

    err = exc_info.value
    assert err.code == ErrorCode.GROUP_NOT_FOUND
    assert err.http_status == 404


@patch("equalpay.app.services.balance_service.get_member_ids", return_value=["u2", "u3"])
def test_get_balance_response_raises_forbidden_for_non_member(mock_member_ids):
    session = MagicMock()
    session.get.return_value = SimpleNamespace(id="g1", base_currency_code="USD")

    with pytest.raises(AppError) as exc_info:
        balance_service.get_balance_response(group_id="g1", caller_id="u1", session=session)

    err = exc_info.value
    assert err.code == ErrorCode.FORBIDDEN
    assert err.http_status == 403
    mock_member_ids.assert_called_once()


@patch("equalpay.app.services.balance_service.get_user_names")
@patch("equalpay.app.services.balance_service.compute_group_balances")
@patch("equalpay.app.services.balance_service.get_member_ids", return_value=["u1", "u2", "u3"])
def test_get_balance_response_happy_path(
    mock_member_ids,
    mock_compute,
    mock_names,
):
    session = MagicMock()
    session.get.return_value = SimpleNamespace(id="g1", base_currency_code="EUR")
    mock_compute.return_value = {"u1": 5000, "u2": -2000, "u3": -3000}
    mock_names.return_value = {"u1": "Alice", "u2": "Bob", "u3": "Carol"}

    payload = balance_service.get_balance_response(group_id="g1", caller_id="u1", session=session)

    assert payload["group_id"] == "g1"
    assert payload["currency_code"] == "EUR"
    assert payload["balance_sum"] == 0
    assert payload["balances"] == [
        {"member_id": "u1", "name": "Alice", "net_minor": 5000},
        {"member_id": "u2", "name": "Bob", "net_minor": -2000},
        {"member_id": "u3", "name": "Carol", "net_minor": -3000},
    ]
    assert payload["payments"] == [
        {
            "from_member_id": "u3",
            "from_name": "Carol",
            "to_member_id": "u1",
            "to_name": "Alice",
            "amount_minor": 3000,
        },
        {
            "from_member_id": "u2",
            "from_name": "Bob",
            "to_member_id": "u1",
            "to_name": "Alice",
            "amount_minor": 2000,
        },
    ]
    mock_compute.assert_called_once_with("g1", session, member_ids=["u1", "u2", "u3"])


@patch("equalpay.app.services.balance_service.get_user_names", return_value={"u1": "Alice"})
@patch("equalpay.app.services.balance_service.compute_group_balances")
@patch("equalpay.app.services.balance_service.get_member_ids", return_value=["u1"])
def test_get_balance_response_falls_back_to_id_for_unknown_user(
    mock_member_ids,
    mock_compute,
    mock_names,
):
    session = MagicMock()
    session.get.return_value = SimpleNamespace(id="g1", base_currency_code="USD")
    mock_compute.return_value = {"u1": -700, "ghost": 700}

    payload = balance_service.get_balance_response(group_id="g1", caller_id="u1", session=session)

    assert payload["balances"][1] == {"member_id": "ghost", "name": "ghost", "net_minor": 700}
    assert payload["payments"][0]["to_name"] == "ghost"


@patch("equalpay.app.services.balance_service.compute_group_balances")
@patch("equalpay.app.services.balance_service.get_member_ids", return_value=["u1", "u2"])
def test_get_balance_response_raises_internal_error_on_nonzero_sum(
    mock_member_ids,
    mock_compute,
):
    session = MagicMock()
    session.get.return_value = SimpleNamespace(id="g1", base_currency_code="USD")
    mock_compute.return_value = {"u1": 100, "u2": -99}

    with pytest.raises(AppError) as exc_info:
        balance_service.get_balance_response(group_id="g1", caller_id="u1", session=session)

    err = exc_info.value
    assert err.code == ErrorCode.INTERNAL_ERROR
    assert err.http_status == 500
