"""
tests/integration/conftest.py — Fixtures for all integration tests.

Design:
  - The app is created once per session using create_app("testing").
    TestingConfig points at in-memory SQLite unless TEST_DATABASE_URL is set.
  - All tables are created once via db.create_all() at session start.
  - Between tests, all rows are deleted in FK-safe order so tests are isolated.

Users, groups and memberships are owned by the surrounding system and have
no HTTP endpoints here; helpers.py inserts them directly.
"""

from __future__ import annotations

import pytest
from sqlalchemy import text

from equalpay.app import create_app
from equalpay.app.extensions import db as _db


# ═══════════════════════════════════════════════════════════════════════════
# Session-scoped app fixture
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture(scope="session")
def app():
    """Creates the Flask application in 'testing' mode once for the session."""
    flask_app = create_app("testing")

    with flask_app.app_context():
        _db.create_all()

    yield flask_app

    with flask_app.app_context():
        _db.drop_all()


# ═══════════════════════════════════════════════════════════════════════════
# Function-scoped test isolation
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture(autouse=True)
def clean_tables(app):
    """
    Deletes all rows after every test.

    Delete order respects FK RESTRICT constraints: activity, splits, settlements and
    expenses go before memberships, groups and users.
    """
    yield

    with app.app_context():
        _db.session.rollback()  # discard any uncommitted state from a failed test
        for table in (
            "activity",
            "expense_splits",
            "settlements",
            "expenses",
            "group_members",
            "groups",
            "users",
        ):
            _db.session.execute(text(f'DELETE FROM "{table}"'))
        _db.session.commit()

    app.extensions["rate_limiter"].reset()


# ═══════════════════════════════════════════════════════════════════════════
# Client fixture
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def client(app):
    """Flask test client. Each test gets a fresh client (function-scoped)."""
    return app.test_client()
