"""
tests/unit/conftest.py — Registers every ORM model before unit tests run.

Services under test instantiate models (Expense, Settlement) without an app.
SQLAlchemy resolves string relationship targets on first instantiation, so
every mapped class must already be imported.
"""

from equalpay.app.models import (  # noqa: F401
    activity,
    expense,
    group,
    membership,
    settlement,
    split,
    user,
)
