"""
Unit tests for the Alembic environment and revision chain.

The config is built in code, without alembic.ini, so the test does not
reconfigure logging for the rest of the session.
"""

from __future__ import annotations

import io
import re
from pathlib import Path

import pytest
from alembic import command
from alembic.config import Config
from alembic.script import ScriptDirectory
from sqlalchemy import create_engine, inspect

from equalpay.config import TestingConfig

MIGRATIONS_DIR = Path(__file__).resolve().parents[2] / "migrations"


def _alembic_config(buffer: io.StringIO | None = None) -> Config:
    cfg = Config(output_buffer=buffer)
    cfg.set_main_option("script_location", str(MIGRATIONS_DIR))
    return cfg


def test_revisions_form_a_single_chain():
    script = ScriptDirectory.from_config(_alembic_config())

    assert script.get_heads() == ["002_add_activity_log"]
    assert script.get_revision("002_add_activity_log").down_revision == "001_initial_schema"


def test_offline_upgrade_renders_every_table(monkeypatch):
    monkeypatch.setenv("TEST_RUN", "1")
    buffer = io.StringIO()

    command.upgrade(_alembic_config(buffer), "head", sql=True)

    sql = buffer.getvalue()
    for table in ("users", "groups", "group_members", "expenses",
                  "expense_splits", "settlements", "activity"):
        assert re.search(rf"CREATE TABLE \"?{table}\"? \(", sql), table
    assert "ix_activity_group_created" in sql


@pytest.mark.skipif(
    not TestingConfig.SQLALCHEMY_DATABASE_URI.startswith("sqlite"),
    reason="online upgrade only runs against the default SQLite test database",
)
def test_online_upgrade_uses_testing_database(monkeypatch, tmp_path):
    db_file = tmp_path / "migrated.db"
    url = f"sqlite:///{db_file}"
    monkeypatch.setenv("TEST_RUN", "1")
    monkeypatch.setattr(TestingConfig, "SQLALCHEMY_DATABASE_URI", url)

    command.upgrade(_alembic_config(), "head")

    engine = create_engine(url)
    tables = set(inspect(engine).get_table_names())
    engine.dispose()
    assert {"expenses", "settlements", "activity", "alembic_version"} <= tables
