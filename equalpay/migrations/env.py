"""
equalpay/migrations/env.py — Alembic environment.

The database URL is the one the app itself would use: TestingConfig when
TEST_RUN is set, otherwise the config selected by FLASK_ENV.
"""

from __future__ import annotations

import os
from logging.config import fileConfig

from alembic import context
from sqlalchemy import engine_from_config, pool

from equalpay.app.extensions import db
from equalpay.app.models import (  # noqa: F401
    activity,
    expense,
    group,
    membership,
    settlement,
    split,
    user,
)
from equalpay.config import ActiveConfig, TestingConfig

config_class = TestingConfig if os.getenv("TEST_RUN") else ActiveConfig
db_url = config_class.SQLALCHEMY_DATABASE_URI

config = context.config
config.set_main_option("sqlalchemy.url", db_url)

if config.config_file_name is not None:
    fileConfig(config.config_file_name)


def _run(**configure_kwargs) -> None:
    context.configure(
        target_metadata=db.metadata,
        compare_type=True,
        **configure_kwargs,
    )
    with context.begin_transaction():
        context.run_migrations()


if context.is_offline_mode():
    _run(url=db_url, literal_binds=True, dialect_opts={"paramstyle": "named"})
else:
    connectable = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    with connectable.connect() as connection:
        _run(connection=connection)
