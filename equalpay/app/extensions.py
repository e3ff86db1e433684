"""
extensions.py — Flask extension singletons.

Creates the SQLAlchemy object at module level so models and services can
import it without circular dependencies.

Pattern:
    1. Create the extension object here (no app attached yet).
    2. Call init_app(app) inside the app factory in app/__init__.py.
    3. Import `db` from here wherever needed.

    from equalpay.app.extensions import db

Request schemas in app/schemas/ inherit from marshmallow.Schema directly, so
unit tests can instantiate them without an application context.
"""

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
