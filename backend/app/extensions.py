"""
extensions.py — Flask extension singletons.

Initialises SQLAlchemy and marshmallow as module-level objects so they can be
imported anywhere without creating circular dependencies.

Pattern:
    1. Create the extension object here (no app attached yet).
    2. Call init_app(app) inside the app factory in app/__init__.py.
    3. Import `db` or `ma` from here wherever needed.

The session behind `db.session` is scoped to the application context and is
removed at teardown, so every request gets its own unit of work. Services
never reach for it directly: routes pass `db.session` in as an argument.

IMPORTANT — schema inheritance rule:
    Validation Schema classes in app/schemas/ inherit from marshmallow.Schema
    directly, NOT from ma.Schema. ma.Schema requires an active Flask
    application context, and tests/unit/ runs without one.
"""

import sqlite3

from flask_marshmallow import Marshmallow
from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import event
from sqlalchemy.engine import Engine

db = SQLAlchemy()
ma = Marshmallow()


@event.listens_for(Engine, "connect")
def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    """SQLite ignores ON DELETE CASCADE unless foreign keys are switched on per connection."""
    if isinstance(dbapi_connection, sqlite3.Connection):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()
