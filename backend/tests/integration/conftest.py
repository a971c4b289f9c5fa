"""
tests/integration/conftest.py — Fixtures and helpers for all integration tests.

Design:
  - Tests run against the testing config: in-memory SQLite by default, or a
    real PostgreSQL database when TEST_DATABASE_URL is set.
  - The app is created once per session using create_app("testing").
  - All tables are created once via db.create_all() at session start.
  - Between tests, all rows are deleted in FK-safe order so tests are isolated.

Identity tokens are minted here with PyJWT using the testing secret, the same
way the external identity provider would sign them.

Helper functions (not fixtures) are provided for common operations:
  - make_token(sub, ...)          → signed identity JWT
  - auth_headers(sub_or_token)    → {"Authorization": "Bearer <token>"}
  - me(client, sub)               → local user dict (creates the user)
  - make_trip(client, sub, ...)   → trip dict
  - join_trip(client, sub, trip)  → HTTP response
  - make_bill(client, sub, ...)   → bill dict
  - make_item(client, sub, ...)   → item dict
  - count_rows(app, Model, **cols) → rows matching the column values

These are plain functions (not pytest fixtures) so they can be called with
arbitrary arguments in any test without fixture parameterization overhead.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import jwt
import pytest
from sqlalchemy import func, select, text

from backend.app import create_app
from backend.app.extensions import db as _db
from backend.config import TestingConfig

JOIN_SECRET = "letmein"


# ═══════════════════════════════════════════════════════════════════════════
# Session-scoped app fixture
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture(scope="session")
def app():
    """Creates the Flask application in 'testing' mode once for the whole session."""
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
    """Deletes all rows after every test, children before parents."""
    yield  # run the test

    with app.app_context():
        _db.session.rollback()  # discard any uncommitted state from a failed test

        with _db.engine.connect() as conn:
            conn.execute(text("DELETE FROM item_claims"))
            conn.execute(text("DELETE FROM bill_participants"))
            conn.execute(text("DELETE FROM bill_items"))
            conn.execute(text("DELETE FROM bills"))
            conn.execute(text("DELETE FROM memberships"))
            conn.execute(text("DELETE FROM trips"))
            conn.execute(text("DELETE FROM users"))
            conn.commit()


# ═══════════════════════════════════════════════════════════════════════════
# Client fixture
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def client(app):
    """Flask test client. Each test gets a fresh client (function-scoped)."""
    return app.test_client()


# ═══════════════════════════════════════════════════════════════════════════
# Shared helper functions (not fixtures)
# ═══════════════════════════════════════════════════════════════════════════

def make_token(
    sub: str,
    name: str | None = None,
    expires_in: int = 3600,
    secret: str = TestingConfig.IDENTITY_JWT_SECRET,
    **extra_claims,
) -> str:
    """Signs an identity token the way the provider would."""
    now = datetime.now(timezone.utc)
    claims = {
        "sub": sub,
        "iat": now,
        "exp": now + timedelta(seconds=expires_in),
        **extra_claims,
    }
    if name is not None:
        claims["name"] = name
    return jwt.encode(claims, secret, algorithm="HS256")


def auth_headers(sub_or_token: str, name: str | None = None) -> dict:
    """
    Returns the Authorization header dict. Accepts a subject (a token is
    minted for it, named after the subject unless `name` is given) or an
    already-encoded token.
    """
    if sub_or_token.count(".") == 2:
        token = sub_or_token
    else:
        token = make_token(sub_or_token, name=name or sub_or_token.split("|")[-1].title())
    return {"Authorization": f"Bearer {token}"}


def me(client, sub: str, name: str | None = None) -> dict:
    """Resolves (creating on first call) the local user for `sub`."""
    resp = client.get("/api/v1/me", headers=auth_headers(sub, name))
    assert resp.status_code == 200, f"me failed: {resp.get_json()}"
    return resp.get_json()["data"]


def make_trip(client, sub: str, name: str = "Test Trip", join_secret: str = JOIN_SECRET) -> dict:
    """Creates a trip; the caller becomes its first member."""
    resp = client.post(
        "/api/v1/trips/",
        json={"name": name, "join_secret": join_secret},
        headers=auth_headers(sub),
    )
    assert resp.status_code == 201, f"make_trip failed: {resp.get_json()}"
    return resp.get_json()["data"]


def join_trip(client, sub: str, trip: dict, join_secret: str = JOIN_SECRET):
    """Joins `trip` with its code. Returns the HTTP response."""
    return client.post(
        "/api/v1/trips/join",
        json={"join_code": trip["join_code"], "join_secret": join_secret},
        headers=auth_headers(sub),
    )


def make_bill(
    client,
    sub: str,
    trip_id: int,
    total_amount: str,
    bill_type: str = "itemized",
    name: str = "Test Bill",
) -> dict:
    resp = client.post(
        f"/api/v1/trips/{trip_id}/bills",
        json={"name": name, "total_amount": total_amount, "bill_type": bill_type},
        headers=auth_headers(sub),
    )
    assert resp.status_code == 201, f"make_bill failed: {resp.get_json()}"
    return resp.get_json()["data"]


def make_item(
    client,
    sub: str,
    bill_id: int,
    unit_price: str,
    quantity: int = 1,
    name: str = "Test Item",
) -> dict:
    resp = client.post(
        f"/api/v1/bills/{bill_id}/items",
        json={"name": name, "unit_price": unit_price, "quantity": quantity},
        headers=auth_headers(sub),
    )
    assert resp.status_code == 201, f"make_item failed: {resp.get_json()}"
    return resp.get_json()["data"]


def count_rows(app, model, **filters) -> int:
    """Counts rows of `model` matching the column values, straight from the DB."""
    with app.app_context():
        stmt = select(func.count()).select_from(model).where(
            *(getattr(model, column) == value for column, value in filters.items())
        )
        return _db.session.execute(stmt).scalar_one()
