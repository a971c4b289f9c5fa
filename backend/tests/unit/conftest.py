"""
tests/unit/conftest.py — Shared setup for DB-free unit tests.

Model relationships are declared by class name ("Bill", "ItemClaim", ...).
Instantiating any model configures all mappers, so every model module must
be imported first, the same way create_app() does it.
"""

from backend.app.models import (  # noqa: F401
    bill,
    bill_item,
    bill_participant,
    item_claim,
    membership,
    trip,
    user,
)
