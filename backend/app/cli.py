"""
cli.py — Developer data commands, registered on the Flask CLI.

    flask --app backend.app seed-demo     demo users, a trip, one bill of each type
    flask --app backend.app clear-data    delete every row, children first

Both run against whatever database the active config points at. The schema
must already exist (alembic upgrade head).
"""

from __future__ import annotations

from decimal import Decimal

import click
from flask import Flask, current_app
from sqlalchemy import delete

from backend.app.extensions import db
from backend.app.models.bill import Bill, BillType
from backend.app.models.bill_item import BillItem
from backend.app.models.bill_participant import BillParticipant
from backend.app.models.item_claim import ItemClaim
from backend.app.models.membership import Membership
from backend.app.models.trip import Trip
from backend.app.models.user import User
from backend.app.services import bill_service, identity_service, item_service, trip_service

# FK-safe order: rows that reference others go first.
_DELETE_ORDER = (ItemClaim, BillParticipant, BillItem, Bill, Membership, Trip, User)

_DEMO_USERS = (
    ("demo|alice", "Alice Example"),
    ("demo|bob", "Bob Example"),
    ("demo|carol", "Carol Example"),
)
DEMO_JOIN_SECRET = "summer123"


def seed_demo_data(session) -> Trip:
    """Creates the demo dataset through the service layer and returns the trip."""
    alice, bob, carol = (
        identity_service.resolve_user(ref, name, session) for ref, name in _DEMO_USERS
    )

    trip = trip_service.create_trip(
        name="Summer Vacation",
        join_secret=DEMO_JOIN_SECRET,
        creator_id=alice.id,
        session=session,
        bcrypt_rounds=current_app.config["BCRYPT_LOG_ROUNDS"],
        join_code_length=current_app.config["JOIN_CODE_LENGTH"],
    )
    for member in (bob, carol):
        trip_service.join_by_code(member.id, trip.join_code, DEMO_JOIN_SECRET, session)

    hotel = bill_service.create_bill(
        trip.id, alice.id, "Hotel", Decimal("350.00"), session, bill_type=BillType.EVEN
    )
    for member in (alice, bob, carol):
        bill_service.opt_in(member.id, hotel.id, session)

    dinner = bill_service.create_bill(
        trip.id, bob.id, "Dinner", Decimal("120.50"), session, bill_type=BillType.ITEMIZED
    )
    pasta = item_service.create_item(dinner.id, bob.id, "Pasta", Decimal("18.50"), session, quantity=2)
    wine = item_service.create_item(dinner.id, bob.id, "Wine", Decimal("41.75"), session)
    dessert = item_service.create_item(dinner.id, bob.id, "Dessert", Decimal("41.75"), session)

    item_service.claim(alice.id, pasta.id, session)
    item_service.claim(bob.id, pasta.id, session)
    for member in (alice, bob, carol):
        item_service.claim(member.id, wine.id, session)
    item_service.claim(carol.id, dessert.id, session)

    return trip


def clear_all_data(session) -> dict[str, int]:
    """Deletes all rows. Returns {table_name: rows_deleted}."""
    counts = {}
    for model in _DELETE_ORDER:
        result = session.execute(delete(model))
        counts[model.__tablename__] = result.rowcount
    return counts


def register_commands(app: Flask) -> None:

    @app.cli.command("seed-demo")
    def seed_demo():
        """Insert demo users, a trip, and one even and one itemized bill."""
        trip = seed_demo_data(db.session)
        db.session.commit()
        click.echo(
            f"Created trip '{trip.name}' (id={trip.id}). "
            f"Join code: {trip.join_code}  secret: {DEMO_JOIN_SECRET}"
        )

    @app.cli.command("clear-data")
    @click.confirmation_option(prompt="Delete ALL rows from every table?")
    def clear_data():
        """Delete every row from every table."""
        counts = clear_all_data(db.session)
        db.session.commit()
        for table, count in counts.items():
            click.echo(f"{table}: {count} deleted")
