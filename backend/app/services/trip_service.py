"""
services/trip_service.py — Trips and trip membership.

Membership rule:
  A user must be a member of a trip to read or change anything under it.
  require_member() is the single gate; bill_service and item_service call it.

Joining:
  A trip is joined with its public join_code plus the shared join secret.
  Only the bcrypt hash of the secret is stored. Joining twice is not an
  error: the second call finds the membership and returns the trip.

Idempotent inserts:
  add_member() checks first and inserts only when absent. If a concurrent
  request slips in between, the unique constraint on (user_id, trip_id)
  rejects our INSERT. The INSERT runs inside a savepoint, so only it is
  undone; the row that won is then treated as ours.

Layer rules:
  - No Flask imports. Pure Python with a SQLAlchemy session parameter.
  - Commits are the route's responsibility — only flush here.
"""

from __future__ import annotations

import logging
import uuid

import bcrypt
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from backend.app.errors import ErrorCode, NotFoundError, UnauthorizedError
from backend.app.models.membership import Membership
from backend.app.models.trip import Trip
from backend.app.models.user import User

logger = logging.getLogger(__name__)

_JOIN_CODE_ATTEMPTS = 5


# ── Private helpers ────────────────────────────────────────────────────────

def _get_trip_or_404(trip_id: int, session: Session) -> Trip:
    """Returns the Trip or raises TRIP_NOT_FOUND (404)."""
    trip = session.get(Trip, trip_id)
    if trip is None:
        raise NotFoundError(
            ErrorCode.TRIP_NOT_FOUND,
            f"Trip {trip_id} does not exist.",
        )
    return trip


def _get_membership(user_id: int, trip_id: int, session: Session) -> Membership | None:
    return session.execute(
        select(Membership).where(
            Membership.trip_id == trip_id,
            Membership.user_id == user_id,
        )
    ).scalar_one_or_none()


def _generate_join_code(length: int) -> str:
    return uuid.uuid4().hex[:length]


def _unused_join_code(length: int, session: Session) -> str:
    """Draws join codes until one is not taken."""
    for _ in range(_JOIN_CODE_ATTEMPTS):
        code = _generate_join_code(length)
        taken = session.execute(
            select(Trip.id).where(Trip.join_code == code)
        ).scalar_one_or_none()
        if taken is None:
            return code
    raise RuntimeError(
        f"Failed to generate a unique join code after {_JOIN_CODE_ATTEMPTS} attempts"
    )


def _hash_join_secret(join_secret: str, rounds: int) -> str:
    return bcrypt.hashpw(
        join_secret.encode("utf-8"),
        bcrypt.gensalt(rounds=rounds),
    ).decode("utf-8")


def _join_secret_matches(join_secret: str, join_secret_hash: str) -> bool:
    return bcrypt.checkpw(
        join_secret.encode("utf-8"),
        join_secret_hash.encode("utf-8"),
    )


# ── Membership store ───────────────────────────────────────────────────────

def is_member(user_id: int, trip_id: int, session: Session) -> bool:
    return _get_membership(user_id, trip_id, session) is not None


def require_member(trip_id: int, user_id: int, session: Session) -> None:
    """
    Raises FORBIDDEN (403) if user_id is not a member of trip_id.
    Non-members receive 403, not 404.
    """
    if not is_member(user_id, trip_id, session):
        raise UnauthorizedError(
            ErrorCode.FORBIDDEN,
            f"You are not a member of trip {trip_id}.",
        )


def add_member(user_id: int, trip_id: int, session: Session) -> Membership:
    """Inserts the membership if absent. Repeated calls return the same row."""
    existing = _get_membership(user_id, trip_id, session)
    if existing is not None:
        return existing

    membership = Membership(user_id=user_id, trip_id=trip_id)
    try:
        with session.begin_nested():
            session.add(membership)
            session.flush()
    except IntegrityError:
        winner = _get_membership(user_id, trip_id, session)
        if winner is None:
            raise
        logger.info(
            "Concurrent membership insert for user %s, trip %s recovered",
            user_id,
            trip_id,
        )
        return winner
    return membership


def list_trips_for_user(user_id: int, session: Session) -> list[Trip]:
    """Returns all trips the user belongs to, oldest first."""
    stmt = (
        select(Trip)
        .join(Membership, Trip.id == Membership.trip_id)
        .where(Membership.user_id == user_id)
        .order_by(Trip.created_at.asc(), Trip.id.asc())
    )
    return list(session.execute(stmt).scalars().all())


def list_members(trip_id: int, session: Session) -> list[User]:
    """Returns the trip's members in the order they joined."""
    stmt = (
        select(User)
        .join(Membership, User.id == Membership.user_id)
        .where(Membership.trip_id == trip_id)
        .order_by(Membership.joined_at.asc(), Membership.id.asc())
    )
    return list(session.execute(stmt).scalars().all())


def join_by_code(
        user_id: int,
        join_code: str,
        join_secret: str,
        session: Session,
) -> Trip:
    """
    Joins the trip identified by its public code.

    Raises:
      NotFoundError(TRIP_NOT_FOUND)           — no trip has this code
      UnauthorizedError(INVALID_JOIN_SECRET)  — the secret does not match

    Already being a member is success, not an error.
    """
    trip = session.execute(
        select(Trip).where(Trip.join_code == join_code.strip())
    ).scalar_one_or_none()

    if trip is None:
        raise NotFoundError(
            ErrorCode.TRIP_NOT_FOUND,
            f"No trip matches join code {join_code!r}.",
            field="join_code",
        )

    if not _join_secret_matches(join_secret, trip.join_secret_hash):
        raise UnauthorizedError(
            ErrorCode.INVALID_JOIN_SECRET,
            "The join secret is incorrect.",
            field="join_secret",
        )

    add_member(user_id, trip.id, session)
    return trip


# ── Trip lifecycle ─────────────────────────────────────────────────────────

def create_trip(
        name: str,
        join_secret: str,
        creator_id: int,
        session: Session,
        bcrypt_rounds: int = 12,
        join_code_length: int = 8,
) -> Trip:
    """
    Creates a trip. The creator automatically becomes its first member.

    Args:
        name:             Trip name (validated by schema).
        join_secret:      Shared passphrase other users need to join.
        creator_id:       The authenticated user creating the trip.
        bcrypt_rounds:    Cost factor for hashing the join secret.
        join_code_length: Number of hex characters in the public join code.
    """
    trip = Trip(
        name=name.strip(),
        join_code=_unused_join_code(join_code_length, session),
        join_secret_hash=_hash_join_secret(join_secret, bcrypt_rounds),
        created_by_user_id=creator_id,
    )
    session.add(trip)
    session.flush()  # populate trip.id before creating membership

    session.add(Membership(user_id=creator_id, trip_id=trip.id))
    session.flush()

    logger.info("User %s created trip %s (%s)", creator_id, trip.id, trip.join_code)
    return trip


def get_trip(trip_id: int, caller_id: int, session: Session) -> Trip:
    """Returns the trip. Caller must be a member (FORBIDDEN 403, not 404)."""
    trip = _get_trip_or_404(trip_id, session)
    require_member(trip_id, caller_id, session)
    return trip


def leave_trip(trip_id: int, caller_id: int, session: Session) -> None:
    """Removes the caller from the trip. Leaving a trip you are not in is a no-op."""
    _get_trip_or_404(trip_id, session)

    membership = _get_membership(caller_id, trip_id, session)
    if membership is None:
        return

    session.delete(membership)
    session.flush()


def delete_trip(trip_id: int, caller_id: int, session: Session) -> None:
    """
    Deletes a trip with its memberships and bills (and, through the bills,
    their items, claims and participants).

    Only the trip's creator may delete it. Deleting an absent trip is a no-op.
    """
    trip = session.get(Trip, trip_id)
    if trip is None:
        return

    if trip.created_by_user_id != caller_id:
        raise UnauthorizedError(
            ErrorCode.FORBIDDEN,
            "Only the trip creator may delete this trip.",
        )

    session.delete(trip)
    session.flush()
    logger.info("User %s deleted trip %s", caller_id, trip_id)
