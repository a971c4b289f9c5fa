"""
services/bill_service.py — Bills and even-split participation.

Authorization:
  Every operation requires the caller to be a member of the bill's trip
  (FORBIDDEN 403 via trip_service.require_member).

Bill modes:
  'even'      the total is shared by users who opted in (bill_participants)
  'itemized'  the total is broken into line items that users claim

  The two are mutually exclusive. Opting into an itemized bill raises
  BILL_TYPE_MISMATCH (422). Changing a bill's type deletes the rows that
  belonged to the old mode: items (and their claims) when switching to
  'even', participants when switching to 'itemized'.

Idempotency:
  opt_in / opt_out and delete_bill can be repeated freely. A second opt_in
  returns the existing row; opt_out and delete of something already gone
  succeed without doing anything.

Layer rules:
  - No Flask imports. Receives plain values and a session; returns ORM objects.
  - Commits are the route's responsibility — only flush here.
"""

from __future__ import annotations

import logging
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from backend.app.errors import BusinessRuleError, ErrorCode, InvalidInputError, NotFoundError
from backend.app.models.bill import Bill, BillType
from backend.app.models.bill_participant import BillParticipant
from backend.app.models.columns import utcnow
from backend.app.models.user import User
from backend.app.services import trip_service
from backend.app.services.split_calculator import parse_money

logger = logging.getLogger(__name__)


# ── Private helpers ────────────────────────────────────────────────────────

def _get_bill_or_404(bill_id: int, session: Session) -> Bill:
    """Returns the Bill or raises BILL_NOT_FOUND (404)."""
    bill = session.get(Bill, bill_id)
    if bill is None:
        raise NotFoundError(
            ErrorCode.BILL_NOT_FOUND,
            f"Bill {bill_id} does not exist.",
        )
    return bill


def _coerce_bill_type(value: BillType | str) -> BillType:
    if isinstance(value, BillType):
        return value
    try:
        return BillType(str(value).strip().lower())
    except ValueError:
        allowed = ", ".join(t.value for t in BillType)
        raise InvalidInputError(
            ErrorCode.INVALID_BILL_TYPE,
            f"bill_type must be one of: {allowed}.",
            field="bill_type",
        )


def _get_participant(user_id: int, bill_id: int, session: Session) -> BillParticipant | None:
    return session.execute(
        select(BillParticipant).where(
            BillParticipant.bill_id == bill_id,
            BillParticipant.user_id == user_id,
        )
    ).scalar_one_or_none()


def require_bill_type(bill: Bill, expected: BillType, action: str) -> None:
    """Raises BILL_TYPE_MISMATCH (422) unless the bill is of the expected type."""
    if bill.bill_type != expected:
        raise BusinessRuleError(
            ErrorCode.BILL_TYPE_MISMATCH,
            f"Cannot {action}: bill {bill.id} is '{bill.bill_type.value}', "
            f"not '{expected.value}'.",
            field="bill_type",
        )


def _clear_rows_of_old_mode(bill: Bill, new_type: BillType) -> None:
    """Deletes the rows that only make sense under the bill's previous type."""
    if new_type == BillType.EVEN and bill.items:
        logger.info(
            "Bill %s switched to even; deleting %d item(s) and their claims",
            bill.id,
            len(bill.items),
        )
        bill.items.clear()
    elif new_type == BillType.ITEMIZED and bill.participants:
        logger.info(
            "Bill %s switched to itemized; removing %d participant(s)",
            bill.id,
            len(bill.participants),
        )
        bill.participants.clear()


# ── Bill ledger ────────────────────────────────────────────────────────────

def create_bill(
        trip_id: int,
        creator_id: int,
        name: str,
        total_amount: Decimal | str,
        session: Session,
        bill_type: BillType | str = BillType.ITEMIZED,
) -> Bill:
    """
    Creates a bill under a trip.

    Raises:
      TRIP_NOT_FOUND (404), FORBIDDEN (403) if the creator is not a member,
      INVALID_AMOUNT / INVALID_AMOUNT_PRECISION (400), INVALID_BILL_TYPE (400).
    """
    trip_service.get_trip(trip_id, creator_id, session)

    bill = Bill(
        trip_id=trip_id,
        created_by_user_id=creator_id,
        name=name.strip(),
        total_amount=parse_money(total_amount, "total_amount"),
        bill_type=_coerce_bill_type(bill_type),
    )
    session.add(bill)
    session.flush()
    return bill


def get_bill(bill_id: int, caller_id: int, session: Session) -> Bill:
    bill = _get_bill_or_404(bill_id, session)
    trip_service.require_member(bill.trip_id, caller_id, session)
    return bill


def list_bills(trip_id: int, caller_id: int, session: Session) -> list[Bill]:
    """Returns the trip's bills, oldest first (id breaks ties)."""
    trip_service.get_trip(trip_id, caller_id, session)
    stmt = (
        select(Bill)
        .where(Bill.trip_id == trip_id)
        .order_by(Bill.created_at.asc(), Bill.id.asc())
    )
    return list(session.execute(stmt).scalars().all())


def update_bill(
        bill_id: int,
        caller_id: int,
        name: str,
        total_amount: Decimal | str,
        session: Session,
        bill_type: BillType | str | None = None,
) -> Bill:
    """
    Replaces the bill's name and total, and optionally its type.

    Changing the type clears the rows of the old mode (see module docstring).
    Passing bill_type=None leaves the type unchanged.
    """
    bill = get_bill(bill_id, caller_id, session)

    new_total = parse_money(total_amount, "total_amount")
    new_type = _coerce_bill_type(bill_type) if bill_type is not None else bill.bill_type

    if new_type != bill.bill_type:
        _clear_rows_of_old_mode(bill, new_type)
        bill.bill_type = new_type

    bill.name = name.strip()
    bill.total_amount = new_total
    bill.updated_at = utcnow()
    session.flush()
    return bill


def delete_bill(bill_id: int, caller_id: int, session: Session) -> None:
    """
    Deletes a bill with its items, claims and participants.
    Deleting a bill that no longer exists is a no-op.
    """
    bill = session.get(Bill, bill_id)
    if bill is None:
        return

    trip_service.require_member(bill.trip_id, caller_id, session)
    session.delete(bill)
    session.flush()


# ── Even-split participation ───────────────────────────────────────────────

def opt_in(user_id: int, bill_id: int, session: Session) -> BillParticipant:
    """
    Adds the user to an even bill's participants. Already opted in is success.

    Raises BILL_TYPE_MISMATCH (422) on an itemized bill.
    """
    bill = get_bill(bill_id, user_id, session)
    require_bill_type(bill, BillType.EVEN, "opt in to an itemized bill")

    existing = _get_participant(user_id, bill_id, session)
    if existing is not None:
        return existing

    participant = BillParticipant(user_id=user_id, bill_id=bill_id)
    try:
        with session.begin_nested():
            session.add(participant)
            session.flush()
    except IntegrityError:
        winner = _get_participant(user_id, bill_id, session)
        if winner is None:
            raise
        logger.info(
            "Concurrent opt-in for user %s, bill %s recovered",
            user_id,
            bill_id,
        )
        return winner
    return participant


def opt_out(user_id: int, bill_id: int, session: Session) -> None:
    """Removes the user from the bill's participants if present."""
    get_bill(bill_id, user_id, session)

    participant = _get_participant(user_id, bill_id, session)
    if participant is None:
        return

    session.delete(participant)
    session.flush()


def participants_of(bill_id: int, caller_id: int, session: Session) -> list[User]:
    """Returns the users who opted in to the bill, by ascending user id."""
    get_bill(bill_id, caller_id, session)
    stmt = (
        select(User)
        .join(BillParticipant, User.id == BillParticipant.user_id)
        .where(BillParticipant.bill_id == bill_id)
        .order_by(User.id.asc())
    )
    return list(session.execute(stmt).scalars().all())
