"""
services/item_service.py — Line items and item claims on itemized bills.

A claim says "I share this item". Claimants of one item split its line cost
(unit_price * quantity) between them; split_calculator does the arithmetic.

Authorization:
  Caller must be a member of the trip that owns the item's bill.

Rules:
  - Items can only be added to 'itemized' bills (BILL_TYPE_MISMATCH 422).
  - claim / unclaim / delete_item are idempotent. A concurrent duplicate
    claim that loses on the unique constraint is recovered by re-query.
    The claim INSERT runs in a savepoint so the losing request keeps the
    rest of its unit of work.

Layer rules:
  - No Flask imports. Plain values in, ORM objects out.
  - Commits are the route's responsibility — only flush here.
"""

from __future__ import annotations

import logging
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from backend.app.errors import ErrorCode, NotFoundError
from backend.app.models.bill import BillType
from backend.app.models.bill_item import BillItem
from backend.app.models.item_claim import ItemClaim
from backend.app.models.user import User
from backend.app.services import bill_service, trip_service
from backend.app.services.split_calculator import parse_money, parse_quantity

logger = logging.getLogger(__name__)


# ── Private helpers ────────────────────────────────────────────────────────

def _get_item_or_404(item_id: int, session: Session) -> BillItem:
    """Returns the BillItem or raises ITEM_NOT_FOUND (404)."""
    item = session.get(BillItem, item_id)
    if item is None:
        raise NotFoundError(
            ErrorCode.ITEM_NOT_FOUND,
            f"Item {item_id} does not exist.",
        )
    return item


def _get_claim(user_id: int, item_id: int, session: Session) -> ItemClaim | None:
    return session.execute(
        select(ItemClaim).where(
            ItemClaim.item_id == item_id,
            ItemClaim.user_id == user_id,
        )
    ).scalar_one_or_none()


# ── Items ──────────────────────────────────────────────────────────────────

def get_item(item_id: int, caller_id: int, session: Session) -> BillItem:
    item = _get_item_or_404(item_id, session)
    trip_service.require_member(item.bill.trip_id, caller_id, session)
    return item


def create_item(
        bill_id: int,
        caller_id: int,
        name: str,
        unit_price: Decimal | str,
        session: Session,
        quantity: int = 1,
) -> BillItem:
    """
    Adds a line item to an itemized bill.

    Raises:
      BILL_NOT_FOUND (404), FORBIDDEN (403), BILL_TYPE_MISMATCH (422),
      INVALID_AMOUNT / INVALID_AMOUNT_PRECISION / INVALID_QUANTITY (400).
    """
    bill = bill_service.get_bill(bill_id, caller_id, session)
    bill_service.require_bill_type(bill, BillType.ITEMIZED, "add items to an even bill")

    item = BillItem(
        bill_id=bill.id,
        name=name.strip(),
        unit_price=parse_money(unit_price, "unit_price"),
        quantity=parse_quantity(quantity),
    )
    session.add(item)
    session.flush()
    return item


def list_items(bill_id: int, caller_id: int, session: Session) -> list[BillItem]:
    """Returns the bill's items in creation order."""
    bill_service.get_bill(bill_id, caller_id, session)
    stmt = (
        select(BillItem)
        .where(BillItem.bill_id == bill_id)
        .order_by(BillItem.created_at.asc(), BillItem.id.asc())
    )
    return list(session.execute(stmt).scalars().all())


def update_item(
        item_id: int,
        caller_id: int,
        name: str,
        unit_price: Decimal | str,
        quantity: int,
        session: Session,
) -> BillItem:
    item = get_item(item_id, caller_id, session)

    new_price = parse_money(unit_price, "unit_price")
    new_quantity = parse_quantity(quantity)

    item.name = name.strip()
    item.unit_price = new_price
    item.quantity = new_quantity
    session.flush()
    return item


def delete_item(item_id: int, caller_id: int, session: Session) -> None:
    """Deletes the item and its claims. An already-deleted item is a no-op."""
    item = session.get(BillItem, item_id)
    if item is None:
        return

    trip_service.require_member(item.bill.trip_id, caller_id, session)
    session.delete(item)
    session.flush()


# ── Claims ─────────────────────────────────────────────────────────────────

def claim(user_id: int, item_id: int, session: Session) -> ItemClaim:
    """Marks the item as shared by user_id. Claiming twice returns the same row."""
    get_item(item_id, user_id, session)

    existing = _get_claim(user_id, item_id, session)
    if existing is not None:
        return existing

    item_claim = ItemClaim(user_id=user_id, item_id=item_id)
    try:
        with session.begin_nested():
            session.add(item_claim)
            session.flush()
    except IntegrityError:
        winner = _get_claim(user_id, item_id, session)
        if winner is None:
            raise
        logger.info(
            "Concurrent claim for user %s, item %s recovered",
            user_id,
            item_id,
        )
        return winner
    return item_claim


def unclaim(user_id: int, item_id: int, session: Session) -> None:
    get_item(item_id, user_id, session)

    existing = _get_claim(user_id, item_id, session)
    if existing is None:
        return

    session.delete(existing)
    session.flush()


def claimants_of(item_id: int, caller_id: int, session: Session) -> list[User]:
    """Returns the users sharing the item, by ascending user id."""
    get_item(item_id, caller_id, session)
    stmt = (
        select(User)
        .join(ItemClaim, User.id == ItemClaim.user_id)
        .where(ItemClaim.item_id == item_id)
        .order_by(User.id.asc())
    )
    return list(session.execute(stmt).scalars().all())


def items_claimed_by(user_id: int, bill_id: int, session: Session) -> list[BillItem]:
    """Returns the items of bill_id that user_id has claimed, in creation order."""
    bill_service.get_bill(bill_id, user_id, session)
    stmt = (
        select(BillItem)
        .join(ItemClaim, BillItem.id == ItemClaim.item_id)
        .where(
            BillItem.bill_id == bill_id,
            ItemClaim.user_id == user_id,
        )
        .order_by(BillItem.created_at.asc(), BillItem.id.asc())
    )
    return list(session.execute(stmt).scalars().all())
