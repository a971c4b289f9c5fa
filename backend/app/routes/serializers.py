"""
routes/serializers.py — ORM object → plain dict helpers shared by the route files.

Pure data-shaping: no DB queries beyond already-loaded relationships, no logic.
Amounts are Decimals; DecimalJSONProvider renders them as strings.
The trip join secret hash is never serialised.
"""

from __future__ import annotations

from datetime import datetime

from backend.app.models.bill import Bill, BillType
from backend.app.models.bill_item import BillItem
from backend.app.models.trip import Trip
from backend.app.models.user import User


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def serialize_user(user: User) -> dict:
    return {
        "id": user.id,
        "display_name": user.display_name,
    }


def serialize_trip(trip: Trip, members: list[User] | None = None) -> dict:
    """Members are included only when the caller passes them in."""
    data = {
        "id": trip.id,
        "name": trip.name,
        "join_code": trip.join_code,
        "created_by_user_id": trip.created_by_user_id,
        "created_at": _iso(trip.created_at),
        "updated_at": _iso(trip.updated_at),
    }
    if members is not None:
        data["members"] = [serialize_user(m) for m in members]
    return data


def serialize_item(item: BillItem) -> dict:
    return {
        "id": item.id,
        "bill_id": item.bill_id,
        "name": item.name,
        "unit_price": item.unit_price,
        "quantity": item.quantity,
        "line_cost": item.line_cost,
        "claimed_by": [c.user_id for c in item.claims],
        "created_at": _iso(item.created_at),
    }


def serialize_bill(bill: Bill, include_children: bool = False) -> dict:
    """
    include_children adds `participants` (even bills) or `items` (itemized
    bills). List endpoints leave it off.
    """
    data = {
        "id": bill.id,
        "trip_id": bill.trip_id,
        "created_by_user_id": bill.created_by_user_id,
        "created_by_name": bill.creator.display_name,
        "name": bill.name,
        "total_amount": bill.total_amount,
        "bill_type": bill.bill_type.value,
        "created_at": _iso(bill.created_at),
        "updated_at": _iso(bill.updated_at),
    }
    if include_children:
        if bill.bill_type == BillType.EVEN:
            data["participants"] = [serialize_user(p.user) for p in bill.participants]
        else:
            data["items"] = [serialize_item(i) for i in bill.items]
    return data
