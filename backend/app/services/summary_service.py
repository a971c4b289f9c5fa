"""
services/summary_service.py — Who owes what, per bill and per trip.

Read model on top of the ledgers. Loads a bill with its participants or its
items and claims, turns it into the matching split_calculator input variant,
and decorates the result with display names and the caller's own amount.
No arithmetic lives here; split_calculator is the only place money is divided.

Warnings (returned alongside data, rendered in the response envelope):
  UNASSIGNED_AMOUNT     part of a bill is charged to nobody (an even bill with
                        no participants, or unclaimed items)
  ITEMS_TOTAL_MISMATCH  an itemized bill's line costs do not add up to its total

Layer rules:
  - No Flask imports. Returns plain dicts and lists.
  - Read only: never flushes or commits.
"""

from __future__ import annotations

from collections import defaultdict
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from backend.app.models.bill import Bill, BillType
from backend.app.models.user import User
from backend.app.services import bill_service, trip_service
from backend.app.services.split_calculator import (
    ZERO,
    EvenBill,
    ItemizedBill,
    ItemLine,
    SplitInput,
    SplitResult,
    compute_owed,
)


# ── Building calculator input ──────────────────────────────────────────────

def build_split_input(bill: Bill) -> SplitInput:
    """Maps a loaded Bill onto EvenBill or ItemizedBill according to its type."""
    if bill.bill_type == BillType.EVEN:
        return EvenBill(
            total_amount=bill.total_amount,
            participant_ids=tuple(p.user_id for p in bill.participants),
        )
    return ItemizedBill(
        total_amount=bill.total_amount,
        items=tuple(
            ItemLine(
                item_id=item.id,
                unit_price=item.unit_price,
                quantity=item.quantity,
                claimant_ids=tuple(c.user_id for c in item.claims),
            )
            for item in bill.items
        ),
    )


# ── Private helpers ────────────────────────────────────────────────────────

def _display_names(user_ids: set[int], session: Session) -> dict[int, str]:
    if not user_ids:
        return {}
    rows = session.execute(
        select(User.id, User.display_name).where(User.id.in_(user_ids))
    ).all()
    return {row.id: row.display_name for row in rows}


def _user_ids_in(result: SplitResult) -> set[int]:
    ids = set(result.owed)
    for share in result.item_shares:
        ids.update(share.shares)
    return ids


def _share_rows(shares: dict[int, Decimal], names: dict[int, str]) -> list[dict]:
    return [
        {
            "user_id": uid,
            "display_name": names.get(uid),
            "amount": shares[uid],
        }
        for uid in sorted(shares)
    ]


def _bill_warnings(bill: Bill, result: SplitResult) -> list[dict]:
    warnings: list[dict] = []

    if result.unassigned_total > ZERO:
        warnings.append({
            "code": "UNASSIGNED_AMOUNT",
            "bill_id": bill.id,
            "message": (
                f"{result.unassigned_total} of bill '{bill.name}' is not "
                f"assigned to anyone."
            ),
        })

    if result.bill_type == BillType.ITEMIZED and result.item_shares:
        items_total = sum((s.line_cost for s in result.item_shares), ZERO)
        if items_total != result.total_amount:
            warnings.append({
                "code": "ITEMS_TOTAL_MISMATCH",
                "bill_id": bill.id,
                "message": (
                    f"Items of bill '{bill.name}' add up to {items_total}, "
                    f"but the bill total is {result.total_amount}."
                ),
            })

    return warnings


def _bill_split_dict(
        bill: Bill,
        result: SplitResult,
        names: dict[int, str],
        caller_id: int,
) -> dict:
    data = {
        "bill_id":          bill.id,
        "trip_id":          bill.trip_id,
        "name":             bill.name,
        "bill_type":        bill.bill_type.value,
        "total_amount":     result.total_amount,
        "per_person":       result.per_person,
        "assigned_total":   result.assigned_total,
        "unassigned_total": result.unassigned_total,
        "owed":             _share_rows(result.owed, names),
        "my_amount":        result.amount_for(caller_id),
    }

    if result.bill_type == BillType.ITEMIZED:
        item_names = {item.id: item.name for item in bill.items}
        data["items"] = [
            {
                "item_id":   share.item_id,
                "name":      item_names.get(share.item_id),
                "line_cost": share.line_cost,
                "claimed":   share.is_claimed,
                "shares":    _share_rows(share.shares, names),
            }
            for share in result.item_shares
        ]

    return data


# ── Public service functions ───────────────────────────────────────────────

def get_bill_split(
        bill_id: int,
        caller_id: int,
        session: Session,
) -> tuple[dict, list[dict]]:
    """
    Returns (split, warnings) for one bill.

    split["owed"] lists every user who owes something, by ascending user id.
    split["my_amount"] is what the caller owes, 0.00 if nothing.
    """
    bill = bill_service.get_bill(bill_id, caller_id, session)
    result = compute_owed(build_split_input(bill))
    names = _display_names(_user_ids_in(result), session)

    return _bill_split_dict(bill, result, names, caller_id), _bill_warnings(bill, result)


def get_trip_summary(
        trip_id: int,
        caller_id: int,
        session: Session,
) -> tuple[dict, list[dict]]:
    """
    Returns (summary, warnings) for a whole trip.

    summary["members"] has one row per current member, including those who
    owe nothing. Users who left the trip but still owe on one of its bills
    are listed too, with is_member=False.
    """
    trip = trip_service.get_trip(trip_id, caller_id, session)
    members = trip_service.list_members(trip_id, session)
    bills = bill_service.list_bills(trip_id, caller_id, session)

    results = [(bill, compute_owed(build_split_input(bill))) for bill in bills]

    totals: dict[int, Decimal] = defaultdict(lambda: ZERO)
    user_ids: set[int] = {m.id for m in members}
    for _, result in results:
        user_ids |= _user_ids_in(result)
        for uid, amount in result.owed.items():
            totals[uid] += amount

    names = _display_names(user_ids, session)
    member_ids = {m.id for m in members}

    warnings: list[dict] = []
    bill_rows = []
    for bill, result in results:
        bill_rows.append(_bill_split_dict(bill, result, names, caller_id))
        warnings.extend(_bill_warnings(bill, result))

    member_rows = [
        {
            "user_id":      m.id,
            "display_name": m.display_name,
            "total_owed":   totals[m.id],
            "is_member":    True,
        }
        for m in members
    ]
    member_rows.extend(
        {
            "user_id":      uid,
            "display_name": names.get(uid),
            "total_owed":   totals[uid],
            "is_member":    False,
        }
        for uid in sorted(set(totals) - member_ids)
    )

    summary = {
        "trip_id":          trip.id,
        "name":             trip.name,
        "total_amount":     sum((r.total_amount for _, r in results), ZERO),
        "unassigned_total": sum((r.unassigned_total for _, r in results), ZERO),
        "my_total":         totals[caller_id],
        "members":          member_rows,
        "bills":            bill_rows,
    }
    return summary, warnings
