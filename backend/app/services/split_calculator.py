"""
services/split_calculator.py — Owed-amount computation for a single bill.

This file is the SINGLE SOURCE OF TRUTH for how a bill's cost is divided.
It is pure: no session, no Flask, no I/O. Callers (summary_service) fetch the
rows and hand over plain values wrapped in one of two input variants:

    EvenBill      total shared evenly by opted-in participants
    ItemizedBill  each line item shared by its claimants

compute_owed() dispatches on the variant. There is no blending: an even bill
never looks at items and an itemized bill never looks at participants.

Rounding policy (whole cents, deterministic):
  1. The amount being divided (bill total, or item line cost) is split into
     cents and divided by the number of sharers, rounding DOWN.
  2. The leftover cents (always fewer than the number of sharers) are handed
     out one each to sharers in ascending user-id order.
  So the shares of one division always add back up to the exact amount, and
  no share differs from another by more than one cent.

    100.00 among users {1, 2, 3}   → 1: 33.34, 2: 33.33, 3: 33.33
    9.99 x 3 claimed by {4, 7}     → 4: 14.99, 7: 14.98

Empty sharer sets are not errors: nobody is charged and the amount is
reported as unassigned. Malformed money or quantity raises InvalidInputError.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from decimal import ROUND_DOWN, Decimal, InvalidOperation
from typing import Iterable, Union

from backend.app.errors import ErrorCode, InvalidInputError
from backend.app.models.bill import BillType

CENT = Decimal("0.01")
ZERO = Decimal("0.00")

# Largest values the NUMERIC(12, 2) money columns and INTEGER quantity hold.
MAX_AMOUNT = Decimal("9999999999.99")
MAX_QUANTITY = 2**31 - 1


# ── Input variants ─────────────────────────────────────────────────────────

@dataclass(frozen=True)
class EvenBill:
    total_amount: Decimal | str | int
    participant_ids: tuple[int, ...] = ()


@dataclass(frozen=True)
class ItemLine:
    item_id: int
    unit_price: Decimal | str | int
    quantity: int = 1
    claimant_ids: tuple[int, ...] = ()


@dataclass(frozen=True)
class ItemizedBill:
    total_amount: Decimal | str | int
    items: tuple[ItemLine, ...] = ()


SplitInput = Union[EvenBill, ItemizedBill]


# ── Output ─────────────────────────────────────────────────────────────────

@dataclass
class ItemShare:
    item_id: int
    line_cost: Decimal
    shares: dict[int, Decimal]

    @property
    def is_claimed(self) -> bool:
        return bool(self.shares)


@dataclass
class SplitResult:
    bill_type: BillType
    total_amount: Decimal
    owed: dict[int, Decimal]
    assigned_total: Decimal
    unassigned_total: Decimal
    # Even bills only: the rounded-down share every participant owes at least.
    per_person: Decimal | None = None
    # Itemized bills only, in input order.
    item_shares: list[ItemShare] = field(default_factory=list)

    def amount_for(self, user_id: int) -> Decimal:
        """What `user_id` owes on this bill. Users who share nothing owe 0.00."""
        return self.owed.get(user_id, ZERO)


# ── Parsing ────────────────────────────────────────────────────────────────

def parse_money(value, field_name: str = "amount") -> Decimal:
    """
    Parses a non-negative monetary value with at most 2 decimal places.

    Accepts Decimal, int, or a decimal string. Floats are refused outright:
    binary floating point is never allowed near money. Input with more than
    two fractional digits is rejected, not rounded.
    """
    if isinstance(value, bool) or isinstance(value, float):
        raise InvalidInputError(
            ErrorCode.INVALID_AMOUNT,
            f"{field_name} must be a decimal string, not a floating point number.",
            field=field_name,
        )

    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise InvalidInputError(
            ErrorCode.INVALID_AMOUNT,
            f"{field_name} is not a valid decimal amount: {value!r}.",
            field=field_name,
        )

    if not amount.is_finite():
        raise InvalidInputError(
            ErrorCode.INVALID_AMOUNT,
            f"{field_name} must be a finite amount.",
            field=field_name,
        )

    if amount < 0:
        raise InvalidInputError(
            ErrorCode.INVALID_AMOUNT,
            f"{field_name} must not be negative.",
            field=field_name,
        )

    if amount > MAX_AMOUNT:
        raise InvalidInputError(
            ErrorCode.INVALID_AMOUNT,
            f"{field_name} must not exceed {MAX_AMOUNT}.",
            field=field_name,
        )

    if amount.as_tuple().exponent < -2:
        raise InvalidInputError(
            ErrorCode.INVALID_AMOUNT_PRECISION,
            f"{field_name} must have at most 2 decimal places.",
            field=field_name,
        )

    # "-0.00" parses fine; store it as plain zero.
    try:
        return amount.quantize(CENT) if amount else ZERO
    except InvalidOperation:
        raise InvalidInputError(
            ErrorCode.INVALID_AMOUNT,
            f"{field_name} is not a valid decimal amount: {value!r}.",
            field=field_name,
        )


def parse_quantity(value) -> int:
    """Parses a line-item quantity. Must be an integer from 1 to MAX_QUANTITY."""
    if isinstance(value, bool):
        quantity = None
    elif isinstance(value, int):
        quantity = value
    elif isinstance(value, str) and value.strip().isdecimal():
        quantity = int(value.strip())
    else:
        quantity = None

    if quantity is None or quantity < 1:
        raise InvalidInputError(
            ErrorCode.INVALID_QUANTITY,
            f"quantity must be an integer of at least 1, got {value!r}.",
            field="quantity",
        )
    if quantity > MAX_QUANTITY:
        raise InvalidInputError(
            ErrorCode.INVALID_QUANTITY,
            f"quantity must not exceed {MAX_QUANTITY}, got {value!r}.",
            field="quantity",
        )
    return quantity


# ── Core algorithm ─────────────────────────────────────────────────────────

def allocate_cents(amount: Decimal, sharer_ids: Iterable[int]) -> dict[int, Decimal]:
    """
    Divides `amount` among `sharer_ids` in whole cents.

    Returns {user_id: share}. Duplicate ids count once. An empty sharer set
    returns an empty dict — dividing by nobody charges nobody.
    Guarantees: sum(result.values()) == amount when sharers exist.
    """
    ids = sorted(set(sharer_ids))
    if not ids:
        return {}

    cents = int(amount.quantize(CENT) / CENT)
    base, leftover = divmod(cents, len(ids))

    return {
        uid: (Decimal(base + 1) if i < leftover else Decimal(base)) * CENT
        for i, uid in enumerate(ids)
    }


def compute_even_split(bill: EvenBill) -> SplitResult:
    total = parse_money(bill.total_amount, "total_amount")
    ids = sorted(set(bill.participant_ids))

    if not ids:
        return SplitResult(
            bill_type=BillType.EVEN,
            total_amount=total,
            owed={},
            assigned_total=ZERO,
            unassigned_total=total,
            per_person=ZERO,
        )

    owed = allocate_cents(total, ids)
    per_person = (total / len(ids)).quantize(CENT, rounding=ROUND_DOWN)

    return SplitResult(
        bill_type=BillType.EVEN,
        total_amount=total,
        owed=owed,
        assigned_total=total,
        unassigned_total=ZERO,
        per_person=per_person,
    )


def compute_itemized_split(bill: ItemizedBill) -> SplitResult:
    total = parse_money(bill.total_amount, "total_amount")

    owed: dict[int, Decimal] = defaultdict(lambda: ZERO)
    item_shares: list[ItemShare] = []
    assigned = ZERO
    unassigned = ZERO

    for line in bill.items:
        unit_price = parse_money(line.unit_price, "unit_price")
        quantity = parse_quantity(line.quantity)
        line_cost = unit_price * quantity

        shares = allocate_cents(line_cost, line.claimant_ids)
        if shares:
            assigned += line_cost
            for uid, share in shares.items():
                owed[uid] += share
        else:
            # Unclaimed: charged to nobody. Not the creator, not the trip.
            unassigned += line_cost

        item_shares.append(ItemShare(line.item_id, line_cost, shares))

    return SplitResult(
        bill_type=BillType.ITEMIZED,
        total_amount=total,
        owed=dict(owed),
        assigned_total=assigned,
        unassigned_total=unassigned,
        item_shares=item_shares,
    )


def compute_owed(bill: SplitInput) -> SplitResult:
    """Dispatches on the bill variant. The two modes never mix."""
    if isinstance(bill, EvenBill):
        return compute_even_split(bill)
    if isinstance(bill, ItemizedBill):
        return compute_itemized_split(bill)
    raise TypeError(f"Unsupported bill variant: {type(bill).__name__}")
