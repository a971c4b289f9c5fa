"""
Unit tests for summary_service: mapping loaded bills onto calculator input
variants, and the warnings attached to a bill's split.
"""

from __future__ import annotations

from decimal import Decimal
from types import SimpleNamespace

from backend.app.models.bill import BillType
from backend.app.services import summary_service
from backend.app.services.split_calculator import EvenBill, ItemizedBill, compute_owed


def _even_bill(total: str, user_ids: list[int]) -> SimpleNamespace:
    return SimpleNamespace(
        id=1,
        name="Hotel",
        bill_type=BillType.EVEN,
        total_amount=Decimal(total),
        participants=[SimpleNamespace(user_id=uid) for uid in user_ids],
        items=[],
    )


def _itemized_bill(total: str, items: list[tuple]) -> SimpleNamespace:
    return SimpleNamespace(
        id=2,
        name="Dinner",
        bill_type=BillType.ITEMIZED,
        total_amount=Decimal(total),
        participants=[],
        items=[
            SimpleNamespace(
                id=item_id,
                name=f"item-{item_id}",
                unit_price=Decimal(price),
                quantity=qty,
                claims=[SimpleNamespace(user_id=uid) for uid in claimants],
            )
            for item_id, price, qty, claimants in items
        ],
    )


def test_even_bill_maps_to_even_variant():
    split_input = summary_service.build_split_input(_even_bill("90.00", [3, 1]))

    assert isinstance(split_input, EvenBill)
    assert split_input.participant_ids == (3, 1)


def test_itemized_bill_maps_items_and_claims():
    bill = _itemized_bill("29.97", [(10, "9.99", 3, [4, 7])])
    split_input = summary_service.build_split_input(bill)

    assert isinstance(split_input, ItemizedBill)
    line = split_input.items[0]
    assert (line.item_id, line.unit_price, line.quantity, line.claimant_ids) == (
        10, Decimal("9.99"), 3, (4, 7),
    )


def test_itemized_bill_ignores_participants():
    bill = _itemized_bill("10.00", [(1, "10.00", 1, [])])
    bill.participants = [SimpleNamespace(user_id=99)]

    result = compute_owed(summary_service.build_split_input(bill))

    assert result.owed == {}


def test_no_warnings_when_fully_assigned():
    bill = _even_bill("90.00", [1, 2])
    result = compute_owed(summary_service.build_split_input(bill))

    assert summary_service._bill_warnings(bill, result) == []


def test_unassigned_warning_for_even_bill_without_participants():
    bill = _even_bill("90.00", [])
    result = compute_owed(summary_service.build_split_input(bill))

    codes = [w["code"] for w in summary_service._bill_warnings(bill, result)]
    assert codes == ["UNASSIGNED_AMOUNT"]


def test_items_total_mismatch_warning():
    bill = _itemized_bill("50.00", [(1, "20.00", 1, [1])])
    result = compute_owed(summary_service.build_split_input(bill))

    codes = [w["code"] for w in summary_service._bill_warnings(bill, result)]
    assert codes == ["ITEMS_TOTAL_MISMATCH"]


def test_bill_split_dict_includes_caller_amount_and_names():
    bill = _itemized_bill("29.97", [(10, "9.99", 3, [4, 7])])
    bill.trip_id = 1
    result = compute_owed(summary_service.build_split_input(bill))

    data = summary_service._bill_split_dict(bill, result, {4: "Ann", 7: "Ben"}, caller_id=7)

    assert data["my_amount"] == Decimal("14.98")
    assert data["owed"] == [
        {"user_id": 4, "display_name": "Ann", "amount": Decimal("14.99")},
        {"user_id": 7, "display_name": "Ben", "amount": Decimal("14.98")},
    ]
    assert data["items"][0]["name"] == "item-10"
    assert data["items"][0]["claimed"] is True
