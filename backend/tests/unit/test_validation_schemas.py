"""
tests/unit/test_validation_schemas.py — Unit tests for all marshmallow schemas.

What this file proves:
  - Every schema accepts valid input without raising
  - Every schema rejects invalid input with the correct ValidationError
  - Money fields come back as Decimal, never float; more than 2 dp is
    rejected with INVALID_AMOUNT_PRECISION, never rounded
  - Cross-entity rules (membership, bill type mismatch) are NOT tested here

No database, no Flask application context: schemas inherit from
marshmallow.Schema directly.
"""

from __future__ import annotations

from decimal import Decimal

import pytest
from marshmallow import ValidationError

from backend.app.errors import ErrorCode
from backend.app.models.bill import BillType
from backend.app.schemas.bill_schema import CreateBillSchema, UpdateBillSchema
from backend.app.schemas.item_schema import ItemSchema, UpdateItemSchema
from backend.app.schemas.trip_schema import CreateTripSchema, JoinTripSchema
from backend.app.services.split_calculator import MAX_AMOUNT, MAX_QUANTITY


# ═══════════════════════════════════════════════════════════════════════════
# Trips
# ═══════════════════════════════════════════════════════════════════════════

class TestCreateTripSchema:

    def test_valid_payload(self):
        result = CreateTripSchema().load({"name": "Lisbon", "join_secret": "sunny-days"})
        assert result == {"name": "Lisbon", "join_secret": "sunny-days"}

    def test_blank_name_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            CreateTripSchema().load({"name": "   ", "join_secret": "sunny-days"})
        assert "name" in exc_info.value.messages

    def test_short_secret_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            CreateTripSchema().load({"name": "Lisbon", "join_secret": "abc"})
        assert "join_secret" in exc_info.value.messages

    def test_missing_fields(self):
        with pytest.raises(ValidationError) as exc_info:
            CreateTripSchema().load({})
        assert set(exc_info.value.messages) == {"name", "join_secret"}

    def test_join_secret_is_never_dumped(self):
        assert CreateTripSchema().dump({"name": "Lisbon", "join_secret": "x"}) == {"name": "Lisbon"}


class TestJoinTripSchema:

    def test_valid_payload(self):
        result = JoinTripSchema().load({"join_code": "a1b2c3d4", "join_secret": "pw"})
        assert result["join_code"] == "a1b2c3d4"

    def test_empty_secret_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            JoinTripSchema().load({"join_code": "a1b2c3d4", "join_secret": ""})
        assert "join_secret" in exc_info.value.messages


# ═══════════════════════════════════════════════════════════════════════════
# Bills
# ═══════════════════════════════════════════════════════════════════════════

class TestCreateBillSchema:

    def _load(self, data: dict):
        return CreateBillSchema().load(data)

    def test_defaults_to_itemized(self):
        result = self._load({"name": "Dinner", "total_amount": "42.50"})
        assert result["bill_type"] == BillType.ITEMIZED
        assert result["total_amount"] == Decimal("42.50")
        assert isinstance(result["total_amount"], Decimal)

    def test_even_bill_type(self):
        result = self._load({"name": "Hotel", "total_amount": "300", "bill_type": "even"})
        assert result["bill_type"] == BillType.EVEN

    def test_zero_total_allowed(self):
        assert self._load({"name": "TBD", "total_amount": "0"})["total_amount"] == Decimal("0")

    def test_three_decimals_rejected_not_rounded(self):
        with pytest.raises(ValidationError) as exc_info:
            self._load({"name": "Dinner", "total_amount": "10.123"})
        assert exc_info.value.messages["total_amount"] == [ErrorCode.INVALID_AMOUNT_PRECISION]

    def test_negative_total_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            self._load({"name": "Dinner", "total_amount": "-5.00"})
        assert exc_info.value.messages["total_amount"] == [ErrorCode.INVALID_AMOUNT]

    def test_largest_total_allowed(self):
        assert self._load({"name": "House", "total_amount": "9999999999.99"})["total_amount"] == MAX_AMOUNT

    @pytest.mark.parametrize("total", ["10000000000.00", "1E+30"])
    def test_total_beyond_column_rejected(self, total):
        with pytest.raises(ValidationError) as exc_info:
            self._load({"name": "House", "total_amount": total})
        assert exc_info.value.messages["total_amount"] == [ErrorCode.INVALID_AMOUNT]

    def test_unknown_bill_type_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            self._load({"name": "Dinner", "total_amount": "5.00", "bill_type": "items"})
        assert exc_info.value.messages["bill_type"] == [ErrorCode.INVALID_BILL_TYPE]

    def test_non_numeric_total_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            self._load({"name": "Dinner", "total_amount": "ten"})
        assert "total_amount" in exc_info.value.messages


class TestUpdateBillSchema:

    def test_bill_type_optional(self):
        result = UpdateBillSchema().load({"name": "Dinner", "total_amount": "12.00"})
        assert result["bill_type"] is None

    def test_total_required(self):
        with pytest.raises(ValidationError) as exc_info:
            UpdateBillSchema().load({"name": "Dinner"})
        assert "total_amount" in exc_info.value.messages


# ═══════════════════════════════════════════════════════════════════════════
# Items
# ═══════════════════════════════════════════════════════════════════════════

class TestItemSchema:

    def _load(self, data: dict):
        return ItemSchema().load(data)

    def test_quantity_defaults_to_one(self):
        result = self._load({"name": "Beer", "unit_price": "4.50"})
        assert result["quantity"] == 1
        assert result["unit_price"] == Decimal("4.50")

    def test_explicit_quantity(self):
        assert self._load({"name": "Beer", "unit_price": "4.50", "quantity": 3})["quantity"] == 3

    @pytest.mark.parametrize("quantity", [0, -1])
    def test_quantity_below_one_rejected(self, quantity):
        with pytest.raises(ValidationError) as exc_info:
            self._load({"name": "Beer", "unit_price": "4.50", "quantity": quantity})
        assert exc_info.value.messages["quantity"] == [ErrorCode.INVALID_QUANTITY]

    def test_float_quantity_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            self._load({"name": "Beer", "unit_price": "4.50", "quantity": 1.5})
        assert "quantity" in exc_info.value.messages

    @pytest.mark.parametrize("quantity", [2**31, 10**20])
    def test_quantity_beyond_integer_column_rejected(self, quantity):
        with pytest.raises(ValidationError) as exc_info:
            self._load({"name": "Rice", "unit_price": "0.01", "quantity": quantity})
        assert exc_info.value.messages["quantity"] == [ErrorCode.INVALID_QUANTITY]

    def test_largest_quantity_allowed(self):
        assert self._load({"name": "Rice", "unit_price": "0.01", "quantity": MAX_QUANTITY})["quantity"] == MAX_QUANTITY

    def test_price_beyond_column_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            self._load({"name": "Yacht", "unit_price": "1E+30"})
        assert exc_info.value.messages["unit_price"] == [ErrorCode.INVALID_AMOUNT]

    def test_price_precision(self):
        with pytest.raises(ValidationError) as exc_info:
            self._load({"name": "Beer", "unit_price": "4.505"})
        assert exc_info.value.messages["unit_price"] == [ErrorCode.INVALID_AMOUNT_PRECISION]


class TestUpdateItemSchema:

    def test_quantity_required(self):
        with pytest.raises(ValidationError) as exc_info:
            UpdateItemSchema().load({"name": "Beer", "unit_price": "4.50"})
        assert exc_info.value.messages["quantity"][0].startswith("Missing data for required field")

    def test_full_payload(self):
        result = UpdateItemSchema().load({"name": "Beer", "unit_price": "4.50", "quantity": 2})
        assert (result["name"], result["unit_price"], result["quantity"]) == ("Beer", Decimal("4.50"), 2)

    def test_quantity_bounds_still_apply(self):
        with pytest.raises(ValidationError) as exc_info:
            UpdateItemSchema().load({"name": "Beer", "unit_price": "4.50", "quantity": 0})
        assert exc_info.value.messages["quantity"] == [ErrorCode.INVALID_QUANTITY]
