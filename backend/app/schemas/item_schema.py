"""
schemas/item_schema.py — Marshmallow schemas for line item endpoints.

Validation responsibility:
  - This file: name, unit_price (0 to MAX_AMOUNT, at most 2 dp),
    quantity from 1 to MAX_QUANTITY.
  - services/item_service.py: BILL_TYPE_MISMATCH, ITEM_NOT_FOUND, FORBIDDEN.

IMPORTANT: Inherits from marshmallow.Schema directly — never ma.Schema.
           See extensions.py for the full explanation.
"""

from __future__ import annotations

from decimal import Decimal

from marshmallow import Schema, ValidationError, fields, validate

from backend.app.errors import ErrorCode
from backend.app.services.split_calculator import MAX_AMOUNT, MAX_QUANTITY


# ── Shared monetary amount validator ──────────────────────────────────────
#
# Same rule as bill_schema.py. Kept local so each schema file stands alone.
# ──────────────────────────────────────────────────────────────────────────

def _validate_monetary_amount(value: Decimal) -> None:
    if value < Decimal("0") or value > MAX_AMOUNT:
        raise ValidationError(ErrorCode.INVALID_AMOUNT)
    if value.as_tuple().exponent < -2:
        raise ValidationError(ErrorCode.INVALID_AMOUNT_PRECISION)


def _validate_non_empty_after_trim(value: str) -> None:
    if not value.strip():
        raise ValidationError("This field must not be blank or contain only whitespace.")


_QUANTITY_RANGE = validate.Range(min=1, max=MAX_QUANTITY, error=ErrorCode.INVALID_QUANTITY)


class ItemSchema(Schema):
    """
    POST /bills/:id/items

    quantity defaults to 1 when omitted.
    """

    name = fields.Str(
        required=True,
        validate=[
            validate.Length(
                min=1,
                max=255,
                error="Item name must be between 1 and 255 characters.",
            ),
            _validate_non_empty_after_trim,
        ],
    )

    unit_price = fields.Decimal(
        required=True,
        validate=_validate_monetary_amount,
    )

    quantity = fields.Int(
        load_default=1,
        strict=True,  # reject floats like 1.0
        validate=_QUANTITY_RANGE,
    )


class UpdateItemSchema(ItemSchema):
    """
    PUT /items/:id

    A full replacement, so quantity is required like the other fields.
    """

    quantity = fields.Int(
        required=True,
        strict=True,
        validate=_QUANTITY_RANGE,
    )
