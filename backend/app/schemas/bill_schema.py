"""
schemas/bill_schema.py — Marshmallow schemas for bill endpoints.

Validation responsibility:
  - This file:
      - Field types, name length and non-empty-after-trim
      - total_amount: Decimal, 0 to MAX_AMOUNT, at most 2 dp
        (INVALID_AMOUNT / INVALID_AMOUNT_PRECISION)
      - bill_type: 'even' or 'itemized' (INVALID_BILL_TYPE)
  - services/bill_service.py:
      - BILL_NOT_FOUND / TRIP_NOT_FOUND (DB lookups)
      - FORBIDDEN (trip membership)
      - BILL_TYPE_MISMATCH (requires the stored bill)

IMPORTANT: Inherits from marshmallow.Schema directly — never ma.Schema.
           See extensions.py for the full explanation.
"""

from __future__ import annotations

from decimal import Decimal

from marshmallow import Schema, ValidationError, fields, validate

from backend.app.errors import ErrorCode
from backend.app.models.bill import BillType
from backend.app.services.split_calculator import MAX_AMOUNT


# ── Shared monetary amount validator ──────────────────────────────────────
#
# Zero is a valid bill total (a placeholder bill before prices are known).
# Anything above MAX_AMOUNT does not fit the NUMERIC(12, 2) column.
# Input with more than 2 decimal places is REJECTED with
# INVALID_AMOUNT_PRECISION, never rounded or truncated.
# ──────────────────────────────────────────────────────────────────────────

def _validate_monetary_amount(value: Decimal) -> None:
    if value < Decimal("0") or value > MAX_AMOUNT:
        raise ValidationError(ErrorCode.INVALID_AMOUNT)

    # Decimal("10.123").as_tuple().exponent == -3 → 3 dp → REJECT
    if value.as_tuple().exponent < -2:
        raise ValidationError(ErrorCode.INVALID_AMOUNT_PRECISION)


def _validate_non_empty_after_trim(value: str) -> None:
    if not value.strip():
        raise ValidationError("This field must not be blank or contain only whitespace.")


_NAME_VALIDATORS = [
    validate.Length(
        min=1,
        max=255,
        error="Bill name must be between 1 and 255 characters.",
    ),
    _validate_non_empty_after_trim,
]


class CreateBillSchema(Schema):
    """
    POST /trips/:id/bills

    bill_type defaults to 'itemized' when omitted.
    """

    name = fields.Str(required=True, validate=_NAME_VALIDATORS)

    total_amount = fields.Decimal(
        required=True,
        validate=_validate_monetary_amount,
    )

    bill_type = fields.Enum(
        BillType,
        by_value=True,
        load_default=BillType.ITEMIZED,
        error_messages={"unknown": ErrorCode.INVALID_BILL_TYPE},
    )


class UpdateBillSchema(Schema):
    """
    PUT /bills/:id

    name and total_amount are replaced. bill_type is optional; when it
    differs from the stored type, the rows of the old mode are cleared.
    """

    name = fields.Str(required=True, validate=_NAME_VALIDATORS)

    total_amount = fields.Decimal(
        required=True,
        validate=_validate_monetary_amount,
    )

    bill_type = fields.Enum(
        BillType,
        by_value=True,
        load_default=None,
        error_messages={"unknown": ErrorCode.INVALID_BILL_TYPE},
    )
