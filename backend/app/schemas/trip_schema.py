"""
schemas/trip_schema.py — Marshmallow schemas for trip and membership endpoints.

Validation responsibility:
  - This file: field types, string lengths, non-empty checks (including trim).
  - services/trip_service.py:
      - TRIP_NOT_FOUND (no trip has the join code)
      - INVALID_JOIN_SECRET (bcrypt comparison against the stored hash)
      - FORBIDDEN (caller must be a member / the creator)

IMPORTANT: Inherits from marshmallow.Schema directly — never ma.Schema.
           See extensions.py for the full explanation.
"""

from __future__ import annotations

from marshmallow import Schema, ValidationError, fields, validate


def _validate_non_empty_after_trim(value: str) -> None:
    """
    Raises ValidationError if the string is blank or contains only whitespace.
    Mirrors the DB CHECK(LENGTH(TRIM(name)) > 0) constraint at the API layer.
    """
    if not value.strip():
        raise ValidationError("This field must not be blank or contain only whitespace.")


class CreateTripSchema(Schema):
    """
    POST /trips

    The join secret is hashed by trip_service before it is stored; it is
    never echoed back in any response.
    """

    name = fields.Str(
        required=True,
        validate=[
            validate.Length(
                min=1,
                max=255,
                error="Trip name must be between 1 and 255 characters.",
            ),
            _validate_non_empty_after_trim,
        ],
    )

    join_secret = fields.Str(
        required=True,
        load_only=True,
        validate=validate.Length(
            min=4,
            max=128,
            error="Join secret must be between 4 and 128 characters.",
        ),
    )


class JoinTripSchema(Schema):
    """POST /trips/join"""

    join_code = fields.Str(
        required=True,
        validate=[
            validate.Length(max=50, error="Join code must be at most 50 characters."),
            _validate_non_empty_after_trim,
        ],
    )

    # Length is not checked here: a wrong secret of any length is simply wrong.
    join_secret = fields.Str(
        required=True,
        load_only=True,
        validate=validate.Length(min=1, error="Join secret must not be empty."),
    )
