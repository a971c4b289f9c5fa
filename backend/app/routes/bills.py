"""
routes/bills.py — Bill and even-split participation route handlers.

Registered at url_prefix=/api/v1 because this blueprint owns both the
trip-scoped paths (/trips/:id/bills) and the bill-ID paths (/bills/:id).

Layer rules:
  - Parse, validate, call ONE service, commit, return envelope.
  - No business logic. No DB queries. No bare SQL.

Endpoints:
  POST   /trips/:id/bills               → 201  create bill
  GET    /trips/:id/bills               → 200  list bills, oldest first
  GET    /bills/:id                     → 200  bill + participants or items
  PUT    /bills/:id                     → 200  replace name/total, optionally type
  DELETE /bills/:id                     → 200  delete (idempotent)
  GET    /bills/:id/participants        → 200  users opted in (even bills)
  POST   /bills/:id/participants/me     → 200  opt in (idempotent)
  DELETE /bills/:id/participants/me     → 200  opt out (idempotent)
  GET    /bills/:id/split               → 200  who owes what on this bill
"""

from __future__ import annotations

from flask import Blueprint, g, jsonify, request

from backend.app.extensions import db
from backend.app.middleware.auth_middleware import require_user
from backend.app.routes.serializers import serialize_bill, serialize_user
from backend.app.schemas.bill_schema import CreateBillSchema, UpdateBillSchema
from backend.app.services import bill_service, summary_service

bills_bp = Blueprint("bills", __name__)


# ── Trip-scoped bill routes ────────────────────────────────────────────────

@bills_bp.route("/trips/<int:trip_id>/bills", methods=["POST"])
@require_user
def create_bill(trip_id: int):
    """POST /trips/:id/bills — Add a bill. bill_type defaults to 'itemized'."""
    data = CreateBillSchema().load(request.get_json(force=True) or {})
    bill = bill_service.create_bill(
        trip_id=trip_id,
        creator_id=g.user_id,
        name=data["name"],
        total_amount=data["total_amount"],
        bill_type=data["bill_type"],
        session=db.session,
    )
    db.session.commit()
    return jsonify({"data": serialize_bill(bill, include_children=True), "warnings": []}), 201


@bills_bp.route("/trips/<int:trip_id>/bills", methods=["GET"])
@require_user
def list_bills(trip_id: int):
    bills = bill_service.list_bills(
        trip_id=trip_id,
        caller_id=g.user_id,
        session=db.session,
    )
    return jsonify({
        "data": [serialize_bill(b) for b in bills],
        "warnings": [],
    }), 200


# ── Bill-ID routes ─────────────────────────────────────────────────────────

@bills_bp.route("/bills/<int:bill_id>", methods=["GET"])
@require_user
def get_bill(bill_id: int):
    bill = bill_service.get_bill(
        bill_id=bill_id,
        caller_id=g.user_id,
        session=db.session,
    )
    return jsonify({"data": serialize_bill(bill, include_children=True), "warnings": []}), 200


@bills_bp.route("/bills/<int:bill_id>", methods=["PUT"])
@require_user
def update_bill(bill_id: int):
    """
    PUT /bills/:id — Replace name and total.
    Changing bill_type deletes the participants or items of the old mode.
    """
    data = UpdateBillSchema().load(request.get_json(force=True) or {})
    bill = bill_service.update_bill(
        bill_id=bill_id,
        caller_id=g.user_id,
        name=data["name"],
        total_amount=data["total_amount"],
        bill_type=data["bill_type"],
        session=db.session,
    )
    db.session.commit()
    return jsonify({"data": serialize_bill(bill, include_children=True), "warnings": []}), 200


@bills_bp.route("/bills/<int:bill_id>", methods=["DELETE"])
@require_user
def delete_bill(bill_id: int):
    bill_service.delete_bill(
        bill_id=bill_id,
        caller_id=g.user_id,
        session=db.session,
    )
    db.session.commit()
    return jsonify({
        "data": {"message": f"Bill {bill_id} deleted."},
        "warnings": [],
    }), 200


# ── Even-split participation ───────────────────────────────────────────────

@bills_bp.route("/bills/<int:bill_id>/participants", methods=["GET"])
@require_user
def list_participants(bill_id: int):
    users = bill_service.participants_of(
        bill_id=bill_id,
        caller_id=g.user_id,
        session=db.session,
    )
    return jsonify({"data": [serialize_user(u) for u in users], "warnings": []}), 200


@bills_bp.route("/bills/<int:bill_id>/participants/me", methods=["POST"])
@require_user
def opt_in(bill_id: int):
    """POST /bills/:id/participants/me — Share this even bill."""
    bill_service.opt_in(
        user_id=g.user_id,
        bill_id=bill_id,
        session=db.session,
    )
    db.session.commit()
    users = bill_service.participants_of(bill_id, g.user_id, db.session)
    return jsonify({"data": [serialize_user(u) for u in users], "warnings": []}), 200


@bills_bp.route("/bills/<int:bill_id>/participants/me", methods=["DELETE"])
@require_user
def opt_out(bill_id: int):
    bill_service.opt_out(
        user_id=g.user_id,
        bill_id=bill_id,
        session=db.session,
    )
    db.session.commit()
    users = bill_service.participants_of(bill_id, g.user_id, db.session)
    return jsonify({"data": [serialize_user(u) for u in users], "warnings": []}), 200


@bills_bp.route("/bills/<int:bill_id>/split", methods=["GET"])
@require_user
def bill_split(bill_id: int):
    """GET /bills/:id/split — Owed amounts per user, plus the caller's own."""
    split, warnings = summary_service.get_bill_split(
        bill_id=bill_id,
        caller_id=g.user_id,
        session=db.session,
    )
    return jsonify({"data": split, "warnings": warnings}), 200
