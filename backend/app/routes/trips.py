"""
routes/trips.py — Trip and membership route handlers.

Layer rules:
  - Parse, validate, call ONE service, commit, return envelope.
  - No business logic. No DB queries. No bare SQL.

Endpoints (base url_prefix=/api/v1/trips):
  POST   /trips                   → 201  create trip (caller becomes first member)
  GET    /trips                   → 200  list caller's trips
  POST   /trips/join              → 200  join by code + secret (idempotent)
  GET    /trips/:id               → 200  trip + members (members only)
  DELETE /trips/:id               → 200  delete trip (creator only)
  DELETE /trips/:id/members/me    → 200  leave trip (idempotent)
  GET    /trips/:id/summary       → 200  who owes what across all bills
"""

from __future__ import annotations

from flask import Blueprint, current_app, g, jsonify, request

from backend.app.extensions import db
from backend.app.middleware.auth_middleware import require_user
from backend.app.routes.serializers import serialize_trip
from backend.app.schemas.trip_schema import CreateTripSchema, JoinTripSchema
from backend.app.services import summary_service, trip_service

trips_bp = Blueprint("trips", __name__)


@trips_bp.route("/", methods=["POST"])
@require_user
def create_trip():
    """POST /trips — Create a trip. The join secret is stored hashed."""
    data = CreateTripSchema().load(request.get_json(force=True) or {})
    trip = trip_service.create_trip(
        name=data["name"],
        join_secret=data["join_secret"],
        creator_id=g.user_id,
        session=db.session,
        bcrypt_rounds=current_app.config["BCRYPT_LOG_ROUNDS"],
        join_code_length=current_app.config["JOIN_CODE_LENGTH"],
    )
    db.session.commit()
    members = trip_service.list_members(trip.id, db.session)
    return jsonify({"data": serialize_trip(trip, members), "warnings": []}), 201


@trips_bp.route("/", methods=["GET"])
@require_user
def list_trips():
    """GET /trips — Trips the caller belongs to, oldest first."""
    trips = trip_service.list_trips_for_user(
        user_id=g.user_id,
        session=db.session,
    )
    return jsonify({
        "data": [serialize_trip(t) for t in trips],
        "warnings": [],
    }), 200


@trips_bp.route("/join", methods=["POST"])
@require_user
def join_trip():
    """POST /trips/join — Join with the public code and the shared secret."""
    data = JoinTripSchema().load(request.get_json(force=True) or {})
    trip = trip_service.join_by_code(
        user_id=g.user_id,
        join_code=data["join_code"],
        join_secret=data["join_secret"],
        session=db.session,
    )
    db.session.commit()
    members = trip_service.list_members(trip.id, db.session)
    return jsonify({"data": serialize_trip(trip, members), "warnings": []}), 200


@trips_bp.route("/<int:trip_id>", methods=["GET"])
@require_user
def get_trip(trip_id: int):
    """GET /trips/:id — Trip details with member list. Caller must be a member."""
    trip = trip_service.get_trip(
        trip_id=trip_id,
        caller_id=g.user_id,
        session=db.session,
    )
    members = trip_service.list_members(trip.id, db.session)
    return jsonify({"data": serialize_trip(trip, members), "warnings": []}), 200


@trips_bp.route("/<int:trip_id>", methods=["DELETE"])
@require_user
def delete_trip(trip_id: int):
    """DELETE /trips/:id — Creator only. Removes bills and memberships with it."""
    trip_service.delete_trip(
        trip_id=trip_id,
        caller_id=g.user_id,
        session=db.session,
    )
    db.session.commit()
    return jsonify({
        "data": {"message": f"Trip {trip_id} deleted."},
        "warnings": [],
    }), 200


@trips_bp.route("/<int:trip_id>/members/me", methods=["DELETE"])
@require_user
def leave_trip(trip_id: int):
    """DELETE /trips/:id/members/me — Leave the trip."""
    trip_service.leave_trip(
        trip_id=trip_id,
        caller_id=g.user_id,
        session=db.session,
    )
    db.session.commit()
    return jsonify({
        "data": {"message": f"You are no longer a member of trip {trip_id}."},
        "warnings": [],
    }), 200


@trips_bp.route("/<int:trip_id>/summary", methods=["GET"])
@require_user
def trip_summary(trip_id: int):
    """GET /trips/:id/summary — Per-bill owed amounts and per-member totals."""
    summary, warnings = summary_service.get_trip_summary(
        trip_id=trip_id,
        caller_id=g.user_id,
        session=db.session,
    )
    return jsonify({"data": summary, "warnings": warnings}), 200
