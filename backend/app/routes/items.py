"""
routes/items.py — Line item and item claim route handlers.

Registered at url_prefix=/api/v1 (owns /bills/:id/items and /items/:id).

Endpoints:
  POST   /bills/:id/items          → 201  add item (itemized bills only)
  GET    /bills/:id/items          → 200  list items in creation order
  GET    /bills/:id/items/mine     → 200  items the caller has claimed
  GET    /items/:id                → 200  item + claimants
  PUT    /items/:id                → 200  replace name, price, quantity
  DELETE /items/:id                → 200  delete item and its claims (idempotent)
  POST   /items/:id/claims/me      → 200  claim (idempotent)
  DELETE /items/:id/claims/me      → 200  unclaim (idempotent)
"""

from __future__ import annotations

from flask import Blueprint, g, jsonify, request

from backend.app.extensions import db
from backend.app.middleware.auth_middleware import require_user
from backend.app.models.bill_item import BillItem
from backend.app.routes.serializers import serialize_item, serialize_user
from backend.app.schemas.item_schema import ItemSchema, UpdateItemSchema
from backend.app.services import item_service

items_bp = Blueprint("items", __name__)


def _item_with_claimants(item: BillItem) -> dict:
    data = serialize_item(item)
    data["claimants"] = [serialize_user(c.user) for c in item.claims]
    return data


# ── Bill-scoped item routes ────────────────────────────────────────────────

@items_bp.route("/bills/<int:bill_id>/items", methods=["POST"])
@require_user
def create_item(bill_id: int):
    data = ItemSchema().load(request.get_json(force=True) or {})
    item = item_service.create_item(
        bill_id=bill_id,
        caller_id=g.user_id,
        name=data["name"],
        unit_price=data["unit_price"],
        quantity=data["quantity"],
        session=db.session,
    )
    db.session.commit()
    return jsonify({"data": serialize_item(item), "warnings": []}), 201


@items_bp.route("/bills/<int:bill_id>/items", methods=["GET"])
@require_user
def list_items(bill_id: int):
    items = item_service.list_items(
        bill_id=bill_id,
        caller_id=g.user_id,
        session=db.session,
    )
    return jsonify({"data": [serialize_item(i) for i in items], "warnings": []}), 200


@items_bp.route("/bills/<int:bill_id>/items/mine", methods=["GET"])
@require_user
def list_my_items(bill_id: int):
    items = item_service.items_claimed_by(
        user_id=g.user_id,
        bill_id=bill_id,
        session=db.session,
    )
    return jsonify({"data": [serialize_item(i) for i in items], "warnings": []}), 200


# ── Item-ID routes ─────────────────────────────────────────────────────────

@items_bp.route("/items/<int:item_id>", methods=["GET"])
@require_user
def get_item(item_id: int):
    item = item_service.get_item(
        item_id=item_id,
        caller_id=g.user_id,
        session=db.session,
    )
    return jsonify({"data": _item_with_claimants(item), "warnings": []}), 200


@items_bp.route("/items/<int:item_id>", methods=["PUT"])
@require_user
def update_item(item_id: int):
    data = UpdateItemSchema().load(request.get_json(force=True) or {})
    item = item_service.update_item(
        item_id=item_id,
        caller_id=g.user_id,
        name=data["name"],
        unit_price=data["unit_price"],
        quantity=data["quantity"],
        session=db.session,
    )
    db.session.commit()
    return jsonify({"data": _item_with_claimants(item), "warnings": []}), 200


@items_bp.route("/items/<int:item_id>", methods=["DELETE"])
@require_user
def delete_item(item_id: int):
    item_service.delete_item(
        item_id=item_id,
        caller_id=g.user_id,
        session=db.session,
    )
    db.session.commit()
    return jsonify({
        "data": {"message": f"Item {item_id} deleted."},
        "warnings": [],
    }), 200


# ── Claims ─────────────────────────────────────────────────────────────────

@items_bp.route("/items/<int:item_id>/claims/me", methods=["POST"])
@require_user
def claim_item(item_id: int):
    """POST /items/:id/claims/me — Share this item. Claiming twice is fine."""
    item_service.claim(
        user_id=g.user_id,
        item_id=item_id,
        session=db.session,
    )
    db.session.commit()
    users = item_service.claimants_of(item_id, g.user_id, db.session)
    return jsonify({"data": [serialize_user(u) for u in users], "warnings": []}), 200


@items_bp.route("/items/<int:item_id>/claims/me", methods=["DELETE"])
@require_user
def unclaim_item(item_id: int):
    item_service.unclaim(
        user_id=g.user_id,
        item_id=item_id,
        session=db.session,
    )
    db.session.commit()
    users = item_service.claimants_of(item_id, g.user_id, db.session)
    return jsonify({"data": [serialize_user(u) for u in users], "warnings": []}), 200
