"""
routes/identity.py — Current user and identity provider webhook.

Endpoints (base url_prefix=/api/v1):
  GET  /me                  → 200  the local user behind the bearer token
  POST /identity/webhook    → 200  provider user events (svix-signed)

The webhook is authenticated by its svix signature, not by a bearer token.
"""

from __future__ import annotations

import json

from flask import Blueprint, current_app, g, jsonify, request
from svix.webhooks import Webhook, WebhookVerificationError

from backend.app.errors import AppError, ErrorCode
from backend.app.extensions import db
from backend.app.middleware.auth_middleware import require_user
from backend.app.routes.serializers import serialize_user
from backend.app.services import identity_service

identity_bp = Blueprint("identity", __name__)


@identity_bp.route("/me", methods=["GET"])
@require_user
def get_me():
    user = identity_service.get_user_or_404(g.user_id, db.session)
    data = serialize_user(user)
    data["external_ref"] = user.external_ref
    return jsonify({"data": data, "warnings": []}), 200


@identity_bp.route("/identity/webhook", methods=["POST"])
def identity_webhook():
    """
    POST /identity/webhook — user.created / user.updated from the provider.

    Other event types are acknowledged and ignored so the provider does not
    retry them.
    """
    secret = current_app.config.get("IDENTITY_WEBHOOK_SECRET")
    if not secret:
        raise AppError(
            ErrorCode.WEBHOOK_NOT_CONFIGURED,
            "Identity webhook secret is not configured.",
            503,
        )

    payload = request.get_data()
    try:
        Webhook(secret).verify(payload, dict(request.headers))
    except WebhookVerificationError:
        current_app.logger.warning("Rejected identity webhook with a bad signature")
        raise AppError(
            ErrorCode.INVALID_WEBHOOK,
            "Webhook signature verification failed.",
            400,
        )

    # verify() only checks the signature; newer svix releases return None.
    try:
        event = json.loads(payload)
    except ValueError:
        event = None
    if not isinstance(event, dict):
        current_app.logger.warning("Rejected signed identity webhook with a non-object body")
        raise AppError(
            ErrorCode.INVALID_WEBHOOK,
            "Webhook body must be a JSON object.",
            400,
        )

    user = identity_service.sync_from_webhook_event(event, db.session)
    db.session.commit()

    return jsonify({
        "data": {
            "event_type": event.get("type"),
            "user": serialize_user(user) if user is not None else None,
        },
        "warnings": [],
    }), 200
