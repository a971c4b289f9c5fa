"""
routes/health.py — Liveness and database connectivity check.

GET /api/v1/health → 200 {"data": {"status": "ok", "database": "ok"}}
A failing database surfaces as STORAGE_ERROR (503) via the global handler.
"""

from __future__ import annotations

from flask import Blueprint, jsonify
from sqlalchemy import text

from backend.app.extensions import db

health_bp = Blueprint("health", __name__)


@health_bp.route("/health", methods=["GET"])
def health():
    db.session.execute(text("SELECT 1"))
    return jsonify({"data": {"status": "ok", "database": "ok"}, "warnings": []}), 200
