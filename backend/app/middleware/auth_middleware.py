"""
middleware/auth_middleware.py — Identity token authentication decorators.

Tokens are issued by the external identity provider; this service never
issues them. Verification uses PyJWT with the configured shared secret and
algorithm, plus `aud` / `iss` checks when those are configured.

@require_user:
  1. Reads the Authorization header (expected: "Bearer <token>")
  2. Decodes and verifies the JWT (signature, expiry, audience, issuer)
  3. Attaches the provider subject to flask.g.external_ref and the verified
     claims to flask.g.token_claims
  4. Maps the subject to a local user (creating it on first sight) and
     attaches the local id to flask.g.user_id

Strict responsibility boundary:
  - Middleware = authentication (401). Trip membership and ownership are
    authorization (403) and belong in the service layer.
  - Services receive user_id as a plain integer argument, with no knowledge
    of JWT or HTTP headers.

Error codes:
  TOKEN_MISSING  (401) — no Authorization header
  TOKEN_INVALID  (401) — malformed header, invalid signature, or bad payload
  TOKEN_EXPIRED  (401) — valid token but exp claim is in the past
"""

from __future__ import annotations

import functools
from typing import Callable

import jwt
from flask import current_app, g, request

from backend.app.errors import AppError, ErrorCode
from backend.app.extensions import db
from backend.app.services import identity_service


def require_user(f: Callable) -> Callable:
    """
    Route decorator: authenticate, then resolve the local user.

    Raises AppError for all auth failures — the global error handler converts
    these to the correct JSON response. Routes never catch AppError.

    Usage:
        @trips_bp.route("", methods=["GET"])
        @require_user
        def list_trips():
            user_id = g.user_id  # always an int when this runs
            ...

    The user row is committed before the view runs, so a failed view that
    rolls back cannot undo it.
    """
    @functools.wraps(f)
    def decorated(*args, **kwargs):
        _authenticate_request()
        _resolve_local_user()
        return f(*args, **kwargs)

    return decorated


def _decode_options() -> dict:
    config = current_app.config
    kwargs = {
        "algorithms": [config.get("IDENTITY_JWT_ALGORITHM", "HS256")],
        "options": {"require": ["sub", "exp"]},
    }
    if config.get("IDENTITY_JWT_AUDIENCE"):
        kwargs["audience"] = config["IDENTITY_JWT_AUDIENCE"]
    else:
        kwargs["options"]["verify_aud"] = False
    if config.get("IDENTITY_JWT_ISSUER"):
        kwargs["issuer"] = config["IDENTITY_JWT_ISSUER"]
    return kwargs


def _authenticate_request() -> None:
    """
    Performs the full token verification sequence and sets
    flask.g.external_ref and flask.g.token_claims.

    Separated from the decorator wrapper for testability — can be called
    directly in tests without wrapping a real view function.
    """
    auth_header = request.headers.get("Authorization", "")

    # ── Step 1: Require Authorization header ──────────────────────────────
    if not auth_header:
        raise AppError(
            ErrorCode.TOKEN_MISSING,
            "Authentication required. Provide a Bearer token in the Authorization header.",
            401,
        )

    # ── Step 2: Parse "Bearer <token>" format ─────────────────────────────
    parts = auth_header.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise AppError(
            ErrorCode.TOKEN_INVALID,
            "Authorization header must be in the format: Bearer <token>.",
            401,
        )

    raw_token = parts[1]

    # ── Step 3: Decode and verify the JWT ─────────────────────────────────
    try:
        claims = jwt.decode(
            raw_token,
            current_app.config["IDENTITY_JWT_SECRET"],
            **_decode_options(),
        )
    except jwt.ExpiredSignatureError:
        raise AppError(
            ErrorCode.TOKEN_EXPIRED,
            "The identity token has expired. Sign in again to obtain a new one.",
            401,
        )
    except jwt.InvalidTokenError:
        # Covers: bad signature, malformed token, wrong audience/issuer,
        # missing required claims.
        raise AppError(
            ErrorCode.TOKEN_INVALID,
            "The identity token is invalid or has been tampered with.",
            401,
        )

    # ── Step 4: Validate the sub (external identity) claim ────────────────
    sub = claims.get("sub")
    if not isinstance(sub, str) or not sub.strip():
        raise AppError(
            ErrorCode.TOKEN_INVALID,
            "The identity token's 'sub' claim must be a non-empty string.",
            401,
        )

    g.external_ref = sub.strip()
    g.token_claims = claims


def _resolve_local_user() -> None:
    user = identity_service.resolve_user(
        external_ref=g.external_ref,
        display_name=identity_service.display_name_from_profile(g.token_claims),
        session=db.session,
    )
    db.session.commit()
    g.user_id = user.id
