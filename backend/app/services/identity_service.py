"""
services/identity_service.py — Maps external identities to local users.

Identity verification belongs to the external provider. This service only
answers "which local user is this subject?" and creates the row the first
time a subject shows up, either through a signed-in request (resolve_user)
or through the provider's user webhook (sync_from_webhook_event).

Duplicate-key race:
  Two first requests for the same subject can both miss the SELECT and both
  INSERT. The unique index on users.external_ref lets exactly one win. The
  loser's INSERT runs inside a savepoint; on IntegrityError only that
  savepoint is rolled back and the winner's row is re-read. The caller
  never sees the conflict.

Layer rules:
  - No Flask imports. Receives a SQLAlchemy session; returns ORM objects.
  - Flushes only; the route (or auth decorator) commits.
"""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from backend.app.errors import ErrorCode, NotFoundError
from backend.app.models.columns import utcnow
from backend.app.models.user import User

logger = logging.getLogger(__name__)

DEFAULT_DISPLAY_NAME = "Unknown User"
_MAX_DISPLAY_NAME = 255

# Provider events that carry a user profile.
USER_EVENTS = frozenset({"user.created", "user.updated"})


# ── Private helpers ────────────────────────────────────────────────────────

def _clean_display_name(name: str | None) -> str | None:
    if name is None:
        return None
    cleaned = " ".join(str(name).split())
    return cleaned[:_MAX_DISPLAY_NAME] or None


def _insert_user(external_ref: str, display_name: str, session: Session) -> User:
    """Attempts the INSERT half of the compare-and-swap."""
    user = User(external_ref=external_ref, display_name=display_name)
    with session.begin_nested():
        session.add(user)
        session.flush()
    return user


# ── Public service functions ───────────────────────────────────────────────

def display_name_from_profile(profile: dict) -> str:
    """
    Picks the best human-readable name from a token's claims or a webhook
    user payload. Full name first, then username, then the e-mail local part,
    then the subject itself.
    """
    full_name = _clean_display_name(profile.get("name"))
    if full_name:
        return full_name

    first = profile.get("first_name") or profile.get("given_name")
    last = profile.get("last_name") or profile.get("family_name")
    if first and last:
        return _clean_display_name(f"{first} {last}")

    for key in ("username", "preferred_username", "nickname"):
        value = _clean_display_name(profile.get(key))
        if value:
            return value

    email = profile.get("email")
    if not email:
        addresses = profile.get("email_addresses") or []
        if addresses and isinstance(addresses[0], dict):
            email = addresses[0].get("email_address")
    if email and "@" in email:
        local_part = _clean_display_name(email.split("@", 1)[0])
        if local_part:
            return local_part

    fallback = _clean_display_name(first) or _clean_display_name(profile.get("sub") or profile.get("id"))
    return fallback or DEFAULT_DISPLAY_NAME


def get_user_by_external_ref(external_ref: str, session: Session) -> User | None:
    return session.execute(
        select(User).where(User.external_ref == external_ref)
    ).scalar_one_or_none()


def get_user_or_404(user_id: int, session: Session) -> User:
    """Returns the User or raises USER_NOT_FOUND (404)."""
    user = session.get(User, user_id)
    if user is None:
        raise NotFoundError(
            ErrorCode.USER_NOT_FOUND,
            f"User {user_id} does not exist.",
        )
    return user


def resolve_user(
        external_ref: str,
        display_name: str | None,
        session: Session,
) -> User:
    """
    Returns the local user for `external_ref`, creating it on first sight.

    An existing user's display name is left alone here; profile changes
    arrive through the provider webhook.
    """
    existing = get_user_by_external_ref(external_ref, session)
    if existing is not None:
        return existing

    name = _clean_display_name(display_name) or DEFAULT_DISPLAY_NAME

    try:
        user = _insert_user(external_ref, name, session)
    except IntegrityError:
        # Lost the race against a concurrent first request for the same
        # subject. Our savepoint is gone; adopt the row that won.
        winner = get_user_by_external_ref(external_ref, session)
        if winner is None:
            raise
        logger.info(
            "Duplicate user insert for external_ref=%s recovered; using user %s",
            external_ref,
            winner.id,
        )
        return winner

    logger.info("Created local user %s for external_ref=%s", user.id, external_ref)
    return user


def sync_from_webhook_event(event: dict, session: Session) -> User | None:
    """
    Applies a provider user event to the local user table.

    user.created / user.updated: upsert by external id and refresh the
    display name. Any other event type is ignored and returns None.
    """
    event_type = event.get("type")
    if event_type not in USER_EVENTS:
        logger.debug("Ignoring identity webhook event type %r", event_type)
        return None

    data = event.get("data") or {}
    external_ref = data.get("id")
    if not external_ref:
        logger.warning("Identity webhook %s event has no user id; ignored", event_type)
        return None

    display_name = display_name_from_profile(data)
    user = resolve_user(str(external_ref), display_name, session)

    if user.display_name != display_name:
        logger.info(
            "Updating display name of user %s from %r to %r",
            user.id,
            user.display_name,
            display_name,
        )
        user.display_name = display_name
        user.updated_at = utcnow()
        session.flush()

    return user
