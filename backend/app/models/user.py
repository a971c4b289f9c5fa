"""
models/user.py — User table definition.

No business logic. No imports from services or routes.

Users are created lazily the first time the identity provider vouches for
them (see services/identity_service.py). `external_ref` is the provider's
subject identifier; it is unique so that one external identity maps to
exactly one local row, even when two first requests race.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backend.app.extensions import db
from backend.app.models.columns import utcnow


class User(db.Model):
    __tablename__ = "users"

    __table_args__ = (
        CheckConstraint(
            "LENGTH(TRIM(display_name)) > 0",
            name="ck_users_display_name_nonempty",
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    display_name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    # Nullable: demo users seeded from the CLI have no external identity.
    external_ref: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
        unique=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=func.now(),
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=func.now(),
    )

    # ── Relationships ──────────────────────────────────────────────────────

    memberships: Mapped[list["Membership"]] = relationship(  # noqa: F821
        "Membership",
        back_populates="user",
        cascade="all, delete-orphan",
    )

    item_claims: Mapped[list["ItemClaim"]] = relationship(  # noqa: F821
        "ItemClaim",
        back_populates="user",
        cascade="all, delete-orphan",
    )

    bill_participations: Mapped[list["BillParticipant"]] = relationship(  # noqa: F821
        "BillParticipant",
        back_populates="user",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:  # pragma: no cover
        return f"<User id={self.id} display_name={self.display_name!r}>"
