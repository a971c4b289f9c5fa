"""
models/trip.py — Trip table definition.

No business logic. No imports from services or routes.

A trip is joined with a public `join_code` plus a shared passphrase. Only the
bcrypt hash of the passphrase is stored.

FK policy: created_by_user_id ON DELETE SET NULL — a trip outlives its creator.
Memberships and bills are owned by the trip and cascade on delete.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backend.app.extensions import db
from backend.app.models.columns import utcnow


class Trip(db.Model):
    __tablename__ = "trips"

    __table_args__ = (
        CheckConstraint(
            "LENGTH(TRIM(name)) > 0",
            name="ck_trips_name_nonempty",
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    join_code: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        unique=True,
    )

    join_secret_hash: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    created_by_user_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
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

    creator: Mapped["User"] = relationship(  # noqa: F821
        "User",
        foreign_keys=[created_by_user_id],
    )

    memberships: Mapped[list["Membership"]] = relationship(  # noqa: F821
        "Membership",
        back_populates="trip",
        cascade="all, delete-orphan",
    )

    bills: Mapped[list["Bill"]] = relationship(  # noqa: F821
        "Bill",
        back_populates="trip",
        cascade="all, delete-orphan",
        order_by="[Bill.created_at, Bill.id]",
    )

    def __repr__(self) -> str:  # pragma: no cover
        return f"<Trip id={self.id} name={self.name!r} join_code={self.join_code!r}>"
