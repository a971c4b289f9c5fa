"""
models/membership.py — Membership junction table (User <-> Trip).

No business logic. No imports from services or routes.

FK policy: user_id and trip_id both ON DELETE CASCADE — a membership is
meaningless once either side is gone.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backend.app.extensions import db
from backend.app.models.columns import utcnow


class Membership(db.Model):
    __tablename__ = "memberships"

    __table_args__ = (
        # A user can only belong to a trip once. Also the recovery point for
        # concurrent joins: the loser of the race hits this and re-reads.
        UniqueConstraint("user_id", "trip_id", name="uq_memberships_user_trip"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    trip_id: Mapped[int] = mapped_column(
        ForeignKey("trips.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    joined_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=func.now(),
    )

    # ── Relationships ──────────────────────────────────────────────────────

    user: Mapped["User"] = relationship(  # noqa: F821
        "User",
        back_populates="memberships",
    )

    trip: Mapped["Trip"] = relationship(  # noqa: F821
        "Trip",
        back_populates="memberships",
    )

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<Membership id={self.id} "
            f"user_id={self.user_id} "
            f"trip_id={self.trip_id}>"
        )
