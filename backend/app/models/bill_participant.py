"""
models/bill_participant.py — BillParticipant junction table (User <-> Bill).

No business logic. No imports from services or routes.

Rows exist only for 'even' bills: each row is a user who opted in to share
the bill total evenly with the other participants.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backend.app.extensions import db
from backend.app.models.columns import utcnow


class BillParticipant(db.Model):
    __tablename__ = "bill_participants"

    __table_args__ = (
        UniqueConstraint("user_id", "bill_id", name="uq_bill_participants_user_bill"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    bill_id: Mapped[int] = mapped_column(
        ForeignKey("bills.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=func.now(),
    )

    # ── Relationships ──────────────────────────────────────────────────────

    user: Mapped["User"] = relationship(  # noqa: F821
        "User",
        back_populates="bill_participations",
    )

    bill: Mapped["Bill"] = relationship(  # noqa: F821
        "Bill",
        back_populates="participants",
    )

    def __repr__(self) -> str:  # pragma: no cover
        return f"<BillParticipant user_id={self.user_id} bill_id={self.bill_id}>"
