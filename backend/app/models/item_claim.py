"""
models/item_claim.py — ItemClaim junction table (User <-> BillItem).

No business logic. No imports from services or routes.

A claim means "I share the cost of this item with its other claimants".
Only the current state is kept; unclaiming deletes the row.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backend.app.extensions import db
from backend.app.models.columns import utcnow


class ItemClaim(db.Model):
    __tablename__ = "item_claims"

    __table_args__ = (
        UniqueConstraint("user_id", "item_id", name="uq_item_claims_user_item"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    item_id: Mapped[int] = mapped_column(
        ForeignKey("bill_items.id", ondelete="CASCADE"),
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
        back_populates="item_claims",
    )

    item: Mapped["BillItem"] = relationship(  # noqa: F821
        "BillItem",
        back_populates="claims",
    )

    def __repr__(self) -> str:  # pragma: no cover
        return f"<ItemClaim user_id={self.user_id} item_id={self.item_id}>"
