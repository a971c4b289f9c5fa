"""
models/bill_item.py — BillItem table definition.

No business logic. No imports from services or routes.

Line items exist only under itemized bills. Line cost is
unit_price * quantity; the claimants of an item share that cost.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Integer, Numeric, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backend.app.extensions import db
from backend.app.models.columns import utcnow


class BillItem(db.Model):
    __tablename__ = "bill_items"

    __table_args__ = (
        CheckConstraint("unit_price >= 0", name="ck_bill_items_unit_price_nonnegative"),
        CheckConstraint("quantity >= 1", name="ck_bill_items_quantity_positive"),
        CheckConstraint(
            "LENGTH(TRIM(name)) > 0",
            name="ck_bill_items_name_nonempty",
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    bill_id: Mapped[int] = mapped_column(
        ForeignKey("bills.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    unit_price: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
    )

    quantity: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=1,
        server_default="1",
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=func.now(),
    )

    # ── Relationships ──────────────────────────────────────────────────────

    bill: Mapped["Bill"] = relationship(  # noqa: F821
        "Bill",
        back_populates="items",
    )

    claims: Mapped[list["ItemClaim"]] = relationship(  # noqa: F821
        "ItemClaim",
        back_populates="item",
        cascade="all, delete-orphan",
        order_by="ItemClaim.user_id",
    )

    @property
    def line_cost(self) -> Decimal:
        return self.unit_price * self.quantity

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<BillItem id={self.id} "
            f"bill_id={self.bill_id} "
            f"unit_price={self.unit_price} "
            f"quantity={self.quantity}>"
        )
