"""
models/bill.py — Bill table definition.

No business logic. No imports from services or routes.

Key design points:
  - `total_amount` uses Numeric(12, 2) — never Float.
  - `bill_type` decides how the total is divided: 'even' bills are shared by
    opted-in participants, 'itemized' bills by claims on their line items.
    The two relations are mutually exclusive; bill_service keeps it that way.
  - Items, their claims, and participants are owned by the bill and go with it.
"""

from __future__ import annotations

import enum
from datetime import datetime
from decimal import Decimal

from sqlalchemy import CheckConstraint, DateTime, Enum, ForeignKey, Numeric, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backend.app.extensions import db
from backend.app.models.columns import enum_values, utcnow


class BillType(str, enum.Enum):
    EVEN     = "even"
    ITEMIZED = "itemized"


class Bill(db.Model):
    __tablename__ = "bills"

    __table_args__ = (
        CheckConstraint("total_amount >= 0", name="ck_bills_total_amount_nonnegative"),
        CheckConstraint(
            "LENGTH(TRIM(name)) > 0",
            name="ck_bills_name_nonempty",
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    trip_id: Mapped[int] = mapped_column(
        ForeignKey("trips.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    created_by_user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id"),
        nullable=False,
    )

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    total_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
    )

    # Stored as VARCHAR so the same model runs on PostgreSQL and SQLite.
    bill_type: Mapped[BillType] = mapped_column(
        Enum(
            BillType,
            name="bill_type_enum",
            native_enum=False,
            length=16,
            values_callable=enum_values,
        ),
        nullable=False,
        default=BillType.ITEMIZED,
        server_default=BillType.ITEMIZED.value,
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

    trip: Mapped["Trip"] = relationship(  # noqa: F821
        "Trip",
        back_populates="bills",
    )

    creator: Mapped["User"] = relationship(  # noqa: F821
        "User",
        foreign_keys=[created_by_user_id],
    )

    items: Mapped[list["BillItem"]] = relationship(  # noqa: F821
        "BillItem",
        back_populates="bill",
        cascade="all, delete-orphan",
        order_by="[BillItem.created_at, BillItem.id]",
    )

    participants: Mapped[list["BillParticipant"]] = relationship(  # noqa: F821
        "BillParticipant",
        back_populates="bill",
        cascade="all, delete-orphan",
        order_by="BillParticipant.user_id",
    )

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<Bill id={self.id} "
            f"trip_id={self.trip_id} "
            f"type={self.bill_type.value} "
            f"total={self.total_amount}>"
        )
