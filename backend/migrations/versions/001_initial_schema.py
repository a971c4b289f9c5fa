"""Initial schema — all tables, constraints, and indexes.

Revision: 001_initial_schema

Append-only:
  This file must NEVER be edited after it has been applied to any database.
  If a schema change is required, create a NEW migration file.

Creation order (FK dependency order):
  users → trips → memberships → bills → bill_items → item_claims,
  bill_participants

ON DELETE policies:
  trips.created_by_user_id        → SET NULL  (a trip outlives its creator)
  memberships.*                   → CASCADE
  bills.trip_id                   → CASCADE   (bills owned by trip)
  bills.created_by_user_id        → RESTRICT
  bill_items.bill_id              → CASCADE   (items owned by bill)
  item_claims.*                   → CASCADE
  bill_participants.*             → CASCADE

bill_type is a VARCHAR(16) holding 'even' or 'itemized' rather than a
PostgreSQL enum type, so the same schema runs on SQLite in tests.
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

# ── Alembic revision identifiers ──────────────────────────────────────────
revision: str = "001_initial_schema"
down_revision: str | None = None      # first migration — no parent
branch_labels: tuple | None = None
depends_on: tuple | None = None

_NOW = sa.text("CURRENT_TIMESTAMP")


def _created_at(name: str = "created_at") -> sa.Column:
    return sa.Column(name, sa.DateTime(timezone=True), nullable=False, server_default=_NOW)


def upgrade() -> None:

    # ── Step 1: users ──────────────────────────────────────────────────────
    # external_ref is the identity provider's subject; NULL for local-only rows.

    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("display_name", sa.String(255), nullable=False),
        sa.Column("external_ref", sa.String(255), nullable=True),
        _created_at(),
        _created_at("updated_at"),
        sa.PrimaryKeyConstraint("id", name="pk_users"),
        sa.UniqueConstraint("external_ref", name="uq_users_external_ref"),
        sa.CheckConstraint(
            "LENGTH(TRIM(display_name)) > 0",
            name="ck_users_display_name_nonempty",
        ),
    )

    # ── Step 2: trips ──────────────────────────────────────────────────────

    op.create_table(
        "trips",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("join_code", sa.String(50), nullable=False),
        sa.Column("join_secret_hash", sa.String(255), nullable=False),
        sa.Column(
            "created_by_user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="SET NULL", name="fk_trips_creator"),
            nullable=True,
        ),
        _created_at(),
        _created_at("updated_at"),
        sa.PrimaryKeyConstraint("id", name="pk_trips"),
        sa.UniqueConstraint("join_code", name="uq_trips_join_code"),
        sa.CheckConstraint(
            "LENGTH(TRIM(name)) > 0",
            name="ck_trips_name_nonempty",
        ),
    )

    # ── Step 3: memberships ────────────────────────────────────────────────

    op.create_table(
        "memberships",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE", name="fk_memberships_user"),
            nullable=False,
        ),
        sa.Column(
            "trip_id",
            sa.Integer(),
            sa.ForeignKey("trips.id", ondelete="CASCADE", name="fk_memberships_trip"),
            nullable=False,
        ),
        _created_at("joined_at"),
        sa.PrimaryKeyConstraint("id", name="pk_memberships"),
        sa.UniqueConstraint("user_id", "trip_id", name="uq_memberships_user_trip"),
    )

    # ── Step 4: bills ──────────────────────────────────────────────────────

    op.create_table(
        "bills",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column(
            "trip_id",
            sa.Integer(),
            sa.ForeignKey("trips.id", ondelete="CASCADE", name="fk_bills_trip"),
            nullable=False,
        ),
        sa.Column(
            "created_by_user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="RESTRICT", name="fk_bills_creator"),
            nullable=False,
        ),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("total_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column(
            "bill_type",
            sa.String(16),
            nullable=False,
            server_default="itemized",
        ),
        _created_at(),
        _created_at("updated_at"),
        sa.PrimaryKeyConstraint("id", name="pk_bills"),
        sa.CheckConstraint("total_amount >= 0", name="ck_bills_total_amount_nonnegative"),
        sa.CheckConstraint(
            "LENGTH(TRIM(name)) > 0",
            name="ck_bills_name_nonempty",
        ),
    )

    # ── Step 5: bill_items ─────────────────────────────────────────────────

    op.create_table(
        "bill_items",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column(
            "bill_id",
            sa.Integer(),
            sa.ForeignKey("bills.id", ondelete="CASCADE", name="fk_bill_items_bill"),
            nullable=False,
        ),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("unit_price", sa.Numeric(12, 2), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False, server_default="1"),
        _created_at(),
        sa.PrimaryKeyConstraint("id", name="pk_bill_items"),
        sa.CheckConstraint("unit_price >= 0", name="ck_bill_items_unit_price_nonnegative"),
        sa.CheckConstraint("quantity >= 1", name="ck_bill_items_quantity_positive"),
        sa.CheckConstraint(
            "LENGTH(TRIM(name)) > 0",
            name="ck_bill_items_name_nonempty",
        ),
    )

    # ── Step 6: item_claims ────────────────────────────────────────────────

    op.create_table(
        "item_claims",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE", name="fk_item_claims_user"),
            nullable=False,
        ),
        sa.Column(
            "item_id",
            sa.Integer(),
            sa.ForeignKey("bill_items.id", ondelete="CASCADE", name="fk_item_claims_item"),
            nullable=False,
        ),
        _created_at(),
        sa.PrimaryKeyConstraint("id", name="pk_item_claims"),
        sa.UniqueConstraint("user_id", "item_id", name="uq_item_claims_user_item"),
    )

    # ── Step 7: bill_participants ──────────────────────────────────────────

    op.create_table(
        "bill_participants",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE", name="fk_bill_participants_user"),
            nullable=False,
        ),
        sa.Column(
            "bill_id",
            sa.Integer(),
            sa.ForeignKey("bills.id", ondelete="CASCADE", name="fk_bill_participants_bill"),
            nullable=False,
        ),
        _created_at(),
        sa.PrimaryKeyConstraint("id", name="pk_bill_participants"),
        sa.UniqueConstraint("user_id", "bill_id", name="uq_bill_participants_user_bill"),
    )

    # ── Step 8: indexes ────────────────────────────────────────────────────
    # Names match SQLAlchemy's ix_<table>_<column> so autogenerate stays quiet.

    op.create_index("ix_memberships_user_id",       "memberships",       ["user_id"])
    op.create_index("ix_memberships_trip_id",       "memberships",       ["trip_id"])
    op.create_index("ix_bills_trip_id",             "bills",             ["trip_id"])
    op.create_index("ix_bill_items_bill_id",        "bill_items",        ["bill_id"])
    op.create_index("ix_item_claims_user_id",       "item_claims",       ["user_id"])
    op.create_index("ix_item_claims_item_id",       "item_claims",       ["item_id"])
    op.create_index("ix_bill_participants_user_id", "bill_participants", ["user_id"])
    op.create_index("ix_bill_participants_bill_id", "bill_participants", ["bill_id"])


def downgrade() -> None:
    """
    Drop all objects created in upgrade(), in reverse dependency order.
    For local development reset only; prefer corrective migrations.
    """
    op.drop_index("ix_bill_participants_bill_id", table_name="bill_participants")
    op.drop_index("ix_bill_participants_user_id", table_name="bill_participants")
    op.drop_index("ix_item_claims_item_id",       table_name="item_claims")
    op.drop_index("ix_item_claims_user_id",       table_name="item_claims")
    op.drop_index("ix_bill_items_bill_id",        table_name="bill_items")
    op.drop_index("ix_bills_trip_id",             table_name="bills")
    op.drop_index("ix_memberships_trip_id",       table_name="memberships")
    op.drop_index("ix_memberships_user_id",       table_name="memberships")

    op.drop_table("bill_participants")
    op.drop_table("item_claims")
    op.drop_table("bill_items")
    op.drop_table("bills")
    op.drop_table("memberships")
    op.drop_table("trips")
    op.drop_table("users")
