"""
models/columns.py — Small helpers shared by the model definitions.

No business logic. No imports from services or routes.
"""

from __future__ import annotations

import enum
from datetime import datetime, timezone


def utcnow() -> datetime:
    """Python-side timestamp default. Sub-second precision keeps creation order stable on SQLite."""
    return datetime.now(timezone.utc)


def enum_values(enum_cls: type[enum.Enum]) -> list[str]:
    """Ensure SQLAlchemy stores enum values (e.g., 'even'), not names ('EVEN')."""
    return [member.value for member in enum_cls]
