from __future__ import annotations

import enum

from ..extensions import db


class StockMovementType(str, enum.Enum):
    IN = "IN"
    OUT = "OUT"
    ADJUSTMENT = "ADJUSTMENT"


class MovementReason(str, enum.Enum):
    SALE = "SALE"
    PRODUCTION = "PRODUCTION"
    MANUAL_ADJUSTMENT = "MANUAL_ADJUSTMENT"


class TransactionType(str, enum.Enum):
    SALE = "SALE"
    PURCHASE = "PURCHASE"


class TransactionStatus(str, enum.Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class UserRole(str, enum.Enum):
    SUPER_ADMIN = "SUPER_ADMIN"
    OWNER = "OWNER"
    ADMIN = "ADMIN"
    STAFF = "STAFF"


class ActivityAction(str, enum.Enum):
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    ADJUST = "ADJUST"
    COMPLETE = "COMPLETE"
    CANCEL = "CANCEL"


def enum_column(enum_cls, length: int = 16):
    """String-backed enum column; values are validated on write and loaded as members."""
    return db.Enum(
        enum_cls,
        native_enum=False,
        length=length,
        validate_strings=True,
        values_callable=lambda members: [m.value for m in members],
    )
