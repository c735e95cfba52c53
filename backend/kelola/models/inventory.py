from __future__ import annotations

from sqlalchemy import event

from ..extensions import db
from ..errors import ImmutableRecordError
from ..time_utils import to_utc_z
from .enums import StockMovementType, enum_column


class StockMovement(db.Model):
    """
    Append-only record of one stock change.

    quantity is the magnitude; direction comes from type for IN/OUT and from
    stock_after - stock_before for ADJUSTMENT. Rows are never updated or
    deleted; corrections are new compensating movements.
    """
    __tablename__ = "stock_movements"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_movement_quantity_positive"),
        db.Index("ix_movements_variant_type_created", "variant_id", "type", "created_at"),
        db.Index("ix_movements_reference", "reference"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    variant_id = db.Column(db.Integer, db.ForeignKey("product_variants.id"), nullable=False, index=True)

    type = db.Column(enum_column(StockMovementType), nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False)

    stock_before = db.Column(db.Integer, nullable=False)
    stock_after = db.Column(db.Integer, nullable=False)

    reason = db.Column(db.String(255), nullable=False)
    reference = db.Column(db.String(64), nullable=True)

    created_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        index=True,
    )

    variant = db.relationship("ProductVariant", backref=db.backref("movements", lazy="dynamic"))

    @property
    def signed_quantity(self) -> int:
        return self.stock_after - self.stock_before

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "variant_id": self.variant_id,
            "type": self.type.value,
            "quantity": self.quantity,
            "signed_quantity": self.signed_quantity,
            "stock_before": self.stock_before,
            "stock_after": self.stock_after,
            "reason": self.reason,
            "reference": self.reference,
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
        }


@event.listens_for(StockMovement, "before_update")
def _reject_movement_update(mapper, connection, target):
    raise ImmutableRecordError(
        "Stock movements are append-only",
        {"movement_id": target.id, "operation": "update"},
    )


@event.listens_for(StockMovement, "before_delete")
def _reject_movement_delete(mapper, connection, target):
    raise ImmutableRecordError(
        "Stock movements are append-only",
        {"movement_id": target.id, "operation": "delete"},
    )
