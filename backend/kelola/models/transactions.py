from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z
from .enums import TransactionStatus, TransactionType, enum_column


class Transaction(db.Model):
    """
    Order header for a SALE or a PURCHASE (production order).

    LIFECYCLE:
    - SALE: created COMPLETED; stock is deducted in the same DB transaction.
    - PURCHASE: created PENDING with no stock effect, then COMPLETED exactly
      once (stock is added at that moment) or CANCELLED.

    supplier_id points at the dual-purpose party table: the customer of a
    sale or the supplier of a purchase.
    """
    __tablename__ = "transactions"
    __table_args__ = (
        db.Index("ix_transactions_type_status_date", "type", "status", "transaction_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    type = db.Column(enum_column(TransactionType), nullable=False, index=True)
    invoice_number = db.Column(db.String(64), nullable=False, unique=True)
    status = db.Column(
        enum_column(TransactionStatus),
        nullable=False,
        default=TransactionStatus.PENDING,
        index=True,
    )

    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=True, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)

    subtotal_cents = db.Column(db.Integer, nullable=False, default=0)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    tax_percent = db.Column(db.Numeric(5, 2), nullable=False, default=0)
    tax_cents = db.Column(db.Integer, nullable=False, default=0)
    total_amount_cents = db.Column(db.Integer, nullable=False, default=0)

    payment_method = db.Column(db.String(32), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    transaction_date = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    items = db.relationship(
        "TransactionItem",
        back_populates="transaction",
        cascade="all, delete-orphan",
        order_by="TransactionItem.id",
        lazy=True,
    )
    supplier = db.relationship("Supplier")
    user = db.relationship("User")

    def to_dict(self, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "type": self.type.value,
            "invoice_number": self.invoice_number,
            "status": self.status.value,
            "supplier_id": self.supplier_id,
            "supplier": self.supplier.to_dict() if self.supplier else None,
            "user_id": self.user_id,
            "subtotal_cents": self.subtotal_cents,
            "discount_cents": self.discount_cents,
            "tax_percent": str(self.tax_percent) if self.tax_percent is not None else None,
            "tax_cents": self.tax_cents,
            "total_amount_cents": self.total_amount_cents,
            "payment_method": self.payment_method,
            "notes": self.notes,
            "transaction_date": to_utc_z(self.transaction_date),
            "completed_at": to_utc_z(self.completed_at) if self.completed_at else None,
            "cancelled_at": to_utc_z(self.cancelled_at) if self.cancelled_at else None,
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class TransactionItem(db.Model):
    """
    One line of a Transaction. Immutable once created.

    variant_id is the variant shown on the receipt. source_variant_id is set
    only when stock was taken from a substitute variant at the register.
    """
    __tablename__ = "transaction_items"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_item_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    transaction_id = db.Column(db.Integer, db.ForeignKey("transactions.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)
    variant_id = db.Column(db.Integer, db.ForeignKey("product_variants.id"), nullable=True, index=True)
    source_variant_id = db.Column(db.Integer, db.ForeignKey("product_variants.id"), nullable=True)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    total_price_cents = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    transaction = db.relationship("Transaction", back_populates="items")
    product = db.relationship("Product")
    variant = db.relationship("ProductVariant", foreign_keys=[variant_id])
    source_variant = db.relationship("ProductVariant", foreign_keys=[source_variant_id])

    @property
    def stock_variant_id(self) -> int | None:
        """Variant whose stock this line moves."""
        return self.source_variant_id or self.variant_id

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "transaction_id": self.transaction_id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "variant_id": self.variant_id,
            "variant_name": self.variant.display_name if self.variant else None,
            "source_variant_id": self.source_variant_id,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "total_price_cents": self.total_price_cents,
        }
