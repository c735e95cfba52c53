from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class Product(db.Model):
    """
    Product master data. Sellable units are ProductVariant rows (size x color).

    selling_price_cents is the fallback price at the register when neither
    the cashier nor the variant supplies one; cost_price_cents is the default
    unit cost of production orders.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_active_name", "is_active", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sku = db.Column(db.String(64), nullable=False, unique=True)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    category = db.Column(db.String(120), nullable=True)
    brand = db.Column(db.String(120), nullable=True)

    cost_price_cents = db.Column(db.Integer, nullable=False, default=0)
    selling_price_cents = db.Column(db.Integer, nullable=False, default=0)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    variants = db.relationship("ProductVariant", back_populates="product", lazy=True)

    def __repr__(self) -> str:
        return f"<Product id={self.id} sku={self.sku!r} name={self.name!r}>"

    def to_dict(self, include_variants: bool = False) -> dict:
        data = {
            "id": self.id,
            "sku": self.sku,
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "brand": self.brand,
            "cost_price_cents": self.cost_price_cents,
            "selling_price_cents": self.selling_price_cents,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_variants:
            data["variants"] = [v.to_dict() for v in self.variants]
        return data


class Size(db.Model):
    __tablename__ = "sizes"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(32), nullable=False, unique=True)
    sort_order = db.Column(db.Integer, nullable=False, default=0)

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "sort_order": self.sort_order}


class Color(db.Model):
    __tablename__ = "colors"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(64), nullable=False, unique=True)
    hex_code = db.Column(db.String(7), nullable=True)

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "hex_code": self.hex_code}


class ProductVariant(db.Model):
    """
    One sellable SKU-variant (product x size x color).

    INVARIANTS:
    - stock >= 0, enforced by the ledger and by a CHECK constraint.
    - stock is only written by services.ledger_service; every write is paired
      with exactly one StockMovement in the same DB transaction.
    - initial_stock is the stock at creation and never changes, so
      initial_stock + sum(signed movements) == stock.
    - Never hard-deleted; is_active=False hides it from default listings.

    version_id gives optimistic conflict detection on top of row locks
    (SQLite ignores FOR UPDATE).
    """
    __tablename__ = "product_variants"
    __table_args__ = (
        db.UniqueConstraint("product_id", "size_id", "color_id", name="uq_variant_product_size_color"),
        db.CheckConstraint("stock >= 0", name="ck_variant_stock_non_negative"),
        db.Index("ix_variants_active_stock", "is_active", "stock"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    size_id = db.Column(db.Integer, db.ForeignKey("sizes.id"), nullable=True)
    color_id = db.Column(db.Integer, db.ForeignKey("colors.id"), nullable=True)

    stock = db.Column(db.Integer, nullable=False, default=0)
    initial_stock = db.Column(db.Integer, nullable=False, default=0)
    min_stock = db.Column(db.Integer, nullable=False, default=0)

    # Variant-level price; NULL falls back to Product.selling_price_cents
    price_cents = db.Column(db.Integer, nullable=True)

    barcode = db.Column(db.String(128), nullable=True, unique=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    product = db.relationship("Product", back_populates="variants")
    size = db.relationship("Size")
    color = db.relationship("Color")
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<ProductVariant id={self.id} product_id={self.product_id} stock={self.stock}>"

    @property
    def display_name(self) -> str:
        parts = [self.product.name if self.product else f"Product {self.product_id}"]
        if self.size is not None:
            parts.append(self.size.name)
        if self.color is not None:
            parts.append(self.color.name)
        return " / ".join(parts)

    def effective_price_cents(self) -> int:
        if self.price_cents is not None:
            return self.price_cents
        return self.product.selling_price_cents

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "sku": self.product.sku if self.product else None,
            "size": self.size.name if self.size else None,
            "color": self.color.name if self.color else None,
            "display_name": self.display_name,
            "stock": self.stock,
            "initial_stock": self.initial_stock,
            "min_stock": self.min_stock,
            "price_cents": self.price_cents,
            "barcode": self.barcode,
            "is_active": self.is_active,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
