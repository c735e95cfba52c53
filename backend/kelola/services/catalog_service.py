# Overview: Service-layer operations for the product catalog (products, sizes, colors, variants).

"""
Catalog rules:
- A variant's starting stock is recorded as initial_stock at creation; it is
  not a movement. Every later change goes through the stock ledger.
- Variants are never deleted; deactivation hides them from default listings
  while keeping their movement history.
- Barcodes and SKUs are unique; duplicates are rejected before insert and
  also by the DB constraints.
"""

from __future__ import annotations

from sqlalchemy import or_

from ..extensions import db
from ..errors import ConflictError, ProductNotFoundError, ValidationError, VariantNotFoundError
from ..models import Product, ProductVariant, Size, Color, ActivityAction
from ..validation import ProductRequest, VariantRequest
from .activity_service import append_activity
from .concurrency import run_with_retry


def _get_or_create_size(name: str | None) -> Size | None:
    if not name:
        return None
    size = db.session.query(Size).filter_by(name=name).first()
    if size is None:
        size = Size(name=name, sort_order=db.session.query(Size).count() + 1)
        db.session.add(size)
        db.session.flush()
    return size


def _get_or_create_color(name: str | None) -> Color | None:
    if not name:
        return None
    color = db.session.query(Color).filter_by(name=name).first()
    if color is None:
        color = Color(name=name)
        db.session.add(color)
        db.session.flush()
    return color


def _add_variant_locked(product: Product, request: VariantRequest) -> ProductVariant:
    size = _get_or_create_size(request.size)
    color = _get_or_create_color(request.color)

    duplicate = db.session.query(ProductVariant).filter_by(
        product_id=product.id,
        size_id=size.id if size else None,
        color_id=color.id if color else None,
    ).first()
    if duplicate is not None:
        raise ConflictError(
            "variant already exists for this size and color",
            {"product_id": product.id, "variant_id": duplicate.id},
        )

    if request.barcode:
        taken = db.session.query(ProductVariant).filter_by(barcode=request.barcode).first()
        if taken is not None:
            raise ConflictError(
                "barcode already in use",
                {"barcode": request.barcode, "variant_id": taken.id},
            )

    variant = ProductVariant(
        product=product,
        size=size,
        color=color,
        stock=request.stock,
        initial_stock=request.stock,
        min_stock=request.min_stock,
        price_cents=request.price_cents,
        barcode=request.barcode,
        is_active=True,
    )
    db.session.add(variant)
    db.session.flush()
    return variant


def create_product(request: ProductRequest, *, actor_id: int | None = None) -> Product:
    def _op():
        if db.session.query(Product).filter_by(sku=request.sku).first() is not None:
            raise ConflictError("sku already in use", {"sku": request.sku})

        product = Product(
            sku=request.sku,
            name=request.name,
            description=request.description,
            category=request.category,
            brand=request.brand,
            cost_price_cents=request.cost_price_cents,
            selling_price_cents=request.selling_price_cents,
            is_active=True,
        )
        db.session.add(product)
        db.session.flush()

        for variant_request in request.variants:
            _add_variant_locked(product, variant_request)

        append_activity(
            action=ActivityAction.CREATE,
            resource="products",
            resource_id=product.id,
            user_id=actor_id,
            details={"sku": product.sku, "variants": len(request.variants)},
        )
        db.session.commit()
        return product

    return run_with_retry(_op)


def add_variant(product_id: int, request: VariantRequest, *, actor_id: int | None = None) -> ProductVariant:
    def _op():
        product = db.session.get(Product, product_id)
        if product is None:
            raise ProductNotFoundError(product_id)
        variant = _add_variant_locked(product, request)
        append_activity(
            action=ActivityAction.CREATE,
            resource="product_variants",
            resource_id=variant.id,
            user_id=actor_id,
            details={"product_id": product.id, "initial_stock": variant.initial_stock},
        )
        db.session.commit()
        return variant

    return run_with_retry(_op)


def deactivate_variant(product_id: int, variant_id: int, *, actor_id: int | None = None) -> ProductVariant:
    """Soft-delete a variant. Stock and movements are left as they are."""
    def _op():
        variant = db.session.get(ProductVariant, variant_id)
        if variant is None or variant.product_id != product_id:
            raise VariantNotFoundError(variant_id)
        if variant.is_active:
            variant.is_active = False
            append_activity(
                action=ActivityAction.DELETE,
                resource="product_variants",
                resource_id=variant.id,
                user_id=actor_id,
                details={"product_id": product_id, "stock": variant.stock},
            )
        db.session.commit()
        return variant

    return run_with_retry(_op)


def update_variant_min_stock(
    product_id: int,
    variant_id: int,
    min_stock: int,
    *,
    actor_id: int | None = None,
) -> ProductVariant:
    """Change the reorder threshold of a variant. Stock itself is not touched."""
    if min_stock is None or min_stock < 0:
        raise ValidationError("min_stock must be >= 0", {"field": "min_stock"})

    def _op():
        variant = db.session.get(ProductVariant, variant_id)
        if variant is None or variant.product_id != product_id:
            raise VariantNotFoundError(variant_id)
        previous = variant.min_stock
        variant.min_stock = min_stock
        append_activity(
            action=ActivityAction.UPDATE,
            resource="product_variants",
            resource_id=variant.id,
            user_id=actor_id,
            details={"product_id": product_id, "previous_min_stock": previous, "min_stock": min_stock},
        )
        db.session.commit()
        return variant

    return run_with_retry(_op)


def get_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if product is None:
        raise ProductNotFoundError(product_id)
    return product


def get_variant(variant_id: int) -> ProductVariant:
    variant = db.session.get(ProductVariant, variant_id)
    if variant is None:
        raise VariantNotFoundError(variant_id)
    return variant


def find_variant_by_barcode(barcode: str) -> ProductVariant | None:
    return (
        db.session.query(ProductVariant)
        .filter(ProductVariant.barcode == barcode.strip())
        .first()
    )


def list_products(*, search: str | None = None, include_inactive: bool = False, page: int = 1, limit: int = 20) -> dict:
    q = Product.query
    if not include_inactive:
        q = q.filter(Product.is_active.is_(True))
    if search:
        pattern = f"%{search}%"
        q = q.filter(or_(Product.name.ilike(pattern), Product.sku.ilike(pattern)))

    total = q.count()
    rows = q.order_by(Product.name, Product.id).offset((page - 1) * limit).limit(limit).all()
    return {
        "products": rows,
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "pages": (total + limit - 1) // limit if limit else 0,
        },
    }


def list_variants(*, product_id: int | None = None, include_inactive: bool = False) -> list[ProductVariant]:
    """Active variants by default; inactive ones only when asked for."""
    q = ProductVariant.query
    if product_id is not None:
        q = q.filter(ProductVariant.product_id == product_id)
    if not include_inactive:
        q = q.filter(ProductVariant.is_active.is_(True))
    return q.order_by(ProductVariant.product_id, ProductVariant.id).all()
