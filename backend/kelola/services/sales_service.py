# Overview: Service-layer operations for point-of-sale transactions.

"""
Sale workflow

One DB transaction covers: customer upsert, the SALE header and its items,
one OUT movement per item, and the activity entry. Any failure (unknown
variant, insufficient stock, write conflict) rolls all of it back; a sale is
never partially posted.

Substitution: an item may name substitute_from_variant_id. Stock is checked
and deducted on that variant while the receipt keeps showing variant_id.

Price precedence per item: cashier override -> variant price -> product
selling price.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP

from flask import current_app

from ..extensions import db
from ..errors import InsufficientStockError, TransactionNotFoundError, ValidationError, VariantNotFoundError
from ..models import (
    ProductVariant,
    Transaction,
    TransactionItem,
    TransactionType,
    TransactionStatus,
    StockMovementType,
    MovementReason,
    ActivityAction,
)
from ..time_utils import utcnow
from ..validation import SaleRequest
from .activity_service import append_activity
from .concurrency import begin_write, run_with_retry
from .document_service import DocumentNumberClash, next_document_number, number_clash_guard
from .ledger_service import apply_stock_delta_locked, get_variant_for_update
from .party_service import resolve_customer_locked


@dataclass(frozen=True)
class SaleTotals:
    subtotal_cents: int
    discount_cents: int
    tax_cents: int
    total_cents: int


@dataclass(frozen=True)
class _ResolvedLine:
    requested: ProductVariant
    stock_variant_id: int
    quantity: int
    unit_price_cents: int

    @property
    def total_price_cents(self) -> int:
        return self.quantity * self.unit_price_cents


def compute_sale_totals(line_totals: list[int], discount_cents: int, tax_percent: Decimal) -> SaleTotals:
    """
    subtotal = sum(lines); discount is an absolute amount;
    tax = (subtotal - discount) * tax% rounded half-up to the cent.
    """
    subtotal = sum(line_totals)
    if discount_cents > subtotal:
        raise ValidationError(
            "discount cannot exceed subtotal",
            {"discount_cents": discount_cents, "subtotal_cents": subtotal},
        )
    taxable = Decimal(subtotal - discount_cents)
    tax = (taxable * Decimal(tax_percent) / Decimal(100)).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    tax_cents = int(tax)
    return SaleTotals(
        subtotal_cents=subtotal,
        discount_cents=discount_cents,
        tax_cents=tax_cents,
        total_cents=subtotal - discount_cents + tax_cents,
    )


def _resolve_lines(request: SaleRequest) -> list[_ResolvedLine]:
    lines = []
    for item in request.items:
        requested = db.session.get(ProductVariant, item.variant_id)
        if requested is None:
            raise VariantNotFoundError(item.variant_id)

        stock_variant = requested
        if item.substitute_from_variant_id and item.substitute_from_variant_id != item.variant_id:
            stock_variant = db.session.get(ProductVariant, item.substitute_from_variant_id)
            if stock_variant is None:
                raise VariantNotFoundError(item.substitute_from_variant_id)

        if not stock_variant.is_active:
            raise ValidationError("variant is inactive", {"variant_id": stock_variant.id})

        if item.price_cents is not None:
            unit_price = item.price_cents
        else:
            unit_price = requested.effective_price_cents()

        lines.append(_ResolvedLine(
            requested=requested,
            stock_variant_id=stock_variant.id,
            quantity=item.quantity,
            unit_price_cents=unit_price,
        ))
    return lines


def _validate_stock(lines: list[_ResolvedLine]) -> None:
    """Lock every affected variant and check the aggregated demand against it."""
    demand: dict[int, int] = {}
    for line in lines:
        demand[line.stock_variant_id] = demand.get(line.stock_variant_id, 0) + line.quantity

    insufficient = []
    for variant_id in sorted(demand):
        variant = get_variant_for_update(variant_id)
        if variant.stock < demand[variant_id]:
            insufficient.append({
                "variant_id": variant_id,
                "available": variant.stock,
                "requested": demand[variant_id],
            })

    if insufficient:
        first = insufficient[0]
        error = InsufficientStockError(first["variant_id"], first["available"], first["requested"])
        error.details["items"] = insufficient
        raise error


def create_sale(request: SaleRequest, *, actor_id: int | None = None) -> Transaction:
    """Post a completed sale and deduct its stock atomically."""
    def _op():
        begin_write()

        lines = _resolve_lines(request)
        # Variants are locked in id order here, before any write
        _validate_stock(lines)

        totals = compute_sale_totals(
            [line.total_price_cents for line in lines],
            request.discount_cents,
            request.tax_percent,
        )

        customer = resolve_customer_locked(
            customer_id=request.customer_id,
            name=request.customer_name,
            phone=request.customer_phone,
        )

        with number_clash_guard():
            invoice_number = next_document_number(
                document_type=TransactionType.SALE.value,
                prefix=current_app.config.get("INVOICE_PREFIX", "INV"),
            )
            now = utcnow()

            sale = Transaction(
                type=TransactionType.SALE,
                invoice_number=invoice_number,
                status=TransactionStatus.COMPLETED,
                supplier_id=customer.id if customer else None,
                user_id=actor_id,
                subtotal_cents=totals.subtotal_cents,
                discount_cents=totals.discount_cents,
                tax_percent=request.tax_percent,
                tax_cents=totals.tax_cents,
                total_amount_cents=totals.total_cents,
                payment_method=request.payment_method,
                notes=request.notes,
                transaction_date=now,
                completed_at=now,
            )
            for line in lines:
                sale.items.append(TransactionItem(
                    product_id=line.requested.product_id,
                    variant_id=line.requested.id,
                    source_variant_id=line.stock_variant_id if line.stock_variant_id != line.requested.id else None,
                    quantity=line.quantity,
                    unit_price_cents=line.unit_price_cents,
                    total_price_cents=line.total_price_cents,
                ))
            db.session.add(sale)
            db.session.flush()

        for line in lines:
            apply_stock_delta_locked(
                variant_id=line.stock_variant_id,
                delta=-line.quantity,
                reason=MovementReason.SALE.value,
                reference=invoice_number,
                actor_id=actor_id,
                movement_type=StockMovementType.OUT,
            )

        append_activity(
            action=ActivityAction.CREATE,
            resource="sales",
            resource_id=sale.id,
            user_id=actor_id,
            details={
                "invoice_number": invoice_number,
                "total_amount_cents": totals.total_cents,
                "items": len(lines),
            },
        )

        db.session.commit()
        current_app.logger.info(
            "Sale %s posted: %d items, total %d", invoice_number, len(lines), totals.total_cents
        )
        return sale

    # A duplicate invoice number is retried with a freshly allocated one
    return run_with_retry(_op, retry_on=(DocumentNumberClash,))


def get_sale(transaction_id: int) -> Transaction:
    sale = db.session.get(Transaction, transaction_id)
    if sale is None or sale.type is not TransactionType.SALE:
        raise TransactionNotFoundError(transaction_id)
    return sale


def list_sales(
    *,
    page: int = 1,
    limit: int = 10,
    start: datetime | None = None,
    end: datetime | None = None,
) -> dict:
    q = Transaction.query.filter(Transaction.type == TransactionType.SALE)
    if start is not None:
        q = q.filter(Transaction.transaction_date >= start)
    if end is not None:
        q = q.filter(Transaction.transaction_date <= end)

    total = q.count()
    rows = (
        q.order_by(Transaction.transaction_date.desc(), Transaction.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {
        "sales": rows,
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "pages": (total + limit - 1) // limit if limit else 0,
        },
    }
