# Overview: Service-layer operations for production (purchase) orders.

"""
Production Order Lifecycle

PENDING -> COMPLETED   stock += qty per item, exactly once
PENDING -> CANCELLED   no stock effect
PENDING -> (deleted)   items removed, no stock effect

Creating or editing an order never touches stock. Completion locks the order
row and checks its status in the same DB transaction as the increments, so
two concurrent completions cannot both add stock.
"""

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..errors import (
    AlreadyCancelledError,
    AlreadyCompletedError,
    CustomerNotFoundError,
    OrderNotEditableError,
    TransactionNotFoundError,
    ValidationError,
    VariantNotFoundError,
)
from ..models import (
    ProductVariant,
    Supplier,
    Transaction,
    TransactionItem,
    TransactionType,
    TransactionStatus,
    StockMovementType,
    MovementReason,
    ActivityAction,
)
from ..time_utils import utcnow
from ..validation import ProductionItemRequest, ProductionOrderRequest, parse_int
from .activity_service import append_activity
from .concurrency import begin_write, lock_for_update, run_with_retry
from .document_service import DocumentNumberClash, next_document_number, number_clash_guard
from .ledger_service import apply_stock_delta_locked


def _get_order_for_update(order_id: int) -> Transaction:
    order = lock_for_update(
        db.session.query(Transaction).filter_by(id=order_id, type=TransactionType.PURCHASE)
    ).first()
    if order is None:
        raise TransactionNotFoundError(order_id)
    return order


def _build_items(items: list[ProductionItemRequest]) -> list[TransactionItem]:
    """Resolve variants and default each unit price to the product cost price."""
    built = []
    for item in items:
        variant = db.session.get(ProductVariant, item.variant_id)
        if variant is None:
            raise VariantNotFoundError(item.variant_id)
        unit_price = item.unit_price_cents
        if unit_price is None:
            unit_price = variant.product.cost_price_cents
        built.append(TransactionItem(
            product_id=variant.product_id,
            variant_id=variant.id,
            quantity=item.quantity,
            unit_price_cents=unit_price,
            total_price_cents=item.quantity * unit_price,
        ))
    return built


def _check_supplier(supplier_id: int | None) -> None:
    if supplier_id is not None and db.session.get(Supplier, supplier_id) is None:
        raise CustomerNotFoundError(supplier_id)


def _set_totals(order: Transaction) -> None:
    total = sum(item.total_price_cents for item in order.items)
    order.subtotal_cents = total
    order.total_amount_cents = total


def create_production_order(request: ProductionOrderRequest, *, actor_id: int | None = None) -> Transaction:
    """Create a PENDING production order. Stock is not touched."""
    def _op():
        begin_write()
        _check_supplier(request.supplier_id)
        items = _build_items(request.items)

        with number_clash_guard():
            invoice_number = next_document_number(
                document_type=TransactionType.PURCHASE.value,
                prefix=current_app.config.get("PRODUCTION_PREFIX", "PROD"),
            )
            order = Transaction(
                type=TransactionType.PURCHASE,
                invoice_number=invoice_number,
                status=TransactionStatus.PENDING,
                supplier_id=request.supplier_id,
                user_id=actor_id,
                notes=request.notes,
                transaction_date=utcnow(),
            )
            order.items.extend(items)
            _set_totals(order)
            db.session.add(order)
            db.session.flush()

        append_activity(
            action=ActivityAction.CREATE,
            resource="production_orders",
            resource_id=order.id,
            user_id=actor_id,
            details={"invoice_number": invoice_number, "items": len(items)},
        )
        db.session.commit()
        current_app.logger.info("Production order %s created with %d items", invoice_number, len(items))
        return order

    return run_with_retry(_op, retry_on=(DocumentNumberClash,))


def complete_production_order(order_id: int, *, actor_id: int | None = None) -> Transaction:
    """Receive a production order: +qty per item, exactly once."""
    def _op():
        begin_write()
        order = _get_order_for_update(order_id)
        if order.status is TransactionStatus.COMPLETED:
            raise AlreadyCompletedError(order_id)
        if order.status is TransactionStatus.CANCELLED:
            raise AlreadyCancelledError(order_id)

        for item in order.items:
            apply_stock_delta_locked(
                variant_id=item.stock_variant_id,
                delta=item.quantity,
                reason=MovementReason.PRODUCTION.value,
                reference=order.invoice_number,
                actor_id=actor_id,
                movement_type=StockMovementType.IN,
            )

        order.status = TransactionStatus.COMPLETED
        order.completed_at = utcnow()

        append_activity(
            action=ActivityAction.COMPLETE,
            resource="production_orders",
            resource_id=order.id,
            user_id=actor_id,
            details={
                "invoice_number": order.invoice_number,
                "units": sum(item.quantity for item in order.items),
            },
        )
        db.session.commit()
        current_app.logger.info("Production order %s completed", order.invoice_number)
        return order

    return run_with_retry(_op)


def cancel_production_order(order_id: int, *, actor_id: int | None = None) -> Transaction:
    def _op():
        begin_write()
        order = _get_order_for_update(order_id)
        if order.status is TransactionStatus.COMPLETED:
            raise AlreadyCompletedError(order_id)
        if order.status is TransactionStatus.CANCELLED:
            raise AlreadyCancelledError(order_id)

        order.status = TransactionStatus.CANCELLED
        order.cancelled_at = utcnow()
        append_activity(
            action=ActivityAction.CANCEL,
            resource="production_orders",
            resource_id=order.id,
            user_id=actor_id,
            details={"invoice_number": order.invoice_number},
        )
        db.session.commit()
        return order

    return run_with_retry(_op)


def update_production_order(
    order_id: int,
    request: ProductionOrderRequest,
    *,
    actor_id: int | None = None,
) -> Transaction:
    """Replace the item set (and notes/supplier) of a PENDING order."""
    def _op():
        begin_write()
        order = _get_order_for_update(order_id)
        if order.status is not TransactionStatus.PENDING:
            raise OrderNotEditableError(order_id, order.status.value)
        _check_supplier(request.supplier_id)

        items = _build_items(request.items)
        order.items.clear()
        db.session.flush()
        order.items.extend(items)
        order.notes = request.notes
        order.supplier_id = request.supplier_id
        _set_totals(order)

        append_activity(
            action=ActivityAction.UPDATE,
            resource="production_orders",
            resource_id=order.id,
            user_id=actor_id,
            details={"invoice_number": order.invoice_number, "items": len(items)},
        )
        db.session.commit()
        return order

    return run_with_retry(_op)


def delete_production_order(order_id: int, *, actor_id: int | None = None) -> None:
    """Delete a PENDING order and its items. Nothing was added to stock, so nothing is reversed."""
    def _op():
        begin_write()
        order = _get_order_for_update(order_id)
        if order.status is not TransactionStatus.PENDING:
            raise OrderNotEditableError(order_id, order.status.value)

        invoice_number = order.invoice_number
        db.session.delete(order)
        append_activity(
            action=ActivityAction.DELETE,
            resource="production_orders",
            resource_id=order_id,
            user_id=actor_id,
            details={"invoice_number": invoice_number},
        )
        db.session.commit()

    run_with_retry(_op)


def get_production_order(order_id: int) -> Transaction:
    order = db.session.get(Transaction, order_id)
    if order is None or order.type is not TransactionType.PURCHASE:
        raise TransactionNotFoundError(order_id)
    return order


def list_production_orders(
    *,
    status: TransactionStatus | None = None,
    page: int = 1,
    limit: int = 10,
) -> dict:
    q = Transaction.query.filter(Transaction.type == TransactionType.PURCHASE)
    if status is not None:
        q = q.filter(Transaction.status == status)

    total = q.count()
    rows = (
        q.order_by(Transaction.transaction_date.desc(), Transaction.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )

    items_q = (
        db.session.query(func.coalesce(func.sum(TransactionItem.quantity), 0))
        .join(Transaction, TransactionItem.transaction_id == Transaction.id)
        .filter(Transaction.type == TransactionType.PURCHASE)
    )
    if status is not None:
        items_q = items_q.filter(Transaction.status == status)
    total_items = items_q.scalar()
    total_amount = q.with_entities(func.coalesce(func.sum(Transaction.total_amount_cents), 0)).scalar()
    pending_count = (
        Transaction.query
        .filter(Transaction.type == TransactionType.PURCHASE, Transaction.status == TransactionStatus.PENDING)
        .count()
    )

    return {
        "orders": rows,
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "pages": (total + limit - 1) // limit if limit else 0,
        },
        "stats": {
            "total_orders": total,
            "total_items": int(total_items or 0),
            "total_amount_cents": int(total_amount or 0),
            "pending_count": pending_count,
        },
    }


@dataclass(frozen=True)
class SuggestionSelection:
    variant_id: int
    quantity: int

    @classmethod
    def from_payload(cls, raw) -> "SuggestionSelection":
        if not isinstance(raw, dict):
            raise ValidationError("each selection must be an object", {"field": "selected"})
        return cls(
            variant_id=parse_int(raw.get("variant_id"), "variant_id", minimum=1),
            quantity=parse_int(
                raw.get("quantity", raw.get("suggested_quantity")), "quantity", minimum=1
            ),
        )


def create_order_from_suggestions(
    selected: list[SuggestionSelection],
    *,
    notes: str | None = None,
    actor_id: int | None = None,
) -> Transaction:
    """Turn accepted reorder suggestions into one PENDING production order."""
    if not selected:
        raise ValidationError("no suggestions selected", {"field": "selected"})
    request = ProductionOrderRequest(
        items=[ProductionItemRequest(variant_id=s.variant_id, quantity=s.quantity) for s in selected],
        notes=notes or "Created from reorder suggestions",
    )
    return create_production_order(request, actor_id=actor_id)
