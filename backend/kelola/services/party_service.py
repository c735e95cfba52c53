# Overview: Service-layer operations for customer/supplier records.

from __future__ import annotations

from datetime import timezone

from sqlalchemy import func, or_

from ..extensions import db
from ..errors import CustomerNotFoundError, ValidationError
from ..models import (
    Product,
    Supplier,
    Transaction,
    TransactionItem,
    TransactionStatus,
    TransactionType,
    ActivityAction,
)
from ..time_utils import utcnow, to_utc_z
from ..validation import PartyRequest
from .activity_service import append_activity
from .concurrency import run_with_retry


def resolve_customer_locked(
    *,
    customer_id: int | None,
    name: str | None,
    phone: str | None,
) -> Supplier | None:
    """
    Find or create the customer of a sale, without committing.

    - customer_id given: must exist.
    - otherwise, with a name: reuse the record matching the phone, else create.
    - neither: walk-in sale, no customer.
    """
    if customer_id is not None:
        customer = db.session.get(Supplier, customer_id)
        if customer is None:
            raise CustomerNotFoundError(customer_id)
        return customer

    if not name:
        return None

    if phone:
        existing = (
            db.session.query(Supplier)
            .filter(Supplier.phone == phone)
            .order_by(Supplier.id)
            .first()
        )
        if existing is not None:
            return existing

    customer = Supplier(name=name, phone=phone, contact=phone)
    db.session.add(customer)
    db.session.flush()
    return customer


def _check_phone_free(phone: str | None, *, exclude_id: int | None = None) -> None:
    if not phone:
        return
    q = db.session.query(Supplier).filter_by(phone=phone, is_active=True)
    if exclude_id is not None:
        q = q.filter(Supplier.id != exclude_id)
    clash = q.first()
    if clash is not None:
        raise ValidationError(
            "phone is already registered",
            {"field": "phone", "supplier_id": clash.id},
        )


def create_party(request: PartyRequest, *, actor_id: int | None = None) -> Supplier:
    def _op():
        _check_phone_free(request.phone)
        party = Supplier(
            name=request.name,
            contact=request.contact,
            phone=request.phone,
            email=request.email,
            address=request.address,
        )
        db.session.add(party)
        db.session.flush()
        append_activity(
            action=ActivityAction.CREATE,
            resource="suppliers",
            resource_id=party.id,
            user_id=actor_id,
            details={"name": party.name},
        )
        db.session.commit()
        return party

    return run_with_retry(_op)


def get_party(supplier_id: int) -> Supplier:
    party = db.session.get(Supplier, supplier_id)
    if party is None:
        raise CustomerNotFoundError(supplier_id)
    return party


def list_parties(*, search: str | None = None, include_inactive: bool = False, page: int = 1, limit: int = 20) -> dict:
    q = Supplier.query
    if not include_inactive:
        q = q.filter(Supplier.is_active.is_(True))
    if search:
        pattern = f"%{search}%"
        q = q.filter(or_(Supplier.name.ilike(pattern), Supplier.phone.ilike(pattern)))

    total = q.count()
    rows = q.order_by(Supplier.name, Supplier.id).offset((page - 1) * limit).limit(limit).all()
    return {
        "parties": rows,
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "pages": (total + limit - 1) // limit if limit else 0,
        },
    }


def update_party(supplier_id: int, request: PartyRequest, *, actor_id: int | None = None) -> Supplier:
    """Replace the contact details of an active party."""
    def _op():
        party = db.session.get(Supplier, supplier_id)
        if party is None or not party.is_active:
            raise CustomerNotFoundError(supplier_id)
        _check_phone_free(request.phone, exclude_id=party.id)

        previous = party.to_dict()
        party.name = request.name
        party.contact = request.contact
        party.phone = request.phone
        party.email = request.email
        party.address = request.address

        changed = {
            key: {"from": previous[key], "to": getattr(party, key)}
            for key in ("name", "contact", "phone", "email", "address")
            if previous[key] != getattr(party, key)
        }
        append_activity(
            action=ActivityAction.UPDATE,
            resource="suppliers",
            resource_id=party.id,
            user_id=actor_id,
            details={"name": party.name, "changes": changed},
        )
        db.session.commit()
        return party

    return run_with_retry(_op)


def deactivate_party(supplier_id: int, *, actor_id: int | None = None) -> Supplier:
    """
    Soft-delete a party. Its past sales and production orders keep pointing
    at the record, so history is untouched.
    """
    def _op():
        party = db.session.get(Supplier, supplier_id)
        if party is None or not party.is_active:
            raise CustomerNotFoundError(supplier_id)
        party.is_active = False
        append_activity(
            action=ActivityAction.DELETE,
            resource="suppliers",
            resource_id=party.id,
            user_id=actor_id,
            details={"name": party.name},
        )
        db.session.commit()
        return party

    return run_with_retry(_op)


def customer_summary(supplier_id: int, *, recent: int = 5, favorites: int = 5) -> dict:
    """Purchase statistics of a customer over its completed sales."""
    party = get_party(supplier_id)
    sales = Transaction.query.filter(
        Transaction.supplier_id == party.id,
        Transaction.type == TransactionType.SALE,
        Transaction.status == TransactionStatus.COMPLETED,
    )

    total_transactions = sales.count()
    total_spent = sales.with_entities(func.coalesce(func.sum(Transaction.total_amount_cents), 0)).scalar()
    last_purchase = sales.with_entities(func.max(Transaction.transaction_date)).scalar()

    item_rows = (
        db.session.query(
            TransactionItem.product_id,
            Product.name,
            func.sum(TransactionItem.quantity).label("quantity"),
        )
        .join(Transaction, TransactionItem.transaction_id == Transaction.id)
        .join(Product, TransactionItem.product_id == Product.id)
        .filter(
            Transaction.supplier_id == party.id,
            Transaction.type == TransactionType.SALE,
            Transaction.status == TransactionStatus.COMPLETED,
        )
        .group_by(TransactionItem.product_id, Product.name)
        .order_by(func.sum(TransactionItem.quantity).desc(), TransactionItem.product_id)
        .all()
    )

    days_since = None
    if last_purchase is not None:
        if last_purchase.tzinfo is not None:
            last_purchase = last_purchase.astimezone(timezone.utc).replace(tzinfo=None)
        days_since = (utcnow() - last_purchase).days

    total_spent = int(total_spent or 0)
    recent_sales = (
        sales.order_by(Transaction.transaction_date.desc(), Transaction.id.desc()).limit(recent).all()
    )
    return {
        "total_spent_cents": total_spent,
        "total_transactions": total_transactions,
        "average_transaction_cents": total_spent // total_transactions if total_transactions else 0,
        "total_items": sum(int(row.quantity) for row in item_rows),
        "favorite_products": [
            {"product_id": row.product_id, "name": row.name, "quantity": int(row.quantity)}
            for row in item_rows[:favorites]
        ],
        "last_purchase_at": to_utc_z(last_purchase),
        "days_since_last_purchase": days_since,
        "recent_sales": [sale.to_dict(include_items=False) for sale in recent_sales],
    }
