# Overview: Stock ledger engine; the only writer of ProductVariant.stock.

"""
Stock Ledger Invariants (authoritative)

- ProductVariant.stock is the sellable quantity right now and is never negative.
- Every stock write is paired with exactly one StockMovement, flushed in the
  same DB transaction. Neither is visible without the other.
- StockMovement rows are append-only; corrections are new movements.
- initial_stock + SUM(stock_after - stock_before) == stock for every variant.
- The variant row is locked and re-read before validating, so concurrent
  callers serialize and the second one sees the first one's result.

The *_locked functions do no commit and no retry; workflows call them inside
their own unit of work so several deltas commit together. The public
functions wrap a single delta in run_with_retry and commit.
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import func

from ..extensions import db
from ..errors import (
    InsufficientStockError,
    NoChangeRequestedError,
    ValidationError,
    VariantNotFoundError,
)
from ..models import ProductVariant, StockMovement, StockMovementType, MovementReason
from ..time_utils import utcnow
from .concurrency import begin_write, lock_for_update, run_with_retry


@dataclass(frozen=True)
class StockChange:
    variant: ProductVariant
    movement: StockMovement

    def to_dict(self) -> dict:
        return {
            "variant": self.variant.to_dict(),
            "movement": self.movement.to_dict(),
            "previous_stock": self.movement.stock_before,
            "new_stock": self.movement.stock_after,
        }


def get_variant_for_update(variant_id: int) -> ProductVariant:
    variant = lock_for_update(
        db.session.query(ProductVariant).filter_by(id=variant_id)
    ).first()
    if variant is None:
        raise VariantNotFoundError(variant_id)
    return variant


def _movement_type_for(delta: int, movement_type: StockMovementType | str | None) -> StockMovementType:
    if movement_type is not None:
        try:
            movement_type = StockMovementType(movement_type)
        except ValueError:
            raise ValidationError("unknown movement type", {"type": movement_type})
    if movement_type is StockMovementType.ADJUSTMENT:
        return StockMovementType.ADJUSTMENT
    inferred = StockMovementType.IN if delta > 0 else StockMovementType.OUT
    if movement_type is not None and movement_type is not inferred:
        raise ValidationError(
            f"{movement_type.value} movement cannot carry delta {delta}",
            {"delta": delta, "type": movement_type.value},
        )
    return inferred


def apply_stock_delta_locked(
    *,
    variant_id: int,
    delta: int,
    reason: str,
    reference: str | None = None,
    actor_id: int | None = None,
    movement_type: StockMovementType | None = None,
    allow_clamp: bool = False,
) -> StockChange:
    """
    Apply one signed delta and append its movement, without committing.

    allow_clamp is for administrative corrections only: a decrement past zero
    stops at zero and the movement records the delta actually applied.
    """
    if isinstance(delta, bool) or not isinstance(delta, int) or delta == 0:
        raise ValidationError("delta must be a non-zero integer", {"delta": delta})
    if not reason or not str(reason).strip():
        raise ValidationError("reason is required")

    variant = get_variant_for_update(variant_id)
    current = variant.stock
    new_stock = current + delta

    if new_stock < 0:
        if not allow_clamp:
            raise InsufficientStockError(variant_id, available=current, requested=-delta)
        new_stock = 0
        delta = -current
        if delta == 0:
            raise NoChangeRequestedError(variant_id, current)

    mtype = _movement_type_for(delta, movement_type)

    variant.stock = new_stock
    variant.updated_at = utcnow()

    movement = StockMovement(
        variant_id=variant.id,
        type=mtype,
        quantity=abs(delta),
        stock_before=current,
        stock_after=new_stock,
        reason=str(reason).strip(),
        reference=reference,
        created_by=actor_id,
        created_at=utcnow(),
    )
    db.session.add(movement)
    # Flush both rows together: version conflicts surface here as StaleDataError
    db.session.flush()

    return StockChange(variant=variant, movement=movement)


def set_stock_absolute_locked(
    *,
    variant_id: int,
    new_stock: int,
    reason: str,
    actor_id: int | None = None,
    reference: str | None = MovementReason.MANUAL_ADJUSTMENT.value,
) -> StockChange:
    if isinstance(new_stock, bool) or not isinstance(new_stock, int):
        raise ValidationError("new_stock must be an integer", {"new_stock": new_stock})
    if new_stock < 0:
        raise ValidationError("new_stock must be >= 0", {"new_stock": new_stock})

    variant = get_variant_for_update(variant_id)
    delta = new_stock - variant.stock
    if delta == 0:
        raise NoChangeRequestedError(variant_id, variant.stock)

    return apply_stock_delta_locked(
        variant_id=variant_id,
        delta=delta,
        reason=reason,
        reference=reference,
        actor_id=actor_id,
        movement_type=StockMovementType.ADJUSTMENT,
    )


def apply_stock_delta(
    variant_id: int,
    delta: int,
    movement_type: StockMovementType | None,
    reason: str,
    reference: str | None = None,
    actor_id: int | None = None,
    *,
    allow_clamp: bool = False,
) -> StockChange:
    """Apply one stock delta as its own committed unit of work."""
    def _op():
        begin_write()
        change = apply_stock_delta_locked(
            variant_id=variant_id,
            delta=delta,
            reason=reason,
            reference=reference,
            actor_id=actor_id,
            movement_type=movement_type,
            allow_clamp=allow_clamp,
        )
        db.session.commit()
        return change

    return run_with_retry(_op)


def set_stock_absolute(
    variant_id: int,
    new_stock: int,
    reason: str,
    actor_id: int | None = None,
) -> StockChange:
    """Move a variant to an absolute stock level with an ADJUSTMENT movement."""
    def _op():
        begin_write()
        change = set_stock_absolute_locked(
            variant_id=variant_id,
            new_stock=new_stock,
            reason=reason,
            actor_id=actor_id,
        )
        db.session.commit()
        return change

    return run_with_retry(_op)


def list_stock_movements(
    *,
    variant_id: int | None = None,
    movement_type: StockMovementType | None = None,
    page: int = 1,
    limit: int = 50,
) -> dict:
    q = StockMovement.query
    if variant_id is not None:
        q = q.filter(StockMovement.variant_id == variant_id)
    if movement_type is not None:
        q = q.filter(StockMovement.type == movement_type)

    total = q.count()
    rows = (
        q.order_by(StockMovement.created_at.desc(), StockMovement.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    pages = (total + limit - 1) // limit if limit else 0
    return {
        "movements": rows,
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "pages": pages,
            "has_next": page < pages,
            "has_prev": page > 1,
        },
    }


def reconcile_variant(variant_id: int) -> dict:
    """
    Check initial_stock + SUM(signed movements) against the stored stock.

    drift != 0 means stock was written outside the ledger.
    """
    variant = db.session.get(ProductVariant, variant_id)
    if variant is None:
        raise VariantNotFoundError(variant_id)

    movement_sum = (
        db.session.query(
            func.coalesce(func.sum(StockMovement.stock_after - StockMovement.stock_before), 0)
        )
        .filter(StockMovement.variant_id == variant_id)
        .scalar()
    )
    expected = variant.initial_stock + int(movement_sum or 0)
    return {
        "variant_id": variant.id,
        "initial_stock": variant.initial_stock,
        "movement_total": int(movement_sum or 0),
        "expected_stock": expected,
        "actual_stock": variant.stock,
        "drift": variant.stock - expected,
    }


def reconcile_all(include_inactive: bool = True) -> list[dict]:
    """Reconcile every variant; returns only those that drifted."""
    sums = dict(
        db.session.query(
            StockMovement.variant_id,
            func.sum(StockMovement.stock_after - StockMovement.stock_before),
        )
        .group_by(StockMovement.variant_id)
        .all()
    )

    q = ProductVariant.query
    if not include_inactive:
        q = q.filter(ProductVariant.is_active.is_(True))

    drifted = []
    for variant in q.order_by(ProductVariant.id).all():
        movement_total = int(sums.get(variant.id) or 0)
        expected = variant.initial_stock + movement_total
        if expected != variant.stock:
            drifted.append({
                "variant_id": variant.id,
                "initial_stock": variant.initial_stock,
                "movement_total": movement_total,
                "expected_stock": expected,
                "actual_stock": variant.stock,
                "drift": variant.stock - expected,
            })
    return drifted
