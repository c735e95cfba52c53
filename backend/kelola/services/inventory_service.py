# Overview: Service-layer operations for manual stock adjustments.

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import ActivityAction
from ..validation import StockAdjustmentRequest
from .activity_service import append_activity
from .concurrency import begin_write, run_with_retry
from .ledger_service import StockChange, set_stock_absolute_locked


def adjust_stock(request: StockAdjustmentRequest, *, actor_id: int | None = None) -> StockChange:
    """
    Set a variant to a counted stock level.

    The ADJUSTMENT movement and the activity entry commit together; a count
    equal to the current stock raises NoChangeRequestedError.
    """
    def _op():
        begin_write()
        change = set_stock_absolute_locked(
            variant_id=request.variant_id,
            new_stock=request.new_stock,
            reason=request.reason,
            actor_id=actor_id,
        )
        movement = change.movement
        append_activity(
            action=ActivityAction.ADJUST,
            resource="product_variants",
            resource_id=request.variant_id,
            user_id=actor_id,
            details={
                "previous_stock": movement.stock_before,
                "new_stock": movement.stock_after,
                "difference": movement.stock_after - movement.stock_before,
                "reason": request.reason,
            },
        )
        db.session.commit()
        current_app.logger.info(
            "Stock of variant %s adjusted %d -> %d (%s)",
            request.variant_id, movement.stock_before, movement.stock_after, request.reason,
        )
        return change

    return run_with_retry(_op)
