# Overview: Inventory analytics; stock health, days of stock and reorder suggestions.

"""
Read-only derivations over variants and their movement history. Nothing in
here writes to the database.

Stock status (max_stock = max(min_stock * 3, 50)):
    available <= 0          CRITICAL
    available <= min_stock  LOW
    available >= max_stock  OVERSTOCK
    otherwise               NORMAL

Reorder heuristic, per variant:
    avg_daily  = sum(last N OUT quantities) / window_days
    safety     = max(avg_daily * lead_time, min_stock)
    suggested  = ceil(max(max_stock - stock, safety + avg_daily * lead_time - stock)), floored at 0
    stockout   = floor(stock / avg_daily), 999 when there is no outflow

Production recommendation, per variant selling out within 21 days:
    recommended = ceil(avg_daily_sales * (lead 7 + safety 7)) - stock, floored at 0

The window is an assumed 30 days by default. REORDER_WINDOW_MODE="observed"
measures it from the sampled movements instead.
"""

from __future__ import annotations

import enum
import math
from dataclasses import dataclass, asdict
from datetime import datetime, timedelta
from typing import Iterable, Optional

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..errors import ValidationError, VariantNotFoundError
from ..models import ProductVariant, StockMovement, StockMovementType, MovementReason
from ..time_utils import utcnow, to_utc_z


MAX_STOCK_MULTIPLIER = 3
MAX_STOCK_FLOOR = 50
NO_STOCKOUT_DAYS = 999

WINDOW_MODES = ("assumed", "observed")


class StockStatus(str, enum.Enum):
    CRITICAL = "CRITICAL"
    LOW = "LOW"
    NORMAL = "NORMAL"
    OVERSTOCK = "OVERSTOCK"


class ReorderPriority(str, enum.Enum):
    URGENT = "URGENT"
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


# Alert ordering, highest first
STATUS_PRIORITY = {
    StockStatus.CRITICAL: 4,
    StockStatus.LOW: 3,
    StockStatus.OVERSTOCK: 2,
    StockStatus.NORMAL: 1,
}

PRIORITY_ORDER = {
    ReorderPriority.URGENT: 4,
    ReorderPriority.HIGH: 3,
    ReorderPriority.MEDIUM: 2,
    ReorderPriority.LOW: 1,
}


# =============================================================================
# Pure calculations
# =============================================================================

def max_stock_for(min_stock: int) -> int:
    return max(min_stock * MAX_STOCK_MULTIPLIER, MAX_STOCK_FLOOR)


def classify_stock(available: int, min_stock: int) -> StockStatus:
    if available <= 0:
        return StockStatus.CRITICAL
    if available <= min_stock:
        return StockStatus.LOW
    if available >= max_stock_for(min_stock):
        return StockStatus.OVERSTOCK
    return StockStatus.NORMAL


def reorder_priority(current_stock: int, min_stock: int) -> ReorderPriority:
    if current_stock <= 0:
        return ReorderPriority.URGENT
    if current_stock <= min_stock / 2:
        return ReorderPriority.HIGH
    if current_stock <= min_stock:
        return ReorderPriority.MEDIUM
    return ReorderPriority.LOW


def observed_window_days(timestamps: Iterable[datetime]) -> float:
    """Elapsed days between the oldest and newest sample, at least 1."""
    stamps = [t for t in timestamps if t is not None]
    if len(stamps) < 2:
        return 1.0
    elapsed = (max(stamps) - min(stamps)).total_seconds() / 86400
    return max(elapsed, 1.0)


@dataclass(frozen=True)
class ReorderSuggestion:
    variant_id: Optional[int]
    current_stock: int
    min_stock: int
    max_stock: int
    avg_daily_sales: float
    safety_stock: int
    suggested_quantity: int
    days_until_stockout: int
    lead_time_days: int
    priority: ReorderPriority

    def to_dict(self) -> dict:
        data = asdict(self)
        data["avg_daily_sales"] = round(self.avg_daily_sales, 2)
        data["priority"] = self.priority.value
        return data


def compute_reorder_suggestion(
    *,
    current_stock: int,
    min_stock: int,
    out_quantities: list[int],
    window_days: float = 30,
    lead_time_days: int = 7,
    variant_id: int | None = None,
) -> ReorderSuggestion:
    if window_days <= 0:
        raise ValidationError("window_days must be > 0", {"window_days": window_days})

    max_stock = max_stock_for(min_stock)
    total_out = sum(out_quantities)
    avg_daily = total_out / window_days if out_quantities else 0.0

    lead_demand = avg_daily * lead_time_days
    safety = max(lead_demand, min_stock)
    suggested = max(max_stock - current_stock, safety + lead_demand - current_stock)
    suggested_quantity = max(math.ceil(suggested), 0)

    if avg_daily > 0:
        days_until_stockout = math.floor(current_stock / avg_daily)
    else:
        days_until_stockout = NO_STOCKOUT_DAYS

    return ReorderSuggestion(
        variant_id=variant_id,
        current_stock=current_stock,
        min_stock=min_stock,
        max_stock=max_stock,
        avg_daily_sales=avg_daily,
        safety_stock=math.ceil(safety),
        suggested_quantity=suggested_quantity,
        days_until_stockout=days_until_stockout,
        lead_time_days=lead_time_days,
        priority=reorder_priority(current_stock, min_stock),
    )


def sort_suggestions(suggestions: list[ReorderSuggestion]) -> list[ReorderSuggestion]:
    """Priority descending, then soonest stockout first."""
    return sorted(
        suggestions,
        key=lambda s: (-PRIORITY_ORDER[s.priority], s.days_until_stockout),
    )


def classify_days_remaining(days: int | None) -> str:
    if days is None:
        return "unknown"
    if days <= 7:
        return "critical"
    if days <= 14:
        return "warning"
    if days <= 30:
        return "normal"
    return "safe"


DAYS_STATUS_URGENCY = {"critical": 3, "warning": 2, "normal": 1, "safe": 0, "unknown": 0}


def production_quantity(current_stock: int, average_daily: float, lead_time_days: int, safety_days: int) -> int:
    """Units to produce so stock covers lead time plus safety days: ceil(avg * (lead + safety)) - stock, floored at 0."""
    target = math.ceil(average_daily * (lead_time_days + safety_days))
    return max(target - current_stock, 0)


# =============================================================================
# Queries
# =============================================================================

def _reorder_settings() -> dict:
    config = current_app.config
    mode = config.get("REORDER_WINDOW_MODE", "assumed")
    if mode not in WINDOW_MODES:
        raise ValidationError("unknown reorder window mode", {"mode": mode})
    return {
        "lead_time_days": int(config.get("REORDER_LEAD_TIME_DAYS", 7)),
        "window_days": int(config.get("REORDER_WINDOW_DAYS", 30)),
        "sample_size": int(config.get("REORDER_SAMPLE_SIZE", 10)),
        "mode": mode,
    }


def _recent_outflow(variant_id: int, sample_size: int) -> list[StockMovement]:
    return (
        db.session.query(StockMovement)
        .filter(
            StockMovement.variant_id == variant_id,
            StockMovement.type == StockMovementType.OUT,
        )
        .order_by(StockMovement.created_at.desc(), StockMovement.id.desc())
        .limit(sample_size)
        .all()
    )


def suggestion_for_variant(variant: ProductVariant, settings: dict | None = None) -> ReorderSuggestion:
    settings = settings or _reorder_settings()
    movements = _recent_outflow(variant.id, settings["sample_size"])

    window = settings["window_days"]
    if settings["mode"] == "observed" and movements:
        window = observed_window_days(m.created_at for m in movements)

    return compute_reorder_suggestion(
        current_stock=variant.stock,
        min_stock=variant.min_stock,
        out_quantities=[m.quantity for m in movements],
        window_days=window,
        lead_time_days=settings["lead_time_days"],
        variant_id=variant.id,
    )


def get_reorder_suggestions() -> dict:
    """Suggestions for every active variant at or below its minimum stock."""
    settings = _reorder_settings()
    variants = (
        ProductVariant.query
        .filter(
            ProductVariant.is_active.is_(True),
            ProductVariant.stock <= ProductVariant.min_stock,
        )
        .all()
    )

    by_id = {v.id: v for v in variants}
    suggestions = sort_suggestions([suggestion_for_variant(v, settings) for v in variants])

    rows = []
    for suggestion in suggestions:
        variant = by_id[suggestion.variant_id]
        row = suggestion.to_dict()
        row.update({
            "product_id": variant.product_id,
            "product_name": variant.product.name,
            "sku": variant.product.sku,
            "display_name": variant.display_name,
            "estimated_cost_cents": suggestion.suggested_quantity * variant.product.cost_price_cents,
            "potential_revenue_cents": suggestion.suggested_quantity * variant.effective_price_cents(),
        })
        rows.append(row)

    summary = {
        "total_items": len(rows),
        "urgent_items": sum(1 for s in suggestions if s.priority is ReorderPriority.URGENT),
        "high_priority_items": sum(1 for s in suggestions if s.priority is ReorderPriority.HIGH),
        "total_estimated_cost_cents": sum(r["estimated_cost_cents"] for r in rows),
        "total_potential_revenue_cents": sum(r["potential_revenue_cents"] for r in rows),
        "avg_days_until_stockout": (
            sum(s.days_until_stockout for s in suggestions) / len(suggestions) if suggestions else 0
        ),
    }
    return {"suggestions": rows, "summary": summary}


def get_inventory_overview(*, alerts_only: bool = False, include_inactive: bool = False) -> dict:
    """
    Per-variant stock status, days of stock, value and reorder hint.

    The summary always covers every listed variant; alerts_only only filters
    the rows (CRITICAL, LOW, OVERSTOCK).
    """
    settings = _reorder_settings()
    q = ProductVariant.query
    if not include_inactive:
        q = q.filter(ProductVariant.is_active.is_(True))
    variants = q.order_by(ProductVariant.id).all()

    last_movement_at = dict(
        db.session.query(StockMovement.variant_id, func.max(StockMovement.created_at))
        .group_by(StockMovement.variant_id)
        .all()
    )

    rows = []
    for variant in variants:
        status = classify_stock(variant.stock, variant.min_stock)
        suggestion = suggestion_for_variant(variant, settings)
        days_of_stock = (
            None if suggestion.days_until_stockout == NO_STOCKOUT_DAYS
            else suggestion.days_until_stockout
        )
        rows.append({
            "variant": variant.to_dict(),
            "current_stock": variant.stock,
            "available_stock": variant.stock,
            "min_stock": variant.min_stock,
            "max_stock": max_stock_for(variant.min_stock),
            "stock_status": status.value,
            "days_of_stock": days_of_stock,
            "inventory_value_cents": variant.stock * variant.effective_price_cents(),
            "suggested_reorder": (
                suggestion.suggested_quantity
                if status in (StockStatus.CRITICAL, StockStatus.LOW) else 0
            ),
            "last_movement_at": to_utc_z(last_movement_at[variant.id]) if last_movement_at.get(variant.id) else None,
        })

    known_days = [r["days_of_stock"] for r in rows if r["days_of_stock"] is not None]
    summary = {
        "total_variants": len(rows),
        "total_value_cents": sum(r["inventory_value_cents"] for r in rows),
        "critical_stock": sum(1 for r in rows if r["stock_status"] == StockStatus.CRITICAL.value),
        "low_stock": sum(1 for r in rows if r["stock_status"] == StockStatus.LOW.value),
        "normal_stock": sum(1 for r in rows if r["stock_status"] == StockStatus.NORMAL.value),
        "over_stock": sum(1 for r in rows if r["stock_status"] == StockStatus.OVERSTOCK.value),
        "avg_days_of_stock": sum(known_days) / len(known_days) if known_days else None,
        "total_reorder_suggestions": sum(1 for r in rows if r["suggested_reorder"] > 0),
    }

    if alerts_only:
        rows = [r for r in rows if r["stock_status"] != StockStatus.NORMAL.value]

    rows.sort(key=lambda r: -STATUS_PRIORITY[StockStatus(r["stock_status"])])
    return {"inventory": rows, "summary": summary}


def _sold_in_window(variant_id: int, days: int, now: datetime | None = None) -> int:
    since = (now or utcnow()) - timedelta(days=days)
    sold = (
        db.session.query(func.coalesce(func.sum(StockMovement.quantity), 0))
        .filter(
            StockMovement.variant_id == variant_id,
            StockMovement.type == StockMovementType.OUT,
            StockMovement.reason == MovementReason.SALE.value,
            StockMovement.created_at >= since,
        )
        .scalar()
    )
    return int(sold or 0)


def days_remaining(variant_id: int, days: int = 30, *, now: datetime | None = None) -> int | None:
    """
    Days until the variant sells out at its recent SALE rate.

    None when nothing was sold in the window.
    """
    if days <= 0:
        raise ValidationError("days must be > 0", {"days": days})
    variant = db.session.get(ProductVariant, variant_id)
    if variant is None:
        raise VariantNotFoundError(variant_id)

    sold = _sold_in_window(variant_id, days, now)
    if sold == 0:
        return None

    average = sold / days
    # Round half up
    return math.floor(variant.stock / average + 0.5)


def low_stock_by_days(threshold: int = 14, days: int = 30) -> list[dict]:
    """Active in-stock variants expected to sell out within `threshold` days, most urgent first."""
    variants = (
        ProductVariant.query
        .filter(ProductVariant.is_active.is_(True), ProductVariant.stock > 0)
        .order_by(ProductVariant.id)
        .all()
    )
    results = []
    for variant in variants:
        remaining = days_remaining(variant.id, days)
        if remaining is not None and remaining <= threshold:
            results.append({
                "variant": variant.to_dict(),
                "days_remaining": remaining,
                "status": classify_days_remaining(remaining),
            })
    results.sort(key=lambda r: r["days_remaining"])
    return results


def production_recommendations(
    threshold: int = 21,
    days: int = 30,
    *,
    lead_time_days: int = 7,
    safety_days: int = 7,
) -> list[dict]:
    """
    What to put into production for variants selling out within `threshold` days.

    Each row covers lead time plus safety days of recent sales; rows that
    need nothing are dropped. Most urgent first.
    """
    recommendations = []
    for row in low_stock_by_days(threshold, days):
        variant = row["variant"]
        average = _sold_in_window(variant["id"], days) / days
        quantity = production_quantity(variant["stock"], average, lead_time_days, safety_days)
        if quantity <= 0:
            continue
        recommendations.append({
            "variant": variant,
            "days_remaining": row["days_remaining"],
            "status": row["status"],
            "average_daily_sales": round(average, 2),
            "recommended_quantity": quantity,
            "urgency": DAYS_STATUS_URGENCY[row["status"]],
            "reason": f"Stock runs out in {row['days_remaining']} days",
        })
    recommendations.sort(key=lambda r: (-r["urgency"], r["days_remaining"]))
    return recommendations


def get_analytics_dashboard(threshold: int = 14, days: int = 30) -> dict:
    """Low-stock list, production recommendations and stock counts for the analytics page."""
    low_stock = low_stock_by_days(threshold, days)
    active = ProductVariant.query.filter(ProductVariant.is_active.is_(True))
    return {
        "variants": low_stock,
        "total": len(low_stock),
        "production_recommendations": production_recommendations(days=days),
        "total_variants": active.count(),
        "critical_stock": active.filter(ProductVariant.stock <= 0).count(),
        "warning_stock": active.filter(
            ProductVariant.stock > 0,
            ProductVariant.stock <= ProductVariant.min_stock,
        ).count(),
    }
