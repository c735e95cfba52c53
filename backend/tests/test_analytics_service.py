"""
Inventory analytics tests.

Covers stock classification, the reorder heuristic (pure and over real
movement history), suggestion ordering and days-remaining estimates.
"""

from datetime import datetime, timedelta

import pytest

from kelola.extensions import db
from kelola.models import StockMovement, StockMovementType
from kelola.services import analytics_service, catalog_service, ledger_service
from kelola.services.analytics_service import (
    ReorderPriority,
    StockStatus,
    classify_days_remaining,
    classify_stock,
    compute_reorder_suggestion,
    max_stock_for,
    observed_window_days,
    production_quantity,
    sort_suggestions,
)
from kelola.time_utils import utcnow


class TestClassifyStock:

    @pytest.mark.parametrize(
        "available,expected",
        [
            (0, StockStatus.CRITICAL),
            (-3, StockStatus.CRITICAL),
            (5, StockStatus.LOW),
            (10, StockStatus.LOW),
            (35, StockStatus.NORMAL),
            (49, StockStatus.NORMAL),
            (50, StockStatus.OVERSTOCK),
            (55, StockStatus.OVERSTOCK),
        ],
    )
    def test_min_stock_ten(self, available, expected):
        assert classify_stock(available, 10) is expected

    def test_max_stock_scales_with_min(self):
        assert max_stock_for(10) == 50
        assert max_stock_for(20) == 60
        assert classify_stock(55, 20) is StockStatus.NORMAL


class TestReorderSuggestion:

    def test_reference_case(self):
        # 90 units over the 30-day window, min 5, stock 2
        suggestion = compute_reorder_suggestion(
            current_stock=2,
            min_stock=5,
            out_quantities=[9] * 10,
        )

        assert suggestion.avg_daily_sales == 3
        assert suggestion.safety_stock == 21
        assert suggestion.max_stock == 50
        assert suggestion.suggested_quantity == 48
        assert suggestion.priority is ReorderPriority.HIGH
        assert suggestion.days_until_stockout == 0

    def test_no_outflow(self):
        suggestion = compute_reorder_suggestion(current_stock=3, min_stock=4, out_quantities=[])

        assert suggestion.avg_daily_sales == 0
        assert suggestion.days_until_stockout == 999
        assert suggestion.safety_stock == 4
        assert suggestion.suggested_quantity == 47
        assert suggestion.priority is ReorderPriority.MEDIUM

    def test_demand_term_can_dominate(self):
        # avg 10/day: safety 70, demand target 70 + 70 - 0 = 140 > max 50
        suggestion = compute_reorder_suggestion(
            current_stock=0, min_stock=5, out_quantities=[30] * 10
        )
        assert suggestion.suggested_quantity == 140
        assert suggestion.priority is ReorderPriority.URGENT

    def test_never_negative(self):
        suggestion = compute_reorder_suggestion(current_stock=500, min_stock=5, out_quantities=[1])
        assert suggestion.suggested_quantity == 0
        assert suggestion.priority is ReorderPriority.LOW

    def test_fractional_quantities_are_ceiled(self):
        # avg 0.1/day -> safety max(0.7, 0) = 0.7; max(50 - 49, 0.7 + 0.7 - 49) = 1
        suggestion = compute_reorder_suggestion(current_stock=49, min_stock=0, out_quantities=[3])
        assert suggestion.suggested_quantity == 1
        assert suggestion.safety_stock == 1

    def test_sorting(self):
        low = compute_reorder_suggestion(current_stock=9, min_stock=5, out_quantities=[], variant_id=1)
        high_slow = compute_reorder_suggestion(current_stock=2, min_stock=5, out_quantities=[3], variant_id=2)
        high_fast = compute_reorder_suggestion(current_stock=2, min_stock=5, out_quantities=[90], variant_id=3)
        urgent = compute_reorder_suggestion(current_stock=0, min_stock=5, out_quantities=[], variant_id=4)

        ordered = sort_suggestions([low, high_slow, urgent, high_fast])

        assert [s.variant_id for s in ordered] == [4, 3, 2, 1]

    def test_to_dict(self):
        data = compute_reorder_suggestion(
            current_stock=2, min_stock=5, out_quantities=[1, 1, 1], variant_id=7
        ).to_dict()
        assert data["priority"] == "HIGH"
        assert data["avg_daily_sales"] == 0.1
        assert data["variant_id"] == 7


class TestWindows:

    def test_observed_window(self):
        now = datetime(2026, 10, 18, 12, 0, 0)
        assert observed_window_days([now, now - timedelta(days=10)]) == 10
        assert observed_window_days([now, now - timedelta(hours=2)]) == 1
        assert observed_window_days([now]) == 1

    @pytest.mark.parametrize(
        "days,expected",
        [(None, "unknown"), (0, "critical"), (7, "critical"), (8, "warning"),
         (14, "warning"), (30, "normal"), (31, "safe")],
    )
    def test_classify_days_remaining(self, days, expected):
        assert classify_days_remaining(days) == expected


class TestReorderQueries:

    def test_suggestions_from_movement_history(self, make_variant):
        variant = make_variant(stock=92, min_stock=5, cost_price_cents=60, selling_price_cents=100)
        for _ in range(10):
            ledger_service.apply_stock_delta(variant.id, -9, StockMovementType.OUT, "SALE")
        make_variant(stock=40, min_stock=5)  # healthy, not suggested

        result = analytics_service.get_reorder_suggestions()

        assert result["summary"]["total_items"] == 1
        row = result["suggestions"][0]
        assert row["variant_id"] == variant.id
        assert row["current_stock"] == 2
        assert row["suggested_quantity"] == 48
        assert row["priority"] == "HIGH"
        assert row["estimated_cost_cents"] == 48 * 60
        assert row["potential_revenue_cents"] == 48 * 100
        assert result["summary"]["high_priority_items"] == 1

    def test_only_last_ten_out_movements_count(self, make_variant):
        variant = make_variant(stock=200, min_stock=200)
        ledger_service.apply_stock_delta(variant.id, -100, None, "SALE")
        for _ in range(10):
            ledger_service.apply_stock_delta(variant.id, -3, None, "SALE")

        suggestion = analytics_service.suggestion_for_variant(variant)

        assert suggestion.avg_daily_sales == 1

    def test_inactive_variants_excluded(self, make_variant):
        variant = make_variant(stock=0, min_stock=5)
        variant.is_active = False
        db.session.commit()

        assert analytics_service.get_reorder_suggestions()["suggestions"] == []

    def test_observed_window_mode(self, app, make_variant, monkeypatch):
        monkeypatch.setitem(app.config, "REORDER_WINDOW_MODE", "observed")
        variant = make_variant(stock=10, min_stock=10)
        for _ in range(3):
            ledger_service.apply_stock_delta(variant.id, -2, None, "SALE")

        suggestion = analytics_service.suggestion_for_variant(variant)

        # All samples within one day -> window of 1 day
        assert suggestion.avg_daily_sales == 6


class TestInventoryOverview:

    def _seed(self, make_variant):
        return {
            "critical": make_variant(stock=0, min_stock=10),
            "low": make_variant(stock=5, min_stock=10),
            "normal": make_variant(stock=35, min_stock=10),
            "over": make_variant(stock=55, min_stock=10),
        }

    def test_summary_counts(self, make_variant):
        self._seed(make_variant)

        result = analytics_service.get_inventory_overview()

        summary = result["summary"]
        assert summary["total_variants"] == 4
        assert summary["critical_stock"] == 1
        assert summary["low_stock"] == 1
        assert summary["normal_stock"] == 1
        assert summary["over_stock"] == 1
        assert summary["total_value_cents"] == (0 + 5 + 35 + 55) * 100
        assert summary["total_reorder_suggestions"] == 2
        assert [r["stock_status"] for r in result["inventory"]] == ["CRITICAL", "LOW", "OVERSTOCK", "NORMAL"]

    def test_alerts_only(self, make_variant):
        self._seed(make_variant)

        result = analytics_service.get_inventory_overview(alerts_only=True)

        assert {r["stock_status"] for r in result["inventory"]} == {"CRITICAL", "LOW", "OVERSTOCK"}
        assert result["summary"]["total_variants"] == 4


class TestDaysRemaining:

    def test_from_recent_sales(self, make_variant):
        variant = make_variant(stock=44)
        ledger_service.apply_stock_delta(variant.id, -30, None, "SALE")

        remaining = analytics_service.days_remaining(variant.id)

        # 30 sold in 30 days -> 1/day, 14 left
        assert remaining == 14
        assert classify_days_remaining(remaining) == "warning"

    def test_sales_outside_window_ignored(self, make_variant):
        variant = make_variant(stock=10)
        db.session.add(StockMovement(
            variant_id=variant.id,
            type=StockMovementType.OUT,
            quantity=5,
            stock_before=15,
            stock_after=10,
            reason="SALE",
            created_at=utcnow() - timedelta(days=40),
        ))
        db.session.commit()

        assert analytics_service.days_remaining(variant.id) is None

    def test_non_sale_outflow_ignored(self, make_variant):
        variant = make_variant(stock=10)
        ledger_service.apply_stock_delta(variant.id, -5, None, "Damaged")

        assert analytics_service.days_remaining(variant.id) is None

    def test_low_stock_by_days(self, make_variant):
        fast = make_variant(stock=40)
        ledger_service.apply_stock_delta(fast.id, -30, None, "SALE")  # 10 left, 10 days
        slow = make_variant(stock=100)
        ledger_service.apply_stock_delta(slow.id, -3, None, "SALE")  # 97 left, ~970 days

        rows = analytics_service.low_stock_by_days(threshold=14)

        assert [r["variant"]["id"] for r in rows] == [fast.id]
        assert rows[0]["days_remaining"] == 10
        assert rows[0]["status"] == "warning"


class TestProductionRecommendations:

    def _seed(self, make_variant):
        soon = make_variant(stock=40)
        ledger_service.apply_stock_delta(soon.id, -30, None, "SALE")  # 10 left, 10 days
        covered = make_variant(stock=50)
        ledger_service.apply_stock_delta(covered.id, -30, None, "SALE")  # 20 left, 20 days
        plenty = make_variant(stock=100)
        ledger_service.apply_stock_delta(plenty.id, -30, None, "SALE")  # 70 left, 70 days
        urgent = make_variant(stock=12)
        ledger_service.apply_stock_delta(urgent.id, -10, None, "SALE")  # 2 left, 6 days
        return soon, covered, plenty, urgent

    def test_quantity_covers_lead_time_and_safety(self):
        assert production_quantity(10, 1.0, 7, 7) == 4
        assert production_quantity(20, 1.0, 7, 7) == 0
        assert production_quantity(0, 0.5, 7, 7) == 7
        # ceil(10/30 * 14) = 5
        assert production_quantity(2, 10 / 30, 7, 7) == 3

    def test_recommendations_from_sales(self, make_variant):
        soon, covered, plenty, urgent = self._seed(make_variant)

        rows = analytics_service.production_recommendations()

        assert [r["variant"]["id"] for r in rows] == [urgent.id, soon.id]
        assert rows[0]["status"] == "critical"
        assert rows[0]["urgency"] == 3
        assert rows[0]["recommended_quantity"] == 3
        assert rows[1]["status"] == "warning"
        assert rows[1]["urgency"] == 2
        assert rows[1]["days_remaining"] == 10
        assert rows[1]["recommended_quantity"] == 4
        assert rows[1]["average_daily_sales"] == 1.0

    def test_nothing_sold_means_nothing_recommended(self, make_variant):
        make_variant(stock=1)
        assert analytics_service.production_recommendations() == []

    def test_dashboard_counts(self, make_variant):
        soon, covered, plenty, urgent = self._seed(make_variant)
        make_variant(stock=0)
        make_variant(stock=3, min_stock=5)
        retired = make_variant(stock=0)
        catalog_service.deactivate_variant(retired.product_id, retired.id)

        dashboard = analytics_service.get_analytics_dashboard()

        assert dashboard["total_variants"] == 6
        assert dashboard["critical_stock"] == 1
        # urgent (2 left) and the 3-of-5 variant
        assert dashboard["warning_stock"] == 2
        assert [r["variant"]["id"] for r in dashboard["variants"]] == [urgent.id, soon.id]
        assert dashboard["total"] == 2
        assert [r["variant"]["id"] for r in dashboard["production_recommendations"]] == [urgent.id, soon.id]
