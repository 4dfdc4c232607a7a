"""
Unit tests for order planning.
"""
import math
import unittest
from datetime import date

from dealer_forecasting.core.forecast import ForecastPeriod
from dealer_forecasting.core.order_planning import (
    OrderPriority, OrderReasoning, PlanningParameters, ReorderPointMethod, RiskLevel,
    SuggestedOrderStatus, accumulate_demand, calculate_days_of_supply,
    calculate_economic_order_quantity, calculate_overstock_risk, calculate_stockout_risk,
    determine_priority, determine_risk_level, plan_product_order, summarize_order_plan,
    validate_status_transition
)
from dealer_forecasting.exceptions import OrderPlanError
from dealer_forecasting.utils.date_utils import get_month_end


def period(start, demand):
    return ForecastPeriod(
        period_start=start,
        period_end=get_month_end(start),
        forecasted_demand=demand,
        lower_bound=demand,
        upper_bound=demand
    )


class TestOrderPlanning(unittest.TestCase):
    """Test cases for reorder policies and order suggestions."""

    def setUp(self):
        """Ten units a day from June through August 2027."""
        self.periods = [
            period(date(2027, 6, 1), 300),
            period(date(2027, 7, 1), 310),
            period(date(2027, 8, 1), 310),
        ]
        self.order_date = date(2027, 5, 20)

    def plan(self, current_stock, **params):
        return plan_product_order(
            1, self.periods, current_stock, PlanningParameters(**params),
            unit_cost=12.0, unit_price=20.0, order_date=self.order_date
        )

    def test_accumulate_demand(self):
        self.assertAlmostEqual(accumulate_demand(self.periods, 45), 450.0)
        self.assertAlmostEqual(accumulate_demand(self.periods, 100), 1000.0)
        self.assertEqual(accumulate_demand([], 30), 0.0)

    def test_fixed_policy(self):
        suggestion = self.plan(100, reorder_point_method=ReorderPointMethod.FIXED)

        self.assertIsNotNone(suggestion)
        self.assertAlmostEqual(suggestion.reorder_point, 440.0)
        self.assertEqual(suggestion.suggested_quantity, 480)
        self.assertEqual(suggestion.minimum_quantity, 480)
        self.assertEqual(suggestion.expected_delivery_date, date(2027, 6, 19))
        self.assertEqual(suggestion.priority, OrderPriority.CRITICAL)
        self.assertAlmostEqual(suggestion.estimated_cost, 5760.0)
        self.assertAlmostEqual(suggestion.estimated_value, 9600.0)
        self.assertEqual(suggestion.projected_stock, 0.0)
        self.assertEqual(suggestion.reasoning.risk_level, RiskLevel.HIGH)
        self.assertEqual(suggestion.reasoning.stockout_risk, 100.0)
        self.assertEqual(suggestion.reasoning.primary_reason, 'Prevent stockout before delivery')

    def test_no_order_above_reorder_point(self):
        self.assertIsNone(self.plan(441, reorder_point_method=ReorderPointMethod.FIXED))

        at_reorder_point = self.plan(440, reorder_point_method=ReorderPointMethod.FIXED)
        self.assertIsNotNone(at_reorder_point)
        self.assertEqual(at_reorder_point.suggested_quantity, 140)
        self.assertEqual(at_reorder_point.priority, OrderPriority.NORMAL)

    def test_order_multiple_and_minimum(self):
        rounded = self.plan(100, reorder_point_method=ReorderPointMethod.FIXED, order_multiple=25)
        self.assertEqual(rounded.suggested_quantity, 500)

        minimum = self.plan(100, reorder_point_method=ReorderPointMethod.FIXED, min_order_quantity=1000)
        self.assertEqual(minimum.suggested_quantity, 1000)
        self.assertEqual(minimum.minimum_quantity, 1000)

    def test_min_max_policy(self):
        suggestion = self.plan(440, reorder_point_method=ReorderPointMethod.MIN_MAX)

        self.assertAlmostEqual(suggestion.reorder_point, 440.0)
        self.assertEqual(suggestion.suggested_quantity, 300)
        self.assertIsNone(self.plan(441, reorder_point_method=ReorderPointMethod.MIN_MAX))

    def test_dynamic_policy_without_variability(self):
        """With no demand variability the reorder point is lead time demand."""
        suggestion = self.plan(300)

        self.assertAlmostEqual(suggestion.reorder_point, 300.0)
        self.assertEqual(suggestion.suggested_quantity, 280)
        self.assertIsNone(self.plan(301))

    def test_dynamic_policy_buffer(self):
        params = PlanningParameters(confidence_level=0.95)

        ordered = plan_product_order(1, self.periods, 345, params, order_date=self.order_date, demand_std=30)
        skipped = plan_product_order(1, self.periods, 355, params, order_date=self.order_date, demand_std=30)

        self.assertIsNotNone(ordered)
        self.assertAlmostEqual(ordered.reorder_point, 349.35, places=2)
        self.assertIsNone(skipped)

    def test_no_demand(self):
        periods = [period(date(2027, 6, 1), 0), period(date(2027, 7, 1), 0)]

        self.assertIsNone(plan_product_order(1, periods, 0, PlanningParameters()))
        self.assertIsNone(plan_product_order(1, [], 0, PlanningParameters()))

    def test_economic_order_quantity(self):
        self.assertAlmostEqual(calculate_economic_order_quantity(1200, 50, 10, 0.2), 244.95)
        self.assertIsNone(calculate_economic_order_quantity(1200, None, 10, 0.2))
        self.assertIsNone(calculate_economic_order_quantity(1200, 50, 0, 0.2))

        without_cost = self.plan(100)
        with_cost = self.plan(100, order_cost=50.0)
        self.assertIsNone(without_cost.economic_order_qty)
        self.assertAlmostEqual(with_cost.economic_order_qty, round(math.sqrt(2 * 3650 * 50 / 2.4), 2))

    def test_priority(self):
        self.assertEqual(determine_priority(10, 30, 14), OrderPriority.CRITICAL)
        self.assertEqual(determine_priority(35, 30, 14), OrderPriority.HIGH)
        self.assertEqual(determine_priority(50, 30, 14), OrderPriority.NORMAL)
        self.assertEqual(determine_priority(100, 30, 14), OrderPriority.LOW)

    def test_risk(self):
        self.assertEqual(calculate_stockout_risk(70, 140), 50.0)
        self.assertEqual(calculate_stockout_risk(0, 140), 100.0)
        self.assertEqual(calculate_stockout_risk(200, 140), 0.0)
        self.assertEqual(calculate_overstock_risk(600, 500), 20.0)
        self.assertEqual(calculate_overstock_risk(400, 500), 0.0)

        self.assertEqual(determine_risk_level(90), RiskLevel.HIGH)
        self.assertEqual(determine_risk_level(50), RiskLevel.MEDIUM)
        self.assertEqual(determine_risk_level(40), RiskLevel.LOW)

    def test_days_of_supply(self):
        self.assertEqual(calculate_days_of_supply(100, 10), 10)
        self.assertEqual(calculate_days_of_supply(-5, 10), 0)
        self.assertTrue(math.isinf(calculate_days_of_supply(100, 0)))

    def test_summary(self):
        first = self.plan(100, reorder_point_method=ReorderPointMethod.FIXED)
        second = self.plan(440, reorder_point_method=ReorderPointMethod.FIXED)

        summary = summarize_order_plan([first, second], as_of=self.order_date)

        self.assertEqual(summary.total_orders, 2)
        self.assertEqual(summary.total_units, 620)
        self.assertEqual(summary.critical_orders, 1)
        self.assertEqual(summary.upcoming_week, 2)
        self.assertEqual(summary.upcoming_month, 2)

    def test_reasoning_serialization(self):
        reasoning = OrderReasoning(
            primary_reason='Maintain safety stock levels',
            factors=['Lead time: 30 days'],
            risk_level=RiskLevel.MEDIUM,
            stockout_risk=45.0
        )

        self.assertEqual(OrderReasoning.from_json(reasoning.to_json()), reasoning)


class TestStatusTransitions(unittest.TestCase):
    """Test cases for the suggested order lifecycle."""

    def test_allowed_transitions(self):
        validate_status_transition(SuggestedOrderStatus.PENDING, SuggestedOrderStatus.ACCEPTED)
        validate_status_transition(SuggestedOrderStatus.PENDING, SuggestedOrderStatus.ORDERED)
        validate_status_transition(SuggestedOrderStatus.ACCEPTED, SuggestedOrderStatus.SKIPPED)
        validate_status_transition(SuggestedOrderStatus.SKIPPED, SuggestedOrderStatus.PENDING)
        validate_status_transition(SuggestedOrderStatus.ORDERED, SuggestedOrderStatus.ORDERED)

    def test_rejected_transitions(self):
        with self.assertRaises(OrderPlanError):
            validate_status_transition(SuggestedOrderStatus.ORDERED, SuggestedOrderStatus.PENDING)

        with self.assertRaises(OrderPlanError):
            validate_status_transition(SuggestedOrderStatus.ACCEPTED, SuggestedOrderStatus.PENDING)

        with self.assertRaises(OrderPlanError):
            validate_status_transition(SuggestedOrderStatus.SKIPPED, SuggestedOrderStatus.ORDERED)


if __name__ == '__main__':
    unittest.main()
