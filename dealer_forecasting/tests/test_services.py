"""
Integration tests for the forecasting services against an in-memory database.
"""
import unittest
from datetime import date, datetime

from sqlalchemy.exc import IntegrityError

from dealer_forecasting import api
from dealer_forecasting.core.order_planning import SuggestedOrderStatus
from dealer_forecasting.db import db, session_scope
from dealer_forecasting.exceptions import ForecastError, NotFoundError, OrderPlanError, ValidationError
from dealer_forecasting.models import (
    CustomerOrder, CustomerOrderItem, Dealer, DemandForecast, ForecastConfig, InventoryLevel,
    Product, SuggestedOrder
)
from dealer_forecasting.utils.date_utils import add_months

RUN_DATE = date(2026, 6, 15)


class DatabaseTestCase(unittest.TestCase):
    """Base class providing a fresh in-memory database with sample data.

    Dealer 1 (region CA) bought product 1 at a flat 100 units a month and
    product 2 at a rising rate for the 24 months before the run date.
    """

    def setUp(self):
        """Set up test fixtures."""
        db.initialize('sqlite://')
        db.create_all_tables()

        with session_scope() as session:
            session.add_all([
                Dealer(id=1, code='D001', name='Coastal RV', region='CA'),
                Dealer(id=2, code='D002', name='Prairie Outdoors', region=None),
                Product(id=1, sku='AWN-100', name='Awning Arm', price=50.0),
                Product(id=2, sku='FLT-200', name='Water Filter', price=20.0, cost_price=8.0),
                Product(id=3, sku='JCK-300', name='Leveling Jack', price=120.0),
            ])
            session.flush()

            session.add_all([
                InventoryLevel(product_id=1, location_code='MAIN', quantity=25, reserved=5),
                InventoryLevel(product_id=2, location_code='MAIN', quantity=10000, reserved=0),
            ])

            for i in range(24):
                submitted = datetime.combine(add_months(date(2024, 6, 10), i), datetime.min.time())
                order = CustomerOrder(dealer_id=1, status='delivered', submitted_at=submitted)
                order.items = [
                    CustomerOrderItem(product_id=1, quantity=100),
                    CustomerOrderItem(product_id=2, quantity=20 + 5 * i),
                ]
                session.add(order)

            # Drafts are not demand
            draft = CustomerOrder(dealer_id=1, status='draft', submitted_at=datetime(2026, 5, 2))
            draft.items = [CustomerOrderItem(product_id=3, quantity=40)]
            session.add(draft)

    def tearDown(self):
        """Tear down test fixtures."""
        db.drop_all_tables()

    def count(self, model):
        with session_scope() as session:
            return session.query(model).count()


class TestForecastConfig(DatabaseTestCase):
    """Test cases for forecast configuration."""

    def test_defaults(self):
        settings = api.get_or_create_forecast_config(1)

        self.assertEqual(settings['forecast_horizon'], 18)
        self.assertEqual(settings['history_period'], 24)
        self.assertEqual(settings['confidence_level'], 0.95)
        self.assertTrue(settings['is_active'])
        self.assertTrue(settings['use_seasonality'])
        self.assertEqual(settings['seasonality_type'], 'multiplicative')
        self.assertEqual(settings['reorder_point_method'], 'dynamic')
        self.assertEqual(settings['safety_stock_days'], 14)
        self.assertEqual(settings['lead_time_days'], 30)

    def test_get_or_create_is_stable(self):
        first = api.get_or_create_forecast_config(1)
        second = api.get_or_create_forecast_config(1)

        self.assertEqual(first['id'], second['id'])
        self.assertEqual(self.count(ForecastConfig), 1)

    def test_missing_dealer(self):
        with self.assertRaises(NotFoundError):
            api.get_or_create_forecast_config(99)

    def test_duplicate_config_fails(self):
        with self.assertRaises(IntegrityError):
            with session_scope() as session:
                session.add(ForecastConfig(dealer_id=1))
                session.flush()
                session.add(ForecastConfig(dealer_id=1))
                session.flush()

    def test_config_for_unknown_dealer_fails(self):
        with self.assertRaises(IntegrityError):
            with session_scope() as session:
                session.add(ForecastConfig(dealer_id=99))

    def test_update_merges_fields(self):
        api.get_or_create_forecast_config(1)

        settings = api.update_forecast_config(1, {
            'forecast_horizon': 12,
            'seasonality_type': 'additive',
            'reorder_point_method': 'min_max',
            'order_cost': 25.0
        })

        self.assertEqual(settings['forecast_horizon'], 12)
        self.assertEqual(settings['seasonality_type'], 'additive')
        self.assertEqual(settings['reorder_point_method'], 'min_max')
        self.assertEqual(settings['order_cost'], 25.0)
        self.assertEqual(settings['history_period'], 24)

    def test_update_rejects_invalid_values(self):
        with self.assertRaises(ValidationError) as context:
            api.update_forecast_config(1, {
                'forecast_horizon': 0,
                'confidence_level': 0.5,
                'reorder_point_method': 'weekly',
                'colour': 'blue'
            })

        details = context.exception.details
        self.assertIn('forecast_horizon', details)
        self.assertIn('confidence_level', details)
        self.assertIn('reorder_point_method', details)
        self.assertIn('colour', details)

    def test_update_unknown_pattern(self):
        with self.assertRaises(NotFoundError):
            api.update_forecast_config(1, {'seasonal_pattern_id': 42})


class TestDemandForecasts(DatabaseTestCase):
    """Test cases for forecast regeneration."""

    def test_generate(self):
        results = api.generate_demand_forecasts(1, as_of=RUN_DATE)

        self.assertIsInstance(results, list)
        self.assertEqual([r['product_id'] for r in results], [1, 2])
        self.assertEqual([len(r['periods']) for r in results], [18, 18])
        self.assertEqual(results[1]['summary']['trend_direction'], 'up')
        self.assertEqual(results[0]['periods'][0]['period_start'], '2026-07-01')
        self.assertIsNotNone(results[0]['periods'][0]['id'])
        self.assertEqual(self.count(DemandForecast), 36)

        with session_scope() as session:
            rows = session.query(DemandForecast).filter(DemandForecast.product_id == 1).all()
            self.assertEqual(rows[0].period_start, date(2026, 7, 1))
            for row in rows:
                self.assertAlmostEqual(row.forecasted_demand, 100.0)
                self.assertLessEqual(row.lower_bound, row.forecasted_demand)
                self.assertGreaterEqual(row.upper_bound, row.forecasted_demand)
                self.assertGreaterEqual(row.lower_bound, 0)

            config_row = session.query(ForecastConfig).filter(ForecastConfig.dealer_id == 1).one()
            self.assertIsNotNone(config_row.last_calculated_at)

    def test_regeneration_is_idempotent(self):
        api.generate_demand_forecasts(1, as_of=RUN_DATE)
        with session_scope() as session:
            first_ids = sorted(r.id for r in session.query(DemandForecast).all())

        results = api.generate_demand_forecasts(1, as_of=RUN_DATE)

        returned_ids = sorted(p['id'] for r in results for p in r['periods'])
        with session_scope() as session:
            second_ids = sorted(r.id for r in session.query(DemandForecast).all())
            products = {r.product_id for r in session.query(DemandForecast).all()}
        self.assertEqual(first_ids, second_ids)
        self.assertEqual(returned_ids, second_ids)
        self.assertEqual(products, {1, 2})

    def test_shorter_horizon_removes_stale_periods(self):
        api.generate_demand_forecasts(1, as_of=RUN_DATE)
        api.update_forecast_config(1, {'forecast_horizon': 6})

        results = api.generate_demand_forecasts(1, as_of=RUN_DATE)

        self.assertEqual([len(r['periods']) for r in results], [6, 6])
        self.assertEqual(self.count(DemandForecast), 12)

    def test_product_filter(self):
        results = api.generate_demand_forecasts(1, product_ids=[2], as_of=RUN_DATE)

        self.assertEqual([r['product_id'] for r in results], [2])
        self.assertEqual(self.count(DemandForecast), 18)

    def test_empty_product_subset(self):
        """An empty product subset returns no results and leaves stored rows alone."""
        api.generate_demand_forecasts(1, as_of=RUN_DATE)

        results = api.generate_demand_forecasts(1, product_ids=[], as_of=date(2026, 9, 15))

        self.assertEqual(results, [])
        self.assertEqual(self.count(DemandForecast), 36)
        with session_scope() as session:
            first = session.query(DemandForecast).order_by(DemandForecast.period_start).first()
            self.assertEqual(first.period_start, date(2026, 7, 1))

    def test_open_run_month_is_not_history(self):
        """Orders in the month of the run do not count as a full month of demand."""
        with session_scope() as session:
            order = CustomerOrder(dealer_id=1, status='delivered', submitted_at=datetime(2026, 6, 2))
            order.items = [CustomerOrderItem(product_id=1, quantity=5)]
            session.add(order)

        results = api.generate_demand_forecasts(1, product_ids=[1], as_of=RUN_DATE)

        first = results[0]['periods'][0]
        self.assertEqual(first['period_start'], '2026-07-01')
        self.assertAlmostEqual(first['forecasted_demand'], 100.0)
        self.assertEqual(results[0]['summary']['trend_direction'], 'stable')

    def test_draft_orders_are_not_demand(self):
        api.generate_demand_forecasts(1, as_of=RUN_DATE)

        with session_scope() as session:
            self.assertEqual(
                session.query(DemandForecast).filter(DemandForecast.product_id == 3).count(), 0
            )

    def test_duplicate_forecast_fails(self):
        api.generate_demand_forecasts(1, product_ids=[1], as_of=RUN_DATE)

        with self.assertRaises(IntegrityError):
            with session_scope() as session:
                existing = session.query(DemandForecast).first()
                session.add(DemandForecast(
                    forecast_config_id=existing.forecast_config_id,
                    product_id=existing.product_id,
                    period_start=existing.period_start,
                    period_end=existing.period_end,
                    forecasted_demand=1.0,
                    lower_bound=0.0,
                    upper_bound=2.0
                ))

    def test_market_adjustment_applies(self):
        api.seed_market_indicators(as_of=RUN_DATE)

        api.generate_demand_forecasts(1, product_ids=[1], as_of=RUN_DATE)

        with session_scope() as session:
            first = session.query(DemandForecast).order_by(DemandForecast.period_start).first()
            self.assertGreater(first.forecasted_demand, 100.0)

    def test_seasonal_pattern_fallback(self):
        """A configured pattern is used when history is too short for seasonality."""
        pattern = api.create_seasonal_pattern('Holiday peak', [1.0] * 11 + [2.0])
        api.update_forecast_config(1, {'seasonal_pattern_id': pattern['id'], 'history_period': 12})

        api.generate_demand_forecasts(1, product_ids=[1], as_of=RUN_DATE)

        with session_scope() as session:
            rows = {r.period_start: r.forecasted_demand for r in session.query(DemandForecast).all()}
        self.assertAlmostEqual(rows[date(2026, 11, 1)], 100.0)
        self.assertAlmostEqual(rows[date(2026, 12, 1)], 200.0)

    def test_chart_data(self):
        api.generate_demand_forecasts(1, as_of=RUN_DATE)

        chart = api.get_forecast_chart_data(1)
        single = api.get_forecast_chart_data(1, product_id=1)

        self.assertEqual(len(chart['labels']), 18)
        self.assertEqual(chart['labels'][0], 'Jul 2026')
        self.assertEqual(
            [d['label'] for d in chart['datasets']],
            ['Forecasted Demand', 'Lower Bound', 'Upper Bound']
        )
        self.assertAlmostEqual(single['datasets'][0]['data'][0], 100.0)
        self.assertGreater(chart['datasets'][0]['data'][0], single['datasets'][0]['data'][0])

    def test_summaries(self):
        api.generate_demand_forecasts(1, as_of=RUN_DATE)

        summaries = api.get_forecast_summaries(1)

        self.assertEqual(summaries[1]['trend_direction'], 'stable')
        self.assertEqual(summaries[2]['trend_direction'], 'up')
        self.assertAlmostEqual(summaries[1]['total_forecasted_demand'], 1800.0)

    def test_inactive_config(self):
        api.update_forecast_config(1, {'is_active': False})

        with self.assertRaises(ForecastError):
            api.generate_demand_forecasts(1, as_of=RUN_DATE)


class TestSuggestedOrders(DatabaseTestCase):
    """Test cases for order plans and the suggested order lifecycle."""

    def setUp(self):
        super().setUp()
        api.generate_demand_forecasts(1, as_of=RUN_DATE)

    def test_plan(self):
        plan = api.generate_suggested_order_plan(1, as_of=RUN_DATE)

        self.assertEqual(plan['dealer_name'], 'Coastal RV')
        self.assertEqual(len(plan['orders']), 1)

        order = plan['orders'][0]
        self.assertEqual(order['product_id'], 1)
        self.assertEqual(order['status'], 'pending')
        self.assertEqual(order['priority'], 'critical')
        self.assertEqual(order['current_stock'], 20)
        self.assertEqual(order['suggested_quantity'], 168)
        self.assertAlmostEqual(order['estimated_cost'], 168 * 30.0)
        self.assertEqual(order['suggested_order_date'], '2026-06-15')
        self.assertEqual(order['expected_delivery_date'], '2026-07-15')
        self.assertEqual(order['reasoning']['risk_level'], 'high')

        self.assertEqual(plan['summary']['total_orders'], 1)
        self.assertEqual(plan['summary']['critical_orders'], 1)

    def test_replan_replaces_pending(self):
        api.generate_suggested_order_plan(1, as_of=RUN_DATE)
        first_id = api.get_suggested_orders(1)[0]['id']

        api.generate_suggested_order_plan(1, as_of=RUN_DATE)

        orders = api.get_suggested_orders(1)
        self.assertEqual(len(orders), 1)
        self.assertEqual(orders[0]['id'], first_id)

    def test_replan_keeps_decided_orders(self):
        api.generate_suggested_order_plan(1, as_of=RUN_DATE)
        order_id = api.get_suggested_orders(1)[0]['id']
        api.update_suggested_order_status(order_id, 'accepted')

        same_day = api.generate_suggested_order_plan(1, as_of=RUN_DATE)
        self.assertEqual(same_day['orders'], [])
        self.assertEqual(api.get_suggested_orders(1)[0]['status'], 'accepted')

        api.generate_suggested_order_plan(1, as_of=date(2026, 6, 16))
        orders = api.get_suggested_orders(1)
        self.assertEqual([o['status'] for o in orders], ['accepted', 'pending'])

    def test_stale_pending_orders_removed(self):
        api.generate_suggested_order_plan(1, as_of=RUN_DATE)

        with session_scope() as session:
            stock = session.query(InventoryLevel).filter(InventoryLevel.product_id == 1).one()
            stock.quantity = 10000

        plan = api.generate_suggested_order_plan(1, as_of=RUN_DATE)

        self.assertEqual(plan['orders'], [])
        self.assertEqual(self.count(SuggestedOrder), 0)

    def test_status_lifecycle(self):
        api.generate_suggested_order_plan(1, as_of=RUN_DATE)
        order_id = api.get_suggested_orders(1)[0]['id']

        ordered = api.update_suggested_order_status(order_id, 'ordered', actual_order_id=1)

        self.assertEqual(ordered['status'], 'ordered')
        self.assertIsNotNone(ordered['ordered_at'])
        self.assertEqual(ordered['actual_order_id'], 1)

        with self.assertRaises(OrderPlanError):
            api.update_suggested_order_status(order_id, 'pending')

    def test_skip_and_restore(self):
        api.generate_suggested_order_plan(1, as_of=RUN_DATE)
        order_id = api.get_suggested_orders(1)[0]['id']

        skipped = api.update_suggested_order_status(order_id, 'skipped')
        restored = api.update_suggested_order_status(order_id, 'pending')

        self.assertIsNotNone(skipped['skipped_at'])
        self.assertEqual(restored['status'], 'pending')
        self.assertEqual(len(api.get_suggested_orders(1, status='pending')), 1)
        self.assertEqual(api.get_suggested_orders(1, status='skipped'), [])

    def test_invalid_status_updates(self):
        api.generate_suggested_order_plan(1, as_of=RUN_DATE)
        order_id = api.get_suggested_orders(1)[0]['id']

        with self.assertRaises(ValidationError):
            api.update_suggested_order_status(order_id, 'shipped')

        with self.assertRaises(NotFoundError):
            api.update_suggested_order_status(9999, 'accepted')

    def test_timeline(self):
        api.generate_suggested_order_plan(1, as_of=RUN_DATE)

        timeline = api.get_order_timeline_data(1)

        self.assertEqual(len(timeline['months']), 1)
        month = timeline['months'][0]
        self.assertEqual(month['month'], 'Jun 2026')
        self.assertEqual(month['orders'], 1)
        self.assertEqual(month['products'][0]['name'], 'Awning Arm')

    def test_deleting_config_cascades(self):
        api.generate_suggested_order_plan(1, as_of=RUN_DATE)

        with session_scope() as session:
            session.delete(session.query(ForecastConfig).filter(ForecastConfig.dealer_id == 1).one())

        self.assertEqual(self.count(DemandForecast), 0)
        self.assertEqual(self.count(SuggestedOrder), 0)

    def test_plan_ignores_past_forecast_periods(self):
        """A plan run after the forecast horizon has passed suggests nothing."""
        plan = api.generate_suggested_order_plan(1, as_of=date(2028, 1, 15))

        self.assertEqual(plan['orders'], [])
        self.assertEqual(self.count(SuggestedOrder), 0)

    def test_stored_status_enum(self):
        api.generate_suggested_order_plan(1, as_of=RUN_DATE)

        with session_scope() as session:
            order = session.query(SuggestedOrder).one()
            self.assertEqual(order.status, SuggestedOrderStatus.PENDING)
            self.assertEqual(order.reasoning.stockout_risk, 100.0)


class TestMarketService(DatabaseTestCase):
    """Test cases for market indicators."""

    def test_analysis_without_indicators(self):
        analysis = api.get_market_analysis(1, as_of=RUN_DATE)

        self.assertEqual(analysis['region'], 'CA')
        self.assertEqual(analysis['adjustment_factor'], 1.0)
        self.assertEqual(analysis['overall_outlook'], 'neutral')

    def test_seeded_analysis(self):
        api.seed_market_indicators(as_of=RUN_DATE)

        regional = api.get_market_analysis(1, as_of=RUN_DATE)
        national = api.get_market_analysis(2, as_of=RUN_DATE)

        self.assertEqual(len(regional['indicators']), 4)
        self.assertEqual(len(national['indicators']), 3)
        self.assertEqual(national['region'], 'national')
        self.assertGreater(regional['adjustment_factor'], 1.0)
        self.assertLess(regional['adjustment_factor'], 1.1)

    def test_old_indicators_ignored(self):
        api.upsert_market_indicator(
            region='CA', indicator_name='Housing Starts', indicator_type='industry',
            period_start=date(2024, 1, 1), value=100.0, impact_factor=2.0
        )

        analysis = api.get_market_analysis(1, as_of=RUN_DATE)

        self.assertEqual(analysis['indicators'], [])

    def test_upsert_updates_in_place(self):
        first = api.upsert_market_indicator(
            region='CA', indicator_name='Housing Starts', indicator_type='industry',
            period_start=date(2026, 5, 1), value=145000.0, previous_value=138000.0
        )
        second = api.upsert_market_indicator(
            region='CA', indicator_name='Housing Starts', indicator_type='industry',
            period_start=date(2026, 5, 1), value=150000.0, previous_value=120000.0
        )

        self.assertEqual(first['id'], second['id'])
        self.assertEqual(second['value'], 150000.0)
        self.assertAlmostEqual(second['percent_change'], 25.0)
        self.assertEqual(second['impact_factor'], 1.0)

    def test_upsert_validation(self):
        with self.assertRaises(ValidationError):
            api.upsert_market_indicator(region='CA', indicator_name='Housing Starts')

        with self.assertRaises(ValidationError):
            api.upsert_market_indicator(
                region='CA', indicator_name='Housing Starts', indicator_type='weather',
                period_start=date(2026, 5, 1), value=1.0
            )

    def test_regional_comparison(self):
        api.seed_market_indicators(as_of=RUN_DATE)

        comparison = api.get_regional_comparison(['CA', 'TX'], as_of=RUN_DATE)

        self.assertEqual(sorted(comparison), ['CA', 'TX'])
        self.assertEqual(len(comparison['TX']['indicators']), 4)

    def test_missing_dealer(self):
        with self.assertRaises(NotFoundError):
            api.get_market_analysis(99)


class TestSeasonalPatterns(DatabaseTestCase):
    """Test cases for the seasonal pattern library."""

    def test_list_patterns(self):
        api.create_seasonal_pattern('Flat', [1.0] * 12)
        api.create_seasonal_pattern('Coastal summer', [0.8] * 6 + [1.2] * 6, dealer_id=1)

        self.assertEqual([p['name'] for p in api.list_seasonal_patterns()], ['Flat'])
        self.assertEqual(
            [p['name'] for p in api.list_seasonal_patterns(1)],
            ['Coastal summer', 'Flat']
        )

    def test_invalid_pattern(self):
        with self.assertRaises(ValidationError):
            api.create_seasonal_pattern('Short', [1.0] * 11)

        with self.assertRaises(ValidationError):
            api.create_seasonal_pattern('Negative', [1.0] * 11 + [-1.0])

        with self.assertRaises(NotFoundError):
            api.create_seasonal_pattern('Orphan', [1.0] * 12, dealer_id=99)

    def test_duplicate_name_fails(self):
        api.create_seasonal_pattern('Coastal summer', [1.0] * 12, dealer_id=1)

        with self.assertRaises(IntegrityError):
            api.create_seasonal_pattern('Coastal summer', [1.0] * 12, dealer_id=1)

    def test_duplicate_global_name_fails(self):
        api.create_seasonal_pattern('Holiday', [1.0] * 12)

        with self.assertRaises(IntegrityError):
            api.create_seasonal_pattern('Holiday', [1.0] * 11 + [1.5])

        self.assertEqual([p['name'] for p in api.list_seasonal_patterns()], ['Holiday'])

    def test_same_name_global_and_dealer(self):
        api.create_seasonal_pattern('Holiday', [1.0] * 12)
        api.create_seasonal_pattern('Holiday', [1.0] * 12, dealer_id=1)

        self.assertEqual(len(api.list_seasonal_patterns(1)), 2)


if __name__ == '__main__':
    unittest.main()
