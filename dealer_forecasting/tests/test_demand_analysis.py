"""
Unit tests for demand history aggregation, smoothing, trend and seasonality.
"""
import unittest
from datetime import date

from dealer_forecasting.core.demand_history import (
    HistoricalDemandPoint, aggregate_to_monthly, group_by_product, to_monthly_series
)
from dealer_forecasting.core.seasonality import SeasonalFactors, calculate_seasonal_factors
from dealer_forecasting.core.smoothing import (
    calculate_exponential_ma, calculate_moving_average, calculate_standard_error, detect_outliers
)
from dealer_forecasting.core.trend import TrendDirection, analyze_trend
from dealer_forecasting.exceptions import ValidationError
from dealer_forecasting.utils.date_utils import add_months


def monthly_points(quantities, start=date(2024, 1, 1)):
    return [
        HistoricalDemandPoint(date=add_months(start, i), quantity=q)
        for i, q in enumerate(quantities)
    ]


class TestDemandHistory(unittest.TestCase):
    """Test cases for monthly aggregation."""

    def test_aggregate_to_monthly(self):
        """Order lines in the same month are summed onto the 1st."""
        points = [
            HistoricalDemandPoint(date(2025, 1, 5), 10, product_id=7),
            HistoricalDemandPoint(date(2025, 1, 15), 20, product_id=7),
            HistoricalDemandPoint(date(2025, 1, 25), 30, product_id=7),
            HistoricalDemandPoint(date(2025, 2, 10), 50, product_id=7),
        ]

        monthly = aggregate_to_monthly(points)

        self.assertEqual(len(monthly), 2)
        self.assertEqual(monthly[0].date, date(2025, 1, 1))
        self.assertEqual(monthly[0].quantity, 60)
        self.assertEqual(monthly[1].date, date(2025, 2, 1))
        self.assertEqual(monthly[1].quantity, 50)
        self.assertEqual(monthly[0].product_id, 7)

    def test_aggregate_sorts_and_skips_empty_months(self):
        points = [
            HistoricalDemandPoint(date(2025, 4, 2), 5),
            HistoricalDemandPoint(date(2025, 1, 20), 3),
        ]

        monthly = aggregate_to_monthly(points)

        self.assertEqual([p.date for p in monthly], [date(2025, 1, 1), date(2025, 4, 1)])
        self.assertEqual(aggregate_to_monthly([]), [])

    def test_group_by_product(self):
        points = [
            HistoricalDemandPoint(date(2025, 1, 1), 1, product_id=1),
            HistoricalDemandPoint(date(2025, 1, 2), 2, product_id=2),
            HistoricalDemandPoint(date(2025, 1, 3), 3, product_id=1),
        ]

        grouped = group_by_product(points)

        self.assertEqual(sorted(grouped), [1, 2])
        self.assertEqual([p.quantity for p in grouped[1]], [1, 3])

    def test_monthly_series_fills_gaps(self):
        series = to_monthly_series([
            HistoricalDemandPoint(date(2025, 1, 1), 4),
            HistoricalDemandPoint(date(2025, 3, 1), 6),
        ])

        self.assertEqual(series.tolist(), [4.0, 0.0, 6.0])


class TestSmoothing(unittest.TestCase):
    """Test cases for moving averages and outlier detection."""

    def test_moving_average(self):
        self.assertEqual(calculate_moving_average([10, 20, 30, 40, 50], 3), [20, 30, 40])

    def test_moving_average_short_series(self):
        """A window at least as long as the data returns the data."""
        self.assertEqual(calculate_moving_average([1, 2], 3), [1, 2])

        with self.assertRaises(ValidationError):
            calculate_moving_average([1, 2, 3], 0)

    def test_exponential_ma(self):
        self.assertEqual(calculate_exponential_ma([100, 200], 0.5), [100, 150])

    def test_exponential_ma_alpha_bounds(self):
        data = [100, 200, 50, 80]

        self.assertEqual(calculate_exponential_ma(data, 0), [100, 100, 100, 100])
        self.assertEqual(calculate_exponential_ma(data, 1), data)

        with self.assertRaises(ValidationError):
            calculate_exponential_ma(data, 1.5)

    def test_detect_outliers(self):
        result = detect_outliers([10, 11, 12, 13, 14, 15, 100])

        self.assertEqual(result.outliers, [100])
        self.assertEqual(result.outlier_indices, [6])
        self.assertEqual(result.cleaned_data, [10, 11, 12, 13, 14, 15])

    def test_detect_outliers_small_sample(self):
        result = detect_outliers([1, 100, 1])

        self.assertEqual(result.outliers, [])
        self.assertEqual(result.cleaned_data, [1, 100, 1])

    def test_standard_error(self):
        self.assertEqual(calculate_standard_error([5]), 0.0)
        self.assertEqual(calculate_standard_error([3, 3, 3]), 0.0)
        self.assertAlmostEqual(calculate_standard_error([1, 2, 3, 4]), 1.2909944, places=6)


class TestTrend(unittest.TestCase):
    """Test cases for trend analysis."""

    def test_increasing_series(self):
        trend = analyze_trend(monthly_points([10, 20, 30, 40, 50]))

        self.assertGreater(trend.slope, 0)
        self.assertEqual(trend.direction, TrendDirection.UP)
        self.assertAlmostEqual(trend.slope, 10.0)
        self.assertAlmostEqual(trend.r_squared, 1.0)

    def test_decreasing_series(self):
        trend = analyze_trend(monthly_points([90, 70, 55, 40]))

        self.assertLess(trend.slope, 0)
        self.assertEqual(trend.direction, TrendDirection.DOWN)

    def test_noisy_flat_series(self):
        trend = analyze_trend(monthly_points([100, 102, 99, 101, 100, 98, 101, 100]))

        self.assertEqual(trend.direction, TrendDirection.STABLE)

    def test_short_series(self):
        """Fewer than three points gives a flat trend at the last value."""
        trend = analyze_trend(monthly_points([40, 60]))

        self.assertEqual(trend.slope, 0.0)
        self.assertEqual(trend.project(5), 60.0)
        self.assertEqual(trend.direction, TrendDirection.STABLE)

        self.assertEqual(analyze_trend([]).project(1), 0.0)

    def test_unsorted_input(self):
        points = list(reversed(monthly_points([10, 20, 30, 40])))

        self.assertEqual(analyze_trend(points).direction, TrendDirection.UP)


class TestSeasonality(unittest.TestCase):
    """Test cases for seasonal factor estimation."""

    def test_neutral_with_short_history(self):
        factors = calculate_seasonal_factors(monthly_points([100] * 23))

        self.assertFalse(factors.calculated)
        self.assertEqual(factors.monthly, [1.0] * 12)
        self.assertEqual(factors.pattern_strength, 0.0)

    def test_flat_history(self):
        factors = calculate_seasonal_factors(monthly_points([50] * 24))

        self.assertTrue(factors.calculated)
        for factor in factors.monthly:
            self.assertAlmostEqual(factor, 1.0)
        self.assertAlmostEqual(factors.pattern_strength, 0.0)

    def test_winter_peak(self):
        """Winter months carry factors above summer months."""
        quantities = []
        for i in range(36):
            month = i % 12 + 1
            quantities.append(150 if month in (11, 12, 1) else 80)

        factors = calculate_seasonal_factors(monthly_points(quantities))

        self.assertTrue(factors.calculated)
        self.assertAlmostEqual(sum(factors.monthly) / 12, 1.0)
        self.assertGreater(factors.factor_for_month(12), factors.factor_for_month(7))
        self.assertGreater(factors.factor_for_month(1), 1.0)
        self.assertGreater(factors.pattern_strength, 0.0)
        self.assertLessEqual(factors.pattern_strength, 1.0)

    def test_zero_history(self):
        factors = calculate_seasonal_factors(monthly_points([0] * 30))

        self.assertFalse(factors.calculated)
        self.assertEqual(factors.monthly, [1.0] * 12)

    def test_json_round_trip(self):
        factors = SeasonalFactors(monthly=[1.0] * 11 + [2.0], calculated=True, pattern_strength=0.3)

        restored = SeasonalFactors.from_json(factors.to_json())

        self.assertEqual(restored, factors)

    def test_requires_twelve_factors(self):
        with self.assertRaises(ValidationError):
            SeasonalFactors(monthly=[1.0] * 11)


if __name__ == '__main__':
    unittest.main()
