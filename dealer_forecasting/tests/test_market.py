"""
Unit tests for the market analysis combinator.
"""
import unittest

from dealer_forecasting.core.market import (
    IndicatorObservation, IndicatorType, MarketImpact, classify_trend, combine_indicators,
    determine_outlook
)
from dealer_forecasting.core.trend import TrendDirection


class TestMarketAnalysis(unittest.TestCase):
    """Test cases for combining market indicators."""

    def test_no_indicators(self):
        analysis = combine_indicators('CA', [])

        self.assertEqual(analysis.adjustment_factor, 1.0)
        self.assertEqual(analysis.overall_outlook, MarketImpact.NEUTRAL)
        self.assertEqual(analysis.indicators, [])

    def test_classify_trend(self):
        self.assertEqual(classify_trend(5.0), TrendDirection.UP)
        self.assertEqual(classify_trend(-3.0), TrendDirection.DOWN)
        self.assertEqual(classify_trend(1.5), TrendDirection.STABLE)
        self.assertEqual(classify_trend(None), TrendDirection.STABLE)

    def test_impact_by_type(self):
        """Economic indicators follow their trend; industry indicators their impact factor."""
        analysis = combine_indicators('national', [
            IndicatorObservation('Consumer Confidence Index', IndicatorType.ECONOMIC, 102.5, 1.69, 1.02, 0.9),
            IndicatorObservation('Population Growth', IndicatorType.DEMOGRAPHIC, 1.2, 4.0, 1.0, None),
            IndicatorObservation('RV Industry Sales', IndicatorType.INDUSTRY, 42500, 6.25, 0.97, 0.92),
        ])

        impacts = {i.name: i.impact for i in analysis.indicators}
        self.assertEqual(impacts['Consumer Confidence Index'], MarketImpact.NEUTRAL)
        self.assertEqual(impacts['Population Growth'], MarketImpact.POSITIVE)
        self.assertEqual(impacts['RV Industry Sales'], MarketImpact.NEGATIVE)

    def test_weighted_adjustment(self):
        analysis = combine_indicators('national', [
            IndicatorObservation('Consumer Confidence Index', IndicatorType.ECONOMIC, 102.5, 5.0, 1.02, 0.9),
            IndicatorObservation('RV Industry Sales', IndicatorType.INDUSTRY, 42500, 6.25, 1.06, 0.92),
            IndicatorObservation('Fuel Price Index', IndicatorType.ECONOMIC, 95.2, -3.35, 1.03, 0.95),
        ])

        expected = (1.02 * 0.9 + 1.06 * 0.92 + 1.03 * 0.95) / (0.9 + 0.92 + 0.95)
        self.assertAlmostEqual(analysis.adjustment_factor, expected, places=3)
        self.assertEqual(analysis.overall_outlook, MarketImpact.NEUTRAL)

    def test_adjustment_is_clamped(self):
        high = combine_indicators('TX', [
            IndicatorObservation('Housing Starts', IndicatorType.INDUSTRY, 1, None, 5.0, 1.0)
        ])
        low = combine_indicators('TX', [
            IndicatorObservation('Housing Starts', IndicatorType.INDUSTRY, 1, None, 0.0, 1.0)
        ])

        self.assertEqual(high.adjustment_factor, 2.9)
        self.assertEqual(low.adjustment_factor, 0.1)

    def test_outlook(self):
        self.assertEqual(determine_outlook(3, 1), MarketImpact.POSITIVE)
        self.assertEqual(determine_outlook(2, 1), MarketImpact.NEUTRAL)
        self.assertEqual(determine_outlook(0, 2), MarketImpact.NEGATIVE)

    def test_to_dict(self):
        analysis = combine_indicators('CA', [
            IndicatorObservation('Housing Starts', IndicatorType.INDUSTRY, 145000, 5.07, 1.05, 0.85)
        ])

        data = analysis.to_dict()

        self.assertEqual(data['region'], 'CA')
        self.assertEqual(data['indicators'][0]['type'], 'industry')
        self.assertEqual(data['indicators'][0]['trend'], 'up')
        self.assertEqual(data['indicators'][0]['impact'], 'positive')


if __name__ == '__main__':
    unittest.main()
