# dealer_forecasting/core/market.py
import enum
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import List, Optional

from .trend import TrendDirection
from ..utils.math_utils import clamp, weighted_average

# Regional adjustment stays strictly inside (0, 3)
MIN_ADJUSTMENT_FACTOR = 0.1
MAX_ADJUSTMENT_FACTOR = 2.9


class IndicatorType(enum.Enum):
    ECONOMIC = 'economic'
    DEMOGRAPHIC = 'demographic'
    INDUSTRY = 'industry'

    def __str__(self):
        return self.value


class MarketImpact(enum.Enum):
    POSITIVE = 'positive'
    NEUTRAL = 'neutral'
    NEGATIVE = 'negative'

    def __str__(self):
        return self.value


@dataclass
class IndicatorObservation:
    """The inputs the combinator needs from a market indicator record."""
    name: str
    indicator_type: IndicatorType
    value: float
    percent_change: Optional[float] = None
    impact_factor: float = 1.0
    confidence: Optional[float] = None


@dataclass
class MarketIndicatorSummary:
    name: str
    indicator_type: IndicatorType
    current_value: float
    trend: TrendDirection
    impact: MarketImpact

    def to_dict(self) -> dict:
        return {
            'name': self.name,
            'type': self.indicator_type.value,
            'current_value': self.current_value,
            'trend': self.trend.value,
            'impact': self.impact.value,
        }


@dataclass
class MarketAnalysis:
    region: str
    indicators: List[MarketIndicatorSummary] = field(default_factory=list)
    overall_outlook: MarketImpact = MarketImpact.NEUTRAL
    adjustment_factor: float = 1.0

    def to_dict(self) -> dict:
        return {
            'region': self.region,
            'indicators': [i.to_dict() for i in self.indicators],
            'overall_outlook': self.overall_outlook.value,
            'adjustment_factor': self.adjustment_factor,
        }


def classify_trend(percent_change: Optional[float], threshold: float = 2.0) -> TrendDirection:
    """Classify an indicator's movement from its percent change."""
    if percent_change is None:
        return TrendDirection.STABLE
    if percent_change > threshold:
        return TrendDirection.UP
    if percent_change < -threshold:
        return TrendDirection.DOWN
    return TrendDirection.STABLE


def _impact_from_trend(observation: IndicatorObservation, trend: TrendDirection) -> MarketImpact:
    if trend == TrendDirection.UP:
        return MarketImpact.POSITIVE
    if trend == TrendDirection.DOWN:
        return MarketImpact.NEGATIVE
    return MarketImpact.NEUTRAL


def _impact_from_factor(observation: IndicatorObservation, trend: TrendDirection) -> MarketImpact:
    if observation.impact_factor > 1:
        return MarketImpact.POSITIVE
    if observation.impact_factor < 1:
        return MarketImpact.NEGATIVE
    return MarketImpact.NEUTRAL


IMPACT_RULES = MappingProxyType({
    IndicatorType.ECONOMIC: _impact_from_trend,
    IndicatorType.DEMOGRAPHIC: _impact_from_trend,
    IndicatorType.INDUSTRY: _impact_from_factor,
})

if set(IMPACT_RULES) != set(IndicatorType):
    raise RuntimeError("Every indicator type needs an impact rule")


def classify_impact(observation: IndicatorObservation, trend: TrendDirection) -> MarketImpact:
    """Determine whether an indicator pushes demand up or down."""
    return IMPACT_RULES[observation.indicator_type](observation, trend)


def determine_outlook(positive_count: int, negative_count: int) -> MarketImpact:
    if positive_count > negative_count + 1:
        return MarketImpact.POSITIVE
    if negative_count > positive_count + 1:
        return MarketImpact.NEGATIVE
    return MarketImpact.NEUTRAL


def combine_indicators(
    region: str,
    observations: List[IndicatorObservation],
    trend_threshold: float = 2.0
) -> MarketAnalysis:
    """Fold a region's indicators into one adjustment factor and outlook.

    The adjustment factor is the confidence-weighted mean of the impact
    factors, clamped to [0.1, 2.9]; 1.0 without indicators.

    Args:
        region: Region the indicators describe
        observations: Latest observation per indicator
        trend_threshold: Percent change beyond which an indicator trends

    Returns:
        MarketAnalysis
    """
    analysis = MarketAnalysis(region=region)
    if not observations:
        return analysis

    positive_count = 0
    negative_count = 0

    for observation in observations:
        trend = classify_trend(observation.percent_change, trend_threshold)
        impact = classify_impact(observation, trend)

        if impact == MarketImpact.POSITIVE:
            positive_count += 1
        elif impact == MarketImpact.NEGATIVE:
            negative_count += 1

        analysis.indicators.append(MarketIndicatorSummary(
            name=observation.name,
            indicator_type=observation.indicator_type,
            current_value=observation.value,
            trend=trend,
            impact=impact
        ))

    factors = [max(0.0, o.impact_factor) for o in observations]
    weights = [o.confidence if o.confidence is not None else 1.0 for o in observations]

    analysis.overall_outlook = determine_outlook(positive_count, negative_count)
    analysis.adjustment_factor = round(
        clamp(weighted_average(factors, weights), MIN_ADJUSTMENT_FACTOR, MAX_ADJUSTMENT_FACTOR), 4
    )

    return analysis
