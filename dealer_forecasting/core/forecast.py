# dealer_forecasting/core/forecast.py
import enum
from dataclasses import dataclass
from datetime import date
from types import MappingProxyType
from typing import Dict, List, Optional, Tuple

import numpy as np

from .demand_history import HistoricalDemandPoint
from .seasonality import SeasonalFactors
from .smoothing import calculate_standard_error
from .trend import TrendAnalysis, TrendDirection, calculate_residuals
from ..utils.date_utils import add_months, get_month_end, months_between, period_label

# Two-sided z-scores for supported confidence levels
Z_SCORES = MappingProxyType({
    0.90: 1.645,
    0.95: 1.96,
    0.99: 2.576,
})
DEFAULT_Z_SCORE = 1.96


class SeasonalityType(enum.Enum):
    MULTIPLICATIVE = 'multiplicative'
    ADDITIVE = 'additive'

    def __str__(self):
        return self.value


def _apply_multiplicative(baseline: float, factor: float, level: float) -> float:
    return baseline * factor


def _apply_additive(baseline: float, factor: float, level: float) -> float:
    return baseline + (factor - 1.0) * level


SEASONALITY_HANDLERS = MappingProxyType({
    SeasonalityType.MULTIPLICATIVE: _apply_multiplicative,
    SeasonalityType.ADDITIVE: _apply_additive,
})

if set(SEASONALITY_HANDLERS) != set(SeasonalityType):
    raise RuntimeError("Every seasonality type needs a handler")


@dataclass
class ForecastPeriod:
    """Forecast for a single calendar month."""
    period_start: date
    period_end: date
    forecasted_demand: float
    lower_bound: float
    upper_bound: float
    historical_average: Optional[float] = None
    year_over_year_change: Optional[float] = None
    trend_component: Optional[float] = None
    seasonal_component: Optional[float] = None

    @property
    def period_label(self) -> str:
        return period_label(self.period_start)


@dataclass
class ForecastSummary:
    total_forecasted_demand: float
    average_monthly_demand: float
    peak_month: str
    low_month: str
    trend_direction: TrendDirection
    confidence_score: float

    def to_dict(self) -> dict:
        return {
            'total_forecasted_demand': self.total_forecasted_demand,
            'average_monthly_demand': self.average_monthly_demand,
            'peak_month': self.peak_month,
            'low_month': self.low_month,
            'trend_direction': self.trend_direction.value,
            'confidence_score': self.confidence_score,
        }


def get_z_score(confidence_level: float) -> float:
    """Get the z-score for a confidence level.

    Args:
        confidence_level: Confidence level (e.g. 0.95)

    Returns:
        z-score, 1.96 for levels without an entry
    """
    for level, z_score in Z_SCORES.items():
        if abs(level - confidence_level) < 1e-9:
            return z_score
    return DEFAULT_Z_SCORE


def calculate_confidence_interval(
    forecast: float,
    standard_error: float,
    confidence_level: float = 0.95
) -> Tuple[float, float]:
    """Calculate a symmetric confidence interval around a forecast.

    Args:
        forecast: Point forecast
        standard_error: Standard error of the forecast
        confidence_level: Confidence level (0.90, 0.95 or 0.99)

    Returns:
        Tuple with lower bound (never below zero) and upper bound
    """
    margin = get_z_score(confidence_level) * abs(standard_error)
    return max(0.0, forecast - margin), forecast + margin


def calculate_market_multiplier(
    market_adjustment: float,
    local_market_factor: float,
    market_growth_rate: float,
    months_ahead: int
) -> float:
    """Combine regional, local and growth adjustments for one period.

    Args:
        market_adjustment: Regional adjustment factor from market indicators
        local_market_factor: Dealer-specific factor
        market_growth_rate: Annual market growth in percent
        months_ahead: Months between the forecast run and the period

    Returns:
        Multiplier applied to the seasonal forecast
    """
    growth = 1.0 + (market_growth_rate / 100.0) * (months_ahead / 12.0)
    return max(0.0, market_adjustment * local_market_factor * growth)


def generate_forecast_periods(
    history: List[HistoricalDemandPoint],
    trend: TrendAnalysis,
    seasonal_factors: Optional[SeasonalFactors],
    horizon: int,
    start: date,
    confidence_level: float = 0.95,
    seasonality_type: SeasonalityType = SeasonalityType.MULTIPLICATIVE,
    market_adjustment: float = 1.0,
    local_market_factor: float = 1.0,
    market_growth_rate: float = 0.0
) -> List[ForecastPeriod]:
    """Generate monthly forecasts for a product.

    Args:
        history: Monthly demand history sorted ascending
        trend: Trend fitted over the history
        seasonal_factors: Seasonal factors, or None when seasonality is off
        horizon: Number of months to forecast
        start: Run date; the first period is the following month
        confidence_level: Confidence level for the bounds
        seasonality_type: How seasonal factors combine with the baseline
        market_adjustment: Regional market adjustment factor
        local_market_factor: Dealer-specific market factor
        market_growth_rate: Annual market growth in percent

    Returns:
        List of ForecastPeriod, one per month of the horizon
    """
    quantities = [float(p.quantity) for p in history]
    level = float(np.mean(quantities)) if quantities else 0.0
    standard_error = calculate_standard_error(calculate_residuals(quantities, trend))

    values_by_month: Dict[int, List[float]] = {}
    values_by_period: Dict[Tuple[int, int], float] = {}
    for point in history:
        values_by_month.setdefault(point.date.month, []).append(float(point.quantity))
        values_by_period[(point.date.year, point.date.month)] = float(point.quantity)

    last_index = len(history) - 1
    last_month = history[-1].date if history else None
    apply_seasonality = SEASONALITY_HANDLERS[seasonality_type]
    first_period = add_months(date(start.year, start.month, 1), 1)

    periods = []
    for i in range(horizon):
        period_start = add_months(first_period, i)
        months_ahead = i + 1

        if last_month is not None:
            index = last_index + months_between(last_month, period_start)
        else:
            index = months_ahead
        baseline = trend.project(index)

        factor = seasonal_factors.factor_for_month(period_start.month) if seasonal_factors else 1.0
        seasonal = apply_seasonality(baseline, factor, level)

        multiplier = calculate_market_multiplier(
            market_adjustment, local_market_factor, market_growth_rate, months_ahead
        )
        forecast = round(max(0.0, seasonal * multiplier), 2)

        lower, upper = calculate_confidence_interval(forecast, standard_error, confidence_level)

        same_month = values_by_month.get(period_start.month)
        historical_average = float(np.mean(same_month)) if same_month else None

        prior = values_by_period.get((period_start.year - 1, period_start.month))
        year_over_year_change = None
        if prior:
            year_over_year_change = round((forecast - prior) / prior * 100.0, 2)

        periods.append(ForecastPeriod(
            period_start=period_start,
            period_end=get_month_end(period_start),
            forecasted_demand=forecast,
            lower_bound=round(lower, 2),
            upper_bound=round(upper, 2),
            historical_average=historical_average,
            year_over_year_change=year_over_year_change,
            trend_component=trend.slope * months_ahead,
            seasonal_component=factor - 1.0
        ))

    return periods


def summarize_forecast(periods: List[ForecastPeriod], trend: TrendAnalysis) -> ForecastSummary:
    """Summarize a product's forecast periods.

    Args:
        periods: Forecast periods
        trend: Trend the forecast was built from

    Returns:
        ForecastSummary
    """
    if not periods:
        return ForecastSummary(0.0, 0.0, '', '', trend.direction, 0.5)

    demands = [p.forecasted_demand for p in periods]
    total = float(sum(demands))

    peak = periods[int(np.argmax(demands))]
    low = periods[int(np.argmin(demands))]

    with_history = sum(1 for p in periods if p.historical_average is not None)
    confidence_score = min(0.95, 0.5 + (with_history / len(periods)) * 0.45)

    return ForecastSummary(
        total_forecasted_demand=total,
        average_monthly_demand=total / len(periods),
        peak_month=peak.period_label,
        low_month=low.period_label,
        trend_direction=trend.direction,
        confidence_score=confidence_score
    )
