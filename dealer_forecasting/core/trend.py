# dealer_forecasting/core/trend.py
import enum
from dataclasses import dataclass
from typing import List

import numpy as np

from .demand_history import HistoricalDemandPoint

# Slope must exceed this share of the mean level to count as a trend
SLOPE_MATERIALITY = 0.01
# Minimum goodness of fit before a slope is treated as directional
MIN_R_SQUARED = 0.1
MIN_TREND_POINTS = 3


class TrendDirection(enum.Enum):
    UP = 'up'
    DOWN = 'down'
    STABLE = 'stable'

    def __str__(self):
        return self.value


@dataclass(frozen=True)
class TrendAnalysis:
    """Linear trend fitted over a sequential time index."""
    slope: float = 0.0
    intercept: float = 0.0
    r_squared: float = 0.0
    direction: TrendDirection = TrendDirection.STABLE
    monthly_growth_rate: float = 0.0

    def project(self, index: float) -> float:
        """Project the trend line to a time index."""
        return self.intercept + self.slope * index

    def to_dict(self) -> dict:
        return {
            'slope': self.slope,
            'intercept': self.intercept,
            'r_squared': self.r_squared,
            'direction': self.direction.value,
            'monthly_growth_rate': self.monthly_growth_rate,
        }


def calculate_residuals(quantities: List[float], trend: TrendAnalysis) -> List[float]:
    """Calculate residuals of a series against its fitted trend line.

    Args:
        quantities: Observed values in time order
        trend: Fitted trend

    Returns:
        List of observed minus fitted values
    """
    return [q - trend.project(i) for i, q in enumerate(quantities)]


def analyze_trend(points: List[HistoricalDemandPoint]) -> TrendAnalysis:
    """Fit an ordinary least squares trend to a demand series.

    The x axis is the sequential position of each point after sorting by
    date, so missing months do not stretch the time axis.

    Args:
        points: Demand points (usually monthly aggregates)

    Returns:
        TrendAnalysis; a flat trend anchored on the last value when fewer
        than three points are available
    """
    ordered = sorted(points, key=lambda p: p.date)

    if len(ordered) < MIN_TREND_POINTS:
        last_value = float(ordered[-1].quantity) if ordered else 0.0
        return TrendAnalysis(intercept=last_value)

    y = np.asarray([p.quantity for p in ordered], dtype=float)
    x = np.arange(len(y), dtype=float)

    x_mean = x.mean()
    y_mean = y.mean()

    denominator = float(np.sum((x - x_mean) ** 2))
    slope = float(np.sum((x - x_mean) * (y - y_mean)) / denominator) if denominator else 0.0
    intercept = float(y_mean - slope * x_mean)

    fitted = intercept + slope * x
    ss_res = float(np.sum((y - fitted) ** 2))
    ss_tot = float(np.sum((y - y_mean) ** 2))
    r_squared = 1.0 - ss_res / ss_tot if ss_tot > 0 else 0.0

    threshold = abs(y_mean) * SLOPE_MATERIALITY
    if slope > threshold and r_squared >= MIN_R_SQUARED:
        direction = TrendDirection.UP
    elif slope < -threshold and r_squared >= MIN_R_SQUARED:
        direction = TrendDirection.DOWN
    else:
        direction = TrendDirection.STABLE

    monthly_growth_rate = slope / y_mean if y_mean != 0 else 0.0

    return TrendAnalysis(
        slope=slope,
        intercept=intercept,
        r_squared=r_squared,
        direction=direction,
        monthly_growth_rate=float(monthly_growth_rate)
    )
