# dealer_forecasting/core/seasonality.py
import json
from dataclasses import dataclass, field
from typing import List

import numpy as np
import pandas as pd

from .demand_history import HistoricalDemandPoint, to_monthly_series
from ..exceptions import ValidationError

MONTHS_PER_YEAR = 12
MIN_SEASONAL_POINTS = 24


def neutral_factors() -> List[float]:
    return [1.0] * MONTHS_PER_YEAR


@dataclass
class SeasonalFactors:
    """Twelve multiplicative monthly indices (January first)."""
    monthly: List[float] = field(default_factory=neutral_factors)
    calculated: bool = False
    pattern_strength: float = 0.0

    def __post_init__(self):
        if len(self.monthly) != MONTHS_PER_YEAR:
            raise ValidationError(
                f"Seasonal factors need {MONTHS_PER_YEAR} values, got {len(self.monthly)}"
            )

    def factor_for_month(self, month: int) -> float:
        """Get the factor for a calendar month (1-12)."""
        return self.monthly[month - 1]

    def to_json(self) -> str:
        return json.dumps({
            'monthly': self.monthly,
            'calculated': self.calculated,
            'pattern_strength': self.pattern_strength,
        })

    @classmethod
    def from_json(cls, payload: str) -> 'SeasonalFactors':
        data = json.loads(payload)
        if isinstance(data, list):
            return cls(monthly=[float(v) for v in data], calculated=True)
        return cls(
            monthly=[float(v) for v in data['monthly']],
            calculated=bool(data.get('calculated', True)),
            pattern_strength=float(data.get('pattern_strength', 0.0))
        )


def calculate_pattern_strength(factors: List[float]) -> float:
    """Coefficient of variation of the factors, capped at 1.

    Args:
        factors: Monthly seasonal factors

    Returns:
        Strength between 0 (flat) and 1
    """
    values = np.asarray(factors, dtype=float)
    mean = values.mean()
    if mean <= 0:
        return 0.0
    return float(min(values.std() / mean, 1.0))


def calculate_seasonal_factors(points: List[HistoricalDemandPoint]) -> SeasonalFactors:
    """Estimate monthly seasonal factors with the ratio-to-moving-average method.

    The monthly series is made contiguous (missing months count as zero
    demand), a centered 2x12 moving average removes trend and level, and
    each month's ratio to that average is averaged across years. Factors
    are normalized so their mean is 1.0.

    Args:
        points: Monthly demand points

    Returns:
        SeasonalFactors; neutral and not calculated with fewer than 24
        monthly points or no demand
    """
    if len(points) < MIN_SEASONAL_POINTS:
        return SeasonalFactors()

    series = to_monthly_series(points)
    if series.sum() <= 0:
        return SeasonalFactors()

    half = MONTHS_PER_YEAR // 2
    centered = (
        series.rolling(MONTHS_PER_YEAR).mean()
        .rolling(2).mean()
        .shift(-half)
    )

    valid = centered > 0
    ratios = (series[valid] / centered[valid]).dropna()

    if ratios.empty:
        return SeasonalFactors()

    by_month = ratios.groupby(ratios.index.month).mean()
    raw = [float(by_month.get(month, 1.0)) for month in range(1, MONTHS_PER_YEAR + 1)]

    mean_factor = float(np.mean(raw))
    if mean_factor <= 0:
        return SeasonalFactors()

    factors = [f / mean_factor for f in raw]

    return SeasonalFactors(
        monthly=factors,
        calculated=True,
        pattern_strength=calculate_pattern_strength(factors)
    )
