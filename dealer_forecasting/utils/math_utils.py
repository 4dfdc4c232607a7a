# dealer_forecasting/utils/math_utils.py
import math
from typing import List

from dealer_forecasting.exceptions import ValidationError

def round_to_multiple(value: float, multiple: float) -> float:
    """Round a value up to the next multiple.

    Args:
        value: Value to round
        multiple: Multiple to round to

    Returns:
        Rounded value; unchanged when multiple is not positive
    """
    if multiple <= 0:
        return value

    # Guard against 2.0000000001 style float noise pushing up a whole multiple
    return math.ceil(round(value / multiple, 9)) * multiple

def weighted_average(values: List[float], weights: List[float]) -> float:
    """Calculate weighted average.

    Args:
        values: List of values
        weights: List of weights

    Returns:
        Weighted average
    """
    if len(values) != len(weights):
        raise ValidationError("Length of values and weights must be the same")

    if not values:
        return 0.0

    if sum(weights) == 0:
        return sum(values) / len(values)

    weighted_sum = sum(v * w for v, w in zip(values, weights))
    return weighted_sum / sum(weights)

def clamp(value: float, lower: float, upper: float) -> float:
    """Limit a value to the closed range [lower, upper]."""
    return max(lower, min(upper, value))

def percent_change(current: float, previous: float):
    """Percent change from previous to current, None when previous is zero or missing."""
    if not previous:
        return None
    return (current - previous) / previous * 100.0
