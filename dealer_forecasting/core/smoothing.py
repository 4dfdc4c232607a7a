# dealer_forecasting/core/smoothing.py
from dataclasses import dataclass, field
from typing import List

import numpy as np

from ..exceptions import ValidationError


@dataclass
class OutlierResult:
    """Result of IQR outlier detection."""
    outliers: List[float] = field(default_factory=list)
    outlier_indices: List[int] = field(default_factory=list)
    cleaned_data: List[float] = field(default_factory=list)


def calculate_moving_average(data: List[float], window: int) -> List[float]:
    """Calculate a sliding-window moving average.

    Args:
        data: List of values
        window: Window size

    Returns:
        List of window means (length N - window + 1), or the original
        data when the window is not smaller than the series
    """
    if window <= 0:
        raise ValidationError(f"Moving average window must be positive, got {window}")

    if window >= len(data):
        return list(data)

    values = np.asarray(data, dtype=float)
    windows = np.lib.stride_tricks.sliding_window_view(values, window)
    return windows.mean(axis=1).tolist()


def calculate_exponential_ma(data: List[float], alpha: float = 0.3) -> List[float]:
    """Calculate exponentially smoothed values.

    Args:
        data: List of values
        alpha: Smoothing factor (0-1)

    Returns:
        List of smoothed values, same length as data
    """
    if not 0.0 <= alpha <= 1.0:
        raise ValidationError(f"Smoothing factor must be between 0 and 1, got {alpha}")

    if not data:
        return []

    smoothed = [float(data[0])]

    for i in range(1, len(data)):
        smoothed.append(alpha * data[i] + (1 - alpha) * smoothed[i - 1])

    return smoothed


def detect_outliers(data: List[float]) -> OutlierResult:
    """Detect outliers using the interquartile range.

    Values outside [Q1 - 1.5*IQR, Q3 + 1.5*IQR] are flagged.

    Args:
        data: List of values

    Returns:
        OutlierResult with outlier values, their indices and the remaining
        values in original order
    """
    if len(data) < 4:
        return OutlierResult(cleaned_data=list(data))

    values = np.asarray(data, dtype=float)
    q1, q3 = np.percentile(values, [25, 75])
    iqr = q3 - q1

    lower_fence = q1 - 1.5 * iqr
    upper_fence = q3 + 1.5 * iqr

    result = OutlierResult()
    for i, value in enumerate(data):
        if value < lower_fence or value > upper_fence:
            result.outliers.append(value)
            result.outlier_indices.append(i)
        else:
            result.cleaned_data.append(value)

    return result


def calculate_standard_error(errors: List[float]) -> float:
    """Calculate the sample standard deviation of an error series.

    Args:
        errors: Residuals or forecast errors

    Returns:
        Standard error, 0.0 for fewer than two points
    """
    if len(errors) < 2:
        return 0.0

    std = float(np.std(np.asarray(errors, dtype=float), ddof=1))

    # Constant input can leave floating point dust
    if not np.isfinite(std) or std < 1e-12:
        return 0.0

    return std
