# dealer_forecasting/core/demand_history.py
from dataclasses import dataclass
from datetime import date, datetime
from typing import Dict, List, Optional, Union

import pandas as pd


@dataclass(frozen=True)
class HistoricalDemandPoint:
    """A single demand observation (raw order line or aggregated month)."""
    date: date
    quantity: float
    product_id: Optional[int] = None


def _as_date(value: Union[date, datetime]) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


def aggregate_to_monthly(points: List[HistoricalDemandPoint]) -> List[HistoricalDemandPoint]:
    """Aggregate raw demand observations into monthly totals.

    Observations are grouped strictly by calendar year and month. Each
    populated month yields one point dated on the 1st; months without
    observations are absent rather than zero-filled.

    Args:
        points: Raw demand observations

    Returns:
        Monthly points sorted ascending by date
    """
    if not points:
        return []

    frame = pd.DataFrame({
        'year': [_as_date(p.date).year for p in points],
        'month': [_as_date(p.date).month for p in points],
        'quantity': [p.quantity for p in points],
    })

    totals = frame.groupby(['year', 'month'], sort=True)['quantity'].sum()

    # Preserve the product of the series (first observation wins)
    product_id = points[0].product_id

    return [
        HistoricalDemandPoint(
            date=date(int(year), int(month), 1),
            quantity=float(quantity),
            product_id=product_id
        )
        for (year, month), quantity in totals.items()
    ]


def group_by_product(points: List[HistoricalDemandPoint]) -> Dict[int, List[HistoricalDemandPoint]]:
    """Split raw demand observations into per-product series.

    Args:
        points: Raw demand observations for any number of products

    Returns:
        Dictionary mapping product ID to its observations in input order
    """
    grouped: Dict[int, List[HistoricalDemandPoint]] = {}
    for point in points:
        grouped.setdefault(point.product_id, []).append(point)
    return grouped


def to_monthly_series(points: List[HistoricalDemandPoint]) -> pd.Series:
    """Convert monthly points into a contiguous monthly series.

    Months between the first and last observation that have no demand are
    filled with zero.

    Args:
        points: Monthly points (as produced by aggregate_to_monthly)

    Returns:
        pandas Series indexed by monthly Period
    """
    if not points:
        return pd.Series(dtype=float)

    series = pd.Series(
        [float(p.quantity) for p in points],
        index=pd.PeriodIndex([pd.Period(_as_date(p.date), freq='M') for p in points])
    )
    series = series.groupby(level=0).sum().sort_index()

    full_index = pd.period_range(series.index.min(), series.index.max(), freq='M')
    return series.reindex(full_index, fill_value=0.0)
