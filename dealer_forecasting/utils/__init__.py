from .date_utils import add_months, months_between, get_month_start, get_month_end, period_label
from .math_utils import round_to_multiple, weighted_average, clamp, percent_change

__all__ = [
    'add_months',
    'months_between',
    'get_month_start',
    'get_month_end',
    'period_label',
    'round_to_multiple',
    'weighted_average',
    'clamp',
    'percent_change'
]
