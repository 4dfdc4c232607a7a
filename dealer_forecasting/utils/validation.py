from typing import Any, Dict

from dealer_forecasting.core.forecast import SeasonalityType
from dealer_forecasting.core.order_planning import ReorderPointMethod, SuggestedOrderStatus
from dealer_forecasting.exceptions import ValidationError

# Fields a dealer may change on their forecast configuration
FORECAST_CONFIG_FIELDS = (
    'forecast_horizon', 'history_period', 'confidence_level', 'use_seasonality',
    'seasonality_type', 'seasonal_pattern_id', 'safety_stock_days', 'lead_time_days',
    'reorder_point_method', 'min_order_quantity', 'order_multiple', 'order_cost',
    'holding_cost_rate', 'market_growth_rate', 'local_market_factor', 'is_active'
)

# Exclusive bounds for a one-sided service level
CONFIDENCE_LEVEL_RANGE = (0.5, 1.0)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _check_int_range(errors, data, key, minimum, maximum=None):
    if key not in data:
        return
    value = data[key]
    if not isinstance(value, int) or isinstance(value, bool):
        errors[key] = f'{key} must be an integer'
    elif value < minimum:
        errors[key] = f'{key} must be at least {minimum}'
    elif maximum is not None and value > maximum:
        errors[key] = f'{key} must be at most {maximum}'


def _check_number(errors, data, key, minimum=None, exclusive=False, nullable=False):
    if key not in data:
        return
    value = data[key]
    if value is None and nullable:
        return
    if not _is_number(value):
        errors[key] = f'{key} must be a number'
    elif minimum is not None and (value <= minimum if exclusive else value < minimum):
        comparison = 'greater than' if exclusive else 'at least'
        errors[key] = f'{key} must be {comparison} {minimum}'


def validate_forecast_config_update(data: Dict[str, Any], max_horizon: int = 60) -> Dict[str, str]:
    """Validate a partial forecast configuration update.

    Args:
        data: Fields to update
        max_horizon: Largest allowed forecast horizon in months

    Returns:
        Dictionary with validation errors
    """
    errors = {}

    for key in data:
        if key not in FORECAST_CONFIG_FIELDS:
            errors[key] = f'Unknown configuration field: {key}'

    _check_int_range(errors, data, 'forecast_horizon', 1, max_horizon)
    _check_int_range(errors, data, 'history_period', 1)
    _check_int_range(errors, data, 'safety_stock_days', 0)
    _check_int_range(errors, data, 'lead_time_days', 0)

    _check_number(errors, data, 'min_order_quantity', 0)
    _check_number(errors, data, 'order_multiple', 0, exclusive=True)
    _check_number(errors, data, 'order_cost', 0, nullable=True)
    _check_number(errors, data, 'holding_cost_rate', 0)
    _check_number(errors, data, 'market_growth_rate', -100)
    _check_number(errors, data, 'local_market_factor', 0, exclusive=True)

    if 'confidence_level' in data:
        level = data['confidence_level']
        low, high = CONFIDENCE_LEVEL_RANGE
        if not _is_number(level) or not low < level < high:
            errors['confidence_level'] = f'Confidence level must be between {low} and {high} (exclusive)'

    for key in ('use_seasonality', 'is_active'):
        if key in data and not isinstance(data[key], bool):
            errors[key] = f'{key} must be true or false'

    if 'seasonality_type' in data:
        try:
            SeasonalityType(str(data['seasonality_type']))
        except ValueError:
            errors['seasonality_type'] = 'Seasonality type must be multiplicative or additive'

    if 'reorder_point_method' in data:
        try:
            ReorderPointMethod(str(data['reorder_point_method']))
        except ValueError:
            errors['reorder_point_method'] = 'Reorder point method must be fixed, dynamic or min_max'

    if 'seasonal_pattern_id' in data:
        pattern_id = data['seasonal_pattern_id']
        if pattern_id is not None and (not isinstance(pattern_id, int) or isinstance(pattern_id, bool)):
            errors['seasonal_pattern_id'] = 'seasonal_pattern_id must be an integer or null'

    return errors


def parse_order_status(value) -> SuggestedOrderStatus:
    """Parse a suggested order status, raising ValidationError when unknown."""
    if isinstance(value, SuggestedOrderStatus):
        return value
    try:
        return SuggestedOrderStatus(str(value).lower())
    except ValueError:
        raise ValidationError(
            f"Invalid suggested order status: {value}",
            details={'allowed': [s.value for s in SuggestedOrderStatus]}
        )
