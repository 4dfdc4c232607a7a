from .demand_history import HistoricalDemandPoint, aggregate_to_monthly, group_by_product
from .smoothing import (
    calculate_moving_average, calculate_exponential_ma,
    detect_outliers, calculate_standard_error
)
from .trend import TrendAnalysis, TrendDirection, analyze_trend
from .seasonality import SeasonalFactors, calculate_seasonal_factors
from .forecast import (
    SeasonalityType, ForecastPeriod, calculate_confidence_interval,
    generate_forecast_periods, summarize_forecast
)
from .order_planning import (
    ReorderPointMethod, OrderPriority, RiskLevel, SuggestedOrderStatus,
    PlanningParameters, OrderReasoning, plan_product_order, summarize_order_plan
)
from .market import IndicatorType, MarketImpact, combine_indicators

__all__ = [
    'HistoricalDemandPoint',
    'aggregate_to_monthly',
    'group_by_product',
    'calculate_moving_average',
    'calculate_exponential_ma',
    'detect_outliers',
    'calculate_standard_error',
    'TrendAnalysis',
    'TrendDirection',
    'analyze_trend',
    'SeasonalFactors',
    'calculate_seasonal_factors',
    'SeasonalityType',
    'ForecastPeriod',
    'calculate_confidence_interval',
    'generate_forecast_periods',
    'summarize_forecast',
    'ReorderPointMethod',
    'OrderPriority',
    'RiskLevel',
    'SuggestedOrderStatus',
    'PlanningParameters',
    'OrderReasoning',
    'plan_product_order',
    'summarize_order_plan',
    'IndicatorType',
    'MarketImpact',
    'combine_indicators'
]
