from .config_service import ForecastConfigService
from .history_service import DemandHistoryService
from .market_service import MarketService
from .seasonal_pattern_service import SeasonalPatternService
from .forecast_service import ForecastService
from .order_plan_service import OrderPlanService

__all__ = [
    'ForecastConfigService',
    'DemandHistoryService',
    'MarketService',
    'SeasonalPatternService',
    'ForecastService',
    'OrderPlanService'
]
