# dealer_forecasting/api.py
"""Public operations of the forecasting engine.

Each operation runs in its own transaction and returns plain dictionaries.
"""
from datetime import date
from typing import Any, Dict, Iterable, List, Optional

from dealer_forecasting.db import session_scope
from dealer_forecasting.services import (
    ForecastConfigService, ForecastService, MarketService, OrderPlanService,
    SeasonalPatternService
)


def get_or_create_forecast_config(dealer_id: int) -> Dict:
    with session_scope() as session:
        return ForecastConfigService(session).get_or_create_config(dealer_id).to_dict()


def update_forecast_config(dealer_id: int, updates: Dict[str, Any]) -> Dict:
    with session_scope() as session:
        return ForecastConfigService(session).update_config(dealer_id, updates).to_dict()


def generate_demand_forecasts(
    dealer_id: int,
    product_ids: Optional[Iterable[int]] = None,
    as_of: Optional[date] = None
) -> List[Dict]:
    with session_scope() as session:
        return ForecastService(session).generate_demand_forecasts(dealer_id, product_ids, as_of)


def get_forecast_summaries(dealer_id: int) -> Dict[int, Dict]:
    with session_scope() as session:
        return ForecastService(session).get_forecast_summaries(dealer_id)


def get_forecast_chart_data(dealer_id: int, product_id: Optional[int] = None) -> Dict:
    with session_scope() as session:
        return ForecastService(session).get_forecast_chart_data(dealer_id, product_id)


def generate_suggested_order_plan(dealer_id: int, as_of: Optional[date] = None) -> Dict:
    with session_scope() as session:
        return OrderPlanService(session).generate_suggested_order_plan(dealer_id, as_of)


def get_suggested_orders(dealer_id: int, status: Optional[str] = None) -> List[Dict]:
    with session_scope() as session:
        orders = OrderPlanService(session).get_suggested_orders(dealer_id, status)
        return [order.to_dict() for order in orders]


def update_suggested_order_status(
    order_id: int,
    status: str,
    actual_order_id: Optional[int] = None
) -> Dict:
    with session_scope() as session:
        order = OrderPlanService(session).update_suggested_order_status(order_id, status, actual_order_id)
        return order.to_dict()


def get_order_timeline_data(dealer_id: int) -> Dict:
    with session_scope() as session:
        return OrderPlanService(session).get_order_timeline_data(dealer_id)


def get_market_analysis(dealer_id: int, as_of: Optional[date] = None) -> Dict:
    with session_scope() as session:
        return MarketService(session).get_market_analysis(dealer_id, as_of).to_dict()


def upsert_market_indicator(**data: Any) -> Dict:
    with session_scope() as session:
        return MarketService(session).upsert_market_indicator(**data).to_dict()


def get_regional_comparison(regions: List[str], as_of: Optional[date] = None) -> Dict[str, Dict]:
    with session_scope() as session:
        return MarketService(session).get_regional_comparison(regions, as_of)


def seed_market_indicators(as_of: Optional[date] = None) -> int:
    with session_scope() as session:
        return MarketService(session).seed_market_indicators(as_of)


def create_seasonal_pattern(
    name: str,
    monthly_factors: List[float],
    dealer_id: Optional[int] = None,
    description: Optional[str] = None
) -> Dict:
    with session_scope() as session:
        return SeasonalPatternService(session).create_pattern(
            name, monthly_factors, dealer_id, description
        ).to_dict()


def list_seasonal_patterns(dealer_id: Optional[int] = None) -> List[Dict]:
    with session_scope() as session:
        return [p.to_dict() for p in SeasonalPatternService(session).list_patterns(dealer_id)]
