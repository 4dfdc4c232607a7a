# dealer_forecasting/services/config_service.py
from typing import Any, Dict

from sqlalchemy.orm import Session

from dealer_forecasting.config import config
from dealer_forecasting.core.forecast import SeasonalityType
from dealer_forecasting.core.order_planning import PlanningParameters, ReorderPointMethod
from dealer_forecasting.exceptions import NotFoundError, ValidationError
from dealer_forecasting.logging_setup import get_logger
from dealer_forecasting.models import Dealer, ForecastConfig, SeasonalPattern
from dealer_forecasting.utils.validation import validate_forecast_config_update

logger = get_logger(__name__)

# Columns stored as enums, keyed to their enum class
ENUM_FIELDS = {
    'seasonality_type': SeasonalityType,
    'reorder_point_method': ReorderPointMethod,
}


class ForecastConfigService:
    """Service for reading and updating per-dealer forecast configuration."""

    def __init__(self, session: Session):
        """Initialize the config service.

        Args:
            session: Database session
        """
        self.session = session

    def get_config(self, dealer_id: int) -> ForecastConfig:
        """Get a dealer's forecast configuration.

        Args:
            dealer_id: Dealer ID

        Returns:
            ForecastConfig

        Raises:
            NotFoundError: If the dealer has no configuration
        """
        forecast_config = self.session.query(ForecastConfig).filter(
            ForecastConfig.dealer_id == dealer_id
        ).first()

        if not forecast_config:
            raise NotFoundError(f"Forecast configuration for dealer {dealer_id} not found")

        return forecast_config

    def get_or_create_config(self, dealer_id: int) -> ForecastConfig:
        """Get a dealer's forecast configuration, creating it with defaults.

        Args:
            dealer_id: Dealer ID

        Returns:
            ForecastConfig

        Raises:
            NotFoundError: If the dealer does not exist
        """
        forecast_config = self.session.query(ForecastConfig).filter(
            ForecastConfig.dealer_id == dealer_id
        ).first()

        if forecast_config:
            return forecast_config

        if self.session.get(Dealer, dealer_id) is None:
            raise NotFoundError(f"Dealer {dealer_id} not found")

        forecast_config = ForecastConfig(dealer_id=dealer_id)
        self.session.add(forecast_config)
        self.session.flush()

        logger.info(f"Created default forecast configuration for dealer {dealer_id}")
        return forecast_config

    def update_config(self, dealer_id: int, updates: Dict[str, Any]) -> ForecastConfig:
        """Merge a partial update into a dealer's forecast configuration.

        Args:
            dealer_id: Dealer ID
            updates: Fields to change; omitted fields keep their value

        Returns:
            Updated ForecastConfig

        Raises:
            ValidationError: If any field is unknown or invalid
            NotFoundError: If the dealer or referenced seasonal pattern does not exist
        """
        max_horizon = config.planning_config['max_forecast_horizon']
        errors = validate_forecast_config_update(updates, max_horizon=max_horizon)
        if errors:
            raise ValidationError(
                f"Invalid forecast configuration for dealer {dealer_id}",
                details=errors
            )

        forecast_config = self.get_or_create_config(dealer_id)

        pattern_id = updates.get('seasonal_pattern_id')
        if pattern_id is not None and self.session.get(SeasonalPattern, pattern_id) is None:
            raise NotFoundError(f"Seasonal pattern {pattern_id} not found")

        for key, value in updates.items():
            enum_class = ENUM_FIELDS.get(key)
            if enum_class is not None:
                value = enum_class(str(value))
            setattr(forecast_config, key, value)

        self.session.flush()

        logger.info(f"Updated forecast configuration for dealer {dealer_id}: {sorted(updates)}")
        return forecast_config

    def get_planning_parameters(self, forecast_config: ForecastConfig) -> PlanningParameters:
        """Build order planning parameters from a forecast configuration."""
        return PlanningParameters(
            lead_time_days=forecast_config.lead_time_days,
            safety_stock_days=forecast_config.safety_stock_days,
            reorder_point_method=forecast_config.reorder_point_method,
            min_order_quantity=forecast_config.min_order_quantity,
            order_multiple=forecast_config.order_multiple,
            confidence_level=forecast_config.confidence_level,
            order_cost=forecast_config.order_cost,
            holding_cost_rate=forecast_config.holding_cost_rate,
            order_cycle_days=config.planning_config['order_cycle_days']
        )
