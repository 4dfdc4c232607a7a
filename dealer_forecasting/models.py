# dealer_forecasting/models.py
import json

from sqlalchemy import (
    Column, Integer, String, Float, Date, DateTime, Boolean, ForeignKey, Text, Enum,
    Index, UniqueConstraint, text
)
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

from dealer_forecasting.core.forecast import SeasonalityType
from dealer_forecasting.core.market import IndicatorType
from dealer_forecasting.core.order_planning import (
    OrderPriority, OrderReasoning, ReorderPointMethod, SuggestedOrderStatus
)
from dealer_forecasting.core.seasonality import MONTHS_PER_YEAR
from dealer_forecasting.exceptions import ValidationError

Base = declarative_base()

# Commerce statuses that count as real demand
DEMAND_ORDER_STATUSES = ('confirmed', 'processing', 'shipped', 'delivered')


def _iso(value):
    return value.isoformat() if value is not None else None


class Dealer(Base):
    __tablename__ = 'dealer'

    id = Column(Integer, primary_key=True)
    code = Column(String(50), nullable=False, unique=True)
    name = Column(String(200), nullable=False)
    region = Column(String(50))  # State/province code used for market indicators
    status = Column(String(20), default='active')

    forecast_config = relationship(
        "ForecastConfig", back_populates="dealer", uselist=False,
        cascade="all, delete-orphan", passive_deletes=True
    )
    orders = relationship("CustomerOrder", back_populates="dealer")

class Product(Base):
    __tablename__ = 'product'

    id = Column(Integer, primary_key=True)
    sku = Column(String(100), nullable=False, unique=True)
    name = Column(String(255), nullable=False)
    price = Column(Float, default=0.0)
    cost_price = Column(Float)
    status = Column(String(20), default='active')

    inventory = relationship("InventoryLevel", back_populates="product")

class InventoryLevel(Base):
    __tablename__ = 'inventory_level'

    id = Column(Integer, primary_key=True)
    product_id = Column(Integer, ForeignKey('product.id'), nullable=False)
    location_code = Column(String(50), nullable=False)
    quantity = Column(Float, default=0.0)
    reserved = Column(Float, default=0.0)

    product = relationship("Product", back_populates="inventory")

    __table_args__ = (
        UniqueConstraint('product_id', 'location_code', name='uq_inventory_product_location'),
    )

class CustomerOrder(Base):
    __tablename__ = 'customer_order'

    id = Column(Integer, primary_key=True)
    dealer_id = Column(Integer, ForeignKey('dealer.id'), nullable=False)
    status = Column(String(20), default='draft')
    submitted_at = Column(DateTime)

    dealer = relationship("Dealer", back_populates="orders")
    items = relationship("CustomerOrderItem", back_populates="order", cascade="all, delete-orphan")

    __table_args__ = (
        Index('idx_customer_order_dealer_submitted', 'dealer_id', 'submitted_at'),
    )

class CustomerOrderItem(Base):
    __tablename__ = 'customer_order_item'

    id = Column(Integer, primary_key=True)
    order_id = Column(Integer, ForeignKey('customer_order.id'), nullable=False)
    product_id = Column(Integer, ForeignKey('product.id'), nullable=False)
    quantity = Column(Float, nullable=False, default=0.0)

    order = relationship("CustomerOrder", back_populates="items")
    product = relationship("Product")

class SeasonalPattern(Base):
    __tablename__ = 'seasonal_pattern'

    id = Column(Integer, primary_key=True)
    dealer_id = Column(Integer, ForeignKey('dealer.id', ondelete='CASCADE'))  # NULL = global pattern
    name = Column(String(100), nullable=False)
    description = Column(String(255))
    factors_json = Column(Text, nullable=False)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=func.now())

    __table_args__ = (
        UniqueConstraint('dealer_id', 'name', name='uq_seasonal_pattern_dealer_name'),
        # NULL dealer_ids never collide in the constraint above
        Index(
            'uq_seasonal_pattern_global_name', 'name', unique=True,
            sqlite_where=text('dealer_id IS NULL'),
            postgresql_where=text('dealer_id IS NULL')
        ),
    )

    @property
    def monthly_factors(self):
        """Get the 12 monthly factors (January first)."""
        return [float(v) for v in json.loads(self.factors_json)]

    @monthly_factors.setter
    def monthly_factors(self, values):
        """Set the monthly factors, requiring exactly 12 positive values."""
        values = [float(v) for v in values]
        if len(values) != MONTHS_PER_YEAR:
            raise ValidationError(f"A seasonal pattern needs {MONTHS_PER_YEAR} factors, got {len(values)}")
        if any(v <= 0 for v in values):
            raise ValidationError("Seasonal factors must be positive")
        self.factors_json = json.dumps(values)

    def to_dict(self):
        return {
            'id': self.id,
            'dealer_id': self.dealer_id,
            'name': self.name,
            'description': self.description,
            'monthly_factors': self.monthly_factors,
            'is_active': self.is_active,
        }

class ForecastConfig(Base):
    __tablename__ = 'forecast_config'

    id = Column(Integer, primary_key=True)
    dealer_id = Column(Integer, ForeignKey('dealer.id', ondelete='CASCADE'), nullable=False, unique=True)

    # Forecast settings
    forecast_horizon = Column(Integer, nullable=False, default=18)   # Months to forecast
    history_period = Column(Integer, nullable=False, default=24)     # Months of history used
    confidence_level = Column(Float, nullable=False, default=0.95)
    use_seasonality = Column(Boolean, nullable=False, default=True)
    seasonality_type = Column(Enum(SeasonalityType), nullable=False, default=SeasonalityType.MULTIPLICATIVE)
    seasonal_pattern_id = Column(Integer, ForeignKey('seasonal_pattern.id', ondelete='SET NULL'))

    # Reorder policy
    safety_stock_days = Column(Integer, nullable=False, default=14)
    lead_time_days = Column(Integer, nullable=False, default=30)
    reorder_point_method = Column(Enum(ReorderPointMethod), nullable=False, default=ReorderPointMethod.DYNAMIC)
    min_order_quantity = Column(Float, nullable=False, default=1.0)
    order_multiple = Column(Float, nullable=False, default=1.0)
    order_cost = Column(Float)                                        # Enables EOQ when set
    holding_cost_rate = Column(Float, nullable=False, default=0.2)   # Annual, fraction of unit cost

    # Market adjustments
    market_growth_rate = Column(Float, nullable=False, default=0.0)  # Annual %
    local_market_factor = Column(Float, nullable=False, default=1.0)

    is_active = Column(Boolean, nullable=False, default=True)
    last_calculated_at = Column(DateTime)
    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    dealer = relationship("Dealer", back_populates="forecast_config")
    seasonal_pattern = relationship("SeasonalPattern")
    demand_forecasts = relationship(
        "DemandForecast", back_populates="forecast_config",
        cascade="all, delete-orphan", passive_deletes=True
    )
    suggested_orders = relationship(
        "SuggestedOrder", back_populates="forecast_config",
        cascade="all, delete-orphan", passive_deletes=True
    )

    def to_dict(self):
        return {
            'id': self.id,
            'dealer_id': self.dealer_id,
            'forecast_horizon': self.forecast_horizon,
            'history_period': self.history_period,
            'confidence_level': self.confidence_level,
            'use_seasonality': self.use_seasonality,
            'seasonality_type': self.seasonality_type.value if self.seasonality_type else None,
            'seasonal_pattern_id': self.seasonal_pattern_id,
            'safety_stock_days': self.safety_stock_days,
            'lead_time_days': self.lead_time_days,
            'reorder_point_method': self.reorder_point_method.value if self.reorder_point_method else None,
            'min_order_quantity': self.min_order_quantity,
            'order_multiple': self.order_multiple,
            'order_cost': self.order_cost,
            'holding_cost_rate': self.holding_cost_rate,
            'market_growth_rate': self.market_growth_rate,
            'local_market_factor': self.local_market_factor,
            'is_active': self.is_active,
            'last_calculated_at': _iso(self.last_calculated_at),
        }

class DemandForecast(Base):
    __tablename__ = 'demand_forecast'

    id = Column(Integer, primary_key=True)
    forecast_config_id = Column(Integer, ForeignKey('forecast_config.id', ondelete='CASCADE'), nullable=False)
    product_id = Column(Integer, ForeignKey('product.id'), nullable=False)

    period_start = Column(Date, nullable=False)
    period_end = Column(Date, nullable=False)
    period_type = Column(String(10), nullable=False, default='month')

    forecasted_demand = Column(Float, nullable=False)
    lower_bound = Column(Float, nullable=False)
    upper_bound = Column(Float, nullable=False)
    historical_average = Column(Float)
    year_over_year_change = Column(Float)
    trend_component = Column(Float)
    seasonal_component = Column(Float)

    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    forecast_config = relationship("ForecastConfig", back_populates="demand_forecasts")
    product = relationship("Product")

    __table_args__ = (
        UniqueConstraint('forecast_config_id', 'product_id', 'period_start', name='uq_demand_forecast_period'),
        Index('idx_demand_forecast_config_period', 'forecast_config_id', 'period_start'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'forecast_config_id': self.forecast_config_id,
            'product_id': self.product_id,
            'period_start': _iso(self.period_start),
            'period_end': _iso(self.period_end),
            'period_type': self.period_type,
            'forecasted_demand': self.forecasted_demand,
            'lower_bound': self.lower_bound,
            'upper_bound': self.upper_bound,
            'historical_average': self.historical_average,
            'year_over_year_change': self.year_over_year_change,
            'trend_component': self.trend_component,
            'seasonal_component': self.seasonal_component,
        }

class SuggestedOrder(Base):
    __tablename__ = 'suggested_order'

    id = Column(Integer, primary_key=True)
    forecast_config_id = Column(Integer, ForeignKey('forecast_config.id', ondelete='CASCADE'), nullable=False)
    product_id = Column(Integer, ForeignKey('product.id'), nullable=False)

    suggested_order_date = Column(Date, nullable=False)
    expected_delivery_date = Column(Date, nullable=False)

    # Quantities
    suggested_quantity = Column(Float, nullable=False)
    minimum_quantity = Column(Float)
    economic_order_qty = Column(Float)   # Advisory only
    current_stock = Column(Float)
    projected_stock = Column(Float)
    projected_demand = Column(Float)
    reorder_point = Column(Float)
    days_of_supply = Column(Float)

    estimated_cost = Column(Float)
    estimated_value = Column(Float)

    priority = Column(Enum(OrderPriority), nullable=False, default=OrderPriority.NORMAL)
    status = Column(Enum(SuggestedOrderStatus), nullable=False, default=SuggestedOrderStatus.PENDING)
    reasoning_json = Column(Text)

    # Status transition timestamps
    accepted_at = Column(DateTime)
    ordered_at = Column(DateTime)
    skipped_at = Column(DateTime)
    actual_order_id = Column(Integer, ForeignKey('customer_order.id', ondelete='SET NULL'))

    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    forecast_config = relationship("ForecastConfig", back_populates="suggested_orders")
    product = relationship("Product")

    __table_args__ = (
        UniqueConstraint('forecast_config_id', 'product_id', 'suggested_order_date', name='uq_suggested_order_product_date'),
        Index('idx_suggested_order_config_status', 'forecast_config_id', 'status'),
    )

    @property
    def reasoning(self):
        """Get the reasoning payload as an OrderReasoning."""
        if not self.reasoning_json:
            return None
        return OrderReasoning.from_json(self.reasoning_json)

    @reasoning.setter
    def reasoning(self, value):
        """Store an OrderReasoning as JSON."""
        self.reasoning_json = value.to_json() if value is not None else None

    def to_dict(self):
        reasoning = self.reasoning
        return {
            'id': self.id,
            'forecast_config_id': self.forecast_config_id,
            'product_id': self.product_id,
            'product_name': self.product.name if self.product else None,
            'product_sku': self.product.sku if self.product else None,
            'suggested_order_date': _iso(self.suggested_order_date),
            'expected_delivery_date': _iso(self.expected_delivery_date),
            'suggested_quantity': self.suggested_quantity,
            'minimum_quantity': self.minimum_quantity,
            'economic_order_qty': self.economic_order_qty,
            'current_stock': self.current_stock,
            'projected_stock': self.projected_stock,
            'projected_demand': self.projected_demand,
            'reorder_point': self.reorder_point,
            'days_of_supply': self.days_of_supply,
            'estimated_cost': self.estimated_cost,
            'estimated_value': self.estimated_value,
            'priority': self.priority.value,
            'status': self.status.value,
            'reasoning': reasoning.to_dict() if reasoning else None,
            'accepted_at': _iso(self.accepted_at),
            'ordered_at': _iso(self.ordered_at),
            'skipped_at': _iso(self.skipped_at),
            'actual_order_id': self.actual_order_id,
        }

class MarketIndicator(Base):
    __tablename__ = 'market_indicator'

    id = Column(Integer, primary_key=True)
    region = Column(String(50), nullable=False)
    region_type = Column(String(20), default='state')  # national, state, metro
    indicator_name = Column(String(100), nullable=False)
    indicator_type = Column(Enum(IndicatorType), nullable=False)

    period_start = Column(Date, nullable=False)
    period_end = Column(Date)

    value = Column(Float, nullable=False)
    previous_value = Column(Float)
    percent_change = Column(Float)
    impact_factor = Column(Float, nullable=False, default=1.0)
    confidence = Column(Float)

    source = Column(String(100))
    source_url = Column(String(500))

    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint('region', 'indicator_name', 'period_start', name='uq_market_indicator_period'),
        Index('idx_market_indicator_region_period', 'region', 'period_start'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'region': self.region,
            'region_type': self.region_type,
            'indicator_name': self.indicator_name,
            'indicator_type': self.indicator_type.value,
            'period_start': _iso(self.period_start),
            'period_end': _iso(self.period_end),
            'value': self.value,
            'previous_value': self.previous_value,
            'percent_change': self.percent_change,
            'impact_factor': self.impact_factor,
            'confidence': self.confidence,
            'source': self.source,
        }
