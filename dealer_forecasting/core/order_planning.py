# dealer_forecasting/core/order_planning.py
import enum
import json
import math
from dataclasses import dataclass, field
from datetime import date, timedelta
from types import MappingProxyType
from typing import Callable, Iterable, List, Optional

from scipy import stats

from .forecast import ForecastPeriod
from ..exceptions import OrderPlanError
from ..utils.date_utils import add_days, get_days_in_month
from ..utils.math_utils import clamp, round_to_multiple

DAYS_PER_MONTH = 30


class ReorderPointMethod(enum.Enum):
    FIXED = 'fixed'        # Static threshold of lead time plus safety days of demand
    DYNAMIC = 'dynamic'    # Lead time demand plus statistical buffer from demand variance
    MIN_MAX = 'min_max'    # Reorder at the minimum, order up to the maximum

    def __str__(self):
        return self.value


class OrderPriority(enum.Enum):
    CRITICAL = 'critical'
    HIGH = 'high'
    NORMAL = 'normal'
    LOW = 'low'

    def __str__(self):
        return self.value


class RiskLevel(enum.Enum):
    LOW = 'low'
    MEDIUM = 'medium'
    HIGH = 'high'

    def __str__(self):
        return self.value


class SuggestedOrderStatus(enum.Enum):
    PENDING = 'pending'
    ACCEPTED = 'accepted'
    ORDERED = 'ordered'
    SKIPPED = 'skipped'

    def __str__(self):
        return self.value


STATUS_TRANSITIONS = MappingProxyType({
    SuggestedOrderStatus.PENDING: frozenset({
        SuggestedOrderStatus.ACCEPTED, SuggestedOrderStatus.ORDERED, SuggestedOrderStatus.SKIPPED
    }),
    SuggestedOrderStatus.ACCEPTED: frozenset({
        SuggestedOrderStatus.ORDERED, SuggestedOrderStatus.SKIPPED
    }),
    SuggestedOrderStatus.SKIPPED: frozenset({SuggestedOrderStatus.PENDING}),
    SuggestedOrderStatus.ORDERED: frozenset(),
})


@dataclass
class PlanningParameters:
    """Per-dealer reorder policy inputs."""
    lead_time_days: int = 30
    safety_stock_days: int = 14
    reorder_point_method: ReorderPointMethod = ReorderPointMethod.DYNAMIC
    min_order_quantity: float = 1.0
    order_multiple: float = 1.0
    confidence_level: float = 0.95
    order_cost: Optional[float] = None
    holding_cost_rate: float = 0.2
    order_cycle_days: int = DAYS_PER_MONTH


@dataclass
class ReorderPolicy:
    reorder_point: float
    order_up_to: float
    safety_stock: float


@dataclass
class OrderReasoning:
    """Why an order was suggested."""
    primary_reason: str
    factors: List[str] = field(default_factory=list)
    risk_level: RiskLevel = RiskLevel.LOW
    stockout_risk: float = 0.0
    overstock_risk: float = 0.0

    def to_dict(self) -> dict:
        return {
            'primary_reason': self.primary_reason,
            'factors': list(self.factors),
            'risk_level': self.risk_level.value,
            'stockout_risk': self.stockout_risk,
            'overstock_risk': self.overstock_risk,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'OrderReasoning':
        return cls(
            primary_reason=data.get('primary_reason', ''),
            factors=list(data.get('factors', [])),
            risk_level=RiskLevel(data.get('risk_level', RiskLevel.LOW.value)),
            stockout_risk=float(data.get('stockout_risk', 0.0)),
            overstock_risk=float(data.get('overstock_risk', 0.0))
        )

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_json(cls, payload: str) -> 'OrderReasoning':
        return cls.from_dict(json.loads(payload))


@dataclass
class OrderSuggestion:
    """A computed purchase order suggestion for one product."""
    product_id: int
    suggested_order_date: date
    expected_delivery_date: date
    suggested_quantity: float
    minimum_quantity: float
    economic_order_qty: Optional[float]
    current_stock: float
    projected_stock: float
    projected_demand: float
    reorder_point: float
    days_of_supply: float
    estimated_cost: float
    estimated_value: float
    priority: OrderPriority
    reasoning: OrderReasoning


@dataclass
class OrderPlanSummary:
    total_orders: int = 0
    total_units: float = 0.0
    total_estimated_cost: float = 0.0
    total_estimated_value: float = 0.0
    critical_orders: int = 0
    upcoming_week: int = 0
    upcoming_month: int = 0

    def to_dict(self) -> dict:
        return {
            'total_orders': self.total_orders,
            'total_units': self.total_units,
            'total_estimated_cost': self.total_estimated_cost,
            'total_estimated_value': self.total_estimated_value,
            'critical_orders': self.critical_orders,
            'upcoming_week': self.upcoming_week,
            'upcoming_month': self.upcoming_month,
        }


def daily_rate(period: ForecastPeriod) -> float:
    """Forecasted demand per day within a period's month."""
    start = period.period_start
    return period.forecasted_demand / get_days_in_month(start.year, start.month)


def accumulate_demand(periods: List[ForecastPeriod], days: float) -> float:
    """Accumulate forecast demand over a number of days.

    Consecutive periods contribute their daily rate for the days they
    cover; demand past the horizon continues at the last period's rate.

    Args:
        periods: Forecast periods sorted by period start
        days: Number of days to cover

    Returns:
        Accumulated demand
    """
    if not periods or days <= 0:
        return 0.0

    remaining = float(days)
    total = 0.0

    for period in periods:
        start = period.period_start
        covered = min(remaining, get_days_in_month(start.year, start.month))
        total += daily_rate(period) * covered
        remaining -= covered
        if remaining <= 0:
            return total

    return total + daily_rate(periods[-1]) * remaining


def _fixed_policy(lead_demand, projected_demand, safety_stock, daily_demand, demand_std, params):
    reorder_point = daily_demand * (params.lead_time_days + params.safety_stock_days)
    return ReorderPolicy(reorder_point, projected_demand + safety_stock, safety_stock)


def _dynamic_policy(lead_demand, projected_demand, safety_stock, daily_demand, demand_std, params):
    z_score = float(stats.norm.ppf(clamp(params.confidence_level, 0.5, 0.9999)))
    daily_std = demand_std / math.sqrt(DAYS_PER_MONTH)
    buffer = max(0.0, z_score * daily_std * math.sqrt(max(params.lead_time_days, 0)))
    return ReorderPolicy(lead_demand + buffer, projected_demand + safety_stock, safety_stock)


def _min_max_policy(lead_demand, projected_demand, safety_stock, daily_demand, demand_std, params):
    minimum = lead_demand + safety_stock
    maximum = minimum + daily_demand * params.order_cycle_days
    return ReorderPolicy(minimum, maximum, safety_stock)


REORDER_POLICIES = MappingProxyType({
    ReorderPointMethod.FIXED: _fixed_policy,
    ReorderPointMethod.DYNAMIC: _dynamic_policy,
    ReorderPointMethod.MIN_MAX: _min_max_policy,
})

if set(REORDER_POLICIES) != set(ReorderPointMethod):
    raise RuntimeError("Every reorder point method needs a policy")


def calculate_reorder_policy(
    method: ReorderPointMethod,
    lead_demand: float,
    projected_demand: float,
    safety_stock: float,
    daily_demand: float,
    demand_std: float,
    params: PlanningParameters
) -> ReorderPolicy:
    """Calculate reorder point and order-up-to level for a reorder method.

    Args:
        method: Reorder point method
        lead_demand: Forecast demand over the lead time
        projected_demand: Forecast demand over lead time plus safety days
        safety_stock: Safety stock in units
        daily_demand: Current daily demand rate
        demand_std: Standard deviation of recent monthly demand
        params: Planning parameters

    Returns:
        ReorderPolicy
    """
    policy: Callable = REORDER_POLICIES[method]
    return policy(lead_demand, projected_demand, safety_stock, daily_demand, demand_std, params)


def calculate_economic_order_quantity(
    annual_demand: float,
    order_cost: Optional[float],
    unit_cost: float,
    holding_cost_rate: float
) -> Optional[float]:
    """Calculate the classic Economic Order Quantity.

    EOQ = sqrt(2 * D * S / H) with H = unit cost * annual holding rate.

    Args:
        annual_demand: Annual demand in units
        order_cost: Fixed cost of placing an order, None when not configured
        unit_cost: Unit purchase cost
        holding_cost_rate: Annual holding cost as a fraction of unit cost

    Returns:
        EOQ in units, or None when it cannot be computed
    """
    if order_cost is None or order_cost <= 0:
        return None

    holding_cost = unit_cost * holding_cost_rate
    if holding_cost <= 0 or annual_demand <= 0:
        return None

    return round(math.sqrt((2 * annual_demand * order_cost) / holding_cost), 2)


def calculate_days_of_supply(current_stock: float, daily_demand: float) -> float:
    """Days current stock lasts at the daily demand rate."""
    if daily_demand <= 0:
        return math.inf
    return max(0.0, current_stock) / daily_demand


def determine_priority(days_of_supply: float, lead_time_days: float, safety_stock_days: float) -> OrderPriority:
    """Map days of supply to an order priority.

    Args:
        days_of_supply: Days the current stock lasts
        lead_time_days: Replenishment lead time
        safety_stock_days: Safety stock in days

    Returns:
        OrderPriority; fewer days of supply gives a higher priority
    """
    coverage = lead_time_days + safety_stock_days

    if days_of_supply < lead_time_days:
        return OrderPriority.CRITICAL
    if days_of_supply < coverage:
        return OrderPriority.HIGH
    if days_of_supply < 2 * coverage:
        return OrderPriority.NORMAL
    return OrderPriority.LOW


def calculate_stockout_risk(projected_stock: float, safety_stock: float) -> float:
    """Stockout risk (%) from stock projected at delivery versus safety stock."""
    if projected_stock <= 0:
        return 100.0
    if safety_stock <= 0 or projected_stock >= safety_stock:
        return 0.0
    return round((1.0 - projected_stock / safety_stock) * 100.0, 2)


def calculate_overstock_risk(stock_after_receipt: float, order_up_to: float) -> float:
    """Overstock risk (%) from stock after receipt versus the order-up-to level."""
    if order_up_to <= 0 or stock_after_receipt <= order_up_to:
        return 0.0
    return round(min(100.0, (stock_after_receipt - order_up_to) / order_up_to * 100.0), 2)


def determine_risk_level(stockout_risk: float) -> RiskLevel:
    if stockout_risk > 80:
        return RiskLevel.HIGH
    if stockout_risk > 40:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


def plan_product_order(
    product_id: int,
    periods: List[ForecastPeriod],
    current_stock: float,
    params: PlanningParameters,
    unit_cost: float = 0.0,
    unit_price: float = 0.0,
    order_date: Optional[date] = None,
    demand_std: float = 0.0
) -> Optional[OrderSuggestion]:
    """Decide whether and how much to order for one product.

    Args:
        product_id: Product ID
        periods: Forecast periods sorted by period start
        current_stock: Available stock (on hand minus reserved)
        params: Planning parameters
        unit_cost: Unit purchase cost
        unit_price: Unit selling price
        order_date: Date the order would be placed (defaults to today)
        demand_std: Standard deviation of recent monthly demand

    Returns:
        OrderSuggestion, or None when stock is above the reorder point or
        there is no forecast demand
    """
    if not periods:
        return None

    periods = sorted(periods, key=lambda p: p.period_start)
    daily_demand = daily_rate(periods[0])
    if daily_demand <= 0:
        return None

    order_date = order_date or date.today()
    lead_days = params.lead_time_days
    safety_days = params.safety_stock_days

    lead_demand = accumulate_demand(periods, lead_days)
    projected_demand = accumulate_demand(periods, lead_days + safety_days)
    safety_stock = daily_demand * safety_days

    policy = calculate_reorder_policy(
        params.reorder_point_method, lead_demand, projected_demand,
        safety_stock, daily_demand, demand_std, params
    )

    if current_stock > policy.reorder_point:
        return None

    need = policy.order_up_to - current_stock
    if need <= 0:
        return None

    min_quantity = max(params.min_order_quantity, 0.0)
    suggested_quantity = max(min_quantity, round_to_multiple(need, params.order_multiple))

    days_of_supply = calculate_days_of_supply(current_stock, daily_demand)
    priority = determine_priority(days_of_supply, lead_days, safety_days)

    projected_at_delivery = current_stock - lead_demand
    stockout_risk = calculate_stockout_risk(projected_at_delivery, safety_stock)
    overstock_risk = calculate_overstock_risk(
        max(0.0, projected_at_delivery) + suggested_quantity, policy.order_up_to
    )

    reasoning = OrderReasoning(
        primary_reason=(
            'Prevent stockout before delivery' if stockout_risk > 50
            else 'Maintain safety stock levels'
        ),
        factors=[
            f"Current stock: {round(current_stock)} units",
            f"Reorder point ({params.reorder_point_method.value}): {round(policy.reorder_point)} units",
            f"Expected demand: {round(daily_demand * DAYS_PER_MONTH)} units/month",
            f"Days of supply: {round(days_of_supply, 1)}",
            f"Lead time: {lead_days} days",
        ],
        risk_level=determine_risk_level(stockout_risk),
        stockout_risk=stockout_risk,
        overstock_risk=overstock_risk
    )

    economic_order_qty = calculate_economic_order_quantity(
        accumulate_demand(periods, 365), params.order_cost, unit_cost, params.holding_cost_rate
    )

    return OrderSuggestion(
        product_id=product_id,
        suggested_order_date=order_date,
        expected_delivery_date=add_days(order_date, lead_days),
        suggested_quantity=suggested_quantity,
        minimum_quantity=round(max(min_quantity, need), 2),
        economic_order_qty=economic_order_qty,
        current_stock=current_stock,
        projected_stock=round(max(0.0, projected_at_delivery), 2),
        projected_demand=round(projected_demand, 2),
        reorder_point=round(policy.reorder_point, 2),
        days_of_supply=round(days_of_supply, 2),
        estimated_cost=round(suggested_quantity * unit_cost, 2),
        estimated_value=round(suggested_quantity * unit_price, 2),
        priority=priority,
        reasoning=reasoning
    )


def summarize_order_plan(orders: Iterable, as_of: Optional[date] = None) -> OrderPlanSummary:
    """Aggregate suggested orders into plan totals.

    Args:
        orders: Suggestions or stored suggested orders
        as_of: Reference date for the upcoming week/month counts

    Returns:
        OrderPlanSummary
    """
    as_of = as_of or date.today()
    one_week = as_of + timedelta(days=7)
    one_month = as_of + timedelta(days=DAYS_PER_MONTH)

    summary = OrderPlanSummary()
    for order in orders:
        summary.total_orders += 1
        summary.total_units += order.suggested_quantity or 0.0
        summary.total_estimated_cost += order.estimated_cost or 0.0
        summary.total_estimated_value += order.estimated_value or 0.0
        if order.priority == OrderPriority.CRITICAL:
            summary.critical_orders += 1
        if order.suggested_order_date <= one_week:
            summary.upcoming_week += 1
        if order.suggested_order_date <= one_month:
            summary.upcoming_month += 1

    return summary


def validate_status_transition(current: SuggestedOrderStatus, target: SuggestedOrderStatus) -> None:
    """Raise OrderPlanError when a status change is not allowed."""
    if target == current:
        return
    if target not in STATUS_TRANSITIONS[current]:
        raise OrderPlanError(
            f"Cannot change suggested order status from {current.value} to {target.value}"
        )
