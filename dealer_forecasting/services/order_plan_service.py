# dealer_forecasting/services/order_plan_service.py
from datetime import date, datetime
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from dealer_forecasting.config import config
from dealer_forecasting.core.order_planning import (
    OrderPriority, OrderSuggestion, SuggestedOrderStatus, plan_product_order,
    summarize_order_plan, validate_status_transition
)
from dealer_forecasting.exceptions import NotFoundError
from dealer_forecasting.logging_setup import batch_end_log, batch_start_log, get_logger
from dealer_forecasting.models import ForecastConfig, SuggestedOrder
from dealer_forecasting.services.config_service import ForecastConfigService
from dealer_forecasting.services.forecast_service import ForecastService
from dealer_forecasting.services.history_service import DemandHistoryService
from dealer_forecasting.utils.date_utils import period_label
from dealer_forecasting.utils.validation import parse_order_status

logger = get_logger(__name__)

PRIORITY_RANK = {
    OrderPriority.CRITICAL: 0,
    OrderPriority.HIGH: 1,
    OrderPriority.NORMAL: 2,
    OrderPriority.LOW: 3,
}

# Timestamp column stamped when an order enters a status
STATUS_TIMESTAMPS = {
    SuggestedOrderStatus.ACCEPTED: 'accepted_at',
    SuggestedOrderStatus.ORDERED: 'ordered_at',
    SuggestedOrderStatus.SKIPPED: 'skipped_at',
}

# Stored fields copied from an OrderSuggestion
SUGGESTION_FIELDS = (
    'expected_delivery_date', 'suggested_quantity', 'minimum_quantity', 'economic_order_qty',
    'current_stock', 'projected_stock', 'projected_demand', 'reorder_point', 'days_of_supply',
    'estimated_cost', 'estimated_value', 'priority', 'reasoning'
)


class OrderPlanService:
    """Service for suggested order plans and their lifecycle."""

    def __init__(self, session: Session):
        """Initialize the order plan service.

        Args:
            session: Database session
        """
        self.session = session
        self.config_service = ForecastConfigService(session)
        self.forecast_service = ForecastService(session)
        self.history_service = DemandHistoryService(session)

    def generate_suggested_order_plan(self, dealer_id: int, as_of: Optional[date] = None) -> Dict:
        """Regenerate a dealer's suggested orders from the stored forecasts.

        Pending suggestions are replaced; accepted, ordered and skipped
        suggestions are left untouched, and a product whose suggestion for
        the run date has left pending gets no new suggestion that day.

        Args:
            dealer_id: Dealer ID
            as_of: Run date (defaults to today)

        Returns:
            Dictionary with the plan's orders and summary
        """
        as_of = as_of or date.today()
        log_info = batch_start_log('order_plan', {'dealer_id': dealer_id, 'as_of': as_of.isoformat()})

        try:
            forecast_config = self.config_service.get_or_create_config(dealer_id)
            dealer = forecast_config.dealer
            params = self.config_service.get_planning_parameters(forecast_config)

            periods_by_product = self.forecast_service.get_forecast_periods(forecast_config)
            product_ids = list(periods_by_product)

            products = self.history_service.get_products(product_ids)
            stock = self.history_service.get_current_stock(product_ids)
            history = self.history_service.get_monthly_history(
                dealer_id, forecast_config.history_period, as_of, product_ids
            )
            cost_price_ratio = config.planning_config['cost_price_ratio']

            suggestions: List[OrderSuggestion] = []
            for product_id, periods in periods_by_product.items():
                product = products.get(product_id)
                # Months already over carry no future demand
                periods = [p for p in periods if p.period_end >= as_of]
                if product is None or not periods:
                    continue

                price = product.price or 0.0
                unit_cost = product.cost_price if product.cost_price is not None else price * cost_price_ratio

                suggestion = plan_product_order(
                    product_id,
                    periods,
                    stock.get(product_id, 0.0),
                    params,
                    unit_cost=unit_cost,
                    unit_price=price,
                    order_date=as_of,
                    demand_std=self.history_service.get_demand_variability(history.get(product_id, []))
                )
                if suggestion is not None:
                    suggestions.append(suggestion)

            suggestions.sort(key=lambda s: (s.suggested_order_date, PRIORITY_RANK[s.priority], s.product_id))

            stored = self._store_suggestions(forecast_config, suggestions, as_of)
            summary = summarize_order_plan(stored, as_of)

            plan = {
                'dealer_id': dealer_id,
                'dealer_name': dealer.name if dealer else None,
                'generated_at': datetime.now().isoformat(),
                'horizon_months': forecast_config.forecast_horizon,
                'orders': [order.to_dict() for order in stored],
                'summary': summary.to_dict()
            }

            batch_end_log(log_info, True, summary.to_dict())
            return plan

        except Exception as e:
            batch_end_log(log_info, False, {'error': str(e)})
            logger.error(f"Order plan failed for dealer {dealer_id}: {str(e)}")
            raise

    def _store_suggestions(
        self,
        forecast_config: ForecastConfig,
        suggestions: List[OrderSuggestion],
        as_of: date
    ) -> List[SuggestedOrder]:
        pending = self.session.query(SuggestedOrder).filter(
            SuggestedOrder.forecast_config_id == forecast_config.id,
            SuggestedOrder.status == SuggestedOrderStatus.PENDING
        ).all()

        # Products whose suggestion for the run date already left pending
        settled = {
            product_id for (product_id,) in self.session.query(SuggestedOrder.product_id).filter(
                SuggestedOrder.forecast_config_id == forecast_config.id,
                SuggestedOrder.suggested_order_date == as_of,
                SuggestedOrder.status != SuggestedOrderStatus.PENDING
            ).all()
        }

        reusable = {
            (row.product_id, row.suggested_order_date): row for row in pending
        }
        stored = []

        for suggestion in suggestions:
            if suggestion.product_id in settled:
                continue

            row = reusable.pop((suggestion.product_id, suggestion.suggested_order_date), None)
            if row is None:
                row = SuggestedOrder(
                    forecast_config_id=forecast_config.id,
                    product_id=suggestion.product_id,
                    suggested_order_date=suggestion.suggested_order_date,
                    status=SuggestedOrderStatus.PENDING
                )
                self.session.add(row)

            for field_name in SUGGESTION_FIELDS:
                setattr(row, field_name, getattr(suggestion, field_name))
            stored.append(row)

        for row in reusable.values():
            self.session.delete(row)

        self.session.flush()

        logger.info(
            f"Stored {len(stored)} suggested orders for config {forecast_config.id}, "
            f"removed {len(reusable)} stale pending suggestions"
        )
        return stored

    def get_suggested_orders(
        self,
        dealer_id: int,
        status: Optional[str] = None
    ) -> List[SuggestedOrder]:
        """Get a dealer's suggested orders by date, then priority.

        Args:
            dealer_id: Dealer ID
            status: Optional status filter

        Returns:
            List of SuggestedOrder
        """
        forecast_config = self.config_service.get_or_create_config(dealer_id)

        query = self.session.query(SuggestedOrder).filter(
            SuggestedOrder.forecast_config_id == forecast_config.id
        )
        if status is not None:
            query = query.filter(SuggestedOrder.status == parse_order_status(status))

        orders = query.all()
        orders.sort(key=lambda o: (o.suggested_order_date, PRIORITY_RANK[o.priority], o.product_id))
        return orders

    def update_suggested_order_status(
        self,
        order_id: int,
        status: str,
        actual_order_id: Optional[int] = None
    ) -> SuggestedOrder:
        """Move a suggested order through its status lifecycle.

        Args:
            order_id: Suggested order ID
            status: Target status
            actual_order_id: Optional commerce order placed for the suggestion

        Returns:
            Updated SuggestedOrder

        Raises:
            NotFoundError: If the suggested order does not exist
            ValidationError: If the status is unknown
            OrderPlanError: If the transition is not allowed
        """
        target = parse_order_status(status)

        order = self.session.get(SuggestedOrder, order_id)
        if order is None:
            raise NotFoundError(f"Suggested order {order_id} not found")

        current = order.status
        validate_status_transition(current, target)

        if target != current:
            order.status = target
            timestamp_field = STATUS_TIMESTAMPS.get(target)
            if timestamp_field:
                setattr(order, timestamp_field, datetime.now())

        if actual_order_id is not None:
            order.actual_order_id = actual_order_id

        self.session.flush()

        logger.info(f"Suggested order {order_id} status {current.value} -> {target.value}")
        return order

    def get_order_timeline_data(self, dealer_id: int) -> Dict:
        """Group a dealer's suggested orders by order month.

        Args:
            dealer_id: Dealer ID

        Returns:
            Dictionary with one entry per month holding counts, units, cost
            and the products to order
        """
        months: Dict[date, Dict] = {}

        for order in self.get_suggested_orders(dealer_id):
            month = date(order.suggested_order_date.year, order.suggested_order_date.month, 1)
            entry = months.setdefault(month, {
                'month': period_label(month),
                'orders': 0,
                'units': 0.0,
                'estimated_cost': 0.0,
                'products': []
            })

            entry['orders'] += 1
            entry['units'] += order.suggested_quantity
            entry['estimated_cost'] += order.estimated_cost or 0.0
            entry['products'].append({
                'product_id': order.product_id,
                'name': order.product.name if order.product else None,
                'quantity': order.suggested_quantity,
                'priority': order.priority.value,
                'status': order.status.value
            })

        return {'months': [months[m] for m in sorted(months)]}
