# dealer_forecasting/services/history_service.py
from datetime import date, datetime, time
from typing import Dict, Iterable, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from dealer_forecasting.core.demand_history import (
    HistoricalDemandPoint, aggregate_to_monthly, group_by_product
)
from dealer_forecasting.core.smoothing import calculate_standard_error
from dealer_forecasting.logging_setup import get_logger
from dealer_forecasting.models import (
    CustomerOrder, CustomerOrderItem, DEMAND_ORDER_STATUSES, InventoryLevel, Product
)
from dealer_forecasting.utils.date_utils import add_months, get_month_start

logger = get_logger(__name__)

# Months of recent demand used for demand variability
VARIABILITY_MONTHS = 12


class DemandHistoryService:
    """Service for reading dealer demand and stock from the commerce tables."""

    def __init__(self, session: Session):
        """Initialize the history service.

        Args:
            session: Database session
        """
        self.session = session

    def get_history_window(self, history_period: int, as_of: date):
        """Get the start (inclusive) and end (exclusive) of the history window.

        The window covers the complete months before the run month; the
        run month itself is still open and is left out.

        Args:
            history_period: Months of history
            as_of: Run date

        Returns:
            Tuple of start and end datetimes
        """
        end = get_month_start(as_of)
        start = add_months(end, -history_period)
        return datetime.combine(start, time.min), datetime.combine(end, time.min)

    def get_demand_events(
        self,
        dealer_id: int,
        history_period: int,
        as_of: Optional[date] = None,
        product_ids: Optional[Iterable[int]] = None
    ) -> List[HistoricalDemandPoint]:
        """Get raw demand observations for a dealer.

        Demand is the ordered quantity of order lines on orders that reached
        a confirmed or later status.

        Args:
            dealer_id: Dealer ID
            history_period: Months of history to read
            as_of: Run date (defaults to today)
            product_ids: Optional product filter

        Returns:
            List of HistoricalDemandPoint, one per order line
        """
        as_of = as_of or date.today()
        window_start, window_end = self.get_history_window(history_period, as_of)

        query = self.session.query(
            CustomerOrder.submitted_at,
            CustomerOrderItem.product_id,
            CustomerOrderItem.quantity
        ).join(
            CustomerOrderItem, CustomerOrderItem.order_id == CustomerOrder.id
        ).filter(
            CustomerOrder.dealer_id == dealer_id,
            CustomerOrder.status.in_(DEMAND_ORDER_STATUSES),
            CustomerOrder.submitted_at >= window_start,
            CustomerOrder.submitted_at < window_end
        )

        if product_ids is not None:
            query = query.filter(CustomerOrderItem.product_id.in_(list(product_ids)))

        return [
            HistoricalDemandPoint(
                date=submitted_at.date(),
                quantity=float(quantity or 0.0),
                product_id=product_id
            )
            for submitted_at, product_id, quantity in query.order_by(CustomerOrder.submitted_at).all()
        ]

    def get_monthly_history(
        self,
        dealer_id: int,
        history_period: int,
        as_of: Optional[date] = None,
        product_ids: Optional[Iterable[int]] = None
    ) -> Dict[int, List[HistoricalDemandPoint]]:
        """Get monthly demand per product for a dealer.

        Args:
            dealer_id: Dealer ID
            history_period: Months of history to read
            as_of: Run date (defaults to today)
            product_ids: Optional product filter

        Returns:
            Dictionary mapping product ID to monthly points sorted ascending
        """
        events = self.get_demand_events(dealer_id, history_period, as_of, product_ids)
        monthly = {
            product_id: aggregate_to_monthly(points)
            for product_id, points in group_by_product(events).items()
        }

        logger.debug(
            f"Read {len(events)} demand events for dealer {dealer_id} "
            f"across {len(monthly)} products"
        )
        return monthly

    def get_current_stock(self, product_ids: Iterable[int]) -> Dict[int, float]:
        """Get available stock (on hand minus reserved) per product.

        Args:
            product_ids: Product IDs

        Returns:
            Dictionary mapping product ID to available stock; products
            without inventory rows have zero stock
        """
        product_ids = list(product_ids)
        stock = {product_id: 0.0 for product_id in product_ids}
        if not product_ids:
            return stock

        rows = self.session.query(
            InventoryLevel.product_id,
            func.sum(InventoryLevel.quantity - func.coalesce(InventoryLevel.reserved, 0.0))
        ).filter(
            InventoryLevel.product_id.in_(product_ids)
        ).group_by(InventoryLevel.product_id).all()

        for product_id, available in rows:
            stock[product_id] = float(available or 0.0)

        return stock

    def get_products(self, product_ids: Iterable[int]) -> Dict[int, Product]:
        """Get products by ID."""
        product_ids = list(product_ids)
        if not product_ids:
            return {}
        products = self.session.query(Product).filter(Product.id.in_(product_ids)).all()
        return {product.id: product for product in products}

    def get_demand_variability(self, monthly_points: List[HistoricalDemandPoint]) -> float:
        """Standard deviation of the most recent months of demand."""
        recent = [p.quantity for p in monthly_points[-VARIABILITY_MONTHS:]]
        return calculate_standard_error(recent)
