# dealer_forecasting/services/forecast_service.py
from datetime import date, datetime
from typing import Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from dealer_forecasting.core.demand_history import HistoricalDemandPoint
from dealer_forecasting.core.forecast import (
    ForecastPeriod, ForecastSummary, generate_forecast_periods, summarize_forecast
)
from dealer_forecasting.core.seasonality import SeasonalFactors, calculate_seasonal_factors
from dealer_forecasting.core.trend import (
    SLOPE_MATERIALITY, TrendAnalysis, TrendDirection, analyze_trend
)
from dealer_forecasting.exceptions import ForecastError
from dealer_forecasting.logging_setup import batch_end_log, batch_start_log, get_logger
from dealer_forecasting.models import DemandForecast, ForecastConfig
from dealer_forecasting.services.config_service import ForecastConfigService
from dealer_forecasting.services.history_service import DemandHistoryService
from dealer_forecasting.services.market_service import MarketService
from dealer_forecasting.services.seasonal_pattern_service import SeasonalPatternService
from dealer_forecasting.utils.date_utils import period_label

logger = get_logger(__name__)

# Stored fields copied from a ForecastPeriod
FORECAST_FIELDS = (
    'period_end', 'forecasted_demand', 'lower_bound', 'upper_bound', 'historical_average',
    'year_over_year_change', 'trend_component', 'seasonal_component'
)


class ForecastService:
    """Service for generating and reading dealer demand forecasts."""

    def __init__(self, session: Session):
        """Initialize the forecast service.

        Args:
            session: Database session
        """
        self.session = session
        self.config_service = ForecastConfigService(session)
        self.history_service = DemandHistoryService(session)
        self.market_service = MarketService(session)
        self.pattern_service = SeasonalPatternService(session)

    def get_seasonal_factors(
        self,
        forecast_config: ForecastConfig,
        history: List[HistoricalDemandPoint],
        pattern_factors: Optional[SeasonalFactors] = None
    ) -> Optional[SeasonalFactors]:
        """Get the seasonal factors to apply to a product's forecast.

        Args:
            forecast_config: Dealer forecast configuration
            history: Monthly demand history
            pattern_factors: Factors of the configured seasonal pattern

        Returns:
            SeasonalFactors, or None when seasonality is disabled
        """
        if not forecast_config.use_seasonality:
            return None

        factors = calculate_seasonal_factors(history)
        if not factors.calculated and pattern_factors is not None:
            return pattern_factors
        return factors

    def forecast_product(
        self,
        forecast_config: ForecastConfig,
        history: List[HistoricalDemandPoint],
        as_of: date,
        market_adjustment: float = 1.0,
        pattern_factors: Optional[SeasonalFactors] = None
    ):
        """Forecast one product from its monthly history.

        Args:
            forecast_config: Dealer forecast configuration
            history: Monthly demand history sorted ascending
            as_of: Run date
            market_adjustment: Regional market adjustment factor
            pattern_factors: Factors of the configured seasonal pattern

        Returns:
            Tuple of forecast periods and the fitted trend
        """
        trend = analyze_trend(history)
        seasonal_factors = self.get_seasonal_factors(forecast_config, history, pattern_factors)

        periods = generate_forecast_periods(
            history,
            trend,
            seasonal_factors,
            horizon=forecast_config.forecast_horizon,
            start=as_of,
            confidence_level=forecast_config.confidence_level,
            seasonality_type=forecast_config.seasonality_type,
            market_adjustment=market_adjustment,
            local_market_factor=forecast_config.local_market_factor,
            market_growth_rate=forecast_config.market_growth_rate
        )
        return periods, trend

    def generate_demand_forecasts(
        self,
        dealer_id: int,
        product_ids: Optional[Iterable[int]] = None,
        as_of: Optional[date] = None
    ) -> List[Dict]:
        """Regenerate a dealer's demand forecasts.

        Every forecast is computed before anything is written. Rows are
        upserted on (config, product, period start); rows of the products
        in scope whose period is no longer forecast are deleted. An empty
        product subset returns an empty list and touches nothing.

        Args:
            dealer_id: Dealer ID
            product_ids: Optional product filter; all products with history otherwise
            as_of: Run date (defaults to today)

        Returns:
            List with one entry per forecast product holding the product ID,
            its stored forecast periods and its summary
        """
        as_of = as_of or date.today()
        product_ids = list(product_ids) if product_ids is not None else None
        if product_ids is not None and not product_ids:
            return []

        log_info = batch_start_log('demand_forecast', {
            'dealer_id': dealer_id,
            'products': len(product_ids) if product_ids is not None else 'all',
            'as_of': as_of.isoformat()
        })

        try:
            forecast_config = self.config_service.get_or_create_config(dealer_id)
            if not forecast_config.is_active:
                raise ForecastError(f"Forecasting is disabled for dealer {dealer_id}")

            history_by_product = self.history_service.get_monthly_history(
                dealer_id, forecast_config.history_period, as_of, product_ids
            )
            market_adjustment = self.market_service.get_adjustment_factor(dealer_id, as_of)

            pattern_factors = None
            if forecast_config.seasonal_pattern_id is not None:
                pattern_factors = self.pattern_service.get_pattern_factors(
                    forecast_config.seasonal_pattern_id
                )

            computed: Dict[int, List[ForecastPeriod]] = {}
            summaries: Dict[int, ForecastSummary] = {}

            for product_id, history in sorted(history_by_product.items()):
                if not history:
                    continue
                periods, trend = self.forecast_product(
                    forecast_config, history, as_of, market_adjustment, pattern_factors
                )
                computed[product_id] = periods
                summaries[product_id] = summarize_forecast(periods, trend)

            stored, deleted = self._store_forecasts(forecast_config, computed, product_ids)
            forecast_config.last_calculated_at = datetime.now()
            self.session.flush()

            results = [
                {
                    'product_id': product_id,
                    'periods': [row.to_dict() for row in stored[product_id]],
                    'summary': summaries[product_id].to_dict()
                }
                for product_id in sorted(stored)
            ]

            batch_end_log(log_info, True, {
                'products_forecast': len(results),
                'forecasts_written': sum(len(rows) for rows in stored.values()),
                'stale_forecasts_deleted': deleted,
                'market_adjustment': market_adjustment
            })
            return results

        except Exception as e:
            batch_end_log(log_info, False, {'error': str(e)})
            logger.error(f"Demand forecast failed for dealer {dealer_id}: {str(e)}")
            raise

    def _store_forecasts(
        self,
        forecast_config: ForecastConfig,
        computed: Dict[int, List[ForecastPeriod]],
        product_ids: Optional[List[int]]
    ):
        query = self.session.query(DemandForecast).filter(
            DemandForecast.forecast_config_id == forecast_config.id
        )
        if product_ids is not None:
            query = query.filter(DemandForecast.product_id.in_(product_ids))

        existing = {(row.product_id, row.period_start): row for row in query.all()}
        keep = set()
        stored: Dict[int, List[DemandForecast]] = {}

        for product_id, periods in computed.items():
            for period in periods:
                key = (product_id, period.period_start)
                keep.add(key)

                row = existing.get(key)
                if row is None:
                    row = DemandForecast(
                        forecast_config_id=forecast_config.id,
                        product_id=product_id,
                        period_start=period.period_start,
                        period_type='month'
                    )
                    self.session.add(row)

                for field_name in FORECAST_FIELDS:
                    setattr(row, field_name, getattr(period, field_name))
                stored.setdefault(product_id, []).append(row)

        deleted = 0
        for key, row in existing.items():
            if key not in keep:
                self.session.delete(row)
                deleted += 1

        self.session.flush()

        logger.info(
            f"Stored {len(keep)} forecast periods for config {forecast_config.id}, "
            f"removed {deleted} stale periods"
        )
        return stored, deleted

    def get_forecasts(
        self,
        dealer_id: int,
        product_id: Optional[int] = None
    ) -> List[DemandForecast]:
        """Get a dealer's stored forecasts ordered by product and period."""
        forecast_config = self.config_service.get_or_create_config(dealer_id)

        query = self.session.query(DemandForecast).filter(
            DemandForecast.forecast_config_id == forecast_config.id
        )
        if product_id is not None:
            query = query.filter(DemandForecast.product_id == product_id)

        return query.order_by(DemandForecast.product_id, DemandForecast.period_start).all()

    def get_forecast_periods(self, forecast_config: ForecastConfig) -> Dict[int, List[ForecastPeriod]]:
        """Get stored forecasts as ForecastPeriod lists keyed by product."""
        rows = self.session.query(DemandForecast).filter(
            DemandForecast.forecast_config_id == forecast_config.id
        ).order_by(DemandForecast.product_id, DemandForecast.period_start).all()

        periods: Dict[int, List[ForecastPeriod]] = {}
        for row in rows:
            periods.setdefault(row.product_id, []).append(ForecastPeriod(
                period_start=row.period_start,
                period_end=row.period_end,
                forecasted_demand=row.forecasted_demand,
                lower_bound=row.lower_bound,
                upper_bound=row.upper_bound,
                historical_average=row.historical_average,
                year_over_year_change=row.year_over_year_change,
                trend_component=row.trend_component,
                seasonal_component=row.seasonal_component
            ))
        return periods

    def get_forecast_summaries(self, dealer_id: int) -> Dict[int, Dict]:
        """Summarize a dealer's stored forecasts per product.

        The trend is recovered from the stored trend component of the first
        period, which equals the fitted monthly slope.
        """
        forecast_config = self.config_service.get_or_create_config(dealer_id)
        summaries = {}

        for product_id, periods in self.get_forecast_periods(forecast_config).items():
            summaries[product_id] = summarize_forecast(periods, _stored_trend(periods)).to_dict()

        return summaries

    def get_forecast_chart_data(self, dealer_id: int, product_id: Optional[int] = None) -> Dict:
        """Get forecast chart series, summed across products per month.

        Args:
            dealer_id: Dealer ID
            product_id: Optional product filter

        Returns:
            Dictionary with month labels and forecast, lower and upper datasets
        """
        totals: Dict[date, List[float]] = {}
        for row in self.get_forecasts(dealer_id, product_id):
            bucket = totals.setdefault(row.period_start, [0.0, 0.0, 0.0])
            bucket[0] += row.forecasted_demand
            bucket[1] += row.lower_bound
            bucket[2] += row.upper_bound

        months = sorted(totals)
        return {
            'labels': [period_label(month) for month in months],
            'datasets': [
                {'label': 'Forecasted Demand', 'data': [round(totals[m][0], 2) for m in months]},
                {'label': 'Lower Bound', 'data': [round(totals[m][1], 2) for m in months]},
                {'label': 'Upper Bound', 'data': [round(totals[m][2], 2) for m in months]},
            ]
        }


def _stored_trend(periods: List[ForecastPeriod]) -> TrendAnalysis:
    if not periods:
        return TrendAnalysis()

    slope = periods[0].trend_component or 0.0
    mean = sum(p.forecasted_demand for p in periods) / len(periods)

    threshold = abs(mean) * SLOPE_MATERIALITY
    if slope > threshold:
        direction = TrendDirection.UP
    elif slope < -threshold:
        direction = TrendDirection.DOWN
    else:
        direction = TrendDirection.STABLE

    return TrendAnalysis(slope=slope, direction=direction)
