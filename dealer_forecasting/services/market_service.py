# dealer_forecasting/services/market_service.py
from datetime import date, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from dealer_forecasting.config import config
from dealer_forecasting.core.market import (
    IndicatorObservation, IndicatorType, MarketAnalysis, combine_indicators
)
from dealer_forecasting.exceptions import MarketAnalysisError, NotFoundError, ValidationError
from dealer_forecasting.logging_setup import get_logger
from dealer_forecasting.models import Dealer, MarketIndicator
from dealer_forecasting.utils.date_utils import add_months, get_month_start
from dealer_forecasting.utils.math_utils import percent_change

logger = get_logger(__name__)

REQUIRED_INDICATOR_FIELDS = ('region', 'indicator_name', 'indicator_type', 'period_start', 'value')
UPDATABLE_INDICATOR_FIELDS = (
    'region_type', 'indicator_type', 'period_end', 'value', 'previous_value',
    'impact_factor', 'confidence', 'source', 'source_url'
)

# Development sample: (region, region_type, name, type, value, previous, impact, confidence, source)
SAMPLE_INDICATORS = (
    ('national', 'national', 'Consumer Confidence Index', 'economic', 102.5, 100.8, 1.02, 0.90, 'Conference Board'),
    ('CA', 'state', 'Housing Starts', 'industry', 145000, 138000, 1.05, 0.85, 'Census Bureau'),
    ('TX', 'state', 'Housing Starts', 'industry', 180000, 175000, 1.03, 0.85, 'Census Bureau'),
    ('national', 'national', 'RV Industry Sales', 'industry', 42500, 40000, 1.06, 0.92, 'RV Industry Association'),
    # Lower fuel prices lift demand
    ('national', 'national', 'Fuel Price Index', 'economic', 95.2, 98.5, 1.03, 0.95, 'EIA'),
)


class MarketService:
    """Service for market indicators and regional demand adjustment."""

    def __init__(self, session: Session):
        """Initialize the market service.

        Args:
            session: Database session
        """
        self.session = session
        self._market_config = config.market_config

    @property
    def national_region(self) -> str:
        return self._market_config['national_region']

    def get_dealer_region(self, dealer_id: int) -> str:
        """Get the market region of a dealer, falling back to national."""
        dealer = self.session.get(Dealer, dealer_id)
        if dealer is None:
            raise NotFoundError(f"Dealer {dealer_id} not found")
        return dealer.region or self.national_region

    def get_latest_indicators(self, region: str, as_of: Optional[date] = None) -> List[MarketIndicator]:
        """Get the latest observation per indicator name for a region.

        National indicators are included; when a name is observed both
        regionally and nationally in the same period the regional one wins.

        Args:
            region: Region code
            as_of: Reference date (defaults to today)

        Returns:
            List of MarketIndicator
        """
        as_of = as_of or date.today()
        since = as_of - timedelta(days=self._market_config['lookback_days'])
        regions = {region, self.national_region}

        indicators = self.session.query(MarketIndicator).filter(
            MarketIndicator.region.in_(regions),
            MarketIndicator.period_start >= since,
            MarketIndicator.period_start <= as_of
        ).order_by(MarketIndicator.period_start.desc()).all()

        indicators.sort(key=lambda i: (i.period_start, i.region == region), reverse=True)

        latest: Dict[str, MarketIndicator] = {}
        for indicator in indicators:
            latest.setdefault(indicator.indicator_name, indicator)

        return list(latest.values())

    def get_market_analysis(self, dealer_id: int, as_of: Optional[date] = None) -> MarketAnalysis:
        """Combine the indicators of a dealer's region into a market analysis.

        Args:
            dealer_id: Dealer ID
            as_of: Reference date (defaults to today)

        Returns:
            MarketAnalysis with a neutral adjustment when no indicators exist
        """
        region = self.get_dealer_region(dealer_id)
        return self.analyze_region(region, as_of)

    def analyze_region(self, region: str, as_of: Optional[date] = None) -> MarketAnalysis:
        observations = [
            IndicatorObservation(
                name=indicator.indicator_name,
                indicator_type=indicator.indicator_type,
                value=indicator.value,
                percent_change=indicator.percent_change,
                impact_factor=indicator.impact_factor if indicator.impact_factor is not None else 1.0,
                confidence=indicator.confidence
            )
            for indicator in self.get_latest_indicators(region, as_of)
        ]

        analysis = combine_indicators(
            region, observations, self._market_config['trend_threshold_pct']
        )

        logger.debug(
            f"Market analysis for {region}: {len(observations)} indicators, "
            f"outlook {analysis.overall_outlook.value}, adjustment {analysis.adjustment_factor}"
        )
        return analysis

    def get_adjustment_factor(self, dealer_id: int, as_of: Optional[date] = None) -> float:
        """Get the regional demand adjustment factor for a dealer."""
        return self.get_market_analysis(dealer_id, as_of).adjustment_factor

    def upsert_market_indicator(self, **data: Any) -> MarketIndicator:
        """Create or update a market indicator observation.

        The observation is keyed on region, indicator name and period start.
        Percent change is derived from the previous value.

        Args:
            **data: Indicator fields

        Returns:
            MarketIndicator

        Raises:
            ValidationError: If required fields are missing or invalid
        """
        missing = [key for key in REQUIRED_INDICATOR_FIELDS if data.get(key) is None]
        if missing:
            raise ValidationError(
                "Missing market indicator fields",
                details={key: f'{key} is required' for key in missing}
            )

        try:
            data['indicator_type'] = IndicatorType(str(data['indicator_type']))
        except ValueError:
            raise ValidationError(
                f"Invalid indicator type: {data['indicator_type']}",
                details={'allowed': [t.value for t in IndicatorType]}
            )

        unknown = set(data) - set(REQUIRED_INDICATOR_FIELDS) - set(UPDATABLE_INDICATOR_FIELDS)
        if unknown:
            raise ValidationError(
                "Unknown market indicator fields",
                details={key: 'Unknown field' for key in sorted(unknown)}
            )

        indicator = self.session.query(MarketIndicator).filter(
            MarketIndicator.region == data['region'],
            MarketIndicator.indicator_name == data['indicator_name'],
            MarketIndicator.period_start == data['period_start']
        ).first()

        if indicator is None:
            indicator = MarketIndicator(
                region=data['region'],
                indicator_name=data['indicator_name'],
                period_start=data['period_start']
            )
            self.session.add(indicator)

        for key in UPDATABLE_INDICATOR_FIELDS:
            if key in data:
                setattr(indicator, key, data[key])

        if indicator.impact_factor is None:
            indicator.impact_factor = 1.0

        change = percent_change(indicator.value, indicator.previous_value)
        indicator.percent_change = round(change, 4) if change is not None else None

        self.session.flush()
        return indicator

    def get_regional_comparison(self, regions: List[str], as_of: Optional[date] = None) -> Dict[str, Dict]:
        """Compare market analyses across regions.

        Args:
            regions: Region codes
            as_of: Reference date (defaults to today)

        Returns:
            Dictionary mapping region to its analysis dictionary
        """
        if not regions:
            raise MarketAnalysisError("At least one region is required for a comparison")
        return {region: self.analyze_region(region, as_of).to_dict() for region in regions}

    def seed_market_indicators(self, as_of: Optional[date] = None) -> int:
        """Load sample indicators for development.

        Args:
            as_of: Reference date (defaults to today)

        Returns:
            Number of indicators written
        """
        as_of = as_of or date.today()
        period_start = add_months(get_month_start(as_of), -1)

        for region, region_type, name, indicator_type, value, previous, impact, confidence, source in SAMPLE_INDICATORS:
            self.upsert_market_indicator(
                region=region,
                region_type=region_type,
                indicator_name=name,
                indicator_type=indicator_type,
                period_start=period_start,
                period_end=as_of,
                value=float(value),
                previous_value=float(previous),
                impact_factor=impact,
                confidence=confidence,
                source=source
            )

        logger.info(f"Seeded {len(SAMPLE_INDICATORS)} market indicators for {period_start}")
        return len(SAMPLE_INDICATORS)
