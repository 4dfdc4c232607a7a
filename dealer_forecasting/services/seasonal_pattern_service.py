# dealer_forecasting/services/seasonal_pattern_service.py
from typing import List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from dealer_forecasting.core.seasonality import SeasonalFactors, calculate_pattern_strength
from dealer_forecasting.exceptions import NotFoundError, ValidationError
from dealer_forecasting.logging_setup import get_logger
from dealer_forecasting.models import Dealer, SeasonalPattern

logger = get_logger(__name__)


class SeasonalPatternService:
    """Service for named seasonal patterns shared across or owned by dealers."""

    def __init__(self, session: Session):
        self.session = session

    def create_pattern(
        self,
        name: str,
        monthly_factors: List[float],
        dealer_id: Optional[int] = None,
        description: Optional[str] = None
    ) -> SeasonalPattern:
        """Create a named pattern of 12 monthly factors.

        Args:
            name: Pattern name, unique per dealer (or among global patterns)
            monthly_factors: Factors for January through December
            dealer_id: Owning dealer, None for a global pattern
            description: Optional description

        Returns:
            SeasonalPattern
        """
        if not name:
            raise ValidationError("Seasonal pattern name is required")

        if dealer_id is not None and self.session.get(Dealer, dealer_id) is None:
            raise NotFoundError(f"Dealer {dealer_id} not found")

        pattern = SeasonalPattern(dealer_id=dealer_id, name=name, description=description)
        pattern.monthly_factors = monthly_factors
        self.session.add(pattern)
        self.session.flush()

        logger.info(f"Created seasonal pattern '{name}' (dealer {dealer_id or 'global'})")
        return pattern

    def list_patterns(self, dealer_id: Optional[int] = None) -> List[SeasonalPattern]:
        """List active global patterns plus those owned by a dealer."""
        query = self.session.query(SeasonalPattern).filter(SeasonalPattern.is_active == True)

        if dealer_id is None:
            query = query.filter(SeasonalPattern.dealer_id.is_(None))
        else:
            query = query.filter(or_(
                SeasonalPattern.dealer_id.is_(None),
                SeasonalPattern.dealer_id == dealer_id
            ))

        return query.order_by(SeasonalPattern.name).all()

    def get_pattern_factors(self, pattern_id: int) -> SeasonalFactors:
        """Get a pattern's factors as SeasonalFactors.

        Raises:
            NotFoundError: If the pattern does not exist
        """
        pattern = self.session.get(SeasonalPattern, pattern_id)
        if pattern is None:
            raise NotFoundError(f"Seasonal pattern {pattern_id} not found")

        factors = pattern.monthly_factors
        return SeasonalFactors(
            monthly=factors,
            calculated=True,
            pattern_strength=calculate_pattern_strength(factors)
        )
