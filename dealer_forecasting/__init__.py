from .config import config
from .db import db, session_scope
from .logging_setup import logger, get_logger
from .exceptions import (
    ForecastingError, ConfigError, DatabaseError, ValidationError, NotFoundError,
    ForecastError, OrderPlanError, MarketAnalysisError
)

__all__ = [
    'config',
    'db',
    'session_scope',
    'logger',
    'get_logger',
    'ForecastingError',
    'ConfigError',
    'DatabaseError',
    'ValidationError',
    'NotFoundError',
    'ForecastError',
    'OrderPlanError',
    'MarketAnalysisError'
]
