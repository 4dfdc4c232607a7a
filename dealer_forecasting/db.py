from contextlib import contextmanager

from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker, scoped_session
from sqlalchemy.pool import StaticPool

from dealer_forecasting.config import config


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_db_engine(connection_string, echo=False):
    """Create an engine, enforcing foreign keys on SQLite.

    Args:
        connection_string: SQLAlchemy database URL
        echo: Whether to log SQL statements

    Returns:
        SQLAlchemy engine
    """
    if connection_string.startswith('sqlite'):
        kwargs = {'connect_args': {'check_same_thread': False}}
        if connection_string in ('sqlite://', 'sqlite:///:memory:'):
            # One shared connection so every session sees the same in-memory database
            kwargs['poolclass'] = StaticPool
        engine = create_engine(connection_string, echo=echo, **kwargs)
        event.listen(engine, 'connect', _enable_sqlite_foreign_keys)
        return engine

    return create_engine(
        connection_string,
        echo=echo,
        pool_size=config.get_int('DATABASE', 'pool_size', 10),
        max_overflow=config.get_int('DATABASE', 'max_overflow', 20),
        pool_timeout=config.get_int('DATABASE', 'pool_timeout', 30),
        pool_recycle=config.get_int('DATABASE', 'pool_recycle', 1800)
    )


class Database:
    """Database connection manager for the Dealer Forecasting engine."""

    _instance = None

    def __new__(cls):
        """Singleton pattern implementation."""
        if cls._instance is None:
            cls._instance = super(Database, cls).__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self):
        """Initialize the database connection if not already initialized."""
        if self._initialized:
            return

        self._engine = None
        self._session_factory = None
        self._session = None
        self._initialized = True

    def initialize(self, connection_string=None):
        """Initialize database connection.

        Args:
            connection_string: Optional database connection string.
                              If not provided, will use configuration.
        """
        if connection_string is None:
            connection_string = config.get_db_url()

        echo = config.get_boolean('DATABASE', 'echo', False)

        if self._session is not None:
            self._session.remove()
        if self._engine is not None:
            self._engine.dispose()

        self._engine = create_db_engine(connection_string, echo=echo)
        self._session_factory = sessionmaker(bind=self._engine)
        self._session = scoped_session(self._session_factory)

    def create_all_tables(self):
        """Create all tables defined in the models."""
        from dealer_forecasting.models import Base
        Base.metadata.create_all(self.engine)

    def drop_all_tables(self):
        """Drop all tables from the database."""
        from dealer_forecasting.models import Base
        Base.metadata.drop_all(self.engine)

    @property
    def session(self):
        """Get the current database session."""
        if self._session is None:
            self.initialize()
        return self._session

    @property
    def engine(self):
        """Get the database engine."""
        if self._engine is None:
            self.initialize()
        return self._engine

    @contextmanager
    def session_scope(self):
        """Provide a transactional scope around a series of operations."""
        session = self.session()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

# Global database instance
db = Database()

def get_session():
    """Get current database session."""
    return db.session()

@contextmanager
def session_scope():
    """Session scope context manager."""
    with db.session_scope() as session:
        yield session
