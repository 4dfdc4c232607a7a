import os
import configparser
from pathlib import Path

class Config:
    """Configuration manager for the Dealer Forecasting engine."""

    _instance = None

    def __new__(cls):
        """Singleton pattern implementation."""
        if cls._instance is None:
            cls._instance = super(Config, cls).__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self):
        """Initialize the configuration if not already initialized."""
        if self._initialized:
            return

        self._config_dir = Path(os.environ.get('DEALER_FORECASTING_CONFIG_DIR', 'config'))
        self._config_path = self._config_dir / 'settings.ini'
        self._config = configparser.ConfigParser(interpolation=None)

        # Create config directory if it doesn't exist
        if not self._config_dir.exists():
            self._config_dir.mkdir(parents=True)

        # Load config or create default
        if self._config_path.exists():
            self._config.read(self._config_path)
        else:
            self._create_default_config()

        self._initialized = True

    def _create_default_config(self):
        """Create default configuration file."""
        self._config['DATABASE'] = {
            'engine': 'sqlite',
            'host': 'localhost',
            'port': '5432',
            'database': 'dealer_forecasting.db',
            'username': 'postgres',
            'password': 'postgres',
            'echo': 'False'
        }

        self._config['LOGGING'] = {
            'level': 'INFO',
            'format': '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            'directory': 'logs',
            'max_size_mb': '10',
            'backup_count': '5',
            'console_output': 'True'
        }

        self._config['PLANNING'] = {
            'cost_price_ratio': '0.6',   # Fallback unit cost as a share of list price
            'order_cycle_days': '30',    # Width of the min/max band in days of demand
            'max_forecast_horizon': '60'
        }

        self._config['MARKET'] = {
            'lookback_days': '365',
            'national_region': 'national',
            'trend_threshold_pct': '2.0'
        }

        self._save_config()

    def _save_config(self):
        """Save configuration to file."""
        with open(self._config_path, 'w') as configfile:
            self._config.write(configfile)

    def get(self, section, key, default=None):
        """Get configuration value."""
        try:
            return self._config.get(section, key)
        except (configparser.NoSectionError, configparser.NoOptionError):
            return default

    def get_int(self, section, key, default=None):
        """Get configuration value as integer."""
        try:
            return self._config.getint(section, key)
        except (configparser.NoSectionError, configparser.NoOptionError, ValueError):
            return default

    def get_float(self, section, key, default=None):
        """Get configuration value as float."""
        try:
            return self._config.getfloat(section, key)
        except (configparser.NoSectionError, configparser.NoOptionError, ValueError):
            return default

    def get_boolean(self, section, key, default=None):
        """Get configuration value as boolean."""
        try:
            return self._config.getboolean(section, key)
        except (configparser.NoSectionError, configparser.NoOptionError, ValueError):
            return default

    def set(self, section, key, value):
        """Set configuration value."""
        if not self._config.has_section(section):
            self._config.add_section(section)

        self._config.set(section, key, str(value))
        self._save_config()

    def get_db_url(self):
        """Generate SQLAlchemy database URL."""
        url = os.environ.get('DEALER_FORECASTING_DB_URL')
        if url:
            return url

        engine = self.get('DATABASE', 'engine', 'sqlite')
        database = self.get('DATABASE', 'database', 'dealer_forecasting.db')

        if engine == 'sqlite':
            return f"sqlite:///{database}"

        username = self.get('DATABASE', 'username', 'postgres')
        password = self.get('DATABASE', 'password', 'postgres')
        host = self.get('DATABASE', 'host', 'localhost')
        port = self.get('DATABASE', 'port', '5432')

        return f"{engine}://{username}:{password}@{host}:{port}/{database}"

    @property
    def log_config(self):
        """Get logging configuration."""
        return {
            'level': self.get('LOGGING', 'level', 'INFO'),
            'format': self.get('LOGGING', 'format', '%(asctime)s - %(name)s - %(levelname)s - %(message)s'),
            'directory': self.get('LOGGING', 'directory', 'logs'),
            'max_size_mb': self.get_int('LOGGING', 'max_size_mb', 10),
            'backup_count': self.get_int('LOGGING', 'backup_count', 5),
            'console_output': self.get_boolean('LOGGING', 'console_output', True)
        }

    @property
    def planning_config(self):
        """Get order planning configuration."""
        return {
            'cost_price_ratio': self.get_float('PLANNING', 'cost_price_ratio', 0.6),
            'order_cycle_days': self.get_int('PLANNING', 'order_cycle_days', 30),
            'max_forecast_horizon': self.get_int('PLANNING', 'max_forecast_horizon', 60)
        }

    @property
    def market_config(self):
        """Get market analysis configuration."""
        return {
            'lookback_days': self.get_int('MARKET', 'lookback_days', 365),
            'national_region': self.get('MARKET', 'national_region', 'national'),
            'trend_threshold_pct': self.get_float('MARKET', 'trend_threshold_pct', 2.0)
        }

# Global config instance
config = Config()
