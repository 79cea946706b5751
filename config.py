import os

from utils.config_utils import CacheConfig, RetryConfig, ScheduleConfig


def _env_flag(name, default):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() not in ("0", "false", "no", "off", "")


class Config:
    """Configuration settings for the LiveView collection pipeline"""

    # NOAA API Configuration
    NOAA_BASE_URL = "https://api.weather.gov"
    CONTACT_EMAIL = os.environ.get("CONTACT_EMAIL", "weather-app@localhost")
    NOAA_USER_AGENT = f"VT-Liveview Weather App ({CONTACT_EMAIL})"
    NOAA_HEADERS = {
        'User-Agent': NOAA_USER_AGENT,
        'Accept': 'application/geo+json'
    }

    # USGS Water Services (parameterCd 00065 = gage height, feet)
    USGS_IV_URL = "https://waterservices.usgs.gov/nwis/iv"
    USGS_PARAMETER_CODE = "00065"
    USGS_HEADERS = {
        'User-Agent': 'VT-Liveview/1.0',
        'Accept': 'application/json'
    }
    GAUGE_MAX_AGE_HOURS = 3

    # VT 511 traffic feed
    TRAFFIC_FEED_URL = "https://nec-por.ne-compass.com/NEC.XmlDataPortal/api/c2c"
    TRAFFIC_NETWORK = os.environ.get("TRAFFIC_NETWORK", "Vermont")
    TRAFFIC_SOURCE_NAME = "VT 511"
    TRAFFIC_ID_PREFIX = "vt511"
    TRAFFIC_HEADERS = {
        'User-Agent': f"VT-Liveview/1.0 ({CONTACT_EMAIL})",
        'Accept': 'application/xml'
    }

    # Region all collectors target; forecast zones for it are prefixed "<STATE>Z"
    TARGET_STATE = os.environ.get("TARGET_STATE", "VT")
    STATION_LIMIT = 50

    # Database Configuration (unset disables persistence entirely)
    DATABASE_URL = os.environ.get("DATABASE_URL")
    DB_WRITE_BATCH_SIZE = int(os.environ.get("DB_WRITE_BATCH_SIZE", "100"))

    # Collection Settings
    ENABLE_COLLECTOR = _env_flag("ENABLE_COLLECTOR", True)
    REQUEST_TIMEOUT = int(os.environ.get("REQUEST_TIMEOUT", "10"))
    ZONE_FETCH_WORKERS = 8
    STATION_FETCH_WORKERS = 10

    COLLECTOR_INTERVALS = ScheduleConfig.COLLECTOR_INTERVALS
    STARTUP_DELAY_SECONDS = ScheduleConfig.STARTUP_DELAY_SECONDS
    MAX_RETRIES = RetryConfig.MAX_RETRIES
    RETRY_BASE_DELAY_SECONDS = RetryConfig.BASE_DELAY_SECONDS

    GRID_POINT_CACHE_SIZE = CacheConfig.GRID_POINT_MAX_SIZE
    GRID_POINT_CACHE_TTL = CacheConfig.GRID_POINT_TTL_SECONDS
    ZONE_CACHE_SIZE = CacheConfig.ZONE_MAX_SIZE
    ZONE_CACHE_TTL = CacheConfig.ZONE_TTL_SECONDS
    STATION_CACHE_TTL = CacheConfig.STATION_TTL_SECONDS

    # Health endpoint / server
    HOST = os.environ.get("HOST", "0.0.0.0")
    PORT = int(os.environ.get("PORT", "4000"))

    # Logging Configuration
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    @classmethod
    def database_enabled(cls):
        """Persistence is on only when a database URL is configured"""
        return bool(cls.DATABASE_URL)

    @classmethod
    def collector_enabled(cls):
        """Collection runs only when enabled and persistence is configured"""
        return cls.ENABLE_COLLECTOR and cls.database_enabled()

    @classmethod
    def validate(cls):
        """Validate configuration settings"""
        if not cls.TARGET_STATE or len(cls.TARGET_STATE) != 2:
            raise ValueError("TARGET_STATE must be a two-letter state code")

        if cls.REQUEST_TIMEOUT <= 0:
            raise ValueError("REQUEST_TIMEOUT must be positive")

        return True
