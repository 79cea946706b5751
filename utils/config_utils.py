"""
Configuration utilities and constants
"""
import os


class CacheConfig:
    """Upstream lookup cache sizes and lifetimes"""
    GRID_POINT_MAX_SIZE = 100
    GRID_POINT_TTL_SECONDS = 60 * 60
    ZONE_MAX_SIZE = 30
    ZONE_TTL_SECONDS = 24 * 60 * 60
    # The station directory is refreshed wholesale, one entry per state
    STATION_MAX_SIZE = 1
    STATION_TTL_SECONDS = 15 * 60


class ScheduleConfig:
    """Collector cadences (minutes)"""
    COLLECTOR_INTERVALS = {
        'weather': 5,
        'alerts': 2,
        'traffic': 3,
        'gauges': 10,
    }
    STARTUP_DELAY_SECONDS = int(os.environ.get("COLLECTOR_STARTUP_DELAY", "5"))


class RetryConfig:
    """Retry wrapper defaults"""
    MAX_RETRIES = int(os.environ.get("COLLECTOR_MAX_RETRIES", "3"))
    BASE_DELAY_SECONDS = float(os.environ.get("COLLECTOR_RETRY_BASE_DELAY", "1.0"))
