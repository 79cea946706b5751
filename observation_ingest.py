"""
Weather observation collector
Stores the latest reading of every station in the region; duplicates of
a (station, observed_at) pair are discarded by the database.
"""
import logging

from config import Config
from models import WeatherObservation
from services.noaa_service import NOAAService
from utils.db_utils import chunks, upsert_insert
from utils.weather_utils import to_decimal

logger = logging.getLogger(__name__)


class ObservationIngestService:

    def __init__(self, db, noaa_service: NOAAService, state: str = Config.TARGET_STATE):
        self.db = db
        self.noaa_service = noaa_service
        self.state = state

    def collect(self) -> int:
        if self.db is None:
            logger.debug("[Collector:Weather] Database not configured, skipping")
            return 0

        stations = self.noaa_service.get_observation_stations(self.state)
        if not stations:
            logger.info("[Collector:Weather] No stations returned from NOAA")
            return 0

        rows = []
        for station in stations:
            weather = station.weather
            if weather is None or weather.timestamp is None:
                continue
            rows.append({
                'station_id': station.id[:20],
                'station_name': station.name[:255],
                'latitude': to_decimal(station.latitude, 6),
                'longitude': to_decimal(station.longitude, 6),
                'observed_at': weather.timestamp,
                'temperature_f': to_decimal(weather.temperature, 1),
                'humidity': to_decimal(weather.humidity, 2),
                'wind_speed_mph': to_decimal(weather.wind_speed_mph, 1),
                'wind_direction': weather.wind_direction,
                'pressure_mb': weather.pressure_mb,
                'description': (weather.description or '')[:255] or None,
            })

        if not rows:
            logger.info("[Collector:Weather] No valid observations to store")
            return 0

        try:
            for batch in chunks(rows, Config.DB_WRITE_BATCH_SIZE):
                stmt = upsert_insert(self.db, WeatherObservation).values(batch)
                stmt = stmt.on_conflict_do_nothing(index_elements=['station_id', 'observed_at'])
                self.db.session.execute(stmt)
            self.db.session.commit()
        except Exception as e:
            logger.error(f"[Collector:Weather] Failed to store observations: {e}")
            self.db.session.rollback()
            raise

        logger.info(f"[Collector:Weather] Stored {len(rows)} observations")
        return len(rows)
