"""
River gauge collector (USGS gage height)
"""
import logging

from config import Config
from models import RiverGauge
from services.usgs_service import USGSService
from utils.db_utils import chunks, upsert_insert
from utils.weather_utils import to_decimal

logger = logging.getLogger(__name__)


class GaugeIngestService:

    def __init__(self, db, usgs_service: USGSService, state: str = Config.TARGET_STATE):
        self.db = db
        self.usgs_service = usgs_service
        self.state = state

    def collect(self) -> int:
        """Insert the latest reading per site; an already stored reading is ignored"""
        if self.db is None:
            logger.debug("[Collector:Gauges] Database not configured, skipping")
            return 0

        readings = self.usgs_service.get_gauge_readings(self.state)
        if not readings:
            logger.info("[Collector:Gauges] No gauge data from USGS")
            return 0

        rows = [{
            'site_code': reading.site_code[:20],
            'site_name': reading.site_name[:255],
            'latitude': to_decimal(reading.latitude, 6),
            'longitude': to_decimal(reading.longitude, 6),
            'observed_at': reading.observed_at,
            'gage_height_ft': to_decimal(reading.gage_height_ft, 2),
        } for reading in readings]

        try:
            for batch in chunks(rows, Config.DB_WRITE_BATCH_SIZE):
                stmt = upsert_insert(self.db, RiverGauge).values(batch)
                stmt = stmt.on_conflict_do_nothing(index_elements=['site_code', 'observed_at'])
                self.db.session.execute(stmt)
            self.db.session.commit()
        except Exception as e:
            logger.error(f"[Collector:Gauges] Failed to store gauge readings: {e}")
            self.db.session.rollback()
            raise

        logger.info(f"[Collector:Gauges] Stored {len(rows)} gauge readings")
        return len(rows)
