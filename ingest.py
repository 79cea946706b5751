import logging
from datetime import datetime
from typing import Callable, Dict, Optional

from alert_merge import AlertMergeService, MergedAlert
from config import Config
from models import WeatherAlert
from utils.db_utils import chunks, upsert_insert
from utils.weather_utils import utcnow

logger = logging.getLogger(__name__)


class IngestService:
    """
    NWS Alert Ingestion Service
    Merges the region's active alerts by event type and records each merged
    alert's presence with a natural-key upsert on noaa_alert_id
    """

    def __init__(self, db, merge_service: AlertMergeService,
                 state: str = Config.TARGET_STATE,
                 clock: Callable[[], datetime] = utcnow):
        self.db = db
        self.merge_service = merge_service
        self.state = state
        self.clock = clock
        self.db_write_batch_size = Config.DB_WRITE_BATCH_SIZE

    def collect(self) -> int:
        """
        Poll, merge and store alerts.
        Returns the number of merged alerts processed (0 when persistence is off).
        """
        if self.db is None:
            logger.debug("[Collector:Alerts] Database not configured, skipping")
            return 0

        alerts = self.merge_service.get_merged_alerts(self.state)
        if not alerts:
            logger.info(f"[Collector:Alerts] No active alerts for {self.state}")
            return 0

        now = self.clock()
        processed = 0
        skipped = 0

        try:
            for batch in chunks(alerts, self.db_write_batch_size):
                for alert in batch:
                    row = self._alert_row(alert)
                    if row is None:
                        skipped += 1
                        continue
                    self._upsert_alert(row, now)
                    processed += 1
                self.db.session.commit()
        except Exception as e:
            logger.error(f"[Collector:Alerts] Failed to store alerts: {e}")
            self.db.session.rollback()
            raise

        logger.info(f"[Collector:Alerts] Processed {processed} alerts ({skipped} skipped)")
        return processed

    def _upsert_alert(self, row: Dict, now: datetime):
        stmt = upsert_insert(self.db, WeatherAlert).values(
            **row, first_seen_at=now, last_seen_at=now
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=['noaa_alert_id'],
            set_={'last_seen_at': stmt.excluded.last_seen_at},
        )
        self.db.session.execute(stmt)

    def _alert_row(self, alert: MergedAlert) -> Optional[Dict]:
        """Column values for a merged alert, or None if it cannot be stored"""
        if alert.effective is None or alert.expires is None:
            logger.warning(f"Alert {alert.id} missing effective/expires, skipping")
            return None

        return {
            'noaa_alert_id': alert.id,
            'event_type': alert.event,
            'severity': alert.severity,
            'certainty': alert.certainty,
            'urgency': alert.urgency,
            'headline': alert.headline,
            'description': alert.description,
            'instruction': alert.instruction,
            'area_desc': alert.area_desc,
            'affected_zones': list(alert.affected_zone_ids),
            'merged_from': list(alert.merged_from),
            'geometry': alert.geometry,
            'effective_at': alert.effective,
            'expires_at': alert.expires,
        }
