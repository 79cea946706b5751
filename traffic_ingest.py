"""
Traffic incident collector
Tracks each VT 511 incident from first sighting until it drops out of the feed.
"""
import logging
from datetime import datetime
from typing import Callable

from config import Config
from models import TrafficIncident
from services.traffic_service import TrafficService
from utils.db_utils import upsert_insert
from utils.weather_utils import to_decimal, utcnow

logger = logging.getLogger(__name__)


class TrafficIngestService:
    """
    absent -> active on first sighting, active -> active while re-observed,
    active -> resolved once missing from a snapshot. Resolution is terminal.
    """

    def __init__(self, db, traffic_service: TrafficService,
                 clock: Callable[[], datetime] = utcnow):
        self.db = db
        self.traffic_service = traffic_service
        self.clock = clock

    def collect(self) -> int:
        if self.db is None:
            logger.debug("[Collector:Traffic] Database not configured, skipping")
            return 0

        incidents = self.traffic_service.get_incidents()
        if not incidents:
            logger.info("[Collector:Traffic] No incidents from VT 511")
            return 0

        now = self.clock()
        current_ids = set()

        try:
            for incident in incidents:
                current_ids.add(incident.source_id)
                stmt = upsert_insert(self.db, TrafficIncident).values(
                    source_id=incident.source_id,
                    incident_type=incident.incident_type,
                    severity=incident.severity,
                    title=incident.title[:255],
                    description=incident.description,
                    latitude=to_decimal(incident.latitude, 6),
                    longitude=to_decimal(incident.longitude, 6),
                    road_name=incident.road_name,
                    affected_lanes=incident.affected_lanes,
                    geometry=incident.geometry,
                    started_at=incident.started_at,
                    source=Config.TRAFFIC_SOURCE_NAME,
                    first_seen_at=now,
                    last_seen_at=now,
                )
                # the upsert never writes resolved_at
                stmt = stmt.on_conflict_do_update(
                    index_elements=['source_id'],
                    set_={'last_seen_at': stmt.excluded.last_seen_at},
                )
                self.db.session.execute(stmt)

            resolved = self.db.session.query(TrafficIncident).filter(
                TrafficIncident.resolved_at.is_(None),
                ~TrafficIncident.source_id.in_(sorted(current_ids)),
            ).update({TrafficIncident.resolved_at: now}, synchronize_session=False)

            self.db.session.commit()
        except Exception as e:
            logger.error(f"[Collector:Traffic] Failed to store incidents: {e}")
            self.db.session.rollback()
            raise

        logger.info(f"[Collector:Traffic] Processed {len(incidents)} incidents, resolved {resolved}")
        return len(incidents)
