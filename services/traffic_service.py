"""
VT 511 traffic incident feed (NE Compass C2C XML portal)
"""
import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from config import Config
from services.http_client import UpstreamClient
from utils.errors import MalformedResponseError
from utils.weather_utils import parse_datetime

logger = logging.getLogger(__name__)

MICRODEGREES = 1_000_000


@dataclass
class TrafficIncident:
    source_id: str
    incident_type: str
    severity: str
    title: str
    description: str
    latitude: float
    longitude: float
    road_name: Optional[str] = None
    affected_lanes: Optional[str] = None
    geometry: Optional[dict] = None
    started_at: Optional[datetime] = None


def _local_name(tag) -> str:
    if not isinstance(tag, str):
        return ''
    return tag.rsplit('}', 1)[-1].lower()


def _find_text(element, *names) -> Optional[str]:
    """Text of the first descendant whose local tag name matches, in order of names"""
    for name in names:
        wanted = name.lower()
        for child in element.iter():
            if child is element:
                continue
            if _local_name(child.tag) == wanted and child.text and child.text.strip():
                return child.text.strip()
    return None


def classify_incident(raw_xml: str) -> str:
    if 'Construction' in raw_xml or 'RoadWork' in raw_xml:
        return 'CONSTRUCTION'
    if 'Accident' in raw_xml:
        return 'ACCIDENT'
    if 'BridgeOut' in raw_xml or 'Closure' in raw_xml:
        return 'CLOSURE'
    return 'HAZARD'


def map_severity(value: Optional[str]) -> str:
    if value:
        lowered = value.lower()
        if lowered == 'low':
            return 'MINOR'
        if lowered == 'high':
            return 'MAJOR'
    return 'MODERATE'


def parse_incident_xml(xml_text: str, id_prefix: str = Config.TRAFFIC_ID_PREFIX) -> List[TrafficIncident]:
    """
    Parse the C2C incident document.
    Incidents without an id or a location are dropped.
    """
    try:
        root = ET.fromstring(xml_text)
    except ET.ParseError as e:
        raise MalformedResponseError("VT511", f"invalid incident XML: {e}") from e

    incidents = []
    for element in root.iter():
        if _local_name(element.tag) != 'incident':
            continue

        incident_id = _find_text(element, 'id')
        if not incident_id:
            logger.debug("Incident without id, skipping")
            continue

        try:
            latitude = float(_find_text(element, 'lat') or 0) / MICRODEGREES
            longitude = float(_find_text(element, 'lon') or 0) / MICRODEGREES
        except ValueError:
            logger.debug(f"Incident {incident_id} has unparseable coordinates, skipping")
            continue

        if latitude == 0 and longitude == 0:
            continue

        raw_xml = ET.tostring(element, encoding='unicode')
        incidents.append(TrafficIncident(
            source_id=f"{id_prefix}-{incident_id}",
            incident_type=classify_incident(raw_xml),
            severity=map_severity(_find_text(element, 'severity')),
            title=_find_text(element, 'headline') or 'Traffic Incident',
            description=_find_text(element, 'description') or '',
            latitude=latitude,
            longitude=longitude,
            road_name=_find_text(element, 'roadName', 'road', 'routeDesignator'),
            affected_lanes=_find_text(element, 'affectedLanes'),
            started_at=parse_datetime(_find_text(element, 'startTime')),
        ))

    return incidents


class TrafficService(UpstreamClient):
    source_name = "VT511"

    def __init__(self, session=None, base_url: str = Config.TRAFFIC_FEED_URL,
                 network: str = Config.TRAFFIC_NETWORK, timeout: Optional[float] = None):
        super().__init__(session=session, headers=Config.TRAFFIC_HEADERS, timeout=timeout)
        self.base_url = base_url
        self.network = network

    def get_incidents(self) -> List[TrafficIncident]:
        xml_text = self._get_text(self.base_url, params={
            'networks': self.network,
            'dataTypes': 'incidentData',
        })
        incidents = parse_incident_xml(xml_text)
        logger.info(f"Parsed {len(incidents)} incidents from {self.network} feed")
        return incidents
