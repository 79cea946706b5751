"""
Alert Merge Engine
Collapses the active NWS alerts for a region into one synthetic alert per
event type, resolving a representative member and a combined geometry.
"""
import hashlib
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional

from services.noaa_service import (POLYGON_TYPES, RawAlert, ZoneBoundary,
                                   extract_zone_id, is_region_zone)

logger = logging.getLogger(__name__)

SEVERITY_RANK = {'Extreme': 4, 'Severe': 3, 'Moderate': 2, 'Minor': 1, 'Unknown': 0}
CERTAINTY_RANK = {'Observed': 4, 'Likely': 3, 'Possible': 2, 'Unlikely': 1, 'Unknown': 0}
URGENCY_RANK = {'Immediate': 4, 'Expected': 3, 'Future': 2, 'Past': 1, 'Unknown': 0}

ZoneLookup = Callable[[Iterable[str]], Dict[str, ZoneBoundary]]


@dataclass
class MergedAlert:
    """One alert per event type, standing in for every member it merged"""
    id: str
    event: str
    severity: str
    certainty: str
    urgency: str
    headline: Optional[str]
    description: Optional[str]
    instruction: Optional[str]
    area_desc: Optional[str]
    geometry: Optional[Dict[str, Any]]
    effective: Optional[datetime]
    expires: Optional[datetime]
    merged_from: List[str] = field(default_factory=list)
    affected_zone_ids: List[str] = field(default_factory=list)


def alert_rank(alert: RawAlert):
    return (
        SEVERITY_RANK.get(alert.severity, 0),
        CERTAINTY_RANK.get(alert.certainty, 0),
        URGENCY_RANK.get(alert.urgency, 0),
    )


def select_primary(alerts: List[RawAlert]) -> RawAlert:
    """Highest severity, then certainty, then urgency; first seen wins ties"""
    return sorted(alerts, key=alert_rank, reverse=True)[0]


def polygons_of(geometry: Optional[Dict[str, Any]]) -> List[Any]:
    """Polygon coordinate arrays contained in a Polygon or MultiPolygon"""
    if not geometry or geometry.get('type') not in POLYGON_TYPES:
        return []
    coordinates = geometry.get('coordinates') or []
    if geometry['type'] == 'Polygon':
        return [coordinates]
    return list(coordinates)


def concat_geometries(geometries: Iterable[Optional[Dict[str, Any]]]) -> Optional[Dict[str, Any]]:
    """Concatenate polygons into one MultiPolygon (no union is computed)"""
    polygons = []
    for geometry in geometries:
        polygons.extend(polygons_of(geometry))
    if not polygons:
        return None
    return {'type': 'MultiPolygon', 'coordinates': polygons}


def merged_alert_id(alerts: List[RawAlert]) -> str:
    if len(alerts) == 1:
        return alerts[0].id
    digest = hashlib.sha1("|".join(sorted(a.id for a in alerts)).encode('utf-8')).hexdigest()
    return f"merged-{digest[:16]}"


def group_by_event(alerts: Iterable[RawAlert]) -> Dict[str, List[RawAlert]]:
    groups: Dict[str, List[RawAlert]] = {}
    for alert in alerts:
        groups.setdefault(alert.event, []).append(alert)
    return groups


def merge_alert_group(event: str, alerts: List[RawAlert], state: str,
                      zone_lookup: ZoneLookup) -> Optional[MergedAlert]:
    """
    Merge one event-type group. Returns None when no member touches a
    zone in the target region.
    """
    region_zone_ids = sorted({
        extract_zone_id(zone)
        for alert in alerts
        for zone in alert.affected_zones
        if is_region_zone(zone, state)
    })
    if not region_zone_ids:
        logger.debug(f"Skipping '{event}': no {state} zones affected")
        return None

    inline = [alert.geometry for alert in alerts if alert.has_polygon]
    zone_names: List[str] = []

    if inline:
        geometry = concat_geometries(inline)
    else:
        # no member has inline geometry, so every region zone is wanted
        wanted = region_zone_ids
        boundaries = zone_lookup(wanted)
        resolved = [boundaries[zone_id] for zone_id in wanted if zone_id in boundaries]
        if len(resolved) < len(wanted):
            logger.warning(f"'{event}': resolved {len(resolved)}/{len(wanted)} zone boundaries")
        geometry = concat_geometries(b.geometry for b in resolved)
        zone_names = [b.name for b in resolved]

    primary = select_primary(alerts)
    effectives = [a.effective for a in alerts if a.effective is not None]
    expirations = [a.expires for a in alerts if a.expires is not None]

    return MergedAlert(
        id=merged_alert_id(alerts),
        event=event,
        severity=primary.severity,
        certainty=primary.certainty,
        urgency=primary.urgency,
        headline=primary.headline,
        description=primary.description,
        instruction=primary.instruction,
        area_desc="; ".join(zone_names) if zone_names else primary.area_desc,
        geometry=geometry,
        effective=min(effectives) if effectives else None,
        expires=max(expirations) if expirations else None,
        merged_from=[a.id for a in alerts],
        affected_zone_ids=region_zone_ids,
    )


def merge_alerts(alerts: Iterable[RawAlert], state: str, zone_lookup: ZoneLookup) -> List[MergedAlert]:
    merged = []
    for event, members in group_by_event(alerts).items():
        result = merge_alert_group(event, members, state, zone_lookup)
        if result is not None:
            merged.append(result)
    return merged


class AlertMergeService:
    """Fetches active alerts for a region and merges them by event type"""

    def __init__(self, noaa_service):
        self.noaa_service = noaa_service

    def get_merged_alerts(self, state: str) -> List[MergedAlert]:
        """
        Raises UpstreamUnavailableError / MalformedResponseError if the alert
        list itself cannot be fetched; zone lookup failures only thin out
        the geometry.
        """
        alerts = self.noaa_service.get_alerts(state)
        merged = merge_alerts(alerts, state, self.noaa_service.fetch_zone_boundaries)
        logger.info(f"Merged {len(alerts)} {state} alerts into {len(merged)} event groups")
        return merged
