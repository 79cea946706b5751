"""
NOAA weather.gov client
Alerts, forecast zone boundaries, grid points and observation stations.
Grid points, zones and the station directory are served through bounded caches.
"""
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from config import Config
from services.http_client import UpstreamClient
from utils.cache import BoundedCache
from utils.config_utils import CacheConfig
from utils.errors import MalformedResponseError
from utils.weather_utils import (celsius_to_fahrenheit, degrees_to_cardinal, meters_to_feet,
                                 mps_to_mph, parse_datetime, pascals_to_millibars)

logger = logging.getLogger(__name__)

POLYGON_TYPES = ('Polygon', 'MultiPolygon')


@dataclass
class RawAlert:
    """Active alert as published by NWS"""
    id: str
    event: str
    severity: str = 'Unknown'
    certainty: str = 'Unknown'
    urgency: str = 'Unknown'
    headline: Optional[str] = None
    description: Optional[str] = None
    instruction: Optional[str] = None
    area_desc: Optional[str] = None
    affected_zones: List[str] = field(default_factory=list)
    geometry: Optional[Dict[str, Any]] = None
    effective: Optional[datetime] = None
    expires: Optional[datetime] = None

    @property
    def has_polygon(self) -> bool:
        return bool(self.geometry) and self.geometry.get('type') in POLYGON_TYPES


@dataclass
class ZoneBoundary:
    id: str
    name: str
    state: Optional[str]
    geometry: Dict[str, Any]


@dataclass
class StationWeather:
    temperature: int
    description: str
    timestamp: Optional[datetime]
    wind_speed_mph: Optional[int] = None
    wind_direction: Optional[str] = None
    humidity: Optional[float] = None
    dewpoint: Optional[int] = None
    pressure_mb: Optional[int] = None
    icon: Optional[str] = None
    temperature_unit: str = 'F'


@dataclass
class ObservationStation:
    id: str
    name: str
    latitude: float
    longitude: float
    elevation_ft: Optional[int]
    weather: StationWeather


@dataclass
class ForecastPeriod:
    name: str
    temperature: int
    temperature_unit: str
    short_forecast: str
    detailed_forecast: str
    start_time: Optional[datetime]
    end_time: Optional[datetime]
    is_daytime: bool
    icon: Optional[str] = None
    wind_speed: Optional[str] = None
    wind_direction: Optional[str] = None


def extract_zone_id(zone_url_or_id: str) -> str:
    """'https://api.weather.gov/zones/forecast/VTZ001' -> 'VTZ001'"""
    return zone_url_or_id.rstrip('/').rsplit('/', 1)[-1]


def is_region_zone(zone_url_or_id: str, state: str) -> bool:
    return extract_zone_id(zone_url_or_id).upper().startswith(f"{state.upper()}Z")


def _quantity(props: Dict, name: str) -> Optional[float]:
    block = props.get(name) or {}
    return block.get('value') if isinstance(block, dict) else None


class NOAAService(UpstreamClient):
    """
    weather.gov client. One instance owns the grid-point, zone and station
    caches and is shared by every collector that talks to NOAA.
    """

    source_name = "NOAA"

    def __init__(self, session=None, base_url: str = Config.NOAA_BASE_URL,
                 timeout: Optional[float] = None,
                 grid_cache: Optional[BoundedCache] = None,
                 zone_cache: Optional[BoundedCache] = None,
                 station_cache: Optional[BoundedCache] = None):
        super().__init__(session=session, headers=Config.NOAA_HEADERS, timeout=timeout)
        self.base_url = base_url.rstrip('/')
        self.grid_cache = grid_cache or BoundedCache(
            "grid-point", Config.GRID_POINT_CACHE_SIZE, Config.GRID_POINT_CACHE_TTL)
        self.zone_cache = zone_cache or BoundedCache(
            "zone-boundary", Config.ZONE_CACHE_SIZE, Config.ZONE_CACHE_TTL)
        self.station_cache = station_cache or BoundedCache(
            "station-directory", CacheConfig.STATION_MAX_SIZE, Config.STATION_CACHE_TTL)

    # ------------------------------------------------------------------
    # Alerts
    # ------------------------------------------------------------------

    def get_alerts(self, state: str) -> List[RawAlert]:
        """
        Get active alerts for a state.
        Features missing an id or event are dropped; the rest are returned.
        """
        data = self._get_json(f"{self.base_url}/alerts/active", params={'area': state})
        features = data.get('features')
        if not isinstance(features, list):
            raise MalformedResponseError(self.source_name, "alerts response has no feature list")

        alerts = []
        for feature in features:
            alert = self._parse_alert_feature(feature)
            if alert is not None:
                alerts.append(alert)

        logger.info(f"Retrieved {len(alerts)} active alerts for {state} "
                    f"({len(features) - len(alerts)} malformed skipped)")
        return alerts

    def _parse_alert_feature(self, feature) -> Optional[RawAlert]:
        if not isinstance(feature, dict):
            logger.warning("Alert feature is not an object, skipping")
            return None

        properties = feature.get('properties') or {}
        alert_id = properties.get('id')
        event = properties.get('event')
        if not alert_id or not event:
            logger.warning(f"Alert feature missing id or event, skipping: {alert_id!r}")
            return None

        geometry = feature.get('geometry')
        if geometry and not (isinstance(geometry, dict) and geometry.get('coordinates')):
            geometry = None

        return RawAlert(
            id=alert_id,
            event=event,
            severity=properties.get('severity') or 'Unknown',
            certainty=properties.get('certainty') or 'Unknown',
            urgency=properties.get('urgency') or 'Unknown',
            headline=properties.get('headline'),
            description=properties.get('description'),
            instruction=properties.get('instruction'),
            area_desc=properties.get('areaDesc'),
            affected_zones=list(properties.get('affectedZones') or []),
            geometry={'type': geometry['type'], 'coordinates': geometry['coordinates']} if geometry else None,
            effective=parse_datetime(properties.get('effective')),
            expires=parse_datetime(properties.get('expires')),
        )

    # ------------------------------------------------------------------
    # Forecast zones
    # ------------------------------------------------------------------

    def get_zone_boundary(self, zone_id: str) -> ZoneBoundary:
        """Fetch one forecast zone boundary (cached 24h). Raises on failure."""
        zone_id = extract_zone_id(zone_id)
        return self.zone_cache.get_or_fetch(zone_id, lambda: self._fetch_zone_boundary(zone_id))

    def _fetch_zone_boundary(self, zone_id: str) -> ZoneBoundary:
        data = self._get_json(f"{self.base_url}/zones/forecast/{zone_id}")
        geometry = data.get('geometry')
        if not geometry or geometry.get('type') not in POLYGON_TYPES:
            raise MalformedResponseError(self.source_name, f"zone {zone_id} has no polygon geometry")

        properties = data.get('properties') or {}
        return ZoneBoundary(
            id=properties.get('id') or zone_id,
            name=properties.get('name') or zone_id,
            state=properties.get('state'),
            geometry=geometry,
        )

    def fetch_zone_boundaries(self, zone_ids: Iterable[str]) -> Dict[str, ZoneBoundary]:
        """
        Fetch several zone boundaries in parallel.
        A zone that fails is logged and left out of the result.
        """
        unique_ids = sorted({extract_zone_id(z) for z in zone_ids})
        if not unique_ids:
            return {}

        def fetch(zone_id):
            try:
                return zone_id, self.get_zone_boundary(zone_id)
            except Exception as e:
                logger.warning(f"[ZONES] Failed to fetch zone {zone_id}: {e}")
                return zone_id, None

        workers = min(Config.ZONE_FETCH_WORKERS, len(unique_ids))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            results = list(executor.map(fetch, unique_ids))

        return {zone_id: boundary for zone_id, boundary in results if boundary is not None}

    def clear_zone_cache(self) -> Dict:
        return self.zone_cache.clear()

    def zone_cache_stats(self) -> Dict:
        return self.zone_cache.stats()

    # ------------------------------------------------------------------
    # Grid points, forecast and point conditions
    # ------------------------------------------------------------------

    def get_grid_point(self, lat: float, lon: float) -> Dict[str, Any]:
        """Grid point metadata for coordinates (cached 1h, keyed to 4 decimals)"""
        cache_key = f"{lat:.4f},{lon:.4f}"

        def fetch():
            data = self._get_json(f"{self.base_url}/points/{lat},{lon}")
            properties = data.get('properties')
            if not properties:
                raise MalformedResponseError(self.source_name, f"grid point {cache_key} has no properties")
            return properties

        return self.grid_cache.get_or_fetch(cache_key, fetch)

    def get_forecast(self, lat: float, lon: float) -> List[ForecastPeriod]:
        grid_point = self.get_grid_point(lat, lon)
        forecast_url = grid_point.get('forecast')
        if not forecast_url:
            raise MalformedResponseError(self.source_name, "grid point has no forecast URL")

        data = self._get_json(forecast_url)
        periods = (data.get('properties') or {}).get('periods') or []
        return [
            ForecastPeriod(
                name=period.get('name'),
                temperature=period.get('temperature'),
                temperature_unit=period.get('temperatureUnit'),
                short_forecast=period.get('shortForecast'),
                detailed_forecast=period.get('detailedForecast'),
                start_time=parse_datetime(period.get('startTime')),
                end_time=parse_datetime(period.get('endTime')),
                is_daytime=bool(period.get('isDaytime')),
                icon=period.get('icon'),
                wind_speed=period.get('windSpeed'),
                wind_direction=period.get('windDirection'),
            )
            for period in periods
        ]

    def get_current_weather(self, lat: float, lon: float, max_stations: int = 3) -> StationWeather:
        """
        Current conditions near a point.
        Tries the nearest stations in turn until one has a temperature.
        """
        grid_point = self.get_grid_point(lat, lon)
        stations_url = grid_point.get('observationStations')
        if not stations_url:
            raise MalformedResponseError(self.source_name, "grid point has no observation stations")

        stations = self._get_json(stations_url).get('features') or []
        if not stations:
            raise MalformedResponseError(self.source_name, "no observation stations found")

        for station in stations[:max_stations]:
            station_id = (station.get('properties') or {}).get('stationIdentifier')
            if not station_id:
                continue
            try:
                weather = self._get_latest_observation(station_id)
            except Exception as e:
                logger.debug(f"Station {station_id} observation unavailable: {e}")
                continue
            if weather is not None:
                return weather

        raise MalformedResponseError(self.source_name, "no valid observations available from nearby stations")

    # ------------------------------------------------------------------
    # Observation station directory
    # ------------------------------------------------------------------

    def get_observation_stations(self, state: str) -> List[ObservationStation]:
        """
        Every station in the state with its latest observation.
        The whole directory is cached as one entry and refreshed wholesale.
        """
        return self.station_cache.get_or_fetch(state, lambda: self._fetch_observation_stations(state))

    def clear_stations_cache(self) -> Dict:
        return self.station_cache.clear()

    def _fetch_observation_stations(self, state: str) -> List[ObservationStation]:
        data = self._get_json(f"{self.base_url}/stations",
                              params={'state': state, 'limit': Config.STATION_LIMIT})
        features = data.get('features')
        if not isinstance(features, list):
            raise MalformedResponseError(self.source_name, "stations response has no feature list")

        features = features[:Config.STATION_LIMIT]
        if not features:
            return []

        workers = min(Config.STATION_FETCH_WORKERS, len(features))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            stations = list(executor.map(self._build_station, features))

        valid = [s for s in stations if s is not None]
        logger.info(f"Fetched {len(valid)}/{len(features)} observation stations with data for {state}")
        return valid

    def _build_station(self, feature) -> Optional[ObservationStation]:
        try:
            properties = feature.get('properties') or {}
            station_id = properties['stationIdentifier']
            lon, lat = feature['geometry']['coordinates'][:2]
            weather = self._get_latest_observation(station_id)
        except Exception as e:
            logger.debug(f"Skipping station feature: {e}")
            return None

        if weather is None:
            return None

        elevation = _quantity(properties, 'elevation')
        return ObservationStation(
            id=station_id,
            name=properties.get('name') or station_id,
            latitude=lat,
            longitude=lon,
            elevation_ft=meters_to_feet(elevation) if elevation else None,
            weather=weather,
        )

    def _get_latest_observation(self, station_id: str) -> Optional[StationWeather]:
        data = self._get_json(f"{self.base_url}/stations/{station_id}/observations/latest")
        props = data.get('properties') or {}

        temperature = _quantity(props, 'temperature')
        if temperature is None:
            return None

        wind_speed = _quantity(props, 'windSpeed')
        wind_direction = _quantity(props, 'windDirection')
        dewpoint = _quantity(props, 'dewpoint')
        pressure = _quantity(props, 'barometricPressure')

        return StationWeather(
            temperature=celsius_to_fahrenheit(temperature),
            description=props.get('textDescription') or 'Unknown',
            timestamp=parse_datetime(props.get('timestamp')),
            wind_speed_mph=mps_to_mph(wind_speed) if wind_speed is not None else None,
            wind_direction=degrees_to_cardinal(wind_direction) if wind_direction is not None else None,
            humidity=_quantity(props, 'relativeHumidity'),
            dewpoint=celsius_to_fahrenheit(dewpoint) if dewpoint is not None else None,
            pressure_mb=pascals_to_millibars(pressure) if pressure is not None else None,
            icon=props.get('icon'),
        )
