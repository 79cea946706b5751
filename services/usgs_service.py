"""
USGS Water Services client (instantaneous values, gage height)
"""
import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional

from config import Config
from services.http_client import UpstreamClient
from utils.errors import MalformedResponseError
from utils.weather_utils import parse_datetime, utcnow

logger = logging.getLogger(__name__)


@dataclass
class GaugeReading:
    site_code: str
    site_name: str
    latitude: float
    longitude: float
    gage_height_ft: float
    observed_at: datetime


class USGSService(UpstreamClient):
    source_name = "USGS"

    def __init__(self, session=None, base_url: str = Config.USGS_IV_URL,
                 timeout: Optional[float] = None,
                 max_age_hours: int = Config.GAUGE_MAX_AGE_HOURS,
                 clock: Callable[[], datetime] = utcnow):
        super().__init__(session=session, headers=Config.USGS_HEADERS, timeout=timeout)
        self.base_url = base_url
        self.max_age = timedelta(hours=max_age_hours)
        self.clock = clock

    def get_gauge_readings(self, state: str) -> List[GaugeReading]:
        """Latest gage height for every active site in the state"""
        data = self._get_json(self.base_url, params={
            'format': 'json',
            'stateCd': state,
            'parameterCd': Config.USGS_PARAMETER_CODE,
            'siteStatus': 'active',
        })
        time_series = (data.get('value') or {}).get('timeSeries')
        if not isinstance(time_series, list):
            raise MalformedResponseError(self.source_name, "response has no timeSeries list")

        cutoff = self.clock() - self.max_age
        readings = []
        for series in time_series:
            reading = self._parse_series(series, cutoff)
            if reading is not None:
                readings.append(reading)

        logger.info(f"Parsed {len(readings)}/{len(time_series)} gauge readings for {state}")
        return readings

    def _parse_series(self, series: Dict, cutoff: datetime) -> Optional[GaugeReading]:
        try:
            source_info = series.get('sourceInfo') or {}
            site_codes = source_info.get('siteCode') or [{}]
            site_code = site_codes[0].get('value')
            location = (source_info.get('geoLocation') or {}).get('geogLocation')
            if not site_code or not location:
                return None

            latitude = location.get('latitude') or 0
            longitude = location.get('longitude') or 0
            if latitude == 0 and longitude == 0:
                return None

            values = ((series.get('values') or [{}])[0].get('value')) or []
            if not values:
                return None
            latest = values[-1]

            gage_height = float(latest.get('value'))
            observed_at = parse_datetime(latest.get('dateTime'))
        except (AttributeError, IndexError, TypeError, ValueError) as e:
            logger.debug(f"Skipping malformed gauge series: {e}")
            return None

        if math.isnan(gage_height) or observed_at is None or observed_at < cutoff:
            return None

        return GaugeReading(
            site_code=site_code,
            site_name=source_info.get('siteName') or 'Unknown',
            latitude=latitude,
            longitude=longitude,
            gage_height_ft=gage_height,
            observed_at=observed_at,
        )
