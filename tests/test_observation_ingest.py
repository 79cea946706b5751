from datetime import datetime, timedelta, timezone
from decimal import Decimal
from unittest.mock import Mock

from app import db
from gauge_ingest import GaugeIngestService
from models import RiverGauge, WeatherObservation
from observation_ingest import ObservationIngestService
from services.noaa_service import ObservationStation, StationWeather
from services.usgs_service import GaugeReading

OBSERVED = datetime(2025, 1, 15, 11, 54, tzinfo=timezone.utc)


def station(station_id, timestamp=OBSERVED, temperature=31):
    weather = StationWeather(
        temperature=temperature,
        description="Light Snow",
        timestamp=timestamp,
        wind_speed_mph=9,
        wind_direction="NW",
        humidity=84.123,
        pressure_mb=1012,
    )
    return ObservationStation(
        id=station_id, name=f"{station_id} Airport", latitude=44.4683, longitude=-73.1499,
        elevation_ft=335, weather=weather,
    )


def noaa_returning(*stations):
    service = Mock()
    service.get_observation_stations.return_value = list(stations)
    return service


def test_observations_are_stored_once_per_reading(app):
    noaa = noaa_returning(station("KBTV"), station("KMPV"), station("KNOW", timestamp=None))
    service = ObservationIngestService(db, noaa, state="VT")

    assert service.collect() == 2
    assert service.collect() == 2
    assert WeatherObservation.query.count() == 2
    noaa.get_observation_stations.assert_called_with("VT")

    noaa.get_observation_stations.return_value = [station("KBTV", timestamp=OBSERVED + timedelta(hours=1))]
    service.collect()
    assert WeatherObservation.query.filter_by(station_id="KBTV").count() == 2


def test_observation_values(app):
    ObservationIngestService(db, noaa_returning(station("KBTV"))).collect()

    row = WeatherObservation.query.one()
    assert row.temperature_f == Decimal("31.0")
    assert row.humidity == Decimal("84.12")
    assert row.wind_direction == "NW"
    assert row.to_dict()['station_name'] == "KBTV Airport"


def test_observations_without_database():
    noaa = noaa_returning(station("KBTV"))
    assert ObservationIngestService(None, noaa).collect() == 0
    noaa.get_observation_stations.assert_not_called()


def gauge(site_code, observed_at=OBSERVED, height=3.456):
    return GaugeReading(
        site_code=site_code, site_name="WINOOSKI RIVER NEAR ESSEX JUNCTION, VT",
        latitude=44.4914, longitude=-73.1118, gage_height_ft=height, observed_at=observed_at,
    )


def test_gauge_readings_are_stored_once_per_reading(app):
    usgs = Mock()
    usgs.get_gauge_readings.return_value = [gauge("04290500"), gauge("04282500")]
    service = GaugeIngestService(db, usgs, state="VT")

    assert service.collect() == 2
    assert service.collect() == 2
    assert RiverGauge.query.count() == 2

    usgs.get_gauge_readings.return_value = [gauge("04290500", observed_at=OBSERVED + timedelta(minutes=15))]
    assert service.collect() == 1
    assert RiverGauge.query.count() == 3

    heights = {float(row.gage_height_ft) for row in RiverGauge.query.all()}
    assert heights == {3.46}


def test_empty_gauge_snapshot(app):
    usgs = Mock()
    usgs.get_gauge_readings.return_value = []
    assert GaugeIngestService(db, usgs).collect() == 0


def test_gauges_without_database():
    usgs = Mock()
    assert GaugeIngestService(None, usgs).collect() == 0
    usgs.get_gauge_readings.assert_not_called()
