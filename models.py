from app import db
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy import (Column, String, Text, DateTime, Integer, BigInteger, Numeric, JSON,
                        func, Index, UniqueConstraint)

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")
# SQLite only auto-increments INTEGER PRIMARY KEY
BigIntPK = BigInteger().with_variant(Integer(), "sqlite")


def _iso(value):
    return value.isoformat() if value else None


def _float(value):
    return float(value) if value is not None else None


class WeatherObservation(db.Model):
    """
    Station observation history, append-only.
    One row per (station_id, observed_at); re-collecting the same reading is a no-op.
    """
    __tablename__ = "weather_observations"

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    station_id = Column(String(20), nullable=False)
    station_name = Column(String(255), nullable=False)
    latitude = Column(Numeric(9, 6), nullable=False)
    longitude = Column(Numeric(9, 6), nullable=False)
    observed_at = Column(DateTime(timezone=True), nullable=False)
    temperature_f = Column(Numeric(5, 1))
    humidity = Column(Numeric(5, 2))
    wind_speed_mph = Column(Numeric(5, 1))
    wind_direction = Column(String(3))
    pressure_mb = Column(Integer)
    description = Column(String(255))
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint('station_id', 'observed_at', name='uq_weather_obs_station_time'),
        Index('idx_weather_obs_observed_at', 'observed_at'),
    )

    def __repr__(self):
        return f'<WeatherObservation {self.station_id} @ {self.observed_at}>'

    def to_dict(self):
        return {
            'station_id': self.station_id,
            'station_name': self.station_name,
            'latitude': _float(self.latitude),
            'longitude': _float(self.longitude),
            'observed_at': _iso(self.observed_at),
            'temperature_f': _float(self.temperature_f),
            'humidity': _float(self.humidity),
            'wind_speed_mph': _float(self.wind_speed_mph),
            'wind_direction': self.wind_direction,
            'pressure_mb': self.pressure_mb,
            'description': self.description,
        }


class WeatherAlert(db.Model):
    """
    Merged NWS alert history keyed by noaa_alert_id.
    first_seen_at is written once; re-observation only moves last_seen_at.
    """
    __tablename__ = "weather_alerts"

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    noaa_alert_id = Column(String(255), nullable=False)
    event_type = Column(String(100), nullable=False)
    severity = Column(String(20), nullable=False)
    certainty = Column(String(20), nullable=False)
    urgency = Column(String(20), nullable=False)
    headline = Column(Text)
    description = Column(Text)
    instruction = Column(Text)
    area_desc = Column(Text)
    affected_zones = Column(JSONType)     # list of zone ids
    merged_from = Column(JSONType)        # source NWS alert ids
    geometry = Column(JSONType)           # GeoJSON MultiPolygon
    effective_at = Column(DateTime(timezone=True), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    first_seen_at = Column(DateTime(timezone=True), server_default=func.now())
    last_seen_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint('noaa_alert_id', name='uq_weather_alerts_noaa_id'),
        Index('idx_alerts_event_type', 'event_type'),
        Index('idx_alerts_expires', 'expires_at'),
        Index('idx_alerts_severity', 'severity'),
    )

    def __repr__(self):
        return f'<WeatherAlert {self.noaa_alert_id}: {self.event_type}>'

    def to_dict(self):
        return {
            'noaa_alert_id': self.noaa_alert_id,
            'event_type': self.event_type,
            'severity': self.severity,
            'certainty': self.certainty,
            'urgency': self.urgency,
            'headline': self.headline,
            'description': self.description,
            'instruction': self.instruction,
            'area_desc': self.area_desc,
            'affected_zones': self.affected_zones or [],
            'merged_from': self.merged_from or [],
            'geometry': self.geometry,
            'effective_at': _iso(self.effective_at),
            'expires_at': _iso(self.expires_at),
            'first_seen_at': _iso(self.first_seen_at),
            'last_seen_at': _iso(self.last_seen_at),
        }


class TrafficIncident(db.Model):
    """
    Traffic incident lifecycle keyed by source_id.
    resolved_at stays NULL while the incident is in the feed and is set once,
    permanently, the first cycle it is missing.
    """
    __tablename__ = "traffic_incidents"

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    source_id = Column(String(100), nullable=False)    # e.g. "vt511-12345"
    incident_type = Column(String(50), nullable=False)  # ACCIDENT, CONSTRUCTION, CLOSURE, HAZARD
    severity = Column(String(20), nullable=False)       # MINOR, MODERATE, MAJOR
    title = Column(String(255), nullable=False)
    description = Column(Text)
    latitude = Column(Numeric(9, 6), nullable=False)
    longitude = Column(Numeric(9, 6), nullable=False)
    road_name = Column(String(255))
    affected_lanes = Column(String(255))
    geometry = Column(JSONType)
    started_at = Column(DateTime(timezone=True))
    first_seen_at = Column(DateTime(timezone=True), server_default=func.now())
    last_seen_at = Column(DateTime(timezone=True), server_default=func.now())
    resolved_at = Column(DateTime(timezone=True))
    source = Column(String(50), nullable=False, default='VT 511', server_default='VT 511')

    __table_args__ = (
        UniqueConstraint('source_id', name='uq_traffic_incidents_source_id'),
        Index('idx_incidents_type', 'incident_type'),
        Index('idx_incidents_active', 'resolved_at'),
        Index('idx_incidents_time', 'first_seen_at'),
    )

    def __repr__(self):
        return f'<TrafficIncident {self.source_id}: {self.incident_type}>'

    @property
    def is_active(self):
        return self.resolved_at is None

    def to_dict(self):
        return {
            'source_id': self.source_id,
            'incident_type': self.incident_type,
            'severity': self.severity,
            'title': self.title,
            'description': self.description,
            'latitude': _float(self.latitude),
            'longitude': _float(self.longitude),
            'road_name': self.road_name,
            'affected_lanes': self.affected_lanes,
            'geometry': self.geometry,
            'started_at': _iso(self.started_at),
            'first_seen_at': _iso(self.first_seen_at),
            'last_seen_at': _iso(self.last_seen_at),
            'resolved_at': _iso(self.resolved_at),
            'is_active': self.is_active,
            'source': self.source,
        }


class RiverGauge(db.Model):
    """USGS gage height time series, append-only on (site_code, observed_at)"""
    __tablename__ = "river_gauges"

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    site_code = Column(String(20), nullable=False)
    site_name = Column(String(255), nullable=False)
    latitude = Column(Numeric(9, 6), nullable=False)
    longitude = Column(Numeric(9, 6), nullable=False)
    observed_at = Column(DateTime(timezone=True), nullable=False)
    gage_height_ft = Column(Numeric(8, 2), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint('site_code', 'observed_at', name='uq_river_gauges_site_time'),
        Index('idx_gauges_observed_at', 'observed_at'),
    )

    def __repr__(self):
        return f'<RiverGauge {self.site_code} @ {self.observed_at}>'

    def to_dict(self):
        return {
            'site_code': self.site_code,
            'site_name': self.site_name,
            'latitude': _float(self.latitude),
            'longitude': _float(self.longitude),
            'observed_at': _iso(self.observed_at),
            'gage_height_ft': _float(self.gage_height_ft),
        }
