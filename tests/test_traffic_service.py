import pytest

from conftest import FakeResponse, FakeSession
from services.traffic_service import (TrafficService, classify_incident, map_severity,
                                      parse_incident_xml)
from utils.errors import MalformedResponseError, UpstreamUnavailableError

FEED_URL = "https://nec-por.ne-compass.com/NEC.XmlDataPortal/api/c2c"

FEED = """<?xml version="1.0" encoding="UTF-8"?>
<incidentData xmlns="http://www.tmdd.org/3/messages">
  <incidents>
    <incident>
      <id>123</id>
      <headline>Roadwork on I-89 northbound</headline>
      <description>Right lane closed for paving</description>
      <eventType>RoadWork</eventType>
      <severity>high</severity>
      <location><lat>44260000</lat><lon>-72575000</lon></location>
      <roadName>I-89</roadName>
      <affectedLanes>right lane</affectedLanes>
      <startTime>2025-01-15T07:00:00Z</startTime>
    </incident>
    <incident>
      <id>456</id>
      <eventType>Accident</eventType>
      <severity>low</severity>
      <location><lat>44475000</lat><lon>-73212000</lon></location>
    </incident>
    <incident>
      <headline>No identifier</headline>
      <location><lat>44000000</lat><lon>-72000000</lon></location>
    </incident>
    <incident>
      <id>789</id>
      <headline>Nowhere</headline>
    </incident>
  </incidents>
</incidentData>
"""


def test_parse_incidents():
    incidents = parse_incident_xml(FEED)

    assert [i.source_id for i in incidents] == ["vt511-123", "vt511-456"]

    roadwork = incidents[0]
    assert roadwork.incident_type == "CONSTRUCTION"
    assert roadwork.severity == "MAJOR"
    assert roadwork.title == "Roadwork on I-89 northbound"
    assert roadwork.latitude == pytest.approx(44.26)
    assert roadwork.longitude == pytest.approx(-72.575)
    assert roadwork.road_name == "I-89"
    assert roadwork.affected_lanes == "right lane"
    assert roadwork.started_at.isoformat() == "2025-01-15T07:00:00+00:00"

    crash = incidents[1]
    assert crash.incident_type == "ACCIDENT"
    assert crash.severity == "MINOR"
    assert crash.title == "Traffic Incident"
    assert crash.description == ""


def test_invalid_xml_is_malformed():
    with pytest.raises(MalformedResponseError):
        parse_incident_xml("<incidents><incident>")


def test_classification_and_severity():
    assert classify_incident("<eventType>Construction</eventType>") == "CONSTRUCTION"
    assert classify_incident("<eventType>Accident</eventType>") == "ACCIDENT"
    assert classify_incident("<eventType>BridgeOut</eventType>") == "CLOSURE"
    assert classify_incident("<eventType>Closure</eventType>") == "CLOSURE"
    assert classify_incident("<eventType>Flooding</eventType>") == "HAZARD"

    assert map_severity("LOW") == "MINOR"
    assert map_severity("high") == "MAJOR"
    assert map_severity("medium") == "MODERATE"
    assert map_severity(None) == "MODERATE"


def test_service_requests_network_incidents():
    session = FakeSession({FEED_URL: FakeResponse(text=FEED)})
    incidents = TrafficService(session=session).get_incidents()

    assert len(incidents) == 2
    assert session.calls[0][1] == {'networks': 'Vermont', 'dataTypes': 'incidentData'}


def test_service_upstream_failure_propagates():
    session = FakeSession({FEED_URL: FakeResponse(status_code=502)})
    with pytest.raises(UpstreamUnavailableError):
        TrafficService(session=session).get_incidents()
