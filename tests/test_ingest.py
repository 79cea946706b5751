from datetime import datetime, timezone
from unittest.mock import Mock

import pytest

from alert_merge import MergedAlert
from app import db
from conftest import naive
from ingest import IngestService
from models import WeatherAlert

P1 = {'type': 'MultiPolygon', 'coordinates': [[[[-72.5, 44.0], [-72.4, 44.0], [-72.4, 44.1], [-72.5, 44.0]]]]}


def merged_alert(alert_id="merged-abc", event="Flood Warning", **kwargs):
    values = dict(
        id=alert_id,
        event=event,
        severity="Severe",
        certainty="Likely",
        urgency="Expected",
        headline="Flood Warning issued",
        description="Rising water",
        instruction=None,
        area_desc="Grand Isle; Windsor",
        geometry=P1,
        effective=datetime(2025, 1, 15, 10, tzinfo=timezone.utc),
        expires=datetime(2025, 1, 15, 18, tzinfo=timezone.utc),
        merged_from=["a1", "a2"],
        affected_zone_ids=["VTZ001", "VTZ002"],
    )
    values.update(kwargs)
    return MergedAlert(**values)


def merge_service_returning(*alerts):
    service = Mock()
    service.get_merged_alerts.return_value = list(alerts)
    return service


def test_repeat_collection_only_advances_last_seen(app, clock):
    service = IngestService(db, merge_service_returning(merged_alert()), state="VT", clock=clock)

    first_time = clock()
    assert service.collect() == 1
    second_time = clock.advance(minutes=2)
    assert service.collect() == 1

    rows = WeatherAlert.query.all()
    assert len(rows) == 1
    row = rows[0]
    assert naive(row.first_seen_at) == naive(first_time)
    assert naive(row.last_seen_at) == naive(second_time)
    assert row.merged_from == ["a1", "a2"]
    assert row.affected_zones == ["VTZ001", "VTZ002"]
    assert row.geometry == P1
    assert row.to_dict()['event_type'] == "Flood Warning"


def test_each_event_type_is_its_own_row(app, clock):
    service = IngestService(db, merge_service_returning(
        merged_alert("a-flood"), merged_alert("a-wind", event="Wind Advisory")), clock=clock)

    assert service.collect() == 2
    assert {row.noaa_alert_id for row in WeatherAlert.query.all()} == {"a-flood", "a-wind"}


def test_alert_without_expiry_is_skipped(app, clock):
    service = IngestService(db, merge_service_returning(
        merged_alert("ok"), merged_alert("no-expiry", expires=None)), clock=clock)

    assert service.collect() == 1
    assert [row.noaa_alert_id for row in WeatherAlert.query.all()] == ["ok"]


def test_no_alerts_is_a_zero_count(app, clock):
    service = IngestService(db, merge_service_returning(), clock=clock)
    assert service.collect() == 0
    assert WeatherAlert.query.count() == 0


def test_without_database_nothing_is_fetched():
    merge_service = merge_service_returning(merged_alert())
    assert IngestService(None, merge_service).collect() == 0
    merge_service.get_merged_alerts.assert_not_called()


def test_upstream_errors_propagate(app, clock):
    merge_service = Mock()
    merge_service.get_merged_alerts.side_effect = RuntimeError("NOAA down")
    with pytest.raises(RuntimeError):
        IngestService(db, merge_service, clock=clock).collect()
