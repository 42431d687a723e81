"""Tests for document models, result helpers and configuration."""

import json
from datetime import UTC, datetime, timedelta
from unittest.mock import patch
from zoneinfo import ZoneInfo

import pytest
from pydantic import ValidationError

from dispatchdesk.alerts.models import AlertReport, EmergencyAlert
from dispatchdesk.core.config import get_cosmos_database, load_org_config
from dispatchdesk.core.models import parse_datetime
from dispatchdesk.core.results import (
    error_result,
    is_error,
    not_found,
    page_params,
    pagination,
    validation_error,
)
from dispatchdesk.directory.models import Citizen, Station
from dispatchdesk.incidents.models import Incident


def _alert(**overrides) -> EmergencyAlert:
    defaults = {
        "incident_type": "fire",
        "incident_name": "Warehouse fire",
        "location": {"coordinates": {"latitude": 5.6, "longitude": -0.18}},
        "station_id": "s1",
        "reporter_id": "c1",
        "reporter_type": "citizen",
    }
    defaults.update(overrides)
    return EmergencyAlert(**defaults)


class TestEmergencyAlert:
    def test_defaults(self):
        alert = _alert()
        assert alert.status == "active"
        assert alert.priority == "high"
        assert alert.estimated_damage == "minimal"
        assert not alert.is_final

    def test_choices_are_normalized(self):
        alert = _alert(incident_type=" Medical ", priority="LOW", incident_name="  Collapse ")
        assert alert.incident_type == "medical"
        assert alert.priority == "low"
        assert alert.incident_name == "Collapse"

    @pytest.mark.parametrize("status", ["accepted", "rejected", "referred"])
    def test_final_statuses(self, status):
        assert _alert(status=status).is_final

    def test_rejects_out_of_range_coordinates(self):
        with pytest.raises(ValidationError):
            _alert(location={"coordinates": {"latitude": 91, "longitude": 0}})

    def test_rejects_negative_casualties(self):
        with pytest.raises(ValidationError):
            _alert(estimated_casualties=-1)

    def test_response_time_minutes(self):
        reported = datetime(2026, 3, 1, 10, 0, tzinfo=UTC)
        alert = _alert(reported_at=reported, resolved_at=reported + timedelta(minutes=42))
        assert alert.response_time_minutes == 42
        assert _alert().response_time_minutes is None

    def test_cosmos_round_trip_ignores_system_fields(self):
        alert = _alert()
        data = alert.to_cosmos() | {"_rid": "abc", "_etag": "xyz"}
        assert EmergencyAlert.from_cosmos(data).id == alert.id


class TestAlertReport:
    def test_station_may_be_id_or_details(self):
        payload = {
            "incident_type": "rescue",
            "incident_name": "Flood",
            "location": {"coordinates": {"latitude": 0, "longitude": 0}},
            "station": "station-1",
            "reporter_id": "c1",
        }
        assert AlertReport.model_validate(payload).station == "station-1"

        payload["station"] = {"name": "Tema Station", "place_id": "pl-1"}
        parsed = AlertReport.model_validate(payload)
        assert parsed.station.name == "Tema Station"
        assert parsed.station.place_id == "pl-1"

    def test_unknown_incident_type(self):
        with pytest.raises(ValidationError):
            AlertReport.model_validate(
                {
                    "incident_type": "earthquake",
                    "incident_name": "Shake",
                    "location": {"coordinates": {"latitude": 0, "longitude": 0}},
                    "station": "s1",
                    "reporter_id": "c1",
                }
            )


class TestIncidentTimes:
    def test_response_and_resolution_minutes(self):
        t0 = datetime(2026, 3, 1, 10, 0, tzinfo=UTC)
        incident = Incident(
            alert_id="a1",
            station_id="s1",
            dispatched_at=t0,
            arrived_at=t0 + timedelta(minutes=8),
            resolved_at=t0 + timedelta(minutes=68),
        )
        assert incident.response_minutes == 8
        assert incident.resolution_minutes == 60

    def test_missing_times(self):
        incident = Incident(alert_id="a1", station_id="s1")
        assert incident.response_minutes is None
        assert incident.resolution_minutes is None
        assert incident.is_open


class TestDirectoryModels:
    def test_station_snapshot(self):
        station = Station(name="Central", status="out of commission")
        snapshot = station.status_snapshot(active_alert_id="a1")
        assert snapshot == {
            "status": "out of commission",
            "is_active": False,
            "has_active_alert": False,
            "has_active_incident": False,
            "active_alert_id": "a1",
        }

    def test_citizen_email_lowercased(self):
        assert Citizen(name="Ama", email=" Ama@Example.COM ").email == "ama@example.com"


class TestParseDatetime:
    def test_aware_value_converted_to_utc(self):
        parsed = parse_datetime("2026-03-01T12:00:00+02:00")
        assert parsed == datetime(2026, 3, 1, 10, 0, tzinfo=UTC)

    def test_naive_value_read_in_org_timezone(self):
        with patch(
            "dispatchdesk.core.models.get_timezone", return_value=ZoneInfo("America/New_York")
        ):
            parsed = parse_datetime("2026-01-15T09:00:00")
        assert parsed == datetime(2026, 1, 15, 14, 0, tzinfo=UTC)

    def test_invalid(self):
        with pytest.raises(ValueError):
            parse_datetime("yesterday")


class TestResults:
    def test_error_result_drops_empty_context(self):
        result = error_result("Bad", 409, station_status=None, referral_id="r1")
        assert result == {"error": "Bad", "status_code": 409, "referral_id": "r1"}
        assert is_error(result)

    def test_not_found(self):
        assert not_found("Station") == {"error": "Station not found", "status_code": 404}

    def test_page_params_defaults_and_cap(self):
        assert page_params(None, None) == (1, 10)
        assert page_params("2", "500") == (2, 100)

    @pytest.mark.parametrize("page,limit", [("x", 10), (0, 10), (1, -5)])
    def test_page_params_invalid(self, page, limit):
        assert is_error(page_params(page, limit))

    def test_pagination(self):
        assert pagination(2, 10, 25) == {"current": 2, "pages": 3, "total": 25}
        assert pagination(1, 10, 0)["pages"] == 0

    def test_validation_error_lists_messages(self):
        with pytest.raises(ValidationError) as exc_info:
            Station(name="")
        result = validation_error(exc_info.value)
        assert result["status_code"] == 400
        assert result["errors"][0].startswith("name:")


class TestConfig:
    def test_override_file(self, tmp_path, monkeypatch):
        config_file = tmp_path / "org.json"
        config_file.write_text(
            json.dumps(
                {
                    "company_name": "Test Fire Service",
                    "cosmos_database": "testdb",
                    "operations_keyword": "OPS",
                }
            )
        )
        monkeypatch.setenv("DISPATCHDESK_CONFIG", str(config_file))
        monkeypatch.setattr("dispatchdesk.core.config.load_dotenv", lambda: None)

        config = load_org_config()

        assert config.company_name == "Test Fire Service"
        assert config.operations_keyword == "ops"
        assert config.timezone == "UTC"
        assert config.default_page_size == 10

    def test_missing_override_file(self, tmp_path, monkeypatch):
        monkeypatch.setenv("DISPATCHDESK_CONFIG", str(tmp_path / "nope.json"))
        monkeypatch.setattr("dispatchdesk.core.config.load_dotenv", lambda: None)
        with pytest.raises(FileNotFoundError):
            load_org_config()

    def test_cosmos_database_env_wins(self, monkeypatch):
        monkeypatch.setenv("COSMOS_DATABASE", "from-env")
        assert get_cosmos_database() == "from-env"

    def test_cosmos_database_from_config(self, monkeypatch):
        monkeypatch.delenv("COSMOS_DATABASE", raising=False)
        assert get_cosmos_database() == "dispatchdesk"
