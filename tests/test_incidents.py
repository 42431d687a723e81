"""Tests for incident provisioning, lifecycle and stats."""

from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, patch

import pytest

from dispatchdesk.alerts.models import EmergencyAlert
from dispatchdesk.alerts.tools import create_alert, dispatch_alert, get_alert, update_alert
from dispatchdesk.directory.tools import create_unit, get_station
from dispatchdesk.incidents.models import Incident
from dispatchdesk.incidents.store import IncidentStore
from dispatchdesk.incidents.tools import (
    check_transition,
    create_incident,
    delete_incident,
    get_incident,
    get_incident_by_alert,
    get_incident_stats,
    list_incidents,
    provision_incident,
    update_incident,
    update_incident_status,
)


@pytest.fixture
async def alert(station, citizen, alert_payload) -> dict:
    return await create_alert(alert_payload(station.id, citizen["id"]))


@pytest.fixture
async def incident(alert) -> dict:
    return (await dispatch_alert(alert["id"]))["incident"]


class TestProvisioning:
    async def test_no_operations_department_keeps_acceptance(
        self, make_station, citizen, alert_payload, caplog
    ):
        setup = await make_station("Rural", with_operations=False)
        created = await create_alert(alert_payload(setup.id, citizen["id"]))

        result = await update_alert(created["id"], {"status": "accepted"})

        assert result["status"] == "accepted"
        assert result["incident"] is None
        assert "Cannot create incident" in caplog.text
        assert (await get_station(setup.id))["has_active_incident"] is False

    async def test_store_failure_returns_none(self, alert):
        doc = EmergencyAlert.model_validate(await get_alert(alert["id"]))
        with patch.object(IncidentStore, "create", AsyncMock(side_effect=RuntimeError("boom"))):
            assert await provision_incident(doc) is None

    async def test_lookup_by_alert(self, alert, incident):
        found = await get_incident_by_alert(alert["id"])
        assert found["id"] == incident["id"]
        assert (await get_incident_by_alert("other"))["status_code"] == 404


class TestLifecycle:
    async def test_forward_steps_stamp_timestamps(self, station, incident, listener):
        dispatched = await update_incident_status(incident["id"], "dispatched")
        assert dispatched["dispatched_at"] is not None
        assert dispatched["arrived_at"] is None

        on_scene = await update_incident_status(incident["id"], "on_scene")
        assert on_scene["arrived_at"] is not None

        resolved = await update_incident_status(incident["id"], "resolved")
        assert resolved["status"] == "resolved"
        assert (await get_station(station.id))["has_active_incident"] is False
        assert listener.events() == ["incident_updated"] * 3

    async def test_skipping_steps_stamps_skipped_ones(self, incident):
        result = await update_incident_status(
            incident["id"], "resolved", timestamp="2026-03-01T10:00:00Z"
        )
        assert result["status"] == "resolved"
        assert result["dispatched_at"] == result["arrived_at"] == result["resolved_at"]
        assert result["resolved_at"].startswith("2026-03-01T10:00:00")

    async def test_cannot_go_back(self, incident):
        await update_incident_status(incident["id"], "on_scene")
        result = await update_incident_status(incident["id"], "dispatched")
        assert result["status_code"] == 409
        assert "back" in result["error"]

    async def test_closed_is_terminal(self, incident):
        await update_incident_status(incident["id"], "closed")
        result = await update_incident_status(incident["id"], "resolved")
        assert result["error"] == "Incident is closed"

    async def test_same_status_is_noop(self, incident, listener):
        result = await update_incident_status(incident["id"], " ACTIVE ")
        assert result["status"] == "active"
        assert listener.events() == []

    async def test_referred_not_settable(self, incident):
        result = await update_incident_status(incident["id"], "referred")
        assert result["status_code"] == 409

    async def test_invalid_timestamp(self, incident):
        result = await update_incident_status(incident["id"], "dispatched", timestamp="noon")
        assert result["status_code"] == 400

    async def test_unknown_incident(self):
        assert (await update_incident_status("missing", "closed"))["status_code"] == 404

    @pytest.mark.parametrize(
        "current,new,allowed",
        [
            ("active", "on_scene", True),
            ("dispatched", "dispatched", True),
            ("resolved", "closed", True),
            ("on_scene", "active", False),
            ("closed", "closed", False),
            ("referred", "active", False),
            ("active", "bogus", False),
        ],
    )
    def test_check_transition(self, current, new, allowed):
        assert (check_transition(current, new) is None) is allowed


class TestManualIncident:
    async def test_create(self, station, alert, listener):
        result = await create_incident(
            alert["id"], station.department.id, station.unit.id, status="dispatched"
        )
        assert result["status"] == "dispatched"
        assert result["dispatched_at"] is not None
        assert result["turnout_slip"]["station_name"] == "Central Station"
        assert listener.events() == ["new_incident"]

    async def test_unit_must_belong_to_department(self, station, other_station, alert):
        result = await create_incident(alert["id"], station.department.id, other_station.unit.id)
        assert result["status_code"] == 400

    async def test_department_must_belong_to_station(self, other_station, alert):
        result = await create_incident(
            alert["id"], other_station.department.id, other_station.unit.id
        )
        assert result["error"] == "Department does not belong to the alert's station"

    async def test_missing_references(self, station, alert):
        department_id, unit_id = station.department.id, station.unit.id
        no_alert = await create_incident("x", department_id, unit_id)
        no_department = await create_incident(alert["id"], "x", unit_id)
        no_unit = await create_incident(alert["id"], department_id, "x")
        assert no_alert["error"] == "Emergency alert not found"
        assert no_department["error"] == "Department not found"
        assert no_unit["error"] == "Unit not found"

    async def test_invalid_status(self, station, alert):
        result = await create_incident(
            alert["id"], station.department.id, station.unit.id, status="referred"
        )
        assert result["status_code"] == 400


class TestUpdateIncident:
    async def test_reassign_unit(self, station, incident):
        spare = await create_unit("Engine 2", station.department.id)
        result = await update_incident(incident["id"], unit_id=spare["id"])
        assert result["unit_id"] == spare["id"]

    async def test_unit_outside_department(self, other_station, incident):
        result = await update_incident(incident["id"], unit_id=other_station.unit.id)
        assert result["status_code"] == 400

    async def test_closed_incident_cannot_be_reassigned(self, station, incident):
        await update_incident_status(incident["id"], "closed")
        result = await update_incident(incident["id"], unit_id=station.unit.id)
        assert result["status_code"] == 409


class TestReadAndDelete:
    async def test_get(self, incident):
        assert (await get_incident(incident["id"]))["alert_id"] == incident["alert_id"]
        assert (await get_incident("missing"))["status_code"] == 404

    async def test_list_filters(self, station, other_station, incident):
        assert (await list_incidents(station_id=station.id))["count"] == 1
        assert (await list_incidents(station_id=other_station.id))["count"] == 0
        assert (await list_incidents(status="active", unit_id=station.unit.id))["count"] == 1

    async def test_delete_clears_flag(self, station, incident, listener):
        result = await delete_incident(incident["id"])
        assert result == {"deleted": incident["id"]}
        assert (await get_station(station.id))["has_active_incident"] is False
        assert listener.events() == ["incident_deleted"]


class TestIncidentStats:
    async def test_averages(self, station):
        t0 = datetime(2026, 3, 1, 10, 0, tzinfo=UTC)
        async with IncidentStore() as store:
            for response, resolution in [(6, 30), (10, 50)]:
                await store.create(
                    Incident(
                        alert_id="a",
                        station_id=station.id,
                        status="resolved",
                        dispatched_at=t0,
                        arrived_at=t0 + timedelta(minutes=response),
                        resolved_at=t0 + timedelta(minutes=response + resolution),
                    )
                )
            await store.create(Incident(alert_id="b", station_id=station.id, status="active"))

        stats = await get_incident_stats(station.id)

        assert stats["total_incidents"] == 3
        assert stats["open_incidents"] == 1
        assert stats["by_status"]["resolved"] == 2
        assert stats["avg_response_minutes"] == 8.0
        assert stats["avg_resolution_minutes"] == 40.0

    async def test_empty(self):
        stats = await get_incident_stats()
        assert stats["total_incidents"] == 0
        assert stats["avg_response_minutes"] is None
