"""Tests for turnout slip building and retrieval."""

from datetime import UTC, datetime

import pytest

from dispatchdesk.alerts.models import EmergencyAlert
from dispatchdesk.alerts.tools import create_alert, dispatch_alert, update_alert
from dispatchdesk.directory.models import Citizen, FirePersonnel
from dispatchdesk.incidents.turnout import (
    build_turnout_slip,
    get_turnout_slip,
    list_turnout_slips,
    regenerate_turnout_slip,
)


def _alert(**overrides) -> EmergencyAlert:
    defaults = {
        "incident_type": "rescue",
        "incident_name": "Flooded road",
        "location": {"coordinates": {"latitude": 5.55, "longitude": -0.2}},
        "station_id": "s1",
        "reporter_id": "r1",
        "reporter_type": "citizen",
        "reported_at": datetime(2026, 3, 1, 8, 0, tzinfo=UTC),
    }
    defaults.update(overrides)
    return EmergencyAlert(**defaults)


class TestBuildTurnoutSlip:
    def test_fallbacks_without_lookups(self):
        slip = build_turnout_slip(_alert())

        assert slip.reporter.name == "Unknown"
        assert slip.reporter.phone == "N/A"
        assert slip.reporter.type == "citizen"
        assert slip.description == "No description provided"
        assert slip.incident_location.name == "Unknown Location"
        assert slip.incident_location.latitude == 5.55
        assert slip.station_name == ""
        assert slip.dispatched_at is not None

    def test_citizen_snapshot(self):
        citizen = Citizen(name="Ama", phone="020", address="Ring Road")
        slip = build_turnout_slip(_alert(), reporter=citizen)
        assert (slip.reporter.name, slip.reporter.phone, slip.reporter.location) == (
            "Ama",
            "020",
            "Ring Road",
        )

    def test_citizen_without_contact_details(self):
        slip = build_turnout_slip(_alert(), reporter=Citizen(name="Ama"))
        assert slip.reporter.phone == "N/A"
        assert slip.reporter.location == "N/A"

    def test_personnel_snapshot(self):
        person = FirePersonnel(name="Kofi", phone="024")
        slip = build_turnout_slip(_alert(reporter_type="personnel"), reporter=person)
        assert slip.reporter.location == "Fire Personnel"
        assert slip.reporter.type == "personnel"

    def test_dispatched_at_prefers_explicit_then_alert(self):
        explicit = datetime(2026, 3, 1, 9, 0, tzinfo=UTC)
        dispatched = datetime(2026, 3, 1, 8, 30, tzinfo=UTC)
        alert = _alert(dispatched_at=dispatched)
        assert build_turnout_slip(alert, dispatched_at=explicit).dispatched_at == explicit
        assert build_turnout_slip(alert).dispatched_at == dispatched


@pytest.fixture
async def dispatched(station, citizen, alert_payload) -> dict:
    alert = await create_alert(alert_payload(station.id, citizen["id"]))
    return await dispatch_alert(alert["id"])


class TestStoredSlips:
    async def test_slip_attached_on_dispatch(self, station, dispatched):
        slip = await get_turnout_slip(dispatched["incident"]["id"])

        assert slip["incident_id"] == dispatched["incident"]["id"]
        assert slip["alert_id"] == dispatched["id"]
        assert slip["reporter"]["name"] == "Ama Mensah"
        assert slip["reporter"]["location"] == "12 Ring Road"
        assert slip["station_name"] == "Central Station"
        assert slip["department_name"] == "Operations"
        assert slip["unit_name"] == "Engine 1"
        assert slip["estimated_casualties"] == 2
        assert slip["incident_location"]["name"] == "Makola Market"

    async def test_regenerate_picks_up_alert_edits(self, dispatched):
        incident_id = dispatched["incident"]["id"]
        await update_alert(dispatched["id"], {"description": "Roof collapsed"})

        assert (await get_turnout_slip(incident_id))["description"] == "Smoke from the east wing"
        regenerated = await regenerate_turnout_slip(incident_id)
        assert regenerated["description"] == "Roof collapsed"
        assert (await get_turnout_slip(incident_id))["description"] == "Roof collapsed"

    async def test_list(self, station, other_station, dispatched):
        assert (await list_turnout_slips())["count"] == 1
        assert (await list_turnout_slips(station.id))["count"] == 1
        assert (await list_turnout_slips(other_station.id))["count"] == 0
        assert (await list_turnout_slips())["turnout_slips"][0]["incident_status"] == "active"

    async def test_missing_incident(self):
        assert (await get_turnout_slip("missing"))["status_code"] == 404
        assert (await regenerate_turnout_slip("missing"))["status_code"] == 404
