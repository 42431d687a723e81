"""Shared pytest fixtures."""

from dataclasses import dataclass
from typing import Any

import pytest

from dispatchdesk.alerts.store import AlertStore
from dispatchdesk.directory.models import Department, Station, Unit
from dispatchdesk.directory.store import (
    CitizenStore,
    DepartmentStore,
    PersonnelStore,
    StationStore,
    UnitStore,
)
from dispatchdesk.directory.tools import (
    create_citizen,
    create_department,
    create_personnel,
    create_station,
    create_unit,
)
from dispatchdesk.incidents.store import IncidentStore
from dispatchdesk.notifications.hub import hub
from dispatchdesk.referrals.store import ReferralStore

ALL_STORES = (
    AlertStore,
    CitizenStore,
    DepartmentStore,
    IncidentStore,
    PersonnelStore,
    ReferralStore,
    StationStore,
    UnitStore,
)


@pytest.fixture(autouse=True)
def _clear_memory_and_env(monkeypatch):
    """Reset in-memory stores and the hub, and ensure Cosmos env vars are unset."""
    for store in ALL_STORES:
        store._memory.clear()
    hub._connections.clear()
    monkeypatch.delenv("COSMOS_ENDPOINT", raising=False)
    monkeypatch.delenv("COSMOS_KEY", raising=False)
    monkeypatch.setattr("dispatchdesk.core.store.load_dotenv", lambda: None)
    yield
    for store in ALL_STORES:
        store._memory.clear()
    hub._connections.clear()


class RecordingSocket:
    """Stand-in for a WebSocket that records what the hub sends it."""

    def __init__(self, fail: bool = False):
        self.messages: list[dict] = []
        self.fail = fail

    async def send_json(self, data: Any, mode: str = "text") -> None:
        if self.fail:
            raise RuntimeError("socket closed")
        self.messages.append(data)

    def events(self) -> list[str]:
        return [m["event"] for m in self.messages]

    def payloads(self, event: str) -> list[Any]:
        return [m["data"] for m in self.messages if m["event"] == event]


@pytest.fixture
async def listener() -> RecordingSocket:
    """An unscoped (dashboard) socket that receives every event."""
    socket = RecordingSocket()
    await hub.connect(socket)
    return socket


@dataclass
class StationSetup:
    station: Station
    department: Department | None
    unit: Unit | None

    @property
    def id(self) -> str:
        return self.station.id


@pytest.fixture
def make_station():
    """Factory for a station with an Operations department and an active unit."""

    async def _make(
        name: str = "Central Station",
        *,
        with_operations: bool = True,
        unit_active: bool = True,
        status: str = "in commission",
        department_name: str = "Operations",
    ) -> StationSetup:
        station = await create_station(name, address=f"{name} Road", status=status)
        department = unit = None
        if with_operations:
            department = await create_department(department_name, station["id"])
            unit = await create_unit("Engine 1", department["id"], is_active=unit_active)
        return StationSetup(
            station=Station.model_validate(station),
            department=Department.model_validate(department) if department else None,
            unit=Unit.model_validate(unit) if unit else None,
        )

    return _make


@pytest.fixture
async def station(make_station) -> StationSetup:
    return await make_station("Central Station")


@pytest.fixture
async def other_station(make_station) -> StationSetup:
    return await make_station("Harbour Station")


@pytest.fixture
async def citizen() -> dict:
    return await create_citizen(
        "Ama Mensah", phone="+233 20 000 0000", email="Ama@Example.com", address="12 Ring Road"
    )


@pytest.fixture
async def personnel() -> dict:
    return await create_personnel("Kofi Boateng", phone="+233 24 111 1111", rank="Captain")


@pytest.fixture
def alert_payload():
    """Build an alert report payload for a station and reporter."""

    def _payload(station: str | dict, reporter_id: str, **overrides) -> dict:
        payload = {
            "incident_type": "fire",
            "incident_name": "Market fire",
            "location": {
                "coordinates": {"latitude": 5.6037, "longitude": -0.187},
                "location_name": "Makola Market",
                "location_url": "https://maps.example.com/?q=5.6037,-0.187",
            },
            "station": station,
            "reporter_id": reporter_id,
            "priority": "high",
            "description": "Smoke from the east wing",
            "estimated_casualties": 2,
            "estimated_damage": "moderate",
        }
        payload.update(overrides)
        return payload

    return _payload


@pytest.fixture
def connect_socket():
    """Connect a recording socket scoped to a station (or all stations)."""

    async def _connect(station_id: str | None = None) -> RecordingSocket:
        socket = RecordingSocket()
        await hub.connect(socket, station_id)
        return socket

    return _connect
