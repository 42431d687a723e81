"""Directory operations: stations, departments, units and reporters.

Also home to the two lookups the alert state machine depends on:

- ``find_operations_assignment`` -- which department/unit owns a new or
  accepted alert at a station
- ``resolve_station`` / ``resolve_reporter`` -- identity resolution on intake
"""

import logging

from pydantic import ValidationError

from dispatchdesk.core.config import get_org_config
from dispatchdesk.core.results import error_result, not_found, validation_error
from dispatchdesk.directory.models import Citizen, Department, FirePersonnel, Station, Unit
from dispatchdesk.directory.store import (
    CitizenStore,
    DepartmentStore,
    PersonnelStore,
    StationStore,
    UnitStore,
)

logger = logging.getLogger(__name__)


def _creation_order(doc) -> tuple[str, str]:
    return (doc.created_at.isoformat(), doc.id)


async def find_operations_assignment(station_id: str) -> tuple[Department | None, Unit | None]:
    """Pick the Operations department and one of its active units for a station.

    The department is the earliest-created one whose name contains the
    configured keyword (case-insensitive), so "Operations" and
    "Fire Operations Dept" both qualify. The unit is that department's
    earliest-created active unit. Ties break on ID so the choice is
    deterministic.

    Returns:
        ``(department, unit)``; either may be None when not configured
    """
    keyword = get_org_config().operations_keyword

    async with DepartmentStore() as departments:
        station_departments = await departments.query({"station_id": station_id})

    candidates = sorted(
        (d for d in station_departments if keyword in d.name.lower()), key=_creation_order
    )
    if not candidates:
        logger.warning(
            "No Operations department for station %s (departments: %s)",
            station_id,
            ", ".join(d.name for d in station_departments) or "none",
        )
        return None, None

    department = candidates[0]
    async with UnitStore() as units:
        active_units = await units.query({"department_id": department.id, "is_active": True})

    if not active_units:
        logger.warning(
            "No active unit in Operations department %s for station %s", department.id, station_id
        )
        return department, None

    return department, min(active_units, key=_creation_order)


async def resolve_station(station: str | dict) -> Station | dict:
    """Find the station an alert is reported to, creating it if needed.

    A string is treated as a station ID and must exist. A dict of station
    details is matched by ``place_id``, then by name; when neither
    matches, a new in-commission station is created from the details.

    Returns:
        The station, or an error dict
    """
    if isinstance(station, str):
        async with StationStore() as stations:
            found = await stations.get(station)
        if found is None:
            return not_found("Station", provided_station=station)
        return found

    place_id = station.get("place_id")
    name = station.get("name", "")

    async with StationStore() as stations:
        found = None
        if place_id:
            found = await stations.find_by_place_id(place_id)
        if found is None and name:
            found = await stations.find_by_name(name)
        if found is not None:
            return found

        try:
            new_station = Station(
                name=name,
                address=station.get("address", ""),
                latitude=station.get("latitude"),
                longitude=station.get("longitude"),
                place_id=place_id,
                phone_number=station.get("phone", ""),
            )
        except ValidationError as exc:
            result = validation_error(exc)
            result["provided_station"] = station
            return result

        created = await stations.create(new_station)

    logger.info("Registered new station %s (%s) from alert report", created.id, created.name)
    return created


async def resolve_reporter(reporter_id: str) -> Citizen | FirePersonnel | None:
    """Look a reporter up among citizens first, then fire personnel."""
    async with CitizenStore() as citizens:
        citizen = await citizens.get(reporter_id)
    if citizen is not None:
        return citizen

    async with PersonnelStore() as personnel:
        return await personnel.get(reporter_id)


def reporter_type_of(reporter: Citizen | FirePersonnel) -> str:
    return "citizen" if isinstance(reporter, Citizen) else "personnel"


# ---------------------------------------------------------------------------
# Stations
# ---------------------------------------------------------------------------


async def create_station(
    name: str,
    *,
    address: str = "",
    latitude: float | None = None,
    longitude: float | None = None,
    place_id: str | None = None,
    phone_number: str = "",
    status: str = "in commission",
) -> dict:
    """Register a station.

    Returns:
        The created station, or an error if validation fails
    """
    try:
        station = Station(
            name=name,
            address=address,
            latitude=latitude,
            longitude=longitude,
            place_id=place_id,
            phone_number=phone_number,
            status=status,
        )
    except ValidationError as exc:
        return validation_error(exc)

    async with StationStore() as stations:
        if place_id and await stations.find_by_place_id(place_id):
            return error_result("A station with this place_id already exists", 409)
        created = await stations.create(station)
    return created.model_dump(mode="json")


async def get_station(station_id: str) -> dict:
    async with StationStore() as stations:
        station = await stations.get(station_id)
    if station is None:
        return not_found("Station")
    return station.model_dump(mode="json")


async def list_stations(status: str | None = None) -> dict:
    """List stations, optionally only those in a given commission status."""
    filters = {"status": status} if status else {}
    async with StationStore() as stations:
        found = await stations.query(filters, order_by="name")
    return {"stations": [s.model_dump(mode="json") for s in found], "count": len(found)}


async def set_station_status(station_id: str, status: str) -> dict:
    """Put a station in or out of commission."""
    if status not in ("in commission", "out of commission"):
        return error_result('status must be "in commission" or "out of commission"')

    async with StationStore() as stations:
        station = await stations.get(station_id)
        if station is None:
            return not_found("Station")
        if station.status != status:
            station.status = status
            station = await stations.update(station)
            logger.info("Station %s is now %s", station_id, status)
    return station.model_dump(mode="json")


# ---------------------------------------------------------------------------
# Departments and units
# ---------------------------------------------------------------------------


async def create_department(name: str, station_id: str, *, description: str = "") -> dict:
    async with StationStore() as stations:
        if await stations.get(station_id) is None:
            return not_found("Station")
    try:
        department = Department(name=name, station_id=station_id, description=description)
    except ValidationError as exc:
        return validation_error(exc)

    async with DepartmentStore() as departments:
        created = await departments.create(department)
    return created.model_dump(mode="json")


async def list_departments(station_id: str) -> dict:
    async with DepartmentStore() as departments:
        found = await departments.query({"station_id": station_id}, order_by="created_at")
    return {"departments": [d.model_dump(mode="json") for d in found], "count": len(found)}


async def create_unit(name: str, department_id: str, *, is_active: bool = True) -> dict:
    async with DepartmentStore() as departments:
        if await departments.get(department_id) is None:
            return not_found("Department")
    try:
        unit = Unit(name=name, department_id=department_id, is_active=is_active)
    except ValidationError as exc:
        return validation_error(exc)

    async with UnitStore() as units:
        created = await units.create(unit)
    return created.model_dump(mode="json")


async def list_units(department_id: str, *, active_only: bool = False) -> dict:
    filters: dict = {"department_id": department_id}
    if active_only:
        filters["is_active"] = True
    async with UnitStore() as units:
        found = await units.query(filters, order_by="created_at")
    return {"units": [u.model_dump(mode="json") for u in found], "count": len(found)}


async def set_unit_active(unit_id: str, is_active: bool) -> dict:
    """Take a unit on or off duty."""
    async with UnitStore() as units:
        unit = await units.get(unit_id)
        if unit is None:
            return not_found("Unit")
        if unit.is_active != is_active:
            unit.is_active = is_active
            unit = await units.update(unit)
    return unit.model_dump(mode="json")


# ---------------------------------------------------------------------------
# Reporters
# ---------------------------------------------------------------------------


async def create_citizen(
    name: str, *, phone: str = "", email: str | None = None, address: str = ""
) -> dict:
    try:
        citizen = Citizen(name=name, phone=phone, email=email, address=address)
    except ValidationError as exc:
        return validation_error(exc)
    async with CitizenStore() as citizens:
        created = await citizens.create(citizen)
    return created.model_dump(mode="json")


async def create_personnel(
    name: str,
    *,
    phone: str = "",
    rank: str = "",
    role: str = "",
    station_id: str | None = None,
    department_id: str | None = None,
    unit_id: str | None = None,
) -> dict:
    try:
        person = FirePersonnel(
            name=name,
            phone=phone,
            rank=rank,
            role=role,
            station_id=station_id,
            department_id=department_id,
            unit_id=unit_id,
        )
    except ValidationError as exc:
        return validation_error(exc)
    async with PersonnelStore() as personnel:
        created = await personnel.create(person)
    return created.model_dump(mode="json")


async def get_reporter(reporter_id: str) -> dict:
    """Get a reporter by ID from either collection, tagged with its type."""
    reporter = await resolve_reporter(reporter_id)
    if reporter is None:
        return not_found("Reporter")
    return {"reporter_type": reporter_type_of(reporter), **reporter.model_dump(mode="json")}
