"""Turnout slips: the dispatch snapshot attached to each incident.

The slip captures who reported what, where, and which station, department
and unit turned out, at the moment the incident was provisioned.
"""

import logging
from datetime import datetime

from dispatchdesk.alerts.models import EmergencyAlert
from dispatchdesk.alerts.store import AlertStore
from dispatchdesk.core.models import utc_now
from dispatchdesk.core.results import not_found
from dispatchdesk.directory.models import Citizen, Department, FirePersonnel, Station, Unit
from dispatchdesk.directory.store import DepartmentStore, StationStore, UnitStore
from dispatchdesk.directory.tools import resolve_reporter
from dispatchdesk.incidents.models import ReporterSnapshot, SlipLocation, TurnoutSlip
from dispatchdesk.incidents.store import IncidentStore

logger = logging.getLogger(__name__)


def _reporter_snapshot(
    reporter_type: str, reporter: Citizen | FirePersonnel | None
) -> ReporterSnapshot:
    if isinstance(reporter, Citizen):
        return ReporterSnapshot(
            name=reporter.name or "Unknown User",
            phone=reporter.phone or "N/A",
            location=reporter.address or "N/A",
            type=reporter_type,
        )
    if isinstance(reporter, FirePersonnel):
        return ReporterSnapshot(
            name=reporter.name or "Unknown Personnel",
            phone=reporter.phone or "N/A",
            location="Fire Personnel",
            type=reporter_type,
        )
    return ReporterSnapshot(type=reporter_type)


def build_turnout_slip(
    alert: EmergencyAlert,
    *,
    reporter: Citizen | FirePersonnel | None = None,
    station: Station | None = None,
    department: Department | None = None,
    unit: Unit | None = None,
    dispatched_at: datetime | None = None,
) -> TurnoutSlip:
    """Assemble a turnout slip from an alert and the resources turning out."""
    location = alert.location
    return TurnoutSlip(
        incident_name=alert.incident_name,
        incident_type=alert.incident_type,
        priority=alert.priority,
        description=alert.description or "No description provided",
        reporter=_reporter_snapshot(alert.reporter_type, reporter),
        incident_location=SlipLocation(
            name=location.location_name or "Unknown Location",
            latitude=location.coordinates.latitude,
            longitude=location.coordinates.longitude,
            url=location.location_url,
        ),
        estimated_casualties=alert.estimated_casualties,
        estimated_damage=alert.estimated_damage,
        reported_at=alert.reported_at,
        dispatched_at=dispatched_at or alert.dispatched_at or utc_now(),
        alert_id=alert.id,
        station_id=alert.station_id,
        station_name=station.name if station else "",
        department_name=department.name if department else "",
        unit_name=unit.name if unit else "",
    )


async def generate_turnout_slip(
    alert: EmergencyAlert,
    *,
    station_id: str,
    department_id: str | None,
    unit_id: str | None,
) -> TurnoutSlip:
    """Look up the reporter and resources, then build the slip."""
    reporter = await resolve_reporter(alert.reporter_id)
    async with StationStore() as stations:
        station = await stations.get(station_id)
    department = None
    if department_id:
        async with DepartmentStore() as departments:
            department = await departments.get(department_id)
    unit = None
    if unit_id:
        async with UnitStore() as units:
            unit = await units.get(unit_id)

    slip = build_turnout_slip(
        alert, reporter=reporter, station=station, department=department, unit=unit
    )
    # The incident's station wins over the alert's (they differ after a referral)
    slip.station_id = station_id
    return slip


async def get_turnout_slip(incident_id: str) -> dict:
    """Get the turnout slip stored on an incident."""
    async with IncidentStore() as store:
        incident = await store.get(incident_id)

    if incident is None:
        return not_found("Incident")
    if incident.turnout_slip is None:
        return not_found("Turnout slip for this incident")

    return {"incident_id": incident.id, **incident.turnout_slip.model_dump(mode="json")}


async def regenerate_turnout_slip(incident_id: str) -> dict:
    """Rebuild an incident's turnout slip from the current alert data."""
    async with IncidentStore() as store:
        incident = await store.get(incident_id)
        if incident is None:
            return not_found("Incident")

        async with AlertStore() as alerts:
            alert = await alerts.get(incident.alert_id)
        if alert is None:
            return not_found("Associated emergency alert")

        incident.turnout_slip = await generate_turnout_slip(
            alert,
            station_id=incident.station_id,
            department_id=incident.department_id,
            unit_id=incident.unit_id,
        )
        incident = await store.update(incident)

    logger.info("Regenerated turnout slip for incident %s", incident_id)
    return {"incident_id": incident.id, **incident.turnout_slip.model_dump(mode="json")}


async def list_turnout_slips(station_id: str | None = None) -> dict:
    """List turnout slips, newest first, optionally for one station."""
    filters = {"station_id": station_id} if station_id else {}
    async with IncidentStore() as store:
        incidents = await store.query(filters, order_by="created_at", descending=True)

    slips = [
        {"incident_id": i.id, "incident_status": i.status, **i.turnout_slip.model_dump(mode="json")}
        for i in incidents
        if i.turnout_slip is not None
    ]
    return {"turnout_slips": slips, "count": len(slips)}
