"""Incident provisioning and lifecycle operations.

Incidents are normally provisioned automatically when a station accepts
an alert (see ``provision_incident``). They then move forward through

    active -> dispatched -> on_scene -> resolved -> closed

Skipping steps is allowed; going backwards is not. ``referred`` is set only
by the referral workflow and cannot be entered or left through
``update_incident_status``.
"""

import logging
from statistics import mean

from dispatchdesk.alerts.models import EmergencyAlert
from dispatchdesk.alerts.store import AlertStore
from dispatchdesk.core.models import parse_datetime, utc_now
from dispatchdesk.core.results import error_result, not_found
from dispatchdesk.directory.flags import refresh_many, refresh_station_flags
from dispatchdesk.directory.store import DepartmentStore, UnitStore
from dispatchdesk.directory.tools import find_operations_assignment
from dispatchdesk.incidents.models import (
    LIFECYCLE,
    OPEN_INCIDENT_STATUSES,
    STATUS_TIMESTAMPS,
    Incident,
)
from dispatchdesk.incidents.store import IncidentStore
from dispatchdesk.incidents.turnout import generate_turnout_slip
from dispatchdesk.notifications.events import (
    emit_incident_deleted,
    emit_incident_updated,
    emit_new_incident,
)
from dispatchdesk.referrals.tools import close_pending_referrals

logger = logging.getLogger(__name__)


async def provision_incident(alert: EmergencyAlert) -> Incident | None:
    """Create the incident for a freshly accepted alert.

    Locates the station's Operations department and an active unit in it.
    If either is missing the alert stays accepted but no incident is
    created -- acceptance never fails because of provisioning.

    Returns:
        The new incident, or None if it could not be provisioned
    """
    station_id = alert.station_id
    try:
        department, unit = await find_operations_assignment(station_id)
        if department is None or unit is None:
            logger.warning(
                "Cannot create incident for alert %s: no Operations department/active unit "
                "at station %s",
                alert.id,
                station_id,
            )
            return None

        incident = Incident(
            alert_id=alert.id,
            station_id=station_id,
            department_id=department.id,
            unit_id=unit.id,
            status="active",
        )
        incident.turnout_slip = await generate_turnout_slip(
            alert, station_id=station_id, department_id=department.id, unit_id=unit.id
        )

        async with IncidentStore() as store:
            incident = await store.create(incident)
    except Exception:
        logger.exception("Error creating incident for accepted alert %s", alert.id)
        return None

    logger.info(
        "Incident %s created for alert %s (station=%s, department=%s, unit=%s)",
        incident.id,
        alert.id,
        station_id,
        department.name,
        unit.name,
    )
    await refresh_station_flags(station_id)
    await emit_new_incident(incident)
    return incident


async def create_incident(
    alert_id: str,
    department_id: str,
    unit_id: str,
    *,
    status: str = "active",
) -> dict:
    """Manually open an incident for an alert with a chosen department and unit.

    Args:
        alert_id: Alert the incident responds to
        department_id: Department on duty
        unit_id: Unit on duty (must belong to the department)
        status: Initial lifecycle status (default "active")

    Returns:
        The created incident, or an error
    """
    if status not in LIFECYCLE:
        return error_result(f"status must be one of: {', '.join(LIFECYCLE)}")

    async with AlertStore() as alerts:
        alert = await alerts.get(alert_id)
    if alert is None:
        return not_found("Emergency alert")
    if alert.status in ("rejected", "referred"):
        return error_result(f"Cannot open an incident for a {alert.status} alert")

    async with DepartmentStore() as departments:
        department = await departments.get(department_id)
    if department is None:
        return not_found("Department")
    if department.station_id != alert.station_id:
        return error_result("Department does not belong to the alert's station")

    async with UnitStore() as units:
        unit = await units.get(unit_id)
    if unit is None:
        return not_found("Unit")
    if unit.department_id != department.id:
        return error_result("Unit does not belong to the department")

    incident = Incident(
        alert_id=alert.id,
        station_id=alert.station_id,
        department_id=department.id,
        unit_id=unit.id,
        status=status,
    )
    _stamp(incident, status, utc_now())
    incident.turnout_slip = await generate_turnout_slip(
        alert, station_id=alert.station_id, department_id=department.id, unit_id=unit.id
    )

    async with IncidentStore() as store:
        incident = await store.create(incident)

    await refresh_station_flags(incident.station_id)
    await emit_new_incident(incident)
    return incident.model_dump(mode="json")


async def get_incident(incident_id: str) -> dict:
    async with IncidentStore() as store:
        incident = await store.get(incident_id)
    if incident is None:
        return not_found("Incident")
    return incident.model_dump(mode="json")


async def get_incident_by_alert(alert_id: str) -> dict:
    """Get the incident opened for an alert."""
    async with IncidentStore() as store:
        incident = await store.get_by_alert(alert_id)
    if incident is None:
        return not_found("Incident for this alert")
    return incident.model_dump(mode="json")


async def list_incidents(
    *,
    station_id: str | None = None,
    status: str | None = None,
    department_id: str | None = None,
    unit_id: str | None = None,
) -> dict:
    """List incidents, newest first.

    Args:
        station_id: Only this station's incidents
        status: Only incidents in this status
        department_id: Only incidents handled by this department
        unit_id: Only incidents handled by this unit

    Returns:
        Dict with ``incidents`` and ``count``
    """
    filters = {
        k: v
        for k, v in {
            "station_id": station_id,
            "status": status,
            "department_id": department_id,
            "unit_id": unit_id,
        }.items()
        if v
    }
    async with IncidentStore() as store:
        incidents = await store.query(filters, order_by="created_at", descending=True)
    return {"incidents": [i.model_dump(mode="json") for i in incidents], "count": len(incidents)}


async def update_incident(
    incident_id: str,
    *,
    department_id: str | None = None,
    unit_id: str | None = None,
) -> dict:
    """Reassign the department and/or unit on duty for an open incident."""
    async with IncidentStore() as store:
        incident = await store.get(incident_id)
        if incident is None:
            return not_found("Incident")
        if not incident.is_open:
            return error_result(f"Cannot reassign a {incident.status} incident", 409)

        if department_id is not None:
            async with DepartmentStore() as departments:
                department = await departments.get(department_id)
            if department is None:
                return not_found("Department")
            if department.station_id != incident.station_id:
                return error_result("Department does not belong to the incident's station")
            incident.department_id = department.id

        if unit_id is not None:
            async with UnitStore() as units:
                unit = await units.get(unit_id)
            if unit is None:
                return not_found("Unit")
            if unit.department_id != incident.department_id:
                return error_result("Unit does not belong to the department on duty")
            incident.unit_id = unit.id

        incident = await store.update(incident)

    await emit_incident_updated(incident)
    return incident.model_dump(mode="json")


def _stamp(incident: Incident, status: str, when) -> None:
    """Set the timestamp field for ``status`` if it has one and is unset."""
    field = STATUS_TIMESTAMPS.get(status)
    if field and getattr(incident, field) is None:
        setattr(incident, field, when)


def check_transition(current: str, new: str) -> str | None:
    """Validate a lifecycle move.

    Returns:
        An error message, or None if the transition is allowed
    """
    if new not in LIFECYCLE:
        return f"status must be one of: {', '.join(LIFECYCLE)}"
    if current == "referred":
        return "Incident is referred to another station; resolve the referral first"
    if current == "closed":
        return "Incident is closed"
    if LIFECYCLE.index(new) < LIFECYCLE.index(current):
        return f"Cannot move incident back from {current} to {new}"
    return None


async def update_incident_status(
    incident_id: str,
    status: str,
    *,
    timestamp: str | None = None,
) -> dict:
    """Advance an incident through its lifecycle.

    Entering a status stamps its timestamp (``dispatched_at``, ``arrived_at``,
    ``resolved_at``, ``closed_at``). Skipped steps get the same timestamp so
    response-time stats stay computable.

    Args:
        incident_id: Incident to update
        status: New status: dispatched, on_scene, resolved or closed
        timestamp: Optional ISO timestamp for the change (defaults to now)

    Returns:
        The updated incident, or an error
    """
    status = status.strip().lower()
    try:
        when = parse_datetime(timestamp) if timestamp else utc_now()
    except ValueError:
        return error_result("timestamp must be an ISO 8601 datetime")

    async with IncidentStore() as store:
        incident = await store.get(incident_id)
        if incident is None:
            return not_found("Incident")

        if incident.status == status:
            return incident.model_dump(mode="json")

        problem = check_transition(incident.status, status)
        if problem:
            return error_result(problem, 409)

        start = LIFECYCLE.index(incident.status) + 1
        for step in LIFECYCLE[start : LIFECYCLE.index(status) + 1]:
            _stamp(incident, step, when)
        incident.status = status
        incident = await store.update(incident)

    logger.info("Incident %s is now %s", incident_id, status)
    await refresh_station_flags(incident.station_id)
    await emit_incident_updated(incident)
    return incident.model_dump(mode="json")


async def delete_incident(incident_id: str) -> dict:
    async with IncidentStore() as store:
        incident = await store.get(incident_id)
        if incident is None:
            return not_found("Incident")
        await store.delete(incident_id)

    await close_pending_referrals(incident_id, "incident")
    await refresh_many(incident.station_id)
    await emit_incident_deleted(incident_id, incident.station_id)
    return {"deleted": incident_id}


def _avg(values: list[float]) -> float | None:
    return round(mean(values), 1) if values else None


async def get_incident_stats(station_id: str | None = None) -> dict:
    """Counts per status and average response/resolution times in minutes."""
    filters = {"station_id": station_id} if station_id else {}
    async with IncidentStore() as store:
        incidents = await store.query(filters)

    by_status = {status: 0 for status in (*LIFECYCLE, "referred")}
    for incident in incidents:
        by_status[incident.status] += 1

    response = [m for i in incidents if (m := i.response_minutes) is not None]
    resolution = [m for i in incidents if (m := i.resolution_minutes) is not None]

    return {
        "total_incidents": len(incidents),
        "open_incidents": sum(by_status[s] for s in OPEN_INCIDENT_STATUSES),
        "by_status": by_status,
        "avg_response_minutes": _avg(response),
        "avg_resolution_minutes": _avg(resolution),
    }
