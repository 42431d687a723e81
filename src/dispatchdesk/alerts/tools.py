"""Emergency alert intake and triage.

An alert is created ``active`` and is triaged exactly once by its
station's assigned unit:

- ``dispatch_alert``: accepted, which provisions an incident
- ``decline_alert``: rejected, with a reason
- ``refer_alert``: referred to another station through a Referral

``accepted``, ``rejected`` and ``referred`` are final for triage. A
referral that is rejected or withdrawn puts the alert back to ``active``.
"""

import logging
from datetime import datetime, timedelta

from pydantic import ValidationError

from dispatchdesk.alerts.models import (
    FINAL_ALERT_STATUSES,
    AlertReport,
    EmergencyAlert,
)
from dispatchdesk.alerts.store import AlertStore
from dispatchdesk.core.models import parse_datetime, utc_now
from dispatchdesk.core.results import (
    error_result,
    not_found,
    page_params,
    pagination,
    validation_error,
)
from dispatchdesk.directory.flags import refresh_station_flags
from dispatchdesk.directory.store import StationStore, UnitStore
from dispatchdesk.directory.tools import (
    find_operations_assignment,
    reporter_type_of,
    resolve_reporter,
    resolve_station,
)
from dispatchdesk.incidents.models import OPEN_INCIDENT_STATUSES
from dispatchdesk.incidents.store import IncidentStore
from dispatchdesk.incidents.tools import provision_incident
from dispatchdesk.notifications.events import (
    emit_active_incident_exists,
    emit_alert_deleted,
    emit_alert_updated,
    emit_new_alert,
)
from dispatchdesk.referrals.tools import close_pending_referrals, create_referral

logger = logging.getLogger(__name__)

# Fields a caller may change through update_alert
EDITABLE_FIELDS = frozenset(
    {
        "incident_name",
        "incident_type",
        "location",
        "priority",
        "description",
        "estimated_casualties",
        "estimated_damage",
        "response_time",
        "resolved_at",
        "notes",
        "status",
    }
)


# ---------------------------------------------------------------------------
# Intake
# ---------------------------------------------------------------------------


async def create_alert(report: dict) -> dict:
    """Validate and persist a new emergency alert.

    Args:
        report: Alert payload. ``station`` is either a station ID or a dict
            of station details (name, address, latitude, longitude,
            place_id, phone) used to find or register the station.

    Returns:
        The created alert, or an error dict
    """
    try:
        payload = AlertReport.model_validate(report)
    except ValidationError as exc:
        return validation_error(exc)

    reporter = await resolve_reporter(payload.reporter_id)
    if reporter is None:
        return not_found("Reporter", reporter_id=payload.reporter_id)

    station_ref = payload.station
    station = await resolve_station(
        station_ref if isinstance(station_ref, str) else station_ref.model_dump()
    )
    if isinstance(station, dict):
        return station
    if not station.in_commission:
        return error_result(
            "Station is out of commission and cannot receive alerts",
            400,
            station_status=station.status_snapshot(),
        )

    department, unit = await find_operations_assignment(station.id)

    alert = EmergencyAlert(
        incident_type=payload.incident_type,
        incident_name=payload.incident_name,
        location=payload.location,
        station_id=station.id,
        department_id=department.id if department else None,
        unit_id=unit.id if unit else None,
        reporter_id=payload.reporter_id,
        reporter_type=reporter_type_of(reporter),
        priority=payload.priority,
        description=payload.description,
        estimated_casualties=payload.estimated_casualties,
        estimated_damage=payload.estimated_damage,
        notes=payload.notes,
    )

    async with AlertStore() as store:
        alert = await store.create(alert)

    logger.info(
        "New %s alert %s (%s) at station %s",
        alert.priority,
        alert.id,
        alert.incident_type,
        station.id,
    )

    await refresh_station_flags(station.id)
    await emit_new_alert(alert)

    async with IncidentStore() as incidents:
        busy_with = await incidents.first(
            {"station_id": station.id, "status": list(OPEN_INCIDENT_STATUSES)}
        )
    if busy_with is not None:
        await emit_active_incident_exists(alert, busy_with.id)

    return alert.model_dump(mode="json")


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


async def get_alert(alert_id: str) -> dict:
    async with AlertStore() as store:
        alert = await store.get(alert_id)
    if alert is None:
        return not_found("Emergency alert")
    return alert.model_dump(mode="json")


async def list_alerts(
    *,
    station_id: str | None = None,
    reporter_id: str | None = None,
    status: str | None = None,
    priority: str | None = None,
    incident_type: str | None = None,
    page: int | str | None = None,
    limit: int | str | None = None,
) -> dict:
    """List alerts, most recently reported first, with pagination.

    Returns:
        Dict with ``alerts`` and a ``pagination`` block
    """
    params = page_params(page, limit)
    if isinstance(params, dict):
        return params
    page_num, page_size = params

    filters = {
        k: v.strip().lower() if k in ("status", "priority", "incident_type") else v
        for k, v in {
            "station_id": station_id,
            "reporter_id": reporter_id,
            "status": status,
            "priority": priority,
            "incident_type": incident_type,
        }.items()
        if v
    }

    async with AlertStore() as store:
        total = await store.count(filters)
        alerts = await store.query(
            filters,
            order_by="reported_at",
            descending=True,
            offset=(page_num - 1) * page_size,
            limit=page_size,
        )

    return {
        "alerts": [a.model_dump(mode="json") for a in alerts],
        "pagination": pagination(page_num, page_size, total),
    }


async def list_alerts_by_station(
    station_id: str,
    *,
    status: str | None = None,
    priority: str | None = None,
    page: int | str | None = None,
    limit: int | str | None = None,
) -> dict:
    """Alerts owned by one station."""
    async with StationStore() as stations:
        if await stations.get(station_id) is None:
            return not_found("Station")
    return await list_alerts(
        station_id=station_id, status=status, priority=priority, page=page, limit=limit
    )


async def list_alerts_by_reporter(
    reporter_id: str,
    *,
    page: int | str | None = None,
    limit: int | str | None = None,
) -> dict:
    """Alerts submitted by one citizen or member of personnel."""
    return await list_alerts(reporter_id=reporter_id, page=page, limit=limit)


# ---------------------------------------------------------------------------
# Triage
# ---------------------------------------------------------------------------


async def _check_unit_action(alert: EmergencyAlert) -> dict | None:
    """Guards shared by dispatch, decline and refer.

    Returns:
        An error dict, or None when the assigned unit may act on the alert
    """
    if alert.dispatched:
        return error_result("Alert has already been dispatched", 409)
    if alert.declined:
        return error_result("Alert has already been declined", 409)
    if alert.referred:
        return error_result("Alert has already been referred", 409)
    if alert.is_final:
        return error_result(f"Alert has already been {alert.status}", 409)

    if not alert.unit_id:
        return error_result("No unit is assigned to this alert", 400)
    async with UnitStore() as units:
        unit = await units.get(alert.unit_id)
    if unit is None or not unit.is_active:
        return error_result("Assigned unit is not active", 400, unit_id=alert.unit_id)
    return None


def _mark_accepted(alert: EmergencyAlert) -> None:
    alert.status = "accepted"
    alert.dispatched = True
    alert.dispatched_at = utc_now()


def _mark_rejected(alert: EmergencyAlert, reason: str | None) -> None:
    alert.status = "rejected"
    alert.declined = True
    alert.declined_at = utc_now()
    alert.decline_reason = reason


async def _after_change(alert: EmergencyAlert) -> None:
    await refresh_station_flags(alert.station_id)
    await emit_alert_updated(alert)


async def dispatch_alert(alert_id: str) -> dict:
    """Accept an alert and provision its incident.

    Returns:
        The accepted alert plus ``incident`` (None when the station has no
        Operations department or active unit), or an error
    """
    async with AlertStore() as store:
        alert = await store.get(alert_id)
        if alert is None:
            return not_found("Emergency alert")
        problem = await _check_unit_action(alert)
        if problem:
            return problem
        _mark_accepted(alert)
        alert = await store.update(alert)

    logger.info("Alert %s dispatched by unit %s", alert_id, alert.unit_id)
    incident = await provision_incident(alert)
    await _after_change(alert)

    return {
        **alert.model_dump(mode="json"),
        "incident": incident.model_dump(mode="json") if incident else None,
    }


async def decline_alert(alert_id: str, reason: str) -> dict:
    """Reject an alert with a reason."""
    reason = (reason or "").strip()
    if not reason:
        return error_result("A reason is required to decline")

    async with AlertStore() as store:
        alert = await store.get(alert_id)
        if alert is None:
            return not_found("Emergency alert")
        problem = await _check_unit_action(alert)
        if problem:
            return problem
        _mark_rejected(alert, reason)
        alert = await store.update(alert)

    logger.info("Alert %s declined: %s", alert_id, reason)
    await _after_change(alert)
    return alert.model_dump(mode="json")


async def refer_alert(alert_id: str, station_id: str, reason: str) -> dict:
    """Refer an alert to another station (creates a pending Referral)."""
    reason = (reason or "").strip()
    if not reason:
        return error_result("A reason is required to refer")

    async with AlertStore() as store:
        alert = await store.get(alert_id)
    if alert is None:
        return not_found("Emergency alert")
    if station_id == alert.station_id:
        return error_result("Cannot refer an alert to the station that already owns it")

    problem = await _check_unit_action(alert)
    if problem:
        return problem

    async with StationStore() as stations:
        if await stations.get(station_id) is None:
            return not_found("Target station", provided_station=station_id)

    return await create_referral(alert_id, "alert", alert.station_id, station_id, reason)


async def update_alert(alert_id: str, updates: dict) -> dict:
    """Patch an alert's editable fields, including a triage status change.

    Status rules:
        - the same status again is a no-op
        - a final status (accepted, rejected, referred) cannot change
        - ``referred`` must go through ``refer_alert`` / the referral workflow
        - ``accepted`` provisions an incident, ``rejected`` records a decline
          (``decline_reason`` may accompany it)

    Returns:
        The updated alert, or an error
    """
    unknown = set(updates) - EDITABLE_FIELDS - {"decline_reason"}
    if unknown:
        return error_result(
            f"Cannot update field(s): {', '.join(sorted(unknown))}", fields=sorted(unknown)
        )
    decline_reason = updates.get("decline_reason")
    if decline_reason is not None and not isinstance(decline_reason, str):
        return error_result("decline_reason must be a string")

    async with AlertStore() as store:
        alert = await store.get(alert_id)
        if alert is None:
            return not_found("Emergency alert")

        changes = dict(updates)
        changes.pop("decline_reason", None)
        new_status = changes.pop("status", None)
        if isinstance(new_status, str):
            new_status = new_status.strip().lower()
        if new_status == alert.status:
            new_status = None

        if new_status is not None:
            if alert.is_final:
                return error_result(
                    f"Alert has already been {alert.status} and cannot be changed to {new_status}",
                    409,
                )
            if new_status == "referred":
                return error_result("Use the referral workflow to refer an alert", 400)
            if new_status not in FINAL_ALERT_STATUSES:
                return error_result("status must be one of: accepted, rejected, referred")

        try:
            merged = EmergencyAlert.model_validate({**alert.model_dump(), **changes})
        except ValidationError as exc:
            return validation_error(exc)

        if new_status == "accepted":
            _mark_accepted(merged)
        elif new_status == "rejected":
            _mark_rejected(merged, decline_reason.strip() if decline_reason else None)

        alert = await store.update(merged)

    incident = None
    if new_status == "accepted":
        incident = await provision_incident(alert)
    await _after_change(alert)

    result = alert.model_dump(mode="json")
    if new_status == "accepted":
        result["incident"] = incident.model_dump(mode="json") if incident else None
    return result


async def delete_alert(alert_id: str) -> dict:
    async with AlertStore() as store:
        alert = await store.get(alert_id)
        if alert is None:
            return not_found("Emergency alert")
        await store.delete(alert_id)

    await close_pending_referrals(alert_id, "alert")
    logger.info("Deleted alert %s", alert_id)
    await refresh_station_flags(alert.station_id)
    await emit_alert_deleted(alert_id, alert.station_id)
    return {"deleted": alert_id}


# ---------------------------------------------------------------------------
# Stats
# ---------------------------------------------------------------------------


def _date_bound(value: str, *, end: bool) -> datetime:
    """Parse a stats range bound; a bare end date covers that whole day."""
    parsed = parse_datetime(value)
    if end and len(value.strip()) == 10:
        parsed += timedelta(days=1)
    return parsed


async def get_alert_stats(
    station_id: str | None = None,
    start_date: str | None = None,
    end_date: str | None = None,
) -> dict:
    """Alert totals by status, priority and incident type.

    Args:
        station_id: Only this station's alerts
        start_date: ISO date/datetime; alerts reported at or after it
        end_date: ISO date/datetime; alerts reported before it (a bare
            date includes the whole day)

    Returns:
        Dict with ``total_alerts``, ``by_status``, ``by_priority``,
        ``by_type`` and the applied ``filters``
    """
    try:
        start = _date_bound(start_date, end=False) if start_date else None
        end = _date_bound(end_date, end=True) if end_date else None
    except ValueError:
        return error_result("start_date and end_date must be ISO 8601 dates")
    if start and end and start >= end:
        return error_result("start_date must be before end_date")

    filters = {"station_id": station_id} if station_id else {}
    async with AlertStore() as store:
        alerts = await store.query(filters)

    alerts = [
        a
        for a in alerts
        if (start is None or a.reported_at >= start) and (end is None or a.reported_at < end)
    ]

    by_status = {s: 0 for s in ("active", *sorted(FINAL_ALERT_STATUSES))}
    by_priority = {p: 0 for p in ("low", "medium", "high")}
    by_type = {t: 0 for t in ("fire", "rescue", "medical", "other")}
    for alert in alerts:
        by_status[alert.status] += 1
        by_priority[alert.priority] += 1
        by_type[alert.incident_type] += 1

    return {
        "total_alerts": len(alerts),
        "by_status": by_status,
        "by_priority": by_priority,
        "by_type": by_type,
        "filters": {"station_id": station_id, "start_date": start_date, "end_date": end_date},
    }

