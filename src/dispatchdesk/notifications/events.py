"""Typed emit helpers for each dispatch event.

Tool functions call these after a change is persisted. A notification
failure must never undo or fail the change, so every helper swallows
and logs errors from the hub.
"""

import logging

from dispatchdesk.alerts.models import EmergencyAlert
from dispatchdesk.incidents.models import Incident
from dispatchdesk.notifications.hub import hub
from dispatchdesk.referrals.models import Referral

logger = logging.getLogger(__name__)


async def _safe_emit(event: str, data: dict, station_ids: list[str] | None) -> None:
    try:
        await hub.emit(event, data, station_ids)
    except Exception:
        logger.warning("Failed to broadcast %s via WebSocket", event, exc_info=True)


async def emit_new_alert(alert: EmergencyAlert) -> None:
    await _safe_emit("new_alert", alert.model_dump(mode="json"), [alert.station_id])


async def emit_alert_updated(alert: EmergencyAlert, *extra_station_ids: str) -> None:
    """Alert changed; ``extra_station_ids`` covers a station that just lost ownership."""
    await _safe_emit(
        "alert_updated", alert.model_dump(mode="json"), [alert.station_id, *extra_station_ids]
    )


async def emit_alert_deleted(alert_id: str, station_id: str) -> None:
    await _safe_emit("alert_deleted", {"id": alert_id, "station_id": station_id}, [station_id])


async def emit_active_incident_exists(alert: EmergencyAlert, incident_id: str | None) -> None:
    """Warn a station that a new alert arrived while it is busy with an incident."""
    await _safe_emit(
        "active_incident_exists",
        {"alert": alert.summary(), "active_incident_id": incident_id},
        [alert.station_id],
    )


async def emit_new_incident(incident: Incident) -> None:
    await _safe_emit("new_incident", incident.model_dump(mode="json"), [incident.station_id])


async def emit_incident_updated(incident: Incident, *extra_station_ids: str) -> None:
    await _safe_emit(
        "incident_updated",
        incident.model_dump(mode="json"),
        [incident.station_id, *extra_station_ids],
    )


async def emit_incident_deleted(incident_id: str, station_id: str) -> None:
    await _safe_emit(
        "incident_deleted", {"id": incident_id, "station_id": station_id}, [station_id]
    )


async def emit_referral_created(referral: Referral) -> None:
    await _safe_emit(
        "referral_created",
        referral.model_dump(mode="json"),
        [referral.from_station_id, referral.to_station_id],
    )


async def emit_referral_updated(referral: Referral) -> None:
    await _safe_emit(
        "referral_updated",
        referral.model_dump(mode="json"),
        [referral.from_station_id, referral.to_station_id],
    )


async def emit_referred_alert_received(alert: EmergencyAlert, referral: Referral) -> None:
    await _safe_emit(
        "referred_alert_received",
        {"alert": alert.model_dump(mode="json"), "referral": referral.model_dump(mode="json")},
        [referral.to_station_id],
    )


async def emit_referred_incident_received(incident: Incident, referral: Referral) -> None:
    await _safe_emit(
        "referred_incident_received",
        {
            "incident": incident.model_dump(mode="json"),
            "referral": referral.model_dump(mode="json"),
        },
        [referral.to_station_id],
    )
