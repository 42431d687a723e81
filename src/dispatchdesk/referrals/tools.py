"""Referral workflow: hand an alert or incident to another station.

A referral is created ``pending`` and marks its document ``referred``.
The target station then accepts (ownership moves to it) or rejects (the
document goes back to the source station as it was). Only one referral
per document can be pending at a time.
"""

import logging

from dispatchdesk.alerts.models import EmergencyAlert
from dispatchdesk.alerts.store import AlertStore
from dispatchdesk.core.models import utc_now
from dispatchdesk.core.results import error_result, not_found, page_params, pagination
from dispatchdesk.directory.flags import refresh_many
from dispatchdesk.directory.store import StationStore
from dispatchdesk.directory.tools import find_operations_assignment
from dispatchdesk.incidents.models import OPEN_INCIDENT_STATUSES, STATUS_TIMESTAMPS, Incident
from dispatchdesk.incidents.store import IncidentStore
from dispatchdesk.notifications.events import (
    emit_alert_updated,
    emit_incident_updated,
    emit_referral_created,
    emit_referral_updated,
    emit_referred_alert_received,
    emit_referred_incident_received,
)
from dispatchdesk.referrals.models import Referral
from dispatchdesk.referrals.store import ReferralStore

logger = logging.getLogger(__name__)

DATA_TYPES = ("alert", "incident")
RESPONSES = ("accepted", "rejected")

_LABELS = {"alert": "Emergency alert", "incident": "Incident"}


def _store_for(data_type: str) -> AlertStore | IncidentStore:
    return AlertStore() if data_type == "alert" else IncidentStore()


def _is_referable(doc: EmergencyAlert | Incident) -> bool:
    if isinstance(doc, EmergencyAlert):
        return doc.status == "active"
    return doc.status in OPEN_INCIDENT_STATUSES


def _clear_referral_markers(doc: EmergencyAlert | Incident) -> None:
    doc.referred = False
    doc.referred_at = None
    doc.referred_to_station_id = None
    doc.refer_reason = None


async def _emit_document_updated(doc: EmergencyAlert | Incident, *extra_station_ids: str) -> None:
    if isinstance(doc, EmergencyAlert):
        await emit_alert_updated(doc, *extra_station_ids)
    else:
        await emit_incident_updated(doc, *extra_station_ids)


async def _blocking_station_status(station_id: str) -> dict | None:
    """Why a station cannot take a referral right now, or None if it can.

    Checks the alert and incident containers directly instead of trusting
    the station's cached flags.
    """
    async with StationStore() as stations:
        station = await stations.get(station_id)

    if not station.in_commission:
        return error_result(
            "Target station is out of commission",
            400,
            station_status=station.status_snapshot(),
        )

    async with AlertStore() as alerts:
        open_alert = await alerts.first({"station_id": station_id, "status": "active"})
    if open_alert is not None:
        return error_result(
            "Target station is busy with an active alert",
            409,
            station_status=station.status_snapshot(
                has_active_alert=True, active_alert_id=open_alert.id
            ),
        )

    async with IncidentStore() as incidents:
        open_incident = await incidents.first(
            {"station_id": station_id, "status": list(OPEN_INCIDENT_STATUSES)}
        )
    if open_incident is not None:
        return error_result(
            "Target station is busy with an active incident",
            409,
            station_status=station.status_snapshot(
                has_active_incident=True, active_incident_id=open_incident.id
            ),
        )
    return None


async def create_referral(
    data_id: str,
    data_type: str,
    from_station_id: str,
    to_station_id: str,
    reason: str,
) -> dict:
    """Refer an alert or incident from one station to another.

    Args:
        data_id: ID of the alert or incident being referred
        data_type: "alert" or "incident"
        from_station_id: Station that currently owns the document
        to_station_id: Station being asked to take it over
        reason: Why the referral is made (required)

    Returns:
        Dict with the new ``referral`` and the updated ``document``,
        or an error (with ``station_status`` when the target is unavailable)
    """
    if data_type not in DATA_TYPES:
        return error_result('data_type must be "alert" or "incident"')
    reason = (reason or "").strip()
    if not reason:
        return error_result("A reason is required to refer")
    if from_station_id == to_station_id:
        return error_result("Cannot refer to the same station")

    async with StationStore() as stations:
        if await stations.get(from_station_id) is None:
            return not_found("Source station", provided_station=from_station_id)
        if await stations.get(to_station_id) is None:
            return not_found("Target station", provided_station=to_station_id)

    label = _LABELS[data_type]
    async with _store_for(data_type) as store:
        doc = await store.get(data_id)
    if doc is None:
        return not_found(label)
    if doc.station_id != from_station_id:
        return error_result(f"{label} does not belong to the referring station", 409)

    blocked = await _blocking_station_status(to_station_id)
    if blocked:
        return blocked

    async with ReferralStore() as referrals:
        pending = await referrals.get_pending_for(data_id, data_type)
    if pending is not None:
        return error_result(
            f"This {data_type} already has a pending referral", 409, referral_id=pending.id
        )

    if not _is_referable(doc):
        return error_result(f"{label} is {doc.status} and cannot be referred", 409)

    async with ReferralStore() as referrals:
        referral = await referrals.create(
            Referral(
                data_id=data_id,
                data_type=data_type,
                from_station_id=from_station_id,
                to_station_id=to_station_id,
                reason=reason,
                previous_status=doc.status,
            )
        )

    doc.status = "referred"
    doc.referred = True
    doc.referred_at = referral.referred_at
    doc.referred_to_station_id = to_station_id
    doc.refer_reason = reason
    async with _store_for(data_type) as store:
        doc = await store.update(doc)

    logger.info(
        "%s %s referred from station %s to %s (referral %s)",
        label,
        data_id,
        from_station_id,
        to_station_id,
        referral.id,
    )

    await refresh_many(from_station_id, to_station_id)
    await _emit_document_updated(doc, to_station_id)
    if isinstance(doc, EmergencyAlert):
        await emit_referred_alert_received(doc, referral)
    else:
        await emit_referred_incident_received(doc, referral)
    await emit_referral_created(referral)

    return {
        "referral": referral.model_dump(mode="json"),
        "document": doc.model_dump(mode="json"),
    }


async def _transfer(doc: EmergencyAlert | Incident, referral: Referral) -> None:
    """Move a referred document to the target station's Operations assignment."""
    department, unit = await find_operations_assignment(referral.to_station_id)
    doc.station_id = referral.to_station_id
    doc.status = "active"
    doc.department_id = department.id if department else None
    doc.unit_id = unit.id if unit else None
    _clear_referral_markers(doc)
    if isinstance(doc, Incident):
        # The target station runs its own lifecycle from active
        for field in STATUS_TIMESTAMPS.values():
            setattr(doc, field, None)


def _release(doc: EmergencyAlert | Incident, referral: Referral) -> None:
    """Give a referred document back to the source station as it was."""
    doc.status = referral.previous_status
    _clear_referral_markers(doc)


async def update_referral(
    referral_id: str,
    *,
    status: str | None = None,
    response_notes: str | None = None,
) -> dict:
    """Accept or reject a pending referral, or edit its response notes.

    Args:
        referral_id: Referral to update
        status: "accepted" or "rejected"
        response_notes: Notes from the target station

    Returns:
        The updated referral, or an error
    """
    if status is None and response_notes is None:
        return error_result("Nothing to update: provide status and/or response_notes")
    if status is not None and not isinstance(status, str):
        return error_result('status must be "accepted" or "rejected"')
    if response_notes is not None and not isinstance(response_notes, str):
        return error_result("response_notes must be a string")
    if status is not None:
        status = status.strip().lower()
        if status not in (*RESPONSES, "pending"):
            return error_result('status must be "accepted" or "rejected"')

    async with ReferralStore() as referrals:
        referral = await referrals.get(referral_id)
    if referral is None:
        return not_found("Referral")

    changing = status is not None and status != referral.status
    if changing and not referral.is_pending:
        return error_result(f"Referral has already been {referral.status}", 409)
    if changing and status == "pending":
        return error_result('status must be "accepted" or "rejected"')

    doc = None
    if changing:
        async with _store_for(referral.data_type) as store:
            doc = await store.get(referral.data_id)
            if doc is None:
                return not_found(f"Referred {referral.data_type}")
            if status == "accepted":
                await _transfer(doc, referral)
            else:
                _release(doc, referral)
            doc = await store.update(doc)
        referral.status = status
        referral.responded_at = utc_now()

    if response_notes is not None:
        referral.response_notes = response_notes.strip()

    async with ReferralStore() as referrals:
        referral = await referrals.update(referral)

    if doc is not None:
        logger.info(
            "Referral %s %s (%s %s now at station %s)",
            referral_id,
            status,
            referral.data_type,
            referral.data_id,
            doc.station_id,
        )
        await refresh_many(referral.from_station_id, referral.to_station_id)
        other = (
            referral.from_station_id
            if doc.station_id == referral.to_station_id
            else referral.to_station_id
        )
        await _emit_document_updated(doc, other)
    await emit_referral_updated(referral)

    return referral.model_dump(mode="json")


async def close_pending_referrals(data_id: str, data_type: str) -> int:
    """Reject any pending referral for a document that is being deleted.

    Returns:
        Number of referrals closed
    """
    async with ReferralStore() as referrals:
        pending = await referrals.query(
            {"data_id": data_id, "data_type": data_type, "status": "pending"}
        )
        for referral in pending:
            referral.status = "rejected"
            referral.responded_at = utc_now()
            referral.response_notes = f"{_LABELS[data_type]} was deleted"
            await referrals.update(referral)

    for referral in pending:
        logger.info("Closed referral %s: %s %s was deleted", referral.id, data_type, data_id)
        await emit_referral_updated(referral)
    return len(pending)


async def get_referral(referral_id: str) -> dict:
    async with ReferralStore() as referrals:
        referral = await referrals.get(referral_id)
    if referral is None:
        return not_found("Referral")
    return referral.model_dump(mode="json")


async def list_referrals(
    *,
    status: str | None = None,
    data_type: str | None = None,
    from_station_id: str | None = None,
    to_station_id: str | None = None,
    station_id: str | None = None,
    page: int | str | None = None,
    limit: int | str | None = None,
) -> dict:
    """List referrals, newest first, with pagination.

    Args:
        status: pending, accepted or rejected
        data_type: alert or incident
        from_station_id: Only referrals made by this station
        to_station_id: Only referrals made to this station
        station_id: Referrals this station made or received
        page: 1-based page number
        limit: Page size

    Returns:
        Dict with ``referrals`` and a ``pagination`` block
    """
    params = page_params(page, limit)
    if isinstance(params, dict):
        return params
    page_num, page_size = params

    filters = {
        k: v
        for k, v in {
            "status": status,
            "data_type": data_type,
            "from_station_id": from_station_id,
            "to_station_id": to_station_id,
        }.items()
        if v
    }
    offset = (page_num - 1) * page_size

    async with ReferralStore() as referrals:
        if station_id:
            made = await referrals.query({**filters, "from_station_id": station_id})
            received = await referrals.query({**filters, "to_station_id": station_id})
            merged = {r.id: r for r in (*made, *received)}
            ordered = sorted(merged.values(), key=lambda r: r.referred_at, reverse=True)
            total = len(ordered)
            found = ordered[offset : offset + page_size]
        else:
            total = await referrals.count(filters)
            found = await referrals.query(
                filters, order_by="referred_at", descending=True, offset=offset, limit=page_size
            )

    return {
        "referrals": [r.model_dump(mode="json") for r in found],
        "pagination": pagination(page_num, page_size, total),
    }


async def list_referrals_for_data(data_id: str, data_type: str | None = None) -> dict:
    """Referral history of one alert or incident, oldest first."""
    filters = {"data_id": data_id}
    if data_type:
        if data_type not in DATA_TYPES:
            return error_result('data_type must be "alert" or "incident"')
        filters["data_type"] = data_type

    async with ReferralStore() as referrals:
        found = await referrals.query(filters, order_by="referred_at")
    return {"referrals": [r.model_dump(mode="json") for r in found], "count": len(found)}


async def delete_referral(referral_id: str) -> dict:
    """Delete a referral; a pending one first releases its document."""
    async with ReferralStore() as referrals:
        referral = await referrals.get(referral_id)
    if referral is None:
        return not_found("Referral")

    doc = None
    if referral.is_pending:
        async with _store_for(referral.data_type) as store:
            doc = await store.get(referral.data_id)
            if doc is not None and doc.status == "referred":
                _release(doc, referral)
                doc = await store.update(doc)
            else:
                doc = None

    async with ReferralStore() as referrals:
        await referrals.delete(referral_id)

    if doc is not None:
        logger.info("Released %s %s after deleting referral", referral.data_type, doc.id)
        await refresh_many(referral.from_station_id, referral.to_station_id)
        await _emit_document_updated(doc, referral.to_station_id)
    return {"deleted": referral_id}
