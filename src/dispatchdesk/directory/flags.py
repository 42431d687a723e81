"""Keep the station aggregate flags in step with alerts and incidents.

``Station.has_active_alert`` and ``Station.has_active_incident`` are
denormalized for fast availability checks (referrals, dashboards). They
are recomputed from the alert and incident containers after every change
rather than incremented, so a missed update heals on the next one.
"""

import logging

from dispatchdesk.alerts.models import OPEN_ALERT_STATUSES
from dispatchdesk.alerts.store import AlertStore
from dispatchdesk.directory.models import Station
from dispatchdesk.directory.store import StationStore
from dispatchdesk.incidents.models import OPEN_INCIDENT_STATUSES
from dispatchdesk.incidents.store import IncidentStore

logger = logging.getLogger(__name__)


async def compute_station_flags(station_id: str) -> tuple[bool, bool]:
    """Return ``(has_active_alert, has_active_incident)`` from the source containers."""
    async with AlertStore() as alerts:
        open_alerts = await alerts.count(
            {"station_id": station_id, "status": list(OPEN_ALERT_STATUSES)}
        )
    async with IncidentStore() as incidents:
        open_incidents = await incidents.count(
            {"station_id": station_id, "status": list(OPEN_INCIDENT_STATUSES)}
        )
    return open_alerts > 0, open_incidents > 0


async def refresh_station_flags(station_id: str | None) -> Station | None:
    """Recompute and persist a station's aggregate flags.

    Only writes when a flag actually changed. Errors are logged and
    swallowed so a flag refresh never fails the request that triggered it.

    Returns:
        The (possibly updated) station, or None if it doesn't exist or
        the refresh failed
    """
    if not station_id:
        return None

    try:
        has_alert, has_incident = await compute_station_flags(station_id)
        async with StationStore() as stations:
            station = await stations.get(station_id)
            if station is None:
                logger.warning("Cannot refresh flags: station %s not found", station_id)
                return None
            if (station.has_active_alert, station.has_active_incident) == (has_alert, has_incident):
                return station
            station.has_active_alert = has_alert
            station.has_active_incident = has_incident
            station = await stations.update(station)
    except Exception:
        logger.exception("Failed to refresh flags for station %s", station_id)
        return None

    logger.info(
        "Station %s flags: has_active_alert=%s has_active_incident=%s",
        station_id,
        has_alert,
        has_incident,
    )
    return station


async def refresh_many(*station_ids: str | None) -> None:
    """Refresh several stations, each at most once."""
    for station_id in dict.fromkeys(s for s in station_ids if s):
        await refresh_station_flags(station_id)
