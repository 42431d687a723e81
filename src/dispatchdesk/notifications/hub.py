"""In-process WebSocket fan-out for live dispatch updates.

Clients connect to ``/ws`` and optionally pass ``station_id``:

- Station-scoped clients receive only events addressed to their station.
- Unscoped clients (dispatch dashboards) receive every event.

Every message is JSON: ``{"event": "<name>", "data": {...}}``.

Event names:
    new_alert, alert_updated, alert_deleted, active_incident_exists,
    new_incident, incident_updated, incident_deleted,
    referral_created, referral_updated,
    referred_alert_received, referred_incident_received
"""

import asyncio
import logging
from collections.abc import Iterable
from typing import Any, Protocol

logger = logging.getLogger(__name__)

# Key for connections that did not subscribe to a station
ALL_STATIONS = "*"


class JsonSocket(Protocol):
    """The part of ``starlette.websockets.WebSocket`` the hub needs."""

    async def send_json(self, data: Any, mode: str = "text") -> None: ...


class NotificationHub:
    """Tracks open sockets per station and broadcasts events to them."""

    def __init__(self) -> None:
        self._connections: dict[str, set[JsonSocket]] = {}
        self._lock = asyncio.Lock()

    async def connect(self, websocket: JsonSocket, station_id: str | None = None) -> None:
        """Register an accepted socket under a station (or all stations)."""
        key = station_id or ALL_STATIONS
        async with self._lock:
            self._connections.setdefault(key, set()).add(websocket)
        logger.info("WebSocket connected (station=%s, total=%d)", key, self.connection_count)

    async def disconnect(self, websocket: JsonSocket) -> None:
        """Forget a socket wherever it is registered."""
        async with self._lock:
            for key in list(self._connections):
                self._connections[key].discard(websocket)
                if not self._connections[key]:
                    del self._connections[key]

    @property
    def connection_count(self) -> int:
        return sum(len(sockets) for sockets in self._connections.values())

    def _targets(self, station_ids: Iterable[str] | None) -> set[JsonSocket]:
        targets = set(self._connections.get(ALL_STATIONS, ()))
        if station_ids is None:
            for sockets in self._connections.values():
                targets |= sockets
        else:
            for station_id in station_ids:
                if station_id:
                    targets |= self._connections.get(station_id, set())
        return targets

    async def emit(
        self, event: str, data: Any, station_ids: Iterable[str] | None = None
    ) -> int:
        """Send an event to the addressed stations plus unscoped listeners.

        Never raises: a failed send drops that socket and is logged.

        Args:
            event: Event name
            data: JSON-serializable payload
            station_ids: Stations to address; ``None`` broadcasts to everyone

        Returns:
            Number of sockets the event was delivered to
        """
        message = {"event": event, "data": data}
        async with self._lock:
            targets = self._targets(station_ids)

        delivered = 0
        dead: list[JsonSocket] = []
        for websocket in targets:
            try:
                await websocket.send_json(message)
                delivered += 1
            except Exception:
                logger.warning("Dropping WebSocket after failed %s send", event, exc_info=True)
                dead.append(websocket)

        for websocket in dead:
            await self.disconnect(websocket)

        logger.debug("Emitted %s to %d socket(s)", event, delivered)
        return delivered

    async def reset(self) -> None:
        """Forget every connection (tests and shutdown)."""
        async with self._lock:
            self._connections.clear()


hub = NotificationHub()
