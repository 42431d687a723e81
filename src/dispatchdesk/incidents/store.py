"""Async Cosmos DB operations for incident documents."""

from typing import ClassVar

from dispatchdesk.core.store import CosmosStore
from dispatchdesk.incidents.models import Incident


class IncidentStore(CosmosStore[Incident]):
    """Incidents container."""

    CONTAINER_NAME = "incidents"
    MODEL = Incident
    _memory: ClassVar[dict[str, dict]] = {}

    async def get_by_alert(self, alert_id: str) -> Incident | None:
        """Most recent incident created for an alert."""
        found = await self.query(
            {"alert_id": alert_id}, order_by="created_at", descending=True, limit=1
        )
        return found[0] if found else None
