"""Async Cosmos DB operations for emergency alert documents."""

from typing import ClassVar

from dispatchdesk.alerts.models import EmergencyAlert
from dispatchdesk.core.store import CosmosStore


class AlertStore(CosmosStore[EmergencyAlert]):
    """Emergency alerts container.

    Usage::

        async with AlertStore() as store:
            alerts = await store.query({"station_id": sid}, order_by="reported_at", descending=True)
    """

    CONTAINER_NAME = "emergency-alerts"
    MODEL = EmergencyAlert
    _memory: ClassVar[dict[str, dict]] = {}
