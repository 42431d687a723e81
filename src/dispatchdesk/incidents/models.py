"""Pydantic models for incident documents stored in Cosmos DB."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from dispatchdesk.core.models import CosmosDocument

IncidentStatus = Literal["active", "dispatched", "on_scene", "resolved", "closed", "referred"]

# Forward-only operational lifecycle; ``referred`` sits outside it
LIFECYCLE: tuple[str, ...] = ("active", "dispatched", "on_scene", "resolved", "closed")
OPEN_INCIDENT_STATUSES = ("active", "dispatched", "on_scene")

# Status -> timestamp field stamped when the incident enters it
STATUS_TIMESTAMPS = {
    "dispatched": "dispatched_at",
    "on_scene": "arrived_at",
    "resolved": "resolved_at",
    "closed": "closed_at",
}


class ReporterSnapshot(BaseModel):
    """Who reported the emergency, as known when the slip was made."""

    name: str = "Unknown"
    phone: str = "N/A"
    location: str = "N/A"
    type: str = ""


class SlipLocation(BaseModel):
    """Incident location on the slip."""

    name: str = "Unknown Location"
    latitude: float | None = None
    longitude: float | None = None
    url: str | None = None


class TurnoutSlip(BaseModel):
    """Dispatch snapshot captured when an incident is provisioned.

    Frozen at creation time -- later edits to the alert do not change it
    unless the slip is explicitly regenerated.
    """

    incident_name: str
    incident_type: str
    priority: str = "high"
    description: str = "No description provided"
    reporter: ReporterSnapshot = Field(default_factory=ReporterSnapshot)
    incident_location: SlipLocation = Field(default_factory=SlipLocation)
    estimated_casualties: int = 0
    estimated_damage: str = "minimal"
    reported_at: datetime
    dispatched_at: datetime
    alert_id: str
    station_id: str
    station_name: str = ""
    department_name: str = ""
    unit_name: str = ""


class Incident(CosmosDocument):
    """Operational record created once an alert is accepted."""

    alert_id: str
    station_id: str
    department_id: str | None = None
    unit_id: str | None = None
    status: IncidentStatus = "active"

    dispatched_at: datetime | None = None  # Unit left the station
    arrived_at: datetime | None = None  # Unit arrived on scene
    resolved_at: datetime | None = None
    closed_at: datetime | None = None

    referred: bool = False
    referred_at: datetime | None = None
    referred_to_station_id: str | None = None
    refer_reason: str | None = None

    turnout_slip: TurnoutSlip | None = None

    @property
    def is_open(self) -> bool:
        return self.status in OPEN_INCIDENT_STATUSES

    def _minutes_between(self, start: datetime | None, end: datetime | None) -> float | None:
        if start is None or end is None:
            return None
        return (end - start).total_seconds() / 60

    @property
    def response_minutes(self) -> float | None:
        """Minutes from dispatch to arrival on scene."""
        return self._minutes_between(self.dispatched_at, self.arrived_at)

    @property
    def resolution_minutes(self) -> float | None:
        """Minutes from arrival on scene to resolution."""
        return self._minutes_between(self.arrived_at, self.resolved_at)
