"""Pydantic models for emergency alert documents stored in Cosmos DB."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field, field_validator

from dispatchdesk.core.models import CosmosDocument, utc_now

AlertStatus = Literal["active", "accepted", "rejected", "referred"]
IncidentType = Literal["fire", "rescue", "medical", "other"]
Priority = Literal["low", "medium", "high"]
DamageEstimate = Literal["minimal", "moderate", "severe", "extensive"]
ReporterType = Literal["citizen", "personnel"]

# Alerts in these statuses still need triage by their station
OPEN_ALERT_STATUSES = ("active",)
# Once an alert reaches one of these it cannot be re-triaged
FINAL_ALERT_STATUSES = frozenset({"accepted", "rejected", "referred"})


class Coordinates(BaseModel):
    """Latitude/longitude pair in decimal degrees."""

    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)


class AlertLocation(BaseModel):
    """Where the emergency is."""

    coordinates: Coordinates
    location_url: str | None = Field(default=None, max_length=2000)
    location_name: str | None = Field(default=None, max_length=500)


class EmergencyAlert(CosmosDocument):
    """A citizen- or personnel-submitted emergency report.

    ``status`` is the triage outcome. The ``dispatched``/``declined``/``referred``
    flags record which action the assigned unit took and guard against a
    second action on the same alert.
    """

    incident_type: IncidentType
    incident_name: str = Field(min_length=1, max_length=300)
    location: AlertLocation
    station_id: str
    department_id: str | None = None  # Operations department, when one exists
    unit_id: str | None = None  # Active Operations unit, when one exists
    reporter_id: str
    reporter_type: ReporterType
    reported_at: datetime = Field(default_factory=utc_now)
    status: AlertStatus = "active"
    priority: Priority = "high"

    description: str = Field(default="", max_length=5000)
    estimated_casualties: int = Field(default=0, ge=0)
    estimated_damage: DamageEstimate = "minimal"
    response_time: int | None = Field(default=None, ge=0)  # minutes
    resolved_at: datetime | None = None
    notes: str = Field(default="", max_length=5000)

    # Unit actions
    dispatched: bool = False
    dispatched_at: datetime | None = None
    declined: bool = False
    declined_at: datetime | None = None
    decline_reason: str | None = None
    referred: bool = False
    referred_at: datetime | None = None
    referred_to_station_id: str | None = None
    refer_reason: str | None = None

    @field_validator("incident_type", "status", "priority", "estimated_damage", mode="before")
    @classmethod
    def _normalize_choice(cls, v):
        return v.strip().lower() if isinstance(v, str) else v

    @field_validator("incident_name", "description", "notes", mode="before")
    @classmethod
    def _strip(cls, v):
        return v.strip() if isinstance(v, str) else v

    @property
    def response_time_minutes(self) -> int | None:
        """Minutes from report to resolution, if resolved."""
        if self.resolved_at is None:
            return None
        return round((self.resolved_at - self.reported_at).total_seconds() / 60)

    @property
    def is_final(self) -> bool:
        return self.status in FINAL_ALERT_STATUSES

    def summary(self) -> dict:
        """Compact representation for list views and notifications."""
        return {
            "id": self.id,
            "incident_name": self.incident_name,
            "incident_type": self.incident_type,
            "priority": self.priority,
            "status": self.status,
            "station_id": self.station_id,
            "reported_at": self.reported_at.isoformat(),
        }


class StationRef(BaseModel):
    """Station details supplied inline when reporting, used to find or create it."""

    name: str = Field(min_length=1, max_length=200)
    address: str = ""
    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)
    place_id: str | None = None
    phone: str = ""


class AlertReport(BaseModel):
    """Incoming alert payload, validated before any lookups happen."""

    incident_type: IncidentType
    incident_name: str = Field(min_length=1, max_length=300)
    location: AlertLocation
    station: str | StationRef
    reporter_id: str = Field(min_length=1)
    priority: Priority = "high"
    description: str = ""
    estimated_casualties: int = Field(default=0, ge=0)
    estimated_damage: DamageEstimate = "minimal"
    notes: str = ""

    @field_validator("incident_type", "priority", "estimated_damage", mode="before")
    @classmethod
    def _normalize_choice(cls, v):
        return v.strip().lower() if isinstance(v, str) else v

    @field_validator("incident_name", mode="before")
    @classmethod
    def _strip_name(cls, v):
        return v.strip() if isinstance(v, str) else v
