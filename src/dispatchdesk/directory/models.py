"""Pydantic models for stations, their departments and units, and reporters."""

from typing import Literal

from pydantic import Field, field_validator

from dispatchdesk.core.models import CosmosDocument

StationStatus = Literal["in commission", "out of commission"]


class Station(CosmosDocument):
    """A fire station that owns alerts and incidents.

    ``has_active_alert`` and ``has_active_incident`` are aggregate flags
    maintained by ``refresh_station_flags`` -- never set them by hand.
    """

    name: str = Field(min_length=1, max_length=200)
    address: str = Field(default="", max_length=500)
    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)
    place_id: str | None = Field(default=None, max_length=200)
    phone_number: str = Field(default="", max_length=40)
    status: StationStatus = "in commission"
    has_active_alert: bool = False
    has_active_incident: bool = False

    @field_validator("name", "address", mode="before")
    @classmethod
    def _strip(cls, v: str | None) -> str:
        return v.strip() if isinstance(v, str) else v

    @property
    def in_commission(self) -> bool:
        return self.status == "in commission"

    def status_snapshot(self, **extra) -> dict:
        """Availability summary returned when a station blocks an action."""
        snapshot = {
            "status": self.status,
            "is_active": self.in_commission,
            "has_active_alert": self.has_active_alert,
            "has_active_incident": self.has_active_incident,
        }
        snapshot.update(extra)
        return snapshot


class Department(CosmosDocument):
    """A department within a station (e.g. "Operations", "Fire Prevention")."""

    name: str = Field(min_length=1, max_length=200)
    station_id: str
    description: str = Field(default="", max_length=1000)


class Unit(CosmosDocument):
    """A crew/apparatus unit belonging to a department."""

    name: str = Field(min_length=1, max_length=100)
    department_id: str
    is_active: bool = True


class Citizen(CosmosDocument):
    """A member of the public who can report emergencies."""

    name: str = Field(min_length=1, max_length=200)
    phone: str = Field(default="", max_length=40)
    email: str | None = Field(default=None, max_length=254)
    address: str = Field(default="", max_length=500)

    @field_validator("email", mode="before")
    @classmethod
    def _normalize_email(cls, v: str | None) -> str | None:
        return v.strip().lower() if v else v


class FirePersonnel(CosmosDocument):
    """A member of fire service staff who can report emergencies."""

    name: str = Field(min_length=1, max_length=200)
    phone: str = Field(default="", max_length=40)
    rank: str = Field(default="", max_length=100)
    role: str = Field(default="", max_length=100)
    station_id: str | None = None
    department_id: str | None = None
    unit_id: str | None = None
