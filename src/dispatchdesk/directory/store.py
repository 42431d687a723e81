"""Async Cosmos DB stores for directory documents."""

from typing import ClassVar

from dispatchdesk.core.store import CosmosStore
from dispatchdesk.directory.models import Citizen, Department, FirePersonnel, Station, Unit


class StationStore(CosmosStore[Station]):
    """Stations container."""

    CONTAINER_NAME = "stations"
    MODEL = Station
    _memory: ClassVar[dict[str, dict]] = {}

    async def find_by_place_id(self, place_id: str) -> Station | None:
        """Find a station by its maps place ID."""
        return await self.first({"place_id": place_id})

    async def find_by_name(self, name: str) -> Station | None:
        """Find a station by name, ignoring case and surrounding whitespace."""
        wanted = name.strip().lower()
        if not wanted:
            return None

        if self._in_memory:
            for data in self._memory.values():
                if str(data.get("name", "")).strip().lower() == wanted:
                    return Station.from_cosmos(data)
            return None

        query = "SELECT * FROM c WHERE LOWER(TRIM(c.name)) = @name"
        async for item in self._container.query_items(
            query=query,
            parameters=[{"name": "@name", "value": wanted}],
            max_item_count=1,
        ):
            return Station.from_cosmos(item)
        return None


class DepartmentStore(CosmosStore[Department]):
    """Departments container."""

    CONTAINER_NAME = "departments"
    MODEL = Department
    _memory: ClassVar[dict[str, dict]] = {}


class UnitStore(CosmosStore[Unit]):
    """Units container."""

    CONTAINER_NAME = "units"
    MODEL = Unit
    _memory: ClassVar[dict[str, dict]] = {}


class CitizenStore(CosmosStore[Citizen]):
    """Citizen reporters container."""

    CONTAINER_NAME = "citizens"
    MODEL = Citizen
    _memory: ClassVar[dict[str, dict]] = {}


class PersonnelStore(CosmosStore[FirePersonnel]):
    """Fire personnel container."""

    CONTAINER_NAME = "fire-personnel"
    MODEL = FirePersonnel
    _memory: ClassVar[dict[str, dict]] = {}
