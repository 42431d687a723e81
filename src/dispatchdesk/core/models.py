"""Base model for documents stored in Cosmos DB."""

import uuid
from datetime import UTC, datetime
from typing import Self

from pydantic import BaseModel, Field

from dispatchdesk.core.config import get_timezone


def utc_now() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(UTC)


class CosmosDocument(BaseModel):
    """Common fields and (de)serialization for every stored document.

    Every container is partitioned on ``/id``, so a document can always be
    point-read with its own id and moved between stations without
    changing partitions.
    """

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime | None = None

    def touch(self) -> None:
        """Stamp ``updated_at`` before a write."""
        self.updated_at = utc_now()

    def to_cosmos(self) -> dict:
        """Serialize for Cosmos DB storage."""
        return self.model_dump(mode="json")

    @classmethod
    def from_cosmos(cls, data: dict) -> Self:
        """Deserialize from Cosmos DB document (system ``_`` fields are ignored)."""
        return cls.model_validate(data)


def parse_datetime(value: str | datetime) -> datetime:
    """Parse an ISO 8601 date or datetime; naive values are in the org timezone.

    Raises:
        ValueError: If the value is not a valid ISO date/datetime
    """
    parsed = value if isinstance(value, datetime) else datetime.fromisoformat(value.strip())
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=get_timezone())
    return parsed.astimezone(UTC)
