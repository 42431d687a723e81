"""Pydantic models for referral documents stored in Cosmos DB."""

from datetime import datetime
from typing import Literal

from pydantic import Field

from dispatchdesk.core.models import CosmosDocument, utc_now

DataType = Literal["alert", "incident"]
ReferralStatus = Literal["pending", "accepted", "rejected"]


class Referral(CosmosDocument):
    """One station handing an alert or incident to another station.

    ``previous_status`` remembers the referred document's status so a
    rejected referral can put it back exactly as it was.
    """

    data_id: str
    data_type: DataType
    from_station_id: str
    to_station_id: str
    reason: str = Field(default="", max_length=2000)
    status: ReferralStatus = "pending"
    referred_at: datetime = Field(default_factory=utc_now)
    responded_at: datetime | None = None
    response_notes: str | None = Field(default=None, max_length=2000)
    previous_status: str = "active"

    @property
    def is_pending(self) -> bool:
        return self.status == "pending"
