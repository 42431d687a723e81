"""Async Cosmos DB operations for referral documents."""

from typing import ClassVar

from dispatchdesk.core.store import CosmosStore
from dispatchdesk.referrals.models import Referral


class ReferralStore(CosmosStore[Referral]):
    """Referrals container."""

    CONTAINER_NAME = "referrals"
    MODEL = Referral
    _memory: ClassVar[dict[str, dict]] = {}

    async def get_pending_for(self, data_id: str, data_type: str) -> Referral | None:
        """The pending referral for a document, if any."""
        return await self.first({"data_id": data_id, "data_type": data_type, "status": "pending"})
