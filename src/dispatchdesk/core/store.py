"""Async Cosmos DB store shared by every document container.

Each container gets a small subclass naming its container and model::

    class AlertStore(CosmosStore[EmergencyAlert]):
        CONTAINER_NAME = "emergency-alerts"
        MODEL = EmergencyAlert
        _memory: ClassVar[dict[str, dict]] = {}

When ``COSMOS_ENDPOINT`` is not set, falls back to an in-memory store
for local development and testing.
"""

import logging
import os
from collections.abc import Iterable
from typing import Any, ClassVar, Generic, Self, TypeVar

from dotenv import load_dotenv

from dispatchdesk.core.config import get_cosmos_database
from dispatchdesk.core.models import CosmosDocument

logger = logging.getLogger(__name__)

DocT = TypeVar("DocT", bound=CosmosDocument)


def _matches(data: dict, filters: dict[str, Any]) -> bool:
    """Equality / membership match used by the in-memory backend."""
    for field, expected in filters.items():
        value = data.get(field)
        if isinstance(expected, list | tuple | set | frozenset):
            if value not in expected:
                return False
        elif value != expected:
            return False
    return True


def _sort_key(field: str):
    return lambda data: (data.get(field) is None, str(data.get(field) or ""))


def build_where(filters: dict[str, Any]) -> tuple[str, list[dict]]:
    """Build a Cosmos SQL WHERE clause and parameters from equality filters.

    Sequence values become ``ARRAY_CONTAINS`` membership tests and ``None``
    matches missing or null fields.
    """
    conditions = []
    parameters: list[dict] = []
    for i, (field, expected) in enumerate(filters.items()):
        name = f"@p{i}"
        if expected is None:
            conditions.append(f"(NOT IS_DEFINED(c.{field}) OR IS_NULL(c.{field}))")
            continue
        if isinstance(expected, list | tuple | set | frozenset):
            conditions.append(f"ARRAY_CONTAINS({name}, c.{field})")
            parameters.append({"name": name, "value": list(expected)})
        else:
            conditions.append(f"c.{field} = {name}")
            parameters.append({"name": name, "value": expected})

    where_clause = f" WHERE {' AND '.join(conditions)}" if conditions else ""
    return where_clause, parameters


class CosmosStore(Generic[DocT]):
    """Async CRUD operations for one Cosmos DB container.

    Falls back to in-memory storage when Cosmos DB is not configured,
    so the server works out of the box without Azure infrastructure.

    Usage::

        async with AlertStore() as store:
            alert = await store.create(doc)
            open_alerts = await store.query({"station_id": sid, "status": "active"})
    """

    CONTAINER_NAME: ClassVar[str] = ""
    MODEL: ClassVar[type[CosmosDocument]] = CosmosDocument

    # Subclasses declare their own dict so containers never share rows
    _memory: ClassVar[dict[str, dict]] = {}

    def __init__(self) -> None:
        """Initialize store. Call ``__aenter__`` to connect."""
        self._client = None
        self._container = None
        self._credential = None
        self._in_memory = False

    async def __aenter__(self) -> Self:
        """Connect to Cosmos DB, or fall back to in-memory mode."""
        load_dotenv()

        endpoint = os.getenv("COSMOS_ENDPOINT")
        key = os.getenv("COSMOS_KEY")

        if key:
            from azure.cosmos.aio import CosmosClient

            self._client = CosmosClient(endpoint, credential=key)
        elif endpoint:
            from azure.cosmos.aio import CosmosClient
            from azure.identity.aio import DefaultAzureCredential

            self._credential = DefaultAzureCredential()
            self._client = CosmosClient(endpoint, credential=self._credential)
        else:
            logger.debug("No COSMOS_ENDPOINT set, using in-memory %s store", self.CONTAINER_NAME)
            self._in_memory = True
            return self

        database = self._client.get_database_client(get_cosmos_database())
        self._container = database.get_container_client(self.CONTAINER_NAME)
        logger.debug("Connected to Cosmos DB: %s/%s", get_cosmos_database(), self.CONTAINER_NAME)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Close connections."""
        if self._client:
            await self._client.close()
            self._client = None
        if self._credential:
            await self._credential.close()
            self._credential = None
        self._container = None

    def _load(self, data: dict) -> DocT:
        return self.MODEL.from_cosmos(data)  # type: ignore[return-value]

    async def create(self, doc: DocT) -> DocT:
        """Create a new document.

        Args:
            doc: Document to create

        Returns:
            The created document (with any server-side fields populated)
        """
        if self._in_memory:
            self._memory[doc.id] = doc.to_cosmos()
            logger.info("Created %s %s (in-memory)", self.CONTAINER_NAME, doc.id)
            return doc

        result = await self._container.create_item(body=doc.to_cosmos())
        logger.info("Created %s %s", self.CONTAINER_NAME, doc.id)
        return self._load(result)

    async def get(self, doc_id: str) -> DocT | None:
        """Point-read a document by ID (the partition key is the ID itself).

        Returns:
            The document if found, None otherwise
        """
        if self._in_memory:
            data = self._memory.get(doc_id)
            return self._load(data) if data else None

        try:
            result = await self._container.read_item(item=doc_id, partition_key=doc_id)
            return self._load(result)
        except Exception:
            logger.debug("%s not found: %s", self.CONTAINER_NAME, doc_id)
            return None

    async def get_many(self, doc_ids: Iterable[str]) -> dict[str, DocT]:
        """Fetch several documents by ID, skipping any that do not exist."""
        found: dict[str, DocT] = {}
        for doc_id in dict.fromkeys(i for i in doc_ids if i):
            doc = await self.get(doc_id)
            if doc is not None:
                found[doc_id] = doc
        return found

    async def update(self, doc: DocT) -> DocT:
        """Replace an existing document, stamping ``updated_at``.

        Args:
            doc: Document with updated fields (must have a valid id)

        Returns:
            The updated document
        """
        doc.touch()
        if self._in_memory:
            self._memory[doc.id] = doc.to_cosmos()
            logger.info("Updated %s %s (in-memory)", self.CONTAINER_NAME, doc.id)
            return doc

        result = await self._container.replace_item(item=doc.id, body=doc.to_cosmos())
        logger.info("Updated %s %s", self.CONTAINER_NAME, doc.id)
        return self._load(result)

    async def delete(self, doc_id: str) -> None:
        """Delete a document. Deleting a missing document is a no-op."""
        if self._in_memory:
            self._memory.pop(doc_id, None)
            logger.info("Deleted %s %s (in-memory)", self.CONTAINER_NAME, doc_id)
            return

        if await self.get(doc_id) is None:
            return
        await self._container.delete_item(item=doc_id, partition_key=doc_id)
        logger.info("Deleted %s %s", self.CONTAINER_NAME, doc_id)

    async def query(
        self,
        filters: dict[str, Any] | None = None,
        *,
        order_by: str | None = None,
        descending: bool = False,
        offset: int = 0,
        limit: int | None = None,
    ) -> list[DocT]:
        """List documents matching equality filters.

        Args:
            filters: Field → value; a list/tuple/set value matches any member
            order_by: Field to sort by
            descending: Sort direction
            offset: Number of matching documents to skip
            limit: Maximum number of documents to return

        Returns:
            Matching documents in the requested order
        """
        filters = filters or {}

        if self._in_memory:
            rows = [data for data in self._memory.values() if _matches(data, filters)]
            if order_by:
                rows.sort(key=_sort_key(order_by), reverse=descending)
            end = offset + limit if limit is not None else None
            return [self._load(data) for data in rows[offset:end]]

        where_clause, parameters = build_where(filters)
        query = f"SELECT * FROM c{where_clause}"
        if order_by:
            query += f" ORDER BY c.{order_by} {'DESC' if descending else 'ASC'}"
        if offset or limit is not None:
            query += " OFFSET @offset LIMIT @limit"
            parameters.append({"name": "@offset", "value": offset})
            parameters.append({"name": "@limit", "value": limit if limit is not None else 10_000})

        items = []
        async for item in self._container.query_items(
            query=query,
            parameters=parameters or None,
        ):
            items.append(self._load(item))
        return items

    async def count(self, filters: dict[str, Any] | None = None) -> int:
        """Count documents matching equality filters."""
        filters = filters or {}

        if self._in_memory:
            return sum(1 for data in self._memory.values() if _matches(data, filters))

        where_clause, parameters = build_where(filters)
        query = f"SELECT VALUE COUNT(1) FROM c{where_clause}"
        async for value in self._container.query_items(
            query=query,
            parameters=parameters or None,
        ):
            return int(value)
        return 0

    async def first(self, filters: dict[str, Any] | None = None) -> DocT | None:
        """Return one matching document, or None."""
        found = await self.query(filters, limit=1)
        return found[0] if found else None
