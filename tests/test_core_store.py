"""Tests for the shared CosmosStore (in-memory mode and query building)."""

from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock, patch

from dispatchdesk.core.store import build_where
from dispatchdesk.directory.models import Department, Station
from dispatchdesk.directory.store import DepartmentStore, StationStore


def _station(name: str, **overrides) -> Station:
    return Station(name=name, **overrides)


class TestCreateAndGet:
    async def test_create_and_get_back(self):
        doc = _station("Central", address="1 Main St")
        async with StationStore() as store:
            await store.create(doc)
            fetched = await store.get(doc.id)
        assert fetched is not None
        assert fetched.name == "Central"
        assert fetched.address == "1 Main St"

    async def test_nonexistent_returns_none(self):
        async with StationStore() as store:
            assert await store.get("missing") is None

    async def test_containers_do_not_share_rows(self):
        async with StationStore() as store:
            station = await store.create(_station("Central"))
        async with DepartmentStore() as departments:
            assert await departments.get(station.id) is None

    async def test_get_many_skips_missing_and_duplicates(self):
        async with StationStore() as store:
            a = await store.create(_station("A"))
            b = await store.create(_station("B"))
            found = await store.get_many([a.id, "nope", b.id, a.id, ""])
        assert set(found) == {a.id, b.id}


class TestUpdateAndDelete:
    async def test_update_stamps_updated_at(self):
        async with StationStore() as store:
            station = await store.create(_station("Central"))
            assert station.updated_at is None
            station.phone_number = "0302-000000"
            await store.update(station)
            fetched = await store.get(station.id)
        assert fetched.phone_number == "0302-000000"
        assert fetched.updated_at is not None

    async def test_delete(self):
        async with StationStore() as store:
            station = await store.create(_station("Central"))
            await store.delete(station.id)
            assert await store.get(station.id) is None

    async def test_delete_missing_is_noop(self):
        async with StationStore() as store:
            await store.delete("missing")


class TestQuery:
    async def _seed(self):
        base = datetime(2026, 3, 1, tzinfo=UTC)
        async with DepartmentStore() as store:
            for i, (name, station_id) in enumerate(
                [("Operations", "s1"), ("Prevention", "s1"), ("Operations", "s2"), ("EMS", "s1")]
            ):
                await store.create(
                    Department(
                        name=name, station_id=station_id, created_at=base + timedelta(minutes=i)
                    )
                )

    async def test_equality_filter(self):
        await self._seed()
        async with DepartmentStore() as store:
            found = await store.query({"station_id": "s1"})
        assert sorted(d.name for d in found) == ["EMS", "Operations", "Prevention"]

    async def test_list_filter_matches_any_member(self):
        await self._seed()
        async with DepartmentStore() as store:
            found = await store.query({"name": ["EMS", "Prevention"]})
        assert sorted(d.name for d in found) == ["EMS", "Prevention"]

    async def test_order_offset_and_limit(self):
        await self._seed()
        async with DepartmentStore() as store:
            newest = await store.query(order_by="created_at", descending=True, limit=2)
            second_page = await store.query(order_by="created_at", offset=2, limit=2)
        assert [d.name for d in newest] == ["EMS", "Operations"]
        assert [d.station_id for d in newest] == ["s1", "s2"]
        assert [d.name for d in second_page] == ["Operations", "EMS"]

    async def test_count_and_first(self):
        await self._seed()
        async with DepartmentStore() as store:
            assert await store.count() == 4
            assert await store.count({"name": "Operations"}) == 2
            assert await store.first({"station_id": "s2"}) is not None
            assert await store.first({"station_id": "s9"}) is None


class TestBuildWhere:
    def test_empty_filters(self):
        assert build_where({}) == ("", [])

    def test_equality_and_membership(self):
        clause, params = build_where({"station_id": "s1", "status": ["active", "dispatched"]})
        assert clause == " WHERE c.station_id = @p0 AND ARRAY_CONTAINS(@p1, c.status)"
        assert params == [
            {"name": "@p0", "value": "s1"},
            {"name": "@p1", "value": ["active", "dispatched"]},
        ]

    def test_none_matches_missing_or_null(self):
        clause, params = build_where({"unit_id": None})
        assert "NOT IS_DEFINED(c.unit_id)" in clause
        assert "IS_NULL(c.unit_id)" in clause
        assert params == []


class TestCosmosMode:
    async def test_point_read_uses_id_as_partition_key(self, monkeypatch):
        monkeypatch.setenv("COSMOS_ENDPOINT", "https://example.documents.azure.com")
        monkeypatch.setenv("COSMOS_KEY", "secret")
        station = _station("Central")

        container = MagicMock()
        container.read_item = AsyncMock(return_value=station.to_cosmos())
        client = MagicMock()
        client.get_database_client.return_value.get_container_client.return_value = container
        client.close = AsyncMock()

        with patch("azure.cosmos.aio.CosmosClient", return_value=client):
            async with StationStore() as store:
                fetched = await store.get(station.id)

        container.read_item.assert_awaited_once_with(item=station.id, partition_key=station.id)
        client.get_database_client.return_value.get_container_client.assert_called_with("stations")
        assert fetched.name == "Central"
        client.close.assert_awaited_once()

    async def test_read_failure_returns_none(self, monkeypatch):
        monkeypatch.setenv("COSMOS_ENDPOINT", "https://example.documents.azure.com")
        monkeypatch.setenv("COSMOS_KEY", "secret")

        container = MagicMock()
        container.read_item = AsyncMock(side_effect=Exception("404"))
        client = MagicMock()
        client.get_database_client.return_value.get_container_client.return_value = container
        client.close = AsyncMock()

        with patch("azure.cosmos.aio.CosmosClient", return_value=client):
            async with StationStore() as store:
                assert await store.get("missing") is None
