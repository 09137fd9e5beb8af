"""Tests for collection API endpoints."""

from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from fruitgacha.db.operations import create_account, insert_grant
from fruitgacha.models.db import CollectionEntryDB
from fruitgacha.services.catalog import get_catalog


class TestCollectionEndpoint:
    async def test_empty_collection(self, client: AsyncClient) -> None:
        response = await client.get("/players/luffy/collection")

        assert response.status_code == 200
        data = response.json()
        assert data["total_fruits"] == 0
        assert data["fruits"] == []

    async def test_collection_after_pulls(self, client: AsyncClient) -> None:
        pulls = (await client.post("/players/robin/pulls", json={"count": 5})).json()

        data = (await client.get("/players/robin/collection")).json()

        assert data["total_fruits"] == 5
        assert data["unique_fruits"] == len({f["fruit_id"] for f in pulls["results"]})
        assert data["total_power"] == sum(f["power"] for f in pulls["results"])
        assert sum(fruit["copies"] for fruit in data["fruits"]) == 5
        assert sum(data["by_tier"].values()) == 5
        assert set(data["by_tier"]) == {
            "common",
            "uncommon",
            "rare",
            "epic",
            "legendary",
            "mythical",
            "divine",
        }

    async def test_fruits_carry_catalog_details(self, client: AsyncClient) -> None:
        await client.post("/players/chopper/pulls", json={"count": 5})

        data = (await client.get("/players/chopper/collection")).json()

        catalog = get_catalog()
        for fruit in data["fruits"]:
            definition = catalog.get(fruit["fruit_id"])
            assert definition is not None
            assert fruit["element"] == definition.element
            assert fruit["description"] == definition.description

    async def test_generated_fruit_uses_defaults(
        self, client: AsyncClient, session: AsyncSession
    ) -> None:
        await create_account(session, "brook", 0)
        await insert_grant(
            session,
            CollectionEntryDB(
                player_id="brook",
                fruit_id="generated_divine_1234",
                fruit_name="Unknown Divine Fruit",
                tier="divine",
                category="Paramecia",
                power=9000,
            ),
        )
        await session.commit()

        data = (await client.get("/players/brook/collection")).json()

        [fruit] = data["fruits"]
        assert fruit["fruit_id"] == "generated_divine_1234"
        assert fruit["element"] == "Unknown"
        assert fruit["description"] == ""
