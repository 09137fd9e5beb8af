"""
Collection API endpoints.

Read-only view of a player's devil fruits.
"""

from typing import Annotated

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from fruitgacha.db.database import get_session
from fruitgacha.services.accounts import get_collection_summary
from fruitgacha.services.catalog import get_catalog

router = APIRouter(prefix="/players", tags=["collection"])


class OwnedFruit(BaseModel):
    fruit_id: str
    name: str
    tier: str
    copies: int
    element: str = "Unknown"
    description: str = ""


class CollectionResponse(BaseModel):
    """Response model for collection data."""

    player_id: str
    total_fruits: int = 0
    unique_fruits: int = 0
    total_power: int = 0
    fruits: list[OwnedFruit] = Field(default_factory=list)
    by_tier: dict[str, int] = Field(
        default_factory=dict,
        description="Fruit counts by tier, including duplicates",
    )


@router.get("/{player_id}/collection", response_model=CollectionResponse)
async def get_player_collection(
    player_id: str,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> CollectionResponse:
    """
    Get a player's devil fruit collection.

    Unknown players get an empty collection.
    """
    summary = await get_collection_summary(session, player_id)
    catalog = get_catalog()

    fruits = []
    for fruit_id, copies in summary.copies.items():
        owned = OwnedFruit(
            fruit_id=fruit_id,
            name=summary.names[fruit_id],
            tier=summary.tiers[fruit_id].value,
            copies=copies,
        )
        # Generated placeholders have no catalog entry
        definition = catalog.get(fruit_id)
        if definition is not None:
            owned.element = definition.element
            owned.description = definition.description
        fruits.append(owned)

    return CollectionResponse(
        player_id=player_id,
        total_fruits=summary.total_fruits,
        unique_fruits=summary.unique_fruits,
        total_power=summary.total_power,
        fruits=fruits,
        by_tier={tier.value: count for tier, count in summary.by_tier.items()},
    )
