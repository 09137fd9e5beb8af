"""
Summon API endpoints.

Thin mapping from HTTP to the pull orchestrator and pity view.
"""

from typing import Annotated

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from fruitgacha.db.database import get_session
from fruitgacha.models.failure import FailureResponse
from fruitgacha.models.fruit import BatchResult, PullOutcome
from fruitgacha.services.accounts import get_pity_info
from fruitgacha.services.pulls import perform_pulls

router = APIRouter(prefix="/players", tags=["summon"])


class PullRequest(BaseModel):
    """Request model for a batch of pulls."""

    count: int = Field(
        default=1,
        description="Number of fruits to summon",
        examples=[1, 10, 50, 100],
    )
    request_key: str | None = Field(
        default=None,
        max_length=128,
        description="Idempotency key; resubmitting the same key is rejected",
    )


class FruitResponse(BaseModel):
    fruit_id: str
    name: str
    tier: str
    category: str
    element: str
    power: int
    is_first_copy: bool
    copy_count: int
    pity_consumed: bool
    generated: bool = False


class PullResponse(BaseModel):
    """Response model for a settled batch."""

    player_id: str
    results: list[FruitResponse] = Field(default_factory=list)
    total_cost: int
    balance: int
    pity_used_in_session: bool = False
    pity_counter: int = 0
    by_tier: dict[str, int] = Field(default_factory=dict)


class PityResponse(BaseModel):
    player_id: str
    current: int
    hard_pity: int
    soft_pity: int
    percentage: float
    pity_active: bool


def _fruit_response(outcome: PullOutcome) -> FruitResponse:
    return FruitResponse(
        fruit_id=outcome.fruit.fruit_id,
        name=outcome.fruit.name,
        tier=outcome.tier.value,
        category=outcome.fruit.category,
        element=outcome.fruit.element,
        power=outcome.power,
        is_first_copy=outcome.is_first_copy,
        copy_count=outcome.copy_count,
        pity_consumed=outcome.pity_consumed,
        generated=outcome.fruit.generated,
    )


def _pull_response(batch: BatchResult) -> PullResponse:
    return PullResponse(
        player_id=batch.player_id,
        results=[_fruit_response(outcome) for outcome in batch.results],
        total_cost=batch.total_cost,
        balance=batch.balance_after,
        pity_used_in_session=batch.pity_used_in_session,
        pity_counter=batch.pity_after,
        by_tier={tier.value: count for tier, count in batch.count_by_tier().items()},
    )


@router.post(
    "/{player_id}/pulls",
    response_model=PullResponse,
    responses={
        400: {"model": FailureResponse},
        402: {"model": FailureResponse},
        409: {"model": FailureResponse},
        503: {"model": FailureResponse},
    },
)
async def summon(
    player_id: str,
    request: PullRequest,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> PullResponse:
    """
    Summon a batch of devil fruits.

    The whole batch is paid up front. Either every fruit is granted or,
    on any failure, nothing is granted and nothing is charged.
    """
    batch = await perform_pulls(
        session,
        player_id,
        request.count,
        request_key=request.request_key,
    )
    return _pull_response(batch)


@router.get("/{player_id}/pity", response_model=PityResponse)
async def pity_status(
    player_id: str,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> PityResponse:
    """Pity progress toward a guaranteed top-tier fruit."""
    info = await get_pity_info(session, player_id)
    return PityResponse(
        player_id=player_id,
        current=info.current,
        hard_pity=info.hard_pity,
        soft_pity=info.soft_pity,
        percentage=info.percentage,
        pity_active=info.pity_active,
    )
