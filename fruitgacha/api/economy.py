"""
Economy API endpoints.

Balance reads settle passive income first so the displayed balance is
current. Manual claims settle passive income and then the manual lump sum,
each in its own transaction.
"""

from typing import Annotated

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from fruitgacha.db.database import get_session
from fruitgacha.models.failure import FailureResponse
from fruitgacha.services.accounts import get_balance
from fruitgacha.services.income import accrue_passive, claim_manual, income_overview

router = APIRouter(prefix="/players", tags=["economy"])


class PassiveIncomeInfo(BaseModel):
    granted: int = 0
    periods: int = 0
    hours: float = 0.0


class BalanceResponse(BaseModel):
    """Response model for a balance check."""

    player_id: str
    balance: int
    hourly_income: int
    max_hourly_income: int
    unique_fruits: int
    fruits_needed_for_max: int
    passive_income: PassiveIncomeInfo = Field(default_factory=PassiveIncomeInfo)


class IncomeClaimResponse(BaseModel):
    """Response model for a manual income claim."""

    player_id: str
    income: int
    base_income: int
    multiplier: float
    hourly_rate: int
    unique_fruits: int
    next_claim_in: int
    balance: int
    passive_income: PassiveIncomeInfo = Field(default_factory=PassiveIncomeInfo)


@router.get(
    "/{player_id}/balance",
    response_model=BalanceResponse,
    responses={400: {"model": FailureResponse}, 503: {"model": FailureResponse}},
)
async def balance(
    player_id: str,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> BalanceResponse:
    """
    Get a player's balance and income rate.

    Collects any whole periods of passive income first.
    """
    passive = await accrue_passive(session, player_id)
    overview = await income_overview(session, player_id)
    current = await get_balance(session, player_id)

    return BalanceResponse(
        player_id=player_id,
        balance=current,
        hourly_income=overview.hourly_rate,
        max_hourly_income=overview.max_hourly_income,
        unique_fruits=overview.unique_fruits,
        fruits_needed_for_max=overview.fruits_needed,
        passive_income=PassiveIncomeInfo(
            granted=passive.granted,
            periods=passive.periods_elapsed,
            hours=passive.hours_accumulated,
        ),
    )


@router.post(
    "/{player_id}/income",
    response_model=IncomeClaimResponse,
    responses={
        400: {"model": FailureResponse},
        409: {"model": FailureResponse},
        429: {"model": FailureResponse},
        503: {"model": FailureResponse},
    },
)
async def claim_income(
    player_id: str,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> IncomeClaimResponse:
    """
    Collect manual income with its bonus multiplier.

    Fails with 429 while on cooldown and 409 when the player owns no fruits.
    Passive income collected beforehand is kept either way.
    """
    passive = await accrue_passive(session, player_id)
    manual = await claim_manual(session, player_id)
    current = await get_balance(session, player_id)

    return IncomeClaimResponse(
        player_id=player_id,
        income=manual.income,
        base_income=manual.base_income,
        multiplier=manual.multiplier,
        hourly_rate=manual.hourly_rate,
        unique_fruits=manual.unique_fruits,
        next_claim_in=manual.next_claim_in,
        balance=current,
        passive_income=PassiveIncomeInfo(
            granted=passive.granted,
            periods=passive.periods_elapsed,
            hours=passive.hours_accumulated,
        ),
    )
