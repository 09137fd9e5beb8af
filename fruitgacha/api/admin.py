"""
Administrative endpoints.

Guarded by a shared token in the `X-Admin-Token` header. When no token is
configured the routes refuse every request.
"""

import secrets
from typing import Annotated

from fastapi import APIRouter, Depends, Header, HTTPException, status
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from fruitgacha.config import settings
from fruitgacha.db.database import get_session
from fruitgacha.models.failure import FailureResponse
from fruitgacha.services.accounts import ADMIN_REASON, adjust_balance, wipe_account


def require_admin(
    x_admin_token: Annotated[str | None, Header()] = None,
) -> None:
    """Reject the request unless the admin token matches."""
    if not settings.admin_token:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin routes are disabled",
        )
    if x_admin_token is None or not secrets.compare_digest(x_admin_token, settings.admin_token):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid admin token",
        )


router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin)])


class BalanceAdjustRequest(BaseModel):
    delta: int = Field(..., description="Signed berry change", examples=[5000, -1000])
    reason: str = Field(default=ADMIN_REASON, max_length=50)


class BalanceAdjustResponse(BaseModel):
    player_id: str
    balance: int


class WipeResponse(BaseModel):
    player_id: str
    deleted: bool
    message: str = ""


@router.post(
    "/players/{player_id}/balance",
    response_model=BalanceAdjustResponse,
    responses={400: {"model": FailureResponse}, 402: {"model": FailureResponse}},
)
async def adjust_player_balance(
    player_id: str,
    request: BalanceAdjustRequest,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> BalanceAdjustResponse:
    """Credit or debit a player. Debits below zero are rejected."""
    balance = await adjust_balance(session, player_id, request.delta, request.reason)
    return BalanceAdjustResponse(player_id=player_id, balance=balance)


@router.delete("/players/{player_id}", response_model=WipeResponse)
async def wipe_player(
    player_id: str,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> WipeResponse:
    """
    Delete a player's account.

    Irreversible: removes balance, pity, every collected fruit and the
    ledger history.
    """
    deleted = await wipe_account(session, player_id)
    message = "Account deleted." if deleted else "No account found to delete."
    return WipeResponse(player_id=player_id, deleted=deleted, message=message)
