from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.session import get_db
from app.schemas import WithdrawalApprove, WithdrawalCreate
from app.services.payout import StripePayoutClient, get_payout_client
from app.services.withdrawals import approve_withdrawal, get_payout_status, request_withdrawal

router = APIRouter(prefix="/withdrawals", tags=["withdrawals"])


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_withdraw(req: WithdrawalCreate, db: AsyncSession = Depends(get_db)):
    """Deduct points and create a pending withdrawal"""
    return await request_withdrawal(
        db,
        user_id=req.user_id,
        amount=req.amount,
        card_id=req.card_id,
        withdrawal_method=req.withdrawal_method,
    )


@router.post("/{withdrawal_id}/approve")
async def approve(
    withdrawal_id: UUID,
    req: WithdrawalApprove,
    db: AsyncSession = Depends(get_db),
    payout_client: StripePayoutClient = Depends(get_payout_client)
):
    """Pay out a pending withdrawal; points are refunded if the payout fails"""
    return await approve_withdrawal(
        db,
        withdrawal_id=withdrawal_id,
        payout_method=req.payout_method,
        payout_client=payout_client,
        admin_note=req.admin_note,
    )


@router.get("/{withdrawal_id}/payout-status")
async def payout_status(
    withdrawal_id: UUID,
    db: AsyncSession = Depends(get_db),
    payout_client: StripePayoutClient = Depends(get_payout_client)
):
    return await get_payout_status(db, withdrawal_id, payout_client)
