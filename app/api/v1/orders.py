"""
Contest order API endpoints
"""

from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.session import get_db
from app.schemas import OrderCreate
from app.services.orders import confirm_order_payment, create_contest_order

router = APIRouter(prefix="/orders", tags=["orders"])


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_order_endpoint(req: OrderCreate, session: AsyncSession = Depends(get_db)):
    """Create a pending order for generated slots and custom values"""
    return await create_contest_order(
        session,
        user_id=req.user_id,
        contest_id=req.contest_id,
        slot_ids=req.generated_prediction_ids,
        custom_values=req.custom_predictions,
    )


@router.post("/{order_id}/confirm-payment")
async def confirm_payment_endpoint(order_id: UUID, session: AsyncSession = Depends(get_db)):
    """Mark an order paid and reserve its entries"""
    return await confirm_order_payment(session, order_id)
