"""
Order repository for contest orders
"""

from typing import List, Optional
from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update

from app.models.order import Order
from app.models.enums import OrderStatus


async def create_order(session: AsyncSession, **fields) -> Order:
    """
    Create a new order.

    Args:
        session: Database session
        **fields: Order column values

    Returns:
        Created Order instance
    """
    order = Order(**fields)
    session.add(order)
    await session.flush()
    return order


async def get_order_by_id(session: AsyncSession, order_id: UUID, for_update: bool = False) -> Optional[Order]:
    """
    Get a non-deleted order by ID.
    """
    query = select(Order).where(Order.id == order_id, Order.is_deleted.is_(False))
    if for_update:
        # Reload the row so checks made under the lock see committed values
        query = query.with_for_update().execution_options(populate_existing=True)
    result = await session.execute(query)
    return result.scalar_one_or_none()


async def list_orders_for_contest(session: AsyncSession, contest_id: UUID) -> List[Order]:
    """
    All non-deleted orders for a contest, oldest first.
    """
    result = await session.execute(
        select(Order)
        .where(Order.contest_id == contest_id, Order.is_deleted.is_(False))
        .order_by(Order.created_at)
    )
    return list(result.scalars().all())


async def list_eligible_orders(session: AsyncSession, contest_id: UUID) -> List[Order]:
    """
    Orders that take part in settlement: not cancelled and not deleted.
    """
    result = await session.execute(
        select(Order).where(
            Order.contest_id == contest_id,
            Order.is_deleted.is_(False),
            Order.status != OrderStatus.CANCELLED.value,
        )
    )
    return list(result.scalars().all())


async def persist_order_result(
    session: AsyncSession,
    order_id: UUID,
    status: str,
    result: Optional[dict]
) -> None:
    """
    Set an order's terminal status and result record.
    """
    await session.execute(
        update(Order)
        .where(Order.id == order_id)
        .values(status=status, result=result)
        .execution_options(synchronize_session="fetch")
    )
