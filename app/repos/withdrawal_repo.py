from typing import Optional
from uuid import UUID
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.withdrawal import Withdrawal


async def create_withdrawal(session: AsyncSession, **fields) -> Withdrawal:
    """Create a pending withdrawal request"""
    fields.setdefault("status", "pending")
    w = Withdrawal(**fields)
    session.add(w)
    await session.flush()
    return w


async def get_withdrawal(session: AsyncSession, withdrawal_id: UUID, for_update: bool = False) -> Optional[Withdrawal]:
    """Get a withdrawal by ID"""
    query = select(Withdrawal).where(Withdrawal.id == withdrawal_id)
    if for_update:
        query = query.with_for_update()
    result = await session.execute(query)
    return result.scalar_one_or_none()
