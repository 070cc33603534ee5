"""
Wallet repository with atomic points operations
"""

from typing import Optional
from uuid import UUID
from decimal import Decimal
import logging
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from app.core.errors import InsufficientPoints
from app.models.wallet import Wallet

# Configure logging
logger = logging.getLogger(__name__)


async def get_wallet_for_user(session: AsyncSession, user_id: UUID, for_update: bool = False) -> Optional[Wallet]:
    """
    Get wallet for a specific user.

    Args:
        session: Database session
        user_id: User UUID
        for_update: Lock the wallet row

    Returns:
        Wallet instance or None if not found
    """
    query = select(Wallet).where(Wallet.user_id == user_id)
    if for_update:
        query = query.with_for_update()
    result = await session.execute(query)
    return result.scalar_one_or_none()


async def create_wallet_for_user(session: AsyncSession, user_id: UUID, points: Decimal = Decimal('0')) -> Wallet:
    """
    Create a wallet for a user, or return the existing one.
    """
    existing_wallet = await get_wallet_for_user(session, user_id)
    if existing_wallet:
        return existing_wallet

    wallet = Wallet(user_id=user_id, points_balance=points)
    session.add(wallet)
    await session.flush()
    return wallet


async def debit_points_atomic(session: AsyncSession, user_id: UUID, amount: Decimal) -> Decimal:
    """
    Deduct points under a row lock.

    Returns:
        New points balance

    Raises:
        InsufficientPoints: wallet missing or balance below amount
    """
    wallet = await get_wallet_for_user(session, user_id, for_update=True)
    if not wallet:
        raise InsufficientPoints(f"No wallet for user {user_id}")

    if wallet.points_balance < amount:
        raise InsufficientPoints(
            "Insufficient points for this withdrawal",
            {"balance": str(wallet.points_balance), "requested": str(amount)},
        )

    wallet.points_balance = wallet.points_balance - amount
    await session.flush()
    logger.info(f"Debited {amount} points from user {user_id}. New balance: {wallet.points_balance}")
    return wallet.points_balance


async def credit_points_atomic(session: AsyncSession, user_id: UUID, amount: Decimal) -> Decimal:
    """
    Add points under a row lock, creating the wallet if needed.

    Returns:
        New points balance
    """
    wallet = await get_wallet_for_user(session, user_id, for_update=True)
    if not wallet:
        wallet = await create_wallet_for_user(session, user_id)

    wallet.points_balance = wallet.points_balance + amount
    await session.flush()
    logger.info(f"Credited {amount} points to user {user_id}. New balance: {wallet.points_balance}")
    return wallet.points_balance
