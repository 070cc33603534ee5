"""
Withdrawal service: points deduction, approval and card payout
"""

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.errors import PayoutFailed, PredictPoolError, WithdrawalNotFound, WithdrawalStateError
from app.core.metrics import PAYOUT_COUNT
from app.models.enums import PayoutMethod, WithdrawalStatus
from app.repos.audit_log_repo import create_audit_log
from app.repos.wallet_repo import credit_points_atomic, debit_points_atomic
from app.repos.withdrawal_repo import create_withdrawal, get_withdrawal
from app.services.payout import calculate_payout_fee

# Configure logging
logger = logging.getLogger(__name__)


def _payout_method(value) -> PayoutMethod:
    try:
        return PayoutMethod(value)
    except ValueError:
        raise PredictPoolError(f"Invalid payout method: {value}")


async def request_withdrawal(
    session: AsyncSession,
    user_id: UUID,
    amount: Decimal,
    card_id: str,
    withdrawal_method: str = "card",
) -> Dict:
    """
    Deduct points and record a pending withdrawal.

    Raises:
        InsufficientPoints: the wallet balance is below amount
    """
    amount = Decimal(str(amount))
    if amount <= 0:
        raise PredictPoolError("Withdrawal amount must be positive")

    try:
        await debit_points_atomic(session, user_id, amount)
        withdrawal = await create_withdrawal(
            session,
            user_id=user_id,
            amount=amount,
            points_deducted=amount,
            currency=settings.currency,
            withdrawal_method=withdrawal_method,
            card_id=card_id,
        )
        await session.commit()
    except Exception:
        await session.rollback()
        raise

    logger.info(f"Withdrawal {withdrawal.id} requested by user {user_id} for {amount}")
    return withdrawal.to_dict()


async def approve_withdrawal(
    session: AsyncSession,
    withdrawal_id: UUID,
    payout_method,
    payout_client,
    admin_id: Optional[UUID] = None,
    admin_note: Optional[str] = None,
) -> Dict:
    """
    Approve a pending withdrawal and pay it out to the user's card.

    The withdrawal is moved to processing and committed before the payout
    call, so a second approval of the same withdrawal is refused. When the
    payout fails the deducted points are refunded, the withdrawal is marked
    failed and the PayoutFailed error is re-raised.

    Args:
        session: Database session
        withdrawal_id: Withdrawal UUID
        payout_method: "instant" or "standard"
        payout_client: Collaborator exposing create_payout(...)
        admin_id: Approving admin (optional)
        admin_note: Free text stored on the withdrawal

    Returns:
        The completed withdrawal as a dict
    """
    method = _payout_method(payout_method)

    withdrawal = await get_withdrawal(session, withdrawal_id, for_update=True)
    if not withdrawal:
        raise WithdrawalNotFound(f"Withdrawal {withdrawal_id} not found")
    if withdrawal.status != WithdrawalStatus.PENDING.value:
        current_status = withdrawal.status
        await session.rollback()
        raise WithdrawalStateError(
            f"Withdrawal is {current_status}, only pending withdrawals can be approved"
        )

    amount = Decimal(str(withdrawal.amount))
    fee = calculate_payout_fee(amount, method)
    net_amount = amount - fee
    if net_amount <= 0:
        await session.rollback()
        raise PredictPoolError(
            "Withdrawal amount does not cover the payout fee",
            {"amount": str(amount), "fee": str(fee)},
        )

    withdrawal.status = WithdrawalStatus.PROCESSING.value
    withdrawal.payout_method = method.value
    withdrawal.fee = fee
    withdrawal.net_amount = net_amount
    withdrawal.admin_note = admin_note
    await session.commit()

    try:
        payout_id = await payout_client.create_payout(
            net_amount=net_amount,
            currency=withdrawal.currency,
            destination_card=withdrawal.card_id,
            metadata={"withdrawal_id": str(withdrawal.id), "user_id": str(withdrawal.user_id)},
            method=method.value,
        )
    except Exception as e:
        # Never leave the withdrawal in processing with the points deducted
        reason = e.message if isinstance(e, PayoutFailed) else f"Payout error: {e}"
        logger.error(f"Payout for withdrawal {withdrawal.id} failed, refunding {withdrawal.points_deducted} points: {reason}")
        await _fail_withdrawal(session, withdrawal, reason, admin_id)
        PAYOUT_COUNT.labels(status="failed").inc()
        raise

    withdrawal.status = WithdrawalStatus.COMPLETED.value
    withdrawal.payout_id = payout_id
    withdrawal.processed_at = datetime.now(timezone.utc)
    await create_audit_log(
        session=session,
        admin_id=admin_id,
        action="withdrawal_payout",
        resource_type="withdrawal",
        resource_id=withdrawal.id,
        details={
            "payout_id": payout_id,
            "payout_method": method.value,
            "amount": str(amount),
            "fee": str(fee),
            "net_amount": str(net_amount),
        },
    )
    await session.commit()

    PAYOUT_COUNT.labels(status="completed").inc()
    logger.info(f"Withdrawal {withdrawal.id} paid out: {net_amount} {withdrawal.currency} (fee {fee}) via {method.value}")
    return withdrawal.to_dict()


async def _fail_withdrawal(session: AsyncSession, withdrawal, reason: str, admin_id: Optional[UUID]) -> None:
    """Refund the deducted points and mark the withdrawal failed, in one transaction"""
    try:
        await credit_points_atomic(session, withdrawal.user_id, Decimal(str(withdrawal.points_deducted)))
        withdrawal.status = WithdrawalStatus.FAILED.value
        withdrawal.failure_reason = reason
        withdrawal.processed_at = datetime.now(timezone.utc)
        await create_audit_log(
            session=session,
            admin_id=admin_id,
            action="withdrawal_payout_failed",
            resource_type="withdrawal",
            resource_id=withdrawal.id,
            details={"reason": reason, "refunded": str(withdrawal.points_deducted)},
        )
        await session.commit()
    except Exception:
        await session.rollback()
        raise


async def get_payout_status(session: AsyncSession, withdrawal_id: UUID, payout_client) -> Dict:
    """
    Payout processor status for a paid-out withdrawal.
    """
    withdrawal = await get_withdrawal(session, withdrawal_id)
    if not withdrawal:
        raise WithdrawalNotFound(f"Withdrawal {withdrawal_id} not found")
    if not withdrawal.payout_id:
        raise WithdrawalStateError(f"Withdrawal {withdrawal_id} has no payout yet")

    status = await payout_client.get_payout_status(withdrawal.payout_id)
    return {"withdrawal_id": str(withdrawal.id), "withdrawal_status": withdrawal.status, **status}
