"""
Contest order service: pricing an order and reserving its entries on payment
"""

import logging
import time
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, Iterable, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import (
    ContestNotFound,
    ContestStateError,
    OrderNotFound,
    OrderStateError,
    PredictionUnavailable,
)
from app.core.metrics import ORDER_COUNT
from app.models.enums import ContestStatus, OrderStatus
from app.repos.contest_repo import add_custom_entries, get_contest_by_id, reserve_prediction_entry
from app.repos.order_repo import create_order, get_order_by_id
from app.services.prediction_generator import resolve_custom_prediction_price

# Configure logging
logger = logging.getLogger(__name__)


def generate_order_code(prefix: str = "ORD") -> str:
    """Unique human-readable order code, e.g. ORD-1718000000A1B2C3"""
    return f"{prefix}-{int(time.time())}{uuid.uuid4().hex[:6].upper()}"


def _aware(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


async def create_contest_order(
    session: AsyncSession,
    user_id: UUID,
    contest_id: UUID,
    slot_ids: Iterable[str] = (),
    custom_values: Iterable = (),
    now: Optional[datetime] = None,
) -> Dict:
    """
    Price and record a pending order for generated slots and custom values.

    Entries are not reserved until the payment is confirmed.

    Args:
        session: Database session
        user_id: Buyer
        contest_id: Contest UUID
        slot_ids: Generated prediction ids
        custom_values: Free prediction values on the increment grid
        now: Clock override

    Returns:
        The created order as a dict

    Raises:
        ContestNotFound, ContestStateError, PredictionUnavailable,
        InvalidPrediction, InvalidPricingTier
    """
    slot_ids = list(slot_ids)
    custom_values = list(custom_values)
    now = now or datetime.now(timezone.utc)

    contest = await get_contest_by_id(session, contest_id)
    if not contest:
        raise ContestNotFound(f"Contest {contest_id} not found")
    if contest.status != ContestStatus.ACTIVE.value:
        raise ContestStateError("Contest is not active!")
    if contest.start_time and now < _aware(contest.start_time):
        raise ContestStateError("Contest has not started yet!")
    if contest.end_offset_time and now > _aware(contest.end_offset_time):
        raise ContestStateError("Contest selection time has ended!")
    if not slot_ids and not custom_values:
        raise PredictionUnavailable("An order needs at least one prediction")

    slots = {slot["id"]: slot for slot in contest.generated_predictions or []}
    total_amount = Decimal("0")
    predictions = []
    for slot_id in slot_ids:
        slot = slots.get(slot_id)
        if slot is None:
            raise PredictionUnavailable(f"Prediction with ID {slot_id} not found in this contest!")
        if not slot.get("is_available", True) or slot["current_entries"] >= slot["max_entries"]:
            raise PredictionUnavailable(f"Prediction with value {slot['value']} is no longer available!")

        price = Decimal(str(slot["price"]))
        total_amount += price
        predictions.append({
            "slot_id": slot_id,
            "prediction_value": str(slot["value"]),
            "tier_id": slot["tier_id"],
            "price": str(price),
        })

    custom_predictions = []
    for value in custom_values:
        tier_id, price = resolve_custom_prediction_price(
            value,
            pricing_model=contest.pricing_model,
            min_value=contest.min_prediction,
            increment=contest.increment,
            flat_price=contest.flat_price,
            tiers=contest.tiers,
        )
        total_amount += price
        custom_predictions.append({
            "prediction_value": str(Decimal(str(value))),
            "tier_id": tier_id,
            "price": str(price),
        })

    try:
        order = await create_order(
            session,
            order_code=generate_order_code(),
            user_id=user_id,
            contest_id=contest.id,
            contest_name=contest.name,
            predictions=predictions,
            custom_predictions=custom_predictions,
            total_amount=total_amount,
            status=OrderStatus.PENDING.value,
        )
        await session.commit()
    except Exception:
        await session.rollback()
        raise

    ORDER_COUNT.labels(status="created").inc()
    logger.info(f"Order {order.order_code} created for contest {contest_id}: {len(predictions)} slots, "
                f"{len(custom_predictions)} custom, total {total_amount}")
    return order.to_dict()


async def confirm_order_payment(session: AsyncSession, order_id: UUID) -> Dict:
    """
    Mark an order paid and reserve one entry per generated slot.

    Confirming an already-confirmed order changes nothing. If any slot is
    full nothing is reserved and PredictionUnavailable is raised.
    """
    try:
        order = await get_order_by_id(session, order_id)
        if not order:
            raise OrderNotFound(f"Order {order_id} not found")

        # Contest before order, the same lock order settlement uses
        await get_contest_by_id(session, order.contest_id, for_update=True)
        order = await get_order_by_id(session, order_id, for_update=True)
        if not order:
            raise OrderNotFound(f"Order {order_id} not found")

        if order.status != OrderStatus.PENDING.value:
            if order.status == OrderStatus.CANCELLED.value:
                raise OrderStateError("Cancelled orders cannot be paid")
            logger.info(f"Order {order.order_code} already confirmed ({order.status})")
            existing = order.to_dict()
            await session.rollback()
            return existing

        for prediction in order.predictions or []:
            await reserve_prediction_entry(session, order.contest_id, prediction["slot_id"])
        if order.custom_predictions:
            await add_custom_entries(session, order.contest_id, len(order.custom_predictions))

        order.status = OrderStatus.PROCESSING.value
        order.paid_at = datetime.now(timezone.utc)
        await session.commit()
    except Exception:
        await session.rollback()
        ORDER_COUNT.labels(status="confirm_failed").inc()
        raise

    ORDER_COUNT.labels(status="paid").inc()
    logger.info(f"Order {order.order_code} paid, {len(order.predictions or [])} entries reserved")
    return order.to_dict()
