"""
Contest settlement service: closeness-of-guess ranking and prize distribution
"""

import logging
from collections import OrderedDict
from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, Iterable, List, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import (
    AlreadySettled,
    ContestNotFound,
    ContestStateError,
    InvalidPricingTier,
    ResultUnavailable,
)
from app.core.metrics import SETTLEMENT_COUNT
from app.models.enums import ContestStatus, OrderStatus
from app.repos.audit_log_repo import create_audit_log
from app.repos.contest_repo import get_contest_by_id, mark_contest_settled
from app.repos.order_repo import list_eligible_orders, list_orders_for_contest, persist_order_result
from app.schemas import PredictionCandidate, Winner, WinnerDetermination

# Configure logging
logger = logging.getLogger(__name__)

# Decimal precision for calculations
DECIMAL_PRECISION = Decimal("0.00000001")


def parse_place_percentages(raw) -> "OrderedDict[int, Decimal]":
    """
    Normalise a stored place -> percentage table.

    Keys may be ints or stringified ints. The result is ordered by place
    ascending. Percentages must be non-negative and may total less than 100,
    never more.

    Raises:
        InvalidPricingTier: a place is not a positive integer, a percentage
            is negative, or the percentages total more than 100.
    """
    table = {}
    for place, percentage in (raw or {}).items():
        try:
            place_number = int(place)
        except (TypeError, ValueError):
            raise InvalidPricingTier(f"Invalid place {place!r} in place percentages")
        if place_number < 1:
            raise InvalidPricingTier(f"Place must be 1 or greater, got {place_number}")

        pct = Decimal(str(percentage or 0))
        if pct < 0:
            raise InvalidPricingTier(f"Percentage for place {place_number} cannot be negative")
        table[place_number] = pct

    if sum(table.values(), Decimal("0")) > Decimal("100"):
        raise InvalidPricingTier("Place percentages total more than 100")

    return OrderedDict(sorted(table.items()))


def _prize_amount(prize_pool, percentage: Decimal) -> Decimal:
    pool = Decimal(str(prize_pool or 0))
    return (pool * percentage / Decimal("100")).quantize(DECIMAL_PRECISION)


def calculate_prize_for_place(contest, place: int) -> Decimal:
    """
    Prize for a place: prize_pool * percentage(place) / 100.

    Unmapped places receive 0.
    """
    percentages = parse_place_percentages(contest.place_percentages)
    percentage = percentages.get(int(place))
    if percentage is None:
        return Decimal("0").quantize(DECIMAL_PRECISION)
    return _prize_amount(contest.prize_pool, percentage)


def is_eligible(order) -> bool:
    """Orders that are neither cancelled nor soft-deleted take part in settlement"""
    return order.status != OrderStatus.CANCELLED.value and not order.is_deleted


def collect_candidates(orders: Iterable, actual_value) -> List[PredictionCandidate]:
    """
    Flatten every order's generated and custom predictions into candidates,
    ranked by distance to the actual value.

    Ties on distance are broken by the order id string so repeated runs give
    the same ranking.
    """
    actual = Decimal(str(actual_value))
    candidates = []

    for order in orders:
        entries = list(order.predictions or []) + list(order.custom_predictions or [])
        for entry in entries:
            value = Decimal(str(entry["prediction_value"]))
            candidates.append(PredictionCandidate(
                order_id=str(order.id),
                user_id=str(order.user_id),
                prediction_value=value,
                price=Decimal(str(entry.get("price", 0))),
                difference=abs(value - actual),
            ))

    candidates.sort(key=lambda c: (c.difference, c.order_id))
    return candidates


def determine_winners(contest, orders: Iterable, actual_value) -> WinnerDetermination:
    """
    Rank all predictions and award each configured place to the closest
    remaining order.

    An order wins at most one place. Places beyond the number of distinct
    orders stay unassigned.

    Args:
        contest: Object exposing prize_pool and place_percentages
        orders: Orders with id, user_id, status, is_deleted, predictions and
            custom_predictions
        actual_value: The resolved outcome

    Returns:
        WinnerDetermination with winners in place order and the winning order ids
    """
    actual = Decimal(str(actual_value))
    eligible = [order for order in orders if is_eligible(order)]
    if not eligible:
        return WinnerDetermination(winners=[], winning_order_ids=[])

    candidates = collect_candidates(eligible, actual)
    percentages = parse_place_percentages(contest.place_percentages)

    winners: List[Winner] = []
    used_orders = set()
    position = 0

    for place, percentage in percentages.items():
        while position < len(candidates) and candidates[position].order_id in used_orders:
            position += 1
        if position >= len(candidates):
            logger.warning(f"No remaining prediction for place {place}, left unassigned")
            continue

        candidate = candidates[position]
        used_orders.add(candidate.order_id)
        winners.append(Winner(
            order_id=candidate.order_id,
            user_id=candidate.user_id,
            place=place,
            prediction_value=candidate.prediction_value,
            actual_value=actual,
            difference=candidate.difference,
            prize_amount=_prize_amount(contest.prize_pool, percentage),
            percentage=percentage,
        ))

    return WinnerDetermination(
        winners=winners,
        winning_order_ids=[w.order_id for w in winners],
    )


async def settle_contest(
    session: AsyncSession,
    contest_id: UUID,
    actual_value: Optional[Decimal] = None,
    result_source=None,
    admin_id: Optional[UUID] = None,
) -> Dict:
    """
    Settle a contest exactly once.

    Ranks every eligible prediction, marks each eligible order won or lost,
    records the contest result and moves the contest to Completed. The
    contest result, order statuses and audit log are committed together or
    not at all.

    The actual value is resolved before the contest row is locked, and the
    latch is checked again once the lock is held.

    Args:
        session: Database session
        contest_id: Contest UUID to settle
        actual_value: Outcome supplied by the caller; takes precedence over
            result_source
        result_source: Collaborator with an async fetch_actual_value(contest)
        admin_id: Admin UUID who initiated settlement (optional)

    Returns:
        Dict containing the settlement summary

    Raises:
        ContestNotFound, ContestStateError, AlreadySettled, ResultUnavailable
    """
    logger.info(f"Starting settlement for contest {contest_id}")

    try:
        result = await _settle_contest_inner(session, contest_id, actual_value, result_source, admin_id)
        await session.commit()
    except AlreadySettled:
        await session.rollback()
        SETTLEMENT_COUNT.labels(status="already_settled").inc()
        raise
    except Exception as e:
        logger.error(f"Error settling contest {contest_id}: {str(e)}")
        await session.rollback()
        SETTLEMENT_COUNT.labels(status="failed").inc()
        raise

    SETTLEMENT_COUNT.labels(status="settled").inc()
    return result


def _check_settleable(contest, contest_id: UUID) -> None:
    if not contest:
        raise ContestNotFound(f"Contest {contest_id} not found")
    if contest.prize_distributed:
        raise AlreadySettled(
            "Winners have already been determined for this contest",
            {"contest_id": str(contest_id)},
        )
    if contest.status in (ContestStatus.COMPLETED.value, ContestStatus.DELETED.value):
        raise ContestStateError(f"Contest {contest_id} is {contest.status} and cannot be settled")


async def _settle_contest_inner(
    session: AsyncSession,
    contest_id: UUID,
    actual_value: Optional[Decimal],
    result_source,
    admin_id: Optional[UUID],
) -> Dict:
    # Step 1: Check the contest without taking the row lock
    contest = await get_contest_by_id(session, contest_id)
    _check_settleable(contest, contest_id)

    # Step 2: Resolve the actual value; provider calls never run under the lock
    if actual_value is None:
        if result_source is None:
            raise ResultUnavailable("No actual value supplied and no result source configured")
        actual_value = await result_source.fetch_actual_value(contest)
    actual_value = Decimal(str(actual_value))
    logger.info(f"Contest {contest_id} actual value: {actual_value}")

    # Step 3: Lock contest row and re-check the one-way latch
    contest = await get_contest_by_id(session, contest_id, for_update=True)
    _check_settleable(contest, contest_id)

    # Step 4: Rank and award places
    orders = await list_eligible_orders(session, contest_id)
    logger.info(f"Found {len(orders)} eligible orders for contest {contest_id}")

    if orders:
        determination = determine_winners(contest, orders, actual_value)
    else:
        determination = WinnerDetermination(winners=[], winning_order_ids=[])

    # Step 5: Order statuses
    winners_by_order = {w.order_id: w for w in determination.winners}
    for order in orders:
        winner = winners_by_order.get(str(order.id))
        if winner:
            await persist_order_result(session, order.id, OrderStatus.WON.value, winner.result_record())
        else:
            await persist_order_result(session, order.id, OrderStatus.LOST.value, None)

    total_prizes = sum((w.prize_amount for w in determination.winners), Decimal("0"))

    ended_at = datetime.now(timezone.utc)
    winners = [
        {
            "order_id": w.order_id,
            "user_id": w.user_id,
            "place": w.place,
            "prediction_value": str(w.prediction_value),
            "difference": str(w.difference),
            "prize_amount": str(w.prize_amount),
            "percentage": str(w.percentage),
        }
        for w in determination.winners
    ]
    summary = {
        "contest_id": str(contest_id),
        "actual_value": str(actual_value),
        "num_orders": len(orders),
        "prize_pool": str(contest.prize_pool),
        "total_prizes": str(total_prizes.quantize(DECIMAL_PRECISION)),
        "winners": winners,
        "winning_predictions": determination.winning_order_ids,
    }

    # Step 6: Audit log
    await create_audit_log(
        session=session,
        admin_id=admin_id,
        action="contest_settlement",
        resource_type="contest",
        resource_id=contest_id,
        details=summary,
    )

    # Step 7: Latch the result; a concurrent settlement makes this a no-op
    latched = await mark_contest_settled(
        session,
        contest_id,
        actual_value=actual_value,
        winning_order_ids=determination.winning_order_ids,
        ended_at=ended_at,
    )
    if not latched:
        raise AlreadySettled(
            "Winners have already been determined for this contest",
            {"contest_id": str(contest_id)},
        )

    logger.info(f"Successfully settled contest {contest_id} with {len(winners)} winners totaling {total_prizes}")
    for winner in winners:
        logger.info(f"    - Place {winner['place']}: {winner['prize_amount']} to order {winner['order_id']}")

    return {
        "success": True,
        "settlement_time": ended_at.isoformat(),
        "status": ContestStatus.COMPLETED.value,
        "prize_distributed": True,
        **summary,
    }


async def get_contest_results(session: AsyncSession, contest_id: UUID) -> Dict:
    """
    Read-only result report for a contest.

    Returns the stored result record, the winning orders sorted by place and
    the prize for every configured place.
    """
    contest = await get_contest_by_id(session, contest_id)
    if not contest:
        raise ContestNotFound(f"Contest {contest_id} not found")

    orders = await list_orders_for_contest(session, contest_id)
    winners = sorted(
        (order for order in orders if order.result and order.result.get("place") is not None),
        key=lambda order: order.result["place"],
    )

    prizes = [
        {"place": place, "percentage": str(pct), "prize_amount": str(calculate_prize_for_place(contest, place))}
        for place, pct in parse_place_percentages(contest.place_percentages).items()
    ]

    return {
        "contest_id": str(contest.id),
        "status": contest.status,
        "results": contest.results_dict(),
        "winners": [
            {"order_id": str(order.id), "user_id": str(order.user_id), **order.result}
            for order in winners
        ],
        "prizes": prizes,
    }
