"""
Contest repository for contest management and the settlement latch
"""

from datetime import datetime
from typing import Dict, List, Optional
from uuid import UUID
from decimal import Decimal
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, desc

from app.core.errors import PredictPoolError, PredictionUnavailable
from app.models.contest import Contest
from app.models.enums import ContestStatus


async def create_contest(session: AsyncSession, **fields) -> Contest:
    """
    Create a new contest in Draft status.

    Args:
        session: Database session
        **fields: Contest column values

    Returns:
        Created Contest instance
    """
    fields.setdefault("status", ContestStatus.DRAFT.value)
    contest = Contest(**fields)
    session.add(contest)
    await session.flush()
    return contest


async def get_contest_by_id(
    session: AsyncSession,
    contest_id: UUID,
    for_update: bool = False
) -> Optional[Contest]:
    """
    Get a non-deleted contest by ID.

    Args:
        session: Database session
        contest_id: Contest UUID
        for_update: Lock the row until the transaction ends

    Returns:
        Contest instance or None if not found
    """
    query = select(Contest).where(Contest.id == contest_id, Contest.is_deleted.is_(False))
    if for_update:
        # Reload the row so checks made under the lock see committed values
        query = query.with_for_update().execution_options(populate_existing=True)
    result = await session.execute(query)
    return result.scalar_one_or_none()


async def get_contests(
    session: AsyncSession,
    limit: int = 50,
    offset: int = 0,
    status: Optional[str] = None
) -> List[Contest]:
    """
    Get list of non-deleted contests, newest first.
    """
    query = select(Contest).where(Contest.is_deleted.is_(False)).order_by(desc(Contest.created_at))

    if status:
        try:
            status = ContestStatus(status).value
        except ValueError:
            raise PredictPoolError(f"Invalid contest status: {status}")
        query = query.where(Contest.status == status)

    query = query.limit(limit).offset(offset)

    result = await session.execute(query)
    return list(result.scalars().all())


async def list_ended_active_contests(session: AsyncSession, now: datetime) -> List[Contest]:
    """
    Active, unsettled contests whose end_time has passed.
    """
    result = await session.execute(
        select(Contest).where(
            Contest.is_deleted.is_(False),
            Contest.status == ContestStatus.ACTIVE.value,
            Contest.prize_distributed.is_(False),
            Contest.end_time.is_not(None),
            Contest.end_time <= now,
        )
    )
    return list(result.scalars().all())


async def mark_contest_settled(
    session: AsyncSession,
    contest_id: UUID,
    actual_value: Decimal,
    winning_order_ids: List[str],
    ended_at: datetime
) -> bool:
    """
    Write the contest result record and flip prize_distributed.

    The UPDATE only matches while prize_distributed is still false, so of two
    concurrent settlements exactly one sees a row count of 1.

    Returns:
        True if this call latched the contest, False if it was already settled
    """
    result = await session.execute(
        update(Contest)
        .where(
            Contest.id == contest_id,
            Contest.is_deleted.is_(False),
            Contest.prize_distributed.is_(False),
        )
        .values(
            actual_value=actual_value,
            winning_order_ids=list(winning_order_ids),
            prize_distributed=True,
            status=ContestStatus.COMPLETED.value,
            ended_at=ended_at,
        )
        .execution_options(synchronize_session="fetch")
    )
    return result.rowcount == 1


async def replace_generated_predictions(session: AsyncSession, contest: Contest, slots: List[Dict]) -> Contest:
    """
    Store a freshly generated slot list on the contest.
    """
    # JSON columns only register a change on reassignment
    contest.generated_predictions = list(slots)
    await session.flush()
    return contest


async def reserve_prediction_entry(session: AsyncSession, contest_id: UUID, slot_id: str) -> Dict:
    """
    Take one entry from a generated prediction slot.

    The contest row is locked so concurrent reservations on the same slot
    serialize; a slot never exceeds max_entries.

    Args:
        session: Database session
        contest_id: Contest UUID
        slot_id: Generated prediction id

    Returns:
        The updated slot dict

    Raises:
        PredictionUnavailable: slot missing, unavailable or full
    """
    contest = await get_contest_by_id(session, contest_id, for_update=True)
    if not contest:
        raise PredictionUnavailable(f"Contest {contest_id} not found")

    slots = [dict(slot) for slot in (contest.generated_predictions or [])]
    slot = next((s for s in slots if s.get("id") == slot_id), None)
    if slot is None:
        raise PredictionUnavailable(f"Prediction {slot_id} not found", {"slot_id": slot_id})

    current = int(slot.get("current_entries", 0))
    capacity = int(slot.get("max_entries", 0))
    if not slot.get("is_available", True) or current >= capacity:
        raise PredictionUnavailable(
            f"Prediction {slot.get('value')} is sold out",
            {"slot_id": slot_id, "current_entries": current, "max_entries": capacity},
        )

    slot["current_entries"] = current + 1
    slot["is_available"] = slot["current_entries"] < capacity

    contest.generated_predictions = slots
    contest.total_entries = (contest.total_entries or 0) + 1
    await session.flush()
    return slot


async def add_custom_entries(session: AsyncSession, contest_id: UUID, count: int) -> None:
    """
    Count custom (off-slot) entries towards the contest's total_entries.
    """
    await session.execute(
        update(Contest)
        .where(Contest.id == contest_id)
        .values(total_entries=Contest.total_entries + count)
        .execution_options(synchronize_session="fetch")
    )
