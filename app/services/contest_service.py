"""
Contest lifecycle: creation, slot generation, publishing and range edits
"""

import logging
from decimal import Decimal
from typing import Dict, List, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import ContestNotFound, ContestStateError
from app.models.enums import ContestStatus, PricingModel
from app.repos.contest_repo import create_contest, get_contest_by_id, replace_generated_predictions
from app.services.contest_metadata import build_contest_metadata
from app.services.prediction_generator import generate_for_contest, parse_tiers, prediction_values, validate_tiers
from app.services.settlement import parse_place_percentages

# Configure logging
logger = logging.getLogger(__name__)

# Editing any of these invalidates the generated slots
SLOT_FIELDS = (
    "min_prediction",
    "max_prediction",
    "increment",
    "entries_per_prediction",
    "pricing_model",
    "flat_price",
    "tiers",
)


def _normalize_configuration(fields: Dict) -> Dict:
    """Validate and normalise range, pricing and prize fields in place"""
    if "pricing_model" in fields:
        fields["pricing_model"] = PricingModel(fields["pricing_model"]).value
    if "tiers" in fields:
        tiers = parse_tiers(fields["tiers"])
        validate_tiers(tiers)
        fields["tiers"] = [tier.model_dump(mode="json", by_alias=True) for tier in tiers]
    if "place_percentages" in fields:
        fields["place_percentages"] = {
            str(place): str(pct) for place, pct in parse_place_percentages(fields["place_percentages"]).items()
        }
    return fields


async def create_new_contest(session: AsyncSession, **fields) -> Dict:
    """
    Create a Draft contest, deriving result metadata from its category.

    Raises:
        InvalidRange, InvalidPricingTier
    """
    _normalize_configuration(fields)
    prediction_values(fields["min_prediction"], fields["max_prediction"], fields["increment"])

    if not fields.get("contest_metadata"):
        fields["contest_metadata"] = build_contest_metadata(
            fields.get("category_group"), fields.get("category", ""), fields.get("name")
        )

    try:
        contest = await create_contest(session, **fields)
        await session.commit()
    except Exception:
        await session.rollback()
        raise

    logger.info(f"Created contest {contest.id} ({contest.name})")
    return contest.to_dict()


async def _load(session: AsyncSession, contest_id: UUID):
    contest = await get_contest_by_id(session, contest_id, for_update=True)
    if not contest:
        raise ContestNotFound(f"Contest {contest_id} not found")
    return contest


async def generate_contest_predictions(session: AsyncSession, contest_id: UUID) -> List[Dict]:
    """
    Regenerate a contest's prediction slots, replacing any existing ones.

    Only Draft and Active contests are eligible, and an Active contest that
    has already sold entries is refused.

    Returns:
        The new slot list
    """
    try:
        contest = await _load(session, contest_id)

        if contest.status not in (ContestStatus.DRAFT.value, ContestStatus.ACTIVE.value):
            raise ContestStateError(f"Cannot generate predictions for a {contest.status} contest")
        if contest.status == ContestStatus.ACTIVE.value and (contest.total_entries or 0) > 0:
            raise ContestStateError(
                "Cannot regenerate predictions after entries have been sold",
                {"total_entries": contest.total_entries},
            )

        slots = [slot.to_json() for slot in generate_for_contest(contest)]
        await replace_generated_predictions(session, contest, slots)
        await session.commit()
    except Exception:
        await session.rollback()
        raise

    logger.info(f"Generated {len(slots)} predictions for contest {contest_id}")
    return slots


async def toggle_publish(session: AsyncSession, contest_id: UUID) -> Dict:
    """
    Flip a contest between Draft and Active.

    Draft -> Active requires generated slots; Active -> Draft is only
    allowed while no entries have been sold.
    """
    try:
        contest = await _load(session, contest_id)

        if contest.status == ContestStatus.DRAFT.value:
            if not contest.generated_predictions:
                raise ContestStateError("Generate predictions before publishing the contest")
            contest.status = ContestStatus.ACTIVE.value
        elif contest.status == ContestStatus.ACTIVE.value:
            if (contest.total_entries or 0) > 0:
                raise ContestStateError("Cannot unpublish a contest with sold entries")
            contest.status = ContestStatus.DRAFT.value
        else:
            raise ContestStateError(f"Cannot publish a {contest.status} contest")

        await session.commit()
    except Exception:
        await session.rollback()
        raise

    logger.info(f"Contest {contest_id} is now {contest.status}")
    return contest.to_dict()


def reset_generated_predictions(contest) -> None:
    """Clear generated slots and send an Active contest back to Draft"""
    contest.generated_predictions = []
    if contest.status == ContestStatus.ACTIVE.value:
        contest.status = ContestStatus.DRAFT.value


async def update_contest_configuration(session: AsyncSession, contest_id: UUID, **fields) -> Dict:
    """
    Edit a contest. Changing any range or pricing field clears the
    generated slots.

    Raises:
        ContestStateError: the contest is settled or has sold entries and a
            range/pricing field changes
    """
    try:
        contest = await _load(session, contest_id)
        if contest.prize_distributed or contest.status == ContestStatus.COMPLETED.value:
            raise ContestStateError("Cannot edit a settled contest")

        _normalize_configuration(fields)
        touches_slots = any(
            key in SLOT_FIELDS and _differs(getattr(contest, key), value) for key, value in fields.items()
        )
        if touches_slots and (contest.total_entries or 0) > 0:
            raise ContestStateError("Cannot change the prediction range after entries have been sold")

        for key, value in fields.items():
            setattr(contest, key, value)

        prediction_values(contest.min_prediction, contest.max_prediction, contest.increment)
        if touches_slots:
            reset_generated_predictions(contest)
            logger.info(f"Range/pricing of contest {contest_id} changed, generated predictions cleared")

        await session.commit()
    except Exception:
        await session.rollback()
        raise

    return contest.to_dict()


def _differs(current, new) -> bool:
    if isinstance(current, Decimal) or isinstance(new, Decimal):
        try:
            return Decimal(str(current)) != Decimal(str(new))
        except ArithmeticError:
            return True
    return current != new


async def get_contest(session: AsyncSession, contest_id: UUID) -> Optional[Dict]:
    contest = await get_contest_by_id(session, contest_id)
    if not contest:
        raise ContestNotFound(f"Contest {contest_id} not found")
    return contest.to_dict()
