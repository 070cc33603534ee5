"""
Admin contest management API endpoints
"""

from decimal import Decimal
from typing import Any, Dict, List, Optional
from uuid import UUID
from datetime import datetime

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.db.session import get_db
from app.repos.contest_repo import get_contest_by_id, get_contests
from app.core.errors import ContestNotFound
from app.schemas import SettleRequest
from app.services.contest_service import (
    create_new_contest,
    generate_contest_predictions,
    get_contest,
    toggle_publish,
    update_contest_configuration,
)
from app.services.result_source import ContestResultSource
from app.services.settlement import calculate_prize_for_place, get_contest_results, settle_contest

router = APIRouter()


def get_result_source() -> ContestResultSource:
    """Result source used when settlement is called without an actual value"""
    return ContestResultSource()


class ContestCreate(BaseModel):
    """Contest creation request"""
    name: str
    category_group: Optional[str] = Field(None, alias="group")
    category: str
    description: Optional[str] = None
    prize_title: Optional[str] = Field(None, alias="prizeTitle")
    prize_pool: Decimal = Field(Decimal("0"), alias="prizePool", ge=0)
    place_percentages: Dict[str, Decimal] = Field(default_factory=dict, alias="placePercentages")
    min_prediction: Decimal = Field(..., alias="minPrediction")
    max_prediction: Decimal = Field(..., alias="maxPrediction")
    increment: Decimal
    unit: Optional[str] = None
    entries_per_prediction: int = Field(settings.default_entries_per_prediction, alias="numberOfEntriesPerPrediction", ge=1)
    pricing_model: str = Field("tier", alias="pricingModel")
    flat_price: Decimal = Field(Decimal("0"), alias="flatPrice", ge=0)
    tiers: List[Dict[str, Any]] = Field(default_factory=list)
    start_time: Optional[datetime] = Field(None, alias="startTime")
    end_time: Optional[datetime] = Field(None, alias="endTime")
    end_offset_time: Optional[datetime] = Field(None, alias="endOffsetTime")
    contest_metadata: Optional[Dict[str, Any]] = Field(None, alias="metadata")

    model_config = ConfigDict(populate_by_name=True)


class ContestUpdate(BaseModel):
    """Partial contest edit; range and pricing edits clear generated slots"""
    name: Optional[str] = None
    description: Optional[str] = None
    prize_pool: Optional[Decimal] = Field(None, alias="prizePool", ge=0)
    place_percentages: Optional[Dict[str, Decimal]] = Field(None, alias="placePercentages")
    min_prediction: Optional[Decimal] = Field(None, alias="minPrediction")
    max_prediction: Optional[Decimal] = Field(None, alias="maxPrediction")
    increment: Optional[Decimal] = None
    entries_per_prediction: Optional[int] = Field(None, alias="numberOfEntriesPerPrediction", ge=1)
    pricing_model: Optional[str] = Field(None, alias="pricingModel")
    flat_price: Optional[Decimal] = Field(None, alias="flatPrice", ge=0)
    tiers: Optional[List[Dict[str, Any]]] = None
    start_time: Optional[datetime] = Field(None, alias="startTime")
    end_time: Optional[datetime] = Field(None, alias="endTime")
    end_offset_time: Optional[datetime] = Field(None, alias="endOffsetTime")

    model_config = ConfigDict(populate_by_name=True)


@router.post("/contests", status_code=status.HTTP_201_CREATED)
async def create_contest_endpoint(body: ContestCreate, session: AsyncSession = Depends(get_db)):
    """Create a Draft contest"""
    return await create_new_contest(session, **body.model_dump())


@router.get("/contests")
async def list_contests_endpoint(
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    status_filter: Optional[str] = Query(None, alias="status"),
    session: AsyncSession = Depends(get_db)
):
    """List contests, newest first"""
    contests = await get_contests(session, limit=limit, offset=offset, status=status_filter)
    return {"contests": [contest.to_dict() for contest in contests], "count": len(contests)}


@router.get("/contests/{contest_id}")
async def get_contest_endpoint(contest_id: UUID, session: AsyncSession = Depends(get_db)):
    return await get_contest(session, contest_id)


@router.patch("/contests/{contest_id}")
async def update_contest_endpoint(
    contest_id: UUID,
    body: ContestUpdate,
    session: AsyncSession = Depends(get_db)
):
    """Edit a contest that has not been settled"""
    return await update_contest_configuration(session, contest_id, **body.model_dump(exclude_none=True))


@router.post("/contests/{contest_id}/generate-predictions")
async def generate_predictions_endpoint(contest_id: UUID, session: AsyncSession = Depends(get_db)):
    """
    Expand the contest's range into priced prediction slots.

    Refused once an Active contest has sold entries.
    """
    slots = await generate_contest_predictions(session, contest_id)
    return {"success": True, "contest_id": str(contest_id), "count": len(slots), "generated_predictions": slots}


@router.patch("/contests/{contest_id}/publish")
async def publish_contest_endpoint(contest_id: UUID, session: AsyncSession = Depends(get_db)):
    """Toggle a contest between Draft and Active"""
    return await toggle_publish(session, contest_id)


@router.post("/contests/{contest_id}/settle")
async def settle_contest_endpoint(
    contest_id: UUID,
    body: Optional[SettleRequest] = None,
    session: AsyncSession = Depends(get_db),
    result_source: ContestResultSource = Depends(get_result_source)
):
    """
    Determine winners and close the contest.

    When no actualValue is supplied it is fetched from the contest's result
    provider. A contest can only be settled once; later calls return 409.
    """
    actual_value = body.actual_value if body else None
    return await settle_contest(
        session=session,
        contest_id=contest_id,
        actual_value=actual_value,
        result_source=result_source,
    )


@router.get("/contests/{contest_id}/results")
async def contest_results_endpoint(contest_id: UUID, session: AsyncSession = Depends(get_db)):
    return await get_contest_results(session, contest_id)


@router.get("/contests/{contest_id}/prize/{place}")
async def prize_for_place_endpoint(contest_id: UUID, place: int, session: AsyncSession = Depends(get_db)):
    """Prize amount for a single place; 0 for places without a percentage"""
    contest = await get_contest_by_id(session, contest_id)
    if not contest:
        raise ContestNotFound(f"Contest {contest_id} not found")
    return {
        "contest_id": str(contest_id),
        "place": place,
        "prize_amount": str(calculate_prize_for_place(contest, place)),
    }
