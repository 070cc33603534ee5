"""
Pydantic schemas shared by the prediction generator, settlement engine and API
"""

from decimal import Decimal
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, ConfigDict


class PriceTier(BaseModel):
    """One price band over the prediction range"""
    id: Optional[str] = None
    name: str = ""
    min: Decimal
    max: Decimal
    price_per_prediction: Decimal = Field(..., alias="pricePerPrediction")
    is_active: bool = Field(True, alias="isActive")

    model_config = ConfigDict(populate_by_name=True)


class GeneratedPrediction(BaseModel):
    """A discrete, priced, capacity-bounded prediction slot"""
    id: str
    value: Decimal
    tier_id: str
    price: Decimal
    current_entries: int = 0
    max_entries: int
    is_available: bool = True

    def to_json(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")


class PredictionCandidate(BaseModel):
    """A single scored entry taken from an order during settlement"""
    order_id: str
    user_id: str
    prediction_value: Decimal
    price: Decimal
    difference: Decimal


class Winner(BaseModel):
    """A place awarded to one order"""
    order_id: str
    user_id: str
    place: int
    prediction_value: Decimal
    actual_value: Decimal
    difference: Decimal
    prize_amount: Decimal
    percentage: Decimal

    def result_record(self) -> Dict[str, Any]:
        """Result sub-record persisted on the winning order"""
        return {
            "place": self.place,
            "prediction_value": str(self.prediction_value),
            "actual_value": str(self.actual_value),
            "difference": str(self.difference),
            "prize_amount": str(self.prize_amount),
            "percentage": str(self.percentage),
        }


class WinnerDetermination(BaseModel):
    """Output of determine_winners"""
    winners: List[Winner] = []
    winning_order_ids: List[str] = []


class SettleRequest(BaseModel):
    """Settlement request body"""
    actual_value: Optional[Decimal] = Field(None, alias="actualValue")

    model_config = ConfigDict(populate_by_name=True)


class OrderCreate(BaseModel):
    """Contest order creation request"""
    user_id: UUID
    contest_id: UUID
    generated_prediction_ids: List[str] = Field(default_factory=list, alias="generatedPredictionsIds")
    custom_predictions: List[Decimal] = Field(default_factory=list, alias="customPredictions")

    model_config = ConfigDict(populate_by_name=True)


class WithdrawalCreate(BaseModel):
    """Withdrawal request body"""
    user_id: UUID
    amount: Decimal = Field(..., gt=0)
    card_id: str
    withdrawal_method: str = "card"


class WithdrawalApprove(BaseModel):
    """Withdrawal approval body"""
    payout_method: str = Field("instant", alias="payoutMethod")
    admin_note: Optional[str] = Field(None, alias="adminNote")

    model_config = ConfigDict(populate_by_name=True)
