"""
Contest model: range/pricing configuration, generated prediction slots and result record
"""

from sqlalchemy import Column, String, Numeric, DateTime, Integer, Boolean, JSON, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func
from app.db.base import Base
import uuid


class Contest(Base):
    """Contest model - matches contests table"""
    __tablename__ = "contests"
    __mapper_args__ = {"eager_defaults": True}

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(200), nullable=False)
    category_group = Column(String(128), nullable=True)
    category = Column(String(128), nullable=False)
    description = Column(Text, nullable=True)

    # Prize
    prize_title = Column(String(255), nullable=True)
    prize_pool = Column(Numeric(30, 8), nullable=False, default=0)
    place_percentages = Column(JSON, nullable=False, default=dict)

    # Prediction range
    min_prediction = Column(Numeric(30, 8), nullable=False)
    max_prediction = Column(Numeric(30, 8), nullable=False)
    increment = Column(Numeric(30, 8), nullable=False)
    unit = Column(String(64), nullable=True)
    entries_per_prediction = Column(Integer, nullable=False, default=1)
    generated_predictions = Column(JSON, nullable=False, default=list)

    # Pricing
    pricing_model = Column(String(32), nullable=False, default="tier")
    flat_price = Column(Numeric(30, 8), nullable=False, default=0)
    tiers = Column(JSON, nullable=False, default=list)

    start_time = Column(DateTime(timezone=True), nullable=True)
    end_time = Column(DateTime(timezone=True), nullable=True)
    end_offset_time = Column(DateTime(timezone=True), nullable=True)

    status = Column(String(32), nullable=False, default="Draft")
    total_entries = Column(Integer, nullable=False, default=0)
    max_entries = Column(Integer, nullable=False, default=0)
    contest_metadata = Column('metadata', JSON, nullable=True)

    # Result record, written only by settlement
    actual_value = Column(Numeric(30, 8), nullable=True)
    winning_order_ids = Column(JSON, nullable=False, default=list)
    prize_distributed = Column(Boolean, nullable=False, default=False)
    ended_at = Column(DateTime(timezone=True), nullable=True)

    is_deleted = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<Contest(id={self.id}, name={self.name}, status={self.status}, prize_pool={self.prize_pool})>"

    def results_dict(self):
        """Result record as exposed by the API"""
        return {
            "actual_value": str(self.actual_value) if self.actual_value is not None else None,
            "winning_predictions": list(self.winning_order_ids or []),
            "prize_distributed": bool(self.prize_distributed),
            "ended_at": self.ended_at.isoformat() if self.ended_at else None,
        }

    def to_dict(self):
        """Convert contest to dictionary for API responses"""
        return {
            "id": str(self.id),
            "name": self.name,
            "category_group": self.category_group,
            "category": self.category,
            "description": self.description,
            "prize_title": self.prize_title,
            "prize_pool": str(self.prize_pool),
            "place_percentages": self.place_percentages or {},
            "min_prediction": str(self.min_prediction),
            "max_prediction": str(self.max_prediction),
            "increment": str(self.increment),
            "unit": self.unit,
            "entries_per_prediction": self.entries_per_prediction,
            "generated_predictions": self.generated_predictions or [],
            "pricing_model": self.pricing_model,
            "flat_price": str(self.flat_price),
            "tiers": self.tiers or [],
            "status": self.status,
            "total_entries": self.total_entries,
            "metadata": self.contest_metadata,
            "results": self.results_dict(),
            "start_time": self.start_time.isoformat() if self.start_time else None,
            "end_time": self.end_time.isoformat() if self.end_time else None,
            "end_offset_time": self.end_offset_time.isoformat() if self.end_offset_time else None,
        }
