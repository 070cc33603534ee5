"""
Order model: one purchase of prediction entries by one user on one contest
"""

from sqlalchemy import Column, String, Numeric, DateTime, Boolean, JSON, ForeignKey
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func
from app.db.base import Base
import uuid


class Order(Base):
    """Order model - matches orders table"""
    __tablename__ = "orders"
    __mapper_args__ = {"eager_defaults": True}

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    order_code = Column(String(64), nullable=False, unique=True)
    user_id = Column(UUID(as_uuid=True), nullable=False)
    contest_id = Column(UUID(as_uuid=True), ForeignKey("contests.id", ondelete="CASCADE"), nullable=False, index=True)
    contest_name = Column(String(200), nullable=True)
    # Entries bought from generated slots: {slot_id, prediction_value, tier_id, price}
    predictions = Column(JSON, nullable=False, default=list)
    # Free-value entries: {prediction_value, tier_id, price}
    custom_predictions = Column(JSON, nullable=False, default=list)
    total_amount = Column(Numeric(30, 8), nullable=False, default=0)
    status = Column(String(32), nullable=False, default="pending")
    result = Column(JSON, nullable=True)
    paid_at = Column(DateTime(timezone=True), nullable=True)
    is_deleted = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<Order(id={self.id}, contest_id={self.contest_id}, user_id={self.user_id}, status={self.status})>"

    def to_dict(self):
        """Convert order to dictionary for API responses"""
        return {
            "id": str(self.id),
            "order_code": self.order_code,
            "user_id": str(self.user_id),
            "contest_id": str(self.contest_id),
            "contest_name": self.contest_name,
            "predictions": self.predictions or [],
            "custom_predictions": self.custom_predictions or [],
            "total_amount": str(self.total_amount),
            "status": self.status,
            "result": self.result,
            "paid_at": self.paid_at.isoformat() if self.paid_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
