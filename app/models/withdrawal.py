"""
Withdrawal model: a points-to-card payout request
"""

from sqlalchemy import Column, String, Numeric, DateTime, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy import JSON
from sqlalchemy.sql import func
from app.db.base import Base
import uuid


class Withdrawal(Base):
    """Withdrawal model - matches withdrawals table"""
    __tablename__ = "withdrawals"
    __mapper_args__ = {"eager_defaults": True}

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), nullable=False, index=True)
    amount = Column(Numeric(30, 8), nullable=False)
    points_deducted = Column(Numeric(30, 8), nullable=False)
    currency = Column(String(16), nullable=False, default='usd')
    status = Column(String(32), nullable=False, default='pending')
    withdrawal_method = Column(String(16), nullable=False, default='card')
    card_id = Column(String(128), nullable=True)
    payout_method = Column(String(16), nullable=True)
    fee = Column(Numeric(30, 8), nullable=True)
    net_amount = Column(Numeric(30, 8), nullable=True)
    payout_id = Column(String(128), nullable=True)
    failure_reason = Column(Text, nullable=True)
    admin_note = Column(Text, nullable=True)
    withdrawal_metadata = Column('metadata', JSON, nullable=True)
    processed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<Withdrawal(id={self.id}, user_id={self.user_id}, amount={self.amount}, status={self.status})>"

    def to_dict(self):
        return {
            "id": str(self.id),
            "user_id": str(self.user_id),
            "amount": str(self.amount),
            "points_deducted": str(self.points_deducted),
            "currency": self.currency,
            "status": self.status,
            "withdrawal_method": self.withdrawal_method,
            "payout_method": self.payout_method,
            "fee": str(self.fee) if self.fee is not None else None,
            "net_amount": str(self.net_amount) if self.net_amount is not None else None,
            "payout_id": self.payout_id,
            "failure_reason": self.failure_reason,
            "processed_at": self.processed_at.isoformat() if self.processed_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
