"""
Wallet model: per-user points ledger used for withdrawals
"""

from sqlalchemy import Column, Numeric, DateTime, CheckConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func
from app.db.base import Base
import uuid


class Wallet(Base):
    """Wallet model - matches wallets table"""
    __tablename__ = "wallets"
    __mapper_args__ = {"eager_defaults": True}

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(UUID(as_uuid=True), nullable=False, unique=True)
    points_balance = Column(Numeric(30, 8), nullable=False, default=0)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Constraints
    __table_args__ = (
        CheckConstraint('points_balance >= 0', name='chk_points_nonneg'),
    )

    def __repr__(self):
        return f"<Wallet(id={self.id}, user_id={self.user_id}, points={self.points_balance})>"
