"""
Database enums for contests, orders and withdrawals
"""

import enum


class ContestStatus(enum.Enum):
    """Contest lifecycle status"""
    DRAFT = "Draft"
    ACTIVE = "Active"
    COMPLETED = "Completed"
    DELETED = "Deleted"


class PricingModel(enum.Enum):
    """How generated prediction slots are priced"""
    PRICE_ONLY = "priceOnly"
    TIER = "tier"
    PERCENTAGE = "percentage"

    @classmethod
    def _missing_(cls, value):
        # Accept the long-form names used by contest configuration forms
        aliases = {
            "flat": cls.PRICE_ONLY,
            "tiered": cls.TIER,
            "tiered_percentage": cls.PERCENTAGE,
            "tieredPercentage": cls.PERCENTAGE,
        }
        return aliases.get(value)


class OrderStatus(enum.Enum):
    """Order status enum"""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    WON = "won"
    LOST = "lost"


class PayoutMethod(enum.Enum):
    """Payout speed offered by the payment processor"""
    INSTANT = "instant"
    STANDARD = "standard"


class WithdrawalStatus(enum.Enum):
    """Withdrawal status enum"""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    REJECTED = "rejected"
    FAILED = "failed"
