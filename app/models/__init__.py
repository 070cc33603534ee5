# Models Package
from .contest import Contest
from .order import Order
from .wallet import Wallet
from .withdrawal import Withdrawal
from .audit_log import AuditLog

__all__ = [
    "Contest",
    "Order",
    "Wallet",
    "Withdrawal",
    "AuditLog"
]
