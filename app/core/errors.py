"""
Typed errors raised by the contest, settlement and payout services.

Services raise these instead of generic exceptions. The handler registered
in app.main renders any PredictPoolError as a JSON error response using the
error's status_code.
"""

from typing import Any, Dict, Optional


class PredictPoolError(Exception):
    """Base error for all service-level failures.

    Args:
        message: Human-readable error description.
        context: Optional structured data for logging/debugging.
    """

    status_code = 400

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        if self.context:
            safe_context = {
                k: "[REDACTED]" if _is_secret_key(k) else v for k, v in self.context.items()
            }
            return f"{self.message} | context={safe_context}"
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": False,
            "error": self.message,
            "error_type": type(self).__name__,
        }


class InvalidRange(PredictPoolError):
    """Prediction range is unusable (min >= max or increment <= 0)."""


class InvalidPricingTier(PredictPoolError):
    """Pricing tiers are malformed, overlapping or missing."""


class InvalidPrediction(PredictPoolError):
    """A custom prediction value is not allowed for this contest."""


class ContestNotFound(PredictPoolError):
    """No (non-deleted) contest exists with the given id."""

    status_code = 404


class ContestStateError(PredictPoolError):
    """The contest's status does not allow the requested operation."""

    status_code = 409


class AlreadySettled(PredictPoolError):
    """Settlement was attempted on a contest whose prize is already distributed."""

    status_code = 409


class ResultUnavailable(PredictPoolError):
    """The external result source could not supply an actual value."""

    status_code = 503


class PredictionUnavailable(PredictPoolError):
    """A generated prediction slot is missing or has no capacity left."""

    status_code = 409


class OrderNotFound(PredictPoolError):
    """No (non-deleted) order exists with the given id."""

    status_code = 404


class OrderStateError(PredictPoolError):
    """The order's status does not allow the requested operation."""

    status_code = 409


class WithdrawalNotFound(PredictPoolError):
    """No withdrawal exists with the given id."""

    status_code = 404


class WithdrawalStateError(PredictPoolError):
    """The withdrawal's status does not allow the requested operation."""

    status_code = 409


class InsufficientPoints(PredictPoolError):
    """The user's wallet does not hold enough points."""


class PayoutFailed(PredictPoolError):
    """The payout processor rejected or failed a payout."""

    status_code = 502


class PayoutNotFound(PredictPoolError):
    """The payout processor has no payout with the given id."""

    status_code = 404


def _is_secret_key(key: str) -> bool:
    """Check if a dict key name suggests it contains secret data."""
    secret_words = {"key", "secret", "password", "token", "card"}
    key_lower = key.lower()
    return any(word in key_lower for word in secret_words)
