"""
Payout fee calculation and the Stripe payout client
"""

import asyncio
import logging
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Optional

import stripe

from app.core.config import settings
from app.core.errors import PayoutFailed, PayoutNotFound
from app.models.enums import PayoutMethod

# Configure logging
logger = logging.getLogger(__name__)

# Decimal precision for calculations
DECIMAL_PRECISION = Decimal("0.00000001")


def calculate_payout_fee(amount, method) -> Decimal:
    """
    Processor fee for paying out amount with the given method.

    instant:  amount * 1.5% + 0.50
    standard: amount * 0.25%, capped at 5

    Args:
        amount: Gross payout amount
        method: PayoutMethod or its value

    Returns:
        Fee quantized to 8 decimal places
    """
    amount = Decimal(str(amount))
    method = PayoutMethod(method)

    if method is PayoutMethod.INSTANT:
        fee = amount * settings.instant_payout_pct / Decimal("100") + settings.instant_payout_fixed_fee
    else:
        fee = min(amount * settings.standard_payout_pct / Decimal("100"), settings.standard_payout_fee_cap)

    return fee.quantize(DECIMAL_PRECISION)


def to_cents(amount) -> int:
    """Convert a currency amount to integer minor units"""
    return int((Decimal(str(amount)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class StripePayoutClient:
    """
    Payout collaborator backed by Stripe Payouts.

    The API key is passed on every request rather than set on the stripe
    module, so several clients can coexist.
    """

    def __init__(self, api_key: Optional[str] = None, api_version: Optional[str] = None):
        self.api_key = api_key or settings.stripe_secret_key
        self.api_version = api_version or settings.stripe_api_version

    async def create_payout(
        self,
        net_amount: Decimal,
        currency: str,
        destination_card: str,
        metadata: Dict[str, str],
        method: str = PayoutMethod.INSTANT.value,
    ) -> str:
        """
        Send net_amount to a debit card.

        Returns:
            Stripe payout id

        Raises:
            PayoutFailed: Stripe rejected the payout or no API key is configured
        """
        if not self.api_key:
            raise PayoutFailed("Stripe secret key is not configured")

        try:
            payout = await asyncio.to_thread(
                stripe.Payout.create,
                amount=to_cents(net_amount),
                currency=currency.lower(),
                destination=destination_card,
                method=PayoutMethod(method).value,
                metadata=metadata,
                api_key=self.api_key,
                stripe_version=self.api_version,
            )
        except stripe.StripeError as e:
            logger.error(f"Stripe payout failed: {e.user_message or str(e)}")
            raise PayoutFailed(f"Payout failed: {e.user_message or str(e)}", {"destination_card": destination_card})

        logger.info(f"Created {method} payout {payout.id} for {net_amount} {currency}")
        return payout.id

    async def get_payout_status(self, payout_id: str) -> Dict[str, Optional[str]]:
        """
        Look up a payout.

        Raises:
            PayoutNotFound: Stripe has no such payout
            PayoutFailed: Stripe could not be reached
        """
        try:
            payout = await asyncio.to_thread(
                stripe.Payout.retrieve,
                payout_id,
                api_key=self.api_key,
                stripe_version=self.api_version,
            )
        except stripe.InvalidRequestError as e:
            raise PayoutNotFound(f"Payout not found: {e.user_message or str(e)}")
        except stripe.StripeError as e:
            raise PayoutFailed(f"Could not fetch payout status: {e.user_message or str(e)}")

        return {
            "payout_id": payout.id,
            "status": payout.status,
            "arrival_date": str(payout.arrival_date) if payout.arrival_date else None,
            "failure_message": payout.failure_message,
        }


def get_payout_client() -> StripePayoutClient:
    """FastAPI dependency building a payout client from settings"""
    return StripePayoutClient()
